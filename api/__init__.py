"""HTTP surface for the circuit season engine."""
