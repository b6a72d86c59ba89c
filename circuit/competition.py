"""
Competition Data Model
======================

Shared records for every competition in the circuit: bracket matches and
rounds, the routing destinations that wire them together, match results, and
the closed sets (formats, competition types, statuses, season phases) that the
bracket engine, the tournament manager and the calendar all agree on.

Brackets are plain data.  A match never holds a reference to another match;
it names the downstream match by id in its winner/loser ``Destination``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


# ═══════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════

class CircuitError(Exception):
    """Base class for all circuit errors."""


class BracketValidationError(CircuitError, ValueError):
    """Bad input to the bracket engine (team count, unknown match, wrong winner)."""


class StateMachineError(CircuitError):
    """A caller broke a terminal or blocking invariant."""


class CalendarBlockedError(StateMachineError):
    """The calendar cannot move past a day with an unresolved user match."""

    def __init__(self, message: str, event: Any = None):
        super().__init__(message)
        self.event = event


# ═══════════════════════════════════════════════════════════════
# CLOSED SETS
# ═══════════════════════════════════════════════════════════════

class BracketFormat(str, Enum):
    SINGLE_ELIM = "single_elim"
    DOUBLE_ELIM = "double_elim"
    TRIPLE_ELIM = "triple_elim"
    ROUND_ROBIN = "round_robin"
    SWISS_TO_PLAYOFF = "swiss_to_playoff"


class CompetitionType(str, Enum):
    KICKOFF = "kickoff"
    STAGE_LEAGUE = "stage_league"
    STAGE_PLAYOFF = "stage_playoff"
    MASTERS = "masters"
    CHAMPIONS = "champions"


class MatchStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    COMPLETED = "completed"


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SeasonPhase(str, Enum):
    OFFSEASON = "offseason"
    KICKOFF = "kickoff"
    MASTERS1 = "masters1"
    STAGE1 = "stage1"
    STAGE1_PLAYOFFS = "stage1_playoffs"
    MASTERS2 = "masters2"
    STAGE2 = "stage2"
    STAGE2_PLAYOFFS = "stage2_playoffs"
    CHAMPIONS = "champions"


class BracketLabel(str, Enum):
    """Triple-elimination finishing paths: undefeated, one loss, two losses."""
    ALPHA = "alpha"
    BETA = "beta"
    OMEGA = "omega"


class DestinationKind(str, Enum):
    MATCH = "match"
    ELIMINATED = "eliminated"
    CHAMPION = "champion"
    PLACEMENT = "placement"
    NONE = "none"


class SourceKind(str, Enum):
    SEED = "seed"
    WINNER = "winner"
    LOSER = "loser"
    BYE = "bye"


# ═══════════════════════════════════════════════════════════════
# MATCH RESULTS
# ═══════════════════════════════════════════════════════════════

@dataclass
class MapResult:
    map_name: str
    score_team_a: int
    score_team_b: int
    winner_id: str

    def to_dict(self) -> dict:
        return {
            "map_name": self.map_name,
            "score_team_a": self.score_team_a,
            "score_team_b": self.score_team_b,
            "winner_id": self.winner_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MapResult":
        return cls(
            map_name=data["map_name"],
            score_team_a=int(data["score_team_a"]),
            score_team_b=int(data["score_team_b"]),
            winner_id=data["winner_id"],
        )


@dataclass
class MatchResult:
    """Outcome of one series.  ``score_team_*`` count maps won."""
    winner_id: str
    loser_id: str
    score_team_a: int = 0
    score_team_b: int = 0
    maps: List[MapResult] = field(default_factory=list)
    team_a_id: str = ""
    team_b_id: str = ""
    match_id: str = ""

    def _side(self, team_id: str) -> str:
        if team_id == self.team_a_id:
            return "a"
        if team_id == self.team_b_id:
            return "b"
        # Unoriented result: fall back on winner/loser
        return "w" if team_id == self.winner_id else "l"

    def maps_for(self, team_id: str) -> int:
        side = self._side(team_id)
        if side == "a":
            return self.score_team_a
        if side == "b":
            return self.score_team_b
        hi, lo = max(self.score_team_a, self.score_team_b), min(self.score_team_a, self.score_team_b)
        return hi if side == "w" else lo

    def maps_against(self, team_id: str) -> int:
        return self.score_team_a + self.score_team_b - self.maps_for(team_id)

    def rounds_for(self, team_id: str) -> int:
        if not self.maps:
            return self.maps_for(team_id)
        side = self._side(team_id)
        if side == "a":
            return sum(m.score_team_a for m in self.maps)
        if side == "b":
            return sum(m.score_team_b for m in self.maps)
        total = 0
        for m in self.maps:
            hi, lo = max(m.score_team_a, m.score_team_b), min(m.score_team_a, m.score_team_b)
            total += hi if (m.winner_id == team_id) else lo
        return total

    def rounds_against(self, team_id: str) -> int:
        if not self.maps:
            return self.maps_against(team_id)
        total = sum(m.score_team_a + m.score_team_b for m in self.maps)
        return total - self.rounds_for(team_id)

    def round_diff_for(self, team_id: str) -> int:
        return self.rounds_for(team_id) - self.rounds_against(team_id)

    def map_diff_for(self, team_id: str) -> int:
        return self.maps_for(team_id) - self.maps_against(team_id)

    def oriented(self, match_id: str, team_a_id: str, team_b_id: str) -> "MatchResult":
        """Copy of this result pinned to a match's A/B slots."""
        if self.team_a_id and self.team_a_id != team_a_id:
            # Supplied with the sides flipped
            return MatchResult(
                winner_id=self.winner_id,
                loser_id=self.loser_id,
                score_team_a=self.score_team_b,
                score_team_b=self.score_team_a,
                maps=[
                    MapResult(m.map_name, m.score_team_b, m.score_team_a, m.winner_id)
                    for m in self.maps
                ],
                team_a_id=team_a_id,
                team_b_id=team_b_id,
                match_id=match_id,
            )
        return MatchResult(
            winner_id=self.winner_id,
            loser_id=self.loser_id,
            score_team_a=self.score_team_a,
            score_team_b=self.score_team_b,
            maps=list(self.maps),
            team_a_id=team_a_id,
            team_b_id=team_b_id,
            match_id=match_id,
        )

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "winner_id": self.winner_id,
            "loser_id": self.loser_id,
            "team_a_id": self.team_a_id,
            "team_b_id": self.team_b_id,
            "score_team_a": self.score_team_a,
            "score_team_b": self.score_team_b,
            "maps": [m.to_dict() for m in self.maps],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MatchResult":
        return cls(
            winner_id=data["winner_id"],
            loser_id=data["loser_id"],
            score_team_a=int(data.get("score_team_a", 0)),
            score_team_b=int(data.get("score_team_b", 0)),
            maps=[MapResult.from_dict(m) for m in data.get("maps", [])],
            team_a_id=data.get("team_a_id", ""),
            team_b_id=data.get("team_b_id", ""),
            match_id=data.get("match_id", ""),
        )


# ═══════════════════════════════════════════════════════════════
# BRACKET STRUCTURE
# ═══════════════════════════════════════════════════════════════

@dataclass
class TeamSource:
    kind: SourceKind
    seed: Optional[int] = None
    match_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "seed": self.seed, "match_id": self.match_id}


@dataclass
class Destination:
    """Where a match's winner or loser goes next.

    ``place`` is set for ``PLACEMENT`` and for ``ELIMINATED`` (the shared
    finishing place of everyone knocked out in that round).
    """
    kind: DestinationKind
    match_id: Optional[str] = None
    slot: Optional[str] = None
    place: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "match_id": self.match_id,
            "slot": self.slot,
            "place": self.place,
        }


@dataclass
class BracketMatch:
    match_id: str
    bracket_type: str
    round_number: int
    position: int
    team_a_id: Optional[str] = None
    team_b_id: Optional[str] = None
    team_a_source: Optional[TeamSource] = None
    team_b_source: Optional[TeamSource] = None
    status: MatchStatus = MatchStatus.PENDING
    winner_id: Optional[str] = None
    loser_id: Optional[str] = None
    result: Optional[MatchResult] = None
    scheduled_date: Optional[str] = None
    winner_destination: Destination = field(default_factory=lambda: Destination(DestinationKind.NONE))
    loser_destination: Destination = field(default_factory=lambda: Destination(DestinationKind.NONE))
    is_bye: bool = False

    @property
    def teams(self) -> List[str]:
        return [t for t in (self.team_a_id, self.team_b_id) if t]

    def involves(self, team_id: str) -> bool:
        return team_id in (self.team_a_id, self.team_b_id)

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "bracket_type": self.bracket_type,
            "round_number": self.round_number,
            "position": self.position,
            "team_a_id": self.team_a_id,
            "team_b_id": self.team_b_id,
            "status": self.status.value,
            "winner_id": self.winner_id,
            "loser_id": self.loser_id,
            "result": self.result.to_dict() if self.result else None,
            "scheduled_date": self.scheduled_date,
            "winner_destination": self.winner_destination.to_dict(),
            "loser_destination": self.loser_destination.to_dict(),
            "is_bye": self.is_bye,
        }


@dataclass
class BracketRound:
    round_number: int
    bracket_type: str
    name: str
    matches: List[BracketMatch] = field(default_factory=list)

    def is_complete(self) -> bool:
        return all(m.status == MatchStatus.COMPLETED for m in self.matches)

    def to_dict(self) -> dict:
        return {
            "round_number": self.round_number,
            "bracket_type": self.bracket_type,
            "name": self.name,
            "matches": [m.to_dict() for m in self.matches],
        }


@dataclass
class BracketStructure:
    format: BracketFormat
    team_ids: List[str] = field(default_factory=list)
    upper: List[BracketRound] = field(default_factory=list)
    middle: List[BracketRound] = field(default_factory=list)
    lower: List[BracketRound] = field(default_factory=list)
    grandfinal: Optional[BracketMatch] = None

    def rounds(self) -> List[BracketRound]:
        return self.upper + self.middle + self.lower

    def all_matches(self) -> Iterator[BracketMatch]:
        for rnd in self.rounds():
            for match in rnd.matches:
                yield match
        if self.grandfinal is not None:
            yield self.grandfinal

    def find_match(self, match_id: str) -> Optional[BracketMatch]:
        for match in self.all_matches():
            if match.match_id == match_id:
                return match
        return None

    def to_dict(self) -> dict:
        return {
            "format": self.format.value,
            "team_ids": list(self.team_ids),
            "upper": [r.to_dict() for r in self.upper],
            "middle": [r.to_dict() for r in self.middle],
            "lower": [r.to_dict() for r in self.lower],
            "grandfinal": self.grandfinal.to_dict() if self.grandfinal else None,
        }


def summarize_matches(matches: List[BracketMatch]) -> Dict[str, int]:
    """Count matches by status."""
    counts: Dict[str, int] = {s.value: 0 for s in MatchStatus}
    for m in matches:
        counts[m.status.value] += 1
    return counts
