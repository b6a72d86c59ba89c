"""
Circuit Configuration
=====================

Static tables for the competitive season: regions, prize payouts per
competition type, format durations, the phase windows of a season, weekly
match days per region, and the season-level config dataclass.

Everything here is read-only.  The transition table lives in
``circuit/data/transitions.json`` and is loaded by ``circuit.transitions``.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Tuple

from circuit.competition import BracketFormat, CompetitionType, SeasonPhase


REGIONS: List[str] = ["Americas", "EMEA", "Pacific", "China"]
INTERNATIONAL = "International"

TEAMS_PER_REGION = 12
KICKOFF_TEAMS = 12
KICKOFF_FIXED_SEEDS = 4

DEFAULT_SEASON_YEAR = 2026
DEFAULT_SEASON_START = date(2026, 1, 1)

MAX_SIMULATION_STEPS = 1000
MAX_ADVANCE_DAYS = 366


# ═══════════════════════════════════════════════════════════════
# PRIZE MONEY
# ═══════════════════════════════════════════════════════════════

# Share of the pool paid per finishing place.  Places not listed pay nothing.
_STAGE_SHARES = {1: 0.35, 2: 0.20, 3: 0.15, 4: 0.10, 5: 0.05, 6: 0.05, 7: 0.05, 8: 0.05}

PRIZE_DISTRIBUTIONS: Dict[CompetitionType, Dict[int, float]] = {
    CompetitionType.KICKOFF: {
        1: 0.40, 2: 0.20, 3: 0.12, 4: 0.08,
        5: 0.05, 6: 0.05, 7: 0.05, 8: 0.05,
    },
    CompetitionType.STAGE_LEAGUE: {},
    CompetitionType.STAGE_PLAYOFF: dict(_STAGE_SHARES),
    CompetitionType.MASTERS: dict(_STAGE_SHARES),
    CompetitionType.CHAMPIONS: {
        1: 0.30, 2: 0.18, 3: 0.12, 4: 0.08,
        5: 0.06, 6: 0.06, 7: 0.05, 8: 0.05,
        9: 0.025, 10: 0.025, 11: 0.025, 12: 0.025,
    },
}

DEFAULT_PRIZE_POOLS: Dict[CompetitionType, int] = {
    CompetitionType.KICKOFF: 500_000,
    CompetitionType.STAGE_LEAGUE: 0,
    CompetitionType.STAGE_PLAYOFF: 200_000,
    CompetitionType.MASTERS: 1_000_000,
    CompetitionType.CHAMPIONS: 2_250_000,
}


# ═══════════════════════════════════════════════════════════════
# FORMATS
# ═══════════════════════════════════════════════════════════════

FORMAT_DURATION_DAYS: Dict[BracketFormat, int] = {
    BracketFormat.SINGLE_ELIM: 3,
    BracketFormat.DOUBLE_ELIM: 7,
    BracketFormat.TRIPLE_ELIM: 14,
    BracketFormat.ROUND_ROBIN: 35,
    BracketFormat.SWISS_TO_PLAYOFF: 18,
}

# Series length by match role
BEST_OF_DEFAULT = 3
BEST_OF_FINAL = 5

SWISS_TOTAL_ROUNDS = 3
SWISS_WINS_TO_QUALIFY = 2
SWISS_LOSSES_TO_ELIMINATE = 2
PLAYOFF_SIZE = 8


# ═══════════════════════════════════════════════════════════════
# SEASON CALENDAR
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PhaseWindow:
    phase: SeasonPhase
    start_offset: int       # days from season start
    duration_days: int
    label: str


PHASE_WINDOWS: List[PhaseWindow] = [
    PhaseWindow(SeasonPhase.KICKOFF, 0, 28, "Kickoff"),
    PhaseWindow(SeasonPhase.MASTERS1, 35, 18, "Masters Santiago"),
    PhaseWindow(SeasonPhase.STAGE1, 56, 35, "Stage 1"),
    PhaseWindow(SeasonPhase.STAGE1_PLAYOFFS, 98, 14, "Stage 1 Playoffs"),
    PhaseWindow(SeasonPhase.MASTERS2, 119, 18, "Masters London"),
    PhaseWindow(SeasonPhase.STAGE2, 140, 35, "Stage 2"),
    PhaseWindow(SeasonPhase.STAGE2_PLAYOFFS, 182, 14, "Stage 2 Playoffs"),
    PhaseWindow(SeasonPhase.CHAMPIONS, 217, 21, "Champions Shanghai"),
    PhaseWindow(SeasonPhase.OFFSEASON, 245, 120, "Offseason"),
]

WINDOW_BY_PHASE: Dict[SeasonPhase, PhaseWindow] = {w.phase: w for w in PHASE_WINDOWS}

# Python weekday numbers (Monday = 0)
MATCH_DAYS: Dict[str, Tuple[int, ...]] = {
    "Americas": (3, 4, 5, 6),      # Thu-Sun
    "Pacific": (3, 4, 5, 6),
    "China": (3, 4, 5, 6),
    "EMEA": (1, 2, 3, 4),          # Tue-Fri
    INTERNATIONAL: (3, 4, 5, 6, 0, 1),  # Thu-Tue
}

SALARY_DAY_OF_MONTH = 1
TRAINING_WEEKDAY = 0
SCRIM_WEEKDAY = 2
REST_WEEKDAY = 6

# Phase progression: which transition fires when a phase's competition is
# done, and whether it runs once per region.
PHASE_PROGRESSION: Dict[SeasonPhase, Tuple[str, bool]] = {
    SeasonPhase.KICKOFF: ("kickoff_to_masters1", False),
    SeasonPhase.MASTERS1: ("masters1_to_stage1", False),
    SeasonPhase.STAGE1: ("stage1_to_stage1_playoffs", True),
    SeasonPhase.STAGE1_PLAYOFFS: ("stage1_playoffs_to_masters2", False),
    SeasonPhase.MASTERS2: ("masters2_to_stage2", False),
    SeasonPhase.STAGE2: ("stage2_to_stage2_playoffs", True),
    SeasonPhase.STAGE2_PLAYOFFS: ("stage2_playoffs_to_champions", False),
}

# Phases played as one tournament per region
REGIONAL_PHASES = {
    SeasonPhase.KICKOFF,
    SeasonPhase.STAGE1,
    SeasonPhase.STAGE1_PLAYOFFS,
    SeasonPhase.STAGE2,
    SeasonPhase.STAGE2_PLAYOFFS,
}


@dataclass
class SeasonConfig:
    season_year: int = DEFAULT_SEASON_YEAR
    start_date: date = DEFAULT_SEASON_START
    regions: List[str] = field(default_factory=lambda: list(REGIONS))
    teams_per_region: int = TEAMS_PER_REGION
    strict_qualification: bool = False
    kickoff_prize_pool: int = DEFAULT_PRIZE_POOLS[CompetitionType.KICKOFF]


def match_days_for(region: str) -> Tuple[int, ...]:
    return MATCH_DAYS.get(region, MATCH_DAYS["Americas"])
