"""
Circuit: Season & Tournament Progression Engine
"""

from .competition import (
    CircuitError,
    BracketValidationError,
    StateMachineError,
    CalendarBlockedError,
    BracketFormat,
    CompetitionType,
    MatchStatus,
    TournamentStatus,
    SeasonPhase,
    BracketLabel,
    MapResult,
    MatchResult,
    BracketMatch,
    BracketRound,
    BracketStructure,
)
from .bracket import (
    create_bracket, complete_match, get_ready_matches, get_next_match,
    get_champion, get_qualifiers, get_final_placements, get_bracket_status,
    is_bracket_complete,
)
from .swiss import (
    SwissStage, SwissRecord, initialize_swiss_stage, complete_swiss_match,
    get_swiss_standings, is_swiss_complete, get_swiss_qualifiers,
)
from .standings import StandingsEntry, standings_from_matches
from .config import SeasonConfig, REGIONS, INTERNATIONAL
from .teams import Team, generate_all_teams, generate_region_teams
from .simulator import MatchContext, MatchSimulator, RatingMatchSimulator
from .season_calendar import (
    EventType, CalendarEvent, GameCalendar, build_season_events, get_season_phase,
)
from .state import SeasonState
from .tournament import (
    Tournament, MultiStageTournament, TournamentManager, TournamentResult,
    QualificationRecord, QualifiedTeam, PrizePool, calculate_prize_pool,
)
from .transitions import (
    TransitionConfig, TransitionEngine, TransitionResult,
    get_transition_config, get_transition_for_phase,
    get_regional_playoff_transitions, get_international_transitions,
)
from .scheduler import AdvanceUnit, AdvanceResult, CalendarScheduler
from .season import Season, create_season

__all__ = [
    "CircuitError",
    "BracketValidationError",
    "StateMachineError",
    "CalendarBlockedError",
    "BracketFormat",
    "CompetitionType",
    "MatchStatus",
    "TournamentStatus",
    "SeasonPhase",
    "BracketLabel",
    "MapResult",
    "MatchResult",
    "BracketMatch",
    "BracketRound",
    "BracketStructure",
    "create_bracket",
    "complete_match",
    "get_ready_matches",
    "get_next_match",
    "get_champion",
    "get_qualifiers",
    "get_final_placements",
    "get_bracket_status",
    "is_bracket_complete",
    "SwissStage",
    "SwissRecord",
    "initialize_swiss_stage",
    "complete_swiss_match",
    "get_swiss_standings",
    "is_swiss_complete",
    "get_swiss_qualifiers",
    "StandingsEntry",
    "standings_from_matches",
    "SeasonConfig",
    "REGIONS",
    "INTERNATIONAL",
    "Team",
    "generate_all_teams",
    "generate_region_teams",
    "MatchContext",
    "MatchSimulator",
    "RatingMatchSimulator",
    "EventType",
    "CalendarEvent",
    "GameCalendar",
    "build_season_events",
    "get_season_phase",
    "SeasonState",
    "Tournament",
    "MultiStageTournament",
    "TournamentManager",
    "TournamentResult",
    "QualificationRecord",
    "QualifiedTeam",
    "PrizePool",
    "calculate_prize_pool",
    "TransitionConfig",
    "TransitionEngine",
    "TransitionResult",
    "get_transition_config",
    "get_transition_for_phase",
    "get_regional_playoff_transitions",
    "get_international_transitions",
    "AdvanceUnit",
    "AdvanceResult",
    "CalendarScheduler",
    "Season",
    "create_season",
]
