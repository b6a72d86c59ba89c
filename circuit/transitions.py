"""
Qualification & Transition Engine
=================================

Turns one finished phase into the next phase's tournament, driven by the
static table in ``circuit/data/transitions.json``:

  regional_to_playoff       top N of a region's stage league -> double-elim
                            regional playoff, seeded by league standings
  playoff_to_international  one qualification record per region -> Swiss
                            stage plus directly seeded playoff entrants
  international_to_league   phase pointer only; stage leagues are built at
                            season start

``execute_transition`` is idempotent on the resolved tournament name: calling
it again returns the tournament it already created and only re-synchronizes
the calendar phase.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from circuit.competition import BracketFormat, CompetitionType, SeasonPhase, TournamentStatus
from circuit.config import INTERNATIONAL, PLAYOFF_SIZE, WINDOW_BY_PHASE
from circuit.state import SeasonState
from circuit.tournament import (
    QualificationRecord,
    QualifiedTeam,
    Tournament,
    TournamentManager,
)

_log = logging.getLogger("circuit.transitions")

DATA_DIR = Path(__file__).parent / "data"
_TRANSITIONS_PATH = DATA_DIR / "transitions.json"

REGIONAL_TO_PLAYOFF = "regional_to_playoff"
PLAYOFF_TO_INTERNATIONAL = "playoff_to_international"
INTERNATIONAL_TO_LEAGUE = "international_to_league"

# Finishing position in a stage playoff record -> config bucket
PLAYOFF_BUCKETS = ["winners", "runners_up", "third_place", "fourth_place"]


# ═══════════════════════════════════════════════════════════════
# CONFIGURATION (loaded once from transitions.json)
# ═══════════════════════════════════════════════════════════════

_config_cache: Optional[Dict[str, "TransitionConfig"]] = None


@dataclass(frozen=True)
class TransitionConfig:
    id: str
    name: str
    type: str
    from_phase: SeasonPhase
    to_phase: SeasonPhase
    qualification_source: str
    tournament_name_template: str = ""
    competition_type: Optional[CompetitionType] = None
    format: Optional[BracketFormat] = None
    region: str = ""
    prize_pool: int = 0
    teams_per_region: int = 0
    teams_from_kickoff: Dict[str, int] = field(default_factory=dict)
    teams_from_playoffs: Dict[str, int] = field(default_factory=dict)
    swiss_stage_teams: int = 0
    direct_playoff_teams: int = 0
    days_until_start: int = 0
    duration_days: int = 0

    @property
    def is_regional(self) -> bool:
        return self.type == REGIONAL_TO_PLAYOFF

    def resolve_name(self, season_year: int, region: Optional[str] = None) -> str:
        name = self.tournament_name_template.replace("{YEAR}", str(season_year))
        return name.replace("{REGION}", region or "")

    def resolve_region(self, region: Optional[str] = None) -> str:
        return region if self.region == "{REGION}" else (self.region or region or "")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "from_phase": self.from_phase.value,
            "to_phase": self.to_phase.value,
            "qualification_source": self.qualification_source,
            "tournament_name_template": self.tournament_name_template,
            "competition_type": self.competition_type.value if self.competition_type else None,
            "format": self.format.value if self.format else None,
            "region": self.region,
            "prize_pool": self.prize_pool,
            "teams_per_region": self.teams_per_region,
            "teams_from_kickoff": dict(self.teams_from_kickoff),
            "teams_from_playoffs": dict(self.teams_from_playoffs),
            "swiss_stage_teams": self.swiss_stage_teams,
            "direct_playoff_teams": self.direct_playoff_teams,
            "days_until_start": self.days_until_start,
            "duration_days": self.duration_days,
        }

    @classmethod
    def from_dict(cls, config_id: str, data: dict) -> "TransitionConfig":
        ctype = data.get("competition_type")
        fmt = data.get("format")
        return cls(
            id=config_id,
            name=data.get("name", config_id),
            type=data["type"],
            from_phase=SeasonPhase(data["from_phase"]),
            to_phase=SeasonPhase(data["to_phase"]),
            qualification_source=data.get("qualification_source", data["from_phase"]),
            tournament_name_template=data.get("tournament_name_template", ""),
            competition_type=CompetitionType(ctype) if ctype else None,
            format=BracketFormat(fmt) if fmt else None,
            region=data.get("region", ""),
            prize_pool=int(data.get("prize_pool", 0)),
            teams_per_region=int(data.get("teams_per_region", 0)),
            teams_from_kickoff=dict(data.get("teams_from_kickoff", {})),
            teams_from_playoffs=dict(data.get("teams_from_playoffs", {})),
            swiss_stage_teams=int(data.get("swiss_stage_teams", 0)),
            direct_playoff_teams=int(data.get("direct_playoff_teams", 0)),
            days_until_start=int(data.get("days_until_start", 0)),
            duration_days=int(data.get("duration_days", 0)),
        )


def _load_config() -> Dict[str, TransitionConfig]:
    global _config_cache
    if _config_cache is None:
        with open(_TRANSITIONS_PATH) as f:
            raw = json.load(f)
        _config_cache = {cid: TransitionConfig.from_dict(cid, data) for cid, data in raw.items()}
    return _config_cache


def list_transitions() -> List[TransitionConfig]:
    return list(_load_config().values())


def get_transition_config(config_id: str) -> Optional[TransitionConfig]:
    return _load_config().get(config_id)


def get_transition_for_phase(phase: SeasonPhase) -> Optional[TransitionConfig]:
    """The transition that leaves ``phase``, if any."""
    for config in _load_config().values():
        if config.from_phase == phase:
            return config
    return None


def get_regional_playoff_transitions() -> List[TransitionConfig]:
    return [c for c in _load_config().values() if c.type == REGIONAL_TO_PLAYOFF]


def get_international_transitions() -> List[TransitionConfig]:
    return [c for c in _load_config().values() if c.type == PLAYOFF_TO_INTERNATIONAL]


# ═══════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════

@dataclass
class TransitionResult:
    success: bool
    config_id: str
    region: Optional[str] = None
    tournament_id: Optional[str] = None
    tournament_name: Optional[str] = None
    new_phase: Optional[SeasonPhase] = None
    qualified_teams: List[QualifiedTeam] = field(default_factory=list)
    created: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "config_id": self.config_id,
            "region": self.region,
            "tournament_id": self.tournament_id,
            "tournament_name": self.tournament_name,
            "new_phase": self.new_phase.value if self.new_phase else None,
            "qualified_teams": [q.to_dict() for q in self.qualified_teams],
            "created": self.created,
            "error": self.error,
        }


# ═══════════════════════════════════════════════════════════════
# ENGINE
# ═══════════════════════════════════════════════════════════════

class TransitionEngine:

    def __init__(
        self,
        state: SeasonState,
        tournaments: TournamentManager,
        strict_qualification: bool = False,
        scheduler_hook: Optional[Callable[[Tournament], None]] = None,
    ):
        self.state = state
        self.tournaments = tournaments
        self.strict_qualification = strict_qualification
        self.scheduler_hook = scheduler_hook

    def _fail(self, config_id: str, error: str, region: Optional[str] = None) -> TransitionResult:
        _log.warning(f"Transition {config_id} failed: {error}")
        return TransitionResult(success=False, config_id=config_id, region=region, error=error)

    def _set_phase(self, phase: SeasonPhase) -> None:
        if self.state.calendar.current_phase != phase:
            _log.info(f"Phase {self.state.calendar.current_phase.value} -> {phase.value}")
            self.state.calendar.current_phase = phase

    def _dates(self, config: TransitionConfig) -> Tuple[date, date]:
        calendar = self.state.calendar
        start = calendar.current_date + timedelta(days=config.days_until_start)
        window = WINDOW_BY_PHASE.get(config.to_phase)
        if calendar.season_start is not None and window is not None:
            start = max(start, calendar.season_start + timedelta(days=window.start_offset))
        return start, start + timedelta(days=config.duration_days)

    def _qualified_from(self, tournament: Tournament) -> List[QualifiedTeam]:
        return [
            QualifiedTeam(
                team_id=tid,
                team_name=self.state.team_name(tid),
                region=self.state.team_region(tid),
                seed=i + 1,
            )
            for i, tid in enumerate(tournament.team_ids)
        ]

    def execute_transition(self, config_id: str, region: Optional[str] = None) -> TransitionResult:
        config = get_transition_config(config_id)
        if config is None:
            return self._fail(config_id, f"Unknown transition config '{config_id}'", region)

        if config.type == INTERNATIONAL_TO_LEAGUE:
            self._set_phase(config.to_phase)
            self.state.bump()
            return TransitionResult(
                success=True, config_id=config_id, new_phase=config.to_phase,
            )

        if config.is_regional and not region:
            return self._fail(config_id, "Regional transitions need a region")

        name = config.resolve_name(self.state.season_year, region)
        existing = self.state.find_tournament_by_name(name)
        if existing is not None:
            self._set_phase(config.to_phase)
            _log.debug(f"Transition {config_id}: {name} already exists")
            return TransitionResult(
                success=True,
                config_id=config_id,
                region=region,
                tournament_id=existing.id,
                tournament_name=existing.name,
                new_phase=config.to_phase,
                qualified_teams=self._qualified_from(existing),
            )

        if config.type == REGIONAL_TO_PLAYOFF:
            result = self._regional_to_playoff(config, name, region)
        elif config.type == PLAYOFF_TO_INTERNATIONAL:
            result = self._playoff_to_international(config, name)
        else:
            return self._fail(config_id, f"Unknown transition type '{config.type}'", region)

        if not result.success:
            return result

        self._set_phase(config.to_phase)
        tournament = self.state.tournaments[result.tournament_id]
        if self.scheduler_hook is not None:
            self.scheduler_hook(tournament)
        self.state.bump()
        _log.info(
            f"Transition {config_id}"
            + (f" ({region})" if region else "")
            + f": created {tournament.name} with {len(tournament.team_ids)} teams"
        )
        return result

    # ── regional ────────────────────────────────────────────────

    def _regional_to_playoff(self, config: TransitionConfig, name: str, region: str) -> TransitionResult:
        league = None
        for t in self.state.tournaments_for_phase(config.qualification_source, region):
            if t.competition_type == CompetitionType.STAGE_LEAGUE:
                league = t
                break
        if league is None:
            return self._fail(config.id, f"No {config.qualification_source} league for {region}", region)
        if league.status != TournamentStatus.COMPLETED:
            return self._fail(config.id, f"{league.name} has not finished", region)

        standings = self.tournaments.calculate_standings(league.id)
        needed = config.teams_per_region
        if len(standings) < needed:
            return self._fail(
                config.id, f"{league.name} has {len(standings)} teams, playoff needs {needed}", region,
            )
        top = [e.team_id for e in standings[:needed]]

        start, end = self._dates(config)
        created = self.tournaments.create_tournament(
            name=name,
            competition_type=config.competition_type or CompetitionType.STAGE_PLAYOFF,
            fmt=config.format or BracketFormat.DOUBLE_ELIM,
            team_ids=top,
            region=config.resolve_region(region),
            start_date=start,
            end_date=end,
            prize_total=config.prize_pool,
            phase=config.to_phase.value,
        )
        if not created.success:
            return self._fail(config.id, created.error or "tournament creation failed", region)

        tournament = created.tournament
        return TransitionResult(
            success=True,
            config_id=config.id,
            region=region,
            tournament_id=tournament.id,
            tournament_name=tournament.name,
            new_phase=config.to_phase,
            qualified_teams=self._qualified_from(tournament),
            created=True,
        )

    # ── international ───────────────────────────────────────────

    def _partition(
        self, config: TransitionConfig, record: QualificationRecord,
    ) -> Tuple[List[QualifiedTeam], List[List[QualifiedTeam]]]:
        """Split one region's qualifiers into direct entrants and Swiss buckets."""
        if config.teams_from_kickoff:
            labels = list(config.teams_from_kickoff)
            direct = record.by_label(labels[0])[:config.teams_from_kickoff[labels[0]]]
            buckets = [record.by_label(label)[:config.teams_from_kickoff[label]] for label in labels[1:]]
            return direct, buckets

        by_seed = sorted(record.qualified_teams, key=lambda q: q.seed)
        groups: Dict[str, List[QualifiedTeam]] = {}
        offset = 0
        for bucket in PLAYOFF_BUCKETS:
            count = config.teams_from_playoffs.get(bucket, 0)
            groups[bucket] = by_seed[offset:offset + count]
            offset += count
        direct = groups[PLAYOFF_BUCKETS[0]]
        return direct, [groups[b] for b in PLAYOFF_BUCKETS[1:]]

    def _playoff_to_international(self, config: TransitionConfig, name: str) -> TransitionResult:
        records = self.state.records_for_phase(config.qualification_source)
        if not records:
            return self._fail(config.id, f"No qualification records for {config.qualification_source}")

        regions = self.state.regions()
        by_region: Dict[str, QualificationRecord] = {}
        for record in records:
            if record.region in by_region:
                _log.error(f"Duplicate {config.qualification_source} record for {record.region}")
                continue
            by_region[record.region] = record

        problems = []
        missing = [r for r in regions if r not in by_region]
        if missing:
            problems.append(f"missing records for {', '.join(missing)}")
        elif len(by_region) != len(regions):
            problems.append(f"expected {len(regions)} regional records, found {len(by_region)}")

        ordered = [by_region[r] for r in regions if r in by_region]
        ordered += [rec for reg, rec in by_region.items() if reg not in regions]

        direct: List[QualifiedTeam] = []
        buckets: List[List[QualifiedTeam]] = []
        per_region = sum(config.teams_from_kickoff.values()) or sum(config.teams_from_playoffs.values())
        for record in ordered:
            if len(record.qualified_teams) < per_region:
                problems.append(
                    f"{record.region} record has {len(record.qualified_teams)} teams, expected {per_region}"
                )
            region_direct, region_buckets = self._partition(config, record)
            direct.extend(region_direct)
            while len(buckets) < len(region_buckets):
                buckets.append([])
            for i, group in enumerate(region_buckets):
                buckets[i].extend(group)
        swiss = [q for bucket in buckets for q in bucket]

        if len(direct) != config.direct_playoff_teams:
            problems.append(f"{len(direct)} direct entrants, expected {config.direct_playoff_teams}")
        if len(swiss) != config.swiss_stage_teams:
            problems.append(f"{len(swiss)} Swiss teams, expected {config.swiss_stage_teams}")

        for problem in problems:
            _log.error(f"Transition {config.id}: {problem}")
        if problems and self.strict_qualification:
            return self._fail(config.id, "; ".join(problems))

        team_regions = {q.team_id: q.region for q in direct + swiss}
        start, end = self._dates(config)
        created = self.tournaments.create_swiss_to_playoff(
            name=name,
            competition_type=config.competition_type or CompetitionType.MASTERS,
            swiss_team_ids=[q.team_id for q in swiss],
            direct_team_ids=[q.team_id for q in direct],
            team_regions=team_regions,
            start_date=start,
            end_date=end,
            prize_total=config.prize_pool,
            playoff_size=PLAYOFF_SIZE,
            region=config.resolve_region() or INTERNATIONAL,
            phase=config.to_phase.value,
        )
        if not created.success:
            return self._fail(config.id, created.error or "tournament creation failed")

        tournament = created.tournament
        qualified = [
            QualifiedTeam(team_id=q.team_id, team_name=q.team_name, region=q.region, seed=i + 1, label=q.label)
            for i, q in enumerate(direct + swiss)
        ]
        return TransitionResult(
            success=True,
            config_id=config.id,
            tournament_id=tournament.id,
            tournament_name=tournament.name,
            new_phase=config.to_phase,
            qualified_teams=qualified,
            created=True,
        )
