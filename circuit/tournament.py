"""
Tournament Lifecycle Manager
============================

Owns every tournament in a ``SeasonState`` from creation to prize payout.

State machine per tournament::

    upcoming --start_tournament--> in_progress --last match--> completed

A tournament completes only when a match result leaves its bracket fully
resolved.  At that point the champion and final placements are recorded,
prize money is paid out by the competition type's payout table, and kickoffs
and stage playoffs emit a frozen ``QualificationRecord`` for the transition
engine.

Validation problems come back as ``TournamentResult(success=False)``.
Advancing or starting a completed tournament is a caller bug and raises
``StateMachineError``.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from circuit.bracket import (
    DOUBLE_ELIM_SIZES,
    complete_match,
    create_bracket,
    get_bracket_status,
    get_champion,
    get_final_placements as bracket_placements,
    get_qualifiers,
    get_ready_matches,
    is_bracket_complete,
)
from circuit.competition import (
    BracketFormat,
    BracketMatch,
    BracketStructure,
    BracketValidationError,
    CompetitionType,
    DestinationKind,
    MatchResult,
    MatchStatus,
    StateMachineError,
    TournamentStatus,
)
from circuit.config import (
    BEST_OF_DEFAULT,
    BEST_OF_FINAL,
    DEFAULT_PRIZE_POOLS,
    FORMAT_DURATION_DAYS,
    KICKOFF_FIXED_SEEDS,
    KICKOFF_TEAMS,
    MAX_SIMULATION_STEPS,
    PLAYOFF_SIZE,
    PRIZE_DISTRIBUTIONS,
)
from circuit.simulator import MatchContext, MatchSimulator, RatingMatchSimulator
from circuit.standings import (
    StandingsEntry,
    apply_result,
    completed_results,
    rank_standings,
    standings_from_matches,
)
from circuit.state import SeasonState
from circuit.swiss import (
    SwissStage,
    complete_swiss_match,
    get_ready_swiss_matches,
    get_swiss_qualifiers,
    get_swiss_standings,
    initialize_swiss_stage,
    is_swiss_complete,
)
from circuit.teams import Team

_log = logging.getLogger("circuit.tournament")

STAGE_SWISS = "swiss"
STAGE_PLAYOFF = "playoff"

STAGE_PLAYOFF_QUALIFIERS = 4


# ═══════════════════════════════════════════════════════════════
# PRIZE POOLS
# ═══════════════════════════════════════════════════════════════

@dataclass
class PrizePool:
    total: int
    distribution: Dict[int, float] = field(default_factory=dict)

    def payouts(self) -> Dict[int, int]:
        """Whole-currency payout per place.  Rounding dust goes to first place."""
        paid = {place: int(self.total * share) for place, share in self.distribution.items()}
        if paid and abs(sum(self.distribution.values()) - 1.0) < 1e-9:
            paid[min(paid)] += self.total - sum(paid.values())
        return paid

    def payout_for_place(self, place: int) -> int:
        return self.payouts().get(place, 0)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "distribution": {str(p): s for p, s in sorted(self.distribution.items())},
        }


def calculate_prize_pool(competition_type: CompetitionType, total: Optional[int] = None) -> PrizePool:
    if total is None:
        total = DEFAULT_PRIZE_POOLS.get(competition_type, 0)
    return PrizePool(total=total, distribution=dict(PRIZE_DISTRIBUTIONS.get(competition_type, {})))


def split_prizes(pool: PrizePool, placements: Dict[str, int]) -> Dict[str, int]:
    """Team id -> prize.  Teams sharing a place split the places they span."""
    payouts = pool.payouts()
    by_place: Dict[int, List[str]] = {}
    for team_id, place in placements.items():
        by_place.setdefault(place, []).append(team_id)

    awarded: Dict[str, int] = {}
    for place in sorted(by_place):
        group = by_place[place]
        combined = sum(payouts.get(p, 0) for p in range(place, place + len(group)))
        share, extra = divmod(combined, len(group))
        for i, team_id in enumerate(group):
            amount = share + (1 if i < extra else 0)
            if amount:
                awarded[team_id] = amount
    return awarded


# ═══════════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════════

@dataclass
class Tournament:
    id: str
    name: str
    competition_type: CompetitionType
    format: BracketFormat
    region: str
    team_ids: List[str] = field(default_factory=list)
    phase: str = ""
    bracket: Optional[BracketStructure] = None
    standings: List[StandingsEntry] = field(default_factory=list)
    status: TournamentStatus = TournamentStatus.UPCOMING
    champion_id: Optional[str] = None
    prize_pool: PrizePool = field(default_factory=lambda: PrizePool(total=0))
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    placements: Dict[str, int] = field(default_factory=dict)
    prizes_awarded: Dict[str, int] = field(default_factory=dict)

    @property
    def is_league(self) -> bool:
        return self.format == BracketFormat.ROUND_ROBIN

    def all_matches(self) -> List[BracketMatch]:
        return list(self.bracket.all_matches()) if self.bracket else []

    def find_match(self, match_id: str) -> Optional[BracketMatch]:
        for match in self.all_matches():
            if match.match_id == match_id:
                return match
        return None

    def ready_matches(self) -> List[BracketMatch]:
        return get_ready_matches(self.bracket) if self.bracket else []

    def bracket_status(self) -> str:
        return get_bracket_status(self.bracket) if self.bracket else "not_started"

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "competition_type": self.competition_type.value,
            "format": self.format.value,
            "region": self.region,
            "phase": self.phase,
            "status": self.status.value,
            "champion_id": self.champion_id,
            "team_count": len(self.team_ids),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }

    def to_dict(self) -> dict:
        d = self.summary()
        d.update({
            "team_ids": list(self.team_ids),
            "bracket": self.bracket.to_dict() if self.bracket else None,
            "standings": [e.to_dict() for e in self.standings],
            "prize_pool": self.prize_pool.to_dict(),
            "placements": dict(self.placements),
            "prizes_awarded": dict(self.prizes_awarded),
        })
        return d


@dataclass
class MultiStageTournament(Tournament):
    """Swiss stage feeding a seeded playoff bracket."""
    swiss_stage: Optional[SwissStage] = None
    current_stage: str = STAGE_SWISS
    swiss_team_ids: List[str] = field(default_factory=list)
    playoff_only_team_ids: List[str] = field(default_factory=list)
    playoff_seeding: List[str] = field(default_factory=list)
    team_regions: Dict[str, str] = field(default_factory=dict)
    playoff_size: int = PLAYOFF_SIZE

    def all_matches(self) -> List[BracketMatch]:
        swiss = self.swiss_stage.all_matches() if self.swiss_stage else []
        return swiss + super().all_matches()

    def ready_matches(self) -> List[BracketMatch]:
        if self.current_stage == STAGE_SWISS:
            return get_ready_swiss_matches(self.swiss_stage) if self.swiss_stage else []
        return super().ready_matches()

    def bracket_status(self) -> str:
        if self.current_stage == STAGE_SWISS:
            played = any(m.status == MatchStatus.COMPLETED for m in self.all_matches())
            return "in_progress" if played else "not_started"
        return super().bracket_status()

    def to_dict(self) -> dict:
        d = super().to_dict()
        d.update({
            "current_stage": self.current_stage,
            "swiss_stage": self.swiss_stage.to_dict() if self.swiss_stage else None,
            "swiss_team_ids": list(self.swiss_team_ids),
            "playoff_only_team_ids": list(self.playoff_only_team_ids),
            "playoff_seeding": list(self.playoff_seeding),
            "playoff_size": self.playoff_size,
        })
        return d


@dataclass(frozen=True)
class QualifiedTeam:
    team_id: str
    team_name: str
    region: str
    seed: int
    label: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "region": self.region,
            "seed": self.seed,
            "label": self.label,
        }


@dataclass(frozen=True)
class QualificationRecord:
    tournament_id: str
    competition_type: CompetitionType
    region: str
    phase: str
    qualified_teams: Tuple[QualifiedTeam, ...] = ()

    def by_label(self, label: str) -> List[QualifiedTeam]:
        return [q for q in self.qualified_teams if q.label == label]

    def to_dict(self) -> dict:
        return {
            "tournament_id": self.tournament_id,
            "competition_type": self.competition_type.value,
            "region": self.region,
            "phase": self.phase,
            "qualified_teams": [q.to_dict() for q in self.qualified_teams],
        }


@dataclass
class TournamentResult:
    success: bool
    tournament: Optional[Tournament] = None
    error: Optional[str] = None
    match_result: Optional[MatchResult] = None
    newly_ready: List[str] = field(default_factory=list)
    completed: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "tournament_id": self.tournament.id if self.tournament else None,
            "error": self.error,
            "match_result": self.match_result.to_dict() if self.match_result else None,
            "newly_ready": list(self.newly_ready),
            "completed": self.completed,
        }


def _fail(error: str, tournament: Optional[Tournament] = None) -> TournamentResult:
    _log.warning(error)
    return TournamentResult(success=False, tournament=tournament, error=error)


def _slug(text: str) -> str:
    out = "".join(ch if ch.isalnum() else "-" for ch in text.lower())
    while "--" in out:
        out = out.replace("--", "-")
    return out.strip("-")


# ═══════════════════════════════════════════════════════════════
# MANAGER
# ═══════════════════════════════════════════════════════════════

class TournamentManager:
    """Creates, advances and settles tournaments stored in a ``SeasonState``."""

    def __init__(
        self,
        state: SeasonState,
        simulator: Optional[MatchSimulator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.state = state
        self.rng = rng if rng is not None else random.Random()
        self.simulator = simulator if simulator is not None else RatingMatchSimulator(rng=self.rng)

    def get_tournament(self, tournament_id: str) -> Optional[Tournament]:
        return self.state.tournaments.get(tournament_id)

    def _new_id(self, name: str) -> str:
        base = _slug(name) or "tournament"
        tid, n = base, 1
        while tid in self.state.tournaments:
            n += 1
            tid = f"{base}-{n}"
        return tid

    def _default_end(self, fmt: BracketFormat, start_date: Optional[date]) -> Optional[date]:
        if start_date is None:
            return None
        return start_date + timedelta(days=FORMAT_DURATION_DAYS.get(fmt, 7))

    # ── creation ────────────────────────────────────────────────

    def create_tournament(
        self,
        name: str,
        competition_type: CompetitionType,
        fmt: BracketFormat,
        team_ids: Sequence[str],
        region: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        seeding: Optional[Sequence[int]] = None,
        prize_total: Optional[int] = None,
        phase: str = "",
    ) -> TournamentResult:
        fmt = BracketFormat(fmt)
        competition_type = CompetitionType(competition_type)
        if fmt == BracketFormat.SWISS_TO_PLAYOFF:
            return _fail(f"{name}: Swiss-to-playoff events are created with create_swiss_to_playoff")

        tid = self._new_id(name)
        try:
            bracket = create_bracket(team_ids, fmt, seeding=seeding, match_id_prefix=f"{tid}-")
        except BracketValidationError as e:
            return _fail(f"Cannot create {name}: {e}")

        tournament = Tournament(
            id=tid,
            name=name,
            competition_type=competition_type,
            format=fmt,
            region=region,
            team_ids=list(bracket.team_ids),
            phase=phase,
            bracket=bracket,
            standings=standings_from_matches(bracket.team_ids, []),
            prize_pool=calculate_prize_pool(competition_type, prize_total),
            start_date=start_date,
            end_date=end_date or self._default_end(fmt, start_date),
        )
        self.state.tournaments[tid] = tournament
        self.state.bump()
        _log.info(f"Created {fmt.value} tournament {name} ({tid}) with {len(team_ids)} teams")
        return TournamentResult(
            success=True,
            tournament=tournament,
            newly_ready=[m.match_id for m in tournament.ready_matches()],
        )

    def create_kickoff(
        self,
        region: str,
        team_ids: Sequence[str],
        start_date: Optional[date] = None,
        prize_total: Optional[int] = None,
        name: Optional[str] = None,
    ) -> TournamentResult:
        """Triple-elimination kickoff.

        ``team_ids`` is read as a ranking: the first four keep seeds 1-4 and
        the remaining eight are drawn into seeds 5-12.
        """
        if len(team_ids) != KICKOFF_TEAMS:
            return _fail(f"{region} kickoff needs {KICKOFF_TEAMS} teams, got {len(team_ids)}")
        fixed = list(team_ids[:KICKOFF_FIXED_SEEDS])
        drawn = list(team_ids[KICKOFF_FIXED_SEEDS:])
        self.rng.shuffle(drawn)
        return self.create_tournament(
            name=name or f"VCT {region} Kickoff {self.state.season_year}",
            competition_type=CompetitionType.KICKOFF,
            fmt=BracketFormat.TRIPLE_ELIM,
            team_ids=fixed + drawn,
            region=region,
            start_date=start_date,
            prize_total=prize_total,
            phase="kickoff",
        )

    def create_league(
        self,
        region: str,
        stage: str,
        team_ids: Sequence[str],
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> TournamentResult:
        """Round-robin regional league for ``stage`` ("stage1" or "stage2")."""
        label = stage.replace("stage", "Stage ").strip()
        return self.create_tournament(
            name=f"VCT {region} {label} {self.state.season_year}",
            competition_type=CompetitionType.STAGE_LEAGUE,
            fmt=BracketFormat.ROUND_ROBIN,
            team_ids=team_ids,
            region=region,
            start_date=start_date,
            end_date=end_date,
            phase=stage,
        )

    def create_swiss_to_playoff(
        self,
        name: str,
        competition_type: CompetitionType,
        swiss_team_ids: Sequence[str],
        direct_team_ids: Sequence[str],
        team_regions: Optional[Dict[str, str]] = None,
        start_date: Optional[date] = None,
        prize_total: Optional[int] = None,
        playoff_size: int = PLAYOFF_SIZE,
        region: str = "International",
        end_date: Optional[date] = None,
        phase: str = "",
    ) -> TournamentResult:
        competition_type = CompetitionType(competition_type)
        overlap = set(swiss_team_ids) & set(direct_team_ids)
        if overlap:
            return _fail(f"Cannot create {name}: teams in both Swiss and playoff: {sorted(overlap)}")
        needed = playoff_size - len(direct_team_ids)
        if needed <= 0 or needed > len(swiss_team_ids):
            return _fail(
                f"Cannot create {name}: {len(direct_team_ids)} direct entrants and "
                f"{len(swiss_team_ids)} Swiss teams cannot fill a {playoff_size}-team playoff"
            )

        tid = self._new_id(name)
        regions = dict(team_regions or {})
        for team_id in list(swiss_team_ids) + list(direct_team_ids):
            regions.setdefault(team_id, self.state.team_region(team_id))
        try:
            stage = initialize_swiss_stage(
                list(swiss_team_ids), team_regions=regions, match_id_prefix=f"{tid}-",
            )
        except BracketValidationError as e:
            return _fail(f"Cannot create {name}: {e}")

        tournament = MultiStageTournament(
            id=tid,
            name=name,
            competition_type=competition_type,
            format=BracketFormat.SWISS_TO_PLAYOFF,
            region=region,
            team_ids=list(direct_team_ids) + list(swiss_team_ids),
            phase=phase,
            standings=standings_from_matches(list(direct_team_ids) + list(swiss_team_ids), []),
            prize_pool=calculate_prize_pool(competition_type, prize_total),
            start_date=start_date,
            end_date=end_date or self._default_end(BracketFormat.SWISS_TO_PLAYOFF, start_date),
            swiss_stage=stage,
            swiss_team_ids=list(swiss_team_ids),
            playoff_only_team_ids=list(direct_team_ids),
            playoff_seeding=list(direct_team_ids),
            team_regions=regions,
            playoff_size=playoff_size,
        )
        self.state.tournaments[tid] = tournament
        self.state.bump()
        _log.info(
            f"Created {name} ({tid}): {len(swiss_team_ids)} Swiss teams, "
            f"{len(direct_team_ids)} direct playoff entrants"
        )
        return TournamentResult(
            success=True,
            tournament=tournament,
            newly_ready=[m.match_id for m in tournament.ready_matches()],
        )

    # ── lifecycle ───────────────────────────────────────────────

    def start_tournament(self, tournament_id: str) -> TournamentResult:
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return _fail(f"Tournament {tournament_id} not found")
        if tournament.status == TournamentStatus.COMPLETED:
            raise StateMachineError(f"Tournament {tournament.name} is already completed")
        if tournament.status == TournamentStatus.IN_PROGRESS:
            return TournamentResult(success=True, tournament=tournament)

        tournament.status = TournamentStatus.IN_PROGRESS
        self.state.bump()
        _log.info(f"{tournament.name} started")
        return TournamentResult(
            success=True,
            tournament=tournament,
            newly_ready=[m.match_id for m in tournament.ready_matches()],
        )

    def advance_tournament(self, tournament_id: str, match_id: str, result: MatchResult) -> TournamentResult:
        """Apply one match result and settle the tournament if it is now resolved."""
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return _fail(f"Tournament {tournament_id} not found")
        if tournament.status == TournamentStatus.COMPLETED:
            raise StateMachineError(f"Tournament {tournament.name} is already completed")
        if tournament.status != TournamentStatus.IN_PROGRESS:
            return _fail(f"Tournament {tournament.name} has not started", tournament)

        match = tournament.find_match(match_id)
        if match is None:
            return _fail(f"Match {match_id} not found in {tournament.name}", tournament)

        oriented = result.oriented(match_id, match.team_a_id or "", match.team_b_id or "")
        ready_before = {m.match_id for m in tournament.ready_matches()}
        try:
            if isinstance(tournament, MultiStageTournament) and tournament.current_stage == STAGE_SWISS:
                tournament.swiss_stage = complete_swiss_match(
                    tournament.swiss_stage, match_id, result.winner_id, result.loser_id, oriented,
                )
            else:
                tournament.bracket = complete_match(
                    tournament.bracket, match_id, result.winner_id, result.loser_id, oriented,
                )
        except BracketValidationError as e:
            return _fail(f"{tournament.name}: {e}", tournament)

        self._update_standings(tournament, oriented)
        self._credit_teams(oriented)

        if isinstance(tournament, MultiStageTournament) and tournament.current_stage == STAGE_SWISS:
            if is_swiss_complete(tournament.swiss_stage):
                self._start_playoff(tournament)

        if self._is_resolved(tournament):
            self._finish(tournament)

        self.state.bump()
        newly_ready = [m.match_id for m in tournament.ready_matches() if m.match_id not in ready_before]
        _log.debug(f"{match_id}: {oriented.winner_id} def. {oriented.loser_id}")
        return TournamentResult(
            success=True,
            tournament=tournament,
            match_result=oriented,
            newly_ready=newly_ready,
            completed=tournament.status == TournamentStatus.COMPLETED,
        )

    def _update_standings(self, tournament: Tournament, result: MatchResult) -> None:
        table = {e.team_id: e for e in tournament.standings}
        apply_result(table, result)
        tournament.standings = rank_standings(
            table, tournament.team_ids, completed_results(tournament.all_matches()),
        )

    def _credit_teams(self, result: MatchResult) -> None:
        for team_id in (result.winner_id, result.loser_id):
            team = self.state.get_team(team_id)
            if team is None:
                continue
            team.record_series(
                won=team_id == result.winner_id,
                round_diff=result.round_diff_for(team_id),
                map_diff=result.map_diff_for(team_id),
            )

    def _start_playoff(self, tournament: MultiStageTournament) -> None:
        needed = tournament.playoff_size - len(tournament.playoff_only_team_ids)
        qualifiers = get_swiss_qualifiers(tournament.swiss_stage)
        if len(qualifiers) < needed:
            _log.error(
                f"{tournament.name}: Swiss produced {len(qualifiers)} qualifiers, "
                f"playoff needs {needed}"
            )
        seeding = list(tournament.playoff_only_team_ids) + qualifiers[:needed]
        fmt = BracketFormat.DOUBLE_ELIM if len(seeding) in DOUBLE_ELIM_SIZES else BracketFormat.SINGLE_ELIM
        try:
            bracket = create_bracket(seeding, fmt, match_id_prefix=f"{tournament.id}-playoff-")
        except BracketValidationError as e:
            _log.error(f"{tournament.name}: could not seed playoff: {e}")
            return

        tournament.playoff_seeding = seeding
        tournament.bracket = bracket
        tournament.current_stage = STAGE_PLAYOFF
        _log.info(f"{tournament.name}: Swiss complete, {len(seeding)}-team {fmt.value} playoff seeded")

    def _is_resolved(self, tournament: Tournament) -> bool:
        if isinstance(tournament, MultiStageTournament) and tournament.current_stage != STAGE_PLAYOFF:
            return False
        return tournament.bracket is not None and is_bracket_complete(tournament.bracket)

    def _finish(self, tournament: Tournament) -> None:
        tournament.champion_id = get_champion(tournament.bracket)
        tournament.placements = self._compute_placements(tournament)
        tournament.status = TournamentStatus.COMPLETED
        _log.info(f"{tournament.name} completed, champion {self.state.team_name(tournament.champion_id)}")
        self.distribute_prizes(tournament.id)
        self._record_qualification(tournament)

    def _compute_placements(self, tournament: Tournament) -> Dict[str, int]:
        if tournament.bracket is None:
            return {}
        placements = bracket_placements(tournament.bracket)
        if not isinstance(tournament, MultiStageTournament) or tournament.swiss_stage is None:
            return placements

        # Swiss teams outside the playoff share places by record
        rest = [r for r in get_swiss_standings(tournament.swiss_stage) if r.team_id not in placements]
        base = len(placements)
        place = base + 1
        for i, rec in enumerate(rest):
            if i and (rest[i - 1].wins, rest[i - 1].losses) != (rec.wins, rec.losses):
                place = base + i + 1
            placements[rec.team_id] = place
        return placements

    def _record_qualification(self, tournament: Tournament) -> None:
        if tournament.competition_type == CompetitionType.KICKOFF:
            finishers = get_qualifiers(tournament.bracket)
            if finishers is None:
                return
            qualified = tuple(
                self._qualified(team_id, seed, label)
                for seed, (label, team_id) in enumerate(finishers.items(), start=1)
            )
        elif tournament.competition_type == CompetitionType.STAGE_PLAYOFF:
            order = {tid: i for i, tid in enumerate(tournament.team_ids)}
            ranked = sorted(tournament.placements.items(), key=lambda kv: (kv[1], order.get(kv[0], 0)))
            qualified = tuple(
                self._qualified(team_id, seed)
                for seed, (team_id, _) in enumerate(ranked[:STAGE_PLAYOFF_QUALIFIERS], start=1)
            )
        else:
            return

        self.state.qualifications[tournament.id] = QualificationRecord(
            tournament_id=tournament.id,
            competition_type=tournament.competition_type,
            region=tournament.region,
            phase=tournament.phase,
            qualified_teams=qualified,
        )
        _log.info(
            f"{tournament.name} qualifiers: "
            + ", ".join(self.state.team_name(q.team_id) for q in qualified)
        )

    def _qualified(self, team_id: str, seed: int, label: Optional[str] = None) -> QualifiedTeam:
        return QualifiedTeam(
            team_id=team_id,
            team_name=self.state.team_name(team_id),
            region=self.state.team_region(team_id),
            seed=seed,
            label=label,
        )

    # ── standings and results ───────────────────────────────────

    def calculate_standings(self, tournament_id: str) -> List[StandingsEntry]:
        """Rebuild standings from every completed match of the tournament."""
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            _log.warning(f"Standings requested for unknown tournament {tournament_id}")
            return []
        tournament.standings = standings_from_matches(tournament.team_ids, tournament.all_matches())
        return tournament.standings

    def get_final_placements(self, tournament_id: str) -> Dict[str, int]:
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return {}
        if tournament.placements:
            return dict(tournament.placements)
        return self._compute_placements(tournament)

    def distribute_prizes(self, tournament_id: str) -> Dict[str, int]:
        """Pay out the prize pool once.  Repeat calls return the first payout."""
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return {}
        if tournament.prizes_awarded:
            return dict(tournament.prizes_awarded)
        if tournament.status != TournamentStatus.COMPLETED:
            _log.warning(f"Prizes requested for unfinished tournament {tournament.name}")
            return {}

        awarded = split_prizes(tournament.prize_pool, tournament.placements)
        for team_id, amount in awarded.items():
            team = self.state.get_team(team_id)
            if team is not None:
                team.credit_prize(amount)
        tournament.prizes_awarded = awarded
        self.state.bump()
        if awarded:
            _log.info(f"{tournament.name}: paid {sum(awarded.values()):,} to {len(awarded)} teams")
        return dict(awarded)

    # ── simulation drivers ──────────────────────────────────────

    def _team(self, team_id: str, region: str) -> Team:
        team = self.state.get_team(team_id)
        return team if team is not None else Team(id=team_id, name=team_id, region=region)

    def _context(self, tournament: Tournament, match: BracketMatch) -> MatchContext:
        dest = match.winner_destination
        is_final = dest.kind == DestinationKind.CHAMPION or (
            dest.kind == DestinationKind.PLACEMENT and dest.place == 1
        )
        stage = tournament.current_stage if isinstance(tournament, MultiStageTournament) else ""
        return MatchContext(
            tournament_id=tournament.id,
            match_id=match.match_id,
            best_of=BEST_OF_FINAL if is_final else BEST_OF_DEFAULT,
            is_playoff=not tournament.is_league and stage != STAGE_SWISS,
            stage=stage or match.bracket_type,
        )

    def simulate_match(
        self,
        tournament_id: str,
        match_id: str,
        simulator: Optional[MatchSimulator] = None,
    ) -> TournamentResult:
        """Ask the simulator for one match result and apply it."""
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return _fail(f"Tournament {tournament_id} not found")
        if tournament.status == TournamentStatus.UPCOMING:
            self.start_tournament(tournament_id)
        match = tournament.find_match(match_id)
        if match is None or match.status != MatchStatus.READY:
            return _fail(f"Match {match_id} is not ready in {tournament.name}", tournament)

        team_a = self._team(match.team_a_id, tournament.region)
        team_b = self._team(match.team_b_id, tournament.region)
        result = (simulator or self.simulator).simulate(
            team_a, team_b,
            list(team_a.roster), list(team_b.roster),
            dict(team_a.strategy), dict(team_b.strategy),
            self._context(tournament, match),
        )
        return self.advance_tournament(tournament_id, match_id, result)

    def simulate_next_match(self, tournament_id: str) -> TournamentResult:
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return _fail(f"Tournament {tournament_id} not found")
        ready = tournament.ready_matches()
        if not ready:
            return _fail(f"No ready matches in {tournament.name}", tournament)
        return self.simulate_match(tournament_id, ready[0].match_id)

    def simulate_tournament_round(self, tournament_id: str) -> List[TournamentResult]:
        """Simulate every match that is ready right now."""
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return [_fail(f"Tournament {tournament_id} not found")]
        results = []
        for match in tournament.ready_matches():
            if tournament.status == TournamentStatus.COMPLETED:
                break
            results.append(self.simulate_match(tournament_id, match.match_id))
        return results

    def simulate_tournament(self, tournament_id: str, max_steps: int = MAX_SIMULATION_STEPS) -> TournamentResult:
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            return _fail(f"Tournament {tournament_id} not found")
        if tournament.status == TournamentStatus.COMPLETED:
            return TournamentResult(success=True, tournament=tournament, completed=True)

        for _ in range(max_steps):
            result = self.simulate_next_match(tournament_id)
            if not result.success:
                return result
            if result.completed:
                return result
        return _fail(f"{tournament.name} did not finish within {max_steps} matches", tournament)
