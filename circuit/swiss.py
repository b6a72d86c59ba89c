"""
Swiss Stage
===========

Record-based pairing used to narrow an international field before playoffs.
Teams are paired by running win/loss record; two wins qualify, two losses
eliminate, and three rounds settle every team.

Round 1 pairs the top half of the seed list against the bottom half,
steering each pairing away from a same-region matchup.  Later rounds group
active teams by record and pair the best remaining seed in a group against
the worst, never repeating an opponent.  Region bias still applies in round 2;
an odd team out floats down into the next record group.

Like the bracket engine, every update returns a new ``SwissStage``.
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from circuit.competition import (
    BracketMatch,
    BracketRound,
    BracketValidationError,
    MatchResult,
    MatchStatus,
    SourceKind,
    TeamSource,
)
from circuit.config import (
    SWISS_LOSSES_TO_ELIMINATE,
    SWISS_TOTAL_ROUNDS,
    SWISS_WINS_TO_QUALIFY,
)

_log = logging.getLogger("circuit.swiss")

ACTIVE = "active"
QUALIFIED = "qualified"
ELIMINATED = "eliminated"

# Rounds in which same-region pairings are avoided when possible
REGION_BIAS_ROUNDS = 2


@dataclass
class SwissRecord:
    team_id: str
    seed: int
    region: str = ""
    wins: int = 0
    losses: int = 0
    round_diff: int = 0
    opponents: List[str] = field(default_factory=list)
    status: str = ACTIVE

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "seed": self.seed,
            "region": self.region,
            "wins": self.wins,
            "losses": self.losses,
            "round_diff": self.round_diff,
            "opponents": list(self.opponents),
            "status": self.status,
        }


@dataclass
class SwissStage:
    rounds: List[BracketRound] = field(default_factory=list)
    standings: List[SwissRecord] = field(default_factory=list)
    current_round: int = 0
    total_rounds: int = SWISS_TOTAL_ROUNDS
    wins_to_qualify: int = SWISS_WINS_TO_QUALIFY
    losses_to_eliminate: int = SWISS_LOSSES_TO_ELIMINATE
    match_id_prefix: str = ""

    def record(self, team_id: str) -> Optional[SwissRecord]:
        for rec in self.standings:
            if rec.team_id == team_id:
                return rec
        return None

    def all_matches(self) -> List[BracketMatch]:
        return [m for rnd in self.rounds for m in rnd.matches]

    def find_match(self, match_id: str) -> Optional[BracketMatch]:
        for match in self.all_matches():
            if match.match_id == match_id:
                return match
        return None

    @property
    def team_regions(self) -> Dict[str, str]:
        return {r.team_id: r.region for r in self.standings}

    def to_dict(self) -> dict:
        return {
            "current_round": self.current_round,
            "total_rounds": self.total_rounds,
            "wins_to_qualify": self.wins_to_qualify,
            "losses_to_eliminate": self.losses_to_eliminate,
            "rounds": [r.to_dict() for r in self.rounds],
            "standings": [r.to_dict() for r in get_swiss_standings(self)],
        }


# ═══════════════════════════════════════════════════════════════
# PAIRING
# ═══════════════════════════════════════════════════════════════

def _new_round(stage: SwissStage, pairs: List[Tuple[SwissRecord, SwissRecord]]) -> BracketRound:
    number = stage.current_round
    matches = []
    for i, (a, b) in enumerate(pairs):
        matches.append(BracketMatch(
            match_id=f"{stage.match_id_prefix}swiss-r{number}-m{i + 1}",
            bracket_type="swiss",
            round_number=number,
            position=i + 1,
            team_a_id=a.team_id,
            team_b_id=b.team_id,
            team_a_source=TeamSource(SourceKind.SEED, seed=a.seed),
            team_b_source=TeamSource(SourceKind.SEED, seed=b.seed),
            status=MatchStatus.READY,
        ))
    return BracketRound(round_number=number, bracket_type="swiss", name=f"Swiss Round {number}", matches=matches)


def _pick_opponent(
    team: SwissRecord,
    candidates: List[SwissRecord],
    avoid_region: bool,
) -> SwissRecord:
    """Lowest-seeded candidate that is not a rematch (and not same-region when asked)."""
    ordered = sorted(candidates, key=lambda r: -r.seed)
    if avoid_region and team.region:
        for cand in ordered:
            if cand.team_id not in team.opponents and cand.region != team.region:
                return cand
    for cand in ordered:
        if cand.team_id not in team.opponents:
            return cand
    _log.warning(f"No fresh opponent for {team.team_id}; allowing a rematch")
    return ordered[0]


def _pair_opening_round(records: List[SwissRecord]) -> List[Tuple[SwissRecord, SwissRecord]]:
    half = len(records) // 2
    top, bottom = records[:half], list(records[half:])
    pairs = []
    for team in top:
        opponent = next((b for b in bottom if not team.region or b.region != team.region), bottom[0])
        bottom.remove(opponent)
        pairs.append((team, opponent))
    return pairs


def _pair_next_round(stage: SwissStage) -> List[Tuple[SwissRecord, SwissRecord]]:
    active = [r for r in stage.standings if r.status == ACTIVE]
    active.sort(key=lambda r: (-r.wins, r.losses, r.seed))
    avoid_region = stage.current_round <= REGION_BIAS_ROUNDS

    groups: List[List[SwissRecord]] = []
    for rec in active:
        if groups and (groups[-1][0].wins, groups[-1][0].losses) == (rec.wins, rec.losses):
            groups[-1].append(rec)
        else:
            groups.append([rec])

    pairs = []
    carry: List[SwissRecord] = []
    for group in groups:
        pool = carry + group
        while len(pool) >= 2:
            team = pool.pop(0)
            opponent = _pick_opponent(team, pool, avoid_region)
            pool.remove(opponent)
            pairs.append((team, opponent))
        carry = pool

    for leftover in carry:
        # Odd field: the unpaired team takes a walkover win
        _log.warning(f"Swiss round {stage.current_round}: {leftover.team_id} unpaired, awarding bye")
        leftover.wins += 1
        _update_status(stage, leftover)
    return pairs


def _update_status(stage: SwissStage, rec: SwissRecord) -> None:
    if rec.wins >= stage.wins_to_qualify:
        rec.status = QUALIFIED
    elif rec.losses >= stage.losses_to_eliminate:
        rec.status = ELIMINATED


# ═══════════════════════════════════════════════════════════════
# PUBLIC API
# ═══════════════════════════════════════════════════════════════

def initialize_swiss_stage(
    team_ids: Sequence[str],
    team_regions: Optional[Dict[str, str]] = None,
    total_rounds: int = SWISS_TOTAL_ROUNDS,
    wins_to_qualify: int = SWISS_WINS_TO_QUALIFY,
    losses_to_eliminate: int = SWISS_LOSSES_TO_ELIMINATE,
    match_id_prefix: str = "",
) -> SwissStage:
    """Seed a Swiss stage (list order = seed order) and pair round 1."""
    n = len(team_ids)
    if n < 4 or n % 2:
        raise BracketValidationError(f"Swiss stage needs an even number of teams (>= 4), got {n}")
    if len(set(team_ids)) != n:
        raise BracketValidationError("Duplicate team ids in Swiss entry list")

    regions = team_regions or {}
    stage = SwissStage(
        standings=[
            SwissRecord(team_id=tid, seed=i + 1, region=regions.get(tid, ""))
            for i, tid in enumerate(team_ids)
        ],
        total_rounds=total_rounds,
        wins_to_qualify=wins_to_qualify,
        losses_to_eliminate=losses_to_eliminate,
        match_id_prefix=match_id_prefix,
    )
    stage.current_round = 1
    stage.rounds.append(_new_round(stage, _pair_opening_round(stage.standings)))
    _log.debug(f"Swiss stage seeded with {n} teams")
    return stage


def complete_swiss_match(
    stage: SwissStage,
    match_id: str,
    winner_id: str,
    loser_id: str,
    result: Optional[MatchResult] = None,
) -> SwissStage:
    """Record a Swiss result; pairs the next round once the current one is done."""
    updated = deepcopy(stage)
    match = updated.find_match(match_id)
    if match is None:
        raise BracketValidationError(f"Swiss match {match_id} not found")
    if match.status != MatchStatus.READY:
        raise BracketValidationError(f"Swiss match {match_id} is not ready (status {match.status.value})")
    if winner_id == loser_id or {winner_id, loser_id} != {match.team_a_id, match.team_b_id}:
        raise BracketValidationError(
            f"Result {winner_id} over {loser_id} does not match {match.team_a_id} vs {match.team_b_id}"
        )

    match.winner_id = winner_id
    match.loser_id = loser_id
    match.result = deepcopy(result) if result is not None else None
    match.status = MatchStatus.COMPLETED

    margin = abs(result.round_diff_for(winner_id)) if result is not None else 0
    winner, loser = updated.record(winner_id), updated.record(loser_id)
    winner.wins += 1
    winner.round_diff += margin
    winner.opponents.append(loser_id)
    loser.losses += 1
    loser.round_diff -= margin
    loser.opponents.append(winner_id)
    _update_status(updated, winner)
    _update_status(updated, loser)

    current = updated.rounds[-1]
    if current.is_complete():
        still_active = [r for r in updated.standings if r.status == ACTIVE]
        if still_active and updated.current_round < updated.total_rounds:
            updated.current_round += 1
            pairs = _pair_next_round(updated)
            if pairs:
                updated.rounds.append(_new_round(updated, pairs))
        elif still_active:
            _log.error(
                f"Swiss stage ran out of rounds with {len(still_active)} teams unresolved"
            )
    return updated


def get_ready_swiss_matches(stage: SwissStage) -> List[BracketMatch]:
    return [m for m in stage.all_matches() if m.status == MatchStatus.READY]


def get_swiss_standings(stage: SwissStage) -> List[SwissRecord]:
    """Wins desc, losses asc, round diff desc, seed asc."""
    return sorted(stage.standings, key=lambda r: (-r.wins, r.losses, -r.round_diff, r.seed))


def is_swiss_complete(stage: SwissStage) -> bool:
    if get_ready_swiss_matches(stage):
        return False
    return all(r.status != ACTIVE for r in stage.standings)


def get_swiss_qualifiers(stage: SwissStage) -> List[str]:
    return [r.team_id for r in get_swiss_standings(stage) if r.status == QUALIFIED]


def get_swiss_eliminated(stage: SwissStage) -> List[str]:
    return [r.team_id for r in get_swiss_standings(stage) if r.status == ELIMINATED]
