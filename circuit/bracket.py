"""
Bracket Engine
==============

Pure functions that build bracket and league structures from a seeded team
list and advance them as results arrive.  No knowledge of calendars, phases
or prize money.

Every match carries its own routing: ``winner_destination`` and
``loser_destination`` name the downstream match id and slot (or an
elimination place).  The routing is fixed when the bracket is built, so
advancing a bracket is a lookup, never a search.

``complete_match`` returns a new structure and leaves its input untouched.

Formats:
  single_elim   any count >= 2, padded to a power of two with byes for the
                top seeds (standard 1 v N bracket order)
  double_elim   4, 8, 16 or 32 teams; 2*(rounds-1) lower rounds and a
                grand final
  triple_elim   exactly 12 teams; upper/middle/lower paths whose finals
                produce the alpha/beta/omega finishers, no grand final
  round_robin   every pairing once, grouped into circle-method rounds
"""

import logging
from copy import deepcopy
from typing import Callable, Dict, List, Optional, Sequence

from circuit.competition import (
    BracketFormat,
    BracketLabel,
    BracketMatch,
    BracketRound,
    BracketStructure,
    BracketValidationError,
    Destination,
    DestinationKind,
    MatchResult,
    MatchStatus,
    SourceKind,
    TeamSource,
)
from circuit.standings import standings_from_matches

_log = logging.getLogger("circuit.bracket")

TRIPLE_ELIM_TEAMS = 12
DOUBLE_ELIM_SIZES = (4, 8, 16, 32)
MAX_SINGLE_ELIM_TEAMS = 64


# ═══════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════

def _is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def _next_power_of_two(n: int) -> int:
    size = 1
    while size < n:
        size *= 2
    return size


def _bracket_order(size: int) -> List[int]:
    """Seed numbers in slot order, e.g. 8 -> [1, 8, 4, 5, 2, 7, 3, 6]."""
    order = [1, 2]
    while len(order) < size:
        total = len(order) * 2 + 1
        order = [s for seed in order for s in (seed, total - seed)]
    return order[:size]


def _match_id(prefix: str, bracket: str, rnd: int, index: int) -> str:
    return f"{prefix}{bracket}-r{rnd}-m{index + 1}"


def _slot(index: int) -> str:
    return "a" if index % 2 == 0 else "b"


def _to_match(match_id: str, slot: str) -> Destination:
    return Destination(DestinationKind.MATCH, match_id=match_id, slot=slot)


def _eliminated(place: int) -> Destination:
    return Destination(DestinationKind.ELIMINATED, place=place)


def _placement(place: int) -> Destination:
    return Destination(DestinationKind.PLACEMENT, place=place)


def _order_by_seed(team_ids: Sequence[str], seeding: Optional[Sequence[int]]) -> List[str]:
    if seeding is None:
        return list(team_ids)
    if len(seeding) != len(team_ids):
        raise BracketValidationError(
            f"Seeding has {len(seeding)} entries for {len(team_ids)} teams"
        )
    if len(set(seeding)) != len(seeding):
        raise BracketValidationError("Seeding contains duplicate seed numbers")
    return [tid for _, tid in sorted(zip(seeding, team_ids))]


def validate_team_count(team_ids: Sequence[str], fmt: BracketFormat) -> None:
    """Raise ``BracketValidationError`` if ``team_ids`` cannot fill ``fmt``."""
    n = len(team_ids)
    if n < 2:
        raise BracketValidationError(f"Need at least 2 teams, got {n}")
    if len(set(team_ids)) != n:
        raise BracketValidationError("Duplicate team ids in bracket entry list")

    if fmt == BracketFormat.SINGLE_ELIM:
        if n > MAX_SINGLE_ELIM_TEAMS:
            raise BracketValidationError(
                f"Single elimination supports at most {MAX_SINGLE_ELIM_TEAMS} teams, got {n}"
            )
    elif fmt == BracketFormat.DOUBLE_ELIM:
        if n not in DOUBLE_ELIM_SIZES:
            raise BracketValidationError(
                f"Double elimination needs 4, 8, 16 or 32 teams, got {n}"
            )
    elif fmt == BracketFormat.TRIPLE_ELIM:
        if n != TRIPLE_ELIM_TEAMS:
            raise BracketValidationError(
                f"Triple elimination needs exactly {TRIPLE_ELIM_TEAMS} teams, got {n}"
            )
    elif fmt == BracketFormat.ROUND_ROBIN:
        pass
    elif fmt == BracketFormat.SWISS_TO_PLAYOFF:
        raise BracketValidationError(
            "Swiss-to-playoff events are built by circuit.swiss, not create_bracket"
        )
    else:
        raise BracketValidationError(f"Unknown bracket format: {fmt}")


def _make_round(
    prefix: str,
    bracket_type: str,
    number: int,
    name: str,
    count: int,
    winner: Callable[[int], Destination],
    loser: Callable[[int], Destination],
) -> BracketRound:
    matches = []
    for i in range(count):
        matches.append(BracketMatch(
            match_id=_match_id(prefix, bracket_type, number, i),
            bracket_type=bracket_type,
            round_number=number,
            position=i + 1,
            winner_destination=winner(i),
            loser_destination=loser(i),
        ))
    return BracketRound(round_number=number, bracket_type=bracket_type, name=name, matches=matches)


def _link_sources(structure: BracketStructure) -> None:
    """Fill team sources on downstream slots from the routing table."""
    for match in list(structure.all_matches()):
        for dest, kind in ((match.winner_destination, SourceKind.WINNER),
                           (match.loser_destination, SourceKind.LOSER)):
            if dest.kind != DestinationKind.MATCH:
                continue
            target = structure.find_match(dest.match_id)
            if target is None:
                continue
            source = TeamSource(kind, match_id=match.match_id)
            if dest.slot == "a":
                target.team_a_source = source
            else:
                target.team_b_source = source


def _place_team(structure: BracketStructure, dest: Destination, team_id: str) -> Optional[BracketMatch]:
    """Drop ``team_id`` into the slot ``dest`` names.  Returns the target match."""
    if dest.kind != DestinationKind.MATCH:
        return None
    target = structure.find_match(dest.match_id)
    if target is None:
        _log.error(f"Routing points at unknown match {dest.match_id}")
        return None

    attr = "team_a_id" if dest.slot == "a" else "team_b_id"
    current = getattr(target, attr)
    if current is not None and current != team_id:
        _log.error(
            f"Slot {dest.slot} of {target.match_id} already holds {current}; "
            f"{team_id} was not placed"
        )
        return target

    setattr(target, attr, team_id)
    if target.team_a_id and target.team_b_id and target.status == MatchStatus.PENDING:
        target.status = MatchStatus.READY
        _log.debug(f"{target.match_id} ready: {target.team_a_id} vs {target.team_b_id}")
    return target


def _seed_opening_round(
    structure: BracketStructure,
    opening: BracketRound,
    teams: List[str],
    order: List[int],
) -> None:
    n = len(teams)
    for i, match in enumerate(opening.matches):
        seed_a, seed_b = order[2 * i], order[2 * i + 1]
        match.team_a_id = teams[seed_a - 1] if seed_a <= n else None
        match.team_b_id = teams[seed_b - 1] if seed_b <= n else None
        match.team_a_source = TeamSource(SourceKind.SEED, seed=seed_a) if seed_a <= n else TeamSource(SourceKind.BYE)
        match.team_b_source = TeamSource(SourceKind.SEED, seed=seed_b) if seed_b <= n else TeamSource(SourceKind.BYE)

        if match.team_a_id and match.team_b_id:
            match.status = MatchStatus.READY
            continue

        # Bye: the seeded team walks through
        match.is_bye = True
        match.status = MatchStatus.COMPLETED
        match.winner_id = match.team_a_id or match.team_b_id
        _place_team(structure, match.winner_destination, match.winner_id)


# ═══════════════════════════════════════════════════════════════
# BUILDERS
# ═══════════════════════════════════════════════════════════════

def _build_single_elim(teams: List[str], prefix: str) -> BracketStructure:
    n = len(teams)
    size = _next_power_of_two(n)
    total_rounds = size.bit_length() - 1
    order = _bracket_order(size)
    structure = BracketStructure(format=BracketFormat.SINGLE_ELIM, team_ids=list(teams))

    remaining = n
    for rnd in range(1, total_rounds + 1):
        count = size >> rnd
        if rnd == 1:
            losers = sum(1 for i in range(count) if order[2 * i] <= n and order[2 * i + 1] <= n)
        else:
            losers = count
        place = remaining - losers + 1
        remaining -= losers

        if rnd < total_rounds:
            winner = lambda i, r=rnd: _to_match(_match_id(prefix, "upper", r + 1, i // 2), _slot(i))
        else:
            winner = lambda i: Destination(DestinationKind.CHAMPION)
        name = "Final" if rnd == total_rounds else f"Round {rnd}"
        structure.upper.append(_make_round(
            prefix, "upper", rnd, name, count, winner, lambda i, p=place: _eliminated(p),
        ))

    _link_sources(structure)
    _seed_opening_round(structure, structure.upper[0], teams, order)
    return structure


def _build_double_elim(teams: List[str], prefix: str) -> BracketStructure:
    n = len(teams)
    upper_rounds = n.bit_length() - 1
    lower_rounds = 2 * (upper_rounds - 1)
    grand_final_id = f"{prefix}grand-final"
    structure = BracketStructure(format=BracketFormat.DOUBLE_ELIM, team_ids=list(teams))

    # LR(2k-1) and LR(2k) both hold n / 2^(k+1) matches
    lower_counts = [n >> ((j + 1) // 2 + 1) for j in range(1, lower_rounds + 1)]
    lower_places = []
    remaining = n
    for count in lower_counts:
        lower_places.append(remaining - count + 1)
        remaining -= count

    for rnd in range(1, upper_rounds + 1):
        count = n >> rnd
        if rnd < upper_rounds:
            winner = lambda i, r=rnd: _to_match(_match_id(prefix, "upper", r + 1, i // 2), _slot(i))
        else:
            winner = lambda i: _to_match(grand_final_id, "a")

        if rnd == 1:
            loser = lambda i: _to_match(_match_id(prefix, "lower", 1, i // 2), _slot(i))
        else:
            # Upper round k+1 drops into lower round 2k, reversed to delay rematches
            k = rnd - 1
            lower_count = n >> (k + 1)
            loser = lambda i, k=k, c=lower_count: _to_match(
                _match_id(prefix, "lower", 2 * k, c - 1 - i), "a"
            )
        name = "Upper Final" if rnd == upper_rounds else f"Upper Round {rnd}"
        structure.upper.append(_make_round(prefix, "upper", rnd, name, count, winner, loser))

    for j in range(1, lower_rounds + 1):
        count = lower_counts[j - 1]
        if j % 2 == 1:
            winner = lambda i, j=j: _to_match(_match_id(prefix, "lower", j + 1, i), "b")
        elif j < lower_rounds:
            winner = lambda i, j=j: _to_match(_match_id(prefix, "lower", j + 1, i // 2), _slot(i))
        else:
            winner = lambda i: _to_match(grand_final_id, "b")
        name = "Lower Final" if j == lower_rounds else f"Lower Round {j}"
        structure.lower.append(_make_round(
            prefix, "lower", j, name, count, winner, lambda i, p=lower_places[j - 1]: _eliminated(p),
        ))

    structure.grandfinal = BracketMatch(
        match_id=grand_final_id,
        bracket_type="grandfinal",
        round_number=1,
        position=1,
        winner_destination=Destination(DestinationKind.CHAMPION),
        loser_destination=_placement(2),
    )

    _link_sources(structure)
    _seed_opening_round(structure, structure.upper[0], teams, _bracket_order(n))
    return structure


def _build_triple_elim(teams: List[str], prefix: str) -> BracketStructure:
    structure = BracketStructure(format=BracketFormat.TRIPLE_ELIM, team_ids=list(teams))

    def up(r: int, i: int, slot: str) -> Destination:
        return _to_match(_match_id(prefix, "upper", r, i), slot)

    def mid(r: int, i: int, slot: str) -> Destination:
        return _to_match(_match_id(prefix, "middle", r, i), slot)

    def low(r: int, i: int, slot: str) -> Destination:
        return _to_match(_match_id(prefix, "lower", r, i), slot)

    structure.upper = [
        _make_round(prefix, "upper", 1, "Upper Round 1", 4,
                    lambda i: up(2, i, "b"), lambda i: mid(1, i, "a")),
        _make_round(prefix, "upper", 2, "Upper Round 2", 4,
                    lambda i: up(3, i // 2, _slot(i)), lambda i: mid(1, 3 - i, "b")),
        _make_round(prefix, "upper", 3, "Upper Semifinals", 2,
                    lambda i: up(4, 0, _slot(i)), lambda i: mid(3, i, "a")),
        _make_round(prefix, "upper", 4, "Upper Final", 1,
                    lambda i: _placement(1), lambda i: mid(5, 0, "b")),
    ]
    structure.middle = [
        _make_round(prefix, "middle", 1, "Middle Round 1", 4,
                    lambda i: mid(2, i // 2, _slot(i)), lambda i: low(1, i // 2, _slot(i))),
        _make_round(prefix, "middle", 2, "Middle Round 2", 2,
                    lambda i: mid(3, i, "b"), lambda i: low(2, i, "a")),
        _make_round(prefix, "middle", 3, "Middle Round 3", 2,
                    lambda i: mid(4, 0, _slot(i)), lambda i: low(3, i, "a")),
        _make_round(prefix, "middle", 4, "Middle Semifinal", 1,
                    lambda i: mid(5, 0, "a"), lambda i: low(5, 0, "a")),
        _make_round(prefix, "middle", 5, "Middle Final", 1,
                    lambda i: _placement(2), lambda i: low(6, 0, "a")),
    ]
    structure.lower = [
        _make_round(prefix, "lower", 1, "Lower Round 1", 2,
                    lambda i: low(2, i, "b"), lambda i: _eliminated(11)),
        _make_round(prefix, "lower", 2, "Lower Round 2", 2,
                    lambda i: low(3, i, "b"), lambda i: _eliminated(9)),
        _make_round(prefix, "lower", 3, "Lower Round 3", 2,
                    lambda i: low(4, 0, _slot(i)), lambda i: _eliminated(7)),
        _make_round(prefix, "lower", 4, "Lower Round 4", 1,
                    lambda i: low(5, 0, "b"), lambda i: _eliminated(6)),
        _make_round(prefix, "lower", 5, "Lower Semifinal", 1,
                    lambda i: low(6, 0, "b"), lambda i: _eliminated(5)),
        _make_round(prefix, "lower", 6, "Lower Final", 1,
                    lambda i: _placement(3), lambda i: _placement(4)),
    ]

    _link_sources(structure)

    # Seeds 5-12 open in pairs; seeds 1-4 wait in upper round 2
    for i, match in enumerate(structure.upper[0].matches):
        match.team_a_id = teams[4 + 2 * i]
        match.team_b_id = teams[5 + 2 * i]
        match.team_a_source = TeamSource(SourceKind.SEED, seed=5 + 2 * i)
        match.team_b_source = TeamSource(SourceKind.SEED, seed=6 + 2 * i)
        match.status = MatchStatus.READY
    for i, match in enumerate(structure.upper[1].matches):
        match.team_a_id = teams[i]
        match.team_a_source = TeamSource(SourceKind.SEED, seed=i + 1)

    return structure


def _build_round_robin(teams: List[str], prefix: str) -> BracketStructure:
    structure = BracketStructure(format=BracketFormat.ROUND_ROBIN, team_ids=list(teams))
    rotation: List[Optional[str]] = list(teams)
    if len(rotation) % 2:
        rotation.append(None)
    n = len(rotation)
    seeds = {tid: i + 1 for i, tid in enumerate(teams)}

    for r in range(n - 1):
        matches = []
        for i in range(n // 2):
            a, b = rotation[i], rotation[n - 1 - i]
            if a is None or b is None:
                continue
            matches.append(BracketMatch(
                match_id=_match_id(prefix, "league", r + 1, len(matches)),
                bracket_type="league",
                round_number=r + 1,
                position=len(matches) + 1,
                team_a_id=a,
                team_b_id=b,
                team_a_source=TeamSource(SourceKind.SEED, seed=seeds[a]),
                team_b_source=TeamSource(SourceKind.SEED, seed=seeds[b]),
                status=MatchStatus.READY,
            ))
        structure.upper.append(BracketRound(
            round_number=r + 1, bracket_type="league", name=f"Week {r + 1}", matches=matches,
        ))
        rotation = [rotation[0], rotation[-1]] + rotation[1:-1]

    return structure


# ═══════════════════════════════════════════════════════════════
# PUBLIC API
# ═══════════════════════════════════════════════════════════════

def create_bracket(
    team_ids: Sequence[str],
    fmt: BracketFormat,
    seeding: Optional[Sequence[int]] = None,
    match_id_prefix: str = "",
) -> BracketStructure:
    """Build a fresh bracket.

    Args:
        team_ids: entrants.  Without ``seeding`` the list order is the seed order.
        fmt: bracket format.
        seeding: optional seed number per entry of ``team_ids``.
        match_id_prefix: prepended to every match id (tournaments pass their id).

    Raises:
        BracketValidationError: wrong team count, duplicate ids or bad seeding.
    """
    fmt = BracketFormat(fmt)
    validate_team_count(team_ids, fmt)
    teams = _order_by_seed(team_ids, seeding)

    if fmt == BracketFormat.SINGLE_ELIM:
        structure = _build_single_elim(teams, match_id_prefix)
    elif fmt == BracketFormat.DOUBLE_ELIM:
        structure = _build_double_elim(teams, match_id_prefix)
    elif fmt == BracketFormat.TRIPLE_ELIM:
        structure = _build_triple_elim(teams, match_id_prefix)
    else:
        structure = _build_round_robin(teams, match_id_prefix)

    _log.debug(
        f"Built {fmt.value} bracket for {len(teams)} teams "
        f"({sum(1 for _ in structure.all_matches())} matches)"
    )
    return structure


def complete_match(
    bracket: BracketStructure,
    match_id: str,
    winner_id: str,
    loser_id: str,
    result: Optional[MatchResult] = None,
) -> BracketStructure:
    """Record a result and route both teams.  Returns a new structure."""
    updated = deepcopy(bracket)
    match = updated.find_match(match_id)
    if match is None:
        raise BracketValidationError(f"Match {match_id} not found in bracket")
    if match.status == MatchStatus.COMPLETED:
        raise BracketValidationError(f"Match {match_id} is already completed")
    if match.status != MatchStatus.READY:
        raise BracketValidationError(f"Match {match_id} is not ready (status {match.status.value})")
    if winner_id == loser_id or {winner_id, loser_id} != {match.team_a_id, match.team_b_id}:
        raise BracketValidationError(
            f"Result {winner_id} over {loser_id} does not match "
            f"{match.team_a_id} vs {match.team_b_id} in {match_id}"
        )

    match.winner_id = winner_id
    match.loser_id = loser_id
    match.result = deepcopy(result) if result is not None else None
    match.status = MatchStatus.COMPLETED

    _place_team(updated, match.winner_destination, winner_id)
    _place_team(updated, match.loser_destination, loser_id)
    return updated


def get_ready_matches(bracket: BracketStructure) -> List[BracketMatch]:
    return [m for m in bracket.all_matches() if m.status == MatchStatus.READY]


def get_next_match(bracket: BracketStructure) -> Optional[BracketMatch]:
    ready = get_ready_matches(bracket)
    return ready[0] if ready else None


def is_bracket_complete(bracket: BracketStructure) -> bool:
    return all(m.status == MatchStatus.COMPLETED for m in bracket.all_matches())


def get_bracket_status(bracket: BracketStructure) -> str:
    matches = list(bracket.all_matches())
    if all(m.status == MatchStatus.COMPLETED for m in matches):
        return "completed"
    if any(m.status == MatchStatus.COMPLETED and not m.is_bye for m in matches):
        return "in_progress"
    return "not_started"


def get_champion(bracket: BracketStructure) -> Optional[str]:
    fmt = bracket.format
    if fmt == BracketFormat.DOUBLE_ELIM:
        gf = bracket.grandfinal
        if gf is not None and gf.status == MatchStatus.COMPLETED:
            return gf.winner_id
        return None
    if fmt == BracketFormat.SINGLE_ELIM:
        final = bracket.upper[-1].matches[0]
        return final.winner_id if final.status == MatchStatus.COMPLETED else None
    if fmt == BracketFormat.TRIPLE_ELIM:
        if not is_bracket_complete(bracket):
            return None
        return bracket.upper[-1].matches[0].winner_id
    if fmt == BracketFormat.ROUND_ROBIN:
        if not is_bracket_complete(bracket):
            return None
        table = standings_from_matches(bracket.team_ids, bracket.all_matches())
        return table[0].team_id if table else None
    return None


def get_qualifiers(bracket: BracketStructure) -> Optional[Dict[str, str]]:
    """Alpha/beta/omega finishers of a triple-elimination bracket.

    Returns None (and logs an error) for other formats or while any of the
    three finals is unplayed.  Callers treat None as "not ready".
    """
    if bracket.format != BracketFormat.TRIPLE_ELIM:
        _log.error(f"get_qualifiers called on a {bracket.format.value} bracket")
        return None

    finals = {
        BracketLabel.ALPHA.value: bracket.upper[-1].matches[0],
        BracketLabel.BETA.value: bracket.middle[-1].matches[0],
        BracketLabel.OMEGA.value: bracket.lower[-1].matches[0],
    }
    unresolved = [label for label, m in finals.items() if m.status != MatchStatus.COMPLETED]
    if unresolved:
        _log.error(f"Qualifiers requested before {', '.join(unresolved)} final(s) resolved")
        return None
    return {label: m.winner_id for label, m in finals.items()}


def get_final_placements(bracket: BracketStructure) -> Dict[str, int]:
    """Team id -> finishing place, best first.

    Teams knocked out in the same round share that round's place.
    """
    if bracket.format == BracketFormat.ROUND_ROBIN:
        table = standings_from_matches(bracket.team_ids, bracket.all_matches())
        return {e.team_id: e.placement for e in table}

    placements: Dict[str, int] = {}
    for match in bracket.all_matches():
        if match.status != MatchStatus.COMPLETED or match.is_bye:
            continue
        for team_id, dest in ((match.winner_id, match.winner_destination),
                              (match.loser_id, match.loser_destination)):
            if team_id is None:
                continue
            if dest.kind == DestinationKind.CHAMPION:
                placements[team_id] = 1
            elif dest.kind in (DestinationKind.PLACEMENT, DestinationKind.ELIMINATED) and dest.place:
                placements[team_id] = dest.place
    return dict(sorted(placements.items(), key=lambda kv: kv[1]))
