#!/usr/bin/env python3
"""
Bracket Engine Tests
====================

Bracket construction, routing and placements for every format, plus the
Swiss stage used ahead of international playoffs.
"""

import random

import pytest

from circuit.bracket import (
    create_bracket, complete_match, get_ready_matches, get_next_match,
    get_champion, get_qualifiers, get_final_placements, get_bracket_status,
    is_bracket_complete,
)
from circuit.competition import (
    BracketFormat, BracketValidationError, DestinationKind, MatchResult, MatchStatus,
)
from circuit.standings import standings_from_matches
from circuit.swiss import (
    initialize_swiss_stage, complete_swiss_match, get_ready_swiss_matches,
    get_swiss_qualifiers, get_swiss_eliminated, get_swiss_standings, is_swiss_complete,
)


def _teams(n):
    return [f"t{i:02d}" for i in range(1, n + 1)]


def _favourite(match):
    """Lower seed number wins; ids sort in seed order."""
    winner = min(match.team_a_id, match.team_b_id)
    loser = max(match.team_a_id, match.team_b_id)
    return winner, loser


def _play_out(bracket, pick=_favourite):
    played = 0
    while True:
        match = get_next_match(bracket)
        if match is None:
            return bracket, played
        winner, loser = pick(match)
        bracket = complete_match(bracket, match.match_id, winner, loser)
        played += 1


def _find_pair(bracket, a, b):
    for m in bracket.all_matches():
        if {m.team_a_id, m.team_b_id} == {a, b}:
            return m
    raise AssertionError(f"No match between {a} and {b}")


# ═══════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════

class TestValidation:
    def test_too_few_teams(self):
        with pytest.raises(BracketValidationError):
            create_bracket(["solo"], BracketFormat.SINGLE_ELIM)

    def test_double_elim_needs_power_of_two(self):
        with pytest.raises(BracketValidationError):
            create_bracket(_teams(6), BracketFormat.DOUBLE_ELIM)

    def test_triple_elim_needs_twelve(self):
        with pytest.raises(BracketValidationError):
            create_bracket(_teams(8), BracketFormat.TRIPLE_ELIM)

    def test_duplicate_team_ids(self):
        with pytest.raises(BracketValidationError):
            create_bracket(["a", "b", "a", "c"], BracketFormat.SINGLE_ELIM)

    def test_duplicate_seeds(self):
        with pytest.raises(BracketValidationError):
            create_bracket(_teams(4), BracketFormat.SINGLE_ELIM, seeding=[1, 1, 2, 3])

    def test_swiss_is_not_a_bracket(self):
        with pytest.raises(BracketValidationError):
            create_bracket(_teams(8), BracketFormat.SWISS_TO_PLAYOFF)

    def test_seeding_reorders_entries(self):
        bracket = create_bracket(["d", "c", "b", "a"], BracketFormat.SINGLE_ELIM, seeding=[4, 3, 2, 1])
        assert bracket.team_ids == ["a", "b", "c", "d"]
        opener = bracket.upper[0].matches[0]
        assert (opener.team_a_id, opener.team_b_id) == ("a", "d")

    def test_match_id_prefix(self):
        bracket = create_bracket(_teams(4), BracketFormat.SINGLE_ELIM, match_id_prefix="cup-")
        assert all(m.match_id.startswith("cup-") for m in bracket.all_matches())


# ═══════════════════════════════════════════════════════════════
# SINGLE ELIMINATION
# ═══════════════════════════════════════════════════════════════

class TestSingleElimination:
    def test_byes_go_to_top_seeds(self):
        bracket = create_bracket(_teams(6), BracketFormat.SINGLE_ELIM)
        byes = [m for m in bracket.upper[0].matches if m.is_bye]
        assert len(byes) == 2
        assert {m.winner_id for m in byes} == {"t01", "t02"}
        assert get_bracket_status(bracket) == "not_started"

    def test_bye_winner_is_placed_in_round_two(self):
        bracket = create_bracket(_teams(6), BracketFormat.SINGLE_ELIM)
        second = bracket.upper[1].matches
        assert second[0].team_a_id == "t01"
        assert second[1].team_a_id == "t02"
        assert second[0].status == MatchStatus.PENDING

    def test_full_run(self):
        bracket, played = _play_out(create_bracket(_teams(6), BracketFormat.SINGLE_ELIM))
        assert played == 5
        assert is_bracket_complete(bracket)
        assert get_champion(bracket) == "t01"
        placements = get_final_placements(bracket)
        assert placements["t01"] == 1
        assert placements["t02"] == 2
        assert placements["t03"] == placements["t04"] == 3
        assert placements["t05"] == placements["t06"] == 5

    def test_complete_match_leaves_input_untouched(self):
        bracket = create_bracket(_teams(4), BracketFormat.SINGLE_ELIM)
        match = get_next_match(bracket)
        updated = complete_match(bracket, match.match_id, *_favourite(match))
        assert bracket.find_match(match.match_id).status == MatchStatus.READY
        assert updated.find_match(match.match_id).status == MatchStatus.COMPLETED

    def test_completed_match_cannot_be_replayed(self):
        bracket = create_bracket(_teams(4), BracketFormat.SINGLE_ELIM)
        match = get_next_match(bracket)
        bracket = complete_match(bracket, match.match_id, *_favourite(match))
        with pytest.raises(BracketValidationError):
            complete_match(bracket, match.match_id, *_favourite(match))

    def test_result_must_name_the_match_teams(self):
        bracket = create_bracket(_teams(4), BracketFormat.SINGLE_ELIM)
        match = get_next_match(bracket)
        with pytest.raises(BracketValidationError):
            complete_match(bracket, match.match_id, "t01", "t02")

    def test_pending_match_rejected(self):
        bracket = create_bracket(_teams(4), BracketFormat.SINGLE_ELIM)
        final = bracket.upper[-1].matches[0]
        with pytest.raises(BracketValidationError):
            complete_match(bracket, final.match_id, "t01", "t02")

    def test_unknown_match(self):
        bracket = create_bracket(_teams(4), BracketFormat.SINGLE_ELIM)
        with pytest.raises(BracketValidationError):
            complete_match(bracket, "nope", "t01", "t04")


# ═══════════════════════════════════════════════════════════════
# DOUBLE ELIMINATION
# ═══════════════════════════════════════════════════════════════

class TestDoubleElimination:
    def test_structure_for_eight(self):
        bracket = create_bracket(_teams(8), BracketFormat.DOUBLE_ELIM)
        assert [len(r.matches) for r in bracket.upper] == [4, 2, 1]
        assert [len(r.matches) for r in bracket.lower] == [2, 2, 1, 1]
        assert bracket.grandfinal is not None
        assert len(get_ready_matches(bracket)) == 4

    def test_routing_is_precomputed(self):
        bracket = create_bracket(_teams(8), BracketFormat.DOUBLE_ELIM)
        for match in bracket.upper[0].matches:
            assert match.winner_destination.kind == DestinationKind.MATCH
            assert match.loser_destination.match_id.startswith("lower-r1")
        assert bracket.grandfinal.winner_destination.kind == DestinationKind.CHAMPION

    def test_favourites_finish_in_seed_order(self):
        bracket, played = _play_out(create_bracket(_teams(8), BracketFormat.DOUBLE_ELIM))
        assert played == 14
        assert get_champion(bracket) == "t01"
        placements = get_final_placements(bracket)
        assert [placements[t] for t in ("t01", "t02", "t03", "t04")] == [1, 2, 3, 4]
        assert placements["t05"] == placements["t06"] == 5
        assert placements["t07"] == placements["t08"] == 7

    def test_upper_final_loser_drops_to_lower_final(self):
        bracket, _ = _play_out(create_bracket(_teams(8), BracketFormat.DOUBLE_ELIM))
        lower_final = bracket.lower[-1].matches[0]
        assert "t02" in lower_final.teams

    def test_no_champion_before_grand_final(self):
        bracket = create_bracket(_teams(4), BracketFormat.DOUBLE_ELIM)
        assert get_champion(bracket) is None


# ═══════════════════════════════════════════════════════════════
# TRIPLE ELIMINATION
# ═══════════════════════════════════════════════════════════════

class TestTripleElimination:
    def test_top_seeds_wait_for_round_two(self):
        bracket = create_bracket(_teams(12), BracketFormat.TRIPLE_ELIM)
        ready = get_ready_matches(bracket)
        assert len(ready) == 4
        assert not any(m.involves(t) for m in ready for t in ("t01", "t02", "t03", "t04"))
        assert [m.team_a_id for m in bracket.upper[1].matches] == ["t01", "t02", "t03", "t04"]

    def test_full_run_produces_three_qualifiers(self):
        bracket, played = _play_out(create_bracket(_teams(12), BracketFormat.TRIPLE_ELIM))
        assert played == 30
        assert is_bracket_complete(bracket)
        assert get_qualifiers(bracket) == {"alpha": "t01", "beta": "t02", "omega": "t03"}
        assert get_champion(bracket) == "t01"

    def test_placements_cover_every_team(self):
        bracket, _ = _play_out(create_bracket(_teams(12), BracketFormat.TRIPLE_ELIM))
        placements = get_final_placements(bracket)
        assert len(placements) == 12
        assert [placements[f"t{i:02d}"] for i in range(1, 7)] == [1, 2, 3, 4, 5, 6]
        assert placements["t11"] == placements["t12"] == 11

    def test_qualifiers_not_ready_mid_bracket(self):
        bracket = create_bracket(_teams(12), BracketFormat.TRIPLE_ELIM)
        for _ in range(6):
            match = get_next_match(bracket)
            bracket = complete_match(bracket, match.match_id, *_favourite(match))
        assert get_qualifiers(bracket) is None

    def test_qualifiers_on_other_format(self):
        bracket = create_bracket(_teams(8), BracketFormat.DOUBLE_ELIM)
        assert get_qualifiers(bracket) is None


# ═══════════════════════════════════════════════════════════════
# ROUND ROBIN
# ═══════════════════════════════════════════════════════════════

class TestRoundRobin:
    def test_every_pairing_once(self):
        teams = _teams(8)
        bracket = create_bracket(teams, BracketFormat.ROUND_ROBIN)
        pairs = [frozenset(m.teams) for m in bracket.all_matches()]
        assert len(pairs) == 28
        assert len(set(pairs)) == 28
        assert len(bracket.upper) == 7
        assert all(len(r.matches) == 4 for r in bracket.upper)

    def test_odd_field_sits_one_out_per_week(self):
        bracket = create_bracket(_teams(5), BracketFormat.ROUND_ROBIN)
        assert len(list(bracket.all_matches())) == 10
        assert all(len(r.matches) == 2 for r in bracket.upper)

    def test_all_matches_ready_at_start(self):
        bracket = create_bracket(_teams(6), BracketFormat.ROUND_ROBIN)
        assert len(get_ready_matches(bracket)) == 15

    def test_champion_tops_the_table(self):
        bracket, _ = _play_out(create_bracket(_teams(6), BracketFormat.ROUND_ROBIN))
        assert get_champion(bracket) == "t01"
        assert get_final_placements(bracket)["t06"] == 6

    def test_head_to_head_breaks_a_tie(self):
        teams = ["d", "c", "b", "a"]
        bracket = create_bracket(teams, BracketFormat.ROUND_ROBIN)
        for winner, loser in [("a", "b"), ("a", "c"), ("d", "a"), ("b", "c"), ("b", "d"), ("c", "d")]:
            match = _find_pair(bracket, winner, loser)
            bracket = complete_match(bracket, match.match_id, winner, loser)
        table = standings_from_matches(teams, bracket.all_matches())
        assert [e.team_id for e in table] == ["a", "b", "c", "d"]
        assert [e.placement for e in table] == [1, 2, 3, 4]

    def test_unbroken_tie_shares_placement(self):
        teams = ["x", "y", "z"]
        bracket = create_bracket(teams, BracketFormat.ROUND_ROBIN)
        for winner, loser in [("x", "y"), ("y", "z"), ("z", "x")]:
            match = _find_pair(bracket, winner, loser)
            bracket = complete_match(bracket, match.match_id, winner, loser)
        table = standings_from_matches(teams, bracket.all_matches())
        assert [e.team_id for e in table] == ["x", "y", "z"]
        assert [e.placement for e in table] == [1, 1, 1]

    def test_round_difference_orders_equal_records(self):
        teams = ["a", "b", "c"]
        bracket = create_bracket(teams, BracketFormat.ROUND_ROBIN)
        scores = {("a", "b"): (2, 0), ("b", "c"): (2, 1), ("c", "a"): (2, 1)}
        for (winner, loser), (won, lost) in scores.items():
            match = _find_pair(bracket, winner, loser)
            if match.team_a_id == winner:
                result = MatchResult(winner, loser, won, lost)
            else:
                result = MatchResult(winner, loser, lost, won)
            bracket = complete_match(
                bracket, match.match_id, winner, loser,
                result.oriented(match.match_id, match.team_a_id, match.team_b_id),
            )
        table = standings_from_matches(teams, bracket.all_matches())
        # a: +2 -1 = +1, b: -2 +1 = -1, c: +1 -1 = 0
        assert [e.team_id for e in table] == ["a", "c", "b"]

    def test_standings_ignore_match_order(self):
        rng = random.Random(42)
        teams = _teams(6)
        bracket = create_bracket(teams, BracketFormat.ROUND_ROBIN)
        for match in list(bracket.all_matches()):
            winner, loser = rng.sample([match.team_a_id, match.team_b_id], 2)
            lost = rng.choice([0, 1])
            if match.team_a_id == winner:
                result = MatchResult(winner, loser, 2, lost)
            else:
                result = MatchResult(winner, loser, lost, 2)
            bracket = complete_match(
                bracket, match.match_id, winner, loser,
                result.oriented(match.match_id, match.team_a_id, match.team_b_id),
            )

        matches = list(bracket.all_matches())
        expected = [(e.team_id, e.placement) for e in standings_from_matches(teams, matches)]
        for _ in range(20):
            rng.shuffle(matches)
            table = standings_from_matches(teams, matches)
            assert [(e.team_id, e.placement) for e in table] == expected


# ═══════════════════════════════════════════════════════════════
# SWISS
# ═══════════════════════════════════════════════════════════════

class TestSwiss:
    def test_rejects_odd_field(self):
        with pytest.raises(BracketValidationError):
            initialize_swiss_stage(_teams(5))

    def test_opening_round_avoids_same_region(self):
        teams = _teams(8)
        regions = dict(zip(teams, ["A", "B", "C", "D", "A", "B", "C", "D"]))
        stage = initialize_swiss_stage(teams, regions)
        for match in get_ready_swiss_matches(stage):
            assert regions[match.team_a_id] != regions[match.team_b_id]

    def test_eight_team_stage(self):
        stage = initialize_swiss_stage(_teams(8))
        played = 0
        while get_ready_swiss_matches(stage):
            match = get_ready_swiss_matches(stage)[0]
            stage = complete_swiss_match(stage, match.match_id, *_favourite(match))
            played += 1
        assert played == 10
        assert [len(rnd.matches) for rnd in stage.rounds] == [4, 4, 2]
        assert is_swiss_complete(stage)
        assert len(get_swiss_qualifiers(stage)) == 4
        assert len(get_swiss_eliminated(stage)) == 4

    def test_no_rematches(self):
        stage = initialize_swiss_stage(_teams(8))
        while get_ready_swiss_matches(stage):
            match = get_ready_swiss_matches(stage)[0]
            stage = complete_swiss_match(stage, match.match_id, *_favourite(match))
        for record in stage.standings:
            assert len(record.opponents) == len(set(record.opponents))

    def test_standings_sorted_by_record(self):
        stage = initialize_swiss_stage(_teams(8))
        match = get_ready_swiss_matches(stage)[0]
        stage = complete_swiss_match(stage, match.match_id, *_favourite(match))
        top = get_swiss_standings(stage)[0]
        assert top.wins == 1

    def test_wrong_teams_rejected(self):
        stage = initialize_swiss_stage(_teams(8))
        match = get_ready_swiss_matches(stage)[0]
        with pytest.raises(BracketValidationError):
            complete_swiss_match(stage, match.match_id, "t01", "t02")
