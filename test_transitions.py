#!/usr/bin/env python3
"""
Qualification & Transition Tests
================================

Kickoff -> Masters, league -> regional playoffs, playoffs -> international
events, idempotency and the partial-qualification policy.
"""

import random
from datetime import date

import pytest

from circuit.competition import BracketFormat, CompetitionType, SeasonPhase
from circuit.config import REGIONS
from circuit.tournament import TournamentManager
from circuit.transitions import (
    TransitionEngine, get_transition_config, get_transition_for_phase,
    get_regional_playoff_transitions, get_international_transitions, list_transitions,
)
from conftest import build_state


def _setup(simulator, regions=None, strict=False):
    state = build_state(regions)
    manager = TournamentManager(state, simulator=simulator, rng=random.Random(42))
    engine = TransitionEngine(state, manager, strict_qualification=strict)
    return state, manager, engine


def _ranking(state, region):
    return [t.id for t in sorted(
        (t for t in state.teams.values() if t.region == region), key=lambda t: -t.rating,
    )]


def _play_kickoffs(state, manager, regions=REGIONS):
    for region in regions:
        tournament = manager.create_kickoff(region, _ranking(state, region)).tournament
        assert manager.simulate_tournament(tournament.id).completed


def _play_stage(state, manager, engine, stage, regions=REGIONS):
    """Leagues and regional playoffs for ``stage`` in every region."""
    config_id = f"{stage}_to_{stage}_playoffs"
    for region in regions:
        league = manager.create_league(region, stage, _ranking(state, region)).tournament
        assert manager.simulate_tournament(league.id).completed
        result = engine.execute_transition(config_id, region)
        assert result.success
        assert manager.simulate_tournament(result.tournament_id).completed


# ═══════════════════════════════════════════════════════════════
# CONFIG TABLE
# ═══════════════════════════════════════════════════════════════

class TestConfigTable:
    def test_all_transitions_present(self):
        ids = {c.id for c in list_transitions()}
        assert ids == {
            "kickoff_to_masters1", "masters1_to_stage1", "stage1_to_stage1_playoffs",
            "stage1_playoffs_to_masters2", "masters2_to_stage2", "stage2_to_stage2_playoffs",
            "stage2_playoffs_to_champions",
        }

    def test_lookup_by_phase(self):
        assert get_transition_for_phase(SeasonPhase.KICKOFF).id == "kickoff_to_masters1"
        assert get_transition_for_phase(SeasonPhase.CHAMPIONS) is None

    def test_type_filters(self):
        assert len(get_regional_playoff_transitions()) == 2
        assert len(get_international_transitions()) == 3

    def test_name_templates(self):
        config = get_transition_config("stage2_to_stage2_playoffs")
        assert config.resolve_name(2027, "EMEA") == "VCT EMEA Stage 2 Playoffs 2027"
        assert config.resolve_region("EMEA") == "EMEA"
        masters = get_transition_config("kickoff_to_masters1")
        assert masters.resolve_name(2026) == "VCT Masters Santiago 2026"
        assert masters.format == BracketFormat.SWISS_TO_PLAYOFF

    def test_champions_entry_counts(self):
        config = get_transition_config("stage2_playoffs_to_champions")
        assert config.swiss_stage_teams == 12
        assert config.direct_playoff_teams == 4
        assert sum(config.teams_from_playoffs.values()) * len(REGIONS) == 16


# ═══════════════════════════════════════════════════════════════
# KICKOFF -> MASTERS
# ═══════════════════════════════════════════════════════════════

class TestKickoffToMasters:
    def test_masters_entry_split(self, simulator):
        state, manager, engine = _setup(simulator)
        _play_kickoffs(state, manager)
        result = engine.execute_transition("kickoff_to_masters1")
        assert result.success and result.created
        masters = state.tournaments[result.tournament_id]
        assert masters.name == "VCT Masters Santiago 2026"
        assert masters.competition_type == CompetitionType.MASTERS
        assert len(masters.playoff_only_team_ids) == 4
        assert len(masters.swiss_team_ids) == 8
        assert not set(masters.playoff_only_team_ids) & set(masters.swiss_team_ids)

    def test_alphas_go_direct_and_betas_seed_ahead_of_omegas(self, simulator):
        state, manager, engine = _setup(simulator)
        _play_kickoffs(state, manager)
        masters = state.tournaments[engine.execute_transition("kickoff_to_masters1").tournament_id]
        prefixes = [r.lower() for r in REGIONS]
        assert masters.playoff_only_team_ids == [f"{p}-01" for p in prefixes]
        assert masters.swiss_team_ids == [f"{p}-02" for p in prefixes] + [f"{p}-03" for p in prefixes]

    def test_phase_and_dates(self, simulator):
        state, manager, engine = _setup(simulator)
        _play_kickoffs(state, manager)
        result = engine.execute_transition("kickoff_to_masters1")
        assert result.new_phase == SeasonPhase.MASTERS1
        assert state.calendar.current_phase == SeasonPhase.MASTERS1
        masters = state.tournaments[result.tournament_id]
        # Not before the Masters window opens (day 35 of the season)
        assert masters.start_date == date(2026, 2, 5)
        assert masters.end_date == date(2026, 2, 23)

    def test_second_call_is_idempotent(self, simulator):
        state, manager, engine = _setup(simulator)
        _play_kickoffs(state, manager)
        first = engine.execute_transition("kickoff_to_masters1")
        count = len(state.tournaments)
        second = engine.execute_transition("kickoff_to_masters1")
        assert second.success
        assert not second.created
        assert second.tournament_id == first.tournament_id
        assert len(state.tournaments) == count

    def test_hook_receives_new_tournament(self, simulator):
        state, manager, engine = _setup(simulator)
        seen = []
        engine.scheduler_hook = seen.append
        _play_kickoffs(state, manager)
        engine.execute_transition("kickoff_to_masters1")
        engine.execute_transition("kickoff_to_masters1")
        assert [t.name for t in seen] == ["VCT Masters Santiago 2026"]

    def test_no_records(self, simulator):
        _, _, engine = _setup(simulator)
        result = engine.execute_transition("kickoff_to_masters1")
        assert not result.success

    def test_partial_qualification_continues(self, simulator):
        state, manager, engine = _setup(simulator)
        _play_kickoffs(state, manager, REGIONS[:3])
        result = engine.execute_transition("kickoff_to_masters1")
        assert result.success
        masters = state.tournaments[result.tournament_id]
        assert len(masters.playoff_only_team_ids) == 3
        assert len(masters.swiss_team_ids) == 6

    def test_partial_qualification_strict(self, simulator):
        state, manager, engine = _setup(simulator, strict=True)
        _play_kickoffs(state, manager, REGIONS[:3])
        before = len(state.tournaments)
        result = engine.execute_transition("kickoff_to_masters1")
        assert not result.success
        assert "China" in result.error
        assert len(state.tournaments) == before
        assert state.calendar.current_phase == SeasonPhase.KICKOFF


# ═══════════════════════════════════════════════════════════════
# LEAGUE -> REGIONAL PLAYOFFS
# ═══════════════════════════════════════════════════════════════

class TestRegionalPlayoffs:
    def test_needs_region(self, simulator):
        _, _, engine = _setup(simulator)
        assert not engine.execute_transition("stage1_to_stage1_playoffs").success

    def test_needs_finished_league(self, simulator):
        state, manager, engine = _setup(simulator)
        assert not engine.execute_transition("stage1_to_stage1_playoffs", "EMEA").success
        manager.create_league("EMEA", "stage1", _ranking(state, "EMEA"))
        result = engine.execute_transition("stage1_to_stage1_playoffs", "EMEA")
        assert not result.success
        assert "not finished" in result.error

    def test_top_eight_seeded_by_standings(self, simulator):
        state, manager, engine = _setup(simulator)
        league = manager.create_league("EMEA", "stage1", _ranking(state, "EMEA")).tournament
        manager.simulate_tournament(league.id)
        result = engine.execute_transition("stage1_to_stage1_playoffs", "EMEA")
        assert result.success
        playoff = state.tournaments[result.tournament_id]
        assert playoff.name == "VCT EMEA Stage 1 Playoffs 2026"
        assert playoff.region == "EMEA"
        assert playoff.format == BracketFormat.DOUBLE_ELIM
        assert playoff.team_ids == [e.team_id for e in league.standings[:8]]
        assert [q.seed for q in result.qualified_teams] == list(range(1, 9))
        assert playoff.prize_pool.total == 200_000

    def test_regional_idempotency(self, simulator):
        state, manager, engine = _setup(simulator)
        league = manager.create_league("Pacific", "stage1", _ranking(state, "Pacific")).tournament
        manager.simulate_tournament(league.id)
        first = engine.execute_transition("stage1_to_stage1_playoffs", "Pacific")
        second = engine.execute_transition("stage1_to_stage1_playoffs", "Pacific")
        assert first.created and not second.created
        assert first.tournament_id == second.tournament_id

    def test_playoff_records_top_four(self, simulator):
        state, manager, engine = _setup(simulator)
        _play_stage(state, manager, engine, "stage1", ["Americas"])
        (record,) = state.records_for_phase("stage1_playoffs")
        assert [q.team_id for q in record.qualified_teams] == [
            "americas-01", "americas-02", "americas-03", "americas-04",
        ]


# ═══════════════════════════════════════════════════════════════
# INTERNATIONAL
# ═══════════════════════════════════════════════════════════════

class TestInternationalFromPlayoffs:
    def test_international_to_league_moves_phase_only(self, simulator):
        state, _, engine = _setup(simulator)
        before = len(state.tournaments)
        result = engine.execute_transition("masters1_to_stage1")
        assert result.success
        assert state.calendar.current_phase == SeasonPhase.STAGE1
        assert len(state.tournaments) == before

    def test_unknown_config(self, simulator):
        _, _, engine = _setup(simulator)
        result = engine.execute_transition("stage3_to_worlds")
        assert not result.success
        assert "stage3_to_worlds" in result.error

    def test_masters_london_entry(self, simulator):
        state, manager, engine = _setup(simulator)
        _play_stage(state, manager, engine, "stage1")
        result = engine.execute_transition("stage1_playoffs_to_masters2")
        assert result.success
        masters = state.tournaments[result.tournament_id]
        prefixes = [r.lower() for r in REGIONS]
        assert masters.playoff_only_team_ids == [f"{p}-01" for p in prefixes]
        assert masters.swiss_team_ids == [f"{p}-02" for p in prefixes] + [f"{p}-03" for p in prefixes]

    def test_champions_entry_and_run(self, simulator):
        state, manager, engine = _setup(simulator)
        _play_stage(state, manager, engine, "stage2")
        result = engine.execute_transition("stage2_playoffs_to_champions")
        assert result.success
        champions = state.tournaments[result.tournament_id]
        assert champions.competition_type == CompetitionType.CHAMPIONS
        assert len(champions.playoff_only_team_ids) == 4
        assert len(champions.swiss_team_ids) == 12
        assert state.calendar.current_phase == SeasonPhase.CHAMPIONS

        run = manager.simulate_tournament(champions.id)
        assert run.completed
        assert champions.champion_id in champions.playoff_only_team_ids
        assert sum(champions.prizes_awarded.values()) == 2_250_000

    @pytest.mark.parametrize("config_id", ["stage1_playoffs_to_masters2", "stage2_playoffs_to_champions"])
    def test_missing_playoffs(self, simulator, config_id):
        _, _, engine = _setup(simulator)
        assert not engine.execute_transition(config_id).success
