#!/usr/bin/env python3
"""
Calendar & Scheduler Tests
==========================

Date helpers, the season skeleton, day processing order, user-match blocking
and the play/skip actions that clear a block.
"""

import random
from datetime import date, timedelta

import pytest

from circuit.competition import CalendarBlockedError, MatchResult, MatchStatus, SeasonPhase, TournamentStatus
from circuit.scheduler import AdvanceUnit, CalendarScheduler
from circuit.season_calendar import (
    EventType, GameCalendar, build_season_events, get_season_phase,
    match_days_between, next_match_day,
)
from circuit.tournament import TournamentManager
from circuit.transitions import TransitionEngine
from conftest import SEASON_START, build_state


USER = "americas-01"


def _scheduler(simulator, user_team_id=None, finance_hook=None):
    state = build_state(["Americas"], user_team_id=user_team_id)
    manager = TournamentManager(state, simulator=simulator, rng=random.Random(42))
    engine = TransitionEngine(state, manager)
    scheduler = CalendarScheduler(state, manager, engine, finance_hook=finance_hook)
    return state, manager, scheduler


def _league(state, manager, scheduler, start):
    teams = sorted(state.teams, key=lambda tid: -state.teams[tid].rating)
    league = manager.create_league("Americas", "stage1", teams, start_date=start).tournament
    scheduler.schedule_tournament(league)
    return league


# ═══════════════════════════════════════════════════════════════
# DATE HELPERS
# ═══════════════════════════════════════════════════════════════

class TestDateHelpers:
    def test_next_match_day(self):
        # 2026-01-01 is a Thursday
        assert next_match_day("Americas", date(2026, 1, 1)) == date(2026, 1, 1)
        assert next_match_day("Americas", date(2026, 1, 5)) == date(2026, 1, 8)
        assert next_match_day("EMEA", date(2026, 1, 3)) == date(2026, 1, 6)

    def test_match_days_between(self):
        days = match_days_between("Americas", date(2026, 1, 1), 5)
        assert days == [date(2026, 1, d) for d in (1, 2, 3, 4, 8)]

    def test_phase_windows(self):
        assert get_season_phase(SEASON_START, SEASON_START) == SeasonPhase.KICKOFF
        assert get_season_phase(SEASON_START, SEASON_START + timedelta(days=35)) == SeasonPhase.MASTERS1
        assert get_season_phase(SEASON_START, SEASON_START + timedelta(days=100)) == SeasonPhase.STAGE1_PLAYOFFS
        assert get_season_phase(SEASON_START, SEASON_START + timedelta(days=220)) == SeasonPhase.CHAMPIONS
        assert get_season_phase(SEASON_START, SEASON_START + timedelta(days=300)) == SeasonPhase.OFFSEASON


class TestSeasonSkeleton:
    def test_salary_runs_and_season_end(self):
        calendar = GameCalendar(current_date=SEASON_START, current_season=2026, season_start=SEASON_START)
        build_season_events(calendar, SEASON_START, 2026)
        salaries = [e for e in calendar.events if e.type == EventType.SALARY_PAYMENT]
        assert len(salaries) == 12
        assert all(e.date.day == 1 and e.required for e in salaries)
        (end,) = [e for e in calendar.events if e.type == EventType.SEASON_END]
        assert end.date == SEASON_START + timedelta(days=245)

    def test_weekly_activities_are_optional(self):
        calendar = GameCalendar(current_date=SEASON_START, current_season=2026, season_start=SEASON_START)
        build_season_events(calendar, SEASON_START, 2026)
        rest = [e for e in calendar.events if e.type == EventType.REST_DAY]
        assert rest and all(e.date.weekday() == 6 for e in rest)
        assert not any(e.required for e in rest)

    def test_same_day_processing_order(self):
        calendar = GameCalendar(current_date=SEASON_START, current_season=2026)
        calendar.add_event(EventType.TOURNAMENT_END, SEASON_START)
        calendar.add_event(EventType.MATCH, SEASON_START, {"match_id": "m1"})
        calendar.add_event(EventType.TOURNAMENT_START, SEASON_START)
        order = [e.type for e in calendar.events_on(SEASON_START)]
        assert order == [EventType.TOURNAMENT_START, EventType.MATCH, EventType.TOURNAMENT_END]
        assert "m1" in calendar.scheduled_match_ids


# ═══════════════════════════════════════════════════════════════
# SCHEDULING
# ═══════════════════════════════════════════════════════════════

class TestScheduling:
    def test_league_rounds_on_match_days(self, simulator):
        state, manager, scheduler = _scheduler(simulator)
        league = _league(state, manager, scheduler, SEASON_START)
        matches = [e for e in state.calendar.events if e.type == EventType.MATCH]
        assert len(matches) == 66
        days = sorted({e.date for e in matches})
        assert days == match_days_between("Americas", SEASON_START, 11)
        assert all(m.scheduled_date for m in league.all_matches())

    def test_scheduling_twice_adds_no_duplicate_matches(self, simulator):
        state, manager, scheduler = _scheduler(simulator)
        league = _league(state, manager, scheduler, SEASON_START)
        scheduler.schedule_tournament(league)
        matches = [e for e in state.calendar.events if e.type == EventType.MATCH]
        assert len(matches) == 66

    def test_background_matches_played(self, simulator):
        state, manager, scheduler = _scheduler(simulator)
        league = _league(state, manager, scheduler, SEASON_START)
        result = scheduler.advance(AdvanceUnit.DAY)
        assert result.days_advanced == 1
        assert state.calendar.current_date == SEASON_START + timedelta(days=1)
        assert len(result.match_results) == 6
        assert league.status == TournamentStatus.IN_PROGRESS

    def test_bracket_follow_ups_scheduled(self, simulator):
        state, manager, scheduler = _scheduler(simulator)
        teams = sorted(state.teams, key=lambda tid: -state.teams[tid].rating)[:4]
        cup = manager.create_tournament(
            "Cup", "stage_playoff", "single_elim", teams, "Americas", start_date=SEASON_START,
        ).tournament
        scheduler.schedule_tournament(cup)
        scheduler.advance(AdvanceUnit.DAY)
        final = cup.bracket.upper[-1].matches[0]
        assert final.scheduled_date == date(2026, 1, 2).isoformat()
        scheduler.advance(AdvanceUnit.DAY)
        assert cup.status == TournamentStatus.COMPLETED

    def test_off_calendar_simulation_clears_match_events(self, simulator):
        state, manager, scheduler = _scheduler(simulator)
        teams = sorted(state.teams, key=lambda tid: -state.teams[tid].rating)[:4]
        cup = manager.create_tournament(
            "Cup", "stage_playoff", "single_elim", teams, "Americas", start_date=SEASON_START,
        ).tournament
        scheduler.schedule_tournament(cup)
        assert manager.simulate_tournament(cup.id).completed
        assert scheduler.clear_tournament_events(cup.id) == 2
        result = scheduler.advance(AdvanceUnit.DAY)
        assert result.match_results == []


# ═══════════════════════════════════════════════════════════════
# ADVANCING
# ═══════════════════════════════════════════════════════════════

class TestAdvance:
    def test_optional_events_skipped(self, simulator):
        state, _, scheduler = _scheduler(simulator)
        training = state.calendar.add_event(EventType.TRAINING_AVAILABLE, SEASON_START)
        result = scheduler.advance(AdvanceUnit.DAY)
        assert training in result.skipped_events
        assert training.processed

    def test_week(self, simulator):
        state, _, scheduler = _scheduler(simulator)
        result = scheduler.advance(AdvanceUnit.WEEK)
        assert result.days_advanced == 7
        assert state.calendar.current_date == SEASON_START + timedelta(days=7)

    def test_salary_goes_to_finance_hook(self, simulator):
        paid = []
        state, _, scheduler = _scheduler(simulator, finance_hook=lambda event, st: paid.append(event))
        salary = state.calendar.add_event(EventType.SALARY_PAYMENT, SEASON_START, {"month": 1})
        scheduler.advance(AdvanceUnit.DAY)
        assert paid == [salary]

    def test_version_moves_with_each_day(self, simulator):
        state, _, scheduler = _scheduler(simulator)
        before = state.version
        scheduler.advance(AdvanceUnit.DAY)
        assert state.version > before

    def test_scheduler_phase_lookup(self, simulator):
        state, _, scheduler = _scheduler(simulator)
        assert scheduler.get_season_phase(SEASON_START + timedelta(days=60)) == SeasonPhase.STAGE1


class TestUserMatchBlocking:
    def test_required_user_match_blocks_day(self, simulator):
        state, _, scheduler = _scheduler(simulator, user_team_id=USER)
        event = state.calendar.add_event(EventType.MATCH, SEASON_START, {
            "match_id": "friendly-1", "team_a_id": USER, "team_b_id": "americas-02",
        })
        with pytest.raises(CalendarBlockedError) as exc:
            scheduler.advance(AdvanceUnit.DAY)
        assert exc.value.event is event
        assert state.calendar.current_date == SEASON_START

        assert scheduler.mark_event_processed(event.id)
        result = scheduler.advance(AdvanceUnit.DAY)
        assert result.days_advanced == 1
        assert state.calendar.current_date == SEASON_START + timedelta(days=1)

    def test_week_stops_on_user_match_day(self, simulator):
        state, manager, scheduler = _scheduler(simulator, user_team_id=USER)
        _league(state, manager, scheduler, date(2026, 1, 4))
        result = scheduler.advance(AdvanceUnit.WEEK)
        assert result.days_advanced == 3
        assert state.calendar.current_date == date(2026, 1, 4)
        assert result.blocked_by is not None
        assert result.blocked_by.data["is_user_match"]

    def test_next_match_stops_without_playing(self, simulator):
        state, manager, scheduler = _scheduler(simulator, user_team_id=USER)
        _league(state, manager, scheduler, date(2026, 1, 4))
        result = scheduler.advance(AdvanceUnit.NEXT_MATCH)
        pending = scheduler.pending_user_match()
        assert pending is not None
        assert result.blocked_by is pending
        assert not pending.processed

    def test_play_user_match_clears_block(self, simulator):
        state, manager, scheduler = _scheduler(simulator, user_team_id=USER)
        league = _league(state, manager, scheduler, SEASON_START)
        pending = scheduler.pending_user_match()
        played = scheduler.play_user_match(pending.id)
        assert played.success
        assert pending.processed
        assert scheduler.pending_user_match() is None
        assert league.status == TournamentStatus.IN_PROGRESS

        result = scheduler.advance(AdvanceUnit.DAY)
        assert result.days_advanced == 1
        assert len(result.match_results) == 5

    def test_supplied_result_is_applied(self, simulator):
        state, manager, scheduler = _scheduler(simulator, user_team_id=USER)
        _league(state, manager, scheduler, SEASON_START)
        pending = scheduler.pending_user_match()
        opponent = pending.data["team_b_id"] if pending.data["team_a_id"] == USER else pending.data["team_a_id"]
        played = scheduler.play_user_match(pending.id, MatchResult(winner_id=opponent, loser_id=USER))
        assert played.success
        assert state.teams[USER].losses == 1
        assert not scheduler.play_user_match(pending.id).success

    def test_closing_unplayed_match_requeues_it(self, simulator):
        state, manager, scheduler = _scheduler(simulator, user_team_id=USER)
        league = _league(state, manager, scheduler, SEASON_START)
        pending = scheduler.pending_user_match()
        match_id = pending.data["match_id"]

        assert scheduler.mark_event_processed(pending.id)
        assert league.find_match(match_id).status == MatchStatus.READY
        (requeued,) = [
            e for e in state.calendar.events
            if e.data.get("match_id") == match_id and not e.processed
        ]
        assert requeued.date == date(2026, 1, 2)
        assert match_id in state.calendar.scheduled_match_ids

        scheduler.advance(AdvanceUnit.DAY)
        assert scheduler.play_user_match(requeued.id).success
        assert league.find_match(match_id).status == MatchStatus.COMPLETED

    def test_closing_played_match_adds_nothing(self, simulator):
        state, manager, scheduler = _scheduler(simulator, user_team_id=USER)
        _league(state, manager, scheduler, SEASON_START)
        pending = scheduler.pending_user_match()
        assert scheduler.play_user_match(pending.id).success
        before = len(state.calendar.events)
        assert scheduler.mark_event_processed(pending.id)
        assert len(state.calendar.events) == before

    def test_play_rejects_non_match_event(self, simulator):
        state, _, scheduler = _scheduler(simulator, user_team_id=USER)
        rest = state.calendar.add_event(EventType.REST_DAY, SEASON_START)
        assert not scheduler.play_user_match(rest.id).success
        assert not scheduler.play_user_match("missing").success
