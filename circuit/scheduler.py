"""
Calendar / Event Scheduler
==========================

Moves the season forward one day at a time.  Each day's events run in a
fixed order (tournament starts, salary, matches, optional activities,
tournament ends); other teams' matches are simulated and applied through the
tournament manager, and every newly ready match is put on the calendar at the
region's next match day.  After the events, the phase progression table is
checked and any transition that is due fires.

A required match for the user's team cannot be skipped.  ``advance(DAY)``
raises ``CalendarBlockedError`` while one is pending today; multi-day
advances stop on that day and report it in ``blocked_by``.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Callable, List, Optional, Set

from circuit.competition import (
    CalendarBlockedError,
    CompetitionType,
    MatchResult,
    MatchStatus,
    SeasonPhase,
    TournamentStatus,
)
from circuit.config import MAX_ADVANCE_DAYS, PHASE_PROGRESSION, REGIONAL_PHASES
from circuit.season_calendar import (
    CalendarEvent,
    EventType,
    get_season_phase,
    match_days_between,
    next_match_day,
)
from circuit.simulator import MatchSimulator
from circuit.state import SeasonState
from circuit.tournament import Tournament, TournamentManager, TournamentResult
from circuit.transitions import (
    TransitionConfig,
    TransitionEngine,
    TransitionResult,
    get_regional_playoff_transitions,
    get_transition_config,
)

_log = logging.getLogger("circuit.scheduler")

FinanceHook = Callable[[CalendarEvent, SeasonState], None]


class AdvanceUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    NEXT_MATCH = "next_match"


@dataclass
class AdvanceResult:
    new_date: date
    days_advanced: int = 0
    processed_events: List[CalendarEvent] = field(default_factory=list)
    skipped_events: List[CalendarEvent] = field(default_factory=list)
    match_results: List[MatchResult] = field(default_factory=list)
    transitions: List[TransitionResult] = field(default_factory=list)
    blocked_by: Optional[CalendarEvent] = None

    def to_dict(self) -> dict:
        return {
            "new_date": self.new_date.isoformat(),
            "days_advanced": self.days_advanced,
            "processed_events": [e.to_dict() for e in self.processed_events],
            "skipped_events": [e.to_dict() for e in self.skipped_events],
            "match_results": [r.to_dict() for r in self.match_results],
            "transitions": [t.to_dict() for t in self.transitions],
            "blocked_by": self.blocked_by.to_dict() if self.blocked_by else None,
        }


class CalendarScheduler:

    def __init__(
        self,
        state: SeasonState,
        tournaments: TournamentManager,
        transitions: TransitionEngine,
        simulator: Optional[MatchSimulator] = None,
        finance_hook: Optional[FinanceHook] = None,
    ):
        self.state = state
        self.tournaments = tournaments
        self.transitions = transitions
        self.simulator = simulator
        self.finance_hook = finance_hook
        if transitions.scheduler_hook is None:
            transitions.scheduler_hook = self.schedule_tournament

    @property
    def calendar(self):
        return self.state.calendar

    # ═══════════════════════════════════════════════════════════
    # SCHEDULING
    # ═══════════════════════════════════════════════════════════

    def _is_user_event(self, event: CalendarEvent) -> bool:
        user = self.state.user_team_id
        if user is None or event.type != EventType.MATCH:
            return False
        return user in (event.data.get("team_a_id"), event.data.get("team_b_id"))

    def _schedule_match(self, tournament: Tournament, match_id: str, day: date) -> Optional[CalendarEvent]:
        if match_id in self.calendar.scheduled_match_ids:
            return None
        match = tournament.find_match(match_id)
        if match is None:
            _log.error(f"Cannot schedule unknown match {match_id} of {tournament.name}")
            return None
        match.scheduled_date = day.isoformat()
        event = self.calendar.add_event(EventType.MATCH, day, {
            "tournament_id": tournament.id,
            "tournament_name": tournament.name,
            "match_id": match_id,
            "team_a_id": match.team_a_id,
            "team_b_id": match.team_b_id,
        })
        event.data["is_user_match"] = self._is_user_event(event)
        return event

    def schedule_tournament(self, tournament: Tournament) -> List[CalendarEvent]:
        """Put a tournament's start/end markers and ready matches on the calendar."""
        start = tournament.start_date or self.calendar.current_date
        created: List[CalendarEvent] = []
        marker = {"tournament_id": tournament.id, "tournament_name": tournament.name}
        created.append(self.calendar.add_event(EventType.TOURNAMENT_START, start, marker))
        if tournament.end_date is not None:
            created.append(self.calendar.add_event(EventType.TOURNAMENT_END, tournament.end_date, marker))

        if tournament.is_league and tournament.bracket is not None:
            rounds = tournament.bracket.upper
            days = match_days_between(tournament.region, start, len(rounds))
            for rnd, day in zip(rounds, days):
                for match in rnd.matches:
                    event = self._schedule_match(tournament, match.match_id, day)
                    if event is not None:
                        created.append(event)
        else:
            day = next_match_day(tournament.region, start)
            for match in tournament.ready_matches():
                event = self._schedule_match(tournament, match.match_id, day)
                if event is not None:
                    created.append(event)

        self.state.bump()
        _log.info(
            f"Scheduled {tournament.name}: {start.isoformat()} to "
            f"{tournament.end_date.isoformat() if tournament.end_date else '?'}"
        )
        return created

    def _schedule_follow_ups(self, tournament: Tournament, match_ids: List[str], after: date) -> None:
        day = next_match_day(tournament.region, after + timedelta(days=1))
        for match_id in match_ids:
            match = tournament.find_match(match_id)
            target = day
            if (match is not None and match.bracket_type == "grandfinal"
                    and tournament.end_date is not None and tournament.end_date > day):
                target = tournament.end_date
            self._schedule_match(tournament, match_id, target)

    # ═══════════════════════════════════════════════════════════
    # DAY PROCESSING
    # ═══════════════════════════════════════════════════════════

    def pending_user_match(self, day: Optional[date] = None) -> Optional[CalendarEvent]:
        """The unresolved required match for the user's team on ``day`` (default today)."""
        day = day or self.calendar.current_date
        for event in self.calendar.events_on(day):
            if event.required and self._is_user_event(event):
                return event
        return None

    def _play_background_match(self, event: CalendarEvent, result: AdvanceResult) -> None:
        tid = event.data.get("tournament_id")
        tournament = self.state.tournaments.get(tid)
        if tournament is None:
            _log.error(f"Match event {event.id} names unknown tournament {tid}")
            return
        if tournament.status == TournamentStatus.COMPLETED:
            _log.debug(f"Match event {event.id} belongs to finished {tournament.name}")
            return
        played = self.tournaments.simulate_match(tid, event.data["match_id"], self.simulator)
        if not played.success:
            _log.error(f"Match event {event.id} could not be played: {played.error}")
            return
        result.match_results.append(played.match_result)
        self._schedule_follow_ups(tournament, played.newly_ready, event.date)

    def _process_event(self, event: CalendarEvent, result: AdvanceResult) -> None:
        if event.type == EventType.TOURNAMENT_START:
            tournament = self.state.tournaments.get(event.data.get("tournament_id"))
            if tournament is not None and tournament.status == TournamentStatus.UPCOMING:
                self.tournaments.start_tournament(tournament.id)
        elif event.type == EventType.SALARY_PAYMENT:
            if self.finance_hook is not None:
                self.finance_hook(event, self.state)
        elif event.type == EventType.MATCH:
            self._play_background_match(event, result)
        elif event.type == EventType.TOURNAMENT_END:
            tournament = self.state.tournaments.get(event.data.get("tournament_id"))
            if tournament is not None and tournament.status != TournamentStatus.COMPLETED:
                _log.debug(f"{tournament.name} reached its end date still {tournament.status.value}")
        elif event.type == EventType.SEASON_END:
            _log.info(f"Season {self.calendar.current_season} ended")
        event.processed = True
        result.processed_events.append(event)

    def _process_day(self, result: AdvanceResult) -> Optional[CalendarEvent]:
        """Run today's events and move to tomorrow.  Returns a blocker instead if one appears."""
        today = self.calendar.current_date
        for event in self.calendar.events_on(today):
            if event.processed:
                continue
            if not event.required:
                event.processed = True
                result.skipped_events.append(event)
                continue
            self._process_event(event, result)

        result.transitions.extend(self.check_phase_progression())

        blocker = self.pending_user_match(today)
        if blocker is not None:
            return blocker

        self.calendar.current_date = today + timedelta(days=1)
        result.days_advanced += 1
        result.new_date = self.calendar.current_date
        self.state.bump()
        return None

    def _advance_days(self, days: int) -> AdvanceResult:
        result = AdvanceResult(new_date=self.calendar.current_date)
        for i in range(days):
            blocker = self.pending_user_match(self.calendar.current_date)
            if blocker is not None and i == 0:
                raise CalendarBlockedError(
                    f"User match {blocker.data.get('match_id')} on "
                    f"{blocker.date.isoformat()} must be played first",
                    event=blocker,
                )
            if blocker is None:
                blocker = self._process_day(result)
            if blocker is not None:
                result.blocked_by = blocker
                break
        return result

    def advance(self, unit: AdvanceUnit = AdvanceUnit.DAY) -> AdvanceResult:
        unit = AdvanceUnit(unit)
        if unit == AdvanceUnit.NEXT_MATCH:
            return self.advance_to_next_match()
        return self._advance_days(7 if unit == AdvanceUnit.WEEK else 1)

    def advance_to_next_match(self, max_days: int = MAX_ADVANCE_DAYS) -> AdvanceResult:
        """Advance until the user's team has a match today.  The match is not played."""
        result = AdvanceResult(new_date=self.calendar.current_date)
        for _ in range(max_days):
            blocker = self.pending_user_match(self.calendar.current_date)
            if blocker is not None:
                result.blocked_by = blocker
                break
            if not self.calendar.has_unprocessed_events():
                break
            blocker = self._process_day(result)
            if blocker is not None:
                result.blocked_by = blocker
                break
        return result

    # ═══════════════════════════════════════════════════════════
    # USER ACTIONS
    # ═══════════════════════════════════════════════════════════

    def play_user_match(self, event_id: str, result: Optional[MatchResult] = None) -> TournamentResult:
        """Resolve a user match event, with a supplied result or the simulator's."""
        event = self.calendar.get_event(event_id)
        if event is None:
            return TournamentResult(success=False, error=f"Event {event_id} not found")
        if event.type != EventType.MATCH:
            return TournamentResult(success=False, error=f"Event {event_id} is not a match")
        if event.processed:
            return TournamentResult(success=False, error=f"Event {event_id} was already played")

        tid = event.data.get("tournament_id")
        match_id = event.data.get("match_id")
        tournament = self.state.tournaments.get(tid)
        if tournament is not None and tournament.status == TournamentStatus.UPCOMING:
            self.tournaments.start_tournament(tid)
        if result is None:
            played = self.tournaments.simulate_match(tid, match_id, self.simulator)
        else:
            played = self.tournaments.advance_tournament(tid, match_id, result)
        if not played.success:
            return played

        event.processed = True
        self._schedule_follow_ups(played.tournament, played.newly_ready, event.date)
        self.state.bump()
        _log.info(f"User match {match_id} played: {played.match_result.winner_id} won")
        return played

    def mark_event_processed(self, event_id: str) -> bool:
        """Close an event without playing it.

        A tournament match that is still unplayed goes back on the calendar at
        the region's next match day, so its bracket can still finish.
        """
        event = self.calendar.get_event(event_id)
        if event is None:
            _log.warning(f"mark_event_processed: unknown event {event_id}")
            return False
        event.processed = True
        if event.type == EventType.MATCH:
            tournament = self.state.tournaments.get(event.data.get("tournament_id"))
            match_id = event.data.get("match_id")
            match = tournament.find_match(match_id) if tournament else None
            if (match is not None and match.status == MatchStatus.READY
                    and tournament.status != TournamentStatus.COMPLETED):
                self.calendar.scheduled_match_ids.discard(match_id)
                day = next_match_day(tournament.region, event.date + timedelta(days=1))
                self._schedule_match(tournament, match_id, day)
                _log.info(f"Match {match_id} closed without a result, moved to {day.isoformat()}")
        self.state.bump()
        return True

    def clear_tournament_events(self, tournament_id: str) -> int:
        """Close the pending match events of a tournament that finished off-calendar."""
        cleared = 0
        for event in self.calendar.events:
            if (event.type == EventType.MATCH and not event.processed
                    and event.data.get("tournament_id") == tournament_id):
                event.processed = True
                cleared += 1
        if cleared:
            self.state.bump()
        return cleared

    # ═══════════════════════════════════════════════════════════
    # PHASE PROGRESSION
    # ═══════════════════════════════════════════════════════════

    def _expected_regions(self, phase: SeasonPhase) -> Set[str]:
        """Regions that take part in a regional phase.

        Playoff phases expect every region whose stage league is big enough
        to fill the playoff; other phases expect the regions that were given
        a tournament (a short region has no kickoff).
        """
        for config in get_regional_playoff_transitions():
            if config.to_phase == phase:
                return {
                    t.region for t in self.state.tournaments_for_phase(config.qualification_source)
                    if t.competition_type == CompetitionType.STAGE_LEAGUE
                    and len(t.team_ids) >= config.teams_per_region
                }
        return {t.region for t in self.state.tournaments_for_phase(phase.value)}

    def _phase_complete(self, phase: SeasonPhase) -> bool:
        """Every tournament of the phase finished.  A phase with none is complete."""
        found = self.state.tournaments_for_phase(phase.value)
        if any(t.status != TournamentStatus.COMPLETED for t in found):
            return False
        if phase in REGIONAL_PHASES:
            return {t.region for t in found} >= self._expected_regions(phase)
        return True

    def _move_on(self, phase: SeasonPhase, reason: str) -> None:
        _log.error(f"{phase.value} event could not be formed ({reason}), season moves on without it")
        self.calendar.current_phase = phase
        self.state.bump()

    def _fire_regional(self, config: TransitionConfig) -> List[TransitionResult]:
        fired = []
        for region in self.state.regions():
            league = None
            for t in self.state.tournaments_for_phase(config.qualification_source, region):
                if t.competition_type == CompetitionType.STAGE_LEAGUE:
                    league = t
            if league is None or league.status != TournamentStatus.COMPLETED:
                continue
            if self.state.find_tournament_by_name(config.resolve_name(self.state.season_year, region)):
                continue
            fired.append(self.transitions.execute_transition(config.id, region))
        return fired

    def check_phase_progression(self) -> List[TransitionResult]:
        """Fire every transition whose source phase has finished."""
        phase = self.calendar.current_phase
        fired: List[TransitionResult] = []

        # Regions whose league finished after the phase already moved on
        for config in get_regional_playoff_transitions():
            if config.to_phase == phase:
                fired.extend(self._fire_regional(config))

        if phase == SeasonPhase.CHAMPIONS:
            if self._phase_complete(phase):
                _log.info("Champions complete, season moves to the offseason")
                self.calendar.current_phase = SeasonPhase.OFFSEASON
                self.state.bump()
            return fired

        entry = PHASE_PROGRESSION.get(phase)
        if entry is None:
            return fired
        config_id, per_region = entry
        config = get_transition_config(config_id)
        if config is None:
            _log.error(f"Phase progression names unknown transition {config_id}")
            return fired
        if per_region:
            fired.extend(self._fire_regional(config))
        elif self._phase_complete(phase):
            result = self.transitions.execute_transition(config_id)
            fired.append(result)
            # Source events are finished, so the failure is final
            if not result.success:
                self._move_on(config.to_phase, result.error or "transition failed")
        return fired

    def get_season_phase(self, on: Optional[date] = None) -> SeasonPhase:
        """Phase window containing ``on`` (default: today)."""
        start = self.calendar.season_start or self.calendar.current_date
        return get_season_phase(start, on or self.calendar.current_date)
