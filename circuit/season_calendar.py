"""
Season Calendar
===============

The calendar record (current date, season, phase, dated events) and the
date arithmetic the scheduler leans on: weekly match days per region, phase
windows, and the season skeleton (salary runs, weekly activities, the
season-end marker) generated at season start.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from circuit.competition import SeasonPhase
from circuit.config import (
    PHASE_WINDOWS,
    REST_WEEKDAY,
    SALARY_DAY_OF_MONTH,
    SCRIM_WEEKDAY,
    TRAINING_WEEKDAY,
    match_days_for,
)


class EventType(str, Enum):
    MATCH = "match"
    TRAINING_AVAILABLE = "training_available"
    SCRIM_AVAILABLE = "scrim_available"
    SALARY_PAYMENT = "salary_payment"
    REST_DAY = "rest_day"
    TOURNAMENT_START = "tournament_start"
    TOURNAMENT_END = "tournament_end"
    SEASON_END = "season_end"


REQUIRED_EVENT_TYPES = {
    EventType.MATCH,
    EventType.SALARY_PAYMENT,
    EventType.TOURNAMENT_START,
    EventType.TOURNAMENT_END,
    EventType.SEASON_END,
}

# Same-day processing order: tournaments open before their matches are
# played, and close after.
EVENT_PRIORITY: Dict[EventType, int] = {
    EventType.TOURNAMENT_START: 0,
    EventType.SALARY_PAYMENT: 1,
    EventType.MATCH: 2,
    EventType.TRAINING_AVAILABLE: 3,
    EventType.SCRIM_AVAILABLE: 3,
    EventType.REST_DAY: 3,
    EventType.TOURNAMENT_END: 4,
    EventType.SEASON_END: 5,
}


@dataclass
class CalendarEvent:
    id: str
    type: EventType
    date: date
    data: Dict[str, Any] = field(default_factory=dict)
    processed: bool = False
    required: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "date": self.date.isoformat(),
            "data": dict(self.data),
            "processed": self.processed,
            "required": self.required,
        }


@dataclass
class GameCalendar:
    current_date: date
    current_season: int
    current_phase: SeasonPhase = SeasonPhase.KICKOFF
    season_start: Optional[date] = None
    events: List[CalendarEvent] = field(default_factory=list)
    scheduled_match_ids: Set[str] = field(default_factory=set)
    _next_id: int = 0

    def add_event(
        self,
        event_type: EventType,
        on: date,
        data: Optional[Dict[str, Any]] = None,
        required: Optional[bool] = None,
    ) -> CalendarEvent:
        self._next_id += 1
        event = CalendarEvent(
            id=f"{event_type.value}-{self._next_id}",
            type=event_type,
            date=on,
            data=dict(data or {}),
            required=event_type in REQUIRED_EVENT_TYPES if required is None else required,
        )
        self.events.append(event)
        if event_type == EventType.MATCH and event.data.get("match_id"):
            self.scheduled_match_ids.add(event.data["match_id"])
        return event

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        for event in self.events:
            if event.id == event_id:
                return event
        return None

    def events_on(self, day: date, include_processed: bool = False) -> List[CalendarEvent]:
        todays = [
            e for e in self.events
            if e.date == day and (include_processed or not e.processed)
        ]
        return sorted(todays, key=lambda e: (EVENT_PRIORITY[e.type], self._event_seq(e)))

    def upcoming(self, limit: int = 10, types: Optional[Iterable[EventType]] = None) -> List[CalendarEvent]:
        wanted = set(types) if types else None
        found = [
            e for e in self.events
            if not e.processed and e.date >= self.current_date
            and (wanted is None or e.type in wanted)
        ]
        found.sort(key=lambda e: (e.date, EVENT_PRIORITY[e.type], self._event_seq(e)))
        return found[:limit]

    def has_unprocessed_events(self) -> bool:
        return any(not e.processed and e.date >= self.current_date for e in self.events)

    @staticmethod
    def _event_seq(event: CalendarEvent) -> int:
        return int(event.id.rsplit("-", 1)[-1])

    def to_dict(self) -> dict:
        return {
            "current_date": self.current_date.isoformat(),
            "current_season": self.current_season,
            "current_phase": self.current_phase.value,
            "season_start": self.season_start.isoformat() if self.season_start else None,
            "event_count": len(self.events),
            "pending_events": sum(1 for e in self.events if not e.processed),
        }


# ═══════════════════════════════════════════════════════════════
# DATE HELPERS
# ═══════════════════════════════════════════════════════════════

def next_match_day(region: str, on_or_after: date) -> date:
    days = match_days_for(region)
    day = on_or_after
    for _ in range(7):
        if day.weekday() in days:
            return day
        day += timedelta(days=1)
    return on_or_after


def match_days_between(region: str, start: date, count: int) -> List[date]:
    """The first ``count`` match days for ``region`` on or after ``start``."""
    days = []
    day = next_match_day(region, start)
    while len(days) < count:
        days.append(day)
        day = next_match_day(region, day + timedelta(days=1))
    return days


def get_season_phase(season_start: date, on: date) -> SeasonPhase:
    offset = (on - season_start).days
    for window in PHASE_WINDOWS:
        if window.start_offset <= offset < window.start_offset + window.duration_days:
            return window.phase
    return SeasonPhase.OFFSEASON


def build_season_events(calendar: GameCalendar, season_start: date, season_year: int) -> List[CalendarEvent]:
    """Lay down the season skeleton: salary runs, weekly activities, season end."""
    created: List[CalendarEvent] = []
    season_end = season_start + timedelta(days=PHASE_WINDOWS[-1].start_offset)

    # Monthly salary runs for twelve months
    year, month = season_start.year, season_start.month
    for _ in range(12):
        payday = date(year, month, SALARY_DAY_OF_MONTH)
        if payday >= season_start:
            created.append(calendar.add_event(
                EventType.SALARY_PAYMENT, payday, {"month": month, "year": year},
            ))
        month += 1
        if month > 12:
            month, year = 1, year + 1

    day = season_start
    while day < season_end:
        weekday = day.weekday()
        if weekday == REST_WEEKDAY:
            created.append(calendar.add_event(EventType.REST_DAY, day, {"description": "Team recovery"}))
        elif weekday == TRAINING_WEEKDAY:
            created.append(calendar.add_event(EventType.TRAINING_AVAILABLE, day))
        elif weekday == SCRIM_WEEKDAY:
            created.append(calendar.add_event(EventType.SCRIM_AVAILABLE, day))
        day += timedelta(days=1)

    created.append(calendar.add_event(
        EventType.SEASON_END, season_end, {"season": season_year},
    ))
    return created
