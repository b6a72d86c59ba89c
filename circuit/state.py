"""
Season State
============

The single state value every operation reads and writes: teams, tournaments,
qualification records and the calendar.  Managers receive it explicitly and
bump ``version`` on every mutation, so callers can tell when a snapshot went
stale and tests can build isolated states.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from circuit.config import INTERNATIONAL, REGIONS
from circuit.season_calendar import GameCalendar
from circuit.teams import Team

if TYPE_CHECKING:
    from circuit.tournament import QualificationRecord, Tournament


@dataclass
class SeasonState:
    season_year: int
    calendar: GameCalendar
    teams: Dict[str, Team] = field(default_factory=dict)
    tournaments: Dict[str, "Tournament"] = field(default_factory=dict)
    qualifications: Dict[str, "QualificationRecord"] = field(default_factory=dict)
    user_team_id: Optional[str] = None
    version: int = 0

    def bump(self) -> int:
        self.version += 1
        return self.version

    def get_team(self, team_id: str) -> Optional[Team]:
        return self.teams.get(team_id)

    def team_name(self, team_id: str) -> str:
        team = self.teams.get(team_id)
        return team.name if team else team_id

    def team_region(self, team_id: str) -> str:
        team = self.teams.get(team_id)
        return team.region if team else ""

    def regions(self) -> List[str]:
        """Regions with at least one team, in circuit order."""
        present = {t.region for t in self.teams.values()}
        ordered = [r for r in REGIONS if r in present]
        return ordered + sorted(present - set(ordered) - {INTERNATIONAL})

    def find_tournament_by_name(self, name: str) -> Optional["Tournament"]:
        for tournament in self.tournaments.values():
            if tournament.name == name:
                return tournament
        return None

    def tournaments_for_phase(self, phase: str, region: Optional[str] = None) -> List["Tournament"]:
        return [
            t for t in self.tournaments.values()
            if t.phase == phase and (region is None or t.region == region)
        ]

    def records_for_phase(self, phase: str) -> List["QualificationRecord"]:
        return [r for r in self.qualifications.values() if r.phase == phase]

    def to_dict(self) -> dict:
        return {
            "season_year": self.season_year,
            "version": self.version,
            "user_team_id": self.user_team_id,
            "calendar": self.calendar.to_dict(),
            "team_count": len(self.teams),
            "tournaments": [t.summary() for t in self.tournaments.values()],
        }
