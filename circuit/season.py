"""
Season Orchestrator
===================

Builds a ready-to-play competitive season and wires its parts together:

  SeasonState         teams, tournaments, qualification records, calendar
  TournamentManager   bracket lifecycle and prize payouts
  TransitionEngine    phase-to-phase qualification
  CalendarScheduler   day-by-day processing

At season start every region gets a triple-elimination kickoff (top four
teams by rating seeded 1-4, the rest drawn) and both round-robin stage
leagues, each on its phase window.  Regional playoffs and the international
events are created later by the transition engine as phases finish.
"""

import logging
import random
from datetime import timedelta
from typing import Dict, List, Optional

from circuit.competition import CompetitionType, SeasonPhase, TournamentStatus
from circuit.config import KICKOFF_TEAMS, MAX_ADVANCE_DAYS, WINDOW_BY_PHASE, SeasonConfig
from circuit.scheduler import AdvanceResult, AdvanceUnit, CalendarScheduler, FinanceHook
from circuit.season_calendar import GameCalendar, build_season_events
from circuit.simulator import MatchSimulator
from circuit.state import SeasonState
from circuit.teams import Team, generate_all_teams, rank_by_rating, teams_in_region
from circuit.tournament import Tournament, TournamentManager
from circuit.transitions import TransitionEngine

_log = logging.getLogger("circuit.season")

LEAGUE_STAGES = [("stage1", SeasonPhase.STAGE1), ("stage2", SeasonPhase.STAGE2)]


class Season:
    """One competitive season across every region."""

    def __init__(
        self,
        config: Optional[SeasonConfig] = None,
        teams: Optional[Dict[str, Team]] = None,
        user_team_id: Optional[str] = None,
        rng: Optional[random.Random] = None,
        simulator: Optional[MatchSimulator] = None,
        finance_hook: Optional[FinanceHook] = None,
    ):
        if rng is None:
            rng = random.Random()
        self.config = config or SeasonConfig()
        self.rng = rng

        if teams is None:
            teams = generate_all_teams(self.config.regions, self.config.teams_per_region, rng)
        if user_team_id is not None and user_team_id not in teams:
            raise ValueError(f"User team {user_team_id} is not in the season's team list")

        calendar = GameCalendar(
            current_date=self.config.start_date,
            current_season=self.config.season_year,
            current_phase=SeasonPhase.KICKOFF,
            season_start=self.config.start_date,
        )
        self.state = SeasonState(
            season_year=self.config.season_year,
            calendar=calendar,
            teams=dict(teams),
            user_team_id=user_team_id,
        )
        self.tournaments = TournamentManager(self.state, simulator=simulator, rng=rng)
        self.transitions = TransitionEngine(
            self.state, self.tournaments, strict_qualification=self.config.strict_qualification,
        )
        self.scheduler = CalendarScheduler(
            self.state, self.tournaments, self.transitions, finance_hook=finance_hook,
        )
        self._bootstrap()

    def _bootstrap(self):
        start = self.config.start_date
        build_season_events(self.state.calendar, start, self.config.season_year)

        for region in self.state.regions():
            ranked = [t.id for t in rank_by_rating(teams_in_region(self.state.teams, region))]

            if len(ranked) == KICKOFF_TEAMS:
                kickoff = self.tournaments.create_kickoff(
                    region, ranked, start_date=start, prize_total=self.config.kickoff_prize_pool,
                )
                if kickoff.success:
                    self.scheduler.schedule_tournament(kickoff.tournament)
            else:
                _log.warning(f"{region} has {len(ranked)} teams; kickoff needs {KICKOFF_TEAMS}, skipped")

            for stage, phase in LEAGUE_STAGES:
                window = WINDOW_BY_PHASE[phase]
                league_start = start + timedelta(days=window.start_offset)
                league = self.tournaments.create_league(
                    region, stage, ranked,
                    start_date=league_start,
                    end_date=league_start + timedelta(days=window.duration_days),
                )
                if league.success:
                    self.scheduler.schedule_tournament(league.tournament)

        _log.info(
            f"Season {self.config.season_year} ready: {len(self.state.teams)} teams, "
            f"{len(self.state.tournaments)} tournaments, {len(self.state.calendar.events)} events"
        )

    # ── driving ─────────────────────────────────────────────────

    @property
    def current_phase(self) -> SeasonPhase:
        return self.state.calendar.current_phase

    @property
    def is_complete(self) -> bool:
        return self.current_phase == SeasonPhase.OFFSEASON

    def advance(self, unit: AdvanceUnit = AdvanceUnit.DAY) -> AdvanceResult:
        return self.scheduler.advance(unit)

    def run_to_end(self, max_days: int = MAX_ADVANCE_DAYS) -> int:
        """Headless run: play every match, the user's included, until the offseason.

        Returns the number of days advanced.
        """
        days = 0
        for _ in range(max_days * 2):
            if self.is_complete or days >= max_days:
                break
            pending = self.scheduler.pending_user_match()
            if pending is not None:
                played = self.scheduler.play_user_match(pending.id)
                if not played.success:
                    _log.error(f"Auto-play of {pending.id} failed: {played.error}")
                    self.scheduler.mark_event_processed(pending.id)
                continue
            if not self.state.calendar.has_unprocessed_events():
                break
            days += self.scheduler.advance(AdvanceUnit.DAY).days_advanced
        if not self.is_complete:
            _log.warning(f"Season stopped in {self.current_phase.value} after {days} days")
        return days

    # ── reporting ───────────────────────────────────────────────

    def completed_events(self) -> List[Tournament]:
        """Finished tournaments other than stage leagues, in start order."""
        done = [
            t for t in self.state.tournaments.values()
            if t.status == TournamentStatus.COMPLETED and t.competition_type != CompetitionType.STAGE_LEAGUE
        ]
        return sorted(done, key=lambda t: (t.start_date or self.config.start_date, t.name))

    def phase_champions(self) -> List[dict]:
        return [
            {
                "tournament": t.name,
                "phase": t.phase,
                "champion_id": t.champion_id,
                "champion": self.state.team_name(t.champion_id) if t.champion_id else None,
            }
            for t in self.completed_events()
        ]

    def world_champion(self) -> Optional[str]:
        for t in self.state.tournaments_for_phase(SeasonPhase.CHAMPIONS.value):
            if t.status == TournamentStatus.COMPLETED:
                return t.champion_id
        return None

    def prize_leaders(self, limit: int = 10) -> List[Team]:
        return sorted(self.state.teams.values(), key=lambda t: (-t.prize_money, t.name))[:limit]

    def summary(self) -> dict:
        return {
            "season_year": self.config.season_year,
            "current_date": self.state.calendar.current_date.isoformat(),
            "current_phase": self.current_phase.value,
            "champions": self.phase_champions(),
            "world_champion": self.world_champion(),
        }


def create_season(
    config: Optional[SeasonConfig] = None,
    teams: Optional[Dict[str, Team]] = None,
    user_team_id: Optional[str] = None,
    seed: Optional[int] = None,
    simulator: Optional[MatchSimulator] = None,
) -> Season:
    """Build a season; a seed makes team generation, draws and results reproducible."""
    rng = random.Random(seed) if seed is not None else random.Random()
    return Season(config=config, teams=teams, user_team_id=user_team_id, rng=rng, simulator=simulator)
