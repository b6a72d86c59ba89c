"""Shared fixtures: hand-built team fields and a deterministic match simulator."""

from datetime import date

import pytest

from circuit.competition import MapResult, MatchResult
from circuit.config import REGIONS
from circuit.season_calendar import GameCalendar
from circuit.simulator import MatchSimulator
from circuit.state import SeasonState
from circuit.teams import Team


SEASON_START = date(2026, 1, 1)


class FavouriteSimulator(MatchSimulator):
    """Higher rating always wins 2-0 (13-7 on both maps)."""

    def simulate(self, team_a, team_b, roster_a, roster_b, strategy_a, strategy_b, context):
        a_wins = team_a.rating >= team_b.rating
        winner, loser = (team_a, team_b) if a_wins else (team_b, team_a)
        maps = [
            MapResult(name, 13 if a_wins else 7, 7 if a_wins else 13, winner.id)
            for name in ("Foundry", "Harbor")
        ]
        return MatchResult(
            winner_id=winner.id,
            loser_id=loser.id,
            score_team_a=2 if a_wins else 0,
            score_team_b=0 if a_wins else 2,
            maps=maps,
            team_a_id=team_a.id,
            team_b_id=team_b.id,
            match_id=context.match_id,
        )


def region_teams(region, count=12):
    """``count`` teams for ``region``; team 1 is the strongest."""
    prefix = region.lower()
    return {
        f"{prefix}-{i:02d}": Team(
            id=f"{prefix}-{i:02d}",
            name=f"{region} Team {i}",
            region=region,
            rating=100 - i,
            roster=[f"{prefix}{i}p{n}" for n in range(5)],
        )
        for i in range(1, count + 1)
    }


def build_state(regions=None, count=12, user_team_id=None, start=SEASON_START):
    teams = {}
    for region in regions or REGIONS:
        teams.update(region_teams(region, count))
    calendar = GameCalendar(current_date=start, current_season=start.year, season_start=start)
    return SeasonState(season_year=start.year, calendar=calendar, teams=teams, user_team_id=user_team_id)


@pytest.fixture
def simulator():
    return FavouriteSimulator()


@pytest.fixture
def state():
    """Four regions of twelve teams, no calendar events."""
    return build_state()
