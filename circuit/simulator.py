"""
Match Simulator Interface
=========================

The progression core never computes a score itself.  It hands two teams,
their rosters and strategies to a ``MatchSimulator`` and gets a
``MatchResult`` back: one request per match, applied only after it returns.

``RatingMatchSimulator`` is the stand-in used when no richer simulator is
plugged in.  Each map is a race to 13 rounds (win by two in overtime) where
the round win probability leans toward the higher-rated team.
"""

import random
from dataclasses import dataclass
from typing import Dict, List, Optional

from circuit.competition import MapResult, MatchResult
from circuit.config import BEST_OF_DEFAULT
from circuit.teams import Team


MAP_POOL = ["Foundry", "Harbor", "Citadel", "Outpost", "Canal", "Summit", "Quarry"]

ROUNDS_TO_WIN = 13
MIN_ROUND_PROB = 0.25
MAX_ROUND_PROB = 0.75


@dataclass
class MatchContext:
    tournament_id: str = ""
    match_id: str = ""
    best_of: int = BEST_OF_DEFAULT
    is_playoff: bool = False
    stage: str = ""


class MatchSimulator:
    """Interface: turn two teams into a series result."""

    def simulate(
        self,
        team_a: Team,
        team_b: Team,
        roster_a: List[str],
        roster_b: List[str],
        strategy_a: Dict[str, str],
        strategy_b: Dict[str, str],
        context: MatchContext,
    ) -> MatchResult:
        raise NotImplementedError


class RatingMatchSimulator(MatchSimulator):

    def __init__(self, rng: Optional[random.Random] = None, rounds_to_win: int = ROUNDS_TO_WIN):
        self.rng = rng if rng is not None else random.Random()
        self.rounds_to_win = rounds_to_win

    def round_win_probability(self, team_a: Team, team_b: Team) -> float:
        p = 0.5 + (team_a.rating - team_b.rating) / 100.0
        return max(MIN_ROUND_PROB, min(MAX_ROUND_PROB, p))

    def _play_map(self, map_name: str, team_a: Team, team_b: Team, p_a: float) -> MapResult:
        a = b = 0
        target = self.rounds_to_win
        while True:
            if self.rng.random() < p_a:
                a += 1
            else:
                b += 1
            if (a >= target or b >= target) and abs(a - b) >= 2:
                break
        winner = team_a.id if a > b else team_b.id
        return MapResult(map_name=map_name, score_team_a=a, score_team_b=b, winner_id=winner)

    def simulate(self, team_a, team_b, roster_a, roster_b, strategy_a, strategy_b, context):
        p_a = self.round_win_probability(team_a, team_b)
        needed = context.best_of // 2 + 1
        map_order = self.rng.sample(MAP_POOL, min(context.best_of, len(MAP_POOL)))

        maps: List[MapResult] = []
        wins_a = wins_b = 0
        for map_name in map_order:
            result = self._play_map(map_name, team_a, team_b, p_a)
            maps.append(result)
            if result.winner_id == team_a.id:
                wins_a += 1
            else:
                wins_b += 1
            if wins_a == needed or wins_b == needed:
                break

        a_won = wins_a > wins_b
        return MatchResult(
            winner_id=team_a.id if a_won else team_b.id,
            loser_id=team_b.id if a_won else team_a.id,
            score_team_a=wins_a,
            score_team_b=wins_b,
            maps=maps,
            team_a_id=team_a.id,
            team_b_id=team_b.id,
            match_id=context.match_id,
        )
