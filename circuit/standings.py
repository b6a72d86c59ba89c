"""
League Standings
================

Win/loss/round-differential bookkeeping shared by round-robin leagues and the
tournament manager.

Ranking key: wins desc, round diff desc, map diff desc.  Teams still level are
ordered by head-to-head wins inside the tied group, then by their order in the
tournament's team list.  Teams level on every key including head-to-head share
the better placement ("1, 2, 2, 4").
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from circuit.competition import BracketMatch, MatchResult, MatchStatus


@dataclass
class StandingsEntry:
    team_id: str
    wins: int = 0
    losses: int = 0
    round_diff: int = 0
    map_diff: int = 0
    placement: int = 0

    @property
    def played(self) -> int:
        return self.wins + self.losses

    def sort_key(self) -> Tuple[int, int, int]:
        return (-self.wins, -self.round_diff, -self.map_diff)

    def to_dict(self) -> dict:
        return {
            "team_id": self.team_id,
            "wins": self.wins,
            "losses": self.losses,
            "round_diff": self.round_diff,
            "map_diff": self.map_diff,
            "placement": self.placement,
        }


def empty_table(team_ids: Iterable[str]) -> Dict[str, StandingsEntry]:
    return {tid: StandingsEntry(team_id=tid) for tid in team_ids}


def apply_result(table: Dict[str, StandingsEntry], result: MatchResult) -> None:
    """Fold one completed series into ``table`` in place."""
    for team_id in (result.winner_id, result.loser_id):
        entry = table.get(team_id)
        if entry is None:
            entry = StandingsEntry(team_id=team_id)
            table[team_id] = entry
        if team_id == result.winner_id:
            entry.wins += 1
        else:
            entry.losses += 1
        entry.round_diff += result.round_diff_for(team_id)
        entry.map_diff += result.map_diff_for(team_id)


def completed_results(matches: Iterable[BracketMatch]) -> List[MatchResult]:
    results = []
    for m in matches:
        if m.status != MatchStatus.COMPLETED or m.is_bye or m.winner_id is None:
            continue
        if m.result is not None:
            results.append(m.result)
        else:
            results.append(MatchResult(
                winner_id=m.winner_id, loser_id=m.loser_id,
                score_team_a=1 if m.winner_id == m.team_a_id else 0,
                score_team_b=1 if m.winner_id == m.team_b_id else 0,
                team_a_id=m.team_a_id or "", team_b_id=m.team_b_id or "",
                match_id=m.match_id,
            ))
    return results


def fold_standings(team_ids: List[str], results: Iterable[MatchResult]) -> Dict[str, StandingsEntry]:
    table = empty_table(team_ids)
    for result in results:
        apply_result(table, result)
    return table


def _head_to_head(results: Iterable[MatchResult]) -> Dict[Tuple[str, str], int]:
    h2h: Dict[Tuple[str, str], int] = {}
    for r in results:
        key = (r.winner_id, r.loser_id)
        h2h[key] = h2h.get(key, 0) + 1
    return h2h


def rank_standings(
    table: Dict[str, StandingsEntry],
    team_ids: List[str],
    results: Iterable[MatchResult],
) -> List[StandingsEntry]:
    """Order ``table`` and assign 1-indexed placements."""
    order = {tid: i for i, tid in enumerate(team_ids)}
    h2h = _head_to_head(results)

    def _input_index(entry: StandingsEntry) -> int:
        return order.get(entry.team_id, len(order))

    base = sorted(table.values(), key=lambda e: (e.sort_key(), _input_index(e)))

    ranked: List[StandingsEntry] = []
    shared: List[Tuple[int, ...]] = []
    i = 0
    while i < len(base):
        j = i
        while j < len(base) and base[j].sort_key() == base[i].sort_key():
            j += 1
        group = base[i:j]
        group_ids = {e.team_id for e in group}

        def _h2h_wins(entry: StandingsEntry) -> int:
            return sum(h2h.get((entry.team_id, other), 0) for other in group_ids if other != entry.team_id)

        group.sort(key=lambda e: (-_h2h_wins(e), _input_index(e)))
        for entry in group:
            ranked.append(entry)
            shared.append(entry.sort_key() + (_h2h_wins(entry),))
        i = j

    for idx, entry in enumerate(ranked):
        if idx > 0 and shared[idx] == shared[idx - 1]:
            entry.placement = ranked[idx - 1].placement
        else:
            entry.placement = idx + 1
    return ranked


def standings_from_matches(team_ids: List[str], matches: Iterable[BracketMatch]) -> List[StandingsEntry]:
    results = completed_results(matches)
    return rank_standings(fold_standings(team_ids, results), team_ids, results)
