"""
Teams
=====

Organizations competing in the circuit, their running season record, and the
generator that fills each region with a field of teams when no roster data is
supplied.

This is the only record the progression core writes back to: win/loss and
round/map bookkeeping after each series, and prize money at the end of an
event.
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from circuit.config import REGIONS, TEAMS_PER_REGION


ROSTER_SIZE = 5

STRATEGY_STYLES = ["aggressive", "tactical", "default", "defensive", "flex"]

REGION_CITIES: Dict[str, List[str]] = {
    "Americas": [
        "Toronto", "Sao Paulo", "Los Angeles", "Santiago", "Atlanta", "Mexico City",
        "Seattle", "Buenos Aires", "Chicago", "Bogota", "Miami", "Vancouver",
    ],
    "EMEA": [
        "Berlin", "Paris", "Istanbul", "Madrid", "Warsaw", "Stockholm",
        "Kyiv", "Milan", "Copenhagen", "Riyadh", "Lisbon", "Prague",
    ],
    "Pacific": [
        "Seoul", "Tokyo", "Manila", "Jakarta", "Bangkok", "Singapore",
        "Osaka", "Busan", "Sydney", "Ho Chi Minh", "Mumbai", "Taipei",
    ],
    "China": [
        "Shanghai", "Beijing", "Chengdu", "Shenzhen", "Hangzhou", "Wuhan",
        "Guangzhou", "Xi'an", "Nanjing", "Chongqing", "Suzhou", "Tianjin",
    ],
}

TEAM_MASCOTS = [
    "Vipers", "Phantoms", "Sentinels", "Wolves", "Ravens", "Titans",
    "Comets", "Foxes", "Cyclones", "Dragons", "Owls", "Hornets",
]

HANDLE_PARTS = [
    "ace", "blitz", "cipher", "drift", "echo", "flux", "ghost", "halo",
    "ion", "jolt", "kite", "lumen", "mako", "nova", "onyx", "pulse",
    "quill", "rift", "sable", "trace", "umbra", "vex", "wisp", "zen",
]


@dataclass
class Team:
    id: str
    name: str
    region: str
    rating: int = 70
    roster: List[str] = field(default_factory=list)
    strategy: Dict[str, str] = field(default_factory=dict)
    wins: int = 0
    losses: int = 0
    round_diff: int = 0
    map_diff: int = 0
    prize_money: int = 0

    @property
    def record(self) -> str:
        return f"{self.wins}-{self.losses}"

    def record_series(self, won: bool, round_diff: int, map_diff: int):
        if won:
            self.wins += 1
        else:
            self.losses += 1
        self.round_diff += round_diff
        self.map_diff += map_diff

    def credit_prize(self, amount: int):
        self.prize_money += amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "region": self.region,
            "rating": self.rating,
            "roster": list(self.roster),
            "strategy": dict(self.strategy),
            "wins": self.wins,
            "losses": self.losses,
            "round_diff": self.round_diff,
            "map_diff": self.map_diff,
            "prize_money": self.prize_money,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Team":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            region=data.get("region", ""),
            rating=int(data.get("rating", 70)),
            roster=list(data.get("roster", [])),
            strategy=dict(data.get("strategy", {})),
            wins=int(data.get("wins", 0)),
            losses=int(data.get("losses", 0)),
            round_diff=int(data.get("round_diff", 0)),
            map_diff=int(data.get("map_diff", 0)),
            prize_money=int(data.get("prize_money", 0)),
        )


def _slug(text: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in text.lower()).strip("_")


def _generate_roster(rng: random.Random) -> List[str]:
    handles = set()
    while len(handles) < ROSTER_SIZE:
        handles.add(rng.choice(HANDLE_PARTS) + str(rng.randint(1, 99)))
    return sorted(handles)


def generate_region_teams(
    region: str,
    count: int = TEAMS_PER_REGION,
    rng: Optional[random.Random] = None,
) -> List[Team]:
    """Generate ``count`` teams for ``region`` with ratings spread 60-95."""
    if rng is None:
        rng = random.Random()

    cities = list(REGION_CITIES.get(region, REGION_CITIES["Americas"]))
    mascots = list(TEAM_MASCOTS)
    rng.shuffle(cities)
    rng.shuffle(mascots)

    teams = []
    for i in range(count):
        city = cities[i % len(cities)]
        mascot = mascots[i % len(mascots)]
        name = f"{city} {mascot}"
        if i >= len(cities):
            name = f"{name} {i // len(cities) + 1}"
        teams.append(Team(
            id=f"{_slug(region)}_{_slug(name)}",
            name=name,
            region=region,
            rating=rng.randint(60, 95),
            roster=_generate_roster(rng),
            strategy={"style": rng.choice(STRATEGY_STYLES)},
        ))
    return teams


def generate_all_teams(
    regions: Optional[List[str]] = None,
    teams_per_region: int = TEAMS_PER_REGION,
    rng: Optional[random.Random] = None,
) -> Dict[str, Team]:
    if rng is None:
        rng = random.Random()
    teams: Dict[str, Team] = {}
    for region in regions or REGIONS:
        for team in generate_region_teams(region, teams_per_region, rng):
            teams[team.id] = team
    return teams


def teams_in_region(teams: Dict[str, Team], region: str) -> List[Team]:
    return [t for t in teams.values() if t.region == region]


def rank_by_rating(teams: List[Team]) -> List[Team]:
    return sorted(teams, key=lambda t: (-t.rating, t.name))
