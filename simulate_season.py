#!/usr/bin/env python3
"""
Headless season runner

Builds a full competitive season (four regions, twelve teams each) and plays
it from the first kickoff match to the Champions final.

Usage:
    python simulate_season.py [--seed N] [--year YYYY] [--user-team TEAM_ID] [--json OUT]

Examples:
    python simulate_season.py --seed 42
    python simulate_season.py --seed 7 --user-team emea_berlin_wolves --verbose
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from circuit import SeasonConfig, create_season


def main():
    """Run one season and print its champions and prize leaders."""

    parser = argparse.ArgumentParser(description='Simulate a full competitive season')
    parser.add_argument('--seed', type=int, default=None, help='Random seed for a reproducible season')
    parser.add_argument('--year', type=int, default=2026, help='Season year')
    parser.add_argument('--user-team', default=None, help='Team ID controlled by the user')
    parser.add_argument('--strict', action='store_true', help='Fail transitions on partial qualification')
    parser.add_argument('--json', default=None, help='Write the season summary to this file')
    parser.add_argument('--verbose', action='store_true', help='Log phase changes and transitions')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    config = SeasonConfig(
        season_year=args.year,
        start_date=date(args.year, 1, 1),
        strict_qualification=args.strict,
    )
    try:
        season = create_season(config, user_team_id=args.user_team, seed=args.seed)
    except ValueError as e:
        print(f"Could not build season: {e}")
        sys.exit(1)

    print(f"Simulating {args.year} season ({len(season.state.teams)} teams)...\n")
    days = season.run_to_end()
    print(f"Finished after {days} days in phase '{season.current_phase.value}'\n")

    print("Event champions:")
    for row in season.phase_champions():
        print(f"  {row['tournament']:<40} {row['champion']}")

    print("\nPrize money leaders:")
    for team in season.prize_leaders(10):
        print(f"  {team.name:<28} {team.region:<10} ${team.prize_money:>10,}  ({team.record})")

    world = season.world_champion()
    if world:
        print(f"\nWorld champion: {season.state.team_name(world)}")

    if args.json:
        output_path = Path(args.json)
        with open(output_path, 'w') as f:
            json.dump(season.summary(), f, indent=2)
        print(f"\nSaved summary to {output_path}")

    if not season.is_complete:
        sys.exit(2)


if __name__ == "__main__":
    main()
