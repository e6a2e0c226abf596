from __future__ import annotations

import argparse
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

import pandas as pd

from hornets_dashboard.aggregation import game_log_frame, game_log_table
from hornets_dashboard.config import settings
from hornets_dashboard.stats_client import BallDontLieClient, StatsAPIError

TABLE_COLUMNS = {
    "game_id": "Game ID",
    "date": "Date",
    "player": "Player",
    "team": "Team",
    "opponent": "Opponent",
    "pts": "PTS",
    "reb": "REB",
    "ast": "AST",
    "stl": "STL",
    "blk": "BLK",
    "fg_pct": "FG%",
    "fg3_pct": "3P%",
    "ft_pct": "FT%",
    "min": "MIN",
    "tov": "TOV",
    "pf": "PF",
}


def print_teams(client: BallDontLieClient, team_name: str) -> None:
    teams = client.list_teams()
    print("All NBA Teams:")
    for team in teams:
        print(f"ID: {team.id}, Name: {team.full_name}, Abbreviation: {team.abbreviation}")

    team = client.find_team(team_name)
    print(f"\n{team_name} Details:")
    print(team.model_dump() if team else "Not found")


def print_game_log(client: BallDontLieClient, player_id: int, season: int) -> None:
    stats = client.game_stats([player_id], [season])
    teams = {team.id: team for team in client.list_teams()}
    table = game_log_table(game_log_frame(stats, teams))

    rows = list(table["games"])
    if table["averages"]:
        rows.append({"game_id": "AVERAGES", **table["averages"]})
    if not rows:
        print(f"No games recorded for player {player_id} in {season}.")
        return

    frame = pd.DataFrame(rows, columns=list(TABLE_COLUMNS)).rename(columns=TABLE_COLUMNS).fillna("")
    print(frame.to_string(index=False))
    print(f"\nTotal games: {len(table['games'])}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Print balldontlie teams and a player's per-game stats with season averages.",
    )
    parser.add_argument("--team", default=settings.team_name, help="Team to look up (full name or nickname).")
    parser.add_argument("--player-id", type=int, default=246, help="balldontlie player id for the game log.")
    parser.add_argument("--season", type=int, default=settings.season, help="Season start year (e.g. 2023).")
    parser.add_argument(
        "--api-key",
        default=settings.balldontlie_api_key,
        help="balldontlie API key (falls back to BALLDONTLIE_API_KEY env).",
    )
    args = parser.parse_args()

    if not args.api_key:
        print("No API key provided; pass --api-key or set BALLDONTLIE_API_KEY.")
        sys.exit(2)

    with BallDontLieClient(api_key=args.api_key) as client:
        try:
            print_teams(client, args.team)
            print()
            print_game_log(client, args.player_id, args.season)
        except StatsAPIError as err:
            print(f"Error fetching stats: {err}")
            sys.exit(1)


if __name__ == "__main__":
    main()
