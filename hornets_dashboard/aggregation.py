from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .models import (
    ComparedPlayer,
    DashboardRow,
    GameStat,
    MetricComparison,
    MetricStanding,
    Player,
    SeasonAverage,
    Team,
)

STAT_KEY_MAP: Dict[str, str] = {
    "pts": "PTS",
    "reb": "REB",
    "oreb": "OREB",
    "dreb": "DREB",
    "ast": "AST",
    "stl": "STL",
    "blk": "BLK",
    "turnover": "TOV",
    "pf": "PF",
    "fgm": "FGM",
    "fga": "FGA",
    "fg3m": "FG3M",
    "fg3a": "FG3A",
    "ftm": "FTM",
    "fta": "FTA",
    "fg_pct": "FG_PCT",
    "fg3_pct": "FG3_PCT",
    "ft_pct": "FT_PCT",
}

NUMERIC_STAT_COLUMNS: Sequence[str] = ("MINUTES", *STAT_KEY_MAP.values())

# Public metric names accepted by the comparison endpoint.
METRIC_COLUMNS: Dict[str, str] = {
    "points": "PTS",
    "rebounds": "REB",
    "assists": "AST",
    "steals": "STL",
    "blocks": "BLK",
    "field_goal_pct": "FG_PCT",
    "three_point_pct": "FG3_PCT",
    "free_throw_pct": "FT_PCT",
    "minutes": "MINUTES",
}

DEFAULT_METRICS: List[str] = list(METRIC_COLUMNS)
ADVANCED_METRICS: List[str] = ["efficiency", "true_shooting", "usage_rate"]
KNOWN_METRICS: List[str] = [*DEFAULT_METRICS, "games_played", *ADVANCED_METRICS]

FRAME_COLUMNS: List[str] = [
    "PLAYER_ID",
    "PLAYER_NAME",
    "PLAYER_POSITION",
    "TEAM_ID",
    "TEAM_ABBREVIATION",
    "OPPONENT",
    "GAME_ID",
    "GAME_DATE",
    *NUMERIC_STAT_COLUMNS,
]


def parse_minutes(value: Any) -> float:
    """Convert balldontlie minute strings ("34", "34:12") to float minutes."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if ":" not in text:
        try:
            return float(text)
        except ValueError:
            return 0.0
    minutes, _, seconds = text.partition(":")
    try:
        return int(minutes) + int(seconds or 0) / 60.0
    except ValueError:
        return 0.0


def _opponent_id(stat: GameStat) -> Optional[int]:
    if stat.team.id == stat.game.home_team_id:
        return stat.game.visitor_team_id
    if stat.team.id == stat.game.visitor_team_id:
        return stat.game.home_team_id
    return None


def flatten_stat(stat: GameStat, teams: Mapping[int, Team] | None = None) -> Dict[str, Any]:
    opponent = (teams or {}).get(_opponent_id(stat))
    flattened: Dict[str, Any] = {
        "PLAYER_ID": stat.player.id,
        "PLAYER_NAME": stat.player.full_name,
        "PLAYER_POSITION": stat.player.position,
        "TEAM_ID": stat.team.id,
        "TEAM_ABBREVIATION": stat.team.abbreviation,
        "OPPONENT": opponent.abbreviation if opponent else "",
        "GAME_ID": stat.game.id,
        "GAME_DATE": (stat.game.date or "")[:10],
        "MINUTES": parse_minutes(stat.min),
    }
    for api_key, column in STAT_KEY_MAP.items():
        value = getattr(stat, api_key)
        flattened[column] = 0.0 if value is None else float(value)
    return flattened


def game_log_frame(stats: Iterable[GameStat], teams: Mapping[int, Team] | None = None) -> pd.DataFrame:
    """Flatten per-game stat lines into a DataFrame ordered by game date."""
    rows = [flatten_stat(stat, teams) for stat in stats]
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    return frame.sort_values(["GAME_DATE", "GAME_ID"], kind="stable").reset_index(drop=True)


def player_season_averages(game_logs: pd.DataFrame) -> pd.DataFrame:
    """Average every recorded stat line per player.

    GP counts all lines, including zero-minute ones, and shooting
    percentages are the mean of the per-game percentages.
    """
    columns = ["PLAYER_ID", "PLAYER_NAME", "PLAYER_POSITION", "GP", *NUMERIC_STAT_COLUMNS]
    if game_logs.empty:
        return pd.DataFrame(columns=columns)

    logs = game_logs.copy()
    group_keys = ["PLAYER_ID", "PLAYER_NAME", "PLAYER_POSITION"]
    for col in NUMERIC_STAT_COLUMNS:
        logs[col] = pd.to_numeric(logs[col], errors="coerce").fillna(0.0)

    base = logs[group_keys].drop_duplicates(subset=["PLAYER_ID"]).copy()
    means = logs.groupby("PLAYER_ID")[list(NUMERIC_STAT_COLUMNS)].mean()
    gp = logs.groupby("PLAYER_ID").size().rename("GP")
    base = base.merge(means, left_on="PLAYER_ID", right_index=True, how="left")
    base = base.merge(gp, left_on="PLAYER_ID", right_index=True, how="left")
    base["GP"] = base["GP"].fillna(0).astype(int)

    return base[columns].reset_index(drop=True)


def _display_pct(value: float) -> float:
    return round(float(value) * 100, 1)


def game_log_table(game_logs: pd.DataFrame) -> Dict[str, Any]:
    """Return table-friendly game rows for one player plus an averages row."""
    games: List[Dict[str, Any]] = []
    for row in game_logs.to_dict("records"):
        games.append(
            {
                "game_id": int(row["GAME_ID"]),
                "date": str(row["GAME_DATE"]),
                "player": str(row["PLAYER_NAME"]),
                "team": str(row["TEAM_ABBREVIATION"]),
                "opponent": str(row["OPPONENT"]),
                "pts": float(row["PTS"]),
                "reb": float(row["REB"]),
                "ast": float(row["AST"]),
                "stl": float(row["STL"]),
                "blk": float(row["BLK"]),
                "fg_pct": _display_pct(row["FG_PCT"]),
                "fg3_pct": _display_pct(row["FG3_PCT"]),
                "ft_pct": _display_pct(row["FT_PCT"]),
                "min": round(float(row["MINUTES"]), 1),
                "tov": float(row["TOV"]),
                "pf": float(row["PF"]),
            }
        )

    averages: Optional[Dict[str, Any]] = None
    season_avg = player_season_averages(game_logs)
    if not season_avg.empty and int(season_avg.iloc[0]["GP"]) > 0:
        avg = season_avg.iloc[0]
        averages = {
            "games_played": int(avg["GP"]),
            "pts": round(float(avg["PTS"]), 1),
            "reb": round(float(avg["REB"]), 1),
            "ast": round(float(avg["AST"]), 1),
            "stl": round(float(avg["STL"]), 1),
            "blk": round(float(avg["BLK"]), 1),
            "fg_pct": _display_pct(avg["FG_PCT"]),
            "fg3_pct": _display_pct(avg["FG3_PCT"]),
            "ft_pct": _display_pct(avg["FT_PCT"]),
            "min": round(float(avg["MINUTES"]), 1),
            "tov": round(float(avg["TOV"]), 1),
            "pf": round(float(avg["PF"]), 1),
        }
    return {"games": games, "averages": averages}


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def advanced_stats(averages: Mapping[str, float]) -> Dict[str, float]:
    """Derive composite per-game metrics from a season-average row."""
    pts = float(averages.get("PTS", 0.0))
    efficiency = pts + sum(float(averages.get(col, 0.0)) for col in ("REB", "AST", "STL", "BLK"))
    shooting_possessions = 2 * (float(averages.get("FGA", 0.0)) + 0.44 * float(averages.get("FTA", 0.0)))
    return {
        "efficiency": efficiency,
        "true_shooting": _ratio(pts, shooting_possessions),
        "usage_rate": _ratio(pts + float(averages.get("AST", 0.0)), float(averages.get("MINUTES", 0.0))),
    }


def metric_values(averages: Mapping[str, Any]) -> Dict[str, float]:
    """Map a season-average row onto the public metric names."""
    values = {metric: float(averages.get(column, 0.0) or 0.0) for metric, column in METRIC_COLUMNS.items()}
    values["games_played"] = float(averages.get("GP", 0) or 0)
    values.update(advanced_stats(averages))
    return values


def validate_metrics(metrics: Sequence[str]) -> List[str]:
    unknown = [metric for metric in metrics if metric not in KNOWN_METRICS]
    if unknown:
        known = ", ".join(KNOWN_METRICS)
        raise ValueError(f"Unknown metric(s): {', '.join(unknown)}. Known metrics: {known}")
    return list(metrics)


def rank_players(players: Sequence[Mapping[str, Any]], metrics: Sequence[str]) -> List[ComparedPlayer]:
    """Assign per-metric rank and percentile; rank 1 holds the highest value."""
    validate_metrics(metrics)
    ranked = [
        ComparedPlayer(
            id=int(player["id"]),
            name=str(player.get("name", "")),
            position=str(player.get("position", "") or ""),
            stats={metric: MetricStanding(value=float(value)) for metric, value in player["stats"].items()},
        )
        for player in players
    ]
    if not ranked:
        return ranked

    total = len(ranked)
    for metric in metrics:
        values = pd.Series([player.stats[metric].value for player in ranked])
        order = values.sort_values(ascending=False, kind="stable").index
        for position, idx in enumerate(order):
            standing = ranked[idx].stats[metric]
            standing.rank = position + 1
            standing.percentile = (total - position) / total * 100
    return ranked


def compare_metrics(ranked: Sequence[ComparedPlayer], metrics: Sequence[str]) -> Dict[str, MetricComparison]:
    comparisons: Dict[str, MetricComparison] = {}
    if not ranked:
        return comparisons
    for metric in metrics:
        ordered = sorted(ranked, key=lambda player: player.stats[metric].rank)
        top, bottom = ordered[0], ordered[-1]
        comparisons[metric] = MetricComparison(
            leader=top.id,
            difference=top.stats[metric].value - bottom.stats[metric].value,
        )
    return comparisons


def comparison_inputs(players: Sequence[Player], game_logs: pd.DataFrame) -> List[Dict[str, Any]]:
    """Pair each requested player with metric values from their game logs."""
    averages = player_season_averages(game_logs)
    by_player = {int(row["PLAYER_ID"]): row for row in averages.to_dict("records")}
    inputs: List[Dict[str, Any]] = []
    for player in players:
        row = by_player.get(player.id, {})
        inputs.append(
            {
                "id": player.id,
                "name": player.full_name,
                "position": player.position,
                "stats": metric_values(row),
            }
        )
    return inputs


def dashboard_rows(players: Iterable[Player], averages: Iterable[SeasonAverage]) -> List[DashboardRow]:
    """Join the roster with season averages; players without games keep empty stats."""
    by_player = {avg.player_id: avg for avg in averages}
    rows: List[DashboardRow] = []
    for player in players:
        avg = by_player.get(player.id)
        row = DashboardRow(
            id=player.id,
            first_name=player.first_name,
            last_name=player.last_name,
            position=player.position,
        )
        if avg is not None and avg.games_played > 0:
            row.games_played = avg.games_played
            row.points_per_game = float(avg.pts or 0.0)
            row.rebounds_per_game = float(avg.reb or 0.0)
            row.assists_per_game = float(avg.ast or 0.0)
            row.field_goal_percentage = float(avg.fg_pct or 0.0)
            row.minutes_per_game = parse_minutes(avg.min)
        rows.append(row)
    rows.sort(key=lambda r: (not r.has_stats, -(r.points_per_game or 0.0), r.last_name))
    return rows
