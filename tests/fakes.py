"""Canned balldontlie and Auth0 responses shared by the test suite."""

from __future__ import annotations

import json
from base64 import b64encode
from typing import Any, Callable, Dict, List, Set

import httpx
from itsdangerous import TimestampSigner

from hornets_dashboard.config import settings
from hornets_dashboard.identity import Auth0Client
from hornets_dashboard.stats_client import BallDontLieClient

STATS_BASE = "https://stats.test/v1"
ISSUER = "https://tenant.auth0.test"
APP_BASE = "http://testserver"

TEAMS: List[Dict[str, Any]] = [
    {"id": 2, "abbreviation": "BOS", "city": "Boston", "full_name": "Boston Celtics", "name": "Celtics"},
    {"id": 4, "abbreviation": "CHA", "city": "Charlotte", "full_name": "Charlotte Hornets", "name": "Hornets"},
    {"id": 14, "abbreviation": "LAL", "city": "Los Angeles", "full_name": "Los Angeles Lakers", "name": "Lakers"},
]

PLAYERS: List[Dict[str, Any]] = [
    {"id": 100, "first_name": "LaMelo", "last_name": "Ball", "position": "G", "team": TEAMS[1]},
    {"id": 101, "first_name": "Miles", "last_name": "Bridges", "position": "F", "team": TEAMS[1]},
    {"id": 102, "first_name": "Nick", "last_name": "Smith", "position": "G", "team": TEAMS[1]},
]

SEASON_AVERAGES: List[Dict[str, Any]] = [
    {"player_id": 101, "season": 2023, "games_played": 69, "min": "37:24", "pts": 21.0, "reb": 7.3, "ast": 3.3, "fg_pct": 0.462},
    {"player_id": 100, "season": 2023, "games_played": 22, "min": "32:18", "pts": 23.9, "reb": 5.1, "ast": 8.0, "fg_pct": 0.433},
]


def stat_line(
    stat_id: int,
    player: Dict[str, Any],
    game_id: int,
    date: str,
    *,
    minutes: str = "30",
    pts: float = 0,
    reb: float = 0,
    ast: float = 0,
    stl: float = 0,
    blk: float = 0,
    fgm: float = 0,
    fga: float = 0,
    ftm: float = 0,
    fta: float = 0,
    home_team_id: int = 4,
    visitor_team_id: int = 2,
) -> Dict[str, Any]:
    return {
        "id": stat_id,
        "min": minutes,
        "pts": pts,
        "reb": reb,
        "ast": ast,
        "stl": stl,
        "blk": blk,
        "fgm": fgm,
        "fga": fga,
        "fg_pct": fgm / fga if fga else 0.0,
        "fg3m": 0,
        "fg3a": 0,
        "fg3_pct": 0.0,
        "ftm": ftm,
        "fta": fta,
        "ft_pct": ftm / fta if fta else 0.0,
        "turnover": 2,
        "pf": 1,
        "player": {key: value for key, value in player.items() if key != "team"},
        "team": TEAMS[1],
        "game": {
            "id": game_id,
            "date": f"{date}T00:00:00.000Z",
            "season": 2023,
            "status": "Final",
            "home_team_id": home_team_id,
            "visitor_team_id": visitor_team_id,
            "home_team_score": 110,
            "visitor_team_score": 100,
        },
    }


STAT_LINES: List[Dict[str, Any]] = [
    stat_line(1, PLAYERS[0], 10, "2023-10-25", pts=20, reb=4, ast=10, fgm=8, fga=20, ftm=2, fta=2),
    stat_line(2, PLAYERS[0], 11, "2023-10-27", pts=30, reb=6, ast=8, fgm=12, fga=20, ftm=4, fta=6, home_team_id=14, visitor_team_id=4),
    stat_line(3, PLAYERS[1], 10, "2023-10-25", pts=18, reb=9, ast=2, fgm=7, fga=15),
    stat_line(4, PLAYERS[1], 11, "2023-10-27", pts=24, reb=11, ast=4, fgm=9, fga=16, home_team_id=14, visitor_team_id=4),
    stat_line(5, PLAYERS[2], 10, "2023-10-25", minutes="00", pts=0),
]


def _ids(request: httpx.Request, key: str) -> List[int]:
    return [int(value) for value in request.url.params.get_list(key)]


def stats_handler(request: httpx.Request) -> httpx.Response:
    """In-memory stand-in for the balldontlie API."""
    if request.headers.get("Authorization") != "Bearer test-key":
        return httpx.Response(401, json={"error": "Unauthorized"})
    path = request.url.path.removeprefix("/v1")
    if path == "/teams":
        return httpx.Response(200, json={"data": TEAMS})
    if path.startswith("/teams/"):
        team_id = int(path.rsplit("/", 1)[-1])
        match = [team for team in TEAMS if team["id"] == team_id]
        if not match:
            return httpx.Response(404, json={"error": "Not found"})
        return httpx.Response(200, json={"data": match[0]})
    if path == "/players":
        team_ids = _ids(request, "team_ids[]")
        player_ids = _ids(request, "player_ids[]")
        rows = [
            p for p in PLAYERS
            if (not team_ids or p["team"]["id"] in team_ids) and (not player_ids or p["id"] in player_ids)
        ]
        # Serve one player per page so callers must follow the cursor.
        cursor = int(request.url.params.get("cursor", 0))
        page = rows[cursor : cursor + 1]
        next_cursor = cursor + 1 if cursor + 1 < len(rows) else None
        return httpx.Response(200, json={"data": page, "meta": {"next_cursor": next_cursor, "per_page": 1}})
    if path == "/season_averages":
        player_ids = _ids(request, "player_ids[]")
        return httpx.Response(200, json={"data": [row for row in SEASON_AVERAGES if row["player_id"] in player_ids]})
    if path == "/stats":
        player_ids = _ids(request, "player_ids[]")
        rows = [row for row in STAT_LINES if row["player"]["id"] in player_ids]
        return httpx.Response(200, json={"data": rows, "meta": {"next_cursor": None, "per_page": 100}})
    return httpx.Response(404, json={"error": "Not found"})


class FakeAuth0:
    """Records calls and answers like Auth0's token, userinfo and management endpoints."""

    def __init__(self) -> None:
        self.calls: List[httpx.Request] = []
        self.email_verified = False
        self.fail_paths: Set[str] = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path in self.fail_paths:
            return httpx.Response(500, text="upstream exploded")
        if path == "/oauth/token":
            body = json.loads(request.content)
            token = "m2m-token" if body["grant_type"] == "client_credentials" else "user-token"
            return httpx.Response(200, json={"access_token": token, "token_type": "Bearer"})
        if path == "/userinfo":
            return httpx.Response(
                200,
                json={
                    "sub": "auth0|abc",
                    "email": "fan@example.com",
                    "email_verified": self.email_verified,
                    "name": "Buzz Fan",
                },
            )
        if path.startswith("/api/v2/users/"):
            return httpx.Response(200, json={"user_id": "auth0|abc", "email_verified": self.email_verified})
        if path == "/api/v2/jobs/verification-email":
            return httpx.Response(201, json={"status": "pending", "type": "verification_email"})
        return httpx.Response(404)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.calls]


def make_stats_client(handler: Callable[[httpx.Request], httpx.Response] = stats_handler) -> BallDontLieClient:
    return BallDontLieClient(
        api_key="test-key",
        base_url=STATS_BASE,
        http=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def make_identity_client(handler: Callable[[httpx.Request], httpx.Response]) -> Auth0Client:
    return Auth0Client(
        issuer_base_url=ISSUER,
        base_url=APP_BASE,
        client_id="client-id",
        client_secret="client-secret",
        m2m_client_id="m2m-id",
        m2m_client_secret="m2m-secret",
        http=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def session_cookie(data: Dict[str, Any]) -> str:
    """Sign a session payload the same way Starlette's SessionMiddleware does."""
    payload = b64encode(json.dumps(data).encode("utf-8"))
    return TimestampSigner(str(settings.session_secret)).sign(payload).decode("utf-8")


