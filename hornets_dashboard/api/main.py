from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..aggregation import (
    DEFAULT_METRICS,
    compare_metrics,
    comparison_inputs,
    dashboard_rows,
    game_log_frame,
    game_log_table,
    rank_players,
    validate_metrics,
)
from ..config import STATIC_DIR, TEMPLATES_DIR, settings
from ..gate import VerificationGate
from ..identity import Auth0Client, IdentityProviderError
from ..models import ComparisonResponse, DashboardRow
from ..stats_client import BallDontLieClient, StatsAPIError
from .auth import complete_login, new_login_state
from .auth import router as auth_router
from .deps import get_identity_client, get_stats_client, mark_email_verified, session_user

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hornets Dashboard",
    version="0.1.0",
    description="Charlotte Hornets player statistics from balldontlie, behind Auth0 login and email verification.",
)

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

# Starlette runs the last-added middleware first: CORS, then session, then the gate.
app.add_middleware(VerificationGate)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie=settings.session_cookie,
    same_site="lax",
    https_only=settings.secure_cookies,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)
app.include_router(auth_router)

CHART_FIELDS = (
    ("points_per_game", "Points per Game"),
    ("rebounds_per_game", "Rebounds per Game"),
    ("assists_per_game", "Assists per Game"),
    ("field_goal_percentage", "FG%"),
    ("minutes_per_game", "Minutes per Game"),
)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.on_event("startup")
def report_configuration() -> None:
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    missing = settings.missing_auth0_settings()
    if missing:
        logger.error("[startup] Missing required environment variables: %s", ", ".join(missing))
    if not settings.balldontlie_api_key:
        logger.warning("[startup] BALLDONTLIE_API_KEY is not set; stats requests will be rejected.")
    logger.info("[startup] Serving %s (team %s), default season %s", settings.team_name, settings.team_id, settings.season)


def _parse_player_ids(raw: Optional[str]) -> List[int]:
    if not raw:
        return []
    ids: List[int] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        try:
            ids.append(int(chunk))
        except ValueError as err:
            raise HTTPException(status_code=400, detail=f"Invalid player ID '{chunk}'.") from err
    return list(dict.fromkeys(ids))


def _resolve_season(season: Optional[int]) -> int:
    try:
        return settings.resolve_season(season)
    except ValueError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err


def _team_dashboard(stats: BallDontLieClient, season: int) -> List[DashboardRow]:
    players = stats.team_players(settings.team_id)
    averages = stats.season_averages([player.id for player in players], season)
    return dashboard_rows(players, averages)


def _chart_scale(rows: List[DashboardRow]) -> Dict[str, float]:
    scale: Dict[str, float] = {}
    for field, _ in CHART_FIELDS:
        values = [getattr(row, field) for row in rows if getattr(row, field) is not None]
        scale[field] = max(values) if values and max(values) > 0 else 1.0
    return scale


@app.get("/health")
def healthcheck() -> Dict[str, Any]:
    missing = settings.missing_auth0_settings()
    return {
        "status": "ok" if not missing and settings.balldontlie_api_key else "misconfigured",
        "team": settings.team_name,
        "season": settings.season,
        "stats_api_key_configured": bool(settings.balldontlie_api_key),
        "missing_auth0_settings": missing,
    }


@app.get("/api/teams")
def list_teams(stats: BallDontLieClient = Depends(get_stats_client)) -> Any:
    try:
        teams = stats.list_teams()
    except StatsAPIError as err:
        logger.error("Error fetching teams: %s", err)
        return JSONResponse({"error": "Failed to fetch teams"}, status_code=500)
    return {"teams": [team.model_dump() for team in teams]}


@app.get("/api/players")
def team_player_stats(
    season: Optional[int] = Query(None, description="Season start year, e.g. 2023 for 2023-24."),
    stats: BallDontLieClient = Depends(get_stats_client),
) -> Any:
    season = _resolve_season(season)
    try:
        rows = _team_dashboard(stats, season)
    except StatsAPIError as err:
        logger.error("Error fetching player stats: %s", err)
        return JSONResponse({"error": "Failed to fetch player stats"}, status_code=500)
    return {
        "team": {"id": settings.team_id, "name": settings.team_name},
        "season": season,
        "players": [row.model_dump() for row in rows],
    }


@app.get("/api/players/compare")
def compare_players(
    player_ids: Optional[str] = Query(None, alias="playerIds", description="Comma-separated player IDs."),
    metrics: Optional[str] = Query(None, description="Comma-separated metric names to rank."),
    season: Optional[int] = Query(None, description="Season start year."),
    stats: BallDontLieClient = Depends(get_stats_client),
) -> Any:
    ids = _parse_player_ids(player_ids)
    if not ids:
        raise HTTPException(status_code=400, detail="No player IDs provided")
    requested = [m.strip() for m in metrics.split(",") if m.strip()] if metrics else list(DEFAULT_METRICS)
    try:
        requested = validate_metrics(requested)
    except ValueError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err
    season = _resolve_season(season)

    try:
        players = stats.get_players(ids)
        if not players:
            raise HTTPException(status_code=404, detail="No players found with the provided IDs")
        stat_lines = stats.game_stats([player.id for player in players], [season])
    except StatsAPIError as err:
        logger.error("Error in player comparison: %s", err)
        return JSONResponse({"error": "Failed to fetch player comparison data"}, status_code=500)

    by_id = {player.id: player for player in players}
    ordered = [by_id[pid] for pid in ids if pid in by_id]
    ranked = rank_players(comparison_inputs(ordered, game_log_frame(stat_lines)), requested)
    response = ComparisonResponse(players=ranked, comparisons=compare_metrics(ranked, requested))
    return response.model_dump()


@app.get("/api/players/{player_id}/games")
def player_game_log(
    player_id: int,
    season: Optional[int] = Query(None, description="Season start year."),
    stats: BallDontLieClient = Depends(get_stats_client),
) -> Any:
    season = _resolve_season(season)
    try:
        stat_lines = stats.game_stats([player_id], [season])
        teams = {team.id: team for team in stats.list_teams()} if stat_lines else {}
    except StatsAPIError as err:
        logger.error("Error fetching game log for player %s: %s", player_id, err)
        return JSONResponse({"error": "Failed to fetch player stats"}, status_code=500)

    frame = game_log_frame(stat_lines, teams)
    frame = frame[frame["PLAYER_ID"] == player_id]
    return {"player_id": player_id, "season": season, **game_log_table(frame)}


@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request, error: Optional[str] = None) -> Response:
    if session_user(request) is not None:
        return RedirectResponse("/")
    return templates.TemplateResponse(
        request,
        "login.html",
        {"team_name": settings.team_name, "error": bool(error)},
    )


def _render_dashboard(request: Request, season: int, rows: List[DashboardRow], error: Optional[str]) -> Response:
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "user": session_user(request),
            "team_name": settings.team_name,
            "season": season,
            "seasons": settings.available_seasons(season),
            "rows": rows,
            "chart_fields": CHART_FIELDS,
            "scale": _chart_scale(rows),
            "error": error,
        },
    )


@app.get("/", response_class=HTMLResponse)
@app.get("/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    season: Optional[int] = Query(None),
    stats: BallDontLieClient = Depends(get_stats_client),
) -> Response:
    rows: List[DashboardRow] = []
    try:
        season = settings.resolve_season(season)
    except ValueError as err:
        return _render_dashboard(request, settings.season, rows, str(err))

    error: Optional[str] = None
    try:
        rows = _team_dashboard(stats, season)
    except StatsAPIError as err:
        logger.error("Error fetching player stats: %s", err)
        error = "Player statistics are unavailable right now."
        if err.status_code == 401:
            error = "The stats API rejected the configured key."
    return _render_dashboard(request, season, rows, error)


@app.get("/verify-email", response_class=HTMLResponse)
def verify_email_page(request: Request, identity: Auth0Client = Depends(get_identity_client)) -> Response:
    user = session_user(request)
    if user is None:
        return RedirectResponse("/login")
    try:
        verified = identity.is_email_verified(user.sub)
    except IdentityProviderError as err:
        logger.error("Error checking verification status: %s", err)
    else:
        mark_email_verified(request, verified)
        if verified:
            return RedirectResponse("/")
    return templates.TemplateResponse(request, "verify_email.html", {"user": user})


@app.get("/verify", response_class=HTMLResponse)
def verify_page(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    identity: Auth0Client = Depends(get_identity_client),
) -> Response:
    if code or error:
        return complete_login(request, identity, code, state, error, redirect_path="/verify")
    user = session_user(request)
    if user is not None and user.email_verified:
        return RedirectResponse("/dashboard")
    verification_url = None
    if identity.issuer_base_url:
        state = new_login_state(request)
        verification_url = identity.authorize_url(state, redirect_path="/verify", prompt="verify_email")
    return templates.TemplateResponse(
        request,
        "verify.html",
        {"user": user, "verification_url": verification_url},
    )
