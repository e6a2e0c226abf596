from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx

from .config import settings
from .models import GameStat, Player, SeasonAverage, Team

logger = logging.getLogger(__name__)

DEFAULT_PER_PAGE = 100


class StatsAPIError(RuntimeError):
    """Raised when the balldontlie API cannot serve a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BallDontLieClient:
    """Thin synchronous client for the balldontlie REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        http: httpx.Client | None = None,
    ) -> None:
        self.api_key = settings.balldontlie_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.balldontlie_base_url).rstrip("/")
        self._owns_http = http is None
        self._http = http or httpx.Client(
            timeout=httpx.Timeout(timeout or settings.http_timeout, connect=10.0),
        )

    def __enter__(self) -> "BallDontLieClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._http.get(url, params=params, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as err:
            status = err.response.status_code
            logger.error("balldontlie %s returned %s: %s", path, status, err.response.text)
            if status == 401:
                raise StatsAPIError(
                    "balldontlie rejected the API key; set BALLDONTLIE_API_KEY.", status_code=status
                ) from err
            raise StatsAPIError(f"balldontlie {path} request failed with status {status}.", status_code=status) from err
        except httpx.HTTPError as err:
            logger.error("balldontlie %s request failed: %s", path, err)
            raise StatsAPIError(f"balldontlie {path} request failed: {err}") from err
        return response.json()

    def _paginate(self, path: str, params: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
        cursor: Optional[int] = None
        page = 1
        while True:
            page_params = dict(params)
            if cursor:
                page_params["cursor"] = cursor
            payload = self._get(path, params=page_params)
            data = payload.get("data", []) or []
            logger.debug("Fetched %s page %s (%s rows)", path, page, len(data))
            yield from data

            meta = payload.get("meta", {}) or {}
            cursor = meta.get("next_cursor")
            if not cursor:
                break
            page += 1

    def list_teams(self) -> List[Team]:
        payload = self._get("/teams")
        return [Team.model_validate(row) for row in payload.get("data", []) or []]

    def get_team(self, team_id: int) -> Team:
        payload = self._get(f"/teams/{team_id}")
        return Team.model_validate(payload.get("data", payload))

    def find_team(self, name: str) -> Team | None:
        """Match a team by full name or nickname, ignoring case."""
        needle = name.strip().lower()
        for team in self.list_teams():
            if needle in {team.full_name.lower(), team.name.lower()}:
                return team
        return None

    def team_players(self, team_id: int, per_page: int = DEFAULT_PER_PAGE) -> List[Player]:
        params = {"team_ids[]": [team_id], "per_page": per_page}
        return [Player.model_validate(row) for row in self._paginate("/players", params)]

    def get_players(self, player_ids: Sequence[int]) -> List[Player]:
        if not player_ids:
            return []
        params = {"player_ids[]": list(player_ids), "per_page": DEFAULT_PER_PAGE}
        return [Player.model_validate(row) for row in self._paginate("/players", params)]

    def season_averages(self, player_ids: Sequence[int], season: int) -> List[SeasonAverage]:
        if not player_ids:
            return []
        params = {"season": season, "player_ids[]": list(player_ids)}
        payload = self._get("/season_averages", params=params)
        return [SeasonAverage.model_validate(row) for row in payload.get("data", []) or []]

    def game_stats(
        self,
        player_ids: Sequence[int],
        seasons: Sequence[int],
        per_page: int = DEFAULT_PER_PAGE,
    ) -> List[GameStat]:
        params = {
            "player_ids[]": list(player_ids),
            "seasons[]": list(seasons),
            "per_page": per_page,
        }
        return [GameStat.model_validate(row) for row in self._paginate("/stats", params)]
