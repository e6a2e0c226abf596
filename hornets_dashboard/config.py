from __future__ import annotations

import os
import secrets
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

REQUIRED_AUTH0_ENV = (
    "AUTH0_ISSUER_BASE_URL",
    "AUTH0_M2M_CLIENT_ID",
    "AUTH0_M2M_CLIENT_SECRET",
    "AUTH0_BASE_URL",
)


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _strip_slash(value: str) -> str:
    return value.rstrip("/")


class Settings(BaseModel):
    season: int = Field(default_factory=lambda: int(os.getenv("HORNETS_SEASON", "2023")))
    first_season: int = 2015
    team_id: int = Field(default_factory=lambda: int(os.getenv("HORNETS_TEAM_ID", "4")))
    team_name: str = Field(default_factory=lambda: os.getenv("HORNETS_TEAM_NAME", "Charlotte Hornets"))

    balldontlie_api_key: str = Field(default_factory=lambda: os.getenv("BALLDONTLIE_API_KEY", ""))
    balldontlie_base_url: str = Field(
        default_factory=lambda: _strip_slash(os.getenv("BALLDONTLIE_BASE_URL", "https://api.balldontlie.io/v1"))
    )
    http_timeout: float = Field(default_factory=lambda: float(os.getenv("HTTP_TIMEOUT", "30")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    auth0_issuer_base_url: str = Field(default_factory=lambda: _strip_slash(os.getenv("AUTH0_ISSUER_BASE_URL", "")))
    auth0_base_url: str = Field(
        default_factory=lambda: _strip_slash(os.getenv("AUTH0_BASE_URL", "http://localhost:8000"))
    )
    auth0_client_id: str = Field(default_factory=lambda: os.getenv("AUTH0_CLIENT_ID", ""))
    auth0_client_secret: str = Field(default_factory=lambda: os.getenv("AUTH0_CLIENT_SECRET", ""))
    auth0_m2m_client_id: str = Field(default_factory=lambda: os.getenv("AUTH0_M2M_CLIENT_ID", ""))
    auth0_m2m_client_secret: str = Field(default_factory=lambda: os.getenv("AUTH0_M2M_CLIENT_SECRET", ""))
    session_secret: str = Field(default_factory=lambda: os.getenv("AUTH0_SECRET") or secrets.token_urlsafe(32))
    session_cookie: str = "appSession"

    cors_allow_origins: List[str] = Field(
        default_factory=lambda: _env_list("CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    )
    protected_paths: List[str] = Field(
        default_factory=lambda: _env_list("PROTECTED_PATHS", "/,/dashboard,/api/players/*,/api/teams")
    )
    gate_fail_open: bool = Field(
        default_factory=lambda: os.getenv("GATE_FAIL_OPEN", "").lower() in {"1", "true", "yes"}
    )

    def missing_auth0_settings(self) -> List[str]:
        """Return the identity provider variables that are not configured."""
        present = {
            "AUTH0_ISSUER_BASE_URL": self.auth0_issuer_base_url,
            "AUTH0_M2M_CLIENT_ID": self.auth0_m2m_client_id,
            "AUTH0_M2M_CLIENT_SECRET": self.auth0_m2m_client_secret,
            "AUTH0_BASE_URL": self.auth0_base_url,
        }
        return [name for name in REQUIRED_AUTH0_ENV if not present[name]]

    def available_seasons(self, selected: int | None = None) -> List[int]:
        latest = max(self.season, self.first_season, selected or 0)
        earliest = min(self.first_season, selected or self.first_season)
        return list(range(latest, earliest - 1, -1))

    def resolve_season(self, season: int | None = None) -> int:
        if season is None:
            return self.season
        if season < 1946:
            raise ValueError(f"Season {season} predates recorded NBA stats.")
        return season

    @property
    def secure_cookies(self) -> bool:
        return self.auth0_base_url.startswith("https://")


settings = Settings()
