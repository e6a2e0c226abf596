from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from .config import settings

logger = logging.getLogger(__name__)

ALLOW = "allow"
LOGIN = "login"
VERIFY = "verify"

LOGIN_PATH = "/login"
VERIFY_EMAIL_PATH = "/verify-email"


@dataclass(frozen=True)
class GateDecision:
    action: str
    api: bool = False

    @property
    def allowed(self) -> bool:
        return self.action == ALLOW


def _normalize_pattern(pattern: str) -> str:
    # Accept router-style wildcards such as "/api/players/:path*".
    if pattern.endswith("/:path*"):
        return pattern[: -len(":path*")] + "*"
    return pattern


def is_protected(path: str, patterns: Sequence[str]) -> bool:
    for raw in patterns:
        pattern = _normalize_pattern(raw)
        if pattern.endswith("/*"):
            prefix = pattern[:-2]
            if path == prefix or path.startswith(prefix + "/"):
                return True
        elif path == pattern:
            return True
    return False


def is_api_path(path: str) -> bool:
    return path == "/api" or path.startswith("/api/")


def evaluate_access(path: str, user: Optional[Mapping[str, Any]], patterns: Sequence[str]) -> GateDecision:
    """Decide whether a request may reach a protected route."""
    api = is_api_path(path)
    if not is_protected(path, patterns):
        return GateDecision(ALLOW, api)
    if not user or not user.get("sub"):
        return GateDecision(LOGIN, api)
    if not user.get("email_verified"):
        return GateDecision(VERIFY, api)
    return GateDecision(ALLOW, api)


def denial_response(decision: GateDecision) -> Response:
    if decision.api:
        if decision.action == VERIFY:
            return JSONResponse({"error": "Email not verified"}, status_code=403)
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    target = VERIFY_EMAIL_PATH if decision.action == VERIFY else LOGIN_PATH
    return RedirectResponse(target)


class VerificationGate(BaseHTTPMiddleware):
    """Block protected routes until the session holds a verified user.

    Must run inside ``SessionMiddleware``. Any failure while reading the
    session is treated as a denial unless ``fail_open`` is set.
    """

    def __init__(
        self,
        app: ASGIApp,
        patterns: Sequence[str] | None = None,
        fail_open: bool | None = None,
    ) -> None:
        super().__init__(app)
        self.patterns = list(patterns if patterns is not None else settings.protected_paths)
        self.fail_open = settings.gate_fail_open if fail_open is None else fail_open

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        try:
            decision = evaluate_access(path, request.session.get("user"), self.patterns)
        except Exception as err:  # noqa: BLE001
            logger.error("Access check failed for %s: %s", path, err)
            if self.fail_open:
                return await call_next(request)
            decision = GateDecision(LOGIN, is_api_path(path))

        if decision.allowed:
            return await call_next(request)
        return denial_response(decision)
