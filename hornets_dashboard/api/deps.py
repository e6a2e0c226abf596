from __future__ import annotations

from typing import Iterator, Optional

from pydantic import ValidationError
from starlette.requests import Request

from ..identity import Auth0Client
from ..models import SessionUser
from ..stats_client import BallDontLieClient


def get_stats_client() -> Iterator[BallDontLieClient]:
    client = BallDontLieClient()
    try:
        yield client
    finally:
        client.close()


def get_identity_client() -> Iterator[Auth0Client]:
    client = Auth0Client()
    try:
        yield client
    finally:
        client.close()


def session_user(request: Request) -> Optional[SessionUser]:
    """Return the user stored in the signed session cookie, if any."""
    raw = request.session.get("user")
    if not raw:
        return None
    try:
        return SessionUser.model_validate(raw)
    except ValidationError:
        request.session.pop("user", None)
        return None


def store_user(request: Request, user: SessionUser) -> None:
    request.session["user"] = user.model_dump()


def mark_email_verified(request: Request, verified: bool) -> None:
    user = session_user(request)
    if user is not None and user.email_verified != verified:
        user.email_verified = verified
        store_user(request, user)
