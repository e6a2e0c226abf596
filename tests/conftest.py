from __future__ import annotations

from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

from hornets_dashboard.api.deps import get_identity_client, get_stats_client
from hornets_dashboard.api.main import app
from hornets_dashboard.config import settings

from .fakes import FakeAuth0, make_identity_client, make_stats_client, session_cookie


@pytest.fixture
def fake_auth0() -> FakeAuth0:
    return FakeAuth0()


@pytest.fixture
def client(fake_auth0: FakeAuth0):
    app.dependency_overrides[get_stats_client] = lambda: make_stats_client()
    app.dependency_overrides[get_identity_client] = lambda: make_identity_client(fake_auth0)
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client: TestClient) -> Callable[..., None]:
    def _login(sub: str = "auth0|abc", email_verified: bool = True, **extra: Any) -> None:
        user = {"sub": sub, "email": "fan@example.com", "email_verified": email_verified, "name": "Buzz Fan", **extra}
        # Same domain the cookie jar records for responses, so server updates replace it.
        client.cookies.set(settings.session_cookie, session_cookie({"user": user}), domain="testserver.local")

    return _login
