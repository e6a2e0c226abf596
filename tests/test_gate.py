from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from hornets_dashboard.gate import (
    ALLOW,
    LOGIN,
    VERIFY,
    VerificationGate,
    evaluate_access,
    is_protected,
)

PATTERNS = ["/", "/dashboard", "/api/players/:path*"]
VERIFIED = {"sub": "auth0|abc", "email_verified": True}
UNVERIFIED = {"sub": "auth0|abc", "email_verified": False}


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/", True),
        ("/dashboard", True),
        ("/dashboard/extra", False),
        ("/api/players", True),
        ("/api/players/compare", True),
        ("/api/players/7/games", True),
        ("/api/playersx", False),
        ("/login", False),
        ("/verify-email", False),
        ("/api/auth/verify-email", False),
        ("/static/styles.css", False),
    ],
)
def test_is_protected(path, expected):
    assert is_protected(path, PATTERNS) is expected


def test_public_route_is_allowed_without_session():
    assert evaluate_access("/login", None, PATTERNS).action == ALLOW


def test_protected_route_without_session_goes_to_login():
    decision = evaluate_access("/dashboard", None, PATTERNS)
    assert decision.action == LOGIN
    assert decision.api is False


def test_unverified_session_goes_to_verification():
    assert evaluate_access("/dashboard", UNVERIFIED, PATTERNS).action == VERIFY


def test_verified_session_passes():
    assert evaluate_access("/dashboard", VERIFIED, PATTERNS).allowed


def test_api_routes_are_flagged():
    decision = evaluate_access("/api/players/compare", UNVERIFIED, PATTERNS)
    assert decision.action == VERIFY
    assert decision.api is True


def test_unverified_session_is_redirected_to_verify_page(client, login_as):
    login_as(email_verified=False)
    response = client.get("/dashboard")
    assert response.status_code == 307
    assert response.headers["location"] == "/verify-email"


def test_missing_session_is_redirected_to_login(client):
    response = client.get("/")
    assert response.status_code == 307
    assert response.headers["location"] == "/login"


def test_verified_session_reaches_dashboard(client, login_as):
    login_as(email_verified=True)
    response = client.get("/dashboard")
    assert response.status_code == 200
    assert "LaMelo" in response.text


def test_api_without_session_gets_json_401(client):
    response = client.get("/api/players")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_api_with_unverified_session_gets_json_403(client, login_as):
    login_as(email_verified=False)
    response = client.get("/api/players/compare", params={"playerIds": "100"})
    assert response.status_code == 403
    assert response.json() == {"error": "Email not verified"}


def test_tampered_cookie_counts_as_no_session(client):
    client.cookies.set("appSession", "not-a-signed-value", domain="testserver.local")
    response = client.get("/dashboard")
    assert response.headers["location"] == "/login"


def _app_without_sessions(fail_open: bool) -> FastAPI:
    bare = FastAPI()
    bare.add_middleware(VerificationGate, patterns=["/dashboard"], fail_open=fail_open)

    @bare.get("/dashboard")
    def dashboard():
        return {"ok": True}

    return bare


def test_gate_fails_closed_when_session_is_unreadable():
    with TestClient(_app_without_sessions(fail_open=False), follow_redirects=False) as bare:
        response = bare.get("/dashboard")
    assert response.status_code == 307
    assert response.headers["location"] == "/login"


def test_gate_can_be_configured_to_fail_open():
    with TestClient(_app_without_sessions(fail_open=True), follow_redirects=False) as bare:
        response = bare.get("/dashboard")
    assert response.status_code == 200
