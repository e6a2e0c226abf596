from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.requests import Request
from starlette.responses import Response

from ..identity import Auth0Client, IdentityProviderError
from ..models import SessionUser
from .deps import get_identity_client, mark_email_verified, session_user, store_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

CALLBACK_PATH = "/api/auth/callback"
LOGIN_ERROR_URL = "/login?error=true"


def new_login_state(request: Request) -> str:
    state = secrets.token_urlsafe(16)
    request.session["auth_state"] = state
    return state


def complete_login(
    request: Request,
    identity: Auth0Client,
    code: Optional[str],
    state: Optional[str],
    error: Optional[str] = None,
    redirect_path: str = CALLBACK_PATH,
) -> RedirectResponse:
    """Finish the authorization-code flow and store the user in the session."""
    expected_state = request.session.pop("auth_state", None)
    if error:
        logger.error("Auth0 error: %s", error)
        return RedirectResponse(LOGIN_ERROR_URL)
    if not code or not state or not expected_state or not secrets.compare_digest(state, expected_state):
        logger.error("Auth0 callback rejected: missing code or state mismatch")
        return RedirectResponse(LOGIN_ERROR_URL)

    try:
        tokens = identity.exchange_code(code, redirect_path=redirect_path)
        user = SessionUser.from_claims(identity.userinfo(tokens["access_token"]))
    except (IdentityProviderError, KeyError) as err:
        logger.error("Auth0 Error: %s", err)
        return RedirectResponse(LOGIN_ERROR_URL)

    store_user(request, user)
    return RedirectResponse("/dashboard" if user.email_verified else "/verify-email")


@router.get("/login")
def login(
    request: Request,
    prompt: Optional[str] = Query(None, description="Optional Auth0 prompt, e.g. 'login' or 'verify_email'."),
    identity: Auth0Client = Depends(get_identity_client),
) -> Response:
    if not identity.issuer_base_url:
        logger.error("Login attempted without AUTH0_ISSUER_BASE_URL configured")
        return RedirectResponse(LOGIN_ERROR_URL)
    state = new_login_state(request)
    return RedirectResponse(identity.authorize_url(state, redirect_path=CALLBACK_PATH, prompt=prompt))


@router.get("/callback")
def callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    identity: Auth0Client = Depends(get_identity_client),
) -> Response:
    return complete_login(request, identity, code, state, error)


@router.get("/logout")
def logout(request: Request, identity: Auth0Client = Depends(get_identity_client)) -> Response:
    request.session.clear()
    if not identity.issuer_base_url:
        return RedirectResponse("/login")
    return RedirectResponse(identity.logout_url("/login"))


@router.get("/me")
def me(request: Request) -> Dict[str, Any]:
    user = session_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user.model_dump()


@router.get("/verify-email")
def verify_email(
    request: Request,
    user_id: Optional[str] = Query(None, alias="userId"),
    identity: Auth0Client = Depends(get_identity_client),
) -> Any:
    user = session_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not user_id:
        raise HTTPException(status_code=400, detail="User ID is required")
    if user_id != user.sub:
        raise HTTPException(status_code=403, detail="Cannot check another user's verification status")

    try:
        verified = identity.is_email_verified(user_id)
    except IdentityProviderError as err:
        logger.error("Error checking email verification: %s", err)
        return JSONResponse({"error": "Failed to check email verification status"}, status_code=500)

    mark_email_verified(request, verified)
    return {"email_verified": verified}


@router.get("/resend-verification")
def resend_verification(request: Request, identity: Auth0Client = Depends(get_identity_client)) -> Response:
    user = session_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        identity.send_verification_email(user.sub)
    except IdentityProviderError as err:
        logger.error("Error sending verification email: %s", err)
        return JSONResponse({"error": "Failed to send verification email"}, status_code=500)

    return RedirectResponse(f"{identity.base_url}/verify-email")
