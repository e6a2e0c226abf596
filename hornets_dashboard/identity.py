from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import httpx

from .config import settings

logger = logging.getLogger(__name__)

LOGIN_SCOPE = "openid profile email"


class IdentityProviderError(RuntimeError):
    """Raised when Auth0 rejects or fails a request."""


class Auth0Client:
    def __init__(
        self,
        issuer_base_url: str | None = None,
        base_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        m2m_client_id: str | None = None,
        m2m_client_secret: str | None = None,
        timeout: float | None = None,
        http: httpx.Client | None = None,
    ) -> None:
        self.issuer_base_url = (issuer_base_url or settings.auth0_issuer_base_url).rstrip("/")
        self.base_url = (base_url or settings.auth0_base_url).rstrip("/")
        self.client_id = client_id or settings.auth0_client_id
        self.client_secret = client_secret or settings.auth0_client_secret
        self.m2m_client_id = m2m_client_id or settings.auth0_m2m_client_id
        self.m2m_client_secret = m2m_client_secret or settings.auth0_m2m_client_secret
        self._owns_http = http is None
        self._http = http or httpx.Client(
            timeout=httpx.Timeout(timeout or settings.http_timeout, connect=10.0),
        )

    def __enter__(self) -> "Auth0Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> httpx.Response:
        if not self.issuer_base_url:
            raise IdentityProviderError("AUTH0_ISSUER_BASE_URL is not configured.")
        try:
            response = self._http.request(method, f"{self.issuer_base_url}{path}", **kwargs)
        except httpx.HTTPError as err:
            logger.error("%s request failed: %s", action, err)
            raise IdentityProviderError(f"Failed to {action}") from err
        if response.is_error:
            logger.error("%s response error (%s): %s", action, response.status_code, response.text)
            raise IdentityProviderError(f"Failed to {action}")
        return response

    # Hosted login

    def redirect_uri(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def authorize_url(
        self,
        state: str,
        redirect_path: str = "/api/auth/callback",
        prompt: Optional[str] = None,
    ) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri(redirect_path),
            "scope": LOGIN_SCOPE,
            "state": state,
        }
        if prompt:
            params["prompt"] = prompt
        return f"{self.issuer_base_url}/authorize?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_path: str = "/api/auth/callback") -> Dict[str, Any]:
        response = self._request(
            "POST",
            "/oauth/token",
            "exchange authorization code",
            json={
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": self.redirect_uri(redirect_path),
            },
        )
        tokens = response.json()
        if not tokens.get("access_token"):
            raise IdentityProviderError("Failed to exchange authorization code")
        return tokens

    def userinfo(self, access_token: str) -> Dict[str, Any]:
        response = self._request(
            "GET",
            "/userinfo",
            "fetch user profile",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return response.json()

    def logout_url(self, return_path: str = "/login") -> str:
        params = {"client_id": self.client_id, "returnTo": f"{self.base_url}{return_path}"}
        return f"{self.issuer_base_url}/v2/logout?{urlencode(params)}"

    # Management API

    def management_token(self) -> str:
        response = self._request(
            "POST",
            "/oauth/token",
            "get management API token",
            json={
                "client_id": self.m2m_client_id,
                "client_secret": self.m2m_client_secret,
                "audience": f"{self.issuer_base_url}/api/v2/",
                "grant_type": "client_credentials",
            },
        )
        access_token = response.json().get("access_token")
        if not access_token:
            raise IdentityProviderError("Failed to get management API token")
        return access_token

    def get_user(self, user_id: str) -> Dict[str, Any]:
        token = self.management_token()
        response = self._request(
            "GET",
            f"/api/v2/users/{quote(user_id, safe='')}",
            "get user details",
            headers={"Authorization": f"Bearer {token}"},
        )
        return response.json()

    def is_email_verified(self, user_id: str) -> bool:
        return bool(self.get_user(user_id).get("email_verified", False))

    def send_verification_email(self, user_id: str) -> None:
        token = self.management_token()
        self._request(
            "POST",
            "/api/v2/jobs/verification-email",
            "send verification email",
            headers={"Authorization": f"Bearer {token}"},
            json={"user_id": user_id},
        )
