"""
Google OAuth 2.0 for calendar access.

Builds the consent URL, exchanges the authorization code for tokens, and
refreshes access tokens from the stored refresh token. Only plain HTTPS
calls against Google's endpoints; no Google SDK.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from poolcare.core.pools.models import GoogleCredentials
from poolcare.core.scheduling.calendar import CalendarAuthError


logger = logging.getLogger(__name__)


AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"

SCOPES = (
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/userinfo.email",
)


class GoogleAuthError(Exception):
    """Raised when Google rejects a code exchange or the call fails."""
    pass


@dataclass
class GoogleOAuthConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ValueError("Google client id and secret are required")


class GoogleOAuthClient:
    """
    Token operations for one OAuth client registration.

    Pass an httpx transport to talk to something other than Google,
    e.g. httpx.MockTransport in tests.
    """

    def __init__(
        self,
        config: GoogleOAuthConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    def authorization_url(self, state: str) -> str:
        """
        Consent URL for the calendar scopes.

        Offline access with forced consent makes Google hand out a refresh
        token on every grant, not just the first one.
        """
        params = {
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> GoogleCredentials:
        """Trade an authorization code for access and refresh tokens."""
        payload = await self._token_request({
            "code": code,
            "redirect_uri": self._config.redirect_uri,
            "grant_type": "authorization_code",
        })

        access_token = payload.get("access_token")
        if not access_token:
            raise GoogleAuthError("Token response did not include an access token")

        return GoogleCredentials(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            token_expiry=_expiry_millis(payload.get("expires_in")),
        )

    async def refresh_access_token(self, refresh_token: str) -> str:
        """
        Get a fresh access token.

        Raises CalendarAuthError when Google says the grant is no longer
        valid (revoked, expired or issued to another client).
        """
        try:
            payload = await self._token_request({
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            })
        except _TokenRejected as e:
            if e.error in ("invalid_grant", "unauthorized_client") or e.status_code == 401:
                raise CalendarAuthError(f"Refresh token rejected: {e.error}") from e
            raise GoogleAuthError(f"Token refresh failed: {e.error}") from e

        access_token = payload.get("access_token")
        if not access_token:
            raise GoogleAuthError("Refresh response did not include an access token")
        return access_token

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        )

    async def _token_request(self, data: dict) -> dict:
        data = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            **data,
        }
        try:
            async with self.http_client() as client:
                response = await client.post(TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            logger.error("Google token endpoint unreachable", extra={"error": str(e)})
            raise GoogleAuthError(f"Token endpoint unreachable: {e}") from e

        if response.status_code != 200:
            error = _error_code(response)
            logger.warning(
                "Google token request rejected",
                extra={
                    "status": response.status_code,
                    "error": error,
                    "grant_type": data.get("grant_type"),
                },
            )
            if data.get("grant_type") == "refresh_token":
                raise _TokenRejected(response.status_code, error)
            raise GoogleAuthError(f"Token exchange failed: {error}")

        return response.json()


class _TokenRejected(Exception):
    def __init__(self, status_code: int, error: str) -> None:
        self.status_code = status_code
        self.error = error
        super().__init__(error)


def _error_code(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"http_{response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("status") or error.get("message") or response.status_code)
    return str(error or f"http_{response.status_code}")


def _expiry_millis(expires_in: Optional[int]) -> Optional[int]:
    if not expires_in:
        return None
    return int((time.time() + int(expires_in)) * 1000)
