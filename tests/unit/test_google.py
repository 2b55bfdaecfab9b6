"""
Unit tests for the Google OAuth and Calendar clients.

Google is replaced with httpx.MockTransport; each handler asserts on the
request it receives and returns a canned response.
"""

import json
from datetime import datetime
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from poolcare.core.scheduling.calendar import CalendarAuthError, CalendarEvent
from poolcare.infrastructure.google import (
    CalendarAPIError,
    GoogleAuthError,
    GoogleCalendarClient,
    GoogleOAuthClient,
    GoogleOAuthConfig,
)
from poolcare.infrastructure.google.calendar import event_body
from poolcare.infrastructure.google.oauth import TOKEN_URL


CONFIG = GoogleOAuthConfig(
    client_id="client-id",
    client_secret="client-secret",
    redirect_uri="https://app.example.com/api/v1/auth/google/callback",
)

EVENT = CalendarEvent(
    summary="Pool cleaning: Maria Souza",
    description="Visit scheduled for client Maria Souza. Notes: N/A",
    start=datetime(2024, 3, 15, 9, 30),
    end=datetime(2024, 3, 15, 10, 30),
    time_zone="America/Sao_Paulo",
)


def form(request: httpx.Request) -> dict:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def token_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"access_token": "access-1", "expires_in": 3600})


class TestOAuthConfig:

    def test_requires_client_credentials(self):
        with pytest.raises(ValueError):
            GoogleOAuthConfig(client_id="", client_secret="x", redirect_uri="https://x")

    def test_authorization_url(self):
        url = GoogleOAuthClient(CONFIG).authorization_url("user-1")

        query = parse_qs(urlparse(url).query)
        assert query["access_type"] == ["offline"]
        assert query["prompt"] == ["consent"]
        assert query["state"] == ["user-1"]
        assert "calendar.events" in query["scope"][0]


@pytest.mark.anyio
class TestTokenCalls:

    async def test_exchange_code(self):
        def handler(request):
            assert str(request.url) == TOKEN_URL
            body = form(request)
            assert body["grant_type"] == "authorization_code"
            assert body["code"] == "auth-code"
            assert body["client_secret"] == "client-secret"
            return httpx.Response(200, json={
                "access_token": "access-1",
                "refresh_token": "refresh-1",
                "expires_in": 3600,
            })

        client = GoogleOAuthClient(CONFIG, transport=httpx.MockTransport(handler))

        credentials = await client.exchange_code("auth-code")

        assert credentials.access_token == "access-1"
        assert credentials.refresh_token == "refresh-1"
        assert credentials.token_expiry > 0

    async def test_exchange_failure(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(400, json={"error": "invalid_request"})
        )

        with pytest.raises(GoogleAuthError):
            await GoogleOAuthClient(CONFIG, transport=transport).exchange_code("bad")

    async def test_refresh(self):
        def handler(request):
            body = form(request)
            assert body["grant_type"] == "refresh_token"
            assert body["refresh_token"] == "refresh-1"
            return token_ok(request)

        client = GoogleOAuthClient(CONFIG, transport=httpx.MockTransport(handler))

        assert await client.refresh_access_token("refresh-1") == "access-1"

    @pytest.mark.parametrize("status,error", [
        (400, "invalid_grant"),
        (400, "unauthorized_client"),
        (401, "invalid_client"),
    ])
    async def test_revoked_grant_needs_reauth(self, status, error):
        transport = httpx.MockTransport(lambda request: httpx.Response(status, json={"error": error}))

        with pytest.raises(CalendarAuthError):
            await GoogleOAuthClient(CONFIG, transport=transport).refresh_access_token("r")

    async def test_server_error_is_not_reauth(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(GoogleAuthError):
            await GoogleOAuthClient(CONFIG, transport=transport).refresh_access_token("r")


@pytest.mark.anyio
class TestCalendarClient:

    async def test_create_event(self):
        seen = []

        def handler(request):
            if str(request.url) == TOKEN_URL:
                return token_ok(request)
            seen.append(request)
            return httpx.Response(200, json={"id": "evt-1"})

        oauth = GoogleOAuthClient(CONFIG, transport=httpx.MockTransport(handler))

        event_id = await GoogleCalendarClient(oauth).create_event("refresh-1", EVENT)

        assert event_id == "evt-1"
        [request] = seen
        assert request.method == "POST"
        assert request.url.path == "/calendar/v3/calendars/primary/events"
        assert request.headers["Authorization"] == "Bearer access-1"
        assert json.loads(request.content)["start"]["dateTime"] == "2024-03-15T09:30:00"

    async def test_update_event(self):
        seen = []

        def handler(request):
            if str(request.url) == TOKEN_URL:
                return token_ok(request)
            seen.append(request)
            return httpx.Response(200, json={"id": "evt-1"})

        oauth = GoogleOAuthClient(CONFIG, transport=httpx.MockTransport(handler))

        event_id = await GoogleCalendarClient(oauth, calendar_id="team").update_event(
            "refresh-1", "evt-1", EVENT
        )

        assert event_id == "evt-1"
        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/calendar/v3/calendars/team/events/evt-1"

    async def test_unauthorized_call(self):
        def handler(request):
            if str(request.url) == TOKEN_URL:
                return token_ok(request)
            return httpx.Response(401, json={"error": {"status": "UNAUTHENTICATED"}})

        oauth = GoogleOAuthClient(CONFIG, transport=httpx.MockTransport(handler))

        with pytest.raises(CalendarAuthError):
            await GoogleCalendarClient(oauth).create_event("refresh-1", EVENT)

    async def test_api_error(self):
        def handler(request):
            if str(request.url) == TOKEN_URL:
                return token_ok(request)
            return httpx.Response(404, json={"error": {"status": "NOT_FOUND"}})

        oauth = GoogleOAuthClient(CONFIG, transport=httpx.MockTransport(handler))

        with pytest.raises(CalendarAPIError, match="NOT_FOUND"):
            await GoogleCalendarClient(oauth).update_event("refresh-1", "evt-1", EVENT)


class TestEventBody:

    def test_wall_clock_times_with_zone(self):
        body = event_body(EVENT)

        assert body["summary"] == "Pool cleaning: Maria Souza"
        assert body["end"] == {"dateTime": "2024-03-15T10:30:00", "timeZone": "America/Sao_Paulo"}
