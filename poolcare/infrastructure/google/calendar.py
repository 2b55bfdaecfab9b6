"""
Google Calendar v3 client for visit events.

Every call starts by trading the stored refresh token for an access
token, so nothing but the refresh token needs to be persisted.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from poolcare.core.scheduling.calendar import CalendarAuthError, CalendarClient, CalendarEvent

from .oauth import GoogleOAuthClient, _error_code


logger = logging.getLogger(__name__)


CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class CalendarAPIError(Exception):
    """Raised when the Calendar API call fails for a reason other than auth."""
    pass


class GoogleCalendarClient(CalendarClient):
    """Implementation of CalendarClient over the Calendar REST API."""

    def __init__(self, oauth: GoogleOAuthClient, calendar_id: str = "primary") -> None:
        self._oauth = oauth
        self._calendar_id = calendar_id

    async def create_event(self, refresh_token: str, event: CalendarEvent) -> Optional[str]:
        response = await self._send("POST", self._events_url(), refresh_token, event)
        return response.json().get("id")

    async def update_event(self, refresh_token: str, event_id: str, event: CalendarEvent) -> str:
        url = f"{self._events_url()}/{quote(event_id, safe='')}"
        response = await self._send("PUT", url, refresh_token, event)
        return response.json().get("id") or event_id

    def _events_url(self) -> str:
        return f"{CALENDAR_API}/calendars/{quote(self._calendar_id, safe='')}/events"

    async def _send(
        self,
        method: str,
        url: str,
        refresh_token: str,
        event: CalendarEvent,
    ) -> httpx.Response:
        access_token = await self._oauth.refresh_access_token(refresh_token)

        try:
            async with self._oauth.http_client() as client:
                response = await client.request(
                    method,
                    url,
                    json=event_body(event),
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as e:
            logger.error("Calendar API unreachable", extra={"error": str(e)})
            raise CalendarAPIError(f"Calendar API unreachable: {e}") from e

        if response.status_code == 401:
            raise CalendarAuthError("Calendar API rejected the access token")
        if response.status_code >= 400:
            error = _error_code(response)
            logger.error(
                "Calendar API call failed",
                extra={"status": response.status_code, "error": error, "method": method},
            )
            raise CalendarAPIError(f"Calendar API error ({response.status_code}): {error}")

        return response


def event_body(event: CalendarEvent) -> dict:
    """Calendar v3 event resource with wall-clock times in the event's zone."""
    return {
        "summary": event.summary,
        "description": event.description,
        "start": {
            "dateTime": event.start.strftime("%Y-%m-%dT%H:%M:%S"),
            "timeZone": event.time_zone,
        },
        "end": {
            "dateTime": event.end.strftime("%Y-%m-%dT%H:%M:%S"),
            "timeZone": event.time_zone,
        },
    }
