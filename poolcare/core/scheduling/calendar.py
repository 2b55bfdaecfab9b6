"""
Mirroring visits into the user's external calendar.

A visit maps to at most one calendar event. The first sync creates the
event and stores its id on the visit; every later sync updates that same
event, so repeated syncs never duplicate it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Protocol

from ..pools.models import Visit
from .sync import RecordNotFoundError, RecordStore


logger = logging.getLogger(__name__)

DEFAULT_VISIT_DURATION = timedelta(hours=1)
LINK_ATTEMPTS = 2


class CalendarAuthError(Exception):
    """Raised by calendar clients when the stored grant is expired or revoked."""
    pass


class CalendarSyncStatus(Enum):
    CREATED = "created"
    UPDATED = "updated"
    ERROR = "error"
    REAUTH_REQUIRED = "reauth_required"


@dataclass(frozen=True)
class CalendarEvent:
    """An event as sent to the calendar. Times are wall-clock in time_zone."""
    summary: str
    description: str
    start: datetime
    end: datetime
    time_zone: str


@dataclass
class CalendarSyncRequest:
    user_id: str
    visit_id: str
    summary: str
    description: str
    start_time: datetime
    end_time: datetime

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise ValueError("Event end must not be before its start")


@dataclass
class CalendarSyncResult:
    status: CalendarSyncStatus
    event_id: Optional[str] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (CalendarSyncStatus.CREATED, CalendarSyncStatus.UPDATED)


class CalendarClient(Protocol):
    """
    Interface for external calendar APIs.

    Implementations raise CalendarAuthError when the refresh credential
    is no longer accepted, and any other exception for everything else.
    """

    async def create_event(self, refresh_token: str, event: CalendarEvent) -> Optional[str]:
        """Create an event and return its id."""
        ...

    async def update_event(self, refresh_token: str, event_id: str, event: CalendarEvent) -> str:
        """Overwrite an existing event and return its id."""
        ...


class CalendarSyncBridge:
    """Creates or updates the calendar event for one visit at a time."""

    def __init__(
        self,
        store: RecordStore,
        calendar_client: CalendarClient,
        time_zone: str = "America/Sao_Paulo",
    ) -> None:
        self._store = store
        self._calendar = calendar_client
        self._time_zone = time_zone

    async def sync_visit(self, request: CalendarSyncRequest) -> CalendarSyncResult:
        """
        Push a visit's time window to the calendar.

        Never raises. Expired or revoked grants clear the stored tokens
        and ask for re-authentication; other failures leave them alone.
        An error result that still carries event_id means the event was
        created but the visit could not be linked to it; the caller
        should store that id before syncing again.
        """
        try:
            credentials = self._store.get_credentials(request.user_id)
        except Exception as e:
            logger.error(
                "Could not read calendar credentials",
                extra={"user_id": request.user_id, "error": str(e)},
            )
            return CalendarSyncResult(status=CalendarSyncStatus.ERROR, message=str(e))

        if not credentials.refresh_token:
            return CalendarSyncResult(
                status=CalendarSyncStatus.ERROR,
                message="User is not connected to Google Calendar.",
            )

        try:
            visit = self._store.get_visit(request.user_id, request.visit_id)
        except RecordNotFoundError:
            return CalendarSyncResult(
                status=CalendarSyncStatus.ERROR,
                message=f"Visit {request.visit_id} not found.",
            )
        except Exception as e:
            logger.error(
                "Could not read visit for calendar sync",
                extra={"visit_id": request.visit_id, "error": str(e)},
            )
            return CalendarSyncResult(status=CalendarSyncStatus.ERROR, message=str(e))

        event = CalendarEvent(
            summary=request.summary,
            description=request.description,
            start=request.start_time,
            end=request.end_time,
            time_zone=self._time_zone,
        )

        try:
            if visit.calendar_event_id:
                event_id = await self._calendar.update_event(
                    credentials.refresh_token, visit.calendar_event_id, event
                )
                logger.info(
                    "Calendar event updated",
                    extra={"visit_id": visit.id, "event_id": event_id},
                )
                return CalendarSyncResult(status=CalendarSyncStatus.UPDATED, event_id=event_id)

            event_id = await self._calendar.create_event(credentials.refresh_token, event)
        except CalendarAuthError as e:
            return self._reauth_required(request.user_id, e)
        except Exception as e:
            logger.error(
                "Calendar sync failed",
                extra={"visit_id": request.visit_id, "error": str(e)},
            )
            return CalendarSyncResult(status=CalendarSyncStatus.ERROR, message=str(e))

        if not event_id:
            return CalendarSyncResult(
                status=CalendarSyncStatus.ERROR,
                message="Failed to create event.",
            )

        if not self._link_event(request.user_id, visit, event_id):
            return CalendarSyncResult(
                status=CalendarSyncStatus.ERROR,
                event_id=event_id,
                message="Calendar event was created but could not be linked to the visit.",
            )

        logger.info(
            "Calendar event created",
            extra={"visit_id": visit.id, "event_id": event_id},
        )
        return CalendarSyncResult(status=CalendarSyncStatus.CREATED, event_id=event_id)

    def _link_event(self, user_id: str, visit: Visit, event_id: str) -> bool:
        """Store the new event id on the visit. Returns False if every attempt failed."""
        visit.calendar_event_id = event_id
        for attempt in range(1, LINK_ATTEMPTS + 1):
            try:
                self._store.update_visit(user_id, visit)
                return True
            except Exception as e:
                logger.warning(
                    "Could not link calendar event to visit",
                    extra={
                        "visit_id": visit.id,
                        "event_id": event_id,
                        "attempt": attempt,
                        "error": str(e),
                    },
                )

        logger.error(
            "Calendar event left unlinked",
            extra={"visit_id": visit.id, "event_id": event_id},
        )
        return False

    def _reauth_required(self, user_id: str, error: CalendarAuthError) -> CalendarSyncResult:
        logger.warning(
            "Calendar grant rejected, clearing stored tokens",
            extra={"user_id": user_id, "error": str(error)},
        )
        try:
            self._store.clear_credentials(user_id)
        except Exception as e:
            logger.error(
                "Could not clear rejected calendar tokens",
                extra={"user_id": user_id, "error": str(e)},
            )
            return CalendarSyncResult(
                status=CalendarSyncStatus.ERROR,
                message=f"Google token is invalid and could not be cleared: {e}",
            )
        return CalendarSyncResult(
            status=CalendarSyncStatus.REAUTH_REQUIRED,
            message="Google token is invalid. Please reconnect your account.",
        )


def build_sync_request(
    user_id: str,
    visit: Visit,
    duration: timedelta = DEFAULT_VISIT_DURATION,
) -> CalendarSyncRequest:
    """Describe a saved visit as a calendar sync request."""
    hour, minute = (int(part) for part in visit.time.split(":"))
    start = datetime.combine(visit.scheduled_date, datetime.min.time()).replace(
        hour=hour, minute=minute
    )
    return CalendarSyncRequest(
        user_id=user_id,
        visit_id=visit.id,
        summary=f"Pool cleaning: {visit.client_name}",
        description=(
            f"Visit scheduled for client {visit.client_name}. "
            f"Notes: {visit.notes or 'N/A'}"
        ),
        start_time=start,
        end_time=start + duration,
    )
