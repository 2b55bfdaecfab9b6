"""
Shared fixtures for the unit tests.

Everything runs against the in-memory Snowflake connection and hand-written
fakes for Claude and Google Calendar. No network, no real database.
"""

import os

# Settings are read at import time by poolcare.main, so set them first
os.environ["STORE_MOCK_MODE"] = "true"
os.environ["API_KEYS"] = "test-key"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["GOOGLE_CLIENT_ID"] = ""
os.environ["GOOGLE_CLIENT_SECRET"] = ""

from datetime import date
from typing import Optional

import pytest

from poolcare.core.pools.models import Client, Pool, PoolShape, Visit
from poolcare.core.scheduling.calendar import CalendarAuthError, CalendarEvent
from poolcare.core.scheduling.sync import RecordSynchronizer
from poolcare.infrastructure.snowflake.client import MockSnowflakeConnection
from poolcare.infrastructure.snowflake.repositories.records import RecordRepository


USER_ID = "user-1"


@pytest.fixture
def anyio_backend():
    return "asyncio"


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

@pytest.fixture
def connection() -> MockSnowflakeConnection:
    return MockSnowflakeConnection()


@pytest.fixture
def repository(connection) -> RecordRepository:
    return RecordRepository(connection)


@pytest.fixture
def synchronizer(repository) -> RecordSynchronizer:
    return RecordSynchronizer(repository, USER_ID)


@pytest.fixture
def client_record(synchronizer) -> Client:
    return synchronizer.save_client(Client(name="Maria Souza", neighborhood="Centro"))


@pytest.fixture
def pool_record(synchronizer, client_record) -> Pool:
    return synchronizer.save_pool(Pool(
        client_id=client_record.id,
        name="Main pool",
        shape=PoolShape.QUADRILATERAL,
        length=8,
        width=4,
        average_depth=1.5,
    ))


@pytest.fixture
def visit_record(synchronizer, client_record, pool_record) -> Visit:
    return synchronizer.save_visit(Visit(
        client_id=client_record.id,
        pool_id=pool_record.id,
        scheduled_date=date(2024, 3, 15),
        time="09:30",
    ))


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeTextClient:
    """Returns a canned reply, or raises the given error."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeCalendarClient:
    """Records every call and hands out sequential event ids."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.created: list[CalendarEvent] = []
        self.updated: list[tuple[str, CalendarEvent]] = []

    async def create_event(self, refresh_token: str, event: CalendarEvent) -> Optional[str]:
        if self.error is not None:
            raise self.error
        self.created.append(event)
        return f"evt-{len(self.created)}"

    async def update_event(self, refresh_token: str, event_id: str, event: CalendarEvent) -> str:
        if self.error is not None:
            raise self.error
        self.updated.append((event_id, event))
        return event_id


@pytest.fixture
def fake_calendar() -> FakeCalendarClient:
    return FakeCalendarClient()


@pytest.fixture
def expired_calendar() -> FakeCalendarClient:
    return FakeCalendarClient(error=CalendarAuthError("invalid_grant"))


@pytest.fixture
def text_client_factory():
    return FakeTextClient


@pytest.fixture
def calendar_factory():
    return FakeCalendarClient
