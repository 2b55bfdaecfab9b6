"""
Unit tests for CalendarSyncBridge and sync request building.
"""

from datetime import date, datetime, timedelta

import pytest

from poolcare.core.pools.models import GoogleCredentials, Visit
from poolcare.core.scheduling.calendar import (
    CalendarSyncBridge,
    CalendarSyncRequest,
    CalendarSyncStatus,
    build_sync_request,
)
from poolcare.infrastructure.snowflake.repositories.documents import StoreError

USER_ID = "user-1"


@pytest.fixture
def connected(repository):
    repository.save_credentials(USER_ID, GoogleCredentials(
        access_token="access",
        refresh_token="refresh-1",
        token_expiry=1_700_000_000_000,
    ))
    return repository


class TestBuildSyncRequest:

    def test_window_starts_at_visit_time(self):
        visit = Visit(
            id="v1",
            client_id="c1",
            pool_id="p1",
            client_name="Maria Souza",
            scheduled_date=date(2024, 3, 15),
            time="09:30",
        )

        request = build_sync_request(USER_ID, visit)

        assert request.start_time == datetime(2024, 3, 15, 9, 30)
        assert request.end_time == datetime(2024, 3, 15, 10, 30)
        assert request.summary == "Pool cleaning: Maria Souza"
        assert "Notes: N/A" in request.description

    def test_custom_duration(self):
        visit = Visit(
            id="v1",
            client_id="c1",
            pool_id="p1",
            scheduled_date=date(2024, 3, 15),
            time="17:00",
            notes="Gate code 42",
        )

        request = build_sync_request(USER_ID, visit, duration=timedelta(minutes=90))

        assert request.end_time == datetime(2024, 3, 15, 18, 30)
        assert "Gate code 42" in request.description

    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValueError):
            CalendarSyncRequest(
                user_id=USER_ID,
                visit_id="v1",
                summary="s",
                description="d",
                start_time=datetime(2024, 3, 15, 10),
                end_time=datetime(2024, 3, 15, 9),
            )


@pytest.mark.anyio
class TestSyncVisit:

    async def test_not_connected(self, repository, fake_calendar, visit_record):
        bridge = CalendarSyncBridge(repository, fake_calendar)

        result = await bridge.sync_visit(build_sync_request(USER_ID, visit_record))

        assert result.status == CalendarSyncStatus.ERROR
        assert "not connected" in result.message
        assert fake_calendar.created == []

    async def test_first_sync_creates_and_links_event(self, connected, fake_calendar, visit_record):
        bridge = CalendarSyncBridge(connected, fake_calendar, time_zone="Europe/Lisbon")

        result = await bridge.sync_visit(build_sync_request(USER_ID, visit_record))

        assert result.status == CalendarSyncStatus.CREATED
        assert result.event_id == "evt-1"
        assert result.ok
        [event] = fake_calendar.created
        assert event.time_zone == "Europe/Lisbon"
        assert event.start == datetime(2024, 3, 15, 9, 30)
        assert connected.get_visit(USER_ID, visit_record.id).calendar_event_id == "evt-1"

    async def test_repeated_sync_updates_same_event(self, connected, fake_calendar, visit_record):
        bridge = CalendarSyncBridge(connected, fake_calendar)
        request = build_sync_request(USER_ID, visit_record)

        await bridge.sync_visit(request)
        result = await bridge.sync_visit(request)

        assert result.status == CalendarSyncStatus.UPDATED
        assert result.event_id == "evt-1"
        assert len(fake_calendar.created) == 1
        assert [event_id for event_id, _ in fake_calendar.updated] == ["evt-1"]

    async def test_missing_visit(self, connected, fake_calendar, visit_record):
        bridge = CalendarSyncBridge(connected, fake_calendar)
        request = build_sync_request(USER_ID, visit_record)
        request.visit_id = "missing"

        result = await bridge.sync_visit(request)

        assert result.status == CalendarSyncStatus.ERROR
        assert "not found" in result.message

    async def test_rejected_grant_clears_tokens(self, connected, expired_calendar, visit_record):
        bridge = CalendarSyncBridge(connected, expired_calendar)

        result = await bridge.sync_visit(build_sync_request(USER_ID, visit_record))

        assert result.status == CalendarSyncStatus.REAUTH_REQUIRED
        credentials = connected.get_credentials(USER_ID)
        assert credentials.refresh_token is None
        assert credentials.access_token is None
        assert not credentials.is_connected

    async def test_other_failures_keep_tokens(self, connected, calendar_factory, visit_record):
        failing = calendar_factory(error=RuntimeError("503 from API"))
        bridge = CalendarSyncBridge(connected, failing)

        result = await bridge.sync_visit(build_sync_request(USER_ID, visit_record))

        assert result.status == CalendarSyncStatus.ERROR
        assert result.message == "503 from API"
        assert connected.get_credentials(USER_ID).refresh_token == "refresh-1"


def _failing(times: int, real):
    """Wrap a store method so its first `times` calls raise StoreError."""
    calls = {"count": 0}

    def method(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] <= times:
            raise StoreError("store down")
        return real(*args, **kwargs)

    return method


@pytest.mark.anyio
class TestSyncVisitStoreFailures:

    async def test_link_retry_prevents_second_create(self, connected, fake_calendar, visit_record, monkeypatch):
        monkeypatch.setattr(connected, "update_visit", _failing(1, connected.update_visit))
        bridge = CalendarSyncBridge(connected, fake_calendar)
        request = build_sync_request(USER_ID, visit_record)

        first = await bridge.sync_visit(request)
        second = await bridge.sync_visit(request)

        assert first.status == CalendarSyncStatus.CREATED
        assert second.status == CalendarSyncStatus.UPDATED
        assert len(fake_calendar.created) == 1

    async def test_unlinked_event_id_is_reported(self, connected, fake_calendar, visit_record, monkeypatch):
        real_update = connected.update_visit
        monkeypatch.setattr(connected, "update_visit", _failing(2, real_update))
        bridge = CalendarSyncBridge(connected, fake_calendar)
        request = build_sync_request(USER_ID, visit_record)

        result = await bridge.sync_visit(request)

        assert result.status == CalendarSyncStatus.ERROR
        assert result.event_id == "evt-1"
        assert connected.get_visit(USER_ID, visit_record.id).calendar_event_id is None

        # The caller stores the reported id; the next sync reuses the event
        visit_record.calendar_event_id = result.event_id
        real_update(USER_ID, visit_record)
        again = await bridge.sync_visit(request)

        assert again.status == CalendarSyncStatus.UPDATED
        assert len(fake_calendar.created) == 1

    async def test_credential_read_failure_is_an_error(self, connected, fake_calendar, visit_record, monkeypatch):
        monkeypatch.setattr(connected, "get_credentials", _failing(1, connected.get_credentials))
        bridge = CalendarSyncBridge(connected, fake_calendar)

        result = await bridge.sync_visit(build_sync_request(USER_ID, visit_record))

        assert result.status == CalendarSyncStatus.ERROR
        assert result.message == "store down"
        assert fake_calendar.created == []

    async def test_visit_read_failure_is_an_error(self, connected, fake_calendar, visit_record, monkeypatch):
        monkeypatch.setattr(connected, "get_visit", _failing(1, connected.get_visit))
        bridge = CalendarSyncBridge(connected, fake_calendar)

        result = await bridge.sync_visit(build_sync_request(USER_ID, visit_record))

        assert result.status == CalendarSyncStatus.ERROR
        assert fake_calendar.created == []

    async def test_failed_token_clear_is_an_error(self, connected, expired_calendar, visit_record, monkeypatch):
        monkeypatch.setattr(connected, "clear_credentials", _failing(1, connected.clear_credentials))
        bridge = CalendarSyncBridge(connected, expired_calendar)

        result = await bridge.sync_visit(build_sync_request(USER_ID, visit_record))

        assert result.status == CalendarSyncStatus.ERROR
        assert "could not be cleared" in result.message
