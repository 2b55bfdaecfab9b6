"""
Visit scheduling endpoints.

Saving a visit also mirrors it into the user's Google Calendar. The sync
outcome is reported next to the saved visit; a failed sync never fails
the save.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import Field

from ...core.pools.models import Visit, VisitStatus, WaterQuality
from ...core.scheduling.calendar import CalendarSyncBridge, build_sync_request
from ...core.scheduling.sync import PoolReadings, RecordSynchronizer
from ..dependencies import (
    AuthenticatedUser,
    CalendarBridgeDep,
    RecordRepositoryDep,
    SynchronizerDep,
    UserIdDep,
)
from ..schemas import (
    CalendarSyncResponse,
    CamelModel,
    PoolResponse,
    ProductUsageModel,
    VisitRequest,
    VisitResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VisitSaveResponse(CamelModel):
    visit: VisitResponse
    calendar_sync: Optional[CalendarSyncResponse] = Field(
        None, description="Calendar outcome; null when Google isn't configured"
    )


class CompleteVisitRequest(CamelModel):
    products_used: Optional[list[ProductUsageModel]] = None


class ReadingsRequest(CamelModel):
    ph: Optional[float] = None
    chlorine: Optional[float] = None
    alkalinity: Optional[float] = None
    calcium_hardness: Optional[float] = None
    has_stains: bool = False
    has_scale: bool = False
    water_quality: Optional[WaterQuality] = None
    products_used: Optional[list[ProductUsageModel]] = None


class ReadingsResponse(CamelModel):
    visit: VisitResponse
    pool: PoolResponse


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[VisitResponse],
    summary="List visits",
    description="Ordered by date and time. Filter by day and/or status.",
)
async def list_visits(
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
    on_date: Optional[date] = Query(None, alias="date"),
    visit_status: Optional[VisitStatus] = Query(None, alias="status"),
) -> list[VisitResponse]:
    visits = repository.list_visits(user_id, on_date=on_date, status=visit_status)
    return [VisitResponse.from_visit(v) for v in visits]


@router.get(
    "/{visit_id}",
    response_model=VisitResponse,
    summary="Get a visit",
)
async def get_visit(
    visit_id: str,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
) -> VisitResponse:
    return VisitResponse.from_visit(repository.get_visit(user_id, visit_id))


@router.post(
    "",
    response_model=VisitSaveResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule a visit",
)
async def create_visit(
    request: VisitRequest,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    synchronizer: SynchronizerDep,
    bridge: CalendarBridgeDep,
) -> VisitSaveResponse:
    visit = synchronizer.save_visit(request.to_visit())
    return await _saved_with_sync(bridge, synchronizer, user_id, visit)


@router.put(
    "/{visit_id}",
    response_model=VisitSaveResponse,
    summary="Reschedule or edit a visit",
    description="Status and calendar link are kept; use complete/skip to change status.",
)
async def update_visit(
    visit_id: str,
    request: VisitRequest,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    synchronizer: SynchronizerDep,
    bridge: CalendarBridgeDep,
) -> VisitSaveResponse:
    visit = synchronizer.save_visit(request.to_visit(visit_id))
    return await _saved_with_sync(bridge, synchronizer, user_id, visit)


@router.post(
    "/{visit_id}/complete",
    response_model=VisitResponse,
    summary="Mark a visit as completed",
)
async def complete_visit(
    visit_id: str,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
    request: Optional[CompleteVisitRequest] = None,
) -> VisitResponse:
    products = None
    if request is not None and request.products_used is not None:
        products = [usage.to_usage() for usage in request.products_used]
    return VisitResponse.from_visit(synchronizer.complete_visit(visit_id, products))


@router.post(
    "/{visit_id}/skip",
    response_model=VisitResponse,
    summary="Skip (cancel) a visit",
)
async def skip_visit(
    visit_id: str,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> VisitResponse:
    return VisitResponse.from_visit(synchronizer.skip_visit(visit_id))


@router.put(
    "/{visit_id}/readings",
    response_model=ReadingsResponse,
    summary="Record readings taken during a visit",
    description="Updates the pool's water state and optionally the visit's product list.",
)
async def record_readings(
    visit_id: str,
    request: ReadingsRequest,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> ReadingsResponse:
    readings = PoolReadings(**request.model_dump(exclude={"products_used"}))
    products = None
    if request.products_used is not None:
        products = [usage.to_usage() for usage in request.products_used]

    visit, pool = synchronizer.record_visit_readings(visit_id, readings, products)
    return ReadingsResponse(
        visit=VisitResponse.from_visit(visit),
        pool=PoolResponse.from_pool(pool),
    )


@router.post(
    "/{visit_id}/calendar-sync",
    response_model=CalendarSyncResponse,
    summary="Push a visit to Google Calendar",
)
async def sync_visit_to_calendar(
    visit_id: str,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
    synchronizer: SynchronizerDep,
    bridge: CalendarBridgeDep,
) -> CalendarSyncResponse:
    visit = repository.get_visit(user_id, visit_id)
    response = await _sync(bridge, synchronizer, user_id, visit)
    if response is None:
        return CalendarSyncResponse(
            status="error",
            message="Google Calendar is not configured on this server.",
        )
    return response


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _sync(
    bridge: Optional[CalendarSyncBridge],
    synchronizer: RecordSynchronizer,
    user_id: str,
    visit: Visit,
) -> Optional[CalendarSyncResponse]:
    if bridge is None:
        return None

    try:
        result = await bridge.sync_visit(build_sync_request(user_id, visit))
    except Exception as e:
        # The visit is already saved; report the sync failure instead of raising
        logger.error(
            "Calendar sync crashed",
            extra={"visit_id": visit.id, "error": str(e)},
        )
        return CalendarSyncResponse(status="error", message=str(e))

    if not result.ok and result.event_id:
        _store_unlinked_event(synchronizer, visit, result.event_id)
    return CalendarSyncResponse.from_result(result)


def _store_unlinked_event(synchronizer: RecordSynchronizer, visit: Visit, event_id: str) -> None:
    """Keep an event the bridge created but couldn't link, so the next sync updates it."""
    try:
        synchronizer.link_calendar_event(visit, event_id)
    except Exception as e:
        logger.error(
            "Calendar event still unlinked after sync",
            extra={"visit_id": visit.id, "event_id": event_id, "error": str(e)},
        )
        return
    logger.info(
        "Linked calendar event after sync",
        extra={"visit_id": visit.id, "event_id": event_id},
    )


async def _saved_with_sync(
    bridge: Optional[CalendarSyncBridge],
    synchronizer: RecordSynchronizer,
    user_id: str,
    visit: Visit,
) -> VisitSaveResponse:
    calendar_sync = await _sync(bridge, synchronizer, user_id, visit)
    if calendar_sync is not None and calendar_sync.event_id:
        visit.calendar_event_id = calendar_sync.event_id
    return VisitSaveResponse(visit=VisitResponse.from_visit(visit), calendar_sync=calendar_sync)
