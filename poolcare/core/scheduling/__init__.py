"""
Visit scheduling: the record write path and calendar mirroring.
"""

from .calendar import (
    CalendarAuthError,
    CalendarClient,
    CalendarEvent,
    CalendarSyncBridge,
    CalendarSyncRequest,
    CalendarSyncResult,
    CalendarSyncStatus,
    build_sync_request,
)
from .sync import (
    BackReferenceError,
    PoolReadings,
    RecordNotFoundError,
    RecordStore,
    RecordSynchronizer,
)

__all__ = [
    "CalendarAuthError",
    "CalendarClient",
    "CalendarEvent",
    "CalendarSyncBridge",
    "CalendarSyncRequest",
    "CalendarSyncResult",
    "CalendarSyncStatus",
    "build_sync_request",
    "BackReferenceError",
    "PoolReadings",
    "RecordNotFoundError",
    "RecordStore",
    "RecordSynchronizer",
]
