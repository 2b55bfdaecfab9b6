"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and stored documents.
"""

from .documents import (
    ChangeFeed,
    DocumentChange,
    DocumentStore,
    SnowflakeConfig,
    StoreError,
    Subscription,
)
from .records import RecordRepository

__all__ = [
    "ChangeFeed",
    "DocumentChange",
    "DocumentStore",
    "SnowflakeConfig",
    "StoreError",
    "Subscription",
    "RecordRepository",
]
