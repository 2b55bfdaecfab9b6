"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Routes never build their own store handles or API
clients, so tests can swap any of them through app.dependency_overrides.

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.recommendations.advisor import ProductAdvisor
from ..core.scheduling.calendar import CalendarSyncBridge
from ..core.scheduling.sync import RecordSynchronizer
from ..infrastructure.anthropic.client import AnthropicConfig, AnthropicTextClient
from ..infrastructure.google.calendar import GoogleCalendarClient
from ..infrastructure.google.oauth import GoogleOAuthClient, GoogleOAuthConfig
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    create_snowflake_connection,
)
from ..infrastructure.snowflake.repositories.documents import ChangeFeed, SnowflakeConfig
from ..infrastructure.snowflake.repositories.records import RecordRepository

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Process-wide state. The mock connection is shared so data persists across
# requests; the change feed is shared so watchers see every request's writes.
_mock_snowflake_connection: Optional[MockSnowflakeConnection] = None
_change_feed = ChangeFeed()


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


async def get_user_id(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    The signed-in user, as asserted by the front end.

    Identity is verified upstream; every record read or written by a
    request is scoped to this id.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated. Provide X-User-Id header.",
        )
    return x_user_id.strip()


# ---------------------------------------------------------------------------
# Store Dependencies
# ---------------------------------------------------------------------------

def get_change_feed() -> ChangeFeed:
    return _change_feed


def get_mock_connection() -> MockSnowflakeConnection:
    global _mock_snowflake_connection

    if _mock_snowflake_connection is None:
        _mock_snowflake_connection = MockSnowflakeConnection()
        logger.info("Created shared mock Snowflake connection")
    return _mock_snowflake_connection


def reset_mock_store() -> None:
    """Drop the shared in-memory store (used between tests)."""
    global _mock_snowflake_connection
    _mock_snowflake_connection = None


def snowflake_config(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def get_record_repository(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[RecordRepository, None, None]:
    """
    Provide RecordRepository with a database connection.

    A generator so the connection is closed after the request. In mock
    mode the same in-memory connection is reused across requests.
    """
    if settings.store_mock_mode:
        yield RecordRepository(get_mock_connection(), _change_feed)
    else:
        with create_snowflake_connection(config=snowflake_config(settings)) as conn:
            logger.debug("Created RecordRepository with Snowflake connection")
            yield RecordRepository(conn, _change_feed)


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_synchronizer(
    repository: Annotated[RecordRepository, Depends(get_record_repository)],
    user_id: Annotated[str, Depends(get_user_id)],
) -> RecordSynchronizer:
    return RecordSynchronizer(repository, user_id)


def get_product_advisor(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ProductAdvisor:
    """
    Provide ProductAdvisor backed by Claude.

    The advisor is stateless, so we create a new instance per request.
    Without an API key it still validates input but answers every
    request with the "unavailable" entry.
    """
    if not settings.anthropic_api_key:
        return ProductAdvisor(text_client=None)

    config = AnthropicConfig(
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        max_tokens=settings.anthropic_max_tokens,
        temperature=settings.anthropic_temperature,
    )
    return ProductAdvisor(text_client=AnthropicTextClient(config))


def get_oauth_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Optional[GoogleOAuthClient]:
    """None when no Google OAuth client is configured."""
    if not settings.google_configured:
        return None

    return GoogleOAuthClient(GoogleOAuthConfig(
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_redirect_uri,
        timeout_seconds=settings.http_timeout_seconds,
    ))


def get_calendar_bridge(
    settings: Annotated[Settings, Depends(get_settings)],
    repository: Annotated[RecordRepository, Depends(get_record_repository)],
    oauth: Annotated[Optional[GoogleOAuthClient], Depends(get_oauth_client)],
) -> Optional[CalendarSyncBridge]:
    """
    Provide the calendar bridge, or None when Google isn't configured.

    Visit saves still succeed without it; they just report that no sync
    happened.
    """
    if oauth is None:
        return None

    return CalendarSyncBridge(
        store=repository,
        calendar_client=GoogleCalendarClient(oauth, calendar_id=settings.calendar_id),
        time_zone=settings.calendar_time_zone,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
UserIdDep = Annotated[str, Depends(get_user_id)]
RecordRepositoryDep = Annotated[RecordRepository, Depends(get_record_repository)]
SynchronizerDep = Annotated[RecordSynchronizer, Depends(get_synchronizer)]
ProductAdvisorDep = Annotated[ProductAdvisor, Depends(get_product_advisor)]
OAuthClientDep = Annotated[Optional[GoogleOAuthClient], Depends(get_oauth_client)]
CalendarBridgeDep = Annotated[Optional[CalendarSyncBridge], Depends(get_calendar_bridge)]
ChangeFeedDep = Annotated[ChangeFeed, Depends(get_change_feed)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
