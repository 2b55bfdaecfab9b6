"""
Google OAuth and Calendar integration over plain HTTPS.
"""

from .calendar import CalendarAPIError, GoogleCalendarClient, event_body
from .oauth import (
    SCOPES,
    GoogleAuthError,
    GoogleOAuthClient,
    GoogleOAuthConfig,
)

__all__ = [
    "CalendarAPIError",
    "GoogleCalendarClient",
    "event_body",
    "SCOPES",
    "GoogleAuthError",
    "GoogleOAuthClient",
    "GoogleOAuthConfig",
]
