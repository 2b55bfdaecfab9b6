"""
Google OAuth endpoints for calendar sync.

The front end opens /auth/google in a popup with state set to the user's
id. Google sends the user back to the callback, which stores the tokens
and answers with a tiny page that messages the opener and closes itself.
"""

import html
import json
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import HTMLResponse, RedirectResponse

from ...core.pools.models import GoogleCredentials
from ...infrastructure.google.oauth import GoogleAuthError
from ..dependencies import OAuthClientDep, RecordRepositoryDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


SUCCESS_MESSAGE = "google-auth-success"
ERROR_MESSAGE = "google-auth-error"

POPUP_TEMPLATE = """<!DOCTYPE html>
<html>
  <head><title>Google Calendar</title></head>
  <body>
    <p>{text}</p>
    <script>
{post_message}
      window.close();
    </script>
  </body>
</html>
"""

POST_MESSAGE_TEMPLATE = """      if (window.opener) {{
        window.opener.postMessage({payload}, {origin});
      }}"""


@router.get(
    "",
    summary="Start Google authorization",
    description="Redirects to Google's consent screen. Pass the user id as state.",
    response_class=RedirectResponse,
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
)
async def start_google_auth(
    oauth: OAuthClientDep,
    state: str = Query(min_length=1, description="Id of the user granting access"),
) -> RedirectResponse:
    if oauth is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google integration is not configured on this server.",
        )
    return RedirectResponse(oauth.authorization_url(state))


@router.get(
    "/callback",
    response_class=HTMLResponse,
    summary="Google authorization callback",
)
async def google_auth_callback(
    oauth: OAuthClientDep,
    repository: RecordRepositoryDep,
    settings: SettingsDep,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
) -> HTMLResponse:
    origin = settings.oauth_message_origin

    if error:
        logger.warning("Google authorization denied", extra={"error": error})
        return _popup_page(origin, ERROR_MESSAGE, f"Authorization failed: {error}")

    if not code or not state:
        return _popup_page(origin, ERROR_MESSAGE, "Missing authorization code or user id.")

    if oauth is None:
        return _popup_page(origin, ERROR_MESSAGE, "Google integration is not configured.")

    try:
        credentials = await oauth.exchange_code(code)
        if not credentials.refresh_token:
            # Google only repeats the refresh token when consent is forced
            previous = repository.get_credentials(state)
            credentials = GoogleCredentials(
                access_token=credentials.access_token,
                refresh_token=previous.refresh_token,
                token_expiry=credentials.token_expiry,
            )
        repository.save_credentials(state, credentials)
    except GoogleAuthError as e:
        logger.error("Google code exchange failed", extra={"user_id": state, "error": str(e)})
        return _popup_page(origin, ERROR_MESSAGE, "Could not complete Google authorization.")
    except Exception as e:
        logger.error(
            "Storing Google credentials failed",
            extra={"user_id": state, "error": str(e)},
            exc_info=e,
        )
        return _popup_page(origin, ERROR_MESSAGE, "Could not save Google authorization.")

    logger.info("Google account connected", extra={"user_id": state})
    return _popup_page(
        origin, SUCCESS_MESSAGE, "Google Calendar connected. You can close this window."
    )


def _popup_page(origin: Optional[str], message_type: str, text: str) -> HTMLResponse:
    """
    Page that reports the outcome to the window that opened the popup.

    Only the configured front-end origin can receive the message; with no
    origin configured the page just closes.
    """
    payload = {"type": message_type}
    if message_type == ERROR_MESSAGE:
        payload["error"] = text

    post_message = ""
    if origin:
        # Keep "</script>" in the message from ending the script block
        post_message = POST_MESSAGE_TEMPLATE.format(
            payload=json.dumps(payload).replace("<", "\\u003c"),
            origin=json.dumps(origin).replace("<", "\\u003c"),
        )

    body = POPUP_TEMPLATE.format(
        text=html.escape(text),
        post_message=post_message,
    )
    return HTMLResponse(content=body, status_code=status.HTTP_200_OK)
