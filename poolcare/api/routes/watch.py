"""
Live change stream over a WebSocket.

Clients subscribe to a path below their user root ("clients",
"clients/{id}/visits", ...) or to a shared collection ("products") and
receive one JSON message per committed write at or below it. Browsers
can't set headers on a WebSocket, so the API key and user id travel as
query parameters.
"""

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from ...infrastructure.snowflake.repositories.documents import DocumentChange
from ..dependencies import ChangeFeedDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()

# Collections that live outside any user root
SHARED_COLLECTIONS = ("products",)


@router.websocket("")
async def watch_changes(
    websocket: WebSocket,
    settings: SettingsDep,
    feed: ChangeFeedDep,
    api_key: str = Query(alias="apiKey"),
    user_id: str = Query(alias="userId"),
    path: str = Query("", description="Path below the user's root"),
) -> None:
    if api_key not in settings.api_keys_list or not user_id.strip():
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    path = path.strip("/")
    if path.split("/")[0] in SHARED_COLLECTIONS:
        root = ""
        watched = path
    else:
        root = f"users/{user_id.strip()}"
        watched = f"{root}/{path}".rstrip("/")
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[DocumentChange] = asyncio.Queue()

    def on_change(change: DocumentChange) -> None:
        # Writes may be committed on another thread
        loop.call_soon_threadsafe(queue.put_nowait, change)

    # Subscribe before accepting so no write after the handshake is missed
    with feed.subscribe(watched, on_change):
        await websocket.accept()
        await websocket.send_json({"type": "ready", "path": watched[len(root):].lstrip("/")})
        logger.info("Watch opened", extra={"path": watched})

        async def forward() -> None:
            while True:
                change = await queue.get()
                await websocket.send_json(_change_message(change, root))

        forwarder = asyncio.create_task(forward())
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("Watch closed", extra={"path": watched})
        finally:
            forwarder.cancel()


def _change_message(change: DocumentChange, root: str) -> dict:
    return {
        "type": change.kind,
        "collection": change.collection_path[len(root):].lstrip("/"),
        "id": change.document_id,
        "data": change.data,
    }
