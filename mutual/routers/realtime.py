"""WebSocket streams for conversation and match-status events.

Clients authenticate with ``?token=`` since browsers cannot set headers on
the upgrade request. Events are pushed as JSON; anything the client sends is
ignored except as a keep-alive. A client that falls more than
``STREAM_QUEUE_SIZE`` events behind is disconnected with 1013 and is expected
to reconnect and re-fetch.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..config import get_settings
from ..models.events import user_topic
from ..models.identifiers import parse_object_id
from ..services.auth_service import get_auth_service
from ..services.conversation_service import get_conversation_channel
from ..services.events import Event, Handler, Subscription, get_event_hub
from ..services.exceptions import MatchingError

LOGGER = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/ws", tags=["realtime"])


class StreamOutbox:
    """Bounded per-socket buffer between the event hub and the socket writer."""

    def __init__(self, maxsize: int) -> None:
        self.queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=max(1, maxsize))
        self.overflowed = asyncio.Event()

    def handler(self) -> Handler:
        def _enqueue(event: Event) -> None:
            if self.overflowed.is_set():
                return
            try:
                self.queue.put_nowait(event)
            except asyncio.QueueFull:
                self.overflowed.set()

        return _enqueue


async def _authenticate(websocket: WebSocket) -> Optional[str]:
    token = (websocket.query_params.get("token") or "").strip()
    profile = await get_auth_service().get_profile_from_token(token) if token else None
    if profile is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return None
    return profile.user_id


async def _pump(websocket: WebSocket, outbox: StreamOutbox) -> None:
    async def _forward() -> None:
        while True:
            event = await outbox.queue.get()
            await websocket.send_json(event)

    async def _drain_client() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass

    tasks = [
        asyncio.create_task(_forward()),
        asyncio.create_task(_drain_client()),
        asyncio.create_task(outbox.overflowed.wait()),
    ]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        if outbox.overflowed.is_set():
            LOGGER.warning("Closing stream %s: client fell behind", websocket.url.path)
            await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
    finally:
        for task in tasks:
            task.cancel()
        for result in await asyncio.gather(*tasks, return_exceptions=True):
            if isinstance(result, Exception):
                LOGGER.debug("Stream task stopped: %s", result)


async def _serve(websocket: WebSocket, subscription: Subscription, outbox: StreamOutbox) -> None:
    async with subscription:
        await websocket.accept()
        await _pump(websocket, outbox)


@router.websocket("/matches/{match_id}")
async def match_stream(websocket: WebSocket, match_id: str) -> None:
    user_id = await _authenticate(websocket)
    if user_id is None:
        return
    oid = parse_object_id(match_id)
    if oid is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    outbox = StreamOutbox(get_settings().stream_queue_size)
    try:
        subscription = await get_conversation_channel().subscribe(oid, user_id, outbox.handler())
    except MatchingError as exc:
        LOGGER.info("Rejected match stream %s for %s: %s", match_id, user_id, exc.code)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await _serve(websocket, subscription, outbox)


@router.websocket("/me")
async def user_stream(websocket: WebSocket) -> None:
    user_id = await _authenticate(websocket)
    if user_id is None:
        return

    outbox = StreamOutbox(get_settings().stream_queue_size)
    subscription = get_event_hub().subscribe(user_topic(user_id), outbox.handler())
    await _serve(websocket, subscription, outbox)


__all__ = ["StreamOutbox", "router"]
