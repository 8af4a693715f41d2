"""WebSocket stream of session-state change events."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from web.deps import get_bus

logger = logging.getLogger(__name__)

router = APIRouter()


async def _forward(websocket: WebSocket, sub) -> None:
    while True:
        envelope = await sub.get()
        await websocket.send_json(envelope)


async def _drain(websocket: WebSocket) -> None:
    # Observe-only channel: client messages are read (to notice disconnects) and dropped.
    while True:
        await websocket.receive_text()


@router.websocket("/ws")
async def events_socket(websocket: WebSocket, user_id: Optional[int] = None):
    """Push `{type, data}` envelopes; `user_id` limits the stream to one user."""
    bus = get_bus(websocket)
    await websocket.accept()
    sub = bus.subscribe(user_id)
    logger.info("Event stream connected (user=%s)", user_id)
    tasks = []
    try:
        await websocket.send_json({"type": "connected", "data": {"user_id": user_id}})
        tasks = [
            asyncio.create_task(_forward(websocket, sub)),
            asyncio.create_task(_drain(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc and not isinstance(exc, WebSocketDisconnect):
                logger.warning("Event stream error (user=%s): %s", user_id, exc)
    except WebSocketDisconnect:
        pass
    finally:
        for task in tasks:
            task.cancel()
        bus.unsubscribe(sub)
        logger.info("Event stream disconnected (user=%s)", user_id)
