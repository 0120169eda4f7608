"""WebSocket channel between the hub and dashboard viewers.

Frames are JSON envelopes ``{"event": ..., "data": ...}``. The server emits
``sensorData`` and ``pumpStatus``; viewers may send ``pumpCommand``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import suppress
from typing import Any

from fastapi import APIRouter, Depends, WebSocket

from app.api import get_bridge
from services.bridge import IngestionBridge
from services.hub import COMMAND_EVENT, FanOutHub, ViewerSession

logger = logging.getLogger(__name__)

router = APIRouter()


async def _send_events(websocket: WebSocket, session: ViewerSession) -> None:
    while True:
        message = await session.next_message()
        try:
            await websocket.send_json(message)
        except Exception as exc:
            logger.debug("Send to viewer failed: %s", exc, extra={"viewer_id": session.id})
            return


def _decode_frame(message: dict[str, Any]) -> Any:
    text = message.get("text")
    if text is None:
        raw = message.get("bytes") or b""
        text = raw.decode("utf-8", errors="replace")
    return json.loads(text)


def _handle_frame(hub: FanOutHub, session: ViewerSession, frame: Any) -> None:
    if not isinstance(frame, dict):
        logger.warning("Ignoring non-object frame", extra={"viewer_id": session.id})
        return

    event = frame.get("event")
    if event != COMMAND_EVENT:
        logger.warning("Ignoring unknown event", extra={"viewer_id": session.id, "event": event})
        return

    command = frame.get("data")
    if not isinstance(command, str):
        logger.warning(
            "Ignoring non-string command",
            extra={"viewer_id": session.id, "event": event, "reason": "bad_payload"},
        )
        return

    hub.handle_command(session, command)


@router.websocket("/ws")
async def viewer_channel(
    websocket: WebSocket,
    bridge: IngestionBridge = Depends(get_bridge),
) -> None:
    hub = bridge.hub
    # Register before accepting so nothing broadcast after the handshake is missed.
    session = hub.open_session()
    sender: asyncio.Task[None] | None = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(_send_events(websocket, session))
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            try:
                frame = _decode_frame(message)
            except ValueError:
                logger.warning("Ignoring malformed frame", extra={"viewer_id": session.id})
                continue
            _handle_frame(hub, session, frame)
    finally:
        if sender is not None:
            sender.cancel()
            with suppress(asyncio.CancelledError):
                await sender
        hub.disconnect(session)
