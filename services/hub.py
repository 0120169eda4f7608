"""Fan-out of live sensor events to connected viewers."""

from __future__ import annotations

import asyncio
import logging
from threading import Lock
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from models.records import Reading
from services.cache import ReadingCache

logger = logging.getLogger(__name__)

SENSOR_EVENT = "sensorData"
STATUS_EVENT = "pumpStatus"
COMMAND_EVENT = "pumpCommand"

CommandSink = Callable[[str], bool]
Message = Dict[str, Any]


def make_message(event: str, data: Any) -> Message:
    return {"event": event, "data": data}


class ViewerSession:
    """Outbound buffer for one real-time viewer.

    The queue is bounded; when a viewer falls behind the oldest pending
    event is discarded so broadcasters never wait on it.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self.id = uuid4().hex[:8]
        self.queue: asyncio.Queue[Message] = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0

    def offer(self, message: Message) -> None:
        try:
            self.queue.put_nowait(message)
            return
        except asyncio.QueueFull:
            pass

        try:
            self.queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        self.dropped += 1
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1

    async def next_message(self) -> Message:
        return await self.queue.get()


class FanOutHub:
    """Tracks viewer sessions and broadcasts broker events to all of them."""

    def __init__(
        self,
        command_sink: CommandSink,
        cache: Optional[ReadingCache] = None,
        queue_size: int = 100,
        snapshot_on_connect: bool = False,
    ) -> None:
        self._command_sink = command_sink
        self._cache = cache
        self.queue_size = queue_size
        self.snapshot_on_connect = snapshot_on_connect
        self._sessions: Dict[str, ViewerSession] = {}
        self._sessions_lock = Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def session_count(self) -> int:
        with self._sessions_lock:
            return len(self._sessions)

    def attach_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        """Bind the event loop that owns the session queues."""
        self._loop = loop

    def open_session(self) -> ViewerSession:
        session = ViewerSession(queue_size=self.queue_size)
        self.connect(session)
        return session

    def connect(self, session: ViewerSession) -> None:
        with self._sessions_lock:
            self._sessions[session.id] = session
            count = len(self._sessions)
        logger.info(
            "Dashboard connected", extra={"viewer_id": session.id, "viewer_count": count}
        )

        if self.snapshot_on_connect and self._cache is not None:
            reading = self._cache.get()
            if reading is not None:
                session.offer(make_message(SENSOR_EVENT, reading.to_payload()))

    def disconnect(self, session: ViewerSession) -> None:
        with self._sessions_lock:
            removed = self._sessions.pop(session.id, None)
            count = len(self._sessions)
        if removed is None:
            return
        logger.info(
            "Dashboard disconnected",
            extra={"viewer_id": session.id, "viewer_count": count, "dropped": session.dropped or None},
        )

    def broadcast_reading(self, reading: Reading) -> int:
        return self._broadcast(make_message(SENSOR_EVENT, reading.to_payload()))

    def broadcast_status(self, status: str) -> int:
        return self._broadcast(make_message(STATUS_EVENT, status))

    def handle_command(self, session: ViewerSession, command: str) -> bool:
        logger.info(
            "Pump command received: %s",
            command,
            extra={"viewer_id": session.id, "event": COMMAND_EVENT},
        )
        return self._command_sink(command)

    def dispatch_threadsafe(self, event: str, data: Any) -> None:
        """Schedule a broadcast from a non-loop thread, in call order."""
        loop = self._loop
        if loop is None:
            logger.debug("No event loop bound, dropping event", extra={"event": event})
            return
        try:
            loop.call_soon_threadsafe(self._broadcast, make_message(event, data))
        except RuntimeError:
            logger.debug("Event loop closed, dropping event", extra={"event": event})

    def _broadcast(self, message: Message) -> int:
        with self._sessions_lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            session.offer(message)
        return len(sessions)
