"""Single-slot holder for the latest sensor reading."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Optional

from models.records import Reading


class ReadingCache:
    """Last-write-wins store shared by the broker thread and the event loop."""

    def __init__(self) -> None:
        self._reading: Optional[Reading] = None
        self._updated_at: Optional[datetime] = None
        self._lock = Lock()

    def get(self) -> Optional[Reading]:
        with self._lock:
            return self._reading

    def set(self, reading: Reading) -> None:
        with self._lock:
            self._reading = reading
            self._updated_at = datetime.now(timezone.utc)

    @property
    def updated_at(self) -> Optional[datetime]:
        with self._lock:
            return self._updated_at
