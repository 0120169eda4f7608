"""Time-window queries over persisted readings."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from datastore.sensor_store import SensorStore
from models.records import PersistedRecord


class HistoryService:
    """Answers "readings in the last N hours" from the durable store only."""

    def __init__(self, store: SensorStore, window_hours: float = 24.0) -> None:
        self.store = store
        self.window_hours = window_hours

    def recent(self, hours: Optional[float] = None) -> list[PersistedRecord]:
        window = self.window_hours if hours is None else hours
        since = self.store.now() - timedelta(hours=window)
        return self.store.fetch_since(since)
