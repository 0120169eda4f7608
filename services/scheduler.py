"""Periodic snapshot of the latest reading into the durable store."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from datastore.sensor_store import SensorStore
from models.records import PersistedRecord
from services.cache import ReadingCache

logger = logging.getLogger(__name__)


class PersistenceScheduler:
    """Writes the cached reading every ``interval`` seconds.

    This is a sampling policy: readings that arrive and are replaced between
    two cycles never reach the store.
    """

    def __init__(
        self,
        cache: ReadingCache,
        store: SensorStore,
        interval: float = 30 * 60.0,
    ) -> None:
        self.cache = cache
        self.store = store
        self.interval = interval
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="persist")
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def persist_once(self) -> Optional[PersistedRecord]:
        """Run one cycle; never raises."""
        reading = self.cache.get()
        if reading is None:
            logger.info("No readings available for database save")
            return None

        try:
            record = self.store.insert(reading)
        except Exception as exc:
            logger.error("Error saving sensor data: %s", exc, extra={"reason": type(exc).__name__})
            return None

        logger.info("Sensor data saved to database", extra={"record_id": record.id})
        return record

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="persistence")
        logger.info("Persistence scheduled every %.0f seconds", self.interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        # An in-flight write finishes before the caller disposes the store.
        await asyncio.to_thread(self.executor.shutdown, wait=True, cancel_futures=True)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.interval)
            await loop.run_in_executor(self.executor, self.persist_once)
