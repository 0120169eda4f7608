from __future__ import annotations

import asyncio
import threading
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from datastore.sensor_store import SensorStore, create_store_engine
from models.records import PersistedRecord, Reading
from services.cache import ReadingCache
from services.scheduler import PersistenceScheduler

READING_A = Reading(temperature=20.0, humidity=40.0, light=100, soil_raw=300, soil_percent=30)
READING_B = Reading(temperature=22.5, humidity=55.0, light=300, soil_raw=410, soil_percent=60)


class FailingStore:
    def __init__(self) -> None:
        self.attempts = 0

    def insert(self, reading: Reading):
        self.attempts += 1
        raise RuntimeError("database unavailable")


@pytest.fixture()
def store(tmp_path: Path) -> SensorStore:
    sensor_store = SensorStore(create_store_engine(f"sqlite:///{tmp_path / 'sensors.db'}"))
    sensor_store.ensure_schema()
    yield sensor_store
    sensor_store.dispose()


def _all_rows(store: SensorStore):
    return store.fetch_since(datetime(2000, 1, 1, tzinfo=timezone.utc))


def test_empty_cache_writes_nothing(store: SensorStore) -> None:
    scheduler = PersistenceScheduler(cache=ReadingCache(), store=store)
    try:
        assert scheduler.persist_once() is None
    finally:
        scheduler.executor.shutdown()

    assert _all_rows(store) == []


def test_present_cache_writes_exactly_one_row(store: SensorStore) -> None:
    cache = ReadingCache()
    cache.set(READING_B)
    scheduler = PersistenceScheduler(cache=cache, store=store)

    before = datetime.now(timezone.utc)
    record = scheduler.persist_once()
    after = datetime.now(timezone.utc)
    scheduler.executor.shutdown()

    assert record is not None
    rows = _all_rows(store)
    assert len(rows) == 1
    assert rows[0].reading == READING_B
    assert before <= rows[0].created_at <= after


def test_only_latest_reading_between_cycles_is_persisted(store: SensorStore) -> None:
    cache = ReadingCache()
    scheduler = PersistenceScheduler(cache=cache, store=store)

    cache.set(READING_A)
    cache.set(READING_B)
    scheduler.persist_once()
    scheduler.executor.shutdown()

    assert [row.reading for row in _all_rows(store)] == [READING_B]


def test_write_failure_is_swallowed_and_next_cycle_runs() -> None:
    cache = ReadingCache()
    cache.set(READING_A)
    failing = FailingStore()
    scheduler = PersistenceScheduler(cache=cache, store=failing)  # type: ignore[arg-type]

    assert scheduler.persist_once() is None
    assert scheduler.persist_once() is None
    scheduler.executor.shutdown()

    assert failing.attempts == 2


def test_timer_runs_cycles_until_stopped(store: SensorStore) -> None:
    cache = ReadingCache()
    cache.set(READING_A)
    scheduler = PersistenceScheduler(cache=cache, store=store, interval=0.05)

    async def scenario() -> None:
        scheduler.start()
        assert scheduler.running is True
        await asyncio.sleep(0.3)
        await scheduler.stop()
        assert scheduler.running is False

    asyncio.run(scenario())

    assert len(_all_rows(store)) >= 2


def test_timer_does_not_fire_before_first_interval(store: SensorStore) -> None:
    cache = ReadingCache()
    cache.set(READING_A)
    scheduler = PersistenceScheduler(cache=cache, store=store, interval=timedelta(hours=1).total_seconds())

    async def scenario() -> None:
        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

    asyncio.run(scenario())

    assert _all_rows(store) == []


class SlowStore:
    def __init__(self, started: threading.Event) -> None:
        self.started = started
        self.finished = False

    def insert(self, reading: Reading):
        self.started.set()
        time.sleep(0.2)
        self.finished = True
        return PersistedRecord(id=1, reading=reading, created_at=datetime.now(timezone.utc))


def test_stop_waits_for_in_flight_write() -> None:
    cache = ReadingCache()
    cache.set(READING_A)
    started = threading.Event()
    slow = SlowStore(started)
    scheduler = PersistenceScheduler(cache=cache, store=slow, interval=0.01)  # type: ignore[arg-type]

    async def scenario() -> None:
        scheduler.start()
        assert await asyncio.to_thread(started.wait, 2) is True
        await scheduler.stop()

    asyncio.run(scenario())

    assert slow.finished is True
