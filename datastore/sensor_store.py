"""SQL-backed durable store for periodic sensor snapshots."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    Table,
    create_engine,
    func,
    select,
)
from sqlalchemy.engine import Engine, make_url

from models.records import PersistedRecord, Reading
from settings import get_settings

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

metadata = MetaData()

sensor_data = Table(
    "sensor_data",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("temperature", Float),
    Column("humidity", Float),
    Column("light", Integer),
    Column("soil", Integer),
    Column("soil_percent", Integer),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    ),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything written here is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def create_store_engine(url: str) -> Engine:
    """Build an engine, preparing local SQLite files when needed."""
    parsed = make_url(url)
    connect_args = {}
    if parsed.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        database = parsed.database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, pool_pre_ping=True, future=True, connect_args=connect_args)


class SensorStore:
    """Create-if-absent schema, single-row inserts and windowed reads."""

    def __init__(self, engine: Engine, clock: Optional[Clock] = None) -> None:
        self.engine = engine
        self._clock = clock or _utcnow

    def ensure_schema(self) -> None:
        """Create the ``sensor_data`` table if it does not exist yet.

        Safe to call repeatedly. Errors are logged and re-raised: the service
        has nowhere to persist readings without the table.
        """
        try:
            metadata.create_all(self.engine, checkfirst=True)
        except Exception:
            logger.exception("Failed to create 'sensor_data' table")
            raise
        logger.info("Table 'sensor_data' is ready")

    def insert(self, reading: Reading) -> PersistedRecord:
        created_at = _as_utc(self._clock())
        statement = sensor_data.insert().values(
            temperature=reading.temperature,
            humidity=reading.humidity,
            light=reading.light,
            soil=reading.soil_raw,
            soil_percent=reading.soil_percent,
            created_at=created_at,
        )
        with self.engine.begin() as conn:
            result = conn.execute(statement)
            record_id = result.inserted_primary_key[0]
        return PersistedRecord(id=record_id, reading=reading, created_at=created_at)

    def fetch_since(self, since: datetime) -> list[PersistedRecord]:
        """Return rows created at or after ``since``, newest first."""
        statement = (
            select(sensor_data)
            .where(sensor_data.c.created_at >= _as_utc(since))
            .order_by(sensor_data.c.created_at.desc(), sensor_data.c.id.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(statement).mappings().all()
        return [
            PersistedRecord(
                id=row["id"],
                reading=Reading(
                    temperature=row["temperature"],
                    humidity=row["humidity"],
                    light=row["light"],
                    soil_raw=row["soil"],
                    soil_percent=row["soil_percent"],
                ),
                created_at=_as_utc(row["created_at"]),
            )
            for row in rows
        ]

    def now(self) -> datetime:
        return _as_utc(self._clock())

    def dispose(self) -> None:
        self.engine.dispose()


@lru_cache
def build_default_store(url: Optional[str] = None) -> SensorStore:
    settings = get_settings()
    database_url = settings.database_url if url is None else url
    return SensorStore(engine=create_store_engine(database_url))
