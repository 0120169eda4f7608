"""Wiring of the broker, cache, hub and persistence into one service."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Callable, Optional

from app.schemas import BridgeStatus
from datastore.sensor_store import SensorStore, build_default_store
from models.records import Reading
from services.broker import BrokerClient, ReadingParseError
from services.cache import ReadingCache
from services.history import HistoryService
from services.hub import SENSOR_EVENT, STATUS_EVENT, FanOutHub
from services.scheduler import PersistenceScheduler
from services.weather import WeatherClient
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

BrokerFactory = Callable[["IngestionBridge"], BrokerClient]


class IngestionBridge:
    """Coordinates broker ingestion, live fan-out, and scheduled persistence."""

    def __init__(
        self,
        settings: Settings,
        store: SensorStore,
        broker_factory: Optional[BrokerFactory] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.cache = ReadingCache()
        self.hub = FanOutHub(
            command_sink=self.relay_command,
            cache=self.cache,
            queue_size=settings.viewer_queue_size,
            snapshot_on_connect=settings.snapshot_on_connect,
        )
        self.scheduler = PersistenceScheduler(
            cache=self.cache,
            store=store,
            interval=settings.persist_interval_seconds,
        )
        self.history = HistoryService(store=store, window_hours=settings.history_window_hours)
        self.weather = WeatherClient(
            api_key=settings.weather_api_key,
            lat=settings.weather_lat,
            lon=settings.weather_lon,
        )
        factory = broker_factory or _default_broker_factory
        self.broker: Optional[BrokerClient] = factory(self) if settings.mqtt_enabled else None

    def handle_reading(self, reading: Reading) -> None:
        self.cache.set(reading)
        self.hub.dispatch_threadsafe(SENSOR_EVENT, reading.to_payload())

    def handle_status(self, status: str) -> None:
        self.hub.dispatch_threadsafe(STATUS_EVENT, status)

    def handle_invalid(self, payload: bytes, error: ReadingParseError) -> None:
        logger.debug("Rejected payload (%d bytes): %s", len(payload), error)

    def relay_command(self, command: str) -> bool:
        if self.broker is None:
            logger.warning("MQTT disabled, command not relayed", extra={"reason": "mqtt_disabled"})
            return False
        return self.broker.publish_command(command)

    async def start(self) -> None:
        """Bootstrap the schema, then begin persisting and ingesting.

        A schema failure propagates so the application refuses to start.
        """
        await asyncio.to_thread(self.store.ensure_schema)
        self.hub.attach_loop(asyncio.get_running_loop())
        self.scheduler.start()
        if self.broker is not None:
            self.broker.start()
        else:
            logger.warning("MQTT disabled by configuration; no live data will arrive")

    async def stop(self) -> None:
        if self.broker is not None:
            await asyncio.to_thread(self.broker.stop)
        await self.scheduler.stop()
        self.hub.attach_loop(None)
        self.store.dispose()

    def status(self) -> BridgeStatus:
        broker = self.broker
        return BridgeStatus(
            broker_connected=broker.is_connected if broker else False,
            last_message_at=broker.last_message_at if broker else None,
            reading_cached=self.cache.get() is not None,
            reading_updated_at=self.cache.updated_at,
            viewer_count=self.hub.session_count,
            messages_received=broker.messages_received if broker else 0,
            messages_invalid=broker.messages_invalid if broker else 0,
        )


def _default_broker_factory(bridge: IngestionBridge) -> BrokerClient:
    return BrokerClient(
        settings=bridge.settings,
        on_reading=bridge.handle_reading,
        on_status=bridge.handle_status,
        on_invalid=bridge.handle_invalid,
    )


@lru_cache
def build_default_bridge() -> IngestionBridge:
    """Factory that wires the bridge with configured dependencies."""
    settings = get_settings()
    return IngestionBridge(settings=settings, store=build_default_store())
