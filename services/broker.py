"""MQTT connection to the plant device.

The client subscribes to the sensor and pump-status topics, decodes inbound
payloads and hands them to callbacks, and publishes operator commands on the
command topic. paho-mqtt runs the network loop on its own thread and
reconnects with a fixed delay for as long as the client is started.
"""

from __future__ import annotations

import logging
import ssl
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Optional
from uuid import uuid4

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from app.schemas import SensorPayload
from models.records import Reading
from settings import Settings

logger = logging.getLogger(__name__)

ReadingHandler = Callable[[Reading], None]
StatusHandler = Callable[[str], None]
InvalidHandler = Callable[[bytes, "ReadingParseError"], None]
ClientFactory = Callable[[str], Any]


class ReadingParseError(ValueError):
    """Raised when a sensor payload cannot be decoded into a reading."""


def parse_reading(payload: bytes) -> Reading:
    try:
        parsed = SensorPayload.model_validate_json(payload)
    except ValidationError as exc:
        raise ReadingParseError(f"Invalid sensor payload: {exc.error_count()} error(s)") from exc
    return parsed.to_reading()


def generate_client_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def _default_client_factory(client_id: str) -> mqtt.Client:
    return mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        clean_session=True,
        protocol=mqtt.MQTTv311,
    )


class BrokerClient:
    """Owns the single broker connection used by the bridge."""

    def __init__(
        self,
        settings: Settings,
        on_reading: ReadingHandler,
        on_status: StatusHandler,
        on_invalid: Optional[InvalidHandler] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.settings = settings
        self.client_id = generate_client_id(settings.client_id_prefix)
        self._on_reading = on_reading
        self._on_status = on_status
        self._on_invalid = on_invalid
        self._client_factory = client_factory or _default_client_factory
        self._client: Optional[Any] = None
        self._connected = False
        self._last_message_at: Optional[datetime] = None
        self._stats_lock = Lock()
        self.messages_received = 0
        self.messages_invalid = 0

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def last_message_at(self) -> Optional[datetime]:
        with self._stats_lock:
            return self._last_message_at

    def start(self) -> None:
        """Configure the client and start connecting in the background."""
        if self._client is not None:
            return

        settings = self.settings
        client = self._client_factory(self.client_id)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        client.connect_timeout = settings.connect_timeout
        client.reconnect_delay_set(
            min_delay=settings.reconnect_delay,
            max_delay=settings.reconnect_delay,
        )
        if settings.mqtt_username:
            client.username_pw_set(settings.mqtt_username, settings.mqtt_password)
        if settings.mqtt_tls:
            client.tls_set(cert_reqs=ssl.CERT_REQUIRED)

        logger.info(
            "Attempting MQTT connection to %s:%d as %s",
            settings.mqtt_host,
            settings.mqtt_port,
            self.client_id,
        )
        # connect_async + loop_start retries the first connection as well.
        client.connect_async(settings.mqtt_host, settings.mqtt_port, keepalive=60)
        client.loop_start()
        self._client = client

    def stop(self) -> None:
        client = self._client
        if client is None:
            return
        self._client = None
        try:
            client.disconnect()
        finally:
            client.loop_stop()
            self._connected = False
        logger.info(
            "MQTT client stopped (received=%d invalid=%d)",
            self.messages_received,
            self.messages_invalid,
        )

    def publish_command(self, command: str) -> bool:
        """Publish ``command`` verbatim on the command topic.

        Returns ``False`` when the message could not be queued.
        """
        topic = self.settings.command_topic
        client = self._client
        if client is None:
            logger.warning(
                "Dropping command, MQTT client not started",
                extra={"topic": topic, "reason": "not_started"},
            )
            return False

        try:
            info = client.publish(topic, command, qos=self.settings.mqtt_qos)
        except (ValueError, OSError) as exc:
            logger.warning(
                "Failed to publish command: %s", exc, extra={"topic": topic, "reason": "error"}
            )
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(
                "Failed to publish command: %s",
                mqtt.error_string(info.rc),
                extra={"topic": topic, "reason": "rc"},
            )
            return False

        logger.info("Command published: %s", command, extra={"topic": topic})
        return True

    def _on_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            self._connected = False
            logger.error("MQTT connection refused: %s", reason_code)
            return

        self._connected = True
        logger.info("Connected to MQTT broker")
        qos = self.settings.mqtt_qos
        client.subscribe([(self.settings.sensor_topic, qos), (self.settings.status_topic, qos)])
        logger.info(
            "Subscribed to %s and %s",
            self.settings.sensor_topic,
            self.settings.status_topic,
        )

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._connected = False
        logger.warning("Disconnected from MQTT broker (%s), retrying", reason_code)

    def _on_message(self, client, userdata, message) -> None:
        topic = message.topic
        payload: bytes = message.payload
        with self._stats_lock:
            self.messages_received += 1
            self._last_message_at = datetime.now(timezone.utc)

        try:
            if topic == self.settings.sensor_topic:
                self._dispatch_reading(payload)
            elif topic == self.settings.status_topic:
                status = payload.decode("utf-8", errors="replace")
                logger.info("Pump status received: %s", status, extra={"topic": topic})
                self._on_status(status)
            else:
                logger.debug("Ignoring message on unexpected topic", extra={"topic": topic})
        except Exception:
            # Handler failures must not take down the network thread.
            logger.exception("Message handler failed", extra={"topic": topic})

    def _dispatch_reading(self, payload: bytes) -> None:
        topic = self.settings.sensor_topic
        try:
            reading = parse_reading(payload)
        except ReadingParseError as exc:
            with self._stats_lock:
                self.messages_invalid += 1
            logger.warning(
                "Dropping sensor payload: %s",
                exc,
                extra={"topic": topic, "reason": "invalid_payload"},
            )
            if self._on_invalid is not None:
                self._on_invalid(payload, exc)
            return

        logger.debug("Sensor data received: %s", reading, extra={"topic": topic})
        self._on_reading(reading)
