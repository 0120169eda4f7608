from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_MQTT_HOST_ENV = "MQTT_HOST"
_MQTT_PORT_ENV = "MQTT_PORT"
_MQTT_USER_ENV = "MQTT_USER"
_MQTT_PASSWORD_ENV = "MQTT_PASSWORD"
_MQTT_TLS_ENV = "MQTT_TLS"
_MQTT_ENABLED_ENV = "MQTT_ENABLED"
_SENSOR_TOPIC_ENV = "MQTT_TOPIC"
_STATUS_TOPIC_ENV = "MQTT_STATUS_TOPIC"
_COMMAND_TOPIC_ENV = "MQTT_COMMAND_TOPIC"
_CLIENT_PREFIX_ENV = "MQTT_CLIENT_PREFIX"
_CONNECT_TIMEOUT_ENV = "MQTT_CONNECT_TIMEOUT"
_RECONNECT_DELAY_ENV = "MQTT_RECONNECT_DELAY"
_QOS_ENV = "MQTT_QOS"
_DATABASE_URL_ENV = "DATABASE_URL"
_PERSIST_INTERVAL_ENV = "PERSIST_INTERVAL_SECONDS"
_HISTORY_WINDOW_ENV = "HISTORY_WINDOW_HOURS"
_VIEWER_QUEUE_ENV = "VIEWER_QUEUE_SIZE"
_SNAPSHOT_ENV = "SNAPSHOT_ON_CONNECT"
_WEATHER_KEY_ENV = "WEATHER_API_KEY"
_WEATHER_LAT_ENV = "WEATHER_LAT"
_WEATHER_LON_ENV = "WEATHER_LON"
_CORS_ORIGINS_ENV = "CORS_ALLOWED_ORIGINS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_ALLOWED_ORIGINS = (
    "https://florivatest.netlify.app",
    "http://127.0.0.1:5500",
    "http://localhost:5500",
    "http://localhost:5173",
    "https://localhost:5173",
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    mqtt_host: str
    mqtt_port: int
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    mqtt_tls: bool
    mqtt_enabled: bool
    sensor_topic: str
    status_topic: str
    command_topic: str
    client_id_prefix: str
    connect_timeout: float
    reconnect_delay: int
    mqtt_qos: int
    database_url: str
    persist_interval_seconds: float
    history_window_hours: float
    viewer_queue_size: int
    snapshot_on_connect: bool
    weather_api_key: Optional[str]
    weather_lat: float
    weather_lon: float
    allowed_origins: Tuple[str, ...]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in _TRUE_VALUES:
        return True
    if candidate in _FALSE_VALUES:
        return False
    return default


def _read_qos(default: int) -> int:
    value = os.getenv(_QOS_ENV)
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed in (0, 1, 2) else default


def _read_origins(default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(_CORS_ORIGINS_ENV)
    if value is None:
        return default
    origins = tuple(part.strip() for part in value.split(",") if part.strip())
    return origins or default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        mqtt_host=_read_str_env(_MQTT_HOST_ENV, "localhost"),
        mqtt_port=_read_positive_int(_MQTT_PORT_ENV, 8883),
        mqtt_username=_read_optional_env(_MQTT_USER_ENV, None),
        mqtt_password=_read_optional_env(_MQTT_PASSWORD_ENV, None),
        mqtt_tls=_read_bool(_MQTT_TLS_ENV, True),
        mqtt_enabled=_read_bool(_MQTT_ENABLED_ENV, True),
        sensor_topic=_read_str_env(_SENSOR_TOPIC_ENV, "monitor/andrei/sensors"),
        status_topic=_read_str_env(_STATUS_TOPIC_ENV, "monitor/andrei/pompa/status"),
        command_topic=_read_str_env(_COMMAND_TOPIC_ENV, "monitor/andrei/pompa/cmd"),
        client_id_prefix=_read_str_env(_CLIENT_PREFIX_ENV, "plant-bridge"),
        connect_timeout=_read_positive_float(_CONNECT_TIMEOUT_ENV, 4.0),
        reconnect_delay=_read_positive_int(_RECONNECT_DELAY_ENV, 1),
        mqtt_qos=_read_qos(0),
        database_url=_read_str_env(_DATABASE_URL_ENV, "sqlite:///./tmp/sensor_data.db"),
        persist_interval_seconds=_read_positive_float(_PERSIST_INTERVAL_ENV, 30 * 60.0),
        history_window_hours=_read_positive_float(_HISTORY_WINDOW_ENV, 24.0),
        viewer_queue_size=_read_positive_int(_VIEWER_QUEUE_ENV, 100),
        snapshot_on_connect=_read_bool(_SNAPSHOT_ENV, False),
        weather_api_key=_read_optional_env(_WEATHER_KEY_ENV, None),
        weather_lat=_read_float(_WEATHER_LAT_ENV, 44.85),
        weather_lon=_read_float(_WEATHER_LON_ENV, 24.88),
        allowed_origins=_read_origins(DEFAULT_ALLOWED_ORIGINS),
        log_level=_read_log_level("INFO"),
    )
