from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, List, Optional

import paho.mqtt.client as mqtt
import pytest


class FakeMQTTClient:
    """Records the calls the broker client makes on a paho ``Client``."""

    def __init__(self, client_id: str) -> None:
        self.client_id = client_id
        self.connect_timeout: Optional[float] = None
        self.reconnect_delay: Optional[tuple[int, int]] = None
        self.credentials: Optional[tuple[str, Optional[str]]] = None
        self.tls_configured = False
        self.connect_args: Optional[tuple[str, int]] = None
        self.loop_started = False
        self.loop_stopped = False
        self.disconnected = False
        self.subscriptions: List[list] = []
        self.published: List[tuple[str, str, int]] = []
        self.publish_rc = mqtt.MQTT_ERR_SUCCESS

    def reconnect_delay_set(self, min_delay: int, max_delay: int) -> None:
        self.reconnect_delay = (min_delay, max_delay)

    def username_pw_set(self, username: str, password: Optional[str]) -> None:
        self.credentials = (username, password)

    def tls_set(self, **kwargs: Any) -> None:
        self.tls_configured = True

    def connect_async(self, host: str, port: int, keepalive: int = 60) -> None:
        self.connect_args = (host, port)

    def loop_start(self) -> None:
        self.loop_started = True

    def loop_stop(self) -> None:
        self.loop_stopped = True

    def disconnect(self) -> None:
        self.disconnected = True

    def subscribe(self, topics: list) -> None:
        self.subscriptions.append(topics)

    def publish(self, topic: str, payload: str, qos: int = 0) -> SimpleNamespace:
        self.published.append((topic, payload, qos))
        return SimpleNamespace(rc=self.publish_rc)


@pytest.fixture()
def mqtt_clients() -> List[FakeMQTTClient]:
    """Every fake paho client created by ``mqtt_client_factory`` in this test."""
    return []


@pytest.fixture()
def mqtt_client_factory(mqtt_clients: List[FakeMQTTClient]) -> Callable[[str], FakeMQTTClient]:
    def factory(client_id: str) -> FakeMQTTClient:
        client = FakeMQTTClient(client_id)
        mqtt_clients.append(client)
        return client

    return factory


@pytest.fixture()
def mqtt_message() -> Callable[[str, bytes], SimpleNamespace]:
    def build(topic: str, payload: bytes) -> SimpleNamespace:
        return SimpleNamespace(topic=topic, payload=payload)

    return build
