"""Unit tests for the fan-out hub."""

from __future__ import annotations

import asyncio
import threading
from typing import List

import pytest

from models.records import Reading
from services.cache import ReadingCache
from services.hub import FanOutHub, ViewerSession


class CommandRecorder:
    def __init__(self, result: bool = True) -> None:
        self.commands: List[str] = []
        self.result = result

    def __call__(self, command: str) -> bool:
        self.commands.append(command)
        return self.result


READING = Reading(temperature=22.5, humidity=55.0, light=300, soil_raw=410, soil_percent=60)


def _drain(session: ViewerSession) -> list:
    messages = []
    while not session.queue.empty():
        messages.append(session.queue.get_nowait())
    return messages


@pytest.fixture()
def commands() -> CommandRecorder:
    return CommandRecorder()


@pytest.fixture()
def hub(commands: CommandRecorder) -> FanOutHub:
    return FanOutHub(command_sink=commands)


@pytest.mark.parametrize("viewer_count", [0, 1, 5])
def test_reading_is_delivered_once_to_every_viewer(hub: FanOutHub, viewer_count: int) -> None:
    sessions = [hub.open_session() for _ in range(viewer_count)]

    delivered = hub.broadcast_reading(READING)

    assert delivered == viewer_count
    expected = {"event": "sensorData", "data": READING.to_payload()}
    for session in sessions:
        assert _drain(session) == [expected]


def test_status_is_broadcast_verbatim(hub: FanOutHub) -> None:
    first = hub.open_session()
    second = hub.open_session()

    hub.broadcast_status("ON")

    assert _drain(first) == [{"event": "pumpStatus", "data": "ON"}]
    assert _drain(second) == [{"event": "pumpStatus", "data": "ON"}]


def test_broadcasts_keep_arrival_order(hub: FanOutHub) -> None:
    session = hub.open_session()

    hub.broadcast_status("OFF")
    hub.broadcast_reading(READING)
    hub.broadcast_status("ON")

    events = [(message["event"], message["data"]) for message in _drain(session)]
    assert events == [
        ("pumpStatus", "OFF"),
        ("sensorData", READING.to_payload()),
        ("pumpStatus", "ON"),
    ]


def test_new_viewer_receives_nothing_until_next_broadcast(commands: CommandRecorder) -> None:
    cache = ReadingCache()
    cache.set(READING)
    hub = FanOutHub(command_sink=commands, cache=cache)

    session = hub.open_session()

    assert session.queue.empty()


def test_snapshot_on_connect_sends_cached_reading(commands: CommandRecorder) -> None:
    cache = ReadingCache()
    cache.set(READING)
    hub = FanOutHub(command_sink=commands, cache=cache, snapshot_on_connect=True)

    session = hub.open_session()

    assert _drain(session) == [{"event": "sensorData", "data": READING.to_payload()}]


def test_snapshot_on_connect_with_empty_cache_sends_nothing(commands: CommandRecorder) -> None:
    hub = FanOutHub(command_sink=commands, cache=ReadingCache(), snapshot_on_connect=True)

    session = hub.open_session()

    assert session.queue.empty()


def test_disconnect_is_idempotent(hub: FanOutHub) -> None:
    session = hub.open_session()
    other = hub.open_session()

    hub.disconnect(session)
    hub.disconnect(session)

    assert hub.session_count == 1
    assert hub.broadcast_status("ON") == 1
    assert session.queue.empty()
    assert not other.queue.empty()


def test_command_is_forwarded_once_regardless_of_viewer_count(
    hub: FanOutHub, commands: CommandRecorder
) -> None:
    sessions = [hub.open_session() for _ in range(4)]

    assert hub.handle_command(sessions[2], "ON") is True

    assert commands.commands == ["ON"]
    assert all(session.queue.empty() for session in sessions)


def test_command_failure_is_returned(commands: CommandRecorder) -> None:
    commands.result = False
    hub = FanOutHub(command_sink=commands)

    assert hub.handle_command(hub.open_session(), "OFF") is False


def test_full_viewer_queue_drops_oldest_without_blocking_others(commands: CommandRecorder) -> None:
    hub = FanOutHub(command_sink=commands, queue_size=2)
    slow = hub.open_session()
    fast = hub.open_session()

    hub.broadcast_status("1")
    assert len(_drain(fast)) == 1
    hub.broadcast_status("2")
    hub.broadcast_status("3")

    assert [message["data"] for message in _drain(slow)] == ["2", "3"]
    assert slow.dropped == 1
    assert [message["data"] for message in _drain(fast)] == ["2", "3"]


def test_dispatch_without_loop_is_dropped(hub: FanOutHub) -> None:
    session = hub.open_session()

    hub.dispatch_threadsafe("pumpStatus", "ON")

    assert session.queue.empty()


def test_dispatch_from_foreign_thread_reaches_viewers_in_order(hub: FanOutHub) -> None:
    async def scenario() -> list:
        hub.attach_loop(asyncio.get_running_loop())
        session = hub.open_session()

        def producer() -> None:
            for index in range(5):
                hub.dispatch_threadsafe("pumpStatus", str(index))

        thread = threading.Thread(target=producer)
        thread.start()
        thread.join()

        received = []
        for _ in range(5):
            message = await asyncio.wait_for(session.next_message(), timeout=2)
            received.append(message["data"])
        return received

    assert asyncio.run(scenario()) == ["0", "1", "2", "3", "4"]


def test_dispatch_after_loop_closed_is_dropped(hub: FanOutHub) -> None:
    loop = asyncio.new_event_loop()
    hub.attach_loop(loop)
    loop.close()

    hub.dispatch_threadsafe("pumpStatus", "ON")
