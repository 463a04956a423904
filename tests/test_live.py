"""Tests for LiveFeedConnector retry and relay behaviour."""

import asyncio
from typing import Callable, Optional

import pytest

from tobii_chat_control.live import LiveFeedConnector, LiveState


class FakeLiveSource:
    """Scripted live source: fails ``failures`` times, then connects."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.connect_calls = 0
        self.close_calls = 0
        self.handler: Optional[Callable] = None
        self._closed = asyncio.Event()

    def set_comment_handler(self, handler) -> None:
        self.handler = handler

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_calls <= self.failures:
            raise ConnectionError("user offline")
        self._closed = asyncio.Event()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def aclose(self) -> None:
        self.close_calls += 1
        self._closed.set()

    def drop(self) -> None:
        self._closed.set()

    async def emit(self, text: str) -> None:
        assert self.handler is not None
        await self.handler(text)


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_connect_until_live_retries_with_fixed_delay():
    source = FakeLiveSource(failures=3)
    connector = LiveFeedConnector(source, retry_delay=0.01)
    states: list[LiveState] = []
    connector.add_state_listener(states.append)

    assert connector.state == LiveState.NOT_STARTED
    assert await connector.connect_until_live() is True

    assert source.connect_calls == 4
    assert connector.attempts == 4
    assert connector.state == LiveState.CONNECTED
    assert states == [LiveState.RETRYING, LiveState.CONNECTED]


@pytest.mark.asyncio
async def test_stop_cancels_retry_wait():
    source = FakeLiveSource(failures=10_000)
    connector = LiveFeedConnector(source, retry_delay=60)

    task = asyncio.create_task(connector.connect_until_live())
    await _wait_until(lambda: source.connect_calls == 1)
    await connector.stop()

    assert await asyncio.wait_for(task, timeout=1.0) is False
    assert source.connect_calls == 1
    assert connector.state == LiveState.RETRYING


@pytest.mark.asyncio
async def test_chat_is_forwarded_only_while_connected():
    source = FakeLiveSource()
    connector = LiveFeedConnector(source, retry_delay=0.01)
    received: list[str] = []
    connector.subscribe(received.append)

    await source.emit("!early")
    await connector.connect_until_live()
    await source.emit("!on")
    await source.emit("hello")

    assert received == ["!on", "hello"]


@pytest.mark.asyncio
async def test_connected_callbacks_fire_once_per_connection():
    source = FakeLiveSource(failures=1)
    connector = LiveFeedConnector(source, retry_delay=0.01)
    connected: list[int] = []

    async def on_connected() -> None:
        connected.append(source.connect_calls)

    connector.register_connected_callback(on_connected)
    await connector.connect_until_live()

    assert connected == [2]


@pytest.mark.asyncio
async def test_subscriber_failure_does_not_stop_relay():
    source = FakeLiveSource()
    connector = LiveFeedConnector(source, retry_delay=0.01)
    received: list[str] = []

    def broken(text: str) -> None:
        raise RuntimeError("boom")

    connector.subscribe(broken)
    connector.subscribe(received.append)
    await connector.connect_until_live()
    await source.emit("!off")

    assert received == ["!off"]


@pytest.mark.asyncio
async def test_run_reconnects_after_drop():
    source = FakeLiveSource()
    connector = LiveFeedConnector(source, retry_delay=0.01, reconnect_on_drop=True)

    task = asyncio.create_task(connector.run())
    try:
        await _wait_until(lambda: connector.is_connected)
        source.failures = 2
        source.connect_calls = 0
        source.drop()

        await _wait_until(lambda: source.connect_calls == 3 and connector.is_connected)
    finally:
        await connector.stop()
        await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_run_without_reconnect_stays_down_until_stopped():
    source = FakeLiveSource()
    connector = LiveFeedConnector(source, retry_delay=0.01, reconnect_on_drop=False)

    task = asyncio.create_task(connector.run())
    await _wait_until(lambda: connector.is_connected)
    source.drop()
    await asyncio.sleep(0.05)

    assert source.connect_calls == 1
    assert not task.done()

    await connector.stop()
    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_run_returns_when_stopped_while_connected():
    source = FakeLiveSource()
    connector = LiveFeedConnector(source, retry_delay=0.01)

    task = asyncio.create_task(connector.run())
    await _wait_until(lambda: connector.is_connected)
    await connector.stop()

    await asyncio.wait_for(task, timeout=1.0)
    assert source.close_calls == 1
    assert task.exception() is None
