"""Tests for the TikTok LIVE source adapter."""

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest

from tobii_chat_control.adapters import TikTokLiveSource, resolve_unique_id


@pytest.mark.parametrize(
    "value",
    [
        "streamer",
        "@streamer",
        " @streamer ",
        "https://www.tiktok.com/@streamer/live",
        "www.tiktok.com/@streamer/live?lang=en",
        "tiktok.com/@streamer",
    ],
)
def test_resolve_unique_id(value):
    assert resolve_unique_id(value) == "streamer"


@pytest.mark.parametrize("value", ["", "   ", "@", "https://www.tiktok.com/live"])
def test_resolve_unique_id_rejects_invalid_values(value):
    with pytest.raises(ValueError):
        resolve_unique_id(value)


class FakeTikTokClient:
    instances: list["FakeTikTokClient"] = []
    offline = False

    def __init__(self, *, unique_id: str) -> None:
        self.unique_id = unique_id
        self.listeners: list[tuple[Any, Any]] = []
        self.disconnect_calls = 0
        self.http_closed = False
        self._stopped = asyncio.Event()
        FakeTikTokClient.instances.append(self)

    def add_listener(self, event: Any, handler: Any) -> None:
        self.listeners.append((event, handler))

    async def start(self) -> asyncio.Task:
        if FakeTikTokClient.offline:
            raise ConnectionError("user is offline")
        return asyncio.create_task(self._stopped.wait())

    async def disconnect(self, close_client: bool = False) -> None:
        self.disconnect_calls += 1
        self._stopped.set()
        if close_client:
            await self.close()

    async def close(self) -> None:
        self.http_closed = True

    async def comment(self, text: str) -> None:
        for _, handler in self.listeners:
            await handler(SimpleNamespace(comment=text))


@pytest.fixture(autouse=True)
def _reset_fake_client():
    FakeTikTokClient.instances = []
    FakeTikTokClient.offline = False
    yield


@pytest.mark.asyncio
async def test_source_relays_comment_text():
    source = TikTokLiveSource("@streamer", client_factory=FakeTikTokClient)
    received: list[str] = []
    source.set_comment_handler(received.append)

    await source.connect()
    await FakeTikTokClient.instances[0].comment("!reading")
    await source.aclose()

    assert FakeTikTokClient.instances[0].unique_id == "streamer"
    assert received == ["!reading"]
    assert FakeTikTokClient.instances[0].disconnect_calls == 1


@pytest.mark.asyncio
async def test_source_connect_raises_while_offline():
    FakeTikTokClient.offline = True
    source = TikTokLiveSource("streamer", client_factory=FakeTikTokClient)

    with pytest.raises(ConnectionError):
        await source.connect()


@pytest.mark.asyncio
async def test_offline_attempts_close_their_clients():
    FakeTikTokClient.offline = True
    source = TikTokLiveSource("streamer", client_factory=FakeTikTokClient)

    for _ in range(3):
        with pytest.raises(ConnectionError):
            await source.connect()

    assert [client.http_closed for client in FakeTikTokClient.instances] == [True] * 3

    FakeTikTokClient.offline = False
    await source.connect()
    await source.aclose()

    assert FakeTikTokClient.instances[-1].http_closed


@pytest.mark.asyncio
async def test_wait_closed_returns_when_feed_stops():
    source = TikTokLiveSource("streamer", client_factory=FakeTikTokClient)
    await source.connect()

    waiter = asyncio.create_task(source.wait_closed())
    await asyncio.sleep(0)
    assert not waiter.done()

    await FakeTikTokClient.instances[0].disconnect()
    await asyncio.wait_for(waiter, timeout=1.0)


@pytest.mark.asyncio
async def test_reconnect_builds_a_fresh_client():
    source = TikTokLiveSource("streamer", client_factory=FakeTikTokClient)

    await source.connect()
    await source.connect()

    assert len(FakeTikTokClient.instances) == 2
    assert FakeTikTokClient.instances[0].disconnect_calls == 1
    assert FakeTikTokClient.instances[0].http_closed
    await source.aclose()
