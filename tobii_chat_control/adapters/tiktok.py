"""TikTok LIVE chat source backed by the TikTokLive library."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from TikTokLive import TikTokLiveClient
from TikTokLive.events import CommentEvent

from ..live import ChatCallback

LOGGER = logging.getLogger(__name__)


def resolve_unique_id(live_url: str) -> str:
    """Extract the broadcaster's user name from a handle or a LIVE URL.

    Accepts ``user``, ``@user``, ``tiktok.com/@user/live`` and
    ``https://www.tiktok.com/@user/live``.
    """

    value = (live_url or "").strip()
    if not value:
        raise ValueError("No TikTok live URL configured")

    if "/" in value or "tiktok.com" in value:
        parsed = urlparse(value if "://" in value else f"https://{value}")
        for segment in parsed.path.split("/"):
            if segment.startswith("@") and len(segment) > 1:
                return segment[1:]
        raise ValueError(f"Could not find a TikTok user name in {live_url!r}")

    unique_id = value.lstrip("@")
    if not unique_id:
        raise ValueError(f"Invalid TikTok user name: {live_url!r}")
    return unique_id


class TikTokLiveSource:
    """LiveFeedSource implementation for a TikTok LIVE broadcast.

    A fresh client is built for every connection attempt so a dropped feed
    can be reconnected without reusing a spent client.
    """

    def __init__(
        self,
        live_url: str,
        *,
        client_factory: Callable[..., Any] = TikTokLiveClient,
    ) -> None:
        self.unique_id = resolve_unique_id(live_url)
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._task: Optional[asyncio.Task[Any]] = None
        self._handler: Optional[ChatCallback] = None

    def set_comment_handler(self, handler: ChatCallback) -> None:
        self._handler = handler

    async def connect(self) -> None:
        await self._discard_client()

        client = self._client_factory(unique_id=self.unique_id)
        client.add_listener(CommentEvent, self._on_comment)
        try:
            # raises (e.g. UserOfflineError) while the broadcast is not live
            self._task = await client.start()
        except BaseException:
            await _close_client(client)
            raise
        self._client = client
        LOGGER.debug("TikTok LIVE client started for @%s", self.unique_id)

    async def wait_closed(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
        except Exception as exc:
            LOGGER.debug("TikTok LIVE client stopped with error: %s", exc)

    async def aclose(self) -> None:
        await self._discard_client()

    async def _on_comment(self, event: CommentEvent) -> None:
        text = getattr(event, "comment", None)
        if self._handler is None or not isinstance(text, str):
            return
        result = self._handler(text)
        if asyncio.iscoroutine(result):
            await result

    async def _discard_client(self) -> None:
        client, task = self._client, self._task
        self._client = None
        self._task = None

        if client is not None:
            try:
                await client.disconnect(close_client=True)
            except Exception as exc:
                LOGGER.debug("Ignoring TikTok LIVE disconnect failure: %s", exc)

        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


async def _close_client(client: Any) -> None:
    """Release the HTTP client of a client that never connected."""

    try:
        await client.close()
    except Exception as exc:
        LOGGER.debug("Ignoring TikTok LIVE close failure: %s", exc)
