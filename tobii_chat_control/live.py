"""Live broadcast chat feed connection management."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Awaitable, Callable, Protocol, Union

from . import constants

LOGGER = logging.getLogger(__name__)

ChatCallback = Callable[[str], Union[Awaitable[None], None]]
ConnectedCallback = Callable[[], Union[Awaitable[None], None]]
StateListener = Callable[["LiveState"], None]


class LiveState(str, Enum):
    """Current state of the live feed connection."""

    NOT_STARTED = "not_started"
    RETRYING = "retrying"
    CONNECTED = "connected"


class LiveFeedSource(Protocol):
    """Minimal contract for a broadcast chat source."""

    def set_comment_handler(self, handler: ChatCallback) -> None:
        """Route the text of every chat comment to ``handler``."""
        ...

    async def connect(self) -> None:
        """Connect to the broadcast; raise when it is not live (yet)."""
        ...

    async def wait_closed(self) -> None:
        """Return once an established connection has dropped."""
        ...

    async def aclose(self) -> None:
        """Close any underlying resources."""
        ...


class LiveFeedConnector:
    """Retries the live feed until it is broadcasting, then relays chat.

    "Not live yet" is the normal state before a broadcast starts, so every
    failed attempt is followed by the same fixed delay and another attempt.
    """

    def __init__(
        self,
        source: LiveFeedSource,
        *,
        retry_delay: float = constants.DEFAULT_LIVE_RETRY_SECONDS,
        reconnect_on_drop: bool = True,
    ) -> None:
        self.retry_delay = retry_delay
        self.reconnect_on_drop = reconnect_on_drop

        self._source = source
        self._source.set_comment_handler(self.on_chat_event)
        self._state = LiveState.NOT_STARTED
        self._stop_event = asyncio.Event()
        self._subscribers: list[ChatCallback] = []
        self._connected_callbacks: list[ConnectedCallback] = []
        self._state_listeners: list[StateListener] = []
        self._attempts = 0

    @property
    def state(self) -> LiveState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == LiveState.CONNECTED

    @property
    def attempts(self) -> int:
        return self._attempts

    def subscribe(self, callback: ChatCallback) -> None:
        self._subscribers.append(callback)

    def register_connected_callback(self, callback: ConnectedCallback) -> None:
        self._connected_callbacks.append(callback)

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    async def connect_until_live(self) -> bool:
        """Attempt the connection until it succeeds or ``stop`` is called."""

        while not self._stop_event.is_set():
            self._set_state(LiveState.RETRYING)
            self._attempts += 1
            try:
                await self._source.connect()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                LOGGER.info(
                    "Not live yet (%s); retrying in %.0f seconds",
                    str(exc) or type(exc).__name__,
                    self.retry_delay,
                )
                if await self._wait_for_stop(self.retry_delay):
                    return False
                continue

            self._set_state(LiveState.CONNECTED)
            LOGGER.info("Connected to live feed after %d attempt(s)", self._attempts)
            await self._notify_connected()
            return True

        return False

    async def run(self) -> None:
        """Keep the feed connected until stopped."""

        while not self._stop_event.is_set():
            if not await self.connect_until_live():
                return

            await self._wait_for_drop()
            if self._stop_event.is_set():
                return

            if not self.reconnect_on_drop:
                LOGGER.warning(
                    "Live feed disconnected and reconnect is disabled; "
                    "no further chat commands will be received"
                )
                await self._stop_event.wait()
                return

            LOGGER.warning("Live feed disconnected; reconnecting")
            self._attempts = 0

    async def stop(self) -> None:
        self._stop_event.set()
        try:
            await self._source.aclose()
        except Exception:
            LOGGER.warning("Failed to close live feed source", exc_info=True)

    async def on_chat_event(self, text: str) -> None:
        """Forward chat text to subscribers while the feed is connected."""

        if self._state != LiveState.CONNECTED:
            return

        for callback in list(self._subscribers):
            try:
                result = callback(text)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                LOGGER.exception("Chat subscriber failed")

    async def _wait_for_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def _wait_for_drop(self) -> None:
        closed = asyncio.create_task(self._source.wait_closed())
        stopped = asyncio.create_task(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait(
                {closed, stopped}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (closed, stopped):
                if not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await task

        if closed in done and not closed.cancelled():
            exc = closed.exception()
            if exc is not None:
                LOGGER.debug("Live feed closed with error: %s", exc)

    async def _notify_connected(self) -> None:
        for callback in list(self._connected_callbacks):
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                LOGGER.exception("Live connected callback failed")

    def _set_state(self, state: LiveState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("Live state listener failed")
