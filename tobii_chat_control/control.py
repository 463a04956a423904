"""Persistent websocket channel to the local Tobii Ghost control service.

The channel keeps a single socket open for the lifetime of the process. Any
close or error moves it back to ``DISCONNECTED`` and arms one one-shot
reconnect timer; there is no backoff growth and no attempt cap because the
service runs on the same machine and is expected to come back.

Sends are fire-and-forget: a message issued while the socket is not open is
dropped, never queued.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

import aiohttp

from .config import ControlConfig
from .state import ProfileId, SessionState, parse_profiles

LOGGER = logging.getLogger(__name__)

GET_PROFILE_LIST = "GetProfileList"
SET_ENABLED = "SetEnabled"
SET_CURRENT_PROFILE_ID = "SetCurrentProfileId"
PROFILE_LIST_CHANGED = "ProfileListChanged"

StateListener = Callable[["ControlState"], None]


class ControlState(str, Enum):
    """Current state of the control service connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


def build_message(kind: str, payload: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
    return {"type": kind, "payload": dict(payload or {})}


class ControlChannel:
    """Owns the control socket, its reconnect timer and outbound commands."""

    def __init__(
        self,
        config: ControlConfig,
        session_state: SessionState,
        *,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.url = config.url
        self.reconnect_delay = config.reconnect_delay_seconds
        self.session_state = session_state

        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader_task: Optional[asyncio.Task[None]] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._state = ControlState.DISCONNECTED
        self._stopping = False
        self._failures = 0
        self._state_listeners: list[StateListener] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> ControlState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ControlState.OPEN

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def connect(self) -> None:
        """Start an open attempt unless a socket is already open or opening."""

        if self._reader_task is not None and not self._reader_task.done():
            return
        if self._state == ControlState.OPEN:
            return

        self._stopping = False
        self._reader_task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel any pending reconnect and close the socket for good."""

        self._stopping = True
        self._cancel_reconnect()

        if self._reader_task is not None:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None

        ws = self._ws
        self._ws = None
        if ws is not None and not ws.closed:
            await ws.close()
        self._set_state(ControlState.DISCONNECTED)

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def on_closed(self) -> None:
        """Handle a closed socket: discard it and arm one reconnect timer."""

        was_open = self._state == ControlState.OPEN
        reader = self._reader_task
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            # the reader closes its socket on cancellation
            reader.cancel()
            self._reader_task = None
        self._ws = None
        self._set_state(ControlState.DISCONNECTED)
        if was_open:
            LOGGER.info("Control service connection closed")
        self._schedule_reconnect()

    def on_error(self, exc: BaseException) -> None:
        """Errors while connecting or connected are handled like a close."""

        self._failures += 1
        if self._failures == 1:
            LOGGER.warning(
                "Control service unavailable at %s: %s (retrying every %.1fs)",
                self.url,
                str(exc) or type(exc).__name__,
                self.reconnect_delay,
            )
        else:
            LOGGER.debug("Control service attempt %d failed: %s", self._failures, exc)
        self.on_closed()

    async def on_notification(self, raw: Union[str, bytes, Mapping[str, Any]]) -> None:
        """Apply an inbound service message; unknown kinds are ignored."""

        payload = _decode(raw)
        if payload is None:
            LOGGER.debug("Discarding non-JSON control message")
            return

        kind = payload.get("type")
        if kind != PROFILE_LIST_CHANGED:
            LOGGER.debug("Ignoring control message of type %r", kind)
            return

        body = payload.get("payload")
        entries = body.get("profiles") if isinstance(body, dict) else None
        if not isinstance(entries, list):
            LOGGER.debug("Ignoring %s without a profile list", PROFILE_LIST_CHANGED)
            return

        profiles = parse_profiles(entries)
        self.session_state.replace_profiles(profiles)
        LOGGER.info("Profile list updated (%d profiles)", len(profiles))

    async def send(self, message: Mapping[str, Any]) -> bool:
        """Send a message if the socket is open; otherwise drop it."""

        ws = self._ws
        kind = message.get("type")
        if self._state != ControlState.OPEN or ws is None or ws.closed:
            LOGGER.debug("Dropping %s; control channel is %s", kind, self._state.value)
            return False

        try:
            await ws.send_json(dict(message))
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.warning("Failed to send %s to control service: %s", kind, exc)
            return False
        return True

    async def request_profiles(self) -> bool:
        return await self.send(build_message(GET_PROFILE_LIST))

    async def set_toggle(self, enabled: bool) -> bool:
        self.session_state.toggle_enabled = enabled
        sent = await self.send(build_message(SET_ENABLED, {"enabled": enabled}))
        LOGGER.info("Ghost %s", "enabled" if enabled else "disabled")
        return sent

    async def select_profile(self, profile_id: ProfileId) -> bool:
        sent = await self.send(
            build_message(SET_CURRENT_PROFILE_ID, {"profileId": profile_id})
        )
        LOGGER.info("Selected profile %r", profile_id)
        return sent

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=None)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def _run(self) -> None:
        self._set_state(ControlState.CONNECTING)
        try:
            session = await self._ensure_session()
            ws = await session.ws_connect(self.url)
        except asyncio.CancelledError:
            self._set_state(ControlState.DISCONNECTED)
            raise
        except Exception as exc:
            self.on_error(exc)
            return

        self._ws = ws
        self._failures = 0
        self._set_state(ControlState.OPEN)
        LOGGER.info("Connected to control service at %s", self.url)

        error: Optional[BaseException] = None
        try:
            await self.request_profiles()
            async for message in ws:
                if message.type == aiohttp.WSMsgType.TEXT:
                    await self.on_notification(message.data)
                elif message.type == aiohttp.WSMsgType.ERROR:
                    raise ws.exception() or RuntimeError("Websocket error")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = exc
        finally:
            if self._ws is ws:
                self._ws = None
            if not ws.closed:
                await ws.close()

        if error is not None:
            self.on_error(error)
        else:
            self.on_closed()

    def _schedule_reconnect(self) -> None:
        if self._stopping or self._reconnect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_delay, self._reconnect_due)

    def _reconnect_due(self) -> None:
        self._reconnect_handle = None
        if self._stopping:
            return
        self.connect()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _set_state(self, state: ControlState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                LOGGER.exception("Control state listener failed")


def _decode(raw: Union[str, bytes, Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    if isinstance(raw, Mapping):
        return dict(raw)
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None
