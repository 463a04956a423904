"""Main application entry-point for tobii-chat-control."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

from .adapters import TikTokLiveSource
from .commands import CommandDispatcher
from .config import AppConfig, ensure_config_file, load_config
from .control import ControlChannel, ControlState
from .health import HealthReporter, HealthServer
from .live import LiveFeedConnector, LiveFeedSource, LiveState
from .logging import configure_logging
from .menu import Menu, OutputFunc, PromptFunc, terminal_prompt
from .state import SessionState

LOGGER = logging.getLogger(__name__)

LiveSourceFactory = Callable[[str], LiveFeedSource]


class AppPhase(str, Enum):
    MENU = "menu"
    CONNECTING_LIVE = "connecting_live"
    COMMANDS_ONLY = "commands_only"
    STOPPING = "stopping"


class ChatControlApp:
    """Coordinates the control channel, the live feed and the menu.

    The control channel is connected at startup and kept alive for the whole
    run. The menu is shown until the operator connects to the live feed;
    from then on the process only relays chat commands.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        control: Optional[Any] = None,
        live_source_factory: Optional[LiveSourceFactory] = None,
        prompt: PromptFunc = terminal_prompt,
        output: OutputFunc = print,
    ) -> None:
        self._config = config or load_config()
        self._state = SessionState(prefix=self._config.chat.prefix)
        self._control = control or ControlChannel(self._config.control, self._state)
        self._dispatcher = CommandDispatcher(self._state, self._control)
        self._live_source_factory: LiveSourceFactory = (
            live_source_factory or TikTokLiveSource
        )
        self._menu = Menu(
            self._config, self._state, self._control, prompt=prompt, output=output
        )
        self._output = output
        self._live: Optional[LiveFeedConnector] = None
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._phase = AppPhase.MENU
        self._shutdown_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending_updates: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> AppPhase:
        return self._phase

    @property
    def live(self) -> Optional[LiveFeedConnector]:
        return self._live

    @property
    def health(self) -> HealthReporter:
        return self._health

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()

        LOGGER.info("tobii-chat-control starting with config: %s", self._config.path)
        LOGGER.info("Current prefix: %s", self._state.prefix)
        LOGGER.info("Current live URL: %s", self._config.chat.live_url or "<none>")

        await self._start_services()
        try:
            while not self._shutdown_event.is_set():
                await self._transition(AppPhase.MENU)
                if not await self._menu.run():
                    break

                source = self._build_live_source()
                if source is None:
                    continue

                await self._run_live(source)
                break
        except asyncio.CancelledError:
            LOGGER.info("tobii-chat-control received shutdown signal")
            raise
        finally:
            await self._stop_services()

    async def shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()
        if self._live is not None:
            await self._live.stop()

    @classmethod
    def start(cls, config: Optional[AppConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        if ensure_config_file(instance._config):
            LOGGER.info("Created default configuration at %s", instance._config.path)
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("tobii-chat-control received shutdown signal")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _start_services(self) -> None:
        await self._health.update("control", False, ControlState.DISCONNECTED.value)
        await self._health.update("live", False, LiveState.NOT_STARTED.value)

        self._control.add_state_listener(self._on_control_state)
        self._control.connect()
        await self._start_health_server()

    async def _stop_services(self) -> None:
        await self._transition(AppPhase.STOPPING)

        if self._live is not None:
            await self._live.stop()

        try:
            await self._control.stop()
        except Exception:
            LOGGER.warning("Failed to stop control channel", exc_info=True)

        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None

        for task in list(self._pending_updates):
            task.cancel()
        self._pending_updates.clear()

    async def _start_health_server(self) -> None:
        health = self._config.health
        if not health.enabled or health.port <= 0:
            return

        server = HealthServer(self._health, health.host, health.port)
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start health endpoint: %s", exc)
        else:
            self._health_server = server

    def _build_live_source(self) -> Optional[LiveFeedSource]:
        try:
            return self._live_source_factory(self._config.chat.live_url)
        except ValueError as exc:
            LOGGER.error("Cannot connect to the live feed: %s", exc)
            self._output(f"Invalid TikTok live URL: {exc}")
            return None

    async def _run_live(self, source: LiveFeedSource) -> None:
        live_config = self._config.live
        self._live = LiveFeedConnector(
            source,
            retry_delay=live_config.retry_delay_seconds,
            reconnect_on_drop=live_config.reconnect_on_drop,
        )
        self._live.subscribe(self._dispatcher.handle_chat)
        self._live.register_connected_callback(self._on_live_connected)
        self._live.add_state_listener(self._on_live_state)

        await self._transition(AppPhase.CONNECTING_LIVE)
        self._output(f"Attempting to connect to {self._config.chat.live_url} ...")
        await self._live.run()

    async def _on_live_connected(self) -> None:
        if self._phase != AppPhase.COMMANDS_ONLY:
            self._output("\nYou are connected to the live stream. Awaiting commands...")
        await self._transition(AppPhase.COMMANDS_ONLY)

    def _on_control_state(self, state: ControlState) -> None:
        self._schedule_health_update("control", state == ControlState.OPEN, state.value)

    def _on_live_state(self, state: LiveState) -> None:
        self._schedule_health_update("live", state == LiveState.CONNECTED, state.value)

    async def _transition(self, phase: AppPhase) -> None:
        if phase != self._phase:
            LOGGER.info("App phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase
        await self._health.set_phase(phase.value)

    def _schedule_health_update(
        self, name: str, healthy: bool, detail: Optional[str]
    ) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return

        task = loop.create_task(self._health.update(name, healthy, detail))
        self._pending_updates.add(task)
        task.add_done_callback(self._pending_updates.discard)
