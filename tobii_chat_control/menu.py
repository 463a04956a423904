"""Interactive text menu shown before the live feed is connected."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Optional

from .commands import ControlActions, TOGGLE_OFF_SUFFIX, TOGGLE_ON_SUFFIX
from .config import AppConfig, update_chat_settings
from .state import SessionState

LOGGER = logging.getLogger(__name__)

PromptFunc = Callable[[str], Awaitable[str]]
OutputFunc = Callable[[str], None]

EXIT_WORD = "exit"


async def terminal_prompt(message: str) -> str:
    """Read a line from stdin without blocking the event loop.

    ``input`` runs on a daemon thread, never the default executor, so
    shutdown does not wait on a pending read.
    """

    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def _read() -> None:
        try:
            line = input(message)
        except Exception as exc:  # EOFError once stdin is closed
            _deliver(loop, future, error=exc)
        else:
            _deliver(loop, future, result=line)

    threading.Thread(target=_read, name="menu-input", daemon=True).start()
    return await future


def _deliver(
    loop: asyncio.AbstractEventLoop,
    future: asyncio.Future[str],
    *,
    result: str = "",
    error: Optional[BaseException] = None,
) -> None:
    def _set() -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    try:
        loop.call_soon_threadsafe(_set)
    except RuntimeError:
        LOGGER.debug("Event loop closed before menu input arrived")


class Menu:
    """Main menu: live URL, manual profile selection and command prefix.

    ``run`` returns True once the operator asks to connect to the live feed
    with a live URL configured, or False when input is closed.
    """

    def __init__(
        self,
        config: AppConfig,
        state: SessionState,
        control: ControlActions,
        *,
        prompt: PromptFunc = terminal_prompt,
        output: OutputFunc = print,
    ) -> None:
        self._config = config
        self._state = state
        self._control = control
        self._prompt = prompt
        self._output = output

    async def run(self) -> bool:
        try:
            return await self._main_loop()
        except EOFError:
            LOGGER.info("Input closed; leaving menu")
            return False

    async def _main_loop(self) -> bool:
        while True:
            self._show_main()
            choice = (
                await self._prompt(
                    "Choose an option or press Enter to connect to the live stream: "
                )
            ).strip()

            if not choice:
                if not self._config.chat.live_url:
                    url = (await self._prompt("Enter the TikTok live URL: ")).strip()
                    if not url:
                        self._output("No TikTok live URL entered.")
                        continue
                    update_chat_settings(self._config, live_url=url)
                return True

            if choice == "1":
                url = (await self._prompt("Enter the TikTok live URL: ")).strip()
                update_chat_settings(self._config, live_url=url)
                self._output("Live URL updated.")
            elif choice == "2":
                await self._profiles_menu()
            elif choice == "3":
                await self._commands_menu()

    def _show_main(self) -> None:
        live_url = self._config.chat.live_url
        if live_url:
            self._output(f"Saved URL: {live_url}")
        else:
            self._output("No TikTok live URL saved")
        self._output("")
        self._output("1. Change the TikTok live URL")
        self._output("2. Tobii Profiles")
        self._output("3. LIVE Commands")
        self._output("")

    async def _profiles_menu(self) -> None:
        while True:
            for index, profile in enumerate(self._state.profiles, start=1):
                self._output(f"{index}. {profile.name}")

            choice = (
                await self._prompt(
                    "\nEnter the profile number for manual selection "
                    f'or type "{EXIT_WORD}" to return to the menu: '
                )
            ).strip()
            if choice == EXIT_WORD:
                return

            try:
                index = int(choice) - 1
            except ValueError:
                continue

            profile = self._state.find_profile(index)
            if profile is None:
                continue

            self._output(f"You have selected the profile: {profile.name}")
            await self._control.select_profile(profile.id)

    async def _commands_menu(self) -> None:
        while True:
            prefix = self._state.prefix
            self._output(f"{prefix}{TOGGLE_ON_SUFFIX} -> Enable Ghost")
            self._output(f"{prefix}{TOGGLE_OFF_SUFFIX} -> Disable Ghost")
            for profile in self._state.profiles:
                self._output(f"{prefix}{profile.name.lower()}")

            choice = (
                await self._prompt(
                    f"\nCurrent prefix: {prefix} - Enter a new prefix "
                    f"or type '{EXIT_WORD}' to return to the menu: "
                )
            ).strip()
            if choice == EXIT_WORD:
                return
            if not choice:
                self._output("Invalid prefix. Try again.")
                continue

            update_chat_settings(self._config, prefix=choice)
            self._state.prefix = self._config.chat.prefix
            self._output(f"The command prefix has been updated: {self._state.prefix}")
