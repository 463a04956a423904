"""Chat command classification and dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Optional, Protocol

from .state import Profile, ProfileId, SessionState

LOGGER = logging.getLogger(__name__)

TOGGLE_ON_SUFFIX = "on"
TOGGLE_OFF_SUFFIX = "off"


class CommandKind(str, Enum):
    PROFILE_SELECT = "profile_select"
    TOGGLE_ON = "toggle_on"
    TOGGLE_OFF = "toggle_off"


@dataclass(frozen=True, slots=True)
class Command:
    kind: CommandKind
    profile_id: Optional[ProfileId] = None

    @classmethod
    def select(cls, profile_id: ProfileId) -> "Command":
        return cls(CommandKind.PROFILE_SELECT, profile_id)


TOGGLE_ON = Command(CommandKind.TOGGLE_ON)
TOGGLE_OFF = Command(CommandKind.TOGGLE_OFF)


class ControlActions(Protocol):
    """Control operations the dispatcher drives."""

    async def set_toggle(self, enabled: bool) -> bool:
        ...

    async def select_profile(self, profile_id: ProfileId) -> bool:
        ...


def normalize(text: str) -> str:
    return text.strip().lower()


@lru_cache(maxsize=16)
def vocabulary(prefix: str, profiles: tuple[Profile, ...]) -> Mapping[str, Command]:
    """Map every recognised command string to its command.

    Profiles are registered in list order so the first profile wins when two
    names collide after lower-casing. The toggle commands are registered last
    and shadow a profile named "on" or "off".
    """

    key_prefix = prefix.lower()
    table: dict[str, Command] = {}
    for profile in profiles:
        table.setdefault(key_prefix + profile.name.lower(), Command.select(profile.id))
    table[key_prefix + TOGGLE_ON_SUFFIX] = TOGGLE_ON
    table[key_prefix + TOGGLE_OFF_SUFFIX] = TOGGLE_OFF
    return MappingProxyType(table)


def dispatch(text: str, state: SessionState) -> Optional[Command]:
    """Classify chat text against the current vocabulary without side effects."""

    return vocabulary(state.prefix, state.profiles).get(normalize(text))


def is_command_candidate(text: str, prefix: str) -> bool:
    return bool(text) and text.startswith(prefix)


class CommandDispatcher:
    """Applies chat commands to the control channel, one call per command."""

    def __init__(self, state: SessionState, control: ControlActions) -> None:
        self._state = state
        self._control = control

    async def handle_chat(self, text: str) -> Optional[Command]:
        if not isinstance(text, str) or not is_command_candidate(
            text, self._state.prefix
        ):
            return None

        command = dispatch(text, self._state)
        if command is None:
            LOGGER.debug("Ignoring unknown chat command %r", text)
            return None

        LOGGER.info("Command '%s' detected", normalize(text))
        await self.apply(command)
        return command

    async def apply(self, command: Command) -> None:
        if command.kind is CommandKind.TOGGLE_ON:
            await self._control.set_toggle(True)
        elif command.kind is CommandKind.TOGGLE_OFF:
            await self._control.set_toggle(False)
        elif command.kind is CommandKind.PROFILE_SELECT:
            await self._control.select_profile(command.profile_id)
