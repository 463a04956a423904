"""Process-lifetime session state shared by the connections and dispatcher."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Union

from . import constants

LOGGER = logging.getLogger(__name__)

ProfileId = Union[int, str]


@dataclass(frozen=True, slots=True)
class Profile:
    """A named configuration the control service can switch to."""

    id: ProfileId
    name: str

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["Profile"]:
        """Build a profile from a service payload, or None when malformed."""

        if not isinstance(payload, dict):
            return None
        profile_id = payload.get("id")
        name = payload.get("name")
        # bool is an int subclass but never a valid identifier
        if isinstance(profile_id, bool) or not isinstance(profile_id, (int, str)):
            return None
        if not isinstance(name, str):
            return None
        return cls(id=profile_id, name=name)


def parse_profiles(entries: Iterable[Any]) -> tuple[Profile, ...]:
    profiles: list[Profile] = []
    for entry in entries:
        profile = Profile.from_payload(entry)
        if profile is None:
            LOGGER.debug("Skipping malformed profile entry: %r", entry)
            continue
        profiles.append(profile)
    return tuple(profiles)


class SessionState:
    """Current prefix, profile list and toggle state.

    Each field has a single writer: the prefix comes from configuration, the
    profile list from control-service notifications and the toggle from the
    control channel when a toggle command is sent.
    """

    def __init__(
        self,
        prefix: str = constants.DEFAULT_PREFIX,
        profiles: Sequence[Profile] = (),
        toggle_enabled: bool = False,
    ) -> None:
        self._prefix = _validate_prefix(prefix)
        self._profiles: tuple[Profile, ...] = tuple(profiles)
        self._toggle_enabled = toggle_enabled

    @property
    def prefix(self) -> str:
        return self._prefix

    @prefix.setter
    def prefix(self, value: str) -> None:
        self._prefix = _validate_prefix(value)

    @property
    def profiles(self) -> tuple[Profile, ...]:
        return self._profiles

    def replace_profiles(self, profiles: Iterable[Profile]) -> None:
        """Swap in a new profile list; no merge with the previous one."""

        self._profiles = tuple(profiles)

    @property
    def toggle_enabled(self) -> bool:
        return self._toggle_enabled

    @toggle_enabled.setter
    def toggle_enabled(self, value: bool) -> None:
        self._toggle_enabled = bool(value)

    def find_profile(self, index: int) -> Optional[Profile]:
        """Return the profile at a zero-based menu index."""

        if 0 <= index < len(self._profiles):
            return self._profiles[index]
        return None

    def __repr__(self) -> str:
        return (
            f"SessionState(prefix={self._prefix!r}, profiles={len(self._profiles)}, "
            f"toggle_enabled={self._toggle_enabled})"
        )


def _validate_prefix(value: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError("Command prefix must be a non-empty string")
    return value
