from typing import Any

import pytest

from tobii_chat_control.state import Profile, SessionState


class RecordingControl:
    """Control stub that records every action the dispatcher or menu issues."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.connect_calls = 0
        self.stop_calls = 0
        self.state_listeners: list[Any] = []

    async def set_toggle(self, enabled: bool) -> bool:
        self.calls.append(("toggle", enabled))
        return True

    async def select_profile(self, profile_id: Any) -> bool:
        self.calls.append(("select", profile_id))
        return True

    def add_state_listener(self, listener: Any) -> None:
        self.state_listeners.append(listener)

    def connect(self) -> None:
        self.connect_calls += 1

    async def stop(self) -> None:
        self.stop_calls += 1


@pytest.fixture
def recording_control() -> RecordingControl:
    return RecordingControl()


@pytest.fixture
def session_state() -> SessionState:
    return SessionState(
        prefix="!",
        profiles=[
            Profile(id="p1", name="Reading"),
            Profile(id="p2", name="Gaming"),
        ],
    )
