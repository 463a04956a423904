"""Constants used across the tobii-chat-control package."""

from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "tobii-chat-control"
CONFIG_DIRNAME = "tiktokcontrolmytobii"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"

_APPDATA = os.environ.get("APPDATA")
DEFAULT_CONFIG_DIR = (
    Path(_APPDATA) / CONFIG_DIRNAME
    if _APPDATA
    else Path.home() / ".config" / CONFIG_DIRNAME
)
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILENAME

DEFAULT_PREFIX = "!"

DEFAULT_TOBII_HOST = "127.0.0.1"
DEFAULT_TOBII_PORT = 7890
DEFAULT_CONTROL_URL = f"ws://{DEFAULT_TOBII_HOST}:{DEFAULT_TOBII_PORT}/ghostApi/v1"

DEFAULT_CONTROL_RECONNECT_SECONDS = 1.0
DEFAULT_LIVE_RETRY_SECONDS = 10.0
