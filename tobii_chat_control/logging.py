"""Console and file logging for the chat-to-Ghost bridge."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_NOISY_LOGGERS = ("aiohttp.access", "TikTokLive", "websockets", "httpx")


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Route every record through one format to stderr and, optionally, a file.

    ``level`` is a level name such as "DEBUG"; unknown names fall back to INFO.
    ``log_path`` adds a UTF-8 file handler, creating its directory if needed.
    Unless ``log_network`` is set, the aiohttp, TikTokLive and websocket
    libraries only report warnings, keeping chat command lines readable.
    """

    logging.captureWarnings(True)

    for handler in list(logging.getLogger().handlers):
        logging.getLogger().removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)

    if not log_network:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
