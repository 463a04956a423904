"""Configuration loader for tobii-chat-control."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import constants


@dataclass(slots=True)
class ChatConfig:
    prefix: str = constants.DEFAULT_PREFIX
    live_url: str = ""


@dataclass(slots=True)
class ControlConfig:
    url: str = constants.DEFAULT_CONTROL_URL
    reconnect_delay_seconds: float = constants.DEFAULT_CONTROL_RECONNECT_SECONDS


@dataclass(slots=True)
class LiveConfig:
    retry_delay_seconds: float = constants.DEFAULT_LIVE_RETRY_SECONDS
    reconnect_on_drop: bool = True


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class AppConfig:
    chat: ChatConfig
    control: ControlConfig
    live: LiveConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser
    path: Path


def _get_float(parser: ConfigParser, section: str, option: str, default: float) -> float:
    try:
        value = parser.getfloat(section, option, fallback=default)
    except ValueError:
        return default
    return value if value >= 0 else default


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser(interpolation=None)
    parser.read_dict(
        {
            "chat": {
                "prefix": constants.DEFAULT_PREFIX,
                "live_url": "",
            },
            "control": {
                "url": constants.DEFAULT_CONTROL_URL,
                "reconnect_delay_seconds": str(
                    constants.DEFAULT_CONTROL_RECONNECT_SECONDS
                ),
            },
            "live": {
                "retry_delay_seconds": str(constants.DEFAULT_LIVE_RETRY_SECONDS),
                "reconnect_on_drop": "true",
            },
            "logging": {
                "level": "INFO",
                "path": "",
                "log_network": "false",
            },
            "health": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path, encoding="utf-8")

    prefix = parser.get("chat", "prefix", fallback="").strip()
    if not prefix:
        prefix = constants.DEFAULT_PREFIX
        parser.set("chat", "prefix", prefix)

    chat = ChatConfig(
        prefix=prefix,
        live_url=parser.get("chat", "live_url", fallback="").strip(),
    )

    control = ControlConfig(
        url=parser.get("control", "url"),
        reconnect_delay_seconds=_get_float(
            parser,
            "control",
            "reconnect_delay_seconds",
            constants.DEFAULT_CONTROL_RECONNECT_SECONDS,
        ),
    )

    live = LiveConfig(
        retry_delay_seconds=_get_float(
            parser,
            "live",
            "retry_delay_seconds",
            constants.DEFAULT_LIVE_RETRY_SECONDS,
        ),
        reconnect_on_drop=parser.getboolean(
            "live", "reconnect_on_drop", fallback=True
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    try:
        health_port = parser.getint("health", "port", fallback=0)
    except ValueError:
        health_port = 0

    health = HealthConfig(
        enabled=parser.getboolean("health", "enabled", fallback=False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=health_port,
    )

    return AppConfig(
        chat=chat,
        control=control,
        live=live,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
    )


def save_config(config: AppConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)


def ensure_config_file(config: AppConfig) -> bool:
    """Write the defaults to disk when no configuration file exists yet."""

    if config.path.exists():
        return False
    save_config(config)
    return True


def update_chat_settings(
    config: AppConfig,
    *,
    prefix: Optional[str] = None,
    live_url: Optional[str] = None,
) -> None:
    """Change the chat prefix and/or live URL and persist them immediately."""

    if prefix is not None:
        if not prefix.strip():
            raise ValueError("Command prefix cannot be empty")
        # leading/trailing spaces would never survive chat normalisation
        config.chat.prefix = prefix.strip()
        config.raw.set("chat", "prefix", config.chat.prefix)

    if live_url is not None:
        config.chat.live_url = live_url.strip()
        config.raw.set("chat", "live_url", config.chat.live_url)

    save_config(config)
