"""Configuration loader for robowatch."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import urlparse, urlunparse

from . import constants


class ConfigError(RuntimeError):
    """Raised when a configuration value cannot be used."""


@dataclass(slots=True, frozen=True)
class ChannelConfig:
    """Connection parameters for one monitored robot.

    Instances are immutable; a channel keeps the same config for its whole life.
    ``max_reconnect_attempts`` of ``None`` means reconnect forever.
    """

    robot_id: str
    base_url: str = constants.DEFAULT_ROBOT_BASE_URL
    max_reconnect_attempts: Optional[int] = constants.DEFAULT_MAX_RECONNECT_ATTEMPTS
    heartbeat_interval_seconds: float = constants.DEFAULT_HEARTBEAT_INTERVAL_SECONDS
    reconnect_initial_seconds: float = constants.DEFAULT_RECONNECT_INITIAL_SECONDS
    reconnect_multiplier: float = constants.DEFAULT_RECONNECT_MULTIPLIER

    def __post_init__(self) -> None:
        if not self.robot_id or not self.robot_id.strip():
            raise ConfigError("robot_id is required")
        if self.max_reconnect_attempts is not None and self.max_reconnect_attempts < 0:
            raise ConfigError("max_reconnect_attempts must be >= 0 or None")

    @property
    def endpoint(self) -> str:
        return build_robot_ws_url(self.base_url, self.robot_id)


@dataclass(slots=True)
class RobotConfig:
    base_url: str = constants.DEFAULT_ROBOT_BASE_URL
    robot_ids: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ChannelSettings:
    reconnect_initial_seconds: float = constants.DEFAULT_RECONNECT_INITIAL_SECONDS
    reconnect_multiplier: float = constants.DEFAULT_RECONNECT_MULTIPLIER
    max_reconnect_attempts: Optional[int] = constants.DEFAULT_MAX_RECONNECT_ATTEMPTS
    heartbeat_interval_seconds: float = constants.DEFAULT_HEARTBEAT_INTERVAL_SECONDS


@dataclass(slots=True)
class PresenterConfig:
    idle_timeout_seconds: float = constants.DEFAULT_STATUS_IDLE_SECONDS
    flash_seconds: float = constants.DEFAULT_STATUS_FLASH_SECONDS
    schedule_refresh_delay_seconds: float = (
        constants.DEFAULT_SCHEDULE_REFRESH_DELAY_SECONDS
    )


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_network: bool = False


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class WatchConfig:
    robot: RobotConfig
    channel: ChannelSettings
    presenter: PresenterConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser
    path: Path

    def channel_config(self, robot_id: str) -> ChannelConfig:
        """Build the immutable channel config for ``robot_id``."""

        return ChannelConfig(
            robot_id=robot_id,
            base_url=self.robot.base_url,
            max_reconnect_attempts=self.channel.max_reconnect_attempts,
            heartbeat_interval_seconds=self.channel.heartbeat_interval_seconds,
            reconnect_initial_seconds=self.channel.reconnect_initial_seconds,
            reconnect_multiplier=self.channel.reconnect_multiplier,
        )


def build_robot_ws_url(base_url: str, robot_id: str) -> str:
    """Return the robot message endpoint for ``robot_id`` under ``base_url``."""

    parsed = urlparse(base_url.strip())
    scheme = parsed.scheme
    if scheme == "http":
        scheme = "ws"
    elif scheme == "https":
        scheme = "wss"
    elif scheme not in ("ws", "wss"):
        raise ConfigError(f"Unsupported robot endpoint scheme: {base_url!r}")

    path = parsed.path.rstrip("/") + constants.ROBOT_MESSAGE_PATH.format(
        robot_id=robot_id.strip()
    )
    return urlunparse((scheme, parsed.netloc, path, "", "", ""))


def _parse_list(value: str, *, default: Iterable[str]) -> List[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def load_config(path: Optional[Path] = None) -> WatchConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "robot": {
                "base_url": constants.DEFAULT_ROBOT_BASE_URL,
                "robot_ids": "",
            },
            "channel": {
                "reconnect_initial_seconds": str(
                    constants.DEFAULT_RECONNECT_INITIAL_SECONDS
                ),
                "reconnect_multiplier": str(constants.DEFAULT_RECONNECT_MULTIPLIER),
                "max_reconnect_attempts": str(constants.DEFAULT_MAX_RECONNECT_ATTEMPTS),
                "heartbeat_interval_seconds": str(
                    constants.DEFAULT_HEARTBEAT_INTERVAL_SECONDS
                ),
            },
            "presenter": {
                "idle_timeout_seconds": str(constants.DEFAULT_STATUS_IDLE_SECONDS),
                "flash_seconds": str(constants.DEFAULT_STATUS_FLASH_SECONDS),
                "schedule_refresh_delay_seconds": str(
                    constants.DEFAULT_SCHEDULE_REFRESH_DELAY_SECONDS
                ),
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
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
        parser.read(config_path)

    robot = RobotConfig(
        base_url=parser.get("robot", "base_url"),
        robot_ids=_parse_list(parser.get("robot", "robot_ids"), default=[]),
    )

    # 0 disables the bound
    max_attempts = parser.getint(
        "channel",
        "max_reconnect_attempts",
        fallback=constants.DEFAULT_MAX_RECONNECT_ATTEMPTS,
    )

    channel = ChannelSettings(
        reconnect_initial_seconds=max(
            0.1,
            parser.getfloat(
                "channel",
                "reconnect_initial_seconds",
                fallback=constants.DEFAULT_RECONNECT_INITIAL_SECONDS,
            ),
        ),
        reconnect_multiplier=max(
            1.0,
            parser.getfloat(
                "channel",
                "reconnect_multiplier",
                fallback=constants.DEFAULT_RECONNECT_MULTIPLIER,
            ),
        ),
        max_reconnect_attempts=max_attempts if max_attempts > 0 else None,
        heartbeat_interval_seconds=max(
            1.0,
            parser.getfloat(
                "channel",
                "heartbeat_interval_seconds",
                fallback=constants.DEFAULT_HEARTBEAT_INTERVAL_SECONDS,
            ),
        ),
    )

    presenter = PresenterConfig(
        idle_timeout_seconds=max(
            0.1,
            parser.getfloat(
                "presenter",
                "idle_timeout_seconds",
                fallback=constants.DEFAULT_STATUS_IDLE_SECONDS,
            ),
        ),
        flash_seconds=max(
            0.0,
            parser.getfloat(
                "presenter",
                "flash_seconds",
                fallback=constants.DEFAULT_STATUS_FLASH_SECONDS,
            ),
        ),
        schedule_refresh_delay_seconds=max(
            0.0,
            parser.getfloat(
                "presenter",
                "schedule_refresh_delay_seconds",
                fallback=constants.DEFAULT_SCHEDULE_REFRESH_DELAY_SECONDS,
            ),
        ),
    )

    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(
            parser.get("logging", "path", fallback=str(constants.DEFAULT_LOG_PATH))
        ).expanduser(),
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    health = HealthConfig(
        enabled=parser.getboolean("health", "enabled", fallback=False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=parser.getint("health", "port", fallback=0),
    )

    return WatchConfig(
        robot=robot,
        channel=channel,
        presenter=presenter,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
    )


def save_config(config: WatchConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
