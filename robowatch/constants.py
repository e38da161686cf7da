"""Constants used across the robowatch package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "robowatch"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / f".{APP_NAME}" / DEFAULT_CONFIG_FILENAME
DEFAULT_LOG_PATH = Path.home() / f".{APP_NAME}" / "logs" / f"{APP_NAME}.log"

DEFAULT_ROBOT_BASE_URL = "ws://192.168.1.100:8002"
ROBOT_MESSAGE_PATH = "/ws/robot_message/{robot_id}/"

DEFAULT_RECONNECT_INITIAL_SECONDS = 3.0
DEFAULT_RECONNECT_MULTIPLIER = 1.5
DEFAULT_MAX_RECONNECT_ATTEMPTS = 5
DEFAULT_HEARTBEAT_INTERVAL_SECONDS = 30.0

DEFAULT_STATUS_IDLE_SECONDS = 3.0
DEFAULT_STATUS_FLASH_SECONDS = 0.6
DEFAULT_SCHEDULE_REFRESH_DELAY_SECONDS = 1.0
