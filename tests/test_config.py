from pathlib import Path

import pytest

from robowatch import constants
from robowatch.config import (
    ChannelConfig,
    ConfigError,
    build_robot_ws_url,
    load_config,
    save_config,
)


def test_load_config_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "robowatch.cfg"
    config = load_config(config_path)

    assert config.robot.base_url == constants.DEFAULT_ROBOT_BASE_URL
    assert config.robot.robot_ids == []
    assert config.channel.reconnect_initial_seconds == 3.0
    assert config.channel.reconnect_multiplier == 1.5
    assert config.channel.max_reconnect_attempts == 5
    assert config.channel.heartbeat_interval_seconds == 30.0
    assert config.presenter.idle_timeout_seconds == 3.0
    assert config.presenter.flash_seconds == 0.6
    assert config.presenter.schedule_refresh_delay_seconds == 1.0
    assert config.health.enabled is False
    assert config.health.port == 0
    assert config.path == config_path


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_path = tmp_path / "robowatch.cfg"
    config_path.write_text(
        """
[robot]
base_url = http://fleet.example:9000
robot_ids = RB-001, RB-002 ,

[channel]
reconnect_initial_seconds = 1.5
max_reconnect_attempts = 0
heartbeat_interval_seconds = 10

[presenter]
idle_timeout_seconds = 5

[logging]
level = DEBUG
log_network = true

[health]
enabled = true
port = 8181
        """.strip()
        + "\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.robot.base_url == "http://fleet.example:9000"
    assert config.robot.robot_ids == ["RB-001", "RB-002"]
    assert config.channel.reconnect_initial_seconds == 1.5
    assert config.channel.max_reconnect_attempts is None
    assert config.channel.heartbeat_interval_seconds == 10.0
    assert config.presenter.idle_timeout_seconds == 5.0
    assert config.logging.level == "DEBUG"
    assert config.logging.log_network is True
    assert config.health.enabled is True
    assert config.health.port == 8181

    channel = config.channel_config("RB-002")
    assert channel.endpoint == "ws://fleet.example:9000/ws/robot_message/RB-002/"
    assert channel.max_reconnect_attempts is None


def test_load_config_clamps_out_of_range_values(tmp_path: Path) -> None:
    config_path = tmp_path / "robowatch.cfg"
    config_path.write_text(
        "[channel]\nreconnect_initial_seconds = 0\nreconnect_multiplier = 0.5\n"
        "heartbeat_interval_seconds = 0\n"
        "[presenter]\nidle_timeout_seconds = 0\nflash_seconds = -1\n",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.channel.reconnect_initial_seconds == 0.1
    assert config.channel.reconnect_multiplier == 1.0
    assert config.channel.heartbeat_interval_seconds == 1.0
    assert config.presenter.idle_timeout_seconds == 0.1
    assert config.presenter.flash_seconds == 0.0


def test_save_config_round_trips(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "robowatch.cfg"
    config = load_config(config_path)
    config.raw.set("robot", "robot_ids", "RB-009")

    save_config(config)

    assert load_config(config_path).robot.robot_ids == ["RB-009"]


@pytest.mark.parametrize(
    ("base_url", "expected"),
    [
        ("ws://10.0.0.5:8002", "ws://10.0.0.5:8002/ws/robot_message/RB-1/"),
        ("wss://fleet.example/", "wss://fleet.example/ws/robot_message/RB-1/"),
        ("http://fleet.example/api", "ws://fleet.example/api/ws/robot_message/RB-1/"),
        ("https://fleet.example", "wss://fleet.example/ws/robot_message/RB-1/"),
    ],
)
def test_build_robot_ws_url(base_url: str, expected: str) -> None:
    assert build_robot_ws_url(base_url, "RB-1") == expected


def test_build_robot_ws_url_rejects_unknown_scheme() -> None:
    with pytest.raises(ConfigError):
        build_robot_ws_url("ftp://fleet.example", "RB-1")


def test_channel_config_validation() -> None:
    with pytest.raises(ConfigError):
        ChannelConfig(robot_id="  ")
    with pytest.raises(ConfigError):
        ChannelConfig(robot_id="RB-1", max_reconnect_attempts=-1)

    config = ChannelConfig(robot_id="RB-1")
    assert config.base_url == constants.DEFAULT_ROBOT_BASE_URL
    assert config.heartbeat_interval_seconds == 30.0
