"""Command-line interface for robowatch."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import RobotMonitorApp
from .config import ConfigError, load_config
from .diagnostics.ws_monitor import watch_robot
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="robowatch", description="Live telemetry monitor for inspection robots"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Monitor every robot listed in the configuration")

    watch_parser = subparsers.add_parser(
        "watch", help="Print live frames and derived state for one robot"
    )
    watch_parser.add_argument("robot_id", help="Externally visible robot identifier")
    watch_parser.add_argument(
        "--event", help="Only display frames whose discriminator matches this value"
    )
    watch_parser.add_argument(
        "--raw", action="store_true", help="Print raw payloads without formatting"
    )

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        RobotMonitorApp.start(config)
        return 0

    if args.command == "watch":
        configure_logging(config.logging.level, log_network=config.logging.log_network)
        try:
            asyncio.run(watch_robot(config, args.robot_id, event=args.event, raw=args.raw))
        except ConfigError as exc:
            LOGGER.error("Cannot watch robot %s: %s", args.robot_id, exc)
            return 1
        except KeyboardInterrupt:
            print("Stopping robot watch...")
        return 0

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                print(f"{key} = {value}")
            print()
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
