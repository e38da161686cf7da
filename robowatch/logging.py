"""Logging setup for the robowatch process."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# aiohttp logs every frame and request at DEBUG/INFO.
_NETWORK_LOGGERS = (
    "aiohttp.access",
    "aiohttp.client",
    "aiohttp.server",
    "aiohttp.web",
    "aiohttp.websocket",
)

_LOG_FILE_BYTES = 5 * 1024 * 1024
_LOG_FILE_BACKUPS = 3


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Install console (and optionally rotating file) handlers on the root logger.

    Unknown level names fall back to ``INFO``. Calling this again replaces the
    handlers installed by the previous call. With ``log_network`` false the
    aiohttp loggers are capped at ``WARNING``; otherwise they follow ``level``.
    """

    numeric_level = _resolve_level(level)
    formatter = logging.Formatter(_FORMAT)
    root = logging.getLogger()

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=_LOG_FILE_BYTES, backupCount=_LOG_FILE_BACKUPS
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(numeric_level)
    logging.captureWarnings(True)

    network_level = numeric_level if log_network else max(numeric_level, logging.WARNING)
    for name in _NETWORK_LOGGERS:
        logging.getLogger(name).setLevel(network_level)
