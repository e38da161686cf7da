"""Keep-alive pings for open robot channels."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from .core import Scheduler, TimerHandle

LOGGER = logging.getLogger(__name__)


def build_ping_frame(now: Optional[datetime] = None) -> Dict[str, Any]:
    moment = now or datetime.now(timezone.utc)
    return {"type": "ping", "timestamp": moment.isoformat()}


class HeartbeatDriver:
    """Send a ping through ``send`` every ``interval`` seconds while running.

    Fire-and-forget: no pong is expected. The owning channel starts the driver
    on entering OPEN and stops it on every other transition.
    """

    def __init__(
        self,
        send: Callable[[Mapping[str, Any]], Any],
        *,
        interval: float,
        scheduler: Scheduler,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if interval <= 0:
            raise ValueError("Heartbeat interval must be positive")
        self.interval = interval
        self._send = send
        self._scheduler = scheduler
        self._clock = clock
        self._running = False
        self._handle: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._schedule()

    def stop(self) -> None:
        self._running = False
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()

    def _schedule(self) -> None:
        self._handle = self._scheduler.call_later(self.interval, self._tick)

    def _tick(self) -> None:
        self._handle = None
        if not self._running:
            return
        try:
            self._send(build_ping_frame(self._clock()))
        except Exception:
            LOGGER.exception("Heartbeat send failed")
        if self._running and self._handle is None:
            self._schedule()
