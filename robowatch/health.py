"""Health reporting for monitored robot channels."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from aiohttp import web

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RobotChannelHealth:
    robot_id: str
    connected: bool
    detail: Optional[str] = None
    gave_up: bool = False
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def status(self) -> str:
        if self.connected:
            return "online"
        return "exhausted" if self.gave_up else "reconnecting"

    def as_dict(self) -> Dict[str, object]:
        return {
            "robotId": self.robot_id,
            "status": self.status,
            "connected": self.connected,
            "gaveUp": self.gave_up,
            "detail": self.detail,
            "updatedAt": self.updated_at.isoformat(timespec="seconds"),
        }


class HealthReporter:
    """Tracks the connectivity of every monitored robot."""

    def __init__(self) -> None:
        self._robots: Dict[str, RobotChannelHealth] = {}
        self._lock = asyncio.Lock()

    async def update(
        self,
        robot_id: str,
        connected: bool,
        detail: Optional[str] = None,
        *,
        gave_up: bool = False,
    ) -> None:
        async with self._lock:
            self._robots[robot_id] = RobotChannelHealth(
                robot_id=robot_id, connected=connected, detail=detail, gave_up=gave_up
            )

    async def remove(self, robot_id: str) -> None:
        async with self._lock:
            self._robots.pop(robot_id, None)

    async def robot(self, robot_id: str) -> Optional[Dict[str, object]]:
        async with self._lock:
            entry = self._robots.get(robot_id)
        return entry.as_dict() if entry is not None else None

    async def snapshot(self) -> Dict[str, object]:
        async with self._lock:
            entries: List[Dict[str, object]] = [
                entry.as_dict()
                for _, entry in sorted(self._robots.items())
            ]

        # Reconnecting robots are expected; only exhausted channels degrade us.
        overall = "degraded" if any(item["gaveUp"] for item in entries) else "ok"
        return {
            "status": overall,
            "connected": sum(1 for item in entries if item["connected"]),
            "robots": entries,
        }


class HealthServer:
    """Serves the reporter over HTTP.

    ``GET /healthz`` returns the fleet summary, ``GET /healthz/{robot_id}``
    a single robot. Both answer 503 once a channel has given up.
    """

    def __init__(self, reporter: HealthReporter, host: str, port: int) -> None:
        self._reporter = reporter
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None

    @property
    def port(self) -> int:
        """Bound port; differs from the configured one when that was ``0``."""

        if self._runner is not None and self._runner.addresses:
            return self._runner.addresses[0][1]
        return self._port

    @property
    def running(self) -> bool:
        return self._runner is not None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.add_routes(
            [
                web.get("/healthz", self._handle_fleet),
                web.get("/healthz/{robot_id}", self._handle_robot),
            ]
        )
        return app

    async def start(self) -> None:
        if self._runner is not None:
            return

        runner = web.AppRunner(self.build_app(), access_log=None)
        await runner.setup()
        try:
            await web.TCPSite(runner, self._host, self._port).start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner
        LOGGER.info("Health endpoint listening on %s:%s", self._host, self.port)

    async def stop(self) -> None:
        runner, self._runner = self._runner, None
        if runner is None:
            return
        await runner.cleanup()
        LOGGER.debug("Health endpoint stopped")

    async def _handle_fleet(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)

    async def _handle_robot(self, request: web.Request) -> web.Response:
        robot_id = request.match_info["robot_id"]
        entry = await self._reporter.robot(robot_id)
        if entry is None:
            return web.json_response(
                {"robotId": robot_id, "error": "robot is not monitored"}, status=404
            )
        return web.json_response(entry, status=503 if entry["gaveUp"] else 200)
