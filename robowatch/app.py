"""Main application entry-point for robowatch."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from .config import WatchConfig, load_config
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .monitor import MonitorRegistry, RobotMonitor

LOGGER = logging.getLogger(__name__)


class RobotMonitorApp:
    """Runs one monitor per configured robot until shut down.

    Connection changes of every monitor are mirrored into a
    :class:`HealthReporter`, optionally served on ``/healthz``.
    """

    def __init__(
        self,
        config: Optional[WatchConfig] = None,
        *,
        registry: Optional[MonitorRegistry] = None,
    ) -> None:
        self._config = config if config is not None else load_config()
        self._registry = (
            registry if registry is not None else MonitorRegistry.from_config(self._config)
        )
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Set[asyncio.Task[None]] = set()

    @property
    def registry(self) -> MonitorRegistry:
        return self._registry

    @property
    def health(self) -> HealthReporter:
        return self._health

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()

        LOGGER.info("robowatch starting with config: %s", self._config.path)
        await self._start_services()

        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("robowatch received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    def watch(self, robot_id: str) -> RobotMonitor:
        """Start monitoring ``robot_id`` (idempotent)."""

        already_running = robot_id in self._registry
        monitor = self._registry.acquire(robot_id)
        if not already_running:
            monitor.subscribe(
                lambda name, monitor=monitor: self._on_monitor_change(monitor, name)
            )
            self._schedule_health_update(monitor)
        return monitor

    async def unwatch(self, robot_id: str) -> None:
        await self._registry.release(robot_id)
        await self._health.remove(robot_id)

    @classmethod
    def start(cls, config: Optional[WatchConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("robowatch received shutdown signal")

    async def _start_services(self) -> None:
        robot_ids = self._config.robot.robot_ids
        if not robot_ids:
            LOGGER.warning("No robots configured; set robot_ids in [robot]")

        for robot_id in robot_ids:
            self.watch(robot_id)

        health = self._config.health
        if health.enabled:
            self._health_server = HealthServer(self._health, health.host, health.port)
            try:
                await self._health_server.start()
            except OSError as exc:
                LOGGER.error("Failed to start health endpoint: %s", exc)
                self._health_server = None

    async def _stop_services(self) -> None:
        await self._registry.close_all()

        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None
        LOGGER.info("robowatch stopped")

    def _on_monitor_change(self, monitor: RobotMonitor, name: str) -> None:
        if name != "connection":
            return
        # Released monitors report their own shutdown; keep them out of health.
        if self._registry.get(monitor.robot_id) is not monitor:
            return
        if monitor.connected:
            LOGGER.info("Robot %s online", monitor.robot_id)
        else:
            LOGGER.info(
                "Robot %s offline (%s)", monitor.robot_id, monitor.error or "no detail"
            )
        self._schedule_health_update(monitor)

    def _schedule_health_update(self, monitor: RobotMonitor) -> None:
        loop = self._loop
        if loop is None:
            return

        task = loop.create_task(
            self._health.update(
                monitor.robot_id,
                monitor.connected,
                monitor.error,
                gave_up=monitor.gave_up,
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
