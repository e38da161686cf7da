"""Per-robot view model tying the channel, router and presenter together."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from . import constants
from .channel import RobotChannel
from .config import ChannelConfig, PresenterConfig, WatchConfig
from .core import (
    AutonomousState,
    BatteryTelemetry,
    CallbackTasks,
    CallbackType,
    CameraPair,
    CanStatus,
    InboundFrame,
    PresentedStatus,
    Scheduler,
    TimerHandle,
    Transport,
)
from .presenter import StatusPresenter
from .router import ROBOT_STATUS, SCHEDULE_UPDATED
from .telemetry import (
    classify_battery,
    merge_autonomous,
    merge_cameras,
    merge_can_status,
    parse_active_status,
)

LOGGER = logging.getLogger(__name__)

NAVIGATION_STYLES = ("free", "strict", "strict_with_autonomous")

ChangeListener = Callable[[str], None]


def _invoke(tasks: CallbackTasks, callback: CallbackType, *args: Any) -> None:
    try:
        result = callback(*args)
        if asyncio.iscoroutine(result):
            tasks.spawn(result)
    except Exception:
        LOGGER.exception("Monitor callback failed")


class ScheduleRefreshTrigger:
    """Coalesce bursts of schedule notifications into one refresh.

    Each :meth:`trigger` restarts the delay; ``callback`` runs once the robot
    has been quiet for ``delay`` seconds.
    """

    def __init__(
        self,
        callback: CallbackType,
        *,
        delay: float = constants.DEFAULT_SCHEDULE_REFRESH_DELAY_SECONDS,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.delay = delay
        self._callback = callback
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None
        self._tasks = CallbackTasks("Schedule refresh callback")

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self, *_args: Any) -> None:
        self.cancel()
        if self.delay <= 0:
            _invoke(self._tasks, self._callback)
            return
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        self._handle = self._scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()

    def _fire(self) -> None:
        self._handle = None
        _invoke(self._tasks, self._callback)


class RobotMonitor:
    """Live state of one robot as the dashboard should render it.

    Exposes the connection indicator, the latest battery telemetry, the
    decayed safety status and auxiliary hardware status, plus subscription
    points for schedule changes and model updates.
    """

    def __init__(
        self,
        config: ChannelConfig,
        *,
        presenter_config: Optional[PresenterConfig] = None,
        transport: Optional[Transport] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        presenter_config = presenter_config or PresenterConfig()
        self.robot_id = config.robot_id
        self._scheduler = scheduler
        self._refresh_delay = presenter_config.schedule_refresh_delay_seconds

        self.channel = RobotChannel(config, transport=transport, scheduler=scheduler)
        self.presenter = StatusPresenter(
            scheduler=scheduler,
            idle_timeout=presenter_config.idle_timeout_seconds,
            flash_seconds=presenter_config.flash_seconds,
            name=f"robot {config.robot_id}",
        )

        self.battery = BatteryTelemetry()
        self.can_status = CanStatus()
        self.cameras = CameraPair()
        self.autonomous = AutonomousState()
        self.active: Optional[bool] = None
        self.error: Optional[str] = None
        self.gave_up = False

        self._schedule_callbacks: List[CallbackType] = []
        self._frame_listeners: List[CallbackType] = []
        self._change_listeners: List[ChangeListener] = []
        self._refresh_triggers: List[ScheduleRefreshTrigger] = []
        self._stopped = False
        self._callback_tasks = CallbackTasks(f"Robot {config.robot_id} monitor callback")

        router = self.channel.router
        router.subscribe(ROBOT_STATUS, self.presenter.handle_frame)
        router.subscribe(SCHEDULE_UPDATED, self._on_schedule_updated)
        router.set_default_handler(self._on_frame)

        self.channel.register_connected_callback(self._on_connected)
        self.channel.register_disconnected_callback(self._on_disconnected)
        self.channel.register_error_callback(self._on_error)
        self.channel.register_give_up_callback(self._on_give_up)
        self.presenter.subscribe(lambda _status: self._changed("status"))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def connected(self) -> bool:
        return self.channel.connected

    @property
    def presented_status(self) -> PresentedStatus:
        return self.presenter.status

    def start(self) -> "RobotMonitor":
        self.channel.open()
        return self

    def retry(self) -> None:
        """Reopen the channel after it gave up reconnecting."""

        self.gave_up = False
        self.channel.open()

    def stop(self) -> None:
        """Cancel every timer owned by this monitor and close the channel."""

        if self._stopped:
            return
        self._stopped = True
        self.channel.close()
        self.presenter.teardown()
        for trigger in self._refresh_triggers:
            trigger.cancel()
        self._refresh_triggers.clear()
        self._schedule_callbacks.clear()
        self._frame_listeners.clear()
        self._change_listeners.clear()

    async def aclose(self) -> None:
        await self.channel.aclose()
        self.stop()

    def send(self, frame: Dict[str, Any]) -> bool:
        return self.channel.send(frame)

    def move_to_location(self, location_name: str, navigation_style: str = "free") -> bool:
        """Ask the robot to drive to a named map location.

        Queued like any other frame when the channel is not open.
        """

        cleaned = location_name.strip()
        if not cleaned:
            raise ValueError("location_name cannot be empty")
        if navigation_style not in NAVIGATION_STYLES:
            raise ValueError(f"Unsupported navigation style: {navigation_style!r}")

        return self.channel.send(
            {
                "event": "move_to_location",
                "data": {
                    "location_name": cleaned,
                    "navigation_style": navigation_style,
                    "status": True,
                },
            }
        )

    def subscribe_schedule_changed(self, callback: CallbackType) -> Callable[[], None]:
        """Call ``callback()`` on every ``schedule_updated`` frame."""

        self._schedule_callbacks.append(callback)
        return self._remover(self._schedule_callbacks, callback)

    def add_schedule_refresh(
        self, callback: CallbackType, *, delay: Optional[float] = None
    ) -> ScheduleRefreshTrigger:
        """Run ``callback`` once schedule notifications settle for ``delay`` seconds."""

        trigger = ScheduleRefreshTrigger(
            callback,
            delay=self._refresh_delay if delay is None else delay,
            scheduler=self._scheduler,
        )
        self._refresh_triggers.append(trigger)
        self._schedule_callbacks.append(trigger.trigger)
        return trigger

    def subscribe_frames(self, callback: CallbackType) -> Callable[[], None]:
        """Receive every frame the router forwards to the default handler."""

        self._frame_listeners.append(callback)
        return self._remover(self._frame_listeners, callback)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Call ``listener(name)`` whenever a model changes.

        ``name`` is one of ``connection``, ``battery``, ``status``, ``can``,
        ``cameras``, ``autonomous`` or ``active``.
        """

        self._change_listeners.append(listener)
        return self._remover(self._change_listeners, listener)

    def snapshot(self) -> Dict[str, Any]:
        status = self.presented_status
        channel = self.channel.status()
        return {
            "robotId": self.robot_id,
            "connected": channel.connected,
            "state": channel.state.value,
            "reconnectAttempts": channel.reconnect_attempts,
            "queuedMessages": channel.queued_messages,
            "error": self.error,
            "battery": {
                "level": self.battery.level,
                "status": self.battery.status.value,
                "timeRemaining": self.battery.time_remaining,
                "voltage": self.battery.voltage,
                "current": self.battery.current,
                "power": self.battery.power,
                "dod": self.battery.dod,
            },
            "status": {
                "braking": status.braking,
                "emergency": status.emergency,
                "armMoving": status.arm_moving,
                "flashing": sorted(status.flashing),
            },
            "can": {"can0": self.can_status.can0, "can1": self.can_status.can1},
            "autonomous": {
                "ready": self.autonomous.ready,
                "modeActive": self.autonomous.mode_active,
            },
            "active": self.active,
        }

    # ------------------------------------------------------------------
    # Channel and router callbacks
    # ------------------------------------------------------------------
    def _on_connected(self) -> None:
        self.error = None
        self.gave_up = False
        self._changed("connection")

    def _on_disconnected(self, reason: Optional[str] = None) -> None:
        if reason and reason != "closed by client":
            self.error = reason
        self._changed("connection")

    def _on_error(self, detail: Optional[str] = None) -> None:
        self.error = detail or "connection failed"
        self._changed("connection")

    def _on_give_up(self, detail: Optional[str] = None) -> None:
        self.gave_up = True
        self.error = "reconnect attempts exhausted"
        if detail:
            self.error = f"{self.error}: {detail}"
        self._changed("connection")

    def _on_schedule_updated(self, _frame: InboundFrame) -> None:
        LOGGER.debug("Schedule updated for robot %s", self.robot_id)
        for callback in list(self._schedule_callbacks):
            _invoke(self._callback_tasks, callback)

    def _on_frame(self, frame: InboundFrame) -> None:
        name = frame.discriminator
        data = frame.data

        if name == "battery_information":
            self.battery = classify_battery(data)
            self._changed("battery")
        elif name == "can_status":
            self.can_status = merge_can_status(self.can_status, data)
            self._changed("can")
        elif name == "camera_status_update":
            self.cameras = merge_cameras(self.cameras, data)
            self._changed("cameras")
        elif name == "autonomous_ready":
            self.autonomous = merge_autonomous(data)
            self._changed("autonomous")
        elif name == "robot_active_status":
            active = parse_active_status(data)
            if active is not None:
                self.active = active
                self._changed("active")
        else:
            LOGGER.debug("Unhandled robot %s frame %r", self.robot_id, name)

        for callback in list(self._frame_listeners):
            _invoke(self._callback_tasks, callback, frame)

    def _changed(self, name: str) -> None:
        for listener in list(self._change_listeners):
            _invoke(self._callback_tasks, listener, name)

    @staticmethod
    def _remover(items: List[Any], item: Any) -> Callable[[], None]:
        def _remove() -> None:
            if item in items:
                items.remove(item)

        return _remove


class MonitorRegistry:
    """One :class:`RobotMonitor` per robot identifier.

    Monitors for different robots share no state and can run side by side.
    """

    def __init__(self, factory: Callable[[str], RobotMonitor]) -> None:
        self._factory = factory
        self._monitors: Dict[str, RobotMonitor] = {}

    @classmethod
    def from_config(
        cls,
        config: WatchConfig,
        *,
        transport_factory: Optional[Callable[[], Transport]] = None,
    ) -> "MonitorRegistry":
        def _factory(robot_id: str) -> RobotMonitor:
            return RobotMonitor(
                config.channel_config(robot_id),
                presenter_config=config.presenter,
                transport=transport_factory() if transport_factory else None,
            )

        return cls(_factory)

    def __contains__(self, robot_id: object) -> bool:
        return robot_id in self._monitors

    def __len__(self) -> int:
        return len(self._monitors)

    def __iter__(self) -> Iterator[RobotMonitor]:
        return iter(list(self._monitors.values()))

    @property
    def robot_ids(self) -> List[str]:
        return list(self._monitors)

    def get(self, robot_id: str) -> Optional[RobotMonitor]:
        return self._monitors.get(robot_id)

    def acquire(self, robot_id: str) -> RobotMonitor:
        """Return the running monitor for ``robot_id``, starting one if needed."""

        monitor = self._monitors.get(robot_id)
        if monitor is None:
            monitor = self._factory(robot_id)
            self._monitors[robot_id] = monitor
            monitor.start()
        return monitor

    async def release(self, robot_id: str) -> None:
        monitor = self._monitors.pop(robot_id, None)
        if monitor is not None:
            await monitor.aclose()

    async def close_all(self) -> None:
        monitors = list(self._monitors.values())
        self._monitors.clear()
        for monitor in monitors:
            try:
                await monitor.aclose()
            except Exception:
                LOGGER.exception("Failed to close monitor for robot %s", monitor.robot_id)
