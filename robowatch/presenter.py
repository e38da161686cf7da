"""Freshness and decay of safety status flags.

The presenter owns what is shown for the braking, emergency and arm-moving
flags. A robot that stops reporting looks exactly like a robot that is idling
safely, so silence is treated as information: once no status frame has been
accepted for ``idle_timeout`` seconds every flag is reset to ``False``.

Rules:

- fields present in an update are applied immediately; absent or ``null``
  fields keep their previous value
- a field reported ``True`` gets a short flash emphasis of ``flash_seconds``;
  the emphasis ends on its own timer and never touches the value
- one idle timer is shared by all fields and restarted by every accepted
  update; on expiry all three fields drop to ``False`` together and any
  pending flash ends with them
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from . import constants
from .core import (
    STATUS_FIELDS,
    STATUS_WIRE_KEYS,
    InboundFrame,
    PresentedStatus,
    Scheduler,
    TimerHandle,
)

LOGGER = logging.getLogger(__name__)

StatusListener = Callable[[PresentedStatus], None]


class StatusPresenter:
    def __init__(
        self,
        *,
        scheduler: Optional[Scheduler] = None,
        idle_timeout: float = constants.DEFAULT_STATUS_IDLE_SECONDS,
        flash_seconds: float = constants.DEFAULT_STATUS_FLASH_SECONDS,
        name: str = "robot",
    ) -> None:
        if idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        self.idle_timeout = idle_timeout
        self.flash_seconds = flash_seconds
        self.name = name
        self._scheduler = scheduler
        self._values: Dict[str, bool] = {field: False for field in STATUS_FIELDS}
        self._flash_handles: Dict[str, TimerHandle] = {}
        self._idle_handle: Optional[TimerHandle] = None
        self._listeners: List[StatusListener] = []
        self._closed = False

    @property
    def status(self) -> PresentedStatus:
        return PresentedStatus(
            braking=self._values["braking"],
            emergency=self._values["emergency"],
            arm_moving=self._values["arm_moving"],
            flashing=frozenset(self._flash_handles),
        )

    @property
    def fresh(self) -> bool:
        """Whether a status frame arrived within the idle window."""
        return self._idle_handle is not None

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def handle_frame(self, frame: InboundFrame) -> None:
        self.apply(frame.data)

    def apply(self, data: Mapping[str, Any]) -> PresentedStatus:
        """Accept one ``robot_status`` payload."""

        if self._closed:
            return self.status
        if not isinstance(data, Mapping):
            LOGGER.warning("Ignoring %s status payload of type %s", self.name, type(data).__name__)
            return self.status

        for field in STATUS_FIELDS:
            raw = data.get(STATUS_WIRE_KEYS[field])
            if raw is None:
                continue
            value = bool(raw)
            self._values[field] = value
            if value:
                self._start_flash(field)

        self._restart_idle()
        return self._emit()

    def teardown(self) -> None:
        """Cancel every timer; later updates are ignored."""

        self._closed = True
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None
        for handle in self._flash_handles.values():
            handle.cancel()
        self._flash_handles.clear()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler

    def _start_flash(self, field: str) -> None:
        existing = self._flash_handles.pop(field, None)
        if existing is not None:
            existing.cancel()
        if self.flash_seconds <= 0:
            return
        self._flash_handles[field] = self._get_scheduler().call_later(
            self.flash_seconds, self._end_flash, field
        )

    def _end_flash(self, field: str) -> None:
        if self._flash_handles.pop(field, None) is not None:
            self._emit()

    def _restart_idle(self) -> None:
        if self._idle_handle is not None:
            self._idle_handle.cancel()
        self._idle_handle = self._get_scheduler().call_later(
            self.idle_timeout, self._decay
        )

    def _decay(self) -> None:
        self._idle_handle = None
        for handle in self._flash_handles.values():
            handle.cancel()
        self._flash_handles.clear()
        if any(self._values.values()):
            LOGGER.info(
                "No %s status for %.1fs; resetting safety flags",
                self.name,
                self.idle_timeout,
            )
        for field in STATUS_FIELDS:
            self._values[field] = False
        self._emit()

    def _emit(self) -> PresentedStatus:
        status = self.status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                LOGGER.exception("Status listener failed")
        return status
