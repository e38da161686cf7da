"""Classification and dispatch of inbound robot frames."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from .core import CallbackTasks, CallbackType, InboundFrame

LOGGER = logging.getLogger(__name__)

SCHEDULE_UPDATED = "schedule_updated"
ROBOT_STATUS = "robot_status"
CONNECTION_ESTABLISHED = "connection_established"

KNOWN_DISCRIMINATORS = (SCHEDULE_UPDATED, ROBOT_STATUS, CONNECTION_ESTABLISHED)


class FrameDecodeError(ValueError):
    """Raised when a raw frame is not a usable JSON object."""


def parse_frame(raw: Union[str, bytes]) -> InboundFrame:
    """Decode a raw text frame into an :class:`InboundFrame`.

    The discriminator is read from ``type`` first and ``event`` second so both
    naming conventions used by robot firmware are accepted.
    """

    try:
        payload = json.loads(raw)
    except (TypeError, ValueError, UnicodeDecodeError) as exc:
        raise FrameDecodeError(f"frame is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise FrameDecodeError(
            f"frame must be a JSON object, got {type(payload).__name__}"
        )

    discriminator = payload.get("type") or payload.get("event")
    if not isinstance(discriminator, str) or not discriminator:
        raise FrameDecodeError("frame has no type or event discriminator")

    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}

    return InboundFrame(discriminator=discriminator, data=data, payload=payload)


class InboundRouter:
    """Route frames to per-discriminator subscribers or a default handler.

    ``schedule_updated``, ``robot_status`` and ``connection_established`` are
    handled here; any other discriminator is forwarded verbatim to
    ``default_handler``. Nothing raised while decoding or inside a subscriber
    escapes :meth:`dispatch`.
    """

    def __init__(self, default_handler: Optional[CallbackType] = None) -> None:
        self._default_handler = default_handler
        self._subscribers: Dict[str, List[CallbackType]] = {
            name: [] for name in KNOWN_DISCRIMINATORS
        }
        self.frames_dispatched = 0
        self.frames_dropped = 0
        self.connection_established_count = 0
        self.last_connection_established: Optional[datetime] = None
        self._tasks = CallbackTasks("Inbound frame subscriber")

    def set_default_handler(self, handler: Optional[CallbackType]) -> None:
        self._default_handler = handler

    def subscribe(
        self, discriminator: str, callback: CallbackType
    ) -> Callable[[], None]:
        """Register ``callback`` for a built-in discriminator.

        Returns a callable that removes the subscription.
        """

        if discriminator not in self._subscribers:
            raise ValueError(
                f"Unknown discriminator {discriminator!r}; "
                "unrecognised frames go to the default handler"
            )
        callbacks = self._subscribers[discriminator]
        if callback in callbacks:
            raise ValueError("Callback already registered")
        callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return _unsubscribe

    def dispatch(self, raw: Union[str, bytes]) -> Optional[InboundFrame]:
        """Decode and route one raw frame; malformed frames are logged and dropped."""

        try:
            frame = parse_frame(raw)
        except FrameDecodeError as exc:
            self.frames_dropped += 1
            LOGGER.warning("Dropping malformed robot frame: %s", exc)
            return None

        self.route(frame)
        return frame

    def route(self, frame: InboundFrame) -> None:
        self.frames_dispatched += 1
        discriminator = frame.discriminator

        if discriminator == CONNECTION_ESTABLISHED:
            self.connection_established_count += 1
            self.last_connection_established = datetime.now(timezone.utc)
            LOGGER.debug("Robot acknowledged connection: %s", dict(frame.data))

        if discriminator in self._subscribers:
            for callback in list(self._subscribers[discriminator]):
                self._invoke(callback, frame)
            return

        if self._default_handler is not None:
            self._invoke(self._default_handler, frame)

    def _invoke(self, callback: CallbackType, frame: InboundFrame) -> None:
        try:
            result = callback(frame)
            if asyncio.iscoroutine(result):
                self._tasks.spawn(result)
        except Exception:
            LOGGER.exception(
                "Subscriber for %r frames failed", frame.discriminator
            )
