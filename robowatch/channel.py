"""Robot channel lifecycle, reconnection and outbound delivery.

A :class:`RobotChannel` is the logical connection to one robot's message
endpoint. It survives any number of transport reconnects:

- connection failures and unexpected closures are retried with exponential
  backoff, up to an optional attempt bound after which subscribers receive a
  terminal give-up signal
- frames submitted while the channel is not open are queued and flushed in
  order as soon as it opens again
- a heartbeat ping is sent periodically while open

All state changes happen on one event loop; ``open``, ``close`` and ``send``
never block.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any, Callable, List, Mapping, Optional

from .adapters import WebSocketTransport
from .config import ChannelConfig
from .core import (
    CallbackTasks,
    CallbackType,
    ChannelState,
    ChannelStatus,
    Scheduler,
    TimerHandle,
    Transport,
)
from .heartbeat import HeartbeatDriver
from .outbound import OutboundQueue
from .router import InboundRouter

LOGGER = logging.getLogger(__name__)


class ChannelError(RuntimeError):
    """Base error for robot channel misuse."""


class ChannelClosedError(ChannelError):
    """Raised when reopening a channel that was closed on purpose."""


def compute_backoff_delay(attempt: int, *, initial: float, multiplier: float) -> float:
    """Delay in seconds before reconnect ``attempt`` (1-based)."""

    if attempt < 1:
        return 0.0
    return initial * multiplier ** (attempt - 1)


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class RobotChannel:
    """Reconnecting websocket channel to a single robot."""

    def __init__(
        self,
        config: ChannelConfig,
        *,
        transport: Optional[Transport] = None,
        router: Optional[InboundRouter] = None,
        scheduler: Optional[Scheduler] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.config = config
        self.router = router or InboundRouter()
        self._transport: Transport = transport or WebSocketTransport()
        self._scheduler = scheduler
        self._loop = loop

        self._state = ChannelState.IDLE
        self._manual_close = False
        self._gave_up = False
        self._attempts = 0
        self._last_error: Optional[str] = None

        self._outbound = OutboundQueue()
        self._heartbeat: Optional[HeartbeatDriver] = None
        self._backoff_handle: Optional[TimerHandle] = None
        self._session_task: Optional[asyncio.Task[None]] = None
        self._writer_task: Optional[asyncio.Task[None]] = None

        self._connected_callbacks: List[CallbackType] = []
        self._disconnected_callbacks: List[CallbackType] = []
        self._error_callbacks: List[CallbackType] = []
        self._give_up_callbacks: List[CallbackType] = []
        self._callback_tasks = CallbackTasks("Robot channel callback")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ChannelState.OPEN

    @property
    def reconnect_attempts(self) -> int:
        return self._attempts

    @property
    def queued_messages(self) -> int:
        return len(self._outbound)

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def status(self) -> ChannelStatus:
        return ChannelStatus(
            connected=self.connected,
            state=self._state,
            reconnect_attempts=self._attempts,
            queued_messages=len(self._outbound),
            last_error=self._last_error,
        )

    def register_connected_callback(self, callback: CallbackType) -> None:
        """Invoke ``callback()`` each time the channel opens."""
        self._connected_callbacks.append(callback)

    def register_disconnected_callback(self, callback: CallbackType) -> None:
        """Invoke ``callback(reason)`` each time an open channel is lost or closed."""
        self._disconnected_callbacks.append(callback)

    def register_error_callback(self, callback: CallbackType) -> None:
        """Invoke ``callback(detail)`` when a connection attempt fails."""
        self._error_callbacks.append(callback)

    def register_give_up_callback(self, callback: CallbackType) -> None:
        """Invoke ``callback(detail)`` once the reconnect bound is exhausted."""
        self._give_up_callbacks.append(callback)

    def open(self) -> "RobotChannel":
        """Start connecting and return immediately.

        Opening an open or connecting channel is a no-op. A channel that gave up
        after exhausting its reconnect bound starts over with a fresh counter.

        Raises:
            ChannelClosedError: If the channel was closed with :meth:`close`.
        """

        if self._state is ChannelState.CLOSED and self._gave_up:
            LOGGER.info("Retrying robot %s after giving up", self.config.robot_id)
            self._gave_up = False
            self._attempts = 0
            self._begin_attempt()
            return self

        if self._state in (ChannelState.CLOSING, ChannelState.CLOSED):
            raise ChannelClosedError(
                f"Channel for robot {self.config.robot_id} is closed"
            )

        if self._state is not ChannelState.IDLE:
            return self

        LOGGER.info(
            "Opening channel for robot %s at %s",
            self.config.robot_id,
            self.config.endpoint,
        )
        self._begin_attempt()
        return self

    def close(self) -> None:
        """Shut the channel down for good.

        Pending backoff and heartbeat timers are cancelled before this returns,
        so nothing reopens or writes on the channel afterwards.
        """

        if self._state is ChannelState.CLOSED and not self._gave_up:
            return
        if self._state is ChannelState.CLOSING:
            return

        # Only an open channel has a live connection left to report as lost.
        notify = self._state is ChannelState.OPEN
        self._manual_close = True
        self._gave_up = False
        self._cancel_backoff()
        self._stop_heartbeat()
        self._cancel_writer()

        task = self._session_task
        self._session_task = None
        if task is not None and not task.done():
            self._set_state(ChannelState.CLOSING)
            task.cancel()
            task.add_done_callback(lambda _task: self._finish_close(notify))
        else:
            self._finish_close(notify)

    async def aclose(self) -> None:
        """Close the channel, wait for teardown and release the transport."""

        task = self._session_task
        self.close()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._transport.aclose()

    def send(self, frame: Mapping[str, Any]) -> bool:
        """Submit ``frame`` for delivery.

        Returns ``True`` when the channel is open and the frame goes straight to
        the transport, ``False`` when it was queued for the next open. Frames are
        always delivered in submission order. After :meth:`close` frames are
        dropped and ``False`` is returned.

        Raises:
            TypeError: If the frame is not JSON serialisable.
        """

        text = json.dumps(frame)
        if self._manual_close:
            LOGGER.warning(
                "Dropping frame for robot %s; channel was closed", self.config.robot_id
            )
            return False

        self._outbound.enqueue(text)
        if self._state is ChannelState.OPEN:
            return True

        LOGGER.debug(
            "Robot %s channel is %s; queued frame (%d pending)",
            self.config.robot_id,
            self._state.value,
            len(self._outbound),
        )
        return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = self._get_loop()
        return self._scheduler

    def _set_state(self, state: ChannelState) -> None:
        if state is self._state:
            return
        LOGGER.debug(
            "Robot %s channel %s -> %s",
            self.config.robot_id,
            self._state.value,
            state.value,
        )
        self._state = state

    def _begin_attempt(self) -> None:
        self._backoff_handle = None
        if self._manual_close:
            return
        self._set_state(ChannelState.CONNECTING)
        self._session_task = self._get_loop().create_task(self._run_session())

    async def _run_session(self) -> None:
        transport = self._transport
        try:
            await transport.connect(self.config.endpoint)
        except asyncio.CancelledError:
            await self._release_connection()
            raise
        except Exception as exc:
            await self._release_connection()
            self._on_connect_failed(exc)
            return

        self._on_open()

        error: Optional[BaseException] = None
        try:
            async for raw in transport.messages():
                self.router.dispatch(raw)
        except asyncio.CancelledError:
            self._leave_open()
            await self._release_connection()
            raise
        except Exception as exc:
            error = exc

        self._leave_open()
        await self._release_connection()
        self._on_connection_lost(error)

    async def _release_connection(self) -> None:
        try:
            await self._transport.disconnect()
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.debug("Ignoring transport disconnect failure", exc_info=True)

    def _on_open(self) -> None:
        self._attempts = 0
        self._last_error = None
        self._set_state(ChannelState.OPEN)
        LOGGER.info("Connected to robot %s", self.config.robot_id)

        if self._heartbeat is None:
            self._heartbeat = HeartbeatDriver(
                self.send,
                interval=self.config.heartbeat_interval_seconds,
                scheduler=self._get_scheduler(),
            )
        self._heartbeat.start()
        self._writer_task = self._get_loop().create_task(self._pump_outbound())

        self._notify(self._connected_callbacks)

    def _leave_open(self) -> None:
        self._stop_heartbeat()
        self._cancel_writer()
        if self._state is ChannelState.OPEN:
            self._set_state(ChannelState.CONNECTING)

    def _on_connect_failed(self, exc: BaseException) -> None:
        if self._manual_close:
            return
        self._last_error = _describe(exc)
        LOGGER.warning(
            "Connection to robot %s failed: %s", self.config.robot_id, self._last_error
        )
        self._notify(self._error_callbacks, self._last_error)
        if self._manual_close:
            return
        self._schedule_reconnect()

    def _on_connection_lost(self, error: Optional[BaseException]) -> None:
        if self._manual_close:
            return
        reason = _describe(error) if error is not None else "connection closed"
        self._last_error = reason
        LOGGER.warning("Connection to robot %s lost: %s", self.config.robot_id, reason)
        self._notify(self._disconnected_callbacks, reason)
        if self._manual_close:
            return
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._manual_close:
            return
        limit = self.config.max_reconnect_attempts
        if limit is not None and self._attempts >= limit:
            LOGGER.error(
                "Giving up on robot %s after %d reconnect attempt(s)",
                self.config.robot_id,
                self._attempts,
            )
            self._session_task = None
            self._gave_up = True
            self._set_state(ChannelState.CLOSED)
            self._notify(self._give_up_callbacks, self._last_error)
            return

        self._attempts += 1
        delay = compute_backoff_delay(
            self._attempts,
            initial=self.config.reconnect_initial_seconds,
            multiplier=self.config.reconnect_multiplier,
        )
        self._set_state(ChannelState.CONNECTING)
        LOGGER.info(
            "Reconnecting to robot %s in %.2fs (attempt %d)",
            self.config.robot_id,
            delay,
            self._attempts,
        )
        self._backoff_handle = self._get_scheduler().call_later(
            delay, self._begin_attempt
        )

    def _finish_close(self, notify: bool) -> None:
        self._set_state(ChannelState.CLOSED)
        LOGGER.info("Closed channel for robot %s", self.config.robot_id)
        if notify:
            self._notify(self._disconnected_callbacks, "closed by client")

    async def _pump_outbound(self) -> None:
        while self._state is ChannelState.OPEN:
            await self._outbound.wait()
            if self._state is not ChannelState.OPEN:
                return
            if not await self._outbound.flush(self._transport.send):
                # Let the reader observe the closure and drive reconnection.
                # The reader cancels this task once it sees the close.
                await asyncio.shield(self._release_connection())
                return

    def _cancel_backoff(self) -> None:
        handle = self._backoff_handle
        self._backoff_handle = None
        if handle is not None:
            handle.cancel()

    def _stop_heartbeat(self) -> None:
        if self._heartbeat is not None:
            self._heartbeat.stop()

    def _cancel_writer(self) -> None:
        task = self._writer_task
        self._writer_task = None
        if task is not None and not task.done():
            task.cancel()

    def _notify(self, callbacks: List[CallbackType], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                result = callback(*args)
                if asyncio.iscoroutine(result):
                    self._callback_tasks.spawn(result, loop=self._get_loop())
            except Exception:
                LOGGER.exception("Robot channel callback failed")


def open_channel(
    config: ChannelConfig,
    *,
    transport: Optional[Transport] = None,
    router: Optional[InboundRouter] = None,
    scheduler: Optional[Scheduler] = None,
    on_connected: Optional[CallbackType] = None,
    on_disconnected: Optional[CallbackType] = None,
    on_error: Optional[CallbackType] = None,
    on_give_up: Optional[CallbackType] = None,
) -> RobotChannel:
    """Create a channel for ``config``, wire the callbacks and start connecting."""

    channel = RobotChannel(
        config, transport=transport, router=router, scheduler=scheduler
    )
    registrations: list[tuple[Optional[CallbackType], Callable[[CallbackType], None]]] = [
        (on_connected, channel.register_connected_callback),
        (on_disconnected, channel.register_disconnected_callback),
        (on_error, channel.register_error_callback),
        (on_give_up, channel.register_give_up_callback),
    ]
    for callback, register in registrations:
        if callback is not None:
            register(callback)
    return channel.open()
