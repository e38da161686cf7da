import asyncio
import itertools
from typing import Any, Callable, Optional

import pytest

_CLOSE = object()


class FakeTimerHandle:
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: tuple):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manually advanced stand-in for ``loop.call_later``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.delays: list[float] = []
        self._timers: list[FakeTimerHandle] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeTimerHandle:
        handle = FakeTimerHandle(self.now + delay, next(self._seq), callback, args)
        self.delays.append(delay)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeTimerHandle]:
        return [timer for timer in self._timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self.pending if timer.when <= target]
            if not due:
                break
            timer = min(due, key=lambda item: (item.when, item.seq))
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback(*timer.args)
        self._timers = self.pending
        self.now = target


class FakeTransport:
    """In-memory transport driven by the test."""

    def __init__(self) -> None:
        self.connect_results: list[Optional[Exception]] = []
        self.connect_calls: list[str] = []
        self.sent: list[str] = []
        self.fail_after: Optional[int] = None
        self.disconnect_calls = 0
        self.closed = False
        self._inbox: Optional[asyncio.Queue] = None

    @property
    def connected(self) -> bool:
        return self._inbox is not None

    async def connect(self, url: str) -> None:
        self.connect_calls.append(url)
        if self.connect_results:
            result = self.connect_results.pop(0)
            if result is not None:
                raise result
        self._inbox = asyncio.Queue()

    async def messages(self):
        inbox = self._inbox
        if inbox is None:
            return
        while True:
            item = await inbox.get()
            if item is _CLOSE:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def send(self, text: str) -> None:
        if self._inbox is None:
            raise ConnectionResetError("not connected")
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            self.fail_after = None
            raise ConnectionResetError("connection dropped mid-write")
        self.sent.append(text)

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        inbox = self._inbox
        self._inbox = None
        if inbox is not None:
            inbox.put_nowait(_CLOSE)

    async def aclose(self) -> None:
        await self.disconnect()
        self.closed = True

    def push(self, text: str) -> None:
        assert self._inbox is not None, "transport is not connected"
        self._inbox.put_nowait(text)

    def drop(self, error: Optional[Exception] = None) -> None:
        """Simulate the robot closing the connection."""
        inbox = self._inbox
        self._inbox = None
        if inbox is not None:
            inbox.put_nowait(error if error is not None else _CLOSE)


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
