"""Protocol definitions for transports, timers and callbacks."""

from __future__ import annotations

from typing import Any, AsyncIterator, Awaitable, Callable, Protocol


CallbackType = Callable[..., Awaitable[None] | None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay.

    ``asyncio.AbstractEventLoop`` satisfies this contract.
    """

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> TimerHandle: ...


class Transport(Protocol):
    """Minimal contract for one physical connection to a robot endpoint."""

    async def connect(self, url: str) -> None:
        """Open the connection, raising on failure."""
        ...

    def messages(self) -> AsyncIterator[str]:
        """Yield inbound text frames until the connection closes.

        Iteration ends normally on a clean close and raises on a protocol error.
        """
        ...

    async def send(self, text: str) -> None:
        """Write one text frame.

        Raises:
            ConnectionError: If the connection is not open.
        """
        ...

    async def disconnect(self) -> None:
        """Close the current connection, if any."""
        ...

    async def aclose(self) -> None:
        """Release every resource held by the transport."""
        ...
