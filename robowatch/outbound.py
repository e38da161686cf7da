"""FIFO buffer for frames submitted while a channel is not open."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Iterator

LOGGER = logging.getLogger(__name__)

# Frames are stored already encoded; the queue never inspects them.
OutboundFrame = str


class OutboundQueue:
    """Ordered, unbounded queue of outbound frames.

    Frames leave the queue only after the writer accepted them, so a flush
    interrupted by a dropped connection keeps the unsent remainder in order.
    """

    def __init__(self) -> None:
        self._frames: Deque[OutboundFrame] = deque()
        self._ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[OutboundFrame]:
        return iter(list(self._frames))

    def enqueue(self, frame: OutboundFrame) -> None:
        self._frames.append(frame)
        self._ready.set()

    def clear(self) -> None:
        self._frames.clear()
        self._ready.clear()

    async def wait(self) -> None:
        """Block until at least one frame is queued."""

        await self._ready.wait()

    async def flush(self, write: Callable[[OutboundFrame], Awaitable[None]]) -> bool:
        """Deliver queued frames in submission order.

        Returns ``False`` when a write failed; that frame and everything after
        it stay queued for the next flush.
        """

        while self._frames:
            frame = self._frames[0]
            try:
                await write(frame)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                LOGGER.warning(
                    "Outbound flush interrupted with %d frame(s) pending: %s",
                    len(self._frames),
                    exc,
                )
                return False
            self._frames.popleft()

        self._ready.clear()
        return True
