"""aiohttp-backed websocket transport for robot message endpoints."""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Optional

import aiohttp

LOGGER = logging.getLogger(__name__)


class WebSocketTransport:
    """One physical websocket connection, reusable across reconnects."""

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        connect_timeout: float = 10.0,
    ) -> None:
        self.connect_timeout = connect_timeout
        self._session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self, url: str) -> None:
        await self.disconnect()
        session = await self._ensure_session()
        self._ws = await session.ws_connect(url)
        LOGGER.debug("Websocket connected to %s", url)

    async def messages(self) -> AsyncIterator[str]:
        ws = self._ws
        if ws is None:
            return

        async for message in ws:
            if message.type == aiohttp.WSMsgType.TEXT:
                yield message.data
            elif message.type == aiohttp.WSMsgType.BINARY:
                try:
                    yield message.data.decode("utf-8")
                except UnicodeDecodeError:
                    LOGGER.warning("Discarding non UTF-8 binary frame")
            elif message.type == aiohttp.WSMsgType.ERROR:
                raise ws.exception() or RuntimeError("Websocket error")

    async def send(self, text: str) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            raise ConnectionResetError("Websocket is not connected")
        await ws.send_str(text)

    async def disconnect(self) -> None:
        ws = self._ws
        self._ws = None
        if ws is not None and not ws.closed:
            with contextlib.suppress(Exception):
                await ws.close()

    async def aclose(self) -> None:
        await self.disconnect()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=self.connect_timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session
