"""WebSocket transport built on aiohttp."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from typing import Any

import aiohttp

from ..errors import LiveConnectionError, LiveHandshakeError, LiveTimeout
from .base import QueuedConnection, WebSocketCallbacks


class AiohttpConnection(QueuedConnection):
    """Connection backed by ``aiohttp.ClientSession.ws_connect``.

    When no session is supplied, one is created on open and closed together
    with the socket.
    """

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str],
        callbacks: WebSocketCallbacks,
        *,
        session: aiohttp.ClientSession | None = None,
        heartbeat: float | None = 30.0,
        open_timeout: float = 15.0,
    ) -> None:
        super().__init__(url, headers, callbacks)
        self._session = session
        self._owns_session = session is None
        self._heartbeat = heartbeat
        self._open_timeout = open_timeout
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    async def _open(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(
                    self.url,
                    headers=self.headers,
                    heartbeat=self._heartbeat,
                    max_msg_size=0,
                ),
                timeout=self._open_timeout,
            )
        except TimeoutError as err:
            raise LiveTimeout("WebSocket connection timed out") from err
        except aiohttp.WSServerHandshakeError as err:
            raise LiveHandshakeError(f"WebSocket handshake failed: {err}") from err
        except (aiohttp.ClientError, OSError) as err:
            raise LiveConnectionError("WebSocket connection failed") from err

    async def _receive(self) -> AsyncIterator[Any]:
        if self._ws is None:
            raise LiveConnectionError("WebSocket is not connected")
        # Iteration stops on CLOSE, CLOSING and CLOSED frames.
        async for msg in self._ws:
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                yield msg.data
            elif msg.type is aiohttp.WSMsgType.ERROR:
                raise LiveConnectionError("WebSocket error") from self._ws.exception()

    async def _send_text(self, text: str) -> None:
        if self._ws is None or self._ws.closed:
            raise LiveConnectionError("WebSocket is closed")
        try:
            await self._ws.send_str(text)
        except (ConnectionResetError, aiohttp.ClientError) as err:
            raise LiveConnectionError("WebSocket is closed") from err

    async def _close_transport(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        await self._release_session()

    async def _release_session(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _close_info(self) -> tuple[int | None, str | None]:
        if self._ws is None:
            return None, None
        return self._ws.close_code, None


class AiohttpWebSocketFactory:
    """WebSocket factory for applications that already run aiohttp."""

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        heartbeat: float | None = 30.0,
        open_timeout: float = 15.0,
    ) -> None:
        self._session = session
        self._heartbeat = heartbeat
        self._open_timeout = open_timeout

    def create(
        self, url: str, headers: Mapping[str, str], callbacks: WebSocketCallbacks
    ) -> AiohttpConnection:
        return AiohttpConnection(
            url,
            headers,
            callbacks,
            session=self._session,
            heartbeat=self._heartbeat,
            open_timeout=self._open_timeout,
        )
