"""WebSocket transport built on the websockets library."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from typing import Any

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    ConnectionClosed,
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import LiveConnectionError, LiveHandshakeError, LiveTimeout
from .base import QueuedConnection, WebSocketCallbacks


async def connect_websocket(
    url: str,
    headers: Mapping[str, str],
    *,
    ping_interval: float | None = 20,
    close_timeout: float = 5,
    timeout: float = 15.0,
) -> ClientConnection:
    """Connect to a WebSocket endpoint.

    Args:
        url: Full ws:// or wss:// URL
        headers: Extra handshake headers
        ping_interval: Interval for ping frames
        close_timeout: Seconds to wait for the closing handshake
        timeout: Connection timeout
    """
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                additional_headers=dict(headers),
                ping_interval=ping_interval,
                close_timeout=close_timeout,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise LiveTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise LiveHandshakeError(f"WebSocket handshake failed: {err}") from err
    except (OSError, WebSocketException) as err:
        raise LiveConnectionError("WebSocket connection failed") from err


class WebsocketsConnection(QueuedConnection):
    """Connection backed by a websockets asyncio client."""

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str],
        callbacks: WebSocketCallbacks,
        *,
        ping_interval: float | None = 20,
        close_timeout: float = 5,
        open_timeout: float = 15.0,
    ) -> None:
        super().__init__(url, headers, callbacks)
        self._ping_interval = ping_interval
        self._close_timeout = close_timeout
        self._open_timeout = open_timeout
        self._ws: ClientConnection | None = None

    async def _open(self) -> None:
        self._ws = await connect_websocket(
            self.url,
            self.headers,
            ping_interval=self._ping_interval,
            close_timeout=self._close_timeout,
            timeout=self._open_timeout,
        )

    async def _receive(self) -> AsyncIterator[Any]:
        if self._ws is None:
            raise LiveConnectionError("WebSocket is not connected")
        try:
            async for message in self._ws:
                yield message
        except ConnectionClosed:
            # Abnormal closure; the close code is reported through on_close.
            return

    async def _send_text(self, text: str) -> None:
        if self._ws is None:
            raise LiveConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(text)
        except ConnectionClosed as err:
            raise LiveConnectionError("WebSocket is closed") from err

    async def _close_transport(self) -> None:
        if self._ws is not None:
            await self._ws.close()

    def _close_info(self) -> tuple[int | None, str | None]:
        if self._ws is None:
            return None, None
        return self._ws.close_code, self._ws.close_reason


class WebsocketsFactory:
    """Default WebSocket factory using the websockets library."""

    def __init__(
        self,
        *,
        ping_interval: float | None = 20,
        close_timeout: float = 5,
        open_timeout: float = 15.0,
    ) -> None:
        self._ping_interval = ping_interval
        self._close_timeout = close_timeout
        self._open_timeout = open_timeout

    def create(
        self, url: str, headers: Mapping[str, str], callbacks: WebSocketCallbacks
    ) -> WebsocketsConnection:
        return WebsocketsConnection(
            url,
            headers,
            callbacks,
            ping_interval=self._ping_interval,
            close_timeout=self._close_timeout,
            open_timeout=self._open_timeout,
        )
