"""Transport abstraction for Live sessions.

A transport is a duplex, message-oriented connection created by a factory
from a URL, a header mapping and a callback set. Sessions only ever call
``connect()``, ``send(text)`` and ``close()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol
from urllib.parse import urlsplit, urlunsplit

from ..errors import LiveClientError, LiveConnectionError, LiveHandshakeError

_LOGGER = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class WebSocketCallbacks:
    """Transport callbacks. Any of them may return an awaitable."""

    on_open: Callable[[], Awaitable[None] | None]
    on_message: Callable[[Any], Awaitable[None] | None]
    on_error: Callable[[BaseException], Awaitable[None] | None]
    on_close: Callable[[int | None, str | None], Awaitable[None] | None]


class Connection(Protocol):
    """Duplex connection owned by exactly one session."""

    url: str
    headers: dict[str, str]

    @property
    def state(self) -> ConnectionState: ...

    def connect(self) -> None: ...

    def send(self, text: str) -> None: ...

    def close(self) -> None: ...


class WebSocketFactory(Protocol):
    """Creates connections; the connection is not opened until connect()."""

    def create(
        self, url: str, headers: Mapping[str, str], callbacks: WebSocketCallbacks
    ) -> Connection: ...


async def maybe_await(result: Any) -> Any:
    """Await ``result`` when a callback returned an awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result


def redact_url(url: str) -> str:
    """Drop the query string, which may carry an API key."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class QueuedConnection(ABC):
    """Connection driven by a reader task and a writer task.

    ``send`` only enqueues, so it never blocks; the writer drains frames in
    order. ``on_message`` is awaited before the next frame is read, so
    callbacks observe frames in delivery order.
    """

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str],
        callbacks: WebSocketCallbacks,
    ) -> None:
        self.url = url
        self.headers = dict(headers)
        self._callbacks = callbacks
        self._state = ConnectionState.CONNECTING
        self._outbound: asyncio.Queue[str | None] = asyncio.Queue()
        self._reader_task: asyncio.Task[None] | None = None
        self._writer_task: asyncio.Task[None] | None = None
        self._close_requested = False
        self._close_notified = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def connect(self) -> None:
        """Start opening the connection on the running event loop."""
        if self._reader_task is not None:
            raise LiveConnectionError("connect() may only be called once")
        self._reader_task = asyncio.get_running_loop().create_task(self._run())

    def send(self, text: str) -> None:
        """Queue a text frame for sending."""
        if self._state is not ConnectionState.OPEN or self._close_requested:
            raise LiveConnectionError("WebSocket is not connected")
        self._outbound.put_nowait(text)

    def close(self) -> None:
        """Close after flushing queued frames. Safe to call more than once."""
        if self._close_requested or self._state is ConnectionState.CLOSED:
            return
        self._close_requested = True
        if self._reader_task is None:
            self._state = ConnectionState.CLOSED
            return
        self._outbound.put_nowait(None)

    async def wait_closed(self) -> None:
        """Wait until the reader task has finished."""
        if self._reader_task is not None:
            await self._reader_task

    # -------------------------------------------------------------------------
    # Backend hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    async def _open(self) -> None:
        """Open the underlying socket, raising LiveClientError on failure."""

    @abstractmethod
    def _receive(self) -> AsyncIterator[Any]:
        """Yield inbound payloads until the peer closes."""

    @abstractmethod
    async def _send_text(self, text: str) -> None:
        """Send one text frame, raising LiveConnectionError if closed."""

    @abstractmethod
    async def _close_transport(self) -> None:
        """Close the underlying socket. Must be idempotent."""

    @abstractmethod
    def _close_info(self) -> tuple[int | None, str | None]:
        """Return the close code and reason, if known."""

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            await self._open()
        except LiveClientError as err:
            _LOGGER.warning("WebSocket open failed for %s: %s", redact_url(self.url), err)
            await self._fail_open(err)
            return
        except Exception as err:
            _LOGGER.exception("Unexpected error opening %s", redact_url(self.url))
            failure = LiveHandshakeError(f"WebSocket open failed: {err}")
            failure.__cause__ = err
            await self._fail_open(failure)
            return

        self._state = ConnectionState.OPEN
        self._writer_task = asyncio.create_task(self._drain_outbound())
        _LOGGER.debug("WebSocket open: %s", redact_url(self.url))

        try:
            await maybe_await(self._callbacks.on_open())
            async for data in self._receive():
                await maybe_await(self._callbacks.on_message(data))
        except asyncio.CancelledError:
            raise
        except Exception as err:
            _LOGGER.exception("WebSocket listener error: %s", err)
            await self._notify_error(err)
        finally:
            self._state = ConnectionState.CLOSED
            if self._writer_task is not None and not self._writer_task.done():
                self._writer_task.cancel()
            await self._close_transport()
            code, reason = self._close_info()
            await self._notify_close(code, reason)

    async def _drain_outbound(self) -> None:
        while True:
            text = await self._outbound.get()
            if text is None:
                break
            try:
                await self._send_text(text)
            except LiveConnectionError as err:
                _LOGGER.debug("Dropping outbound frame: %s", err)
                break
        await self._close_transport()

    async def _fail_open(self, err: BaseException) -> None:
        self._state = ConnectionState.CLOSED
        # Releases anything _open() acquired before failing.
        await self._close_transport()
        await self._notify_error(err)
        await self._notify_close(None, str(err))

    async def _notify_error(self, err: BaseException) -> None:
        try:
            await maybe_await(self._callbacks.on_error(err))
        except Exception:
            _LOGGER.exception("on_error callback failed")

    async def _notify_close(self, code: int | None, reason: str | None) -> None:
        if self._close_notified:
            return
        self._close_notified = True
        _LOGGER.debug("WebSocket closed: code=%s reason=%s", code, reason)
        try:
            await maybe_await(self._callbacks.on_close(code, reason))
        except Exception:
            _LOGGER.exception("on_close callback failed")
