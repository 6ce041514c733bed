"""Pytest configuration and fixtures for genai_live tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from typing import Any

import pytest

from genai_live.api_client import ApiClient
from genai_live.config import LiveClientOptions, resolve_options
from genai_live.errors import LiveConnectionError
from genai_live.transport import ConnectionState, WebSocketCallbacks, maybe_await


class FakeConnection:
    """In-memory connection that records outbound frames.

    ``behavior`` controls what happens after connect():
    "open" fires on_open, "error" fires on_error then on_close,
    "close" fires on_close, "hang" fires nothing.
    """

    def __init__(
        self,
        url: str,
        headers: Mapping[str, str],
        callbacks: WebSocketCallbacks,
        behavior: str = "open",
    ) -> None:
        self.url = url
        self.headers = dict(headers)
        self.callbacks = callbacks
        self.behavior = behavior
        self.sent: list[str] = []
        self.connect_calls = 0
        self.close_calls = 0
        self._state = ConnectionState.CONNECTING

    @property
    def state(self) -> ConnectionState:
        return self._state

    def connect(self) -> None:
        self.connect_calls += 1
        asyncio.get_running_loop().create_task(self._fire())

    async def _fire(self) -> None:
        if self.behavior == "open":
            self._state = ConnectionState.OPEN
            await maybe_await(self.callbacks.on_open())
        elif self.behavior == "error":
            self._state = ConnectionState.CLOSED
            await maybe_await(self.callbacks.on_error(ConnectionRefusedError("refused")))
            await maybe_await(self.callbacks.on_close(1006, "abnormal"))
        elif self.behavior == "close":
            self._state = ConnectionState.CLOSED
            await maybe_await(self.callbacks.on_close(1008, "policy violation"))

    def send(self, text: str) -> None:
        if self._state is not ConnectionState.OPEN:
            raise LiveConnectionError("WebSocket is not connected")
        self.sent.append(text)

    def close(self) -> None:
        self.close_calls += 1
        self._state = ConnectionState.CLOSED

    async def deliver(self, data: Any) -> None:
        """Simulate an inbound frame."""
        await maybe_await(self.callbacks.on_message(data))

    def sent_json(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]


class FakeWebSocketFactory:
    """Factory producing FakeConnection objects."""

    def __init__(self, behavior: str = "open") -> None:
        self.behavior = behavior
        self.connections: list[FakeConnection] = []

    def create(
        self, url: str, headers: Mapping[str, str], callbacks: WebSocketCallbacks
    ) -> FakeConnection:
        conn = FakeConnection(url, headers, callbacks, self.behavior)
        self.connections.append(conn)
        return conn

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


class RecordingAuth:
    """Auth provider that records calls and sets a fixed bearer token."""

    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self._error = error

    async def add_auth_headers(self, headers: dict[str, str]) -> None:
        self.calls += 1
        if self._error is not None:
            raise self._error
        headers["Authorization"] = "Bearer test-token"


def make_api_client(environ: Mapping[str, str] | None = None, **options: Any) -> ApiClient:
    """Build an ApiClient without touching the process environment."""
    return ApiClient(resolve_options(LiveClientOptions(**options), environ or {}))


@pytest.fixture
def gemini_api_client() -> ApiClient:
    return make_api_client(api_key="test-key")


@pytest.fixture
def vertex_api_client() -> ApiClient:
    return make_api_client(vertexai=True, project="p", location="l")


@pytest.fixture
def ws_factory() -> FakeWebSocketFactory:
    return FakeWebSocketFactory()


@pytest.fixture
def open_connection() -> FakeConnection:
    """A FakeConnection already in the open state."""
    callbacks = WebSocketCallbacks(
        on_open=lambda: None,
        on_message=lambda data: None,
        on_error=lambda err: None,
        on_close=lambda code, reason: None,
    )
    conn = FakeConnection("wss://example.test/ws", {}, callbacks)
    conn._state = ConnectionState.OPEN
    return conn
