"""Transport layer for Live sessions.

Components:
- base: callback set, connection/factory protocols, queued connection
- ws: websockets-based connection (default)
- aiohttp_ws: aiohttp-based connection
"""

from .aiohttp_ws import AiohttpConnection, AiohttpWebSocketFactory
from .base import (
    Connection,
    ConnectionState,
    QueuedConnection,
    WebSocketCallbacks,
    WebSocketFactory,
    maybe_await,
    redact_url,
)
from .ws import WebsocketsConnection, WebsocketsFactory, connect_websocket

__all__ = [
    "AiohttpConnection",
    "AiohttpWebSocketFactory",
    "Connection",
    "ConnectionState",
    "QueuedConnection",
    "WebSocketCallbacks",
    "WebSocketFactory",
    "WebsocketsConnection",
    "WebsocketsFactory",
    "connect_websocket",
    "maybe_await",
    "redact_url",
]
