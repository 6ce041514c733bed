"""Live connection factory.

``Live.connect`` performs the handshake: it resolves the model and config,
injects auth, opens the transport, waits for it to open and sends the setup
frame before returning a Session.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from typing import TYPE_CHECKING, Any

from .codec import LiveCodec, codec_for
from .errors import LiveClientError, LiveConfigurationError, LiveHandshakeError
from .session import Session, handle_websocket_message
from .transformers import snake_case, t_model
from .transport import WebSocketCallbacks, WebSocketFactory, maybe_await, redact_url
from .types import (
    BackendVariant,
    CallableTool,
    LiveCallbacks,
    LiveConnectConfig,
    Tool,
    ToolUnion,
)

if TYPE_CHECKING:
    from .api_client import ApiClient
    from .auth import AuthProvider

_LOGGER = logging.getLogger(__name__)


async def materialize_tool(tool: ToolUnion) -> Tool | dict[str, Any]:
    """Resolve a callable tool to its static declaration."""
    if isinstance(tool, CallableTool):
        return await tool.tool()
    if isinstance(tool, (Tool, dict)):
        return tool
    raise LiveConfigurationError(f"Unsupported tool type '{type(tool).__name__}'.")


def _coerce_config(config: LiveConnectConfig | dict[str, Any] | None) -> LiveConnectConfig:
    if config is None:
        return LiveConnectConfig()
    if isinstance(config, LiveConnectConfig):
        # Never mutate the caller's object.
        return dataclasses.replace(config)
    if isinstance(config, dict):
        return LiveConnectConfig.from_dict(
            {snake_case(key): value for key, value in config.items()}
        )
    raise LiveConfigurationError(
        f"Unsupported config type '{type(config).__name__}'."
    )


class Live:
    """Entry point for Live sessions on one client."""

    def __init__(
        self,
        api_client: ApiClient,
        auth: AuthProvider,
        websocket_factory: WebSocketFactory,
    ) -> None:
        self._api_client = api_client
        self._auth = auth
        self._websocket_factory = websocket_factory

    async def connect(
        self,
        *,
        model: str,
        callbacks: LiveCallbacks,
        config: LiveConnectConfig | dict[str, Any] | None = None,
    ) -> Session:
        """Open a session with ``model`` and return it once setup is sent.

        Args:
            model: Model name, e.g. "gemini-2.0-flash-live-001".
            callbacks: User callbacks; ``on_message`` receives every decoded
                server message, starting with the setup acknowledgement.
            config: Session configuration.

        Raises:
            LiveHandshakeError: If auth or the transport fails before open.
            LiveConfigurationError: If the config or a tool is invalid.
        """
        codec = codec_for(self._api_client.variant)
        transformed_model = self._resolve_model(model)
        resolved_config = await self._resolve_config(codec, config)

        setup_message = codec.setup_to_wire(transformed_model, resolved_config)
        setup_message.pop("config", None)
        setup_frame = json.dumps(setup_message)

        url = codec.build_url(
            self._api_client.websocket_base_url(),
            self._api_client.api_version,
            self._api_client.api_key,
        )
        headers = self._api_client.default_headers()
        if codec.uses_header_auth:
            try:
                await self._auth.add_auth_headers(headers)
            except LiveClientError:
                raise
            except Exception as err:
                raise LiveHandshakeError("Failed to add auth headers") from err

        opened: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        conn = self._websocket_factory.create(
            url, headers, self._transport_callbacks(codec, callbacks, opened)
        )
        _LOGGER.info("Connecting live session to %s", redact_url(url))
        conn.connect()
        # The transport reports failure before open through on_error/on_close.
        try:
            await opened
        except asyncio.CancelledError:
            conn.close()
            raise

        conn.send(setup_frame)
        _LOGGER.debug("Setup sent for model %s", transformed_model)
        return Session(conn, self._api_client, codec)

    # -------------------------------------------------------------------------
    # Internal: Handshake
    # -------------------------------------------------------------------------

    def _resolve_model(self, model: str) -> str:
        transformed = t_model(self._api_client.variant, model)
        if (
            self._api_client.variant is BackendVariant.VERTEX_AI
            and transformed.startswith("publishers/")
            and self._api_client.project
        ):
            transformed = (
                f"projects/{self._api_client.project}/locations/"
                f"{self._api_client.location}/{transformed}"
            )
        return transformed

    async def _resolve_config(
        self,
        codec: LiveCodec,
        config: LiveConnectConfig | dict[str, Any] | None,
    ) -> LiveConnectConfig:
        resolved = _coerce_config(config)

        if resolved.response_modalities is None and codec.default_response_modalities:
            resolved.response_modalities = list(codec.default_response_modalities)

        if resolved.generation_config is not None:
            _LOGGER.warning(
                "Setting `LiveConnectConfig.generation_config` is deprecated, please "
                "set the fields on `LiveConnectConfig` directly."
            )

        if resolved.tools:
            resolved.tools = [await materialize_tool(tool) for tool in resolved.tools]
        return resolved

    @staticmethod
    def _transport_callbacks(
        codec: LiveCodec,
        callbacks: LiveCallbacks,
        opened: asyncio.Future[None],
    ) -> WebSocketCallbacks:
        async def on_open() -> None:
            if not opened.done():
                opened.set_result(None)
            if callbacks.on_open is not None:
                await maybe_await(callbacks.on_open())

        async def on_message(data: Any) -> None:
            await handle_websocket_message(codec, callbacks.on_message, data)

        async def on_error(err: BaseException) -> None:
            if not opened.done():
                if isinstance(err, LiveHandshakeError):
                    failure = err
                else:
                    failure = LiveHandshakeError(f"WebSocket failed before open: {err}")
                    failure.__cause__ = err
                opened.set_exception(failure)
            if callbacks.on_error is not None:
                await maybe_await(callbacks.on_error(err))

        async def on_close(code: int | None, reason: str | None) -> None:
            if not opened.done():
                opened.set_exception(
                    LiveHandshakeError(
                        f"WebSocket closed before open (code={code}, reason={reason})"
                    )
                )
            if callbacks.on_close is not None:
                await maybe_await(callbacks.on_close(code, reason))

        return WebSocketCallbacks(
            on_open=on_open,
            on_message=on_message,
            on_error=on_error,
            on_close=on_close,
        )
