"""Top-level client for the Live API."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .api_client import ApiClient
from .auth import AuthProvider, auth_for
from .config import LiveClientOptions, resolve_options
from .live import Live
from .transport import WebSocketFactory, WebsocketsFactory


class Client:
    """Live API client for either the Gemini API or Vertex AI.

    Usage:
        client = Client(api_key="...")
        client = Client(vertexai=True, project="my-project", location="us-central1")
        session = await client.live.connect(model="...", callbacks=callbacks)

    Explicit options take precedence over environment variables.
    """

    def __init__(
        self,
        *,
        vertexai: bool | None = None,
        api_key: str | None = None,
        project: str | None = None,
        location: str | None = None,
        api_version: str | None = None,
        base_url: str | None = None,
        headers: Mapping[str, str] | None = None,
        credentials: Any = None,
        auth: AuthProvider | None = None,
        websocket_factory: WebSocketFactory | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        options = LiveClientOptions(
            vertexai=vertexai,
            api_key=api_key,
            project=project,
            location=location,
            api_version=api_version,
            base_url=base_url,
            headers=dict(headers or {}),
            credentials=credentials,
        )
        resolved = resolve_options(options, environ)
        self._api_client = ApiClient(resolved)
        self.live = Live(
            self._api_client,
            auth if auth is not None else auth_for(resolved),
            websocket_factory if websocket_factory is not None else WebsocketsFactory(),
        )

    @property
    def vertexai(self) -> bool:
        return self._api_client.is_vertexai()
