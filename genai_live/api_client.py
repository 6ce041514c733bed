"""Read-only view of the client configuration shared by all sessions."""

from __future__ import annotations

import platform

from ._version import __version__
from .config import ResolvedOptions
from .types import BackendVariant

LIBRARY_LABEL = f"genai-live/{__version__}"
LANGUAGE_LABEL_PREFIX = "gl-python/"


class ApiClient:
    """Backend variant, endpoint and credential settings for one client."""

    def __init__(self, options: ResolvedOptions) -> None:
        self._options = options

    @property
    def variant(self) -> BackendVariant:
        if self._options.vertexai:
            return BackendVariant.VERTEX_AI
        return BackendVariant.GEMINI_API

    def is_vertexai(self) -> bool:
        return self._options.vertexai

    @property
    def api_key(self) -> str | None:
        return self._options.api_key

    @property
    def project(self) -> str | None:
        return self._options.project

    @property
    def location(self) -> str | None:
        return self._options.location

    @property
    def api_version(self) -> str:
        return self._options.api_version

    @property
    def credentials(self) -> object:
        return self._options.credentials

    def websocket_base_url(self) -> str:
        """Base URL with a ws/wss scheme and no trailing slash."""
        url = self._options.base_url
        if url.startswith("https://"):
            url = "wss://" + url[len("https://") :]
        elif url.startswith("http://"):
            url = "ws://" + url[len("http://") :]
        return url.rstrip("/")

    def default_headers(self) -> dict[str, str]:
        """Headers sent with every handshake; caller headers win."""
        label = f"{LIBRARY_LABEL} {LANGUAGE_LABEL_PREFIX}{platform.python_version()}"
        headers = {
            "Content-Type": "application/json",
            "user-agent": label,
            "x-goog-api-client": label,
        }
        headers.update(self._options.headers)
        return headers
