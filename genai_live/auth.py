"""Auth providers that inject credentials into handshake headers."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Protocol

import google.auth
import google.auth.transport.requests

from .config import ResolvedOptions
from .errors import LiveHandshakeError

_LOGGER = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/cloud-platform",)


def _has_header(headers: dict[str, str], name: str) -> bool:
    lowered = name.lower()
    return any(key.lower() == lowered for key in headers)


class AuthProvider(Protocol):
    """Mutates handshake headers in place, or raises."""

    async def add_auth_headers(self, headers: dict[str, str]) -> None: ...


class NoAuth:
    """Leaves headers untouched."""

    async def add_auth_headers(self, headers: dict[str, str]) -> None:
        return None


class ApiKeyAuth:
    """Sends the API key as ``x-goog-api-key``."""

    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    async def add_auth_headers(self, headers: dict[str, str]) -> None:
        if not _has_header(headers, "x-goog-api-key"):
            headers["x-goog-api-key"] = self._api_key


class GoogleCredentialsAuth:
    """Bearer token auth from google-auth credentials.

    Uses Application Default Credentials when no credentials are given.
    Refreshing is blocking I/O, so it runs in a worker thread.
    """

    def __init__(
        self,
        credentials: Any = None,
        *,
        scopes: Sequence[str] = CLOUD_PLATFORM_SCOPES,
    ) -> None:
        self._credentials = credentials
        self._scopes = list(scopes)

    async def add_auth_headers(self, headers: dict[str, str]) -> None:
        if _has_header(headers, "Authorization"):
            return
        token = await asyncio.to_thread(self._access_token)
        headers["Authorization"] = f"Bearer {token}"

    def _access_token(self) -> str:
        if self._credentials is None:
            self._credentials, project = google.auth.default(scopes=self._scopes)
            _LOGGER.debug("Loaded default credentials (project=%s)", project)
        if not self._credentials.valid:
            self._credentials.refresh(google.auth.transport.requests.Request())
        token = self._credentials.token
        if not token:
            raise LiveHandshakeError("Google credentials did not produce an access token")
        return token


def auth_for(options: ResolvedOptions) -> AuthProvider:
    """Pick the auth provider matching the resolved client options."""
    if options.api_key:
        return ApiKeyAuth(options.api_key)
    return GoogleCredentialsAuth(options.credentials)
