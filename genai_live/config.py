"""Client option resolution.

Explicit options always win over environment variables. For Vertex AI the
project/location and API key settings are mutually exclusive, and the
precedence between explicit and implicit values is logged at debug level.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import LiveConfigurationError

_LOGGER = logging.getLogger(__name__)

ENV_USE_VERTEXAI = "GOOGLE_GENAI_USE_VERTEXAI"
ENV_GOOGLE_API_KEY = "GOOGLE_API_KEY"
ENV_GEMINI_API_KEY = "GEMINI_API_KEY"
ENV_PROJECT = "GOOGLE_CLOUD_PROJECT"
ENV_LOCATION = "GOOGLE_CLOUD_LOCATION"
ENV_VERTEX_BASE_URL = "GOOGLE_VERTEX_BASE_URL"
ENV_GEMINI_BASE_URL = "GOOGLE_GEMINI_BASE_URL"

GEMINI_API_BASE_URL = "https://generativelanguage.googleapis.com/"
VERTEX_GLOBAL_BASE_URL = "https://aiplatform.googleapis.com/"
GEMINI_API_VERSION = "v1beta"
VERTEX_API_VERSION = "v1beta1"
DEFAULT_LOCATION = "global"


@dataclass
class LiveClientOptions:
    """Options passed to the client initializer."""

    vertexai: bool | None = None
    api_key: str | None = None
    project: str | None = None
    location: str | None = None
    api_version: str | None = None
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=lambda: {})
    credentials: Any = None


@dataclass(frozen=True)
class ResolvedOptions:
    """Client configuration after applying environment and precedence rules."""

    vertexai: bool
    api_key: str | None
    project: str | None
    location: str | None
    api_version: str
    base_url: str
    headers: Mapping[str, str]
    credentials: Any = None


def _env(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_bool(environ: Mapping[str, str], name: str) -> bool:
    value = _env(environ, name)
    return value is not None and value.lower() == "true"


def _env_api_key(environ: Mapping[str, str]) -> str | None:
    google_key = _env(environ, ENV_GOOGLE_API_KEY)
    gemini_key = _env(environ, ENV_GEMINI_API_KEY)
    if google_key and gemini_key:
        _LOGGER.warning(
            "Both %s and %s are set. Using %s.",
            ENV_GOOGLE_API_KEY,
            ENV_GEMINI_API_KEY,
            ENV_GOOGLE_API_KEY,
        )
    return google_key or gemini_key


def _default_base_url(vertexai: bool, location: str | None, api_key: str | None) -> str:
    if not vertexai:
        return GEMINI_API_BASE_URL
    if api_key or location in (None, DEFAULT_LOCATION):
        return VERTEX_GLOBAL_BASE_URL
    return f"https://{location}-aiplatform.googleapis.com/"


def resolve_options(
    options: LiveClientOptions, environ: Mapping[str, str] | None = None
) -> ResolvedOptions:
    """Apply environment defaults and precedence rules to client options.

    Raises:
        LiveConfigurationError: If explicit settings conflict or Vertex AI
            has neither a project nor an API key.
    """
    if environ is None:
        environ = os.environ

    if (options.project or options.location) and options.api_key:
        raise LiveConfigurationError(
            "Project/location and API key are mutually exclusive in the client initializer."
        )

    vertexai = (
        options.vertexai if options.vertexai is not None else _env_bool(environ, ENV_USE_VERTEXAI)
    )
    env_api_key = _env_api_key(environ)
    env_project = _env(environ, ENV_PROJECT)
    env_location = _env(environ, ENV_LOCATION)

    api_key = options.api_key or env_api_key
    project = options.project or env_project
    location = options.location or env_location

    # Applies whether Vertex AI was chosen explicitly or through the environment.
    if vertexai:
        if options.credentials is not None and api_key:
            _LOGGER.debug(
                "The user provided Google Cloud credentials will take precedence"
                " over the API key from the environment variable."
            )
            api_key = None
        if (env_project or env_location) and options.api_key:
            _LOGGER.debug(
                "The user provided Vertex AI API key will take precedence over"
                " the project/location from the environment variables."
            )
            project = None
            location = None
        elif (options.project or options.location) and env_api_key:
            _LOGGER.debug(
                "The user provided project/location will take precedence over"
                " the API key from the environment variables."
            )
            api_key = None
        elif (env_project or env_location) and env_api_key:
            _LOGGER.debug(
                "The project/location from the environment variables will take"
                " precedence over the API key from the environment variables."
            )
            api_key = None

        if not api_key:
            if not project:
                raise LiveConfigurationError(
                    "Project or API key must be set when using the Vertex AI API."
                )
            location = location or DEFAULT_LOCATION

    base_url = options.base_url or _env(
        environ, ENV_VERTEX_BASE_URL if vertexai else ENV_GEMINI_BASE_URL
    )
    if not base_url:
        base_url = _default_base_url(vertexai, location, api_key)

    api_version = options.api_version or (VERTEX_API_VERSION if vertexai else GEMINI_API_VERSION)

    return ResolvedOptions(
        vertexai=vertexai,
        api_key=api_key,
        project=project,
        location=location,
        api_version=api_version,
        base_url=base_url,
        headers=dict(options.headers),
        credentials=options.credentials,
    )
