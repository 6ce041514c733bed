"""Client library for the bidirectional Live API."""

from ._version import __version__
from .api_client import ApiClient
from .auth import ApiKeyAuth, AuthProvider, GoogleCredentialsAuth, NoAuth
from .client import Client
from .codec import GeminiApiCodec, LiveCodec, VertexAiCodec, codec_for
from .config import LiveClientOptions, ResolvedOptions, resolve_options
from .errors import (
    FunctionResponseIdError,
    LiveClientError,
    LiveConfigurationError,
    LiveConnectionError,
    LiveEncodingError,
    LiveHandshakeError,
    LiveTimeout,
)
from .live import Live
from .session import Session
from .types import (
    BackendVariant,
    Blob,
    CallableTool,
    Content,
    FunctionCall,
    FunctionDeclaration,
    FunctionResponse,
    LiveCallbacks,
    LiveConnectConfig,
    LiveServerMessage,
    Modality,
    Part,
    Tool,
)

__all__ = [
    "ApiClient",
    "ApiKeyAuth",
    "AuthProvider",
    "BackendVariant",
    "Blob",
    "CallableTool",
    "Client",
    "Content",
    "FunctionCall",
    "FunctionDeclaration",
    "FunctionResponse",
    "FunctionResponseIdError",
    "GeminiApiCodec",
    "GoogleCredentialsAuth",
    "Live",
    "LiveCallbacks",
    "LiveClientError",
    "LiveClientOptions",
    "LiveCodec",
    "LiveConfigurationError",
    "LiveConnectConfig",
    "LiveConnectionError",
    "LiveEncodingError",
    "LiveHandshakeError",
    "LiveServerMessage",
    "LiveTimeout",
    "Modality",
    "NoAuth",
    "Part",
    "ResolvedOptions",
    "Session",
    "Tool",
    "VertexAiCodec",
    "__version__",
    "codec_for",
    "resolve_options",
]
