"""Domain types for Live API sessions.

Outbound values (content, tools, connect config) are plain dataclasses that
callers build directly or pass as dicts. Inbound frames are decoded into
LiveServerMessage by the backend codec.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Union

from .errors import LiveConfigurationError


class BackendVariant(Enum):
    """Service backend selected once per client."""

    GEMINI_API = "gemini_api"
    VERTEX_AI = "vertex_ai"


class Modality(Enum):
    """Response modality requested from the model."""

    TEXT = "TEXT"
    IMAGE = "IMAGE"
    AUDIO = "AUDIO"


# -----------------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------------


@dataclass
class Blob:
    """Inline media payload."""

    data: bytes | str | None = None
    mime_type: str | None = None
    display_name: str | None = None


@dataclass
class FunctionCall:
    """Function call requested by the model."""

    name: str | None = None
    args: dict[str, Any] | None = None
    id: str | None = None


@dataclass
class FunctionResponse:
    """Result of a function call, returned to the model."""

    name: str | None = None
    response: dict[str, Any] | None = None
    id: str | None = None


@dataclass
class Part:
    """One piece of a Content turn."""

    text: str | None = None
    inline_data: Blob | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResponse | None = None
    file_data: dict[str, Any] | None = None
    video_metadata: dict[str, Any] | None = None
    thought: bool | None = None

    @classmethod
    def from_text(cls, text: str) -> Part:
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> Part:
        return cls(inline_data=Blob(data=data, mime_type=mime_type))


@dataclass
class Content:
    """An ordered list of parts attributed to one role."""

    parts: list[Part] = field(default_factory=lambda: [])
    role: str | None = None


# -----------------------------------------------------------------------------
# Tools
# -----------------------------------------------------------------------------


@dataclass
class FunctionDeclaration:
    """Declaration of a function the model may call.

    ``parameters`` is a JSON schema and is sent to the wire untouched.
    """

    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None


@dataclass
class Tool:
    """Static tool declaration."""

    function_declarations: list[FunctionDeclaration] | None = None
    google_search: dict[str, Any] | None = None
    code_execution: dict[str, Any] | None = None
    retrieval: dict[str, Any] | None = None


class CallableTool(ABC):
    """Tool that resolves its own declaration asynchronously.

    Callable tools are materialized into a static Tool during the handshake,
    before the setup frame is built.
    """

    @abstractmethod
    async def tool(self) -> Tool:
        """Return the static declaration for this tool."""

    @abstractmethod
    async def call_tool(self, function_calls: list[FunctionCall]) -> list[Part]:
        """Execute the given function calls and return response parts."""


ToolUnion = Union[Tool, CallableTool, dict[str, Any]]
ContentUnion = Union[Content, Part, str, dict[str, Any]]


# -----------------------------------------------------------------------------
# Connect configuration
# -----------------------------------------------------------------------------


@dataclass
class LiveConnectConfig:
    """Session configuration sent in the setup frame."""

    generation_config: dict[str, Any] | None = None
    response_modalities: list[Modality | str] | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: float | None = None
    max_output_tokens: int | None = None
    seed: int | None = None
    media_resolution: str | None = None
    speech_config: dict[str, Any] | str | None = None
    system_instruction: ContentUnion | None = None
    tools: list[ToolUnion] | None = None
    realtime_input_config: dict[str, Any] | None = None
    session_resumption: dict[str, Any] | None = None
    context_window_compression: dict[str, Any] | None = None
    input_audio_transcription: dict[str, Any] | None = None
    output_audio_transcription: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LiveConnectConfig:
        """Build a config from a dict with snake_case keys, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise LiveConfigurationError(
                f"Unknown LiveConnectConfig fields: {', '.join(unknown)}"
            )
        return cls(**data)


MessageCallback = Callable[["LiveServerMessage"], Awaitable[None] | None]


@dataclass
class LiveCallbacks:
    """User callbacks for a Live session.

    Every callback may be a plain function or a coroutine function.
    """

    on_message: MessageCallback
    on_open: Callable[[], Awaitable[None] | None] | None = None
    on_error: Callable[[BaseException], Awaitable[None] | None] | None = None
    on_close: Callable[[int | None, str | None], Awaitable[None] | None] | None = None


# -----------------------------------------------------------------------------
# Server messages
# -----------------------------------------------------------------------------


@dataclass
class LiveServerSetupComplete:
    """Acknowledgement of the setup frame; always the first server frame."""

    session_id: str | None = None


@dataclass
class Transcription:
    """Audio transcription chunk."""

    text: str | None = None
    finished: bool | None = None


@dataclass
class LiveServerContent:
    """Incremental model output."""

    model_turn: Content | None = None
    turn_complete: bool | None = None
    interrupted: bool | None = None
    generation_complete: bool | None = None
    input_transcription: Transcription | None = None
    output_transcription: Transcription | None = None
    grounding_metadata: dict[str, Any] | None = None


@dataclass
class LiveServerToolCall:
    """Request from the model to run one or more functions."""

    function_calls: list[FunctionCall] = field(default_factory=lambda: [])


@dataclass
class LiveServerToolCallCancellation:
    """Previously issued tool calls that should be abandoned."""

    ids: list[str] = field(default_factory=lambda: [])


@dataclass
class LiveServerGoAway:
    """Notice that the server will terminate the connection soon."""

    time_left: str | None = None


@dataclass
class LiveServerSessionResumptionUpdate:
    """Session resumption state."""

    new_handle: str | None = None
    resumable: bool | None = None
    last_consumed_client_message_index: int | None = None


@dataclass
class UsageMetadata:
    """Token accounting for the session so far."""

    prompt_token_count: int | None = None
    cached_content_token_count: int | None = None
    response_token_count: int | None = None
    tool_use_prompt_token_count: int | None = None
    thoughts_token_count: int | None = None
    total_token_count: int | None = None
    traffic_type: str | None = None


@dataclass
class LiveServerMessage:
    """Decoded inbound frame. Exactly one payload field is normally set."""

    setup_complete: LiveServerSetupComplete | None = None
    server_content: LiveServerContent | None = None
    tool_call: LiveServerToolCall | None = None
    tool_call_cancellation: LiveServerToolCallCancellation | None = None
    go_away: LiveServerGoAway | None = None
    session_resumption_update: LiveServerSessionResumptionUpdate | None = None
    usage_metadata: UsageMetadata | None = None

    def _model_parts(self) -> list[Part]:
        if self.server_content is None or self.server_content.model_turn is None:
            return []
        return self.server_content.model_turn.parts

    @property
    def text(self) -> str | None:
        """Concatenated text parts of the model turn, if any."""
        texts = [
            part.text
            for part in self._model_parts()
            if part.text is not None and not part.thought
        ]
        return "".join(texts) if texts else None

    @property
    def data(self) -> bytes | None:
        """Concatenated inline data of the model turn, if any."""
        chunks = [
            part.inline_data.data
            for part in self._model_parts()
            if part.inline_data is not None and isinstance(part.inline_data.data, bytes)
        ]
        return b"".join(chunks) if chunks else None
