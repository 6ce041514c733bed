"""Wire codec for Live API frames.

Each backend variant gets one strategy object that owns every place the two
services differ: URL scheme, auth placement, field support, response
modality default and the function response id policy. Everything else is
shared in LiveCodec.
"""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from .errors import FunctionResponseIdError, LiveEncodingError
from .transformers import t_blob, t_content, t_tool
from .types import (
    BackendVariant,
    Blob,
    Content,
    FunctionCall,
    FunctionResponse,
    LiveConnectConfig,
    LiveServerContent,
    LiveServerGoAway,
    LiveServerMessage,
    LiveServerSessionResumptionUpdate,
    LiveServerSetupComplete,
    LiveServerToolCall,
    LiveServerToolCallCancellation,
    Modality,
    Part,
    Tool,
    Transcription,
    UsageMetadata,
)

_LOGGER = logging.getLogger(__name__)

EPHEMERAL_TOKEN_PREFIX = "auth_tokens/"

# (config attribute, generationConfig key)
_GENERATION_FIELDS: tuple[tuple[str, str], ...] = (
    ("temperature", "temperature"),
    ("top_p", "topP"),
    ("top_k", "topK"),
    ("max_output_tokens", "maxOutputTokens"),
    ("seed", "seed"),
    ("media_resolution", "mediaResolution"),
)

# (config attribute, setup key); values are passed through with camelCase keys
_SETUP_FIELDS: tuple[tuple[str, str], ...] = (
    ("realtime_input_config", "realtimeInputConfig"),
    ("session_resumption", "sessionResumption"),
    ("context_window_compression", "contextWindowCompression"),
    ("input_audio_transcription", "inputAudioTranscription"),
    ("output_audio_transcription", "outputAudioTranscription"),
)


def camel_case(key: str) -> str:
    """Convert a snake_case key to camelCase; camelCase keys pass through."""
    head, *rest = key.split("_")
    return head + "".join(word[:1].upper() + word[1:] for word in rest)


def camelize(value: Any) -> Any:
    """Recursively camelCase mapping keys."""
    if isinstance(value, Mapping):
        return {camel_case(key): camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value


def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _modality_value(modality: Modality | str) -> str:
    if isinstance(modality, Modality):
        return modality.value
    return str(modality).upper()


class LiveCodec(ABC):
    """Translate between domain types and one backend's wire JSON."""

    variant: BackendVariant
    default_response_modalities: tuple[Modality, ...] | None = None
    requires_function_response_id: bool = False
    uses_header_auth: bool = False

    # -------------------------------------------------------------------------
    # Handshake
    # -------------------------------------------------------------------------

    @abstractmethod
    def build_url(self, ws_base_url: str, api_version: str, api_key: str | None) -> str:
        """Return the WebSocket URL for a BidiGenerateContent session."""

    def setup_to_wire(self, model: str, config: LiveConnectConfig) -> dict[str, Any]:
        """Build the ``{"setup": ...}`` frame sent right after open."""
        setup: dict[str, Any] = {"model": model}

        generation: dict[str, Any] = {}
        if config.generation_config is not None:
            generation.update(camelize(config.generation_config))
        if config.response_modalities is not None:
            generation["responseModalities"] = [
                _modality_value(item) for item in config.response_modalities
            ]
        for attr, key in _GENERATION_FIELDS:
            value = getattr(config, attr)
            if value is not None:
                generation[key] = value
        if config.speech_config is not None:
            generation["speechConfig"] = self._speech_config_to_wire(config.speech_config)
        if generation:
            setup["generationConfig"] = generation

        if config.system_instruction is not None:
            setup["systemInstruction"] = self.content_to_wire(
                t_content(config.system_instruction)
            )
        if config.tools:
            setup["tools"] = [self.tool_to_wire(t_tool(tool)) for tool in config.tools]

        for attr, key in _SETUP_FIELDS:
            value = getattr(config, attr)
            if value is not None:
                setup[key] = camelize(value)

        return {"setup": setup}

    @staticmethod
    def _speech_config_to_wire(speech_config: dict[str, Any] | str) -> dict[str, Any]:
        if isinstance(speech_config, str):
            return {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": speech_config}}}
        return camelize(speech_config)

    def tool_to_wire(self, tool: Tool) -> dict[str, Any]:
        wire: dict[str, Any] = {}
        if tool.function_declarations is not None:
            wire["functionDeclarations"] = [
                _drop_none(
                    {
                        "name": declaration.name,
                        "description": declaration.description,
                        "parameters": declaration.parameters,
                    }
                )
                for declaration in tool.function_declarations
            ]
        if tool.google_search is not None:
            wire["googleSearch"] = camelize(tool.google_search)
        if tool.code_execution is not None:
            wire["codeExecution"] = camelize(tool.code_execution)
        if tool.retrieval is not None:
            wire["retrieval"] = camelize(tool.retrieval)
        return wire

    # -------------------------------------------------------------------------
    # Client messages
    # -------------------------------------------------------------------------

    def blob_to_wire(self, blob: Blob) -> dict[str, Any]:
        data = blob.data
        if isinstance(data, (bytes, bytearray, memoryview)):
            data = base64.b64encode(bytes(data)).decode("ascii")
        return _drop_none(
            {"data": data, "mimeType": blob.mime_type, "displayName": blob.display_name}
        )

    def part_to_wire(self, part: Part) -> dict[str, Any]:
        wire: dict[str, Any] = {}
        if part.text is not None:
            wire["text"] = part.text
        if part.inline_data is not None:
            wire["inlineData"] = self.blob_to_wire(part.inline_data)
        if part.function_call is not None:
            wire["functionCall"] = _drop_none(
                {
                    "id": part.function_call.id,
                    "name": part.function_call.name,
                    "args": part.function_call.args,
                }
            )
        if part.function_response is not None:
            wire["functionResponse"] = self.function_response_to_wire(
                part.function_response
            )
        if part.file_data is not None:
            wire["fileData"] = camelize(part.file_data)
        if part.video_metadata is not None:
            wire["videoMetadata"] = camelize(part.video_metadata)
        if part.thought is not None:
            wire["thought"] = part.thought
        return wire

    def content_to_wire(self, content: Content) -> dict[str, Any]:
        wire: dict[str, Any] = {"parts": [self.part_to_wire(part) for part in content.parts]}
        if content.role is not None:
            wire["role"] = content.role
        return wire

    def function_response_to_wire(self, response: FunctionResponse) -> dict[str, Any]:
        return _drop_none(
            {"id": response.id, "name": response.name, "response": response.response}
        )

    def tool_response_to_wire(self, responses: list[FunctionResponse]) -> dict[str, Any]:
        """Build ``{"toolResponse": ...}``, enforcing the id policy."""
        if self.requires_function_response_id:
            for response in responses:
                if response.id is None:
                    raise FunctionResponseIdError()
        return {
            "toolResponse": {
                "functionResponses": [
                    self.function_response_to_wire(response) for response in responses
                ]
            }
        }

    def client_content_to_wire(
        self, turns: list[Content] | None, turn_complete: bool
    ) -> dict[str, Any]:
        if turns is None:
            return {"clientContent": {"turnComplete": turn_complete}}
        return {
            "clientContent": {
                "turns": [self.content_to_wire(turn) for turn in turns],
                "turnComplete": turn_complete,
            }
        }

    def realtime_input_to_wire(
        self,
        *,
        media: Any = None,
        audio: Any = None,
        video: Any = None,
        text: str | None = None,
        audio_stream_end: bool | None = None,
        activity_start: dict[str, Any] | None = None,
        activity_end: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build ``{"realtimeInput": ...}`` from whichever inputs are set."""
        wire: dict[str, Any] = {}
        if media is not None:
            wire["mediaChunks"] = [self.blob_to_wire(t_blob(media))]
        if audio is not None:
            wire["audio"] = self.blob_to_wire(t_blob(audio))
        if video is not None:
            wire["video"] = self.blob_to_wire(t_blob(video))
        if text is not None:
            wire["text"] = text
        if audio_stream_end is not None:
            wire["audioStreamEnd"] = audio_stream_end
        if activity_start is not None:
            wire["activityStart"] = camelize(activity_start)
        if activity_end is not None:
            wire["activityEnd"] = camelize(activity_end)
        if not wire:
            raise LiveEncodingError("realtimeInput requires at least one input field.")
        return {"realtimeInput": wire}

    # -------------------------------------------------------------------------
    # Server messages
    # -------------------------------------------------------------------------

    def server_message_from_wire(self, payload: Mapping[str, Any]) -> LiveServerMessage:
        """Decode one parsed server frame. Unknown keys are ignored."""
        message = LiveServerMessage()
        if "setupComplete" in payload:
            setup = payload.get("setupComplete") or {}
            message.setup_complete = LiveServerSetupComplete(
                session_id=setup.get("sessionId")
            )
        if payload.get("serverContent") is not None:
            message.server_content = self._server_content_from_wire(
                payload["serverContent"]
            )
        if payload.get("toolCall") is not None:
            message.tool_call = LiveServerToolCall(
                function_calls=[
                    self._function_call_from_wire(call)
                    for call in payload["toolCall"].get("functionCalls") or []
                ]
            )
        if payload.get("toolCallCancellation") is not None:
            message.tool_call_cancellation = LiveServerToolCallCancellation(
                ids=list(payload["toolCallCancellation"].get("ids") or [])
            )
        if payload.get("goAway") is not None:
            message.go_away = LiveServerGoAway(time_left=payload["goAway"].get("timeLeft"))
        if payload.get("sessionResumptionUpdate") is not None:
            update = payload["sessionResumptionUpdate"]
            message.session_resumption_update = LiveServerSessionResumptionUpdate(
                new_handle=update.get("newHandle"),
                resumable=update.get("resumable"),
                last_consumed_client_message_index=update.get(
                    "lastConsumedClientMessageIndex"
                ),
            )
        if payload.get("usageMetadata") is not None:
            message.usage_metadata = self._usage_from_wire(payload["usageMetadata"])
        return message

    def _server_content_from_wire(self, data: Mapping[str, Any]) -> LiveServerContent:
        return LiveServerContent(
            model_turn=(
                self._content_from_wire(data["modelTurn"])
                if data.get("modelTurn") is not None
                else None
            ),
            turn_complete=data.get("turnComplete"),
            interrupted=data.get("interrupted"),
            generation_complete=data.get("generationComplete"),
            input_transcription=self._transcription_from_wire(data.get("inputTranscription")),
            output_transcription=self._transcription_from_wire(
                data.get("outputTranscription")
            ),
            grounding_metadata=data.get("groundingMetadata"),
        )

    @staticmethod
    def _transcription_from_wire(data: Mapping[str, Any] | None) -> Transcription | None:
        if data is None:
            return None
        return Transcription(text=data.get("text"), finished=data.get("finished"))

    @staticmethod
    def _function_call_from_wire(data: Mapping[str, Any]) -> FunctionCall:
        return FunctionCall(name=data.get("name"), args=data.get("args"), id=data.get("id"))

    def _content_from_wire(self, data: Mapping[str, Any]) -> Content:
        return Content(
            parts=[self._part_from_wire(part) for part in data.get("parts") or []],
            role=data.get("role"),
        )

    def _part_from_wire(self, data: Mapping[str, Any]) -> Part:
        part = Part(
            text=data.get("text"),
            file_data=data.get("fileData"),
            video_metadata=data.get("videoMetadata"),
            thought=data.get("thought"),
        )
        inline = data.get("inlineData")
        if inline is not None:
            raw = inline.get("data")
            part.inline_data = Blob(
                data=base64.b64decode(raw) if isinstance(raw, str) else raw,
                mime_type=inline.get("mimeType"),
                display_name=inline.get("displayName"),
            )
        if data.get("functionCall") is not None:
            part.function_call = self._function_call_from_wire(data["functionCall"])
        if data.get("functionResponse") is not None:
            response = data["functionResponse"]
            part.function_response = FunctionResponse(
                name=response.get("name"),
                response=response.get("response"),
                id=response.get("id"),
            )
        return part

    def _usage_from_wire(self, data: Mapping[str, Any]) -> UsageMetadata:
        return UsageMetadata(
            prompt_token_count=data.get("promptTokenCount"),
            cached_content_token_count=data.get("cachedContentTokenCount"),
            response_token_count=data.get("responseTokenCount"),
            tool_use_prompt_token_count=data.get("toolUsePromptTokenCount"),
            thoughts_token_count=data.get("thoughtsTokenCount"),
            total_token_count=data.get("totalTokenCount"),
        )


class GeminiApiCodec(LiveCodec):
    """Codec for the Gemini Developer API (generativelanguage)."""

    variant = BackendVariant.GEMINI_API
    requires_function_response_id = True

    def build_url(self, ws_base_url: str, api_version: str, api_key: str | None) -> str:
        if not api_key:
            return ws_base_url

        method = "BidiGenerateContent"
        key_name = "key"
        if api_key.startswith(EPHEMERAL_TOKEN_PREFIX):
            _LOGGER.warning(
                "Ephemeral token support is experimental and may change in future versions"
            )
            method = "BidiGenerateContentConstrained"
            key_name = "access_token"
        return (
            f"{ws_base_url}/ws/google.ai.generativelanguage.{api_version}"
            f".GenerativeService.{method}?{key_name}={api_key}"
        )

    def blob_to_wire(self, blob: Blob) -> dict[str, Any]:
        if blob.display_name is not None:
            raise LiveEncodingError("display_name parameter is not supported in Gemini API.")
        return super().blob_to_wire(blob)

    def part_to_wire(self, part: Part) -> dict[str, Any]:
        if part.video_metadata is not None:
            raise LiveEncodingError(
                "video_metadata parameter is not supported in Gemini API."
            )
        return super().part_to_wire(part)

    def tool_to_wire(self, tool: Tool) -> dict[str, Any]:
        if tool.retrieval is not None:
            raise LiveEncodingError("retrieval parameter is not supported in Gemini API.")
        return super().tool_to_wire(tool)


class VertexAiCodec(LiveCodec):
    """Codec for Vertex AI (aiplatform LlmBidiService)."""

    variant = BackendVariant.VERTEX_AI
    default_response_modalities = (Modality.AUDIO,)
    uses_header_auth = True

    def build_url(self, ws_base_url: str, api_version: str, api_key: str | None) -> str:
        return (
            f"{ws_base_url}/ws/google.cloud.aiplatform.{api_version}"
            ".LlmBidiService/BidiGenerateContent"
        )

    def _usage_from_wire(self, data: Mapping[str, Any]) -> UsageMetadata:
        usage = super()._usage_from_wire(data)
        usage.traffic_type = data.get("trafficType")
        return usage


_CODECS: dict[BackendVariant, LiveCodec] = {
    BackendVariant.GEMINI_API: GeminiApiCodec(),
    BackendVariant.VERTEX_AI: VertexAiCodec(),
}


def codec_for(variant: BackendVariant) -> LiveCodec:
    """Return the shared codec for a backend variant."""
    return _CODECS[variant]
