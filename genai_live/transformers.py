"""Normalization of loosely typed user input into domain types."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from .errors import LiveConfigurationError, LiveEncodingError
from .types import (
    BackendVariant,
    Blob,
    CallableTool,
    Content,
    FunctionCall,
    FunctionDeclaration,
    FunctionResponse,
    Part,
    Tool,
)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(key: str) -> str:
    """Convert a camelCase key to snake_case; snake_case keys pass through."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _snake_keys(value: Mapping[str, Any]) -> dict[str, Any]:
    return {snake_case(key): item for key, item in value.items()}


# -----------------------------------------------------------------------------
# Models
# -----------------------------------------------------------------------------


def t_model(variant: BackendVariant, model: str) -> str:
    """Expand a model name into the resource name the backend expects."""
    if not model:
        raise LiveEncodingError("model is required.")

    if variant is BackendVariant.VERTEX_AI:
        if model.startswith(("publishers/", "projects/", "models/")):
            return model
        if "/" in model:
            publisher, name = model.split("/", 1)
            return f"publishers/{publisher}/models/{name}"
        return f"publishers/google/models/{model}"

    if model.startswith(("models/", "tunedModels/")):
        return model
    return f"models/{model}"


# -----------------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------------


def t_blob(value: Any) -> Blob:
    """Normalize a Blob or blob-shaped mapping."""
    if isinstance(value, Blob):
        return value
    if isinstance(value, Mapping) and "data" in value:
        data = _snake_keys(value)
        return Blob(
            data=data.get("data"),
            mime_type=data.get("mime_type"),
            display_name=data.get("display_name"),
        )
    raise LiveEncodingError(f"Could not parse blob, type '{type(value).__name__}'.")


def _function_call(value: Any) -> FunctionCall:
    if isinstance(value, FunctionCall):
        return value
    if isinstance(value, Mapping):
        data = _snake_keys(value)
        return FunctionCall(name=data.get("name"), args=data.get("args"), id=data.get("id"))
    raise LiveEncodingError(
        f"Could not parse function call, type '{type(value).__name__}'."
    )


def t_function_response(value: Any) -> FunctionResponse:
    """Normalize one function response.

    Mappings must carry at least ``name`` and ``response``.
    """
    if isinstance(value, FunctionResponse):
        return value
    if isinstance(value, Mapping) and "name" in value and "response" in value:
        return FunctionResponse(
            name=value["name"], response=value["response"], id=value.get("id")
        )
    raise LiveEncodingError(
        f"Could not parse function response, type '{type(value).__name__}'."
    )


def t_function_responses(value: Any) -> list[FunctionResponse]:
    """Normalize a single response or a sequence of responses into a list."""
    if value is None:
        raise LiveEncodingError("functionResponses is required.")
    if isinstance(value, (FunctionResponse, Mapping)):
        items: Sequence[Any] = [value]
    elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        items = value
    else:
        raise LiveEncodingError(
            f"Could not parse function response, type '{type(value).__name__}'."
        )
    if not items:
        raise LiveEncodingError("functionResponses is required.")
    return [t_function_response(item) for item in items]


def t_part(value: Any) -> Part:
    """Normalize a string, Part or part-shaped mapping."""
    if isinstance(value, Part):
        return value
    if isinstance(value, str):
        return Part(text=value)
    if isinstance(value, Mapping):
        data = _snake_keys(value)
        unknown = set(data) - {
            "text",
            "inline_data",
            "function_call",
            "function_response",
            "file_data",
            "video_metadata",
            "thought",
        }
        if unknown:
            raise LiveEncodingError(f"Unknown part fields: {', '.join(sorted(unknown))}")
        return Part(
            text=data.get("text"),
            inline_data=t_blob(data["inline_data"]) if data.get("inline_data") else None,
            function_call=(
                _function_call(data["function_call"]) if data.get("function_call") else None
            ),
            function_response=(
                t_function_response(data["function_response"])
                if data.get("function_response")
                else None
            ),
            file_data=data.get("file_data"),
            video_metadata=data.get("video_metadata"),
            thought=data.get("thought"),
        )
    raise LiveEncodingError(f"Could not parse part, type '{type(value).__name__}'.")


def _is_content_mapping(value: Any) -> bool:
    return isinstance(value, Mapping) and ("parts" in value or "role" in value)


def t_content(value: Any) -> Content:
    """Normalize a single content value.

    Strings and parts become a user turn.
    """
    if isinstance(value, Content):
        return value
    if _is_content_mapping(value):
        parts = value.get("parts") or []
        if isinstance(parts, (str, Mapping, Part)):
            parts = [parts]
        return Content(parts=[t_part(part) for part in parts], role=value.get("role"))
    if isinstance(value, (str, Part, Mapping)):
        return Content(parts=[t_part(value)], role="user")
    raise LiveEncodingError(f"Could not parse content, type '{type(value).__name__}'.")


def _role_for(part: Part) -> str:
    return "model" if part.function_call is not None else "user"


def t_contents(value: Any) -> list[Content]:
    """Normalize a content value or list of content values.

    Consecutive loose parts are grouped into one turn: user for text and
    media, model for function calls.
    """
    if value is None:
        raise LiveEncodingError("contents are required.")
    if not isinstance(value, list):
        return [t_content(value)]
    if not value:
        raise LiveEncodingError("contents are required.")

    result: list[Content] = []
    pending: list[Part] = []

    def flush() -> None:
        if pending:
            result.append(Content(parts=list(pending), role=_role_for(pending[0])))
            pending.clear()

    for item in value:
        if isinstance(item, Content) or _is_content_mapping(item):
            flush()
            result.append(t_content(item))
            continue
        part = t_part(item)
        if pending and _role_for(pending[0]) != _role_for(part):
            flush()
        pending.append(part)
    flush()
    return result


# -----------------------------------------------------------------------------
# Tools
# -----------------------------------------------------------------------------


def _function_declaration(value: Any) -> FunctionDeclaration:
    if isinstance(value, FunctionDeclaration):
        return value
    if isinstance(value, Mapping) and "name" in value:
        return FunctionDeclaration(
            name=value["name"],
            description=value.get("description"),
            parameters=value.get("parameters"),
        )
    raise LiveConfigurationError(
        f"Could not parse function declaration, type '{type(value).__name__}'."
    )


def t_tool(value: Any) -> Tool:
    """Normalize a static tool or tool-shaped mapping.

    Callable tools must be materialized before reaching this point.
    """
    if isinstance(value, Tool):
        return value
    if isinstance(value, CallableTool):
        raise LiveConfigurationError("Callable tools must be resolved before encoding.")
    if isinstance(value, Mapping):
        data = _snake_keys(value)
        declarations = data.get("function_declarations")
        return Tool(
            function_declarations=(
                [_function_declaration(item) for item in declarations]
                if declarations is not None
                else None
            ),
            google_search=data.get("google_search"),
            code_execution=data.get("code_execution"),
            retrieval=data.get("retrieval"),
        )
    raise LiveConfigurationError(f"Unsupported tool type '{type(value).__name__}'.")
