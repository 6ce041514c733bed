"""Client error types for Live API sessions."""

from __future__ import annotations

FUNCTION_RESPONSE_REQUIRES_ID = (
    "FunctionResponse request must have an `id` field from the response of a "
    "ToolCall.FunctionalCalls in Google AI."
)


class LiveClientError(Exception):
    """Base error for Live API client failures."""


class LiveConfigurationError(LiveClientError):
    """Client options are invalid or contradictory."""


class LiveHandshakeError(LiveClientError):
    """Opening the session failed before the setup frame was sent."""


class LiveTimeout(LiveHandshakeError):
    """Timeout while opening the WebSocket connection."""


class LiveConnectionError(LiveClientError):
    """Network connection to the Live endpoint failed."""


class LiveEncodingError(LiveClientError, ValueError):
    """An outbound message could not be encoded for the wire."""


class FunctionResponseIdError(LiveEncodingError):
    """A function response is missing the id required by the Gemini API."""

    def __init__(self, message: str = FUNCTION_RESPONSE_REQUIRES_ID) -> None:
        super().__init__(message)
