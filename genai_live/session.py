"""Live session: outbound client messages and inbound frame dispatch.

A Session owns exactly one open connection. Send methods encode a client
message for the session's backend and hand one text frame to the transport
without waiting for a reply. Inbound frames are decoded and passed to the
user's ``on_message`` callback in delivery order.

Usage:
    session = await client.live.connect(model="...", callbacks=callbacks)
    session.send_client_content(turns="Hello?")
    session.send_realtime_input(media=Blob(data=pcm, mime_type="audio/pcm"))
    session.send_tool_response(FunctionResponse(id="1", name="f", response={}))
    session.close()
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .codec import LiveCodec, codec_for
from .errors import LiveEncodingError
from .transformers import t_contents, t_function_responses
from .transport import Connection, maybe_await

if TYPE_CHECKING:
    from types import TracebackType

    from .api_client import ApiClient
    from .types import LiveServerMessage

_LOGGER = logging.getLogger(__name__)


async def payload_to_text(data: Any) -> str:
    """Materialize an inbound payload as text.

    Binary payloads are decoded as UTF-8. Stream-like payloads exposing an
    awaitable ``text()`` or ``read()`` are read to completion first.
    """
    if isinstance(data, str):
        return data
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data).decode("utf-8")
    if callable(getattr(data, "text", None)):
        return await maybe_await(data.text())
    if callable(getattr(data, "read", None)):
        raw = await maybe_await(data.read())
        return raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
    raise TypeError(f"Unsupported WebSocket payload type: {type(data).__name__}")


async def handle_websocket_message(
    codec: LiveCodec,
    on_message: Callable[[LiveServerMessage], Any],
    data: Any,
) -> None:
    """Decode one inbound frame and pass it to ``on_message``.

    Malformed JSON propagates to the caller. The first frame of every
    connection is the setup acknowledgement.
    """
    text = await payload_to_text(data)
    payload = json.loads(text)
    message = codec.server_message_from_wire(payload)
    await maybe_await(on_message(message))


class Session:
    """One active Live connection."""

    def __init__(
        self,
        conn: Connection,
        api_client: ApiClient,
        codec: LiveCodec | None = None,
    ) -> None:
        self.conn = conn
        self._api_client = api_client
        self._codec = codec or codec_for(api_client.variant)

    # -------------------------------------------------------------------------
    # Public API: Client messages
    # -------------------------------------------------------------------------

    def send_client_content(
        self,
        turns: Any = None,
        turn_complete: bool = True,
    ) -> None:
        """Send content turns, added to the model context in order.

        ``turns`` accepts a string, Part, Content, dict or a list of those.
        With ``turn_complete=True`` (default) the model starts generating;
        with False the server waits for more content. Calling with no
        arguments just marks the turn complete.

        Raises:
            LiveEncodingError: If ``turns`` cannot be converted to content.
        """
        if turns is not None:
            try:
                message = self._codec.client_content_to_wire(
                    t_contents(turns), turn_complete
                )
            except LiveEncodingError as err:
                raise LiveEncodingError(
                    f'Failed to parse client content "turns", type: '
                    f"'{type(turns).__name__}'"
                ) from err
        else:
            message = self._codec.client_content_to_wire(None, turn_complete)
        self._send(message)

    def send_realtime_input(
        self,
        media: Any = None,
        *,
        audio: Any = None,
        video: Any = None,
        text: str | None = None,
        audio_stream_end: bool | None = None,
        activity_start: dict[str, Any] | None = None,
        activity_end: dict[str, Any] | None = None,
    ) -> None:
        """Send realtime input such as audio chunks or video frames.

        Realtime input is optimized for latency: there is no ordering
        guarantee relative to other realtime input or to client content.
        The server responds based on voice activity detection.
        """
        message = self._codec.realtime_input_to_wire(
            media=media,
            audio=audio,
            video=video,
            text=text,
            audio_stream_end=audio_stream_end,
            activity_start=activity_start,
            activity_end=activity_end,
        )
        self._send(message)

    def send_tool_response(self, function_responses: Any) -> None:
        """Reply to a tool call with one or more function responses.

        On the Gemini API every response needs the ``id`` of the function
        call it answers.

        Raises:
            LiveEncodingError: If no responses are given or one is malformed.
            FunctionResponseIdError: If a Gemini API response has no id.
        """
        if function_responses is None:
            raise LiveEncodingError("Tool response parameters are required.")
        responses = t_function_responses(function_responses)
        self._send(self._codec.tool_response_to_wire(responses))

    def close(self) -> None:
        """Close the underlying connection."""
        _LOGGER.debug("Closing live session")
        self.conn.close()

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
        wait_closed = getattr(self.conn, "wait_closed", None)
        if wait_closed is not None:
            await wait_closed()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _send(self, message: dict[str, Any]) -> None:
        _LOGGER.debug("Sending %s frame", next(iter(message)))
        self.conn.send(json.dumps(message))
