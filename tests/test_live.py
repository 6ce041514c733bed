"""Tests for the Live handshake."""

from __future__ import annotations

import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from genai_live.errors import LiveConfigurationError, LiveHandshakeError
from genai_live.live import Live, materialize_tool
from genai_live.session import Session
from genai_live.transport import WebsocketsFactory
from genai_live.types import (
    CallableTool,
    FunctionDeclaration,
    LiveCallbacks,
    LiveConnectConfig,
    Modality,
    Tool,
)

from .conftest import FakeWebSocketFactory, RecordingAuth, make_api_client


class WeatherTool(CallableTool):
    """Callable tool resolving to a single declaration."""

    def __init__(self) -> None:
        self.resolved = 0

    async def tool(self) -> Tool:
        self.resolved += 1
        return Tool(function_declarations=[FunctionDeclaration(name="get_weather")])

    async def call_tool(self, function_calls):
        return []


def callbacks(**overrides) -> LiveCallbacks:
    return LiveCallbacks(on_message=overrides.pop("on_message", MagicMock()), **overrides)


class TestGeminiApiHandshake:
    """Tests for the Gemini API handshake."""

    async def test_url_and_setup_frame(self, ws_factory):
        """Test the Gemini API URL and the setup frame sent after open."""
        live = Live(make_api_client(api_key="k1"), RecordingAuth(), ws_factory)

        session = await live.connect(model="gemini-2.0-flash-live-001", callbacks=callbacks())

        conn = ws_factory.last
        assert isinstance(session, Session)
        assert conn.url == (
            "wss://generativelanguage.googleapis.com/ws/google.ai.generativelanguage."
            "v1beta.GenerativeService.BidiGenerateContent?key=k1"
        )
        assert conn.connect_calls == 1
        assert conn.sent_json() == [{"setup": {"model": "models/gemini-2.0-flash-live-001"}}]

    async def test_ephemeral_token(self, ws_factory):
        """Test an ephemeral token uses the constrained endpoint."""
        live = Live(make_api_client(api_key="auth_tokens/t1"), RecordingAuth(), ws_factory)
        await live.connect(model="m", callbacks=callbacks())
        assert ws_factory.last.url.endswith(
            ".GenerativeService.BidiGenerateContentConstrained?access_token=auth_tokens/t1"
        )

    async def test_no_header_auth(self, ws_factory):
        """Test the Gemini API handshake adds no auth headers."""
        auth = RecordingAuth()
        live = Live(make_api_client(api_key="k1"), auth, ws_factory)
        await live.connect(model="m", callbacks=callbacks())
        assert auth.calls == 0
        assert "Authorization" not in ws_factory.last.headers

    async def test_no_default_modality(self, ws_factory):
        """Test the Gemini API sets no default response modality."""
        live = Live(make_api_client(api_key="k1"), RecordingAuth(), ws_factory)
        await live.connect(model="m", callbacks=callbacks())
        assert "generationConfig" not in ws_factory.last.sent_json()[0]["setup"]


class TestVertexHandshake:
    """Tests for the Vertex AI handshake."""

    async def test_model_is_fully_qualified(self, ws_factory, vertex_api_client):
        """Test a publisher model is qualified with project and location."""
        live = Live(vertex_api_client, RecordingAuth(), ws_factory)

        await live.connect(model="publishers/google/models/gemini-live", callbacks=callbacks())

        setup = ws_factory.last.sent_json()[0]["setup"]
        assert setup["model"] == "projects/p/locations/l/publishers/google/models/gemini-live"

    async def test_url_and_auth_headers(self, ws_factory, vertex_api_client):
        """Test the Vertex AI URL and bearer auth header."""
        auth = RecordingAuth()
        live = Live(vertex_api_client, auth, ws_factory)

        await live.connect(model="gemini-live", callbacks=callbacks())

        conn = ws_factory.last
        assert conn.url == (
            "wss://l-aiplatform.googleapis.com/ws/google.cloud.aiplatform."
            "v1beta1.LlmBidiService/BidiGenerateContent"
        )
        assert auth.calls == 1
        assert conn.headers["Authorization"] == "Bearer test-token"

    async def test_default_audio_modality(self, ws_factory, vertex_api_client):
        """Test Vertex AI defaults to the audio modality."""
        live = Live(vertex_api_client, RecordingAuth(), ws_factory)
        await live.connect(model="m", callbacks=callbacks())
        setup = ws_factory.last.sent_json()[0]["setup"]
        assert setup["generationConfig"]["responseModalities"] == ["AUDIO"]

    async def test_explicit_modality_kept(self, ws_factory, vertex_api_client):
        """Test an explicit modality is kept and the caller's config untouched."""
        live = Live(vertex_api_client, RecordingAuth(), ws_factory)
        config = LiveConnectConfig(response_modalities=[Modality.TEXT])
        await live.connect(model="m", callbacks=callbacks(), config=config)
        setup = ws_factory.last.sent_json()[0]["setup"]
        assert setup["generationConfig"]["responseModalities"] == ["TEXT"]
        # The caller's config is not mutated.
        assert config.response_modalities == [Modality.TEXT]

    async def test_caller_config_not_mutated_by_default(self, ws_factory, vertex_api_client):
        """Test applying the default modality does not mutate the caller's config."""
        live = Live(vertex_api_client, RecordingAuth(), ws_factory)
        config = LiveConnectConfig()
        await live.connect(model="m", callbacks=callbacks(), config=config)
        assert config.response_modalities is None

    async def test_auth_failure_rejects_handshake(self, ws_factory, vertex_api_client):
        """Test an auth failure rejects connect() before any transport is created."""
        live = Live(vertex_api_client, RecordingAuth(error=RuntimeError("no creds")), ws_factory)
        with pytest.raises(LiveHandshakeError) as exc_info:
            await live.connect(model="m", callbacks=callbacks())
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert ws_factory.connections == []


class TestConfigAndTools:
    """Tests for config resolution and tool materialization."""

    async def test_callable_tools_are_materialized(self, ws_factory, gemini_api_client):
        """Test callable tools are resolved to declarations once."""
        weather = WeatherTool()
        live = Live(gemini_api_client, RecordingAuth(), ws_factory)
        config = {"tools": [weather, {"google_search": {}}]}

        await live.connect(model="m", callbacks=callbacks(), config=config)

        assert weather.resolved == 1
        assert ws_factory.last.sent_json()[0]["setup"]["tools"] == [
            {"functionDeclarations": [{"name": "get_weather"}]},
            {"googleSearch": {}},
        ]

    async def test_materialize_static_tool_passes_through(self):
        """Test a static tool is returned unchanged."""
        tool = Tool(google_search={})
        assert await materialize_tool(tool) is tool

    async def test_unsupported_tool(self, ws_factory, gemini_api_client):
        """Test an unsupported tool fails before any transport is created."""
        live = Live(gemini_api_client, RecordingAuth(), ws_factory)
        with pytest.raises(LiveConfigurationError):
            await live.connect(model="m", callbacks=callbacks(), config={"tools": [42]})
        assert ws_factory.connections == []

    async def test_unknown_config_key(self, ws_factory, gemini_api_client):
        """Test unknown config keys are rejected."""
        live = Live(gemini_api_client, RecordingAuth(), ws_factory)
        with pytest.raises(LiveConfigurationError, match="bogus"):
            await live.connect(model="m", callbacks=callbacks(), config={"bogus": 1})

    async def test_camel_case_config_keys(self, ws_factory, vertex_api_client):
        """Test camelCase config keys are accepted."""
        live = Live(vertex_api_client, RecordingAuth(), ws_factory)
        config = {"responseModalities": ["TEXT"], "maxOutputTokens": 64}

        await live.connect(model="m", callbacks=callbacks(), config=config)

        generation = ws_factory.last.sent_json()[0]["setup"]["generationConfig"]
        assert generation == {"responseModalities": ["TEXT"], "maxOutputTokens": 64}

    async def test_generation_config_deprecation_logged(
        self, ws_factory, gemini_api_client, caplog
    ):
        """Test generation_config logs a deprecation warning and is still sent."""
        live = Live(gemini_api_client, RecordingAuth(), ws_factory)
        with caplog.at_level(logging.WARNING, logger="genai_live.live"):
            await live.connect(
                model="m",
                callbacks=callbacks(),
                config={"generation_config": {"temperature": 0.2}},
            )
        assert "deprecated" in caplog.text
        setup = ws_factory.last.sent_json()[0]["setup"]
        assert setup["generationConfig"] == {"temperature": 0.2}


class TestOpenFailures:
    """Early error/close must reject connect() instead of hanging."""

    async def test_error_before_open(self, gemini_api_client):
        """Test an error before open rejects connect() and reaches the callbacks."""
        factory = FakeWebSocketFactory(behavior="error")
        on_error = MagicMock()
        on_close = MagicMock()
        live = Live(gemini_api_client, RecordingAuth(), factory)

        with pytest.raises(LiveHandshakeError) as exc_info:
            await asyncio.wait_for(
                live.connect(
                    model="m", callbacks=callbacks(on_error=on_error, on_close=on_close)
                ),
                timeout=1,
            )

        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)
        on_error.assert_called_once()
        on_close.assert_called_once_with(1006, "abnormal")
        assert factory.last.sent == []

    async def test_close_before_open(self, gemini_api_client):
        """Test a close before open rejects connect()."""
        factory = FakeWebSocketFactory(behavior="close")
        live = Live(gemini_api_client, RecordingAuth(), factory)

        with pytest.raises(LiveHandshakeError, match="closed before open"):
            await asyncio.wait_for(live.connect(model="m", callbacks=callbacks()), timeout=1)

    async def test_caller_timeout_closes_connection(self, gemini_api_client):
        """Test a caller timeout closes the pending connection."""
        factory = FakeWebSocketFactory(behavior="hang")
        live = Live(gemini_api_client, RecordingAuth(), factory)

        with pytest.raises(TimeoutError):
            await asyncio.wait_for(live.connect(model="m", callbacks=callbacks()), timeout=0.05)

        assert factory.last.close_calls == 1

    async def test_unexpected_transport_open_error_rejects_connect(self, gemini_api_client):
        """Test connect() fails fast when the WebSocket library raises an unmapped error."""
        live = Live(gemini_api_client, RecordingAuth(), WebsocketsFactory())

        with patch(
            "genai_live.transport.ws.websockets.connect",
            new=AsyncMock(side_effect=ValueError("Invalid IPv6 URL")),
        ):
            with pytest.raises(LiveHandshakeError) as exc_info:
                await asyncio.wait_for(
                    live.connect(model="m", callbacks=callbacks()), timeout=1
                )

        assert isinstance(exc_info.value.__cause__, ValueError)


class TestCallbacks:
    """Tests for callback wiring after open."""

    async def test_on_open_called(self, ws_factory, gemini_api_client):
        """Test the user's on_open callback is awaited."""
        on_open = AsyncMock()
        live = Live(gemini_api_client, RecordingAuth(), ws_factory)
        await live.connect(model="m", callbacks=callbacks(on_open=on_open))
        on_open.assert_awaited_once()

    async def test_setup_is_first_frame(self, ws_factory, vertex_api_client):
        """Test the setup frame precedes any client message."""
        live = Live(vertex_api_client, RecordingAuth(), ws_factory)
        session = await live.connect(model="m", callbacks=callbacks())
        session.send_client_content(turns="hi")
        frames = ws_factory.last.sent_json()
        assert list(frames[0]) == ["setup"]
        assert list(frames[1]) == ["clientContent"]

    async def test_messages_dispatched_in_order(self, ws_factory, gemini_api_client):
        """Test inbound frames reach on_message decoded and in order."""
        received = []
        live = Live(gemini_api_client, RecordingAuth(), ws_factory)
        await live.connect(
            model="m", callbacks=callbacks(on_message=received.append)
        )
        conn = ws_factory.last

        await conn.deliver('{"setupComplete": {}}')
        await conn.deliver(json.dumps({"serverContent": {"modelTurn": {"parts": [{"text": "A"}]}}}).encode())
        await conn.deliver('{"serverContent": {"modelTurn": {"parts": [{"text": "B"}]}}}')
        await conn.deliver('{"serverContent": {"turnComplete": true}}')

        assert received[0].setup_complete is not None
        assert [message.text for message in received[1:3]] == ["A", "B"]
        assert received[3].server_content.turn_complete is True

    async def test_transport_errors_forwarded_after_open(self, ws_factory, gemini_api_client):
        """Test transport errors after open are forwarded unchanged."""
        on_error = MagicMock()
        on_close = MagicMock()
        live = Live(gemini_api_client, RecordingAuth(), ws_factory)
        await live.connect(
            model="m", callbacks=callbacks(on_error=on_error, on_close=on_close)
        )
        conn = ws_factory.last
        err = OSError("reset")

        await conn.callbacks.on_error(err)
        await conn.callbacks.on_close(1011, "internal")

        on_error.assert_called_once_with(err)
        on_close.assert_called_once_with(1011, "internal")
