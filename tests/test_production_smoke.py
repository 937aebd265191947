"""Production smoke tests — the app factory, REST routes and the WebSocket loop.

The app is built with an injected SessionManager holding fake adapters, so
the lifespan never reads provider credentials.

Run:
    pytest tests/test_production_smoke.py -v
"""

from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from conftest import SPEECH_AUDIO, FakeGenerator, FakeTranscriber
from krackai.config import EngineSettings
from krackai.errors import ConfigurationError, ProviderQuotaError, ProviderTransientError
from krackai.main import build_manager, create_app
from krackai.pipeline.manager import SessionManager


def _app(generator=None, transcriber=None):
    manager = SessionManager(
        EngineSettings(gemini_api_key="k", generate_backoff=0.0),
        generator=generator or FakeGenerator("I am a great fit."),
        transcriber=transcriber or FakeTranscriber(result="What is your biggest strength?"),
    )
    return create_app(manager), manager


# ---------------------------------------------------------------------------
# 1. Health and debug endpoints
# ---------------------------------------------------------------------------


class TestHealthEndpoint:

    @pytest.mark.asyncio
    async def test_health_returns_ok(self):
        app, _ = _app()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "mode": "buffered", "active_sessions": 0}

    def test_debug_events_lists_sessions(self):
        app, _ = _app()
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.send_text('{"type": "clear"}')
                assert ws.receive_json() == {"type": "cleared"}
            events = client.get("/debug/events", params={"limit": 500}).json()["events"]
        assert any(e["type"] == "connect" for e in events)


# ---------------------------------------------------------------------------
# 2. REST answer endpoint
# ---------------------------------------------------------------------------


class TestAnswerRoute:

    @pytest.mark.asyncio
    async def test_answer(self):
        app, _ = _app()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post(
                "/interview/answer", json={"question": " Why you? ", "resumeText": "CV"}
            )
        assert resp.status_code == 200
        assert resp.json() == {"question": "Why you?", "answer": "I am a great fit."}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome, body, status",
        [
            ("unused", {"question": ""}, 400),
            ("unused", {"question": "x" * 2001}, 400),
            (ProviderQuotaError(), {"question": "Why?"}, 429),
        ],
    )
    async def test_error_statuses(self, outcome, body, status):
        generator = FakeGenerator(outcome)
        app, _ = _app(generator=generator)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post("/interview/answer", json=body)
        assert resp.status_code == status
        assert "detail" in resp.json()

    @pytest.mark.asyncio
    async def test_transient_exhaustion_is_503(self):
        app, _ = _app(generator=FakeGenerator(ProviderTransientError()))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post("/interview/answer", json={"question": "Why?"})
        assert resp.status_code == 503
        assert resp.json()["detail"] == "The AI model is temporarily unavailable. Please try again."


# ---------------------------------------------------------------------------
# 3. WebSocket flow
# ---------------------------------------------------------------------------


class TestWebSocketFlow:

    def test_full_turn(self):
        app, _ = _app()
        audio = base64.b64encode(SPEECH_AUDIO).decode("ascii")
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.send_json({"type": "set-context", "resumeText": "Data engineer"})
                assert ws.receive_json() == {"type": "context-set"}

                ws.send_json({"type": "audio-chunk", "audio": audio})
                assert ws.receive_json() == {"type": "chunk-received"}

                assert client.get("/health").json()["active_sessions"] == 1

                ws.send_json({"type": "transcribe"})
                received = [ws.receive_json() for _ in range(5)]

        assert received == [
            {"type": "info", "message": "Transcribing audio..."},
            {"type": "transcription", "text": "What is your biggest strength?"},
            {"type": "info", "message": "Detected a question. Fetching answer..."},
            {"type": "info", "message": "Generating answer..."},
            {
                "type": "qa-response",
                "question": "What is your biggest strength?",
                "answer": "I am a great fit.",
            },
        ]

    def test_root_path_and_protocol_errors(self):
        app, _ = _app()
        with TestClient(app) as client:
            with client.websocket_connect("/") as ws:
                ws.send_text("garbage")
                error = ws.receive_json()
                assert error["type"] == "error"
                assert error["code"] == "E_PROTOCOL"
                assert error["recoverable"] is True
                assert error["session_id"].startswith("session-")

                ws.send_bytes(b"\x00\x01")
                assert ws.receive_json()["code"] == "E_PROTOCOL"

                ws.send_json({"type": "transcribe"})
                assert ws.receive_json()["code"] == "E_NO_AUDIO"


# ---------------------------------------------------------------------------
# 4. Startup wiring
# ---------------------------------------------------------------------------


class TestBuildManager:

    def test_missing_credentials_are_fatal(self):
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            build_manager(EngineSettings())

    def test_realtime_mode(self):
        manager = build_manager(
            EngineSettings(session_mode="realtime", deepgram_api_key="d", gemini_api_key="g")
        )
        assert manager.mode == "realtime"
