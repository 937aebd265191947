"""Tests for the realtime (streaming upstream) session engine.

A fake upstream stream replaces Deepgram so relay behaviour can be driven
deterministically from the test.

Run:
    pytest tests/test_realtime_session.py -v
"""

from __future__ import annotations

import asyncio
import base64
import json

import pytest

from conftest import FakeGenerator, SentEvents
from krackai.audio.realtime import RealtimeEvent
from krackai.config import EngineSettings
from krackai.errors import ProviderAuthError, ProviderTransientError
from krackai.pipeline.manager import SessionManager
from krackai.pipeline.realtime_session import RealtimeSession


class FakeStream:
    def __init__(self, connect_error: Exception | None = None):
        self.connect_error = connect_error
        self.ready = asyncio.Event()
        self.sent: list[bytes] = []
        self.finalized = 0
        self.keepalives = 0
        self.closed = False
        self.queue: asyncio.Queue = asyncio.Queue()

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.ready.set()

    async def send_audio(self, chunk: bytes) -> None:
        if not self.ready.is_set():
            raise ProviderTransientError(detail="closed")
        self.sent.append(chunk)

    async def finalize(self) -> None:
        self.finalized += 1

    async def keep_alive(self) -> None:
        self.keepalives += 1

    async def close(self) -> None:
        self.closed = True
        self.ready.clear()
        await self.queue.put(None)

    async def events(self):
        while True:
            event = await self.queue.get()
            if event is None:
                return
            yield event


class FakeRealtime:
    name = "fake-realtime"

    def __init__(self, stream: FakeStream):
        self.stream = stream

    def open_stream(self) -> FakeStream:
        return self.stream


async def _drain() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


def _chunk(data: bytes) -> str:
    return json.dumps({"type": "audio-chunk", "audio": base64.b64encode(data).decode("ascii")})


def _manager(stream: FakeStream, generator=None, **overrides) -> SessionManager:
    return SessionManager(
        EngineSettings(session_mode="realtime", deepgram_api_key="k", **overrides),
        generator=generator or FakeGenerator(),
        realtime=FakeRealtime(stream),
    )


class TestRealtimeSession:

    @pytest.mark.asyncio
    async def test_chunks_forwarded_upstream(self):
        stream, sent = FakeStream(), SentEvents()
        async with _manager(stream).open(sent) as session:
            assert isinstance(session, RealtimeSession)
            assert session.upstream_ready
            await session.handle_text(_chunk(b"\x01\x02"))
            await session.handle_text(_chunk(b"\x03"))

        assert stream.sent == [b"\x01\x02", b"\x03"]
        assert sent.types == ["chunk-received", "chunk-received"]
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_upstream_events_are_relayed(self):
        stream, sent = FakeStream(), SentEvents()
        async with _manager(stream).open(sent):
            await stream.queue.put(RealtimeEvent("delta", "tell me"))
            await stream.queue.put(RealtimeEvent("final", "tell me about yourself"))
            await stream.queue.put(RealtimeEvent("error", "Realtime transcription failed."))
            await _drain()

        assert sent.events[0] == {"type": "transcription-delta", "text": "tell me"}
        assert sent.events[1] == {"type": "transcription", "text": "tell me about yourself"}
        assert sent.events[2]["type"] == "error"
        assert sent.events[2]["code"] == "E_REALTIME_FAILED"

    @pytest.mark.asyncio
    async def test_transcribe_finalizes_upstream(self):
        stream, sent = FakeStream(), SentEvents()
        async with _manager(stream).open(sent) as session:
            await session.handle_text('{"type": "transcribe"}')
            assert stream.finalized == 1
            assert sent.events[-1] == {"type": "info", "message": "Finalizing transcription..."}

    @pytest.mark.asyncio
    async def test_clear_acknowledged(self):
        stream, sent = FakeStream(), SentEvents()
        async with _manager(stream).open(sent) as session:
            await session.handle_text('{"type": "clear"}')
            assert sent.events[-1] == {"type": "cleared"}

    @pytest.mark.asyncio
    async def test_generate_answer_still_available(self):
        stream, sent = FakeStream(), SentEvents()
        generator = FakeGenerator("Because I ship.")
        async with _manager(stream, generator).open(sent) as session:
            await session.handle_text('{"type": "generate-answer", "transcription": "Why you?"}')
            assert sent.events[-1]["type"] == "qa-response"
            assert sent.events[-1]["answer"] == "Because I ship."

    @pytest.mark.asyncio
    async def test_connect_failure_reports_error_and_rejects_audio(self):
        stream = FakeStream(connect_error=ProviderAuthError(detail="401"))
        sent = SentEvents()
        async with _manager(stream).open(sent) as session:
            assert sent.events[0]["code"] == "E_REALTIME_FAILED"
            assert not session.upstream_ready
            await session.handle_text(_chunk(b"\x01"))
            assert sent.events[-1]["code"] == "E_REALTIME_FAILED"
        assert stream.sent == []

    @pytest.mark.asyncio
    async def test_upstream_end_stops_forwarding(self):
        stream, sent = FakeStream(), SentEvents()
        async with _manager(stream).open(sent) as session:
            await stream.queue.put(None)
            await _drain()
            assert not session.upstream_ready
            await session.handle_text(_chunk(b"\x01"))
            assert sent.events[-1]["code"] == "E_REALTIME_FAILED"

    @pytest.mark.asyncio
    async def test_disconnect_unregisters_and_closes_upstream(self):
        stream, sent = FakeStream(), SentEvents()
        manager = _manager(stream)
        async with manager.open(sent) as session:
            session_id = session.session_id
            assert manager.active_count() == 1
        assert manager.get(session_id) is None
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_keep_alive_sent_while_idle(self):
        stream, sent = FakeStream(), SentEvents()
        async with _manager(stream, realtime_keepalive_interval=0.01).open(sent):
            await asyncio.sleep(0.05)
            assert stream.keepalives >= 1
        count = stream.keepalives
        await asyncio.sleep(0.03)
        assert stream.keepalives == count
        assert sent.events == []

    @pytest.mark.asyncio
    async def test_keep_alive_disabled_with_zero_interval(self):
        stream, sent = FakeStream(), SentEvents()
        async with _manager(stream, realtime_keepalive_interval=0).open(sent):
            await asyncio.sleep(0.02)
        assert stream.keepalives == 0
