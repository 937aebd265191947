"""Realtime session — proxy each client to its own upstream streaming STT.

Audio chunks are forwarded as soon as they arrive; a background relay task
turns upstream interim results into ``transcription-delta`` events and final
results into ``transcription`` events. The upstream is opened when the
session starts and closed when either side goes away.
"""

from __future__ import annotations

import asyncio
import logging

from krackai.answer.generators import AnswerGenerator
from krackai.audio.realtime import DeepgramRealtimeStream, DeepgramRealtimeTranscriber
from krackai.config import EngineSettings
from krackai.errors import LimitExceeded, ProviderError, RealtimeError
from krackai.pipeline import protocol
from krackai.pipeline.answer_phase import Sleep
from krackai.pipeline.session import BaseSession, decode_chunk
from krackai.pipeline.session_context import SessionContext
from krackai.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer()


class RealtimeSession(BaseSession):
    mode = "realtime"

    def __init__(
        self,
        ctx: SessionContext,
        *,
        realtime: DeepgramRealtimeTranscriber,
        generator: AnswerGenerator,
        settings: EngineSettings,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(ctx, generator=generator, settings=settings, sleep=sleep)
        self._realtime = realtime
        self._stream: DeepgramRealtimeStream | None = None
        self._relay_task: asyncio.Task | None = None
        self._keepalive_task: asyncio.Task | None = None

    @property
    def upstream_ready(self) -> bool:
        return self._stream is not None and self._stream.ready.is_set()

    async def __aenter__(self) -> "RealtimeSession":
        stream = self._realtime.open_stream()
        try:
            await stream.connect()
        except ProviderError as exc:
            logger.error("[Realtime %s] Upstream connect failed: %s", self.session_id, exc.detail)
            await self.ctx.emit_error(RealtimeError("Realtime transcription is unavailable."))
            return self
        self._stream = stream
        self._relay_task = asyncio.create_task(self._relay(stream))
        if self._settings.realtime_keepalive_interval > 0:
            self._keepalive_task = asyncio.create_task(self._keep_alive(stream))
        return self

    async def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            await stream.close()
        for task in (self._keepalive_task, self._relay_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._keepalive_task = self._relay_task = None
        await super().close()

    # ------------------------------------------------------------------
    # Upstream relay
    # ------------------------------------------------------------------

    async def _relay(self, stream: DeepgramRealtimeStream) -> None:
        with tracer.start_as_current_span("krackai.realtime", attributes={"session.id": self.session_id}):
            try:
                async for event in stream.events():
                    if event.kind == "delta":
                        await self.ctx.emit(protocol.transcription_delta(event.text))
                    elif event.kind == "final":
                        await self.ctx.emit(protocol.transcription(event.text))
                    else:
                        await self.ctx.emit_error(RealtimeError(event.text or None))
            except Exception as exc:
                logger.error("[Realtime %s] Relay failed: %s", self.session_id, exc, exc_info=True)
                await self.ctx.emit_error(RealtimeError("Realtime transcription connection lost."))

        # Upstream ended on its own; further audio has nowhere to go.
        if self._stream is stream:
            self._stream = None
            logger.info("[Realtime %s] Upstream ended.", self.session_id)

    async def _keep_alive(self, stream: DeepgramRealtimeStream) -> None:
        interval = self._settings.realtime_keepalive_interval
        while True:
            await asyncio.sleep(interval)
            if self._stream is not stream:
                return
            try:
                await stream.keep_alive()
            except ProviderError as exc:
                logger.warning("[Realtime %s] Keep-alive failed: %s", self.session_id, exc.detail)
                return

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _require_stream(self) -> DeepgramRealtimeStream:
        if self._stream is None or not self._stream.ready.is_set():
            raise RealtimeError("Realtime transcription is unavailable.", detail="no upstream")
        return self._stream

    async def on_audio_chunk(self, message: protocol.AudioChunkMessage) -> None:
        chunk = decode_chunk(message.audio)
        if len(chunk) > self._settings.max_audio_bytes:
            raise LimitExceeded("Audio chunk is too large.", detail=f"{len(chunk)} bytes")
        stream = self._require_stream()
        try:
            await stream.send_audio(chunk)
        except ProviderError as exc:
            raise RealtimeError("Realtime transcription connection lost.", detail=exc.detail) from exc
        self.ctx.metrics["chunk_count"] += 1
        await self.ctx.emit(protocol.chunk_received())

    async def on_transcribe(self, message: protocol.TranscribeMessage) -> None:
        stream = self._require_stream()
        try:
            await stream.finalize()
        except ProviderError as exc:
            raise RealtimeError("Realtime transcription connection lost.", detail=exc.detail) from exc
        await self.ctx.emit(protocol.info("Finalizing transcription..."))

    async def on_clear(self, message: protocol.ClearMessage) -> None:
        self.ctx.buffer.clear()
        await self.ctx.emit(protocol.cleared())
