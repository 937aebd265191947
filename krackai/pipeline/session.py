"""Session protocol engines.

One session object per WebSocket connection. ``handle_text`` processes a
single inbound frame to completion before the caller reads the next one, so
messages from one connection never overlap. Every error is caught here and
turned into an ``error`` event; nothing propagates to the connection.

``BufferedSession`` implements buffer-then-transcribe turns. The realtime
alternative lives in ``realtime_session.py``; a deployment uses one or the
other, never both.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging

from krackai.answer.generators import AnswerGenerator
from krackai.answer.prompts import looks_like_question
from krackai.audio.stt import Transcriber
from krackai.config import EngineSettings
from krackai.errors import EngineError, LimitExceeded, ProtocolError
from krackai.pipeline import protocol
from krackai.pipeline.answer_phase import Sleep, run_answer
from krackai.pipeline.session_context import SessionContext
from krackai.pipeline.stt_phase import run_stt

logger = logging.getLogger(__name__)


def decode_chunk(audio_b64: str) -> bytes:
    """Decode one base64 audio chunk, accepting an optional ``data:`` URL prefix."""
    if audio_b64.startswith("data:") and "," in audio_b64:
        audio_b64 = audio_b64.split(",", 1)[1]
    try:
        data = base64.b64decode(audio_b64, validate=True)
    except (binascii.Error, ValueError):
        raise ProtocolError("Audio chunk is not valid base64.", detail="bad base64") from None
    if not data:
        raise ProtocolError("Audio chunk is empty.", detail="zero-length chunk")
    return data


class BaseSession:
    """Shared dispatch, context handling and answer generation."""

    mode = "base"

    def __init__(
        self,
        ctx: SessionContext,
        *,
        generator: AnswerGenerator,
        settings: EngineSettings,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.ctx = ctx
        self._generator = generator
        self._settings = settings
        self._sleep = sleep

    @property
    def session_id(self) -> str:
        return self.ctx.session_id

    async def __aenter__(self) -> "BaseSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        self.ctx.release()

    # ------------------------------------------------------------------
    # Message boundary
    # ------------------------------------------------------------------

    async def handle_text(self, raw: str) -> None:
        """Process one inbound text frame to completion."""
        if self.ctx.closed:
            return
        try:
            message = protocol.parse_inbound(raw)
            await self._dispatch(message)
        except EngineError as exc:
            logger.info(
                "[Session %s] %s: %s", self.session_id, exc.code.value, exc.detail or exc.message
            )
            await self.ctx.emit_error(exc)
        except Exception as exc:
            logger.error("[Session %s] Unhandled error: %s", self.session_id, exc, exc_info=True)
            await self.ctx.emit_error(EngineError(detail=type(exc).__name__))

    async def reject_binary(self) -> None:
        """Binary frames are not part of the protocol; audio travels base64 in JSON."""
        await self.ctx.emit_error(
            ProtocolError("Binary frames are not supported; send JSON messages.", detail="binary frame")
        )

    async def _dispatch(self, message: protocol.InboundMessage) -> None:
        if isinstance(message, protocol.AudioChunkMessage):
            await self.on_audio_chunk(message)
        elif isinstance(message, protocol.TranscribeMessage):
            await self.on_transcribe(message)
        elif isinstance(message, protocol.GenerateAnswerMessage):
            await self.on_generate_answer(message)
        elif isinstance(message, protocol.ClearMessage):
            await self.on_clear(message)
        elif isinstance(message, protocol.SetContextMessage):
            await self.on_set_context(message)

    # ------------------------------------------------------------------
    # Handlers shared by both modes
    # ------------------------------------------------------------------

    async def on_generate_answer(self, message: protocol.GenerateAnswerMessage) -> None:
        await run_answer(
            self.ctx, message.transcription, self._generator, self._settings, sleep=self._sleep
        )

    async def on_set_context(self, message: protocol.SetContextMessage) -> None:
        text = message.combined()
        if len(text) > self._settings.max_context_chars:
            raise LimitExceeded(
                f"Context is too long (max {self._settings.max_context_chars} characters).",
                detail=f"{len(text)} chars",
            )
        self.ctx.context_text = text or None
        logger.info("[Session %s] Context set (%d chars).", self.session_id, len(text))
        await self.ctx.emit(protocol.context_set())

    async def on_audio_chunk(self, message: protocol.AudioChunkMessage) -> None:
        raise NotImplementedError

    async def on_transcribe(self, message: protocol.TranscribeMessage) -> None:
        raise NotImplementedError

    async def on_clear(self, message: protocol.ClearMessage) -> None:
        raise NotImplementedError


class BufferedSession(BaseSession):
    """Buffer audio chunks, then transcribe and answer on request."""

    mode = "buffered"

    def __init__(
        self,
        ctx: SessionContext,
        *,
        transcriber: Transcriber,
        generator: AnswerGenerator,
        settings: EngineSettings,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(ctx, generator=generator, settings=settings, sleep=sleep)
        self._transcriber = transcriber

    async def on_audio_chunk(self, message: protocol.AudioChunkMessage) -> None:
        chunk = decode_chunk(message.audio)
        self.ctx.buffer.append(chunk)
        self.ctx.metrics["chunk_count"] += 1
        await self.ctx.emit(protocol.chunk_received())

    async def on_transcribe(self, message: protocol.TranscribeMessage) -> None:
        transcript = await run_stt(self.ctx, self._transcriber, self._settings)
        if not transcript or not message.auto_answer or not self._settings.auto_answer_questions:
            return

        if not looks_like_question(transcript):
            await self.ctx.emit(protocol.info("No question detected in the transcription."))
            return

        await self.ctx.emit(protocol.info("Detected a question. Fetching answer..."))
        await run_answer(
            self.ctx,
            transcript[: self._settings.max_question_chars],
            self._generator,
            self._settings,
            sleep=self._sleep,
        )

    async def on_clear(self, message: protocol.ClearMessage) -> None:
        self.ctx.buffer.clear()
        await self.ctx.emit(protocol.cleared())
