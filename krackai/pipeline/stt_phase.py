"""STT phase — transcribe the session's buffered audio."""

from __future__ import annotations

import asyncio
import logging

from krackai.audio.silence import is_probably_silent
from krackai.audio.stt import Transcriber
from krackai.config import EngineSettings
from krackai.errors import NoAudioError, ProviderError, TranscriptionError
from krackai.pipeline import protocol
from krackai.pipeline.session_context import SessionContext
from krackai.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer()


async def run_stt(ctx: SessionContext, transcriber: Transcriber, settings: EngineSettings) -> str:
    """Transcribe and flush the buffer, emitting ``info`` and ``transcription``.

    Returns the transcript, or an empty string when the turn was too short,
    silent, or produced no text. Raises ``NoAudioError`` for an empty buffer
    and ``TranscriptionError`` when the provider fails. The buffer is cleared
    on every path except the empty-buffer rejection.
    """
    with tracer.start_as_current_span(
        "krackai.stt",
        attributes={"audio.bytes": ctx.buffer.total_bytes, "audio.chunks": ctx.buffer.chunk_count},
    ):
        if not ctx.buffer:
            raise NoAudioError()

        audio = ctx.buffer.concat()
        try:
            if len(audio) < settings.min_audio_bytes:
                logger.info("[STT] Buffer too small (%d bytes) — likely noise, skipping.", len(audio))
                return ""

            if settings.silence_detection and is_probably_silent(
                audio,
                sample_bytes=settings.silence_sample_bytes,
                deviation=settings.silence_deviation,
                min_active=settings.silence_min_active_samples,
            ):
                logger.info("[STT] Audio looks silent (%d bytes) — skipping.", len(audio))
                return ""

            await ctx.emit(protocol.info("Transcribing audio..."))
            try:
                transcript = await asyncio.wait_for(
                    transcriber.transcribe(audio, settings.audio_mime_hint),
                    timeout=settings.transcribe_timeout,
                )
            except asyncio.TimeoutError:
                raise TranscriptionError(
                    detail=f"{transcriber.name} timed out after {settings.transcribe_timeout:.0f}s"
                ) from None
            except ProviderError as exc:
                raise TranscriptionError(detail=f"{transcriber.name}: {exc.detail or exc.code.value}") from exc
        finally:
            ctx.buffer.clear()

        transcript = (transcript or "").strip()
        if not transcript:
            logger.info("[STT] Empty transcript — user may have been silent.")
            return ""

        logger.info("[STT] Transcript (%d chars) for %s", len(transcript), ctx.session_id)
        await ctx.emit(protocol.transcription(transcript))
        return transcript
