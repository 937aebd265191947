"""Deepgram streaming STT — one upstream WebSocket per client session.

Used only when ``SESSION_MODE=realtime``: audio chunks are forwarded as they
arrive and interim/final transcripts are read back concurrently, instead of
buffering a whole turn and transcribing it in one request.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    InvalidStatus,
    WebSocketException,
)

from krackai import constants
from krackai.config import EngineSettings
from krackai.errors import ProviderAuthError, ProviderTransientError

logger = logging.getLogger(__name__)

_RAW_PCM_MIME = {"audio/raw", "audio/l16", "audio/pcm"}


@dataclass(frozen=True)
class RealtimeEvent:
    """One upstream event: ``delta`` (interim), ``final`` or ``error``."""

    kind: str
    text: str = ""


class DeepgramRealtimeStream:
    """A live Deepgram ``/v1/listen`` WebSocket.

    Use as an async context manager; ``ready`` is set once the upstream
    handshake completes and audio may be sent.
    """

    WS_URL = "wss://api.deepgram.com/v1/listen"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = constants.DEEPGRAM_MODEL,
        mime_hint: str = constants.AUDIO_MIME_HINT,
        sample_rate: int = constants.AUDIO_SAMPLE_RATE,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._mime_hint = mime_hint
        self._sample_rate = sample_rate
        self._ws = None
        self._closing = False
        self.ready = asyncio.Event()

    def _url(self) -> str:
        url = f"{self.WS_URL}?model={self._model}&interim_results=true&smart_format=true"
        if self._mime_hint.lower() in _RAW_PCM_MIME:
            url += f"&encoding=linear16&sample_rate={self._sample_rate}&channels=1"
        return url

    async def __aenter__(self) -> "DeepgramRealtimeStream":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if not self._api_key:
            raise ProviderAuthError(detail="DEEPGRAM_API_KEY not set")
        try:
            self._ws = await websockets.connect(
                self._url(),
                additional_headers={"Authorization": f"Token {self._api_key}"},
            )
        except InvalidStatus as exc:
            status = exc.response.status_code
            if status in (401, 403):
                raise ProviderAuthError(detail=f"Deepgram rejected connection ({status})") from exc
            raise ProviderTransientError(detail=f"Deepgram rejected connection ({status})") from exc
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            raise ProviderTransientError(detail=f"Deepgram connect failed: {type(exc).__name__}") from exc
        self.ready.set()
        logger.info("[Realtime] Upstream connected.")

    async def send_audio(self, chunk: bytes) -> None:
        if self._ws is None or not self.ready.is_set():
            raise ProviderTransientError(detail="upstream not ready")
        try:
            await self._ws.send(chunk)
        except ConnectionClosed as exc:
            raise ProviderTransientError(detail="upstream closed while sending audio") from exc

    async def finalize(self) -> None:
        """Ask Deepgram to flush pending audio into a final transcript."""
        if self._ws is None:
            return
        try:
            await self._ws.send(json.dumps({"type": "Finalize"}))
        except ConnectionClosed as exc:
            raise ProviderTransientError(detail="upstream closed while finalizing") from exc

    async def keep_alive(self) -> None:
        """Tell Deepgram the stream is still in use while no audio is flowing."""
        if self._ws is None or not self.ready.is_set():
            return
        try:
            await self._ws.send(json.dumps({"type": "KeepAlive"}))
        except ConnectionClosed as exc:
            raise ProviderTransientError(detail="upstream closed during keep-alive") from exc

    async def close(self) -> None:
        if self._ws is None or self._closing:
            return
        self._closing = True
        self.ready.clear()
        try:
            await self._ws.send(json.dumps({"type": "CloseStream"}))
        except ConnectionClosed:
            pass
        await self._ws.close()
        logger.info("[Realtime] Upstream closed.")

    async def events(self) -> AsyncIterator[RealtimeEvent]:
        """Yield transcript events until the upstream connection ends."""
        if self._ws is None:
            return
        try:
            async for raw in self._ws:
                event = self._parse(raw)
                if event is not None:
                    yield event
        except ConnectionClosedError as exc:
            if not self._closing:
                logger.warning("[Realtime] Upstream closed abnormally: %s", exc)
                yield RealtimeEvent("error", "Realtime transcription connection lost.")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse(raw: str | bytes) -> RealtimeEvent | None:
        text = raw if isinstance(raw, str) else raw.decode("utf-8", errors="replace")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None

        msg_type = payload.get("type", "")
        if msg_type == "Results":
            alternatives = payload.get("channel", {}).get("alternatives") or [{}]
            transcript = (alternatives[0].get("transcript") or "").strip()
            if not transcript:
                return None
            return RealtimeEvent("final" if payload.get("is_final") else "delta", transcript)
        if msg_type == "Error":
            logger.error(
                "[Realtime] Upstream error: %s",
                payload.get("description") or payload.get("message", ""),
            )
            return RealtimeEvent("error", "Realtime transcription failed.")
        if msg_type == "Metadata":
            logger.debug("[Realtime] Deepgram metadata: request_id=%s", payload.get("request_id"))
        return None


class DeepgramRealtimeTranscriber:
    """Factory for per-session upstream streams."""

    name = "deepgram-realtime"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = constants.DEEPGRAM_MODEL,
        mime_hint: str = constants.AUDIO_MIME_HINT,
        sample_rate: int = constants.AUDIO_SAMPLE_RATE,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._mime_hint = mime_hint
        self._sample_rate = sample_rate

    def open_stream(self) -> DeepgramRealtimeStream:
        return DeepgramRealtimeStream(
            self._api_key,
            model=self._model,
            mime_hint=self._mime_hint,
            sample_rate=self._sample_rate,
        )


def build_realtime_transcriber(settings: EngineSettings) -> DeepgramRealtimeTranscriber:
    return DeepgramRealtimeTranscriber(
        settings.deepgram_api_key,
        model=settings.deepgram_model,
        mime_hint=settings.audio_mime_hint,
        sample_rate=settings.audio_sample_rate,
    )

