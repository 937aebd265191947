"""Batch speech-to-text adapters.

Every adapter honours the same contract: ``await transcribe(audio, mime_hint)``
returns the recognized text (possibly empty) or raises a ``ProviderError``.
The session engine never branches on which vendor is behind it.
"""

from __future__ import annotations

import base64
import logging
from typing import Protocol

import httpx

from krackai import constants, gemini
from krackai.config import EngineSettings
from krackai.errors import ConfigurationError, ProviderAuthError, from_httpx_error, from_invalid_body

logger = logging.getLogger(__name__)

# Deepgram needs explicit encoding parameters for headerless PCM only.
_RAW_PCM_MIME = {"audio/raw", "audio/l16", "audio/pcm"}

_TRANSCRIBE_INSTRUCTION = (
    "Transcribe this audio file. Provide only the text without extra commentary."
)


class Transcriber(Protocol):
    name: str

    async def transcribe(self, audio: bytes, mime_hint: str) -> str: ...


class DeepgramTranscriber:
    """Sends a complete audio buffer to Deepgram's pre-recorded endpoint.

    Parameters
    ----------
    api_key : str
        Deepgram API key (from DEEPGRAM_API_KEY env var).
    model : str
        Deepgram model name.
    sample_rate : int
        Sample rate assumed for headerless PCM input (default 16 kHz).
    """

    name = "deepgram"
    URL = "https://api.deepgram.com/v1/listen"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = constants.DEEPGRAM_MODEL,
        sample_rate: int = constants.AUDIO_SAMPLE_RATE,
        timeout: float = constants.TRANSCRIBE_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._sample_rate = sample_rate
        self._timeout = timeout

    def _url(self, mime_hint: str) -> str:
        url = f"{self.URL}?model={self._model}&smart_format=true"
        if mime_hint.lower() in _RAW_PCM_MIME:
            url += f"&encoding=linear16&sample_rate={self._sample_rate}&channels=1"
        return url

    async def transcribe(self, audio: bytes, mime_hint: str = constants.AUDIO_MIME_HINT) -> str:
        if not self._api_key:
            raise ProviderAuthError(detail="DEEPGRAM_API_KEY not set")

        headers = {
            "Authorization": f"Token {self._api_key}",
            "Content-Type": mime_hint,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url(mime_hint), headers=headers, content=audio)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise from_httpx_error("Deepgram", exc) from exc
        except ValueError as exc:
            raise from_invalid_body("Deepgram", exc) from exc

        try:
            transcript: str = data["results"]["channels"][0]["alternatives"][0]["transcript"]
        except (KeyError, IndexError, TypeError):
            logger.warning("[STT] Empty or malformed Deepgram response.")
            return ""
        return transcript.strip()


class GeminiTranscriber:
    """Transcribes audio by sending it inline to a Gemini multimodal model."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = constants.GEMINI_MODEL,
        timeout: float = constants.TRANSCRIBE_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def transcribe(self, audio: bytes, mime_hint: str = constants.AUDIO_MIME_HINT) -> str:
        if not self._api_key:
            raise ProviderAuthError(detail="GEMINI_API_KEY not set")

        body = {
            "contents": [
                {
                    "parts": [
                        {"text": _TRANSCRIBE_INSTRUCTION},
                        {
                            "inline_data": {
                                "mime_type": mime_hint,
                                "data": base64.b64encode(audio).decode("ascii"),
                            }
                        },
                    ]
                }
            ]
        }
        return await gemini.generate_content(self._api_key, self._model, body, timeout=self._timeout)


def build_transcriber(settings: EngineSettings) -> Transcriber:
    """Return the batch transcriber selected by ``TRANSCRIBER_PROVIDER``."""
    if settings.transcriber_provider == "deepgram":
        return DeepgramTranscriber(
            settings.deepgram_api_key,
            model=settings.deepgram_model,
            sample_rate=settings.audio_sample_rate,
            timeout=settings.transcribe_timeout,
        )
    if settings.transcriber_provider == "gemini":
        return GeminiTranscriber(
            settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.transcribe_timeout,
        )
    raise ConfigurationError(f"Unknown transcriber provider: {settings.transcriber_provider}")
