"""Error taxonomy and the SessionError envelope sent over WebSocket.

Every error sent to the client follows a consistent JSON shape so the
desktop overlay can render a short message, while the backend logs keep
the technical detail.

Error codes
-----------
E_PROTOCOL          Malformed or unrecognized inbound message.
E_LIMIT_EXCEEDED    Chunk-count, byte or context cap reached.
E_VALIDATION        Blank or oversized question.
E_NO_AUDIO          ``transcribe`` requested with an empty buffer.
E_STT_FAILED        Transcription provider failed or timed out.
E_AUTH_INVALID      Provider rejected our credentials.
E_BAD_REQUEST       Provider rejected the request as malformed.
E_QUOTA_EXCEEDED    Provider rate limit / quota exhausted.
E_MODEL_UNAVAILABLE Provider timed out, unreachable or returned 5xx.
E_EMPTY_RESPONSE    Provider answered with blank text.
E_REALTIME_FAILED   Upstream realtime transcription error.
E_INTERNAL          Anything else caught at the session boundary.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    E_PROTOCOL = "E_PROTOCOL"
    E_LIMIT_EXCEEDED = "E_LIMIT_EXCEEDED"
    E_VALIDATION = "E_VALIDATION"
    E_NO_AUDIO = "E_NO_AUDIO"
    E_STT_FAILED = "E_STT_FAILED"
    E_AUTH_INVALID = "E_AUTH_INVALID"
    E_BAD_REQUEST = "E_BAD_REQUEST"
    E_QUOTA_EXCEEDED = "E_QUOTA_EXCEEDED"
    E_MODEL_UNAVAILABLE = "E_MODEL_UNAVAILABLE"
    E_EMPTY_RESPONSE = "E_EMPTY_RESPONSE"
    E_REALTIME_FAILED = "E_REALTIME_FAILED"
    E_INTERNAL = "E_INTERNAL"


class ConfigurationError(RuntimeError):
    """Invalid or missing settings. Fatal at startup, never sent to a client."""


class EngineError(Exception):
    """Base for every error that is converted into an ``error`` event."""

    code: ErrorCode = ErrorCode.E_INTERNAL
    default_message: str = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, *, detail: str = "") -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


class ProtocolError(EngineError):
    code = ErrorCode.E_PROTOCOL
    default_message = "Malformed message."


class LimitExceeded(EngineError):
    code = ErrorCode.E_LIMIT_EXCEEDED
    default_message = "Audio buffer limit reached. Please transcribe or clear first."


class ValidationError(EngineError):
    code = ErrorCode.E_VALIDATION
    default_message = "Invalid question."


class NoAudioError(EngineError):
    code = ErrorCode.E_NO_AUDIO
    default_message = "No audio data received."


class ProviderError(EngineError):
    """A transcription or text-generation provider failed."""

    retryable: bool = False


class ProviderAuthError(ProviderError):
    code = ErrorCode.E_AUTH_INVALID
    default_message = "The AI provider rejected our credentials."


class ProviderBadRequestError(ProviderError):
    code = ErrorCode.E_BAD_REQUEST
    default_message = "The AI provider could not process this request."


class ProviderQuotaError(ProviderError):
    code = ErrorCode.E_QUOTA_EXCEEDED
    default_message = "The AI provider quota is exceeded. Please try again later."
    retryable = True


class ProviderTransientError(ProviderError):
    code = ErrorCode.E_MODEL_UNAVAILABLE
    default_message = "The AI model is temporarily unavailable. Please try again."
    retryable = True


class ProviderEmptyResult(ProviderError):
    code = ErrorCode.E_EMPTY_RESPONSE
    default_message = "Empty response from model."


class TranscriptionError(ProviderError):
    """Any transcription provider failure, reported with one neutral message."""

    code = ErrorCode.E_STT_FAILED
    default_message = "Transcription failed. Please try again."


class RealtimeError(EngineError):
    code = ErrorCode.E_REALTIME_FAILED
    default_message = "Realtime transcription failed."


def from_httpx_error(provider: str, exc: httpx.HTTPError) -> ProviderError:
    """Classify an httpx failure into the provider error taxonomy."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = f"{provider} returned HTTP {status}"
        if status in (401, 403):
            return ProviderAuthError(detail=detail)
        if status == 429:
            return ProviderQuotaError(detail=detail)
        if status == 408 or status >= 500:
            return ProviderTransientError(detail=detail)
        return ProviderBadRequestError(detail=detail)
    return ProviderTransientError(detail=f"{provider} transport error: {type(exc).__name__}")


def from_invalid_body(provider: str, exc: ValueError) -> ProviderError:
    """A 2xx response whose body is not JSON, usually a gateway or proxy error page."""
    return ProviderTransientError(detail=f"{provider} returned a non-JSON body: {type(exc).__name__}")


@dataclass
class SessionError:
    code: str
    message: str
    recoverable: bool = True
    session_id: str = ""
    details: dict[str, Any] | None = field(default=None)

    @classmethod
    def from_exception(cls, exc: EngineError, session_id: str = "") -> "SessionError":
        return cls(
            code=exc.code.value,
            message=exc.message,
            recoverable=True,
            session_id=session_id,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": "error",
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "session_id": self.session_id,
        }
        if self.details:
            d["details"] = self.details
        return d


async def send_error(send: Callable[[dict], Awaitable[None]], error: SessionError) -> None:
    """Serialize *error* and hand it to *send* (usually ``websocket.send_json``).

    Silently catches send failures (the socket may already be closed).
    """
    try:
        await send(error.to_dict())
        logger.warning(
            "[SessionError] Sent %s to client: %s (session=%s)",
            error.code,
            error.message,
            error.session_id,
        )
    except Exception as exc:
        logger.debug("[SessionError] Failed to send error to client: %s", exc)
