"""Wire protocol — inbound message models and outbound event builders.

Inbound frames are JSON text discriminated by ``type``. Parsing failures are
reported as ``ProtocolError`` with a message that is safe to show the user.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from krackai.errors import ProtocolError


class AudioChunkMessage(BaseModel):
    type: Literal["audio-chunk"]
    audio: str


class TranscribeMessage(BaseModel):
    type: Literal["transcribe", "transcribe-only"]

    @property
    def auto_answer(self) -> bool:
        return self.type == "transcribe"


class GenerateAnswerMessage(BaseModel):
    type: Literal["generate-answer"]
    transcription: str = Field(default="", validation_alias=AliasChoices("transcription", "question"))


class ClearMessage(BaseModel):
    type: Literal["clear"]


class SetContextMessage(BaseModel):
    type: Literal["set-context"]
    resume_text: str = Field(default="", validation_alias=AliasChoices("resumeText", "resume_text"))
    job_description: str = Field(
        default="", validation_alias=AliasChoices("jobDescription", "job_description")
    )

    def combined(self) -> str:
        resume = self.resume_text.strip()
        job = self.job_description.strip()
        if resume and job:
            return f"Resume:\n{resume}\n\nJob description:\n{job}"
        if job:
            return f"Job description:\n{job}"
        return resume


InboundMessage = Annotated[
    Union[
        AudioChunkMessage,
        TranscribeMessage,
        GenerateAnswerMessage,
        ClearMessage,
        SetContextMessage,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)

INBOUND_TYPES = frozenset(
    {"audio-chunk", "transcribe", "transcribe-only", "generate-answer", "clear", "set-context"}
)


def parse_inbound(raw: str) -> InboundMessage:
    """Parse one text frame into a typed message or raise ``ProtocolError``."""
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        raise ProtocolError("Malformed message: expected a JSON object.", detail="invalid JSON") from None

    if not isinstance(payload, dict):
        raise ProtocolError("Malformed message: expected a JSON object.", detail="not an object")

    msg_type = payload.get("type")
    if msg_type not in INBOUND_TYPES:
        raise ProtocolError(
            f"Unknown message type: {str(msg_type)[:40]!r}.",
            detail=f"unknown type {msg_type!r}",
        )

    try:
        return _inbound_adapter.validate_python(payload)
    except PydanticValidationError as exc:
        raise ProtocolError(
            f"Invalid '{msg_type}' message.",
            detail=f"{exc.error_count()} validation error(s)",
        ) from None


# ---------------------------------------------------------------------------
# Outbound events
# ---------------------------------------------------------------------------


def chunk_received() -> dict[str, Any]:
    return {"type": "chunk-received"}


def cleared() -> dict[str, Any]:
    return {"type": "cleared"}


def context_set() -> dict[str, Any]:
    return {"type": "context-set"}


def info(message: str) -> dict[str, Any]:
    return {"type": "info", "message": message}


def transcription(text: str) -> dict[str, Any]:
    return {"type": "transcription", "text": text}


def transcription_delta(text: str) -> dict[str, Any]:
    return {"type": "transcription-delta", "text": text}


def qa_response(question: str, answer: str) -> dict[str, Any]:
    return {"type": "qa-response", "question": question, "answer": answer}
