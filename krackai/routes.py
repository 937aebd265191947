"""REST surface for one-shot answer generation.

``POST /interview/answer`` runs the same validation, prompt and retry policy
as the WebSocket ``generate-answer`` message, for clients that already have
the question as text.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from krackai.errors import (
    EngineError,
    ProviderQuotaError,
    ProviderTransientError,
    ValidationError,
)
from krackai.pipeline.answer_phase import generate_answer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/interview", tags=["interview"])


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class AnswerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str = ""
    resume_text: str = Field(default="", alias="resumeText")


class AnswerResponse(BaseModel):
    question: str
    answer: str


def _status_for(exc: EngineError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, ProviderQuotaError):
        return 429
    if isinstance(exc, ProviderTransientError):
        return 503
    return 502


# ---------------------------------------------------------------------------
# REST endpoints
# ---------------------------------------------------------------------------


@router.post("/answer", response_model=AnswerResponse)
async def answer_question(body: AnswerRequest, request: Request) -> AnswerResponse:
    manager = request.app.state.manager
    try:
        answer = await generate_answer(
            body.question,
            body.resume_text or None,
            manager.generator,
            manager.settings,
        )
    except EngineError as exc:
        logger.warning("[REST] Answer failed (%s): %s", exc.code.value, exc.detail or exc.message)
        raise HTTPException(status_code=_status_for(exc), detail=exc.message) from exc
    return AnswerResponse(question=body.question.strip(), answer=answer)
