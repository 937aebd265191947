"""Answer phase — validate the question and generate a coached answer."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from krackai.answer.generators import AnswerGenerator
from krackai.answer.prompts import build_prompt
from krackai.answer.retry import generate_with_retry
from krackai.config import EngineSettings
from krackai.errors import ValidationError
from krackai.pipeline import protocol
from krackai.pipeline.session_context import SessionContext
from krackai.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer()

Sleep = Callable[[float], Awaitable[None]]


def validate_question(question: str | None, max_chars: int) -> str:
    """Return the stripped question or raise ``ValidationError``."""
    text = (question or "").strip()
    if not text:
        raise ValidationError("No question provided.")
    if len(text) > max_chars:
        raise ValidationError(
            f"Question is too long (max {max_chars} characters).",
            detail=f"{len(text)} chars",
        )
    return text


async def generate_answer(
    question: str,
    context: str | None,
    generator: AnswerGenerator,
    settings: EngineSettings,
    *,
    sleep: Sleep = asyncio.sleep,
) -> str:
    """Validate, build the prompt and run the retry policy. No client I/O."""
    question = validate_question(question, settings.max_question_chars)
    with tracer.start_as_current_span(
        "krackai.answer",
        attributes={"question.len": len(question), "context.len": len(context or "")},
    ):
        return await generate_with_retry(
            generator,
            build_prompt(question, context),
            max_attempts=settings.generate_max_attempts,
            backoff=settings.generate_backoff,
            timeout=settings.generate_timeout,
            sleep=sleep,
        )


async def run_answer(
    ctx: SessionContext,
    question: str,
    generator: AnswerGenerator,
    settings: EngineSettings,
    *,
    sleep: Sleep = asyncio.sleep,
) -> str:
    """Emit ``info`` then ``qa-response`` for *question*; a completed turn flushes the buffer."""
    question = validate_question(question, settings.max_question_chars)
    await ctx.emit(protocol.info("Generating answer..."))
    answer = await generate_answer(question, ctx.context_text, generator, settings, sleep=sleep)

    await ctx.emit(protocol.qa_response(question, answer))
    ctx.buffer.clear()
    ctx.metrics["turn_count"] += 1
    logger.info("[Answer] Turn %d complete for %s", ctx.metrics["turn_count"], ctx.session_id)
    return answer
