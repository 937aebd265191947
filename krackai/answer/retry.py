"""Bounded retry around a text-generation call.

Auth and malformed-request failures are terminal and surface immediately.
Quota and transient failures (including per-attempt timeouts) are retried up
to ``max_attempts`` with a linear backoff of ``attempt × backoff`` seconds.
A blank answer is a content problem, not a transport one: it is never
retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from krackai.answer.generators import AnswerGenerator
from krackai.answer.prompts import AnswerPrompt
from krackai.errors import ProviderEmptyResult, ProviderError, ProviderTransientError

logger = logging.getLogger(__name__)


async def generate_with_retry(
    generator: AnswerGenerator,
    prompt: AnswerPrompt,
    *,
    max_attempts: int,
    backoff: float,
    timeout: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> str:
    """Return a non-blank answer or raise the last ``ProviderError``."""
    last_error: ProviderError | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            answer = await asyncio.wait_for(generator.generate(prompt), timeout=timeout)
        except asyncio.TimeoutError:
            last_error = ProviderTransientError(
                detail=f"{generator.name} timed out after {timeout:.0f}s"
            )
        except ProviderError as exc:
            if not exc.retryable:
                logger.error(
                    "[Answer] %s terminal failure (%s): %s",
                    generator.name,
                    exc.code.value,
                    exc.detail,
                )
                raise
            last_error = exc
        else:
            if not answer or not answer.strip():
                raise ProviderEmptyResult(detail=f"{generator.name} returned blank text")
            if attempt > 1:
                logger.info("[Answer] %s succeeded on attempt %d.", generator.name, attempt)
            return answer.strip()

        logger.warning(
            "[Answer] %s attempt %d/%d failed (%s): %s",
            generator.name,
            attempt,
            max_attempts,
            last_error.code.value,
            last_error.detail,
        )
        if attempt < max_attempts:
            await sleep(backoff * attempt)

    logger.error("[Answer] All %d generation attempts failed.", max_attempts)
    assert last_error is not None
    raise last_error
