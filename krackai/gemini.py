"""Minimal Gemini ``generateContent`` REST client shared by STT and answers."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from krackai.errors import from_httpx_error, from_invalid_body

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def extract_text(data: dict[str, Any]) -> str:
    """Return the first candidate's text, or ``""`` if the response has none."""
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        logger.warning("[Gemini] Response without candidates (finish=%s)", _finish_reason(data))
        return ""
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()


def _finish_reason(data: dict[str, Any]) -> str:
    try:
        return str(data["candidates"][0].get("finishReason", ""))
    except (KeyError, IndexError, TypeError, AttributeError):
        return ""


async def generate_content(
    api_key: str,
    model: str,
    body: dict[str, Any],
    *,
    timeout: float,
) -> str:
    """POST *body* to ``models/{model}:generateContent`` and return the text.

    The API key travels in the ``x-goog-api-key`` header so it never ends up
    in a logged URL. httpx failures are re-raised as provider errors.
    """
    url = f"{GEMINI_BASE_URL}/{model}:generateContent"
    headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, headers=headers, json=body)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as exc:
        raise from_httpx_error("Gemini", exc) from exc
    except ValueError as exc:
        raise from_invalid_body("Gemini", exc) from exc
    return extract_text(data)
