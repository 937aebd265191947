"""Prompt assembly for coached interview answers."""

from __future__ import annotations

import re
from dataclasses import dataclass

_PERSONA = (
    "You are KrackAI, an elite interview coach.\n\n"
    "Respond in first person as the candidate.\n"
    "Be confident, concise (80-150 words) and direct.\n"
    "No fluff, no hedging.\n"
    "Use STAR only for behavioral questions.\n"
    "Quantify achievements when possible.\n"
    "Sound natural, like someone speaking in a live interview.\n"
    "Never mention being an AI or an automated system."
)

_NO_CONTEXT = "No resume provided."

_QUESTION_START = re.compile(
    r"^(who|what|when|where|why|how|is|are|can|should)\b", re.IGNORECASE
)


@dataclass(frozen=True)
class AnswerPrompt:
    """System directive plus the user's question, kept separate so chat APIs
    can place them in their own roles."""

    system: str
    question: str

    def as_text(self) -> str:
        return f"{self.system}\n\nQuestion: {self.question}"


def build_system_prompt(context: str | None) -> str:
    background = context.strip() if context and context.strip() else _NO_CONTEXT
    return f"{_PERSONA}\n\nUse this background for context:\n{background}"


def build_prompt(question: str, context: str | None = None) -> AnswerPrompt:
    return AnswerPrompt(system=build_system_prompt(context), question=question.strip())


def looks_like_question(text: str) -> bool:
    """Cheap check: ends with ``?`` or opens with an interrogative word."""
    text = text.strip()
    if not text:
        return False
    return text.endswith("?") or bool(_QUESTION_START.match(text))
