"""Text-generation adapters.

Each adapter exposes ``await generate(prompt) -> str`` and raises a
``ProviderError`` subclass on failure; retries live in ``retry.py`` so the
adapters themselves make exactly one provider call per invocation.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import anthropic
import httpx
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage

from krackai import constants, gemini
from krackai.answer.prompts import AnswerPrompt
from krackai.config import EngineSettings
from krackai.errors import (
    ConfigurationError,
    ProviderAuthError,
    ProviderBadRequestError,
    ProviderError,
    ProviderQuotaError,
    ProviderTransientError,
    from_httpx_error,
    from_invalid_body,
)

logger = logging.getLogger(__name__)

_TEMPERATURE = 0.7
_MAX_OUTPUT_TOKENS = 1024
_OPENAI_MAX_TOKENS = 300


class AnswerGenerator(Protocol):
    name: str

    async def generate(self, prompt: AnswerPrompt) -> str: ...


class GeminiAnswerGenerator:
    name = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = constants.GEMINI_MODEL,
        timeout: float = constants.GENERATE_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def generate(self, prompt: AnswerPrompt) -> str:
        if not self._api_key:
            raise ProviderAuthError(detail="GEMINI_API_KEY not set")
        body = {
            "systemInstruction": {"parts": [{"text": prompt.system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt.question}]}],
            "generationConfig": {
                "temperature": _TEMPERATURE,
                "maxOutputTokens": _MAX_OUTPUT_TOKENS,
            },
        }
        return await gemini.generate_content(self._api_key, self._model, body, timeout=self._timeout)


class OpenAIAnswerGenerator:
    """OpenAI chat completions over plain httpx."""

    name = "openai"
    URL = "https://api.openai.com/v1/chat/completions"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = constants.OPENAI_MODEL,
        timeout: float = constants.GENERATE_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout

    async def generate(self, prompt: AnswerPrompt) -> str:
        if not self._api_key:
            raise ProviderAuthError(detail="OPENAI_API_KEY not set")
        headers = {"Authorization": f"Bearer {self._api_key}"}
        payload = {
            "model": self._model,
            "temperature": _TEMPERATURE,
            "max_tokens": _OPENAI_MAX_TOKENS,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.question},
            ],
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self.URL, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise from_httpx_error("OpenAI", exc) from exc
        except ValueError as exc:
            raise from_invalid_body("OpenAI", exc) from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.warning("[Answer] OpenAI response without choices.")
            return ""
        return (content or "").strip()


def _anthropic_error(exc: anthropic.APIError) -> ProviderError:
    """Map Anthropic SDK exceptions onto the provider taxonomy."""
    name = type(exc).__name__
    if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return ProviderAuthError(detail=f"Anthropic {name}")
    if isinstance(exc, anthropic.RateLimitError):
        return ProviderQuotaError(detail=f"Anthropic {name}")
    if isinstance(exc, anthropic.APIConnectionError):
        return ProviderTransientError(detail=f"Anthropic {name}")
    if isinstance(exc, anthropic.APIStatusError) and exc.status_code >= 500:
        return ProviderTransientError(detail=f"Anthropic {name} ({exc.status_code})")
    return ProviderBadRequestError(detail=f"Anthropic {name}")


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content.strip()
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts).strip()


class AnthropicAnswerGenerator:
    """Claude via LangChain's chat model wrapper (SDK retries disabled)."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = constants.ANTHROPIC_MODEL,
        timeout: float = constants.GENERATE_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model_name = model
        self._timeout = timeout
        self._model: ChatAnthropic | None = None

    def _get_model(self) -> ChatAnthropic:
        """Lazily create the chat model on first use."""
        if self._model is None:
            self._model = ChatAnthropic(
                model=self._model_name,
                temperature=_TEMPERATURE,
                max_tokens=_MAX_OUTPUT_TOKENS,
                api_key=self._api_key,
                max_retries=0,
                timeout=self._timeout,
            )
        return self._model

    async def generate(self, prompt: AnswerPrompt) -> str:
        if not self._api_key:
            raise ProviderAuthError(detail="ANTHROPIC_API_KEY not set")
        try:
            response = await self._get_model().ainvoke(
                [SystemMessage(content=prompt.system), HumanMessage(content=prompt.question)]
            )
        except anthropic.APIError as exc:
            raise _anthropic_error(exc) from exc
        return _message_text(response.content)


def build_generator(settings: EngineSettings) -> AnswerGenerator:
    """Return the generator selected by ``GENERATOR_PROVIDER``."""
    if settings.generator_provider == "gemini":
        return GeminiAnswerGenerator(
            settings.gemini_api_key, model=settings.gemini_model, timeout=settings.generate_timeout
        )
    if settings.generator_provider == "openai":
        return OpenAIAnswerGenerator(
            settings.openai_api_key, model=settings.openai_model, timeout=settings.generate_timeout
        )
    if settings.generator_provider == "anthropic":
        return AnthropicAnswerGenerator(
            settings.anthropic_api_key,
            model=settings.anthropic_model,
            timeout=settings.generate_timeout,
        )
    raise ConfigurationError(f"Unknown generator provider: {settings.generator_provider}")
