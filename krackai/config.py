"""Environment-driven settings for the interview engine.

``load_settings()`` reads ``.env`` (via python-dotenv) and the process
environment once and returns an immutable :class:`EngineSettings`. Provider
API keys are opaque secrets: they are kept out of ``repr`` and never logged.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

from dotenv import load_dotenv

from krackai import constants
from krackai.errors import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}

_PROVIDER_KEYS = {
    "gemini": "gemini_api_key",
    "deepgram": "deepgram_api_key",
    "openai": "openai_api_key",
    "anthropic": "anthropic_api_key",
}


def _get_int(env: Mapping[str, str], key: str, default: int, *, minimum: int = 0) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {value}")
    return value


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigurationError(f"{key} must be non-negative, got {value}")
    return value


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


def _get_list(env: Mapping[str, str], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _get_choice(env: Mapping[str, str], key: str, default: str, choices: frozenset[str]) -> str:
    value = env.get(key, "").strip().lower() or default
    if value not in choices:
        raise ConfigurationError(f"{key} must be one of {sorted(choices)}, got {value!r}")
    return value


@dataclass(frozen=True)
class EngineSettings:
    session_mode: str = "buffered"
    transcriber_provider: str = "gemini"
    generator_provider: str = "gemini"

    gemini_api_key: str = field(default="", repr=False)
    deepgram_api_key: str = field(default="", repr=False)
    openai_api_key: str = field(default="", repr=False)
    anthropic_api_key: str = field(default="", repr=False)

    gemini_model: str = constants.GEMINI_MODEL
    openai_model: str = constants.OPENAI_MODEL
    anthropic_model: str = constants.ANTHROPIC_MODEL
    deepgram_model: str = constants.DEEPGRAM_MODEL

    audio_mime_hint: str = constants.AUDIO_MIME_HINT
    audio_sample_rate: int = constants.AUDIO_SAMPLE_RATE

    max_audio_chunks: int = constants.MAX_AUDIO_CHUNKS
    max_audio_bytes: int = constants.MAX_AUDIO_BYTES

    min_audio_bytes: int = constants.MIN_AUDIO_BYTES
    silence_detection: bool = True
    silence_sample_bytes: int = constants.SILENCE_SAMPLE_BYTES
    silence_deviation: int = constants.SILENCE_DEVIATION
    silence_min_active_samples: int = constants.SILENCE_MIN_ACTIVE_SAMPLES

    transcribe_timeout: float = constants.TRANSCRIBE_TIMEOUT
    generate_timeout: float = constants.GENERATE_TIMEOUT
    generate_max_attempts: int = constants.GENERATE_MAX_ATTEMPTS
    generate_backoff: float = constants.GENERATE_BACKOFF
    realtime_keepalive_interval: float = constants.REALTIME_KEEPALIVE_INTERVAL

    max_question_chars: int = constants.MAX_QUESTION_CHARS
    max_context_chars: int = constants.MAX_CONTEXT_CHARS

    auto_answer_questions: bool = True
    cors_origins: tuple[str, ...] = ("http://localhost:4200", "app://.")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        """Build settings from *environ* (defaults to ``os.environ``).

        Raises ``ConfigurationError`` for malformed values. Missing credentials
        are only checked by :meth:`require_credentials`.
        """
        env = os.environ if environ is None else environ
        return cls(
            session_mode=_get_choice(env, "SESSION_MODE", "buffered", constants.SESSION_MODES),
            transcriber_provider=_get_choice(
                env, "TRANSCRIBER_PROVIDER", "gemini", constants.TRANSCRIBER_PROVIDERS
            ),
            generator_provider=_get_choice(
                env, "GENERATOR_PROVIDER", "gemini", constants.GENERATOR_PROVIDERS
            ),
            gemini_api_key=env.get("GEMINI_API_KEY", ""),
            deepgram_api_key=env.get("DEEPGRAM_API_KEY", ""),
            openai_api_key=env.get("OPENAI_API_KEY", ""),
            anthropic_api_key=env.get("ANTHROPIC_API_KEY", ""),
            gemini_model=env.get("GEMINI_MODEL", "") or constants.GEMINI_MODEL,
            openai_model=env.get("OPENAI_MODEL", "") or constants.OPENAI_MODEL,
            anthropic_model=env.get("ANTHROPIC_MODEL", "") or constants.ANTHROPIC_MODEL,
            deepgram_model=env.get("DEEPGRAM_MODEL", "") or constants.DEEPGRAM_MODEL,
            audio_mime_hint=env.get("AUDIO_MIME_HINT", "") or constants.AUDIO_MIME_HINT,
            audio_sample_rate=_get_int(env, "AUDIO_SAMPLE_RATE", constants.AUDIO_SAMPLE_RATE, minimum=1),
            max_audio_chunks=_get_int(env, "MAX_AUDIO_CHUNKS", constants.MAX_AUDIO_CHUNKS, minimum=1),
            max_audio_bytes=_get_int(env, "MAX_AUDIO_BYTES", constants.MAX_AUDIO_BYTES, minimum=1),
            min_audio_bytes=_get_int(env, "MIN_AUDIO_BYTES", constants.MIN_AUDIO_BYTES),
            silence_detection=_get_bool(env, "SILENCE_DETECTION", True),
            silence_sample_bytes=_get_int(
                env, "SILENCE_SAMPLE_BYTES", constants.SILENCE_SAMPLE_BYTES, minimum=1
            ),
            silence_deviation=_get_int(env, "SILENCE_DEVIATION", constants.SILENCE_DEVIATION),
            silence_min_active_samples=_get_int(
                env, "SILENCE_MIN_ACTIVE_SAMPLES", constants.SILENCE_MIN_ACTIVE_SAMPLES
            ),
            transcribe_timeout=_get_float(env, "TRANSCRIBE_TIMEOUT_S", constants.TRANSCRIBE_TIMEOUT),
            generate_timeout=_get_float(env, "GENERATE_TIMEOUT_S", constants.GENERATE_TIMEOUT),
            generate_max_attempts=_get_int(
                env, "GENERATE_MAX_ATTEMPTS", constants.GENERATE_MAX_ATTEMPTS, minimum=1
            ),
            generate_backoff=_get_float(env, "GENERATE_BACKOFF_S", constants.GENERATE_BACKOFF),
            realtime_keepalive_interval=_get_float(
                env, "REALTIME_KEEPALIVE_S", constants.REALTIME_KEEPALIVE_INTERVAL
            ),
            max_question_chars=_get_int(
                env, "MAX_QUESTION_CHARS", constants.MAX_QUESTION_CHARS, minimum=1
            ),
            max_context_chars=_get_int(env, "MAX_CONTEXT_CHARS", constants.MAX_CONTEXT_CHARS, minimum=1),
            auto_answer_questions=_get_bool(env, "AUTO_ANSWER_QUESTIONS", True),
            cors_origins=_get_list(env, "CORS_ORIGINS", ("http://localhost:4200", "app://.")),
        )

    def required_providers(self) -> list[str]:
        """Return the providers whose credentials this deployment needs."""
        stt = "deepgram" if self.session_mode == "realtime" else self.transcriber_provider
        providers = [stt]
        if self.generator_provider not in providers:
            providers.append(self.generator_provider)
        return providers

    def require_credentials(self) -> None:
        """Raise ``ConfigurationError`` if a selected provider has no API key."""
        missing = [
            p.upper() + "_API_KEY"
            for p in self.required_providers()
            if not getattr(self, _PROVIDER_KEYS[p])
        ]
        if missing:
            raise ConfigurationError(f"Missing provider credentials: {', '.join(missing)}")


def load_settings() -> EngineSettings:
    """Load ``.env`` then parse the environment into settings."""
    load_dotenv()
    settings = EngineSettings.from_env()
    logger.info(
        "[Config] mode=%s stt=%s generator=%s",
        settings.session_mode,
        settings.transcriber_provider,
        settings.generator_provider,
    )
    return settings
