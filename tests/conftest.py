"""Shared fakes for the interview engine tests.

The fakes stand in for provider adapters so no test touches the network.
"""

from __future__ import annotations

import os

import pytest

os.environ.setdefault("OTEL_EXPORTER", "none")

from krackai.config import EngineSettings  # noqa: E402
from krackai.pipeline.manager import SessionManager  # noqa: E402

# Non-silent audio: every byte value appears, well above MIN_AUDIO_BYTES.
SPEECH_AUDIO = bytes(range(256)) * 40


class FakeTranscriber:
    name = "fake-stt"

    def __init__(self, result="hello world", error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[tuple[bytes, str]] = []

    async def transcribe(self, audio: bytes, mime_hint: str) -> str:
        self.calls.append((audio, mime_hint))
        if self.error is not None:
            raise self.error
        return self.result


class FakeGenerator:
    """Returns (or raises) queued outcomes in order; repeats the last one."""

    name = "fake-llm"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or ["I led the migration and cut costs by 30%."]
        self.prompts = []

    async def generate(self, prompt) -> str:
        self.prompts.append(prompt)
        index = min(len(self.prompts), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SentEvents:
    """Collects everything a session sends to its client."""

    def __init__(self):
        self.events: list[dict] = []

    async def __call__(self, event: dict) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[dict]:
        return [e for e in self.events if e.get("type") == event_type]

    @property
    def types(self) -> list[str]:
        return [e.get("type") for e in self.events]


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(
        gemini_api_key="test-key",
        max_audio_chunks=5,
        max_audio_bytes=64 * 1024,
    )


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def sent() -> SentEvents:
    return SentEvents()


@pytest.fixture
def manager(settings, transcriber, generator, sleep) -> SessionManager:
    return SessionManager(settings, generator=generator, transcriber=transcriber, sleep=sleep)
