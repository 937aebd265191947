"""Centralized defaults for the KrackAI interview engine.

Every value here can be overridden through the environment (see ``config.py``).
"""

# Audio buffering limits
MAX_AUDIO_CHUNKS: int = 2000
MAX_AUDIO_BYTES: int = 25 * 1024 * 1024

# Silence / too-short heuristics
MIN_AUDIO_BYTES: int = 8000
SILENCE_SAMPLE_BYTES: int = 16000  # prefix inspected for activity
SILENCE_DEVIATION: int = 10  # distance from the 128 midpoint that counts as "active"
SILENCE_MIN_ACTIVE_SAMPLES: int = 100
SILENCE_MIDPOINT: int = 128

# Provider timeouts (seconds)
TRANSCRIBE_TIMEOUT: float = 45.0
GENERATE_TIMEOUT: float = 30.0
REALTIME_KEEPALIVE_INTERVAL: float = 8.0  # Deepgram closes idle streams after ~10s

# Answer generation retry policy
GENERATE_MAX_ATTEMPTS: int = 3
GENERATE_BACKOFF: float = 1.0  # delay = attempt index × unit

# Validation
MAX_QUESTION_CHARS: int = 2000
MAX_CONTEXT_CHARS: int = 20000

# Audio encoding
AUDIO_MIME_HINT: str = "audio/webm"
AUDIO_SAMPLE_RATE: int = 16_000

# Models
GEMINI_MODEL: str = "gemini-2.5-flash"
OPENAI_MODEL: str = "gpt-4o-mini"
ANTHROPIC_MODEL: str = "claude-sonnet-4-5-20250929"
DEEPGRAM_MODEL: str = "nova-2"

# Session modes / providers
SESSION_MODES: frozenset[str] = frozenset({"buffered", "realtime"})
TRANSCRIBER_PROVIDERS: frozenset[str] = frozenset({"gemini", "deepgram"})
GENERATOR_PROVIDERS: frozenset[str] = frozenset({"gemini", "openai", "anthropic"})

# Debug event log
DEBUG_EVENT_LOG_SIZE: int = 500
