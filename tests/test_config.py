"""Tests for environment-driven settings.

Run:
    pytest tests/test_config.py -v
"""

import pytest

from krackai import constants
from krackai.config import EngineSettings
from krackai.errors import ConfigurationError


class TestFromEnv:

    def test_defaults(self):
        s = EngineSettings.from_env({})
        assert s.session_mode == "buffered"
        assert s.transcriber_provider == "gemini"
        assert s.generator_provider == "gemini"
        assert s.max_audio_chunks == constants.MAX_AUDIO_CHUNKS
        assert s.max_audio_bytes == 25 * 1024 * 1024
        assert s.max_question_chars == 2000
        assert s.generate_max_attempts == 3
        assert s.auto_answer_questions is True
        assert s.realtime_keepalive_interval == 8.0

    def test_overrides(self):
        s = EngineSettings.from_env(
            {
                "SESSION_MODE": "Realtime",
                "GENERATOR_PROVIDER": "anthropic",
                "MAX_AUDIO_CHUNKS": "10",
                "GENERATE_BACKOFF_S": "0.5",
                "SILENCE_DETECTION": "off",
                "CORS_ORIGINS": "http://a.test, http://b.test",
                "REALTIME_KEEPALIVE_S": "2.5",
            }
        )
        assert s.session_mode == "realtime"
        assert s.generator_provider == "anthropic"
        assert s.max_audio_chunks == 10
        assert s.generate_backoff == 0.5
        assert s.silence_detection is False
        assert s.cors_origins == ("http://a.test", "http://b.test")
        assert s.realtime_keepalive_interval == 2.5

    @pytest.mark.parametrize(
        "env",
        [
            {"SESSION_MODE": "streaming"},
            {"GENERATOR_PROVIDER": "llama"},
            {"MAX_AUDIO_CHUNKS": "many"},
            {"MAX_AUDIO_CHUNKS": "0"},
            {"GENERATE_TIMEOUT_S": "-1"},
            {"REALTIME_KEEPALIVE_S": "often"},
            {"AUTO_ANSWER_QUESTIONS": "maybe"},
        ],
    )
    def test_malformed_values_raise(self, env):
        with pytest.raises(ConfigurationError):
            EngineSettings.from_env(env)

    def test_api_keys_not_in_repr(self):
        s = EngineSettings.from_env({"GEMINI_API_KEY": "super-secret"})
        assert "super-secret" not in repr(s)


class TestCredentials:

    def test_buffered_needs_transcriber_and_generator(self):
        s = EngineSettings.from_env(
            {"TRANSCRIBER_PROVIDER": "deepgram", "GENERATOR_PROVIDER": "openai"}
        )
        assert s.required_providers() == ["deepgram", "openai"]

    def test_realtime_always_needs_deepgram(self):
        s = EngineSettings.from_env({"SESSION_MODE": "realtime"})
        assert s.required_providers() == ["deepgram", "gemini"]

    def test_shared_provider_listed_once(self):
        assert EngineSettings.from_env({}).required_providers() == ["gemini"]

    def test_missing_key_names_env_var(self):
        s = EngineSettings.from_env({"GENERATOR_PROVIDER": "openai", "GEMINI_API_KEY": "k"})
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            s.require_credentials()

    def test_present_keys_pass(self):
        EngineSettings.from_env({"GEMINI_API_KEY": "k"}).require_credentials()
