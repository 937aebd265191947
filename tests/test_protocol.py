"""Tests for inbound message parsing and outbound event shapes.

Run:
    pytest tests/test_protocol.py -v
"""

import json

import pytest

from krackai.errors import ErrorCode, ProtocolError
from krackai.pipeline import protocol
from krackai.pipeline.session import decode_chunk


class TestParseInbound:

    def test_audio_chunk(self):
        msg = protocol.parse_inbound(json.dumps({"type": "audio-chunk", "audio": "AAEC"}))
        assert isinstance(msg, protocol.AudioChunkMessage)
        assert msg.audio == "AAEC"

    def test_transcribe_variants(self):
        full = protocol.parse_inbound('{"type": "transcribe"}')
        only = protocol.parse_inbound('{"type": "transcribe-only"}')
        assert isinstance(full, protocol.TranscribeMessage)
        assert full.auto_answer is True
        assert only.auto_answer is False

    def test_generate_answer_accepts_question_alias(self):
        a = protocol.parse_inbound('{"type": "generate-answer", "transcription": "Why us?"}')
        b = protocol.parse_inbound('{"type": "generate-answer", "question": "Why us?"}')
        assert a.transcription == b.transcription == "Why us?"

    def test_generate_answer_missing_text_defaults_empty(self):
        msg = protocol.parse_inbound('{"type": "generate-answer"}')
        assert msg.transcription == ""

    def test_set_context_combines_resume_and_job(self):
        msg = protocol.parse_inbound(
            json.dumps({"type": "set-context", "resumeText": "Python dev", "jobDescription": "Backend role"})
        )
        combined = msg.combined()
        assert "Python dev" in combined
        assert "Backend role" in combined

    def test_set_context_resume_only(self):
        msg = protocol.parse_inbound('{"type": "set-context", "resumeText": "  Go dev  "}')
        assert msg.combined() == "Go dev"

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"text"', "null"])
    def test_malformed_json(self, raw):
        with pytest.raises(ProtocolError) as exc_info:
            protocol.parse_inbound(raw)
        assert exc_info.value.code == ErrorCode.E_PROTOCOL

    def test_unknown_type(self):
        with pytest.raises(ProtocolError, match="Unknown message type"):
            protocol.parse_inbound('{"type": "dance"}')

    def test_missing_type(self):
        with pytest.raises(ProtocolError):
            protocol.parse_inbound('{"audio": "AAEC"}')

    def test_audio_chunk_without_audio(self):
        with pytest.raises(ProtocolError, match="audio-chunk"):
            protocol.parse_inbound('{"type": "audio-chunk"}')


class TestDecodeChunk:

    def test_plain_base64(self):
        assert decode_chunk("aGVsbG8=") == b"hello"

    def test_data_url_prefix(self):
        assert decode_chunk("data:audio/webm;base64,aGVsbG8=") == b"hello"

    def test_invalid_base64(self):
        with pytest.raises(ProtocolError, match="base64"):
            decode_chunk("not base64!!")

    def test_empty_chunk(self):
        with pytest.raises(ProtocolError, match="empty"):
            decode_chunk("")


class TestOutboundEvents:

    def test_shapes(self):
        assert protocol.chunk_received() == {"type": "chunk-received"}
        assert protocol.cleared() == {"type": "cleared"}
        assert protocol.context_set() == {"type": "context-set"}
        assert protocol.info("Transcribing audio...") == {
            "type": "info",
            "message": "Transcribing audio...",
        }
        assert protocol.transcription("hi") == {"type": "transcription", "text": "hi"}
        assert protocol.transcription_delta("h") == {"type": "transcription-delta", "text": "h"}
        assert protocol.qa_response("Q?", "A.") == {
            "type": "qa-response",
            "question": "Q?",
            "answer": "A.",
        }
