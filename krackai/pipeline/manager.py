"""SessionManager — builds sessions for the configured mode and tracks live ones.

``open()`` is the only way to get a session: it registers the session, enters
it, and unconditionally releases and unregisters it on exit, including on
abnormal disconnects.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from krackai.answer.generators import AnswerGenerator
from krackai.audio.buffer import AudioBuffer
from krackai.audio.realtime import DeepgramRealtimeTranscriber
from krackai.audio.stt import Transcriber
from krackai.config import EngineSettings
from krackai.debug import event_log
from krackai.errors import ConfigurationError
from krackai.pipeline.answer_phase import Sleep
from krackai.pipeline.realtime_session import RealtimeSession
from krackai.pipeline.session import BaseSession, BufferedSession
from krackai.pipeline.session_context import SendJson, SessionContext
from krackai.utils import generate_session_id

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(
        self,
        settings: EngineSettings,
        *,
        generator: AnswerGenerator,
        transcriber: Transcriber | None = None,
        realtime: DeepgramRealtimeTranscriber | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if settings.session_mode == "realtime" and realtime is None:
            raise ConfigurationError("Realtime mode requires a realtime transcriber")
        if settings.session_mode == "buffered" and transcriber is None:
            raise ConfigurationError("Buffered mode requires a transcriber")
        self.settings = settings
        self.generator = generator
        self._transcriber = transcriber
        self._realtime = realtime
        self._sleep = sleep
        self._sessions: dict[str, BaseSession] = {}

    @property
    def mode(self) -> str:
        return self.settings.session_mode

    def get(self, session_id: str) -> BaseSession | None:
        return self._sessions.get(session_id)

    def active_count(self) -> int:
        return len(self._sessions)

    def create(self, send_json: SendJson) -> BaseSession:
        """Build an unregistered session for the configured mode."""
        ctx = SessionContext(
            session_id=generate_session_id(),
            send_json=send_json,
            buffer=AudioBuffer(
                max_chunks=self.settings.max_audio_chunks,
                max_bytes=self.settings.max_audio_bytes,
            ),
        )
        if self.mode == "realtime":
            return RealtimeSession(
                ctx,
                realtime=self._realtime,
                generator=self.generator,
                settings=self.settings,
                sleep=self._sleep,
            )
        return BufferedSession(
            ctx,
            transcriber=self._transcriber,
            generator=self.generator,
            settings=self.settings,
            sleep=self._sleep,
        )

    @asynccontextmanager
    async def open(self, send_json: SendJson) -> AsyncIterator[BaseSession]:
        session = self.create(send_json)
        session_id = session.session_id
        self._sessions[session_id] = session
        event_log.log_ws_event("connect", session_id, {"mode": self.mode})
        logger.info("[Session] Opened %s (%s). Active: %d", session_id, self.mode, len(self._sessions))
        try:
            async with session:
                yield session
        finally:
            self._sessions.pop(session_id, None)
            session.ctx.release()
            event_log.log_ws_event("disconnect", session_id, dict(session.ctx.metrics))
            logger.info(
                "[Session] Closed %s — chunks=%d turns=%d errors=%d. Active: %d",
                session_id,
                session.ctx.metrics["chunk_count"],
                session.ctx.metrics["turn_count"],
                session.ctx.metrics["error_count"],
                len(self._sessions),
            )
