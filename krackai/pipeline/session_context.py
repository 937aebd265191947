"""SessionContext — per-session mutable state container.

Owned by exactly one session object for the lifetime of one WebSocket
connection; nothing here is shared between sessions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from krackai.audio.buffer import AudioBuffer
from krackai.debug import event_log
from krackai.errors import EngineError, SessionError, send_error

logger = logging.getLogger(__name__)

SendJson = Callable[[dict], Awaitable[None]]


@dataclass
class SessionContext:
    """All per-session mutable state for a single WebSocket connection."""

    session_id: str
    send_json: SendJson
    buffer: AudioBuffer
    context_text: str | None = None
    closed: bool = False
    metrics: dict[str, int] = field(default_factory=lambda: {
        "chunk_count": 0,
        "turn_count": 0,
        "error_count": 0,
    })

    async def emit(self, event: dict[str, Any]) -> None:
        """Send *event* to the client; a closed or failing socket is not an error here."""
        if self.closed:
            return
        try:
            await self.send_json(event)
        except Exception as exc:
            logger.debug("[Session %s] Send failed (%s): %s", self.session_id, event.get("type"), exc)

    async def emit_error(self, exc: EngineError) -> None:
        self.metrics["error_count"] += 1
        event_log.log_session_error(self.session_id, exc.code.value, exc)
        if self.closed:
            return
        await send_error(self.send_json, SessionError.from_exception(exc, self.session_id))

    def release(self) -> None:
        """Drop buffered audio and context; the session is unusable afterwards."""
        self.closed = True
        self.buffer.clear()
        self.context_text = None
