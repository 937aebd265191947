import json
import logging
from collections import deque
from datetime import datetime, timezone

from krackai import constants


class SessionEventLog:
    """Bounded in-memory log of WebSocket session events (connect, disconnect, error)."""

    def __init__(self, maxlen: int = constants.DEBUG_EVENT_LOG_SIZE):
        self.logger = logging.getLogger("krackai.debug")
        self.events: deque = deque(maxlen=maxlen)

    def log_ws_event(self, event_type: str, session_id: str, details: dict | None = None):
        """Record a WebSocket lifecycle event."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": event_type,
            "session_id": session_id,
            "details": details or {},
        }
        self.events.append(entry)
        self.logger.info("[WS] %s: %s", event_type, json.dumps(entry))

    def log_session_error(self, session_id: str, code: str, error: Exception | None = None):
        """Record an error reported to a client. Only the exception type is kept."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": "session_error",
            "session_id": session_id,
            "code": code,
            "error": type(error).__name__ if error else None,
        }
        self.events.append(entry)
        self.logger.debug("[WS] session_error: %s", json.dumps(entry))

    def get_recent_events(self, limit: int = 100) -> list:
        """Return recent debug events, oldest first."""
        if limit <= 0:
            return []
        return list(self.events)[-limit:]


event_log = SessionEventLog()
