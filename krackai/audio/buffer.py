"""AudioBuffer — per-session accumulation of binary audio fragments.

The buffer is volatile working state for one turn: it is append-only until
flushed, and it is flushed after every transcription attempt (successful,
silent or failed) so audio can never leak into the next turn.
"""

from __future__ import annotations

import logging

from krackai.errors import LimitExceeded

logger = logging.getLogger(__name__)


class AudioBuffer:
    """Ordered audio chunks with a running byte total and hard caps.

    Parameters
    ----------
    max_chunks : int
        Maximum number of chunks held at once.
    max_bytes : int
        Maximum sum of chunk lengths held at once.
    """

    def __init__(self, *, max_chunks: int, max_bytes: int) -> None:
        self._max_chunks = max_chunks
        self._max_bytes = max_bytes
        self._chunks: list[bytes] = []
        self._total_bytes: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    def __len__(self) -> int:
        return self._total_bytes

    def __bool__(self) -> bool:
        return bool(self._chunks)

    def append(self, chunk: bytes) -> None:
        """Append *chunk*, or raise ``LimitExceeded`` leaving the buffer untouched."""
        if len(self._chunks) >= self._max_chunks:
            raise LimitExceeded(
                "Too many audio chunks buffered. Please transcribe or clear first.",
                detail=f"chunk cap {self._max_chunks} reached",
            )
        if self._total_bytes + len(chunk) > self._max_bytes:
            raise LimitExceeded(
                "Audio buffer is full. Please transcribe or clear first.",
                detail=f"byte cap {self._max_bytes} would be exceeded "
                f"({self._total_bytes} + {len(chunk)})",
            )
        self._chunks.append(chunk)
        self._total_bytes += len(chunk)

    def concat(self) -> bytes:
        """Return all buffered audio as one contiguous byte string."""
        return b"".join(self._chunks)

    def clear(self) -> None:
        """Drop every chunk and reset the byte counter."""
        if self._chunks:
            logger.debug("[Buffer] Cleared %d chunks (%d bytes).", len(self._chunks), self._total_bytes)
        self._chunks = []
        self._total_bytes = 0
