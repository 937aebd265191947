"""Centralized ID generation utilities."""

import uuid


def generate_session_id() -> str:
    """Generate a unique session ID.

    Returns:
        ``session-`` followed by 16 hex characters.
    """
    return f"session-{uuid.uuid4().hex[:16]}"

