"""Per-connection session engines for the interview pipeline.

Each module encapsulates one piece of the turn pipeline: the wire protocol,
per-session state, the transcription and answer phases, and the buffered and
realtime session engines that drive them.
"""
