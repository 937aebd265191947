"""Audio buffering, silence heuristics and speech-to-text adapters."""
