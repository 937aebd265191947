"""Byte-deviation silence heuristic.

This is a cheap signal-energy proxy, not voice-activity detection: it counts
how many bytes in a prefix of the audio sit further than ``deviation`` from
the neutral midpoint (128). Thresholds are tunable through configuration and
only decide whether a turn is worth sending to the transcription provider.
"""

from __future__ import annotations

import numpy as np

from krackai import constants


def count_active_samples(
    audio: bytes,
    *,
    sample_bytes: int = constants.SILENCE_SAMPLE_BYTES,
    deviation: int = constants.SILENCE_DEVIATION,
) -> int:
    """Count bytes in the first *sample_bytes* of *audio* that deviate from the midpoint."""
    if not audio:
        return 0
    samples = np.frombuffer(audio[:sample_bytes], dtype=np.uint8).astype(np.int16)
    return int(np.count_nonzero(np.abs(samples - constants.SILENCE_MIDPOINT) > deviation))


def is_probably_silent(
    audio: bytes,
    *,
    sample_bytes: int = constants.SILENCE_SAMPLE_BYTES,
    deviation: int = constants.SILENCE_DEVIATION,
    min_active: int = constants.SILENCE_MIN_ACTIVE_SAMPLES,
) -> bool:
    """Return True when fewer than *min_active* sampled bytes look like signal."""
    return count_active_samples(audio, sample_bytes=sample_bytes, deviation=deviation) < min_active
