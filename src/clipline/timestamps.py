"""Turns raw provider timestamps into seconds.

Providers disagree on units: AssemblyAI reports milliseconds, caption cues
carry millisecond offsets, Whisper and LLM output use seconds, and stored
documents may hold either. Callers that know their unit pass it; everything
else goes through the magnitude heuristic in `to_seconds`.
"""
from typing import Any

from clipline import util

SECONDS = "s"
MILLISECONDS = "ms"
AUTO = "auto"

MS_THRESHOLD = 1000
PRECISION = 3


def coerce(value: Any) -> float | None:
    return util.to_float(value)


def to_seconds(value: float, unit: str = AUTO) -> float:
    # A genuine 1001-second timestamp is misread as milliseconds under AUTO.
    if unit == MILLISECONDS:
        return value / 1000
    if unit == AUTO and value > MS_THRESHOLD:
        return value / 1000
    return value


def normalize(value: Any, unit: str = AUTO, default: float = 0.0) -> float:
    f = coerce(value)
    if f is None:
        return round(default, PRECISION)
    return round(to_seconds(f, unit), PRECISION)


def normalize_start(value: Any, unit: str = AUTO) -> float:
    return normalize(value, unit, default=0.0)


def normalize_end(value: Any, start: float, unit: str = AUTO) -> float:
    return normalize(value, unit, default=start + 1)
