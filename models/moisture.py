"""Moisture coercion shared by the sensor store and the dashboard."""

from __future__ import annotations

import re
from typing import Union

MOISTURE_MIN = 0
MOISTURE_MAX = 100

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_moisture(raw: Union[str, int, float, None]) -> int:
    """Parse the leading integer of ``raw``; anything unparseable becomes 0.

    ``"42"``, ``"42.9"`` and ``" 42%"`` all parse to 42.
    """
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if raw != raw or raw in (float("inf"), float("-inf")):
            return 0
        return int(raw)
    match = _LEADING_INT.match(str(raw))
    if match is None:
        return 0
    return int(match.group(1))


def clamp_moisture(value: int) -> int:
    return max(MOISTURE_MIN, min(MOISTURE_MAX, value))


def coerce_moisture(raw: Union[str, int, float, None]) -> int:
    """Parse and clamp a raw moisture value into [0, 100]."""
    return clamp_moisture(parse_moisture(raw))
