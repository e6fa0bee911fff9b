"""Holds the latest moisture reading pushed by the device."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Union

from models.moisture import coerce_moisture
from models.records import SensorReading

logger = logging.getLogger(__name__)


class SensorStore:
    """Single-slot store; each push overwrites the previous reading."""

    def __init__(self) -> None:
        self._reading = SensorReading(moisture=0, observed_at=None)

    def push(self, raw_moisture: Union[str, int, float, None]) -> SensorReading:
        reading = SensorReading(
            moisture=coerce_moisture(raw_moisture),
            observed_at=datetime.now(timezone.utc),
        )
        self._reading = reading
        logger.info(
            "Moisture reading stored",
            extra={"moisture": reading.moisture, "reason": f"raw={raw_moisture!r}"},
        )
        return reading

    def read(self) -> SensorReading:
        current = self._reading
        return SensorReading(moisture=current.moisture, observed_at=current.observed_at)


@lru_cache
def build_default_sensor_store() -> SensorStore:
    return SensorStore()
