"""Domain models shared by the relay and the dashboard."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Zone(str, Enum):
    """Plant-monitoring zones. Only zone A has a real sensor."""

    A = "A"
    B = "B"

    @property
    def field_value(self) -> str:
        """Form value the inference service expects (``zoneA``/``zoneB``)."""
        return f"zone{self.value}"


class PlantHealth(str, Enum):
    """Health labels the inference service is known to return."""

    healthy = "Healthy"
    needs_water = "Needs Water"
    unhealthy = "Unhealthy"


@dataclass(slots=True)
class SensorReading:
    """Latest moisture value pushed by the device."""

    moisture: int
    observed_at: Optional[datetime] = None


@dataclass(slots=True)
class StoredImage:
    """A captured image file in the content store."""

    filename: str
    relative_path: str
    captured_at: datetime


@dataclass(frozen=True)
class CaptureResult:
    success: bool
    message: str
    filename: Optional[str] = None


@dataclass(frozen=True)
class ConnectionCheck:
    reachable: bool
    message: str
    status: Optional[int] = None


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of submitting one image to the inference service."""

    success: bool
    message: str
    health: Optional[str] = None
    confidence: float = 0.0

    @property
    def category(self) -> Optional[PlantHealth]:
        """Known health class, or ``None`` for labels outside the enum."""
        if self.health is None:
            return None
        try:
            return PlantHealth(self.health)
        except ValueError:
            return None
