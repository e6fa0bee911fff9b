"""Pydantic schemas for the relay HTTP surface."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SensorDataResponse(BaseModel):
    """Current moisture reading as served to the dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    moisture: int = Field(..., ge=0, le=100)
    last_update: Optional[datetime] = Field(default=None, alias="lastUpdate")


class CaptureResponse(BaseModel):
    success: bool
    message: str
    filename: Optional[str] = None


class CameraTestResponse(BaseModel):
    success: bool
    message: str
    status: Optional[int] = Field(
        default=None, description="HTTP status returned by the camera, when reachable."
    )


class ImageEntry(BaseModel):
    """A stored capture listed by the catalog."""

    filename: str
    path: str
    timestamp: datetime


class CatalogError(BaseModel):
    error: str
