"""Dashboard session state and its pure transition functions.

Every ``apply_*`` function takes a :class:`DashboardState` and returns a new
one; nothing here performs I/O, reads the clock or draws random numbers.
Callers pass ``now`` (epoch seconds) and the Zone B jitter explicitly.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from models.moisture import clamp_moisture, coerce_moisture
from models.records import CaptureResult, Zone

HISTORY_LIMIT = 30
ACTIVITY_LIMIT = 50
DRY_THRESHOLD = 30
MODERATE_THRESHOLD = 60
ZONE_B_JITTER = 3
NOTIFICATION_TTL = 3.5


class Level(str, Enum):
    info = "info"
    success = "success"
    error = "error"


@dataclass(frozen=True)
class HealthStatus:
    label: str
    confidence: float


@dataclass(frozen=True)
class ZoneState:
    current_value: Optional[int] = None
    history: tuple[int, ...] = ()
    last_health: Optional[HealthStatus] = None
    updated_at: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.current_value is not None


@dataclass(frozen=True)
class Liveness:
    """Outcome of the most recent probe per dependency; ``None`` means unknown."""

    sensor_online: Optional[bool] = None
    camera_online: Optional[bool] = None
    inference_online: Optional[bool] = None
    stream_rendering: Optional[bool] = None


@dataclass(frozen=True)
class ActivityEntry:
    at: float
    message: str
    level: Level = Level.info


@dataclass(frozen=True)
class Notification:
    message: str
    level: Level
    expires_at: float


@dataclass(frozen=True)
class DashboardState:
    started_at: float
    zone_a: ZoneState = field(default_factory=ZoneState)
    zone_b: ZoneState = field(default_factory=ZoneState)
    liveness: Liveness = field(default_factory=Liveness)
    reading_count: int = 0
    alert_count: int = 0
    capture_count: int = 0
    frame_count: int = 0
    last_capture_at: Optional[float] = None
    capture_in_flight: bool = False
    activity: tuple[ActivityEntry, ...] = ()
    notification: Optional[Notification] = None

    def zone(self, zone: Zone) -> ZoneState:
        return self.zone_a if zone is Zone.A else self.zone_b


def initial_state(now: float) -> DashboardState:
    return DashboardState(started_at=now)


def append_history(
    history: tuple[int, ...], value: int, limit: int = HISTORY_LIMIT
) -> tuple[int, ...]:
    """Append ``value`` keeping only the most recent ``limit`` entries."""
    extended = history + (value,)
    if len(extended) > limit:
        return extended[-limit:]
    return extended


def draw_jitter(rng: Optional[random.Random] = None) -> int:
    source = rng if rng is not None else random
    return round(source.uniform(-ZONE_B_JITTER, ZONE_B_JITTER))


def derive_zone_b(zone_a_value: int, jitter: int) -> int:
    """Zone B has no sensor: it tracks zone A with bounded jitter."""
    bounded = max(-ZONE_B_JITTER, min(ZONE_B_JITTER, jitter))
    return clamp_moisture(zone_a_value + bounded)


def _set_zone(state: DashboardState, zone: Zone, zone_state: ZoneState) -> DashboardState:
    if zone is Zone.A:
        return replace(state, zone_a=zone_state)
    return replace(state, zone_b=zone_state)


def _record_value(zone_state: ZoneState, value: int, now: float) -> ZoneState:
    return replace(
        zone_state,
        current_value=value,
        history=append_history(zone_state.history, value),
        updated_at=now,
    )


def apply_poll(
    state: DashboardState,
    raw_moisture: Union[str, int, float, None],
    jitter: int,
    now: float,
) -> DashboardState:
    value_a = coerce_moisture(raw_moisture)
    value_b = derive_zone_b(value_a, jitter)
    alerting = value_a < DRY_THRESHOLD
    return replace(
        state,
        zone_a=_record_value(state.zone_a, value_a, now),
        zone_b=_record_value(state.zone_b, value_b, now),
        liveness=replace(state.liveness, sensor_online=True),
        reading_count=state.reading_count + 1,
        alert_count=state.alert_count + 1 if alerting else state.alert_count,
    )


def apply_poll_failure(state: DashboardState) -> DashboardState:
    """Mark the sensor offline; zone values stay at their last known state."""
    return replace(state, liveness=replace(state.liveness, sensor_online=False))


def begin_capture(state: DashboardState) -> DashboardState:
    return replace(state, capture_in_flight=True)


def finish_capture(
    state: DashboardState, result: Optional[CaptureResult], now: float
) -> DashboardState:
    """Release the capture guard; ``result`` is ``None`` when the request itself failed."""
    updated = replace(state, capture_in_flight=False)
    if result is not None and result.success:
        updated = replace(
            updated,
            capture_count=updated.capture_count + 1,
            last_capture_at=now,
        )
    return updated


def apply_health(
    state: DashboardState, zone: Zone, label: str, confidence: float
) -> DashboardState:
    zone_state = replace(state.zone(zone), last_health=HealthStatus(label, confidence))
    return _set_zone(state, zone, zone_state)


def apply_camera_test(state: DashboardState, reachable: bool) -> DashboardState:
    """An explicit probe sets both the camera flag and the video-feed signal."""
    return replace(
        state,
        liveness=replace(state.liveness, camera_online=reachable, stream_rendering=reachable),
    )


def apply_frame(state: DashboardState, ok: bool) -> DashboardState:
    updated = replace(state, liveness=replace(state.liveness, stream_rendering=ok))
    if ok:
        updated = replace(updated, frame_count=updated.frame_count + 1)
    return updated


def apply_inference_status(state: DashboardState, online: bool) -> DashboardState:
    return replace(state, liveness=replace(state.liveness, inference_online=online))


def log_activity(
    state: DashboardState, message: str, level: Level, now: float
) -> DashboardState:
    entries = state.activity + (ActivityEntry(at=now, message=message, level=level),)
    if len(entries) > ACTIVITY_LIMIT:
        entries = entries[-ACTIVITY_LIMIT:]
    return replace(state, activity=entries)


def notify(
    state: DashboardState,
    message: str,
    level: Level,
    now: float,
    ttl: float = NOTIFICATION_TTL,
) -> DashboardState:
    """Replace the current notification; a newer one always wins."""
    return replace(
        state,
        notification=Notification(message=message, level=level, expires_at=now + ttl),
    )


def active_notification(state: DashboardState, now: float) -> Optional[Notification]:
    notification = state.notification
    if notification is None or notification.expires_at <= now:
        return None
    return notification


def camera_status(state: DashboardState) -> Optional[bool]:
    """Combined camera status; the video-feed signal wins whenever it is known."""
    liveness = state.liveness
    if liveness.stream_rendering is not None:
        return liveness.stream_rendering
    return liveness.camera_online


def moisture_band(value: int) -> str:
    if value < DRY_THRESHOLD:
        return "DRY"
    if value < MODERATE_THRESHOLD:
        return "MODERATE"
    return "OPTIMAL"


def moisture_label(value: int) -> str:
    band = moisture_band(value)
    if band == "DRY":
        return "DRY - NEEDS WATER"
    if band == "MODERATE":
        return "MODERATE - OK"
    return "WET - OPTIMAL"


def format_uptime(seconds: float) -> str:
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def uptime(state: DashboardState, now: float) -> str:
    return format_uptime(now - state.started_at)
