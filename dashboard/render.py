from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import typer

from dashboard.state import (
    DashboardState,
    Level,
    ZoneState,
    active_notification,
    camera_status,
    moisture_band,
    moisture_label,
    uptime,
)
from models.records import AnalysisOutcome, CaptureResult, ConnectionCheck, PlantHealth, Zone

_SPARK = "▁▂▃▄▅▆▇█"
_ACTIVITY_LINES = 8

_LEVEL_COLORS = {
    Level.info: None,
    Level.success: typer.colors.GREEN,
    Level.error: typer.colors.RED,
}

_HEALTH_COLORS = {
    PlantHealth.healthy: typer.colors.GREEN,
    PlantHealth.needs_water: typer.colors.YELLOW,
    PlantHealth.unhealthy: typer.colors.RED,
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _clock(at: float) -> str:
    return datetime.fromtimestamp(at).strftime("%H:%M:%S")


def _flag(value: Optional[bool], up: str = "ONLINE", down: str = "OFFLINE") -> str:
    if value is None:
        return "--"
    return up if value else down


def sparkline(history: Iterable[int]) -> str:
    top = len(_SPARK) - 1
    return "".join(_SPARK[min(top, value * len(_SPARK) // 101)] for value in history)


def format_zone(zone: Zone, zone_state: ZoneState) -> List[str]:
    if not zone_state.has_data or zone_state.current_value is None:
        return [f"ZONE {zone.value}: waiting for data"]
    value = zone_state.current_value
    lines = [
        f"ZONE {zone.value}: {value:>3}%  [{moisture_band(value)}] {moisture_label(value)}",
        f"  trend {sparkline(zone_state.history)}",
    ]
    if zone_state.updated_at is not None:
        lines[0] += f"  LAST: {_clock(zone_state.updated_at)}"
    if zone_state.last_health is not None:
        health = zone_state.last_health
        lines.append(
            f"  plant health {health.label} ({round(health.confidence * 100)}% confidence)"
        )
    return lines


def format_dashboard(state: DashboardState, now: float) -> List[str]:
    """Build the text view of a state snapshot; no side effects."""
    liveness = state.liveness
    lines = [
        f"PLANT MONITOR  {_clock(now)}  UPTIME: {uptime(state, now)}",
        "",
    ]
    lines.extend(format_zone(Zone.A, state.zone_a))
    lines.extend(format_zone(Zone.B, state.zone_b))
    lines.append("")
    lines.append(
        "SENSOR {}  CAMERA {}  STREAM {} (frames {})  ML {}".format(
            _flag(liveness.sensor_online, "ACTIVE"),
            _flag(camera_status(state), "STREAM ACTIVE"),
            _flag(liveness.stream_rendering, "STREAMING"),
            state.frame_count,
            _flag(liveness.inference_online, "CONNECTED"),
        )
    )
    last_capture = _clock(state.last_capture_at) if state.last_capture_at else "--"
    capture_note = "  (capturing...)" if state.capture_in_flight else ""
    lines.append(
        f"READINGS {state.reading_count}  ALERTS {state.alert_count}  "
        f"CAPTURES {state.capture_count}  LAST CAPTURE {last_capture}{capture_note}"
    )

    notification = active_notification(state, now)
    if notification is not None:
        lines.append("")
        lines.append(f">> {notification.message}")

    lines.append("")
    lines.append(f"ACTIVITY ({len(state.activity)} ENTRIES)")
    for entry in state.activity[-_ACTIVITY_LINES:]:
        lines.append(f"[{_clock(entry.at)}] > {entry.message}")
    return lines


def render_dashboard(state: DashboardState, now: Optional[float] = None, clear: bool = False) -> None:
    if clear:
        typer.clear()
    current = time.time() if now is None else now
    for line in format_dashboard(state, current):
        if line.startswith(">> "):
            notification = state.notification
            color = _LEVEL_COLORS.get(notification.level) if notification else None
            typer.secho(line, fg=color, bold=True)
        else:
            typer.echo(line)


def render_capture(result: CaptureResult) -> None:
    echo_heading("Capture")
    color = typer.colors.GREEN if result.success else typer.colors.RED
    typer.secho(result.message, fg=color)
    if result.filename:
        echo_key_values([("filename", result.filename)])


def render_connection(check: ConnectionCheck) -> None:
    echo_heading("Camera")
    color = typer.colors.GREEN if check.reachable else typer.colors.RED
    typer.secho("ONLINE" if check.reachable else "OFFLINE", fg=color)
    echo_key_values([("message", check.message), ("status", check.status)])


def health_color(label: Optional[str]) -> Optional[str]:
    """Colour for a known health label; unknown labels stay uncoloured."""
    try:
        return _HEALTH_COLORS[PlantHealth(label)]
    except ValueError:
        return None


def render_analysis(outcome: AnalysisOutcome, zone: Zone) -> None:
    echo_heading(f"Zone {zone.value} analysis")
    if not outcome.success:
        typer.secho(outcome.message, fg=typer.colors.RED)
        return
    category = outcome.category
    typer.secho(
        f"health: {outcome.health}",
        fg=_HEALTH_COLORS[category] if category is not None else None,
        bold=category is PlantHealth.unhealthy,
    )
    echo_key_values([("confidence", f"{round(outcome.confidence * 100)}%")])


def render_zone_health(zone: Zone, label: str, confidence: float) -> None:
    typer.secho(
        f"zone {zone.value} health: {label} ({round(confidence * 100)}% confidence)",
        fg=health_color(label),
    )


def render_images(images: List[Dict[str, Any]]) -> None:
    echo_heading("Captured images")
    if not images:
        typer.echo("No captures yet.")
        return
    for image in images:
        typer.echo(f"  - {image.get('filename')}  {image.get('timestamp')}  {image.get('path')}")
