from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

import pytest
import typer
from typer.testing import CliRunner

from dashboard.aggregator import DashboardAggregator
from dashboard.app import app
from dashboard.config import DashboardConfig
from dashboard.render import health_color
from models.records import AnalysisOutcome, CaptureResult, ConnectionCheck, Zone


class StubRelay:
    def __init__(self) -> None:
        self.moisture: Optional[int] = 42
        self.capture_result = CaptureResult(True, "Image captured successfully!", "image_123.jpg")
        self.check = ConnectionCheck(reachable=True, message="Camera is reachable", status=200)
        self.images: List[Dict[str, Any]] = [
            {"filename": "image_2.jpg", "path": "/captures/image_2.jpg", "timestamp": "2024-01-01T00:00:02Z"},
            {"filename": "image_1.jpg", "path": "/captures/image_1.jpg", "timestamp": "2024-01-01T00:00:01Z"},
        ]
        self.closed = False

    async def get_data(self) -> Dict[str, Any]:
        if self.moisture is None:
            raise ValueError("relay offline")
        return {"moisture": self.moisture, "lastUpdate": None}

    async def capture(self) -> CaptureResult:
        return self.capture_result

    async def test_camera(self) -> ConnectionCheck:
        return self.check

    async def fetch_image(self, filename: str) -> bytes:
        return b"jpeg"

    async def list_images(self) -> List[Dict[str, Any]]:
        return self.images

    async def aclose(self) -> None:
        self.closed = True


class StubInference:
    def __init__(self) -> None:
        self.outcome = AnalysisOutcome(True, "Analysis complete", "Healthy", 0.88)
        self.zones: List[Zone] = []

    async def analyze(self, image: bytes, filename: str, zone: Zone) -> AnalysisOutcome:
        self.zones.append(zone)
        return self.outcome

    async def check_health(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stubs(monkeypatch):
    relay, inference = StubRelay(), StubInference()
    configs: List[DashboardConfig] = []

    def factory(config: DashboardConfig) -> DashboardAggregator:
        configs.append(config)
        return DashboardAggregator(
            relay=relay,  # type: ignore[arg-type]
            inference=inference,  # type: ignore[arg-type]
            config=config,
            rng=random.Random(3),
        )

    monkeypatch.setattr("dashboard.app.build_aggregator", factory)
    return relay, inference, configs


def test_status_renders_zones(stubs, runner: CliRunner) -> None:
    relay, _, configs = stubs

    result = runner.invoke(app, ["--relay-url", "http://relay.test:3000/", "status"])

    assert result.exit_code == 0
    assert "ZONE A:  42%" in result.stdout
    assert "MODERATE" in result.stdout
    assert "READINGS 1" in result.stdout
    assert configs[0].relay_url == "http://relay.test:3000"
    assert relay.closed is True


def test_status_fails_when_relay_unreachable(stubs, runner: CliRunner) -> None:
    relay, _, _ = stubs
    relay.moisture = None

    result = runner.invoke(app, ["status"])

    assert result.exit_code == 1


def test_capture_with_analysis(stubs, runner: CliRunner) -> None:
    _, inference, _ = stubs

    result = runner.invoke(app, ["capture", "--analyze", "b"])

    assert result.exit_code == 0
    assert "image_123.jpg" in result.stdout
    assert "zone B health: Healthy (88% confidence)" in result.stdout
    assert inference.zones == [Zone.B]


def test_capture_failure_exits_non_zero(stubs, runner: CliRunner) -> None:
    relay, inference, _ = stubs
    relay.capture_result = CaptureResult(False, "Camera not reachable. Check connection.")

    result = runner.invoke(app, ["capture", "--analyze", "A"])

    assert result.exit_code == 1
    assert "Camera not reachable" in result.stdout
    assert inference.zones == []


def test_analyze_command(stubs, runner: CliRunner) -> None:
    result = runner.invoke(app, ["analyze", "image_1.jpg", "--zone", "A"])

    assert result.exit_code == 0
    assert "health: Healthy" in result.stdout
    assert "confidence: 88%" in result.stdout


def test_test_camera_command(stubs, runner: CliRunner) -> None:
    relay, _, _ = stubs
    relay.check = ConnectionCheck(reachable=False, message="Camera returned status 404")

    result = runner.invoke(app, ["test-camera"])

    assert result.exit_code == 1
    assert "OFFLINE" in result.stdout
    assert "Camera returned status 404" in result.stdout


def test_images_command(stubs, runner: CliRunner) -> None:
    result = runner.invoke(app, ["images"])

    assert result.exit_code == 0
    lines = [line for line in result.stdout.splitlines() if "image_" in line]
    assert "image_2.jpg" in lines[0]
    assert "image_1.jpg" in lines[1]


def test_watch_runs_for_duration(stubs, runner: CliRunner) -> None:
    result = runner.invoke(
        app,
        ["--poll-interval", "0.05", "watch", "--duration", "0.3", "--no-interactive", "--no-clear"],
    )

    assert result.exit_code == 0
    assert "PLANT MONITOR" in result.stdout
    assert "SENSOR POLLING STARTED" in result.stdout


@pytest.mark.parametrize(
    ("label", "color"),
    [
        ("Healthy", typer.colors.GREEN),
        ("Needs Water", typer.colors.YELLOW),
        ("Unhealthy", typer.colors.RED),
        ("Wilting", None),
        (None, None),
    ],
)
def test_health_labels_map_to_colors(label, color) -> None:
    assert health_color(label) == color
