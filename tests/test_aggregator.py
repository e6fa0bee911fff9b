"""Dashboard aggregator orchestration against stubbed collaborators."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

import httpx
import pytest

from dashboard.aggregator import DashboardAggregator
from dashboard.config import DashboardConfig
from dashboard.scheduler import SingleSlotScheduler
from dashboard.state import HealthStatus
from models.records import AnalysisOutcome, CaptureResult, ConnectionCheck, Zone
from services.inference import InferenceClient


class StubRelay:
    def __init__(self) -> None:
        self.moisture: Any = 50
        self.data_error: Optional[Exception] = None
        self.capture_results: List[CaptureResult] = []
        self.capture_gate: Optional[asyncio.Event] = None
        self.capture_calls = 0
        self.camera_check = ConnectionCheck(reachable=True, message="Camera is reachable", status=200)
        self.images: Dict[str, bytes] = {}
        self.fetched: List[str] = []
        self.closed = False

    async def get_data(self) -> Dict[str, Any]:
        if self.data_error is not None:
            raise self.data_error
        return {"moisture": self.moisture, "lastUpdate": None}

    async def capture(self) -> CaptureResult:
        self.capture_calls += 1
        if self.capture_gate is not None:
            await self.capture_gate.wait()
        return self.capture_results.pop(0)

    async def test_camera(self) -> ConnectionCheck:
        return self.camera_check

    async def fetch_image(self, filename: str) -> bytes:
        self.fetched.append(filename)
        if filename not in self.images:
            request = httpx.Request("GET", f"http://relay.test/captures/{filename}")
            raise httpx.HTTPStatusError(
                "not found", request=request, response=httpx.Response(404, request=request)
            )
        return self.images[filename]

    async def list_images(self) -> List[Dict[str, Any]]:
        return []

    async def aclose(self) -> None:
        self.closed = True


class StubInference:
    def __init__(self) -> None:
        self.outcome = AnalysisOutcome(
            success=True, message="Analysis complete", health="Healthy", confidence=0.91
        )
        self.online = True
        self.calls: List[tuple[bytes, str, Zone]] = []

    async def analyze(self, image: bytes, filename: str, zone: Zone) -> AnalysisOutcome:
        self.calls.append((image, filename, zone))
        return self.outcome

    async def check_health(self) -> bool:
        return self.online

    async def aclose(self) -> None:
        pass


def _aggregator(relay: StubRelay, inference: StubInference, **config: Any) -> DashboardAggregator:
    settings = DashboardConfig(stream_url=None, **config)
    return DashboardAggregator(
        relay=relay,  # type: ignore[arg-type]
        inference=inference,  # type: ignore[arg-type]
        config=settings,
        rng=random.Random(7),
        clock=lambda: 1_000.0,
    )


def test_poll_success_and_failure_keeps_stale_values() -> None:
    relay, inference = StubRelay(), StubInference()
    aggregator = _aggregator(relay, inference)

    async def scenario() -> None:
        relay.moisture = "22"
        assert await aggregator.poll_once() is True
        relay.data_error = httpx.ConnectError("relay down")
        assert await aggregator.poll_once() is False

    asyncio.run(scenario())

    state = aggregator.state
    assert state.zone_a.current_value == 22
    assert state.liveness.sensor_online is False
    assert state.reading_count == 1
    assert state.alert_count == 1
    assert abs(state.zone_b.current_value - 22) <= 3  # type: ignore[operator]
    assert state.activity[-1].message == "SENSOR FEED OFFLINE"


def test_capture_with_follow_up_analysis_uses_own_filename() -> None:
    relay, inference = StubRelay(), StubInference()
    relay.capture_results = [CaptureResult(True, "Image captured successfully!", "image_100.jpg")]
    relay.images = {"image_100.jpg": b"first", "image_200.jpg": b"newer"}
    aggregator = _aggregator(relay, inference)

    result = asyncio.run(aggregator.capture(analyze_zone=Zone.B))

    assert result is not None and result.success
    assert relay.fetched == ["image_100.jpg"]
    assert inference.calls == [(b"first", "image_100.jpg", Zone.B)]
    assert aggregator.state.capture_count == 1
    assert aggregator.state.capture_in_flight is False
    assert aggregator.state.zone_b.last_health == HealthStatus("Healthy", 0.91)
    assert aggregator.state.zone_a.last_health is None


def test_second_capture_is_rejected_while_first_in_flight() -> None:
    relay, inference = StubRelay(), StubInference()
    relay.capture_results = [CaptureResult(True, "ok", "image_1.jpg")]
    relay.capture_gate = asyncio.Event()
    aggregator = _aggregator(relay, inference)

    async def scenario() -> tuple[Optional[CaptureResult], Optional[CaptureResult]]:
        first = asyncio.create_task(aggregator.capture())
        await asyncio.sleep(0)
        assert aggregator.state.capture_in_flight is True
        second = await aggregator.capture()
        relay.capture_gate.set()  # type: ignore[union-attr]
        return await first, second

    first, second = asyncio.run(scenario())

    assert first is not None and first.success
    assert second is None
    assert relay.capture_calls == 1
    assert aggregator.state.capture_count == 1


def test_capture_failure_does_not_count() -> None:
    relay, inference = StubRelay(), StubInference()
    relay.capture_results = [CaptureResult(False, "Camera not reachable. Check connection.")]
    aggregator = _aggregator(relay, inference)

    result = asyncio.run(aggregator.capture(analyze_zone=Zone.A))

    assert result is not None and not result.success
    assert aggregator.state.capture_count == 0
    assert inference.calls == []
    assert aggregator.state.notification is not None
    assert aggregator.state.activity[-1].message.startswith("CAPTURE FAILED")


def test_failed_analysis_keeps_previous_health() -> None:
    relay, inference = StubRelay(), StubInference()
    relay.images = {"image_1.jpg": b"a", "image_2.jpg": b"b"}
    aggregator = _aggregator(relay, inference)

    async def scenario() -> None:
        await aggregator.analyze("image_1.jpg", Zone.A)
        inference.outcome = AnalysisOutcome(success=False, message="Inference service not reachable")
        await aggregator.analyze("image_2.jpg", Zone.A)
        await aggregator.analyze("image_missing.jpg", Zone.A)

    asyncio.run(scenario())

    assert aggregator.state.zone_a.last_health == HealthStatus("Healthy", 0.91)
    assert len(inference.calls) == 2
    assert aggregator.state.notification is not None
    assert aggregator.state.notification.message == "ML ANALYSIS FAILED"


def test_camera_test_and_inference_check_update_liveness() -> None:
    relay, inference = StubRelay(), StubInference()
    relay.camera_check = ConnectionCheck(reachable=False, message="Camera returned status 500")
    inference.online = False
    aggregator = _aggregator(relay, inference)

    async def scenario() -> None:
        await aggregator.test_camera()
        await aggregator.check_inference()

    asyncio.run(scenario())

    liveness = aggregator.state.liveness
    assert liveness.camera_online is False
    assert liveness.stream_rendering is False
    assert liveness.inference_online is False


def test_sync_polls_and_checks_inference() -> None:
    relay, inference = StubRelay(), StubInference()
    relay.moisture = 70
    aggregator = _aggregator(relay, inference)

    asyncio.run(aggregator.sync())

    assert aggregator.state.reading_count == 1
    assert aggregator.state.liveness.inference_online is True


def test_dispatch_parses_operator_commands() -> None:
    relay, inference = StubRelay(), StubInference()
    relay.capture_results = [CaptureResult(True, "ok", "image_9.jpg")]
    relay.images = {"image_9.jpg": b"nine"}
    aggregator = _aggregator(relay, inference)

    async def scenario() -> List[bool]:
        return [
            await aggregator.dispatch("capture a"),
            await aggregator.dispatch("capture z"),
            await aggregator.dispatch("test"),
            await aggregator.dispatch("quit"),
        ]

    results = asyncio.run(scenario())

    assert results == [True, True, True, False]
    assert inference.calls == [(b"nine", "image_9.jpg", Zone.A)]
    assert relay.capture_calls == 1


def test_run_boots_and_polls_until_duration() -> None:
    relay, inference = StubRelay(), StubInference()
    relay.moisture = 15
    aggregator = _aggregator(
        relay, inference, poll_interval=0.01, settle_delay=0.02, camera_test_delay=0.01
    )
    frames: List[int] = []

    state = asyncio.run(
        aggregator.run(duration=0.2, render=lambda snapshot: frames.append(snapshot.reading_count))
    )

    assert state.reading_count >= 2
    assert state.alert_count == state.reading_count
    assert state.liveness.camera_online is True
    assert state.liveness.inference_online is True
    assert frames


def test_scheduler_skips_ticks_while_job_pending() -> None:
    release = asyncio.Event()
    runs: List[int] = []

    async def slow_job() -> None:
        runs.append(1)
        await release.wait()

    async def scenario() -> SingleSlotScheduler:
        scheduler = SingleSlotScheduler(interval=0.01, job=slow_job)
        assert scheduler.tick() is not None
        await asyncio.sleep(0)
        assert scheduler.tick() is None
        assert scheduler.tick() is None
        release.set()
        await asyncio.sleep(0.01)
        assert scheduler.tick() is not None
        await asyncio.sleep(0)
        await scheduler.cancel()
        return scheduler

    scheduler = asyncio.run(scenario())

    assert scheduler.dispatched == 2
    assert scheduler.skipped == 2
    assert len(runs) == 2


@pytest.mark.parametrize("bad_payload", [ValueError("not json"), httpx.ReadTimeout("slow")])
def test_poll_errors_never_escape(bad_payload: Exception) -> None:
    relay, inference = StubRelay(), StubInference()
    relay.data_error = bad_payload
    aggregator = _aggregator(relay, inference)

    assert asyncio.run(aggregator.poll_once()) is False
    assert aggregator.state.zone_a.has_data is False


def test_capture_then_failed_inference_is_reported_not_raised(caplog) -> None:
    caplog.set_level(logging.INFO)
    relay = StubRelay()
    relay.capture_results = [CaptureResult(True, "Image captured successfully!", "image_300.jpg")]
    relay.images = {"image_300.jpg": b"jpeg"}
    inference = InferenceClient(
        "http://ml.test", transport=httpx.MockTransport(lambda request: httpx.Response(500))
    )
    aggregator = _aggregator(relay, inference)  # type: ignore[arg-type]

    result = asyncio.run(aggregator.capture(analyze_zone=Zone.A))

    assert result is not None and result.success
    assert aggregator.state.capture_count == 1
    assert aggregator.state.zone_a.last_health is None
    assert aggregator.state.notification is not None
    assert aggregator.state.notification.message == "ML ANALYSIS FAILED"
