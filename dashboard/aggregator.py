"""Orchestrates polling, commands and liveness for the dashboard."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, List, Optional, Set

import httpx

from dashboard.client import RelayClient
from dashboard.config import DashboardConfig
from dashboard.scheduler import SingleSlotScheduler
from dashboard.state import (
    DashboardState,
    Level,
    apply_camera_test,
    apply_frame,
    apply_health,
    apply_inference_status,
    apply_poll,
    apply_poll_failure,
    begin_capture,
    draw_jitter,
    finish_capture,
    initial_state,
    log_activity,
    notify,
)
from dashboard.stream import StreamProbe
from models.records import AnalysisOutcome, CaptureResult, ConnectionCheck, Zone
from services.inference import InferenceClient

logger = logging.getLogger(__name__)

Renderer = Callable[[DashboardState], None]


class DashboardAggregator:
    """Owns the single :class:`DashboardState` of a dashboard session.

    All work runs on one asyncio loop. The poll loop, the clock, the stream
    probe and operator commands are separate tasks, so a slow capture never
    delays the next moisture poll.
    """

    def __init__(
        self,
        relay: RelayClient,
        inference: InferenceClient,
        config: DashboardConfig,
        stream: Optional[StreamProbe] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.relay = relay
        self.inference = inference
        self.config = config
        self.stream = stream
        self._rng = rng or random.Random()
        self._clock = clock
        self.state = initial_state(clock())
        self.poller = SingleSlotScheduler(config.poll_interval, self.poll_once)
        self._stop = asyncio.Event()
        self._commands: Set[asyncio.Task[Any]] = set()

    async def aclose(self) -> None:
        await self.relay.aclose()
        await self.inference.aclose()
        if self.stream is not None:
            await self.stream.aclose()

    def _log(self, message: str, level: Level = Level.info) -> None:
        self.state = log_activity(self.state, message, level, self._clock())

    def _notify(self, message: str, level: Level) -> None:
        self.state = notify(self.state, message, level, self._clock())

    async def poll_once(self) -> bool:
        """Fetch the current reading and fold it into both zones."""
        try:
            payload = await self.relay.get_data()
        except (httpx.HTTPError, ValueError) as exc:
            if self.state.liveness.sensor_online is not False:
                self._log("SENSOR FEED OFFLINE", Level.error)
            logger.debug("Sensor poll failed", extra={"reason": repr(exc)})
            self.state = apply_poll_failure(self.state)
            return False

        moisture = payload.get("moisture")
        if moisture is None:
            return False
        self.state = apply_poll(self.state, moisture, draw_jitter(self._rng), self._clock())
        return True

    async def capture(self, analyze_zone: Optional[Zone] = None) -> Optional[CaptureResult]:
        """Capture an image; optionally analyze that same capture for ``analyze_zone``.

        Returns ``None`` without contacting the relay when a capture is
        already in flight.
        """
        if self.state.capture_in_flight:
            self._log("CAPTURE ALREADY IN PROGRESS", Level.info)
            return None

        self.state = begin_capture(self.state)
        self._log("CAPTURE REQUEST SENT...")
        try:
            result = await self.relay.capture()
        except (httpx.HTTPError, ValueError) as exc:
            result = CaptureResult(success=False, message=f"Capture request failed: {exc}")
            self._notify("CAPTURE ERROR", Level.error)
            self._log(f"CAPTURE EXCEPTION: {exc}", Level.error)
            self.state = finish_capture(self.state, result, self._clock())
            return result
        except BaseException:
            self.state = finish_capture(self.state, None, self._clock())
            raise

        self.state = finish_capture(self.state, result, self._clock())
        if not result.success:
            self._notify(result.message, Level.error)
            self._log(f"CAPTURE FAILED: {result.message}", Level.error)
            return result

        self._notify(result.message, Level.success)
        self._log(f"IMAGE SAVED: {result.filename or 'unknown'}", Level.success)
        if analyze_zone is not None and result.filename:
            await self.analyze(result.filename, analyze_zone)
        return result

    async def analyze(self, filename: str, zone: Zone) -> AnalysisOutcome:
        self._log(f"ANALYZING {filename} FOR ZONE {zone.value}...")
        try:
            image = await self.relay.fetch_image(filename)
        except httpx.HTTPError as exc:
            outcome = AnalysisOutcome(success=False, message=f"Could not fetch {filename}: {exc}")
        else:
            outcome = await self.inference.analyze(image, filename, zone)

        if not outcome.success:
            self._log(f"ML ANALYSIS FAILED: {outcome.message}", Level.error)
            self._notify("ML ANALYSIS FAILED", Level.error)
            return outcome

        health = outcome.health or "Unknown"
        self.state = apply_health(self.state, zone, health, outcome.confidence)
        self._log(
            f"ZONE {zone.value}: {health} ({round(outcome.confidence * 100)}% CONFIDENCE)",
            Level.success,
        )
        self._notify(f"Zone {zone.value}: {health}", Level.success)
        return outcome

    async def test_camera(self) -> ConnectionCheck:
        self._log("CAMERA PING INITIATED...")
        try:
            check = await self.relay.test_camera()
        except (httpx.HTTPError, ValueError) as exc:
            self._notify("CAMERA TEST ERROR", Level.error)
            self._log(f"CAM TEST EXCEPTION: {exc}", Level.error)
            return ConnectionCheck(reachable=False, message=str(exc))

        self.state = apply_camera_test(self.state, check.reachable)
        if check.reachable:
            self._notify("CAMERA ONLINE", Level.success)
            self._log(f"CAMERA PING OK: {check.message}", Level.success)
        else:
            self._notify("CAMERA UNREACHABLE", Level.error)
            self._log(f"CAMERA PING FAIL: {check.message}", Level.error)
        return check

    async def check_inference(self) -> bool:
        online = await self.inference.check_health()
        self.state = apply_inference_status(self.state, online)
        if online:
            self._log("ML SERVER CONNECTED", Level.success)
        else:
            self._log("ML SERVER OFFLINE", Level.error)
        return online

    def record_frame(self, ok: bool) -> None:
        self.state = apply_frame(self.state, ok)

    async def probe_stream(self) -> Optional[bool]:
        if self.stream is None:
            return None
        ok = await self.stream.probe()
        self.record_frame(ok)
        return ok

    async def sync(self) -> None:
        """Poll now and re-check the inference service."""
        self._log("MANUAL SYNC TRIGGERED")
        self._notify("SYNCING ALL DATA", Level.info)
        pending: List[Awaitable[Any]] = [self.check_inference()]
        poll = self.poller.tick()
        if poll is not None:
            pending.append(poll)
        await asyncio.gather(*pending)

    async def dispatch(self, line: str) -> bool:
        """Run one operator command. Returns ``False`` when the session should end."""
        words = line.strip().split()
        if not words:
            return True
        command, args = words[0].lower(), words[1:]
        if command in {"q", "quit", "exit"}:
            self.stop()
            return False
        if command in {"c", "capture"}:
            zone = _parse_zone(args[0]) if args else None
            if args and zone is None:
                self._notify(f"Unknown zone {args[0]!r}", Level.error)
                return True
            await self.capture(analyze_zone=zone)
        elif command in {"a", "analyze"} and len(args) == 2:
            zone = _parse_zone(args[1])
            if zone is None:
                self._notify(f"Unknown zone {args[1]!r}", Level.error)
                return True
            await self.analyze(args[0], zone)
        elif command in {"t", "test"}:
            await self.test_camera()
        elif command in {"s", "sync"}:
            await self.sync()
        elif command in {"r", "refresh"}:
            self._log("STREAM REFRESHED")
            await self.probe_stream()
        else:
            self._notify(f"Unknown command: {line.strip()}", Level.error)
        return True

    def submit(self, line: str) -> None:
        """Schedule ``dispatch`` as an independent task."""
        task = asyncio.create_task(self.dispatch(line))
        self._commands.add(task)
        task.add_done_callback(self._commands.discard)

    def stop(self) -> None:
        self._stop.set()

    async def run(
        self,
        duration: Optional[float] = None,
        render: Optional[Renderer] = None,
    ) -> DashboardState:
        """Run the live session until ``duration`` elapses or ``stop`` is called."""
        self._log(f"SENSOR POLLING STARTED ({1 / self.config.poll_interval:g} Hz)", Level.success)
        self._log("ZONES A & B INITIALIZED")

        tasks = [
            asyncio.create_task(self.poller.run()),
            asyncio.create_task(_after(self.config.camera_test_delay, self.test_camera)),
            asyncio.create_task(_after(self.config.settle_delay, self.check_inference)),
        ]
        if self.stream is not None:
            tasks.append(asyncio.create_task(self._stream_loop()))
        if render is not None:
            tasks.append(asyncio.create_task(self._clock_loop(render)))

        try:
            if duration is None:
                await self._stop.wait()
            else:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    pass
        finally:
            pending = tasks + list(self._commands)
            for task in pending:
                task.cancel()
            results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                raise result
        if render is not None:
            render(self.state)
        return self.state

    async def _stream_loop(self) -> None:
        while True:
            await self.probe_stream()
            await asyncio.sleep(self.config.stream_interval)

    async def _clock_loop(self, render: Renderer) -> None:
        while True:
            render(self.state)
            await asyncio.sleep(1.0)


async def _after(delay: float, action: Callable[[], Awaitable[Any]]) -> None:
    await asyncio.sleep(delay)
    await action()


def _parse_zone(value: str) -> Optional[Zone]:
    try:
        return Zone(value.upper())
    except ValueError:
        return None


def build_aggregator(config: DashboardConfig) -> DashboardAggregator:
    """Factory that wires the aggregator with real HTTP clients."""
    stream = StreamProbe(config.stream_url) if config.stream_url else None
    return DashboardAggregator(
        relay=RelayClient(config),
        inference=InferenceClient(config.inference_url, timeout=config.inference_timeout),
        config=config,
        stream=stream,
    )
