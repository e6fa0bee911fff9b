from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, NoReturn, Optional, TypeVar

import httpx
import typer

from dashboard.aggregator import DashboardAggregator, build_aggregator
from dashboard.config import DashboardConfig, load_config
from dashboard.render import (
    render_analysis,
    render_capture,
    render_connection,
    render_dashboard,
    render_images,
    render_zone_health,
)
from logging_config import configure_logging
from models.records import Zone

T = TypeVar("T")


@dataclass
class CLIState:
    config: DashboardConfig


app = typer.Typer(
    help="Terminal dashboard for the plant relay.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _run_session(
    config: DashboardConfig,
    action: Callable[[DashboardAggregator], Awaitable[T]],
) -> T:
    async def session() -> T:
        aggregator = build_aggregator(config)
        try:
            return await action(aggregator)
        finally:
            await aggregator.aclose()

    return asyncio.run(session())


def _fail(message: str) -> NoReturn:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    relay_url: Optional[str] = typer.Option(
        None,
        "--relay-url",
        "-r",
        help="Relay base URL (defaults to RELAY_BASE_URL env or http://localhost:3000).",
    ),
    inference_url: Optional[str] = typer.Option(
        None,
        "--inference-url",
        help="Inference service base URL (defaults to INFERENCE_BASE_URL env).",
    ),
    stream_url: Optional[str] = typer.Option(
        None,
        "--stream-url",
        help="Camera stream URL used for frame liveness; pass '' to disable.",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between moisture polls.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds.",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Log level for diagnostics written to stderr.",
    ),
) -> None:
    """Entry point for the dashboard CLI."""
    configure_logging(log_level.upper())
    config = load_config(
        relay_url=relay_url,
        inference_url=inference_url,
        stream_url=stream_url,
        poll_interval=poll_interval,
        request_timeout=timeout,
    )
    ctx.obj = CLIState(config=config)


def _attach_stdin(aggregator: DashboardAggregator) -> Callable[[], None]:
    """Feed stdin lines to the aggregator as commands; returns a detach callback."""
    loop = asyncio.get_running_loop()
    stdin = sys.stdin

    def on_input() -> None:
        line = stdin.readline()
        if not line:
            loop.remove_reader(stdin)
            return
        aggregator.submit(line)

    try:
        loop.add_reader(stdin, on_input)
    except (NotImplementedError, OSError, ValueError):
        return lambda: None
    return lambda: loop.remove_reader(stdin)


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    duration: Optional[float] = typer.Option(
        None,
        "--duration",
        "-d",
        help="Stop after this many seconds (default: run until 'quit' or Ctrl-C).",
    ),
    interactive: bool = typer.Option(
        True,
        "--interactive/--no-interactive",
        help="Read commands (capture [A|B], analyze FILE A|B, test, sync, refresh, quit) from stdin.",
    ),
    clear: bool = typer.Option(True, "--clear/--no-clear", help="Clear the screen between frames."),
) -> None:
    """Run the live dashboard: 1 Hz polling, liveness and activity log."""
    state = _get_state(ctx)

    async def action(aggregator: DashboardAggregator) -> Any:
        detach = _attach_stdin(aggregator) if interactive and sys.stdin.isatty() else None
        try:
            return await aggregator.run(
                duration=duration,
                render=lambda snapshot: render_dashboard(snapshot, clear=clear),
            )
        finally:
            if detach is not None:
                detach()

    try:
        _run_session(state.config, action)
    except KeyboardInterrupt:
        typer.echo()


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Poll the relay once and show the current zones."""
    state = _get_state(ctx)

    async def action(aggregator: DashboardAggregator) -> Any:
        ok = await aggregator.poll_once()
        return ok, aggregator.state

    ok, snapshot = _run_session(state.config, action)
    if not ok:
        _fail(f"Sensor feed unavailable at {state.config.relay_url}.")
    render_dashboard(snapshot)


@app.command("capture")
def capture_command(
    ctx: typer.Context,
    analyze: Optional[Zone] = typer.Option(
        None,
        "--analyze",
        "-a",
        case_sensitive=False,
        help="Analyze the new capture for this zone (A or B).",
    ),
) -> None:
    """Trigger a camera capture, optionally followed by analysis."""
    state = _get_state(ctx)

    async def action(aggregator: DashboardAggregator) -> Any:
        result = await aggregator.capture(analyze_zone=analyze)
        return result, aggregator.state

    result, snapshot = _run_session(state.config, action)
    if result is None:
        _fail("A capture is already in progress.")
    render_capture(result)
    if analyze is not None and result.success:
        health = snapshot.zone(analyze).last_health
        if health is None:
            _fail(f"Analysis for zone {analyze.value} failed.")
        render_zone_health(analyze, health.label, health.confidence)
    if not result.success:
        raise typer.Exit(code=1)


@app.command("analyze")
def analyze_command(
    ctx: typer.Context,
    filename: str = typer.Argument(..., help="Capture filename, e.g. image_1700000000000.jpg."),
    zone: Zone = typer.Option(..., "--zone", "-z", case_sensitive=False, help="Zone A or B."),
) -> None:
    """Send a stored capture to the inference service."""
    state = _get_state(ctx)
    outcome = _run_session(state.config, lambda aggregator: aggregator.analyze(filename, zone))
    render_analysis(outcome, zone)
    if not outcome.success:
        raise typer.Exit(code=1)


@app.command("test-camera")
def test_camera_command(ctx: typer.Context) -> None:
    """Check whether the camera is reachable through the relay."""
    state = _get_state(ctx)
    check = _run_session(state.config, lambda aggregator: aggregator.test_camera())
    render_connection(check)
    if not check.reachable:
        raise typer.Exit(code=1)


@app.command("sync")
def sync_command(ctx: typer.Context) -> None:
    """Poll the sensor and re-check the inference service."""
    state = _get_state(ctx)

    async def action(aggregator: DashboardAggregator) -> Any:
        await aggregator.sync()
        return aggregator.state

    snapshot = _run_session(state.config, action)
    render_dashboard(snapshot)


@app.command("images")
def images_command(ctx: typer.Context) -> None:
    """List captured images, newest first."""
    state = _get_state(ctx)
    try:
        images = _run_session(state.config, lambda aggregator: aggregator.relay.list_images())
    except (httpx.HTTPError, ValueError) as exc:
        _fail(f"Could not list images: {exc}")
    render_images(images)
