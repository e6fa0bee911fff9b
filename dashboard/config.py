from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_RELAY_URL = "http://localhost:3000"
DEFAULT_INFERENCE_URL = "http://localhost:5002"
DEFAULT_STREAM_URL = "http://192.168.0.118:81/stream"
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_SETTLE_DELAY = 2.0
DEFAULT_CAMERA_TEST_DELAY = 0.8
DEFAULT_STREAM_INTERVAL = 5.0
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_INFERENCE_TIMEOUT = 30.0

_RELAY_URL_ENV = "RELAY_BASE_URL"
_INFERENCE_URL_ENV = "INFERENCE_BASE_URL"
_STREAM_URL_ENV = "CAMERA_STREAM_URL"
_POLL_INTERVAL_ENV = "DASHBOARD_POLL_INTERVAL"
_SETTLE_DELAY_ENV = "DASHBOARD_SETTLE_DELAY"
_STREAM_INTERVAL_ENV = "DASHBOARD_STREAM_INTERVAL"
_TIMEOUT_ENV = "DASHBOARD_REQUEST_TIMEOUT"
_INFERENCE_TIMEOUT_ENV = "INFERENCE_TIMEOUT_SEC"


@dataclass(frozen=True)
class DashboardConfig:
    relay_url: str = DEFAULT_RELAY_URL
    inference_url: str = DEFAULT_INFERENCE_URL
    stream_url: Optional[str] = DEFAULT_STREAM_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    settle_delay: float = DEFAULT_SETTLE_DELAY
    camera_test_delay: float = DEFAULT_CAMERA_TEST_DELAY
    stream_interval: float = DEFAULT_STREAM_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    inference_timeout: float = DEFAULT_INFERENCE_TIMEOUT


def _read_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_stream_url(value: Optional[str]) -> Optional[str]:
    # An explicitly empty variable disables the frame probe.
    if value is None:
        return DEFAULT_STREAM_URL
    candidate = value.strip()
    return candidate or None


def load_config(
    relay_url: Optional[str] = None,
    inference_url: Optional[str] = None,
    stream_url: Optional[str] = None,
    poll_interval: Optional[float] = None,
    settle_delay: Optional[float] = None,
    request_timeout: Optional[float] = None,
) -> DashboardConfig:
    relay = relay_url or os.getenv(_RELAY_URL_ENV) or DEFAULT_RELAY_URL
    inference = inference_url or os.getenv(_INFERENCE_URL_ENV) or DEFAULT_INFERENCE_URL
    stream = stream_url if stream_url is not None else _read_stream_url(os.getenv(_STREAM_URL_ENV))
    if poll_interval is None:
        poll_interval = _read_float(os.getenv(_POLL_INTERVAL_ENV), DEFAULT_POLL_INTERVAL)
    if settle_delay is None:
        settle_delay = _read_float(os.getenv(_SETTLE_DELAY_ENV), DEFAULT_SETTLE_DELAY)
    if request_timeout is None:
        request_timeout = _read_float(os.getenv(_TIMEOUT_ENV), DEFAULT_REQUEST_TIMEOUT)
    inference_timeout = _read_float(os.getenv(_INFERENCE_TIMEOUT_ENV), DEFAULT_INFERENCE_TIMEOUT)
    return DashboardConfig(
        relay_url=relay.rstrip("/"),
        inference_url=inference.rstrip("/"),
        stream_url=stream or None,
        poll_interval=poll_interval,
        settle_delay=settle_delay,
        stream_interval=_read_float(os.getenv(_STREAM_INTERVAL_ENV), DEFAULT_STREAM_INTERVAL),
        request_timeout=request_timeout,
        inference_timeout=inference_timeout,
    )
