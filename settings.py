from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_CAMERA_BASE_URL_ENV = "CAMERA_BASE_URL"
_CAMERA_CAPTURE_PATH_ENV = "CAMERA_CAPTURE_PATH"
_CAPTURE_TIMEOUT_ENV = "CAMERA_CAPTURE_TIMEOUT_SEC"
_CAMERA_TEST_TIMEOUT_ENV = "CAMERA_TEST_TIMEOUT_SEC"
_CAPTURES_ROOT_ENV = "CAPTURES_ROOT_PATH"
_HOST_ENV = "RELAY_HOST"
_PORT_ENV = "RELAY_PORT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    camera_base_url: str
    camera_capture_path: str
    capture_timeout: float
    camera_test_timeout: float
    captures_root_path: str
    host: str
    port: int
    log_level: str

    @property
    def camera_capture_url(self) -> str:
        return f"{self.camera_base_url}{self.camera_capture_path}"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_url_env(name: str, default: str) -> str:
    return _read_str_env(name, default).rstrip("/")


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
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


def _read_port(default: int) -> int:
    value = os.getenv(_PORT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if 0 < parsed < 65536 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _read_path(name: str, default: str) -> str:
    value: Optional[str] = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


@lru_cache
def get_settings() -> Settings:
    capture_path = _read_str_env(_CAMERA_CAPTURE_PATH_ENV, "/capture")
    if not capture_path.startswith("/"):
        capture_path = f"/{capture_path}"
    return Settings(
        camera_base_url=_read_url_env(_CAMERA_BASE_URL_ENV, "http://192.168.0.118"),
        camera_capture_path=capture_path,
        capture_timeout=_read_positive_float(_CAPTURE_TIMEOUT_ENV, 8.0),
        camera_test_timeout=_read_positive_float(_CAMERA_TEST_TIMEOUT_ENV, 5.0),
        captures_root_path=_read_path(_CAPTURES_ROOT_ENV, "./captures"),
        host=_read_str_env(_HOST_ENV, "0.0.0.0"),
        port=_read_port(3000),
        log_level=_read_log_level("INFO"),
    )
