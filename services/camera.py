"""Proxy for the ESP32 camera: captures and connectivity checks."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import lru_cache
from typing import Optional

import httpx

from models.records import CaptureResult, ConnectionCheck
from settings import get_settings
from storage.captures import CaptureStore, build_default_store

logger = logging.getLogger(__name__)

CAPTURE_OK_MESSAGE = "Image captured successfully!"
CAMERA_UNREACHABLE_MESSAGE = "Camera not reachable. Check connection."


class CameraGateway:
    """Talks to the camera over HTTP and persists successful captures.

    Every failure is reported through the returned result object; nothing
    raised by httpx or the filesystem escapes ``capture`` or
    ``test_connection``.
    """

    def __init__(
        self,
        capture_url: str,
        store: CaptureStore,
        capture_timeout: float = 8.0,
        test_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.capture_url = capture_url
        self.store = store
        self.capture_timeout = capture_timeout
        self.test_timeout = test_timeout
        self._client = httpx.AsyncClient(transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _download(self, filename: str) -> Optional[int]:
        """Stream the capture into the store; returns the status on rejection."""
        async with self._client.stream(
            "GET", self.capture_url, timeout=self.capture_timeout
        ) as response:
            if not response.is_success:
                return response.status_code
            with self.store.open_writer(filename) as handle:
                async for chunk in response.aiter_bytes():
                    handle.write(chunk)
        return None

    async def capture(self) -> CaptureResult:
        """Fetch one frame within ``capture_timeout`` seconds overall."""
        start = time.perf_counter()
        filename = self.store.new_filename()
        try:
            rejected = await asyncio.wait_for(
                self._download(filename), timeout=self.capture_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Camera capture exceeded deadline",
                extra={
                    "url": self.capture_url,
                    "elapsed_ms": int((time.perf_counter() - start) * 1000),
                },
            )
            return CaptureResult(success=False, message=CAMERA_UNREACHABLE_MESSAGE)
        except httpx.HTTPError as exc:
            logger.warning(
                "Camera not reachable during capture",
                extra={"url": self.capture_url, "reason": repr(exc)},
            )
            return CaptureResult(success=False, message=CAMERA_UNREACHABLE_MESSAGE)
        except (OSError, KeyError) as exc:
            logger.error(
                "Failed to save captured image",
                extra={"capture_file": filename, "reason": str(exc)},
            )
            return CaptureResult(success=False, message=f"Failed to save image: {exc}")

        if rejected is not None:
            logger.warning(
                "Camera rejected capture request",
                extra={"status": rejected, "url": self.capture_url},
            )
            return CaptureResult(success=False, message=f"Camera returned status {rejected}")

        logger.info(
            "Image saved",
            extra={
                "capture_file": filename,
                "elapsed_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return CaptureResult(success=True, message=CAPTURE_OK_MESSAGE, filename=filename)

    async def test_connection(self) -> ConnectionCheck:
        """Probe the camera without persisting anything; only HTTP 200 counts."""
        try:
            response = await self._client.get(self.capture_url, timeout=self.test_timeout)
        except httpx.HTTPError as exc:
            logger.info(
                "Camera probe failed",
                extra={"url": self.capture_url, "reason": repr(exc)},
            )
            return ConnectionCheck(reachable=False, message=f"Camera not reachable: {exc}")

        if response.status_code == httpx.codes.OK:
            return ConnectionCheck(
                reachable=True,
                message="Camera is reachable",
                status=response.status_code,
            )
        logger.info("Camera probe returned non-200", extra={"status": response.status_code})
        return ConnectionCheck(
            reachable=False,
            message=f"Camera returned status {response.status_code}",
            status=response.status_code,
        )


@lru_cache
def build_default_camera() -> CameraGateway:
    """Factory that wires the gateway with configured URLs and timeouts."""
    settings = get_settings()
    return CameraGateway(
        capture_url=settings.camera_capture_url,
        store=build_default_store(),
        capture_timeout=settings.capture_timeout,
        test_timeout=settings.camera_test_timeout,
    )
