from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from dashboard.config import DashboardConfig
from models.records import CaptureResult, ConnectionCheck


class RelayClient:
    """Minimal async HTTP client for the relay server.

    Transport failures surface as ``httpx.HTTPError``; malformed payloads as
    ``ValueError``. Callers decide how to report them.
    """

    def __init__(
        self,
        config: DashboardConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.relay_url,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_data(self) -> Dict[str, Any]:
        response = await self._client.get("/data")
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Unexpected payload from /data.")
        return payload

    async def capture(self) -> CaptureResult:
        # Failed captures come back as HTTP 500 with a JSON body worth reading.
        response = await self._client.get("/capture")
        payload = response.json()
        if not isinstance(payload, dict) or "success" not in payload:
            response.raise_for_status()
            raise ValueError("Unexpected payload from /capture.")
        return CaptureResult(
            success=bool(payload.get("success")),
            message=str(payload.get("message") or ""),
            filename=payload.get("filename"),
        )

    async def test_camera(self) -> ConnectionCheck:
        response = await self._client.get("/test-camera")
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Unexpected payload from /test-camera.")
        return ConnectionCheck(
            reachable=bool(payload.get("success")),
            message=str(payload.get("message") or ""),
            status=payload.get("status"),
        )

    async def list_images(self) -> List[Dict[str, Any]]:
        response = await self._client.get("/images")
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, list):
            raise ValueError("Unexpected payload from /images.")
        return payload

    async def fetch_image(self, filename: str) -> bytes:
        response = await self._client.get(f"/captures/{filename}")
        response.raise_for_status()
        return response.content
