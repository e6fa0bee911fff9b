"""Frame-level liveness for the camera's MJPEG stream."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class StreamProbe:
    """Opens the stream and waits for the first chunk of frame data.

    A received chunk counts as a rendered frame; any error counts as a
    stream error.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def probe(self) -> bool:
        try:
            async with self._client.stream("GET", self.url) as response:
                if not response.is_success:
                    return False
                async for chunk in response.aiter_bytes():
                    if chunk:
                        return True
        except httpx.HTTPError as exc:
            logger.debug("Stream probe failed", extra={"url": self.url, "reason": repr(exc)})
            return False
        return False
