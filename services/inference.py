"""Client for the external plant-health inference service."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from models.records import AnalysisOutcome, Zone

logger = logging.getLogger(__name__)

HEALTH_STATUS_PATH = "/api/health-status"
ANALYZE_PATH = "/api/analyze"


def _coerce_confidence(value: Any) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0.0
    if parsed != parsed:
        return 0.0
    return max(0.0, min(1.0, parsed))


class InferenceClient:
    """Uploads captured images for analysis and maps the verdict."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check_health(self) -> bool:
        try:
            response = await self._client.get(HEALTH_STATUS_PATH)
        except httpx.HTTPError as exc:
            logger.info(
                "Inference service not reachable",
                extra={"url": self.base_url, "reason": repr(exc)},
            )
            return False
        return response.is_success

    async def analyze(self, image: bytes, filename: str, zone: Zone) -> AnalysisOutcome:
        try:
            response = await self._client.post(
                ANALYZE_PATH,
                files={"image": (filename, image, "image/jpeg")},
                data={"zone": zone.field_value},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Inference service returned an error",
                extra={"status": exc.response.status_code, "capture_file": filename},
            )
            return AnalysisOutcome(
                success=False,
                message=f"Inference service returned status {exc.response.status_code}",
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Inference request failed",
                extra={"capture_file": filename, "reason": repr(exc)},
            )
            return AnalysisOutcome(success=False, message="Inference service not reachable")
        except ValueError:
            return AnalysisOutcome(success=False, message="Inference service sent invalid JSON")

        if not isinstance(payload, dict) or payload.get("success") is not True:
            reason = payload.get("error") if isinstance(payload, dict) else None
            return AnalysisOutcome(
                success=False,
                message=str(reason or "Inference service could not analyze the image"),
            )

        health = payload.get("health")
        outcome = AnalysisOutcome(
            success=True,
            message="Analysis complete",
            health=str(health) if health is not None else "Unknown",
            confidence=_coerce_confidence(payload.get("confidence")),
        )
        logger.info(
            "Image analyzed",
            extra={
                "capture_file": filename,
                "zone": zone.value,
                "health": outcome.health,
                "confidence": outcome.confidence,
            },
        )
        return outcome
