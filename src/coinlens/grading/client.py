"""Client for the remote grading/value service.

The service owns all grading logic. This module only ships integer scores
and the metadata JSON string to it and parses the structured reply.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx
from pydantic import ValidationError

from coinlens.grading.models import ProcessResult

if TYPE_CHECKING:
    from coinlens.config import Settings
    from coinlens.grading.models import CoinMetadata
    from coinlens.imaging.features import ImageFeatures

logger = logging.getLogger(__name__)


class GradingServiceError(RuntimeError):
    """The grading service could not be reached or returned an unusable reply."""


class GradingClient(Protocol):
    """Protocol for the grading collaborator (kept for test doubles)."""

    async def process_coin(self, metadata: CoinMetadata, features: ImageFeatures) -> ProcessResult:
        """Grade a coin from its metadata and image features."""
        ...

    async def configure_baseline(self, denomination: str, baseline_value: int) -> None:
        """Set the baseline value used for a denomination."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


class HttpGradingClient:
    """JSON-over-HTTP implementation of ``GradingClient`` built on httpx."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings) -> HttpGradingClient | None:
        """Build a client from settings, or return None when no URL is configured."""
        if settings.grading_url is None:
            return None
        return cls(settings.grading_url, timeout=settings.grading_timeout)

    async def process_coin(self, metadata: CoinMetadata, features: ImageFeatures) -> ProcessResult:
        payload = {
            "metadata": metadata.to_metadata_json(),
            "sharpness": features.sharpness,
            "contrast": features.contrast,
            "edgeClarity": features.edge_clarity,
        }
        response = await self._post("/process-coin", payload)
        try:
            result = ProcessResult.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise GradingServiceError(f"Malformed grading response: {exc}") from exc

        logger.info(
            "Graded %s %s as %s (estimated value %d)",
            metadata.year,
            metadata.denomination,
            result.grade_outcome.grade_label,
            result.value_report.estimated_value,
        )
        return result

    async def configure_baseline(self, denomination: str, baseline_value: int) -> None:
        if baseline_value < 0:
            raise ValueError("baseline_value must be non-negative")
        await self._post("/baselines", {"denomination": denomination, "baselineValue": baseline_value})
        logger.info("Configured baseline for %s: %d", denomination, baseline_value)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, object]) -> httpx.Response:
        try:
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GradingServiceError(
                f"Grading service returned {exc.response.status_code} for {path}"
            ) from exc
        except httpx.HTTPError as exc:
            raise GradingServiceError(f"Grading service request to {path} failed: {exc}") from exc
        return response
