"""Pydantic request/response schemas for the CoinLens API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from coinlens.grading.models import CoinMetadata, ProcessResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeaturesResponse(_CamelModel):
    """Quality scores for an uploaded image after preprocessing."""

    sharpness: int = Field(ge=0, le=100, description="Mean gradient energy score")
    contrast: int = Field(ge=0, le=100, description="Luminance spread score")
    edge_clarity: int = Field(ge=0, le=100, description="Strong-edge density score")
    width: int = Field(description="Width of the preprocessed image in pixels")
    height: int = Field(description="Height of the preprocessed image in pixels")


class AnalysisResponse(_CamelModel):
    """Features, the metadata sent along with them, and the grading result."""

    features: FeaturesResponse
    metadata: CoinMetadata
    result: ProcessResult


class BaselineRequest(_CamelModel):
    """Baseline value for a denomination."""

    baseline_value: int = Field(ge=0)


class HealthResponse(_CamelModel):
    """Health check response."""

    status: str = "ok"
    grading_configured: bool
    concurrent_requests: int
    queue_depth: int


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
