"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Form, HTTPException, Request, UploadFile, status
from pydantic import ValidationError

from coinlens.api.middleware import verify_api_key
from coinlens.api.schemas import (
    AnalysisResponse,
    BaselineRequest,
    ErrorResponse,
    FeaturesResponse,
    HealthResponse,
)
from coinlens.grading.client import GradingServiceError
from coinlens.grading.models import CoinMetadata
from coinlens.imaging.errors import ImageAnalysisError
from coinlens.imaging.pipeline import analyze_image
from coinlens.imaging.preprocessing import DEFAULT_PREPROCESS_CONFIG

if TYPE_CHECKING:
    from coinlens.config import Settings
    from coinlens.grading.client import GradingClient
    from coinlens.imaging.pipeline import ImageAnalysis
    from coinlens.imaging.pool import AnalysisPool

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_IMAGE_ERRORS = {
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
    status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ErrorResponse},
    status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_analysis_pool(request: Request) -> AnalysisPool:
    pool: AnalysisPool = request.app.state.analysis_pool
    return pool


def _get_grading_client(request: Request) -> GradingClient:
    client: GradingClient | None = request.app.state.grading_client
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Grading service is not configured",
        )
    return client


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


async def _read_upload(file: UploadFile, settings: Settings) -> bytes:
    data = await file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Upload exceeds {settings.max_file_size} bytes",
        )
    return data


async def _analyze_upload(request: Request, file: UploadFile) -> ImageAnalysis:
    settings = _get_settings(request)
    pool = _get_analysis_pool(request)
    data = await _read_upload(file, settings)

    try:
        return await pool.run(analyze_image, data, DEFAULT_PREPROCESS_CONFIG, settings.max_image_pixels)
    except TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Too many concurrent analyses, retry later",
        ) from None
    except ImageAnalysisError as exc:
        logger.info("Rejected upload %r: %s", file.filename, exc)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


def _features_response(analysis: ImageAnalysis) -> FeaturesResponse:
    return FeaturesResponse(
        sharpness=analysis.features.sharpness,
        contrast=analysis.features.contrast,
        edge_clarity=analysis.features.edge_clarity,
        width=analysis.width,
        height=analysis.height,
    )


@router.post(
    "/features",
    response_model=FeaturesResponse,
    responses=_IMAGE_ERRORS,
    summary="Extract quality features from a coin photograph",
)
async def extract_features(request: Request, file: UploadFile) -> FeaturesResponse:
    """Preprocess an uploaded image and return its sharpness, contrast, and edge clarity."""
    analysis = await _analyze_upload(request, file)
    return _features_response(analysis)


@router.post(
    "/analyze",
    response_model=AnalysisResponse,
    responses={
        **_IMAGE_ERRORS,
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
    },
    summary="Extract features and request a grade and value estimate",
)
async def analyze_coin(
    request: Request,
    file: UploadFile,
    country: Annotated[str, Form()],
    denomination: Annotated[str, Form()],
    year: Annotated[str, Form()],
    mint_mark: Annotated[str, Form(alias="mintMark")] = "",
    notes: Annotated[str, Form()] = "",
) -> AnalysisResponse:
    """Analyze an uploaded coin image and forward the scores to the grading service."""
    try:
        metadata = CoinMetadata(
            country=country,
            denomination=denomination,
            year=year,
            mint_mark=mint_mark,
            notes=notes,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_format_validation_error(exc),
        ) from exc

    grading_client = _get_grading_client(request)
    analysis = await _analyze_upload(request, file)

    try:
        result = await grading_client.process_coin(metadata, analysis.features)
    except GradingServiceError as exc:
        logger.error("Grading failed for %s %s: %s", metadata.year, metadata.denomination, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    return AnalysisResponse(
        features=_features_response(analysis),
        metadata=metadata,
        result=result,
    )


@router.put(
    "/baselines/{denomination}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Set the baseline value for a denomination",
)
async def configure_baseline(request: Request, denomination: str, body: BaselineRequest) -> None:
    """Forward a baseline value to the grading service."""
    grading_client = _get_grading_client(request)
    try:
        await grading_client.configure_baseline(denomination, body.baseline_value)
    except GradingServiceError as exc:
        logger.error("Baseline update for %s failed: %s", denomination, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    pool = _get_analysis_pool(request)
    return HealthResponse(
        status="ok",
        grading_configured=request.app.state.grading_client is not None,
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )
