"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coinlens.api.routes import router
from coinlens.config import get_settings
from coinlens.grading.client import HttpGradingClient
from coinlens.imaging.pool import AnalysisPool

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting CoinLens (max_concurrent=%s, max_image_pixels=%s, grading=%s)",
        settings.max_concurrent,
        settings.max_image_pixels,
        settings.grading_url or "disabled",
    )

    analysis_pool = AnalysisPool(settings)
    app.state.analysis_pool = analysis_pool
    grading_client = HttpGradingClient.from_settings(settings)
    app.state.grading_client = grading_client

    logger.info("CoinLens ready")
    yield

    logger.info("Shutting down CoinLens")
    if grading_client is not None:
        await grading_client.aclose()
    analysis_pool.shutdown()
    logger.info("CoinLens shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="CoinLens",
        description="Deterministic coin photo quality features and grading relay",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("coinlens.main:app", host=settings.host, port=settings.port)
