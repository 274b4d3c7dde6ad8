"""Environment-based configuration for CoinLens."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from COINLENS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COINLENS_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083

    # Authentication (None = disabled)
    api_key: str | None = None

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=64_000_000, ge=1)
    max_file_size: int = Field(default=52_428_800, ge=1)

    # Grading service (None = grading disabled)
    grading_url: str | None = None
    grading_timeout: float = Field(default=10.0, gt=0.0)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
