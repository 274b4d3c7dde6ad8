"""Tests for the analysis thread pool and settings."""

from __future__ import annotations

import asyncio
import os
import threading
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from coinlens.config import Settings, get_settings
from coinlens.imaging.pool import AnalysisPool


def _make_settings(**overrides: object) -> Settings:
    defaults: dict[str, object] = {
        "max_concurrent": 2,
        "grading_url": None,
    }
    defaults.update(overrides)
    return Settings(**defaults)  # type: ignore[arg-type]


class TestAnalysisPool:
    async def test_run_returns_result(self) -> None:
        pool = AnalysisPool(_make_settings())
        try:
            assert await pool.run(sum, [1, 2, 3]) == 6
            assert pool.active_count == 0
            assert pool.queue_depth == 0
        finally:
            pool.shutdown()

    async def test_runs_in_worker_thread(self) -> None:
        pool = AnalysisPool(_make_settings())
        try:
            name = await pool.run(lambda: threading.current_thread().name)
            assert name.startswith("coin-analysis")
        finally:
            pool.shutdown()

    async def test_exceptions_propagate(self) -> None:
        def fail() -> None:
            raise ValueError("bad pixels")

        pool = AnalysisPool(_make_settings())
        try:
            with pytest.raises(ValueError, match="bad pixels"):
                await pool.run(fail)
            assert pool.active_count == 0
        finally:
            pool.shutdown()

    async def test_times_out_when_all_slots_busy(self) -> None:
        pool = AnalysisPool(_make_settings(max_concurrent=1), acquire_timeout=0.05)
        release = threading.Event()
        try:
            blocker = asyncio.create_task(pool.run(release.wait, 5.0))
            await asyncio.sleep(0.05)
            assert pool.active_count == 1

            with pytest.raises(TimeoutError):
                await pool.run(lambda: None)
            assert pool.queue_depth == 0

            release.set()
            assert await blocker is True
        finally:
            release.set()
            pool.shutdown()


class TestSettings:
    def test_defaults(self) -> None:
        settings = _make_settings()
        assert settings.port == 8083
        assert settings.api_key is None
        assert settings.max_image_pixels == 64_000_000
        assert settings.grading_timeout == 10.0

    def test_env_overrides(self) -> None:
        env = {
            "COINLENS_MAX_CONCURRENT": "4",
            "COINLENS_GRADING_URL": "http://grader.test",
        }
        with patch.dict(os.environ, env):
            settings = get_settings()
        assert settings.max_concurrent == 4
        assert settings.grading_url == "http://grader.test"

    def test_preprocessing_constants_not_configurable(self) -> None:
        env = {"COINLENS_MAX_DIMENSION": "1024", "COINLENS_REENCODE_QUALITY": "0.8"}
        with patch.dict(os.environ, env):
            settings = get_settings()
        assert "max_dimension" not in Settings.model_fields
        assert "reencode_quality" not in Settings.model_fields
        assert not hasattr(settings, "max_dimension")

    @pytest.mark.parametrize(
        ("field", "value"),
        [("max_concurrent", 0), ("max_file_size", 0), ("grading_timeout", 0.0)],
    )
    def test_bounds_enforced(self, field: str, value: object) -> None:
        with pytest.raises(ValidationError):
            _make_settings(**{field: value})
