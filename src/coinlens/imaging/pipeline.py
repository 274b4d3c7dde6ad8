"""End-to-end analysis: raw upload bytes -> preprocessed JPEG -> features."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from coinlens.imaging.features import ImageFeatures, extract_features
from coinlens.imaging.preprocessing import DEFAULT_PREPROCESS_CONFIG, PreprocessConfig, preprocess_bytes
from coinlens.imaging.raster import decode_image

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageAnalysis:
    """Features plus the size of the preprocessed image they were computed on."""

    features: ImageFeatures
    width: int
    height: int


def analyze_image(
    image_bytes: bytes,
    config: PreprocessConfig = DEFAULT_PREPROCESS_CONFIG,
    max_pixels: int | None = None,
) -> ImageAnalysis:
    """Preprocess raw image bytes and extract quality features.

    Features are computed on the decoded JPEG produced by preprocessing, so
    identical uploads always yield identical scores.

    Raises:
        DecodeError: If the bytes are not a readable image.
        UnsupportedImageError: If the image is too small or exceeds ``max_pixels``.
    """
    normalized = decode_image(preprocess_bytes(image_bytes, config, max_pixels=max_pixels))
    features = extract_features(normalized)
    logger.info(
        "Analyzed %dx%d image (sharpness=%d, contrast=%d, edge_clarity=%d)",
        normalized.width,
        normalized.height,
        features.sharpness,
        features.contrast,
        features.edge_clarity,
    )
    return ImageAnalysis(features=features, width=normalized.width, height=normalized.height)
