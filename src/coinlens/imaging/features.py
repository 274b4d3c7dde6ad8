"""Deterministic quality features: sharpness, contrast, and edge clarity.

All three scores come from the luminance plane of an RGBA raster:

* sharpness: mean 2-tap central-difference gradient magnitude over the
  interior pixels, scaled by 50;
* contrast: population standard deviation of luminance over every pixel,
  scaled by 70;
* edge clarity: fraction of interior pixels whose gradient magnitude
  exceeds 30, scaled by 0.15.

The constants are part of the scoring protocol and feed value estimates
downstream, so they must not be tuned. Arithmetic is float64 and sums are
accumulated sequentially in row-major order so results are reproducible
across platforms.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from coinlens.imaging.errors import UnsupportedImageError
from coinlens.imaging.raster import decode_image

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from coinlens.imaging.raster import RasterImage

logger = logging.getLogger(__name__)

LUMA_RED: float = 0.299
LUMA_GREEN: float = 0.587
LUMA_BLUE: float = 0.114

SHARPNESS_SCALE: float = 50.0
CONTRAST_SCALE: float = 70.0
EDGE_THRESHOLD: float = 30.0
EDGE_DENSITY_SCALE: float = 0.15

MIN_DIMENSION: int = 3
MAX_SCORE: int = 100


@dataclass(frozen=True)
class ImageFeatures:
    """Integer quality scores in [0, 100]."""

    sharpness: int
    contrast: int
    edge_clarity: int

    def as_dict(self) -> dict[str, int]:
        return {
            "sharpness": self.sharpness,
            "contrast": self.contrast,
            "edgeClarity": self.edge_clarity,
        }


def luminance(image: RasterImage) -> NDArray[np.float64]:
    """Return the HxW float64 luminance plane of ``image``; alpha is ignored."""
    pixels = image.as_array()
    red = pixels[..., 0].astype(np.float64)
    green = pixels[..., 1].astype(np.float64)
    blue = pixels[..., 2].astype(np.float64)
    return LUMA_RED * red + LUMA_GREEN * green + LUMA_BLUE * blue


def gradient_magnitudes(gray: NDArray[np.float64]) -> NDArray[np.float64]:
    """Return the (H-2)x(W-2) gradient magnitudes of the interior pixels.

    ``gx = gray(x+1, y) - gray(x-1, y)`` and ``gy = gray(x, y+1) - gray(x, y-1)``;
    this is deliberately not a 3x3 Sobel kernel.
    """
    gx = gray[1:-1, 2:] - gray[1:-1, :-2]
    gy = gray[2:, 1:-1] - gray[:-2, 1:-1]
    return np.sqrt(gx * gx + gy * gy)


def _sequential_sum(values: NDArray[np.float64]) -> float:
    # numpy's sum() is pairwise; accumulate keeps the left-to-right order.
    flat = values.ravel()
    if flat.size == 0:
        return 0.0
    return float(np.add.accumulate(flat)[-1])


def _to_score(value: float, scale: float) -> int:
    raw = min(float(MAX_SCORE), value / scale * 100)
    return max(0, min(MAX_SCORE, round_half_up(raw)))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity.

    The fraction is compared against 0.5 instead of adding 0.5 first, since
    ``0.49999999999999994 + 0.5`` is exactly ``1.0`` in binary floating point.
    """
    floored = math.floor(value)
    return floored + 1 if value - floored >= 0.5 else floored


def sharpness_score(magnitudes: NDArray[np.float64]) -> int:
    avg_magnitude = _sequential_sum(magnitudes) / magnitudes.size
    return _to_score(avg_magnitude, SHARPNESS_SCALE)


def contrast_score(gray: NDArray[np.float64]) -> int:
    count = gray.size
    mean = _sequential_sum(gray) / count
    deviation = gray - mean
    variance = _sequential_sum(deviation * deviation) / count
    return _to_score(math.sqrt(variance), CONTRAST_SCALE)


def edge_clarity_score(magnitudes: NDArray[np.float64]) -> int:
    strong_edges = int(np.count_nonzero(magnitudes > EDGE_THRESHOLD))
    edge_density = strong_edges / magnitudes.size
    return _to_score(edge_density, EDGE_DENSITY_SCALE)


def extract_features(image: RasterImage) -> ImageFeatures:
    """Compute sharpness, contrast, and edge clarity for a decoded raster.

    Raises:
        UnsupportedImageError: If either side is shorter than 3 pixels, leaving
            no interior pixel for the gradient window.
    """
    if image.width < MIN_DIMENSION or image.height < MIN_DIMENSION:
        raise UnsupportedImageError(
            f"Image of {image.width}x{image.height} is too small; both sides must be at least {MIN_DIMENSION} pixels"
        )

    gray = luminance(image)
    magnitudes = gradient_magnitudes(gray)

    features = ImageFeatures(
        sharpness=sharpness_score(magnitudes),
        contrast=contrast_score(gray),
        edge_clarity=edge_clarity_score(magnitudes),
    )
    logger.debug(
        "Extracted features from %dx%d image: sharpness=%d contrast=%d edge_clarity=%d",
        image.width,
        image.height,
        features.sharpness,
        features.contrast,
        features.edge_clarity,
    )
    return features


def extract_features_from_bytes(image_bytes: bytes, max_pixels: int | None = None) -> ImageFeatures:
    """Decode ``image_bytes`` and extract features without preprocessing.

    Raises:
        DecodeError: If the bytes are not a readable image.
        UnsupportedImageError: If the image is too small or too large.
    """
    return extract_features(decode_image(image_bytes, max_pixels=max_pixels))
