"""Image preprocessing: bound the resolution and re-encode as JPEG.

Large photographs are downscaled so the longer side is at most
``max_dimension`` and then pushed through a JPEG encode/decode cycle. The
feature formulas downstream use fixed normalization constants, so every
image has to reach them at a comparable scale and encoding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from coinlens.imaging.features import round_half_up
from coinlens.imaging.raster import RasterImage, decode_image, encode_jpeg, resample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreprocessConfig:
    """Resolution bound and JPEG quality (0-1 scale) for preprocessing."""

    max_dimension: int = 1920
    reencode_quality: float = 0.92


DEFAULT_PREPROCESS_CONFIG = PreprocessConfig()


def target_dimensions(width: int, height: int, config: PreprocessConfig = DEFAULT_PREPROCESS_CONFIG) -> tuple[int, int]:
    """Return the output size for an image of ``width`` x ``height``.

    Images within bounds keep their size. Otherwise the longer side becomes
    ``max_dimension`` and the other side is scaled by the same factor;
    squares take the second branch so both sides come out equal.
    """
    limit = config.max_dimension
    if width <= limit and height <= limit:
        return width, height

    if width > height:
        new_width = limit
        new_height = height * limit / width
    else:
        new_width = width * limit / height
        new_height = limit

    return max(1, round_half_up(new_width)), max(1, round_half_up(new_height))


def _resize_to_bounds(image: RasterImage, config: PreprocessConfig) -> RasterImage:
    width, height = target_dimensions(image.width, image.height, config)
    if (width, height) != image.size:
        logger.debug("Resizing %dx%d -> %dx%d", image.width, image.height, width, height)
    return resample(image, width, height)


def preprocess(image: RasterImage, config: PreprocessConfig = DEFAULT_PREPROCESS_CONFIG) -> RasterImage:
    """Bound the resolution of ``image`` and return the re-decoded JPEG pixels.

    Raises:
        DecodeError: If the re-encoded image cannot be decoded again.
    """
    bounded = _resize_to_bounds(image, config)
    return decode_image(encode_jpeg(bounded, config.reencode_quality))


def preprocess_bytes(
    image_bytes: bytes,
    config: PreprocessConfig = DEFAULT_PREPROCESS_CONFIG,
    max_pixels: int | None = None,
) -> bytes:
    """Decode raw file bytes, bound the resolution, and return JPEG bytes.

    The output carries no EXIF, ICC, or orientation metadata.

    Raises:
        DecodeError: If ``image_bytes`` is not a readable image.
        UnsupportedImageError: If the image exceeds ``max_pixels``.
    """
    image = decode_image(image_bytes, max_pixels=max_pixels)
    encoded = encode_jpeg(_resize_to_bounds(image, config), config.reencode_quality)
    logger.debug("Preprocessed %d input bytes into %d JPEG bytes", len(image_bytes), len(encoded))
    return encoded
