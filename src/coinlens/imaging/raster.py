"""Raster image value type and the Pillow codec boundary.

Everything that knows the RGBA row-major byte layout lives here:
``pixel_at`` for single-pixel reads, ``RasterImage.as_array`` for whole-plane
access. Decoding, resampling, and JPEG encoding go through Pillow so the
numeric code never deals with file formats.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from coinlens.imaging.errors import DecodeError, ImageAnalysisError, UnsupportedImageError

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

CHANNELS: int = 4

# 16-bit grayscale variants plus 32-bit "I", which Pillow also uses for 16-bit PNG and TIFF data.
_SIXTEEN_BIT_MODES = frozenset({"I;16", "I;16L", "I;16B", "I;16N", "I"})


def pixel_at(buffer: bytes, width: int, x: int, y: int) -> tuple[int, int, int, int]:
    """Return the ``(r, g, b, a)`` tuple of pixel ``(x, y)`` in an RGBA buffer.

    Raises:
        IndexError: If ``(x, y)`` falls outside the image.
    """
    height = len(buffer) // (width * CHANNELS) if width > 0 else 0
    if not (0 <= x < width and 0 <= y < height):
        raise IndexError(f"Pixel ({x}, {y}) outside {width}x{height} image")
    offset = (y * width + x) * CHANNELS
    r, g, b, a = buffer[offset : offset + CHANNELS]
    return r, g, b, a


def _to_eight_bit(image: Image.Image) -> Image.Image:
    # Image.convert() clips I;16 and I samples at 255 instead of rescaling them.
    if image.mode in _SIXTEEN_BIT_MODES:
        samples = np.asarray(image).astype(np.int64)
        if samples.size and (samples.min() < 0 or samples.max() > 0xFFFF):
            raise DecodeError(f"Mode {image.mode} image has samples outside the 16-bit range")
        return Image.fromarray((samples >> 8).astype(np.uint8))
    if image.mode == "F":
        raise DecodeError("Floating-point images are not supported")
    return image


@dataclass(frozen=True)
class RasterImage:
    """A decoded image: RGBA, 8 bits per channel, row-major."""

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise DecodeError(f"Negative image dimensions {self.width}x{self.height}")
        expected = self.width * self.height * CHANNELS
        if len(self.data) != expected:
            raise DecodeError(
                f"Pixel buffer holds {len(self.data)} bytes, expected {expected} for {self.width}x{self.height} RGBA"
            )

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def pixel_at(self, x: int, y: int) -> tuple[int, int, int, int]:
        return pixel_at(self.data, self.width, x, y)

    def as_array(self) -> NDArray[np.uint8]:
        """Return a read-only HxWx4 view of the pixel buffer."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, CHANNELS)

    @classmethod
    def from_array(cls, array: NDArray[np.uint8]) -> RasterImage:
        """Build a raster from an HxWx4 (RGBA) or HxWx3 (RGB, opaque) uint8 array."""
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise DecodeError(f"Expected an HxWx3 or HxWx4 array, got shape {array.shape}")
        if array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array.astype(np.uint8, copy=False), alpha], axis=2)
        height, width = array.shape[:2]
        return cls(width=width, height=height, data=np.ascontiguousarray(array, dtype=np.uint8).tobytes())

    @classmethod
    def from_pil(cls, image: Image.Image) -> RasterImage:
        """Build a raster from any Pillow image; high-bit-depth grayscale is scaled to 8 bits.

        Raises:
            DecodeError: For floating-point images and integer images outside the 16-bit range.
        """
        image = _to_eight_bit(image)
        rgba = image if image.mode == "RGBA" else image.convert("RGBA")
        width, height = rgba.size
        return cls(width=width, height=height, data=rgba.tobytes())

    def to_pil(self) -> Image.Image:
        return Image.frombytes("RGBA", self.size, self.data)


def decode_image(image_bytes: bytes, max_pixels: int | None = None) -> RasterImage:
    """Decode raw file bytes into an RGBA raster.

    EXIF orientation is applied to the pixels; no other metadata survives.

    Args:
        image_bytes: Raw file bytes in any format Pillow can read.
        max_pixels: Optional upper bound on ``width * height``.

    Returns:
        The decoded ``RasterImage``.

    Raises:
        DecodeError: If the bytes are not a readable image.
        UnsupportedImageError: If the image exceeds ``max_pixels``.
    """
    if not image_bytes:
        raise DecodeError("Empty image data")

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if max_pixels is not None and width * height > max_pixels:
                raise UnsupportedImageError(f"Image of {width}x{height} exceeds the {max_pixels} pixel limit")
            img.load()
            oriented = ImageOps.exif_transpose(img)
            raster = RasterImage.from_pil(oriented)
    except ImageAnalysisError:
        raise
    except Image.DecompressionBombError as exc:
        raise UnsupportedImageError(str(exc)) from exc
    except UnidentifiedImageError as exc:
        raise DecodeError("Data is not a recognized image format") from exc
    except (OSError, ValueError, SyntaxError) as exc:
        raise DecodeError(f"Failed to decode image: {exc}") from exc

    logger.debug("Decoded %dx%d image", raster.width, raster.height)
    return raster


def resample(image: RasterImage, width: int, height: int) -> RasterImage:
    """Resize with Lanczos antialiasing; returns the input when the size already matches."""
    if (width, height) == image.size:
        return image
    resized = image.to_pil().resize((width, height), Image.Resampling.LANCZOS)
    return RasterImage.from_pil(resized)


def encode_jpeg(image: RasterImage, quality: float) -> bytes:
    """Encode a raster as baseline JPEG with 4:2:0 chroma subsampling.

    ``quality`` is on the 0-1 scale (0.92 maps to Pillow quality 92).
    Transparent pixels are composited onto opaque black first.
    """
    pil_quality = max(1, min(100, round(quality * 100)))
    rgba = image.to_pil()
    background = Image.new("RGBA", rgba.size, (0, 0, 0, 255))
    rgb = Image.alpha_composite(background, rgba).convert("RGB")

    buffer = io.BytesIO()
    try:
        rgb.save(buffer, format="JPEG", quality=pil_quality, subsampling="4:2:0")
    except (OSError, ValueError) as exc:
        raise DecodeError(f"Failed to encode JPEG: {exc}") from exc
    return buffer.getvalue()
