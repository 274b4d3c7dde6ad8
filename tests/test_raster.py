"""Tests for the raster value type and the Pillow codec boundary."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from coinlens.imaging.errors import DecodeError, UnsupportedImageError
from coinlens.imaging.features import extract_features_from_bytes
from coinlens.imaging.raster import RasterImage, decode_image, encode_jpeg, pixel_at, resample


def _encode(image: Image.Image, fmt: str, **params: object) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


class TestPixelAt:
    def test_row_major_offsets(self) -> None:
        # 3x2 image whose red channel holds the linear pixel index.
        data = bytes(channel for index in range(6) for channel in (index, 10, 20, 255))
        assert pixel_at(data, 3, 0, 0) == (0, 10, 20, 255)
        assert pixel_at(data, 3, 2, 0) == (2, 10, 20, 255)
        assert pixel_at(data, 3, 0, 1) == (3, 10, 20, 255)
        assert pixel_at(data, 3, 2, 1) == (5, 10, 20, 255)

    @pytest.mark.parametrize(("x", "y"), [(-1, 0), (0, -1), (3, 0), (0, 2)])
    def test_out_of_bounds_raises(self, x: int, y: int) -> None:
        data = bytes(3 * 2 * 4)
        with pytest.raises(IndexError):
            pixel_at(data, 3, x, y)

    def test_method_delegates(self) -> None:
        raster = RasterImage.from_array(np.full((2, 2, 3), 9, dtype=np.uint8))
        assert raster.pixel_at(1, 1) == (9, 9, 9, 255)


class TestRasterImage:
    def test_buffer_length_must_match(self) -> None:
        with pytest.raises(DecodeError):
            RasterImage(width=2, height=2, data=bytes(15))

    def test_negative_dimensions_rejected(self) -> None:
        with pytest.raises(DecodeError):
            RasterImage(width=-1, height=4, data=b"")

    def test_from_rgb_array_adds_opaque_alpha(self) -> None:
        raster = RasterImage.from_array(np.zeros((4, 5, 3), dtype=np.uint8))
        assert raster.size == (5, 4)
        assert len(raster.data) == 5 * 4 * 4
        assert np.all(raster.as_array()[..., 3] == 255)

    def test_from_array_rejects_bad_shape(self) -> None:
        with pytest.raises(DecodeError):
            RasterImage.from_array(np.zeros((4, 5), dtype=np.uint8))

    def test_as_array_is_read_only(self) -> None:
        raster = RasterImage.from_array(np.zeros((2, 2, 4), dtype=np.uint8))
        with pytest.raises(ValueError):
            raster.as_array()[0, 0, 0] = 1

    def test_pil_round_trip(self) -> None:
        rng = np.random.default_rng(1)
        raster = RasterImage.from_array(rng.integers(0, 256, size=(6, 7, 4), dtype=np.uint8))
        assert RasterImage.from_pil(raster.to_pil()) == raster


class TestDecodeImage:
    def test_decodes_png_to_rgba(self) -> None:
        raster = decode_image(_encode(Image.new("RGB", (8, 5), (1, 2, 3)), "PNG"))
        assert raster.size == (8, 5)
        assert raster.pixel_at(7, 4) == (1, 2, 3, 255)

    def test_palette_and_grayscale_modes(self) -> None:
        gray = decode_image(_encode(Image.new("L", (4, 4), 77), "PNG"))
        assert gray.pixel_at(0, 0) == (77, 77, 77, 255)
        palette = decode_image(_encode(Image.new("RGB", (4, 4), (9, 8, 7)).convert("P"), "GIF"))
        assert palette.size == (4, 4)

    def test_applies_exif_orientation(self) -> None:
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 degrees clockwise for display
        data = _encode(Image.new("RGB", (40, 20), (128, 128, 128)), "JPEG", exif=exif)
        raster = decode_image(data)
        assert raster.size == (20, 40)

    def test_empty_bytes(self) -> None:
        with pytest.raises(DecodeError):
            decode_image(b"")

    def test_garbage_bytes(self) -> None:
        with pytest.raises(DecodeError):
            decode_image(b"\x00\x01\x02not-an-image" * 10)

    def test_truncated_jpeg(self) -> None:
        data = _encode(Image.new("RGB", (64, 64), (200, 10, 10)), "JPEG")
        with pytest.raises(DecodeError):
            decode_image(data[: len(data) // 2])

    def test_sixteen_bit_grayscale_is_scaled_not_clipped(self) -> None:
        ys, xs = np.mgrid[0:16, 0:16]
        samples = np.where(((xs // 2) + (ys // 2)) % 2 == 1, 20000, 1000).astype(np.uint16)
        data = _encode(Image.fromarray(samples), "PNG")

        raster = decode_image(data)
        values = set(np.unique(raster.as_array()[..., 0]).tolist())
        assert values == {1000 >> 8, 20000 >> 8}

        features = extract_features_from_bytes(data)
        assert features.contrast > 0
        assert features.sharpness > 0
        assert features.edge_clarity > 0

    def test_thirty_two_bit_outside_sixteen_bit_range(self) -> None:
        samples = np.full((8, 8), 100_000, dtype=np.int32)
        data = _encode(Image.fromarray(samples), "TIFF")
        with pytest.raises(DecodeError, match="16-bit range"):
            decode_image(data)

    def test_floating_point_image_rejected(self) -> None:
        samples = np.linspace(0.0, 1.0, 64, dtype=np.float32).reshape(8, 8)
        data = _encode(Image.fromarray(samples), "TIFF")
        with pytest.raises(DecodeError, match="Floating-point"):
            decode_image(data)

    def test_pixel_limit(self) -> None:
        data = _encode(Image.new("RGB", (100, 100)), "PNG")
        with pytest.raises(UnsupportedImageError):
            decode_image(data, max_pixels=9_999)
        assert decode_image(data, max_pixels=10_000).size == (100, 100)


class TestResampleAndEncode:
    def test_resample_to_target(self) -> None:
        raster = RasterImage.from_array(np.zeros((30, 60, 3), dtype=np.uint8))
        assert resample(raster, 20, 10).size == (20, 10)

    def test_resample_same_size_is_noop(self) -> None:
        raster = RasterImage.from_array(np.zeros((3, 3, 3), dtype=np.uint8))
        assert resample(raster, 3, 3) is raster

    def test_encode_jpeg_without_metadata(self) -> None:
        raster = RasterImage.from_array(np.full((16, 16, 3), 100, dtype=np.uint8))
        data = encode_jpeg(raster, 0.92)
        assert data[:2] == b"\xff\xd8"
        with Image.open(io.BytesIO(data)) as img:
            assert img.format == "JPEG"
            assert img.mode == "RGB"
            assert "exif" not in img.info
            assert len(img.getexif()) == 0

    def test_transparent_pixels_become_black(self) -> None:
        pixels = np.zeros((16, 16, 4), dtype=np.uint8)
        pixels[..., :3] = 255
        data = encode_jpeg(RasterImage.from_array(pixels), 0.92)
        decoded = decode_image(data).as_array()
        assert int(decoded[..., :3].max()) <= 3
