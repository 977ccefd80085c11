"""Unit tests for JPEG encoding of submitted screenshots."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from sharenight.backend.managers.imaging import ImageEncodingError, encode_jpeg


def _decode(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def test_png_with_alpha_becomes_rgb_jpeg(png_bytes: bytes) -> None:
    result = encode_jpeg(png_bytes)
    assert result[:2] == b"\xff\xd8"

    image = _decode(result)
    assert image.format == "JPEG"
    assert image.mode == "RGB"
    assert image.size == (32, 24)


def test_palette_image_is_flattened() -> None:
    buffer = io.BytesIO()
    Image.new("P", (8, 8)).save(buffer, format="GIF")
    assert _decode(encode_jpeg(buffer.getvalue())).mode == "RGB"


def test_lower_quality_is_smaller() -> None:
    buffer = io.BytesIO()
    Image.effect_noise((128, 128), 64).convert("RGB").save(buffer, format="PNG")
    data = buffer.getvalue()
    assert len(encode_jpeg(data, quality=20)) < len(encode_jpeg(data, quality=95))


def test_exif_orientation_is_applied() -> None:
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 CW on display
    buffer = io.BytesIO()
    Image.new("RGB", (40, 10), (10, 20, 30)).save(buffer, format="JPEG", exif=exif)

    assert _decode(encode_jpeg(buffer.getvalue())).size == (10, 40)


@pytest.mark.parametrize("data", [b"", b"definitely not an image", b"\x89PNG\r\n\x1a\n truncated"])
def test_undecodable_bytes_raise(data: bytes) -> None:
    with pytest.raises(ImageEncodingError):
        encode_jpeg(data)


def test_encoding_error_is_a_value_error() -> None:
    assert issubclass(ImageEncodingError, ValueError)


def test_decompression_bomb_is_an_encoding_error(bomb_png: bytes) -> None:
    assert len(bomb_png) < 100_000
    with pytest.raises(ImageEncodingError):
        encode_jpeg(bomb_png)
