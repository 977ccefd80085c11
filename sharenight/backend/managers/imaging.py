"""JPEG encoding of submitted screenshots."""

from __future__ import annotations

import io

from PIL import Image, ImageOps, UnidentifiedImageError

DEFAULT_JPEG_QUALITY = 80


class ImageEncodingError(ValueError):
    """Raised when the submitted bytes cannot be turned into a JPEG."""


def encode_jpeg(data: bytes, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Decode any Pillow-readable image and re-encode it as JPEG.

    EXIF orientation is applied so the stored pixels are upright, and modes
    JPEG cannot hold (RGBA, P, ...) are flattened to RGB.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            upright = ImageOps.exif_transpose(image)
            if upright.mode not in ("RGB", "L"):
                upright = upright.convert("RGB")
            out = io.BytesIO()
            upright.save(out, format="JPEG", quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        msg = f"Cannot encode image: {exc}"
        raise ImageEncodingError(msg) from None
    return out.getvalue()
