# Path: core/imaging/encoding.py
# Purpose: Encode images for transport and persistence.
# Layer: core/imaging.
# Details: JPEG encoding, SHA-256 content hashing, base64 and data-URL helpers built on Pillow.

from __future__ import annotations

import base64
import hashlib
import io

from PIL import Image

from core.errors import CropFailure

DEFAULT_JPEG_QUALITY = 80


def encode_jpeg(image: Image.Image, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Return JPEG bytes for ``image``, flattening alpha and palette modes to RGB."""

    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def decode_image(data: bytes) -> Image.Image:
    """Decode encoded image bytes into a fully loaded Pillow image."""

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise CropFailure(f"Could not decode image: {exc}") from exc
    return image


def content_hash(data: bytes) -> str:
    """Return the hex SHA-256 digest used to deduplicate stored solutions."""

    return hashlib.sha256(data).hexdigest()


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def jpeg_data_url(data: bytes) -> str:
    """Inline ``data:`` URL accepted by the chat endpoint's image parts."""

    return f"data:image/jpeg;base64,{to_base64(data)}"
