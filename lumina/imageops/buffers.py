# Lumina ImageOps - Buffers
"""
Conversion between image source values and RGBA pixel buffers.

Image values arriving at the engine may be numpy arrays, PIL images,
encoded bytes or ``data:`` URLs. Everything is normalized to an
``(H, W, 4)`` uint8 array before a pixel algorithm touches it.

Graph values come from clients, so strings are never interpreted as file
paths; callers load files themselves and pass the bytes.
"""

from __future__ import annotations

from typing import Any
import base64
import io

import numpy as np
from PIL import Image as PILImage


def ensure_rgba(pixels: np.ndarray) -> np.ndarray:
    """Convert a grayscale, RGB or RGBA array to RGBA uint8.

    :param pixels: Array of shape (H, W), (H, W, 1), (H, W, 3) or (H, W, 4)
    :returns: Array of shape (H, W, 4), dtype uint8
    """
    if pixels.dtype != np.uint8:
        pixels = np.clip(pixels, 0, 255).astype(np.uint8)
    if pixels.ndim == 2:
        pixels = pixels[:, :, np.newaxis]
    if pixels.ndim != 3 or pixels.shape[2] not in (1, 3, 4):
        raise ValueError(f"Expected image (H, W[, 1|3|4]), got shape {pixels.shape}")

    channels = pixels.shape[2]
    if channels == 4:
        return pixels
    if channels == 1:
        pixels = np.repeat(pixels, 3, axis=2)
    alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
    return np.concatenate([pixels, alpha], axis=2)


def is_image_value(value: Any) -> bool:
    """Check whether a value is something :func:`decode_image` accepts as an image.

    Plain strings only count when they are ``data:image/`` URLs; anything
    else is treated as a scalar or text value.
    """
    if isinstance(value, np.ndarray):
        return value.ndim in (2, 3)
    if isinstance(value, (PILImage.Image, bytes, bytearray)):
        return True
    return isinstance(value, str) and value.startswith('data:image/')


def _decode_bytes(data: bytes) -> np.ndarray:
    with PILImage.open(io.BytesIO(data)) as img:
        return np.array(img.convert('RGBA'))


def decode_image(value: Any) -> np.ndarray | None:
    """Decode an image source value into an RGBA buffer.

    :param value: ndarray, PIL image, encoded bytes or data URL
    :returns: RGBA array, or None if value is None
    :raises ValueError: If a string is not a base64 data URL
    :raises TypeError: If the value type is not an image source
    """
    if value is None:
        return None
    if isinstance(value, np.ndarray):
        return ensure_rgba(value)
    if isinstance(value, PILImage.Image):
        return np.array(value.convert('RGBA'))
    if isinstance(value, (bytes, bytearray)):
        return _decode_bytes(bytes(value))
    if isinstance(value, str):
        header, sep, payload = value.partition(',')
        if not header.startswith('data:') or not sep or ';base64' not in header:
            raise ValueError("Image strings must be base64 encoded data URLs")
        return _decode_bytes(base64.b64decode(payload))
    raise TypeError(f"Cannot decode image from {type(value).__name__}")


def encode_png(pixels: np.ndarray) -> bytes:
    """Encode an RGBA buffer as PNG bytes."""
    buffer = io.BytesIO()
    PILImage.fromarray(ensure_rgba(pixels)).save(buffer, format='PNG')
    return buffer.getvalue()


def to_data_url(pixels: np.ndarray) -> str:
    """Encode an RGBA buffer as a PNG data URL."""
    return 'data:image/png;base64,' + base64.b64encode(encode_png(pixels)).decode('ascii')
