# Lumina ImageOps - Blur
"""
Box and Gaussian blur.

The box blur is a separable mean filter: a horizontal pass followed by a
vertical pass over the already horizontally blurred buffer. Samples outside
the image are clamped to the nearest edge pixel.
"""

from __future__ import annotations

import numpy as np
from PIL import Image as PILImage, ImageFilter


def _mean_along_axis(pixels: np.ndarray, radius: int, axis: int) -> np.ndarray:
    """Mean of the ``2 * radius + 1`` samples centered on each position.

    Out-of-range indices are clamped, not wrapped. Uses a running sum so the
    cost does not depend on the radius.
    """
    count = pixels.shape[axis]
    window = 2 * radius + 1
    indices = np.clip(np.arange(-radius, count + radius), 0, count - 1)
    padded = np.take(pixels.astype(np.float64), indices, axis=axis)

    sums = np.cumsum(padded, axis=axis)
    zero_shape = list(sums.shape)
    zero_shape[axis] = 1
    sums = np.concatenate([np.zeros(zero_shape), sums], axis=axis)

    upper = np.take(sums, np.arange(window, count + window), axis=axis)
    lower = np.take(sums, np.arange(0, count), axis=axis)
    return (upper - lower) / window


def _to_u8(values: np.ndarray) -> np.ndarray:
    # round half to even, like a clamped byte buffer
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def box_blur(pixels: np.ndarray, radius: int) -> np.ndarray:
    """Separable box blur on all four channels.

    Args:
        pixels: uint8 array (H, W, 4)
        radius: Blur radius; values below 1 return an unchanged copy

    Returns:
        Blurred uint8 array of the same shape
    """
    radius = int(radius)
    if radius < 1:
        return pixels.copy()
    horizontal = _to_u8(_mean_along_axis(pixels, radius, axis=1))
    return _to_u8(_mean_along_axis(horizontal, radius, axis=0))


def gaussian_blur(pixels: np.ndarray, radius: float) -> np.ndarray:
    """Gaussian blur via Pillow.

    Args:
        pixels: uint8 array (H, W, 4)
        radius: Standard deviation in pixels; 0 returns an unchanged copy
    """
    if radius <= 0:
        return pixels.copy()
    result = PILImage.fromarray(pixels).filter(ImageFilter.GaussianBlur(radius=radius))
    return np.array(result)
