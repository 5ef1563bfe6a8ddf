# Lumina ImageOps - Geometry
"""
Crop and affine transform.
"""

from __future__ import annotations

import math

import numpy as np
from PIL import Image as PILImage


def crop(pixels: np.ndarray, x: float, y: float, width: float, height: float) -> np.ndarray:
    """Extract a rectangle from an RGBA buffer.

    The output is always exactly ``width x height`` (each floored to at
    least 1). Parts of the rectangle outside the source stay transparent.

    :param pixels: Source RGBA buffer
    :param x: Left edge in source coordinates
    :param y: Top edge in source coordinates
    :param width: Output width
    :param height: Output height
    :returns: RGBA buffer of shape (height, width, 4)
    """
    out_w = max(1, int(width))
    out_h = max(1, int(height))
    left = math.floor(x)
    top = math.floor(y)
    src_h, src_w = pixels.shape[:2]

    result = np.zeros((out_h, out_w, 4), dtype=np.uint8)
    x0, y0 = max(left, 0), max(top, 0)
    x1, y1 = min(left + out_w, src_w), min(top + out_h, src_h)
    if x1 > x0 and y1 > y0:
        result[y0 - top:y1 - top, x0 - left:x1 - left] = pixels[y0:y1, x0:x1]
    return result


def transformed_canvas_size(
    width: int,
    height: int,
    scale: float,
    rotation: float,
    x: float = 0,
    y: float = 0,
) -> tuple[int, int]:
    """Canvas size needed to hold a scaled, rotated and translated image.

    :returns: (width, height) of the rotated bounding box grown by |x|, |y|
    """
    angle = math.radians(rotation)
    abs_cos = abs(math.cos(angle))
    abs_sin = abs(math.sin(angle))
    w = width * scale
    h = height * scale
    box_w = math.floor(w * abs_cos + h * abs_sin)
    box_h = math.floor(w * abs_sin + h * abs_cos)
    return max(1, int(box_w + abs(x))), max(1, int(box_h + abs(y)))


def transform(
    pixels: np.ndarray,
    x: float = 0,
    y: float = 0,
    scale: float = 1.0,
    rotation: float = 0,
) -> np.ndarray:
    """Scale, rotate and translate an image onto a canvas that grows to fit.

    The source is drawn centered, rotated clockwise by ``rotation`` degrees,
    scaled uniformly and moved by ``(x, y)`` relative to the canvas center.

    :param pixels: Source RGBA buffer
    :param x: Horizontal offset from the canvas center
    :param y: Vertical offset from the canvas center
    :param scale: Uniform scale factor (must be positive)
    :param rotation: Rotation in degrees
    :returns: Transformed RGBA buffer
    """
    if scale <= 0:
        raise ValueError(f"Scale must be positive, got {scale}")
    src_h, src_w = pixels.shape[:2]
    out_w, out_h = transformed_canvas_size(src_w, src_h, scale, rotation, x, y)

    angle = math.radians(rotation)
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)
    center_x = out_w / 2 + x
    center_y = out_h / 2 + y

    # Pillow wants the inverse mapping: output coordinates -> source coordinates
    a = cos_a / scale
    b = sin_a / scale
    d = -sin_a / scale
    e = cos_a / scale
    c = src_w / 2 - (a * center_x + b * center_y)
    f = src_h / 2 - (d * center_x + e * center_y)

    result = PILImage.fromarray(pixels).transform(
        (out_w, out_h),
        PILImage.Transform.AFFINE,
        (a, b, c, d, e, f),
        resample=PILImage.Resampling.BICUBIC,
        fillcolor=(0, 0, 0, 0),
    )
    return np.array(result)
