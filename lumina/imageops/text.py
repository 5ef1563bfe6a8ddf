# Lumina ImageOps - Text
"""
Text overlay rendering with Pillow.
"""

from __future__ import annotations

from functools import lru_cache
import math

import numpy as np
from PIL import Image as PILImage, ImageColor, ImageDraw, ImageFont


@lru_cache(maxsize=32)
def load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Get Pillow's default font at the given pixel size (cached)."""
    return ImageFont.load_default(size=max(1, int(size)))


def parse_color(color: str, opacity: float = 1.0) -> tuple[int, int, int, int]:
    """Parse a CSS color string and apply an opacity to its alpha."""
    rgba = ImageColor.getcolor(color, 'RGBA')
    alpha = rgba[3] * min(1.0, max(0.0, float(opacity)))
    return rgba[0], rgba[1], rgba[2], int(round(alpha))


def draw_text(
    pixels: np.ndarray,
    text: str,
    x: float = 10,
    y: float = 50,
    size: int = 40,
    color: str = '#ffffff',
    opacity: float = 1.0,
    rotation: float = 0,
) -> np.ndarray:
    """Draw text onto an RGBA buffer.

    The text's top-left corner sits at the anchor ``(x, y)`` and the text is
    rotated clockwise about that anchor by ``rotation`` degrees.

    :param pixels: Target RGBA buffer (not modified)
    :param text: Text to draw
    :param x: Anchor x
    :param y: Anchor y
    :param size: Font size in pixels
    :param color: CSS color
    :param opacity: Text opacity in [0, 1]
    :param rotation: Clockwise rotation in degrees
    :returns: New RGBA buffer with the text composited on top
    """
    text = str(text)
    if not text:
        return pixels.copy()

    base = PILImage.fromarray(pixels)
    font = load_font(size)
    fill = parse_color(color, opacity)

    # Render on a square layer whose center is the anchor so rotation stays in bounds
    _, _, right, bottom = font.getbbox(text)
    radius = int(math.ceil(math.hypot(right, bottom))) + 1
    layer = PILImage.new('RGBA', (2 * radius, 2 * radius), (0, 0, 0, 0))
    ImageDraw.Draw(layer).text((radius, radius), text, font=font, fill=fill)
    if rotation:
        layer = layer.rotate(
            -rotation, resample=PILImage.Resampling.BICUBIC, center=(radius, radius)
        )

    overlay = PILImage.new('RGBA', base.size, (0, 0, 0, 0))
    overlay.paste(layer, (int(round(x)) - radius, int(round(y)) - radius))
    return np.array(PILImage.alpha_composite(base, overlay))
