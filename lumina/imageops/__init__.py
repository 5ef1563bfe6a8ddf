# Lumina ImageOps Module
"""
Deterministic pixel algorithms on RGBA buffers.

All functions take and return ``numpy`` arrays of shape ``(H, W, 4)`` and
dtype ``uint8`` and are independent of the graph engine.
"""

from .buffers import (
    decode_image,
    ensure_rgba,
    is_image_value,
    encode_png,
    to_data_url,
)
from .blur import box_blur, gaussian_blur
from .color_correction import color_correct
from .geometry import crop, transform
from .blend import BlendMode, blend
from .text import draw_text, load_font
from .grid import GridCell, compose_grid

__all__ = [
    'decode_image',
    'ensure_rgba',
    'is_image_value',
    'encode_png',
    'to_data_url',
    'box_blur',
    'gaussian_blur',
    'color_correct',
    'crop',
    'transform',
    'BlendMode',
    'blend',
    'draw_text',
    'load_font',
    'GridCell',
    'compose_grid',
]
