# Lumina ImageOps - Blend
"""
Layer compositing with the standard canvas blend modes.

The layer is composited over the base with source-over alpha compositing;
the blend mode decides the mixed color where both are present (W3C
Compositing and Blending Level 1). The output canvas is the union of the
base rectangle and the offset layer rectangle.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable

import numpy as np


class BlendMode(Enum):
    """Blend modes for combining a layer with a base image."""
    NORMAL = 'normal'
    MULTIPLY = 'multiply'
    SCREEN = 'screen'
    OVERLAY = 'overlay'
    DARKEN = 'darken'
    LIGHTEN = 'lighten'
    COLOR_DODGE = 'color-dodge'
    COLOR_BURN = 'color-burn'
    HARD_LIGHT = 'hard-light'
    SOFT_LIGHT = 'soft-light'
    DIFFERENCE = 'difference'
    EXCLUSION = 'exclusion'
    HUE = 'hue'
    SATURATION = 'saturation'
    COLOR = 'color'
    LUMINOSITY = 'luminosity'

    @classmethod
    def parse(cls, value: BlendMode | str) -> BlendMode:
        """Accept 'color-dodge', 'COLOR_DODGE' or a member."""
        if isinstance(value, BlendMode):
            return value
        text = str(value).strip().lower().replace('_', '-')
        if text == 'source-over':
            return cls.NORMAL
        return cls(text)


# --- separable modes: cb = backdrop, cs = source, both in [0, 1] ---

def _multiply(cb, cs):
    return cb * cs


def _screen(cb, cs):
    return cb + cs - cb * cs


def _hard_light(cb, cs):
    return np.where(cs <= 0.5, _multiply(cb, 2 * cs), _screen(cb, 2 * cs - 1))


def _color_dodge(cb, cs):
    with np.errstate(divide='ignore', invalid='ignore'):
        dodged = np.minimum(1.0, cb / (1 - cs))
    return np.where(cb == 0, 0.0, np.where(cs >= 1, 1.0, dodged))


def _color_burn(cb, cs):
    with np.errstate(divide='ignore', invalid='ignore'):
        burned = 1 - np.minimum(1.0, (1 - cb) / cs)
    return np.where(cb >= 1, 1.0, np.where(cs <= 0, 0.0, burned))


def _soft_light(cb, cs):
    d = np.where(cb <= 0.25, ((16 * cb - 12) * cb + 4) * cb, np.sqrt(cb))
    return np.where(
        cs <= 0.5,
        cb - (1 - 2 * cs) * cb * (1 - cb),
        cb + (2 * cs - 1) * (d - cb),
    )


# --- non-separable helpers, operating on (..., 3) arrays ---

def _lum(c):
    return 0.3 * c[..., 0] + 0.59 * c[..., 1] + 0.11 * c[..., 2]


def _clip_color(c):
    lum = _lum(c)[..., np.newaxis]
    low = c.min(axis=-1, keepdims=True)
    high = c.max(axis=-1, keepdims=True)
    with np.errstate(divide='ignore', invalid='ignore'):
        c = np.where(low < 0, lum + (c - lum) * lum / (lum - low), c)
        c = np.where(high > 1, lum + (c - lum) * (1 - lum) / (high - lum), c)
    return c


def _set_lum(c, lum):
    delta = (lum - _lum(c))[..., np.newaxis]
    return _clip_color(c + delta)


def _sat(c):
    return c.max(axis=-1) - c.min(axis=-1)


def _set_sat(c, sat):
    low = c.min(axis=-1, keepdims=True)
    high = c.max(axis=-1, keepdims=True)
    span = high - low
    with np.errstate(divide='ignore', invalid='ignore'):
        scaled = (c - low) * sat[..., np.newaxis] / span
    return np.where(span > 0, scaled, 0.0)


_SEPARABLE: dict[BlendMode, Callable] = {
    BlendMode.NORMAL: lambda cb, cs: cs,
    BlendMode.MULTIPLY: _multiply,
    BlendMode.SCREEN: _screen,
    BlendMode.OVERLAY: lambda cb, cs: _hard_light(cs, cb),
    BlendMode.DARKEN: np.minimum,
    BlendMode.LIGHTEN: np.maximum,
    BlendMode.COLOR_DODGE: _color_dodge,
    BlendMode.COLOR_BURN: _color_burn,
    BlendMode.HARD_LIGHT: _hard_light,
    BlendMode.SOFT_LIGHT: _soft_light,
    BlendMode.DIFFERENCE: lambda cb, cs: np.abs(cb - cs),
    BlendMode.EXCLUSION: lambda cb, cs: cb + cs - 2 * cb * cs,
}

_NON_SEPARABLE: dict[BlendMode, Callable] = {
    BlendMode.HUE: lambda cb, cs: _set_lum(_set_sat(cs, _sat(cb)), _lum(cb)),
    BlendMode.SATURATION: lambda cb, cs: _set_lum(_set_sat(cb, _sat(cs)), _lum(cb)),
    BlendMode.COLOR: lambda cb, cs: _set_lum(cs, _lum(cb)),
    BlendMode.LUMINOSITY: lambda cb, cs: _set_lum(cb, _lum(cs)),
}


def mix_colors(backdrop: np.ndarray, source: np.ndarray, mode: BlendMode) -> np.ndarray:
    """Apply a blend function to float RGB arrays in [0, 1]."""
    if mode in _NON_SEPARABLE:
        return np.clip(_NON_SEPARABLE[mode](backdrop, source), 0.0, 1.0)
    return np.clip(_SEPARABLE[mode](backdrop, source), 0.0, 1.0)


def _composite(region: np.ndarray, layer: np.ndarray, mode: BlendMode, opacity: float) -> None:
    """Composite ``layer`` over ``region`` in place (both float RGBA in [0, 1])."""
    cb, ab = region[..., :3], region[..., 3:4]
    cs, as_ = layer[..., :3], layer[..., 3:4] * opacity

    mixed = (1 - ab) * cs + ab * mix_colors(cb, cs, mode)
    premultiplied = as_ * mixed + ab * cb * (1 - as_)
    alpha = as_ + ab * (1 - as_)
    with np.errstate(divide='ignore', invalid='ignore'):
        color = np.where(alpha > 0, premultiplied / alpha, 0.0)

    region[..., :3] = color
    region[..., 3:4] = alpha


def blend(
    base: np.ndarray | None,
    layer: np.ndarray | None,
    mode: BlendMode | str = BlendMode.NORMAL,
    opacity: float = 1.0,
    x: int = 0,
    y: int = 0,
) -> np.ndarray | None:
    """Composite a layer image over a base image.

    :param base: Bottom RGBA buffer, drawn at its natural position
    :param layer: Top RGBA buffer, drawn at offset (x, y)
    :param mode: Blend mode name or member
    :param opacity: Uniform layer opacity in [0, 1]
    :param x: Layer offset, may be negative
    :param y: Layer offset, may be negative
    :returns: RGBA buffer covering both rectangles, or None if both inputs are None
    """
    if base is None and layer is None:
        return None
    mode = BlendMode.parse(mode)
    opacity = float(np.clip(opacity, 0.0, 1.0))
    x, y = int(x), int(y)

    base_h, base_w = base.shape[:2] if base is not None else (0, 0)
    layer_h, layer_w = layer.shape[:2] if layer is not None else (0, 0)

    min_x, min_y = min(0, x), min(0, y)
    max_x, max_y = max(base_w, layer_w + x), max(base_h, layer_h + y)
    origin_x, origin_y = -min_x, -min_y

    canvas = np.zeros((max_y - min_y, max_x - min_x, 4), dtype=np.float64)
    if base is not None:
        canvas[origin_y:origin_y + base_h, origin_x:origin_x + base_w] = base / 255.0
    if layer is not None:
        left, top = origin_x + x, origin_y + y
        region = canvas[top:top + layer_h, left:left + layer_w]
        _composite(region, layer / 255.0, mode, opacity)

    return np.clip(np.rint(canvas * 255), 0, 255).astype(np.uint8)
