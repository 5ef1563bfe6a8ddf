"""Color correction pipeline.

Applies, per pixel and in this order:

1. Temperature (red up, blue down) and tint (green)
2. Brightness offset
3. Levels: ``(v - black) * 255 / max(1, white - black)``
4. Contrast around the midpoint 128
5. Saturation toward luminance ``L = 0.299 r + 0.587 g + 0.114 b``
6. Vibrance: saturation boost scaled by how unsaturated the pixel is

Values are clamped to [0, 255] at the end only. Alpha is left untouched.
"""
import numpy as np


def color_correct(
    pixels: np.ndarray,
    brightness: float = 0.0,
    contrast: float = 1.0,
    temperature: float = 0.0,
    tint: float = 0.0,
    saturation: float = 1.0,
    vibrance: float = 0.0,
    white: float = 255.0,
    black: float = 0.0,
) -> np.ndarray:
    """Run the color correction pipeline on an RGBA buffer.

    Args:
        pixels: uint8 array (H, W, 4)
        brightness: Offset added to all color channels
        contrast: Contrast factor, 1.0 = no change
        temperature: Added to red, subtracted from blue
        tint: Added to green
        saturation: 0.0 = grayscale, 1.0 = no change
        vibrance: -1.0 to 1.0, 0.0 = no change
        white: Levels white point
        black: Levels black point

    Returns:
        Corrected uint8 array (H, W, 4)
    """
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected RGBA image (H, W, 4), got shape {pixels.shape}")

    rgb = pixels[:, :, :3].astype(np.float64)
    r, g, b = rgb[:, :, 0], rgb[:, :, 1], rgb[:, :, 2]

    r = r + temperature
    b = b - temperature
    g = g + tint

    r, g, b = r + brightness, g + brightness, b + brightness

    level_scale = 255.0 / max(1.0, white - black)
    r, g, b = (r - black) * level_scale, (g - black) * level_scale, (b - black) * level_scale

    r = (r - 128) * contrast + 128
    g = (g - 128) * contrast + 128
    b = (b - 128) * contrast + 128

    gray = 0.299 * r + 0.587 * g + 0.114 * b
    r = gray + (r - gray) * saturation
    g = gray + (g - gray) * saturation
    b = gray + (b - gray) * saturation

    if vibrance != 0:
        high = np.maximum(np.maximum(r, g), b)
        low = np.minimum(np.minimum(r, g), b)
        current_sat = (high - low) / np.where(high == 0, 1.0, high)
        factor = 1 + vibrance * (1 - current_sat)
        # Blends toward the pre-saturation luminance
        r = gray + (r - gray) * factor
        g = gray + (g - gray) * factor
        b = gray + (b - gray) * factor

    result = pixels.copy()
    result[:, :, :3] = np.clip(np.rint(np.stack([r, g, b], axis=2)), 0, 255).astype(np.uint8)
    return result
