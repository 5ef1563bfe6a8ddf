# Lumina ImageOps - Grid
"""
Tile a list of images into a single grid image with optional labels.
"""

from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np
from PIL import Image as PILImage, ImageColor, ImageDraw

from .text import load_font

LABEL_BAR_COLOR = (0, 0, 0, 179)  # rgba(0, 0, 0, 0.7)
LABEL_TEXT_COLOR = (255, 255, 255, 255)
LABEL_PADDING = 10


@dataclass
class GridCell:
    """One image placed in the grid.

    :ivar pixels: RGBA buffer
    :ivar name: Label shown in the cell's label bar (empty = no bar)
    """
    pixels: np.ndarray
    name: str = ''


def _fit_label(draw: ImageDraw.ImageDraw, text: str, font, max_width: int) -> str:
    """Shorten text with an ellipsis until it fits into max_width."""
    if max_width <= 0:
        return ''
    if draw.textlength(text, font=font) <= max_width:
        return text
    while text and draw.textlength(text + '...', font=font) > max_width:
        text = text[:-1]
    return text + '...' if text else ''


def compose_grid(
    cells: list[GridCell],
    cols: int = 3,
    gap: int = 10,
    show_labels: bool = True,
    background: str = '#0f172a',
    label_height: int = 30,
    font_size: int = 14,
) -> np.ndarray | None:
    """Compose cells into a grid.

    The cell size is taken from the first image; other images are resized
    to it. Grid lines of ``gap`` pixels separate cells on the background.

    :param cells: Images to tile, in row-major order
    :param cols: Number of columns (at least 1)
    :param gap: Gap between cells in pixels
    :param show_labels: Draw a translucent label bar with the cell name
    :param background: Background CSS color
    :param label_height: Height of the label bar
    :param font_size: Label font size
    :returns: RGBA grid buffer, or None when there are no cells
    """
    if not cells:
        return None
    cols = max(1, int(cols))
    gap = max(0, int(gap))
    cell_h, cell_w = cells[0].pixels.shape[:2]
    rows = math.ceil(len(cells) / cols)

    width = cols * cell_w + (cols - 1) * gap
    height = rows * cell_h + (rows - 1) * gap
    canvas = PILImage.new('RGBA', (width, height), ImageColor.getcolor(background, 'RGBA'))

    positions = []
    for index, cell in enumerate(cells):
        x = (index % cols) * (cell_w + gap)
        y = (index // cols) * (cell_h + gap)
        positions.append((x, y))
        image = PILImage.fromarray(cell.pixels)
        if image.size != (cell_w, cell_h):
            image = image.resize((cell_w, cell_h), PILImage.Resampling.BILINEAR)
        canvas.alpha_composite(image, (x, y))

    labelled = [(cell, pos) for cell, pos in zip(cells, positions) if show_labels and cell.name]
    if labelled:
        bars = PILImage.new('RGBA', canvas.size, (0, 0, 0, 0))
        bar_draw = ImageDraw.Draw(bars)
        for _, (x, y) in labelled:
            bar_draw.rectangle(
                [x, y + cell_h - label_height, x + cell_w - 1, y + cell_h - 1],
                fill=LABEL_BAR_COLOR,
            )
        canvas.alpha_composite(bars)

        font = load_font(font_size)
        draw = ImageDraw.Draw(canvas)
        for cell, (x, y) in labelled:
            text = _fit_label(draw, cell.name, font, cell_w - 2 * LABEL_PADDING)
            if not text:
                continue
            bottom = font.getbbox(text)[3]
            draw.text(
                (x + LABEL_PADDING, y + cell_h - LABEL_PADDING - bottom),
                text, font=font, fill=LABEL_TEXT_COLOR,
            )

    return np.array(canvas)
