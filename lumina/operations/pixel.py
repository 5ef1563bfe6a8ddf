# Lumina Operations - Pixel Filters
"""
Image operations. All of them are single-image operations broadcast over
batches by :class:`~lumina.operations.broadcast.BatchBroadcaster`.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from ..catalog import NodeType
from ..errors import OperationError
from ..imageops import (
    BlendMode,
    blend,
    box_blur,
    color_correct,
    crop,
    draw_text,
    gaussian_blur,
    transform,
)
from .base import register_operation, as_float, as_int
from .broadcast import ImageOperation, item_image, load_image


@register_operation(NodeType.ADD_TEXT)
class AddTextOperation(ImageOperation):
    """Draws text onto the image.

    The ``text`` input, when connected, replaces the ``text`` parameter.
    For batches, ``textKey`` names an item field whose value becomes the
    text of that item (``'index'`` uses the item position).
    """

    def prepare_item(self, item_inputs, item, index, params):
        text_key = params.get('textKey')
        if not text_key or text_key == 'none':
            return item_inputs
        if text_key == 'index':
            text = str(index)
        elif isinstance(item, dict) and item.get(text_key) is not None:
            text = str(item[text_key])
        else:
            text = ''
        if text:
            item_inputs['text'] = text
        return item_inputs

    def apply(self, image, inputs, params):
        text = inputs.get('text')
        if text is None:
            text = self.param(inputs, params, 'text')
        return draw_text(
            image,
            '' if text is None else str(text),
            x=as_float(self.param(inputs, params, 'x'), 10),
            y=as_float(self.param(inputs, params, 'y'), 50),
            size=max(1, as_int(self.param(inputs, params, 'size'), 40)),
            color=str(self.param(inputs, params, 'color')),
            opacity=as_float(self.param(inputs, params, 'opacity'), 1.0),
            rotation=as_float(self.param(inputs, params, 'rotation')),
        )


@register_operation(NodeType.BLUR)
class BlurOperation(ImageOperation):
    """Gaussian (default) or box blur."""

    def apply(self, image, inputs, params):
        radius = as_float(self.param(inputs, params, 'radius'))
        if str(self.param(inputs, params, 'type')) == 'box':
            return box_blur(image, int(radius))
        return gaussian_blur(image, max(0.0, radius))


COLOR_KEYS = ('brightness', 'contrast', 'temperature', 'tint', 'saturation', 'vibrance', 'white', 'black')


@register_operation(NodeType.COLOR_CORRECTION)
class ColorCorrectionOperation(ImageOperation):

    def apply(self, image, inputs, params):
        values = {key: as_float(self.param(inputs, params, key)) for key in COLOR_KEYS}
        return color_correct(image, **values)


@register_operation(NodeType.CROP)
class CropOperation(ImageOperation):

    def apply(self, image, inputs, params):
        return crop(
            image,
            as_float(self.param(inputs, params, 'x')),
            as_float(self.param(inputs, params, 'y')),
            as_float(self.param(inputs, params, 'width'), 100),
            as_float(self.param(inputs, params, 'height'), 100),
        )


@register_operation(NodeType.TRANSFORM_IMAGE)
class TransformImageOperation(ImageOperation):

    def apply(self, image, inputs, params):
        scale = as_float(self.param(inputs, params, 'scale'), 1.0)
        if scale <= 0:
            raise OperationError(f"Scale must be positive, got {scale}")
        return transform(
            image,
            x=as_float(self.param(inputs, params, 'x')),
            y=as_float(self.param(inputs, params, 'y')),
            scale=scale,
            rotation=as_float(self.param(inputs, params, 'rotation')),
        )


@register_operation(NodeType.IMAGE_BLEND)
class ImageBlendOperation(ImageOperation):
    """Composites ``layer`` over ``base``.

    For a batch on ``base`` each item is blended with the same layer. The
    operation also runs with only a layer connected.
    """

    requires_primary = False

    def apply(self, image: np.ndarray | None, inputs: dict[str, Any], params: dict[str, Any]):
        layer_value = inputs.get('layer')
        if isinstance(layer_value, (list, tuple)):
            raise OperationError("Blend layer must be a single image, not a batch")
        layer = load_image(item_image(layer_value), 'layer')
        try:
            mode = BlendMode.parse(self.param(inputs, params, 'mode'))
        except ValueError as e:
            raise OperationError(f"Unknown blend mode: {params.get('mode')}") from e
        return blend(
            image,
            layer,
            mode=mode,
            opacity=as_float(self.param(inputs, params, 'opacity'), 1.0),
            x=as_int(self.param(inputs, params, 'x')),
            y=as_int(self.param(inputs, params, 'y')),
        )
