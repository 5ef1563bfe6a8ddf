# Lumina Operations - Sources
"""
Operations for nodes that produce values from their parameters: stored
images, file batches, constants and data grids.
"""

from __future__ import annotations

from typing import Any
import asyncio

from ..catalog import NodeType
from .base import NodeOperation, register_operation
from .broadcast import load_image


@register_operation(NodeType.IMAGE_INPUT)
class ImageInputOperation(NodeOperation):
    """Decodes the image stored in ``params['fileData']``.

    ``fileData`` may be a data URL, encoded bytes or an already decoded
    array; file paths are rejected. Without a stored image the output is
    ``None``.
    """

    async def run(self, inputs, params, node):
        image = await asyncio.to_thread(load_image, params.get('fileData'), 'fileData')
        return {'image': image}


@register_operation(NodeType.BATCH_INPUT)
class BatchInputOperation(NodeOperation):
    """Emits the stored file list as a batch.

    Items are passed through as stored (typically ``{'name', 'image'}``
    dicts); images are decoded lazily by the consuming operation.
    """

    async def run(self, inputs, params, node):
        return {'batch': list(params.get('files') or [])}


@register_operation(NodeType.NUMBER)
class NumberOperation(NodeOperation):
    """A constant, overridable through the ``value`` input."""

    async def run(self, inputs, params, node):
        return {'value': self.param(inputs, params, 'value')}


class GridSourceOperation(NodeOperation):
    """Passes a 2-D data grid through; ``data`` takes precedence over ``rows``."""

    async def run(self, inputs: dict[str, Any], params: dict[str, Any], node) -> dict[str, Any]:
        grid = params.get('data')
        if grid is None:
            grid = params.get('rows')
        return {'data': [list(row) if isinstance(row, (list, tuple)) else row for row in grid or []]}


@register_operation(NodeType.TABLE)
class TableOperation(GridSourceOperation):
    pass


@register_operation(NodeType.TEXT_SOURCE)
class TextSourceOperation(GridSourceOperation):
    pass
