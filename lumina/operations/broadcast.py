# Lumina Operations - Batch Broadcasting
"""
Single-image operations and the broadcaster that vectorizes them.

A pixel operation is written for one image by implementing
:meth:`ImageOperation.apply`. Its ``run`` goes through
:class:`BatchBroadcaster`, which decides whether the primary input is a
single image or a batch:

- batch (a list): every item is processed in order with identical
  parameters; the result is ``{'batch': items, 'image': items}``. Dict
  items keep their metadata with ``image`` replaced, bare items become
  ``{'image': result}``.
- single value: ``{'image': result}``.
- nothing connected: ``{}``, unless the operation can run without a
  primary image (image blend with only a layer).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, ClassVar, TYPE_CHECKING
import asyncio
import logging

import numpy as np

from ..errors import OperationError
from ..imageops import decode_image
from .base import NodeOperation

if TYPE_CHECKING:
    from ..graph import Node

logger = logging.getLogger(__name__)

PRIMARY_INPUTS = ('image', 'input', 'base')


def item_image(item: Any) -> Any:
    """Image source carried by a batch item (dict items use ``image``)."""
    if isinstance(item, dict):
        return item.get('image')
    return item


def load_image(value: Any, socket: str = 'image') -> np.ndarray | None:
    """Decode an input value, reporting failures as OperationError."""
    try:
        return decode_image(value)
    except (TypeError, ValueError, OSError) as e:
        raise OperationError(f"Invalid image on '{socket}': {e}") from e


class ImageOperation(NodeOperation):
    """Operation transforming one image into another.

    :cvar requires_primary: If False, ``apply`` is called even when no
        primary image is connected
    """

    requires_primary: ClassVar[bool] = True

    @abstractmethod
    def apply(
        self,
        image: np.ndarray | None,
        inputs: dict[str, Any],
        params: dict[str, Any],
    ) -> np.ndarray | None:
        """Process a single decoded image. Runs in a worker thread.

        :param image: RGBA buffer of the primary input
        :param inputs: Inputs for this item (per-item overrides applied)
        :param params: Parameters captured for the evaluation
        """

    def prepare_item(
        self,
        item_inputs: dict[str, Any],
        item: Any,
        index: int,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Hook to adjust the inputs of a single batch item."""
        return item_inputs

    async def process(
        self,
        source: Any,
        inputs: dict[str, Any],
        params: dict[str, Any],
    ) -> np.ndarray | None:
        """Decode ``source`` and apply the operation off the event loop."""
        image = load_image(source)
        if image is None and self.requires_primary:
            return None
        return await asyncio.to_thread(self.apply, image, inputs, params)

    async def run(self, inputs: dict[str, Any], params: dict[str, Any], node: Node) -> dict[str, Any]:
        return await BatchBroadcaster(self).run(inputs, params, node)


class BatchBroadcaster:
    """Wraps an :class:`ImageOperation` so list inputs are processed per item.

    Items are processed sequentially, one worker thread call at a time.

    :param operation: The single-item operation
    """

    def __init__(self, operation: ImageOperation):
        self.operation = operation

    @staticmethod
    def primary(inputs: dict[str, Any]) -> Any:
        """First connected value of ``image``, ``input`` or ``base``."""
        for key in PRIMARY_INPUTS:
            value = inputs.get(key)
            if value is not None:
                return value
        return None

    async def run(self, inputs: dict[str, Any], params: dict[str, Any], node: Node) -> dict[str, Any]:
        value = self.primary(inputs)

        if isinstance(value, (list, tuple)):
            items = await self.run_batch(list(value), inputs, params)
            return {'batch': items, 'image': items}

        source = item_image(value)
        if source is None and self.operation.requires_primary:
            return {}
        return {'image': await self.operation.process(source, inputs, params)}

    async def run_batch(self, batch: list[Any], inputs: dict[str, Any], params: dict[str, Any]) -> list[Any]:
        """Apply the operation to each item, preserving order and length."""
        results = []
        for index, item in enumerate(batch):
            item_inputs = self.operation.prepare_item(dict(inputs), item, index, params)
            processed = await self.operation.process(item_image(item), item_inputs, params)
            if isinstance(item, dict):
                results.append({**item, 'image': processed})
            else:
                results.append({'image': processed})
        logger.debug("%r processed %d batch items", self.operation, len(results))
        return results
