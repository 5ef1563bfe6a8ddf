# Lumina Operations - Batch Data
"""
Operations that build, join, reorder, inspect and tile batches.

A batch is a list of items; an item is either a bare image value or a dict
carrying ``image`` and/or ``value`` plus arbitrary metadata such as
``name`` or ``filename``.
"""

from __future__ import annotations

from collections.abc import Hashable
from functools import cmp_to_key
from typing import Any
import asyncio
import logging

from ..catalog import NodeType
from ..config import settings
from ..errors import OperationError
from ..imageops import GridCell, compose_grid, is_image_value
from .base import NodeOperation, register_operation, as_bool, as_int
from .broadcast import item_image, load_image

logger = logging.getLogger(__name__)


def _field(item: Any, key: str) -> Any:
    return item.get(key) if isinstance(item, dict) else None


@register_operation(NodeType.BATCH_CONVERT)
class BatchConvertOperation(NodeOperation):
    """Collects the node's connected dynamic inputs into a batch.

    Each connected input becomes one item named after the socket label.
    Image values are stored under ``image``, everything else under
    ``value``. Unconnected inputs are skipped.
    """

    async def run(self, inputs, params, node):
        batch = []
        for socket in node.dynamic_inputs:
            value = inputs.get(socket.id)
            if value is None:
                continue
            key = 'image' if is_image_value(value) else 'value'
            batch.append({'name': socket.label, key: value})
        return {'batch': batch}


@register_operation(NodeType.BATCH_ASSOCIATE)
class BatchAssociateOperation(NodeOperation):
    """Left join of batch items with table rows.

    The first table row holds the column headers. Rows are keyed by the
    ``tableKey`` column (the first column when no header matches) and each
    item is looked up by its ``batchKey`` field, or by its position as a
    string when ``batchKey`` is ``'index'``. Matching rows are merged into
    the item, row values winning on conflicts; unmatched items pass
    through unchanged.
    """

    async def run(self, inputs, params, node):
        batch = inputs.get('batch') or []
        table = inputs.get('data') or []
        if not batch or not table or not isinstance(table[0], (list, tuple)):
            return {'batch': batch}

        batch_key = str(self.param(inputs, params, 'batchKey'))
        table_key = str(self.param(inputs, params, 'tableKey'))

        headers = [str(h) for h in table[0]]
        key_index = headers.index(table_key) if table_key in headers else 0

        rows_by_key: dict[Any, dict[str, Any]] = {}
        for row in table[1:]:
            if not isinstance(row, (list, tuple)) or key_index >= len(row):
                continue
            row_key = row[key_index]
            if row_key in (None, '') or not isinstance(row_key, Hashable):
                continue
            rows_by_key[row_key] = {h: (row[i] if i < len(row) else None) for i, h in enumerate(headers)}

        associated = []
        for index, item in enumerate(batch):
            lookup = str(index) if batch_key == 'index' else _field(item, batch_key)
            row = rows_by_key.get(lookup) if isinstance(lookup, Hashable) else None
            if row is None:
                associated.append(item)
            elif isinstance(item, dict):
                associated.append({**item, **row})
            else:
                associated.append({'image': item, **row})
        return {'batch': associated}


@register_operation(NodeType.BATCH_SORT)
class BatchSortOperation(NodeOperation):
    """Stable sort of a batch by an item field. Missing fields sort as ``''``."""

    async def run(self, inputs, params, node):
        batch = list(inputs.get('batch') or [])
        sort_by = str(self.param(inputs, params, 'sortBy'))
        descending = str(self.param(inputs, params, 'direction')).lower() == 'desc'

        def compare(a: Any, b: Any) -> int:
            value_a = _field(a, sort_by) or ''
            value_b = _field(b, sort_by) or ''
            try:
                less, greater = value_a < value_b, value_a > value_b
            except TypeError:
                less, greater = str(value_a) < str(value_b), str(value_a) > str(value_b)
            if less:
                return 1 if descending else -1
            if greater:
                return -1 if descending else 1
            return 0

        return {'batch': sorted(batch, key=cmp_to_key(compare))}


@register_operation(NodeType.BATCH_INFO)
class BatchInfoOperation(NodeOperation):
    """Extracts one batch item by index.

    Outputs ``count``, the item's primary value (``image``, else ``value``,
    else the item itself) as ``item``, and the whole item as ``meta``. The
    index is clamped to the batch.
    """

    async def run(self, inputs, params, node):
        batch = inputs.get('batch') or []
        if not isinstance(batch, (list, tuple)) or not batch:
            return {'count': 0, 'item': None, 'meta': None}

        index = as_int(self.param(inputs, params, 'index'))
        index = min(max(index, 0), len(batch) - 1)

        raw = batch[index]
        primary = raw
        if isinstance(raw, dict):
            if raw.get('image') is not None:
                primary = raw['image']
            elif raw.get('value') is not None:
                primary = raw['value']
        return {'count': len(batch), 'item': primary, 'meta': raw}


def _grid_cells(batch: list[Any]) -> list[GridCell]:
    cells = []
    for item in batch:
        source = item_image(item)
        if source is None:
            continue
        try:
            pixels = load_image(source)
        except OperationError as e:
            logger.warning("Skipping grid item: %s", e)
            continue
        name = (_field(item, 'name') or _field(item, 'label') or '')
        cells.append(GridCell(pixels, str(name)))
    return cells


@register_operation(NodeType.IMAGE_GRID)
class ImageGridOperation(NodeOperation):
    """Tiles the images of a batch into a single grid image.

    Items without a decodable image are skipped. With no usable image the
    output is ``None``.
    """

    async def run(self, inputs, params, node):
        batch = inputs.get('batch')
        if not isinstance(batch, (list, tuple)) or not batch:
            return {'image': None}

        cols = max(1, as_int(self.param(inputs, params, 'cols'), 3))
        gap = max(0, as_int(self.param(inputs, params, 'gap'), 10))
        show_labels = as_bool(self.param(inputs, params, 'label'))

        def build():
            cells = _grid_cells(list(batch))
            return compose_grid(
                cells,
                cols=cols,
                gap=gap,
                show_labels=show_labels,
                background=settings.GRID_BACKGROUND,
                label_height=settings.GRID_LABEL_HEIGHT,
                font_size=settings.GRID_LABEL_FONT_SIZE,
            )

        return {'image': await asyncio.to_thread(build)}
