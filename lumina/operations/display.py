# Lumina Operations - Display
"""
Terminal nodes that expose a value for viewing.
"""

from __future__ import annotations

from ..catalog import NodeType
from .base import NodeOperation, register_operation


@register_operation(NodeType.OUTPUT)
class OutputOperation(NodeOperation):

    async def run(self, inputs, params, node):
        return {'value': inputs.get('input')}


@register_operation(NodeType.JSON_VIEWER)
class JsonViewerOperation(NodeOperation):

    async def run(self, inputs, params, node):
        return {'data': inputs.get('data')}
