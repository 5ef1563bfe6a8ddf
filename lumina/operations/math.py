# Lumina Operations - Math
"""
User code evaluation for math nodes.
"""

from __future__ import annotations

import asyncio

from ..catalog import NodeType
from ..sandbox import SandboxEvaluator
from .base import NodeOperation, register_operation


@register_operation(NodeType.MATH)
class MathOperation(NodeOperation):
    """Runs the node's code with its dynamic inputs bound by label.

    Unconnected inputs are bound to ``0``. A dict result maps directly to
    output sockets (custom keys need matching dynamic outputs to be
    connectable); any other result is exposed as ``result``.
    """

    def __init__(self):
        self.evaluator = SandboxEvaluator()

    async def run(self, inputs, params, node):
        names = [socket.label for socket in node.dynamic_inputs]
        values = [inputs.get(socket.id) for socket in node.dynamic_inputs]
        return await asyncio.to_thread(self.evaluator.evaluate, node.code or '', names, values)
