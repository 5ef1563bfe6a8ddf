# Lumina
"""
Lumina - dataflow image graph engine.

Nodes (image sources, pixel filters, batch operators, tables and user
code) are connected into a directed graph. The :class:`Engine` evaluates
the graph incrementally: only nodes whose parameters or upstream results
changed are recomputed.

Example::

    import asyncio
    from pathlib import Path
    from lumina import Engine, NodeType

    async def main():
        engine = Engine()
        source = engine.create_node(NodeType.IMAGE_INPUT, params={'fileData': Path('photo.png').read_bytes()})
        blur = engine.create_node(NodeType.BLUR, params={'radius': 3, 'type': 'box'})
        engine.connect(source.id, 'image', blur.id, 'image')
        await engine.request_manual_run()
        pixels = engine.get_node_output(blur.id)['image']

    asyncio.run(main())
"""

from .catalog import NodeType, NodeDefinition, NODE_CATALOG, get_definition
from .config import Settings, settings
from .errors import LuminaError, GraphError, OperationError
from .graph import Node, Edge, DynamicSocket, GraphModel
from .sandbox import SandboxEvaluator, SandboxError
from .engine import Engine, PassReport, NodeCache

__version__ = "0.1.0"

__all__ = [
    'NodeType',
    'NodeDefinition',
    'NODE_CATALOG',
    'get_definition',
    'Settings',
    'settings',
    'LuminaError',
    'GraphError',
    'OperationError',
    'Node',
    'Edge',
    'DynamicSocket',
    'GraphModel',
    'SandboxEvaluator',
    'SandboxError',
    'Engine',
    'PassReport',
    'NodeCache',
]
