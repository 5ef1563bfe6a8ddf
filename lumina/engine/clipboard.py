# Lumina Engine - Clipboard
"""
Copy/paste interchange envelope.

A copied selection is a JSON-serializable dict::

    {
        "lumina": true,
        "version": "1.0",
        "nodes": [{"id", "type", "position": {"x", "y"}, "data": {...}}, ...],
        "edges": [{"id", "source", "sourceHandle", "target", "targetHandle"}, ...]
    }

Only edges between copied nodes are included. Pasting assigns fresh ids,
moves the nodes so the center of their bounding box lands on the target
position and drops edges whose endpoints were not part of the copy.
"""

from __future__ import annotations

from typing import Any
import json
import logging

from pydantic import BaseModel, ConfigDict, Field

from ..catalog import NodeType
from ..graph import Edge, GraphModel, Node, new_edge_id, new_node_id

logger = logging.getLogger(__name__)

CLIPBOARD_MARKER = 'lumina'
CLIPBOARD_VERSION = '1.0'


class ClipboardPosition(BaseModel):
    x: float
    y: float


class ClipboardSocket(BaseModel):
    id: str
    label: str | None = None


class ClipboardNodeData(BaseModel):
    """Node payload; unknown editor fields are ignored."""

    model_config = ConfigDict(extra='ignore')

    label: str = ''
    params: dict[str, Any] = Field(default_factory=dict)
    code: str | None = None
    dynamicInputs: list[ClipboardSocket] | None = None
    dynamicOutputs: list[ClipboardSocket] | None = None


class ClipboardNode(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str
    type: NodeType
    position: ClipboardPosition
    data: ClipboardNodeData = Field(default_factory=ClipboardNodeData)


class ClipboardEdge(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str | None = None
    source: str
    target: str
    sourceHandle: str | None = None
    targetHandle: str | None = None


class ClipboardPayload(BaseModel):
    model_config = ConfigDict(extra='ignore')

    lumina: bool
    version: str = CLIPBOARD_VERSION
    nodes: list[ClipboardNode]
    edges: list[ClipboardEdge] = Field(default_factory=list)


def copy_nodes(graph: GraphModel, node_ids: list[str]) -> dict[str, Any]:
    """Build the clipboard envelope for a set of nodes.

    Unknown ids are ignored. Nodes are emitted in creation order.
    """
    wanted = set(node_ids)
    nodes = [node for node in graph if node.id in wanted]
    copied = {node.id for node in nodes}
    edges = [e for e in graph.edges if e.source in copied and e.target in copied]
    return {
        CLIPBOARD_MARKER: True,
        'version': CLIPBOARD_VERSION,
        'nodes': [node.to_dict() for node in nodes],
        'edges': [edge.to_dict() for edge in edges],
    }


def selection_for_copy(graph: GraphModel, node_id: str | None = None) -> list[str]:
    """Nodes a copy command acts on.

    Without ``node_id`` (keyboard shortcut) this is the current selection.
    With a ``node_id`` that is part of the selection it is the whole
    selection; otherwise just that node.
    """
    selected = [node.id for node in graph if node.selected]
    if node_id is None:
        return selected
    node = graph.nodes.get(node_id)
    if node is None:
        return []
    return selected if node.selected else [node_id]


def parse_payload(payload: dict[str, Any] | str) -> ClipboardPayload | None:
    """Validate a clipboard payload; returns None if it is not one."""
    try:
        data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
        parsed = ClipboardPayload.model_validate(data)
    except ValueError as e:
        logger.debug("Ignoring invalid clipboard payload: %s", e)
        return None
    if not parsed.lumina:
        logger.debug("Ignoring clipboard payload without marker")
        return None
    return parsed


def build_paste(
    payload: ClipboardPayload,
    target: tuple[float, float],
) -> tuple[list[Node], list[Edge]]:
    """Create the nodes and edges a paste adds to the graph.

    Nodes are translated by ``target - center`` where ``center`` is the
    center of the copied positions' bounding box. New nodes are dirty and
    selected.
    """
    if not payload.nodes:
        return [], []

    xs = [n.position.x for n in payload.nodes]
    ys = [n.position.y for n in payload.nodes]
    center_x = (min(xs) + max(xs)) / 2
    center_y = (min(ys) + max(ys)) / 2
    offset_x, offset_y = target[0] - center_x, target[1] - center_y

    id_map: dict[str, str] = {}
    nodes = []
    for item in payload.nodes:
        node_id = new_node_id(item.type)
        id_map[item.id] = node_id
        data = item.data
        nodes.append(Node(
            id=node_id,
            type=item.type,
            params=dict(data.params),
            dynamic_inputs=[s.model_dump() for s in data.dynamicInputs or []],
            dynamic_outputs=[s.model_dump() for s in data.dynamicOutputs or []],
            code=data.code,
            label=data.label,
            position=(item.position.x + offset_x, item.position.y + offset_y),
            selected=True,
            dirty=True,
        ))

    edges = []
    for item in payload.edges:
        source, target_id = id_map.get(item.source), id_map.get(item.target)
        if source is None or target_id is None:
            continue
        edges.append(Edge(
            id=new_edge_id(source, target_id),
            source=source,
            source_socket=item.sourceHandle or '',
            target=target_id,
            target_socket=item.targetHandle or '',
        ))
    return nodes, edges
