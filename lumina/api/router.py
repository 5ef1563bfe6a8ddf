"""Graph editing and execution API endpoints.

All endpoints operate on the engine stored in ``app.state.engine``:

/catalog                 node palette
/nodes, /nodes/{id}/...  node mutations and outputs
/outputs                 all cached outputs
/edges, /edges/{id}      connections
/run, /pause             execution control
/clipboard/...           copy/paste envelopes

Images in node outputs are returned as PNG data URLs.
"""

from typing import Any, Optional

import numpy as np
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from PIL import Image as PILImage

from ..catalog import NODE_CATALOG, NodeType
from ..engine import Engine
from ..errors import GraphError
from ..graph import Edge, Node, new_edge_id
from ..imageops import decode_image, is_image_value, to_data_url

router = APIRouter(tags=["graph"])


def get_engine(request: Request) -> Engine:
    """Engine dependency, stored on the application state."""
    return request.app.state.engine


def encode_value(value: Any) -> Any:
    """Make a cached output value JSON serializable.

    Image buffers become PNG data URLs; containers are converted
    recursively and numpy scalars become Python numbers.
    """
    if isinstance(value, np.ndarray):
        if value.ndim in (2, 3) and value.dtype == np.uint8:
            return to_data_url(value)
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (PILImage.Image, bytes, bytearray)) and is_image_value(value):
        return to_data_url(decode_image(value))
    if isinstance(value, dict):
        return {str(k): encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def _node_state(node: Node) -> dict:
    state = node.to_dict()
    state.update({
        'order': node.order,
        'dirty': node.dirty,
        'processing': node.processing,
        'error': node.error,
    })
    return state


def _require_node(engine: Engine, node_id: str) -> Node:
    node = engine.graph.nodes.get(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail=f"Node '{node_id}' not found")
    return node


# --- Request/Response Models ---


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class CreateNodeRequest(BaseModel):
    """Request body for creating a node from the catalog."""

    type: NodeType
    id: Optional[str] = None
    position: Position = Field(default_factory=Position)
    params: Optional[dict[str, Any]] = None


class ParamsUpdateRequest(BaseModel):
    """Request body for merging parameter values."""

    params: dict[str, Any]


class SocketModel(BaseModel):
    id: str
    label: Optional[str] = None


class NodeDataRequest(BaseModel):
    """Request body for updating code, dynamic sockets or the label."""

    code: Optional[str] = None
    label: Optional[str] = None
    dynamicInputs: Optional[list[SocketModel]] = None
    dynamicOutputs: Optional[list[SocketModel]] = None


class EdgeRequest(BaseModel):
    """Request body for connecting two sockets."""

    id: Optional[str] = None
    source: str
    sourceHandle: str
    target: str
    targetHandle: str


class CopyRequest(BaseModel):
    """Copy explicit node ids, or the selection / context node."""

    nodeIds: Optional[list[str]] = None
    nodeId: Optional[str] = None


class PasteRequest(BaseModel):
    payload: Any
    position: Optional[Position] = None


class ViewportRequest(BaseModel):
    x: float
    y: float


# --- Catalog ---


@router.get("/catalog")
async def get_catalog() -> dict:
    """List all node types with sockets, defaults and inspector hints."""
    return {"nodes": [definition.to_dict() for definition in NODE_CATALOG.values()]}


# --- Nodes ---


@router.get("/nodes")
async def list_nodes(engine: Engine = Depends(get_engine)) -> dict:
    """Get the whole graph with per-node execution state."""
    return {
        "nodes": [_node_state(node) for node in engine.graph],
        "edges": [edge.to_dict() for edge in engine.graph.edges],
        "paused": engine.paused,
        "running": engine.is_running,
    }


@router.get("/outputs")
async def list_outputs(engine: Engine = Depends(get_engine)) -> dict:
    """Get every cached output at once, keyed by node id."""
    return {"outputs": encode_value(engine.cache.snapshot())}


@router.post("/nodes")
async def create_node(body: CreateNodeRequest, engine: Engine = Depends(get_engine)) -> dict:
    """Create a node with catalog defaults, optionally overriding params."""
    overrides = {}
    if body.params is not None:
        overrides['params'] = {**NODE_CATALOG[body.type].fresh_params(), **body.params}
    try:
        node = engine.create_node(body.type, (body.position.x, body.position.y), body.id, **overrides)
    except GraphError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _node_state(node)


@router.get("/nodes/{node_id}")
async def get_node(node_id: str, engine: Engine = Depends(get_engine)) -> dict:
    return _node_state(_require_node(engine, node_id))


@router.delete("/nodes/{node_id}")
async def delete_node(node_id: str, engine: Engine = Depends(get_engine)) -> dict:
    _require_node(engine, node_id)
    engine.remove_node(node_id)
    return {"success": True, "id": node_id}


@router.patch("/nodes/{node_id}/params")
async def update_params(node_id: str, body: ParamsUpdateRequest, engine: Engine = Depends(get_engine)) -> dict:
    """Merge parameter values; the node and its descendants become dirty."""
    _require_node(engine, node_id)
    return _node_state(engine.update_node_params_batch(node_id, body.params))


@router.patch("/nodes/{node_id}/data")
async def update_data(node_id: str, body: NodeDataRequest, engine: Engine = Depends(get_engine)) -> dict:
    """Update code, dynamic sockets or the label."""
    _require_node(engine, node_id)
    fields = body.model_dump(exclude_unset=True)
    partial = {}
    if 'code' in fields:
        partial['code'] = fields['code']
    if 'label' in fields:
        partial['label'] = fields['label'] or ''
    if 'dynamicInputs' in fields:
        partial['dynamic_inputs'] = fields['dynamicInputs'] or []
    if 'dynamicOutputs' in fields:
        partial['dynamic_outputs'] = fields['dynamicOutputs'] or []
    return _node_state(engine.update_node_data(node_id, **partial))


@router.post("/nodes/{node_id}/reset")
async def reset_node(node_id: str, engine: Engine = Depends(get_engine)) -> dict:
    _require_node(engine, node_id)
    return _node_state(engine.reset_node_to_defaults(node_id))


@router.get("/nodes/{node_id}/output")
async def get_output(node_id: str, engine: Engine = Depends(get_engine)) -> dict:
    """Get the node's cached output; ``output`` is null if it never ran."""
    node = _require_node(engine, node_id)
    entry = engine.get_node_output(node_id)
    return {
        "id": node_id,
        "dirty": node.dirty,
        "error": node.error,
        "output": encode_value(entry) if entry is not None else None,
    }


# --- Edges ---


@router.post("/edges")
async def create_edge(body: EdgeRequest, engine: Engine = Depends(get_engine)) -> dict:
    """Connect an output socket to an input socket."""
    _require_node(engine, body.source)
    _require_node(engine, body.target)
    edge = Edge(
        id=body.id or new_edge_id(body.source, body.target),
        source=body.source,
        source_socket=body.sourceHandle,
        target=body.target,
        target_socket=body.targetHandle,
    )
    try:
        engine.add_edge(edge)
    except GraphError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return edge.to_dict()


@router.delete("/edges/{edge_id}")
async def delete_edge(edge_id: str, engine: Engine = Depends(get_engine)) -> dict:
    try:
        engine.remove_edge(edge_id)
    except GraphError:
        raise HTTPException(status_code=404, detail=f"Edge '{edge_id}' not found")
    return {"success": True, "id": edge_id}


# --- Execution ---


@router.post("/run")
async def run_graph(engine: Engine = Depends(get_engine)) -> dict:
    """Run a pass immediately, even when paused."""
    report = await engine.request_manual_run()
    return report.to_dict()


@router.post("/pause")
async def toggle_pause(engine: Engine = Depends(get_engine)) -> dict:
    return {"paused": engine.toggle_pause()}


@router.put("/viewport")
async def set_viewport(body: ViewportRequest, engine: Engine = Depends(get_engine)) -> dict:
    """Set the graph-space point used as the default paste target."""
    engine.viewport_center = (body.x, body.y)
    return {"x": body.x, "y": body.y}


# --- Clipboard ---


@router.post("/clipboard/copy")
async def copy_nodes(body: CopyRequest, engine: Engine = Depends(get_engine)) -> dict:
    """Build a clipboard envelope.

    With ``nodeIds`` those nodes are copied; otherwise the selection, or
    the context node ``nodeId`` when it is not selected.
    """
    if body.nodeIds is not None:
        return engine.copy_nodes(body.nodeIds)
    envelope = engine.copy_selection(body.nodeId)
    if envelope is None:
        raise HTTPException(status_code=400, detail="Nothing to copy")
    return envelope


@router.post("/clipboard/paste")
async def paste_nodes(body: PasteRequest, engine: Engine = Depends(get_engine)) -> dict:
    """Paste an envelope; invalid payloads paste nothing."""
    position = (body.position.x, body.position.y) if body.position is not None else None
    return {"nodes": engine.paste(body.payload, position)}
