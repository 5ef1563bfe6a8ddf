# Lumina - Graph Model
"""
Nodes, edges and the graph container the engine operates on.

The graph is owned by the surrounding editor; the engine reads it and
mutates node fields only through its own API. Nodes keep their creation
order, which the scheduler uses to break ties deterministically.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterator
import copy
import uuid

from .catalog import NodeType, get_definition
from .errors import GraphError


def new_node_id(node_type: NodeType | str) -> str:
    """Fresh node id of the form ``<type>_<hex>``."""
    return f"{NodeType(node_type).value}_{uuid.uuid4().hex[:12]}"


def new_edge_id(source: str, target: str) -> str:
    """Fresh edge id of the form ``e_<source>_<target>_<hex>``."""
    return f"e_{source}_{target}_{uuid.uuid4().hex[:5]}"


@dataclass
class DynamicSocket:
    """A variable-arity socket (math and batch-convert inputs)."""

    id: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return {'id': self.id, 'label': self.label}

    @classmethod
    def from_value(cls, value: DynamicSocket | dict[str, Any]) -> DynamicSocket:
        """Accept either a DynamicSocket or an ``{'id', 'label'}`` dict."""
        if isinstance(value, DynamicSocket):
            return value
        socket_id = str(value['id'])
        label = value.get('label')
        return cls(id=socket_id, label=socket_id if label is None else str(label))


@dataclass
class Node:
    """A typed unit of computation.

    Nodes are created dirty. ``params`` is replaced (never mutated in
    place) on every update so an in-flight evaluation can detect that it
    ran with stale parameters by identity.

    :ivar id: Unique node identifier
    :ivar type: Node kind
    :ivar params: Parameter values
    :ivar dynamic_inputs: Variable-arity input sockets
    :ivar dynamic_outputs: Variable-arity output sockets (custom math keys)
    :ivar code: User code (math nodes only)
    :ivar dirty: Cached result is stale
    :ivar processing: An evaluation is in flight
    :ivar error: Message of the last failed evaluation
    :ivar label: Display name
    :ivar position: Editor position (x, y)
    :ivar selected: Editor selection state
    :ivar order: Creation sequence number, assigned by the graph
    """
    id: str
    type: NodeType
    params: dict[str, Any] = field(default_factory=dict)
    dynamic_inputs: list[DynamicSocket] = field(default_factory=list)
    dynamic_outputs: list[DynamicSocket] = field(default_factory=list)
    code: str | None = None
    dirty: bool = True
    processing: bool = False
    error: str | None = None
    label: str = ''
    position: tuple[float, float] = (0.0, 0.0)
    selected: bool = False
    order: int = -1

    def __post_init__(self):
        """Normalize string tags and socket dicts."""
        self.type = NodeType(self.type)
        self.dynamic_inputs = [DynamicSocket.from_value(s) for s in self.dynamic_inputs]
        self.dynamic_outputs = [DynamicSocket.from_value(s) for s in self.dynamic_outputs]
        self.position = (float(self.position[0]), float(self.position[1]))
        if not self.label:
            self.label = get_definition(self.type).label

    @classmethod
    def create(
        cls,
        node_id: str,
        node_type: NodeType | str,
        position: tuple[float, float] = (0.0, 0.0),
        **overrides: Any,
    ) -> Node:
        """Create a node populated from the catalog defaults.

        :param node_id: Unique identifier
        :param node_type: Node kind
        :param position: Editor position
        :param overrides: Field values replacing the defaults
        """
        definition = get_definition(node_type)
        kwargs: dict[str, Any] = {
            'params': definition.fresh_params(),
            'dynamic_inputs': definition.fresh_inputs(),
            'code': definition.default_code,
        }
        kwargs.update(overrides)
        return cls(id=node_id, type=definition.type, position=position, **kwargs)

    def input_socket_ids(self) -> set[str]:
        """Sockets an edge may target: static, dynamic and live parameters."""
        definition = get_definition(self.type)
        ids = set(definition.input_ids())
        ids.update(s.id for s in self.dynamic_inputs)
        ids.update(definition.default_params)
        return ids

    def output_socket_ids(self) -> set[str]:
        """Sockets an edge may originate from."""
        ids = set(get_definition(self.type).output_ids())
        ids.update(s.id for s in self.dynamic_outputs)
        return ids

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the clipboard interchange shape."""
        return {
            'id': self.id,
            'type': self.type.value,
            'position': {'x': self.position[0], 'y': self.position[1]},
            'selected': self.selected,
            'data': {
                'label': self.label,
                'params': copy.deepcopy(self.params),
                'code': self.code,
                'dynamicInputs': [s.to_dict() for s in self.dynamic_inputs],
                'dynamicOutputs': [s.to_dict() for s in self.dynamic_outputs],
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Node:
        """Deserialize from the clipboard interchange shape."""
        payload = data.get('data', {})
        position = data.get('position', {})
        return cls(
            id=data['id'],
            type=NodeType(data['type']),
            params=copy.deepcopy(payload.get('params', {})),
            dynamic_inputs=payload.get('dynamicInputs') or [],
            dynamic_outputs=payload.get('dynamicOutputs') or [],
            code=payload.get('code'),
            label=payload.get('label', ''),
            position=(position.get('x', 0.0), position.get('y', 0.0)),
            selected=bool(data.get('selected', False)),
        )


@dataclass
class Edge:
    """A directed connection from an output socket to an input socket.

    :ivar id: Unique edge identifier
    :ivar source: Source node id
    :ivar source_socket: Output socket on the source node
    :ivar target: Target node id
    :ivar target_socket: Input socket on the target node
    """
    id: str
    source: str
    source_socket: str
    target: str
    target_socket: str

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'source': self.source,
            'sourceHandle': self.source_socket,
            'target': self.target,
            'targetHandle': self.target_socket,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Edge:
        return cls(
            id=data['id'],
            source=data['source'],
            source_socket=data.get('sourceHandle', ''),
            target=data['target'],
            target_socket=data.get('targetHandle', ''),
        )


@dataclass
class GraphModel:
    """Container of nodes (in creation order) and edges."""

    nodes: dict[str, Node] = field(default_factory=dict)
    edges: list[Edge] = field(default_factory=list)
    _next_order: int = field(default=0, repr=False)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.nodes

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def get_node(self, node_id: str) -> Node:
        """Get a node by id.

        :raises GraphError: If the node does not exist
        """
        node = self.nodes.get(node_id)
        if node is None:
            raise GraphError(f"Node '{node_id}' does not exist")
        return node

    def add_node(self, node: Node) -> Node:
        """Add a node and assign its creation sequence number.

        :raises GraphError: If a node with the same id exists
        """
        if node.id in self.nodes:
            raise GraphError(f"Node '{node.id}' already exists")
        node.order = self._next_order
        self._next_order += 1
        self.nodes[node.id] = node
        return node

    def remove_node(self, node_id: str) -> Node:
        """Remove a node and all edges touching it."""
        node = self.get_node(node_id)
        del self.nodes[node_id]
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        return node

    def get_edge(self, edge_id: str) -> Edge:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        raise GraphError(f"Edge '{edge_id}' does not exist")

    def add_edge(self, edge: Edge) -> Edge:
        """Add an edge after validating both endpoints.

        An input socket accepts a single edge; connecting a second one is
        rejected instead of silently picking a winner.

        :raises GraphError: On unknown nodes, undeclared sockets, duplicate
            edge ids or an occupied target socket
        """
        source = self.get_node(edge.source)
        target = self.get_node(edge.target)
        if edge.source_socket not in source.output_socket_ids():
            raise GraphError(
                f"Node '{source.id}' ({source.type.value}) has no output '{edge.source_socket}'"
            )
        if edge.target_socket not in target.input_socket_ids():
            raise GraphError(
                f"Node '{target.id}' ({target.type.value}) has no input '{edge.target_socket}'"
            )
        for existing in self.edges:
            if existing.id == edge.id:
                raise GraphError(f"Edge '{edge.id}' already exists")
            if existing.target == edge.target and existing.target_socket == edge.target_socket:
                raise GraphError(
                    f"Input '{edge.target_socket}' of node '{edge.target}' is already connected"
                )
        self.edges.append(edge)
        return edge

    def remove_edge(self, edge_id: str) -> Edge:
        edge = self.get_edge(edge_id)
        self.edges.remove(edge)
        return edge

    def prune_edges(self, node_id: str) -> list[Edge]:
        """Remove edges of a node whose sockets no longer exist.

        Needed after a node's dynamic sockets change.

        :returns: The removed edges
        """
        node = self.get_node(node_id)
        inputs, outputs = node.input_socket_ids(), node.output_socket_ids()
        removed = [
            e for e in self.edges
            if (e.target == node_id and e.target_socket not in inputs)
            or (e.source == node_id and e.source_socket not in outputs)
        ]
        for edge in removed:
            self.edges.remove(edge)
        return removed

    def incoming(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def outgoing(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def children(self, node_id: str) -> list[str]:
        """Direct successors, without duplicates, in edge order."""
        seen: dict[str, None] = {}
        for edge in self.outgoing(node_id):
            seen.setdefault(edge.target, None)
        return list(seen)

    def reachable_from(self, node_id: str) -> list[str]:
        """Breadth-first closure of ``node_id`` over outgoing edges.

        The start node is included. The visited set makes this terminate on
        cyclic graphs.
        """
        visited = {node_id}
        result = [node_id]
        queue = deque([node_id])
        while queue:
            current = queue.popleft()
            for child in self.children(current):
                if child not in visited:
                    visited.add(child)
                    result.append(child)
                    queue.append(child)
        return result
