# Lumina Engine - Engine
"""
Incremental dataflow execution.

The :class:`Engine` owns the graph, the output cache, the pause flag and
the debounce timer. Mutations mark the affected nodes dirty and, when
auto-run is enabled, arm a short timer on the running asyncio loop; when it
fires a pass runs. A pass orders the nodes topologically, skips clean nodes
that have a cached result and evaluates the rest sequentially.

Example::

    engine = Engine()
    source = engine.create_node(NodeType.NUMBER, params={'value': 2})
    viewer = engine.create_node(NodeType.OUTPUT)
    engine.connect(source.id, 'value', viewer.id, 'input')
    report = await engine.request_manual_run()
    engine.get_node_output(viewer.id)  # {'value': 2}

Passes may overlap (a timer can fire while a manual run is in flight).
Each evaluation gets a generation token; a result is committed only if its
token is newer than the one last committed for that node, so a slow stale
evaluation cannot overwrite a newer result. Every node also carries a
revision counter bumped whenever it is marked dirty; an evaluation clears
the dirty flag only if the revision it started from is still current.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING
import asyncio
import logging
import time

from ..catalog import NodeType, get_definition
from ..config import Settings, settings as default_settings
from ..errors import GraphError
from ..graph import DynamicSocket, Edge, GraphModel, Node, new_edge_id, new_node_id
from ..operations import get_operation
from . import clipboard
from .cache import NodeCache
from .scheduler import compute_execution_order, find_unscheduled

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

DATA_FIELDS = ('code', 'dynamic_inputs', 'dynamic_outputs', 'label')


@dataclass
class PassReport:
    """Summary of one execution pass.

    :ivar order: Scheduled node ids in execution order
    :ivar executed: Nodes evaluated successfully
    :ivar skipped: Clean nodes served from the cache
    :ivar failed: Nodes whose evaluation raised
    :ivar unscheduled: Nodes on or behind a cycle
    :ivar duration_ms: Wall time of the pass
    """
    order: list[str] = field(default_factory=list)
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    unscheduled: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            'order': list(self.order),
            'executed': list(self.executed),
            'skipped': list(self.skipped),
            'failed': list(self.failed),
            'unscheduled': list(self.unscheduled),
            'durationMs': round(self.duration_ms, 3),
        }


class Engine:
    """Graph execution engine with dirty tracking and caching.

    :param graph: Graph to operate on (a new empty graph by default)
    :param settings: Configuration; the module settings by default
    """

    def __init__(self, graph: GraphModel | None = None, settings: Settings | None = None):
        self.graph = graph if graph is not None else GraphModel()
        self.settings = settings if settings is not None else default_settings
        self.cache = NodeCache()
        self.paused = False
        self.viewport_center: tuple[float, float] = (0.0, 0.0)

        self._token = 0
        self._issued: dict[str, int] = {}
        self._committed: dict[str, int] = {}
        self._revisions: dict[str, int] = {}
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    # --- Queries ---

    def get_node(self, node_id: str) -> Node:
        return self.graph.get_node(node_id)

    def get_node_output(self, node_id: str) -> dict[str, Any] | None:
        """Last cached entry of a node, or None if it never ran."""
        return self.cache.get(node_id)

    @property
    def is_running(self) -> bool:
        """True while a pass task started by the debounce timer is active."""
        return bool(self._tasks)

    # --- Node mutations ---

    def add_node(self, node: Node) -> Node:
        """Add a node; it starts dirty.

        :raises GraphError: If the id is taken
        """
        self.graph.add_node(node)
        node.dirty = True
        node.error = None
        logger.debug("Added node %s (%s)", node.id, node.type.value)
        self._schedule_run()
        return node

    def create_node(
        self,
        node_type: NodeType | str,
        position: tuple[float, float] = (0.0, 0.0),
        node_id: str | None = None,
        **overrides: Any,
    ) -> Node:
        """Create a node from the catalog defaults and add it.

        :param node_type: Node kind
        :param position: Editor position
        :param node_id: Explicit id; generated as ``<type>_<hex>`` if omitted
        :param overrides: Node fields replacing the defaults (``params``, ...)
        """
        node = Node.create(node_id or new_node_id(node_type), node_type, position, **overrides)
        return self.add_node(node)

    def remove_node(self, node_id: str) -> Node:
        """Remove a node, its edges and its cache entry."""
        node = self.graph.remove_node(node_id)
        self.cache.evict(node_id)
        # Any evaluation still in flight for this id must not commit
        self._committed[node_id] = self._token
        self._issued.pop(node_id, None)
        self._revisions.pop(node_id, None)
        logger.debug("Removed node %s", node_id)
        return node

    def update_node_param(self, node_id: str, key: str, value: Any) -> Node:
        """Set one parameter. Installs a new params dict and marks dirty."""
        return self.update_node_params_batch(node_id, {key: value})

    def update_node_params_batch(self, node_id: str, updates: dict[str, Any]) -> Node:
        """Merge several parameters at once."""
        node = self.graph.get_node(node_id)
        node.params = {**node.params, **updates}
        self.mark_dirty(node_id)
        return node

    def update_node_data(self, node_id: str, **partial: Any) -> Node:
        """Update code, dynamic sockets or the display label.

        Edges attached to dynamic sockets that no longer exist are removed.
        A label-only change does not invalidate the node.

        :raises GraphError: For unknown fields
        """
        unknown = set(partial) - set(DATA_FIELDS)
        if unknown:
            raise GraphError(f"Cannot update node fields: {', '.join(sorted(unknown))}")

        node = self.graph.get_node(node_id)
        if 'label' in partial:
            node.label = str(partial['label'])
        if 'code' in partial:
            node.code = partial['code']
        if 'dynamic_inputs' in partial:
            node.dynamic_inputs = [DynamicSocket.from_value(s) for s in partial['dynamic_inputs'] or []]
        if 'dynamic_outputs' in partial:
            node.dynamic_outputs = [DynamicSocket.from_value(s) for s in partial['dynamic_outputs'] or []]

        if set(partial) - {'label'}:
            self._prune_edges(node_id)
            self.mark_dirty(node_id)
        return node

    def reset_node_to_defaults(self, node_id: str) -> Node:
        """Restore catalog params, code and dynamic inputs."""
        node = self.graph.get_node(node_id)
        definition = get_definition(node.type)
        node.params = definition.fresh_params()
        node.code = definition.default_code
        node.dynamic_inputs = [DynamicSocket.from_value(s) for s in definition.fresh_inputs()]
        self._prune_edges(node_id)
        self.mark_dirty(node_id)
        return node

    def _prune_edges(self, node_id: str) -> None:
        for edge in self.graph.prune_edges(node_id):
            logger.debug("Removed edge %s to a deleted socket", edge.id)

    # --- Edge mutations ---

    def add_edge(self, edge: Edge) -> Edge:
        """Add an edge and mark its target and descendants dirty.

        :raises GraphError: If the edge is invalid
        """
        self.graph.add_edge(edge)
        self.mark_dirty(edge.target)
        return edge

    def connect(
        self,
        source: str,
        source_socket: str,
        target: str,
        target_socket: str,
        edge_id: str | None = None,
    ) -> Edge:
        """Convenience wrapper around :meth:`add_edge`."""
        edge = Edge(
            id=edge_id or new_edge_id(source, target),
            source=source,
            source_socket=source_socket,
            target=target,
            target_socket=target_socket,
        )
        return self.add_edge(edge)

    def remove_edge(self, edge_id: str) -> Edge:
        """Remove an edge. Nothing is marked dirty; cached values persist."""
        return self.graph.remove_edge(edge_id)

    # --- Dirty propagation ---

    def mark_dirty(self, node_id: str) -> list[str]:
        """Mark a node and all its descendants dirty and clear their errors.

        :returns: The affected node ids, breadth-first from ``node_id``
        """
        self.graph.get_node(node_id)
        affected = self.graph.reachable_from(node_id)
        for affected_id in affected:
            node = self.graph.nodes[affected_id]
            node.dirty = True
            node.error = None
            self._bump_revision(affected_id)
        self._schedule_run()
        return affected

    def clear(self) -> None:
        """Remove all nodes, edges and cached results."""
        self._cancel_timer()
        for node_id in self.graph.nodes:
            self._committed[node_id] = self._token
        self.graph = GraphModel()
        self.cache.clear()
        self._issued.clear()
        self._revisions.clear()

    # --- Clipboard ---

    def copy_nodes(self, node_ids: Iterable[str]) -> dict[str, Any]:
        """Clipboard envelope for the given nodes and the edges between them."""
        return clipboard.copy_nodes(self.graph, list(node_ids))

    def copy_selection(self, node_id: str | None = None) -> dict[str, Any] | None:
        """Copy the selection (or the context node); None if nothing to copy."""
        node_ids = clipboard.selection_for_copy(self.graph, node_id)
        if not node_ids:
            return None
        return self.copy_nodes(node_ids)

    def paste(
        self,
        payload: dict[str, Any] | str,
        position: tuple[float, float] | None = None,
    ) -> list[str]:
        """Paste a clipboard envelope centered on ``position``.

        Falls back to :attr:`viewport_center` without a position. Pasted
        nodes are selected and dirty, all others are deselected. Edges that
        do not fit the pasted nodes are dropped.

        :returns: Ids of the new nodes; empty for an invalid payload
        """
        parsed = clipboard.parse_payload(payload)
        if parsed is None:
            return []

        target = position if position is not None else self.viewport_center
        nodes, edges = clipboard.build_paste(parsed, target)
        if not nodes:
            return []

        for node in self.graph:
            node.selected = False
        for node in nodes:
            self.graph.add_node(node)
        for edge in edges:
            try:
                self.graph.add_edge(edge)
            except GraphError as e:
                logger.warning("Dropping pasted edge %s: %s", edge.id, e)

        logger.info("Pasted %d node(s), %d edge(s)", len(nodes), len(edges))
        self._schedule_run()
        return [node.id for node in nodes]

    # --- Execution control ---

    def toggle_pause(self) -> bool:
        """Flip the pause flag; unpausing schedules a pass.

        :returns: The new pause state
        """
        self.paused = not self.paused
        if self.paused:
            self._cancel_timer()
        else:
            self._schedule_run()
        logger.info("Engine %s", "paused" if self.paused else "resumed")
        return self.paused

    async def request_manual_run(self) -> PassReport:
        """Run a pass now, even when paused."""
        self._cancel_timer()
        return await self.run_pass()

    async def wait_idle(self) -> None:
        """Wait for the pending debounce timer and all started passes."""
        while self._timer is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks))
            else:
                await asyncio.sleep(self.settings.DEBOUNCE_SECONDS / 2)

    def _schedule_run(self) -> None:
        if not self.settings.AUTO_RUN or self.paused:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Synchronous caller without a loop; passes are run explicitly
            return
        self._cancel_timer()
        self._timer = loop.call_later(self.settings.DEBOUNCE_SECONDS, self._start_pass)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _start_pass(self) -> None:
        self._timer = None
        if self.paused or not any(node.dirty for node in self.graph):
            return
        task = asyncio.get_running_loop().create_task(self.run_pass())
        self._tasks.add(task)
        task.add_done_callback(self._pass_done)

    def _pass_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Execution pass crashed", exc_info=task.exception())

    # --- Pass execution ---

    async def run_pass(self) -> PassReport:
        """Evaluate every dirty or uncached node in topological order."""
        started = time.perf_counter()
        order = compute_execution_order(self.graph)
        report = PassReport(order=order, unscheduled=find_unscheduled(self.graph, order))

        for node_id in order:
            node = self.graph.nodes.get(node_id)
            if node is None:
                continue
            if not node.dirty and self.cache.has(node_id):
                report.skipped.append(node_id)
                continue
            await self._evaluate(node, report)

        report.duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Pass finished: %d executed, %d skipped, %d failed, %d unscheduled in %.1f ms",
            len(report.executed), len(report.skipped), len(report.failed),
            len(report.unscheduled), report.duration_ms,
        )
        return report

    def resolve_inputs(self, node_id: str) -> dict[str, Any]:
        """Collect a node's input values from its sources' cache entries.

        A ``batch`` input fed from a source that only has a list under
        ``image`` receives that list, and an ``image`` input fed from a
        source without ``image`` receives its ``batch``.
        """
        inputs: dict[str, Any] = {}
        for edge in self.graph.incoming(node_id):
            entry = self.cache.get(edge.source)
            if entry is None:
                continue
            inputs[edge.target_socket] = entry.get(edge.source_socket)

            if (edge.target_socket == 'batch' and entry.get('batch') is None
                    and isinstance(entry.get('image'), list)):
                inputs['batch'] = entry['image']
            if (edge.target_socket == 'image' and entry.get('image') is None
                    and entry.get('batch') is not None):
                inputs['image'] = entry['batch']
        return inputs

    def _next_token(self, node_id: str) -> int:
        self._token += 1
        self._issued[node_id] = self._token
        return self._token

    def _bump_revision(self, node_id: str) -> None:
        self._revisions[node_id] = self._revisions.get(node_id, 0) + 1

    def _is_stale(self, node_id: str, revision: int) -> bool:
        """True if the node was invalidated after its evaluation started."""
        return self._revisions.get(node_id, 0) != revision

    def _can_commit(self, node: Node, token: int) -> bool:
        if self.graph.nodes.get(node.id) is not node:
            return False
        return token > self._committed.get(node.id, 0)

    async def _evaluate(self, node: Node, report: PassReport) -> None:
        inputs = self.resolve_inputs(node.id)
        params_used = node.params
        revision = self._revisions.get(node.id, 0)
        token = self._next_token(node.id)
        operation = get_operation(node.type)

        node.processing = True
        started = time.perf_counter()
        try:
            result = await operation.run(inputs, params_used, node)
        except Exception as e:  # node boundary: failures are stored, the pass continues
            self._finish(node, token)
            if not self._can_commit(node, token):
                return
            self._committed[node.id] = token
            message = str(e) or e.__class__.__name__
            self.cache.store_error(node.id, message)
            node.error = message
            node.dirty = self._is_stale(node.id, revision)
            report.failed.append(node.id)
            logger.warning("Node %s (%s) failed: %s", node.id, node.type.value, message)
            return

        self._finish(node, token)
        if not self._can_commit(node, token):
            logger.debug("Discarding stale result of node %s", node.id)
            return
        self._committed[node.id] = token
        self.cache.store(node.id, result)
        node.dirty = self._is_stale(node.id, revision)
        node.error = None
        for child_id in self.graph.children(node.id):
            self.graph.nodes[child_id].dirty = True
            self._bump_revision(child_id)
        report.executed.append(node.id)
        logger.debug(
            "Node %s (%s) evaluated in %.1f ms",
            node.id, node.type.value, (time.perf_counter() - started) * 1000,
        )

    def _finish(self, node: Node, token: int) -> None:
        # Only the latest evaluation of a node clears the flag
        if self._issued.get(node.id) == token:
            node.processing = False
