# Lumina Engine - Scheduler
"""
Execution ordering.

Kahn's algorithm over the current edges. Among ready nodes the one created
first runs first, so the order is deterministic for a given graph. Nodes on
a cycle, and everything downstream of one, never reach in-degree zero; they
are left out of the order and never executed.
"""

from __future__ import annotations

import heapq
import logging

from ..graph import GraphModel

logger = logging.getLogger(__name__)


def compute_execution_order(graph: GraphModel) -> list[str]:
    """Topologically sort the graph's nodes.

    :param graph: The graph to order
    :returns: Node ids in execution order; nodes in or behind a cycle are
        omitted
    """
    in_degree = {node_id: 0 for node_id in graph.nodes}
    adjacency: dict[str, list[str]] = {node_id: [] for node_id in graph.nodes}
    for edge in graph.edges:
        if edge.source in adjacency and edge.target in in_degree:
            adjacency[edge.source].append(edge.target)
            in_degree[edge.target] += 1

    ready = [(node.order, node.id) for node in graph if in_degree[node.id] == 0]
    heapq.heapify(ready)

    order = []
    while ready:
        _, node_id = heapq.heappop(ready)
        order.append(node_id)
        for child in adjacency[node_id]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                heapq.heappush(ready, (graph.nodes[child].order, child))

    if len(order) < len(graph):
        logger.warning(
            "Excluding %d node(s) on or behind a cycle: %s",
            len(graph) - len(order),
            ", ".join(find_unscheduled(graph, order)),
        )
    return order


def find_unscheduled(graph: GraphModel, order: list[str]) -> list[str]:
    """Nodes missing from an execution order, in creation order."""
    scheduled = set(order)
    return [node.id for node in graph if node.id not in scheduled]
