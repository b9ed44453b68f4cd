"""Deterministic execution order for workflow graphs.

Kahn's algorithm with ties broken by declaration order: the queue is seeded
with zero in-degree nodes in the order they appear in ``graph.nodes``, and
newly freed nodes are enqueued in the order their edges are visited.
"""

import logging
from collections import deque

from .exceptions import CycleError
from .models import WorkflowGraph

logger = logging.getLogger(__name__)


def build_execution_order(graph: WorkflowGraph, strict: bool = False) -> list[str]:
    """Build the execution order of nodes using topological sort.

    When the graph has a cycle the sort cannot place every node. In that case
    the declaration order is returned unchanged, unless ``strict`` is set.

    Args:
        graph: The workflow graph
        strict: Raise instead of falling back when a cycle prevents a full order

    Returns:
        List of node IDs in execution order

    Raises:
        CycleError: If ``strict`` is set and a cycle is detected
    """
    declared = [node.id for node in graph.nodes]
    known = set(declared)

    successors: dict[str, list[str]] = {node_id: [] for node_id in declared}
    in_degree: dict[str, int] = dict.fromkeys(declared, 0)

    for edge in graph.edges:
        # Dangling edges are reported by the validator; they carry no ordering
        if edge.source not in known or edge.target not in known:
            continue
        successors[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque(node_id for node_id in declared if in_degree[node_id] == 0)
    order: list[str] = []
    placed: set[str] = set()

    while queue:
        node_id = queue.popleft()
        if node_id in placed:
            continue
        placed.add(node_id)
        order.append(node_id)
        for neighbor in successors[node_id]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(order) < len(known):
        remaining = [node_id for node_id in declared if node_id not in placed]
        if strict:
            raise CycleError(f"Circular dependency detected involving nodes: {', '.join(remaining)}")
        logger.warning(
            f"Cycle involving {', '.join(remaining)}; using declaration order",
            extra={"phase": "sequencing"},
        )
        return list(dict.fromkeys(declared))

    return order
