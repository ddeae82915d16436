"""
Graph validation and ordering.

validate() checks ids and edge endpoints; topological_sort() is Kahn's
algorithm with ties broken by position in the node list, so identical input
always yields the same order. Cycles show up as a short result.
"""

from collections import deque
from typing import Iterable

from .errors import CyclicGraphError, DanglingEdgeError, DuplicateNodeError
from .models import Edge, Node, NodeKind, WorkflowGraph


def validate(graph: WorkflowGraph) -> None:
    """Raise a WorkflowValidationError if ids or edge endpoints are broken."""
    seen: set[str] = set()
    for node in graph.nodes:
        if node.id in seen:
            raise DuplicateNodeError(node.id)
        seen.add(node.id)

    for edge in graph.edges:
        if edge.source not in seen:
            raise DanglingEdgeError(edge.id, edge.source)
        if edge.target not in seen:
            raise DanglingEdgeError(edge.id, edge.target)


def topological_sort(nodes: Iterable[Node], edges: Iterable[Edge]) -> list[str]:
    """
    Kahn's algorithm.

    Returns node ids in execution order. If the result is shorter than the
    node list the graph has a cycle. Edges with an unknown endpoint are
    ignored here; validate() is responsible for rejecting them.
    """
    node_ids = [n.id for n in nodes]
    successors: dict[str, list[str]] = {nid: [] for nid in node_ids}
    in_degree: dict[str, int] = {nid: 0 for nid in node_ids}

    for edge in edges:
        if edge.source not in successors or edge.target not in in_degree:
            continue
        successors[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque(nid for nid in node_ids if in_degree[nid] == 0)
    order: list[str] = []

    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        for succ in successors[node_id]:
            in_degree[succ] -= 1
            if in_degree[succ] == 0:
                queue.append(succ)

    return order


def execution_order(graph: WorkflowGraph) -> list[str]:
    """Topological order, or CyclicGraphError naming the nodes left over."""
    order = topological_sort(graph.nodes, graph.edges)
    if len(order) < len(graph.nodes):
        placed = set(order)
        unsorted = [n.id for n in graph.nodes if n.id not in placed]
        raise CyclicGraphError(unsorted)
    return order


def downstream_of(graph: WorkflowGraph, node_id: str) -> list[str]:
    """All transitive dependents of node_id, breadth-first, excluding itself."""
    found: list[str] = []
    seen = {node_id}
    queue = deque([node_id])
    while queue:
        current = queue.popleft()
        for edge in graph.outgoing(current):
            if edge.target not in seen:
                seen.add(edge.target)
                found.append(edge.target)
                queue.append(edge.target)
    return found


def lint_workflow(graph: WorkflowGraph) -> list[str]:
    """
    Editor-level warnings. Advisory only, never blocks a run.
    """
    warnings: list[str] = []

    if not graph.nodes:
        warnings.append("Workflow is empty")
        return warnings

    connected: set[str] = set()
    for edge in graph.edges:
        connected.add(edge.source)
        connected.add(edge.target)

    for node in graph.nodes:
        if node.kind != NodeKind.PROMPT.value and node.id not in connected:
            label = node.data.get("label") or node.kind
            warnings.append(f'Node "{label}" is not connected')

    for node in graph.nodes:
        if node.kind == NodeKind.TEXT_TO_VIDEO.value:
            if not graph.incoming(node.id) and not node.data.get("value"):
                warnings.append("Text to Video node needs a prompt input")

    return warnings
