"""
Workflow error taxonomy.

Structural errors (validation, cycles) abort a run before any node is
dispatched. Node errors are recorded on the failing node's result slot.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all workflow errors."""


# ── Structural ───────────────────────────────────────────────────────────────

class WorkflowValidationError(WorkflowError):
    pass


class DuplicateNodeError(WorkflowValidationError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Duplicate node id: {node_id!r}")


class DanglingEdgeError(WorkflowValidationError):
    def __init__(self, edge_id: str, missing_node_id: str):
        self.edge_id = edge_id
        self.missing_node_id = missing_node_id
        super().__init__(
            f"Edge {edge_id!r} references unknown node {missing_node_id!r}"
        )


class CyclicGraphError(WorkflowError):
    def __init__(self, unsorted_ids: list[str]):
        self.unsorted_ids = unsorted_ids
        super().__init__(
            f"Workflow contains a cycle through: {', '.join(unsorted_ids)}"
        )


# ── Per-node ─────────────────────────────────────────────────────────────────

class NodeExecutionError(WorkflowError):
    def __init__(self, node_id: str, message: str, kind: Optional[str] = None):
        self.node_id = node_id
        self.message = message
        self.kind = kind
        super().__init__(f"Node {node_id} failed: {message}")


# ── Sharing ──────────────────────────────────────────────────────────────────

class DecodeError(WorkflowError):
    """Raised internally for corrupt share tokens; never escapes decode_workflow."""
