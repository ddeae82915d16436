"""
Workflow Graph Orchestration

Node graphs built in the editor (prompt → text-to-video → upscale → music →
merge → preview) are validated, ordered and executed against the generation
services:
  Graph     — models, validation, Kahn ordering
  Execution — per-kind node executor, sequential engine, background runs
  Sharing   — compact LZ-String links and the template catalog
"""

from .engine import (
    CancellationToken,
    ExecutionCallbacks,
    FailureMode,
    WorkflowEngine,
    WorkflowRunService,
)
from .errors import (
    CyclicGraphError,
    DanglingEdgeError,
    DecodeError,
    DuplicateNodeError,
    NodeExecutionError,
    WorkflowError,
    WorkflowValidationError,
)
from .executors import NodeExecutor
from .graph import execution_order, lint_workflow, topological_sort, validate
from .models import (
    Edge,
    ExecutionResult,
    ExecutionStatus,
    Node,
    NodeKind,
    Position,
    WorkflowGraph,
)
from .sharing import build_share_url, decode_workflow, encode_workflow
from .templates import get_template, instantiate_template, list_templates

__all__ = [
    "CancellationToken",
    "ExecutionCallbacks",
    "FailureMode",
    "WorkflowEngine",
    "WorkflowRunService",
    "CyclicGraphError",
    "DanglingEdgeError",
    "DecodeError",
    "DuplicateNodeError",
    "NodeExecutionError",
    "WorkflowError",
    "WorkflowValidationError",
    "NodeExecutor",
    "execution_order",
    "lint_workflow",
    "topological_sort",
    "validate",
    "Edge",
    "ExecutionResult",
    "ExecutionStatus",
    "Node",
    "NodeKind",
    "Position",
    "WorkflowGraph",
    "build_share_url",
    "decode_workflow",
    "encode_workflow",
    "get_template",
    "instantiate_template",
    "list_templates",
]
