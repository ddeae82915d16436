"""
Pydantic models and enums for the workflow graph.

Wire field names follow the editor (camelCase handles, ``type`` for the node
kind); Python attributes are snake_case.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Node Kinds ───────────────────────────────────────────────────────────────

class NodeKind(str, Enum):
    PROMPT = "prompt"
    TEXT_TO_VIDEO = "textToVideo"
    IMAGE_TO_VIDEO = "imageToVideo"
    UPSCALE = "upscale"
    MUSIC = "music"
    MERGE = "merge"
    LIP_SYNC = "lipSync"
    PREVIEW = "preview"


DEFAULT_PORT = "default"


# ── Graph ────────────────────────────────────────────────────────────────────

class Position(BaseModel):
    """Editor canvas position. Carried through, never interpreted."""
    x: float = 0
    y: float = 0


class Node(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    kind: str = Field(..., alias="type")
    position: Position = Field(default_factory=Position)
    data: dict[str, Any] = Field(default_factory=dict)


class Edge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target_handle: Optional[str] = Field(None, alias="targetHandle")

    @property
    def port(self) -> str:
        """Input port name this edge delivers to on its target."""
        return self.target_handle or self.source_handle or DEFAULT_PORT


class WorkflowGraph(BaseModel):
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def node_by_id(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def incoming(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def outgoing(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.source == node_id]


# ── Per-kind Parameters ──────────────────────────────────────────────────────
# Only the fields the engine reads. Everything else in node.data (label,
# editor-only flags) is ignored here and preserved on the node itself.

class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PromptParams(_Params):
    value: Optional[str] = ""


class TextToVideoParams(_Params):
    model: Optional[str] = "wan-2.1"
    duration: Optional[int] = 5
    value: Optional[str] = ""  # inline prompt when no prompt node is wired


class ImageToVideoParams(_Params):
    model: Optional[str] = "wan-i2v"
    motion_strength: Optional[int] = Field(50, alias="motionStrength")
    image_url: Optional[str] = Field("", alias="imageUrl")


class UpscaleParams(_Params):
    scale: Optional[str] = "2x"


class MusicParams(_Params):
    prompt: Optional[str] = "cinematic orchestral"
    duration: Optional[int] = 15


class MergeParams(_Params):
    pass


class LipSyncParams(_Params):
    image_url: Optional[str] = Field("", alias="imageUrl")
    expression_scale: Optional[float] = Field(1.0, alias="expressionScale")


class PreviewParams(_Params):
    video_url: Optional[str] = Field(None, alias="videoUrl")
    thumbnail_url: Optional[str] = Field(None, alias="thumbnailUrl")


NODE_PARAMS: dict[str, type[_Params]] = {
    NodeKind.PROMPT.value: PromptParams,
    NodeKind.TEXT_TO_VIDEO.value: TextToVideoParams,
    NodeKind.IMAGE_TO_VIDEO.value: ImageToVideoParams,
    NodeKind.UPSCALE.value: UpscaleParams,
    NodeKind.MUSIC.value: MusicParams,
    NodeKind.MERGE.value: MergeParams,
    NodeKind.LIP_SYNC.value: LipSyncParams,
    NodeKind.PREVIEW.value: PreviewParams,
}


def parse_params(node: Node) -> Optional[_Params]:
    """Typed view of ``node.data`` for known kinds, ``None`` otherwise.

    Nulls and empty strings left behind by the editor fall back to the
    kind's defaults.
    """
    params_cls = NODE_PARAMS.get(node.kind)
    if params_cls is None:
        return None
    data = {k: v for k, v in node.data.items() if v is not None and v != ""}
    return params_cls.model_validate(data)


# ── Execution ────────────────────────────────────────────────────────────────

class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class ExecutionResult(BaseModel):
    node_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    output: Any = None
    error: Optional[str] = None
    credit_cost: int = 0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"          # at least one node failed
    CANCELLED = "cancelled"
    REJECTED = "rejected"      # structural error, nothing ran


class RunSummary(BaseModel):
    run_id: str
    status: RunStatus
    results: dict[str, ExecutionResult] = Field(default_factory=dict)
    total_credit_cost: int = 0
    error: Optional[str] = None
    created_at: Optional[float] = None
    finished_at: Optional[float] = None


# ── Sharing / Templates ──────────────────────────────────────────────────────

class DecodedWorkflow(BaseModel):
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    name: Optional[str] = None


class Template(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str  # basic, advanced, production
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def to_graph(self) -> WorkflowGraph:
        return WorkflowGraph(
            nodes=[n.model_copy(deep=True) for n in self.nodes],
            edges=[e.model_copy(deep=True) for e in self.edges],
        )


# ── API Request Models ───────────────────────────────────────────────────────

class WorkflowRunRequest(BaseModel):
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    block_dependents: bool = Field(
        False, description="Skip dependents of a failed node instead of running them"
    )


class WorkflowShareRequest(BaseModel):
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    name: Optional[str] = None
    base_url: Optional[str] = None
