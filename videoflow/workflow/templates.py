"""
Template Library — pre-built workflow graphs used to seed the editor.
Users pick a starting point, we hand back a fresh copy of its graph.
"""

from typing import Optional

from .models import Edge, Node, Position, Template, WorkflowGraph

TEMPLATE_CATEGORIES = ("basic", "advanced", "production")


def _node(node_id: str, kind: str, x: float, y: float, **data) -> Node:
    return Node(id=node_id, kind=kind, position=Position(x=x, y=y), data=data)


def _edge(source: str, target: str, source_handle: Optional[str] = None,
          target_handle: Optional[str] = None) -> Edge:
    return Edge(
        id=f"e{source}-{target}",
        source=source,
        target=target,
        source_handle=source_handle,
        target_handle=target_handle,
    )


TEMPLATES: dict[str, Template] = {
    "simple-t2v": Template(
        id="simple-t2v",
        name="Simple Text to Video",
        description="Basic prompt to video generation",
        icon="🎬",
        category="basic",
        nodes=[
            _node("1", "prompt", 100, 200, label="Prompt", value=""),
            _node("2", "textToVideo", 420, 200, label="Text to Video", model="wan-2.1"),
            _node("3", "preview", 740, 200, label="Preview", videoUrl=None),
        ],
        edges=[_edge("1", "2"), _edge("2", "3")],
    ),
    "t2v-upscale": Template(
        id="t2v-upscale",
        name="T2V + 4K Upscale",
        description="Generate video then upscale to 4K",
        icon="🔍",
        category="basic",
        nodes=[
            _node("1", "prompt", 100, 200, label="Prompt", value=""),
            _node("2", "textToVideo", 420, 200, label="Text to Video", model="wan-2.1"),
            _node("3", "upscale", 740, 200, label="Upscale", scale="4x"),
            _node("4", "preview", 1020, 200, label="Preview", videoUrl=None),
        ],
        edges=[_edge("1", "2"), _edge("2", "3"), _edge("3", "4")],
    ),
    "i2v-basic": Template(
        id="i2v-basic",
        name="Image Animation",
        description="Animate a still image to video",
        icon="🎞️",
        category="basic",
        nodes=[
            _node("1", "prompt", 100, 280, label="Motion Prompt", value=""),
            _node("2", "imageToVideo", 420, 200, label="Image to Video", model="wan-i2v"),
            _node("3", "preview", 740, 200, label="Preview", videoUrl=None),
        ],
        edges=[_edge("1", "2", "prompt", "prompt"), _edge("2", "3")],
    ),
    "video-music": Template(
        id="video-music",
        name="Video with Music",
        description="Generate video and add AI background music",
        icon="🎵",
        category="advanced",
        nodes=[
            _node("1", "prompt", 100, 150, label="Video Prompt", value=""),
            _node("2", "textToVideo", 420, 100, label="Text to Video", model="wan-2.1", duration=5),
            _node("3", "music", 420, 320, label="Music", prompt="", duration=5),
            _node("4", "merge", 740, 200, label="Merge"),
            _node("5", "preview", 1000, 200, label="Preview", videoUrl=None),
        ],
        edges=[
            _edge("1", "2"),
            _edge("2", "4", "video", "video1"),
            _edge("3", "4", "audio", "audio"),
            _edge("4", "5"),
        ],
    ),
    "production-pipeline": Template(
        id="production-pipeline",
        name="Production Pipeline",
        description="Full production: T2V → Upscale → Music → Merge",
        icon="🎥",
        category="production",
        nodes=[
            _node("1", "prompt", 100, 150, label="Scene Prompt", value=""),
            _node("2", "textToVideo", 420, 100, label="Text to Video", model="kling-1.6", duration=5),
            _node("3", "upscale", 740, 100, label="Upscale", scale="4x"),
            _node("4", "music", 420, 350, label="Music", prompt="Epic cinematic orchestral", duration=5),
            _node("5", "merge", 1020, 200, label="Merge"),
            _node("6", "preview", 1280, 200, label="Final Preview", videoUrl=None),
        ],
        edges=[
            _edge("1", "2"),
            _edge("2", "3"),
            _edge("3", "5", "video", "video1"),
            _edge("4", "5", "audio", "audio"),
            _edge("5", "6"),
        ],
    ),
}


def list_templates(category: Optional[str] = None) -> list[Template]:
    """All templates in catalog order, optionally filtered by category."""
    return [
        t.model_copy(deep=True)
        for t in TEMPLATES.values()
        if category is None or t.category == category
    ]


def get_template(template_id: str) -> Optional[Template]:
    template = TEMPLATES.get(template_id)
    return template.model_copy(deep=True) if template else None


def instantiate_template(template_id: str) -> Optional[WorkflowGraph]:
    """Fresh, independently mutable graph built from a template."""
    template = get_template(template_id)
    if template is None:
        return None
    return template.to_graph()
