"""Pytest configuration and fixtures."""
import os

import pytest

# Keep the default collaborators pointed at nothing real
os.environ.setdefault("GENERATION_API_BASE", "http://generation.test")
os.environ.setdefault("GENERATION_API_KEY", "test-key")

from videoflow import metrics
from videoflow.workflow.models import Edge, Node, Position, WorkflowGraph


class StubStudio:
    """
    Stand-in for the generation services.

    Records every call; any text-to-video prompt listed in ``fail_prompts``
    raises the way a rejected provider call would.
    """

    def __init__(self, fail_prompts=()):
        self.fail_prompts = set(fail_prompts)
        self.calls = []

    async def text_to_video(self, params):
        self.calls.append(("textToVideo", params))
        if params["prompt"] in self.fail_prompts:
            raise RuntimeError("Failed to generate video")
        slug = params["prompt"].replace(" ", "-") or "untitled"
        return {
            "videoUrl": f"https://cdn.test/{slug}.mp4",
            "thumbnailUrl": f"https://cdn.test/{slug}.jpg",
        }

    async def image_to_video(self, params):
        self.calls.append(("imageToVideo", params))
        return {"videoUrl": "https://cdn.test/animated.mp4", "thumbnailUrl": "https://cdn.test/animated.jpg"}

    async def upscale(self, params):
        self.calls.append(("upscale", params))
        return {"videoUrl": params["videoUrl"].replace(".mp4", f"-{params['scale']}.mp4")}

    async def music(self, params):
        self.calls.append(("music", params))
        return {"audioUrl": "https://cdn.test/score.mp3"}

    async def lip_sync(self, params):
        self.calls.append(("lipSync", params))
        return {"videoUrl": "https://cdn.test/talking.mp4"}

    def collaborators(self):
        return {
            "textToVideo": self.text_to_video,
            "imageToVideo": self.image_to_video,
            "upscale": self.upscale,
            "music": self.music,
            "lipSync": self.lip_sync,
        }

    def kinds_called(self):
        return [kind for kind, _ in self.calls]


def make_node(node_id, kind, x=0, y=0, **data):
    return Node(id=node_id, kind=kind, position=Position(x=x, y=y), data=data)


def make_edge(source, target, source_handle=None, target_handle=None):
    return Edge(
        id=f"e{source}-{target}",
        source=source,
        target=target,
        source_handle=source_handle,
        target_handle=target_handle,
    )


@pytest.fixture(autouse=True)
def clean_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def studio():
    return StubStudio()


@pytest.fixture
def t2v_graph():
    """prompt → textToVideo → preview"""
    return WorkflowGraph(
        nodes=[
            make_node("1", "prompt", 100, 200, value="cat"),
            make_node("2", "textToVideo", 420, 200, model="wan-2.1", duration=5),
            make_node("3", "preview", 740, 200),
        ],
        edges=[make_edge("1", "2"), make_edge("2", "3")],
    )


@pytest.fixture
def two_branch_graph():
    """Two independent prompt → textToVideo → preview chains; the first one fails."""
    return WorkflowGraph(
        nodes=[
            make_node("1", "prompt", value="fail-me"),
            make_node("2", "textToVideo", model="wan-2.1", duration=5),
            make_node("3", "preview"),
            make_node("4", "prompt", value="dog"),
            make_node("5", "textToVideo", model="wan-2.1", duration=5),
            make_node("6", "preview"),
        ],
        edges=[
            make_edge("1", "2"),
            make_edge("2", "3"),
            make_edge("4", "5"),
            make_edge("5", "6"),
        ],
    )
