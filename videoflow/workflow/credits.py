"""
Credit cost estimation per node and per workflow.

Costs are in thousands of points (50 = 50K). Estimation only; charging
happens in the hosting app's ledger.
"""

from typing import Callable, Iterable, Union

from .models import Node

# ── Base costs ───────────────────────────────────────────────────────────────

TEXT_TO_VIDEO_COSTS = {
    "wan-2.1": 50,
    "kling-1.6": 75,
    "ltx-video": 40,
    "hunyuan": 60,
}

IMAGE_TO_VIDEO_COSTS = {
    "wan-i2v": 60,
    "kling-i2v": 80,
    "runway-gen3": 100,
}

UPSCALE_COSTS = {
    "2x": 20,
    "4x": 40,
    "creative": 50,
}


def _text_to_video_cost(data: dict) -> int:
    duration = data.get("duration") or 5
    model = data.get("model") or "wan-2.1"
    # round half up, matching the editor's Math.round
    return int(TEXT_TO_VIDEO_COSTS.get(model, 50) * (duration / 5) + 0.5)


def _image_to_video_cost(data: dict) -> int:
    model = data.get("model") or "wan-i2v"
    return IMAGE_TO_VIDEO_COSTS.get(model, 60)


def _upscale_cost(data: dict) -> int:
    scale = data.get("scale") or "2x"
    return UPSCALE_COSTS.get(scale, 20)


NODE_CREDIT_COSTS: dict[str, Union[int, Callable[[dict], int]]] = {
    "prompt": 0,
    "preview": 0,
    "textToVideo": _text_to_video_cost,
    "imageToVideo": _image_to_video_cost,
    "upscale": _upscale_cost,
    "music": 30,
    "merge": 5,
}


def node_credit_cost(node: Node) -> int:
    cost = NODE_CREDIT_COSTS.get(node.kind, 0)
    if callable(cost):
        return cost(node.data or {})
    return cost


def workflow_credit_cost(nodes: Iterable[Node]) -> int:
    return sum(node_credit_cost(n) for n in nodes)
