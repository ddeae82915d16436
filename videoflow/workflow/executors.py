"""
Node executor — one handler per node kind.

Handlers read typed parameters off ``node.data`` and named ports off
``inputs``, make at most one collaborator call, and return the node's output
dict. Unknown kinds return their inputs unchanged so graphs built by a newer
editor still run.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from .errors import NodeExecutionError
from .models import (
    DEFAULT_PORT,
    ImageToVideoParams,
    LipSyncParams,
    MusicParams,
    Node,
    NodeKind,
    PromptParams,
    TextToVideoParams,
    UpscaleParams,
    parse_params,
)

logger = logging.getLogger(__name__)

Collaborator = Callable[[dict], Awaitable[dict]]
Handler = Callable[["NodeExecutor", Node, dict], Awaitable[Any]]


def named_port(inputs: dict, port: str) -> dict:
    """Output wired to exactly ``port``, or an empty dict."""
    value = inputs.get(port)
    return value if isinstance(value, dict) else {}


def read_port(inputs: dict, port: str) -> dict:
    """Output wired to ``port``, falling back to the default port."""
    value = inputs.get(port)
    if value is None:
        value = inputs.get(DEFAULT_PORT)
    return value if isinstance(value, dict) else {}


class NodeExecutor:
    """
    Dispatches a node to the handler for its kind.

    Args:
        collaborators: kind → async callable performing the external
                       generation call for that kind.
    """

    def __init__(self, collaborators: Optional[dict[str, Collaborator]] = None):
        self.collaborators = dict(collaborators or {})

    async def execute(self, node: Node, inputs: dict) -> Any:
        handler = HANDLERS.get(node.kind)
        if handler is None:
            logger.info(f"Node {node.id}: unknown kind {node.kind!r}, passing inputs through")
            return inputs
        try:
            return await handler(self, node, inputs)
        except NodeExecutionError:
            raise
        except Exception as e:
            raise NodeExecutionError(node.id, str(e) or type(e).__name__, node.kind) from e

    async def _call(self, node: Node, payload: dict) -> dict:
        collaborator = self.collaborators.get(node.kind)
        if collaborator is None:
            raise NodeExecutionError(
                node.id, f"No generation service configured for {node.kind}", node.kind
            )
        result = await collaborator(payload)
        return result or {}


# ── Handlers ─────────────────────────────────────────────────────────────────

async def _prompt(executor: NodeExecutor, node: Node, inputs: dict) -> dict:
    params: PromptParams = parse_params(node)
    return {"prompt": params.value or ""}


async def _text_to_video(executor: NodeExecutor, node: Node, inputs: dict) -> dict:
    params: TextToVideoParams = parse_params(node)
    prompt = read_port(inputs, "prompt").get("prompt") or params.value or ""

    result = await executor._call(node, {
        "prompt": prompt,
        "modelId": params.model,
        "duration": params.duration,
    })
    return {
        "videoUrl": result.get("videoUrl"),
        "thumbnailUrl": result.get("thumbnailUrl"),
        "prompt": prompt,
    }


async def _image_to_video(executor: NodeExecutor, node: Node, inputs: dict) -> dict:
    params: ImageToVideoParams = parse_params(node)
    prompt = read_port(inputs, "prompt").get("prompt") or ""
    image_url = named_port(inputs, "image").get("imageUrl") or params.image_url or ""

    result = await executor._call(node, {
        "prompt": prompt,
        "imageUrl": image_url,
        "modelId": params.model,
        "motionStrength": params.motion_strength,
    })
    return {
        "videoUrl": result.get("videoUrl"),
        "thumbnailUrl": result.get("thumbnailUrl"),
    }


async def _upscale(executor: NodeExecutor, node: Node, inputs: dict) -> dict:
    params: UpscaleParams = parse_params(node)
    video_url = read_port(inputs, "video").get("videoUrl") or ""

    result = await executor._call(node, {"videoUrl": video_url, "scale": params.scale})
    return {
        "videoUrl": result.get("videoUrl"),
        "resolution": "4K" if params.scale == "4x" else "2K",
    }


async def _music(executor: NodeExecutor, node: Node, inputs: dict) -> dict:
    params: MusicParams = parse_params(node)
    video = named_port(inputs, "video")

    result = await executor._call(node, {"prompt": params.prompt, "duration": params.duration})
    return {
        "audioUrl": result.get("audioUrl"),
        "videoUrl": video.get("videoUrl"),
    }


async def _merge(executor: NodeExecutor, node: Node, inputs: dict) -> dict:
    # Stream muxing happens client-side; the node pairs the chosen tracks.
    video1 = named_port(inputs, "video1")
    video2 = named_port(inputs, "video2")
    audio = named_port(inputs, "audio")
    return {
        "videoUrl": video1.get("videoUrl") or video2.get("videoUrl") or "",
        "audioUrl": audio.get("audioUrl"),
        "merged": True,
    }


async def _lip_sync(executor: NodeExecutor, node: Node, inputs: dict) -> dict:
    params: LipSyncParams = parse_params(node)
    image_url = named_port(inputs, "image").get("imageUrl") or params.image_url or ""
    audio_url = read_port(inputs, "audio").get("audioUrl") or ""

    result = await executor._call(node, {
        "sourceImageUrl": image_url,
        "drivenAudioUrl": audio_url,
        "expressionScale": params.expression_scale,
    })
    return {"videoUrl": result.get("videoUrl")}


async def _preview(executor: NodeExecutor, node: Node, inputs: dict) -> dict:
    video = read_port(inputs, "video")
    audio = named_port(inputs, "audio")
    return {
        "videoUrl": video.get("videoUrl"),
        "thumbnailUrl": video.get("thumbnailUrl"),
        "audioUrl": audio.get("audioUrl") or video.get("audioUrl"),
    }


HANDLERS: dict[str, Handler] = {
    NodeKind.PROMPT.value: _prompt,
    NodeKind.TEXT_TO_VIDEO.value: _text_to_video,
    NodeKind.IMAGE_TO_VIDEO.value: _image_to_video,
    NodeKind.UPSCALE.value: _upscale,
    NodeKind.MUSIC.value: _music,
    NodeKind.MERGE.value: _merge,
    NodeKind.LIP_SYNC.value: _lip_sync,
    NodeKind.PREVIEW.value: _preview,
}
