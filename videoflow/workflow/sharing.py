"""
Shareable workflow links.

A graph is minified to short keys, wrapped with a version tag, JSON-encoded
and LZ-String compressed into a URL-safe token:

  {"v": 1, "n": [{"id", "t", "p": {"x", "y"}, "d"}],
           "e": [{"id", "s", "t", "sh", "th"}], "name"}

The same LZ-String transform runs in the browser editor, so tokens are
interchangeable both ways. Links look like ``<base>/workflow?w=<token>``.
"""

import json
import math
import logging
from typing import Iterable, Optional
from urllib.parse import parse_qs, urlparse

from lzstring import LZString

from .errors import DecodeError
from .models import DecodedWorkflow, Edge, Node, Position

logger = logging.getLogger(__name__)

SHARE_VERSION = 1
SHARE_PATH = "/workflow"
SHARE_PARAM = "w"


# ── UTF-16 code units ────────────────────────────────────────────────────────
#
# LZString packs one 16-bit unit per character. The editor's strings are
# UTF-16, so astral characters (emoji) travel as surrogate pairs.

def _to_code_units(text: str) -> str:
    data = text.encode("utf-16-le", "surrogatepass")
    return "".join(
        chr(int.from_bytes(data[i:i + 2], "little")) for i in range(0, len(data), 2)
    )


def _from_code_units(text: str) -> str:
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le")


# ── Encode ───────────────────────────────────────────────────────────────────

def _round(value: float) -> int:
    # half-up, same as the editor's Math.round
    return math.floor(value + 0.5)


def _minify_node(node: Node) -> dict:
    return {
        "id": node.id,
        "t": node.kind,
        "p": {"x": _round(node.position.x), "y": _round(node.position.y)},
        "d": node.data,
    }


def _minify_edge(edge: Edge) -> dict:
    out = {"id": edge.id, "s": edge.source, "t": edge.target}
    if edge.source_handle is not None:
        out["sh"] = edge.source_handle
    if edge.target_handle is not None:
        out["th"] = edge.target_handle
    return out


def encode_workflow(
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    name: Optional[str] = None,
) -> str:
    """Compress a graph into a URL-safe token."""
    payload = {
        "v": SHARE_VERSION,
        "n": [_minify_node(n) for n in nodes],
        "e": [_minify_edge(e) for e in edges],
    }
    if name is not None:
        payload["name"] = name

    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return LZString.compressToEncodedURIComponent(_to_code_units(raw))


def build_share_url(
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    name: Optional[str] = None,
    base_url: str = "",
) -> str:
    token = encode_workflow(nodes, edges, name)
    # The token alphabet is already query-safe ("+", "-", "$" included).
    return f"{base_url.rstrip('/')}{SHARE_PATH}?{SHARE_PARAM}={token}"


# ── Decode ───────────────────────────────────────────────────────────────────

def _expand(payload: dict) -> DecodedWorkflow:
    if not isinstance(payload, dict):
        raise DecodeError("payload is not an object")

    version = payload.get("v")
    if not isinstance(version, int) or version < 1 or version > SHARE_VERSION:
        raise DecodeError(f"unsupported share version: {version!r}")

    name = payload.get("name")
    if name is not None and not isinstance(name, str):
        raise DecodeError("name must be a string")

    nodes = []
    for n in payload.get("n") or []:
        pos = n.get("p") or {}
        data = n.get("d") or {}
        if not isinstance(data, dict):
            raise DecodeError(f"node {n.get('id')!r} data is not an object")
        nodes.append(Node(
            id=n["id"],
            kind=n["t"],
            position=Position(x=pos.get("x", 0), y=pos.get("y", 0)),
            data=data,
        ))

    edges = [
        Edge(
            id=e["id"],
            source=e["s"],
            target=e["t"],
            source_handle=e.get("sh"),
            target_handle=e.get("th"),
        )
        for e in payload.get("e") or []
    ]

    return DecodedWorkflow(nodes=nodes, edges=edges, name=name)


def decode_workflow(token: Optional[str]) -> Optional[DecodedWorkflow]:
    """
    Rebuild a graph from a share token.

    Returns None for anything malformed, truncated or from a newer version;
    never raises.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        raw = LZString.decompressFromEncodedURIComponent(token)
        if not raw:
            raise DecodeError("token decompressed to nothing")
        return _expand(json.loads(_from_code_units(raw)))
    except Exception as e:
        logger.warning(f"Failed to decode workflow token ({len(token)} chars): {e}")
        return None


def token_from_url(url: str) -> Optional[str]:
    """Pull the ``w`` parameter out of a share link."""
    query = urlparse(url).query
    # parse_qs would turn "+" into a space; LZString maps it back anyway.
    values = parse_qs(query, keep_blank_values=False).get(SHARE_PARAM)
    return values[0] if values else None
