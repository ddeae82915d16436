import json

import pytest
from lzstring import LZString

from videoflow.workflow.models import WorkflowGraph
from videoflow.workflow.sharing import (
    build_share_url,
    decode_workflow,
    encode_workflow,
    token_from_url,
)
from videoflow.workflow.templates import list_templates

from .conftest import make_edge, make_node


@pytest.fixture
def music_graph():
    return WorkflowGraph(
        nodes=[
            make_node("1", "prompt", 100.4, 150.6, label="Video Prompt", value="neon city at night"),
            make_node("2", "textToVideo", 420, 100, label="Text to Video", model="wan-2.1", duration=5),
            make_node("3", "music", 420.5, 320, label="Music", prompt="synthwave", duration=5),
            make_node("4", "merge", 740, 200, label="Merge"),
            make_node("5", "preview", 1000, 200, label="Preview", videoUrl=None),
        ],
        edges=[
            make_edge("1", "2"),
            make_edge("2", "4", "video", "video1"),
            make_edge("3", "4", "audio", "audio"),
            make_edge("4", "5"),
        ],
    )


def test_round_trip_preserves_graph(music_graph):
    token = encode_workflow(music_graph.nodes, music_graph.edges, "Night drive")
    decoded = decode_workflow(token)

    assert decoded is not None
    assert decoded.name == "Night drive"
    assert [(n.id, n.kind, n.data) for n in decoded.nodes] == [
        (n.id, n.kind, n.data) for n in music_graph.nodes
    ]
    assert decoded.edges == music_graph.edges


def test_positions_round_half_up(music_graph):
    decoded = decode_workflow(encode_workflow(music_graph.nodes, music_graph.edges))

    positions = [(n.position.x, n.position.y) for n in decoded.nodes]
    assert positions[0] == (100, 151)
    assert positions[2] == (421, 320)


def test_round_trip_without_name(music_graph):
    decoded = decode_workflow(encode_workflow(music_graph.nodes, music_graph.edges))
    assert decoded.name is None


@pytest.mark.parametrize("template", list_templates(), ids=lambda t: t.id)
def test_every_template_round_trips(template):
    decoded = decode_workflow(encode_workflow(template.nodes, template.edges, template.name))

    assert decoded.name == template.name
    assert decoded.nodes == template.nodes
    assert decoded.edges == template.edges


def test_token_uses_compact_wire_keys(music_graph):
    token = encode_workflow(music_graph.nodes[:1], music_graph.edges[:0], "x")
    payload = json.loads(LZString.decompressFromEncodedURIComponent(token))

    assert payload == {
        "v": 1,
        "n": [{
            "id": "1",
            "t": "prompt",
            "p": {"x": 100, "y": 151},
            "d": {"label": "Video Prompt", "value": "neon city at night"},
        }],
        "e": [],
        "name": "x",
    }


def test_decodes_token_written_by_editor():
    # Shape produced by the browser editor, including explicit null handles.
    raw = json.dumps({
        "v": 1,
        "n": [{"id": "1", "t": "prompt", "p": {"x": 1, "y": 2}, "d": {"value": "hi"}}],
        "e": [{"id": "e1-1", "s": "1", "t": "1", "sh": None, "th": None}],
    })
    decoded = decode_workflow(LZString.compressToEncodedURIComponent(raw))

    assert decoded.nodes[0].data == {"value": "hi"}
    assert decoded.edges[0].source_handle is None


@pytest.mark.parametrize("token", [
    "not a valid token",
    "",
    None,
    "$$$$",
    "N4IgZg9g",
    12345,
    b"N4IgZg9g",
])
def test_malformed_tokens_return_none(token):
    assert decode_workflow(token) is None


def test_truncated_token_returns_none(music_graph):
    token = encode_workflow(music_graph.nodes, music_graph.edges, "Night drive")
    assert decode_workflow(token[: len(token) // 2]) is None


def test_well_formed_but_wrong_shape_returns_none():
    for payload in ([1, 2, 3], {"v": 2, "n": [], "e": []}, {"v": 1, "n": [{"id": "1"}], "e": []}):
        token = LZString.compressToEncodedURIComponent(json.dumps(payload))
        assert decode_workflow(token) is None


def test_share_url_round_trip(music_graph):
    url = build_share_url(music_graph.nodes, music_graph.edges, "Night drive", "https://studio.test/")

    assert url.startswith("https://studio.test/workflow?w=")
    decoded = decode_workflow(token_from_url(url))
    assert decoded.name == "Night drive"
    assert len(decoded.nodes) == 5


def test_token_from_url_without_param():
    assert token_from_url("https://studio.test/workflow") is None


def test_emoji_in_node_data_round_trips():
    nodes = [make_node("1", "prompt", label="🎬 Scene", value="a cat 🐱 on a roof")]
    decoded = decode_workflow(encode_workflow(nodes, [], "Clips 🎞"))

    assert decoded.nodes[0].data == {"label": "🎬 Scene", "value": "a cat 🐱 on a roof"}
    assert decoded.name == "Clips 🎞"


def test_emoji_travels_as_surrogate_pairs():
    # The editor compresses UTF-16 code units; the pair for 🐱 is D83D DC31.
    raw = '{"v":1,"n":[{"id":"1","t":"prompt","p":{"x":0,"y":0},"d":{"value":"\ud83d\udc31"}}],"e":[]}'
    editor_token = LZString.compressToEncodedURIComponent(raw)

    assert encode_workflow([make_node("1", "prompt", value="🐱")], []) == editor_token
    assert decode_workflow(editor_token).nodes[0].data == {"value": "🐱"}
