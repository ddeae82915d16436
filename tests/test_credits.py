import pytest

from videoflow.workflow.credits import node_credit_cost, workflow_credit_cost
from videoflow.workflow.templates import get_template

from .conftest import make_node


@pytest.mark.parametrize("node,expected", [
    (make_node("1", "prompt"), 0),
    (make_node("1", "preview"), 0),
    (make_node("1", "textToVideo"), 50),
    (make_node("1", "textToVideo", model="kling-1.6", duration=10), 150),
    (make_node("1", "textToVideo", model="hunyuan", duration=3), 36),
    (make_node("1", "textToVideo", model="unknown-model"), 50),
    (make_node("1", "imageToVideo", model="runway-gen3"), 100),
    (make_node("1", "imageToVideo"), 60),
    (make_node("1", "upscale", scale="creative"), 50),
    (make_node("1", "upscale"), 20),
    (make_node("1", "music"), 30),
    (make_node("1", "merge"), 5),
    (make_node("1", "colorGrade"), 0),
])
def test_node_credit_cost(node, expected):
    assert node_credit_cost(node) == expected


def test_production_pipeline_total():
    template = get_template("production-pipeline")
    # kling T2V 75 + 4x upscale 40 + music 30 + merge 5
    assert workflow_credit_cost(template.nodes) == 150
