import json

import httpx
import pytest

from videoflow import providers
from videoflow.providers import GenerationAPIError, GenerationClient
from videoflow.workflow.engine import WorkflowEngine
from videoflow.workflow.executors import NodeExecutor
from videoflow.workflow.models import ExecutionStatus


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(providers, "BASE_DELAY", 0)
    monkeypatch.setattr(providers, "JITTER_MAX", 0)


def _client(handler, max_retries=3):
    return GenerationClient(
        base_url="http://generation.test/",
        api_key="secret",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_text_to_video_posts_to_generate_route():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"videoUrl": "https://cdn.test/v.mp4", "thumbnailUrl": "t", "extra": 1})

    result = await _client(handler).text_to_video({"prompt": "cat", "modelId": "wan-2.1", "duration": 5})

    assert result == {"videoUrl": "https://cdn.test/v.mp4", "thumbnailUrl": "t"}
    assert str(seen[0].url) == "http://generation.test/api/ai/generate"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert json.loads(seen[0].content) == {"prompt": "cat", "modelId": "wan-2.1", "duration": 5}


@pytest.mark.asyncio
async def test_retries_on_503_then_succeeds():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503, json={"error": "busy"})
        return httpx.Response(200, json={"audioUrl": "https://cdn.test/a.mp3"})

    result = await _client(handler).music({"prompt": "jazz", "duration": 15})

    assert result == {"audioUrl": "https://cdn.test/a.mp3"}
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(429, json={"message": "Rate limit exceeded"})

    with pytest.raises(GenerationAPIError) as exc:
        await _client(handler, max_retries=2).upscale({"videoUrl": "v", "scale": "2x"})

    assert len(attempts) == 3
    assert exc.value.status_code == 429
    assert str(exc.value) == "Rate limit exceeded"


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(402, json={"error": "Insufficient points"})

    with pytest.raises(GenerationAPIError, match="Insufficient points"):
        await _client(handler).image_to_video({"prompt": "p"})

    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_error_without_json_body_uses_fallback_message():
    def handler(request):
        return httpx.Response(500, text="<html>oops</html>")

    with pytest.raises(GenerationAPIError, match="Failed to sync lips"):
        await _client(handler, max_retries=0).lip_sync({})


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_raised():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GenerationAPIError, match="connection refused"):
        await _client(handler, max_retries=1).text_to_video({"prompt": "x"})

    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_api_failure_lands_on_node_result(t2v_graph):
    def handler(request):
        return httpx.Response(400, json={"message": "Prompt is required"})

    engine = WorkflowEngine(NodeExecutor(_client(handler).collaborators()))
    results = await engine.execute_workflow(t2v_graph)

    assert results["2"].status == ExecutionStatus.FAILED
    assert results["2"].error == "Prompt is required"
    assert results["3"].status == ExecutionStatus.COMPLETED
