"""
FastAPI routes for workflow graphs.

Workflow Endpoints:
  POST /workflow/validate            — Structural checks + editor warnings
  POST /workflow/estimate            — Credit cost per node and in total
  POST /workflow/run                 — Start a background run
  GET  /workflow/runs/{id}           — Run status and per-node results
  POST /workflow/runs/{id}/cancel    — Cancel a run in flight
  POST /workflow/share               — Build a share link
  GET  /workflow?w=<token>           — Decode a share link

Template Endpoints:
  GET  /templates                    — List templates (optional ?category=)
  GET  /templates/{id}               — Get one template
"""

import os
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from .. import run_limiter
from .credits import node_credit_cost
from ..providers import default_collaborators
from .engine import FailureMode, WorkflowRunService
from .errors import WorkflowError
from .executors import NodeExecutor
from .graph import execution_order, lint_workflow, validate
from .models import (
    DecodedWorkflow,
    RunSummary,
    Template,
    WorkflowGraph,
    WorkflowRunRequest,
    WorkflowShareRequest,
)
from .sharing import build_share_url, decode_workflow, encode_workflow
from .templates import TEMPLATE_CATEGORIES, get_template, list_templates

logger = logging.getLogger(__name__)

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "")


# ═════════════════════════════════════════════════════════════════════════════
# Workflow Router
# ═════════════════════════════════════════════════════════════════════════════

workflow_router = APIRouter(prefix="/workflow", tags=["workflow"])

# Singleton service instance
_service = WorkflowRunService(NodeExecutor(default_collaborators()))


@workflow_router.post("/validate")
async def validate_workflow(graph: WorkflowGraph):
    """Structural errors block a run; warnings are advisory."""
    errors: list[str] = []
    order: list[str] = []
    try:
        validate(graph)
        order = execution_order(graph)
    except WorkflowError as e:
        errors.append(str(e))

    return {
        "valid": not errors,
        "errors": errors,
        "warnings": lint_workflow(graph),
        "order": order,
    }


@workflow_router.post("/estimate")
async def estimate_workflow(graph: WorkflowGraph):
    """Credit cost per node (thousands of points) and the total."""
    costs = {node.id: node_credit_cost(node) for node in graph.nodes}
    return {"nodes": costs, "total": sum(costs.values())}


@workflow_router.post("/run", response_model=RunSummary)
async def run_workflow(request: WorkflowRunRequest):
    """Start a workflow run in the background and return its initial state."""
    if not run_limiter.acquire_run_slot():
        raise HTTPException(
            status_code=429,
            detail="Too many workflow runs in progress. Try again shortly.",
        )

    graph = WorkflowGraph(nodes=request.nodes, edges=request.edges)
    mode = FailureMode.BLOCK_DEPENDENTS if request.block_dependents else FailureMode.CONTINUE

    try:
        summary = _service.start_run(graph, mode, on_done=run_limiter.release_run_slot)
    except WorkflowError as e:
        run_limiter.release_run_slot()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        run_limiter.release_run_slot()
        logger.error(f"Workflow run failed to start: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    return summary


@workflow_router.get("/runs/{run_id}", response_model=RunSummary)
async def get_run(run_id: str):
    summary = _service.get_run(run_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return summary


@workflow_router.post("/runs/{run_id}/cancel")
async def cancel_run(run_id: str):
    if _service.get_run(run_id) is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return {"run_id": run_id, "cancelled": _service.cancel_run(run_id)}


@workflow_router.post("/share")
async def share_workflow(request: WorkflowShareRequest):
    base_url = request.base_url if request.base_url is not None else PUBLIC_BASE_URL
    return {
        "token": encode_workflow(request.nodes, request.edges, request.name),
        "url": build_share_url(request.nodes, request.edges, request.name, base_url),
    }


@workflow_router.get("", response_model=DecodedWorkflow)
async def open_shared_workflow(w: str = Query(..., description="Share token")):
    decoded = decode_workflow(w)
    if decoded is None:
        raise HTTPException(status_code=400, detail="Invalid or corrupted workflow link")
    return decoded


# ═════════════════════════════════════════════════════════════════════════════
# Template Router
# ═════════════════════════════════════════════════════════════════════════════

template_router = APIRouter(prefix="/templates", tags=["templates"])


@template_router.get("", response_model=list[Template])
async def get_templates(category: Optional[str] = None):
    if category is not None and category not in TEMPLATE_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Unknown category: {category}")
    return list_templates(category)


@template_router.get("/{template_id}", response_model=Template)
async def get_template_by_id(template_id: str):
    template = get_template(template_id)
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template
