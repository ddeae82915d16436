"""
WorkflowEngine — runs a node graph against the generation services.

One run:
  1. Validate ids and edge endpoints
  2. Compute the topological order (cycles abort the run)
  3. Dispatch nodes one at a time in that order, feeding each node the
     outputs of its completed upstream nodes
  4. Return the per-node results map

Structural errors are raised before any node is touched. Node failures are
recorded on that node's result and the run carries on.
"""

import os
import time
import uuid
import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .. import metrics
from .credits import node_credit_cost
from .errors import NodeExecutionError, WorkflowError
from .executors import NodeExecutor
from .graph import downstream_of, execution_order, validate
from .models import (
    ExecutionResult,
    ExecutionStatus,
    Node,
    RunStatus,
    RunSummary,
    WorkflowGraph,
)

logger = logging.getLogger(__name__)

# Finished run summaries kept for polling
MAX_FINISHED_RUNS = int(os.getenv("MAX_FINISHED_RUNS", "200"))


class FailureMode(str, Enum):
    CONTINUE = "continue"                  # dependents run with the failed port missing
    BLOCK_DEPENDENTS = "block_dependents"  # dependents are marked blocked


@dataclass
class ExecutionCallbacks:
    """Progress hooks. Each may be a plain function or a coroutine function."""
    on_node_start: Optional[Callable[[str], Any]] = None
    on_node_complete: Optional[Callable[[str, Any], Any]] = None
    on_node_error: Optional[Callable[[str, str], Any]] = None
    on_node_blocked: Optional[Callable[[str, str], Any]] = None


class CancellationToken:
    """Cooperative cancel signal shared between a run and its owner."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()


class RunCancelled(Exception):
    pass


async def _notify(callback: Optional[Callable], *args):
    if callback is None:
        return
    # A broken progress hook must not abort the run.
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        name = getattr(callback, "__name__", repr(callback))
        logger.error(f"Callback {name}{args!r} raised: {e}", exc_info=True)


def collect_inputs(
    node_id: str,
    graph: WorkflowGraph,
    results: dict[str, ExecutionResult],
) -> dict[str, Any]:
    """
    Outputs of completed upstream nodes keyed by input port.

    Edges whose source failed or has not completed are skipped.
    """
    inputs: dict[str, Any] = {}
    for edge in graph.incoming(node_id):
        source = results.get(edge.source)
        if source is not None and source.status == ExecutionStatus.COMPLETED:
            inputs[edge.port] = source.output
    return inputs


class WorkflowEngine:
    """
    Sequential workflow executor.

    Usage:
        engine = WorkflowEngine(NodeExecutor(collaborators))
        results = await engine.execute_workflow(graph, ExecutionCallbacks(...))
    """

    def __init__(
        self,
        executor: Optional[NodeExecutor] = None,
        failure_mode: FailureMode = FailureMode.CONTINUE,
    ):
        self.executor = executor or NodeExecutor()
        self.failure_mode = failure_mode

    async def execute_workflow(
        self,
        graph: WorkflowGraph,
        callbacks: Optional[ExecutionCallbacks] = None,
        cancel_token: Optional[CancellationToken] = None,
        run_id: str = "",
    ) -> dict[str, ExecutionResult]:
        callbacks = callbacks or ExecutionCallbacks()

        validate(graph)
        order = execution_order(graph)

        nodes = {n.id: n for n in graph.nodes}
        results = {nid: ExecutionResult(node_id=nid) for nid in order}
        tag = f"[{run_id}] " if run_id else ""

        logger.info(f"{tag}Executing workflow: {len(order)} nodes, order={order}")

        for node_id in order:
            if cancel_token is not None and cancel_token.cancelled:
                logger.info(f"{tag}Run cancelled before node {node_id}")
                break

            result = results[node_id]
            if result.status == ExecutionStatus.BLOCKED:
                continue

            node = nodes[node_id]
            try:
                await self._run_node(node, graph, results, callbacks, cancel_token, tag)
            except RunCancelled:
                break

            if (
                results[node_id].status == ExecutionStatus.FAILED
                and self.failure_mode == FailureMode.BLOCK_DEPENDENTS
            ):
                await self._block_dependents(node_id, graph, results, callbacks, tag)

        return results

    async def _run_node(
        self,
        node: Node,
        graph: WorkflowGraph,
        results: dict[str, ExecutionResult],
        callbacks: ExecutionCallbacks,
        cancel_token: Optional[CancellationToken],
        tag: str,
    ):
        started = time.time()
        results[node.id] = ExecutionResult(
            node_id=node.id,
            status=ExecutionStatus.RUNNING,
            credit_cost=node_credit_cost(node),
            started_at=started,
        )
        await _notify(callbacks.on_node_start, node.id)
        logger.info(f"{tag}Node {node.id} ({node.kind}) started")

        inputs = collect_inputs(node.id, graph, results)

        try:
            output = await self._dispatch(node, inputs, cancel_token)
        except RunCancelled:
            results[node.id] = results[node.id].model_copy(update={
                "status": ExecutionStatus.CANCELLED,
                "error": "Execution cancelled",
                "credit_cost": 0,
                "finished_at": time.time(),
            })
            logger.info(f"{tag}Node {node.id} cancelled in flight")
            await _notify(callbacks.on_node_error, node.id, "Execution cancelled")
            raise
        except NodeExecutionError as e:
            self._record_failure(node, results, e.message, started, tag)
            await _notify(callbacks.on_node_error, node.id, e.message)
            return

        finished = time.time()
        results[node.id] = results[node.id].model_copy(update={
            "status": ExecutionStatus.COMPLETED,
            "output": output,
            "finished_at": finished,
        })
        metrics.inc_counter(f"nodes.{node.kind}.completed")
        metrics.record_latency(node.kind, (finished - started) * 1000)
        logger.info(f"{tag}Node {node.id} ({node.kind}) completed in {finished - started:.2f}s")
        await _notify(callbacks.on_node_complete, node.id, output)

    async def _dispatch(
        self,
        node: Node,
        inputs: dict,
        cancel_token: Optional[CancellationToken],
    ) -> Any:
        if cancel_token is None:
            return await self.executor.execute(node, inputs)

        work = asyncio.ensure_future(self.executor.execute(node, inputs))
        cancelled = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            cancelled.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Node {node.id} raised while cancelling: {e}")
        raise RunCancelled()

    def _record_failure(
        self,
        node: Node,
        results: dict[str, ExecutionResult],
        message: str,
        started: float,
        tag: str,
    ):
        finished = time.time()
        results[node.id] = results[node.id].model_copy(update={
            "status": ExecutionStatus.FAILED,
            "error": message,
            "credit_cost": 0,
            "finished_at": finished,
        })
        metrics.inc_counter(f"nodes.{node.kind}.failed")
        metrics.record_latency(node.kind, (finished - started) * 1000)
        metrics.record_error(node.kind, node.id, message, run_id=tag.strip("[] "))
        logger.warning(f"{tag}Node {node.id} ({node.kind}) failed: {message}")

    async def _block_dependents(
        self,
        failed_id: str,
        graph: WorkflowGraph,
        results: dict[str, ExecutionResult],
        callbacks: ExecutionCallbacks,
        tag: str,
    ):
        reason = f"Blocked by failed upstream node {failed_id}"
        for dep_id in downstream_of(graph, failed_id):
            if results[dep_id].status != ExecutionStatus.PENDING:
                continue
            results[dep_id] = results[dep_id].model_copy(update={
                "status": ExecutionStatus.BLOCKED,
                "error": reason,
            })
            logger.info(f"{tag}Node {dep_id} blocked by {failed_id}")
            await _notify(callbacks.on_node_blocked, dep_id, reason)


# ═════════════════════════════════════════════════════════════════════════════
# Background runs
# ═════════════════════════════════════════════════════════════════════════════

def summarize(results: dict[str, ExecutionResult], cancelled: bool = False) -> RunStatus:
    if cancelled:
        return RunStatus.CANCELLED
    if any(r.status in (ExecutionStatus.FAILED, ExecutionStatus.BLOCKED) for r in results.values()):
        return RunStatus.FAILED
    return RunStatus.COMPLETED


class WorkflowRunService:
    """
    Tracks background workflow runs by id (in memory).

    Usage:
        service = WorkflowRunService(NodeExecutor(collaborators))
        summary = service.start_run(graph)
        ...
        service.get_run(summary.run_id)
    """

    def __init__(
        self,
        executor: Optional[NodeExecutor] = None,
        max_finished_runs: int = MAX_FINISHED_RUNS,
    ):
        self.executor = executor or NodeExecutor()
        self.max_finished_runs = max_finished_runs
        self._runs: dict[str, RunSummary] = {}
        self._tokens: dict[str, CancellationToken] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def get_run(self, run_id: str) -> Optional[RunSummary]:
        return self._runs.get(run_id)

    def _callbacks(self, run_id: str) -> ExecutionCallbacks:
        # Mirror each transition into the tracked summary so pollers see progress.
        def update(node_id: str, **fields):
            summary = self._runs[run_id]
            current = summary.results.get(node_id) or ExecutionResult(node_id=node_id)
            summary.results[node_id] = current.model_copy(update=fields)

        return ExecutionCallbacks(
            on_node_start=lambda nid: update(nid, status=ExecutionStatus.RUNNING),
            on_node_complete=lambda nid, out: update(nid, status=ExecutionStatus.COMPLETED, output=out),
            on_node_error=lambda nid, msg: update(nid, status=ExecutionStatus.FAILED, error=msg),
            on_node_blocked=lambda nid, why: update(nid, status=ExecutionStatus.BLOCKED, error=why),
        )

    async def run(
        self,
        run_id: str,
        graph: WorkflowGraph,
        failure_mode: FailureMode = FailureMode.CONTINUE,
    ) -> RunSummary:
        summary = await self._execute(run_id, graph, failure_mode)
        self._prune_finished()
        return summary

    def _prune_finished(self):
        # Oldest finished summaries go first; running ones are never dropped.
        finished = [rid for rid, s in self._runs.items() if s.status != RunStatus.RUNNING]
        for rid in finished[: max(0, len(finished) - self.max_finished_runs)]:
            del self._runs[rid]

    async def _execute(
        self,
        run_id: str,
        graph: WorkflowGraph,
        failure_mode: FailureMode,
    ) -> RunSummary:
        engine = WorkflowEngine(self.executor, failure_mode)
        token = self._tokens.setdefault(run_id, CancellationToken())
        if run_id not in self._runs:
            self._runs[run_id] = RunSummary(
                run_id=run_id, status=RunStatus.RUNNING, created_at=time.time()
            )
        metrics.inc_counter("runs.started")

        try:
            results = await engine.execute_workflow(
                graph, self._callbacks(run_id), cancel_token=token, run_id=run_id
            )
        except WorkflowError as e:
            logger.warning(f"[{run_id}] Workflow rejected: {e}")
            metrics.inc_counter("runs.rejected")
            self._runs[run_id] = self._runs[run_id].model_copy(update={
                "status": RunStatus.REJECTED,
                "error": str(e),
                "finished_at": time.time(),
            })
            return self._runs[run_id]
        except Exception as e:
            logger.error(f"[{run_id}] Workflow run crashed: {e}", exc_info=True)
            self._runs[run_id] = self._runs[run_id].model_copy(update={
                "status": RunStatus.FAILED,
                "error": str(e),
                "finished_at": time.time(),
            })
            return self._runs[run_id]
        finally:
            self._tokens.pop(run_id, None)

        status = summarize(results, cancelled=token.cancelled)
        self._runs[run_id] = RunSummary(
            run_id=run_id,
            status=status,
            results=results,
            total_credit_cost=sum(r.credit_cost for r in results.values()),
            created_at=self._runs[run_id].created_at,
            finished_at=time.time(),
        )
        metrics.inc_counter(f"runs.{status.value}")
        logger.info(f"[{run_id}] Workflow {status.value}")
        return self._runs[run_id]

    def start_run(
        self,
        graph: WorkflowGraph,
        failure_mode: FailureMode = FailureMode.CONTINUE,
        run_id: Optional[str] = None,
        on_done: Optional[Callable[[], Any]] = None,
    ) -> RunSummary:
        """
        Fire-and-forget wrapper for run(). Validates up front so structural
        errors surface to the caller instead of a rejected background run.
        """
        validate(graph)
        execution_order(graph)

        run_id = run_id or str(uuid.uuid4())
        self._runs[run_id] = RunSummary(
            run_id=run_id,
            status=RunStatus.RUNNING,
            results={n.id: ExecutionResult(node_id=n.id) for n in graph.nodes},
            created_at=time.time(),
        )
        self._tokens[run_id] = CancellationToken()

        task = asyncio.create_task(self.run(run_id, graph, failure_mode))
        self._tasks[run_id] = task

        def _done(_task: asyncio.Task):
            self._tasks.pop(run_id, None)
            if on_done is not None:
                on_done()

        task.add_done_callback(_done)
        return self._runs[run_id]

    def cancel_run(self, run_id: str) -> bool:
        """Signal a running run to stop. False when there is nothing to cancel."""
        token = self._tokens.get(run_id)
        if token is None:
            return False
        token.cancel()
        logger.info(f"[{run_id}] Cancellation requested")
        return True
