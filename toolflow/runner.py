"""Linear workflow execution engine."""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import TypeAdapter

from .cancellation import CancellationRegistry, CancellationToken
from .contracts import (
    ChunkEvent,
    ExecutionEvent,
    ExecutionFailure,
    ExecutionResult,
    ResultEvent,
    Tool,
    ToolExecutionError,
    Workflow,
    WorkflowStep,
    utcnow,
)
from .persistence.models import (
    NodeRunStatus,
    RunStatus,
    WorkflowNodeRun,
    WorkflowRun,
    duration_ms,
)
from .persistence.repository import RunRepository
from .pipeline import ToolExecutionPipeline, ToolResolver

logger = logging.getLogger(__name__)

SKIPPED_CANCELLED = "Skipped due to workflow cancellation."
SKIPPED_PREVIOUS_FAILURE = "Skipped due to previous step failure."
MISSING_RESULT_MESSAGE = "Workflow step did not return an execution result."

_EVENT_ADAPTER: TypeAdapter[ExecutionEvent] = TypeAdapter(ExecutionEvent)


@dataclass(frozen=True)
class RunCallbacks:
    """Sinks receiving every run and node run snapshot, in order."""

    on_run_upsert: Callable[[WorkflowRun], Any]
    on_node_run_upsert: Callable[[WorkflowNodeRun], Any]

    @classmethod
    def from_repository(cls, repository: RunRepository) -> "RunCallbacks":
        return cls(
            on_run_upsert=repository.upsert_run,
            on_node_run_upsert=repository.upsert_node_run,
        )


@dataclass(frozen=True)
class StartedRun:
    run_id: str
    completion: "asyncio.Task[WorkflowRun]"


@dataclass
class _RunContext:
    workflow: Workflow
    run: WorkflowRun
    token: CancellationToken
    callbacks: RunCallbacks
    # steps with a terminal node run so far; steps are accounted for in order
    evaluated: int = 0
    in_flight: Optional[WorkflowNodeRun] = None
    halt_message: str = ""


class WorkflowRunner:
    """Drives linear workflows through a tool execution pipeline.

    Each runner owns its own cancellation registry, so independent
    runners never share in-flight state.
    """

    def __init__(
        self,
        pipeline: ToolExecutionPipeline,
        registry: CancellationRegistry | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._registry = registry or CancellationRegistry()

    @property
    def active_run_ids(self) -> list[str]:
        return self._registry.active_run_ids()

    def start_run(
        self,
        workflow: Workflow,
        default_timeout_ms: int,
        resolve_tool: ToolResolver,
        callbacks: RunCallbacks,
    ) -> StartedRun:
        """Start a run and return immediately.

        The initial ``running`` snapshot is published before this returns.
        The returned completion task always resolves to the terminal run
        snapshot. Must be called from a running event loop.
        """
        # raises before any side effect when no loop is running
        asyncio.get_running_loop()

        run_id = str(uuid.uuid4())
        token = self._registry.register(run_id)
        run = WorkflowRun(
            id=run_id,
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            status=RunStatus.RUNNING,
            started_at=utcnow(),
        )
        ctx = _RunContext(workflow=workflow, run=run, token=token, callbacks=callbacks)
        logger.info(
            f"Starting workflow {workflow.id} ({len(workflow.steps)} steps) as run_id={run_id}"
        )
        self._publish_run(ctx, run)

        completion = asyncio.create_task(
            self._drive(ctx, default_timeout_ms, resolve_tool),
            name=f"workflow-run-{run_id}",
        )
        return StartedRun(run_id=run_id, completion=completion)

    def cancel_run(self, run_id: str) -> bool:
        """Request cooperative cancellation of an in-flight run."""
        return self._registry.cancel(run_id)

    async def run(
        self,
        workflow: Workflow,
        default_timeout_ms: int,
        resolve_tool: ToolResolver,
        callbacks: RunCallbacks,
    ) -> WorkflowRun:
        """Start a run and wait for its terminal snapshot."""
        started = self.start_run(workflow, default_timeout_ms, resolve_tool, callbacks)
        return await started.completion

    # ------------------------------------------------------------------
    async def _drive(
        self,
        ctx: _RunContext,
        default_timeout_ms: int,
        resolve_tool: ToolResolver,
    ) -> WorkflowRun:
        run_id = ctx.run.id
        try:
            await self._run_steps(ctx, default_timeout_ms, resolve_tool)
            return self._finish(ctx)
        except asyncio.CancelledError:
            ctx.token.cancel("Workflow run task was cancelled.")
            self._finish_after_fault(ctx, "Workflow run task was cancelled.")
            raise
        except Exception as exc:
            logger.exception(f"Workflow run failed unexpectedly for run_id={run_id}")
            return self._finish_after_fault(ctx, str(exc) or type(exc).__name__)
        finally:
            self._registry.release(run_id)

    async def _run_steps(
        self,
        ctx: _RunContext,
        default_timeout_ms: int,
        resolve_tool: ToolResolver,
    ) -> None:
        for step in ctx.workflow.steps:
            if ctx.token.cancelled:
                self._skip_remaining(ctx, SKIPPED_CANCELLED)
                return

            tool = resolve_tool(step.tool_id)
            if tool is None:
                message = f'Tool "{step.tool_id}" not found.'
                logger.warning(f"{message} Step {step.id} of run_id={ctx.run.id} failed")
                self._publish_node_run(
                    ctx,
                    self._node_run_base(ctx, step).model_copy(
                        update={
                            "status": NodeRunStatus.FAILED,
                            "error_message": message,
                            "output": message,
                        }
                    ),
                )
                ctx.evaluated += 1
                if not step.continue_on_error:
                    self._halt(ctx, message)
                    return
                continue

            result = await self._execute_step(ctx, step, tool, default_timeout_ms)
            if result.ok:
                continue
            if result.is_cancelled:
                self._skip_remaining(ctx, SKIPPED_CANCELLED)
                return
            if not step.continue_on_error:
                self._halt(ctx, result.error.message)
                return
            logger.info(
                f"Step {step.id} failed for run_id={ctx.run.id}; continuing on error"
            )

    async def _execute_step(
        self,
        ctx: _RunContext,
        step: WorkflowStep,
        tool: Tool,
        timeout_ms: int,
    ) -> ExecutionResult:
        started_at = utcnow()
        node = self._node_run_base(ctx, step).model_copy(
            update={"status": NodeRunStatus.RUNNING, "started_at": started_at}
        )
        ctx.in_flight = node
        self._publish_node_run(ctx, node)
        logger.debug(f"Step {step.id} running for run_id={ctx.run.id}")

        streamed_output = ""
        final_result: Optional[ExecutionResult] = None
        try:
            # the stream is closed before the step's terminal snapshot goes out
            async with aclosing(
                self._pipeline(
                    tool=tool,
                    action_type=step.action_type,
                    payload=step.payload or None,
                    timeout_ms=timeout_ms,
                    signal=ctx.token,
                    stream=step.action_type == "run",
                )
            ) as events:
                async for raw_event in events:
                    event = (
                        raw_event
                        if isinstance(raw_event, (ChunkEvent, ResultEvent))
                        else _EVENT_ADAPTER.validate_python(raw_event)
                    )
                    if isinstance(event, ChunkEvent):
                        streamed_output += event.chunk
                        ctx.in_flight = node.model_copy(
                            update={"output": streamed_output}
                        )
                        self._publish_node_run(ctx, ctx.in_flight)
                        continue
                    final_result = event.result
        except Exception as exc:
            logger.exception(f"Pipeline raised during step {step.id} of run_id={ctx.run.id}")
            final_result = ExecutionFailure(
                error=ToolExecutionError(
                    code="pipeline_error",
                    message=str(exc) or type(exc).__name__,
                    details=type(exc).__name__,
                )
            )

        if final_result is None:
            logger.error(f"Step {step.id} of run_id={ctx.run.id}: {MISSING_RESULT_MESSAGE}")
            final_result = ExecutionFailure(
                error=ToolExecutionError(
                    code="missing_result",
                    message=MISSING_RESULT_MESSAGE,
                    details="The pipeline stream ended without a result event.",
                )
            )

        if final_result.ok:
            status = NodeRunStatus.SUCCEEDED
            fallback_output = final_result.response.body_preview
            error_message = ""
        else:
            status = (
                NodeRunStatus.CANCELLED
                if final_result.is_cancelled
                else NodeRunStatus.FAILED
            )
            fallback_output = f"{final_result.error.message}\n{final_result.error.details}"
            error_message = final_result.error.message

        finished_at = utcnow()
        self._publish_node_run(
            ctx,
            node.model_copy(
                update={
                    "status": status,
                    "finished_at": finished_at,
                    "duration_ms": duration_ms(started_at, finished_at),
                    "request_summary": final_result.request_summary,
                    "response_summary": final_result.response_summary,
                    "output": streamed_output or fallback_output,
                    "error_message": error_message,
                }
            ),
        )
        ctx.in_flight = None
        ctx.evaluated += 1
        logger.debug(f"Step {step.id} {status.value} for run_id={ctx.run.id}")
        return final_result

    # ------------------------------------------------------------------
    def _halt(self, ctx: _RunContext, message: str) -> None:
        ctx.halt_message = message
        self._skip_remaining(ctx, SKIPPED_PREVIOUS_FAILURE)

    def _skip_remaining(self, ctx: _RunContext, reason: str) -> None:
        remaining = ctx.workflow.steps[ctx.evaluated :]
        if remaining:
            logger.info(
                f"Skipping {len(remaining)} remaining steps for run_id={ctx.run.id}: {reason}"
            )
        for step in remaining:
            self._publish_node_run(
                ctx,
                self._node_run_base(ctx, step).model_copy(
                    update={"status": NodeRunStatus.SKIPPED, "error_message": reason}
                ),
            )
        ctx.evaluated = len(ctx.workflow.steps)

    def _finish(self, ctx: _RunContext) -> WorkflowRun:
        if ctx.token.cancelled:
            status = RunStatus.CANCELLED
        elif ctx.halt_message:
            status = RunStatus.FAILED
        else:
            status = RunStatus.SUCCEEDED
        return self._publish_terminal(
            ctx, status, ctx.halt_message if status == RunStatus.FAILED else ""
        )

    def _finish_after_fault(self, ctx: _RunContext, message: str) -> WorkflowRun:
        """Account for every step, then publish a terminal run for ``message``."""
        cancelled = ctx.token.cancelled
        if ctx.in_flight is not None:
            finished_at = utcnow()
            started_at = ctx.in_flight.started_at or finished_at
            self._publish_node_run(
                ctx,
                ctx.in_flight.model_copy(
                    update={
                        "status": (
                            NodeRunStatus.CANCELLED if cancelled else NodeRunStatus.FAILED
                        ),
                        "finished_at": finished_at,
                        "duration_ms": duration_ms(started_at, finished_at),
                        "output": ctx.in_flight.output or message,
                        "error_message": message,
                    }
                ),
            )
            ctx.in_flight = None
            ctx.evaluated += 1
        elif not cancelled and ctx.evaluated < len(ctx.workflow.steps):
            # the fault came from the step being evaluated, before it ran
            step = ctx.workflow.steps[ctx.evaluated]
            self._publish_node_run(
                ctx,
                self._node_run_base(ctx, step).model_copy(
                    update={
                        "status": NodeRunStatus.FAILED,
                        "output": message,
                        "error_message": message,
                    }
                ),
            )
            ctx.evaluated += 1
        self._skip_remaining(
            ctx, SKIPPED_CANCELLED if cancelled else SKIPPED_PREVIOUS_FAILURE
        )
        return self._publish_terminal(
            ctx, RunStatus.CANCELLED if cancelled else RunStatus.FAILED, message
        )

    def _publish_terminal(
        self, ctx: _RunContext, status: RunStatus, error_message: str
    ) -> WorkflowRun:
        finished_at = utcnow()
        completed = ctx.run.model_copy(
            update={
                "status": status,
                "finished_at": finished_at,
                "duration_ms": duration_ms(ctx.run.started_at, finished_at),
                "error_message": error_message,
            }
        )
        # no longer cancellable once a terminal snapshot is observable
        self._registry.release(ctx.run.id)
        self._publish_run(ctx, completed)
        logger.info(
            f"Workflow {ctx.workflow.id} run_id={completed.id} finished {status.value} "
            f"in {completed.duration_ms}ms"
        )
        return completed

    def _node_run_base(self, ctx: _RunContext, step: WorkflowStep) -> WorkflowNodeRun:
        return WorkflowNodeRun(
            id=str(uuid.uuid4()),
            workflow_id=ctx.workflow.id,
            workflow_run_id=ctx.run.id,
            workflow_step_id=step.id,
            step_name=step.name,
            tool_id=step.tool_id,
        )

    def _publish_run(self, ctx: _RunContext, run: WorkflowRun) -> None:
        try:
            ctx.callbacks.on_run_upsert(run)
        except Exception:
            logger.exception(f"Run sink failed for run_id={run.id}")

    def _publish_node_run(self, ctx: _RunContext, node_run: WorkflowNodeRun) -> None:
        try:
            ctx.callbacks.on_node_run_upsert(node_run)
        except Exception:
            logger.exception(
                f"Node run sink failed for step {node_run.workflow_step_id} "
                f"of run_id={node_run.workflow_run_id}"
            )
