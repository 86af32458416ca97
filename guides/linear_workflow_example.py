"""Example showing a linear workflow run with live progress and cancellation."""

import asyncio

from toolflow import (
    ChunkEvent,
    ExecutionResponse,
    ExecutionSuccess,
    ResultEvent,
    RunCallbacks,
    Tool,
    Workflow,
    WorkflowRunner,
    WorkflowStep,
    get_repository,
    resolver_from_tools,
)
from toolflow.contracts import cancelled_failure


async def demo_pipeline(*, tool, action_type, payload, timeout_ms, signal, stream):
    """Stream a few words per tool, stopping early if the run is cancelled."""
    for word in ("thinking", "about", payload or tool.name):
        if signal.cancelled:
            yield ResultEvent(result=cancelled_failure(details=signal.reason or ""))
            return
        yield ChunkEvent(chunk=f"{word} ")
        await asyncio.sleep(0.2)
    yield ResultEvent(
        result=ExecutionSuccess(
            response=ExecutionResponse(status_code=200, body="{}", body_preview="{}"),
            request_summary=f"POST {tool.endpoint}",
            response_summary="200 ok",
        )
    )


async def main():
    tools = [
        Tool(id="summarise", name="Summariser", endpoint="https://example.com/sum"),
        Tool(id="publish", name="Publisher", endpoint="https://example.com/pub"),
    ]
    workflow = Workflow(
        id="daily-digest",
        name="Daily digest",
        steps=[
            WorkflowStep(id="s1", name="Summarise", tool_id="summarise", action_type="run"),
            WorkflowStep(
                id="s2",
                name="Publish",
                tool_id="publish",
                action_type="run",
                payload="digest",
            ),
        ],
    )

    repository = get_repository()
    runner = WorkflowRunner(demo_pipeline)

    def show(node_run):
        repository.upsert_node_run(node_run)
        print(f"[{node_run.status.value}] {node_run.step_name}: {node_run.output!r}")

    started = runner.start_run(
        workflow,
        default_timeout_ms=5_000,
        resolve_tool=resolver_from_tools(tools),
        callbacks=RunCallbacks(on_run_upsert=repository.upsert_run, on_node_run_upsert=show),
    )

    # cancel while the second step is streaming
    await asyncio.sleep(0.9)
    runner.cancel_run(started.run_id)

    run = await started.completion
    print(f"Workflow run {run.id}: {run.status.value} in {run.duration_ms}ms")


if __name__ == "__main__":
    asyncio.run(main())
