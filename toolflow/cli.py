"""Command line interface for running toolflow workflows."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError

from toolflow import RunCallbacks, WorkflowRunner, get_repository, load_pipeline
from toolflow.cli_utils.workflow import load_tools_file, load_workflow_file
from toolflow.config import load_config
from toolflow.contracts import Tool, Workflow
from toolflow.persistence import RunRepository, WorkflowNodeRun, WorkflowRun
from toolflow.persistence.models import RunStatus
from toolflow.pipeline import ToolExecutionPipeline, resolver_from_tools

app = typer.Typer(help="CLI for toolflow workflows")

workflow_app = typer.Typer(help="Commands for validating and running workflows")

app.add_typer(workflow_app, name="workflow")


@app.callback()
def main() -> None:
    """Toolflow CLI entry point."""
    config = load_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_workflow_or_exit(workflow_path: Path) -> Workflow:
    try:
        return load_workflow_file(workflow_path)
    except OSError as exc:
        typer.secho(f"Cannot read {workflow_path}: {exc}", fg=typer.colors.RED)
    except yaml.YAMLError as exc:
        typer.secho(f"Invalid YAML in {workflow_path}: {exc}", fg=typer.colors.RED)
    except ValidationError as exc:
        typer.secho(f"Invalid workflow {workflow_path}:\n{exc}", fg=typer.colors.RED)
    raise typer.Exit(code=1)


@workflow_app.command("validate")
def workflow_validate(workflow_path: Path) -> None:
    """
    Validate a workflow definition file.

    Parses a YAML or JSON workflow and lists its steps in execution order.

    Example:
        toolflow workflow validate ./workflows/deploy.yaml
        # Output: Workflow deploy (Deploy service): 2 steps
        #         1. build -> tool-ci [run]
        #         2. notify -> tool-chat [run] (continue on error)
    """
    workflow = _load_workflow_or_exit(workflow_path)
    typer.echo(f"Workflow {workflow.id} ({workflow.name}): {len(workflow.steps)} steps")
    for index, step in enumerate(workflow.steps, start=1):
        suffix = " (continue on error)" if step.continue_on_error else ""
        typer.echo(f"{index}. {step.name} -> {step.tool_id} [{step.action_type}]{suffix}")


@workflow_app.command("run")
def workflow_run(
    workflow_path: Path,
    tools: Path = typer.Option(..., help="YAML or JSON file listing tools"),
    pipeline: str = typer.Option(
        ..., help="Pipeline to execute tools with, as module:attr or file.py:attr"
    ),
    timeout_ms: Optional[int] = typer.Option(
        None, help="Per-step timeout passed to the pipeline"
    ),
) -> None:
    """
    Run a workflow to completion and report each step.

    Steps run in order through the given pipeline. Press Ctrl-C to request
    cancellation; the current step is asked to stop and the remaining steps
    are skipped.

    Example:
        toolflow workflow run ./deploy.yaml --tools ./tools.yaml --pipeline my_app.pipelines:http_pipeline
        # Output: - Build: succeeded
        #         - Notify: skipped (Skipped due to workflow cancellation.)
        #         Workflow run abc123-def456-789: cancelled
    """
    workflow = _load_workflow_or_exit(workflow_path)
    try:
        tool_list = load_tools_file(tools)
        pipeline_fn = load_pipeline(pipeline)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        # ValidationError and PipelineLoadError are ValueErrors
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    config = load_config()
    run = asyncio.run(
        _run_workflow(
            workflow,
            tool_list,
            pipeline_fn,
            timeout_ms or config.runner.default_timeout_ms,
            get_repository(),
        )
    )

    colour = typer.colors.GREEN if run.status == RunStatus.SUCCEEDED else typer.colors.RED
    typer.secho(f"Workflow run {run.id}: {run.status.value}", fg=colour)
    if run.error_message:
        typer.echo(f"Error: {run.error_message}")
    if run.status != RunStatus.SUCCEEDED:
        raise typer.Exit(code=1)


async def _run_workflow(
    workflow: Workflow,
    tool_list: list[Tool],
    pipeline_fn: ToolExecutionPipeline,
    timeout_ms: int,
    repository: RunRepository,
) -> WorkflowRun:
    runner = WorkflowRunner(pipeline_fn)

    def on_node_run(node_run: WorkflowNodeRun) -> None:
        repository.upsert_node_run(node_run)
        if node_run.is_terminal:
            detail = f" ({node_run.error_message})" if node_run.error_message else ""
            typer.echo(f"- {node_run.step_name}: {node_run.status.value}{detail}")

    started = runner.start_run(
        workflow,
        timeout_ms,
        resolver_from_tools(tool_list),
        RunCallbacks(on_run_upsert=repository.upsert_run, on_node_run_upsert=on_node_run),
    )

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, runner.cancel_run, started.run_id)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    try:
        return await started.completion
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


if __name__ == "__main__":
    app()
