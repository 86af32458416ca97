"""Repository abstraction for workflow run records."""

from __future__ import annotations

from typing import Protocol

from .models import WorkflowNodeRun, WorkflowRun


class RunRepository(Protocol):
    """Protocol for run record sinks and stores."""

    def upsert_run(self, run: WorkflowRun) -> WorkflowRun:
        """Insert or replace a run snapshot by id."""

    def upsert_node_run(self, node_run: WorkflowNodeRun) -> WorkflowNodeRun:
        """Insert or replace a node run snapshot by id."""

    def get_run(self, run_id: str) -> WorkflowRun | None:
        """Retrieve a run by id."""

    def list_runs(self) -> list[WorkflowRun]:
        """Return all retained runs, newest first."""

    def get_runs_by_workflow_id(self, workflow_id: str) -> list[WorkflowRun]:
        """Return the retained runs of one workflow, newest first."""

    def get_node_runs_by_run_id(self, workflow_run_id: str) -> list[WorkflowNodeRun]:
        """Return the node runs of one run in execution order."""

    def remove_runs_for_workflow(self, workflow_id: str) -> None:
        """Drop all runs and node runs recorded for a workflow."""
