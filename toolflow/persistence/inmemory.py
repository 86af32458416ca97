"""In-memory implementation of the run repository."""

from __future__ import annotations

import logging
from collections import OrderedDict

from .models import WorkflowNodeRun, WorkflowRun
from .repository import RunRepository

logger = logging.getLogger(__name__)

DEFAULT_MAX_RUNS = 300
DEFAULT_MAX_NODE_RUNS = 3000


class InMemoryRunRepository(RunRepository):
    """Store run snapshots in local memory.

    Snapshots are upserted by id so the last published snapshot wins.
    Retention is bounded: once a cap is exceeded the oldest inserted
    records are evicted. Data is not persisted across process restarts.
    """

    def __init__(
        self,
        max_runs: int = DEFAULT_MAX_RUNS,
        max_node_runs: int = DEFAULT_MAX_NODE_RUNS,
    ) -> None:
        self._max_runs = max_runs
        self._max_node_runs = max_node_runs
        self._runs: OrderedDict[str, WorkflowRun] = OrderedDict()
        self._node_runs: OrderedDict[str, WorkflowNodeRun] = OrderedDict()

    # ------------------------------------------------------------------
    def upsert_run(self, run: WorkflowRun) -> WorkflowRun:
        self._runs[run.id] = run
        while len(self._runs) > self._max_runs:
            evicted_id, _ = self._runs.popitem(last=False)
            logger.debug(f"Evicted run {evicted_id} from history")
        return run

    def upsert_node_run(self, node_run: WorkflowNodeRun) -> WorkflowNodeRun:
        self._node_runs[node_run.id] = node_run
        while len(self._node_runs) > self._max_node_runs:
            self._node_runs.popitem(last=False)
        return node_run

    def get_run(self, run_id: str) -> WorkflowRun | None:
        return self._runs.get(run_id)

    def list_runs(self) -> list[WorkflowRun]:
        return sorted(self._runs.values(), key=lambda r: r.started_at, reverse=True)

    def get_runs_by_workflow_id(self, workflow_id: str) -> list[WorkflowRun]:
        return [run for run in self.list_runs() if run.workflow_id == workflow_id]

    def get_node_runs_by_run_id(self, workflow_run_id: str) -> list[WorkflowNodeRun]:
        # insertion order is the order steps were first evaluated
        return [
            node
            for node in self._node_runs.values()
            if node.workflow_run_id == workflow_run_id
        ]

    def remove_runs_for_workflow(self, workflow_id: str) -> None:
        self._runs = OrderedDict(
            (run_id, run)
            for run_id, run in self._runs.items()
            if run.workflow_id != workflow_id
        )
        self._node_runs = OrderedDict(
            (node_id, node)
            for node_id, node in self._node_runs.items()
            if node.workflow_id != workflow_id
        )
