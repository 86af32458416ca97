"""Data models for workflow run records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WORKFLOW_RUN_SCHEMA_VERSION = 1
WORKFLOW_NODE_RUN_SCHEMA_VERSION = 1


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class NodeRunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


TERMINAL_RUN_STATUSES = frozenset(
    {RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED}
)
TERMINAL_NODE_RUN_STATUSES = frozenset(
    {
        NodeRunStatus.SUCCEEDED,
        NodeRunStatus.FAILED,
        NodeRunStatus.CANCELLED,
        NodeRunStatus.SKIPPED,
    }
)


def duration_ms(started_at: datetime, finished_at: datetime) -> int:
    """Milliseconds between two timestamps, floored at zero."""
    delta = finished_at - started_at
    return max(0, int(delta.total_seconds() * 1000))


class _Record(BaseModel):
    """Immutable snapshot. Derive updates with ``model_copy(update=...)``."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class WorkflowRun(_Record):
    """Snapshot of one execution of a workflow."""

    id: str
    version: Literal[1] = WORKFLOW_RUN_SCHEMA_VERSION
    workflow_id: str
    workflow_name: str
    status: RunStatus
    started_at: datetime
    finished_at: Optional[datetime] = None
    duration_ms: int = Field(default=0, ge=0)
    error_message: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES


class WorkflowNodeRun(_Record):
    """Snapshot of one evaluated step within a workflow run."""

    id: str
    version: Literal[1] = WORKFLOW_NODE_RUN_SCHEMA_VERSION
    workflow_id: str
    workflow_run_id: str
    workflow_step_id: str
    step_name: str
    tool_id: str
    status: NodeRunStatus = NodeRunStatus.QUEUED
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_ms: int = Field(default=0, ge=0)
    request_summary: str = ""
    response_summary: str = ""
    output: str = ""
    error_message: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_NODE_RUN_STATUSES
