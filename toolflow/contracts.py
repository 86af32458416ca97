"""Core contracts for toolflow workflows and the tool execution pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

WORKFLOW_SCHEMA_VERSION = 1

ActionType = Literal["test", "run"]

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Name = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)
]
Tag = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=30)
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Contract(BaseModel):
    """Accept stored camelCase records as well as snake_case names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class WorkflowStep(_Contract):
    """Defines one step in a linear workflow."""

    id: NonBlank
    name: Name
    tool_id: NonBlank
    action_type: ActionType
    payload: str = ""
    continue_on_error: bool = False


class Workflow(_Contract):
    """An ordered list of steps, each invoking one tool."""

    id: NonBlank
    version: Literal[1] = WORKFLOW_SCHEMA_VERSION
    type: Literal["linear"] = "linear"
    name: Name
    description: Annotated[str, Field(max_length=400)] = ""
    tags: Annotated[List[Tag], Field(max_length=20)] = Field(default_factory=list)
    steps: Annotated[List[WorkflowStep], Field(max_length=100)] = Field(
        default_factory=list
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Tool(_Contract):
    """A registered tool. Opaque to the runner, handed to the pipeline."""

    id: NonBlank
    name: NonBlank
    type: str = "custom_plugin"
    endpoint: str = ""
    method: str = "POST"
    config: Dict[str, Any] = Field(default_factory=dict)


class ExecutionResponse(_Contract):
    status_code: Optional[int] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""
    body_preview: str = ""


class ToolExecutionError(_Contract):
    code: str
    message: str
    details: str = ""


class ExecutionSuccess(_Contract):
    """Terminal result of a tool call that completed."""

    ok: Literal[True] = True
    response: ExecutionResponse
    request_summary: str = ""
    response_summary: str = ""
    duration_ms: int = 0


class ExecutionFailure(_Contract):
    """Terminal result of a tool call that failed or was cancelled."""

    ok: Literal[False] = False
    error: ToolExecutionError
    request_summary: str = ""
    response_summary: str = ""
    duration_ms: int = 0

    @property
    def is_cancelled(self) -> bool:
        return self.error.code == "cancelled"


ExecutionResult = Union[ExecutionSuccess, ExecutionFailure]


class ChunkEvent(_Contract):
    """A streamed output fragment."""

    type: Literal["chunk"] = "chunk"
    chunk: str


class ResultEvent(_Contract):
    """The terminal result of a pipeline stream."""

    type: Literal["result"] = "result"
    result: ExecutionResult


ExecutionEvent = Annotated[Union[ChunkEvent, ResultEvent], Field(discriminator="type")]


def cancelled_failure(message: str = "Cancelled", details: str = "") -> ExecutionFailure:
    """Build the failure a pipeline reports when it observes cancellation."""
    return ExecutionFailure(
        error=ToolExecutionError(code="cancelled", message=message, details=details)
    )


def load_workflow(data: Any) -> Workflow:
    """Validate a workflow document, optionally wrapped in a ``workflow`` key."""
    if isinstance(data, dict) and "workflow" in data:
        data = data["workflow"]
    return Workflow.model_validate(data)
