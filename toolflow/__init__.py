"""Toolflow: linear workflow execution over registered tools."""

from .cancellation import CancellationRegistry, CancellationToken
from .contracts import (
    ChunkEvent,
    ExecutionFailure,
    ExecutionResponse,
    ExecutionSuccess,
    ResultEvent,
    Tool,
    ToolExecutionError,
    Workflow,
    WorkflowStep,
    load_workflow,
)
from .persistence import get_repository
from .pipeline import ToolExecutionPipeline, load_pipeline, resolver_from_tools
from .runner import RunCallbacks, StartedRun, WorkflowRunner

__version__ = "0.1.0"
__all__ = [
    "CancellationRegistry",
    "CancellationToken",
    "ChunkEvent",
    "ExecutionFailure",
    "ExecutionResponse",
    "ExecutionSuccess",
    "ResultEvent",
    "RunCallbacks",
    "StartedRun",
    "Tool",
    "ToolExecutionError",
    "ToolExecutionPipeline",
    "Workflow",
    "WorkflowRunner",
    "WorkflowStep",
    "get_repository",
    "load_workflow",
    "load_pipeline",
    "resolver_from_tools",
]
