"""Run history for toolflow workflows."""

from __future__ import annotations

from typing import Optional

from ..config import ToolflowConfig, load_config
from .inmemory import InMemoryRunRepository
from .models import (
    NodeRunStatus,
    RunStatus,
    WorkflowNodeRun,
    WorkflowRun,
    duration_ms,
)
from .repository import RunRepository

_repository_instance: RunRepository | None = None


def get_repository(config: Optional[ToolflowConfig] = None) -> RunRepository:
    """Factory function to obtain the run repository.

    Returns a process-wide in-memory repository whose retention caps come
    from ``config`` (or the loaded configuration). Passing ``config``
    explicitly always builds a fresh repository.
    """

    global _repository_instance
    if _repository_instance is not None and config is None:
        return _repository_instance

    config = config or load_config()
    _repository_instance = InMemoryRunRepository(
        max_runs=config.history.max_runs,
        max_node_runs=config.history.max_node_runs,
    )
    return _repository_instance


__all__ = [
    "NodeRunStatus",
    "RunStatus",
    "WorkflowNodeRun",
    "WorkflowRun",
    "duration_ms",
    "RunRepository",
    "InMemoryRunRepository",
    "get_repository",
]
