"""Collaborator protocols consumed by the workflow runner."""

from __future__ import annotations

import sys
from importlib import import_module
from importlib.util import module_from_spec, spec_from_file_location
from pathlib import Path
from typing import AsyncIterator, Callable, Iterable, Optional, Protocol

from .cancellation import CancellationToken
from .contracts import ActionType, ExecutionEvent, Tool

ToolResolver = Callable[[str], Optional[Tool]]


class ToolExecutionPipeline(Protocol):
    """Runs one tool call and streams its output.

    Implementations yield zero or more ``ChunkEvent``s followed by exactly
    one ``ResultEvent``. A pipeline that observes ``signal`` should finish
    with a failure whose error code is ``"cancelled"``. Timeouts are the
    pipeline's own concern.
    """

    def __call__(
        self,
        *,
        tool: Tool,
        action_type: ActionType,
        payload: Optional[str],
        timeout_ms: int,
        signal: CancellationToken,
        stream: bool,
    ) -> AsyncIterator[ExecutionEvent]: ...


class PipelineLoadError(ValueError):
    """Raised when a pipeline reference cannot be imported."""


def resolver_from_tools(tools: Iterable[Tool]) -> ToolResolver:
    """Build a lookup over a fixed set of tools."""
    by_id = {tool.id: tool for tool in tools}
    return by_id.get


def load_pipeline(reference: str) -> ToolExecutionPipeline:
    """Import a pipeline from ``module:attr`` or ``path/to/file.py:attr``."""
    module_ref, sep, attr = reference.rpartition(":")
    if not sep or not module_ref or not attr:
        raise PipelineLoadError(
            f"Pipeline reference '{reference}' must look like 'module:attribute'"
        )

    if module_ref.endswith(".py"):
        path = Path(module_ref).expanduser().resolve()
        if not path.exists():
            raise PipelineLoadError(f"Pipeline file {path} does not exist")
        module_name = f"_toolflow_pipeline_{path.stem}"
        spec = spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise PipelineLoadError(f"Cannot load pipeline file {path}")
        module_obj = module_from_spec(spec)
        sys.modules[module_name] = module_obj
        spec.loader.exec_module(module_obj)
    else:
        try:
            module_obj = import_module(module_ref)
        except ImportError as exc:
            raise PipelineLoadError(
                f"Cannot import pipeline module '{module_ref}': {exc}"
            ) from exc

    pipeline = getattr(module_obj, attr, None)
    if pipeline is None:
        raise PipelineLoadError(f"Pipeline '{attr}' not found in {module_ref}")
    if not callable(pipeline):
        raise PipelineLoadError(f"Pipeline '{attr}' in {module_ref} is not callable")
    return pipeline
