"""Helpers to load workflow and tool definitions from files."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from toolflow.contracts import Tool, Workflow, load_workflow


def _read_document(path: Path) -> Any:
    # YAML is a superset of JSON, so both formats load here
    with open(path) as f:
        return yaml.safe_load(f)


def load_workflow_file(path: Path) -> Workflow:
    return load_workflow(_read_document(path) or {})


def load_tools_file(path: Path) -> list[Tool]:
    """Load tools from a list document or a mapping with a ``tools`` key."""
    data = _read_document(path) or []
    if isinstance(data, dict):
        data = data.get("tools", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of tools in {path}")
    return [Tool.model_validate(item) for item in data]
