from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class RunnerConfig(BaseModel):
    """Configuration for the workflow runner."""

    default_timeout_ms: int = Field(default=30_000, gt=0)


class HistoryConfig(BaseModel):
    """Retention limits for in-memory run history."""

    max_runs: int = Field(default=300, gt=0)
    max_node_runs: int = Field(default=3000, gt=0)


class ToolflowConfig(BaseModel):
    """Top-level configuration model."""

    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> ToolflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to TOOLFLOW_CONFIG env
            variable or 'toolflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("TOOLFLOW_CONFIG", "toolflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ToolflowConfig(**data)
    else:
        config = ToolflowConfig()

    env_timeout = os.getenv("TOOLFLOW_DEFAULT_TIMEOUT_MS")
    if env_timeout:
        config.runner.default_timeout_ms = int(env_timeout)
    env_log_level = os.getenv("TOOLFLOW_LOG_LEVEL")
    if env_log_level:
        config.log_level = env_log_level.upper()
    return config
