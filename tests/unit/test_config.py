"""Tests for configuration loading."""

from toolflow.config import load_config


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
runner:
  default_timeout_ms: 5000
history:
  max_runs: 10
log_level: DEBUG
"""
    )
    monkeypatch.setenv("TOOLFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("TOOLFLOW_DEFAULT_TIMEOUT_MS", raising=False)
    monkeypatch.delenv("TOOLFLOW_LOG_LEVEL", raising=False)

    config = load_config()
    assert config.runner.default_timeout_ms == 5000
    assert config.history.max_runs == 10
    assert config.history.max_node_runs == 3000
    assert config.log_level == "DEBUG"


def test_defaults_when_file_missing(tmp_path, monkeypatch):
    monkeypatch.setenv("TOOLFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("TOOLFLOW_DEFAULT_TIMEOUT_MS", raising=False)
    monkeypatch.delenv("TOOLFLOW_LOG_LEVEL", raising=False)

    config = load_config()
    assert config.runner.default_timeout_ms == 30_000
    assert config.history.max_runs == 300
    assert config.log_level == "INFO"


def test_env_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("runner:\n  default_timeout_ms: 5000\n")
    monkeypatch.setenv("TOOLFLOW_DEFAULT_TIMEOUT_MS", "750")
    monkeypatch.setenv("TOOLFLOW_LOG_LEVEL", "warning")

    config = load_config(str(config_path))
    assert config.runner.default_timeout_ms == 750
    assert config.log_level == "WARNING"
