import pytest
from typer.testing import CliRunner

import toolflow.persistence as persistence
from toolflow.cli import app
from toolflow.persistence import InMemoryRunRepository, NodeRunStatus, RunStatus

WORKFLOW_YAML = """
id: workflow-1
name: Deploy
steps:
  - id: build
    name: Build
    toolId: tool-build
    actionType: run
    payload: '{"target": "prod"}'
  - id: notify
    name: Notify
    toolId: {notify_tool}
    actionType: run
"""

TOOLS_YAML = """
tools:
  - id: tool-build
    name: Build tool
  - id: tool-chat
    name: Chat tool
"""

PIPELINE_SOURCE = '''
async def echo_pipeline(*, tool, action_type, payload, timeout_ms, signal, stream):
    yield {"type": "chunk", "chunk": f"{tool.id}:{payload or ''}"}
    yield {
        "type": "result",
        "result": {
            "ok": True,
            "response": {"statusCode": 200, "body": "", "bodyPreview": ""},
            "requestSummary": f"POST {tool.id}",
            "responseSummary": "200 ok",
        },
    }
'''


@pytest.fixture
def repo(monkeypatch, tmp_path):
    monkeypatch.setenv("TOOLFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    repository = InMemoryRunRepository()
    monkeypatch.setattr(persistence, "_repository_instance", repository)
    return repository


def _write_files(tmp_path, notify_tool="tool-chat"):
    workflow_path = tmp_path / "workflow.yaml"
    workflow_path.write_text(WORKFLOW_YAML.replace("{notify_tool}", notify_tool))
    tools_path = tmp_path / "tools.yaml"
    tools_path.write_text(TOOLS_YAML)
    pipeline_path = tmp_path / "pipelines.py"
    pipeline_path.write_text(PIPELINE_SOURCE)
    return workflow_path, tools_path, f"{pipeline_path}:echo_pipeline"


def test_workflow_run_reports_each_step(tmp_path, repo):
    workflow_path, tools_path, pipeline_ref = _write_files(tmp_path)

    result = CliRunner().invoke(
        app,
        [
            "workflow",
            "run",
            str(workflow_path),
            "--tools",
            str(tools_path),
            "--pipeline",
            pipeline_ref,
        ],
    )

    assert result.exit_code == 0, result.stdout
    assert "- Build: succeeded" in result.stdout
    assert "- Notify: succeeded" in result.stdout
    assert "succeeded" in result.stdout.splitlines()[-1]

    (run,) = repo.list_runs()
    assert run.status == RunStatus.SUCCEEDED
    nodes = repo.get_node_runs_by_run_id(run.id)
    assert [node.output for node in nodes] == [
        'tool-build:{"target": "prod"}',
        "tool-chat:",
    ]


def test_workflow_run_exits_non_zero_on_failure(tmp_path, repo):
    workflow_path, tools_path, pipeline_ref = _write_files(
        tmp_path, notify_tool="tool-missing"
    )

    result = CliRunner().invoke(
        app,
        [
            "workflow",
            "run",
            str(workflow_path),
            "--tools",
            str(tools_path),
            "--pipeline",
            pipeline_ref,
            "--timeout-ms",
            "500",
        ],
    )

    assert result.exit_code == 1
    assert '- Notify: failed (Tool "tool-missing" not found.)' in result.stdout
    assert 'Error: Tool "tool-missing" not found.' in result.stdout
    (run,) = repo.list_runs()
    assert run.status == RunStatus.FAILED
    assert [n.status for n in repo.get_node_runs_by_run_id(run.id)] == [
        NodeRunStatus.SUCCEEDED,
        NodeRunStatus.FAILED,
    ]


def test_workflow_run_rejects_bad_pipeline(tmp_path, repo):
    workflow_path, tools_path, _ = _write_files(tmp_path)

    result = CliRunner().invoke(
        app,
        [
            "workflow",
            "run",
            str(workflow_path),
            "--tools",
            str(tools_path),
            "--pipeline",
            "not-a-reference",
        ],
    )

    assert result.exit_code == 1
    assert "module:attribute" in result.stdout
    assert repo.list_runs() == []


def test_workflow_validate_lists_steps(tmp_path, repo):
    workflow_path, _, _ = _write_files(tmp_path)

    result = CliRunner().invoke(app, ["workflow", "validate", str(workflow_path)])

    assert result.exit_code == 0, result.stdout
    assert "Workflow workflow-1 (Deploy): 2 steps" in result.stdout
    assert "1. Build -> tool-build [run]" in result.stdout
    assert "2. Notify -> tool-chat [run]" in result.stdout


def test_workflow_validate_reports_invalid_file(tmp_path, repo):
    workflow_path = tmp_path / "workflow.yaml"
    workflow_path.write_text("id: wf\nname: WF\nsteps:\n  - id: s\n    name: S\n")

    result = CliRunner().invoke(app, ["workflow", "validate", str(workflow_path)])

    assert result.exit_code == 1
    assert "Invalid workflow" in result.stdout
