import pytest
from pydantic import TypeAdapter, ValidationError

from toolflow.contracts import (
    ChunkEvent,
    ExecutionEvent,
    ExecutionFailure,
    ExecutionSuccess,
    ResultEvent,
    Workflow,
    cancelled_failure,
    load_workflow,
)


def _stored_workflow(**overrides):
    data = {
        "id": "workflow-1",
        "version": 1,
        "type": "linear",
        "name": "Test Workflow",
        "description": "",
        "tags": ["ops"],
        "steps": [
            {
                "id": "step-1",
                "name": "Step One",
                "toolId": "tool-1",
                "actionType": "run",
                "payload": "",
                "continueOnError": True,
            }
        ],
        "createdAt": "2026-02-24T00:00:00.000Z",
        "updatedAt": "2026-02-24T00:00:00.000Z",
    }
    data.update(overrides)
    return data


def test_workflow_accepts_stored_camel_case_record():
    workflow = Workflow.model_validate(_stored_workflow())

    (step,) = workflow.steps
    assert step.tool_id == "tool-1"
    assert step.action_type == "run"
    assert step.continue_on_error is True


def test_step_defaults():
    workflow = Workflow.model_validate(
        {
            "id": "wf",
            "name": "WF",
            "steps": [{"id": "s", "name": "S", "tool_id": "t", "action_type": "test"}],
        }
    )
    step = workflow.steps[0]
    assert step.payload == ""
    assert step.continue_on_error is False


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "   "},
        {"type": "graph"},
        {"tags": ["x" * 31]},
        {"steps": [{"id": "s", "name": "S", "toolId": "t", "actionType": "deploy"}]},
        {"steps": [{"id": "s", "name": "S", "toolId": " ", "actionType": "run"}]},
    ],
)
def test_workflow_rejects_invalid_records(overrides):
    with pytest.raises(ValidationError):
        Workflow.model_validate(_stored_workflow(**overrides))


def test_workflow_is_immutable():
    workflow = Workflow.model_validate(_stored_workflow())
    with pytest.raises(ValidationError):
        workflow.name = "Renamed"


def test_events_parse_by_type():
    adapter = TypeAdapter(ExecutionEvent)

    chunk = adapter.validate_python({"type": "chunk", "chunk": " spaced "})
    assert isinstance(chunk, ChunkEvent)
    assert chunk.chunk == " spaced "

    result = adapter.validate_python(
        {
            "type": "result",
            "result": {
                "ok": True,
                "response": {"statusCode": 200, "body": "{}", "bodyPreview": "{}"},
                "requestSummary": "GET https://example.com",
            },
        }
    )
    assert isinstance(result, ResultEvent)
    assert isinstance(result.result, ExecutionSuccess)
    assert result.result.response.status_code == 200


def test_cancelled_failure_is_distinguished():
    assert cancelled_failure().is_cancelled
    failure = ExecutionFailure.model_validate(
        {"ok": False, "error": {"code": "timeout", "message": "Timed out"}}
    )
    assert not failure.is_cancelled


def test_load_workflow_unwraps_workflow_key():
    wrapped = load_workflow({"workflow": _stored_workflow()})
    bare = load_workflow(_stored_workflow())

    assert wrapped == bare
    assert wrapped.steps[0].tool_id == "tool-1"


def test_result_union_is_told_apart_by_ok():
    failure = TypeAdapter(ResultEvent).validate_python(
        {"type": "result", "result": {"ok": False, "error": {"code": "x", "message": "m"}}}
    )
    success = TypeAdapter(ResultEvent).validate_python(
        {"type": "result", "result": {"ok": True, "response": {"statusCode": 204}}}
    )

    assert isinstance(failure.result, ExecutionFailure)
    assert isinstance(success.result, ExecutionSuccess)
    assert success.result.response.status_code == 204
