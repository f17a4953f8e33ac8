from __future__ import annotations

from typing import Any

import pytest

from ledgersync import schema
from ledgersync.errors import SchemaValidationError


def _entry(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": "e-1",
        "timestamp": "2025-01-01T00:00:00.000Z",
        "agent": {"name": "claude-code"},
        "session": {"id": "s-1", "entryIndex": 0},
        "action": {"type": "modify", "summary": "Refactor auth"},
        "reasoning": {"intent": "simplify login"},
        "tools": [],
        "artifacts": [{"path": "src/auth.py", "action": "modified"}],
    }
    record.update(overrides)
    return record


def _report(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": "r-1",
        "timestamp": "2025-01-01T00:00:00.000Z",
        "reporter": {"agent": "reviewer", "role": "witness"},
        "promiseId": "p-1",
        "report": {"workCompleted": "Checked it", "confidenceInCompletion": 1.0},
    }
    record.update(overrides)
    return record


def _paths(result: schema.ValidationResult) -> set[str]:
    return {issue.path for issue in result.errors}


def test_valid_entry_passes() -> None:
    result = schema.validate(_entry(), schema.ENTRY)
    assert result.valid
    assert result.errors == []


def test_missing_intent_reported_with_path() -> None:
    result = schema.validate(_entry(reasoning={}), schema.ENTRY)
    assert not result.valid
    assert [i.to_dict() for i in result.errors] == [{"path": "/reasoning/intent", "message": "is required"}]


def test_all_violations_reported_in_one_pass() -> None:
    record = _entry(
        action={"type": "explode", "summary": "x" * 201},
        reasoning={"intent": "", "confidence": 1.5},
        artifacts=[{"path": "a.py", "action": "renamed"}],
    )
    del record["tools"]

    result = schema.validate(record, schema.ENTRY)

    assert _paths(result) == {
        "/action/type",
        "/action/summary",
        "/reasoning/intent",
        "/reasoning/confidence",
        "/artifacts/0/action",
        "/tools",
    }


def test_summary_of_exactly_200_chars_is_valid() -> None:
    result = schema.validate(_entry(action={"type": "plan", "summary": "x" * 200}), schema.ENTRY)
    assert result.valid


def test_bad_timestamp_rejected() -> None:
    result = schema.validate(_entry(timestamp="yesterday"), schema.ENTRY)
    assert _paths(result) == {"/timestamp"}


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_numbers_rejected(value: float) -> None:
    entry = _entry(
        reasoning={"intent": "x", "confidence": value},
        tools=[{"name": "bench", "parameters": {"timings": [0.1, value]}}],
    )
    result = schema.validate(entry, schema.ENTRY)
    assert _paths(result) == {"/reasoning/confidence", "/tools/0/parameters/timings/1"}
    assert all(i.message == "must be a finite number" for i in result.errors)

    report = schema.validate(_report(report={"workCompleted": "w", "confidenceInCompletion": value}), schema.REPORT)
    assert _paths(report) == {"/report/confidenceInCompletion"}


def test_huge_integer_index_is_valid() -> None:
    result = schema.validate(_entry(session={"id": "s-1", "entryIndex": 10**400}), schema.ENTRY)
    assert result.valid


def test_boolean_is_not_a_number() -> None:
    result = schema.validate(_entry(reasoning={"intent": "x", "confidence": True}), schema.ENTRY)
    assert _paths(result) == {"/reasoning/confidence"}


def test_non_object_record() -> None:
    result = schema.validate(["not", "a", "record"], schema.ENTRY)
    assert not result.valid
    assert str(result.errors[0]) == "/ must be an object"


def test_typed_block_shape_checked() -> None:
    record = _entry(entryType="review", review={"scope": [], "findings": [{"severity": "urgent"}]})
    paths = _paths(schema.validate(record, schema.ENTRY))
    assert "/review/findings/0/severity" in paths
    assert "/review/overallAssessment" in paths


def test_verdict_from_actor_rejected() -> None:
    record = _report(
        reporter={"agent": "claude-code", "role": "actor"},
        verdict={"status": "fulfilled", "reasoning": "I did it"},
    )
    result = schema.validate(record, schema.REPORT)
    assert _paths(result) == {"/verdict"}


def test_verdict_from_witness_accepted() -> None:
    record = _report(verdict={"status": "partial", "reasoning": "half done"})
    assert schema.validate(record, schema.REPORT).valid


def test_status_change_cannot_return_to_active() -> None:
    event = {
        "event": "status-change",
        "id": "ev-1",
        "timestamp": "2025-01-01T00:00:00.000Z",
        "promiseId": "p-1",
        "status": "active",
    }
    assert _paths(schema.validate(event, schema.PROMISE_STATUS)) == {"/status"}


def test_superseded_event_needs_successor() -> None:
    event = {
        "event": "status-change",
        "id": "ev-1",
        "timestamp": "2025-01-01T00:00:00.000Z",
        "promiseId": "p-1",
        "status": "superseded",
    }
    assert _paths(schema.validate(event, schema.PROMISE_STATUS)) == {"/supersededBy"}


def test_ensure_valid_raises_with_every_issue() -> None:
    with pytest.raises(SchemaValidationError) as exc_info:
        schema.ensure_valid(_entry(agent={}, reasoning={}), schema.ENTRY)

    err = exc_info.value
    assert err.kind == "entry"
    assert {i.path for i in err.issues} == {"/agent/name", "/reasoning/intent"}
    assert "/reasoning/intent: is required" in str(err)


def test_unknown_kind() -> None:
    with pytest.raises(ValueError, match="Unknown record kind"):
        schema.validate({}, "invoice")
