"""
Tests for the entry stream.

- Validated append, one compact JSON line per record
- Failed append leaves the file byte-identical
- Whole-file reads abort on the first malformed line
- Filters and the derived hand-off summary
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ledgersync.errors import AmbiguousReferenceError, JsonParseError, SchemaValidationError
from ledgersync.store.entries import (
    ActionInfo,
    AgentInfo,
    ArtifactChange,
    EntryLedger,
    LedgerEntry,
    ReasoningInfo,
    SessionInfo,
    ToolCall,
    create_entry,
    format_summary_for_agent,
)
from ledgersync.store.stream import encode_record


def test_append_roundtrip(entries: EntryLedger) -> None:
    entry = create_entry(
        AgentInfo(name="claude-code", model="opus"),
        ActionInfo(type="create", summary="Add login form", description="New component"),
        ReasoningInfo(intent="users need to sign in", assumptions=["React"], confidence=0.9),
        tools=[ToolCall(name="write_file", parameters={"path": "src/Login.tsx"})],
        artifacts=[ArtifactChange(path="src/Login.tsx", action="created", lines_changed=40)],
        entry_type="implementation",
        tags=["auth"],
        implementation={
            "feature": "login",
            "designDecisions": ["controlled inputs"],
            "testsAdded": [],
            "docsUpdated": [],
            "breakingChanges": [],
        },
    )

    entries.append(entry)

    assert entries.read_all() == [entry]


def test_append_writes_one_compact_line(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry(summary="first"))
    entries.append(make_entry(summary="second"))

    text = entries.path.read_text(encoding="utf-8")
    lines = text.split("\n")
    assert text.endswith("\n")
    assert len(lines) == 3 and lines[-1] == ""
    assert ": " not in lines[0]
    assert json.loads(lines[1])["action"]["summary"] == "second"


def test_append_raw_mapping(entries: EntryLedger, make_entry) -> None:
    raw = make_entry().to_dict()
    stored = entries.append(raw)
    assert isinstance(stored, LedgerEntry)
    assert stored.id == raw["id"]
    assert entries.count() == 1


def test_invalid_append_leaves_file_unchanged(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry())
    before = entries.path.read_bytes()

    bad = make_entry().to_dict()
    del bad["reasoning"]["intent"]
    with pytest.raises(SchemaValidationError) as exc_info:
        entries.append(bad)

    assert [i.path for i in exc_info.value.issues] == ["/reasoning/intent"]
    assert entries.path.read_bytes() == before
    assert entries.count() == 1


def test_malformed_line_aborts_read_with_line_number(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry())
    entries.append(make_entry())
    with entries.path.open("a", encoding="utf-8") as f:
        f.write("{not json\n")
    entries.append(make_entry())

    with pytest.raises(JsonParseError) as exc_info:
        entries.read_all()

    assert exc_info.value.line_number == 3
    assert "line 3" in str(exc_info.value)


def test_non_record_json_line_is_parse_error(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry())
    with entries.path.open("a", encoding="utf-8") as f:
        f.write('{"hello": "world"}\n')

    with pytest.raises(JsonParseError) as exc_info:
        entries.read_last_n(5)
    assert exc_info.value.line_number == 2


def test_invalid_utf8_line_is_parse_error(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry())
    with entries.path.open("ab") as f:
        f.write(b'{"id":"\xff\xfe"}\n')

    with pytest.raises(JsonParseError) as exc_info:
        entries.read_all()

    assert exc_info.value.line_number == 2
    assert "invalid UTF-8" in str(exc_info.value)

    errors = entries.validate_file()
    assert errors == ["Line 2: Invalid JSON - invalid UTF-8"]


def test_nan_literal_line_is_parse_error(entries: EntryLedger, make_entry) -> None:
    raw = json.dumps(make_entry().to_dict())
    with entries.path.open("a", encoding="utf-8") as f:
        f.write(raw.replace('"intent"', '"confidence": NaN, "intent"') + "\n")

    with pytest.raises(JsonParseError) as exc_info:
        entries.read_all()
    assert exc_info.value.line_number == 1

    with pytest.raises(ValueError):
        encode_record({"confidence": float("nan")})


def test_non_finite_confidence_rejected(entries: EntryLedger, make_entry) -> None:
    for value in (float("nan"), float("inf"), float("-inf")):
        with pytest.raises(SchemaValidationError) as exc_info:
            entries.append(make_entry(confidence=value))
        assert [i.path for i in exc_info.value.issues] == ["/reasoning/confidence"]

    assert entries.path.read_text(encoding="utf-8") == ""


def test_non_finite_tool_parameter_rejected(entries: EntryLedger) -> None:
    entry = create_entry(
        AgentInfo(name="claude-code"),
        ActionInfo(type="analyze", summary="Measure"),
        ReasoningInfo(intent="measure"),
        tools=[ToolCall(name="bench", parameters={"runs": [1.0, float("nan")]})],
    )

    with pytest.raises(SchemaValidationError) as exc_info:
        entries.append(entry)

    assert [i.path for i in exc_info.value.issues] == ["/tools/0/parameters/runs/1"]
    assert entries.path.read_text(encoding="utf-8") == ""


def test_read_missing_file_is_empty(tmp_path: Path) -> None:
    ledger = EntryLedger(tmp_path)
    assert ledger.read_all() == []
    assert ledger.count() == 0


def test_read_last_n(entries: EntryLedger, make_entry) -> None:
    for i in range(5):
        entries.append(make_entry(summary=f"step {i}"))

    assert [e.action.summary for e in entries.read_last_n(2)] == ["step 3", "step 4"]
    assert entries.read_last_n(0) == []
    assert len(entries.read_last_n(50)) == 5


def test_filters(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry(agent="claude-code", files=("src/auth/login.py",)))
    entries.append(make_entry(agent="cursor", files=("src/api.py",)))
    entries.append(make_entry(agent="claude-code", files=("docs/auth.md",)))

    assert len(entries.filter_by_agent("claude-code")) == 2
    assert len(entries.filter_by_agent("nobody")) == 0
    # substring, not exact match
    assert len(entries.filter_by_artifact_path("auth")) == 2
    assert len(entries.filter_by_artifact_path("src/api.py")) == 1


def test_next_entry_index_is_per_session(entries: EntryLedger) -> None:
    agent = AgentInfo(name="claude-code")
    action = ActionInfo(type="plan", summary="plan")
    reasoning = ReasoningInfo(intent="plan")

    assert entries.next_entry_index("s-1") == 0
    entries.append(create_entry(agent, action, reasoning, session=SessionInfo(id="s-1", entry_index=0)))
    entries.append(create_entry(agent, action, reasoning, session=SessionInfo(id="s-1", entry_index=1)))
    entries.append(create_entry(agent, action, reasoning, session=SessionInfo(id="s-2", entry_index=0)))

    assert entries.next_entry_index("s-1") == 2
    assert entries.next_entry_index("s-2") == 1


def test_lookup_by_prefix(entries: EntryLedger, make_entry) -> None:
    for entry_id in ("abc-111", "abc-222", "def-333"):
        raw = make_entry().to_dict()
        raw["id"] = entry_id
        entries.append(raw)

    assert entries.get_entry_by_id("def").id == "def-333"
    assert entries.get_entry_by_id("abc-2").id == "abc-222"
    assert entries.get_entry_by_id("missing") is None
    with pytest.raises(AmbiguousReferenceError) as exc_info:
        entries.get_entry_by_id("abc")
    assert exc_info.value.candidates == ["abc-111", "abc-222"]


def test_summary_on_empty_store(entries: EntryLedger) -> None:
    summary = entries.generate_summary(20)

    assert summary.to_dict() == {
        "totalEntries": 0,
        "lastUpdated": "Never",
        "recentAgents": [],
        "recentFiles": [],
        "keyDecisions": [],
    }
    assert entries.generate_summary(20) == summary


def test_summary_window(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry(agent="old-agent", files=("old.py",)))
    entries.append(make_entry(agent="claude-code", summary="Add OAuth", files=("a.py", "b.py")))
    entries.append(make_entry(agent="cursor", summary="Guess at fix", files=("a.py",), confidence=0.3))
    last = make_entry(agent="claude-code", summary="Write tests", files=("c.py",), confidence=0.7)
    entries.append(last)

    summary = entries.generate_summary(3)

    assert summary.total_entries == 4
    assert summary.last_updated == last.timestamp
    assert summary.recent_agents == ["claude-code", "cursor"]
    assert summary.recent_files == ["a.py", "b.py", "c.py"]
    assert summary.key_decisions == ["[claude-code] Add OAuth", "[claude-code] Write tests"]


def test_summary_zero_window_covers_all_entries(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry(agent="old-agent", files=("old.py",)))
    last = make_entry(agent="cursor", files=("new.py",))
    entries.append(last)

    summary = entries.generate_summary(0)

    assert summary.total_entries == 2
    assert summary.last_updated == last.timestamp
    assert summary.recent_agents == ["old-agent", "cursor"]
    assert summary.recent_files == ["old.py", "new.py"]


def test_summary_caps(entries: EntryLedger, make_entry) -> None:
    for i in range(15):
        entries.append(make_entry(summary=f"step {i}", files=(f"f{i}a.py", f"f{i}b.py")))

    summary = entries.generate_summary(20)

    assert len(summary.recent_files) == 20
    assert summary.recent_files[0] == "f0a.py"
    assert len(summary.key_decisions) == 10
    assert summary.key_decisions[-1] == "[claude-code] step 14"
    assert summary.key_decisions[0] == "[claude-code] step 5"


def test_format_summary_for_agent(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry(agent="cursor", summary="Fix bug", files=("x.py",)))

    text = format_summary_for_agent(entries.generate_summary())

    assert "## Context from Previous Agents" in text
    assert "**Total entries:** 1" in text
    assert "- cursor" in text
    assert "- x.py" in text
    assert "- [cursor] Fix bug" in text


def test_validate_file_reports_every_bad_line(entries: EntryLedger, make_entry) -> None:
    entries.append(make_entry())
    bad = make_entry().to_dict()
    bad["action"]["type"] = "explode"
    with entries.path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(bad) + "\n")
        f.write("garbage\n")

    errors = entries.validate_file()

    assert len(errors) == 2
    assert errors[0].startswith("Line 2: /action/type")
    assert errors[1].startswith("Line 3: Invalid JSON")
