"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from ledgersync.paths import initialize
from ledgersync.store.entries import (
    ActionInfo,
    AgentInfo,
    ArtifactChange,
    EntryLedger,
    LedgerEntry,
    ReasoningInfo,
    create_entry,
)
from ledgersync.store.promises import Promise, PromiseBody, Promisee, PromiseLedger, Promiser, create_promise
from ledgersync.store.reports import ReportLedger


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """An initialized project root."""
    project = tmp_path / "project"
    project.mkdir()
    assert initialize(project, project_name="test-project")
    return project


@pytest.fixture
def entries(root: Path) -> EntryLedger:
    return EntryLedger(root)


@pytest.fixture
def promises(root: Path) -> PromiseLedger:
    return PromiseLedger(root)


@pytest.fixture
def reports(root: Path, promises: PromiseLedger) -> ReportLedger:
    return ReportLedger(root, promises)


@pytest.fixture
def make_entry() -> Callable[..., LedgerEntry]:
    """Factory for valid entries touching the given files."""

    def _make(
        agent: str = "claude-code",
        summary: str = "Did a thing",
        intent: str = "make progress",
        files: tuple[str, ...] = (),
        confidence: float | None = None,
    ) -> LedgerEntry:
        return create_entry(
            AgentInfo(name=agent),
            ActionInfo(type="modify", summary=summary),
            ReasoningInfo(intent=intent, confidence=confidence),
            artifacts=[ArtifactChange(path=f, action="modified") for f in files],
        )

    return _make


@pytest.fixture
def make_promise() -> Callable[..., Promise]:
    """Factory for valid active promises."""

    def _make(
        summary: str = "Add OAuth",
        agent: str = "claude-code",
        to: str = "*",
        promise_type: str = "will-do",
    ) -> Promise:
        return create_promise(
            Promiser(agent=agent),
            Promisee(agent=to, scope="project"),
            PromiseBody(type=promise_type, summary=summary),
        )

    return _make
