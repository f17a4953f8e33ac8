"""Entry stream CLI commands: add, log, summary, check."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.markup import escape

from ..config import LedgerSettings, load_config
from ..conflicts import check_file_conflict
from ..errors import ConfigError, LedgerSyncError
from ..store.entries import (
    ActionInfo,
    AgentInfo,
    ArtifactChange,
    EntryLedger,
    ReasoningInfo,
    SessionInfo,
    create_entry,
    format_summary_for_agent,
)
from ..store.reports import ReportLedger, format_report_summary

logger = logging.getLogger(__name__)

_ARTIFACT_ICONS = {"created": "+", "modified": "~", "deleted": "-", "read": "."}


def _default_window(root: Path) -> int:
    try:
        return load_config(root).ledger.max_entries_to_load
    except ConfigError as e:
        logger.warning(f"{e}; using default window")
        return LedgerSettings().max_entries_to_load


def run_add(
    root: Path,
    *,
    summary: str,
    intent: str,
    action_type: str = "other",
    agent: str = "human",
    files: Sequence[str] = (),
    tags: Sequence[str] = (),
    confidence: float | None = None,
    session_id: str | None = None,
) -> int:
    err = Console(stderr=True)
    console = Console()
    ledger = EntryLedger(root)

    try:
        session = None
        if session_id:
            session = SessionInfo(id=session_id, entry_index=ledger.next_entry_index(session_id))
        entry = create_entry(
            AgentInfo(name=agent),
            ActionInfo(type=action_type, summary=summary),
            ReasoningInfo(intent=intent, confidence=confidence),
            session=session,
            artifacts=[ArtifactChange(path=f, action="modified") for f in files],
            tags=list(tags) or None,
        )
        ledger.append(entry)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    console.print("Logged.", style="green")
    console.print(f"  ID: {entry.id}", style="dim")
    return 0


def run_log(
    root: Path,
    *,
    last: int | None = None,
    agent: str | None = None,
    file: str | None = None,
    output_json: bool = False,
) -> int:
    err = Console(stderr=True)
    console = Console()
    ledger = EntryLedger(root)

    try:
        entries = ledger.read_last_n(last if last is not None else _default_window(root))
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if agent:
        entries = [e for e in entries if e.agent.name == agent]
    if file:
        entries = [e for e in entries if e.touches(file)]

    if output_json:
        print(json.dumps([e.to_dict() for e in entries], indent=2))
        return 0

    if not entries:
        console.print("No entries yet. Your agents will log here as they work.", style="dim")
        return 0

    for entry in entries:
        console.print()
        console.rule(style="grey50")
        console.print(f"[bold]{escape(entry.agent.name)}[/bold] · [dim]{entry.timestamp}[/dim]")
        console.print(escape(entry.action.summary), style="bold")
        console.print(f"Intent: {escape(entry.reasoning.intent)}", style="grey50")
        if entry.artifacts:
            console.print("Files:", style="grey50")
            for a in entry.artifacts:
                console.print(f"  {_ARTIFACT_ICONS.get(a.action, '.')} {escape(a.path)}")
    console.print()
    return 0


def run_summary(
    root: Path,
    *,
    last: int | None = None,
    include_reports: bool = False,
    output_json: bool = False,
) -> int:
    err = Console(stderr=True)
    try:
        summary = EntryLedger(root).generate_summary(last if last is not None else _default_window(root))
        reports = ReportLedger(root) if include_reports else None
        report_summary = reports.summary() if reports else None
        recent_reports = reports.read_last_n(5) if reports else []
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if output_json:
        data = summary.to_dict()
        if report_summary is not None:
            data["reports"] = report_summary.to_dict()
        print(json.dumps(data, indent=2))
        return 0

    print(format_summary_for_agent(summary))
    if report_summary is not None:
        print()
        print(format_report_summary(report_summary, recent_reports))
    return 0


def run_check(root: Path, *, file: str, intent: str, output_json: bool = False) -> int:
    """Exit 0 when the intent is compatible with recent work on `file`, 1 otherwise."""
    err = Console(stderr=True)
    console = Console()
    try:
        result = check_file_conflict(root, file, intent)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if output_json:
        print(json.dumps(result.to_dict(), indent=2))
        return 1 if result.conflict else 0

    if not result.conflict:
        console.print(f"No conflicting intent on {escape(file)}", style="green")
        return 0

    prior = result.prior_entry
    console.print(f"Possible conflict on {escape(file)}", style="bold yellow")
    if prior is not None:
        console.print(f"  {escape(prior.agent.name)} · {prior.timestamp}", style="dim")
        console.print(f"  {escape(prior.action.summary)}")
    console.print(f"  Prior intent: {escape(result.prior_intent or '')}")
    console.print(f"  Your intent:  {escape(intent)}")
    return 1
