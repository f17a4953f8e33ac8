"""Work report, verdict, status and reconcile commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..conflicts import status_overview
from ..errors import LedgerSyncError
from ..store.promises import PromiseLedger
from ..store.reports import Reporter, ReportBody, ReportLedger, create_work_report
from .promise_cmd import STATUS_STYLES, short_id

VERDICT_STYLES = {"fulfilled": "green", "partial": "yellow", "broken": "red"}


def run_report_add(
    root: Path,
    *,
    promise: str,
    work: str,
    confidence: float = 0.5,
    remaining: Sequence[str] = (),
    blockers: Sequence[str] = (),
    agent: str = "human",
    role: str = "actor",
    tags: Sequence[str] = (),
) -> int:
    err = Console(stderr=True)
    console = Console()
    promises = PromiseLedger(root)
    reports = ReportLedger(root, promises)

    try:
        target = promises.lookup(promise).require()
        report = create_work_report(
            Reporter(agent=agent, role=role),
            target.id,
            ReportBody(
                work_completed=work,
                confidence_in_completion=confidence,
                remaining=list(remaining) or None,
                blockers=list(blockers) or None,
            ),
            tags=list(tags) or None,
        )
        reports.append(report)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    console.print("Work report added", style="green")
    console.print(f"   ID: {report.id}", style="dim")
    console.print(f"   Promise: {escape(target.promise.summary)}", style="dim")
    console.print(f"   Confidence: {round(confidence * 100)}%", style="dim")
    return 0


def run_report_verdict(
    root: Path,
    promise: str,
    *,
    status: str,
    reason: str,
    agent: str = "human",
    role: str = "human",
) -> int:
    err = Console(stderr=True)
    console = Console()
    try:
        outcome = ReportLedger(root).add_verdict(promise, status, reason, agent, role=role)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    console.print(f"Verdict added: {status}", style="green")
    console.print(f"   Promise: {escape(outcome.promise.promise.summary)}", style="dim")
    console.print(f"   Reason: {escape(reason)}", style="dim")
    if not outcome.promise.is_active:
        console.print(f"   Promise status updated to: {outcome.promise.status}", style="cyan")
    return 0


def run_report_list(
    root: Path,
    *,
    last: int = 10,
    promise: str | None = None,
    agent: str | None = None,
    verdicts: bool = False,
    output_json: bool = False,
) -> int:
    err = Console(stderr=True)
    console = Console()
    promises = PromiseLedger(root)
    ledger = ReportLedger(root, promises)

    try:
        reports = ledger.read_all()
        if promise:
            target = promises.lookup(promise).require()
            reports = [r for r in reports if r.promise_id == target.id]
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if agent:
        reports = [r for r in reports if r.reporter.agent == agent]
    if verdicts:
        reports = [r for r in reports if r.verdict is not None]
    reports = reports[-last:] if last > 0 else []

    if output_json:
        print(json.dumps([r.to_dict() for r in reports], indent=2))
        return 0

    if not reports:
        console.print("No reports found.", style="yellow")
        return 0

    table = Table(title="Work Reports")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("promise", style="dim", no_wrap=True)
    table.add_column("reporter")
    table.add_column("work")
    table.add_column("confidence", justify="right")
    table.add_column("verdict")

    for r in reports:
        verdict = ""
        if r.verdict is not None:
            verdict = f"[{VERDICT_STYLES.get(r.verdict.status, 'white')}]{r.verdict.status}[/]"
        table.add_row(
            short_id(r.id),
            short_id(r.promise_id),
            escape(f"{r.reporter.agent} ({r.reporter.role})"),
            escape(r.report.work_completed),
            f"{round(r.confidence * 100)}%",
            verdict,
        )

    console.print(table)
    return 0


def run_status(root: Path, *, output_json: bool = False) -> int:
    err = Console(stderr=True)
    console = Console()
    try:
        overview = status_overview(root)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if output_json:
        print(json.dumps(overview.to_dict(), indent=2))
        return 0

    ps = overview.promises
    rs = overview.reports

    console.print()
    console.print("LEDGERSYNC STATUS", style="bold")
    console.print()
    console.print("Promises", style="cyan")
    console.print(f"   Total: {ps.total}")
    for status in ("active", "fulfilled", "broken", "withdrawn", "superseded"):
        console.print(f"   [{STATUS_STYLES[status]}]{status.capitalize()}:[/] {getattr(ps, status)}")
    console.print()

    if overview.active_promises:
        console.print("Active Promises", style="cyan")
        for p in overview.active_promises[-5:]:
            console.print(f"   {escape(p.promiser.agent)} -> {escape(p.promisee.agent)}")
            console.print(f'   "{escape(p.promise.summary)}"')
            console.print(f"   ID: {short_id(p.id)}...", style="dim")
            console.print()

    console.print("Reports", style="cyan")
    console.print(f"   Total: {rs.total}")
    console.print(f"   With Verdicts: {rs.with_verdicts}")
    if rs.with_verdicts:
        for status in ("fulfilled", "partial", "broken"):
            console.print(f"   [{VERDICT_STYLES[status]}]{status.capitalize()}:[/] {rs.verdict_counts[status]}")
    console.print()
    return 0


def run_reconcile(root: Path) -> int:
    """Apply verdicts that were recorded but never reflected in promise status."""
    err = Console(stderr=True)
    console = Console()
    try:
        repaired = ReportLedger(root).reconcile_all()
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if not repaired:
        console.print("All promises agree with their verdicts.", style="green")
        return 0

    console.print(f"Repaired {len(repaired)} promise{'' if len(repaired) == 1 else 's'}:", style="yellow")
    for p in repaired:
        console.print(f"   {short_id(p.id)} -> {p.status}  {escape(p.promise.summary)}")
    return 0
