"""Promise CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..errors import LedgerSyncError
from ..store.promises import (
    Promise,
    PromiseBody,
    PromiseContext,
    Promisee,
    PromiseLedger,
    Promiser,
    create_promise,
)

STATUS_STYLES = {
    "active": "green",
    "fulfilled": "blue",
    "broken": "red",
    "withdrawn": "grey50",
    "superseded": "magenta",
}


def short_id(record_id: str) -> str:
    return record_id[:8]


def run_promise_add(
    root: Path,
    *,
    promise_type: str,
    summary: str,
    to: str = "*",
    agent: str = "human",
    scope: str = "project",
    description: str | None = None,
    conditions: Sequence[str] = (),
    files: Sequence[str] = (),
    tags: Sequence[str] = (),
) -> int:
    err = Console(stderr=True)
    console = Console()

    promise = create_promise(
        Promiser(agent=agent),
        Promisee(agent=to, scope=scope),
        PromiseBody(
            type=promise_type,
            summary=summary,
            description=description,
            conditions=list(conditions) or None,
        ),
        context=PromiseContext(artifacts=list(files)) if files else None,
        tags=list(tags) or None,
    )
    try:
        PromiseLedger(root).append(promise)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    console.print("Promise created", style="green")
    console.print(f"   ID: {promise.id}", style="dim")
    console.print(f'   {escape(agent)} -> {escape(to)}: {promise_type} "{escape(summary)}"', style="dim")
    return 0


def run_promise_list(
    root: Path,
    *,
    last: int = 10,
    agent: str | None = None,
    status: str | None = None,
    active: bool = False,
    output_json: bool = False,
) -> int:
    err = Console(stderr=True)
    console = Console()
    ledger = PromiseLedger(root)

    try:
        promises = ledger.read_active() if active else ledger.read_all()
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if agent:
        promises = [p for p in promises if p.promiser.agent == agent]
    if status:
        promises = [p for p in promises if p.status == status]
    promises = promises[-last:] if last > 0 else []

    if output_json:
        print(json.dumps([p.to_dict() for p in promises], indent=2))
        return 0

    if not promises:
        console.print("No promises found.", style="yellow")
        return 0

    table = Table(title="Promises")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("type", style="bold", no_wrap=True)
    table.add_column("status", no_wrap=True)
    table.add_column("promiser -> promisee")
    table.add_column("summary")

    for p in promises:
        table.add_row(
            short_id(p.id),
            p.promise.type,
            f"[{STATUS_STYLES.get(p.status, 'white')}]{p.status}[/]",
            escape(f"{p.promiser.agent} -> {p.promisee.agent}"),
            escape(p.promise.summary),
        )

    console.print(table)
    return 0


def _print_transition(console: Console, promise: Promise, verb: str) -> None:
    console.print(f"Promise {verb}: {promise.status}", style="green")
    console.print(f"   {escape(promise.promise.summary)}", style="dim")


def run_promise_resolve(
    root: Path,
    reference: str,
    *,
    status: str,
    resolved_by: str | None = None,
    actor: str | None = None,
) -> int:
    err = Console(stderr=True)
    console = Console()
    try:
        updated = PromiseLedger(root).resolve(reference, status, resolved_by, actor=actor)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if updated is None:
        err.print(f"Promise not found: {escape(reference)}", style="bold red")
        return 1
    _print_transition(console, updated, "resolved")
    return 0


def run_promise_withdraw(root: Path, reference: str, *, actor: str | None = None) -> int:
    err = Console(stderr=True)
    console = Console()
    try:
        updated = PromiseLedger(root).withdraw(reference, actor=actor)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if updated is None:
        err.print(f"Promise not found: {escape(reference)}", style="bold red")
        return 1
    _print_transition(console, updated, "withdrawn")
    return 0


def run_promise_supersede(
    root: Path,
    old_reference: str,
    new_reference: str,
    *,
    actor: str | None = None,
) -> int:
    err = Console(stderr=True)
    console = Console()
    try:
        updated = PromiseLedger(root).supersede(old_reference, new_reference, actor=actor)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if updated is None:
        err.print(f"Promise not found: {escape(old_reference)}", style="bold red")
        return 1
    _print_transition(console, updated, "superseded")
    console.print(f"   Replaced by: {updated.superseded_by}", style="dim")
    return 0
