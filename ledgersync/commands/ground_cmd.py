"""Grounding doc commands: files every agent reads before starting work."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ..config import add_grounding_doc, grounding_status, remove_grounding_doc
from ..errors import LedgerSyncError


def run_ground_add(root: Path, doc_path: str, *, cwd: Path) -> int:
    err = Console(stderr=True)
    console = Console()
    try:
        normalized, added = add_grounding_doc(root, doc_path, cwd)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if not added:
        console.print(f"Already registered: {escape(normalized)}", style="yellow")
        return 0
    console.print(f"Added: {escape(normalized)}", style="green")
    console.print("Agents will read this doc before starting work.", style="dim")
    return 0


def run_ground_list(root: Path, *, cwd: Path) -> int:
    err = Console(stderr=True)
    console = Console()
    try:
        docs = grounding_status(root, cwd)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if not docs:
        console.print("No grounding docs registered.", style="dim")
        return 0

    for doc, exists in docs:
        if exists:
            console.print(f"  [green]*[/green] {escape(doc)}")
        else:
            console.print(f"  [red]![/red] {escape(doc)} (file not found)")
    return 0


def run_ground_remove(root: Path, doc_path: str, *, cwd: Path) -> int:
    err = Console(stderr=True)
    console = Console()
    try:
        removed = remove_grounding_doc(root, doc_path, cwd)
    except LedgerSyncError as e:
        err.print(escape(str(e)), style="bold red")
        return 1

    if not removed:
        err.print(f"Not registered: {escape(doc_path)}", style="bold red")
        return 1
    console.print(f"Removed: {escape(doc_path)}", style="green")
    return 0
