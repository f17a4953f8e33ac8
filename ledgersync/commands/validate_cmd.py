"""`ledgersync validate` health check."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ..config import load_config
from ..errors import ConfigError
from ..paths import config_path
from ..store.entries import EntryLedger
from ..store.promises import PromiseLedger
from ..store.reports import ReportLedger


def run_validate(root: Path, *, cwd: Path) -> int:
    """Check config, every stream line, and grounding docs. Exit 1 on any issue."""
    console = Console()
    issues = 0

    console.print()
    console.print("LedgerSync Health Check", style="cyan")
    console.print()

    config = None
    if not config_path(root).exists():
        console.print("  [red]![/red] config.yaml (missing)")
        issues += 1
    else:
        try:
            config = load_config(root)
            console.print("  [green]*[/green] config.yaml")
        except ConfigError as e:
            console.print(f"  [red]![/red] config.yaml ({escape(str(e))})")
            issues += 1

    promises = PromiseLedger(root)
    stores = (
        ("ledger.jsonl", EntryLedger(root)),
        ("promises.jsonl", promises),
        ("reports.jsonl", ReportLedger(root, promises)),
    )
    for name, store in stores:
        if not store.path.exists():
            console.print(f"  [red]![/red] {name} (missing)")
            issues += 1
            continue
        errors = store.validate_file()
        if errors:
            console.print(f"  [red]![/red] {name}")
            for e in errors:
                console.print(f"    {escape(e)}", style="red")
            issues += len(errors)
        else:
            console.print(f"  [green]*[/green] {name} ({store.stream.count()} records)")

    console.print()
    console.print("Grounding docs:", style="cyan")
    if config is None or not config.philosophy.required:
        console.print("  No grounding docs registered.", style="dim")
    else:
        for doc in config.philosophy.required:
            if (cwd / doc).exists():
                console.print(f"  [green]*[/green] {escape(doc)}")
            else:
                console.print(f"  [red]![/red] {escape(doc)} (file not found)")
                issues += 1

    console.print()
    if issues == 0:
        console.print("Everything looks good.", style="green")
        return 0
    console.print(f"{issues} issue{'' if issues == 1 else 's'} found.", style="yellow")
    return 1
