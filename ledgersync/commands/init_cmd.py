"""`ledgersync init` command."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ..paths import LEDGERSYNC_DIR, STREAM_FILES, initialize


def run_init(root: Path, *, project_name: str | None = None) -> int:
    console = Console()
    name = project_name or root.resolve().name or "My Project"

    if not initialize(root, project_name=name):
        console.print(f"{LEDGERSYNC_DIR}/ already exists in {escape(str(root))}", style="yellow")
        return 0

    console.print(f"Initialized {LEDGERSYNC_DIR}/ for {escape(name)}", style="green")
    console.print("  config.yaml", style="dim")
    for filename in STREAM_FILES:
        console.print(f"  {filename}", style="dim")
    console.print()
    console.print("Next: register the docs every agent should read with `ledgersync ground add <path>`.")
    return 0
