"""
Locations of the ledgersync stream files.

Everything lives under `<root>/.ledgersync/`:

- ledger.jsonl    action entries
- promises.jsonl  promises and their status-change events
- reports.jsonl   work reports and verdicts
- config.yaml     project configuration
"""

from __future__ import annotations

from pathlib import Path

LEDGERSYNC_DIR = ".ledgersync"
LEDGER_FILE = "ledger.jsonl"
PROMISES_FILE = "promises.jsonl"
REPORTS_FILE = "reports.jsonl"
CONFIG_FILE = "config.yaml"

STREAM_FILES = (LEDGER_FILE, PROMISES_FILE, REPORTS_FILE)


def find_ledgersync_root(start: Path) -> Path | None:
    """Find the nearest directory containing .ledgersync/ by walking up from `start`."""
    cur = start.resolve()
    for p in (cur, *cur.parents):
        if (p / LEDGERSYNC_DIR).is_dir():
            return p
    return None


def ledgersync_dir(root: Path) -> Path:
    return root / LEDGERSYNC_DIR


def ledger_path(root: Path) -> Path:
    return ledgersync_dir(root) / LEDGER_FILE


def promises_path(root: Path) -> Path:
    return ledgersync_dir(root) / PROMISES_FILE


def reports_path(root: Path) -> Path:
    return ledgersync_dir(root) / REPORTS_FILE


def config_path(root: Path) -> Path:
    return ledgersync_dir(root) / CONFIG_FILE


def initialize(root: Path, project_name: str = "My Project") -> bool:
    """Create .ledgersync/ with a default config and empty stream files.

    Returns False (and touches nothing) if the directory already exists.
    """
    from .config import default_config, write_config

    target = ledgersync_dir(root)
    if target.exists():
        return False

    target.mkdir(parents=True)
    write_config(root, default_config(project_name))
    for name in STREAM_FILES:
        (target / name).write_text("", encoding="utf-8")
    return True
