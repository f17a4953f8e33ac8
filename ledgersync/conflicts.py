"""
Read-only views across the three streams: conflict checks and status overview.

The conflict check is a heuristic. Before touching a file, an agent states its
intent; if one of the recent entries that touched the same file was made with
a different intent, the agent is told who did what and why.

The comparison itself is pluggable. The default is literal string inequality,
which flags any rewording as a conflict.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence

from .store.entries import EntryLedger, LedgerEntry
from .store.promises import Promise, PromiseLedger, PromiseSummary
from .store.reports import ReportLedger, ReportSummary

CONFLICT_WINDOW = 5

IntentComparator = Callable[[str, str], bool]
"""(prior_intent, proposed_intent) -> True when the two intents conflict."""


def intents_differ(prior: str, proposed: str) -> bool:
    return prior != proposed


@dataclass(frozen=True)
class ConflictResult:
    conflict: bool
    prior_entry: LedgerEntry | None = None
    prior_intent: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.conflict:
            return {"conflict": False}
        return {
            "conflict": True,
            "priorEntry": self.prior_entry.to_dict() if self.prior_entry else None,
            "priorIntent": self.prior_intent,
        }


NO_CONFLICT = ConflictResult(conflict=False)


def check_conflict(
    entries: Sequence[LedgerEntry],
    file_path: str,
    proposed_intent: str,
    *,
    comparator: IntentComparator = intents_differ,
    window: int = CONFLICT_WINDOW,
) -> ConflictResult:
    """
    Check a proposed intent against recent entries touching `file_path`.

    Looks at the `window` most recent entries whose artifacts contain
    `file_path` (substring match) and reports the most recent one whose
    intent conflicts according to `comparator`.
    """
    touching = [e for e in entries if e.touches(file_path)]
    recent = touching[-window:] if window > 0 else []
    for entry in reversed(recent):
        if comparator(entry.reasoning.intent, proposed_intent):
            return ConflictResult(conflict=True, prior_entry=entry, prior_intent=entry.reasoning.intent)
    return NO_CONFLICT


def check_file_conflict(
    root: Path,
    file_path: str,
    proposed_intent: str,
    *,
    comparator: IntentComparator = intents_differ,
) -> ConflictResult:
    """check_conflict() against the entry stream under `root`."""
    return check_conflict(
        EntryLedger(root).read_all(),
        file_path,
        proposed_intent,
        comparator=comparator,
    )


@dataclass
class StatusOverview:
    promises: PromiseSummary
    reports: ReportSummary
    active_promises: list[Promise] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "promises": self.promises.to_dict(),
            "reports": self.reports.to_dict(),
            "activePromises": [p.to_dict() for p in self.active_promises],
        }


def status_overview(root: Path) -> StatusOverview:
    promises = PromiseLedger(root)
    reports = ReportLedger(root, promises)
    return StatusOverview(
        promises=promises.summary(),
        reports=reports.summary(),
        active_promises=promises.read_active(),
    )
