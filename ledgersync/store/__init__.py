"""
Record stores for ledgersync.

Three append-only JSONL streams under .ledgersync/:

- entries: what an agent did and why (ledger.jsonl)
- promises: commitments plus their status-change events (promises.jsonl)
- reports: progress and verdicts on promises (reports.jsonl)

Design principles:
- Append-only: lines are never rewritten, in any stream
- Validated: every record is checked before it is written
- Folded: mutable promise status is computed from the event history
"""

from .entries import (
    ActionInfo,
    AgentInfo,
    ArtifactChange,
    EntryLedger,
    LedgerEntry,
    LedgerSummary,
    ReasoningInfo,
    SessionInfo,
    ToolCall,
    create_entry,
    format_summary_for_agent,
)
from .lookup import LookupResult, lookup_by_id
from .promises import (
    Promise,
    PromiseBody,
    PromiseContext,
    Promisee,
    PromiseLedger,
    Promiser,
    PromiseSummary,
    StatusChange,
    create_promise,
    fold_promises,
)
from .reports import (
    Reporter,
    ReportBody,
    ReportLedger,
    ReportSummary,
    Verdict,
    VerdictOutcome,
    WorkReport,
    create_verdict_report,
    create_work_report,
)
from .stream import JsonlStream

__all__ = [
    # Entries
    "ActionInfo",
    "AgentInfo",
    "ArtifactChange",
    "EntryLedger",
    "LedgerEntry",
    "LedgerSummary",
    "ReasoningInfo",
    "SessionInfo",
    "ToolCall",
    "create_entry",
    "format_summary_for_agent",
    # Promises
    "Promise",
    "PromiseBody",
    "PromiseContext",
    "Promisee",
    "PromiseLedger",
    "Promiser",
    "PromiseSummary",
    "StatusChange",
    "create_promise",
    "fold_promises",
    # Reports
    "Reporter",
    "ReportBody",
    "ReportLedger",
    "ReportSummary",
    "Verdict",
    "VerdictOutcome",
    "WorkReport",
    "create_verdict_report",
    "create_work_report",
    # Storage
    "JsonlStream",
    "LookupResult",
    "lookup_by_id",
]
