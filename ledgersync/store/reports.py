"""
Work report store (.ledgersync/reports.jsonl).

Reports record progress against a promise. A report written by a witness or
a human may carry a verdict; fulfilled and broken verdicts decide the
promise's final status.

Recording a verdict touches two streams (the report here, then a
status-change in promises.jsonl). There is no transaction across the two
files, so the promise status is treated as derivable from the verdict
history: reconcile() recomputes it and appends the missing status-change if
a previous call was interrupted between the two writes. Running it again is
a no-op.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .. import schema
from ..errors import InvalidTransitionError, ReferentialError, SchemaValidationError
from ..paths import reports_path
from ..util import drop_none, new_id, utc_now
from .lookup import LookupResult, lookup_by_id
from .promises import Promise, PromiseLedger
from .stream import JsonlStream

logger = logging.getLogger(__name__)

DEFAULT_VERDICT_WORK = "Reviewed promise fulfillment"

VERDICT_CONFIDENCE = {
    "fulfilled": 1.0,
    "partial": 0.5,
    "broken": 0.0,
}

# partial leaves the promise active
VERDICT_TO_PROMISE_STATUS = {
    "fulfilled": "fulfilled",
    "broken": "broken",
}


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Reporter:
    agent: str
    role: str  # actor | witness | human
    session: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({"agent": self.agent, "role": self.role, "session": self.session})


@dataclass(frozen=True)
class ReportBody:
    work_completed: str
    confidence_in_completion: float  # 0.0 - 1.0
    remaining: list[str] | None = None
    blockers: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({
            "workCompleted": self.work_completed,
            "remaining": self.remaining,
            "blockers": self.blockers,
            "confidenceInCompletion": self.confidence_in_completion,
        })


@dataclass(frozen=True)
class Verdict:
    status: str  # fulfilled | partial | broken
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status, "reasoning": self.reasoning}


@dataclass(frozen=True)
class WorkReport:
    id: str
    timestamp: str
    reporter: Reporter
    promise_id: str
    report: ReportBody
    verdict: Verdict | None = None
    related_entries: list[str] | None = None
    tags: list[str] | None = None

    @property
    def confidence(self) -> float:
        return self.report.confidence_in_completion

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "reporter": self.reporter.to_dict(),
            "promiseId": self.promise_id,
            "report": self.report.to_dict(),
        }
        if self.verdict is not None:
            result["verdict"] = self.verdict.to_dict()
        result.update(drop_none({"relatedEntries": self.related_entries, "tags": self.tags}))
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkReport:
        reporter = data["reporter"]
        body = data["report"]
        verdict = data.get("verdict")
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            reporter=Reporter(
                agent=reporter["agent"],
                role=reporter["role"],
                session=reporter.get("session"),
            ),
            promise_id=data["promiseId"],
            report=ReportBody(
                work_completed=body["workCompleted"],
                confidence_in_completion=body["confidenceInCompletion"],
                remaining=body.get("remaining"),
                blockers=body.get("blockers"),
            ),
            verdict=Verdict(status=verdict["status"], reasoning=verdict["reasoning"]) if verdict else None,
            related_entries=data.get("relatedEntries"),
            tags=data.get("tags"),
        )


def create_work_report(
    reporter: Reporter,
    promise_id: str,
    report: ReportBody,
    related_entries: list[str] | None = None,
    tags: list[str] | None = None,
) -> WorkReport:
    """Factory for a progress report (no verdict)."""
    return WorkReport(
        id=new_id(),
        timestamp=utc_now(),
        reporter=reporter,
        promise_id=promise_id,
        report=report,
        related_entries=related_entries,
        tags=tags,
    )


def create_verdict_report(
    reporter: Reporter,
    promise_id: str,
    verdict: Verdict,
    work_completed: str = DEFAULT_VERDICT_WORK,
    related_entries: list[str] | None = None,
    tags: list[str] | None = None,
) -> WorkReport:
    """
    Factory for a verdict report.

    Confidence follows the verdict: fulfilled 1.0, partial 0.5, broken 0.0.
    Only witness and human reporters may grade a promise.
    """
    if reporter.role not in schema.VERDICT_ROLES:
        raise ValueError(f"Reporter role '{reporter.role}' cannot issue a verdict")
    return WorkReport(
        id=new_id(),
        timestamp=utc_now(),
        reporter=reporter,
        promise_id=promise_id,
        report=ReportBody(
            work_completed=work_completed,
            # unknown statuses are left for the validator to reject on append
            confidence_in_completion=VERDICT_CONFIDENCE.get(verdict.status, 0.0),
        ),
        verdict=verdict,
        related_entries=related_entries,
        tags=tags,
    )


# -----------------------------------------------------------------------------
# Derived summary
# -----------------------------------------------------------------------------


@dataclass
class ReportSummary:
    total: int = 0
    with_verdicts: int = 0
    by_agent: dict[str, int] = field(default_factory=dict)
    verdict_counts: dict[str, int] = field(
        default_factory=lambda: {"fulfilled": 0, "partial": 0, "broken": 0}
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "withVerdicts": self.with_verdicts,
            "byAgent": self.by_agent,
            "verdictCounts": self.verdict_counts,
        }


def format_report_summary(summary: ReportSummary, recent: list[WorkReport]) -> str:
    """Markdown block listing verdict counts and the most recent reports."""
    lines = [
        "## Work Reports",
        "",
        f"**Total:** {summary.total} | **With Verdicts:** {summary.with_verdicts}",
        "",
    ]
    if summary.with_verdicts:
        lines.append("### Verdicts")
        for status in ("fulfilled", "partial", "broken"):
            lines.append(f"- {status.capitalize()}: {summary.verdict_counts[status]}")
        lines.append("")
    if recent:
        lines.append("### Recent Reports")
        for r in recent:
            verdict = f" -> {r.verdict.status}" if r.verdict else ""
            lines.append(
                f"- [{r.reporter.agent}] {r.report.work_completed} ({round(r.confidence * 100)}%){verdict}"
            )
    return "\n".join(lines)


@dataclass(frozen=True)
class VerdictOutcome:
    report: WorkReport
    promise: Promise  # projection after the verdict was applied


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------


class ReportLedger:
    """
    Append-only store for work reports.

    INVARIANT: This class NEVER modifies existing ledger lines.
    Promise status changes go through PromiseLedger as appended events.
    """

    def __init__(self, root: Path, promises: PromiseLedger | None = None):
        self.root = root
        self.stream = JsonlStream(reports_path(root))
        self.promises = promises or PromiseLedger(root)

    @property
    def path(self) -> Path:
        return self.stream.path

    # --- writes ---

    def append(self, report: WorkReport | Mapping[str, Any]) -> WorkReport:
        """
        Validate and append a report.

        Raises SchemaValidationError for a malformed report (including a
        verdict from an actor) and ReferentialError when promiseId names no
        promise. The file is untouched on failure.
        """
        record = report.to_dict() if isinstance(report, WorkReport) else dict(report)
        result = schema.validate(record, schema.REPORT)
        if not result.valid:
            raise SchemaValidationError(schema.REPORT, result.errors)

        promise_id = record["promiseId"]
        if not any(p.id == promise_id for p in self.promises.read_all()):
            raise ReferentialError("promiseId", promise_id, f"Report references unknown promise: {promise_id}")

        self.stream.append(record)
        logger.debug(f"Appended report {record['id']} for promise {promise_id}")
        return report if isinstance(report, WorkReport) else WorkReport.from_dict(record)

    def add_verdict(
        self,
        promise_ref: str,
        status: str,
        reasoning: str,
        reporter_agent: str = "human",
        *,
        role: str = "human",
        work_completed: str = DEFAULT_VERDICT_WORK,
    ) -> VerdictOutcome:
        """
        Record a verdict on a promise and apply it.

        Raises NotFoundError for an unknown promise and InvalidTransitionError
        when the promise has already left the active state.
        """
        promise = self.promises.lookup(promise_ref).require()
        promise = self.reconcile(promise.id)
        if not promise.is_active:
            raise InvalidTransitionError(promise.id, promise.status, VERDICT_TO_PROMISE_STATUS.get(status, status))

        report = create_verdict_report(
            Reporter(agent=reporter_agent, role=role),
            promise.id,
            Verdict(status=status, reasoning=reasoning),
            work_completed=work_completed,
        )
        self.append(report)
        return VerdictOutcome(report=report, promise=self._apply_verdicts(promise.id, repair=False))

    def reconcile(self, promise_ref: str) -> Promise:
        """
        Bring a promise in line with its verdict history.

        If the promise is active and a fulfilled or broken verdict exists for
        it, the latest such verdict is applied. Raises NotFoundError for an
        unknown promise.
        """
        return self._apply_verdicts(promise_ref, repair=True)

    def _apply_verdicts(self, promise_ref: str, *, repair: bool) -> Promise:
        promise = self.promises.lookup(promise_ref).require()
        if not promise.is_active:
            return promise

        decisive = [
            r for r in self.for_promise(promise.id)
            if r.verdict is not None and r.verdict.status in VERDICT_TO_PROMISE_STATUS
        ]
        if not decisive:
            return promise

        last = decisive[-1]
        target = VERDICT_TO_PROMISE_STATUS[last.verdict.status]
        if repair:
            logger.warning(f"Repairing promise {promise.id}: verdict {last.id} says {target}")
        try:
            resolved = self.promises.resolve(promise.id, target, resolved_by=last.id, actor=last.reporter.agent)
        except InvalidTransitionError as e:
            # another writer closed the promise after it was read
            logger.info(f"Promise {promise.id} already {e.current}; verdict {last.id} not applied")
            return self.promises.lookup(promise.id).require()
        return resolved if resolved is not None else promise

    def reconcile_all(self) -> list[Promise]:
        """Reconcile every active promise; returns the promises that changed."""
        repaired: list[Promise] = []
        for promise in self.promises.read_active():
            updated = self.reconcile(promise.id)
            if not updated.is_active:
                repaired.append(updated)
        return repaired

    # --- reads ---

    def read_all(self) -> list[WorkReport]:
        return self.stream.read(WorkReport.from_dict)

    def read_last_n(self, n: int) -> list[WorkReport]:
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def lookup(self, reference: str) -> LookupResult[WorkReport]:
        return lookup_by_id(self.read_all(), reference, kind="report", key=lambda r: r.id)

    def get_report_by_id(self, reference: str) -> WorkReport | None:
        return self.lookup(reference).get()

    def for_promise(self, promise_id: str) -> list[WorkReport]:
        return [r for r in self.read_all() if r.promise_id == promise_id]

    def by_agent(self, agent_name: str) -> list[WorkReport]:
        return [r for r in self.read_all() if r.reporter.agent == agent_name]

    def with_verdicts(self) -> list[WorkReport]:
        return [r for r in self.read_all() if r.verdict is not None]

    def latest_for_promise(self, promise_id: str) -> WorkReport | None:
        reports = self.for_promise(promise_id)
        return reports[-1] if reports else None

    def average_confidence_for_promise(self, promise_id: str) -> float:
        """Mean confidenceInCompletion over a promise's reports; 0 when there are none."""
        reports = self.for_promise(promise_id)
        if not reports:
            return 0
        return sum(r.confidence for r in reports) / len(reports)

    def summary(self) -> ReportSummary:
        reports = self.read_all()
        verdicts = Counter(r.verdict.status for r in reports if r.verdict is not None)
        return ReportSummary(
            total=len(reports),
            with_verdicts=sum(verdicts.values()),
            by_agent=dict(Counter(r.reporter.agent for r in reports)),
            verdict_counts={s: verdicts[s] for s in ("fulfilled", "partial", "broken")},
        )

    def validate_file(self) -> list[str]:
        """Per-line health check. Empty list means valid."""

        def check(data: dict[str, Any]) -> list[str]:
            return [str(issue) for issue in schema.validate(data, schema.REPORT).errors]

        return self.stream.check_lines(check)
