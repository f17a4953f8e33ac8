"""
Tests for work reports, verdicts and promise reconciliation.
"""

from __future__ import annotations

import logging

import pytest

from ledgersync.errors import InvalidTransitionError, NotFoundError, ReferentialError, SchemaValidationError
from ledgersync.store.promises import PromiseLedger
from ledgersync.store.reports import (
    Reporter,
    ReportBody,
    ReportLedger,
    Verdict,
    create_verdict_report,
    create_work_report,
    format_report_summary,
)


def _progress(promise_id: str, confidence: float, agent: str = "claude-code"):
    return create_work_report(
        Reporter(agent=agent, role="actor"),
        promise_id,
        ReportBody(work_completed="Made progress", confidence_in_completion=confidence, remaining=["tests"]),
    )


def test_append_roundtrip(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    promises.append(p)
    r = _progress(p.id, 0.4)

    reports.append(r)

    assert reports.read_all() == [r]
    assert reports.get_report_by_id(r.id[:8]) == r


def test_append_rejects_unknown_promise(reports: ReportLedger) -> None:
    with pytest.raises(ReferentialError) as exc_info:
        reports.append(_progress("no-such-promise", 0.5))

    assert exc_info.value.reference == "no-such-promise"
    assert reports.path.read_text(encoding="utf-8") == ""


def test_append_rejects_self_graded_verdict(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    promises.append(p)
    raw = create_verdict_report(
        Reporter(agent="reviewer", role="witness"),
        p.id,
        Verdict(status="fulfilled", reasoning="looks done"),
    ).to_dict()
    raw["reporter"]["role"] = "actor"

    with pytest.raises(SchemaValidationError) as exc_info:
        reports.append(raw)

    assert [i.path for i in exc_info.value.issues] == ["/verdict"]
    assert reports.path.read_text(encoding="utf-8") == ""


def test_verdict_confidence_mapping() -> None:
    witness = Reporter(agent="reviewer", role="witness")
    confidences = {
        status: create_verdict_report(witness, "p", Verdict(status=status, reasoning="r")).confidence
        for status in ("fulfilled", "partial", "broken")
    }
    assert confidences == {"fulfilled": 1.0, "partial": 0.5, "broken": 0.0}

    report = create_verdict_report(witness, "p", Verdict(status="partial", reasoning="r"))
    assert report.report.work_completed == "Reviewed promise fulfillment"
    custom = create_verdict_report(witness, "p", Verdict(status="partial", reasoning="r"), work_completed="Ran suite")
    assert custom.report.work_completed == "Ran suite"


def test_actor_cannot_create_verdict() -> None:
    with pytest.raises(ValueError):
        create_verdict_report(Reporter(agent="claude-code", role="actor"), "p", Verdict("fulfilled", "mine"))


def test_add_verdict_fulfils_promise(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise(summary="Add OAuth")
    promises.append(p)

    outcome = reports.add_verdict(p.id, "fulfilled", "done")

    assert outcome.promise.status == "fulfilled"
    assert outcome.promise.resolved_by == outcome.report.id
    assert promises.get_promise_by_id(p.id).status == "fulfilled"

    stored = reports.for_promise(p.id)
    assert len(stored) == 1
    assert stored[0].verdict.status == "fulfilled"
    assert stored[0].promise_id == p.id
    assert stored[0].reporter.role == "human"


def test_add_verdict_broken(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    promises.append(p)

    outcome = reports.add_verdict(p.id[:8], "broken", "reverted", "reviewer", role="witness")

    assert outcome.promise.status == "broken"
    assert outcome.report.reporter == Reporter(agent="reviewer", role="witness")


def test_partial_verdict_leaves_promise_active(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    promises.append(p)

    outcome = reports.add_verdict(p.id, "partial", "half done")

    assert outcome.promise.is_active
    assert promises.get_promise_by_id(p.id).is_active
    assert outcome.report.confidence == 0.5


def test_add_verdict_unknown_promise(reports: ReportLedger) -> None:
    with pytest.raises(NotFoundError):
        reports.add_verdict("nonexistent-id", "fulfilled", "done")
    assert reports.path.read_text(encoding="utf-8") == ""


def test_add_verdict_on_closed_promise(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    promises.append(p)
    promises.withdraw(p.id)

    with pytest.raises(InvalidTransitionError):
        reports.add_verdict(p.id, "fulfilled", "done anyway")
    assert reports.read_all() == []


def test_reconcile_repairs_interrupted_verdict(
    reports: ReportLedger, promises: PromiseLedger, make_promise, caplog
) -> None:
    p = make_promise()
    promises.append(p)
    # verdict report written, promise update never happened
    verdict = create_verdict_report(Reporter(agent="human", role="human"), p.id, Verdict("broken", "regressed"))
    reports.append(verdict)
    assert promises.get_promise_by_id(p.id).is_active

    with caplog.at_level(logging.WARNING, logger="ledgersync.store.reports"):
        repaired = reports.reconcile(p.id)

    assert repaired.status == "broken"
    assert repaired.resolved_by == verdict.id
    assert f"Repairing promise {p.id}" in caplog.text

    before = promises.path.read_bytes()
    assert reports.reconcile(p.id).status == "broken"
    assert promises.path.read_bytes() == before


def test_reconcile_uses_latest_decisive_verdict(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    promises.append(p)
    human = Reporter(agent="human", role="human")
    reports.append(create_verdict_report(human, p.id, Verdict("broken", "first look")))
    latest = create_verdict_report(human, p.id, Verdict("fulfilled", "fixed after all"))
    reports.append(latest)
    reports.append(create_verdict_report(human, p.id, Verdict("partial", "docs missing")))

    repaired = reports.reconcile(p.id)

    assert repaired.status == "fulfilled"
    assert repaired.resolved_by == latest.id


def test_reconcile_without_verdicts_is_noop(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    promises.append(p)
    reports.append(_progress(p.id, 0.9))
    before = promises.path.read_bytes()

    assert reports.reconcile(p.id).is_active
    assert promises.path.read_bytes() == before
    with pytest.raises(NotFoundError):
        reports.reconcile("nonexistent-id")


def test_add_verdict_completes_earlier_interrupted_verdict(
    reports: ReportLedger, promises: PromiseLedger, make_promise
) -> None:
    p = make_promise()
    promises.append(p)
    reports.append(create_verdict_report(Reporter("human", "human"), p.id, Verdict("fulfilled", "done")))

    with pytest.raises(InvalidTransitionError):
        reports.add_verdict(p.id, "broken", "second opinion")

    assert promises.get_promise_by_id(p.id).status == "fulfilled"
    assert len(reports.read_all()) == 1


def test_reconcile_all(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    stuck = make_promise(summary="stuck")
    fine = make_promise(summary="fine")
    promises.append(stuck)
    promises.append(fine)
    reports.append(create_verdict_report(Reporter("human", "human"), stuck.id, Verdict("fulfilled", "done")))

    repaired = reports.reconcile_all()

    assert [p.id for p in repaired] == [stuck.id]
    assert reports.reconcile_all() == []
    assert promises.get_promise_by_id(fine.id).is_active


def test_reconcile_all_tolerates_promise_closed_by_another_writer(
    reports: ReportLedger, promises: PromiseLedger, make_promise, monkeypatch
) -> None:
    raced = make_promise(summary="raced")
    stuck = make_promise(summary="stuck")
    promises.append(raced)
    promises.append(stuck)
    human = Reporter("human", "human")
    reports.append(create_verdict_report(human, raced.id, Verdict("fulfilled", "done")))
    reports.append(create_verdict_report(human, stuck.id, Verdict("broken", "dropped")))

    real_resolve = promises.resolve

    def resolve_after_other_writer(reference, status, resolved_by=None, *, actor=None):
        if reference == raced.id:
            # a second process withdraws the promise between read and write
            real_resolve(reference, "withdrawn", actor="other-process")
        return real_resolve(reference, status, resolved_by, actor=actor)

    monkeypatch.setattr(promises, "resolve", resolve_after_other_writer)

    repaired = reports.reconcile_all()

    assert {p.id: p.status for p in repaired} == {raced.id: "withdrawn", stuck.id: "broken"}
    assert promises.get_promise_by_id(raced.id).status == "withdrawn"
    assert promises.get_promise_by_id(stuck.id).status == "broken"


def test_non_finite_report_confidence_rejected(
    reports: ReportLedger, promises: PromiseLedger, make_promise
) -> None:
    p = make_promise()
    promises.append(p)

    with pytest.raises(SchemaValidationError) as exc_info:
        reports.append(_progress(p.id, float("nan")))

    assert [i.path for i in exc_info.value.issues] == ["/report/confidenceInCompletion"]
    assert reports.path.read_text(encoding="utf-8") == ""
    assert reports.average_confidence_for_promise(p.id) == 0


def test_average_confidence(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    other = make_promise()
    promises.append(p)
    promises.append(other)

    assert reports.average_confidence_for_promise(p.id) == 0

    reports.append(_progress(p.id, 0.2))
    reports.append(_progress(p.id, 0.6))
    reports.append(_progress(other.id, 1.0))

    assert reports.average_confidence_for_promise(p.id) == pytest.approx(0.4)


def test_queries_and_summary(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    q = make_promise()
    promises.append(p)
    promises.append(q)
    first = _progress(p.id, 0.3, agent="claude-code")
    reports.append(first)
    reports.append(_progress(q.id, 0.5, agent="cursor"))
    reports.add_verdict(p.id, "partial", "halfway", "reviewer", role="witness")
    outcome = reports.add_verdict(q.id, "broken", "abandoned")

    assert [r.id for r in reports.by_agent("claude-code")] == [first.id]
    assert len(reports.with_verdicts()) == 2
    assert reports.latest_for_promise(q.id) == outcome.report
    assert reports.latest_for_promise("nothing") is None
    assert [r.id for r in reports.read_last_n(1)] == [outcome.report.id]

    summary = reports.summary()
    assert summary.to_dict() == {
        "total": 4,
        "withVerdicts": 2,
        "byAgent": {"claude-code": 1, "cursor": 1, "reviewer": 1, "human": 1},
        "verdictCounts": {"fulfilled": 0, "partial": 1, "broken": 1},
    }

    text = format_report_summary(summary, reports.read_last_n(5))
    assert "**Total:** 4 | **With Verdicts:** 2" in text
    assert "- Partial: 1" in text
    assert "-> broken" in text


def test_validate_file(reports: ReportLedger, promises: PromiseLedger, make_promise) -> None:
    p = make_promise()
    promises.append(p)
    reports.append(_progress(p.id, 0.5))
    assert reports.validate_file() == []

    with reports.path.open("a", encoding="utf-8") as f:
        f.write('{"id": "r"}\n')
    errors = reports.validate_file()
    assert len(errors) == 1
    assert errors[0].startswith("Line 2: ")
    assert "/promiseId is required" in errors[0]
