"""
Promise store (.ledgersync/promises.jsonl).

A promise has a mutable lifecycle status, but the stream stays append-only.
The file holds two kinds of lines:

- promise records, always appended with status "active"
- status-change events: {"event": "status-change", "promiseId": ..., "status": ...}

Current state is computed by folding the stream in order. Bytes on disk are
never rewritten, so concurrent writers cannot lose each other's updates: every
status change is its own appended line.

Status transitions only leave "active": a promise that is fulfilled, broken,
withdrawn or superseded is never moved again (InvalidTransitionError).
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Sequence, Union

from .. import schema
from ..errors import InvalidTransitionError, ReferentialError, SchemaValidationError
from ..paths import promises_path
from ..schema import STATUS_CHANGE_EVENT, TERMINAL_STATUSES, ValidationIssue
from ..util import drop_none, new_id, utc_now
from .lookup import LookupResult, lookup_by_id
from .stream import JsonlStream

logger = logging.getLogger(__name__)

ANY_AGENT = "*"

# Lifecycle states
STATUS_ACTIVE = "active"
STATUS_FULFILLED = "fulfilled"
STATUS_BROKEN = "broken"
STATUS_WITHDRAWN = "withdrawn"
STATUS_SUPERSEDED = "superseded"


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Promiser:
    agent: str
    session: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({"agent": self.agent, "session": self.session})


@dataclass(frozen=True)
class Promisee:
    agent: str = ANY_AGENT  # "*" means any future agent
    scope: str | None = None  # session | project | permanent

    def to_dict(self) -> dict[str, Any]:
        return drop_none({"agent": self.agent, "scope": self.scope})


@dataclass(frozen=True)
class PromiseBody:
    type: str  # will-do | will-not-do | will-maintain | will-provide
    summary: str
    description: str | None = None
    conditions: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({
            "type": self.type,
            "summary": self.summary,
            "description": self.description,
            "conditions": self.conditions,
        })


@dataclass(frozen=True)
class PromiseContext:
    related_entries: list[str] | None = None
    artifacts: list[str] | None = None
    constraint_refs: list[str] | None = None
    user_prompt: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({
            "relatedEntries": self.related_entries,
            "artifacts": self.artifacts,
            "constraintRefs": self.constraint_refs,
            "userPrompt": self.user_prompt,
        })

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PromiseContext:
        return cls(
            related_entries=data.get("relatedEntries"),
            artifacts=data.get("artifacts"),
            constraint_refs=data.get("constraintRefs"),
            user_prompt=data.get("userPrompt"),
        )


@dataclass(frozen=True)
class Promise:
    """
    A bilateral commitment from one agent to another.

    Instances read back from the store are projections: status and the
    resolved_* fields reflect every status-change event folded so far.
    """

    id: str
    timestamp: str
    promiser: Promiser
    promisee: Promisee
    promise: PromiseBody
    context: PromiseContext | None = None
    status: str = STATUS_ACTIVE
    resolved_by: str | None = None
    resolved_at: str | None = None
    superseded_by: str | None = None
    tags: list[str] | None = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "promiser": self.promiser.to_dict(),
            "promisee": self.promisee.to_dict(),
            "promise": self.promise.to_dict(),
        }
        if self.context is not None:
            result["context"] = self.context.to_dict()
        result["status"] = self.status
        result.update(drop_none({
            "resolvedBy": self.resolved_by,
            "resolvedAt": self.resolved_at,
            "supersededBy": self.superseded_by,
            "tags": self.tags,
        }))
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Promise:
        promiser = data["promiser"]
        promisee = data["promisee"]
        body = data["promise"]
        context = data.get("context")
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            promiser=Promiser(agent=promiser["agent"], session=promiser.get("session")),
            promisee=Promisee(agent=promisee["agent"], scope=promisee.get("scope")),
            promise=PromiseBody(
                type=body["type"],
                summary=body["summary"],
                description=body.get("description"),
                conditions=body.get("conditions"),
            ),
            context=PromiseContext.from_dict(context) if context is not None else None,
            status=data["status"],
            resolved_by=data.get("resolvedBy"),
            resolved_at=data.get("resolvedAt"),
            superseded_by=data.get("supersededBy"),
            tags=data.get("tags"),
        )


@dataclass(frozen=True)
class StatusChange:
    """Immutable event moving a promise out of the active state."""

    id: str
    timestamp: str
    promise_id: str
    status: str  # One of TERMINAL_STATUSES
    resolved_by: str | None = None
    superseded_by: str | None = None
    actor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "event": STATUS_CHANGE_EVENT,
            "id": self.id,
            "timestamp": self.timestamp,
            "promiseId": self.promise_id,
            "status": self.status,
        }
        result.update(drop_none({
            "resolvedBy": self.resolved_by,
            "supersededBy": self.superseded_by,
            "actor": self.actor,
        }))
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatusChange:
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            promise_id=data["promiseId"],
            status=data["status"],
            resolved_by=data.get("resolvedBy"),
            superseded_by=data.get("supersededBy"),
            actor=data.get("actor"),
        )


PromiseRecord = Union[Promise, StatusChange]


def parse_promise_record(data: Mapping[str, Any]) -> PromiseRecord:
    if "event" in data:
        if data["event"] != STATUS_CHANGE_EVENT:
            raise ValueError(f"unknown event {data['event']!r}")
        return StatusChange.from_dict(data)
    return Promise.from_dict(data)


def create_promise(
    promiser: Promiser,
    promisee: Promisee,
    promise: PromiseBody,
    context: PromiseContext | None = None,
    tags: list[str] | None = None,
) -> Promise:
    """Factory for new promises (fresh id and timestamp, status active)."""
    return Promise(
        id=new_id(),
        timestamp=utc_now(),
        promiser=promiser,
        promisee=promisee,
        promise=promise,
        context=context,
        status=STATUS_ACTIVE,
        tags=tags,
    )


# -----------------------------------------------------------------------------
# Fold
# -----------------------------------------------------------------------------


def apply_status_change(promise: Promise, event: StatusChange) -> Promise:
    return replace(
        promise,
        status=event.status,
        resolved_at=event.timestamp,
        resolved_by=event.resolved_by,
        superseded_by=event.superseded_by if event.status == STATUS_SUPERSEDED else promise.superseded_by,
    )


def fold_promises(records: Sequence[PromiseRecord]) -> list[Promise]:
    """
    Compute current promise state by folding the stream in append order.

    Promises keep their creation order. The first record for an id defines
    the promise; events for an id not yet seen are ignored.
    """
    state: dict[str, Promise] = {}
    for record in records:
        if isinstance(record, Promise):
            if record.id in state:
                logger.debug(f"Ignoring duplicate promise record {record.id}")
                continue
            state[record.id] = record
        else:
            current = state.get(record.promise_id)
            if current is None:
                logger.debug(f"Ignoring status change for unknown promise {record.promise_id}")
                continue
            state[record.promise_id] = apply_status_change(current, record)
    return list(state.values())


# -----------------------------------------------------------------------------
# Derived summary
# -----------------------------------------------------------------------------


@dataclass
class PromiseSummary:
    total: int = 0
    active: int = 0
    fulfilled: int = 0
    broken: int = 0
    withdrawn: int = 0
    superseded: int = 0
    by_agent: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "fulfilled": self.fulfilled,
            "broken": self.broken,
            "withdrawn": self.withdrawn,
            "superseded": self.superseded,
            "byAgent": self.by_agent,
        }


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------


class PromiseLedger:
    """
    Append-only store for promises and their status-change events.

    INVARIANT: existing lines are never modified; resolve(), supersede() and
    withdraw() append a StatusChange.
    """

    def __init__(self, root: Path):
        self.root = root
        self.stream = JsonlStream(promises_path(root))

    @property
    def path(self) -> Path:
        return self.stream.path

    # --- writes ---

    def append(self, promise: Promise | Mapping[str, Any]) -> Promise:
        """
        Validate and append a new promise.

        New promises must be active; anything else is a SchemaValidationError.
        The file is untouched on failure.
        """
        record = promise.to_dict() if isinstance(promise, Promise) else dict(promise)
        issues = list(schema.validate(record, schema.PROMISE).errors)
        if record.get("status") != STATUS_ACTIVE and not any(i.path == "/status" for i in issues):
            issues.append(ValidationIssue("/status", "new promises must be active"))
        if issues:
            raise SchemaValidationError(schema.PROMISE, issues)

        self.stream.append(record)
        logger.debug(f"Appended promise {record['id']} to {self.path}")
        return promise if isinstance(promise, Promise) else Promise.from_dict(record)

    def _append_status_change(self, event: StatusChange) -> None:
        record = event.to_dict()
        schema.ensure_valid(record, schema.PROMISE_STATUS)
        self.stream.append(record)
        logger.info(f"Promise {event.promise_id} -> {event.status}")

    def resolve(
        self,
        reference: str,
        status: str,
        resolved_by: str | None = None,
        *,
        actor: str | None = None,
    ) -> Promise | None:
        """
        Move an active promise to a terminal status.

        Returns the updated projection, or None when no promise matches
        (nothing is written). Raises AmbiguousReferenceError for an ambiguous
        prefix and InvalidTransitionError if the promise is not active.
        """
        promise = self.lookup(reference).get()
        if promise is None:
            return None
        return self._transition(promise, status, resolved_by=resolved_by, actor=actor)

    def withdraw(self, reference: str, *, actor: str | None = None) -> Promise | None:
        return self.resolve(reference, STATUS_WITHDRAWN, actor=actor)

    def supersede(
        self,
        old_reference: str,
        new_reference: str,
        *,
        actor: str | None = None,
    ) -> Promise | None:
        """
        Mark a promise as replaced by another one.

        Returns None when the old promise does not exist. The replacement must
        exist (ReferentialError otherwise).
        """
        promises = self.read_all()
        old = self._lookup_in(promises, old_reference).get()
        if old is None:
            return None
        new = self._lookup_in(promises, new_reference).get()
        if new is None:
            raise ReferentialError("supersededBy", new_reference)
        if new.id == old.id:
            raise ReferentialError("supersededBy", new_reference, "A promise cannot supersede itself")
        return self._transition(old, STATUS_SUPERSEDED, superseded_by=new.id, actor=actor)

    def _transition(
        self,
        promise: Promise,
        status: str,
        *,
        resolved_by: str | None = None,
        superseded_by: str | None = None,
        actor: str | None = None,
    ) -> Promise:
        if not promise.is_active:
            raise InvalidTransitionError(promise.id, promise.status, status)

        event = StatusChange(
            id=new_id(),
            timestamp=utc_now(),
            promise_id=promise.id,
            status=status,
            resolved_by=resolved_by,
            superseded_by=superseded_by,
            actor=actor,
        )
        self._append_status_change(event)
        return apply_status_change(promise, event)

    # --- reads ---

    def read_history(self) -> list[PromiseRecord]:
        """Raw stream: promise records and status-change events in append order."""
        return self.stream.read(parse_promise_record)

    def read_all(self) -> list[Promise]:
        """Current state of every promise, in creation order."""
        return fold_promises(self.read_history())

    def read_active(self) -> list[Promise]:
        return [p for p in self.read_all() if p.is_active]

    def read_last_n(self, n: int) -> list[Promise]:
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def history_for(self, promise_id: str) -> list[StatusChange]:
        return [
            r for r in self.read_history()
            if isinstance(r, StatusChange) and r.promise_id == promise_id
        ]

    @staticmethod
    def _lookup_in(promises: Sequence[Promise], reference: str) -> LookupResult[Promise]:
        return lookup_by_id(promises, reference, kind="promise", key=lambda p: p.id)

    def lookup(self, reference: str) -> LookupResult[Promise]:
        """Resolve a full id or unique id prefix to a tagged outcome."""
        return self._lookup_in(self.read_all(), reference)

    def get_promise_by_id(self, reference: str) -> Promise | None:
        """Promise for a full id or unique prefix, None if absent.

        Raises AmbiguousReferenceError when the prefix matches several promises.
        """
        return self.lookup(reference).get()

    def by_agent(self, agent_name: str) -> list[Promise]:
        """Promises made BY an agent."""
        return [p for p in self.read_all() if p.promiser.agent == agent_name]

    def for_agent(self, agent_name: str) -> list[Promise]:
        """Promises made TO an agent (including those made to any agent)."""
        return [p for p in self.read_all() if p.promisee.agent in (agent_name, ANY_AGENT)]

    def for_file(self, file_path: str) -> list[Promise]:
        return [
            p for p in self.read_all()
            if p.context is not None and any(file_path in a for a in p.context.artifacts or [])
        ]

    def summary(self) -> PromiseSummary:
        promises = self.read_all()
        statuses = Counter(p.status for p in promises)
        by_agent = Counter(p.promiser.agent for p in promises)
        return PromiseSummary(
            total=len(promises),
            active=statuses[STATUS_ACTIVE],
            fulfilled=statuses[STATUS_FULFILLED],
            broken=statuses[STATUS_BROKEN],
            withdrawn=statuses[STATUS_WITHDRAWN],
            superseded=statuses[STATUS_SUPERSEDED],
            by_agent=dict(by_agent),
        )

    def validate_file(self) -> list[str]:
        """Per-line health check. Empty list means valid."""

        def check(data: dict[str, Any]) -> list[str]:
            kind = schema.PROMISE_STATUS if "event" in data else schema.PROMISE
            return [str(issue) for issue in schema.validate(data, kind).errors]

        return self.stream.check_lines(check)
