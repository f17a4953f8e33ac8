"""
Recognized record shapes and the validator that checks raw records against them.

Each record kind (entry, promise, promise status change, report) has one
RecordValidator configured from its shape. Validation walks the whole record
and reports every violation in one pass; it never stops at the first.

Issue paths are JSON-pointer style: "/reasoning/intent", "/artifacts/0/action".
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Literal, Mapping, Sequence

from .errors import SchemaValidationError
from .util import parse_timestamp

# -----------------------------------------------------------------------------
# Vocabulary
# -----------------------------------------------------------------------------

ENTRY_TYPES = frozenset({"handoff", "transition", "implementation", "bugfix", "review"})
ACTION_TYPES = frozenset({"create", "modify", "delete", "analyze", "plan", "debug", "refactor", "other"})
ARTIFACT_ACTIONS = frozenset({"created", "modified", "deleted", "read"})
FINDING_SEVERITIES = frozenset({"critical", "high", "medium", "low", "info"})

PROMISE_TYPES = frozenset({"will-do", "will-not-do", "will-maintain", "will-provide"})
PROMISE_SCOPES = frozenset({"session", "project", "permanent"})
PROMISE_STATUSES = frozenset({"active", "fulfilled", "broken", "withdrawn", "superseded"})
TERMINAL_STATUSES = PROMISE_STATUSES - {"active"}

REPORTER_ROLES = frozenset({"actor", "witness", "human"})
VERDICT_ROLES = frozenset({"witness", "human"})
VERDICT_STATUSES = frozenset({"fulfilled", "partial", "broken"})

STATUS_CHANGE_EVENT = "status-change"

SUMMARY_MAX_LENGTH = 200

# Record kinds
ENTRY = "entry"
PROMISE = "promise"
PROMISE_STATUS = "promise-status"
REPORT = "report"


# -----------------------------------------------------------------------------
# Shape description
# -----------------------------------------------------------------------------

FieldType = Literal["string", "number", "integer", "boolean", "object", "array"]


@dataclass(frozen=True)
class FieldSpec:
    """Recognized shape of one JSON value."""

    type: FieldType
    required: bool = True
    enum: frozenset[str] | None = None
    min_length: int | None = None
    max_length: int | None = None
    minimum: float | None = None
    maximum: float | None = None
    format: str | None = None  # "date-time"
    fields: Mapping[str, FieldSpec] | None = None  # objects; None means free-form
    items: FieldSpec | None = None  # arrays


def string(
    *,
    enum: Iterable[str] | None = None,
    min_length: int | None = None,
    max_length: int | None = None,
    format: str | None = None,
) -> FieldSpec:
    return FieldSpec(
        "string",
        enum=frozenset(enum) if enum is not None else None,
        min_length=min_length,
        max_length=max_length,
        format=format,
    )


def number(*, minimum: float | None = None, maximum: float | None = None) -> FieldSpec:
    return FieldSpec("number", minimum=minimum, maximum=maximum)


def integer(*, minimum: float | None = None) -> FieldSpec:
    return FieldSpec("integer", minimum=minimum)


def boolean() -> FieldSpec:
    return FieldSpec("boolean")


def obj(fields: Mapping[str, FieldSpec] | None = None) -> FieldSpec:
    return FieldSpec("object", fields=fields)


def array(items: FieldSpec | None = None) -> FieldSpec:
    return FieldSpec("array", items=items)


def optional(spec: FieldSpec) -> FieldSpec:
    return replace(spec, required=False)


def _strings() -> FieldSpec:
    return array(string())


# -----------------------------------------------------------------------------
# Validation results
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}

    def __str__(self) -> str:
        return f"{self.path or '/'} {self.message}"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)


Check = Callable[[Mapping[str, Any]], Iterable[ValidationIssue]]

_TYPE_NAMES = {
    "string": "a string",
    "number": "a number",
    "integer": "an integer",
    "boolean": "a boolean",
    "object": "an object",
    "array": "an array",
}


def _type_matches(value: Any, type_: FieldType) -> bool:
    if type_ == "string":
        return isinstance(value, str)
    if type_ == "boolean":
        return isinstance(value, bool)
    if type_ == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_ == "integer":
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if type_ == "object":
        return isinstance(value, Mapping)
    if type_ == "array":
        return isinstance(value, (list, tuple))
    return False


def _walk(value: Any, spec: FieldSpec, path: str, issues: list[ValidationIssue]) -> None:
    if not _type_matches(value, spec.type):
        issues.append(ValidationIssue(path, f"must be {_TYPE_NAMES[spec.type]}"))
        return

    if spec.type == "string":
        if spec.enum is not None and value not in spec.enum:
            issues.append(ValidationIssue(path, "must be one of: " + ", ".join(sorted(spec.enum))))
        if spec.min_length is not None and len(value) < spec.min_length:
            if spec.min_length == 1:
                issues.append(ValidationIssue(path, "must not be empty"))
            else:
                issues.append(ValidationIssue(path, f"must be at least {spec.min_length} characters"))
        if spec.max_length is not None and len(value) > spec.max_length:
            issues.append(ValidationIssue(path, f"must be at most {spec.max_length} characters"))
        if spec.format == "date-time":
            try:
                parse_timestamp(value)
            except ValueError:
                issues.append(ValidationIssue(path, "must be an ISO 8601 date-time"))

    elif spec.type in ("number", "integer"):
        if isinstance(value, float) and not math.isfinite(value):
            issues.append(ValidationIssue(path, "must be a finite number"))
            return
        if spec.minimum is not None and value < spec.minimum:
            issues.append(ValidationIssue(path, f"must be >= {spec.minimum}"))
        if spec.maximum is not None and value > spec.maximum:
            issues.append(ValidationIssue(path, f"must be <= {spec.maximum}"))

    elif spec.type == "object" and spec.fields is not None:
        for name, sub in spec.fields.items():
            child = f"{path}/{name}"
            if name not in value:
                if sub.required:
                    issues.append(ValidationIssue(child, "is required"))
                continue
            _walk(value[name], sub, child, issues)

    elif spec.type == "array" and spec.items is not None:
        for i, item in enumerate(value):
            _walk(item, spec.items, f"{path}/{i}", issues)

    else:
        _check_free_form(value, path, issues)


def _check_free_form(value: Any, path: str, issues: list[ValidationIssue]) -> None:
    # free-form values are only checked for being serializable as JSON
    if isinstance(value, float) and not math.isfinite(value):
        issues.append(ValidationIssue(path, "must be a finite number"))
    elif isinstance(value, Mapping):
        for name, item in value.items():
            _check_free_form(item, f"{path}/{name}", issues)
    elif isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _check_free_form(item, f"{path}/{i}", issues)


class RecordValidator:
    """Validator for one record kind.

    `shape` describes the structure; `checks` add rules that span several
    fields (they only run when the record is an object).
    """

    def __init__(self, kind: str, shape: FieldSpec, checks: Sequence[Check] = ()):
        self.kind = kind
        self.shape = shape
        self.checks = tuple(checks)

    def validate(self, record: Any) -> ValidationResult:
        issues: list[ValidationIssue] = []
        _walk(record, self.shape, "", issues)
        if isinstance(record, Mapping):
            for check in self.checks:
                issues.extend(check(record))
        return ValidationResult(valid=not issues, errors=issues)


# -----------------------------------------------------------------------------
# Entry shape
# -----------------------------------------------------------------------------

_SESSION_SUMMARY = obj({
    "completed": _strings(),
    "currentState": obj(),
    "deferred": _strings(),
    "blockers": _strings(),
    "importantContext": obj(),
    "handoffNotes": optional(string()),
})

_TRANSITION = obj({
    "fromAgent": string(min_length=1),
    "fromSessionId": string(),
    "fromEntryId": string(),
    "contextAcquired": obj({
        "entriesRead": integer(minimum=0),
        "philosophyDocsRead": _strings(),
        "filesIndexed": _strings(),
    }),
    "inheritedState": obj({
        "completed": _strings(),
        "deferred": _strings(),
        "blockers": _strings(),
    }),
    "readiness": obj({
        "confident": boolean(),
        "clarificationsNeeded": _strings(),
        "proposedNextSteps": _strings(),
    }),
})

_IMPLEMENTATION = obj({
    "feature": string(min_length=1),
    "designDecisions": _strings(),
    "testsAdded": _strings(),
    "docsUpdated": _strings(),
    "breakingChanges": _strings(),
})

_BUGFIX = obj({
    "symptom": string(min_length=1),
    "rootCause": string(),
    "fix": string(),
    "regressionRisk": string(),
    "verificationSteps": _strings(),
})

_REVIEW = obj({
    "scope": _strings(),
    "findings": array(obj({
        "severity": string(enum=FINDING_SEVERITIES),
        "location": string(),
        "issue": string(),
        "recommendation": string(),
    })),
    "overallAssessment": string(),
})

ENTRY_SHAPE = obj({
    "id": string(min_length=1),
    "timestamp": string(format="date-time"),
    "agent": obj({
        "name": string(min_length=1),
        "model": optional(string()),
        "version": optional(string()),
    }),
    "session": obj({
        "id": string(min_length=1),
        "entryIndex": integer(minimum=0),
        "parentEntryId": optional(string()),
    }),
    "entryType": optional(string(enum=ENTRY_TYPES)),
    "action": obj({
        "type": string(enum=ACTION_TYPES),
        "summary": string(min_length=1, max_length=SUMMARY_MAX_LENGTH),
        "description": optional(string()),
    }),
    "reasoning": obj({
        "intent": string(min_length=1),
        "considerations": optional(_strings()),
        "assumptions": optional(_strings()),
        "uncertainties": optional(_strings()),
        "confidence": optional(number(minimum=0, maximum=1)),
    }),
    "tools": array(obj({
        "name": string(min_length=1),
        "parameters": optional(obj()),
    })),
    "artifacts": array(obj({
        "path": string(min_length=1),
        "action": string(enum=ARTIFACT_ACTIONS),
        "linesChanged": optional(integer(minimum=0)),
        "summary": optional(string()),
    })),
    "userPrompt": optional(string()),
    "tags": optional(_strings()),
    "relatedEntries": optional(_strings()),
    "grounding": optional(obj({
        "philosophyRefs": optional(_strings()),
        "constraintsApplied": optional(_strings()),
        "alignmentNotes": optional(string()),
    })),
    "sessionSummary": optional(_SESSION_SUMMARY),
    "transition": optional(_TRANSITION),
    "implementation": optional(_IMPLEMENTATION),
    "bugfix": optional(_BUGFIX),
    "review": optional(_REVIEW),
})


# -----------------------------------------------------------------------------
# Promise shapes
# -----------------------------------------------------------------------------

PROMISE_SHAPE = obj({
    "id": string(min_length=1),
    "timestamp": string(format="date-time"),
    "promiser": obj({
        "agent": string(min_length=1),
        "session": optional(string()),
    }),
    "promisee": obj({
        "agent": string(min_length=1),
        "scope": optional(string(enum=PROMISE_SCOPES)),
    }),
    "promise": obj({
        "type": string(enum=PROMISE_TYPES),
        "summary": string(min_length=1, max_length=SUMMARY_MAX_LENGTH),
        "description": optional(string()),
        "conditions": optional(_strings()),
    }),
    "context": optional(obj({
        "relatedEntries": optional(_strings()),
        "artifacts": optional(_strings()),
        "constraintRefs": optional(_strings()),
        "userPrompt": optional(string()),
    })),
    "status": string(enum=PROMISE_STATUSES),
    "resolvedBy": optional(string()),
    "resolvedAt": optional(string(format="date-time")),
    "supersededBy": optional(string()),
    "tags": optional(_strings()),
})

STATUS_CHANGE_SHAPE = obj({
    "event": string(enum={STATUS_CHANGE_EVENT}),
    "id": string(min_length=1),
    "timestamp": string(format="date-time"),
    "promiseId": string(min_length=1),
    "status": string(enum=TERMINAL_STATUSES),
    "resolvedBy": optional(string()),
    "supersededBy": optional(string(min_length=1)),
    "actor": optional(string()),
})


def _superseded_needs_successor(record: Mapping[str, Any]) -> Iterable[ValidationIssue]:
    if record.get("status") == "superseded" and "supersededBy" not in record:
        yield ValidationIssue("/supersededBy", "is required when status is superseded")


# -----------------------------------------------------------------------------
# Report shape
# -----------------------------------------------------------------------------

REPORT_SHAPE = obj({
    "id": string(min_length=1),
    "timestamp": string(format="date-time"),
    "reporter": obj({
        "agent": string(min_length=1),
        "role": string(enum=REPORTER_ROLES),
        "session": optional(string()),
    }),
    "promiseId": string(min_length=1),
    "report": obj({
        "workCompleted": string(min_length=1),
        "remaining": optional(_strings()),
        "blockers": optional(_strings()),
        "confidenceInCompletion": number(minimum=0, maximum=1),
    }),
    "verdict": optional(obj({
        "status": string(enum=VERDICT_STATUSES),
        "reasoning": string(min_length=1),
    })),
    "relatedEntries": optional(_strings()),
    "tags": optional(_strings()),
})


def _verdict_not_self_graded(record: Mapping[str, Any]) -> Iterable[ValidationIssue]:
    reporter = record.get("reporter")
    if "verdict" in record and isinstance(reporter, Mapping):
        role = reporter.get("role")
        if role in REPORTER_ROLES and role not in VERDICT_ROLES:
            yield ValidationIssue("/verdict", "may only be written by a witness or human reporter")


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------

VALIDATORS: dict[str, RecordValidator] = {
    ENTRY: RecordValidator(ENTRY, ENTRY_SHAPE),
    PROMISE: RecordValidator(PROMISE, PROMISE_SHAPE),
    PROMISE_STATUS: RecordValidator(PROMISE_STATUS, STATUS_CHANGE_SHAPE, [_superseded_needs_successor]),
    REPORT: RecordValidator(REPORT, REPORT_SHAPE, [_verdict_not_self_graded]),
}


def get_validator(kind: str) -> RecordValidator:
    try:
        return VALIDATORS[kind]
    except KeyError:
        raise ValueError(f"Unknown record kind: {kind}") from None


def validate(record: Any, kind: str) -> ValidationResult:
    """Check a raw record against the recognized shape for `kind`."""
    return get_validator(kind).validate(record)


def ensure_valid(record: Any, kind: str) -> None:
    """Raise SchemaValidationError carrying every violation, if any."""
    result = validate(record, kind)
    if not result.valid:
        raise SchemaValidationError(kind, result.errors)
