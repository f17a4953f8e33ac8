"""
Typed failures raised by the record stores.

Callers (the CLI, or anything embedding the stores) translate these into
messages and exit codes. The stores only promise to expose the kind of
failure and enough detail to act on it.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .schema import ValidationIssue


class LedgerSyncError(Exception):
    """Base class for every failure surfaced by ledgersync."""


class SchemaValidationError(LedgerSyncError):
    """A record did not match the recognized shape for its kind.

    Carries every violation found, not just the first one.
    """

    def __init__(self, kind: str, issues: Sequence[ValidationIssue]):
        self.kind = kind
        self.issues = list(issues)
        details = "; ".join(f"{i.path or '/'}: {i.message}" for i in self.issues)
        super().__init__(f"Invalid {kind}: {details}")


class JsonParseError(LedgerSyncError):
    """A stream line could not be parsed into a record."""

    def __init__(self, path: Path, line_number: int, detail: str):
        self.path = path
        self.line_number = line_number
        self.detail = detail
        super().__init__(f"Invalid JSON on line {line_number} of {path.name}: {detail}")


class NotFoundError(LedgerSyncError):
    """An id (or id prefix) resolved to nothing."""

    def __init__(self, kind: str, reference: str):
        self.kind = kind
        self.reference = reference
        super().__init__(f"{kind.capitalize()} not found: {reference}")


class AmbiguousReferenceError(LedgerSyncError):
    """An id prefix matched more than one record."""

    def __init__(self, kind: str, reference: str, candidates: Sequence[str]):
        self.kind = kind
        self.reference = reference
        self.candidates = list(candidates)
        super().__init__(
            f"Ambiguous {kind} reference '{reference}' matches {len(self.candidates)} records: "
            + ", ".join(self.candidates)
        )


class ReferentialError(LedgerSyncError):
    """A record points at another record that does not exist."""

    def __init__(self, field: str, reference: str, message: str | None = None):
        self.field = field
        self.reference = reference
        super().__init__(message or f"{field} references unknown record: {reference}")


class InvalidTransitionError(LedgerSyncError):
    """A status change was requested on a promise that is no longer active."""

    def __init__(self, promise_id: str, current: str, requested: str):
        self.promise_id = promise_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Promise {promise_id} is already {current}; cannot move it to {requested}"
        )


class ConfigError(LedgerSyncError):
    """config.yaml is missing or malformed."""
