"""
Id lookup by full id or unique prefix.

Lookups return a tagged outcome instead of picking the first match:
found, not_found, or ambiguous (with every candidate id).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, Literal, Sequence, TypeVar

from ..errors import AmbiguousReferenceError, NotFoundError

T = TypeVar("T")

LookupStatus = Literal["found", "not_found", "ambiguous"]


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    kind: str  # record kind, for error messages
    reference: str
    status: LookupStatus
    record: T | None = None
    candidates: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status == "found"

    def get(self) -> T | None:
        """Record or None; an ambiguous reference raises AmbiguousReferenceError."""
        if self.status == "ambiguous":
            raise AmbiguousReferenceError(self.kind, self.reference, self.candidates)
        return self.record

    def require(self) -> T:
        """Record; not found raises NotFoundError, ambiguous raises AmbiguousReferenceError."""
        record = self.get()
        if record is None:
            raise NotFoundError(self.kind, self.reference)
        return record


def lookup_by_id(
    records: Sequence[T],
    reference: str,
    *,
    kind: str,
    key: Callable[[T], str],
) -> LookupResult[T]:
    """Resolve `reference` against record ids.

    An exact id match always wins, even when it is also a prefix of other ids.
    """
    if not reference:
        return LookupResult(kind, reference, "not_found")

    for record in records:
        if key(record) == reference:
            return LookupResult(kind, reference, "found", record=record)

    matches = [r for r in records if key(r).startswith(reference)]
    if not matches:
        return LookupResult(kind, reference, "not_found")
    if len(matches) > 1:
        return LookupResult(kind, reference, "ambiguous", candidates=[key(r) for r in matches])
    return LookupResult(kind, reference, "found", record=matches[0])
