"""
Small helpers shared by the record stores.

Ids are UUID v4 strings; timestamps are ISO 8601 UTC strings with
millisecond precision and a trailing "Z".
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any


def new_id() -> str:
    """Generate a fresh record id."""
    return str(uuid.uuid4())


def utc_now() -> str:
    """Current time as an ISO 8601 UTC timestamp."""
    return format_timestamp(datetime.now(timezone.utc))


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp (accepts a trailing "Z").

    Raises ValueError for anything unparseable.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def drop_none(data: dict[str, Any]) -> dict[str, Any]:
    """Remove keys whose value is None (optional fields are omitted on the wire)."""
    return {k: v for k, v in data.items() if v is not None}
