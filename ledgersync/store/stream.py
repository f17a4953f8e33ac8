"""
Newline-delimited JSON stream file.

One JSON object per line, compact separators, every record terminated by
"\n". The only write operation is append; existing bytes are never
rewritten.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, TypeVar

from ..errors import JsonParseError

T = TypeVar("T")


def encode_record(record: Mapping[str, Any]) -> str:
    """Serialize a record to its single-line form (without the newline).

    NaN and infinities are not JSON; encoding them raises ValueError.
    """
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def decode_line(raw: bytes) -> dict[str, Any] | None:
    """Decode one physical line. Returns None for a blank line.

    Raises ValueError with a short description when the line is not a JSON
    object.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ValueError("invalid UTF-8") from e
    text = text.strip()
    if not text:
        return None
    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise ValueError(e.msg) from e
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


class JsonlStream:
    """A single append-only stream file."""

    def __init__(self, path: Path):
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: Mapping[str, Any]) -> None:
        """Append one record as one line, in a single write call."""
        self._ensure_dir()
        line = encode_record(record) + "\n"
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line)

    def iter_raw(self) -> Iterator[tuple[int, dict[str, Any]]]:
        """Yield (line_number, record) pairs; blank lines are skipped.

        Line numbers are 1-based physical line numbers in the file.
        """
        if not self.path.exists():
            return
        with self.path.open("rb") as f:
            for line_number, raw in enumerate(f, start=1):
                try:
                    data = decode_line(raw)
                except ValueError as e:
                    raise JsonParseError(self.path, line_number, str(e)) from e
                if data is not None:
                    yield line_number, data

    def read(self, parse: Callable[[dict[str, Any]], T]) -> list[T]:
        """Read every record through `parse`.

        Any unparseable line aborts the whole read; no partial results are
        returned.
        """
        records: list[T] = []
        for line_number, data in self.iter_raw():
            try:
                records.append(parse(data))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise JsonParseError(self.path, line_number, f"unrecognized record ({e!r})") from e
        return records

    def read_raw(self) -> list[dict[str, Any]]:
        return [data for _, data in self.iter_raw()]

    def count(self) -> int:
        """Count non-blank lines without parsing them."""
        if not self.path.exists():
            return 0
        with self.path.open("rb") as f:
            return sum(1 for line in f if line.strip())

    def check_lines(self, check: Callable[[dict[str, Any]], list[str]]) -> list[str]:
        """Health check: run `check` on every line and collect problems per line.

        Unlike read(), this does not stop at the first bad line.
        """
        if not self.path.exists():
            return []
        errors: list[str] = []
        with self.path.open("rb") as f:
            for line_number, raw in enumerate(f, start=1):
                try:
                    data = decode_line(raw)
                except ValueError as e:
                    errors.append(f"Line {line_number}: Invalid JSON - {e}")
                    continue
                if data is None:
                    continue
                problems = check(data)
                if problems:
                    errors.append(f"Line {line_number}: " + ", ".join(problems))
        return errors
