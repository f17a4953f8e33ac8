"""
Append-only action ledger (.ledgersync/ledger.jsonl).

Each entry records what an agent did and why. Entries are written once and
never modified or removed; their order in the file is the only ordering
guarantee.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .. import schema
from ..errors import SchemaValidationError
from ..paths import ledger_path
from ..util import drop_none, new_id, utc_now
from .lookup import LookupResult, lookup_by_id
from .stream import JsonlStream

logger = logging.getLogger(__name__)

KEY_DECISION_CONFIDENCE = 0.7
MAX_RECENT_FILES = 20
MAX_KEY_DECISIONS = 10
NEVER = "Never"


# -----------------------------------------------------------------------------
# Entry records
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentInfo:
    name: str
    model: str | None = None
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({"name": self.name, "model": self.model, "version": self.version})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AgentInfo:
        return cls(name=data["name"], model=data.get("model"), version=data.get("version"))


@dataclass(frozen=True)
class SessionInfo:
    id: str
    entry_index: int = 0
    parent_entry_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({
            "id": self.id,
            "entryIndex": self.entry_index,
            "parentEntryId": self.parent_entry_id,
        })

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionInfo:
        return cls(
            id=data["id"],
            entry_index=data["entryIndex"],
            parent_entry_id=data.get("parentEntryId"),
        )


@dataclass(frozen=True)
class ActionInfo:
    type: str  # One of schema.ACTION_TYPES
    summary: str  # Max 200 chars
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({"type": self.type, "summary": self.summary, "description": self.description})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ActionInfo:
        return cls(type=data["type"], summary=data["summary"], description=data.get("description"))


@dataclass(frozen=True)
class ReasoningInfo:
    intent: str
    considerations: list[str] | None = None
    assumptions: list[str] | None = None
    uncertainties: list[str] | None = None
    confidence: float | None = None  # 0.0 - 1.0

    def to_dict(self) -> dict[str, Any]:
        return drop_none({
            "intent": self.intent,
            "considerations": self.considerations,
            "assumptions": self.assumptions,
            "uncertainties": self.uncertainties,
            "confidence": self.confidence,
        })

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReasoningInfo:
        return cls(
            intent=data["intent"],
            considerations=data.get("considerations"),
            assumptions=data.get("assumptions"),
            uncertainties=data.get("uncertainties"),
            confidence=data.get("confidence"),
        )


@dataclass(frozen=True)
class ToolCall:
    name: str
    parameters: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({"name": self.name, "parameters": self.parameters})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ToolCall:
        return cls(name=data["name"], parameters=data.get("parameters"))


@dataclass(frozen=True)
class ArtifactChange:
    path: str  # Relative from project root
    action: str  # created | modified | deleted | read
    lines_changed: int | None = None
    summary: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return drop_none({
            "path": self.path,
            "action": self.action,
            "linesChanged": self.lines_changed,
            "summary": self.summary,
        })

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ArtifactChange:
        return cls(
            path=data["path"],
            action=data["action"],
            lines_changed=data.get("linesChanged"),
            summary=data.get("summary"),
        )


@dataclass(frozen=True)
class LedgerEntry:
    """
    One immutable action record.

    The typed blocks (session_summary, transition, implementation, bugfix,
    review) accompany the matching entry_type and are kept as plain JSON
    objects; the validator owns their shape.
    """

    id: str
    timestamp: str
    agent: AgentInfo
    session: SessionInfo
    action: ActionInfo
    reasoning: ReasoningInfo
    tools: list[ToolCall] = field(default_factory=list)
    artifacts: list[ArtifactChange] = field(default_factory=list)
    entry_type: str | None = None
    user_prompt: str | None = None
    tags: list[str] | None = None
    related_entries: list[str] | None = None
    grounding: dict[str, Any] | None = None
    session_summary: dict[str, Any] | None = None
    transition: dict[str, Any] | None = None
    implementation: dict[str, Any] | None = None
    bugfix: dict[str, Any] | None = None
    review: dict[str, Any] | None = None

    def touches(self, file_path: str) -> bool:
        """True if any artifact path contains `file_path` (substring match)."""
        return any(file_path in a.path for a in self.artifacts)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape (camelCase keys, optional keys omitted)."""
        result: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "agent": self.agent.to_dict(),
            "session": self.session.to_dict(),
        }
        if self.entry_type is not None:
            result["entryType"] = self.entry_type
        result["action"] = self.action.to_dict()
        result["reasoning"] = self.reasoning.to_dict()
        result["tools"] = [t.to_dict() for t in self.tools]
        result["artifacts"] = [a.to_dict() for a in self.artifacts]
        result.update(drop_none({
            "userPrompt": self.user_prompt,
            "tags": self.tags,
            "relatedEntries": self.related_entries,
            "grounding": self.grounding,
            "sessionSummary": self.session_summary,
            "transition": self.transition,
            "implementation": self.implementation,
            "bugfix": self.bugfix,
            "review": self.review,
        }))
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LedgerEntry:
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            agent=AgentInfo.from_dict(data["agent"]),
            session=SessionInfo.from_dict(data["session"]),
            action=ActionInfo.from_dict(data["action"]),
            reasoning=ReasoningInfo.from_dict(data["reasoning"]),
            tools=[ToolCall.from_dict(t) for t in data.get("tools", [])],
            artifacts=[ArtifactChange.from_dict(a) for a in data.get("artifacts", [])],
            entry_type=data.get("entryType"),
            user_prompt=data.get("userPrompt"),
            tags=data.get("tags"),
            related_entries=data.get("relatedEntries"),
            grounding=data.get("grounding"),
            session_summary=data.get("sessionSummary"),
            transition=data.get("transition"),
            implementation=data.get("implementation"),
            bugfix=data.get("bugfix"),
            review=data.get("review"),
        )


def create_entry(
    agent: AgentInfo,
    action: ActionInfo,
    reasoning: ReasoningInfo,
    *,
    session: SessionInfo | None = None,
    tools: list[ToolCall] | None = None,
    artifacts: list[ArtifactChange] | None = None,
    entry_type: str | None = None,
    user_prompt: str | None = None,
    tags: list[str] | None = None,
    related_entries: list[str] | None = None,
    grounding: dict[str, Any] | None = None,
    **typed_blocks: dict[str, Any],
) -> LedgerEntry:
    """
    Factory for new entries.

    Assigns a fresh id and timestamp. Without a session, a new session is
    started at index 0. Extra keyword arguments are the typed blocks
    (session_summary, transition, implementation, bugfix, review).
    """
    return LedgerEntry(
        id=new_id(),
        timestamp=utc_now(),
        agent=agent,
        session=session or SessionInfo(id=new_id(), entry_index=0),
        action=action,
        reasoning=reasoning,
        tools=list(tools or []),
        artifacts=list(artifacts or []),
        entry_type=entry_type,
        user_prompt=user_prompt,
        tags=tags,
        related_entries=related_entries,
        grounding=grounding,
        **typed_blocks,
    )


# -----------------------------------------------------------------------------
# Derived summary
# -----------------------------------------------------------------------------


@dataclass
class LedgerSummary:
    """
    Hand-off context derived from the most recent entries.

    Computed on demand, never stored.
    """

    total_entries: int
    last_updated: str
    recent_agents: list[str]
    recent_files: list[str]
    key_decisions: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalEntries": self.total_entries,
            "lastUpdated": self.last_updated,
            "recentAgents": self.recent_agents,
            "recentFiles": self.recent_files,
            "keyDecisions": self.key_decisions,
        }


def _unique(values: list[str]) -> list[str]:
    # dict preserves first-seen order
    return list(dict.fromkeys(values))


def summarize_entries(window: list[LedgerEntry], total_entries: int) -> LedgerSummary:
    if not window:
        return LedgerSummary(
            total_entries=total_entries,
            last_updated=NEVER,
            recent_agents=[],
            recent_files=[],
            key_decisions=[],
        )

    recent_agents = _unique([e.agent.name for e in window])
    recent_files = _unique([a.path for e in window for a in e.artifacts])
    key_decisions = [
        f"[{e.agent.name}] {e.action.summary}"
        for e in window
        if e.reasoning.confidence is None or e.reasoning.confidence >= KEY_DECISION_CONFIDENCE
    ]

    return LedgerSummary(
        total_entries=total_entries,
        last_updated=window[-1].timestamp,
        recent_agents=recent_agents,
        recent_files=recent_files[:MAX_RECENT_FILES],
        key_decisions=key_decisions[-MAX_KEY_DECISIONS:],
    )


def format_summary_for_agent(summary: LedgerSummary) -> str:
    """Format a summary as markdown for a new agent to read."""
    lines = [
        "## Context from Previous Agents",
        "",
        f"**Total entries:** {summary.total_entries}",
        f"**Last updated:** {summary.last_updated}",
        "",
        "### Recent Agents",
        *[f"- {a}" for a in summary.recent_agents],
        "",
        "### Recent Files Touched",
        *[f"- {f}" for f in summary.recent_files],
        "",
        "### Key Decisions",
        *[f"- {d}" for d in summary.key_decisions],
    ]
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Store
# -----------------------------------------------------------------------------


class EntryLedger:
    """
    Append-only store for action entries.

    INVARIANT: This class NEVER modifies existing ledger lines.
    The only write operation is append().
    """

    def __init__(self, root: Path):
        self.root = root
        self.stream = JsonlStream(ledger_path(root))

    @property
    def path(self) -> Path:
        return self.stream.path

    def append(self, entry: LedgerEntry | Mapping[str, Any]) -> LedgerEntry:
        """
        Validate and append an entry.

        Accepts a LedgerEntry or a raw JSON-shaped mapping. On any schema
        violation, raises SchemaValidationError and leaves the file untouched.
        """
        record = entry.to_dict() if isinstance(entry, LedgerEntry) else dict(entry)
        result = schema.validate(record, schema.ENTRY)
        if not result.valid:
            raise SchemaValidationError(schema.ENTRY, result.errors)

        self.stream.append(record)
        logger.debug(f"Appended entry {record['id']} to {self.path}")
        return entry if isinstance(entry, LedgerEntry) else LedgerEntry.from_dict(record)

    def read_all(self) -> list[LedgerEntry]:
        """All entries in append order. A malformed line raises JsonParseError."""
        return self.stream.read(LedgerEntry.from_dict)

    def read_last_n(self, n: int) -> list[LedgerEntry]:
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def count(self) -> int:
        return self.stream.count()

    def lookup(self, reference: str) -> LookupResult[LedgerEntry]:
        return lookup_by_id(self.read_all(), reference, kind="entry", key=lambda e: e.id)

    def get_entry_by_id(self, reference: str) -> LedgerEntry | None:
        return self.lookup(reference).get()

    def filter_by_agent(self, agent_name: str) -> list[LedgerEntry]:
        return [e for e in self.read_all() if e.agent.name == agent_name]

    def filter_by_artifact_path(self, file_path: str) -> list[LedgerEntry]:
        """Entries whose artifacts include `file_path` (substring match)."""
        return [e for e in self.read_all() if e.touches(file_path)]

    def next_entry_index(self, session_id: str) -> int:
        """Next monotonic entry index for a session."""
        indices = [e.session.entry_index for e in self.read_all() if e.session.id == session_id]
        return max(indices) + 1 if indices else 0

    def generate_summary(self, window_size: int = 20) -> LedgerSummary:
        """Summary over the last `window_size` entries; zero or less means all of them."""
        entries = self.read_all()
        window = entries[-window_size:] if window_size > 0 else entries
        return summarize_entries(window, len(entries))

    def validate_file(self) -> list[str]:
        """Per-line health check of the whole file. Empty list means valid."""

        def check(data: dict[str, Any]) -> list[str]:
            return [str(issue) for issue in schema.validate(data, schema.ENTRY).errors]

        return self.stream.check_lines(check)
