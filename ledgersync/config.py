"""
Project configuration stored in .ledgersync/config.yaml.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml

from .errors import ConfigError, NotFoundError
from .paths import config_path

Severity = Literal["critical", "high", "medium", "low"]


@dataclass
class ProjectInfo:
    name: str
    description: str | None = None


@dataclass
class PhilosophyConfig:
    """Grounding docs: files every agent reads before starting work."""

    required: list[str] = field(default_factory=list)
    optional: list[str] = field(default_factory=list)  # glob patterns


@dataclass
class CodebaseConfig:
    path: str
    name: str


@dataclass
class LedgerSettings:
    max_entries_to_load: int = 20
    summarize_after: int = 50


@dataclass
class Constraint:
    id: str
    description: str
    applies_to: list[str] = field(default_factory=lambda: ["*"])
    severity: Severity = "medium"


@dataclass
class LedgerConfig:
    project: ProjectInfo
    version: str = "0.1"
    philosophy: PhilosophyConfig = field(default_factory=PhilosophyConfig)
    codebases: list[CodebaseConfig] = field(default_factory=list)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    constraints: list[Constraint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the YAML document layout."""
        project: dict[str, Any] = {"name": self.project.name}
        if self.project.description is not None:
            project["description"] = self.project.description
        return {
            "version": self.version,
            "project": project,
            "philosophy": {
                "required": list(self.philosophy.required),
                "optional": list(self.philosophy.optional),
            },
            "codebases": [{"path": c.path, "name": c.name} for c in self.codebases],
            "ledger": {
                "maxEntriesToLoad": self.ledger.max_entries_to_load,
                "summarizeAfter": self.ledger.summarize_after,
            },
            "constraints": [
                {
                    "id": c.id,
                    "description": c.description,
                    "appliesTo": list(c.applies_to),
                    "severity": c.severity,
                }
                for c in self.constraints
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerConfig:
        """Build from a parsed YAML document, filling defaults for missing keys."""
        project = data.get("project") or {}
        philosophy = data.get("philosophy") or {}
        ledger = data.get("ledger") or {}
        defaults = LedgerSettings()
        return cls(
            version=str(data.get("version", "0.1")),
            project=ProjectInfo(
                name=str(project.get("name", "My Project")),
                description=project.get("description"),
            ),
            philosophy=PhilosophyConfig(
                required=list(philosophy.get("required") or []),
                optional=list(philosophy.get("optional") or []),
            ),
            codebases=[
                CodebaseConfig(path=str(c["path"]), name=str(c["name"]))
                for c in data.get("codebases") or []
            ],
            ledger=LedgerSettings(
                max_entries_to_load=int(ledger.get("maxEntriesToLoad", defaults.max_entries_to_load)),
                summarize_after=int(ledger.get("summarizeAfter", defaults.summarize_after)),
            ),
            constraints=[
                Constraint(
                    id=str(c["id"]),
                    description=str(c.get("description", "")),
                    applies_to=list(c.get("appliesTo") or ["*"]),
                    severity=c.get("severity", "medium"),
                )
                for c in data.get("constraints") or []
            ],
        )


def default_config(project_name: str = "My Project") -> LedgerConfig:
    return LedgerConfig(
        project=ProjectInfo(name=project_name, description="Initialized by ledgersync"),
    )


def load_config(root: Path) -> LedgerConfig:
    path = config_path(root)
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed config.yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Malformed config.yaml: top level must be a mapping")
    try:
        return LedgerConfig.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Malformed config.yaml: {e}") from e


def write_config(root: Path, config: LedgerConfig) -> None:
    path = config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(config.to_dict(), sort_keys=False), encoding="utf-8")


# -----------------------------------------------------------------------------
# Grounding docs
# -----------------------------------------------------------------------------


def _normalize_doc_path(doc_path: str, cwd: Path) -> str:
    resolved = (cwd / doc_path).resolve()
    relative = os.path.relpath(resolved, cwd.resolve())
    return relative.replace(os.sep, "/")


def add_grounding_doc(root: Path, doc_path: str, cwd: Path) -> tuple[str, bool]:
    """Register a doc as required reading.

    Returns (normalized_path, added). `added` is False when the doc was
    already registered.
    """
    if not (cwd / doc_path).exists():
        raise NotFoundError("grounding doc", doc_path)

    normalized = _normalize_doc_path(doc_path, cwd)
    config = load_config(root)
    if normalized in config.philosophy.required:
        return normalized, False

    config.philosophy.required.append(normalized)
    write_config(root, config)
    return normalized, True


def remove_grounding_doc(root: Path, doc_path: str, cwd: Path) -> bool:
    """Unregister a doc, matching either the normalized or the raw path."""
    config = load_config(root)
    required = config.philosophy.required
    normalized = _normalize_doc_path(doc_path, cwd)

    if normalized in required:
        required.remove(normalized)
    elif doc_path in required:
        required.remove(doc_path)
    else:
        return False

    write_config(root, config)
    return True


def grounding_status(root: Path, cwd: Path) -> list[tuple[str, bool]]:
    """Registered docs paired with whether each file currently exists."""
    config = load_config(root)
    return [(doc, (cwd / doc).exists()) for doc in config.philosophy.required]
