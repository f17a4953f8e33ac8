from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from ledgersync.config import (
    add_grounding_doc,
    default_config,
    grounding_status,
    load_config,
    remove_grounding_doc,
    write_config,
)
from ledgersync.errors import ConfigError, NotFoundError
from ledgersync.paths import config_path, find_ledgersync_root, initialize, ledgersync_dir


def test_initialize_creates_empty_streams(root: Path) -> None:
    target = ledgersync_dir(root)
    for name in ("ledger.jsonl", "promises.jsonl", "reports.jsonl"):
        assert (target / name).read_text(encoding="utf-8") == ""
    assert load_config(root).project.name == "test-project"


def test_initialize_is_not_destructive(root: Path) -> None:
    ledger = ledgersync_dir(root) / "ledger.jsonl"
    ledger.write_text('{"kept": true}\n', encoding="utf-8")

    assert initialize(root) is False
    assert ledger.read_text(encoding="utf-8") == '{"kept": true}\n'


def test_find_root_walks_up(root: Path) -> None:
    nested = root / "src" / "deep"
    nested.mkdir(parents=True)

    assert find_ledgersync_root(nested) == root.resolve()
    assert find_ledgersync_root(root.parent) is None


def test_config_layout(root: Path) -> None:
    data = yaml.safe_load(config_path(root).read_text(encoding="utf-8"))

    assert list(data) == ["version", "project", "philosophy", "codebases", "ledger", "constraints"]
    assert data["ledger"] == {"maxEntriesToLoad": 20, "summarizeAfter": 50}
    assert data["philosophy"] == {"required": [], "optional": []}


def test_missing_keys_get_defaults(root: Path) -> None:
    config_path(root).write_text("project:\n  name: tiny\n", encoding="utf-8")

    config = load_config(root)

    assert config.project.name == "tiny"
    assert config.ledger.max_entries_to_load == 20
    assert config.constraints == []


def test_config_roundtrip(root: Path) -> None:
    config = default_config("roundtrip")
    config.ledger.max_entries_to_load = 5
    config.philosophy.optional.append("docs/*.md")
    write_config(root, config)

    assert load_config(root) == config


def test_malformed_config(root: Path) -> None:
    config_path(root).write_text("project: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(root)

    config_path(root).write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(root)


def test_missing_config(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_grounding_docs(root: Path) -> None:
    docs = root / "docs"
    docs.mkdir()
    (docs / "PHILOSOPHY.md").write_text("# Why\n", encoding="utf-8")

    assert add_grounding_doc(root, "./docs/PHILOSOPHY.md", root) == ("docs/PHILOSOPHY.md", True)
    assert add_grounding_doc(root, "docs/PHILOSOPHY.md", root) == ("docs/PHILOSOPHY.md", False)
    assert load_config(root).philosophy.required == ["docs/PHILOSOPHY.md"]

    (docs / "PHILOSOPHY.md").unlink()
    assert grounding_status(root, root) == [("docs/PHILOSOPHY.md", False)]

    assert remove_grounding_doc(root, "docs/PHILOSOPHY.md", root) is True
    assert remove_grounding_doc(root, "docs/PHILOSOPHY.md", root) is False
    assert grounding_status(root, root) == []


def test_grounding_doc_must_exist(root: Path) -> None:
    with pytest.raises(NotFoundError):
        add_grounding_doc(root, "nope.md", root)
    assert load_config(root).philosophy.required == []
