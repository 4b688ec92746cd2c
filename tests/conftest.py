"""Shared pytest fixtures for markops tests."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from click.testing import CliRunner

from markops.core import DB_FILENAME, MARKOPS_DIR_NAME, MarkopsDB, default_config, write_config


@pytest.fixture
def db(tmp_path: Path) -> Generator[MarkopsDB, None, None]:
    """Fresh MarkopsDB for each test."""
    d = MarkopsDB(tmp_path / "markops.db", prefix="test")
    d.initialize()
    yield d
    d.close()


@dataclass
class PopulatedDB:
    db: MarkopsDB
    ids: dict[str, str] = field(default_factory=dict)


@pytest.fixture
def populated_db(db: MarkopsDB) -> PopulatedDB:
    """MarkopsDB pre-populated with a representative board.

    Creates:
    - marketing inbox: A, B, C (in that order); review: D
    - product inbox: P
    - tag "Spring Launch" on A and C; archived tag "Old"
    - doc "briefs/spring.md" linked to A
    - comment on B
    """
    a = db.create_item("cards", "inbox", {"title": "Launch email", "assignee": "maya"}, partition="marketing")
    b = db.create_item("cards", "inbox", {"title": "Tweet thread", "assignee": "leo"}, partition="marketing")
    c = db.create_item("cards", "inbox", {"title": "Landing page copy", "description": "Hero + FAQ"}, partition="marketing")
    d = db.create_item("cards", "review", {"title": "Keyword research", "notes": "long tail"}, partition="marketing")
    p = db.create_item("cards", "inbox", {"title": "Launch checklist"}, partition="product")
    spring = db.create_tag("Spring Launch")
    old = db.create_tag("Old")
    db.archive_tag(old.id)
    db.tag_item(a.id, spring.id)
    db.tag_item(c.id, spring.id)
    doc = db.upsert_doc("briefs/spring.md", "Spring brief", "Launch plan for the spring campaign", item_id=a.id)
    db.add_comment(b.id, "Needs a hook", author="tester")
    return PopulatedDB(
        db=db,
        ids={"a": a.id, "b": b.id, "c": c.id, "d": d.id, "p": p.id, "spring": spring.id, "old": old.id, "doc": doc.id},
    )


@pytest.fixture
def markops_project(tmp_path: Path) -> Path:
    """A tmp directory set up as a markops project (.markops/ with config + db).

    Returns the project root (parent of .markops/).
    """
    markops_dir = tmp_path / MARKOPS_DIR_NAME
    markops_dir.mkdir()
    config = default_config()
    config["prefix"] = "proj"
    write_config(markops_dir, config)

    d = MarkopsDB(markops_dir / DB_FILENAME, prefix="proj")
    d.initialize()
    d.close()
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
