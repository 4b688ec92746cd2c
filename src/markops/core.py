"""Core database operations for the markops workspace.

Single source of truth for all SQLite operations. The CLI, the dashboard and
the reactive store all import from this module. Direct SQLite with WAL
mode.

Covers lane-ordered items (kanban cards, pipeline cards, calendar posts,
sticky notes), the content calendar, pipeline runs, campaign tags and their
associations, docs, the tool registry, comments, and global search.

Convention-based discovery: each workspace has a `.markops/` directory
containing `markops.db` (SQLite) and `config.json` (ID prefix, defaults,
parsing-bridge settings).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import sqlite3
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from markops.db_calendar import CalendarMixin
from markops.db_items import ItemsMixin
from markops.db_meta import MetaMixin
from markops.db_pipelines import PipelinesMixin
from markops.db_search import SearchMixin
from markops.db_tags import TagsMixin
from markops.errors import TransportError
from markops.types.core import (
    DocDict,
    EpochMillis,
    ItemDict,
    PipelineDict,
    ProjectConfig,
    StageDict,
    TagDict,
    ToolDict,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

MARKOPS_DIR_NAME = ".markops"
DB_FILENAME = "markops.db"
CONFIG_FILENAME = "config.json"
SESSION_FILENAME = "session.json"

DEFAULT_PARSER_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_PARSER_MODEL = "anthropic/claude-sonnet-4-5"


def find_markops_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .markops/ directory.

    Returns the .markops/ directory path (not the workspace root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / MARKOPS_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {MARKOPS_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def default_config() -> ProjectConfig:
    return ProjectConfig(
        prefix="mk",
        version=1,
        default_board="marketing",
        parser={"endpoint": DEFAULT_PARSER_ENDPOINT, "model": DEFAULT_PARSER_MODEL, "max_tokens": 2000, "timeout": 60.0},
    )


def read_config(markops_dir: Path) -> ProjectConfig:
    """Read .markops/config.json. Returns defaults if missing or corrupt."""
    defaults = default_config()
    config_path = markops_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        loaded = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(loaded, dict):
        logger.warning("Ignoring %s: expected a JSON object", config_path)
        return defaults
    merged: dict[str, Any] = {**defaults, **loaded}
    merged["parser"] = {**defaults.get("parser", {}), **(loaded.get("parser") or {})}
    result: ProjectConfig = merged  # type: ignore[assignment]
    return result


def write_config(markops_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .markops/config.json."""
    config_path = markops_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


def write_atomic(path: Path, content: str) -> None:
    """Replace *path* with *content* without ever leaving a half-written file."""
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS items (
    id          TEXT PRIMARY KEY,
    collection  TEXT NOT NULL,
    partition   TEXT NOT NULL DEFAULT '',
    lane        TEXT NOT NULL,
    order_key   REAL NOT NULL,
    payload     TEXT NOT NULL DEFAULT '{}',
    created_at  INTEGER NOT NULL,
    updated_at  INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_items_lane ON items(collection, partition, lane, order_key);
CREATE INDEX IF NOT EXISTS idx_items_partition ON items(collection, partition);

CREATE TABLE IF NOT EXISTS tags (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    color       TEXT NOT NULL,
    archived    INTEGER NOT NULL DEFAULT 0,
    created_at  INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tags_created ON tags(created_at);

-- item_id is intentionally not a foreign key: any collection's ids can be tagged.
CREATE TABLE IF NOT EXISTS tag_links (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id     TEXT NOT NULL,
    tag_id      TEXT NOT NULL REFERENCES tags(id),
    created_at  INTEGER NOT NULL,
    UNIQUE(item_id, tag_id)
);

CREATE INDEX IF NOT EXISTS idx_tag_links_tag ON tag_links(tag_id);

CREATE TABLE IF NOT EXISTS docs (
    id          TEXT PRIMARY KEY,
    path        TEXT NOT NULL UNIQUE,
    title       TEXT NOT NULL,
    content     TEXT NOT NULL DEFAULT '',
    agent       TEXT NOT NULL DEFAULT '',
    board       TEXT NOT NULL DEFAULT 'marketing',
    item_id     TEXT,
    updated_at  INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_docs_board ON docs(board, updated_at);
CREATE INDEX IF NOT EXISTS idx_docs_item ON docs(item_id);

CREATE TABLE IF NOT EXISTS tools (
    id            TEXT PRIMARY KEY,
    name          TEXT NOT NULL,
    category      TEXT NOT NULL DEFAULT 'other',
    status        TEXT NOT NULL DEFAULT 'active',
    url           TEXT NOT NULL DEFAULT '',
    cost          TEXT NOT NULL DEFAULT '',
    billing_cycle TEXT,
    access_notes  TEXT NOT NULL DEFAULT '',
    notes         TEXT NOT NULL DEFAULT '',
    added_at      INTEGER NOT NULL,
    updated_at    INTEGER NOT NULL,
    CHECK (category IN ('analytics', 'marketing', 'seo', 'email', 'social', 'dev', 'design', 'ai', 'other')),
    CHECK (status IN ('active', 'trial', 'needs-setup', 'cancelled'))
);

CREATE INDEX IF NOT EXISTS idx_tools_status ON tools(status);

CREATE TABLE IF NOT EXISTS comments (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id     TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
    author      TEXT NOT NULL DEFAULT '',
    role        TEXT NOT NULL DEFAULT 'human',
    content     TEXT NOT NULL,
    created_at  INTEGER NOT NULL,
    CHECK (role IN ('human', 'agent'))
);

CREATE INDEX IF NOT EXISTS idx_comments_item ON comments(item_id, created_at);

CREATE TABLE IF NOT EXISTS pipelines (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    status      TEXT NOT NULL DEFAULT 'running',
    input_url   TEXT NOT NULL DEFAULT '',
    stages      TEXT NOT NULL DEFAULT '[]',
    created_at  INTEGER NOT NULL,
    updated_at  INTEGER NOT NULL,
    CHECK (status IN ('running', 'complete', 'failed'))
);

CREATE INDEX IF NOT EXISTS idx_pipelines_created ON pipelines(created_at);
"""

CURRENT_SCHEMA_VERSION = 2


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Item:
    id: str
    collection: str
    lane: str
    order_key: float
    partition: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: int = 0
    updated_at: int = 0
    # Insertion sequence (SQLite rowid); secondary sort key within a lane.
    seq: int = 0

    @property
    def title(self) -> str:
        return str(self.payload.get("title", ""))

    def to_dict(self) -> ItemDict:
        return ItemDict(
            id=self.id,
            collection=self.collection,
            partition=self.partition,
            lane=self.lane,
            order_key=self.order_key,
            payload=self.payload,
            created_at=EpochMillis(self.created_at),
            updated_at=EpochMillis(self.updated_at),
        )


@dataclass
class Tag:
    id: str
    name: str
    color: str
    archived: bool = False
    created_at: int = 0

    def to_dict(self) -> TagDict:
        return TagDict(
            id=self.id,
            name=self.name,
            color=self.color,
            archived=self.archived,
            created_at=EpochMillis(self.created_at),
        )


@dataclass
class Doc:
    id: str
    path: str
    title: str
    content: str = ""
    agent: str = ""
    board: str = "marketing"
    item_id: str | None = None
    updated_at: int = 0

    def to_dict(self) -> DocDict:
        return DocDict(
            id=self.id,
            path=self.path,
            title=self.title,
            content=self.content,
            agent=self.agent,
            board=self.board,
            item_id=self.item_id,
            updated_at=EpochMillis(self.updated_at),
        )


@dataclass
class Tool:
    id: str
    name: str
    category: str = "other"
    status: str = "active"
    url: str = ""
    cost: str = ""
    billing_cycle: str | None = None
    access_notes: str = ""
    notes: str = ""
    added_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> ToolDict:
        return ToolDict(
            id=self.id,
            name=self.name,
            category=self.category,
            status=self.status,
            url=self.url,
            cost=self.cost,
            billing_cycle=self.billing_cycle,
            access_notes=self.access_notes,
            notes=self.notes,
            added_at=EpochMillis(self.added_at),
            updated_at=EpochMillis(self.updated_at),
        )


@dataclass
class Pipeline:
    id: str
    name: str
    status: str = "running"
    input_url: str = ""
    stages: list[StageDict] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0

    def stage(self, number: int) -> StageDict | None:
        for step in self.stages:
            if step.get("stage") == number:
                return step
        return None

    def to_dict(self) -> PipelineDict:
        return PipelineDict(
            id=self.id,
            name=self.name,
            status=self.status,
            input_url=self.input_url,
            stages=[step.copy() for step in self.stages],
            created_at=EpochMillis(self.created_at),
            updated_at=EpochMillis(self.updated_at),
        )


# ---------------------------------------------------------------------------
# SQL functions
# ---------------------------------------------------------------------------


def _casefold(value: object) -> object:
    """SQL `casefold()`: Unicode-aware where SQLite's `lower()` only folds ASCII."""
    return value.casefold() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Store error translation
# ---------------------------------------------------------------------------

_UNAVAILABLE_MARKERS = ("database is locked", "unable to open", "disk i/o", "readonly database", "database is busy")


def _is_unavailable(exc: sqlite3.Error) -> bool:
    if isinstance(exc, sqlite3.ProgrammingError):
        return "closed" in str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError):
        text = str(exc).lower()
        return any(marker in text for marker in _UNAVAILABLE_MARKERS)
    return False


# ---------------------------------------------------------------------------
# MarkopsDB
# ---------------------------------------------------------------------------


class MarkopsDB(ItemsMixin, CalendarMixin, PipelinesMixin, TagsMixin, MetaMixin, SearchMixin):
    """Direct SQLite operations. No daemon, no sync. Importable by CLI and dashboard."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        prefix: str = "mk",
        check_same_thread: bool = True,
    ) -> None:
        self.db_path = Path(db_path)
        self.prefix = prefix
        self._conn: sqlite3.Connection | None = None
        self._check_same_thread = check_same_thread
        self._closed = False

    @classmethod
    def from_project(cls, project_path: Path | None = None) -> MarkopsDB:
        """Create a MarkopsDB by discovering .markops/ from project_path (or cwd)."""
        markops_dir = find_markops_root(project_path)
        config = read_config(markops_dir)
        db = cls(markops_dir / DB_FILENAME, prefix=config.get("prefix", "mk"))
        db.initialize()
        return db

    def __enter__(self) -> MarkopsDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._closed:
            msg = f"Store is closed: {self.db_path}"
            raise TransportError(msg)
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(
                    str(self.db_path),
                    isolation_level="DEFERRED",
                    check_same_thread=self._check_same_thread,
                )
            except sqlite3.OperationalError as exc:
                msg = f"Cannot open store {self.db_path}: {exc}"
                raise TransportError(msg) from exc
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
            self._conn.create_function("casefold", 1, _casefold, deterministic=True)
        return self._conn

    def initialize(self) -> None:
        """Create missing tables and stamp the schema version.

        Every statement in SCHEMA_SQL is IF NOT EXISTS, so older workspaces
        pick up tables added since they were created.
        """
        if self.get_schema_version() < CURRENT_SCHEMA_VERSION:
            self.conn.executescript(SCHEMA_SQL)
            self.conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
        self.conn.commit()

    def get_schema_version(self) -> int:
        """Return the current schema version from PRAGMA user_version."""
        result: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        return result

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._closed = True

    def reconnect(self, *, check_same_thread: bool = True) -> None:
        """Reopen the connection, e.g. with check_same_thread=False for threaded servers."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._closed = False
        self._check_same_thread = check_same_thread

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block as one IMMEDIATE write transaction.

        Reads inside the block see a snapshot no other writer can change
        before commit.
        """
        conn = self.conn
        owns = not conn.in_transaction
        try:
            if owns:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            if owns:
                conn.commit()
        except sqlite3.Error as exc:
            if owns:
                conn.rollback()
            if _is_unavailable(exc):
                msg = f"Store unavailable: {exc}"
                raise TransportError(msg) from exc
            raise
        except BaseException:
            if owns:
                conn.rollback()
            raise

    # -- ID generation -------------------------------------------------------

    def _generate_unique_id(self, table: str, infix: str = "") -> str:
        """`<prefix>-[<infix>-]<10 hex>` not yet present in *table* (a literal, never user input)."""
        stem = f"{self.prefix}-{infix}-" if infix else f"{self.prefix}-"
        for _ in range(10):
            candidate = stem + uuid.uuid4().hex[:10]
            if self.conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (candidate,)).fetchone() is None:
                return candidate
        return stem + uuid.uuid4().hex[:16]
