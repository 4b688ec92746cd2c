"""MetaMixin: docs, the tool/account registry, and item comments.

All methods access ``self.conn``, ``self.get_item()``, etc. via
Python's MRO when composed into ``MarkopsDB``.
"""

from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any, cast

from markops.db_base import DBMixinProtocol, _now_ms
from markops.errors import InvalidInputError, NotFoundError
from markops.lanes import validate_board
from markops.types.core import CommentRecord
from markops.validation import sanitize_author, sanitize_title

if TYPE_CHECKING:
    from markops.core import Doc, Tool

TOOL_CATEGORIES = frozenset({"analytics", "marketing", "seo", "email", "social", "dev", "design", "ai", "other"})
TOOL_STATUSES = frozenset({"active", "trial", "needs-setup", "cancelled"})
BILLING_CYCLES = frozenset({"monthly", "annual", "free", "one-time"})
COMMENT_ROLES = frozenset({"human", "agent"})

_TOOL_TEXT_FIELDS = ("url", "cost", "access_notes", "notes")


def _check_choice(value: str, allowed: frozenset[str], what: str) -> None:
    if value not in allowed:
        msg = f"Invalid {what} '{value}'. Valid values: {', '.join(sorted(allowed))}"
        raise InvalidInputError(msg)


class MetaMixin(DBMixinProtocol):
    """Docs, tools and comments.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MarkopsDB`` at composition time via MRO.
    """

    if TYPE_CHECKING:

        def transaction(self) -> AbstractContextManager[sqlite3.Connection]: ...

    # -- Docs ----------------------------------------------------------------

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> Doc:
        from markops.core import Doc

        return Doc(
            id=row["id"],
            path=row["path"],
            title=row["title"],
            content=row["content"],
            agent=row["agent"],
            board=row["board"],
            item_id=row["item_id"],
            updated_at=row["updated_at"],
        )

    def get_doc(self, doc_id: str) -> Doc:
        row = self.conn.execute("SELECT * FROM docs WHERE id = ?", (doc_id,)).fetchone()
        if row is None:
            raise NotFoundError("Doc", doc_id)
        return self._row_to_doc(row)

    def get_doc_by_path(self, path: str) -> Doc | None:
        row = self.conn.execute("SELECT * FROM docs WHERE path = ?", (path,)).fetchone()
        return self._row_to_doc(row) if row is not None else None

    def list_docs(self, board: str) -> list[Doc]:
        """Docs on a board, most recently updated first."""
        validate_board(board)
        rows = self.conn.execute(
            "SELECT * FROM docs WHERE board = ? ORDER BY updated_at DESC, rowid DESC",
            (board,),
        ).fetchall()
        return [self._row_to_doc(r) for r in rows]

    def docs_for_item(self, item_id: str) -> list[Doc]:
        rows = self.conn.execute("SELECT * FROM docs WHERE item_id = ? ORDER BY updated_at DESC", (item_id,)).fetchall()
        return [self._row_to_doc(r) for r in rows]

    def upsert_doc(
        self,
        path: str,
        title: str,
        content: str,
        *,
        board: str = "marketing",
        agent: str = "",
        item_id: str | None = None,
    ) -> Doc:
        """Insert a doc at *path*, or refresh title/content of the existing one."""
        if not isinstance(path, str) or not path.strip():
            msg = "doc path must not be empty"
            raise InvalidInputError(msg)
        path = path.strip()
        cleaned, err = sanitize_title(title)
        if err:
            raise InvalidInputError(err)
        validate_board(board)
        now = _now_ms()
        with self.transaction() as conn:
            existing = conn.execute("SELECT id FROM docs WHERE path = ?", (path,)).fetchone()
            if existing is not None:
                doc_id = existing["id"]
                conn.execute(
                    "UPDATE docs SET title = ?, content = ?, updated_at = ? WHERE id = ?",
                    (cleaned, content, now, doc_id),
                )
            else:
                doc_id = self._generate_unique_id("docs", "doc")
                conn.execute(
                    "INSERT INTO docs (id, path, title, content, agent, board, item_id, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (doc_id, path, cleaned, content, agent, board, item_id, now),
                )
        return self.get_doc(doc_id)

    def save_doc(self, doc_id: str, *, title: str | None = None, content: str | None = None) -> Doc:
        updates = ["updated_at = ?"]
        params: list[Any] = [_now_ms()]
        if title is not None:
            cleaned, err = sanitize_title(title)
            if err:
                raise InvalidInputError(err)
            updates.append("title = ?")
            params.append(cleaned)
        if content is not None:
            updates.append("content = ?")
            params.append(content)
        with self.transaction() as conn:
            cursor = conn.execute(f"UPDATE docs SET {', '.join(updates)} WHERE id = ?", [*params, doc_id])
            if cursor.rowcount == 0:
                raise NotFoundError("Doc", doc_id)
        return self.get_doc(doc_id)

    def remove_doc(self, doc_id: str) -> None:
        with self.transaction() as conn:
            if conn.execute("DELETE FROM docs WHERE id = ?", (doc_id,)).rowcount == 0:
                raise NotFoundError("Doc", doc_id)
            conn.execute("DELETE FROM tag_links WHERE item_id = ?", (doc_id,))

    # -- Tools ---------------------------------------------------------------

    @staticmethod
    def _row_to_tool(row: sqlite3.Row) -> Tool:
        from markops.core import Tool

        return Tool(**dict(row))

    def get_tool(self, tool_id: str) -> Tool:
        row = self.conn.execute("SELECT * FROM tools WHERE id = ?", (tool_id,)).fetchone()
        if row is None:
            raise NotFoundError("Tool", tool_id)
        return self._row_to_tool(row)

    def list_tools(self, *, status: str | None = None, category: str | None = None) -> list[Tool]:
        conditions: list[str] = []
        params: list[Any] = []
        if status is not None:
            conditions.append("status = ?")
            params.append(status)
        if category is not None:
            conditions.append("category = ?")
            params.append(category)
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self.conn.execute(f"SELECT * FROM tools{where} ORDER BY lower(name)", params).fetchall()
        return [self._row_to_tool(r) for r in rows]

    def create_tool(
        self,
        name: str,
        *,
        category: str = "other",
        status: str = "active",
        billing_cycle: str | None = None,
        **text_fields: str,
    ) -> Tool:
        cleaned, err = sanitize_title(name)
        if err:
            raise InvalidInputError(err.replace("title", "tool name"))
        _check_choice(category, TOOL_CATEGORIES, "category")
        _check_choice(status, TOOL_STATUSES, "status")
        if billing_cycle is not None:
            _check_choice(billing_cycle, BILLING_CYCLES, "billing cycle")
        unknown = set(text_fields) - set(_TOOL_TEXT_FIELDS)
        if unknown:
            msg = f"Unknown tool fields: {', '.join(sorted(unknown))}"
            raise InvalidInputError(msg)
        now = _now_ms()
        with self.transaction() as conn:
            tool_id = self._generate_unique_id("tools", "tool")
            conn.execute(
                "INSERT INTO tools (id, name, category, status, url, cost, billing_cycle, access_notes, notes, added_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    tool_id,
                    cleaned,
                    category,
                    status,
                    text_fields.get("url", ""),
                    text_fields.get("cost", ""),
                    billing_cycle,
                    text_fields.get("access_notes", ""),
                    text_fields.get("notes", ""),
                    now,
                    now,
                ),
            )
        return self.get_tool(tool_id)

    def update_tool(self, tool_id: str, **fields: Any) -> Tool:
        """Partial update; ``None`` values are ignored."""
        changes = {k: v for k, v in fields.items() if v is not None}
        allowed = {"name", "category", "status", "billing_cycle", *_TOOL_TEXT_FIELDS}
        unknown = set(changes) - allowed
        if unknown:
            msg = f"Unknown tool fields: {', '.join(sorted(unknown))}"
            raise InvalidInputError(msg)
        if "name" in changes:
            cleaned, err = sanitize_title(changes["name"])
            if err:
                raise InvalidInputError(err.replace("title", "tool name"))
            changes["name"] = cleaned
        if "category" in changes:
            _check_choice(changes["category"], TOOL_CATEGORIES, "category")
        if "status" in changes:
            _check_choice(changes["status"], TOOL_STATUSES, "status")
        if "billing_cycle" in changes:
            _check_choice(changes["billing_cycle"], BILLING_CYCLES, "billing cycle")
        changes["updated_at"] = _now_ms()
        assignments = ", ".join(f"{k} = ?" for k in changes)
        with self.transaction() as conn:
            cursor = conn.execute(f"UPDATE tools SET {assignments} WHERE id = ?", [*changes.values(), tool_id])
            if cursor.rowcount == 0:
                raise NotFoundError("Tool", tool_id)
        return self.get_tool(tool_id)

    def remove_tool(self, tool_id: str) -> None:
        with self.transaction() as conn:
            if conn.execute("DELETE FROM tools WHERE id = ?", (tool_id,)).rowcount == 0:
                raise NotFoundError("Tool", tool_id)
            conn.execute("DELETE FROM tag_links WHERE item_id = ?", (tool_id,))

    # -- Comments ------------------------------------------------------------

    def add_comment(self, item_id: str, content: str, *, author: str, role: str = "human") -> int:
        if not content or not content.strip():
            msg = "Comment text cannot be empty"
            raise InvalidInputError(msg)
        cleaned_author, err = sanitize_author(author)
        if err:
            raise InvalidInputError(err)
        _check_choice(role, COMMENT_ROLES, "role")
        with self.transaction() as conn:
            self.get_item(item_id)
            cursor = conn.execute(
                "INSERT INTO comments (item_id, author, role, content, created_at) VALUES (?, ?, ?, ?, ?)",
                (item_id, cleaned_author, role, content, _now_ms()),
            )
        rowid = cursor.lastrowid
        if rowid is None:  # pragma: no cover
            msg = "INSERT did not produce a lastrowid"
            raise RuntimeError(msg)
        return rowid

    def get_comments(self, item_id: str) -> list[CommentRecord]:
        rows = self.conn.execute(
            "SELECT id, item_id, author, role, content, created_at FROM comments WHERE item_id = ? ORDER BY created_at, id",
            (item_id,),
        ).fetchall()
        return cast(list[CommentRecord], [dict(r) for r in rows])
