"""TagsMixin: campaign tags and the item/tag association overlay.

The overlay only knows opaque item identifiers, so any collection (items,
docs, tools) can be tagged and filtered without the collections knowing
about each other.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, cast

from markops.db_base import DBMixinProtocol, _now_ms
from markops.errors import InvalidInputError, NotFoundError
from markops.types.core import AssociationDict
from markops.validation import is_hex_color, sanitize_tag_name

if TYPE_CHECKING:
    from markops.core import Tag

logger = logging.getLogger(__name__)

PALETTE: tuple[str, ...] = (
    "#3B82F6",
    "#EF4444",
    "#22C55E",
    "#F59E0B",
    "#A855F7",
    "#EC4899",
    "#06B6D4",
    "#F97316",
    "#6366F1",
    "#14B8A6",
)


class TagsMixin(DBMixinProtocol):
    """Tag CRUD, idempotent tagging, toggle and filter predicates.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MarkopsDB`` at composition time via MRO.
    """

    if TYPE_CHECKING:

        def transaction(self) -> AbstractContextManager[sqlite3.Connection]: ...

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> Tag:
        from markops.core import Tag

        return Tag(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            archived=bool(row["archived"]),
            created_at=row["created_at"],
        )

    def _assert_name_free(self, name: str, *, exclude: str | None = None) -> None:
        row = self.conn.execute(
            "SELECT id FROM tags WHERE archived = 0 AND casefold(name) = casefold(?) AND id != ?",
            (name, exclude or ""),
        ).fetchone()
        if row is not None:
            msg = f"A tag named '{name}' already exists"
            raise InvalidInputError(msg)

    # -- Tag CRUD ------------------------------------------------------------

    def get_tag(self, tag_id: str) -> Tag:
        row = self.conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id,)).fetchone()
        if row is None:
            raise NotFoundError("Tag", tag_id)
        return self._row_to_tag(row)

    def list_tags(self, *, include_archived: bool = True) -> list[Tag]:
        where = "" if include_archived else " WHERE archived = 0"
        rows = self.conn.execute(f"SELECT * FROM tags{where} ORDER BY created_at, rowid").fetchall()
        return [self._row_to_tag(r) for r in rows]

    def find_tag_by_name(self, name: str, *, include_archived: bool = False) -> Tag | None:
        """Case-insensitive lookup, as used for URL parameters."""
        cleaned = name.strip() if isinstance(name, str) else ""
        if not cleaned:
            return None
        archived_clause = "" if include_archived else " AND archived = 0"
        row = self.conn.execute(
            f"SELECT * FROM tags WHERE casefold(name) = casefold(?){archived_clause} ORDER BY archived, created_at LIMIT 1",
            (cleaned,),
        ).fetchone()
        return self._row_to_tag(row) if row is not None else None

    def create_tag(self, name: str, *, color: str | None = None) -> Tag:
        """Create a tag; colour defaults to the palette slot for the current tag count."""
        cleaned, err = sanitize_tag_name(name)
        if err:
            raise InvalidInputError(err)
        if color is not None and not is_hex_color(color):
            msg = f"Invalid color '{color}': expected #rgb or #rrggbb"
            raise InvalidInputError(msg)
        with self.transaction() as conn:
            self._assert_name_free(cleaned)
            if color is None:
                count = conn.execute("SELECT COUNT(*) FROM tags").fetchone()[0]
                color = PALETTE[count % len(PALETTE)]
            tag_id = self._generate_unique_id("tags", "tag")
            conn.execute(
                "INSERT INTO tags (id, name, color, archived, created_at) VALUES (?, ?, ?, 0, ?)",
                (tag_id, cleaned, color, _now_ms()),
            )
        logger.info("Created tag %s (%s)", cleaned, tag_id)
        return self.get_tag(tag_id)

    def update_tag(
        self,
        tag_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
        archived: bool | None = None,
    ) -> Tag:
        """Partial update; fields left as None keep their stored value."""
        updates: list[str] = []
        params: list[object] = []
        with self.transaction() as conn:
            current = self.get_tag(tag_id)
            final_name = current.name
            if name is not None:
                cleaned, err = sanitize_tag_name(name)
                if err:
                    raise InvalidInputError(err)
                final_name = cleaned
                updates.append("name = ?")
                params.append(cleaned)
            if color is not None:
                if not is_hex_color(color):
                    msg = f"Invalid color '{color}': expected #rgb or #rrggbb"
                    raise InvalidInputError(msg)
                updates.append("color = ?")
                params.append(color)
            if archived is not None:
                updates.append("archived = ?")
                params.append(1 if archived else 0)
            # Active names stay unique; archived tags may share a name.
            final_archived = current.archived if archived is None else archived
            if not final_archived and (name is not None or archived is not None):
                self._assert_name_free(final_name, exclude=tag_id)
            if updates:
                conn.execute(f"UPDATE tags SET {', '.join(updates)} WHERE id = ?", [*params, tag_id])
        return self.get_tag(tag_id)

    def archive_tag(self, tag_id: str) -> Tag:
        """Hide a tag from assignment; its associations stay in place."""
        return self.update_tag(tag_id, archived=True)

    def delete_tag(self, tag_id: str) -> int:
        """Delete a tag and every association to it in one transaction.

        Returns the number of associations removed.
        """
        with self.transaction() as conn:
            self.get_tag(tag_id)
            removed = conn.execute("DELETE FROM tag_links WHERE tag_id = ?", (tag_id,)).rowcount
            conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
        logger.info("Deleted tag %s and %d association(s)", tag_id, removed)
        return removed

    # -- Associations --------------------------------------------------------

    def tag_item(self, item_id: str, tag_id: str) -> bool:
        """Associate; already-associated is a no-op. Returns True if a link was added."""
        if not isinstance(item_id, str) or not item_id:
            msg = "item id must not be empty"
            raise InvalidInputError(msg)
        with self.transaction() as conn:
            self.get_tag(tag_id)
            cursor = conn.execute(
                "INSERT OR IGNORE INTO tag_links (item_id, tag_id, created_at) VALUES (?, ?, ?)",
                (item_id, tag_id, _now_ms()),
            )
        return cursor.rowcount > 0

    def untag_item(self, item_id: str, tag_id: str) -> bool:
        """Dissociate; absent pair is a no-op. Returns True if a link was removed."""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM tag_links WHERE item_id = ? AND tag_id = ?", (item_id, tag_id))
        return cursor.rowcount > 0

    def toggle_tag(self, item_id: str, tag_id: str) -> bool:
        """Flip the association using the state read inside the write transaction.

        Returns True when the pair is tagged afterwards.
        """
        with self.transaction() as conn:
            exists = conn.execute(
                "SELECT 1 FROM tag_links WHERE item_id = ? AND tag_id = ?",
                (item_id, tag_id),
            ).fetchone()
            if exists:
                conn.execute("DELETE FROM tag_links WHERE item_id = ? AND tag_id = ?", (item_id, tag_id))
                return False
            self.tag_item(item_id, tag_id)
            return True

    def item_tags(self, item_id: str) -> list[Tag]:
        rows = self.conn.execute(
            "SELECT t.* FROM tags t JOIN tag_links l ON l.tag_id = t.id WHERE l.item_id = ? ORDER BY l.created_at, l.id",
            (item_id,),
        ).fetchall()
        return [self._row_to_tag(r) for r in rows]

    def tagged_item_ids(self, tag_id: str) -> set[str]:
        rows = self.conn.execute("SELECT item_id FROM tag_links WHERE tag_id = ?", (tag_id,)).fetchall()
        return {r["item_id"] for r in rows}

    def list_associations(self, *, tag_id: str | None = None) -> list[AssociationDict]:
        if tag_id is None:
            rows = self.conn.execute("SELECT id, item_id, tag_id, created_at FROM tag_links ORDER BY id").fetchall()
        else:
            rows = self.conn.execute(
                "SELECT id, item_id, tag_id, created_at FROM tag_links WHERE tag_id = ? ORDER BY id",
                (tag_id,),
            ).fetchall()
        return cast(list[AssociationDict], [dict(r) for r in rows])

    def items_matching(self, tag_id: str | None) -> Callable[[str], bool]:
        """Filter predicate over item ids for the active tag (None = no filter).

        The predicate closes over a snapshot of the tag's associations.
        """
        if tag_id is None:
            return lambda _item_id: True
        tagged = self.tagged_item_ids(tag_id)
        return lambda item_id: item_id in tagged
