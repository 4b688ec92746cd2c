"""ItemsMixin: lane-ordered items: create, move, list, update, remove, bulk create.

All methods access ``self.conn``, ``self.transaction()``, etc. via
Python's MRO when composed into ``MarkopsDB``.

Every write touches exactly one item row (plus its tag links on removal);
sibling order keys are never rewritten outside ``renormalize_lane``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable, Iterator, Mapping
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING, Any

from markops import ordering
from markops.db_base import DBMixinProtocol, _now_ms
from markops.errors import InvalidInputError, NotFoundError
from markops.lanes import CollectionSpec, get_collection, validate_lane
from markops.validation import sanitize_title

if TYPE_CHECKING:
    from markops.core import Item

logger = logging.getLogger(__name__)

_ITEM_COLUMNS = "rowid AS seq, id, collection, partition, lane, order_key, payload, created_at, updated_at"


def _validate_payload(spec: CollectionSpec, payload: Mapping[str, Any] | None) -> dict[str, Any]:
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        msg = "payload must be a JSON object"
        raise InvalidInputError(msg)
    result = dict(payload)
    if spec.title_required or "title" in result:
        title, err = sanitize_title(result.get("title"))
        if err:
            raise InvalidInputError(err)
        result["title"] = title
    for key in spec.timestamp_fields:
        value = result.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            msg = f"{key} must be epoch milliseconds (integer), got {value!r}"
            raise InvalidInputError(msg)
    return result


class ItemsMixin(DBMixinProtocol):
    """Fractional-order item storage shared by every lane-based collection.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``MarkopsDB`` at composition time via MRO.
    """

    if TYPE_CHECKING:

        def transaction(self) -> AbstractContextManager[sqlite3.Connection]: ...

    # -- Row mapping ---------------------------------------------------------

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> Item:
        from markops.core import Item

        try:
            payload = json.loads(row["payload"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt payload JSON on item %s; treating as empty", row["id"])
            payload = {}
        return Item(
            id=row["id"],
            collection=row["collection"],
            partition=row["partition"],
            lane=row["lane"],
            order_key=row["order_key"],
            payload=payload,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            seq=row["seq"],
        )

    def _lane_keys(self, collection: str, partition: str, lane: str, *, exclude: str | None = None) -> list[float]:
        rows = self.conn.execute(
            "SELECT id, order_key FROM items WHERE collection = ? AND partition = ? AND lane = ? ORDER BY order_key, rowid",
            (collection, partition, lane),
        ).fetchall()
        return [r["order_key"] for r in rows if r["id"] != exclude]

    # -- Reads ---------------------------------------------------------------

    def get_item(self, item_id: str) -> Item:
        row = self.conn.execute(f"SELECT {_ITEM_COLUMNS} FROM items WHERE id = ?", (item_id,)).fetchone()
        if row is None:
            raise NotFoundError("Item", item_id)
        return self._row_to_item(row)

    def iter_lane(self, collection: str, lane: str, *, partition: str = "") -> Iterator[Item]:
        """Lazily yield a lane's items in display order from the current snapshot."""
        cursor = self.conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items WHERE collection = ? AND partition = ? AND lane = ? ORDER BY order_key, rowid",
            (collection, partition, lane),
        )
        for row in cursor:
            yield self._row_to_item(row)

    def list_by_lane(self, collection: str, lane: str, *, partition: str = "") -> list[Item]:
        return list(self.iter_lane(collection, lane, partition=partition))

    def list_items(
        self,
        collection: str,
        *,
        partition: str | None = None,
        lane: str | None = None,
        tag_id: str | None = None,
    ) -> list[Item]:
        """All items of a collection in (lane, order) order, optionally narrowed."""
        get_collection(collection)
        conditions = ["collection = ?"]
        params: list[Any] = [collection]
        if partition is not None:
            conditions.append("partition = ?")
            params.append(partition)
        if lane is not None:
            conditions.append("lane = ?")
            params.append(lane)
        if tag_id is not None:
            conditions.append("id IN (SELECT item_id FROM tag_links WHERE tag_id = ?)")
            params.append(tag_id)
        rows = self.conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items WHERE {' AND '.join(conditions)} ORDER BY lane, order_key, rowid",
            params,
        ).fetchall()
        return [self._row_to_item(r) for r in rows]

    def lanes(self, collection: str, *, partition: str = "") -> list[str]:
        """Lane names for a collection: the fixed set, else the distinct stored values."""
        spec = get_collection(collection)
        if spec.lanes is not None:
            return list(spec.lanes)
        rows = self.conn.execute(
            "SELECT lane, MIN(rowid) AS first_seen FROM items WHERE collection = ? AND partition = ? GROUP BY lane ORDER BY first_seen",
            (collection, partition),
        ).fetchall()
        return [r["lane"] for r in rows]

    # -- Writes --------------------------------------------------------------

    def create_item(
        self,
        collection: str,
        lane: str | None = None,
        payload: Mapping[str, Any] | None = None,
        *,
        partition: str = "",
    ) -> Item:
        """Append a new item to the end of *lane*."""
        spec = get_collection(collection)
        lane = validate_lane(spec, lane if lane is not None else spec.default_lane)
        data = _validate_payload(spec, payload)
        now = _now_ms()
        with self.transaction() as conn:
            key = ordering.append_key(self._lane_keys(collection, partition, lane))
            item_id = self._generate_unique_id("items")
            conn.execute(
                "INSERT INTO items (id, collection, partition, lane, order_key, payload, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (item_id, collection, partition, lane, key, json.dumps(data), now, now),
            )
        logger.debug("Created %s %s in %s/%s at key %s", collection, item_id, partition, lane, key)
        return self.get_item(item_id)

    def bulk_create(
        self,
        collection: str,
        lane: str,
        records: Iterable[Mapping[str, Any]],
        *,
        partition: str = "",
    ) -> list[Item]:
        """Append *records* to *lane* in their given order, all or nothing."""
        spec = get_collection(collection)
        lane = validate_lane(spec, lane)
        payloads = [_validate_payload(spec, r) for r in records]
        if not payloads:
            return []
        now = _now_ms()
        ids: list[str] = []
        with self.transaction() as conn:
            keys = ordering.sequential_keys(self._lane_keys(collection, partition, lane), len(payloads))
            for key, data in zip(keys, payloads, strict=True):
                item_id = self._generate_unique_id("items")
                conn.execute(
                    "INSERT INTO items (id, collection, partition, lane, order_key, payload, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (item_id, collection, partition, lane, key, json.dumps(data), now, now),
                )
                ids.append(item_id)
        logger.info("Bulk-created %d %s in %s/%s", len(ids), collection, partition, lane)
        return [self.get_item(i) for i in ids]

    def move_item(self, item_id: str, target_lane: str, target_index: int) -> Item:
        """Place an item at *target_index* of *target_lane*.

        Neighbour keys are read and the item's new lane/key written inside one
        IMMEDIATE transaction; no other row changes.
        """
        if isinstance(target_index, bool) or not isinstance(target_index, int):
            msg = "target index must be an integer"
            raise InvalidInputError(msg)
        with self.transaction() as conn:
            current = self.get_item(item_id)
            spec = get_collection(current.collection)
            lane = validate_lane(spec, target_lane)
            remaining = self._lane_keys(current.collection, current.partition, lane, exclude=item_id)
            key = ordering.key_for_index(remaining, target_index)
            conn.execute(
                "UPDATE items SET lane = ?, order_key = ?, updated_at = ? WHERE id = ?",
                (lane, key, _now_ms(), item_id),
            )
        logger.debug("Moved %s to %s[%d] key=%s", item_id, lane, target_index, key)
        return self.get_item(item_id)

    def update_item(
        self,
        item_id: str,
        payload: Mapping[str, Any],
        *,
        replace: bool = False,
    ) -> Item:
        """Merge *payload* into the item's payload (or replace it wholesale).

        Keys whose value is ``None`` are removed when merging.
        """
        if not isinstance(payload, Mapping):
            msg = "payload must be a JSON object"
            raise InvalidInputError(msg)
        with self.transaction() as conn:
            current = self.get_item(item_id)
            spec = get_collection(current.collection)
            if replace:
                merged = dict(payload)
            else:
                merged = dict(current.payload)
                for k, v in payload.items():
                    if v is None:
                        merged.pop(k, None)
                    else:
                        merged[k] = v
            data = _validate_payload(spec, merged)
            conn.execute(
                "UPDATE items SET payload = ?, updated_at = ? WHERE id = ?",
                (json.dumps(data), _now_ms(), item_id),
            )
        return self.get_item(item_id)

    def remove_item(self, item_id: str) -> None:
        """Delete an item and its tag links. Siblings keep their keys."""
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("Item", item_id)
            conn.execute("DELETE FROM tag_links WHERE item_id = ?", (item_id,))

    def remove_many(self, item_ids: Iterable[str]) -> int:
        """Delete several items in one transaction. Fails whole if any id is unknown."""
        ids = list(dict.fromkeys(item_ids))
        if not ids:
            return 0
        placeholders = ",".join("?" * len(ids))
        with self.transaction() as conn:
            found = {r["id"] for r in conn.execute(f"SELECT id FROM items WHERE id IN ({placeholders})", ids).fetchall()}
            missing = [i for i in ids if i not in found]
            if missing:
                raise NotFoundError("Item", ", ".join(missing))
            conn.execute(f"DELETE FROM items WHERE id IN ({placeholders})", ids)
            conn.execute(f"DELETE FROM tag_links WHERE item_id IN ({placeholders})", ids)
        return len(ids)

    def renormalize_lane(self, collection: str, lane: str, *, partition: str = "") -> int:
        """Rewrite a lane's keys to 0..n-1, preserving order. Maintenance only.

        Returns the number of rows whose key actually changed.
        """
        changed = 0
        with self.transaction() as conn:
            items = list(self.iter_lane(collection, lane, partition=partition))
            for item, key in ordering.renormalized(items):
                if item.order_key != key:
                    conn.execute("UPDATE items SET order_key = ? WHERE id = ?", (key, item.id))
                    changed += 1
        logger.info("Renormalized %s/%s/%s: %d key(s) rewritten", collection, partition, lane, changed)
        return changed

    # -- Card conveniences ---------------------------------------------------

    def attach_doc(self, item_id: str, doc_path: str) -> Item:
        """Record a doc path on the item's ``doc_paths`` payload list (no duplicates)."""
        if not isinstance(doc_path, str) or not doc_path.strip():
            msg = "doc path must not be empty"
            raise InvalidInputError(msg)
        with self.transaction():
            item = self.get_item(item_id)
            paths = list(item.payload.get("doc_paths") or [])
            if doc_path in paths:
                return item
            return self.update_item(item_id, {"doc_paths": [*paths, doc_path]})

    def add_agent_note(self, item_id: str, agent: str, content: str) -> Item:
        if not content or not content.strip():
            msg = "Agent note cannot be empty"
            raise InvalidInputError(msg)
        with self.transaction():
            item = self.get_item(item_id)
            notes = list(item.payload.get("agent_notes") or [])
            notes.append({"agent": agent, "content": content, "created_at": _now_ms()})
            return self.update_item(item_id, {"agent_notes": notes})
