"""Push-based query/mutation layer over ``MarkopsDB``.

Views subscribe to named queries and receive the initial result plus every
subsequent change; writes go through named mutations which run one at a time
and then re-evaluate every live subscription.

Usage::

    store = ReactiveStore(db)
    sub = store.query("items.listByLane", {"collection": "cards", "lane": "inbox"})
    await store.mutation("items.create", {"collection": "cards", "payload": {"title": "x"}})
    async for cards in sub.updates():
        ...
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import AsyncIterator, Callable, Mapping
from typing import TYPE_CHECKING, Any, Final

from markops.errors import InvalidInputError, NotFoundError, TransportError

if TYPE_CHECKING:
    from markops.core import MarkopsDB

logger = logging.getLogger(__name__)


class _Skip:
    def __repr__(self) -> str:
        return "SKIP"


SKIP: Final = _Skip()
"""Argument marker for a subscription that must not issue its query yet."""

_CLOSED: Final = object()

Args = Mapping[str, Any]
Handler = Callable[["MarkopsDB", Args], Any]


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def _req(args: Args, key: str) -> Any:
    if key not in args or args[key] is None:
        msg = f"missing argument: {key}"
        raise InvalidInputError(msg)
    return args[key]


def _opt(args: Args, key: str, default: Any = None) -> Any:
    value = args.get(key)
    return default if value is None else value


# ---------------------------------------------------------------------------
# Queries (read-only, JSON-ready results)
# ---------------------------------------------------------------------------


def _items_list_by_lane(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    items = db.list_by_lane(_req(args, "collection"), _req(args, "lane"), partition=_opt(args, "partition", ""))
    return [dict(i.to_dict()) for i in items]


def _items_list(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    items = db.list_items(
        _req(args, "collection"),
        partition=args.get("partition"),
        lane=args.get("lane"),
        tag_id=args.get("tagId"),
    )
    return [dict(i.to_dict()) for i in items]


def _items_get(db: MarkopsDB, args: Args) -> dict[str, Any] | None:
    try:
        return dict(db.get_item(_req(args, "id")).to_dict())
    except NotFoundError:
        return None


def _tags_list(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    tags = db.list_tags(include_archived=bool(_opt(args, "includeArchived", True)))
    return [dict(t.to_dict()) for t in tags]


def _tags_for_item(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    return [dict(t.to_dict()) for t in db.item_tags(_req(args, "itemId"))]


def _tags_associations(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    return [dict(a) for a in db.list_associations(tag_id=args.get("tagId"))]


def _search_global(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.search(str(_opt(args, "query", "")), _req(args, "partition")))


def _posts_scheduled(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    posts = db.scheduled_posts(_req(args, "board"), _req(args, "start"), _req(args, "end"))
    return [dict(p.to_dict()) for p in posts]


def _posts_backlog(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    return [dict(p.to_dict()) for p in db.backlog_posts(_req(args, "board"))]


def _pipelines_list(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    return [dict(p.to_dict()) for p in db.list_pipelines()]


def _pipelines_get(db: MarkopsDB, args: Args) -> dict[str, Any] | None:
    try:
        return dict(db.get_pipeline(_req(args, "id")).to_dict())
    except NotFoundError:
        return None


def _docs_list(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    return [dict(d.to_dict()) for d in db.list_docs(_opt(args, "board", "marketing"))]


def _tools_list(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    tools = db.list_tools(status=args.get("status"), category=args.get("category"))
    return [dict(t.to_dict()) for t in tools]


def _comments_list(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    return [dict(c) for c in db.get_comments(_req(args, "itemId"))]


QUERIES: dict[str, Handler] = {
    "items.listByLane": _items_list_by_lane,
    "items.list": _items_list,
    "items.get": _items_get,
    "tags.list": _tags_list,
    "tags.forItem": _tags_for_item,
    "tags.associations": _tags_associations,
    "search.global": _search_global,
    "posts.scheduled": _posts_scheduled,
    "posts.backlog": _posts_backlog,
    "pipelines.list": _pipelines_list,
    "pipelines.get": _pipelines_get,
    "docs.list": _docs_list,
    "tools.list": _tools_list,
    "comments.list": _comments_list,
}


# ---------------------------------------------------------------------------
# Mutations (each one store transaction)
# ---------------------------------------------------------------------------


def _items_create(db: MarkopsDB, args: Args) -> dict[str, Any]:
    item = db.create_item(
        _req(args, "collection"),
        args.get("lane"),
        args.get("payload"),
        partition=_opt(args, "partition", ""),
    )
    return dict(item.to_dict())


def _items_bulk_create(db: MarkopsDB, args: Args) -> list[dict[str, Any]]:
    records = _req(args, "records")
    if not isinstance(records, list):
        msg = "records must be a list"
        raise InvalidInputError(msg)
    items = db.bulk_create(_req(args, "collection"), _req(args, "lane"), records, partition=_opt(args, "partition", ""))
    return [dict(i.to_dict()) for i in items]


def _items_move(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.move_item(_req(args, "id"), _req(args, "lane"), _req(args, "index")).to_dict())


def _items_update(db: MarkopsDB, args: Args) -> dict[str, Any]:
    item = db.update_item(_req(args, "id"), _req(args, "payload"), replace=bool(_opt(args, "replace", False)))
    return dict(item.to_dict())


def _items_remove(db: MarkopsDB, args: Args) -> None:
    db.remove_item(_req(args, "id"))


def _items_remove_many(db: MarkopsDB, args: Args) -> int:
    ids = _req(args, "ids")
    if not isinstance(ids, list):
        msg = "ids must be a list"
        raise InvalidInputError(msg)
    return db.remove_many(ids)


def _items_add_note(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.add_agent_note(_req(args, "id"), _opt(args, "agent", ""), _req(args, "content")).to_dict())


def _items_attach_doc(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.attach_doc(_req(args, "id"), _req(args, "path")).to_dict())


def _posts_schedule(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.schedule_post(_req(args, "id"), _req(args, "scheduledAt")).to_dict())


def _posts_unschedule(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.unschedule_post(_req(args, "id")).to_dict())


def _pipelines_create(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.create_pipeline(_req(args, "name"), _opt(args, "inputUrl", "")).to_dict())


def _pipelines_update_stage(db: MarkopsDB, args: Args) -> dict[str, Any]:
    pipeline = db.update_stage(
        _req(args, "id"),
        _req(args, "stage"),
        _req(args, "status"),
        doc_path=args.get("docPath"),
    )
    return dict(pipeline.to_dict())


def _pipelines_remove(db: MarkopsDB, args: Args) -> int:
    return db.remove_pipeline(_req(args, "id"))


def _tags_create(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.create_tag(_req(args, "name"), color=args.get("color")).to_dict())


def _tags_update(db: MarkopsDB, args: Args) -> dict[str, Any]:
    tag = db.update_tag(
        _req(args, "id"),
        name=args.get("name"),
        color=args.get("color"),
        archived=args.get("archived"),
    )
    return dict(tag.to_dict())


def _tags_remove(db: MarkopsDB, args: Args) -> int:
    return db.delete_tag(_req(args, "id"))


def _tags_tag(db: MarkopsDB, args: Args) -> bool:
    return db.tag_item(_req(args, "itemId"), _req(args, "tagId"))


def _tags_untag(db: MarkopsDB, args: Args) -> bool:
    return db.untag_item(_req(args, "itemId"), _req(args, "tagId"))


def _tags_toggle(db: MarkopsDB, args: Args) -> bool:
    return db.toggle_tag(_req(args, "itemId"), _req(args, "tagId"))


def _docs_upsert(db: MarkopsDB, args: Args) -> dict[str, Any]:
    doc = db.upsert_doc(
        _req(args, "path"),
        _req(args, "title"),
        _opt(args, "content", ""),
        board=_opt(args, "board", "marketing"),
        agent=_opt(args, "agent", ""),
        item_id=args.get("itemId"),
    )
    return dict(doc.to_dict())


def _docs_save(db: MarkopsDB, args: Args) -> dict[str, Any]:
    doc = db.save_doc(_req(args, "id"), title=args.get("title"), content=args.get("content"))
    return dict(doc.to_dict())


def _docs_remove(db: MarkopsDB, args: Args) -> None:
    db.remove_doc(_req(args, "id"))


def _tool_fields(args: Args) -> dict[str, Any]:
    fields = _opt(args, "fields", {})
    if not isinstance(fields, Mapping):
        msg = "fields must be an object"
        raise InvalidInputError(msg)
    return dict(fields)


def _tools_create(db: MarkopsDB, args: Args) -> dict[str, Any]:
    fields = _tool_fields(args)
    fields.pop("name", None)
    return dict(db.create_tool(_req(args, "name"), **fields).to_dict())


def _tools_update(db: MarkopsDB, args: Args) -> dict[str, Any]:
    return dict(db.update_tool(_req(args, "id"), **_tool_fields(args)).to_dict())


def _tools_remove(db: MarkopsDB, args: Args) -> None:
    db.remove_tool(_req(args, "id"))


def _comments_add(db: MarkopsDB, args: Args) -> int:
    return db.add_comment(
        _req(args, "itemId"),
        _req(args, "content"),
        author=_opt(args, "author", ""),
        role=_opt(args, "role", "human"),
    )


MUTATIONS: dict[str, Handler] = {
    "items.create": _items_create,
    "items.bulkCreate": _items_bulk_create,
    "items.move": _items_move,
    "items.update": _items_update,
    "items.remove": _items_remove,
    "items.removeMany": _items_remove_many,
    "items.addNote": _items_add_note,
    "items.attachDoc": _items_attach_doc,
    "posts.schedule": _posts_schedule,
    "posts.unschedule": _posts_unschedule,
    "pipelines.create": _pipelines_create,
    "pipelines.updateStage": _pipelines_update_stage,
    "pipelines.remove": _pipelines_remove,
    "tags.create": _tags_create,
    "tags.update": _tags_update,
    "tags.remove": _tags_remove,
    "tags.tag": _tags_tag,
    "tags.untag": _tags_untag,
    "tags.toggle": _tags_toggle,
    "docs.upsert": _docs_upsert,
    "docs.save": _docs_save,
    "docs.remove": _docs_remove,
    "tools.create": _tools_create,
    "tools.update": _tools_update,
    "tools.remove": _tools_remove,
    "comments.add": _comments_add,
}


def _lookup(registry: dict[str, Handler], kind: str, name: str) -> Handler:
    try:
        return registry[name]
    except KeyError:
        raise NotFoundError(kind, name) from None


def _run(handler: Handler, db: MarkopsDB, args: Args) -> Any:
    try:
        return handler(db, args)
    except (sqlite3.OperationalError, sqlite3.ProgrammingError) as exc:
        msg = f"Store unavailable: {exc}"
        raise TransportError(msg) from exc


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


class Subscription:
    """A live query. ``value`` is the latest snapshot; ``updates()`` streams them."""

    def __init__(self, store: ReactiveStore, name: str, args: Args | _Skip) -> None:
        self.name = name
        self.args = args
        self.value: Any = None
        self.loaded = False
        self._store = store
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def skipped(self) -> bool:
        return self.args is SKIP

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, value: Any) -> bool:
        if self.loaded and value == self.value:
            return False
        self.value = value
        self.loaded = True
        self._queue.put_nowait(value)
        return True

    async def updates(self) -> AsyncIterator[Any]:
        """Yield every delivered value, starting with the initial one, until closed."""
        while True:
            value = await self._queue.get()
            if value is _CLOSED:
                return
            yield value

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._discard(self)
        self._queue.put_nowait(_CLOSED)


class ReactiveStore:
    """Named queries and serialized mutations with subscription fan-out."""

    def __init__(
        self,
        db: MarkopsDB,
        *,
        queries: dict[str, Handler] | None = None,
        mutations: dict[str, Handler] | None = None,
    ) -> None:
        self.db = db
        self.queries = dict(QUERIES if queries is None else queries)
        self.mutations = dict(MUTATIONS if mutations is None else mutations)
        self._subscriptions: list[Subscription] = []
        self._lock = asyncio.Lock()

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions)

    def _discard(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def fetch(self, name: str, args: Args) -> Any:
        """Evaluate a query once, without subscribing."""
        return _run(_lookup(self.queries, "query", name), self.db, args)

    def query(self, name: str, args: Args | _Skip | str) -> Subscription:
        """Subscribe to *name*. The initial value is delivered before returning."""
        handler = _lookup(self.queries, "query", name)
        if args == "skip":
            args = SKIP
        sub = Subscription(self, name, args)
        if not isinstance(args, _Skip):
            sub._deliver(_run(handler, self.db, args))
        self._subscriptions.append(sub)
        return sub

    async def mutation(self, name: str, args: Args) -> Any:
        """Run one mutation, then push changed results to every live subscription.

        Mutations are never retried; a failed one leaves subscriptions untouched.
        """
        handler = _lookup(self.mutations, "mutation", name)
        async with self._lock:
            start = time.monotonic()
            result = _run(handler, self.db, args)
            pushed = self._refresh()
            logger.debug(
                "mutation %s pushed to %d subscription(s)",
                name,
                pushed,
                extra={"op": name, "duration_ms": round((time.monotonic() - start) * 1000, 2)},
            )
        return result

    def _refresh(self) -> int:
        pushed = 0
        for sub in list(self._subscriptions):
            if sub.skipped:
                continue
            value = _run(self.queries[sub.name], self.db, sub.args)  # type: ignore[arg-type]
            if sub._deliver(value):
                pushed += 1
        return pushed

    def close(self) -> None:
        for sub in list(self._subscriptions):
            sub.close()
