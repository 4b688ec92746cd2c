"""Item route handlers: lane listing, create, move, update, remove, bulk create."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter

from markops.core import MarkopsDB
from markops.dashboard_routes.common import (
    _HANDLED,
    _error_response,
    _exception_response,
    _parse_json_body,
)
from markops.lanes import get_collection
from markops.reactive import ReactiveStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------


def create_router() -> APIRouter:
    """Build the APIRouter for item endpoints.

    NOTE: handlers are async despite synchronous SQLite I/O so that all DB
    access stays on the event loop thread and the shared connection is never
    used from two threads at once.
    """
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse

    from markops.dashboard import _get_db, _get_store

    router = APIRouter()

    @router.get("/items")
    async def api_items(request: Request, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        params = request.query_params
        collection = params.get("collection", "cards")
        try:
            items = db.list_items(
                collection,
                partition=params.get("partition"),
                lane=params.get("lane"),
                tag_id=params.get("tag") or None,
            )
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse([i.to_dict() for i in items])

    @router.get("/board/{collection}")
    async def api_board(collection: str, partition: str = "", db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        """Every lane of a collection with its items in display order."""
        try:
            get_collection(collection)
            lanes = {
                lane: [i.to_dict() for i in db.list_by_lane(collection, lane, partition=partition)]
                for lane in db.lanes(collection, partition=partition)
            }
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"collection": collection, "partition": partition, "lanes": lanes})

    @router.get("/item/{item_id}")
    async def api_item_detail(item_id: str, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        """Item with its tags, comments and linked docs."""
        try:
            item = db.get_item(item_id)
        except _HANDLED as exc:
            return _exception_response(exc)
        result: dict[str, Any] = dict(item.to_dict())
        result["tags"] = [t.to_dict() for t in db.item_tags(item_id)]
        result["comments"] = db.get_comments(item_id)
        result["docs"] = [d.to_dict() for d in db.docs_for_item(item_id)]
        return JSONResponse(result)

    @router.post("/items")
    async def api_create_item(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        if not isinstance(body.get("collection"), str):
            return _error_response("collection is required", "VALIDATION_ERROR", 400)
        try:
            item = await store.mutation("items.create", body)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(item, status_code=201)

    @router.post("/items/bulk")
    async def api_bulk_create(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        """Append many records to one lane in a single transaction."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        records = body.get("records")
        if not isinstance(records, list):
            return _error_response("records must be a list", "VALIDATION_ERROR", 400)
        try:
            items = await store.mutation("items.bulkCreate", body)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"created": items, "count": len(items)}, status_code=201)

    @router.post("/item/{item_id}/move")
    async def api_move_item(item_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        lane = body.get("lane")
        index = body.get("index")
        if not isinstance(lane, str):
            return _error_response("lane is required", "VALIDATION_ERROR", 400)
        if isinstance(index, bool) or not isinstance(index, int):
            return _error_response("index must be an integer", "VALIDATION_ERROR", 400)
        try:
            item = await store.mutation("items.move", {"id": item_id, "lane": lane, "index": index})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(item)

    @router.patch("/item/{item_id}")
    async def api_update_item(item_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        payload = body.get("payload")
        if not isinstance(payload, dict):
            return _error_response("payload must be a JSON object", "VALIDATION_ERROR", 400)
        replace = body.get("replace", False)
        if not isinstance(replace, bool):
            return _error_response("replace must be a boolean", "VALIDATION_ERROR", 400)
        try:
            item = await store.mutation("items.update", {"id": item_id, "payload": payload, "replace": replace})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(item)

    @router.delete("/item/{item_id}")
    async def api_remove_item(item_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            await store.mutation("items.remove", {"id": item_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"removed": item_id})

    @router.post("/items/batch-remove")
    async def api_remove_many(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        ids = body.get("ids")
        if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
            return _error_response("ids must be a list of strings", "VALIDATION_ERROR", 400)
        try:
            count = await store.mutation("items.removeMany", {"ids": ids})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"removed": count})

    @router.post("/item/{item_id}/notes")
    async def api_agent_note(item_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        agent = body.get("agent", "")
        content = body.get("content", "")
        if not isinstance(agent, str) or not isinstance(content, str):
            return _error_response("agent and content must be strings", "VALIDATION_ERROR", 400)
        try:
            item = await store.mutation("items.addNote", {"id": item_id, "agent": agent, "content": content})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(item, status_code=201)

    @router.post("/item/{item_id}/docs")
    async def api_attach_doc(item_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        path = body.get("path")
        if not isinstance(path, str):
            return _error_response("path is required", "VALIDATION_ERROR", 400)
        try:
            item = await store.mutation("items.attachDoc", {"id": item_id, "path": path})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(item)

    return router
