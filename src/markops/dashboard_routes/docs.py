"""Doc, tool registry and comment route handlers."""

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
from markops.reactive import ReactiveStore

logger = logging.getLogger(__name__)

_TOOL_BODY_FIELDS = ("name", "category", "status", "billing_cycle", "url", "cost", "access_notes", "notes")


def _tool_fields(body: dict[str, Any]) -> dict[str, Any] | None:
    """Known tool fields from a request body; None if any value is not a string."""
    fields = {k: body[k] for k in _TOOL_BODY_FIELDS if k in body and body[k] is not None}
    if not all(isinstance(v, str) for v in fields.values()):
        return None
    return fields


def create_router() -> APIRouter:
    """Build the APIRouter for docs, tools and comments."""
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse

    from markops.dashboard import _get_db, _get_store

    router = APIRouter()

    # -- Docs ----------------------------------------------------------------

    @router.get("/docs")
    async def api_docs(board: str = "marketing", db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        try:
            docs = db.list_docs(board)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse([d.to_dict() for d in docs])

    @router.get("/doc/{doc_id}")
    async def api_doc(doc_id: str, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        try:
            doc = db.get_doc(doc_id)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(doc.to_dict())

    @router.post("/docs")
    async def api_upsert_doc(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        """Create a doc at ``path``, or refresh the one already there."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        args = {
            "path": body.get("path"),
            "title": body.get("title"),
            "content": body.get("content", ""),
            "board": body.get("board", "marketing"),
            "agent": body.get("agent", ""),
            "itemId": body.get("item_id"),
        }
        if not isinstance(args["content"], str):
            return _error_response("content must be a string", "VALIDATION_ERROR", 400)
        try:
            doc = await store.mutation("docs.upsert", args)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(doc, status_code=201)

    @router.patch("/doc/{doc_id}")
    async def api_save_doc(doc_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        try:
            doc = await store.mutation("docs.save", {"id": doc_id, "title": body.get("title"), "content": body.get("content")})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(doc)

    @router.delete("/doc/{doc_id}")
    async def api_remove_doc(doc_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            await store.mutation("docs.remove", {"id": doc_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"removed": doc_id})

    # -- Tools ---------------------------------------------------------------

    @router.get("/tools")
    async def api_tools(status: str | None = None, category: str | None = None, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse([t.to_dict() for t in db.list_tools(status=status, category=category)])

    @router.post("/tools")
    async def api_create_tool(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        fields = _tool_fields(body)
        if fields is None:
            return _error_response("tool fields must be strings", "VALIDATION_ERROR", 400)
        try:
            tool = await store.mutation("tools.create", {"name": fields.pop("name", None), "fields": fields})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(tool, status_code=201)

    @router.patch("/tool/{tool_id}")
    async def api_update_tool(tool_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        fields = _tool_fields(body)
        if fields is None:
            return _error_response("tool fields must be strings", "VALIDATION_ERROR", 400)
        try:
            tool = await store.mutation("tools.update", {"id": tool_id, "fields": fields})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(tool)

    @router.delete("/tool/{tool_id}")
    async def api_remove_tool(tool_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            await store.mutation("tools.remove", {"id": tool_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"removed": tool_id})

    # -- Comments ------------------------------------------------------------

    @router.get("/item/{item_id}/comments")
    async def api_comments(item_id: str, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse(db.get_comments(item_id))

    @router.post("/item/{item_id}/comments")
    async def api_add_comment(item_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        content = body.get("content", "")
        if not isinstance(content, str):
            return _error_response("content must be a string", "VALIDATION_ERROR", 400)
        args = {
            "itemId": item_id,
            "content": content,
            "author": body.get("author") or "dashboard",
            "role": body.get("role") or "human",
        }
        try:
            comment_id = await store.mutation("comments.add", args)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"id": comment_id, "item_id": item_id}, status_code=201)

    return router
