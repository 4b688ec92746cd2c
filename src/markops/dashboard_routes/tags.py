"""Campaign tag route handlers: tag CRUD, associations and the active-tag selection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter

from markops.core import MarkopsDB
from markops.dashboard_routes.common import (
    _HANDLED,
    _bool_param,
    _error_response,
    _exception_response,
    _parse_json_body,
)
from markops.reactive import ReactiveStore
from markops.selection import URL_PARAM, SessionState, resolve_active_tag

logger = logging.getLogger(__name__)


def _session(db: MarkopsDB) -> SessionState:
    return SessionState(db.db_path.parent)


def create_router() -> APIRouter:
    """Build the APIRouter for tag, association and selection endpoints."""
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse

    from markops.dashboard import _get_db, _get_store

    router = APIRouter()

    # -- Tags ----------------------------------------------------------------

    @router.get("/tags")
    async def api_tags(request: Request, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        include_archived = _bool_param(request.query_params, "include_archived", True)
        if isinstance(include_archived, JSONResponse):
            return include_archived
        return JSONResponse([t.to_dict() for t in db.list_tags(include_archived=include_archived)])

    @router.post("/tags")
    async def api_create_tag(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        try:
            tag = await store.mutation("tags.create", {"name": body.get("name"), "color": body.get("color")})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(tag, status_code=201)

    @router.patch("/tag/{tag_id}")
    async def api_update_tag(tag_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        archived = body.get("archived")
        if archived is not None and not isinstance(archived, bool):
            return _error_response("archived must be a boolean", "VALIDATION_ERROR", 400)
        args = {"id": tag_id, "name": body.get("name"), "color": body.get("color"), "archived": archived}
        try:
            tag = await store.mutation("tags.update", args)
        except _HANDLED as exc:
            return _exception_response(exc)
        if archived:
            _session(store.db).forget_if(tag_id)
        return JSONResponse(tag)

    @router.delete("/tag/{tag_id}")
    async def api_delete_tag(tag_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            removed = await store.mutation("tags.remove", {"id": tag_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        _session(store.db).forget_if(tag_id)
        return JSONResponse({"deleted": tag_id, "associations_removed": removed})

    # -- Associations --------------------------------------------------------

    @router.get("/associations")
    async def api_associations(tag: str | None = None, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse(db.list_associations(tag_id=tag))

    @router.get("/item/{item_id}/tags")
    async def api_item_tags(item_id: str, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse([t.to_dict() for t in db.item_tags(item_id)])

    @router.put("/item/{item_id}/tags/{tag_id}")
    async def api_tag_item(item_id: str, tag_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            changed = await store.mutation("tags.tag", {"itemId": item_id, "tagId": tag_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"item_id": item_id, "tag_id": tag_id, "tagged": True, "changed": changed})

    @router.delete("/item/{item_id}/tags/{tag_id}")
    async def api_untag_item(item_id: str, tag_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            changed = await store.mutation("tags.untag", {"itemId": item_id, "tagId": tag_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"item_id": item_id, "tag_id": tag_id, "tagged": False, "changed": changed})

    @router.post("/item/{item_id}/tags/{tag_id}/toggle")
    async def api_toggle_tag(item_id: str, tag_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            tagged = await store.mutation("tags.toggle", {"itemId": item_id, "tagId": tag_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"item_id": item_id, "tag_id": tag_id, "tagged": tagged})

    # -- Active tag selection ------------------------------------------------

    @router.get("/selection")
    async def api_selection(request: Request, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        """Resolve the active tag from ``?campaign=<name>`` then the session fallback."""
        session = _session(db)
        tag_id = resolve_active_tag(
            request.query_params.get(URL_PARAM),
            session.active_tag_id,
            db.list_tags(include_archived=False),
        )
        tag = db.get_tag(tag_id).to_dict() if tag_id is not None else None
        return JSONResponse({"tag_id": tag_id, "tag": tag})

    @router.put("/selection")
    async def api_set_selection(request: Request, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        tag_id = body.get("tag_id")
        if tag_id is not None:
            if not isinstance(tag_id, str):
                return _error_response("tag_id must be a string or null", "VALIDATION_ERROR", 400)
            try:
                db.get_tag(tag_id)
            except _HANDLED as exc:
                return _exception_response(exc)
        _session(db).set_active_tag(tag_id)
        return JSONResponse({"tag_id": tag_id})

    return router
