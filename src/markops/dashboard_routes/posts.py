"""Content calendar route handlers: scheduled range, backlog, schedule/unschedule."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter

from markops.core import MarkopsDB
from markops.dashboard_routes.common import (
    _HANDLED,
    _error_response,
    _exception_response,
    _int_param,
    _parse_json_body,
)
from markops.reactive import ReactiveStore


def create_router() -> APIRouter:
    """Build the APIRouter for the posts calendar."""
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse

    from markops.dashboard import _get_db, _get_store

    router = APIRouter()

    @router.get("/posts/calendar")
    async def api_calendar(request: Request, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        """Posts scheduled in [start, end) epoch milliseconds, earliest first."""
        params = request.query_params
        bounds: list[int] = []
        for name in ("start", "end"):
            if not params.get(name):
                return _error_response(f"{name} is required", "VALIDATION_ERROR", 400, {"param": name})
            value = _int_param(params, name, 0)
            if isinstance(value, JSONResponse):
                return value
            bounds.append(value)
        try:
            posts = db.scheduled_posts(params.get("board", "marketing"), bounds[0], bounds[1])
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse([p.to_dict() for p in posts])

    @router.get("/posts/backlog")
    async def api_backlog(board: str = "marketing", db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        try:
            posts = db.backlog_posts(board)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse([p.to_dict() for p in posts])

    @router.post("/post/{post_id}/schedule")
    async def api_schedule(post_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        when = body.get("scheduled_at")
        if isinstance(when, bool) or not isinstance(when, int):
            return _error_response("scheduled_at must be epoch milliseconds", "VALIDATION_ERROR", 400)
        try:
            post = await store.mutation("posts.schedule", {"id": post_id, "scheduledAt": when})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(post)

    @router.post("/post/{post_id}/unschedule")
    async def api_unschedule(post_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            post = await store.mutation("posts.unschedule", {"id": post_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(post)

    return router
