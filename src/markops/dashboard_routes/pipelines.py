"""Pipeline run route handlers."""

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


def create_router() -> APIRouter:
    """Build the APIRouter for pipeline runs and their stages."""
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse

    from markops.dashboard import _get_db, _get_store

    router = APIRouter()

    @router.get("/pipelines")
    async def api_pipelines(db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse([p.to_dict() for p in db.list_pipelines()])

    @router.get("/pipeline/{pipeline_id}")
    async def api_pipeline(pipeline_id: str, db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        """A run with the pipeline cards filed under it, grouped by lane."""
        try:
            pipeline = db.get_pipeline(pipeline_id)
        except _HANDLED as exc:
            return _exception_response(exc)
        result: dict[str, Any] = dict(pipeline.to_dict())
        result["lanes"] = {
            lane: [i.to_dict() for i in db.list_by_lane("pipeline_cards", lane, partition=pipeline_id)]
            for lane in db.lanes("pipeline_cards", partition=pipeline_id)
        }
        return JSONResponse(result)

    @router.post("/pipelines")
    async def api_create_pipeline(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        name = body.get("name")
        input_url = body.get("input_url", "")
        if not isinstance(name, str) or not isinstance(input_url, str):
            return _error_response("name and input_url must be strings", "VALIDATION_ERROR", 400)
        try:
            pipeline = await store.mutation("pipelines.create", {"name": name, "inputUrl": input_url})
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(pipeline, status_code=201)

    @router.post("/pipeline/{pipeline_id}/stage")
    async def api_update_stage(pipeline_id: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        stage = body.get("stage")
        status = body.get("status")
        doc_path = body.get("doc_path")
        if isinstance(stage, bool) or not isinstance(stage, int):
            return _error_response("stage must be an integer", "VALIDATION_ERROR", 400)
        if not isinstance(status, str):
            return _error_response("status is required", "VALIDATION_ERROR", 400)
        if doc_path is not None and not isinstance(doc_path, str):
            return _error_response("doc_path must be a string", "VALIDATION_ERROR", 400)
        args = {"id": pipeline_id, "stage": stage, "status": status, "docPath": doc_path}
        try:
            pipeline = await store.mutation("pipelines.updateStage", args)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(pipeline)

    @router.delete("/pipeline/{pipeline_id}")
    async def api_remove_pipeline(pipeline_id: str, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        try:
            cards = await store.mutation("pipelines.remove", {"id": pipeline_id})
        except _HANDLED as exc:
            return _exception_response(exc)
        logger.info("Pipeline %s removed via dashboard", pipeline_id)
        return JSONResponse({"removed": pipeline_id, "cards": cards})

    return router
