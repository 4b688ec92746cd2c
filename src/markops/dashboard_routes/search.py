"""Search, document parsing and reactive query/mutation route handlers."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

from starlette.requests import Request

if TYPE_CHECKING:
    from fastapi import APIRouter

from markops.core import MarkopsDB
from markops.dashboard_routes.common import (
    _HANDLED,
    _bool_param,
    _error_response,
    _exception_response,
    _int_param,
    _parse_json_body,
)
from markops.parsing import DocumentParser
from markops.reactive import SKIP, ReactiveStore

logger = logging.getLogger(__name__)


def _build_parser(db: MarkopsDB) -> DocumentParser:
    """Parser configured from the project the dashboard is serving."""
    return DocumentParser.from_config(db.db_path.parent)


def _parse_args_param(raw: str | None) -> dict[str, Any] | str | None:
    """Decode ``?args=`` (JSON object or the literal ``skip``); None when malformed."""
    if raw is None or raw == "":
        return {}
    if raw == "skip":
        return "skip"
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def create_router() -> APIRouter:
    """Build the APIRouter for search, parse and the reactive endpoints."""
    from fastapi import APIRouter, Depends
    from fastapi.responses import JSONResponse, StreamingResponse
    from starlette.concurrency import run_in_threadpool

    from markops.dashboard import _get_db, _get_store

    router = APIRouter()

    @router.get("/search")
    async def api_search(q: str = "", partition: str = "marketing", db: MarkopsDB = Depends(_get_db)) -> JSONResponse:
        """Global search over cards and docs, capped per collection."""
        try:
            result = db.search(q, partition)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse(result, headers={"Cache-Control": "no-cache"})

    @router.post("/parse")
    async def api_parse(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        """Extract tasks from a document; with ``create`` set, append them to a lane."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        content = body.get("content")
        if not isinstance(content, str):
            return _error_response("content must be a string", "VALIDATION_ERROR", 400)
        create = body.get("create", False)
        if not isinstance(create, bool):
            return _error_response("create must be a boolean", "VALIDATION_ERROR", 400)
        try:
            parser = _build_parser(store.db)
            records = await run_in_threadpool(parser.parse, content)
            payloads = [r.to_payload() for r in records]
            if not create:
                return JSONResponse({"records": payloads, "created": []})
            created = await store.mutation(
                "items.bulkCreate",
                {
                    "collection": body.get("collection", "cards"),
                    "lane": body.get("lane", "inbox"),
                    "partition": body.get("partition", "marketing"),
                    "records": payloads,
                },
            )
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"records": payloads, "created": created}, status_code=201)

    # -- Reactive store ------------------------------------------------------

    @router.get("/query/{name}")
    async def api_query(name: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        """One-shot evaluation of a named query."""
        args = _parse_args_param(request.query_params.get("args"))
        if args is None:
            return _error_response("args must be a JSON object or 'skip'", "VALIDATION_ERROR", 400)
        if args == "skip":
            if name not in store.queries:
                return _error_response(f"query not found: {name}", "NOT_FOUND", 404)
            return JSONResponse({"value": None, "skipped": True})
        try:
            value = store.fetch(name, args)  # type: ignore[arg-type]
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"value": value, "skipped": False})

    @router.post("/mutation/{name}")
    async def api_mutation(name: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        """Run a named mutation; the JSON body is its argument object."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        try:
            value = await store.mutation(name, body)
        except _HANDLED as exc:
            return _exception_response(exc)
        return JSONResponse({"value": value})

    @router.get("/subscribe/{name}", response_model=None)
    async def api_subscribe(name: str, request: Request, store: ReactiveStore = Depends(_get_store)) -> Any:
        """Server-sent events: the initial value, then one event per change.

        ``?limit=N`` ends the stream after N events (0 streams until disconnect).
        A skipped query sends a single null event and ends.
        """
        params = request.query_params
        args = _parse_args_param(params.get("args"))
        if args is None:
            return _error_response("args must be a JSON object or 'skip'", "VALIDATION_ERROR", 400)
        limit = _int_param(params, "limit", 0)
        if isinstance(limit, JSONResponse):
            return limit
        try:
            sub = store.query(name, SKIP if args == "skip" else args)  # type: ignore[arg-type]
        except _HANDLED as exc:
            return _exception_response(exc)

        async def _events() -> AsyncIterator[str]:
            if sub.skipped:
                sub.close()
                yield "data: null\n\n"
                return
            sent = 0
            try:
                async for value in sub.updates():
                    yield f"data: {json.dumps(value)}\n\n"
                    sent += 1
                    if limit and sent >= limit:
                        break
            finally:
                sub.close()

        return StreamingResponse(_events(), media_type="text/event-stream", headers={"Cache-Control": "no-cache"})

    @router.get("/registry")
    async def api_registry(request: Request, store: ReactiveStore = Depends(_get_store)) -> JSONResponse:
        """Names of the registered queries and mutations."""
        include_mutations = _bool_param(request.query_params, "mutations", True)
        if isinstance(include_mutations, JSONResponse):
            return include_mutations
        result: dict[str, list[str]] = {"queries": sorted(store.queries)}
        if include_mutations:
            result["mutations"] = sorted(store.mutations)
        return JSONResponse(result)

    return router
