"""Error envelope and request-parsing helpers shared by the dashboard routers."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from fastapi.responses import JSONResponse
    from starlette.requests import Request

from markops.errors import InvalidInputError, NotFoundError, TransportError, UpstreamError
from markops.types.api import ErrorEnvelope

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")

# Exceptions a route handler converts into the error envelope.
_HANDLED: tuple[type[Exception], ...] = (KeyError, ValueError, UpstreamError, TransportError)

# First match wins, so the markops subclasses come before KeyError/ValueError.
_ERROR_CODES: tuple[tuple[type[Exception], str, int], ...] = (
    (NotFoundError, "NOT_FOUND", 404),
    (InvalidInputError, "VALIDATION_ERROR", 400),
    (UpstreamError, "UPSTREAM_ERROR", 502),
    (TransportError, "TRANSPORT_ERROR", 503),
    (KeyError, "NOT_FOUND", 404),
    (ValueError, "VALIDATION_ERROR", 400),
)


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """``{"error": {"message", "code", "details"}}`` with *status_code*."""
    from fastapi.responses import JSONResponse

    logger.warning("API error [%s] %s: %s", status_code, code, message, extra={"error": code})
    body: ErrorEnvelope = {"error": {"message": message, "code": code, "details": details or {}}}
    return JSONResponse(body, status_code=status_code)


def _exception_response(exc: Exception) -> JSONResponse:
    """Map a store or parsing-bridge exception onto the error envelope."""
    for exc_type, code, status in _ERROR_CODES:
        if not isinstance(exc, exc_type):
            continue
        details: dict[str, Any] = {}
        if isinstance(exc, NotFoundError):
            details = {"kind": exc.kind, "id": exc.ident}
        elif isinstance(exc, UpstreamError) and exc.detail:
            details = {"detail": exc.detail}
        message = str(exc.args[0]) if exc.args else type(exc).__name__
        return _error_response(message, code, status, details)
    raise exc


async def _parse_json_body(request: Request) -> dict[str, Any] | JSONResponse:
    """The request body as a JSON object, or a 400 envelope."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)
    if not isinstance(body, dict):
        return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
    return body


def _int_param(params: Mapping[str, str], name: str, default: int, *, minimum: int = 0) -> int | JSONResponse:
    raw = params.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return _error_response(f"{name} must be an integer, got {raw!r}", "VALIDATION_ERROR", 400, {"param": name})
    if value < minimum:
        return _error_response(f"{name} must be >= {minimum}, got {value}", "VALIDATION_ERROR", 400, {"param": name})
    return value


def _bool_param(params: Mapping[str, str], name: str, default: bool) -> bool | JSONResponse:
    """Query flag accepting true/false, 1/0, yes/no, on/off; *default* when absent."""
    raw = params.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    return _error_response(f"{name} must be a boolean, got {raw!r}", "VALIDATION_ERROR", 400, {"param": name})
