"""Local web dashboard for markops: JSON API over the board, tags and docs.

A module-level ``_db`` is set at startup (or by test fixtures) and injected
via ``Depends(_get_db)``. Writes go through a ``ReactiveStore`` wrapping the
same connection so live subscriptions see every change.

Usage:
    markops dashboard                    # Opens browser at localhost:8390
    markops dashboard --port 9000        # Custom port
    markops dashboard --no-browser       # Skip auto-open
"""

from __future__ import annotations

import logging
import webbrowser
from typing import Any

from markops.core import DB_FILENAME, MarkopsDB, find_markops_root, read_config
from markops.reactive import ReactiveStore

DEFAULT_PORT = 8390

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level state, set by main() or test fixtures
# ---------------------------------------------------------------------------

_db: MarkopsDB | None = None
_store: ReactiveStore | None = None


def _get_db() -> MarkopsDB:
    """Return the active database connection."""
    from fastapi import HTTPException

    if _db is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return _db


def _get_store() -> ReactiveStore:
    """Return the reactive store bound to the current ``_db``, creating it on first use."""
    global _store

    db = _get_db()
    if _store is None or _store.db is not db:
        if _store is not None:
            _store.close()
        _store = ReactiveStore(db)
    return _store


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app() -> Any:
    """Create the FastAPI application with all dashboard endpoints."""
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse

    from markops.dashboard_routes import docs, items, pipelines, posts, search, tags

    app = FastAPI(title="markops dashboard", docs_url=None, redoc_url=None)

    for module in (items, posts, pipelines, tags, docs, search):
        app.include_router(module.create_router(), prefix="/api")

    @app.get("/api/health")
    async def api_health() -> JSONResponse:
        prefix = _db.prefix if _db is not None else ""
        return JSONResponse({"status": "ok", "prefix": prefix})

    @app.get("/")
    async def index() -> JSONResponse:
        """Route index; the browser lands here on startup."""
        paths = sorted({p for p in (getattr(route, "path", "") for route in app.routes) if p.startswith("/api")})
        return JSONResponse({"name": "markops", "endpoints": paths})

    return app


def main(port: int = DEFAULT_PORT, *, no_browser: bool = False) -> None:
    """Start the dashboard server for the project in the current directory."""
    import threading

    import uvicorn

    from markops.logging import setup_logging

    global _db

    markops_dir = find_markops_root()
    setup_logging(markops_dir)
    config = read_config(markops_dir)
    _db = MarkopsDB(
        markops_dir / DB_FILENAME,
        prefix=config.get("prefix", "mk"),
        check_same_thread=False,
    )
    _db.initialize()

    app = create_app()

    if not no_browser:
        threading.Timer(0.5, lambda: webbrowser.open(f"http://localhost:{port}")).start()

    logger.info("Dashboard starting on port %d for %s", port, markops_dir)
    print(f"markops dashboard: http://localhost:{port}")
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
