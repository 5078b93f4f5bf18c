"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection (shared across all
requests via ``request.app.state.db``), initialises the schema and, unless
``settings.refetch_enabled`` is off, starts the
:class:`~content_fetcher.services.reconciler.RefetchScheduler`.  On shutdown
it stops the scheduler and closes the connection.

Routers
-------
    /urls      — store a batch of URLs, list stored URLs
    /health    — liveness probe
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from content_fetcher.config import settings
from content_fetcher.db import get_connection, init_db
from content_fetcher.logging_setup import configure_logging
from content_fetcher.services.reconciler import RefetchScheduler

from content_fetcher.api.routers import urls as urls_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB and start the refetch scheduler; undo both on shutdown."""
    configure_logging(settings.log_level)
    conn = get_connection()
    init_db(conn)
    app.state.db = conn

    scheduler = None
    if settings.refetch_enabled:
        scheduler = RefetchScheduler(get_connection)
        scheduler.start()
    app.state.scheduler = scheduler

    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="URL Content Fetcher API",
        description=(
            "Fetches content from a list of URLs, stores it, and keeps it "
            "fresh by periodically refetching stale entries."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(urls_router.router, prefix="/urls", tags=["urls"])

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


# Module-level instance used by uvicorn:
#   uvicorn content_fetcher.api.app:app --reload
app = create_app()
