"""FastAPI application factory.

Lifespan
--------
On startup the app configures logging, builds one :class:`ReaderServices`
(shared by every request via ``request.app.state.services``) and starts the
background cache sweeper.  On shutdown it stops the sweeper.

Routers
-------
    /api/resolve  — wrapper link → publisher URL
    /api/extract  — URL → readable article
    /health       — liveness plus cache sizes
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from newsreader import __version__
from newsreader.api.routers import extract as extract_router
from newsreader.api.routers import resolve as resolve_router
from newsreader.config import Settings
from newsreader.config import settings as default_settings
from newsreader.logging_setup import configure_logging
from newsreader.services import ReaderServices, build_services


def create_app(
    settings: Settings | None = None, services: ReaderServices | None = None
) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    Args:
        settings: Configuration; defaults to the module-level singleton.
        services: Pre-built services (tests inject fakes here).
    """
    settings = settings or (services.settings if services else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level, settings.environment)
        app.state.services = services or build_services(settings)
        app.state.services.sweeper.start()
        try:
            yield
        finally:
            app.state.services.sweeper.stop()

    app = FastAPI(
        title="News Reader API",
        description=(
            "Resolves news-aggregator wrapper links to publisher URLs and "
            "extracts readable article content with a strict quality gate."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(resolve_router.router, prefix="/api/resolve", tags=["resolve"])
    app.include_router(extract_router.router, prefix="/api/extract", tags=["extract"])

    @app.get("/health", tags=["health"])
    def health(request: Request) -> dict[str, Any]:
        return {"status": "ok", "cache": request.app.state.services.cache.stats()}

    return app


# Module-level instance used by uvicorn:
#   uvicorn newsreader.api.app:app --reload
app = create_app()
