# src/lurk/main.py
"""Main entry point for the Lurk application."""

from __future__ import annotations

import logging
import random

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from lurk.api.v1 import (
    realtime_router,
    reports_router,
    system_router,
    threads_router,
)
from lurk.core.expiry import Clock, utcnow
from lurk.core.settings import Settings
from lurk.core.settings import settings as default_settings
from lurk.services import build_board

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(
    app_settings: Settings | None = None,
    clock: Clock = utcnow,
    rng: random.Random | None = None,
) -> FastAPI:
    """Build a Lurk application with its own set of in-memory services.

    Args:
        app_settings: Configuration; the environment-derived settings if omitted.
        clock: Time source shared by every service.
        rng: Random source for anonymous names.

    Returns:
        Configured FastAPI application.
    """
    app_settings = app_settings or default_settings
    board = build_board(app_settings, clock=clock, rng=rng)

    app = FastAPI(
        title=app_settings.app_name,
        description="Ephemeral anonymous image-board with live chat",
        version=app_settings.app_version,
    )
    app.state.board = board

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=app_settings.cors_allow_methods,
        allow_headers=app_settings.cors_allow_headers,
    )

    # Add GZip middleware for compression
    app.add_middleware(GZipMiddleware)

    app.include_router(threads_router)
    app.include_router(reports_router)
    app.include_router(realtime_router)
    app.include_router(system_router)

    app.mount(
        app_settings.upload_url_prefix,
        StaticFiles(directory=app_settings.upload_dir, check_dir=False),
        name="uploads",
    )

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.on_event("startup")
    async def on_startup() -> None:
        configure_logging(app_settings.log_level)
        board.uploads.ensure_directory()
        await board.scheduler.start()
        logger.info(
            "%s started (thread TTL %ss, purge every %ss)",
            app_settings.app_name,
            app_settings.thread_ttl_seconds,
            app_settings.purge_interval_seconds,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await board.scheduler.stop()
        await board.uploads.wait_pending()
        await board.reports.wait_pending()

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic information about the API."""
        return {
            "name": app_settings.app_name,
            "version": app_settings.app_version,
            "description": "Ephemeral anonymous image-board with live chat",
            "docs": "/docs",
        }

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("lurk.main:app", host="0.0.0.0", port=8080, reload=default_settings.debug)
