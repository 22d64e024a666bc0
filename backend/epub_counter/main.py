"""ASGI entry-point for the FastAPI application.

This module
1. instantiates the :class:`fastapi.FastAPI` application;
2. creates the process-wide :class:`JobQueue` and stores it on ``app.state``
   so route handlers receive it through a dependency;
3. wires the API routers located in ``epub_counter.api`` under ``/api``;
4. registers global exception handlers and middleware; and
5. performs a few start-up sanity checks (log and results directories
   writable) and stops the scheduler on shutdown.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Internal utilities
from epub_counter.config import settings
from epub_counter.logging_config import LOG_DIR as APP_LOG_DIR
from epub_counter.logging_config import setup_logging
from epub_counter.utils.storage import ensure_dir_exists
from epub_counter.workers.job_queue import JobQueue

from epub_counter.api import api_router
from epub_counter.api.errors import ApiError, error_response


# ---------------------------------------------------------------------------
# Logging must be configured as soon as possible so that any errors during
# import/start-up are captured.
# ---------------------------------------------------------------------------
setup_logging()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(job_queue: JobQueue | None = None) -> FastAPI:  # noqa: D401 – factory nomenclature is fine
    """Wire and return the FastAPI application instance.

    Tests pass their own *job_queue* (fake tokenizers, temporary output
    directory); the server uses one writing to ``settings.RESULTS_DIR``.
    """

    app = FastAPI(
        title="EPUB Counter API",
        version="0.1.0",
        docs_url="/api/docs",
    )
    app.state.job_queue = job_queue if job_queue is not None else JobQueue()

    # ------------------------------------------------------------------
    # Start-up / shutdown
    # ------------------------------------------------------------------

    @app.on_event("startup")
    async def _startup_checks() -> None:  # noqa: D401
        logger.info("Running start-up checks …")

        for path in (APP_LOG_DIR, app.state.job_queue.output_dir):
            try:
                ensure_dir_exists(Path(path))
            except OSError as exc:
                logger.critical("Cannot create/access directory %s – %s", path, exc)
            else:
                writable = os.access(str(path), os.W_OK)
                logger.info("Directory %s is %swritable", path, "" if writable else "NOT ")

        logger.info("Relative request paths resolve against %s", settings.WORKSPACE_ROOT)
        logger.info("Start-up checks finished.")

    @app.on_event("shutdown")
    async def _stop_scheduler() -> None:  # noqa: D401
        await app.state.job_queue.shutdown()

    # ------------------------------------------------------------------
    # Exception handlers
    # ------------------------------------------------------------------

    @app.exception_handler(ApiError)
    async def _api_error_handler(  # noqa: D401
        _request: Request,
        exc: ApiError,
    ) -> JSONResponse:  # type: ignore[valid-type]
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("API error %s %s: %s", exc.status_code, exc.code, exc.message)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(  # noqa: D401
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:  # type: ignore[valid-type]
        logger.error("Request validation error: %s", exc.errors())
        return JSONResponse(status_code=422, content={"detail": exc.errors()})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(  # noqa: D401
        _request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:  # type: ignore[valid-type]
        logger.error("HTTP exception %s: %s", exc.status_code, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    @app.exception_handler(Exception)
    async def _generic_error_handler(  # noqa: D401
        _request: Request,
        exc: Exception,
    ) -> JSONResponse:  # type: ignore[valid-type]
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_ERROR", "message": "Internal Server Error"}},
        )

    # ------------------------------------------------------------------
    # Middleware
    # ------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------
    # Routers
    # ------------------------------------------------------------------

    app.include_router(api_router, prefix="/api")

    # ------------------------------------------------------------------
    # Miscellaneous endpoints
    # ------------------------------------------------------------------

    @app.get("/api/health")
    async def _health() -> dict[str, str]:  # noqa: D401
        return {"status": "ok"}

    return app


# Instantiate at import time so `uvicorn epub_counter.main:app` works.
app: FastAPI = create_app()


def run() -> None:
    """Console-script entry point: serve the API with uvicorn."""
    uvicorn.run("epub_counter.main:app", host=settings.SERVER_HOST, port=settings.SERVER_PORT)
