"""
FastAPI application factory.

Assembles the app, registers the router, the storage-failure handler
and the request logger, and wires up lifecycle events.  Database schema
is managed by Alembic — NOT create_all.
"""

import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from device_auth.controllers.auth_controller import router as auth_router
from device_auth.core.config import get_settings
from device_auth.core.database import engine
from device_auth.models import Base  # noqa: F401 — ensures all models are registered

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)
access_logger = logging.getLogger("device_auth.access")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ── Register routers ─────────────────────────────────────────────
    app.include_router(auth_router, prefix=settings.API_PREFIX)

    # ── Storage failures ─────────────────────────────────────────────
    @app.exception_handler(SQLAlchemyError)
    async def handle_storage_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Unclassified server fault: log it, tell the caller nothing."""
        logger.exception(
            "Storage failure on %s %s", request.method, request.url.path, exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Request log ──────────────────────────────────────────────────
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        access_logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    # ── Startup / Shutdown ───────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup() -> None:
        """NOTE: Run `alembic upgrade head` before starting the app."""
        logger.info("%s started (API prefix %s)", settings.APP_NAME, settings.API_PREFIX)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await engine.dispose()
        logger.info("Database engine disposed.")

    # ── Health check ─────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
