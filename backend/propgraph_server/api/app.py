"""
FastAPI application factory for the PropGraph gateway.

This module creates the FastAPI app with:
- CORS configuration for the editor frontend
- Local store, primary store and gateway lifecycle (app.state)
- Request logging middleware
- Exception handlers mapping gateway errors to JSON envelopes
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings
from ..errors import EdgeNotFoundError, GatewayError, InvalidTableNameError
from ..gateway import PersistenceGateway
from ..store import LocalStore, RemoteStore, sample_graph
from .routes import health_router, router

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    remote_store: RemoteStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Gateway configuration, loaded from environment if omitted
        remote_store: Primary store adapter, built from settings if omitted
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage store and gateway lifecycle."""
        settings.log_config()

        local_store = LocalStore(settings.db_path, busy_timeout_ms=settings.busy_timeout_ms)
        await local_store.initialize()
        if settings.seed_on_empty and await local_store.is_empty():
            logger.info("Local store is empty, loading sample graph")
            await local_store.reseed(sample_graph())

        remote = remote_store or RemoteStore(settings.databricks)
        app.state.settings = settings
        app.state.gateway = PersistenceGateway(local_store, remote)

        yield

        logger.info("Gateway shutting down")

    app = FastAPI(
        title="PropGraph Gateway",
        description=(
            "Property graph persistence gateway. Reads and writes go to the "
            "Databricks warehouse when the caller is authorized, with a local "
            "SQLite fallback."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = uuid.uuid4().hex[:8]
        started = time.monotonic()
        response = await call_next(request)
        logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": int((time.monotonic() - started) * 1000),
                "request_id": request_id,
            },
        )
        return response

    @app.exception_handler(InvalidTableNameError)
    async def invalid_table_name(request: Request, exc: InvalidTableNameError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": str(exc),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    @app.exception_handler(EdgeNotFoundError)
    async def edge_not_found(request: Request, exc: EdgeNotFoundError):
        return JSONResponse(
            status_code=404,
            content={
                "success": False,
                "message": str(exc),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    @app.exception_handler(GatewayError)
    async def gateway_error(request: Request, exc: GatewayError):
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": exc.message,
                "metadata": exc.metadata.to_dict(),
            },
        )

    app.include_router(router, prefix="/api")
    app.include_router(health_router)

    return app
