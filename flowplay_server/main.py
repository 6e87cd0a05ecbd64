# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""FlowPlay Server - Main FastAPI application."""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from flowplay_server.api.schemas import HealthResponse
from flowplay_server.config import Settings, get_settings
from flowplay_server.database import Database
from flowplay_server.errors import setup_exception_handlers
from flowplay_server.rate_limit import RateLimiter
from flowplay_server.routers import auth, playlists, streaming, tracks, users
from flowplay_server.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _get_cors_origins(settings: Settings) -> list[str]:
    raw = (settings.cors_origins or "*").strip()
    if raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application. The database and storage handles live on app.state."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    database = Database(settings.database_url)
    storage = LocalObjectStorage(settings.storage_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        await database.init_models()
        logger.info("FlowPlay Server %s started (uploads: %s)", VERSION, settings.upload_storage)
        yield
        await database.dispose()

    app = FastAPI(
        title="FlowPlay Server",
        description="Music upload, discovery and streaming API",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings
    app.state.db = database
    app.state.storage = storage
    app.state.rate_limiter = RateLimiter()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_get_cors_origins(settings),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Range"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log method, path, status, and duration for each request (no body or auth headers)."""
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
        return response

    setup_exception_handlers(app)

    app.include_router(auth.router, prefix="/api")
    app.include_router(users.router, prefix="/api")
    app.include_router(tracks.router, prefix="/api")
    app.include_router(streaming.router, prefix="/api")
    app.include_router(playlists.router, prefix="/api")

    @app.get("/")
    async def root():
        """API info."""
        return {
            "name": "FlowPlay Server",
            "version": VERSION,
            "api": "/api",
            "docs": "/api/docs",
        }

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check reporting database and storage connectivity."""
        db_ok = await database.ping()
        storage_ok = await storage.ping()
        return HealthResponse(
            status="ok" if db_ok and storage_ok else "degraded",
            database="connected" if db_ok else "error",
            storage="ok" if storage_ok else "error",
            version=VERSION,
        )

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
