"""
ReelStudio HTTP API

FastAPI application factory. The lifespan connects the database, applies the
schema, seeds the model catalog and starts the embedded job worker.

Usage:
    # Start server
    python main.py server

    # Or directly
    python -m uvicorn services.api.app:create_app --factory --port 8000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import Config, get_config
from core.db import apply_schema, create_pool
from services.storage import LocalObjectStore, content_type_for

from .deps import AppServices, build_services
from .routes import ROUTERS

logger = logging.getLogger(__name__)


def _lifespan(config: Config, services: Optional[AppServices]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_pool = None
        if services is None:
            logger.info("Starting ReelStudio API...")
            owned_pool = await create_pool(config)
            await apply_schema(owned_pool)
            app.state.services = build_services(config, owned_pool)
            await app.state.services.catalog.seed_catalog()

        worker = app.state.services.worker
        if worker is not None:
            await worker.start()

        yield

        logger.info("Shutting down ReelStudio API...")
        if worker is not None:
            await worker.stop()
        if owned_pool is not None:
            await app.state.services.media.provider.close()
            await owned_pool.close()

    return lifespan


def create_app(
    services: Optional[AppServices] = None,
    config: Optional[Config] = None,
) -> FastAPI:
    """
    Build the API.

    Args:
        services: Pre-built services (tests). When omitted they are created
            in the lifespan around a fresh connection pool.
        config: Configuration, defaults to the environment
    """
    config = config or (services.config if services else get_config())

    app = FastAPI(
        title="ReelStudio API",
        description="Photo to Instagram Reel generation",
        version="1.0.0",
        lifespan=_lifespan(config, services),
    )
    if services is not None:
        app.state.services = services

    for router in ROUTERS:
        app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
        return JSONResponse(body, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/media/{key:path}")
    async def media(key: str, expires: str = "", signature: str = ""):
        """Serve a locally stored object behind a signed URL."""
        storage = app.state.services.storage
        if not isinstance(storage, LocalObjectStore):
            raise HTTPException(status_code=404, detail="Not found")
        if not storage.verify(key, expires, signature):
            raise HTTPException(status_code=403, detail="Invalid or expired link")
        try:
            path = storage.path_for(key)
        except ValueError:
            raise HTTPException(status_code=404, detail="Not found") from None
        if not path.is_file():
            raise HTTPException(status_code=404, detail="Not found")
        return FileResponse(path, media_type=content_type_for(key))

    return app
