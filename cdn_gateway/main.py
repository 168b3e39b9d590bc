# cdn_gateway/main.py
from __future__ import annotations

"""
# CDN Gateway — Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the edge content gateway.

## Design
- Deterministic, testable **app factory** (`create_app`) with explicit lifespan.
- Collaborators (object store, edge cache) are built from settings, or
  injected by the caller (tests, embedding).
- One catch-all route: every method and path goes to the `RequestDispatcher`,
  which owns routing, so the framework never answers with its own 404/405.
- Centralized exception handlers render the gateway's `{error, code}` body
  for anything raised outside the dispatcher.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from cdn_gateway.cache.edge import EdgeCache, InMemoryEdgeCache, NullEdgeCache
from cdn_gateway.cache.redis_edge import RedisEdgeCache
from cdn_gateway.core import config
from cdn_gateway.core.config import Settings
from cdn_gateway.core.exception_handlers import (
    gateway_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from cdn_gateway.core.exceptions import GatewayException
from cdn_gateway.core.logger import configure_logging
from cdn_gateway.core.redis_client import RedisClient
from cdn_gateway.gateway.dispatcher import RequestDispatcher
from cdn_gateway.gateway.request import GatewayRequest
from cdn_gateway.middleware.request_id import RequestIDMiddleware
from cdn_gateway.services.secret_registry import SecretRegistry
from cdn_gateway.storage.base import ObjectStore
from cdn_gateway.storage.memory import InMemoryObjectStore
from cdn_gateway.storage.s3 import S3ObjectStore

logger = logging.getLogger("cdn_gateway")

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


# ─────────────────────────────────────────────────────────────────────────────
# 🧱 Collaborator factories
# ─────────────────────────────────────────────────────────────────────────────
def build_store(settings: Settings) -> ObjectStore:
    if settings.STORAGE_BACKEND == "s3":
        return S3ObjectStore(
            settings.S3_BUCKET or "",
            region_name=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        )
    return InMemoryObjectStore()


def build_edge_cache(settings: Settings) -> Tuple[EdgeCache, Optional[RedisClient]]:
    """Return the edge cache and, for Redis, the client the lifespan must connect."""
    if settings.EDGE_CACHE_BACKEND == "redis":
        client = RedisClient(settings.REDIS_URL)
        return RedisEdgeCache(client, namespace=settings.EDGE_CACHE_NAMESPACE), client
    if settings.EDGE_CACHE_BACKEND == "none":
        return NullEdgeCache(), None
    return InMemoryEdgeCache(maxsize=settings.EDGE_CACHE_MAX_ENTRIES), None


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[ObjectStore] = None,
    edge_cache: Optional[EdgeCache] = None,
) -> FastAPI:
    """
    Build and configure the FastAPI app instance.

    Args:
        settings: configuration; defaults to the process-wide `settings`.
        store: object store override (otherwise built from settings).
        edge_cache: edge cache override (otherwise built from settings).

    Raises:
        ConfigError: `UPLOAD_SECRETS` is not a JSON object.
    """
    configure_logging()
    settings = settings or config.settings

    registry = SecretRegistry.from_json(settings.upload_secrets_json)
    redis_client: Optional[RedisClient] = None
    if store is None:
        store = build_store(settings)
    if edge_cache is None:
        edge_cache, redis_client = build_edge_cache(settings)

    dispatcher = RequestDispatcher(
        settings=settings,
        registry=registry,
        store=store,
        edge_cache=edge_cache,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Startup:
            - Connect Redis when the edge cache uses it (fatal on failure).
        Shutdown:
            - Close the edge cache and the object store.
        """
        logger.info("✅ %s %s starting up (env=%s)", settings.SERVICE_NAME, settings.VERSION, settings.ENV)
        if redis_client is not None:
            await redis_client.connect()
        try:
            yield
        finally:
            await dispatcher.edge_cache.close()
            await dispatcher.store.close()
            logger.info("🛑 %s shutting down", settings.SERVICE_NAME)

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.dispatcher = dispatcher

    # ── Middlewares ─────────────────────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)

    # ── Exception handlers ──────────────────────────────────────────────────
    app.add_exception_handler(GatewayException, gateway_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)  # type: ignore[arg-type]

    # ── Catch-all route ─────────────────────────────────────────────────────
    @app.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def gateway(request: Request) -> Response:
        return await dispatcher.dispatch(GatewayRequest.from_starlette(request))

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()


def run() -> None:
    """Local runner (prefer: `uvicorn cdn_gateway.main:app --reload`)."""
    import uvicorn

    uvicorn.run(
        "cdn_gateway.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "0") == "1",
        workers=int(os.getenv("WORKERS", "1")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


__all__ = ["app", "build_edge_cache", "build_store", "create_app", "run"]


if __name__ == "__main__":
    run()
