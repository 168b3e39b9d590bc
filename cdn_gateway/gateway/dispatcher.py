# cdn_gateway/gateway/dispatcher.py
from __future__ import annotations

"""
CDN Gateway — Request dispatcher
================================
Single entry point for every inbound request. Routes to preflight, upload,
health or read handling and turns every failure into the canonical
`{"error", "code"}` JSON body.

Routing (first match wins)
--------------------------
1) `OPTIONS`                 → CORS preflight (204)
2) `POST /upload/<key>`      → authorized write
3) any other non-GET/HEAD    → 405 + `Allow`
4) `/health`, `/`            → liveness JSON
5) everything else           → read `<key>` from edge cache / object store

Read path
---------
origin check → edge-cache lookup (HIT: revalidate + replay) → store `get`
→ size ceiling → revalidation (304) → full response. Successful GETs are
written back to the edge cache from a background task after the response
has been sent; a failing cache never fails the read.

Upload path
-----------
upload-origin check → key validation → bearer token → verify → authorize
→ declared length check → bounded body read → `put` → success JSON.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from starlette.background import BackgroundTask
from starlette.responses import JSONResponse, Response

from cdn_gateway.cache.edge import CachedResponse, EdgeCache, NullEdgeCache
from cdn_gateway.core.config import Settings
from cdn_gateway.core.exceptions import (
    AuthError,
    ErrorCode,
    GatewayException,
    MethodError,
    NotFoundError,
    PathError,
    SizeError,
    StorageError,
)
from cdn_gateway.gateway.request import GatewayRequest
from cdn_gateway.schemas.upload import HealthResponse, UploadData, UploadResponse
from cdn_gateway.services import cache_policy, conditional
from cdn_gateway.services.content_types import resolve_content_type
from cdn_gateway.services.origin_policy import WILDCARD, is_origin_allowed, parse_allowlist
from cdn_gateway.services.resource_keys import validate_resource_key
from cdn_gateway.services.secret_registry import SecretRegistry
from cdn_gateway.services.upload_tokens import authorize_upload, verify_upload_token
from cdn_gateway.storage.base import ObjectStore, StoredObject

logger = logging.getLogger("cdn_gateway.gateway")

T = TypeVar("T")

UPLOAD_PREFIX = "/upload/"
HEALTH_PATHS = frozenset({"/health", "/"})
READ_METHODS = frozenset({"GET", "HEAD"})
ALLOW_HEADER = "GET, HEAD, POST, OPTIONS"
CORS_READ_METHODS = "GET, HEAD, OPTIONS"
CORS_ALLOW_HEADERS = "Authorization, Content-Type, If-None-Match, If-Modified-Since"
CACHE_STATUS_HEADER = "X-Cache-Status"

# Per-request headers; never replayed from the edge cache.
_VOLATILE_HEADERS = frozenset(
    {
        "access-control-allow-origin",
        "access-control-allow-methods",
        "access-control-max-age",
        "vary",
        CACHE_STATUS_HEADER.lower(),
    }
)


def _iso_utc(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def error_response(exc: GatewayException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers)


class RequestDispatcher:
    """
    Routes gateway requests and assembles responses.

    Parameters
    ----------
    settings : Settings
        Allowlists, size ceiling, public URL, timeouts.
    registry : SecretRegistry
        Upload signing secrets (read-only).
    store : ObjectStore
        Durable blob store.
    edge_cache : EdgeCache | None
        Shared response cache; `None` disables caching.
    clock : callable
        Unix-seconds clock used for token expiry and timestamps.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        registry: SecretRegistry,
        store: ObjectStore,
        edge_cache: Optional[EdgeCache] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.store = store
        self.edge_cache: EdgeCache = edge_cache if edge_cache is not None else NullEdgeCache()
        self.clock = clock
        self._read_allowlist = settings.allowed_origins_list
        self._upload_allowlist = (
            parse_allowlist(settings.UPLOAD_ALLOWED_ORIGINS) if settings.UPLOAD_ALLOWED_ORIGINS else None
        )

    # ─────────────────────────────────────────────────────────
    # 🚦 Entry point
    # ─────────────────────────────────────────────────────────
    async def dispatch(self, request: GatewayRequest) -> Response:
        method = request.method
        is_upload = method == "POST" and request.path.startswith(UPLOAD_PREFIX)
        try:
            if method == "OPTIONS":
                return self._preflight(request)
            if is_upload:
                return await self._handle_upload(request)
            if method not in READ_METHODS:
                raise MethodError("Method Not Allowed", headers={"Allow": ALLOW_HEADER})
            if request.path in HEALTH_PATHS:
                return self._health()
            return await self._handle_read(request)
        except GatewayException as exc:
            if is_upload and exc.status_code >= 500 and exc.code is ErrorCode.INTERNAL_ERROR:
                exc.code = ErrorCode.UPLOAD_ERROR
            return error_response(exc)
        except Exception:
            logger.exception("Unhandled error for %s %s", method, request.path)
            if is_upload:
                return error_response(StorageError("Upload failed", code=ErrorCode.UPLOAD_ERROR))
            return error_response(StorageError("Internal Server Error"))

    # ─────────────────────────────────────────────────────────
    # 🌐 Preflight / health
    # ─────────────────────────────────────────────────────────
    def _preflight(self, request: GatewayRequest) -> Response:
        origin = request.origin
        headers = {
            "Access-Control-Allow-Origin": origin or "*",
            "Access-Control-Allow-Methods": ALLOW_HEADER,
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
            "Access-Control-Max-Age": str(self.settings.CORS_MAX_AGE),
        }
        if origin:
            headers["Vary"] = "Origin"
        return Response(status_code=204, headers=headers)

    def _health(self) -> JSONResponse:
        body = HealthResponse(service=self.settings.SERVICE_NAME, timestamp=_iso_utc(self.clock()))
        return JSONResponse(body.model_dump())

    # ─────────────────────────────────────────────────────────
    # ⬆️ Upload
    # ─────────────────────────────────────────────────────────
    async def _handle_upload(self, request: GatewayRequest) -> JSONResponse:
        if self._upload_allowlist is not None and not is_origin_allowed(
            request.origin, request.referer, self._upload_allowlist, self.settings.ORIGIN_MATCH_MODE
        ):
            logger.warning("Upload rejected: origin not allowed (origin=%s)", request.origin)
            raise AuthError("Forbidden: Invalid origin", code=ErrorCode.FORBIDDEN, status_code=403)

        key = validate_resource_key(request.path[len(UPLOAD_PREFIX):])

        token = request.bearer_token()
        if not token:
            raise AuthError("Missing or invalid Authorization header", headers={"WWW-Authenticate": "Bearer"})

        claims = verify_upload_token(token, self.registry, now=self.clock())
        max_size = authorize_upload(claims, key, self.settings.MAX_FILE_SIZE)

        declared = request.content_length()
        if max_size is not None and declared is not None and declared > max_size:
            raise SizeError(f"File exceeds maximum size of {max_size} bytes")

        data = await request.read_body(limit=max_size)
        content_type = resolve_content_type(key)
        meta = await self._bounded(self.store.put(key, data, content_type), "put")

        base = self.settings.PUBLIC_BASE_URL or request.base_url
        payload = UploadResponse(
            data=UploadData(
                key=key,
                size=meta.size,
                content_type=content_type,
                url=f"{base}/{key}",
                timestamp=_iso_utc(self.clock()),
                app=claims.app_name,
            )
        )
        logger.info("Upload stored app=%s key=%s size=%d", claims.app_name, key, meta.size)
        return JSONResponse(payload.model_dump(by_alias=True))

    # ─────────────────────────────────────────────────────────
    # ⬇️ Read
    # ─────────────────────────────────────────────────────────
    async def _handle_read(self, request: GatewayRequest) -> Response:
        key = request.path[1:] if request.path.startswith("/") else request.path
        if not key:
            raise PathError("No file path provided", code=ErrorCode.BAD_REQUEST)

        if not is_origin_allowed(
            request.origin, request.referer, self._read_allowlist, self.settings.ORIGIN_MATCH_MODE
        ):
            logger.warning("Read rejected: origin not allowed (origin=%s referer=%s)", request.origin, request.referer)
            raise AuthError("Forbidden: Invalid origin", code=ErrorCode.FORBIDDEN, status_code=403)

        cache_key = request.url
        cached = await self._cache_lookup(cache_key)
        if cached is not None:
            logger.info("Cache HIT for: %s", key)
            return self._replay(request, key, cached)
        logger.info("Cache MISS for: %s", key)

        obj = await self._bounded(self.store.get(key), "get")
        if obj is None:
            raise NotFoundError("Not Found")

        limit = self.settings.MAX_FILE_SIZE
        if limit is not None and obj.meta.size > limit:
            raise SizeError("File Too Large")

        policy = cache_policy.classify(key)
        meta = obj.meta
        outcome = conditional.evaluate(
            meta.etag,
            meta.last_modified,
            request.header("if-none-match"),
            request.header("if-modified-since"),
        )
        if outcome.not_modified:
            headers = {"Cache-Control": policy.cache_control, "Last-Modified": conditional.format_http_date(meta.last_modified)}
            if outcome is conditional.Revalidation.NOT_MODIFIED_ETAG and meta.etag:
                headers = {"ETag": meta.etag, **headers}
            headers[CACHE_STATUS_HEADER] = "MISS"
            return Response(status_code=304, headers=headers)

        base_headers = self._object_headers(key, obj, policy)
        headers = {**base_headers, **self._cors_headers(request), CACHE_STATUS_HEADER: "MISS"}

        if request.method == "HEAD":
            return Response(status_code=200, headers=headers)

        entry = CachedResponse(
            status=200,
            headers=tuple(base_headers.items()),
            body=obj.body,
            ttl_seconds=policy.ttl_seconds,
        )
        return Response(
            content=obj.body,
            status_code=200,
            headers=headers,
            background=BackgroundTask(self._populate_cache, cache_key, entry),
        )

    def _object_headers(self, key: str, obj: StoredObject, policy: cache_policy.CachePolicy) -> Dict[str, str]:
        meta = obj.meta
        headers = {
            "Content-Type": meta.content_type or resolve_content_type(key),
            "Cache-Control": policy.cache_control,
        }
        if policy.edge_cache_control:
            headers["CDN-Cache-Control"] = policy.edge_cache_control
        if meta.etag:
            headers["ETag"] = meta.etag
        headers["Content-Length"] = str(meta.size)
        headers["Last-Modified"] = conditional.format_http_date(meta.last_modified)
        headers["X-Content-Type-Options"] = "nosniff"
        if policy.tier is cache_policy.CacheTier.DOWNLOAD:
            filename = key.rsplit("/", 1)[-1]
            headers["Content-Disposition"] = f'attachment; filename="{filename}"'
        return headers

    def _cors_headers(self, request: GatewayRequest) -> Dict[str, str]:
        origin = request.origin
        if not origin:
            return {}
        wildcard = WILDCARD in self._read_allowlist
        headers = {
            "Access-Control-Allow-Origin": "*" if wildcard else origin,
            "Access-Control-Allow-Methods": CORS_READ_METHODS,
            "Access-Control-Max-Age": str(self.settings.CORS_MAX_AGE),
        }
        if not wildcard:
            headers["Vary"] = "Origin"
        return headers

    def _replay(self, request: GatewayRequest, key: str, cached: CachedResponse) -> Response:
        """Serve an edge-cache hit, revalidating against the cached validators."""
        stored = {k: v for k, v in cached.headers if k.lower() not in _VOLATILE_HEADERS}
        last_modified = conditional.parse_http_date(cached.header("last-modified"))
        etag = cached.header("etag")
        outcome = conditional.evaluate(
            etag, last_modified, request.header("if-none-match"), request.header("if-modified-since")
        )
        if outcome.not_modified:
            headers = {"Cache-Control": cached.header("cache-control") or cache_policy.classify(key).cache_control}
            if cached.header("last-modified"):
                headers["Last-Modified"] = cached.header("last-modified")
            if outcome is conditional.Revalidation.NOT_MODIFIED_ETAG and etag:
                headers = {"ETag": etag, **headers}
            headers[CACHE_STATUS_HEADER] = "HIT"
            return Response(status_code=304, headers=headers)

        headers = {**stored, **self._cors_headers(request), CACHE_STATUS_HEADER: "HIT"}
        if request.method == "HEAD":
            return Response(status_code=cached.status, headers=headers)
        return Response(content=cached.body, status_code=cached.status, headers=headers)

    # ─────────────────────────────────────────────────────────
    # 🧰 Collaborator calls
    # ─────────────────────────────────────────────────────────
    async def _bounded(self, awaitable: Awaitable[T], operation: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.STORAGE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            logger.error("Storage %s timed out after %.1fs", operation, self.settings.STORAGE_TIMEOUT_SECONDS)
            raise StorageError(f"Storage {operation} timed out") from e
        except StorageError:
            logger.error("Storage %s failed", operation)
            raise

    async def _cache_lookup(self, cache_key: str) -> Optional[CachedResponse]:
        # a broken cache degrades to a miss
        try:
            return await self._bounded(self.edge_cache.lookup(cache_key), "cache lookup")
        except Exception as e:
            logger.warning("Edge cache lookup failed for %s: %s", cache_key, e)
            return None

    async def _populate_cache(self, cache_key: str, entry: CachedResponse) -> None:
        try:
            await self._bounded(self.edge_cache.store(cache_key, entry), "cache store")
        except Exception:
            logger.exception("Edge cache population failed for %s", cache_key)


__all__ = ["RequestDispatcher", "error_response"]
