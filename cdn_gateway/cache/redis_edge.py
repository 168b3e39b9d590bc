# cdn_gateway/cache/redis_edge.py
from __future__ import annotations

"""
Redis-backed edge cache
=======================

• Namespaced keys with SHA-256 hashing for long keys
• Binary-safe entry codec: JSON envelope line + raw body
• Optional zlib compression (threshold-based)
• TTL per entry (`SET ... EX`), taken from the resource's cache policy
• Fail-open lookups: a Redis hiccup is a cache miss, never a failed read
"""

import hashlib
import json
import logging
import os
import zlib
from typing import Optional

from redis.exceptions import RedisError

from cdn_gateway.cache.edge import CachedResponse
from cdn_gateway.core.exceptions import StorageError
from cdn_gateway.core.redis_client import RedisClient

logger = logging.getLogger("cdn_gateway.cache")

CACHE_COMPRESS: bool = os.getenv("EDGE_CACHE_COMPRESS", "true").lower() == "true"
CACHE_COMPRESS_THRESHOLD: int = int(os.getenv("EDGE_CACHE_COMPRESS_THRESHOLD", "1024"))
CACHE_MAX_KEY_LEN: int = int(os.getenv("EDGE_CACHE_MAX_KEY_LEN", "512"))

# First byte encodes codec: 0x00 = plain, 0x01 = zlib
_PLAIN = b"\x00"
_COMP = b"\x01"


def encode_entry(response: CachedResponse) -> bytes:
    envelope = {
        "status": response.status,
        "headers": [list(h) for h in response.headers],
        "ttl": response.ttl_seconds,
        "stored_at": response.stored_at,
    }
    raw = json.dumps(envelope, separators=(",", ":")).encode("utf-8") + b"\n" + response.body
    if CACHE_COMPRESS and len(raw) > CACHE_COMPRESS_THRESHOLD:
        return _COMP + zlib.compress(raw)
    return _PLAIN + raw


def decode_entry(blob: Optional[bytes]) -> Optional[CachedResponse]:
    if not blob:
        return None
    kind, data = blob[:1], blob[1:]
    try:
        if kind == _COMP:
            data = zlib.decompress(data)
        head, _, body = data.partition(b"\n")
        envelope = json.loads(head.decode("utf-8"))
        return CachedResponse(
            status=int(envelope["status"]),
            headers=tuple((str(k), str(v)) for k, v in envelope["headers"]),
            body=body,
            ttl_seconds=int(envelope.get("ttl", 0)),
            stored_at=float(envelope.get("stored_at", 0.0)),
        )
    except (ValueError, KeyError, TypeError, zlib.error) as e:
        logger.error("[edge-cache] decode error: %s", e)
        return None


class RedisEdgeCache:
    """Edge cache stored in Redis under `<namespace>:<url>`."""

    def __init__(self, redis_client: RedisClient, *, namespace: str = "cdn:edge") -> None:
        self._redis = redis_client
        self._namespace = namespace.strip().rstrip(":")

    def _normalize_key(self, key: str) -> str:
        """
        Build the final storage key:
          1) Trim whitespace/newlines
          2) Prefix with namespace
          3) If too long, replace tail with SHA-256 digest
        """
        key = (key or "").strip().replace("\n", " ")
        full = f"{self._namespace}:{key}"
        if len(full) <= CACHE_MAX_KEY_LEN:
            return full
        h = hashlib.sha256(full.encode("utf-8")).hexdigest()
        return f"{self._namespace}:h:{h}"

    async def lookup(self, key: str) -> Optional[CachedResponse]:
        k = self._normalize_key(key)
        try:
            blob = await self._redis.client.get(k)
        except (RedisError, RuntimeError) as e:
            logger.warning("[edge-cache] lookup failed key=%s: %s", k, e)
            return None
        return decode_entry(blob)

    async def store(self, key: str, response: CachedResponse) -> None:
        if response.ttl_seconds <= 0:
            return
        k = self._normalize_key(key)
        try:
            await self._redis.client.set(k, encode_entry(response), ex=response.ttl_seconds)
        except (RedisError, RuntimeError) as e:
            raise StorageError(f"Edge cache store failed: {e}") from e

    async def close(self) -> None:
        await self._redis.close()


__all__ = ["RedisEdgeCache", "decode_entry", "encode_entry"]
