from __future__ import annotations

"""
Edge (shared) HTTP cache contract and in-process implementations.

    await cache.lookup(key)            -> CachedResponse | None
    await cache.store(key, response)   -> None   (best-effort)

Keys are request URLs. The gateway only stores successful full GET
responses; the TTL travels with the entry (`CachedResponse.ttl_seconds`).
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable


@dataclass(frozen=True)
class CachedResponse:
    """A full HTTP response as kept by the edge cache."""

    status: int
    headers: Tuple[Tuple[str, str], ...]
    body: bytes
    ttl_seconds: int = 0
    stored_at: float = field(default_factory=time.time)

    def header(self, name: str) -> Optional[str]:
        lname = name.lower()
        for k, v in self.headers:
            if k.lower() == lname:
                return v
        return None


@runtime_checkable
class EdgeCache(Protocol):
    async def lookup(self, key: str) -> Optional[CachedResponse]: ...

    async def store(self, key: str, response: CachedResponse) -> None: ...

    async def close(self) -> None: ...


class NullEdgeCache:
    """Cache that never hits and never stores."""

    async def lookup(self, key: str) -> Optional[CachedResponse]:
        return None

    async def store(self, key: str, response: CachedResponse) -> None:
        return None

    async def close(self) -> None:
        return None


class InMemoryEdgeCache:
    """In-memory TTL cache for small deployments and tests.

    - lookup(key) -> Optional[CachedResponse]
    - store(key, response)  (ttl from `response.ttl_seconds`)
    - oldest entry is evicted once `maxsize` is reached
    """

    def __init__(self, maxsize: int = 4096):
        self.maxsize = maxsize
        self._data: Dict[str, CachedResponse] = {}
        self._exp: Dict[str, float] = {}

    async def lookup(self, key: str) -> Optional[CachedResponse]:
        exp = self._exp.get(key)
        if exp is None:
            return None
        if time.time() >= exp:
            self._data.pop(key, None)
            self._exp.pop(key, None)
            return None
        return self._data.get(key)

    async def store(self, key: str, response: CachedResponse) -> None:
        if response.ttl_seconds <= 0:
            return
        if key not in self._data and len(self._data) >= self.maxsize:
            try:
                old_key = next(iter(self._data))
                del self._data[old_key]
                self._exp.pop(old_key, None)
            except StopIteration:
                pass
        self._data[key] = response
        self._exp[key] = time.time() + response.ttl_seconds

    async def close(self) -> None:
        self._data.clear()
        self._exp.clear()

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["CachedResponse", "EdgeCache", "InMemoryEdgeCache", "NullEdgeCache"]
