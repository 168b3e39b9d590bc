from __future__ import annotations

"""
Object store contract.

The gateway only needs two operations from the durable blob store:

    await store.get(key)                      -> StoredObject | None
    await store.put(key, data, content_type)  -> ObjectMeta

Implementations raise `StorageError` for transport/backend failures and
return `None` from `get` when the object does not exist.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class ObjectMeta:
    """Attributes of a stored blob as reported by the store."""

    key: str
    size: int
    last_modified: datetime
    content_type: Optional[str] = None
    etag: Optional[str] = None


@dataclass(frozen=True)
class StoredObject:
    meta: ObjectMeta
    body: bytes


@runtime_checkable
class ObjectStore(Protocol):
    async def get(self, key: str) -> Optional[StoredObject]: ...

    async def put(self, key: str, data: bytes, content_type: str) -> ObjectMeta: ...

    async def close(self) -> None: ...


__all__ = ["ObjectMeta", "ObjectStore", "StoredObject"]
