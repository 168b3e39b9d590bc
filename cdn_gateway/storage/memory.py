from __future__ import annotations

"""In-process object store for development and tests.

ETags mimic S3 single-part uploads: the quoted MD5 hex of the body.
"""

import hashlib
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from cdn_gateway.storage.base import ObjectMeta, StoredObject


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryObjectStore:
    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._objects: Dict[str, StoredObject] = {}
        self._clock = clock

    async def get(self, key: str) -> Optional[StoredObject]:
        return self._objects.get(key)

    async def put(self, key: str, data: bytes, content_type: str) -> ObjectMeta:
        meta = ObjectMeta(
            key=key,
            size=len(data),
            content_type=content_type,
            etag=f"\"{hashlib.md5(data).hexdigest()}\"",
            last_modified=self._clock(),
        )
        self._objects[key] = StoredObject(meta=meta, body=bytes(data))
        return meta

    async def close(self) -> None:
        return None

    def __contains__(self, key: object) -> bool:
        return key in self._objects

    def __len__(self) -> int:
        return len(self._objects)


__all__ = ["InMemoryObjectStore"]
