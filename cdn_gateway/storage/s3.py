# cdn_gateway/storage/s3.py
from __future__ import annotations

"""
🧊 CDN Gateway • S3-compatible object store
==========================================

Thin async adapter over boto3 used as the gateway's durable blob store.
Works against AWS S3, Cloudflare R2 and MinIO (`endpoint_url`).

🎯 Goals
--------
- `get(key)` → `StoredObject | None` (None for NoSuchKey / 404)
- `put(key, data, content_type)` → `ObjectMeta` (ETag + Last-Modified via HEAD)
- Explicit timeouts + bounded retries on the boto3 client
- boto3 is synchronous: every call runs in a worker thread
- Zero secret leakage in logs

Implementation notes
--------------------
Keys arrive already validated (uploads) or are looked up verbatim (reads);
S3 treats keys as opaque strings, so no filesystem traversal is possible
here. Backend errors surface as `StorageError`.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import boto3
import botocore
from botocore.config import Config as BotoConfig
from pydantic import SecretStr

from cdn_gateway.core.exceptions import StorageError
from cdn_gateway.storage.base import ObjectMeta, StoredObject

logger = logging.getLogger("cdn_gateway.storage.s3")

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _secret_value(v: Optional[SecretStr | str]) -> Optional[str]:
    """Return the underlying secret string without raising if not SecretStr."""
    if v is None:
        return None
    return v.get_secret_value() if isinstance(v, SecretStr) else str(v)


def _error_code(exc: botocore.exceptions.ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3ObjectStore:
    """
    Object store backed by an S3-compatible bucket.

    Parameters
    ----------
    bucket : str
        Bucket holding the gateway's objects.
    region_name : str | None
        Client region (R2 uses "auto").
    endpoint_url : str | None
        Custom S3-compatible endpoint (R2/MinIO/LocalStack).
    access_key_id / secret_access_key : optional explicit credentials;
        otherwise the standard AWS credential chain applies.
    client : optional pre-built boto3 client (tests).
    """

    def __init__(
        self,
        bucket: str,
        *,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[SecretStr | str] = None,
        client: Any = None,
    ) -> None:
        if not bucket:
            raise StorageError("S3 bucket not configured")
        self.bucket = bucket

        if client is not None:
            self.client = client
        else:
            cfg = BotoConfig(
                signature_version="s3v4",
                retries={"max_attempts": 5, "mode": "standard"},
                connect_timeout=3,
                read_timeout=10,
            )
            client_kwargs: Dict[str, Any] = {"config": cfg}
            if region_name:
                client_kwargs["region_name"] = region_name
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            sk = _secret_value(secret_access_key)
            if access_key_id and sk:
                client_kwargs["aws_access_key_id"] = access_key_id
                client_kwargs["aws_secret_access_key"] = sk
            try:
                self.client = boto3.client("s3", **client_kwargs)
            except Exception as e:  # pragma: no cover
                raise StorageError(f"Failed to create S3 client: {e}") from e

        self._repr = f"S3ObjectStore(bucket={self.bucket}, endpoint={'yes' if endpoint_url else 'no'})"

    # ────────────────────────────────────────────────────────────────────────
    # 🔎 Reads
    # ────────────────────────────────────────────────────────────────────────
    def _get_sync(self, key: str) -> Optional[StoredObject]:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
        except botocore.exceptions.ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return None
            raise StorageError(f"Failed to fetch object: {_error_code(e) or 'error'}") from e
        except botocore.exceptions.BotoCoreError as e:
            raise StorageError(f"Failed to fetch object: {e}") from e

        body = resp["Body"]
        try:
            data = body.read()
        finally:
            body.close()
        meta = ObjectMeta(
            key=key,
            size=int(resp.get("ContentLength", len(data))),
            content_type=resp.get("ContentType"),
            etag=resp.get("ETag"),
            last_modified=resp.get("LastModified") or datetime.now(timezone.utc),
        )
        return StoredObject(meta=meta, body=data)

    async def get(self, key: str) -> Optional[StoredObject]:
        return await asyncio.to_thread(self._get_sync, key)

    # ────────────────────────────────────────────────────────────────────────
    # 🚀 Writes
    # ────────────────────────────────────────────────────────────────────────
    def _put_sync(self, key: str, data: bytes, content_type: str) -> ObjectMeta:
        try:
            put = self.client.put_object(
                Bucket=self.bucket, Key=key, Body=data, ContentType=content_type
            )
        except (botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError) as e:
            raise StorageError(f"Failed to upload object: {e}") from e

        etag = put.get("ETag")
        last_modified = datetime.now(timezone.utc)
        try:
            head = self.client.head_object(Bucket=self.bucket, Key=key)
            etag = head.get("ETag", etag)
            last_modified = head.get("LastModified") or last_modified
        except botocore.exceptions.ClientError as e:
            # read-after-write is the store's business; report what PUT returned
            logger.debug("head_object after put failed: %s", _error_code(e))

        return ObjectMeta(
            key=key,
            size=len(data),
            content_type=content_type,
            etag=etag,
            last_modified=last_modified,
        )

    async def put(self, key: str, data: bytes, content_type: str) -> ObjectMeta:
        return await asyncio.to_thread(self._put_sync, key, data, content_type)

    async def close(self) -> None:
        return None

    def __repr__(self) -> str:  # pragma: no cover
        return self._repr


__all__ = ["S3ObjectStore"]
