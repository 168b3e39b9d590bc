from __future__ import annotations

"""
Cache-control classification.

`classify(key)` is a pure function of the path, checked in this order:

| condition                       | tier     | Cache-Control                        | TTL      |
|---------------------------------|----------|--------------------------------------|----------|
| path contains `/downloads/`     | DOWNLOAD | public, max-age=3600                 | 3600     |
| image/font extension            | STATIC   | public, max-age=31536000, immutable  | 31536000 |
| anything else                   | DEFAULT  | public, max-age=86400                | 86400    |

Downloads win over the extension check: a download may be replaced in place
and must not be pinned as immutable.

`edge_cache_control` is the edge-only directive (`CDN-Cache-Control`);
download-tier responses carry none so the edge falls back to `Cache-Control`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cdn_gateway.services.content_types import extension_of

DOWNLOADS_SEGMENT = "/downloads/"
STATIC_EXTENSIONS = frozenset(
    {"png", "jpg", "jpeg", "gif", "webp", "svg", "ico", "woff", "woff2", "ttf", "otf"}
)


class CacheTier(str, Enum):
    STATIC = "static"
    DOWNLOAD = "download"
    DEFAULT = "default"


@dataclass(frozen=True)
class CachePolicy:
    tier: CacheTier
    cache_control: str
    ttl_seconds: int
    edge_cache_control: Optional[str] = None


DOWNLOAD_POLICY = CachePolicy(
    tier=CacheTier.DOWNLOAD,
    cache_control="public, max-age=3600",
    ttl_seconds=3600,
)
STATIC_POLICY = CachePolicy(
    tier=CacheTier.STATIC,
    cache_control="public, max-age=31536000, immutable",
    ttl_seconds=31536000,
    edge_cache_control="public, max-age=31536000, immutable",
)
DEFAULT_POLICY = CachePolicy(
    tier=CacheTier.DEFAULT,
    cache_control="public, max-age=86400",
    ttl_seconds=86400,
    edge_cache_control="public, max-age=86400",
)


def is_download_path(key: str) -> bool:
    return DOWNLOADS_SEGMENT in key


def classify(key: str) -> CachePolicy:
    """Return the cache policy for a resource key."""
    if is_download_path(key):
        return DOWNLOAD_POLICY
    if extension_of(key) in STATIC_EXTENSIONS:
        return STATIC_POLICY
    return DEFAULT_POLICY


__all__ = [
    "CachePolicy",
    "CacheTier",
    "DEFAULT_POLICY",
    "DOWNLOAD_POLICY",
    "STATIC_EXTENSIONS",
    "STATIC_POLICY",
    "classify",
    "is_download_path",
]
