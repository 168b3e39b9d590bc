from __future__ import annotations

"""Extension → MIME type lookup.

The table is pure data; `resolve_content_type` is total and never raises.
Content type (like cache tier and upload scope) is keyed off the file
extension only, so it is spoofable and is not a content-sniffing boundary.
"""

from types import MappingProxyType
from typing import Mapping, Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: Mapping[str, str] = MappingProxyType(
    {
        # images
        "png": "image/png",
        "jpg": "image/jpeg",
        "jpeg": "image/jpeg",
        "gif": "image/gif",
        "webp": "image/webp",
        "svg": "image/svg+xml",
        "ico": "image/x-icon",
        # documents
        "pdf": "application/pdf",
        "json": "application/json",
        "xml": "application/xml",
        "txt": "text/plain; charset=utf-8",
        "html": "text/html; charset=utf-8",
        "css": "text/css; charset=utf-8",
        "js": "text/javascript; charset=utf-8",
        "map": "application/json",
        "wasm": "application/wasm",
        # applications / archives
        "dmg": "application/x-apple-diskimage",
        "zip": "application/zip",
        "pkg": "application/x-newton-compatible-pkg",
        "gz": "application/gzip",
        "tar": "application/x-tar",
        # media
        "mp4": "video/mp4",
        "webm": "video/webm",
        "mp3": "audio/mpeg",
        # fonts
        "woff": "font/woff",
        "woff2": "font/woff2",
        "ttf": "font/ttf",
        "otf": "font/otf",
    }
)


def extension_of(path: str) -> Optional[str]:
    """Lowercased substring after the last `.`, or None when there is none."""
    idx = path.rfind(".")
    if idx < 0 or idx == len(path) - 1:
        return None
    return path[idx + 1 :].lower()


def is_known_extension(path: str) -> bool:
    ext = extension_of(path)
    return ext is not None and ext in CONTENT_TYPES


def resolve_content_type(path: str) -> str:
    """Return the MIME type for `path`, falling back to a generic binary type."""
    ext = extension_of(path)
    if ext is None:
        return DEFAULT_CONTENT_TYPE
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


__all__ = [
    "CONTENT_TYPES",
    "DEFAULT_CONTENT_TYPE",
    "extension_of",
    "is_known_extension",
    "resolve_content_type",
]
