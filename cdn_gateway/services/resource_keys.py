from __future__ import annotations

"""
Resource key validation.

A resource key is the relative path of a blob in the store. Upload keys are
validated strictly before anything else touches them:

- no leading `/`
- no `..` and no `//` (no traversal, no empty segments)
- at most 500 characters
- must end in an extension from the MIME table
"""

from cdn_gateway.core.exceptions import ErrorCode, PathError
from cdn_gateway.services.content_types import extension_of, is_known_extension

MAX_KEY_LENGTH = 500


def validate_resource_key(key: str) -> str:
    """
    Validate an upload key and return it unchanged.

    Raises
    ------
    PathError
        `INVALID_PATH` for empty/absolute/traversing/overlong keys,
        `EXTENSION_NOT_ALLOWED` when the extension is not recognized.
    """
    if not key:
        raise PathError("No file path provided")
    if key.startswith("/"):
        raise PathError("Path must be relative")
    if ".." in key or "//" in key:
        raise PathError("Path traversal is not allowed")
    if "\\" in key or any(ord(ch) < 0x20 for ch in key):
        raise PathError("Path contains forbidden characters")
    if len(key) > MAX_KEY_LENGTH:
        raise PathError(f"Path exceeds {MAX_KEY_LENGTH} characters")
    if not is_known_extension(key):
        ext = extension_of(key)
        raise PathError(
            f"File extension '{ext}' is not allowed" if ext else "File extension is required",
            code=ErrorCode.EXTENSION_NOT_ALLOWED,
        )
    return key


__all__ = ["MAX_KEY_LENGTH", "validate_resource_key"]
