# cdn_gateway/core/exceptions.py
from __future__ import annotations

"""
CDN Gateway — Application Exceptions
====================================
A small, consistent layer on top of FastAPI/Starlette's `HTTPException` that
carries a machine-readable `code` next to the human-readable message, and
renders the gateway's canonical error body `{"error": ..., "code": ...}`.

Taxonomy
--------
- `AuthError`        → 401/403 (origin rejected, token invalid/expired/unauthorized)
- `PathError`        → 400     (traversal, disallowed extension, length)
- `SizeError`        → 413
- `NotFoundError`    → 404
- `MethodError`      → 405
- `StorageError`     → 500     (store failure or timeout)
- `ConfigError`      → 500     (secret registry malformed)

All of them are terminal for the request; nothing is retried internally.

Usage
-----
    raise PathError("Path traversal is not allowed")
    raise SizeError(f"File exceeds maximum size of {limit} bytes")
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

__all__ = [
    "ErrorCode",
    "GatewayException",
    "AuthError",
    "TokenVerificationError",
    "VerificationReason",
    "PathError",
    "SizeError",
    "NotFoundError",
    "MethodError",
    "StorageError",
    "ConfigError",
]


class ErrorCode(str, Enum):
    """Machine-readable codes surfaced in every error body."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_PATH = "INVALID_PATH"
    EXTENSION_NOT_ALLOWED = "EXTENSION_NOT_ALLOWED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UPLOAD_ERROR = "UPLOAD_ERROR"
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# ──────────────────────────────────────────────────────────────
# 📦 Core: GatewayException
# ──────────────────────────────────────────────────────────────
class GatewayException(HTTPException):
    """Base gateway exception.

    Attributes
    -----------
    status_code : int
        HTTP status code.
    message : str
        Human-readable error message (also exposed as `detail`).
    code : ErrorCode
        Machine-readable code rendered next to the message.
    headers : dict | None
        Optional response headers (e.g., `{"WWW-Authenticate": "Bearer"}`).
    """

    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ErrorCode] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        status_code = status_code or self.default_status
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message: str = message
        self.code: ErrorCode = code or self.default_code

    def to_body(self) -> Dict[str, Any]:
        """Return the canonical `{error, code}` body."""
        return {"error": self.message, "code": self.code.value}


# ──────────────────────────────────────────────────────────────
# 🔐 Authorization
# ──────────────────────────────────────────────────────────────
class AuthError(GatewayException):
    """Origin rejected, or credentials missing/invalid/insufficient."""

    default_status = status.HTTP_401_UNAUTHORIZED
    default_code = ErrorCode.UNAUTHORIZED


class VerificationReason(str, Enum):
    """Why an upload token was refused."""

    MALFORMED_TOKEN = "MalformedToken"
    MISSING_APP_NAME = "MissingAppName"
    NO_SECRET_FOR_APP = "NoSecretForApp"
    INVALID_SECRET_CONFIG = "InvalidSecretConfig"
    MISSING_EXPIRY = "MissingExpiry"
    TOKEN_EXPIRED = "TokenExpired"
    EXPIRY_TOO_FAR = "ExpiryTooFar"
    UNSUPPORTED_ALGORITHM = "UnsupportedAlgorithm"
    INVALID_SIGNATURE = "InvalidSignature"
    INVALID_CLAIMS = "InvalidClaims"
    PATH_NOT_ALLOWED = "PathNotAllowed"
    EXTENSION_NOT_ALLOWED = "ExtensionNotAllowed"


_REASON_MESSAGES: Dict[VerificationReason, str] = {
    VerificationReason.MALFORMED_TOKEN: "Malformed upload token",
    VerificationReason.MISSING_APP_NAME: "Token is missing appName",
    VerificationReason.NO_SECRET_FOR_APP: "No secret configured for app",
    VerificationReason.INVALID_SECRET_CONFIG: "Invalid secret configuration",
    VerificationReason.MISSING_EXPIRY: "Token is missing exp",
    VerificationReason.TOKEN_EXPIRED: "Token has expired",
    VerificationReason.EXPIRY_TOO_FAR: "Token expiry is too far in the future",
    VerificationReason.UNSUPPORTED_ALGORITHM: "Unsupported token algorithm",
    VerificationReason.INVALID_SIGNATURE: "Invalid token signature",
    VerificationReason.INVALID_CLAIMS: "Invalid token claims",
    VerificationReason.PATH_NOT_ALLOWED: "Path not allowed by token",
    VerificationReason.EXTENSION_NOT_ALLOWED: "File extension not allowed by token",
}


class TokenVerificationError(AuthError):
    """Upload token verification or authorization failure.

    Carries the precise `reason`; the status/code pair is derived from it:
    - signature/expiry/shape problems → 401 UNAUTHORIZED
    - scope problems (path) → 403 UNAUTHORIZED
    - scope problems (extension) → 403 EXTENSION_NOT_ALLOWED
    - a malformed secret in the registry → 500 UPLOAD_ERROR
    """

    def __init__(self, reason: VerificationReason, message: Optional[str] = None) -> None:
        self.reason = reason
        code = ErrorCode.UNAUTHORIZED
        status_code = status.HTTP_401_UNAUTHORIZED
        headers: Optional[Dict[str, str]] = {"WWW-Authenticate": "Bearer"}
        if reason is VerificationReason.PATH_NOT_ALLOWED:
            status_code = status.HTTP_403_FORBIDDEN
            headers = None
        elif reason is VerificationReason.EXTENSION_NOT_ALLOWED:
            status_code = status.HTTP_403_FORBIDDEN
            code = ErrorCode.EXTENSION_NOT_ALLOWED
            headers = None
        elif reason is VerificationReason.INVALID_SECRET_CONFIG:
            status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
            code = ErrorCode.UPLOAD_ERROR
            headers = None
        super().__init__(
            message or _REASON_MESSAGES[reason],
            code=code,
            status_code=status_code,
            headers=headers,
        )


# ──────────────────────────────────────────────────────────────
# 🧭 Request shape
# ──────────────────────────────────────────────────────────────
class PathError(GatewayException):
    """Resource key rejected (traversal, length, unknown extension)."""

    default_status = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.INVALID_PATH


class SizeError(GatewayException):
    default_status = 413
    default_code = ErrorCode.FILE_TOO_LARGE


class NotFoundError(GatewayException):
    default_status = status.HTTP_404_NOT_FOUND
    default_code = ErrorCode.NOT_FOUND


class MethodError(GatewayException):
    default_status = status.HTTP_405_METHOD_NOT_ALLOWED
    default_code = ErrorCode.METHOD_NOT_ALLOWED


# ──────────────────────────────────────────────────────────────
# 💥 Infrastructure
# ──────────────────────────────────────────────────────────────
class StorageError(GatewayException):
    """Object store or edge cache failure (including timeouts)."""

    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = ErrorCode.INTERNAL_ERROR


class ConfigError(GatewayException):
    """Configuration is malformed (e.g., secret registry JSON)."""

    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = ErrorCode.INTERNAL_ERROR
