# cdn_gateway/services/upload_tokens.py
from __future__ import annotations

"""
CDN Gateway — Upload token verification & authorization
=======================================================
Upload tokens are compact HS256 JWS tokens (`header.payload.signature`)
issued by a trusted external system, one signing secret per application.

Verification order (each step fails closed)
-------------------------------------------
1) Shape: exactly three non-empty dot-separated parts
2) Payload JSON decodes; `appName` is a string
3) Secret registry has a usable secret for `appName`
4) `exp` is numeric, not in the past, not more than 365 days ahead
5) Header is exactly `{"typ": "JWT", "alg": "HS256"}` (closed allowlist,
   no algorithm negotiation → no alg-confusion)
6) HMAC-SHA256 signature matches (constant-time compare via python-jose)
7) Payload validates into `UploadClaims`

Authorization (`authorize_upload`) is a separate step applied by the
dispatcher to the verified claims and the requested key.

Notes
-----
- The signature is checked against the secret of the app the token *claims*,
  so a token signed with app A's secret asserting `appName = B` fails with
  `InvalidSignature`.
- Neither the token nor any secret is ever logged.
"""

import logging
import math
import time
from typing import Any, Optional

from jose import jws, jwt
from jose.exceptions import JOSEError
from pydantic import ValidationError

from cdn_gateway.core.exceptions import TokenVerificationError, VerificationReason
from cdn_gateway.schemas.upload import UploadClaims
from cdn_gateway.services.content_types import extension_of
from cdn_gateway.services.secret_registry import MISSING, SecretRegistry

logger = logging.getLogger("cdn_gateway.tokens")

ALGORITHM = "HS256"
TOKEN_TYPE = "JWT"
MAX_TOKEN_LIFETIME_SECONDS = 365 * 24 * 3600
WILDCARD_PATH = "*"


def _fail(reason: VerificationReason) -> TokenVerificationError:
    logger.warning("Upload token rejected: %s", reason.value)
    return TokenVerificationError(reason)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    # ints of any size compare exactly against floats
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


# ─────────────────────────────────────────────────────────────
# 🔓 Verify
# ─────────────────────────────────────────────────────────────
def verify_upload_token(
    token: str,
    registry: SecretRegistry,
    now: Optional[float] = None,
) -> UploadClaims:
    """Verify a signed upload token and return its validated claims.

    Args:
        token: compact JWS string (without the `Bearer ` prefix).
        registry: app → secret registry.
        now: verification instant (Unix seconds); defaults to `time.time()`.

    Raises:
        TokenVerificationError: with the precise `VerificationReason`.
    """
    now = time.time() if now is None else float(now)

    # ── [Step 1] Shape ───────────────────────────────────────
    parts = (token or "").split(".")
    if len(parts) != 3 or not all(parts):
        raise _fail(VerificationReason.MALFORMED_TOKEN)

    # ── [Step 2] Payload + appName ───────────────────────────
    try:
        payload = jwt.get_unverified_claims(token)
    except JOSEError:
        raise _fail(VerificationReason.MALFORMED_TOKEN)

    app_name = payload.get("appName")
    if not isinstance(app_name, str) or not app_name:
        raise _fail(VerificationReason.MISSING_APP_NAME)

    # ── [Step 3] Secret lookup ───────────────────────────────
    secret = registry.lookup(app_name)
    if secret is MISSING:
        raise _fail(VerificationReason.NO_SECRET_FOR_APP)
    if not isinstance(secret, str) or not secret:
        logger.error("Secret for app %r is empty or not a string", app_name)
        raise TokenVerificationError(VerificationReason.INVALID_SECRET_CONFIG)

    # ── [Step 4] Expiry bounds ───────────────────────────────
    exp = payload.get("exp")
    if not _is_number(exp):
        raise _fail(VerificationReason.MISSING_EXPIRY)
    if exp < now:
        raise _fail(VerificationReason.TOKEN_EXPIRED)
    if exp > now + MAX_TOKEN_LIFETIME_SECONDS:
        raise _fail(VerificationReason.EXPIRY_TOO_FAR)

    # ── [Step 5] Header allowlist ────────────────────────────
    try:
        header = jwt.get_unverified_header(token)
    except JOSEError:
        raise _fail(VerificationReason.MALFORMED_TOKEN)
    if header.get("typ") != TOKEN_TYPE or header.get("alg") != ALGORITHM:
        raise _fail(VerificationReason.UNSUPPORTED_ALGORITHM)

    # ── [Step 6] Signature ───────────────────────────────────
    try:
        jws.verify(token, secret, algorithms=[ALGORITHM])
    except JOSEError:
        raise _fail(VerificationReason.INVALID_SIGNATURE)

    # ── [Step 7] Claims shape ────────────────────────────────
    try:
        claims = UploadClaims.model_validate(payload)
    except ValidationError:
        raise _fail(VerificationReason.INVALID_CLAIMS)

    logger.debug("Upload token verified for app=%s", claims.app_name)
    return claims


# ─────────────────────────────────────────────────────────────
# ✅ Authorize
# ─────────────────────────────────────────────────────────────
def path_allowed(allowed_paths: list[str], key: str) -> bool:
    """Exact match, `prefix/*` literal-prefix match, or the `*` wildcard."""
    if WILDCARD_PATH in allowed_paths:
        return True
    for pattern in allowed_paths:
        if pattern == key:
            return True
        if pattern.endswith("/*") and key.startswith(pattern[:-1]):
            return True
    return False


def extension_allowed(allowed_extensions: Optional[list[str]], key: str) -> bool:
    if allowed_extensions is None:
        return True
    ext = extension_of(key)
    if ext is None:
        return False
    allowed = {e.strip().lstrip(".").lower() for e in allowed_extensions}
    return ext in allowed


def effective_max_size(global_max: Optional[int], token_max: Optional[int]) -> Optional[int]:
    """`min()` of the configured ceilings, ignoring the ones that are unset."""
    limits = [v for v in (global_max, token_max) if v is not None]
    return min(limits) if limits else None


def authorize_upload(claims: UploadClaims, key: str, global_max_file_size: Optional[int] = None) -> Optional[int]:
    """Check the token scope against `key`; return the effective max size.

    Raises:
        TokenVerificationError: `PathNotAllowed` or `ExtensionNotAllowed`.
    """
    if not path_allowed(list(claims.allowed_paths), key):
        raise _fail(VerificationReason.PATH_NOT_ALLOWED)
    if not extension_allowed(
        list(claims.allowed_extensions) if claims.allowed_extensions is not None else None, key
    ):
        raise _fail(VerificationReason.EXTENSION_NOT_ALLOWED)
    return effective_max_size(global_max_file_size, claims.max_file_size)


__all__ = [
    "ALGORITHM",
    "MAX_TOKEN_LIFETIME_SECONDS",
    "authorize_upload",
    "effective_max_size",
    "extension_allowed",
    "path_allowed",
    "verify_upload_token",
]
