# tests/test_services/test_upload_tokens.py
"""
Upload token verification & authorization.

Every `VerificationReason` is produced by a dedicated token shape; the
verifier is exercised with a fixed `now` so expiry bounds are exact.
"""

import pytest

from cdn_gateway.core.exceptions import ErrorCode, TokenVerificationError, VerificationReason
from cdn_gateway.services.secret_registry import SecretRegistry
from cdn_gateway.services.upload_tokens import (
    MAX_TOKEN_LIFETIME_SECONDS,
    authorize_upload,
    effective_max_size,
    extension_allowed,
    path_allowed,
    verify_upload_token,
)
from tests.fixtures.tokens import b64url, make_claims, sign_token

NOW = 1_700_000_000.0
SECRET = "app1-signing-secret"


@pytest.fixture()
def registry() -> SecretRegistry:
    return SecretRegistry({"app1": SECRET, "app2": "app2-signing-secret", "empty": "", "numeric": 42})


def _token(secret: str = SECRET, **kwargs) -> str:
    kwargs.setdefault("now", NOW)
    return sign_token(make_claims(**kwargs), secret)


def _reason(token, registry) -> VerificationReason:
    with pytest.raises(TokenVerificationError) as exc:
        verify_upload_token(token, registry, now=NOW)
    return exc.value.reason


# ─────────────────────────────────────────────────────────────
# ✅ Happy path
# ─────────────────────────────────────────────────────────────
def test_valid_token_yields_claims(registry):
    claims = verify_upload_token(_token(maxFileSize=1024, allowedExtensions=["png"]), registry, now=NOW)
    assert claims.app_name == "app1"
    assert claims.exp == NOW + 3600
    assert claims.allowed_paths == ["app1/*"]
    assert claims.max_file_size == 1024
    assert claims.allowed_extensions == ["png"]


def test_expiry_boundaries_are_inclusive(registry):
    assert verify_upload_token(_token(expires_in=0), registry, now=NOW).exp == NOW
    at_limit = _token(expires_in=MAX_TOKEN_LIFETIME_SECONDS)
    assert verify_upload_token(at_limit, registry, now=NOW).app_name == "app1"


# ─────────────────────────────────────────────────────────────
# ❌ Rejections, one per reason
# ─────────────────────────────────────────────────────────────
@pytest.mark.parametrize("token", ["", "abc", "a.b", "a..c", "a.b.c.d", ".b.c"])
def test_malformed_shapes(token, registry):
    assert _reason(token, registry) is VerificationReason.MALFORMED_TOKEN


def test_payload_that_is_not_json_is_malformed(registry):
    header = b64url({"alg": "HS256", "typ": "JWT"})
    assert _reason(f"{header}.bm90LWpzb24.sig", registry) is VerificationReason.MALFORMED_TOKEN


@pytest.mark.parametrize("app_name", [None, 123, ""])
def test_missing_app_name(app_name, registry):
    assert _reason(_token(app_name=app_name), registry) is VerificationReason.MISSING_APP_NAME


def test_unknown_app(registry):
    assert _reason(_token(app_name="ghost"), registry) is VerificationReason.NO_SECRET_FOR_APP


@pytest.mark.parametrize("app_name", ["empty", "numeric"])
def test_bad_secret_config(app_name, registry):
    with pytest.raises(TokenVerificationError) as exc:
        verify_upload_token(_token(app_name=app_name), registry, now=NOW)
    assert exc.value.reason is VerificationReason.INVALID_SECRET_CONFIG
    assert exc.value.status_code == 500
    assert exc.value.code is ErrorCode.UPLOAD_ERROR


@pytest.mark.parametrize("exp", [None, "tomorrow", True])
def test_missing_or_non_numeric_exp(exp, registry):
    claims = make_claims(now=NOW)
    if exp is None:
        claims.pop("exp")
    else:
        claims["exp"] = exp
    assert _reason(sign_token(claims, SECRET), registry) is VerificationReason.MISSING_EXPIRY


def test_expired_token_fails_even_with_valid_signature(registry):
    assert _reason(_token(expires_in=-1), registry) is VerificationReason.TOKEN_EXPIRED


def test_expiry_too_far(registry):
    token = _token(expires_in=MAX_TOKEN_LIFETIME_SECONDS + 60)
    assert _reason(token, registry) is VerificationReason.EXPIRY_TOO_FAR


def test_expiry_beyond_float_range_is_too_far(registry):
    header = b64url({"alg": "HS256", "typ": "JWT"})
    payload = b64url({"appName": "app1", "exp": 10**400, "allowedPaths": ["*"]})
    assert _reason(f"{header}.{payload}.c2ln", registry) is VerificationReason.EXPIRY_TOO_FAR


def test_other_algorithms_are_refused(registry):
    token = sign_token(make_claims(now=NOW), SECRET, algorithm="HS512")
    assert _reason(token, registry) is VerificationReason.UNSUPPORTED_ALGORITHM


def test_wrong_typ_is_refused(registry):
    token = sign_token(make_claims(now=NOW), SECRET, headers={"typ": "JOSE"})
    assert _reason(token, registry) is VerificationReason.UNSUPPORTED_ALGORITHM


def test_alg_none_is_refused(registry):
    header = b64url({"alg": "none", "typ": "JWT"})
    payload = b64url(make_claims(now=NOW))
    assert _reason(f"{header}.{payload}.c2ln", registry) is VerificationReason.UNSUPPORTED_ALGORITHM


def test_cross_app_signature_fails(registry):
    # signed with app1's secret but claims to be app2
    token = _token(app_name="app2", allowed_paths=["app2/*"])
    assert _reason(token, registry) is VerificationReason.INVALID_SIGNATURE


def test_tampered_payload_fails(registry):
    header, _, signature = _token().split(".")
    forged = b64url(make_claims(now=NOW, allowed_paths=["*"]))
    assert _reason(f"{header}.{forged}.{signature}", registry) is VerificationReason.INVALID_SIGNATURE


def test_missing_allowed_paths_is_invalid_claims(registry):
    assert _reason(_token(allowed_paths=None), registry) is VerificationReason.INVALID_CLAIMS


def test_wrongly_typed_optional_claims_are_invalid(registry):
    assert _reason(_token(maxFileSize="big"), registry) is VerificationReason.INVALID_CLAIMS
    assert _reason(_token(allowedExtensions="png"), registry) is VerificationReason.INVALID_CLAIMS


def test_http_mapping_of_reasons():
    assert TokenVerificationError(VerificationReason.TOKEN_EXPIRED).status_code == 401
    assert TokenVerificationError(VerificationReason.PATH_NOT_ALLOWED).status_code == 403
    ext = TokenVerificationError(VerificationReason.EXTENSION_NOT_ALLOWED)
    assert (ext.status_code, ext.code) == (403, ErrorCode.EXTENSION_NOT_ALLOWED)


# ─────────────────────────────────────────────────────────────
# 🔐 Authorization
# ─────────────────────────────────────────────────────────────
def _claims(registry, **kwargs):
    return verify_upload_token(_token(**kwargs), registry, now=NOW)


def test_scoped_token_authorizes_own_prefix_only(registry):
    claims = _claims(registry)
    assert authorize_upload(claims, "app1/img.png") is None
    with pytest.raises(TokenVerificationError) as exc:
        authorize_upload(claims, "app2/img.png")
    assert exc.value.reason is VerificationReason.PATH_NOT_ALLOWED


@pytest.mark.parametrize(
    "patterns, key, allowed",
    [
        (["*"], "anything/at/all.png", True),
        (["app1/logo.png"], "app1/logo.png", True),
        (["app1/logo.png"], "app1/logo.jpg", False),
        (["app1/*"], "app1/a/b/c.png", True),
        (["app1/*"], "app10/x.png", False),
        (["app1*"], "app1/x.png", False),
        ([], "app1/x.png", False),
    ],
)
def test_path_patterns(patterns, key, allowed):
    assert path_allowed(patterns, key) is allowed


def test_extension_allowlist(registry):
    assert extension_allowed(None, "a/b.exe")
    assert extension_allowed([".PNG", "jpg"], "a/b.png")
    assert not extension_allowed(["png"], "a/b.jpg")
    assert not extension_allowed(["png"], "a/b")

    claims = _claims(registry, allowedExtensions=["png"])
    with pytest.raises(TokenVerificationError) as exc:
        authorize_upload(claims, "app1/photo.jpg")
    assert exc.value.reason is VerificationReason.EXTENSION_NOT_ALLOWED


@pytest.mark.parametrize(
    "global_max, token_max, expected",
    [(None, None, None), (100, None, 100), (None, 50, 50), (100, 50, 50), (10, 50, 10)],
)
def test_effective_max_size(global_max, token_max, expected):
    assert effective_max_size(global_max, token_max) == expected


def test_authorize_returns_effective_limit(registry):
    claims = _claims(registry, maxFileSize=500)
    assert authorize_upload(claims, "app1/a.png", global_max_file_size=1000) == 500
    assert authorize_upload(claims, "app1/a.png", global_max_file_size=200) == 200
