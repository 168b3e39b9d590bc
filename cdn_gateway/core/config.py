# cdn_gateway/core/config.py
from __future__ import annotations

"""
# CDN Gateway — Centralized Configuration (Pydantic v2)

Single `settings` object with strongly-typed, environment-driven config.

## Goals
- Safe defaults for local/dev (in-memory store + cache, open read allowlist).
- CSV → list helpers for origin allowlists.
- Upload secrets kept as `SecretStr` so they never show up in reprs or logs.
- Optional external systems (S3/R2, Redis) so imports never crash in dev.

## Usage
    from cdn_gateway.core.config import settings
"""

import logging
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)
load_dotenv()  # harmless in prod; convenient in dev


# ─────────────────────────────────────────────────────────────
# Small helpers
# ─────────────────────────────────────────────────────────────
def _split_csv(v: str | None) -> list[str]:
    """Split a comma-separated string into a trimmed list (empty-safe)."""
    if not v:
        return []
    return [s.strip() for s in str(v).split(",") if s and s.strip()]


def _normalize_url_like(v: str | None, *, require_scheme: bool = True) -> str:
    """Normalize to a string URL without trailing slash."""
    s = (v or "").strip()
    if not s:
        return ""
    if require_scheme and not (s.startswith("http://") or s.startswith("https://")):
        s = "https://" + s
    return s.rstrip("/")


# ─────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────
class Settings(BaseSettings):
    """
    Global gateway settings sourced from environment.

    Security:
        - `UPLOAD_SECRETS` is a JSON object `{"<appName>": "<secret>"}`; it is
          parsed once into an immutable registry at app construction.
        - `ORIGIN_MATCH_MODE` defaults to host-suffix matching; `substring`
          keeps the legacy worker behavior.

    Storage:
        - `STORAGE_BACKEND=s3` talks to any S3-compatible endpoint (AWS, R2, MinIO).
        - `memory` keeps objects in-process (dev/tests only).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # don't crash on unknown keys
    )

    # ── App meta ──────────────────────────────────────────────
    SERVICE_NAME: str = "CDN Gateway"
    VERSION: str = "1.0.0"
    ENV: Literal["development", "staging", "production"] = "development"

    # ── Origin policy ─────────────────────────────────────────
    ALLOWED_ORIGINS: str = "*"
    UPLOAD_ALLOWED_ORIGINS: Optional[str] = None
    ORIGIN_MATCH_MODE: Literal["suffix", "host", "substring"] = "suffix"
    CORS_MAX_AGE: int = Field(86400, ge=0)

    # ── Uploads ───────────────────────────────────────────────
    MAX_FILE_SIZE: Optional[int] = Field(None, ge=0)
    UPLOAD_SECRETS: SecretStr = SecretStr("{}")
    PUBLIC_BASE_URL: Optional[str] = None

    # ── Object store ──────────────────────────────────────────
    STORAGE_BACKEND: Literal["memory", "s3"] = "memory"
    STORAGE_TIMEOUT_SECONDS: float = Field(10.0, gt=0)
    S3_BUCKET: Optional[str] = None
    S3_REGION: Optional[str] = None
    S3_ENDPOINT_URL: Optional[str] = None
    S3_ACCESS_KEY_ID: Optional[str] = None
    S3_SECRET_ACCESS_KEY: Optional[SecretStr] = None

    # ── Edge cache ────────────────────────────────────────────
    EDGE_CACHE_BACKEND: Literal["memory", "redis", "none"] = "memory"
    EDGE_CACHE_NAMESPACE: str = "cdn:edge"
    EDGE_CACHE_MAX_ENTRIES: int = Field(4096, ge=1)
    REDIS_URL: str = "redis://localhost:6379/0"

    # ── Validators / normalizers ──────────────────────────────
    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def _blank_origins_mean_any(cls, v):
        entries = _split_csv(v)
        return ",".join(entries) if entries else "*"

    @field_validator("MAX_FILE_SIZE", mode="before")
    @classmethod
    def _zero_means_unlimited(cls, v):
        if v in (None, "", "0", 0):
            return None
        return v

    @field_validator("UPLOAD_ALLOWED_ORIGINS", mode="before")
    @classmethod
    def _normalize_upload_csv(cls, v):
        if v is None or not str(v).strip():
            return None
        return ",".join(_split_csv(str(v)))

    @field_validator("PUBLIC_BASE_URL", mode="before")
    @classmethod
    def _normalize_public_base(cls, v: str | None) -> str | None:
        """
        Accepts either 'cdn.example.com' or 'https://cdn.example.com' and
        normalizes to 'https://cdn.example.com' (no trailing slash).
        """
        s = (v or "").strip()
        if not s:
            return None
        return _normalize_url_like(s)

    # ── Derived / convenience properties ─────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"

    @property
    def allowed_origins_list(self) -> List[str]:
        """List form of `ALLOWED_ORIGINS` (`["*"]` for the wildcard)."""
        return _split_csv(self.ALLOWED_ORIGINS)

    @property
    def upload_secrets_json(self) -> str:
        return self.UPLOAD_SECRETS.get_secret_value()


# Singleton instance
settings = Settings()
