from __future__ import annotations

"""
Upload schemas.

- `UploadClaims`: the validated payload of an upload token. Only the token
  verifier constructs it; the raw decoded JSON never leaves the verifier.
- `UploadResponse` / `UploadData`: success body of `POST /upload/<key>`.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadClaims(BaseModel):
    """Authenticated upload-token payload.

    - app_name: key into the secret registry (`appName`).
    - exp: absolute Unix expiry.
    - allowed_paths: exact keys, `prefix/*` patterns, or `*`.
    - max_file_size: optional per-token byte ceiling.
    - allowed_extensions: optional extension allowlist (case-insensitive).
    - created: informational only.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, strict=True, extra="ignore")

    app_name: str = Field(..., alias="appName", min_length=1)
    exp: float
    allowed_paths: List[str] = Field(..., alias="allowedPaths")
    max_file_size: Optional[int] = Field(None, alias="maxFileSize", ge=0)
    allowed_extensions: Optional[List[str]] = Field(None, alias="allowedExtensions")
    created: Optional[Any] = None


class UploadData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    size: int = Field(..., ge=0)
    content_type: str = Field(..., alias="contentType")
    url: str
    timestamp: str
    app: str


class UploadResponse(BaseModel):
    success: bool = True
    message: str = "File uploaded successfully"
    data: UploadData


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str
    timestamp: str


__all__ = ["HealthResponse", "UploadClaims", "UploadData", "UploadResponse"]
