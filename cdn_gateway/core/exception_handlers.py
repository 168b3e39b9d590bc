from __future__ import annotations

"""
JSON exception handlers for errors raised outside the dispatcher.

`cdn_gateway.main` registers these so that framework-level failures (unknown
exceptions, Starlette HTTP errors, validation errors) render the same
`{"error": ..., "code": ...}` shape the dispatcher uses.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cdn_gateway.core.exceptions import ErrorCode, GatewayException
from cdn_gateway.middleware.request_id import get_request_id

logger = logging.getLogger("cdn_gateway.errors")

_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.BAD_REQUEST,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: ErrorCode.METHOD_NOT_ALLOWED,
    413: ErrorCode.FILE_TOO_LARGE,
}


def _error(message: str, code: ErrorCode, status_code: int, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "code": code.value},
        headers=headers,
    )


async def gateway_exception_handler(request: Request, exc: GatewayException) -> JSONResponse:  # type: ignore
    return _error(exc.message, exc.code, exc.status_code, getattr(exc, "headers", None))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:  # type: ignore
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    code = _STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return _error(detail, code, exc.status_code, getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:  # type: ignore
    return _error("Validation error", ErrorCode.BAD_REQUEST, status.HTTP_400_BAD_REQUEST)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # type: ignore
    # Hide internals; the stack trace goes to the log only.
    logger.exception(
        "Unhandled error for %s %s (request_id=%s)", request.method, request.url.path, get_request_id(request)
    )
    return _error("Internal Server Error", ErrorCode.INTERNAL_ERROR, status.HTTP_500_INTERNAL_SERVER_ERROR)


__all__ = [
    "gateway_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "global_exception_handler",
]
