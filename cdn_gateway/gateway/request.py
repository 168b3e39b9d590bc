from __future__ import annotations

"""
Transport-neutral request passed to the dispatcher.

Built from a Starlette request in production (`from_starlette`) and from
plain values in tests (`build`), so that routing never depends on how the
ASGI server normalized the URL.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Callable, Mapping, Optional, Union

from starlette.datastructures import Headers
from starlette.requests import Request

from cdn_gateway.core.exceptions import SizeError

BodyStream = Callable[[], AsyncIterator[bytes]]


@dataclass(frozen=True)
class GatewayRequest:
    method: str
    path: str
    url: str
    base_url: str
    headers: Headers
    stream: BodyStream

    # ── header helpers ───────────────────────────────────────
    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name)
        return value if value else None

    @property
    def origin(self) -> Optional[str]:
        return self.header("origin")

    @property
    def referer(self) -> Optional[str]:
        return self.header("referer")

    def bearer_token(self) -> Optional[str]:
        """Token from `Authorization: Bearer <token>` (None when absent/other scheme)."""
        raw = self.header("authorization")
        if not raw:
            return None
        scheme, _, token = raw.strip().partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        return token.strip()

    def content_length(self) -> Optional[int]:
        """Declared `Content-Length`; None when absent or not a non-negative integer."""
        raw = self.header("content-length")
        if raw is None or not raw.strip().isdigit():
            return None
        return int(raw.strip())

    # ── body ─────────────────────────────────────────────────
    async def read_body(self, limit: Optional[int] = None) -> bytes:
        """
        Read the whole body, counting actual bytes received.

        Raises `SizeError` as soon as more than `limit` bytes have arrived,
        whatever `Content-Length` claimed.
        """
        chunks = []
        received = 0
        async for chunk in self.stream():
            if not chunk:
                continue
            received += len(chunk)
            if limit is not None and received > limit:
                raise SizeError(f"File exceeds maximum size of {limit} bytes")
            chunks.append(chunk)
        return b"".join(chunks)

    # ── constructors ─────────────────────────────────────────
    @classmethod
    def from_starlette(cls, request: Request) -> "GatewayRequest":
        return cls(
            method=request.method.upper(),
            path=request.url.path,
            url=str(request.url),
            base_url=str(request.base_url).rstrip("/"),
            headers=request.headers,
            stream=request.stream,
        )

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        body: Union[bytes, list, None] = None,
        base_url: str = "http://testserver",
        query: str = "",
    ) -> "GatewayRequest":
        """Construct a request from plain values; `body` may be bytes or a list of chunks."""
        chunks = [body] if isinstance(body, bytes) else list(body or [])

        async def _stream() -> AsyncIterator[bytes]:
            for chunk in chunks:
                yield chunk

        base = base_url.rstrip("/")
        url = f"{base}{path}" + (f"?{query}" if query else "")
        return cls(
            method=method.upper(),
            path=path,
            url=url,
            base_url=base,
            headers=Headers(headers=dict(headers or {})),
            stream=_stream,
        )


__all__ = ["GatewayRequest"]
