from __future__ import annotations

"""
Origin / Referer allow-listing (anti-hotlinking).

Rules
-----
1. Wildcard allowlist (`*`) → always allowed.
2. No `Origin` and no `Referer` → allowed (server-to-server, curl, direct
   navigation). Only cross-site embedding is blocked.
3. Otherwise the allowlist is split on commas; the request is allowed iff an
   entry matches the `Origin`, or the `Referer` when `Origin` is absent.

Match modes
-----------
- `suffix`    (default) host equals the entry or ends with `.` + entry
- `host`      host equals the entry exactly
- `substring` legacy compatibility: entry is a substring of the raw header.
              Lax by nature: `evil.com` matches `notevil.com`.
"""

from enum import Enum
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

WILDCARD = "*"


class MatchMode(str, Enum):
    SUFFIX = "suffix"
    HOST = "host"
    SUBSTRING = "substring"


def parse_allowlist(allowlist: str | Iterable[str] | None) -> List[str]:
    if allowlist is None:
        return []
    items = allowlist.split(",") if isinstance(allowlist, str) else list(allowlist)
    return [s.strip() for s in items if s and s.strip()]


def _host_of(value: str) -> str:
    """Extract a lowercase hostname from an origin/referer URL or a bare host."""
    raw = value.strip()
    if "://" not in raw:
        raw = "//" + raw
    try:
        host = urlsplit(raw).hostname or ""
    except ValueError:
        return ""
    return host.lower().rstrip(".")


def _entry_matches(entry: str, header: str, mode: MatchMode) -> bool:
    if mode is MatchMode.SUBSTRING:
        return entry in header
    host = _host_of(header)
    want = _host_of(entry)
    if not host or not want:
        return False
    if mode is MatchMode.HOST:
        return host == want
    return host == want or host.endswith("." + want)


def is_origin_allowed(
    origin: Optional[str],
    referer: Optional[str],
    allowlist: str | Iterable[str] | None,
    mode: MatchMode | str = MatchMode.SUBSTRING,
) -> bool:
    """
    Decide whether a request's declared origin is permitted.

    Args:
        origin: `Origin` header value (None/empty when absent).
        referer: `Referer` header value (None/empty when absent).
        allowlist: CSV string or iterable of entries; `*` allows everything.
        mode: how entries are compared (see module docstring).
    """
    entries = parse_allowlist(allowlist)
    if WILDCARD in entries:
        return True
    if not origin and not referer:
        return True

    mode = MatchMode(mode)
    header = origin or referer or ""
    return any(_entry_matches(entry, header, mode) for entry in entries)


__all__ = ["MatchMode", "WILDCARD", "is_origin_allowed", "parse_allowlist"]
