from __future__ import annotations

"""
Conditional request (revalidation) evaluation.

Exactly one revalidation path is evaluated per request:

- `If-None-Match` present → compare it byte-for-byte with the object's
  validator. No weak comparison, no list parsing.
- else `If-Modified-Since` present → not modified when the parsed date is at
  or after the object's last-modified time (whole seconds; HTTP dates carry
  no fractional part). Unparseable dates are ignored.
- otherwise → modified.
"""

from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from enum import Enum
from typing import Optional


class Revalidation(str, Enum):
    MODIFIED = "modified"
    NOT_MODIFIED_ETAG = "not_modified_etag"
    NOT_MODIFIED_DATE = "not_modified_date"

    @property
    def not_modified(self) -> bool:
        return self is not Revalidation.MODIFIED


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 7231 date into an aware UTC datetime (None when invalid)."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_http_date(value: datetime) -> str:
    """Format a datetime as an IMF-fixdate (`Wed, 21 Oct 2015 07:28:00 GMT`)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def evaluate(
    etag: Optional[str],
    last_modified: Optional[datetime],
    if_none_match: Optional[str],
    if_modified_since: Optional[str],
) -> Revalidation:
    """Decide between a full response and `304 Not Modified`."""
    if if_none_match:
        if etag and if_none_match == etag:
            return Revalidation.NOT_MODIFIED_ETAG
        return Revalidation.MODIFIED

    if if_modified_since and last_modified is not None:
        since = parse_http_date(if_modified_since)
        if since is None:
            return Revalidation.MODIFIED
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        if last_modified.replace(microsecond=0) <= since:
            return Revalidation.NOT_MODIFIED_DATE

    return Revalidation.MODIFIED


__all__ = ["Revalidation", "evaluate", "format_http_date", "parse_http_date"]
