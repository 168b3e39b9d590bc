from datetime import datetime, timezone

from cdn_gateway.services.conditional import Revalidation, evaluate, format_http_date, parse_http_date

LAST_MODIFIED = datetime(2024, 5, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)


def test_matching_etag_is_not_modified():
    assert evaluate('"v1"', LAST_MODIFIED, '"v1"', None) is Revalidation.NOT_MODIFIED_ETAG


def test_different_etag_is_modified():
    assert evaluate('"v1"', LAST_MODIFIED, '"v2"', None) is Revalidation.MODIFIED


def test_etag_compare_is_exact():
    assert evaluate('"v1"', LAST_MODIFIED, 'W/"v1"', None) is Revalidation.MODIFIED
    assert evaluate('"v1"', LAST_MODIFIED, '"v1", "v2"', None) is Revalidation.MODIFIED


def test_if_none_match_suppresses_if_modified_since():
    future = "Wed, 01 Jan 2031 00:00:00 GMT"
    assert evaluate('"v1"', LAST_MODIFIED, '"nope"', future) is Revalidation.MODIFIED


def test_if_modified_since_at_or_after_last_modified():
    same_second = "Wed, 01 May 2024 12:00:00 GMT"
    later = "Wed, 01 May 2024 13:00:00 GMT"
    assert evaluate(None, LAST_MODIFIED, None, same_second) is Revalidation.NOT_MODIFIED_DATE
    assert evaluate(None, LAST_MODIFIED, None, later).not_modified


def test_if_modified_since_before_last_modified():
    earlier = "Wed, 01 May 2024 11:59:59 GMT"
    assert evaluate('"v1"', LAST_MODIFIED, None, earlier) is Revalidation.MODIFIED


def test_unparseable_date_is_ignored():
    assert evaluate('"v1"', LAST_MODIFIED, None, "not a date") is Revalidation.MODIFIED


def test_no_validators_is_modified():
    assert not evaluate('"v1"', LAST_MODIFIED, None, None).not_modified


def test_http_date_round_trip_drops_subseconds():
    text = format_http_date(LAST_MODIFIED)
    assert text == "Wed, 01 May 2024 12:00:00 GMT"
    assert parse_http_date(text) == LAST_MODIFIED.replace(microsecond=0)
    assert parse_http_date("") is None
