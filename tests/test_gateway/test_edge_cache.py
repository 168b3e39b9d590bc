# tests/test_gateway/test_edge_cache.py
"""
Edge-cache interaction: MISS → background population → HIT, revalidation on
hits, per-request CORS, and a broken cache never breaking reads.
"""

import anyio
import pytest

from cdn_gateway.cache.edge import NullEdgeCache
from tests.fixtures.storage import BrokenCache, CountingStore, RecordingCache

BODY = b"<svg xmlns='http://www.w3.org/2000/svg'/>"


@pytest.fixture()
def store():
    s = CountingStore()
    anyio.run(s.put, "app1/icon.svg", BODY, "image/svg+xml")
    return s


@pytest.fixture()
def cache():
    return RecordingCache()


def test_get_populates_cache_and_second_read_is_hit(make_client, store, cache):
    client = make_client(store=store, cache=cache)

    first = client.get("/app1/icon.svg")
    assert first.headers["x-cache-status"] == "MISS"
    assert cache.stores == ["http://testserver/app1/icon.svg"]
    assert len(cache) == 1

    second = client.get("/app1/icon.svg")
    assert second.status_code == 200
    assert second.headers["x-cache-status"] == "HIT"
    assert second.content == BODY
    assert second.headers["etag"] == first.headers["etag"]
    assert second.headers["cache-control"] == first.headers["cache-control"]
    assert store.gets == ["app1/icon.svg"]


def test_cache_key_includes_query(make_client, store, cache):
    client = make_client(store=store, cache=cache)
    client.get("/app1/icon.svg?v=1")
    client.get("/app1/icon.svg?v=2")
    assert len(store.gets) == 2


def test_head_does_not_populate(make_client, store, cache):
    client = make_client(store=store, cache=cache)
    assert client.head("/app1/icon.svg").status_code == 200
    assert cache.stores == []


def test_not_modified_does_not_populate(make_client, store, cache):
    client = make_client(store=store, cache=cache)
    etag = anyio.run(store.get, "app1/icon.svg").meta.etag
    assert client.get("/app1/icon.svg", headers={"If-None-Match": etag}).status_code == 304
    assert cache.stores == []


def test_hit_is_revalidated_without_store(make_client, store, cache):
    client = make_client(store=store, cache=cache)
    etag = client.get("/app1/icon.svg").headers["etag"]

    r = client.get("/app1/icon.svg", headers={"If-None-Match": etag})
    assert r.status_code == 304
    assert r.content == b""
    assert r.headers["x-cache-status"] == "HIT"
    assert r.headers["etag"] == etag
    assert store.gets == ["app1/icon.svg"]


def test_hit_head_has_no_body(make_client, store, cache):
    client = make_client(store=store, cache=cache)
    client.get("/app1/icon.svg")
    r = client.head("/app1/icon.svg")
    assert r.headers["x-cache-status"] == "HIT"
    assert r.content == b""


def test_cors_is_applied_per_request_on_hits(make_client, store, cache):
    client = make_client(store=store, cache=cache, ALLOWED_ORIGINS="a.example,b.example")

    first = client.get("/app1/icon.svg", headers={"Origin": "https://a.example"})
    assert first.headers["access-control-allow-origin"] == "https://a.example"

    second = client.get("/app1/icon.svg", headers={"Origin": "https://b.example"})
    assert second.headers["x-cache-status"] == "HIT"
    assert second.headers["access-control-allow-origin"] == "https://b.example"

    third = client.get("/app1/icon.svg")
    assert third.headers["x-cache-status"] == "HIT"
    assert "access-control-allow-origin" not in third.headers


def test_origin_check_runs_before_cache(make_client, store, cache):
    client = make_client(store=store, cache=cache, ALLOWED_ORIGINS="a.example")
    client.get("/app1/icon.svg")
    r = client.get("/app1/icon.svg", headers={"Origin": "https://evil.example"})
    assert r.status_code == 403


def test_broken_cache_never_breaks_reads(make_client, store):
    broken = BrokenCache()
    client = make_client(store=store, cache=broken)

    r = client.get("/app1/icon.svg")
    assert r.status_code == 200
    assert r.content == BODY
    assert r.headers["x-cache-status"] == "MISS"
    assert broken.store_attempts == 1


def test_cache_disabled_backend(make_client, store):
    client = make_client(store=store, cache=NullEdgeCache())
    client.get("/app1/icon.svg")
    assert client.get("/app1/icon.svg").headers["x-cache-status"] == "MISS"
    assert len(store.gets) == 2
