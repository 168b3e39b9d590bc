import uuid

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from cdn_gateway.middleware.request_id import RequestIDMiddleware, get_request_id


def test_health_endpoints(client):
    for path in ("/health", "/"):
        r = client.get(path)
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["service"] == "Test CDN"
        assert body["timestamp"].endswith("Z")


def test_preflight_answers_any_path(client):
    r = client.options(
        "/app1/logo.png",
        headers={"Origin": "https://app.example.com", "Access-Control-Request-Method": "POST"},
    )
    assert r.status_code == 204
    assert r.content == b""
    assert r.headers["access-control-allow-origin"] == "https://app.example.com"
    assert "POST" in r.headers["access-control-allow-methods"]
    assert "Authorization" in r.headers["access-control-allow-headers"]
    assert r.headers["access-control-max-age"] == "86400"


def test_preflight_without_origin(client):
    r = client.options("/upload/app1/img.png")
    assert r.status_code == 204
    assert r.headers["access-control-allow-origin"] == "*"


@pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE"])
def test_unsupported_methods_are_405(client, method):
    r = client.request(method, "/app1/logo.png")
    assert r.status_code == 405
    assert r.json()["code"] == "METHOD_NOT_ALLOWED"
    assert "GET" in r.headers["allow"]


def test_post_outside_upload_prefix_is_405(client):
    r = client.post("/app1/logo.png", content=b"x")
    assert r.status_code == 405


def test_request_id_is_echoed(client):
    rid = str(uuid.uuid4())
    r = client.get("/health", headers={"X-Request-ID": rid})
    assert r.headers["x-request-id"] == rid


def test_invalid_request_id_is_replaced(client):
    r = client.get("/health", headers={"X-Request-ID": "not-a-uuid"})
    generated = r.headers["x-request-id"]
    assert generated != "not-a-uuid"
    assert uuid.UUID(generated).version == 4


def test_request_id_is_visible_to_handlers():
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)

    @app.get("/rid")
    async def _rid(request: Request):
        return {"rid": get_request_id(request)}

    r = TestClient(app).get("/rid")
    assert r.json()["rid"] == r.headers["x-request-id"]
