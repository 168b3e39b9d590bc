# tests/conftest.py
"""
Global test bootstrap
- Deterministic settings (no `.env`, in-memory store + edge cache)
- App / client fixtures built through `create_app` with injected collaborators
- Token factory signing HS256 upload tokens with python-jose
"""

from __future__ import annotations

import json
import os

import pytest

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Test env (set BEFORE importing the app so module-level settings are sane)
# ──────────────────────────────────────────────────────────────────────────────
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("UPLOAD_SECRETS", "{}")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("EDGE_CACHE_BACKEND", "memory")

from fastapi.testclient import TestClient  # noqa: E402

from cdn_gateway.cache.edge import InMemoryEdgeCache  # noqa: E402
from cdn_gateway.core.config import Settings  # noqa: E402
from cdn_gateway.main import create_app  # noqa: E402
from cdn_gateway.storage.memory import InMemoryObjectStore  # noqa: E402

# ──────────────────────────────────────────────────────────────────────────────
# 📦 Shared fixtures
# ──────────────────────────────────────────────────────────────────────────────
from tests.fixtures.storage import *  # noqa: F401,F403,E402
from tests.fixtures.tokens import *  # noqa: F401,F403,E402

APP_SECRETS = {
    "app1": "app1-signing-secret",
    "app2": "app2-signing-secret",
    "broken": 12345,
}


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def settings_factory():
    """
    Build isolated `Settings`; keyword overrides win over the test defaults.
    """

    def _factory(**overrides) -> Settings:
        values = {
            "ENV": "development",
            "SERVICE_NAME": "Test CDN",
            "ALLOWED_ORIGINS": "*",
            "ORIGIN_MATCH_MODE": "suffix",
            "UPLOAD_SECRETS": json.dumps(APP_SECRETS),
            "PUBLIC_BASE_URL": "https://cdn.example.com",
            "STORAGE_BACKEND": "memory",
            "EDGE_CACHE_BACKEND": "memory",
            "STORAGE_TIMEOUT_SECONDS": 2.0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _factory


@pytest.fixture()
def gateway_settings(settings_factory) -> Settings:
    return settings_factory()


@pytest.fixture()
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture()
def edge_cache() -> InMemoryEdgeCache:
    return InMemoryEdgeCache(maxsize=64)


@pytest.fixture()
def make_client(settings_factory, object_store, edge_cache):
    """
    ✅ Create a `TestClient` (lifespan included) for a given configuration.

    Usage:
        client = make_client(ALLOWED_ORIGINS="example.com")
        client = make_client(store=FailingStore())
    """
    clients = []

    def _make(*, store=None, cache=None, **overrides) -> TestClient:
        app = create_app(
            settings_factory(**overrides),
            store=store if store is not None else object_store,
            edge_cache=cache if cache is not None else edge_cache,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture()
def client(make_client) -> TestClient:
    return make_client()
