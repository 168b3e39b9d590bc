import pytest
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from cdn_gateway.core import redis_client as redis_module
from cdn_gateway.core.redis_client import RedisClient


class _Pingable:
    def __init__(self, healthy: bool = True) -> None:
        self.healthy = healthy
        self.closed = False

    async def ping(self):
        if not self.healthy:
            raise RedisConnectionError("down")
        return True

    async def close(self):
        self.closed = True


def test_client_requires_connect():
    wrapper = RedisClient("redis://localhost:6379/0")
    with pytest.raises(RuntimeError):
        _ = wrapper.client


def test_tls_url_builds_async_client():
    client = RedisClient("rediss://cache:6380/0")._build_client()
    assert isinstance(client, Redis)


@pytest.mark.anyio
async def test_is_connected_reflects_ping():
    wrapper = RedisClient("redis://localhost:6379/0")
    assert await wrapper.is_connected() is False

    wrapper._client = _Pingable()
    assert await wrapper.is_connected() is True

    wrapper._client = _Pingable(healthy=False)
    assert await wrapper.is_connected() is False


@pytest.mark.anyio
async def test_connect_retries_then_fails(monkeypatch):
    attempts = []

    def _build(self):
        attempts.append(1)
        return _Pingable(healthy=False)

    monkeypatch.setattr(RedisClient, "_build_client", _build)
    monkeypatch.setattr(redis_module, "BASE_DELAY", 0.0)
    monkeypatch.setattr(redis_module, "MAX_RETRIES", 3)

    wrapper = RedisClient("redis://localhost:6379/0")
    with pytest.raises(RuntimeError):
        await wrapper.connect()
    assert len(attempts) == 3


@pytest.mark.anyio
async def test_connect_and_close(monkeypatch):
    fake = _Pingable()
    monkeypatch.setattr(RedisClient, "_build_client", lambda self: fake)

    wrapper = RedisClient("redis://localhost:6379/0")
    await wrapper.connect()
    assert wrapper.client is fake

    await wrapper.close()
    assert fake.closed
    with pytest.raises(RuntimeError):
        _ = wrapper.client
