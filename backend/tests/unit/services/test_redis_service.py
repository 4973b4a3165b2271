from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from dataprep.config.settings import ApplicationSettings
from dataprep.services import redis_service as redis_module
from dataprep.services.redis_service import RedisService, create_redis_service


class _FakeClient:
    def __init__(self, *, connection_pool=None, fail: bool = False) -> None:
        self.connection_pool = connection_pool
        self.fail = fail
        self.closed = False

    async def ping(self) -> bool:
        if self.fail:
            raise RedisConnectionError("redis down")
        return True

    async def aclose(self) -> None:
        self.closed = True


def test_create_redis_service_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REDIS_HOST", "cache")
    monkeypatch.setenv("REDIS_PORT", "6390")
    monkeypatch.setenv("REDIS_DB", "2")

    service = create_redis_service(ApplicationSettings())

    assert (service.host, service.port, service.db) == ("cache", 6390, 2)


def test_client_requires_connect() -> None:
    with pytest.raises(RuntimeError):
        RedisService().client


@pytest.mark.asyncio
async def test_connect_and_disconnect(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[_FakeClient] = []

    def _factory(**kwargs) -> _FakeClient:
        client = _FakeClient(**kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(redis_module.redis, "Redis", _factory)
    service = RedisService()

    await service.connect()

    assert service.client is created[0]
    assert created[0].connection_pool is service.pool
    assert await service.ping() is True

    await service.disconnect()

    assert created[0].closed is True
    with pytest.raises(RuntimeError):
        service.client


@pytest.mark.asyncio
async def test_connect_failure_propagates(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(redis_module.redis, "Redis", lambda **kwargs: _FakeClient(fail=True, **kwargs))

    with pytest.raises(RedisConnectionError):
        await RedisService().connect()
