"""RedisLockBackend: SET NX PX and Lua script calls against a mocked redis.asyncio client."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from leaselock.infrastructure.cache import redis_client as redis_client_module
from leaselock.infrastructure.cache.redis_client import (
    REFRESH_SCRIPT,
    RELEASE_SCRIPT,
    RedisLockBackend,
)
from leaselock.locking.exceptions import InvalidTTLError


@pytest.fixture
def scripts():
    return {REFRESH_SCRIPT: AsyncMock(return_value=1), RELEASE_SCRIPT: AsyncMock(return_value=1)}


@pytest.fixture
def client(scripts):
    c = MagicMock()
    c.set = AsyncMock(return_value=True)
    c.ping = AsyncMock(return_value=True)
    c.aclose = AsyncMock()
    c.register_script.side_effect = lambda source: scripts[source]
    return c


@pytest.mark.asyncio
async def test_try_set_uses_set_nx_px(client):
    backend = RedisLockBackend(client=client)
    assert await backend.try_set("job:42", "tok", 1000) is True
    client.set.assert_awaited_once_with("job:42", "tok", nx=True, px=1000)


@pytest.mark.asyncio
async def test_try_set_returns_false_when_key_exists(client):
    # redis-py returns None when NX prevents the write
    client.set.return_value = None
    backend = RedisLockBackend(client=client)
    assert await backend.try_set("job:42", "tok", 1000) is False


@pytest.mark.asyncio
async def test_try_set_propagates_transport_errors(client):
    client.set.side_effect = ConnectionError("Redis connection refused")
    backend = RedisLockBackend(client=client)
    with pytest.raises(ConnectionError):
        await backend.try_set("job:42", "tok", 1000)


@pytest.mark.asyncio
async def test_try_set_rejects_bad_ttl_before_network(client):
    backend = RedisLockBackend(client=client)
    with pytest.raises(InvalidTTLError):
        await backend.try_set("job:42", "tok", 0)
    client.set.assert_not_awaited()


@pytest.mark.asyncio
async def test_compare_and_renew_runs_refresh_script(client, scripts):
    backend = RedisLockBackend(client=client)
    assert await backend.compare_and_renew("job:42", "tok", 900) is True
    scripts[REFRESH_SCRIPT].assert_awaited_once_with(keys=["job:42"], args=["tok", 900])

    scripts[REFRESH_SCRIPT].return_value = 0
    assert await backend.compare_and_renew("job:42", "other", 900) is False


@pytest.mark.asyncio
async def test_compare_and_delete_runs_release_script(client, scripts):
    backend = RedisLockBackend(client=client)
    assert await backend.compare_and_delete("job:42", "tok") is True
    scripts[RELEASE_SCRIPT].assert_awaited_once_with(keys=["job:42"], args=["tok"])

    scripts[RELEASE_SCRIPT].return_value = 0
    assert await backend.compare_and_delete("job:42", "tok") is False


@pytest.mark.asyncio
async def test_scripts_registered_once(client):
    backend = RedisLockBackend(client=client)
    for _ in range(3):
        await backend.compare_and_renew("k", "t", 100)
        await backend.compare_and_delete("k", "t")
    assert client.register_script.call_count == 2


def test_scripts_are_token_checked():
    assert 'redis.call("get", KEYS[1]) == ARGV[1]' in REFRESH_SCRIPT
    assert "pexpire" in REFRESH_SCRIPT
    assert 'redis.call("get", KEYS[1]) == ARGV[1]' in RELEASE_SCRIPT
    assert '"del"' in RELEASE_SCRIPT


@pytest.mark.asyncio
async def test_injected_client_is_not_closed(client):
    backend = RedisLockBackend(client=client)
    assert await backend.ping() is True
    await backend.close()
    client.aclose.assert_not_awaited()


@pytest.mark.asyncio
async def test_url_client_is_created_and_closed(client, monkeypatch):
    from_url = MagicMock(return_value=client)
    monkeypatch.setattr(redis_client_module.redis, "from_url", from_url)

    backend = RedisLockBackend(url="redis://cache:6379/1")
    from_url.assert_called_once_with("redis://cache:6379/1", decode_responses=True)
    await backend.close()
    client.aclose.assert_awaited_once()
