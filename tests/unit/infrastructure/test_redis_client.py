"""RedisClient: the INCR/EXPIRE surface the rate limiter relies on."""

from unittest.mock import AsyncMock

import pytest

from audit_trail.infrastructure.cache.redis_client import RedisClient


@pytest.fixture
def client():
    c = RedisClient("redis://localhost:6379/0")
    c.client = AsyncMock()
    return c


@pytest.mark.asyncio
async def test_incr_and_expire_delegate(client):
    client.client.incr.return_value = 3
    assert await client.incr("rate:client:10.0.0.1") == 3
    await client.expire("rate:client:10.0.0.1", 60)
    client.client.incr.assert_awaited_once_with("rate:client:10.0.0.1")
    client.client.expire.assert_awaited_once_with("rate:client:10.0.0.1", 60)


@pytest.mark.asyncio
async def test_close(client):
    await client.close()
    client.client.aclose.assert_awaited_once()


def test_exposes_only_rate_limit_operations():
    public = {name for name in vars(RedisClient) if not name.startswith("_")}
    assert public == {"incr", "expire", "close"}
