"""Cache store tests."""

import os
import uuid

import pytest

from flowstate.cache.inmemory import InMemoryCacheStore
from flowstate.cache.redis import RedisCacheStore


class Ticker:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_inmemory_store_expires_entries():
    ticker = Ticker()
    store = InMemoryCacheStore(clock=ticker)

    await store.set("short", "1", ttl=10)
    await store.set("forever", "2")

    ticker.now += 9
    assert await store.get("short") == "1"
    ticker.now += 1
    assert await store.get("short") is None
    assert await store.get("forever") == "2"
    assert store.keys() == ["forever"]


@pytest.mark.asyncio
async def test_inmemory_store_delete():
    store = InMemoryCacheStore()
    await store.set("k", "v", ttl=60)
    await store.delete("k")
    await store.delete("k")
    assert await store.get("k") is None


def test_redis_store_defaults():
    store = RedisCacheStore()
    assert store.host == "localhost"
    assert store.port == 6379
    assert store.db == 0


@pytest.mark.asyncio
async def test_redis_store_round_trip():
    store = RedisCacheStore(host=os.getenv("TEST_REDIS_HOST", "localhost"))
    try:
        await store.connect()
    except Exception:
        pytest.skip("Redis server not available")

    key = f"flowstate-test:{uuid.uuid4().hex}"
    try:
        await store.set(key, "value", ttl=30)
        assert await store.get(key) == "value"
        await store.delete(key)
        assert await store.get(key) is None
    finally:
        await store.disconnect()
