"""
Tests for key-value stores and the JSON cache.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from calltrack_core.cache import Cache, InMemoryStore, KeyValueStore, RedisStore
from calltrack_core.errors import flush_reports


class TestInMemoryStore:
    """Tests for the development store."""

    @pytest.mark.asyncio
    async def test_incr_creates_and_counts(self, clock):
        store = InMemoryStore(clock=clock)

        assert await store.incr("api:agent-1:1") == 1
        assert await store.incr("api:agent-1:1") == 2
        assert await store.get("api:agent-1:1") == "2"

    @pytest.mark.asyncio
    async def test_incr_keeps_expiry(self, clock):
        store = InMemoryStore(clock=clock)
        await store.incr("counter")
        assert await store.expire("counter", 10) is True

        clock.advance(4)
        await store.incr("counter")

        assert store.ttl("counter") == 6

    @pytest.mark.asyncio
    async def test_incr_rejects_non_integer(self, clock):
        store = InMemoryStore(clock=clock)
        await store.set("name", "firestore")

        with pytest.raises(ValueError):
            await store.incr("name")

    @pytest.mark.asyncio
    async def test_expired_keys_disappear(self, clock):
        store = InMemoryStore(clock=clock)
        await store.set("session", "abc", ttl_seconds=5)

        clock.advance(5)

        assert await store.get("session") is None
        assert await store.incr("session") == 1
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_incr_window_sets_expiry_once(self, clock):
        store = InMemoryStore(clock=clock)

        assert await store.incr_window("api:a:1", 60) == 1
        clock.advance(20)
        assert await store.incr_window("api:a:1", 60) == 2

        assert store.ttl("api:a:1") == 40

    @pytest.mark.asyncio
    async def test_expire_missing_key(self, clock):
        store = InMemoryStore(clock=clock)

        assert await store.expire("missing", 10) is False
        assert store.ttl("missing") is None

    def test_satisfies_protocol(self, clock):
        assert isinstance(InMemoryStore(clock=clock), KeyValueStore)


class TestRedisStore:
    """Tests for the Redis adapter."""

    @pytest.mark.asyncio
    async def test_delegates_to_redis(self):
        redis = AsyncMock()
        script = AsyncMock(return_value=4)
        redis.register_script = MagicMock(return_value=script)
        redis.incr.return_value = 3
        redis.expire.return_value = 1
        redis.get.return_value = "cached"
        store = RedisStore(redis)

        assert await store.incr("api:a:1") == 3
        assert await store.expire("api:a:1", 60) is True
        assert await store.get("k") == "cached"
        assert await store.incr_window("api:a:2", 60) == 4
        await store.set("k", "v", ttl_seconds=30)
        await store.delete("k")

        redis.incr.assert_awaited_once_with("api:a:1")
        redis.expire.assert_awaited_once_with("api:a:1", 60)
        redis.set.assert_awaited_once_with("k", "v", ex=30)
        redis.delete.assert_awaited_once_with("k")
        script.assert_awaited_once_with(keys=["api:a:2"], args=[60])
        assert "EXPIRE" in redis.register_script.call_args.args[0]


class TestCache:
    """Tests for the JSON cache."""

    @pytest.mark.asyncio
    async def test_round_trip(self, clock):
        store = InMemoryStore(clock=clock)
        cache = Cache(store, prefix="cache:", ttl=60)

        assert await cache.set("agency:42:agents", [{"id": "a1"}]) is True

        assert await cache.get("agency:42:agents") == [{"id": "a1"}]
        assert await cache.has("agency:42:agents") is True
        assert store.ttl("cache:agency:42:agents") == 60

    @pytest.mark.asyncio
    async def test_miss_and_delete(self, clock):
        cache = Cache(InMemoryStore(clock=clock))
        await cache.set("k", {"v": 1})

        await cache.delete("k")

        assert await cache.get("k", default="fallback") == "fallback"
        assert await cache.has("k") is False

    @pytest.mark.asyncio
    async def test_store_failure_degrades_to_miss(self, reporter):
        store = AsyncMock()
        store.get.side_effect = ConnectionError("redis unreachable")
        store.set.side_effect = ConnectionError("redis unreachable")
        cache = Cache(store, reporter=reporter)

        assert await cache.get("k", default=[]) == []
        assert await cache.set("k", 1) is False
        await flush_reports()

        assert reporter.actions() == ["cache_get", "cache_set"]
