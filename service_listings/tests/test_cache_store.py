"""
Unit tests for the Redis cache store adapter.
"""

import pytest
from unittest.mock import AsyncMock, patch

from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from shared.errors import CacheStoreError, CacheStoreUnavailableError
from service_listings.app.cache import RedisCacheStore


class TestRedisCacheStore:
    """Test cases for RedisCacheStore."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache_store):
        """Stored values come back verbatim."""
        assert await cache_store.set("property:1", '{"id":"1"}', 60) is True
        assert await cache_store.get("property:1") == '{"id":"1"}'

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, cache_store):
        assert await cache_store.get("property:missing") is None

    @pytest.mark.asyncio
    async def test_set_applies_ttl(self, cache_store, fake_redis):
        await cache_store.set("property:1", "{}", 120)

        ttl = await fake_redis.ttl("property:1")
        assert 0 < ttl <= 120

    @pytest.mark.asyncio
    async def test_keys_matches_glob_pattern(self, cache_store):
        await cache_store.set('properties:{"page":1}', "{}", 60)
        await cache_store.set('properties:{"page":2}', "{}", 60)
        await cache_store.set("property:1", "{}", 60)

        keys = await cache_store.keys("properties:*")

        assert sorted(keys) == ['properties:{"page":1}', 'properties:{"page":2}']

    @pytest.mark.asyncio
    async def test_delete_many_and_empty(self, cache_store):
        await cache_store.set("a", "1", 60)
        await cache_store.set("b", "1", 60)

        assert await cache_store.delete("a", "b", "c") == 2
        assert await cache_store.delete() == 0
        assert await cache_store.exists("a") is False

    @pytest.mark.asyncio
    async def test_exists_and_expire(self, cache_store, fake_redis):
        await cache_store.set("property:1", "{}", 60)

        assert await cache_store.exists("property:1") is True
        assert await cache_store.expire("property:1", 5) is True
        assert await fake_redis.ttl("property:1") <= 5
        assert await cache_store.expire("property:missing", 5) is False

    @pytest.mark.asyncio
    async def test_ping(self, cache_store):
        assert await cache_store.ping() is True

    @pytest.mark.asyncio
    async def test_unconnected_store_raises_unavailable(self):
        """A store without a client reports itself unavailable."""
        store = RedisCacheStore()

        with pytest.raises(CacheStoreUnavailableError) as exc_info:
            await store.get("property:1")

        assert exc_info.value.operation == "get"

    @pytest.mark.asyncio
    async def test_redis_errors_are_translated(self, cache_store, fake_redis):
        with patch.object(fake_redis, "get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = RedisConnectionError("connection reset")

            with pytest.raises(CacheStoreError) as exc_info:
                await cache_store.get("property:1")

        assert exc_info.value.code == "CACHE_STORE_ERROR"
        assert "connection reset" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeouts_are_translated(self, cache_store, fake_redis):
        with patch.object(fake_redis, "set", new_callable=AsyncMock) as mock_set:
            mock_set.side_effect = RedisTimeoutError("Timeout reading from socket")

            with pytest.raises(CacheStoreError):
                await cache_store.set("property:1", "{}", 60)

    @pytest.mark.asyncio
    async def test_start_tolerates_unreachable_server(self, fake_redis):
        """Startup logs and carries on when Redis does not answer."""
        store = RedisCacheStore(client=fake_redis)

        with patch.object(fake_redis, "ping", new_callable=AsyncMock) as mock_ping:
            mock_ping.side_effect = RedisConnectionError("refused")
            await store.start()

        assert store.redis is fake_redis

    @pytest.mark.asyncio
    async def test_start_without_url_leaves_cache_disabled(self):
        store = RedisCacheStore()

        await store.start()

        assert store.redis is None

    @pytest.mark.asyncio
    async def test_stop_closes_client(self, fake_redis):
        store = RedisCacheStore(client=fake_redis)

        with patch.object(fake_redis, "aclose", new_callable=AsyncMock) as mock_close:
            await store.stop()

        mock_close.assert_awaited_once()
        assert store.redis is None
