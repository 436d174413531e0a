"""
Redis key-value store adapter for Listings Service.

Thin wrapper over redis.asyncio. Every fault surfaces as CacheStoreError.
"""

import asyncio
from contextlib import contextmanager
from typing import List, Optional, Union

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import CacheStoreError, CacheStoreUnavailableError
from shared.logging import get_logger


KeyType = Union[str, bytes]


class RedisCacheStore:
    """Redis-backed key-value store used by the listing cache."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        client: Optional[redis.Redis] = None,
        socket_timeout: float = 2.0,
        scan_count: int = 500,
    ):
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self.scan_count = scan_count
        self.logger = get_logger("listings.cache.store")
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Connect to Redis.

        An unreachable server is logged, not raised: the service must come up
        without its cache and serve every read from the document store.
        """
        if self.redis is None:
            if not self.redis_url:
                self.logger.warning("No Redis URL configured; cache disabled")
                return

            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                retry_on_timeout=False,
                health_check_interval=30
            )

        try:
            await self.redis.ping()
            self.logger.info("Redis cache store started")
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            self.logger.warning("Redis unreachable at startup; serving without cache", error=str(e))

    async def stop(self):
        """Close the Redis connection pool."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache store stopped")

    @contextmanager
    def _translate_errors(self, operation: str):
        try:
            yield
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise CacheStoreError(operation, str(e) or e.__class__.__name__) from e

    def _client(self, operation: str) -> redis.Redis:
        if self.redis is None:
            raise CacheStoreUnavailableError(operation)
        return self.redis

    async def get(self, key: str) -> Optional[KeyType]:
        """Return the raw value stored at key, or None."""
        client = self._client("get")
        with self._translate_errors("get"):
            return await client.get(key)

    async def set(self, key: str, value: str, ttl: int) -> bool:
        """Store value at key with an expiry of ttl seconds."""
        client = self._client("set")
        with self._translate_errors("set"):
            return bool(await client.set(key, value, ex=ttl))

    async def delete(self, *keys: KeyType) -> int:
        """Delete keys, returning how many existed."""
        if not keys:
            return 0
        client = self._client("delete")
        with self._translate_errors("delete"):
            return int(await client.delete(*keys))

    async def keys(self, pattern: str) -> List[KeyType]:
        """Return keys matching a glob pattern.

        Uses SCAN rather than KEYS so large keyspaces do not block the server.
        SCAN may yield a key more than once; the result is de-duplicated.
        """
        client = self._client("keys")
        with self._translate_errors("keys"):
            found = [key async for key in client.scan_iter(match=pattern, count=self.scan_count)]
        return list(dict.fromkeys(found))

    async def exists(self, key: str) -> bool:
        client = self._client("exists")
        with self._translate_errors("exists"):
            return await client.exists(key) > 0

    async def expire(self, key: str, ttl: int) -> bool:
        client = self._client("expire")
        with self._translate_errors("expire"):
            return bool(await client.expire(key, ttl))

    async def ping(self) -> bool:
        client = self._client("ping")
        with self._translate_errors("ping"):
            return bool(await client.ping())
