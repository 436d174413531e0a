"""
Fail-open cache service for Listings Service.
"""

import json
import time
from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger
from .keys import KNOWN_NAMESPACES, collection_pattern, namespace_of
from .store import RedisCacheStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_CACHE_TTL = 3600


class CacheService:
    """Request-facing cache API.

    Values are stored as JSON text with a TTL. No method raises: store faults
    are logged, counted and turned into a miss (``get``) or ``False``.
    """

    def __init__(
        self,
        store: RedisCacheStore,
        default_ttl: int = DEFAULT_CACHE_TTL,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.store = store
        self.default_ttl = default_ttl
        self.metrics = metrics
        self.logger = get_logger("listings.cache")

        self._hits = 0
        self._misses = 0
        self._errors = 0

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached payload for key, or None."""
        start = time.perf_counter()
        try:
            raw = await self.store.get(key)
        except Exception as e:
            self._record_fault("get", e, key=key)
            return None
        finally:
            self._observe("get", start)

        if raw is None:
            self._record_miss(key)
            return None

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            self._record_fault("deserialize", e, key=key)
            self._record_miss(key)
            await self._discard(key)
            return None

        self._record_hit(key)
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Serialize value and store it under key for ttl seconds."""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            self.logger.warning("Rejected cache write with non-positive TTL", key=key, ttl=ttl)
            return False

        try:
            payload = json.dumps(value, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as e:
            self._record_fault("serialize", e, key=key)
            return False

        start = time.perf_counter()
        try:
            await self.store.set(key, payload, ttl)
        except Exception as e:
            self._record_fault("set", e, key=key)
            return False
        finally:
            self._observe("set", start)

        self.logger.debug("Cached payload", key=key, ttl=ttl)
        return True

    async def delete(self, key: str) -> bool:
        """Remove key. A missing key counts as success."""
        try:
            await self.store.delete(key)
        except Exception as e:
            self._record_fault("delete", e, key=key)
            return False
        return True

    async def clear_pattern(self, pattern: str) -> bool:
        """Delete every key matching a glob pattern in one batch."""
        start = time.perf_counter()
        try:
            keys = await self.store.keys(pattern)
            removed = await self.store.delete(*keys) if keys else 0
        except Exception as e:
            self._record_fault("clear_pattern", e, pattern=pattern)
            return False
        finally:
            self._observe("clear_pattern", start)

        self.logger.info("Cleared cache pattern", pattern=pattern, matched=len(keys), removed=removed)
        return True

    async def exists(self, key: str) -> bool:
        try:
            return await self.store.exists(key)
        except Exception as e:
            self._record_fault("exists", e, key=key)
            return False

    async def expire(self, key: str, ttl: int) -> bool:
        """Reset the TTL of an existing key."""
        if ttl <= 0:
            return False
        try:
            return await self.store.expire(key, ttl)
        except Exception as e:
            self._record_fault("expire", e, key=key)
            return False

    async def ping(self) -> bool:
        try:
            return await self.store.ping()
        except Exception as e:
            self.logger.debug("Cache ping failed", error=str(e))
            return False

    async def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        lookups = self._hits + self._misses
        result: Dict[str, Any] = {
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
            "hit_ratio": round(self._hits / lookups, 4) if lookups else 0.0,
            "default_ttl": self.default_ttl,
        }

        try:
            counts = {}
            for namespace in KNOWN_NAMESPACES:
                counts[namespace] = len(await self.store.keys(collection_pattern(namespace)))
            result["keys"] = counts
            result["available"] = True
        except Exception as e:
            self._record_fault("stats", e)
            result["keys"] = None
            result["available"] = False

        return result

    async def _discard(self, key: str):
        try:
            await self.store.delete(key)
        except Exception as e:
            self.logger.debug("Could not discard unreadable cache entry", key=key, error=str(e))

    def _record_hit(self, key: str):
        self._hits += 1
        if self.metrics:
            self.metrics.increment_counter("cache_hits_total", namespace=namespace_of(key))

    def _record_miss(self, key: str):
        self._misses += 1
        if self.metrics:
            self.metrics.increment_counter("cache_misses_total", namespace=namespace_of(key))

    def _record_fault(self, operation: str, error: Exception, **context):
        self._errors += 1
        self.logger.warning(
            "Cache operation failed; continuing without cache",
            operation=operation,
            error=str(error),
            error_type=error.__class__.__name__,
            **context
        )
        if self.metrics:
            self.metrics.increment_counter("cache_errors_total", operation=operation)

    def _observe(self, operation: str, start: float):
        if self.metrics:
            self.metrics.observe_histogram(
                "cache_operation_duration_seconds",
                time.perf_counter() - start,
                operation=operation
            )
