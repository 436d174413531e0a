"""
Cache package for Listings Service.

Provides a Redis-backed read-through cache for listing reads together with
the key scheme and write-invalidation rules that keep it consistent. Prefer
conservative (over-matching) invalidation over surgical deletes.
"""

from .store import RedisCacheStore
from .service import CacheService
from .keys import (
    collection_key,
    collection_pattern,
    entity_key,
    entity_pattern,
    escape_glob,
    user_scoped_key,
    user_scoped_pattern,
)
from .invalidation import InvalidationCoordinator, InvalidationReport
from .read_through import with_read_through_cache

__all__ = [
    "RedisCacheStore",
    "CacheService",
    "InvalidationCoordinator",
    "InvalidationReport",
    "with_read_through_cache",
    "entity_key",
    "collection_key",
    "user_scoped_key",
    "entity_pattern",
    "collection_pattern",
    "user_scoped_pattern",
    "escape_glob",
]
