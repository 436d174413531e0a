"""
Write-invalidation rules for the listing cache.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, TYPE_CHECKING

from shared.logging import get_logger
from .keys import (
    ANALYTICS,
    FAVORITES,
    PROPERTIES,
    PROPERTY,
    RECOMMENDATIONS,
    collection_pattern,
    entity_pattern,
    user_scoped_pattern,
)
from .service import CacheService

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


RELATIONS = (FAVORITES, RECOMMENDATIONS)


@dataclass
class InvalidationReport:
    """Outcome of clearing the patterns for one mutation."""

    mutation: str
    patterns: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class InvalidationCoordinator:
    """Maps each mutation to the cache patterns it stales and clears them.

    Runs after the write has committed and before the response is sent. A
    pattern that fails to clear is reported, never raised; its entries age out
    by TTL.
    """

    def __init__(
        self,
        cache: CacheService,
        *,
        metrics: Optional["MetricsCollector"] = None,
        entity_kind: str = PROPERTY,
        collection_kind: str = PROPERTIES,
    ):
        self.cache = cache
        self.metrics = metrics
        self.entity_kind = entity_kind
        self.collection_kind = collection_kind
        self.logger = get_logger("listings.cache.invalidation")

    # Rule table

    def create_patterns(self, owner_id: Optional[Any] = None) -> List[str]:
        patterns = [collection_pattern(self.collection_kind)]
        if owner_id is not None:
            patterns.append(user_scoped_pattern(owner_id, ANALYTICS))
        return patterns

    def update_patterns(self, entity_id: Any, owner_id: Optional[Any] = None) -> List[str]:
        patterns = [
            entity_pattern(self.entity_kind, entity_id),
            collection_pattern(self.collection_kind),
        ]
        if owner_id is not None:
            patterns.append(user_scoped_pattern(owner_id, ANALYTICS))
        # Favorites and recommendations pages embed the entity document.
        patterns.extend(user_scoped_pattern(None, relation) for relation in RELATIONS)
        return patterns

    def delete_patterns(self, entity_id: Any, owner_id: Optional[Any] = None) -> List[str]:
        return self.update_patterns(entity_id, owner_id)

    def profile_patterns(self) -> List[str]:
        # Collection pages embed creator name and email.
        return [collection_pattern(self.collection_kind)]

    def relation_patterns(self, user_id: Any, relation: str) -> List[str]:
        if relation not in RELATIONS:
            raise ValueError(f"Unknown relation: {relation}")
        return [user_scoped_pattern(user_id, relation)]

    # Execution

    async def entity_created(self, owner_id: Optional[Any] = None) -> InvalidationReport:
        return await self._clear("create", self.create_patterns(owner_id))

    async def entity_updated(self, entity_id: Any, owner_id: Optional[Any] = None) -> InvalidationReport:
        return await self._clear("update", self.update_patterns(entity_id, owner_id))

    async def entity_deleted(self, entity_id: Any, owner_id: Optional[Any] = None) -> InvalidationReport:
        return await self._clear("delete", self.delete_patterns(entity_id, owner_id))

    async def relation_changed(self, user_id: Any, relation: str) -> InvalidationReport:
        return await self._clear(f"{relation}_change", self.relation_patterns(user_id, relation))

    async def profile_updated(self) -> InvalidationReport:
        return await self._clear("profile_update", self.profile_patterns())

    async def _clear(self, mutation: str, patterns: List[str]) -> InvalidationReport:
        report = InvalidationReport(mutation=mutation, patterns=list(patterns))

        for pattern in patterns:
            cleared = await self.cache.clear_pattern(pattern)
            if not cleared:
                report.failed.append(pattern)
            if self.metrics:
                self.metrics.increment_counter(
                    "cache_invalidations_total",
                    mutation=mutation,
                    result="ok" if cleared else "failed"
                )

        if report.ok:
            self.logger.info("Cache invalidated", mutation=mutation, patterns=patterns)
        else:
            self.logger.warning(
                "Cache invalidation incomplete; stale entries expire by TTL",
                mutation=mutation,
                failed=report.failed
            )
        return report
