"""
Document store contracts for Listings Service.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..domain.models import PropertyRecord, Recommendation, UserProfile


SortOptions = Sequence[Tuple[str, int]]


class PropertyStore(ABC):
    """Listing storage.

    Filters use the vocabulary produced by ``domain.filters``.
    """

    async def start(self):
        """Open connections. No-op by default."""

    async def stop(self):
        """Close connections. No-op by default."""

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def create(self, record: PropertyRecord) -> PropertyRecord:
        """Insert a listing. Raises ConflictError on a duplicate property_id."""

    @abstractmethod
    async def find_by_id(self, property_id: str) -> Optional[PropertyRecord]:
        ...

    @abstractmethod
    async def find_by_property_id(self, external_id: str) -> Optional[PropertyRecord]:
        ...

    @abstractmethod
    async def find(
        self,
        query_filter: Mapping[str, Any],
        skip: int = 0,
        limit: int = 20,
        sort: Optional[SortOptions] = None,
    ) -> List[PropertyRecord]:
        ...

    @abstractmethod
    async def count(self, query_filter: Mapping[str, Any]) -> int:
        ...

    @abstractmethod
    async def update(self, property_id: str, changes: Dict[str, Any]) -> Optional[PropertyRecord]:
        """Apply changes and bump updated_at. Returns None if the listing is gone."""

    @abstractmethod
    async def delete(self, property_id: str) -> Optional[PropertyRecord]:
        """Remove a listing, returning what was removed."""

    @abstractmethod
    async def find_many(self, property_ids: Sequence[str]) -> List[PropertyRecord]:
        """Fetch listings in the given order, skipping missing ids."""

    @abstractmethod
    async def owner_stats(self, owner_id: str) -> Dict[str, Any]:
        """Aggregate count, average price, total value and type mix for an owner."""


class UserStore(ABC):
    """User profiles, favorites and received recommendations."""

    async def start(self):
        """Open connections. No-op by default."""

    async def stop(self):
        """Close connections. No-op by default."""

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def ensure_user(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> UserProfile:
        """Create the profile if missing, refreshing email and name when given."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserProfile]:
        ...

    @abstractmethod
    async def get_many(self, user_ids: Sequence[str]) -> Dict[str, UserProfile]:
        """Profiles keyed by id, skipping unknown ids."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[UserProfile]:
        """Case-insensitive lookup."""

    @abstractmethod
    async def add_favorite(self, user_id: str, property_id: str) -> bool:
        """Returns False if the listing was already a favorite."""

    @abstractmethod
    async def remove_favorite(self, user_id: str, property_id: str) -> bool:
        ...

    @abstractmethod
    async def favorite_ids(self, user_id: str) -> List[str]:
        """Favorite listing ids, oldest first."""

    @abstractmethod
    async def add_recommendation(self, recommendation: Recommendation) -> Recommendation:
        ...

    @abstractmethod
    async def remove_recommendation(self, user_id: str, recommendation_id: str) -> bool:
        """Remove a recommendation received by user_id."""

    @abstractmethod
    async def list_recommendations(self, user_id: str, skip: int = 0, limit: int = 20) -> Tuple[List[Recommendation], int]:
        """Recommendations received by user_id, newest first, with the total."""

    @abstractmethod
    async def remove_property_references(self, property_id: str) -> None:
        """Drop favorites and recommendations that point at a deleted listing."""
