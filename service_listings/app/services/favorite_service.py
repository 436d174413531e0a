"""
Favorites business logic for Listings Service.
"""

from typing import Any, Dict, List

from shared.errors import NotFoundError
from shared.logging import get_logger
from ..cache.invalidation import InvalidationCoordinator
from ..cache.keys import FAVORITES
from ..persistence.base import PropertyStore, UserStore
from .pagination import offset, pagination
from .property_service import serialize_properties


class FavoriteService:
    """Per-user favorite listings."""

    def __init__(self, store: PropertyStore, user_store: UserStore, invalidator: InvalidationCoordinator):
        self.store = store
        self.user_store = user_store
        self.invalidator = invalidator
        self.logger = get_logger("listings.services.favorites")

    async def add_favorite(self, user_id: str, property_id: str) -> Dict[str, Any]:
        if await self.store.find_by_id(property_id) is None:
            raise NotFoundError("Property not found", {"id": property_id})

        if await self.user_store.add_favorite(user_id, property_id):
            await self.invalidator.relation_changed(user_id, FAVORITES)
            self.logger.info("Favorite added", property_id=property_id)

        return {
            "success": True,
            "message": "Property added to favorites",
            "data": await self._all_favorites(user_id),
        }

    async def remove_favorite(self, user_id: str, property_id: str) -> Dict[str, Any]:
        if await self.user_store.remove_favorite(user_id, property_id):
            await self.invalidator.relation_changed(user_id, FAVORITES)
            self.logger.info("Favorite removed", property_id=property_id)

        return {
            "success": True,
            "message": "Property removed from favorites",
            "data": await self._all_favorites(user_id),
        }

    async def list_favorites(self, user_id: str, page: int, limit: int) -> Dict[str, Any]:
        property_ids = await self.user_store.favorite_ids(user_id)
        start = offset(page, limit)
        records = await self.store.find_many(property_ids[start:start + limit])
        return {
            "success": True,
            "data": {
                "favorites": serialize_properties(records),
                "pagination": pagination(len(property_ids), page, limit),
            },
        }

    async def _all_favorites(self, user_id: str) -> List[Dict[str, Any]]:
        property_ids = await self.user_store.favorite_ids(user_id)
        return serialize_properties(await self.store.find_many(property_ids))
