"""
Property business logic for Listings Service.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from shared.errors import AuthorizationError, NotFoundError
from shared.logging import get_logger
from ..cache.invalidation import InvalidationCoordinator
from ..cache.keys import canonicalize
from ..domain.filters import DEFAULT_SORT, SORT_OPTIONS, TEXT, build_sort_options, resolve_sort_by
from ..domain.models import PropertyCreateRequest, PropertyRecord, PropertyUpdateRequest
from ..persistence.base import PropertyStore, UserStore
from .pagination import offset, pagination, search_pagination

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


# Fields an update may explicitly set to null.
NULLABLE_FIELDS = {"color_theme", "rating", "description"}

LIST_SORT = SORT_OPTIONS[DEFAULT_SORT]


def serialize_property(record: PropertyRecord) -> Dict[str, Any]:
    return record.model_dump(mode="json")


class PropertyService:
    """Listing CRUD, search and owner analytics.

    Every successful write runs the matching invalidation before returning.
    """

    def __init__(
        self,
        store: PropertyStore,
        user_store: UserStore,
        invalidator: InvalidationCoordinator,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.user_store = user_store
        self.invalidator = invalidator
        self.metrics = metrics
        self.logger = get_logger("listings.services.properties")

    async def _serialize_with_creators(self, records: List[PropertyRecord]) -> List[Dict[str, Any]]:
        """Serialize listings with the creator's name and email alongside ``created_by``."""
        creators = await self.user_store.get_many([record.created_by for record in records])
        serialized = []
        for record in records:
            document = serialize_property(record)
            creator = creators.get(record.created_by)
            document["creator"] = {"id": creator.id, "name": creator.name, "email": creator.email} if creator else None
            serialized.append(document)
        return serialized

    async def sync_user_profile(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None):
        """Record the caller's profile, invalidating pages that embed it when it changed."""
        previous = await self.user_store.get(user_id)
        profile = await self.user_store.ensure_user(user_id, email, name)
        if previous is not None and (previous.email, previous.name) != (profile.email, profile.name):
            self.logger.info("Creator profile changed", user_id=user_id)
            await self.invalidator.profile_updated()
        return profile

    async def list_properties(self, query_filter: Mapping[str, Any], page: int, limit: int) -> Dict[str, Any]:
        """One page of listings matching a filter, newest first."""
        records, total = await asyncio.gather(
            self.store.find(query_filter, offset(page, limit), limit, LIST_SORT),
            self.store.count(query_filter)
        )
        return {
            "success": True,
            "data": {
                "properties": await self._serialize_with_creators(records),
                "pagination": pagination(total, page, limit),
            },
        }

    async def search_properties(
        self,
        query_filter: Mapping[str, Any],
        page: int,
        limit: int,
        sort_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Filtered and optionally full-text search with selectable ordering."""
        text = query_filter.get(TEXT)
        sort = build_sort_options(sort_by, text_search=bool(text))
        records, total = await asyncio.gather(
            self.store.find(query_filter, offset(page, limit), limit, sort),
            self.store.count(query_filter)
        )
        applied = {field: value for field, value in query_filter.items() if field != TEXT}
        return {
            "success": True,
            "data": {
                "properties": await self._serialize_with_creators(records),
                "pagination": search_pagination(total, page, limit),
                "filters": {
                    "applied": canonicalize(applied),
                    "text_search": text,
                    "sort_by": resolve_sort_by(sort_by, text_search=bool(text)),
                },
            },
        }

    async def get_property(self, property_id: str) -> Dict[str, Any]:
        record = await self.store.find_by_id(property_id)
        if record is None:
            raise NotFoundError("Property not found", {"id": property_id})
        return {"success": True, "data": serialize_property(record)}

    async def create_property(self, request: PropertyCreateRequest, owner_id: str) -> Dict[str, Any]:
        record = PropertyRecord(**request.model_dump(), created_by=owner_id)
        created = await self.store.create(record)
        await self.invalidator.entity_created(owner_id)

        self.logger.info("Property created", property_id=created.id, owner_id=owner_id)
        self._record_event("property_created")
        return {
            "success": True,
            "message": "Property created successfully",
            "data": serialize_property(created),
        }

    async def update_property(self, property_id: str, request: PropertyUpdateRequest, user_id: str) -> Dict[str, Any]:
        existing = await self._owned(property_id, user_id, "update")
        changes = {
            field: value
            for field, value in request.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_FIELDS
        }

        try:
            updated = await self.store.update(property_id, changes)
        finally:
            await self.invalidator.entity_updated(property_id, existing.created_by)

        if updated is None:
            raise NotFoundError("Property not found", {"id": property_id})

        self.logger.info("Property updated", property_id=property_id, fields=sorted(changes))
        self._record_event("property_updated")
        return {
            "success": True,
            "message": "Property updated successfully",
            "data": serialize_property(updated),
        }

    async def delete_property(self, property_id: str, user_id: str) -> Dict[str, Any]:
        existing = await self._owned(property_id, user_id, "delete")

        try:
            await self.store.delete(property_id)
            await self.user_store.remove_property_references(property_id)
        finally:
            await self.invalidator.entity_deleted(property_id, existing.created_by)

        self.logger.info("Property deleted", property_id=property_id)
        self._record_event("property_deleted")
        return {"success": True, "message": "Property deleted successfully"}

    async def get_analytics(self, owner_id: str) -> Dict[str, Any]:
        """Aggregate figures over the listings an owner created."""
        return {"success": True, "data": await self.store.owner_stats(owner_id)}

    async def _owned(self, property_id: str, user_id: str, action: str) -> PropertyRecord:
        record = await self.store.find_by_id(property_id)
        if record is None:
            raise NotFoundError("Property not found", {"id": property_id})
        if record.created_by != user_id:
            raise AuthorizationError(f"Not authorized to {action} this property", {"id": property_id})
        return record

    def _record_event(self, event_type: str):
        if self.metrics:
            self.metrics.record_business_event(event_type)


def serialize_properties(records: List[PropertyRecord]) -> List[Dict[str, Any]]:
    return [serialize_property(record) for record in records]
