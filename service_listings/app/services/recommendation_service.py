"""
Recommendation business logic for Listings Service.
"""

import asyncio
from typing import Any, Dict, List, Optional

from shared.errors import NotFoundError
from shared.logging import get_logger
from ..cache.invalidation import InvalidationCoordinator
from ..cache.keys import RECOMMENDATIONS
from ..domain.models import Recommendation, RecommendationRequest, UserProfile
from ..persistence.base import PropertyStore, UserStore
from .pagination import offset, pagination
from .property_service import serialize_property


def _sender(sender_id: str, profile: Optional[UserProfile]) -> Dict[str, Any]:
    if profile is None:
        return {"id": sender_id, "name": None, "email": None}
    return {"id": profile.id, "name": profile.name, "email": profile.email}


class RecommendationService:
    """Listings recommended from one user to another.

    Recommendations are stored against the recipient, so a new one stales the
    recipient's cached pages and a deletion stales the caller's.
    """

    def __init__(self, store: PropertyStore, user_store: UserStore, invalidator: InvalidationCoordinator):
        self.store = store
        self.user_store = user_store
        self.invalidator = invalidator
        self.logger = get_logger("listings.services.recommendations")

    async def recommend(self, sender_id: str, request: RecommendationRequest) -> Dict[str, Any]:
        recipient, record = await asyncio.gather(
            self.user_store.get_by_email(request.recipient_email),
            self.store.find_by_id(request.property_id)
        )
        if recipient is None:
            raise NotFoundError("Recipient user not found", {"recipient_email": request.recipient_email})
        if record is None:
            raise NotFoundError("Property not found", {"id": request.property_id})

        recommendation = await self.user_store.add_recommendation(Recommendation(
            property_id=record.id,
            recommended_by=sender_id,
            recipient_id=recipient.id,
            message=request.message or "",
        ))
        await self.invalidator.relation_changed(recipient.id, RECOMMENDATIONS)

        self.logger.info("Property recommended", property_id=record.id, recipient_id=recipient.id)
        return {
            "success": True,
            "message": f"Property recommended to {request.recipient_email} successfully",
            "data": recommendation.model_dump(mode="json"),
        }

    async def list_recommendations(self, user_id: str, page: int, limit: int) -> Dict[str, Any]:
        recommendations, total = await self.user_store.list_recommendations(user_id, offset(page, limit), limit)

        property_ids = list(dict.fromkeys(rec.property_id for rec in recommendations))
        sender_ids = list(dict.fromkeys(rec.recommended_by for rec in recommendations))
        records, senders = await asyncio.gather(
            self.store.find_many(property_ids),
            asyncio.gather(*(self.user_store.get(sender_id) for sender_id in sender_ids))
        )
        properties = {record.id: serialize_property(record) for record in records}
        profiles = dict(zip(sender_ids, senders))

        items: List[Dict[str, Any]] = [
            {
                "id": rec.id,
                "property": properties.get(rec.property_id),
                "recommended_by": _sender(rec.recommended_by, profiles.get(rec.recommended_by)),
                "message": rec.message,
                "created_at": rec.created_at.isoformat(),
            }
            for rec in recommendations
        ]
        return {
            "success": True,
            "data": {
                "recommendations": items,
                "pagination": pagination(total, page, limit),
            },
        }

    async def delete_recommendation(self, user_id: str, recommendation_id: str) -> Dict[str, Any]:
        if not await self.user_store.remove_recommendation(user_id, recommendation_id):
            raise NotFoundError("Recommendation not found", {"id": recommendation_id})

        await self.invalidator.relation_changed(user_id, RECOMMENDATIONS)
        return {"success": True, "message": "Recommendation deleted successfully"}
