"""
Domain models and query builders for Listings Service.
"""

from .models import (
    FavoriteRequest,
    FurnishedStatus,
    ListedBy,
    ListingType,
    PropertyCreateRequest,
    PropertyRecord,
    PropertyType,
    PropertyUpdateRequest,
    Recommendation,
    RecommendationRequest,
    UserProfile,
)
from .filters import build_property_filter, build_search_filter, build_sort_options

__all__ = [
    "FavoriteRequest",
    "FurnishedStatus",
    "ListedBy",
    "ListingType",
    "PropertyCreateRequest",
    "PropertyRecord",
    "PropertyType",
    "PropertyUpdateRequest",
    "Recommendation",
    "RecommendationRequest",
    "UserProfile",
    "build_property_filter",
    "build_search_filter",
    "build_sort_options",
]
