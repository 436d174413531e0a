"""
Business services for Listings Service.
"""

from .property_service import PropertyService
from .favorite_service import FavoriteService
from .recommendation_service import RecommendationService

__all__ = ["PropertyService", "FavoriteService", "RecommendationService"]
