"""
Listings service for the Property Listings platform.
"""

from typing import Dict, Optional

from fastapi import Depends, Query, Request

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.logging import set_user_context

from .auth import JWTAuthenticator, UserContext
from .cache import CacheService, InvalidationCoordinator, RedisCacheStore, with_read_through_cache
from .cache.keys import (
    ANALYTICS,
    FAVORITES,
    PROPERTIES,
    PROPERTY,
    RECOMMENDATIONS,
    collection_key,
    entity_key,
    user_scoped_key,
)
from .domain import (
    FavoriteRequest,
    PropertyCreateRequest,
    PropertyUpdateRequest,
    RecommendationRequest,
    build_property_filter,
    build_search_filter,
    build_sort_options,
)
from .persistence import PropertyStore, UserStore, create_stores
from .services import FavoriteService, PropertyService, RecommendationService


SERVICE_NAME = "listings"
SERVICE_PORT = 8020

PAGE = Query(1, ge=1, description="Page number")
LIMIT = Query(20, ge=1, le=100, description="Page size")


def list_cache_key(request: Request, page: int, limit: int, **_) -> str:
    return collection_key(PROPERTIES, build_property_filter(request.query_params), page, limit)


def search_cache_key(request: Request, page: int, limit: int, sort_by: Optional[str] = None, **_) -> str:
    query_filter, text = build_search_filter(request.query_params)
    sort = build_sort_options(sort_by, text_search=bool(text))
    return collection_key(PROPERTIES, query_filter, page, limit, sort)


class ListingsService(BaseService):
    """Listings service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        cache_store: Optional[RedisCacheStore] = None,
        property_store: Optional[PropertyStore] = None,
        user_store: Optional[UserStore] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config)

        self.cache_store = cache_store or RedisCacheStore(
            self.config.redis_url,
            socket_timeout=self.config.cache_socket_timeout,
            scan_count=self.config.cache_scan_count,
        )
        self.cache = CacheService(self.cache_store, self.config.cache_ttl, metrics=self.metrics)
        self.invalidator = InvalidationCoordinator(self.cache, metrics=self.metrics)

        if property_store is None or user_store is None:
            default_properties, default_users = create_stores(self.config)
            property_store = property_store or default_properties
            user_store = user_store or default_users
        self.property_store = property_store
        self.user_store = user_store

        self.authenticator = JWTAuthenticator(
            self.config.jwt_secret,
            algorithm=self.config.jwt_algorithm,
            audience=self.config.jwt_audience,
            issuer=self.config.jwt_issuer,
        )

        self.property_service = PropertyService(self.property_store, self.user_store, self.invalidator, self.metrics)
        self.favorite_service = FavoriteService(self.property_store, self.user_store, self.invalidator)
        self.recommendation_service = RecommendationService(self.property_store, self.user_store, self.invalidator)

        @self.app.on_event("startup")
        async def _startup():
            await self.cache_store.start()
            await self.property_store.start()
            await self.user_store.start()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.user_store.stop()
            await self.property_store.stop()
            await self.cache_store.stop()

        self._setup_listings_routes()
        self._setup_property_routes()
        self._setup_favorite_routes()
        self._setup_recommendation_routes()

        self.app.state.listings_service = self

    async def current_user(self, request: Request) -> UserContext:
        """Dependency resolving the authenticated caller."""
        user = self.authenticator.authenticate(request)
        await self.property_service.sync_user_profile(user.user_id, user.email, user.name)
        set_user_context(user.user_id)
        return user

    async def optional_user(self, request: Request) -> Optional[UserContext]:
        """Dependency resolving the caller on public routes, if any."""
        user = self.authenticator.authenticate_optional(request)
        if user is not None:
            set_user_context(user.user_id)
        return user

    def _setup_listings_routes(self):
        """Set up service-level routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Property Listings - Listings Service",
                "version": "1.0.0",
                "capabilities": ["listings", "search", "favorites", "recommendations", "read_through_cache"]
            }

        @self.app.get("/cache/stats")
        async def cache_stats():
            """Cache hit/miss counters and key counts."""
            return {"success": True, "data": await self.cache.stats()}

    def _setup_property_routes(self):
        """Set up property routes."""
        cache = self.cache

        @self.app.get("/properties")
        @with_read_through_cache(cache, list_cache_key)
        async def list_properties(
            request: Request,
            page: int = PAGE,
            limit: int = LIMIT,
            caller: Optional[UserContext] = Depends(self.optional_user),
        ):
            """List properties matching query-string filters, newest first."""
            query_filter = build_property_filter(request.query_params)
            return await self.property_service.list_properties(query_filter, page, limit)

        @self.app.get("/properties/search")
        @with_read_through_cache(cache, search_cache_key)
        async def search_properties(
            request: Request,
            page: int = PAGE,
            limit: int = LIMIT,
            sort_by: Optional[str] = Query(None, description="Sort option"),
            caller: Optional[UserContext] = Depends(self.optional_user),
        ):
            """Search properties with filters, full-text ``q`` and ``sort_by``."""
            query_filter, _ = build_search_filter(request.query_params)
            return await self.property_service.search_properties(query_filter, page, limit, sort_by)

        @self.app.get("/properties/analytics")
        @with_read_through_cache(cache, lambda user, **_: user_scoped_key(user.user_id, ANALYTICS))
        async def property_analytics(user: UserContext = Depends(self.current_user)):
            """Aggregates over the caller's own listings."""
            return await self.property_service.get_analytics(user.user_id)

        @self.app.get("/properties/{property_id}")
        @with_read_through_cache(cache, lambda property_id, **_: entity_key(PROPERTY, property_id))
        async def get_property(
            property_id: str,
            caller: Optional[UserContext] = Depends(self.optional_user),
        ):
            return await self.property_service.get_property(property_id)

        @self.app.post("/properties", status_code=201)
        async def create_property(
            request: PropertyCreateRequest,
            user: UserContext = Depends(self.current_user),
        ):
            return await self.property_service.create_property(request, user.user_id)

        @self.app.put("/properties/{property_id}")
        async def update_property(
            property_id: str,
            request: PropertyUpdateRequest,
            user: UserContext = Depends(self.current_user),
        ):
            """Update a listing. Only its creator may do so."""
            return await self.property_service.update_property(property_id, request, user.user_id)

        @self.app.delete("/properties/{property_id}")
        async def delete_property(property_id: str, user: UserContext = Depends(self.current_user)):
            """Delete a listing. Only its creator may do so."""
            return await self.property_service.delete_property(property_id, user.user_id)

    def _setup_favorite_routes(self):
        """Set up favorites routes."""

        @self.app.get("/favorites")
        @with_read_through_cache(
            self.cache,
            lambda user, page, limit, **_: user_scoped_key(user.user_id, FAVORITES, page, limit)
        )
        async def list_favorites(
            page: int = PAGE,
            limit: int = LIMIT,
            user: UserContext = Depends(self.current_user),
        ):
            return await self.favorite_service.list_favorites(user.user_id, page, limit)

        @self.app.post("/favorites")
        async def add_favorite(request: FavoriteRequest, user: UserContext = Depends(self.current_user)):
            return await self.favorite_service.add_favorite(user.user_id, request.property_id)

        @self.app.delete("/favorites/{property_id}")
        async def remove_favorite(property_id: str, user: UserContext = Depends(self.current_user)):
            return await self.favorite_service.remove_favorite(user.user_id, property_id)

    def _setup_recommendation_routes(self):
        """Set up recommendation routes."""

        @self.app.get("/recommendations")
        @with_read_through_cache(
            self.cache,
            lambda user, page, limit, **_: user_scoped_key(user.user_id, RECOMMENDATIONS, page, limit)
        )
        async def list_recommendations(
            page: int = PAGE,
            limit: int = LIMIT,
            user: UserContext = Depends(self.current_user),
        ):
            """Recommendations the caller has received, newest first."""
            return await self.recommendation_service.list_recommendations(user.user_id, page, limit)

        @self.app.post("/recommendations")
        async def recommend_property(request: RecommendationRequest, user: UserContext = Depends(self.current_user)):
            return await self.recommendation_service.recommend(user.user_id, request)

        @self.app.delete("/recommendations/{recommendation_id}")
        async def delete_recommendation(recommendation_id: str, user: UserContext = Depends(self.current_user)):
            return await self.recommendation_service.delete_recommendation(user.user_id, recommendation_id)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check listings service dependencies.

        Redis is reported but never fails the check: the service runs without
        its cache.
        """
        dependencies = {}
        dependencies["redis"] = "ok" if await self.cache.ping() else "error"

        try:
            healthy = await self.property_store.health_check() and await self.user_store.health_check()
            dependencies["store"] = "ok" if healthy else "error"
        except Exception:
            dependencies["store"] = "error"

        return dependencies


def create_app(config: Optional[ServiceConfig] = None):
    """Create listings service application."""
    service = ListingsService(config)
    return service.app


if __name__ == "__main__":
    service = ListingsService()
    service.run()
