"""
End-to-end integration tests for the read-through / write-invalidate flow.
"""

import fakeredis
import httpx
import pytest
import pytest_asyncio
from fakeredis import aioredis as fake_aioredis

from shared.config import get_config
from shared.test_helpers import ListingDataFactory, MockTokenGenerator, TEST_JWT_SECRET
from service_listings.app.cache import RedisCacheStore
from service_listings.app.main import ListingsService
from service_listings.app.persistence import InMemoryPropertyStore, InMemoryUserStore


PUNE_PAGE_KEY = 'properties:{"filter":{"city":"/Pune/i"},"page":1,"limit":20}'


class CountingPropertyStore(InMemoryPropertyStore):
    """In-memory store that records how often listings are queried."""

    def __init__(self):
        super().__init__()
        self.find_calls = 0

    async def find(self, query_filter, skip=0, limit=20, sort=None):
        self.find_calls += 1
        return await super().find(query_filter, skip, limit, sort)


class TestEndToEndFlow:
    """End-to-end tests for a listing service backed by an in-process Redis."""

    @pytest.fixture
    def redis_client(self):
        return fake_aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)

    @pytest.fixture
    def property_store(self):
        return CountingPropertyStore()

    @pytest_asyncio.fixture
    async def client(self, redis_client, property_store):
        config = get_config("listings", 8020, env="test", log_level="warning", jwt_secret=TEST_JWT_SECRET)
        service = ListingsService(
            config,
            cache_store=RedisCacheStore(client=redis_client),
            property_store=property_store,
            user_store=InMemoryUserStore(),
        )
        transport = httpx.ASGITransport(app=service.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
            yield http_client

    @pytest.fixture
    def headers(self):
        owner = ListingDataFactory.create_sample_users()[0]
        return MockTokenGenerator().auth_headers(owner)

    @pytest.mark.asyncio
    async def test_write_then_read(self, client, headers):
        """A listing is visible in the very next list request."""
        assert (await client.get("/properties")).json()["data"]["properties"] == []

        created = await client.post(
            "/properties",
            json=ListingDataFactory.create_property_payload(),
            headers=headers,
        )
        assert created.status_code == 201

        listing = await client.get("/properties")
        assert [p["id"] for p in listing.json()["data"]["properties"]] == [created.json()["data"]["id"]]

    @pytest.mark.asyncio
    async def test_read_through_and_invalidate(self, client, headers, redis_client, property_store):
        """Miss populates the key, repeat skips the store, create invalidates."""
        await client.post(
            "/properties",
            json=ListingDataFactory.create_property_payload(property_id="PROP2001", title="First flat"),
            headers=headers,
        )
        params = {"city": "Pune", "page": 1, "limit": 20}

        first = await client.get("/properties", params=params)
        assert first.status_code == 200
        assert await redis_client.exists(PUNE_PAGE_KEY) == 1
        queries_after_miss = property_store.find_calls

        second = await client.get("/properties", params=params)
        assert second.json() == first.json()
        assert property_store.find_calls == queries_after_miss

        created = await client.post(
            "/properties",
            json=ListingDataFactory.create_property_payload(property_id="PROP2002", title="Second flat"),
            headers=headers,
        )
        assert created.status_code == 201
        assert [key async for key in redis_client.scan_iter("properties:*")] == []

        third = await client.get("/properties", params=params)
        assert property_store.find_calls == queries_after_miss + 1
        property_ids = [p["property_id"] for p in third.json()["data"]["properties"]]
        assert sorted(property_ids) == ["PROP2001", "PROP2002"]

    @pytest.mark.asyncio
    async def test_entity_cache_cycle(self, client, headers, redis_client):
        created = (await client.post(
            "/properties",
            json=ListingDataFactory.create_property_payload(),
            headers=headers,
        )).json()["data"]
        key = f"property:{created['id']}"

        await client.get(f"/properties/{created['id']}")
        assert await redis_client.ttl(key) > 0

        await client.put(f"/properties/{created['id']}", json={"is_verified": False}, headers=headers)
        assert await redis_client.exists(key) == 0

        refreshed = await client.get(f"/properties/{created['id']}")
        assert refreshed.json()["data"]["is_verified"] is False
        assert await redis_client.exists(key) == 1
