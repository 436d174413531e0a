"""
Shared fixtures for Listings Service tests.
"""

import fakeredis
import httpx
import pytest
import pytest_asyncio
from fakeredis import aioredis as fake_aioredis

from shared.config import get_config
from shared.test_helpers import ListingDataFactory, MockTokenGenerator, TEST_JWT_SECRET
from service_listings.app.cache import CacheService, RedisCacheStore
from service_listings.app.main import ListingsService
from service_listings.app.persistence import InMemoryPropertyStore, InMemoryUserStore


class DummyMetrics:
    """Minimal metrics collector stub."""

    def __init__(self):
        self.counters = []
        self.histograms = []
        self.events = []

    def increment_counter(self, metric_name: str, **labels):
        self.counters.append((metric_name, labels))

    def observe_histogram(self, metric_name: str, value: float, **labels):
        self.histograms.append((metric_name, value, labels))

    def record_business_event(self, event_type: str, service=None):
        self.events.append(event_type)

    def count(self, metric_name: str, **labels) -> int:
        return sum(
            1 for name, recorded in self.counters
            if name == metric_name and all(recorded.get(k) == v for k, v in labels.items())
        )


@pytest.fixture
def fake_redis():
    """In-process Redis with its own keyspace."""
    return fake_aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def cache_store(fake_redis):
    return RedisCacheStore(client=fake_redis)


@pytest.fixture
def metrics():
    return DummyMetrics()


@pytest.fixture
def cache_service(cache_store, metrics):
    return CacheService(cache_store, default_ttl=60, metrics=metrics)


@pytest.fixture
def listings_config():
    return get_config("listings", 8020, env="test", log_level="warning", jwt_secret=TEST_JWT_SECRET)


@pytest.fixture
def listings_service(listings_config, cache_store):
    return ListingsService(
        listings_config,
        cache_store=cache_store,
        property_store=InMemoryPropertyStore(),
        user_store=InMemoryUserStore(),
    )


@pytest_asyncio.fixture
async def client(listings_service):
    transport = httpx.ASGITransport(app=listings_service.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


@pytest.fixture
def token_generator():
    return MockTokenGenerator()


@pytest.fixture
def users():
    return ListingDataFactory.create_sample_users()


@pytest.fixture
def owner(users):
    return users[0]


@pytest.fixture
def other_user(users):
    return users[1]
