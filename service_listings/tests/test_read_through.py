"""
Unit tests for the read-through cache decorator.
"""

import inspect
import pytest
from unittest.mock import AsyncMock, patch

from pydantic import BaseModel
from starlette.responses import JSONResponse

from shared.errors import ValidationError
from service_listings.app.cache import read_through, with_read_through_cache


class Listing(BaseModel):
    id: str
    price: float


class TestReadThroughCache:
    """Test cases for with_read_through_cache."""

    @pytest.mark.asyncio
    async def test_miss_delegates_and_stores(self, cache_service):
        calls = []

        @with_read_through_cache(cache_service, lambda property_id: f"property:{property_id}")
        async def handler(property_id):
            calls.append(property_id)
            return {"success": True, "data": {"id": property_id}}

        result = await handler("p1")

        assert result == {"success": True, "data": {"id": "p1"}}
        assert calls == ["p1"]
        assert await cache_service.get("property:p1") == result

    @pytest.mark.asyncio
    async def test_hit_skips_handler(self, cache_service):
        calls = []

        @with_read_through_cache(cache_service, "properties:all")
        async def handler():
            calls.append(1)
            return {"success": True, "data": []}

        first = await handler()
        second = await handler()

        assert first == second
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_key_receives_keyword_arguments(self, cache_service):
        @with_read_through_cache(cache_service, lambda page, limit, **_: f"properties:{page}:{limit}")
        async def handler(page=1, limit=20, caller=None):
            return {"page": page, "limit": limit}

        await handler(page=2, limit=5, caller="u1")

        assert await cache_service.exists("properties:2:5") is True

    @pytest.mark.asyncio
    async def test_ttl_is_applied(self, cache_service, fake_redis):
        @with_read_through_cache(cache_service, "property:ttl", ttl=7)
        async def handler():
            return {"v": 1}

        await handler()

        assert 0 < await fake_redis.ttl("property:ttl") <= 7

    @pytest.mark.asyncio
    async def test_key_failure_falls_through(self, cache_service):
        def broken_key(**_):
            raise ValueError("bad query")

        @with_read_through_cache(cache_service, broken_key)
        async def handler():
            return {"v": 1}

        with patch.object(read_through.logger, "warning") as mock_warning:
            assert await handler() == {"v": 1}

        mock_warning.assert_called_once()
        assert (await cache_service.stats())["hits"] == 0

    @pytest.mark.asyncio
    async def test_invalid_request_key_is_not_a_cache_warning(self, cache_service):
        def invalid_key(**_):
            raise ValidationError("min_price must be a number", {"parameter": "min_price", "value": "abc"})

        @with_read_through_cache(cache_service, invalid_key)
        async def handler():
            raise ValidationError("min_price must be a number")

        with patch.object(read_through.logger, "warning") as mock_warning, \
                patch.object(read_through.logger, "debug") as mock_debug:
            with pytest.raises(ValidationError):
                await handler()

        mock_warning.assert_not_called()
        mock_debug.assert_called_once_with("Cache key not derived for invalid request", code="VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_cache_fault_falls_through(self, cache_service):
        """A broken cache costs latency, never correctness."""
        @with_read_through_cache(cache_service, "property:p1")
        async def handler():
            return {"v": "live"}

        with patch.object(cache_service.store, "get", new_callable=AsyncMock) as mock_get, \
                patch.object(cache_service.store, "set", new_callable=AsyncMock) as mock_set:
            mock_get.side_effect = ConnectionError("down")
            mock_set.side_effect = ConnectionError("down")

            assert await handler() == {"v": "live"}

    @pytest.mark.asyncio
    async def test_handler_exception_propagates_and_caches_nothing(self, cache_service):
        @with_read_through_cache(cache_service, "property:p1")
        async def handler():
            raise LookupError("store unavailable")

        with pytest.raises(LookupError):
            await handler()

        assert await cache_service.exists("property:p1") is False

    @pytest.mark.asyncio
    async def test_none_and_responses_are_not_cached(self, cache_service):
        @with_read_through_cache(cache_service, "property:none")
        async def none_handler():
            return None

        @with_read_through_cache(cache_service, "property:response")
        async def response_handler():
            return JSONResponse({"v": 1})

        assert await none_handler() is None
        assert isinstance(await response_handler(), JSONResponse)
        assert await cache_service.exists("property:none") is False
        assert await cache_service.exists("property:response") is False

    @pytest.mark.asyncio
    async def test_models_are_encoded_for_storage(self, cache_service):
        @with_read_through_cache(cache_service, "property:model")
        async def handler():
            return Listing(id="p1", price=10.5)

        live = await handler()
        cached = await handler()

        assert live == {"id": "p1", "price": 10.5}
        assert cached == live

    def test_signature_is_preserved(self, cache_service):
        async def handler(property_id: str, page: int = 1):
            return {}

        wrapped = with_read_through_cache(cache_service, "k")(handler)

        assert wrapped.__name__ == "handler"
        assert inspect.signature(wrapped) == inspect.signature(handler)
