"""
Unit tests for the structured logging processors.
"""

from shared.logging import (
    add_cache_context,
    add_correlation_context,
    add_service_context,
    clear_context,
    set_request_id,
    set_user_context,
)


class TestLogProcessors:
    """Test cases for the structlog processors."""

    def test_cache_namespace_from_key(self):
        event = add_cache_context(None, "debug", {"event": "Cached payload", "key": "property:p1"})

        assert event["cache_namespace"] == "property"

    def test_cache_namespace_from_pattern(self):
        event = add_cache_context(None, "info", {"event": "Cleared cache pattern", "pattern": "user:u1:favorites*"})

        assert event["cache_namespace"] == "user"

    def test_events_without_cache_keys_are_untouched(self):
        assert add_cache_context(None, "info", {"event": "Property created", "key": 3}) == {
            "event": "Property created",
            "key": 3,
        }

    def test_service_from_logger_name(self):
        event = add_service_context(None, "info", {"logger": "listings.cache.service"})

        assert event["service"] == "listings"

    def test_correlation_context(self):
        request_id = set_request_id()
        set_user_context("user1")
        try:
            event = add_correlation_context(None, "info", {})
        finally:
            clear_context()

        assert event == {"request_id": request_id, "user_id": "user1"}
        assert add_correlation_context(None, "info", {}) == {}
