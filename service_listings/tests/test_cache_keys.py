"""
Unit tests for the cache key scheme.
"""

import json
import re
from datetime import datetime, timezone

import pytest

from service_listings.app.cache.keys import (
    canonicalize,
    collection_key,
    collection_pattern,
    entity_key,
    entity_pattern,
    escape_glob,
    namespace_of,
    user_scoped_key,
    user_scoped_pattern,
)
from service_listings.app.domain import PropertyType, build_property_filter


class TestCollectionKey:
    """Test cases for collection keys."""

    def test_field_order_does_not_matter(self):
        first = collection_key("properties", {"city": "Pune", "minPrice": 100}, 1, 20)
        second = collection_key("properties", {"minPrice": 100, "city": "Pune"}, 1, 20)

        assert first == second

    def test_nested_field_order_does_not_matter(self):
        first = collection_key("properties", {"price": {"$gte": 1, "$lte": 9}}, 1, 20)
        second = collection_key("properties", {"price": {"$lte": 9, "$gte": 1}}, 1, 20)

        assert first == second

    def test_layout(self):
        key = collection_key("properties", {"city": re.compile("Pune", re.IGNORECASE)}, 1, 20)

        assert key == 'properties:{"filter":{"city":"/Pune/i"},"page":1,"limit":20}'

    def test_regex_filters_do_not_collide(self):
        pune = collection_key("properties", {"city": re.compile("Pune", re.IGNORECASE)}, 1, 20)
        mumbai = collection_key("properties", {"city": re.compile("Mumbai", re.IGNORECASE)}, 1, 20)
        case_sensitive = collection_key("properties", {"city": re.compile("Pune")}, 1, 20)

        assert len({pune, mumbai, case_sensitive}) == 3

    def test_page_and_limit_distinguish_keys(self):
        keys = {
            collection_key("properties", {}, 1, 20),
            collection_key("properties", {}, 2, 20),
            collection_key("properties", {}, 1, 50),
        }
        assert len(keys) == 3

    def test_empty_and_missing_filter_are_equal(self):
        assert collection_key("properties", None, 1, 20) == collection_key("properties", {}, 1, 20)

    def test_sort_order_is_preserved(self):
        by_price = collection_key("properties", {}, 1, 20, [("price", 1), ("created_at", -1)])
        by_date = collection_key("properties", {}, 1, 20, [("created_at", -1), ("price", 1)])

        assert by_price != by_date
        assert by_price.endswith('"sort":[["price",1],["created_at",-1]]}')

    def test_sort_mapping_and_pairs_match(self):
        assert collection_key("properties", {}, 1, 20, {"price": -1}) == \
            collection_key("properties", {}, 1, 20, [("price", -1)])

    def test_built_filters_are_stable(self):
        """Filters built from the same query string always key the same."""
        params = {"city": "Pune", "min_price": "100", "type": "Villa,Apartment"}

        assert collection_key("properties", build_property_filter(params), 1, 20) == \
            collection_key("properties", build_property_filter(dict(reversed(list(params.items())))), 1, 20)

    def test_unrenderable_filter_raises(self):
        with pytest.raises(TypeError):
            collection_key("properties", {"owner": object()}, 1, 20)


class TestCanonicalize:
    """Test cases for filter canonicalization."""

    def test_values(self):
        moment = datetime(2024, 6, 1, tzinfo=timezone.utc)
        result = canonicalize({
            "type": PropertyType.VILLA,
            "available_from": {"$lte": moment},
            "tags": {"b", "a"},
            "amenities": ("pool", "gym"),
        })

        assert result == {
            "amenities": ["pool", "gym"],
            "available_from": {"$lte": "2024-06-01T00:00:00+00:00"},
            "tags": ["a", "b"],
            "type": "Villa",
        }
        assert list(result) == sorted(result)
        json.dumps(result)

    def test_regex_flags(self):
        assert canonicalize(re.compile("a.b", re.IGNORECASE | re.MULTILINE)) == "/a.b/im"


class TestUserScopedKey:
    """Test cases for user-scoped keys."""

    def test_bare_key(self):
        assert user_scoped_key("u1", "analytics") == "user:u1:analytics"

    def test_paginated_key(self):
        assert user_scoped_key("u1", "favorites", 2, 10) == "user:u1:favorites:2:10"

    def test_page_without_limit_rejected(self):
        with pytest.raises(ValueError):
            user_scoped_key("u1", "favorites", page=1)


class TestPatterns:
    """Test cases for invalidation patterns."""

    def test_entity(self):
        assert entity_key("property", "abc") == "property:abc"
        assert entity_pattern("property", "abc") == "property:abc"

    def test_collection(self):
        assert collection_pattern("properties") == "properties:*"

    def test_user_scoped(self):
        assert user_scoped_pattern("u1", "favorites") == "user:u1:favorites*"
        assert user_scoped_pattern(None, "favorites") == "user:*:favorites*"

    def test_glob_metacharacters_are_escaped(self):
        assert escape_glob("a*b?c[d]e\\f") == "a\\*b\\?c\\[d\\]e\\\\f"
        assert user_scoped_pattern("evil*", "favorites") == "user:evil\\*:favorites*"
        assert entity_pattern("property", "[x]") == "property:\\[x\\]"

    def test_namespace_of(self):
        assert namespace_of("property:1") == "property"
        assert namespace_of(b'properties:{"page":1}') == "properties"
        assert namespace_of("user:u1:favorites") == "user"
        assert namespace_of("session:abc") == "other"
