"""
Unit tests for the listing filter and sort builders.
"""

import re
from datetime import datetime, timezone

import pytest
from starlette.datastructures import QueryParams

from shared.errors import ValidationError
from service_listings.app.domain import build_property_filter, build_search_filter, build_sort_options
from service_listings.app.domain.filters import resolve_sort_by


class TestBuildPropertyFilter:
    """Test cases for build_property_filter."""

    def test_empty_params(self):
        assert build_property_filter({}) == {}

    def test_pagination_params_are_ignored(self):
        assert build_property_filter({"page": "2", "limit": "10", "sort_by": "price_asc"}) == {}

    def test_price_range(self):
        result = build_property_filter({"min_price": "100", "max_price": "5000.5"})

        assert result == {"price": {"$gte": 100.0, "$lte": 5000.5}}

    def test_city_and_state_are_case_insensitive_literals(self):
        result = build_property_filter({"city": "  Navi Mumbai ", "state": "Maha.rashtra"})

        assert isinstance(result["city"], re.Pattern)
        assert result["city"].flags & re.IGNORECASE
        assert result["city"].search("navi mumbai east")
        assert result["state"].pattern == re.escape("Maha.rashtra")
        assert not result["state"].search("Mahaxrashtra")

    def test_comma_lists(self):
        result = build_property_filter({
            "type": "Villa, Apartment",
            "furnished": "Furnished",
            "listed_by": "Owner,Agent",
            "tags": "sea-view,,luxury",
            "amenities": "pool,gym",
        })

        assert result["type"] == {"$in": ["Villa", "Apartment"]}
        assert result["furnished"] == {"$in": ["Furnished"]}
        assert result["listed_by"] == {"$in": ["Owner", "Agent"]}
        assert result["tags"] == {"$in": ["sea-view", "luxury"]}
        assert result["amenities"] == {"$all": ["pool", "gym"]}

    def test_repeated_query_parameters(self):
        params = QueryParams("type=Villa&type=Studio&amenities=pool")

        result = build_property_filter(params)

        assert result["type"] == {"$in": ["Villa", "Studio"]}
        assert result["amenities"] == {"$all": ["pool"]}

    def test_room_counts(self):
        assert build_property_filter({"bedrooms": "3"})["bedrooms"] == 3
        assert build_property_filter({"bedrooms": "3+"})["bedrooms"] == {"$gte": 3}
        assert build_property_filter({"bathrooms": " 2+ "})["bathrooms"] == {"$gte": 2}

    def test_area_and_rating(self):
        result = build_property_filter({"min_area": "500", "min_rating": "4"})

        assert result["area_sq_ft"] == {"$gte": 500.0}
        assert result["rating"] == {"$gte": 4.0}

    def test_is_verified(self):
        assert build_property_filter({"is_verified": "true"})["is_verified"] is True
        assert build_property_filter({"is_verified": "False"})["is_verified"] is False
        assert "is_verified" not in build_property_filter({"is_verified": "maybe"})

    def test_dates(self):
        result = build_property_filter({
            "available_from": "2024-06-01",
            "created_after": "2024-01-01T00:00:00Z",
        })

        assert result["available_from"] == {"$lte": datetime(2024, 6, 1, tzinfo=timezone.utc)}
        assert result["created_at"] == {"$gte": datetime(2024, 1, 1, tzinfo=timezone.utc)}

    def test_plain_equality_fields(self):
        result = build_property_filter({"listing_type": "rent", "created_by": "u1"})

        assert result == {"listing_type": "rent", "created_by": "u1"}

    def test_blank_values_are_ignored(self):
        assert build_property_filter({"city": "   ", "min_price": "", "type": ","}) == {}

    @pytest.mark.parametrize("params", [
        {"min_price": "cheap"},
        {"max_area": "nan"},
        {"bedrooms": "two"},
        {"bathrooms": "x+"},
        {"created_before": "yesterday"},
    ])
    def test_unparseable_values_raise(self, params):
        with pytest.raises(ValidationError) as exc_info:
            build_property_filter(params)

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["parameter"] == next(iter(params))


class TestBuildSearchFilter:
    """Test cases for build_search_filter."""

    def test_text_query(self):
        query_filter, text = build_search_filter({"q": " sea view ", "city": "Panaji"})

        assert text == "sea view"
        assert query_filter["$text"] == "sea view"
        assert "city" in query_filter

    def test_without_text(self):
        query_filter, text = build_search_filter({"city": "Panaji"})

        assert text is None
        assert "$text" not in query_filter


class TestBuildSortOptions:
    """Test cases for build_sort_options."""

    @pytest.mark.parametrize("sort_by,expected", [
        ("price_asc", [("price", 1)]),
        ("price_desc", [("price", -1)]),
        ("area_asc", [("area_sq_ft", 1)]),
        ("area_desc", [("area_sq_ft", -1)]),
        ("rating_desc", [("rating", -1)]),
        ("date_asc", [("created_at", 1)]),
        ("date_desc", [("created_at", -1)]),
        (None, [("created_at", -1)]),
        ("relevance", [("created_at", -1)]),
    ])
    def test_options(self, sort_by, expected):
        assert build_sort_options(sort_by) == expected

    def test_text_search_defaults_to_relevance(self):
        assert build_sort_options(None, text_search=True) == [("score", -1), ("created_at", -1)]
        assert build_sort_options("relevance", text_search=True) == [("score", -1), ("created_at", -1)]

    def test_text_search_with_explicit_sort(self):
        assert build_sort_options("price_asc", text_search=True) == [("price", 1), ("score", -1)]

    def test_unknown_option_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            build_sort_options("bogus")

        assert exc_info.value.details == {"parameter": "sort_by", "value": "bogus"}

    @pytest.mark.parametrize("sort_by,text_search,expected", [
        (None, False, "date_desc"),
        ("relevance", False, "date_desc"),
        ("date_desc", False, "date_desc"),
        (None, True, "relevance"),
        ("relevance", True, "relevance"),
        ("price_asc", True, "price_asc"),
    ])
    def test_resolve_names_applied_option(self, sort_by, text_search, expected):
        assert resolve_sort_by(sort_by, text_search=text_search) == expected
