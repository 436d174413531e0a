"""
Query-string filter and sort builders for listing queries.

Filters use a small document-query vocabulary understood by every store
backend: plain equality, compiled regular expressions, and the operators
``$gte``, ``$lte``, ``$in``, ``$all`` and ``$text``.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shared.errors import ValidationError


GTE = "$gte"
LTE = "$lte"
IN = "$in"
ALL = "$all"
TEXT = "$text"

ASCENDING = 1
DESCENDING = -1

SCORE_FIELD = "score"

SortOptions = List[Tuple[str, int]]

SORT_OPTIONS: Dict[str, SortOptions] = {
    "price_asc": [("price", ASCENDING)],
    "price_desc": [("price", DESCENDING)],
    "area_asc": [("area_sq_ft", ASCENDING)],
    "area_desc": [("area_sq_ft", DESCENDING)],
    "rating_desc": [("rating", DESCENDING)],
    "date_desc": [("created_at", DESCENDING)],
    "date_asc": [("created_at", ASCENDING)],
}
DEFAULT_SORT = "date_desc"
RELEVANCE = "relevance"

SORTABLE_FIELDS = {"price", "area_sq_ft", "rating", "created_at", SCORE_FIELD}

_TRUE_VALUES = {"true", "1", "yes"}
_FALSE_VALUES = {"false", "0", "no"}


def _values(params: Mapping[str, Any], name: str) -> List[str]:
    """All non-blank values of a parameter, splitting comma lists."""
    if hasattr(params, "getlist"):
        raw = params.getlist(name)
    else:
        value = params.get(name)
        raw = value if isinstance(value, (list, tuple)) else ([] if value is None else [value])

    values = []
    for item in raw:
        values.extend(part.strip() for part in str(item).split(","))
    return [value for value in values if value]


def _single(params: Mapping[str, Any], name: str) -> Optional[str]:
    value = params.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(name: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number", {"parameter": name, "value": value})
    if number != number or number in (float("inf"), float("-inf")):
        raise ValidationError(f"{name} must be a finite number", {"parameter": name, "value": value})
    return number


def _integer(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", {"parameter": name, "value": value})


def _datetime(name: str, value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date", {"parameter": name, "value": value})
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _range(params: Mapping[str, Any], low: str, high: str, parse) -> Optional[Dict[str, Any]]:
    bounds = {}
    low_value = _single(params, low)
    high_value = _single(params, high)
    if low_value is not None:
        bounds[GTE] = parse(low, low_value)
    if high_value is not None:
        bounds[LTE] = parse(high, high_value)
    return bounds or None


def _room_count(params: Mapping[str, Any], name: str) -> Optional[Any]:
    """``N`` matches exactly N rooms, ``N+`` matches N or more."""
    value = _single(params, name)
    if value is None:
        return None
    if value.endswith("+"):
        return {GTE: _integer(name, value[:-1].strip())}
    return _integer(name, value)


def _contains(value: str) -> re.Pattern:
    return re.compile(re.escape(value), re.IGNORECASE)


def build_property_filter(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate listing query parameters into a store filter.

    Unknown parameters (``page``, ``limit``, ``q``, ...) are ignored, as are
    blank values. Unparseable numbers and dates raise ValidationError.
    """
    query_filter: Dict[str, Any] = {}

    price = _range(params, "min_price", "max_price", _number)
    if price:
        query_filter["price"] = price

    types = _values(params, "type")
    if types:
        query_filter["type"] = {IN: types}

    state = _single(params, "state")
    if state:
        query_filter["state"] = _contains(state)

    city = _single(params, "city")
    if city:
        query_filter["city"] = _contains(city)

    area = _range(params, "min_area", "max_area", _number)
    if area:
        query_filter["area_sq_ft"] = area

    for rooms in ("bedrooms", "bathrooms"):
        count = _room_count(params, rooms)
        if count is not None:
            query_filter[rooms] = count

    amenities = _values(params, "amenities")
    if amenities:
        query_filter["amenities"] = {ALL: amenities}

    furnished = _values(params, "furnished")
    if furnished:
        query_filter["furnished"] = {IN: furnished}

    available_from = _single(params, "available_from")
    if available_from:
        query_filter["available_from"] = {LTE: _datetime("available_from", available_from)}

    listed_by = _values(params, "listed_by")
    if listed_by:
        query_filter["listed_by"] = {IN: listed_by}

    tags = _values(params, "tags")
    if tags:
        query_filter["tags"] = {IN: tags}

    min_rating = _single(params, "min_rating")
    if min_rating:
        query_filter["rating"] = {GTE: _number("min_rating", min_rating)}

    is_verified = _single(params, "is_verified")
    if is_verified:
        if is_verified.lower() in _TRUE_VALUES:
            query_filter["is_verified"] = True
        elif is_verified.lower() in _FALSE_VALUES:
            query_filter["is_verified"] = False

    listing_type = _single(params, "listing_type")
    if listing_type:
        query_filter["listing_type"] = listing_type

    created_by = _single(params, "created_by")
    if created_by:
        query_filter["created_by"] = created_by

    created = _range(params, "created_after", "created_before", _datetime)
    if created:
        query_filter["created_at"] = created

    return query_filter


def build_search_filter(params: Mapping[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """Build a filter for the search endpoint, adding full-text search on ``q``."""
    query_filter = build_property_filter(params)
    text = _single(params, "q")
    if text:
        query_filter[TEXT] = text
    return query_filter, text


def resolve_sort_by(sort_by: Optional[str], text_search: bool = False) -> str:
    """Name of the sort option a search actually applies.

    ``relevance`` only ranks text searches; without ``q`` it is newest first.
    Unknown options are rejected.
    """
    if sort_by and sort_by != RELEVANCE and sort_by not in SORT_OPTIONS:
        raise ValidationError(
            f"sort_by must be one of {', '.join([*SORT_OPTIONS, RELEVANCE])}",
            {"parameter": "sort_by", "value": sort_by},
        )
    if not sort_by or sort_by == RELEVANCE:
        return RELEVANCE if text_search else DEFAULT_SORT
    return sort_by


def build_sort_options(sort_by: Optional[str], text_search: bool = False) -> SortOptions:
    """Map a ``sort_by`` option to ordered (field, direction) pairs.

    With a text search, relevance (or no option) orders by text score then
    newest, and any other option is followed by text score as a tie-breaker.
    """
    applied = resolve_sort_by(sort_by, text_search)
    if applied == RELEVANCE:
        return [(SCORE_FIELD, DESCENDING), ("created_at", DESCENDING)]
    sort = list(SORT_OPTIONS[applied])
    if text_search:
        sort.append((SCORE_FIELD, DESCENDING))
    return sort
