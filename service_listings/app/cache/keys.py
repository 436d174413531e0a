"""
Cache key scheme for Listings Service.

Keys are pure functions of the request shape. Logically identical queries
map to the same key no matter how the filter mapping was assembled, and every
key a namespace can produce is matched by that namespace's invalidation
pattern.

Layout:
    property:<id>
    properties:{"filter":{...},"page":1,"limit":20[,"sort":[[field,dir],...]]}
    user:<user_id>:<sub_resource>[:<page>:<limit>]
"""

import json
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union


# Namespaces
PROPERTY = "property"
PROPERTIES = "properties"
USER = "user"

# User-scoped sub-resources
FAVORITES = "favorites"
RECOMMENDATIONS = "recommendations"
ANALYTICS = "analytics"

KNOWN_NAMESPACES = (PROPERTY, PROPERTIES, USER)

_GLOB_SPECIALS = re.compile(r"([\\*?\[\]])")

_REGEX_FLAGS = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
)

SortSpec = Union[Mapping[str, int], Sequence[Tuple[str, int]]]


def escape_glob(value: Any) -> str:
    """Escape Redis glob metacharacters in an identifier segment."""
    return _GLOB_SPECIALS.sub(r"\\\1", str(value))


def _sort_token(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def canonicalize(value: Any) -> Any:
    """Convert a filter value into a deterministic JSON-compatible shape."""
    if isinstance(value, re.Pattern):
        flags = "".join(letter for flag, letter in _REGEX_FLAGS if value.flags & flag)
        return f"/{value.pattern}/{flags}"
    if isinstance(value, Enum):
        return canonicalize(value.value)
    if isinstance(value, Mapping):
        return {
            str(key): canonicalize(item)
            for key, item in sorted(value.items(), key=lambda pair: str(pair[0]))
        }
    if isinstance(value, (set, frozenset)):
        return sorted((canonicalize(item) for item in value), key=_sort_token)
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def canonical_sort(sort: SortSpec) -> List[List[Any]]:
    """Render a sort spec as ordered [field, direction] pairs.

    Order is significant for sorting, so unlike filters it is preserved.
    """
    pairs: Iterable[Tuple[str, int]] = sort.items() if isinstance(sort, Mapping) else sort
    return [[str(field), int(direction)] for field, direction in pairs]


def entity_key(kind: str, entity_id: Any) -> str:
    """Key for a single entity, e.g. ``property:abc123``."""
    return f"{kind}:{entity_id}"


def collection_key(
    kind_plural: str,
    query_filter: Optional[Mapping[str, Any]],
    page: int,
    limit: int,
    sort: Optional[SortSpec] = None,
) -> str:
    """Key for one page of a filtered, optionally sorted collection query.

    Raises TypeError if the filter holds a value with no JSON rendering.
    """
    shape: Dict[str, Any] = {
        "filter": canonicalize(query_filter or {}),
        "page": page,
        "limit": limit,
    }
    if sort:
        shape["sort"] = canonical_sort(sort)
    return f"{kind_plural}:{json.dumps(shape, separators=(',', ':'))}"


def user_scoped_key(
    user_id: Any,
    sub_resource: str,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> str:
    """Key for a per-user resource, optionally paginated."""
    key = f"{USER}:{user_id}:{sub_resource}"
    if page is None and limit is None:
        return key
    if page is None or limit is None:
        raise ValueError("page and limit must be given together")
    return f"{key}:{page}:{limit}"


def entity_pattern(kind: str, entity_id: Any) -> str:
    return f"{kind}:{escape_glob(entity_id)}"


def collection_pattern(kind_plural: str) -> str:
    return f"{kind_plural}:*"


def user_scoped_pattern(user_id: Optional[Any], sub_resource: str) -> str:
    """Pattern for every key of a user's sub-resource.

    The trailing ``*`` covers both the bare key and any paginated variants.
    Pass ``user_id=None`` to match the sub-resource across all users.
    """
    user_segment = "*" if user_id is None else escape_glob(user_id)
    return f"{USER}:{user_segment}:{sub_resource}*"


def namespace_of(key: Union[str, bytes]) -> str:
    """Leading namespace segment of a key, used as a metrics label."""
    if isinstance(key, bytes):
        key = key.decode("utf-8", errors="replace")
    namespace = key.split(":", 1)[0]
    return namespace if namespace in KNOWN_NAMESPACES else "other"
