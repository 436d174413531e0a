"""
In-memory document store for Listings Service.

Used for local development and tests. Evaluates the same filter vocabulary
as the PostgreSQL backend against plain dictionaries.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from shared.errors import ConflictError, ValidationError
from ..domain.filters import ALL, GTE, IN, LTE, SCORE_FIELD, TEXT
from ..domain.models import PropertyRecord, Recommendation, UserProfile, utcnow
from .base import PropertyStore, SortOptions, UserStore


TEXT_FIELDS = ("title", "description", "city", "state")

_WORD = re.compile(r"\w+")


def text_score(document: Mapping[str, Any], text: str) -> int:
    """Count occurrences of any query term in the searchable fields."""
    terms = set(_WORD.findall(text.lower()))
    if not terms:
        return 0
    tokens = []
    for field in TEXT_FIELDS:
        value = document.get(field)
        if value:
            tokens.extend(_WORD.findall(str(value).lower()))
    return sum(1 for token in tokens if token in terms)


def _match_operator(value: Any, operator: str, operand: Any) -> bool:
    if operator in (GTE, LTE):
        if value is None:
            return False
        try:
            return value >= operand if operator == GTE else value <= operand
        except TypeError:
            return False
    if operator == IN:
        if isinstance(value, list):
            return any(item in operand for item in value)
        return value in operand
    if operator == ALL:
        return isinstance(value, list) and all(item in value for item in operand)
    raise ValidationError(f"Unsupported filter operator: {operator}")


def _match_condition(value: Any, condition: Any) -> bool:
    if isinstance(condition, re.Pattern):
        return isinstance(value, str) and condition.search(value) is not None
    if isinstance(condition, Mapping):
        return all(_match_operator(value, operator, operand) for operator, operand in condition.items())
    if isinstance(value, list):
        return condition in value
    return value == condition


def matches(document: Mapping[str, Any], query_filter: Mapping[str, Any]) -> bool:
    """Return True if a document satisfies every clause of the filter."""
    for field, condition in query_filter.items():
        if field == TEXT:
            if text_score(document, condition) <= 0:
                return False
        elif not _match_condition(document.get(field), condition):
            return False
    return True


def sort_documents(documents: List[Dict[str, Any]], sort: SortOptions) -> List[Dict[str, Any]]:
    """Stable multi-key sort; missing values order before present ones."""
    ordered = list(documents)
    for field, direction in reversed(list(sort)):
        ordered.sort(
            key=lambda doc: (doc.get(field) is not None, doc.get(field) if doc.get(field) is not None else 0),
            reverse=direction < 0
        )
    return ordered


class InMemoryPropertyStore(PropertyStore):
    """Listing store held in process memory."""

    def __init__(self):
        self._records: Dict[str, PropertyRecord] = {}

    async def create(self, record: PropertyRecord) -> PropertyRecord:
        if any(existing.property_id == record.property_id for existing in self._records.values()):
            raise ConflictError(
                "A listing with this property_id already exists",
                {"property_id": record.property_id}
            )
        self._records[record.id] = record.model_copy(deep=True)
        return record.model_copy(deep=True)

    async def find_by_id(self, property_id: str) -> Optional[PropertyRecord]:
        record = self._records.get(property_id)
        return record.model_copy(deep=True) if record else None

    async def find_by_property_id(self, external_id: str) -> Optional[PropertyRecord]:
        for record in self._records.values():
            if record.property_id == external_id:
                return record.model_copy(deep=True)
        return None

    def _matching(self, query_filter: Mapping[str, Any]) -> List[Dict[str, Any]]:
        text = query_filter.get(TEXT)
        documents = []
        for record in self._records.values():
            document = record.model_dump()
            if matches(document, query_filter):
                if text:
                    document[SCORE_FIELD] = text_score(document, text)
                documents.append(document)
        return documents

    async def find(
        self,
        query_filter: Mapping[str, Any],
        skip: int = 0,
        limit: int = 20,
        sort: Optional[SortOptions] = None,
    ) -> List[PropertyRecord]:
        documents = self._matching(query_filter)
        if sort:
            documents = sort_documents(documents, sort)
        page = documents[skip:skip + limit]
        return [self._records[doc["id"]].model_copy(deep=True) for doc in page]

    async def count(self, query_filter: Mapping[str, Any]) -> int:
        return len(self._matching(query_filter))

    async def update(self, property_id: str, changes: Dict[str, Any]) -> Optional[PropertyRecord]:
        existing = self._records.get(property_id)
        if existing is None:
            return None
        updated = PropertyRecord.model_validate({**existing.model_dump(), **changes, "updated_at": utcnow()})
        self._records[property_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, property_id: str) -> Optional[PropertyRecord]:
        return self._records.pop(property_id, None)

    async def find_many(self, property_ids: Sequence[str]) -> List[PropertyRecord]:
        return [
            self._records[property_id].model_copy(deep=True)
            for property_id in property_ids
            if property_id in self._records
        ]

    async def owner_stats(self, owner_id: str) -> Dict[str, Any]:
        owned = [record for record in self._records.values() if record.created_by == owner_id]
        total_value = sum(record.price for record in owned)
        return {
            "total_properties": len(owned),
            "avg_price": total_value / len(owned) if owned else 0,
            "total_value": total_value,
            "by_type": [{"type": record.type, "listing_type": record.listing_type} for record in owned],
        }


class InMemoryUserStore(UserStore):
    """User profiles and relations held in process memory."""

    def __init__(self):
        self._users: Dict[str, UserProfile] = {}
        self._favorites: Dict[str, Dict[str, None]] = {}
        self._recommendations: Dict[str, Recommendation] = {}

    async def ensure_user(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> UserProfile:
        user = self._users.get(user_id)
        if user is None:
            user = UserProfile(id=user_id, email=email.lower() if email else None, name=name)
            self._users[user_id] = user
            return user.model_copy()

        if email and user.email != email.lower():
            user.email = email.lower()
        if name and user.name != name:
            user.name = name
        return user.model_copy()

    async def get(self, user_id: str) -> Optional[UserProfile]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def get_many(self, user_ids: Sequence[str]) -> Dict[str, UserProfile]:
        return {user_id: self._users[user_id].model_copy() for user_id in set(user_ids) if user_id in self._users}

    async def get_by_email(self, email: str) -> Optional[UserProfile]:
        wanted = email.strip().lower()
        for user in self._users.values():
            if user.email == wanted:
                return user.model_copy()
        return None

    async def add_favorite(self, user_id: str, property_id: str) -> bool:
        favorites = self._favorites.setdefault(user_id, {})
        if property_id in favorites:
            return False
        favorites[property_id] = None
        return True

    async def remove_favorite(self, user_id: str, property_id: str) -> bool:
        favorites = self._favorites.get(user_id, {})
        if property_id not in favorites:
            return False
        del favorites[property_id]
        return True

    async def favorite_ids(self, user_id: str) -> List[str]:
        return list(self._favorites.get(user_id, {}))

    async def add_recommendation(self, recommendation: Recommendation) -> Recommendation:
        self._recommendations[recommendation.id] = recommendation.model_copy()
        return recommendation

    async def remove_recommendation(self, user_id: str, recommendation_id: str) -> bool:
        recommendation = self._recommendations.get(recommendation_id)
        if recommendation is None or recommendation.recipient_id != user_id:
            return False
        del self._recommendations[recommendation_id]
        return True

    async def list_recommendations(self, user_id: str, skip: int = 0, limit: int = 20) -> Tuple[List[Recommendation], int]:
        received = sorted(
            (rec for rec in self._recommendations.values() if rec.recipient_id == user_id),
            key=lambda rec: rec.created_at,
            reverse=True
        )
        return [rec.model_copy() for rec in received[skip:skip + limit]], len(received)

    async def remove_property_references(self, property_id: str) -> None:
        for favorites in self._favorites.values():
            favorites.pop(property_id, None)
        stale = [rec_id for rec_id, rec in self._recommendations.items() if rec.property_id == property_id]
        for rec_id in stale:
            del self._recommendations[rec_id]
