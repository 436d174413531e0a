"""
PostgreSQL persistence layer for Listings Service.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import asyncpg

from shared.errors import ConflictError, ServiceError, ValidationError
from shared.logging import get_logger
from ..domain.filters import ALL, GTE, IN, LTE, SCORE_FIELD, TEXT
from ..domain.models import PropertyRecord, Recommendation, UserProfile, utcnow
from .base import PropertyStore, SortOptions, UserStore


PROPERTY_COLUMNS = (
    "id", "property_id", "title", "type", "price", "state", "city", "area_sq_ft",
    "bedrooms", "bathrooms", "amenities", "furnished", "available_from", "listed_by",
    "tags", "color_theme", "rating", "is_verified", "listing_type", "created_by",
    "images", "description", "created_at", "updated_at",
)
ARRAY_COLUMNS = {"amenities", "tags", "images"}

SEARCH_VECTOR = (
    "to_tsvector('english', coalesce(title, '') || ' ' || coalesce(description, '') "
    "|| ' ' || coalesce(city, '') || ' ' || coalesce(state, ''))"
)


def _search_query(placeholder: str) -> str:
    # Any term may match, as with document-store text search.
    return f"replace(plainto_tsquery('english', {placeholder})::text, '&', '|')::tsquery"


def _column(field: str) -> str:
    if field not in PROPERTY_COLUMNS:
        raise ValidationError(f"Unknown filter field: {field}", {"field": field})
    return f'"{field}"'


class _Params:
    """Collects positional query arguments."""

    def __init__(self, start: int = 1):
        self.start = start
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${self.start + len(self.values) - 1}"


def _clauses(query_filter: Mapping[str, Any], params: _Params) -> List[str]:
    clauses = []
    for field, condition in query_filter.items():
        if field == TEXT:
            clauses.append(f"{SEARCH_VECTOR} @@ {_search_query(params.add(condition))}")
            continue

        column = _column(field)
        if isinstance(condition, re.Pattern):
            operator = "~*" if condition.flags & re.IGNORECASE else "~"
            clauses.append(f"{column} {operator} {params.add(condition.pattern)}")
        elif isinstance(condition, Mapping):
            for operator, operand in condition.items():
                if operator == GTE:
                    clauses.append(f"{column} >= {params.add(operand)}")
                elif operator == LTE:
                    clauses.append(f"{column} <= {params.add(operand)}")
                elif operator == IN and field in ARRAY_COLUMNS:
                    clauses.append(f"{column} && {params.add(list(operand))}::text[]")
                elif operator == IN:
                    clauses.append(f"{column} = ANY({params.add(list(operand))})")
                elif operator == ALL:
                    clauses.append(f"{column} @> {params.add(list(operand))}::text[]")
                else:
                    raise ValidationError(f"Unsupported filter operator: {operator}", {"field": field})
        elif field in ARRAY_COLUMNS:
            clauses.append(f"{params.add(condition)} = ANY({column})")
        else:
            clauses.append(f"{column} = {params.add(condition)}")
    return clauses


def build_where_clause(query_filter: Mapping[str, Any], start_index: int = 1) -> Tuple[str, List[Any]]:
    """Translate a store filter into a SQL predicate and its arguments."""
    params = _Params(start_index)
    clauses = _clauses(query_filter, params)
    return (" AND ".join(clauses) if clauses else "TRUE"), params.values


def build_order_clause(sort: Optional[SortOptions], text_placeholder: Optional[str] = None) -> str:
    """Translate sort options into ORDER BY, ending with id for a stable page order.

    Nulls sort first ascending and last descending, matching the in-memory
    store.
    """
    terms = []
    for field, direction in sort or []:
        if field == SCORE_FIELD:
            if text_placeholder is None:
                continue
            expression = f"ts_rank({SEARCH_VECTOR}, {_search_query(text_placeholder)})"
        else:
            if field not in PROPERTY_COLUMNS:
                raise ValidationError(f"Unknown sort field: {field}", {"field": field})
            expression = f'"{field}"'
        terms.append(f"{expression} ASC NULLS FIRST" if direction > 0 else f"{expression} DESC NULLS LAST")
    terms.append('"id" ASC')
    return "ORDER BY " + ", ".join(terms)


class PostgresDatabase:
    """Connection pool and schema shared by the PostgreSQL stores."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("listings.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        if self.pool is not None:
            return
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )
            await self._create_tables()
            self.logger.info("PostgreSQL persistence started")
        except (asyncpg.PostgresError, OSError) as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise ServiceError("Failed to start PostgreSQL persistence", {"error": str(e)})

    async def stop(self):
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    def acquire(self):
        if self.pool is None:
            raise ServiceError("PostgreSQL persistence is not started")
        return self.pool.acquire()

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS properties (
                    id VARCHAR(64) PRIMARY KEY,
                    property_id VARCHAR(255) NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    type VARCHAR(32) NOT NULL,
                    price DOUBLE PRECISION NOT NULL,
                    state TEXT NOT NULL,
                    city TEXT NOT NULL,
                    area_sq_ft DOUBLE PRECISION NOT NULL,
                    bedrooms INTEGER NOT NULL,
                    bathrooms INTEGER NOT NULL,
                    amenities TEXT[] NOT NULL DEFAULT '{}',
                    furnished VARCHAR(32) NOT NULL,
                    available_from TIMESTAMP WITH TIME ZONE NOT NULL,
                    listed_by VARCHAR(32) NOT NULL,
                    tags TEXT[] NOT NULL DEFAULT '{}',
                    color_theme TEXT,
                    rating DOUBLE PRECISION,
                    is_verified BOOLEAN NOT NULL DEFAULT FALSE,
                    listing_type VARCHAR(16) NOT NULL,
                    created_by VARCHAR(255) NOT NULL,
                    images TEXT[] NOT NULL DEFAULT '{}',
                    description TEXT,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("CREATE INDEX IF NOT EXISTS idx_properties_price ON properties(price);")
            await conn.execute("CREATE INDEX IF NOT EXISTS idx_properties_location ON properties(city, state);")
            await conn.execute("CREATE INDEX IF NOT EXISTS idx_properties_type ON properties(type);")
            await conn.execute("CREATE INDEX IF NOT EXISTS idx_properties_rooms ON properties(bedrooms, bathrooms);")
            await conn.execute("CREATE INDEX IF NOT EXISTS idx_properties_owner ON properties(created_by);")
            await conn.execute("CREATE INDEX IF NOT EXISTS idx_properties_created ON properties(created_at DESC);")
            await conn.execute(f"CREATE INDEX IF NOT EXISTS idx_properties_search ON properties USING GIN ({SEARCH_VECTOR});")

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id VARCHAR(255) PRIMARY KEY,
                    email VARCHAR(320) UNIQUE,
                    name TEXT,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS favorites (
                    user_id VARCHAR(255) NOT NULL,
                    property_id VARCHAR(64) NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    PRIMARY KEY (user_id, property_id)
                );
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS recommendations (
                    id VARCHAR(64) PRIMARY KEY,
                    property_id VARCHAR(64) NOT NULL REFERENCES properties(id) ON DELETE CASCADE,
                    recommended_by VARCHAR(255) NOT NULL,
                    recipient_id VARCHAR(255) NOT NULL,
                    message VARCHAR(500),
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_recommendations_recipient ON recommendations(recipient_id, created_at DESC);"
            )

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False


def _row_to_property(row) -> PropertyRecord:
    return PropertyRecord.model_validate(dict(row))


class PostgresPropertyStore(PropertyStore):
    """Listing store backed by the ``properties`` table."""

    def __init__(self, database: PostgresDatabase):
        self.database = database

    async def start(self):
        await self.database.start()

    async def stop(self):
        await self.database.stop()

    async def health_check(self) -> bool:
        return await self.database.health_check()

    async def create(self, record: PropertyRecord) -> PropertyRecord:
        document = record.model_dump()
        columns = ", ".join(f'"{column}"' for column in PROPERTY_COLUMNS)
        placeholders = ", ".join(f"${index}" for index in range(1, len(PROPERTY_COLUMNS) + 1))
        try:
            async with self.database.acquire() as conn:
                row = await conn.fetchrow(
                    f"INSERT INTO properties ({columns}) VALUES ({placeholders}) RETURNING *",
                    *(document[column] for column in PROPERTY_COLUMNS)
                )
        except asyncpg.UniqueViolationError:
            raise ConflictError(
                "A listing with this property_id already exists",
                {"property_id": record.property_id}
            )
        return _row_to_property(row)

    async def find_by_id(self, property_id: str) -> Optional[PropertyRecord]:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM properties WHERE id = $1", property_id)
        return _row_to_property(row) if row else None

    async def find_by_property_id(self, external_id: str) -> Optional[PropertyRecord]:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM properties WHERE property_id = $1", external_id)
        return _row_to_property(row) if row else None

    async def find(
        self,
        query_filter: Mapping[str, Any],
        skip: int = 0,
        limit: int = 20,
        sort: Optional[SortOptions] = None,
    ) -> List[PropertyRecord]:
        where, args = build_where_clause(query_filter)
        params = _Params(len(args) + 1)
        text_placeholder = params.add(query_filter[TEXT]) if TEXT in query_filter else None
        order = build_order_clause(sort, text_placeholder)
        offset = params.add(skip)
        page_size = params.add(limit)

        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM properties WHERE {where} {order} OFFSET {offset} LIMIT {page_size}",
                *args, *params.values
            )
        return [_row_to_property(row) for row in rows]

    async def count(self, query_filter: Mapping[str, Any]) -> int:
        where, args = build_where_clause(query_filter)
        async with self.database.acquire() as conn:
            return await conn.fetchval(f"SELECT COUNT(*) FROM properties WHERE {where}", *args) or 0

    async def update(self, property_id: str, changes: Dict[str, Any]) -> Optional[PropertyRecord]:
        changes = {**changes, "updated_at": utcnow()}
        params = _Params(2)
        assignments = ", ".join(f"{_column(field)} = {params.add(value)}" for field, value in changes.items())
        async with self.database.acquire() as conn:
            row = await conn.fetchrow(
                f"UPDATE properties SET {assignments} WHERE id = $1 RETURNING *",
                property_id, *params.values
            )
        return _row_to_property(row) if row else None

    async def delete(self, property_id: str) -> Optional[PropertyRecord]:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow("DELETE FROM properties WHERE id = $1 RETURNING *", property_id)
        return _row_to_property(row) if row else None

    async def find_many(self, property_ids: Sequence[str]) -> List[PropertyRecord]:
        if not property_ids:
            return []
        async with self.database.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM properties WHERE id = ANY($1)", list(property_ids))
        by_id = {row["id"]: _row_to_property(row) for row in rows}
        return [by_id[property_id] for property_id in property_ids if property_id in by_id]

    async def owner_stats(self, owner_id: str) -> Dict[str, Any]:
        async with self.database.acquire() as conn:
            totals = await conn.fetchrow("""
                SELECT COUNT(*) AS total_properties,
                       COALESCE(AVG(price), 0) AS avg_price,
                       COALESCE(SUM(price), 0) AS total_value
                FROM properties WHERE created_by = $1
            """, owner_id)
            mix = await conn.fetch(
                "SELECT type, listing_type FROM properties WHERE created_by = $1 ORDER BY created_at",
                owner_id
            )
        return {
            "total_properties": totals["total_properties"],
            "avg_price": float(totals["avg_price"]),
            "total_value": float(totals["total_value"]),
            "by_type": [{"type": row["type"], "listing_type": row["listing_type"]} for row in mix],
        }


class PostgresUserStore(UserStore):
    """Users, favorites and recommendations tables."""

    def __init__(self, database: PostgresDatabase):
        self.database = database

    async def start(self):
        await self.database.start()

    async def stop(self):
        await self.database.stop()

    async def health_check(self) -> bool:
        return await self.database.health_check()

    async def ensure_user(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> UserProfile:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO users (id, email, name) VALUES ($1, $2, $3)
                ON CONFLICT (id) DO UPDATE SET
                    email = COALESCE(EXCLUDED.email, users.email),
                    name = COALESCE(EXCLUDED.name, users.name)
                RETURNING *
            """, user_id, email.lower() if email else None, name)
        return UserProfile.model_validate(dict(row))

    async def get(self, user_id: str) -> Optional[UserProfile]:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return UserProfile.model_validate(dict(row)) if row else None

    async def get_many(self, user_ids: Sequence[str]) -> Dict[str, UserProfile]:
        if not user_ids:
            return {}
        async with self.database.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM users WHERE id = ANY($1)", list(set(user_ids)))
        return {row["id"]: UserProfile.model_validate(dict(row)) for row in rows}

    async def get_by_email(self, email: str) -> Optional[UserProfile]:
        async with self.database.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE email = $1", email.strip().lower())
        return UserProfile.model_validate(dict(row)) if row else None

    async def add_favorite(self, user_id: str, property_id: str) -> bool:
        async with self.database.acquire() as conn:
            result = await conn.execute("""
                INSERT INTO favorites (user_id, property_id) VALUES ($1, $2)
                ON CONFLICT (user_id, property_id) DO NOTHING
            """, user_id, property_id)
        return result == "INSERT 0 1"

    async def remove_favorite(self, user_id: str, property_id: str) -> bool:
        async with self.database.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM favorites WHERE user_id = $1 AND property_id = $2",
                user_id, property_id
            )
        return result == "DELETE 1"

    async def favorite_ids(self, user_id: str) -> List[str]:
        async with self.database.acquire() as conn:
            rows = await conn.fetch(
                "SELECT property_id FROM favorites WHERE user_id = $1 ORDER BY created_at, property_id",
                user_id
            )
        return [row["property_id"] for row in rows]

    async def add_recommendation(self, recommendation: Recommendation) -> Recommendation:
        async with self.database.acquire() as conn:
            await conn.execute("""
                INSERT INTO recommendations (id, property_id, recommended_by, recipient_id, message, created_at)
                VALUES ($1, $2, $3, $4, $5, $6)
            """,
                recommendation.id, recommendation.property_id, recommendation.recommended_by,
                recommendation.recipient_id, recommendation.message, recommendation.created_at
            )
        return recommendation

    async def remove_recommendation(self, user_id: str, recommendation_id: str) -> bool:
        async with self.database.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM recommendations WHERE id = $1 AND recipient_id = $2",
                recommendation_id, user_id
            )
        return result == "DELETE 1"

    async def list_recommendations(self, user_id: str, skip: int = 0, limit: int = 20) -> Tuple[List[Recommendation], int]:
        async with self.database.acquire() as conn:
            rows = await conn.fetch("""
                SELECT * FROM recommendations WHERE recipient_id = $1
                ORDER BY created_at DESC, id OFFSET $2 LIMIT $3
            """, user_id, skip, limit)
            total = await conn.fetchval("SELECT COUNT(*) FROM recommendations WHERE recipient_id = $1", user_id)
        return [Recommendation.model_validate(dict(row)) for row in rows], total or 0

    async def remove_property_references(self, property_id: str) -> None:
        # Also covered by ON DELETE CASCADE on both tables.
        async with self.database.acquire() as conn:
            await conn.execute("DELETE FROM favorites WHERE property_id = $1", property_id)
            await conn.execute("DELETE FROM recommendations WHERE property_id = $1", property_id)
