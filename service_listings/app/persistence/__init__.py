"""
Persistence package for Listings Service.
"""

from typing import Tuple

from shared.config import ServiceConfig
from .base import PropertyStore, UserStore
from .memory import InMemoryPropertyStore, InMemoryUserStore
from .postgres import PostgresDatabase, PostgresPropertyStore, PostgresUserStore


def create_stores(config: ServiceConfig) -> Tuple[PropertyStore, UserStore]:
    """Build the property and user stores for the configured backend."""
    if config.store_backend == "postgres":
        database = PostgresDatabase(config.postgres_dsn)
        return PostgresPropertyStore(database), PostgresUserStore(database)
    return InMemoryPropertyStore(), InMemoryUserStore()


__all__ = [
    "PropertyStore",
    "UserStore",
    "InMemoryPropertyStore",
    "InMemoryUserStore",
    "PostgresDatabase",
    "PostgresPropertyStore",
    "PostgresUserStore",
    "create_stores",
]
