"""
Shared configuration management for the Property Listings platform.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="LISTINGS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Cache (Redis)
    redis_url: str = Field(default="redis://localhost:6379/0")
    cache_ttl: int = Field(default=3600, gt=0, description="Default cache TTL in seconds")
    cache_socket_timeout: float = Field(default=2.0, gt=0)
    cache_scan_count: int = Field(default=500, gt=0)

    # Document store
    store_backend: str = Field(default="memory", pattern="^(memory|postgres)$")
    postgres_dsn: str = Field(default="postgresql://localhost:5432/listings")

    # Security
    jwt_secret: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")
    jwt_audience: Optional[str] = Field(default=None)
    jwt_issuer: Optional[str] = Field(default=None)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
