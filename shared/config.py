"""
Shared configuration management for the Fantasy Contest Platform.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="CONTESTS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


class CacheConfig(BaseConfig):
    """Settings for the two-tier cache (process-local + Redis)."""

    # Distributed tier
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_password: Optional[str] = Field(default=None)
    redis_db: int = Field(default=0, ge=0)
    redis_tls: bool = Field(default=False)
    key_prefix: str = Field(default="fantasy:")

    connect_timeout_ms: int = Field(default=3000, gt=0)
    command_timeout_ms: int = Field(default=5000, gt=0)
    max_retries_per_request: int = Field(default=3, ge=1)
    retry_base_delay_ms: int = Field(default=200, ge=0)
    retry_max_delay_ms: int = Field(default=2000, ge=0)

    # Process-local tier
    memory_cache_max_size: int = Field(default=100, ge=1)
    memory_cache_ttl_seconds: float = Field(default=60, gt=0)

    # Codec and stampede protection
    compression_threshold_bytes: int = Field(default=1024, ge=0)
    lock_ttl_seconds: int = Field(default=5, ge=1)
    lock_wait_ms: int = Field(default=100, ge=0)
    default_ttl_seconds: int = Field(default=300, ge=1)

    @property
    def connect_timeout(self) -> float:
        return self.connect_timeout_ms / 1000

    @property
    def command_timeout(self) -> float:
        return self.command_timeout_ms / 1000


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)


def get_cache_config(**overrides) -> CacheConfig:
    """Get cache configuration, with explicit overrides taking precedence over env."""
    return CacheConfig(**overrides)
