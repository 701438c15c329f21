"""
Configuration for the neo-cache layer.

Environment-driven settings for backend selection, connection parameters,
TTL defaults and session policy. Values are read from the environment and
an optional .env file.
"""
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendProvider(str, Enum):
    """Supported remote store client flavors."""
    REST = "rest"  # request/response over HTTP
    NATIVE = "native"  # persistent connection pool


PROVIDER_ALIASES = {
    "upstash": BackendProvider.REST,
    "request-response": BackendProvider.REST,
    "elasticache": BackendProvider.NATIVE,
    "redis": BackendProvider.NATIVE,
    "persistent-connection": BackendProvider.NATIVE,
}


class CacheLayerSettings(BaseSettings):
    """Settings for backends, cache entries and sessions."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Backend selection
    redis_provider: BackendProvider = Field(default=BackendProvider.REST)

    # Request/response endpoint
    redis_rest_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("redis_rest_url", "upstash_redis_rest_url"),
    )
    redis_rest_token: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("redis_rest_token", "upstash_redis_rest_token"),
    )

    # Persistent-connection endpoint
    redis_host: Optional[str] = Field(default="localhost")
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_db: int = Field(default=0, ge=0)
    redis_username: Optional[str] = Field(default=None)
    redis_password: Optional[SecretStr] = Field(default=None)
    redis_tls: bool = Field(default=False)
    redis_pool_size: int = Field(default=10, ge=1)
    redis_health_check_interval: int = Field(default=30, ge=0)

    # Timeouts and retries
    redis_connect_timeout: float = Field(default=10.0, gt=0)  # seconds
    redis_command_timeout: float = Field(default=5.0, gt=0)  # seconds
    redis_max_retries: int = Field(default=3, ge=0)
    redis_retry_delay_ms: int = Field(default=100, ge=0)

    # Cache entries
    cache_default_ttl: int = Field(default=3600, ge=1)  # 1 hour
    cache_list_ttl: int = Field(default=600, ge=1)  # 10 minutes
    cache_metrics_enabled: bool = Field(default=True)
    cache_metrics_ttl: int = Field(default=24 * 60 * 60, ge=1)

    # Sessions
    session_ttl: int = Field(default=7 * 24 * 60 * 60, ge=1)  # 7 days
    session_max_sessions: int = Field(default=5, ge=0)  # 0 disables the limit
    session_track_activity: bool = Field(default=True)
    session_extend_on_access: bool = Field(default=True)
    session_activity_limit: int = Field(default=100, ge=1)

    # Logging
    log_level: str = Field(default="INFO")

    @field_validator("redis_provider", mode="before")
    @classmethod
    def normalize_provider(cls, value):
        """Accept legacy provider names (upstash, elasticache)."""
        if isinstance(value, str):
            normalized = value.strip().lower()
            return PROVIDER_ALIASES.get(normalized, normalized)
        return value

    @property
    def rest_token(self) -> Optional[str]:
        """Plain REST bearer token, if configured."""
        return self.redis_rest_token.get_secret_value() if self.redis_rest_token else None

    @property
    def password(self) -> Optional[str]:
        """Plain Redis password, if configured."""
        return self.redis_password.get_secret_value() if self.redis_password else None


@lru_cache()
def get_settings() -> CacheLayerSettings:
    """Get cached settings loaded from the environment."""
    return CacheLayerSettings()
