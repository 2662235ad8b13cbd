"""Configuration settings using Pydantic."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # HTTP Settings
    api_host: str = Field(default="127.0.0.1", alias="GATEKEEPER_HOST")
    api_port: int = Field(default=8090, alias="GATEKEEPER_PORT")

    # Message Bus
    nats_url: str = Field(default="nats://localhost:4222", alias="NATS_URL")
    bus_enabled: bool = Field(
        default=True,
        alias="GATEKEEPER_BUS_ENABLED",
        description="Serve permission requests over NATS",
    )
    subject_prefix: str = Field(
        default="",
        alias="GATEKEEPER_SUBJECT_PREFIX",
        description="Prefix prepended to the permissions.* subjects",
    )
    queue_group: str | None = Field(
        default="gatekeeper",
        alias="GATEKEEPER_QUEUE_GROUP",
        description="NATS queue group shared by all service instances",
    )
    request_timeout: float = Field(
        default=5.0,
        alias="GATEKEEPER_REQUEST_TIMEOUT",
        description="Client request timeout in seconds",
    )

    # Permission Store
    db_path: Path = Field(
        default=Path.home() / ".local" / "share" / "gatekeeper" / "permissions.db",
        alias="GATEKEEPER_DB_PATH",
    )

    # Permission Cache
    cache_backend: str = Field(
        default="memory",
        alias="GATEKEEPER_CACHE_BACKEND",
        description="Cache backend: memory, redis, nats",
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    cache_prefix: str = Field(default="gatekeeper:permissions:", alias="GATEKEEPER_CACHE_PREFIX")
    cache_ttl: int | None = Field(
        default=None,
        alias="GATEKEEPER_CACHE_TTL",
        description="Optional Redis entry TTL in seconds",
    )
    cache_bucket: str = Field(default="permissions_cache", alias="GATEKEEPER_CACHE_BUCKET")

    # Validation
    vocabulary_path: Path | None = Field(
        default=None,
        alias="GATEKEEPER_VOCABULARY_PATH",
        description="Path to YAML file of allowed actions per module",
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


@lru_cache
def get_settings() -> Settings:
    """Get service settings (cached)."""
    return Settings()
