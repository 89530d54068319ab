"""
Configuration and settings for the Firefly Grove backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible blob storage for media and legacy archives
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Queue (Redis) for heir release notices
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="grove:release-notices")

    # Duplicate-content guard
    duplicate_window_minutes: int = Field(default=5, ge=0)

    # Sessions and legacy downloads
    session_ttl_hours: int = Field(default=24 * 30, ge=1)
    archive_url_expires_in: int = Field(default=3600, ge=60, le=7 * 24 * 3600)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
