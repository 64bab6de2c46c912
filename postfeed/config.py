"""
Configuration and settings for the feed backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Database: SQLAlchemy URL or mongodb:// URL
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    mongodb_database: str = Field(default="postfeed", alias="MONGODB_DATABASE")

    # Auth
    jwt_secret: str = Field(default="change-me", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_minutes: int = Field(default=60, alias="JWT_EXPIRES_MINUTES")

    # Feed
    posts_per_page: int = Field(default=2, alias="POSTS_PER_PAGE")

    # Images: local directory, or S3-compatible storage when a bucket is set
    images_dir: str = Field(default="images", alias="IMAGES_DIR")
    s3_endpoint: Optional[str] = Field(default=None, alias="S3_ENDPOINT")
    s3_region: Optional[str] = Field(default=None, alias="S3_REGION")
    s3_bucket: Optional[str] = Field(default=None, alias="S3_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, alias="POSTFEED_USE_IN_MEMORY_BACKENDS"
    )

    # Realtime fan-out (Redis pub/sub)
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    redis_channel: str = Field(default="postfeed:events", alias="REDIS_CHANNEL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
