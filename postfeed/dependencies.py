"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header

from postfeed.auth import AuthInfo, auth_from_header
from postfeed.config import Settings, get_settings
from postfeed.db import DbClient, InMemoryDbClient, MongoDbClient, SqlDbClient
from postfeed.realtime import (
    Broadcaster,
    RedisBroadcaster,
    WebSocketHub,
    get_broadcaster,
)
from postfeed.storage import (
    InMemoryStorageClient,
    LocalStorageClient,
    S3StorageClient,
    StorageClient,
)

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so users and posts persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    elif settings.database_url.startswith(("mongodb://", "mongodb+srv://")):
        _db_client = MongoDbClient(
            settings.database_url, database_name=settings.mongodb_database
        )
    else:
        _db_client = SqlDbClient(settings.database_url)
    logger.info("Using %s", _db_client.__class__.__name__)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _storage_client = InMemoryStorageClient()
    elif settings.s3_bucket:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    else:
        _storage_client = LocalStorageClient(root=settings.images_dir)
    return _storage_client


def build_broadcaster(settings: Settings) -> Broadcaster:
    if settings.redis_url:
        return RedisBroadcaster(url=settings.redis_url, channel=settings.redis_channel)
    return WebSocketHub()


def get_realtime() -> Broadcaster:
    return get_broadcaster()


def get_auth(authorization: Optional[str] = Header(default=None)) -> AuthInfo:
    return auth_from_header(authorization)


def require_user_id(authorization: Optional[str] = Header(default=None)) -> str:
    return auth_from_header(authorization).require()
