"""
Image storage for post uploads: local disk, S3-compatible buckets and an
in-memory test double.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

IMAGE_PREFIX = "images"
ACCEPTED_CONTENT_TYPES = frozenset({"image/png", "image/jpg", "image/jpeg"})


def accepts(content_type: str | None) -> bool:
    """Only PNG and JPEG uploads are stored; anything else counts as no file."""
    return (content_type or "").lower() in ACCEPTED_CONTENT_TYPES


def image_name(filename: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S.%fZ")
    return f"{stamp}-{os.path.basename(filename) or 'upload'}"


class StorageClient(Protocol):
    """Defines the operations the API needs from image storage."""

    def save_image(self, filename: str, data: bytes, content_type: str) -> str:
        ...

    def clear_image(self, path: str) -> None:
        ...


def _strip_prefix(path: str) -> str:
    path = path.lstrip("/")
    if path.startswith(IMAGE_PREFIX + "/"):
        return path[len(IMAGE_PREFIX) + 1 :]
    return path


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    stored_objects: dict[str, bytes] = field(default_factory=dict)

    def save_image(self, filename: str, data: bytes, content_type: str) -> str:
        path = f"{IMAGE_PREFIX}/{image_name(filename)}"
        self.stored_objects[path] = data
        return path

    def clear_image(self, path: str) -> None:
        if self.stored_objects.pop(path, None) is None:
            logger.warning("Image %s not found, nothing to clear", path)


@dataclass
class LocalStorageClient:
    """Stores images under a directory that the app serves at /images."""

    root: str = IMAGE_PREFIX

    def __post_init__(self):
        os.makedirs(self.root, exist_ok=True)

    def _resolve(self, path: str) -> str | None:
        root = os.path.realpath(self.root)
        target = os.path.realpath(os.path.join(root, _strip_prefix(path)))
        if os.path.commonpath([root, target]) != root:
            return None
        return target

    def save_image(self, filename: str, data: bytes, content_type: str) -> str:
        name = image_name(filename)
        with open(os.path.join(self.root, name), "wb") as f:
            f.write(data)
        return f"{IMAGE_PREFIX}/{name}"

    def clear_image(self, path: str) -> None:
        target = self._resolve(path)
        if target is None:
            logger.warning("Refusing to clear %s outside of %s", path, self.root)
            return
        try:
            os.unlink(target)
        except FileNotFoundError:
            logger.warning("Image %s not found, nothing to clear", path)


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (AWS S3, Tencent COS, MinIO).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def save_image(self, filename: str, data: bytes, content_type: str) -> str:
        path = f"{IMAGE_PREFIX}/{image_name(filename)}"
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )
        return path

    def clear_image(self, path: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=path.lstrip("/"))
        except ClientError as exc:
            logger.warning("Failed to clear image %s: %s", path, exc)
