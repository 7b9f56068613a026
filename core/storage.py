"""
Byte storage for file content

Content is written under a freshly generated opaque name and
addressed afterwards only through the locator returned by write().
"""
from pathlib import Path
from typing import Protocol
import uuid

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from core.config import get_settings
from core.logger import logger


class BlobStoreError(Exception):
    """Raised when content cannot be written, read or deleted."""


class BlobStore(Protocol):
    def write(self, data: bytes) -> str: ...

    def read(self, ref: str) -> bytes: ...

    def delete(self, ref: str) -> None: ...


def _parse_s3_path(s3_path: str) -> tuple[str, str]:
    """Parse S3 path into bucket and prefix"""
    if not s3_path.startswith("s3://"):
        raise ValueError("Invalid S3 path format. Must start with s3://")

    path_without_scheme = s3_path[5:]

    if not path_without_scheme:
        raise ValueError("Invalid S3 path format. Bucket name is required")

    if path_without_scheme.startswith("/"):
        raise ValueError("Invalid S3 path format. Bucket name cannot start with /")

    if "//" in path_without_scheme:
        raise ValueError("Invalid S3 path format. Path cannot contain double slashes")

    if "/" in path_without_scheme:
        bucket, key = path_without_scheme.split("/", 1)
    else:
        bucket = path_without_scheme
        key = ""

    return bucket, key


class LocalBlobStore:
    """Stores each blob as a file directly under root."""

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def _resolve(self, ref: str) -> Path:
        path = Path(ref).resolve()
        # Refuse locators that escape the storage root
        try:
            path.relative_to(self.root)
        except ValueError as exc:
            raise BlobStoreError(f"Locator outside storage root: {ref}") from exc
        return path

    def write(self, data: bytes) -> str:
        path = self.root / str(uuid.uuid4())
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise BlobStoreError(f"Failed to write {path}: {exc}") from exc
        logger.info("Stored %d bytes at %s", len(data), path)
        return str(path)

    def read(self, ref: str) -> bytes:
        path = self._resolve(ref)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise BlobStoreError(f"Failed to read {path}: {exc}") from exc

    def delete(self, ref: str) -> None:
        path = self._resolve(ref)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise BlobStoreError(f"Failed to delete {path}: {exc}") from exc


class S3BlobStore:
    """Stores each blob as an object under s3://bucket/prefix/."""

    def __init__(self, s3_client, bucket: str, prefix: str = ""):
        self.s3_client = s3_client
        self.bucket = bucket
        self.prefix = prefix.strip("/")

    @classmethod
    def from_uri(cls, uri: str, s3_client=None) -> "S3BlobStore":
        bucket, prefix = _parse_s3_path(uri)
        if s3_client is None:
            s3_client = boto3.client("s3", region_name=get_settings().AWS_REGION)
        return cls(s3_client, bucket, prefix)

    def _key(self, ref: str) -> str:
        try:
            bucket, key = _parse_s3_path(ref)
        except ValueError as exc:
            raise BlobStoreError(str(exc)) from exc
        if bucket != self.bucket or not key:
            raise BlobStoreError(f"Locator outside storage bucket: {ref}")
        return key

    def write(self, data: bytes) -> str:
        name = str(uuid.uuid4())
        key = f"{self.prefix}/{name}" if self.prefix else name
        try:
            self.s3_client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as exc:
            raise BlobStoreError(f"Failed to upload s3://{self.bucket}/{key}: {exc}") from exc
        logger.info("Stored %d bytes at s3://%s/%s", len(data), self.bucket, key)
        return f"s3://{self.bucket}/{key}"

    def read(self, ref: str) -> bytes:
        key = self._key(ref)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as exc:
            raise BlobStoreError(f"Failed to download {ref}: {exc}") from exc

    def delete(self, ref: str) -> None:
        key = self._key(ref)
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise BlobStoreError(f"Failed to delete {ref}: {exc}") from exc


_blob_store = None


def get_blob_store() -> BlobStore:
    """
    Build the configured blob store once and reuse it.
    """
    global _blob_store

    if _blob_store is not None:
        return _blob_store

    settings = get_settings()
    if settings.STORAGE_BACKEND == "s3":
        if not settings.STORAGE_BUCKET_URI:
            raise RuntimeError("STORAGE_BUCKET_URI must be set when STORAGE_BACKEND is s3")
        _blob_store = S3BlobStore.from_uri(settings.STORAGE_BUCKET_URI)
    elif settings.STORAGE_BACKEND == "local":
        _blob_store = LocalBlobStore(settings.FOLDER_PATH)
    else:
        raise RuntimeError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")

    logger.info("Using %s blob store", settings.STORAGE_BACKEND)
    return _blob_store


def reset_blob_store():
    """Drop the cached blob store so settings are re-read."""
    global _blob_store
    _blob_store = None
