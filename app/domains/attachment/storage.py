"""Blob storage for uploaded attachments.

Blobs are addressed by path (``{user_id}/{attachment_id}{ext}``). The local
backend serves development and tests; the S3 backend talks to any
S3-compatible endpoint through the MinIO client.
"""

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path

from minio import Minio
from minio.error import S3Error

from app.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(OSError):
    """A storage backend failed to read or write a blob."""


class AttachmentStorage(ABC):
    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        """Store ``data`` under ``path``, replacing any previous blob."""

    @abstractmethod
    async def get(self, path: str) -> bytes | None:
        """Return the blob, or ``None`` when nothing is stored at ``path``."""

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Delete the blob; a missing blob is not an error."""


class LocalAttachmentStorage(AttachmentStorage):
    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise ValueError(f"Storage path escapes the storage root: {path}")
        return target

    def _write(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def _read(self, path: str) -> bytes | None:
        target = self._resolve(path)
        if not target.is_file():
            return None
        return target.read_bytes()

    def _unlink(self, path: str) -> None:
        self._resolve(path).unlink(missing_ok=True)

    async def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        await asyncio.to_thread(self._write, path, data)

    async def get(self, path: str) -> bytes | None:
        return await asyncio.to_thread(self._read, path)

    async def remove(self, path: str) -> None:
        await asyncio.to_thread(self._unlink, path)


class S3AttachmentStorage(AttachmentStorage):
    def __init__(self, client: Minio, bucket_name: str):
        self.client = client
        self.bucket_name = bucket_name
        self._bucket_checked = False

    def _ensure_bucket(self) -> None:
        if self._bucket_checked:
            return
        if not self.client.bucket_exists(self.bucket_name):
            self.client.make_bucket(self.bucket_name)
            logger.info(f"Created bucket: {self.bucket_name}")
        self._bucket_checked = True

    def _put(self, path: str, data: bytes, content_type: str) -> None:
        try:
            self._ensure_bucket()
            self.client.put_object(
                bucket_name=self.bucket_name,
                object_name=path,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except S3Error as e:
            raise StorageError(f"Failed to write {path}: {e.code}") from e

    def _get(self, path: str) -> bytes | None:
        try:
            response = self.client.get_object(self.bucket_name, path)
        except S3Error as e:
            if e.code in ("NoSuchKey", "NoSuchBucket"):
                return None
            raise StorageError(f"Failed to read {path}: {e.code}") from e
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

    def _remove(self, path: str) -> None:
        try:
            self.client.remove_object(self.bucket_name, path)
        except S3Error as e:
            raise StorageError(f"Failed to remove {path}: {e.code}") from e

    async def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        await asyncio.to_thread(self._put, path, data, content_type)

    async def get(self, path: str) -> bytes | None:
        return await asyncio.to_thread(self._get, path)

    async def remove(self, path: str) -> None:
        await asyncio.to_thread(self._remove, path)


def _s3_endpoint() -> str:
    endpoint = settings.s3_endpoint_url or "s3.amazonaws.com"
    return endpoint.removeprefix("https://").removeprefix("http://").rstrip("/")


@lru_cache
def get_attachment_storage() -> AttachmentStorage:
    """FastAPI dependency returning the configured storage backend."""
    if settings.storage_type == "s3":
        client = Minio(
            endpoint=_s3_endpoint(),
            access_key=settings.aws_access_key_id,
            secret_key=settings.aws_secret_access_key,
            secure=settings.s3_secure,
            region=settings.s3_region,
        )
        logger.info(f"Using S3 attachment storage, bucket {settings.s3_bucket_name}")
        return S3AttachmentStorage(client, settings.s3_bucket_name)

    logger.info(f"Using local attachment storage at {settings.attachment_storage_dir}")
    return LocalAttachmentStorage(settings.attachment_storage_dir)
