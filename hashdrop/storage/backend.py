"""
Object storage abstraction layer.

Provides a protocol-based interface so the submission service can swap
between a local directory tree and S3 (or MinIO) without touching the
submission protocol. Objects live in a single flat namespace per bucket,
keyed by the 40-hex-char content key of the encoded attachment.
"""
from typing import Protocol
from pathlib import Path
import asyncio
import io
import logging

import aiofiles
import boto3
from boto3.exceptions import Boto3Error
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from hashdrop.config import get_settings
from hashdrop.errors import BucketNotFound, ObjectUnavailable, UpstreamFailure

logger = logging.getLogger(__name__)

_WAITER_DELAY_SECONDS = 5


class StorageBackend(Protocol):
    """Protocol defining the object store interface. Implement this for new backends."""

    async def put(self, bucket: str, key: str, data: bytes) -> str:
        """Store an object and return its key once the store reports it exists."""
        ...

    async def get(self, bucket: str, key: str) -> bytes:
        """Fetch a whole object into memory. Raises ObjectUnavailable on any failure."""
        ...


class LocalStorageBackend:
    """
    Local filesystem storage backend.

    Each bucket is a directory under base_path and each object a file named
    by its key. Buckets are only created up front (like a real object store,
    a put into a missing bucket fails). Suitable for development and tests.
    """

    def __init__(self, base_path: str, buckets: tuple[str, ...] = ()):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        for bucket in buckets:
            (self.base_path / bucket).mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalStorageBackend initialized at {self.base_path.resolve()}")

    def _resolve_path(self, bucket: str, key: str) -> Path:
        """Resolve bucket/key to a filesystem path, preventing path traversal."""
        bucket_path = (self.base_path / bucket).resolve()
        resolved = (bucket_path / Path(key).as_posix().lstrip("/")).resolve()

        if bucket_path.parent != self.base_path.resolve() or resolved.parent != bucket_path:
            raise ValueError(f"Path traversal detected: {bucket}/{key}")

        return resolved

    async def put(self, bucket: str, key: str, data: bytes) -> str:
        """Write the object file, then confirm it is visible."""
        path = self._resolve_path(bucket, key)

        if not path.parent.is_dir():
            logger.error(f"Bucket {bucket} does not exist.")
            raise BucketNotFound(f"bucket {bucket!r} does not exist")

        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise UpstreamFailure(f"failed to store object {key}: {e}") from e

        if not path.exists():
            logger.warning(f"Failed attempt to wait for object {key} to exist in {bucket}.")

        logger.debug(f"Stored {len(data)} bytes at {bucket}/{key}")
        return key

    async def get(self, bucket: str, key: str) -> bytes:
        """Read the whole object file."""
        try:
            path = self._resolve_path(bucket, key)
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except (OSError, ValueError) as e:
            raise ObjectUnavailable(f"failed to download object {key}: {e}") from e


class S3StorageBackend:
    """
    S3 storage backend built on boto3's managed transfers.

    Uploads above the multipart threshold are split into parts sent
    concurrently; downloads fetch parts concurrently and reassemble them in
    memory. boto3 is blocking, so each transfer runs in a worker thread.
    """

    def __init__(
        self,
        client=None,
        region: str | None = None,
        endpoint_url: str | None = None,
        multipart_threshold: int = 8 * 1024 * 1024,
        part_size: int = 8 * 1024 * 1024,
        max_concurrency: int = 10,
        wait_timeout_seconds: int = 60,
    ):
        self.client = client or boto3.client("s3", region_name=region, endpoint_url=endpoint_url)
        self.transfer_config = TransferConfig(
            multipart_threshold=multipart_threshold,
            multipart_chunksize=part_size,
            max_concurrency=max_concurrency,
            use_threads=True,
        )
        self.wait_timeout_seconds = wait_timeout_seconds

    @staticmethod
    def _is_missing_bucket(error: Exception) -> bool:
        if isinstance(error, ClientError):
            return error.response.get("Error", {}).get("Code") == "NoSuchBucket"
        # S3UploadFailedError flattens the underlying ClientError into its message
        return "NoSuchBucket" in str(error)

    def _upload(self, bucket: str, key: str, data: bytes) -> None:
        self.client.upload_fileobj(
            io.BytesIO(data),
            bucket,
            key,
            ExtraArgs={"ChecksumAlgorithm": "SHA256"},
            Config=self.transfer_config,
        )

    def _wait_until_exists(self, bucket: str, key: str) -> None:
        waiter = self.client.get_waiter("object_exists")
        waiter.wait(
            Bucket=bucket,
            Key=key,
            WaiterConfig={
                "Delay": _WAITER_DELAY_SECONDS,
                "MaxAttempts": max(1, self.wait_timeout_seconds // _WAITER_DELAY_SECONDS),
            },
        )

    def _download(self, bucket: str, key: str) -> bytes:
        buffer = io.BytesIO()
        self.client.download_fileobj(bucket, key, buffer, Config=self.transfer_config)
        return buffer.getvalue()

    async def put(self, bucket: str, key: str, data: bytes) -> str:
        """
        Upload an object, then wait (bounded) for S3 to report it exists.

        A missing bucket is fatal. A confirmation timeout is only logged:
        the upload itself already succeeded.
        """
        try:
            await asyncio.to_thread(self._upload, bucket, key, data)
        except (BotoCoreError, ClientError, Boto3Error) as e:
            if self._is_missing_bucket(e):
                logger.error(f"Bucket {bucket} does not exist.")
                raise BucketNotFound(f"bucket {bucket!r} does not exist") from e
            raise UpstreamFailure(f"S3 object upload failed for {key}: {e}") from e

        try:
            await asyncio.to_thread(self._wait_until_exists, bucket, key)
        except (WaiterError, BotoCoreError, ClientError) as e:
            logger.warning(f"Failed attempt to wait for object {key} to exist in {bucket}: {e}")

        logger.debug(f"Uploaded {len(data)} bytes to s3://{bucket}/{key}")
        return key

    async def get(self, bucket: str, key: str) -> bytes:
        """Download an object in concurrent parts and return the reassembled bytes."""
        try:
            return await asyncio.to_thread(self._download, bucket, key)
        except (BotoCoreError, ClientError, Boto3Error) as e:
            raise ObjectUnavailable(f"failed to download object {key}: {e}") from e


# Singleton storage backend instance
_storage_backend: StorageBackend | None = None


def get_storage_backend() -> StorageBackend:
    """Get the configured storage backend (singleton)."""
    global _storage_backend

    if _storage_backend is None:
        settings = get_settings()

        if settings.storage_backend == "local":
            _storage_backend = LocalStorageBackend(
                settings.storage_local_path, buckets=(settings.storage_bucket,)
            )
        elif settings.storage_backend == "s3":
            _storage_backend = S3StorageBackend(
                region=settings.s3_region,
                endpoint_url=settings.s3_endpoint_url,
                multipart_threshold=settings.s3_multipart_threshold,
                part_size=settings.s3_part_size,
                max_concurrency=settings.s3_max_concurrency,
                wait_timeout_seconds=settings.s3_wait_timeout_seconds,
            )
        else:
            raise ValueError(f"Unknown storage backend: {settings.storage_backend}")

    return _storage_backend
