"""
Submission service: the content-addressed submit/retrieve protocol.

Submit:
    1. Reject empty or oversized submissions before any I/O
    2. Encode each attachment, key it by SHA-1 of the blob, upload it
    3. Hash the body plus every "filename/key" pair, in submission order
    4. Insert the record (an existing identical record is reused)
    5. Return the first 10 hex characters of the hash

A failed upload aborts the submission before anything is written to the
database. Blobs uploaded before the failure stay in the object store;
they are content-addressed, so a later identical upload reuses them.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Sequence
import asyncio
import hashlib
import logging

from hashdrop.errors import DecodeError, NotFound, ObjectUnavailable, UpstreamFailure, ValidationFailure
from hashdrop.services.store import SubmissionRecord, SubmissionStore
from hashdrop.storage.backend import StorageBackend
from hashdrop.storage.codec import Attachment, AttachmentCodec
from hashdrop.storage.validation import MAX_PREFIX_LENGTH, SHORT_HASH_LENGTH, SubmissionValidator

logger = logging.getLogger(__name__)


@dataclass
class RawUpload:
    """A file part as received from the client, fully read into memory."""

    filename: str
    content: bytes
    metadata: dict[str, list[str]] = field(default_factory=dict)
    size: int = 0


def submission_hash(body: str, pairs: Sequence[str]) -> str:
    """Hash of the body followed by each "filename/key" pair, no separators."""
    return hashlib.sha1((body + "".join(pairs)).encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionService:
    """
    Orchestrates the codec, the object store and the submission store.

    Built once at startup with long-lived handles and shared by all
    requests; it holds no per-request state.
    """

    def __init__(
        self,
        store: SubmissionStore,
        storage: StorageBackend,
        bucket: str,
        max_upload_size: int = 32 * 1024 * 1024,
        upload_concurrency: int = 1,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.storage = storage
        self.bucket = bucket
        self.max_upload_size = max_upload_size
        self.upload_concurrency = max(1, upload_concurrency)
        self.clock = clock

    async def _store_attachment(self, upload: RawUpload) -> str:
        """Encode and upload one attachment, returning its "filename/key" pair."""
        filename = SubmissionValidator.clean_filename(upload.filename)
        attachment = Attachment(
            filename=filename,
            content=upload.content,
            metadata=upload.metadata,
            size=upload.size,
            modified_at=self.clock(),
        )

        blob = AttachmentCodec.encode(attachment)
        key = AttachmentCodec.key(blob)

        try:
            await self.storage.put(self.bucket, key, blob)
        except UpstreamFailure:
            logger.error(f"Object upload failed for {filename!r} ({key})", exc_info=True)
            raise

        logger.debug(f"Uploaded attachment {filename!r} as {key} ({len(blob)} bytes)")
        return f"{filename}/{key}"

    async def _store_attachments(self, uploads: Sequence[RawUpload]) -> List[str]:
        if self.upload_concurrency == 1:
            return [await self._store_attachment(upload) for upload in uploads]

        semaphore = asyncio.Semaphore(self.upload_concurrency)

        async def bounded(upload: RawUpload) -> str:
            async with semaphore:
                return await self._store_attachment(upload)

        # gather() returns results in argument order, so the pair order
        # (and therefore the submission hash) matches the submission order
        tasks = [asyncio.ensure_future(bounded(upload)) for upload in uploads]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def submit(self, body: str, uploads: Sequence[RawUpload]) -> str:
        """
        Store a submission and return its short hash.

        Raises ValidationFailure for an empty submission, PayloadTooLarge when
        the files exceed the upload limit, UpstreamFailure when an upload or
        the insert fails.
        """
        body = body or ""
        if not body.strip() and not uploads:
            raise ValidationFailure()

        SubmissionValidator.validate_upload_size(
            sum(len(upload.content) for upload in uploads), self.max_upload_size
        )

        pairs = await self._store_attachments(uploads)
        full_hash = submission_hash(body, pairs)

        result = await asyncio.to_thread(
            self.store.insert, full_hash, body, pairs, int(self.clock().timestamp())
        )
        if not result.created:
            logger.info(f"Submission {result.hash} already stored, reusing it")

        return result.hash[:SHORT_HASH_LENGTH]

    async def resolve(self, hash_or_prefix: str) -> SubmissionRecord:
        """Look up a submission by full hash or prefix (InvalidInput / NotFound)."""
        return await asyncio.to_thread(self.store.find_by_prefix, hash_or_prefix)

    async def fetch_attachment(self, key: str) -> Attachment:
        """
        Download and decode an attachment by its content key.

        Missing objects, transport failures and corrupted blobs all come back
        as NotFound; the log records which one it was.
        """
        key = key.lower()
        if len(key) != MAX_PREFIX_LENGTH or not SubmissionValidator.is_hex(key):
            raise NotFound(f"attachment key {key!r} is malformed")

        try:
            blob = await self.storage.get(self.bucket, key)
        except ObjectUnavailable as e:
            logger.warning(f"Attachment {key} unavailable: {e}")
            raise NotFound(f"attachment {key} unavailable") from e

        if not blob:
            logger.warning(f"Attachment {key} is empty")
            raise NotFound(f"attachment {key} is empty")

        try:
            return AttachmentCodec.decode(blob)
        except DecodeError as e:
            logger.error(f"Attachment {key} could not be decoded: {e}")
            raise NotFound(f"attachment {key} is corrupted") from e
