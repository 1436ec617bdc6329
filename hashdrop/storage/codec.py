"""
Binary codec for attachments stored in the object store.

An attachment is serialized together with its filename, headers, declared
size and modification time, so two uploads with identical bytes but
different names or timestamps get different content keys.

Format (big-endian):
    [4-byte magic "HDRP"][1-byte format version]
    [u32 filename length][filename UTF-8]
    [u32 metadata length][metadata as canonical JSON, sorted keys]
    [i64 declared size]
    [i64 modification time, microseconds since the Unix epoch, UTC]
    [u64 content length][content]

The encoding is deterministic: the same Attachment always yields the same
bytes, which is what makes the SHA-1 of the blob usable as a storage key.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import hashlib
import json
import struct
import logging

from hashdrop.errors import DecodeError

logger = logging.getLogger(__name__)

MAGIC = b"HDRP"
# Bump when the layout changes; decode() dispatches on it
FORMAT_VERSION = 1

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MICROSECOND = timedelta(microseconds=1)

_U32 = struct.Struct(">I")
_I64 = struct.Struct(">q")
_U64 = struct.Struct(">Q")


@dataclass
class Attachment:
    """One uploaded file plus the metadata captured at upload time."""

    filename: str
    content: bytes
    metadata: dict[str, list[str]] = field(default_factory=dict)
    size: int = 0
    modified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        # Timestamps are always kept as aware UTC values
        if self.modified_at.tzinfo is None:
            self.modified_at = self.modified_at.replace(tzinfo=timezone.utc)
        else:
            self.modified_at = self.modified_at.astimezone(timezone.utc)

    @property
    def content_type(self) -> str:
        """First Content-Type header value, if the client sent one."""
        for name, values in self.metadata.items():
            if name.lower() == "content-type" and values:
                return values[0]
        return "application/octet-stream"


class _Reader:
    """Cursor over an encoded blob that raises DecodeError on truncation."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def take(self, n: int) -> bytes:
        end = self.offset + n
        if end > len(self.data):
            raise DecodeError(
                f"truncated attachment blob: wanted {n} bytes at offset {self.offset}, "
                f"have {len(self.data) - self.offset}"
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def unpack(self, fmt: struct.Struct) -> int:
        return fmt.unpack(self.take(fmt.size))[0]

    def remaining(self) -> int:
        return len(self.data) - self.offset


class AttachmentCodec:
    """Encodes attachments into self-contained blobs and back."""

    @staticmethod
    def _canonical_metadata(metadata: dict[str, list[str]]) -> bytes:
        return json.dumps(
            {name: list(values) for name, values in metadata.items()},
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")

    @staticmethod
    def encode(attachment: Attachment) -> bytes:
        """Serialize an attachment. Same input, same bytes."""
        filename = attachment.filename.encode("utf-8")
        metadata = AttachmentCodec._canonical_metadata(attachment.metadata)
        micros = (attachment.modified_at - _EPOCH) // _ONE_MICROSECOND

        return b"".join([
            MAGIC,
            bytes([FORMAT_VERSION]),
            _U32.pack(len(filename)),
            filename,
            _U32.pack(len(metadata)),
            metadata,
            _I64.pack(attachment.size),
            _I64.pack(micros),
            _U64.pack(len(attachment.content)),
            attachment.content,
        ])

    @staticmethod
    def decode(data: bytes) -> Attachment:
        """
        Deserialize a blob produced by encode().

        Raises DecodeError if the bytes are truncated, corrupted, or not an
        attachment blob at all.
        """
        reader = _Reader(bytes(data))

        if reader.take(len(MAGIC)) != MAGIC:
            raise DecodeError("not an attachment blob: bad magic")

        version = reader.take(1)[0]
        if version != FORMAT_VERSION:
            raise DecodeError(f"unsupported attachment format version {version}")

        try:
            filename = reader.take(reader.unpack(_U32)).decode("utf-8")
            metadata = json.loads(reader.take(reader.unpack(_U32)).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DecodeError(f"corrupted attachment header: {e}") from e

        if not isinstance(metadata, dict) or not all(
            isinstance(values, list) and all(isinstance(v, str) for v in values)
            for values in metadata.values()
        ):
            raise DecodeError("corrupted attachment header: metadata is not a header map")

        size = reader.unpack(_I64)
        micros = reader.unpack(_I64)
        content = reader.take(reader.unpack(_U64))

        if reader.remaining():
            raise DecodeError(f"{reader.remaining()} trailing bytes after attachment content")

        try:
            modified_at = _EPOCH + timedelta(microseconds=micros)
        except OverflowError as e:
            raise DecodeError(f"modification time out of range: {micros}") from e

        return Attachment(
            filename=filename,
            content=content,
            metadata=metadata,
            size=size,
            modified_at=modified_at,
        )

    @staticmethod
    def key(blob: bytes) -> str:
        """Content key of an encoded blob: lowercase hex SHA-1."""
        return hashlib.sha1(blob).hexdigest()
