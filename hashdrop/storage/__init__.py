from hashdrop.storage.backend import StorageBackend, LocalStorageBackend, S3StorageBackend, get_storage_backend
from hashdrop.storage.codec import Attachment, AttachmentCodec
from hashdrop.storage.validation import SubmissionValidator

__all__ = [
    "StorageBackend",
    "LocalStorageBackend",
    "S3StorageBackend",
    "get_storage_backend",
    "Attachment",
    "AttachmentCodec",
    "SubmissionValidator",
]
