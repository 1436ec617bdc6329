from hashdrop.services.store import AttachmentPair, InsertResult, SubmissionRecord, SubmissionStore
from hashdrop.services.submissions import RawUpload, SubmissionService, submission_hash

__all__ = [
    "AttachmentPair",
    "InsertResult",
    "SubmissionRecord",
    "SubmissionStore",
    "RawUpload",
    "SubmissionService",
    "submission_hash",
]
