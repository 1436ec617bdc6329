from pydantic import BaseModel
from datetime import datetime, timezone
from typing import List

from hashdrop.services.store import SubmissionRecord


class SubmitResponse(BaseModel):
    id: str
    redirect: str
    message: str


class ErrorResponse(BaseModel):
    message: str


class AttachmentPairResponse(BaseModel):
    filename: str
    key: str
    download_url: str


class SubmissionResponse(BaseModel):
    hash: str
    body: str
    attachments: List[AttachmentPairResponse]
    timestamp: int
    created_at: datetime

    @classmethod
    def from_record(cls, record: SubmissionRecord, base_url: str) -> "SubmissionResponse":
        """Build the response for a stored record, with absolute download links."""
        return cls(
            hash=record.hash,
            body=record.body,
            attachments=[
                AttachmentPairResponse(
                    filename=pair.filename,
                    key=pair.key,
                    download_url=f"{base_url}/download?hash={pair.key}",
                )
                for pair in record.attachments
            ],
            timestamp=record.timestamp,
            created_at=datetime.fromtimestamp(record.timestamp, tz=timezone.utc),
        )
