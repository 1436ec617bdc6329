"""
Submission store: persists and looks up submission records.

Duplicate detection lives in the database. An insert that trips the
unique constraint on hash is treated as "already stored" and the existing
hash is handed back as if the insert had succeeded. Any other integrity
violation, one that leaves no row with that hash, is a Conflict.
"""
from dataclasses import dataclass, field
from typing import Callable, List
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hashdrop.errors import Conflict, NotFound, UpstreamFailure
from hashdrop.models.models import Upload
from hashdrop.storage.validation import SubmissionValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttachmentPair:
    filename: str
    key: str

    def __str__(self) -> str:
        return f"{self.filename}/{self.key}"

    @classmethod
    def parse(cls, pair: str) -> "AttachmentPair":
        """Split a stored "filename/key" entry. Keys never contain '/', filenames may."""
        filename, _, key = pair.rpartition("/")
        return cls(filename=filename, key=key)


@dataclass(frozen=True)
class SubmissionRecord:
    id: int
    hash: str
    body: str
    timestamp: int
    attachments: List[AttachmentPair] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Upload) -> "SubmissionRecord":
        return cls(
            id=row.id,
            hash=row.hash.strip(),
            body=row.body or "",
            timestamp=row.timestamp,
            attachments=[AttachmentPair.parse(pair) for pair in row.files or []],
        )


@dataclass(frozen=True)
class InsertResult:
    hash: str
    created: bool


class SubmissionStore:
    """Relational store for submission records, one short-lived session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def insert(self, hash: str, body: str, pairs: List[str], timestamp: int) -> InsertResult:
        """
        Insert a submission row.

        A unique violation on hash means an identical submission already
        exists: that is reported as success with created=False.
        """
        db = self.session_factory()
        try:
            db.add(Upload(hash=hash, body=body, files=list(pairs), timestamp=timestamp))
            db.commit()
            logger.info(f"Stored submission {hash} ({len(pairs)} file(s))")
            return InsertResult(hash=hash, created=True)
        except IntegrityError as e:
            db.rollback()
            if not self._exists(db, hash):
                raise Conflict(f"submission {hash} violates a constraint: {e.orig}") from e
            logger.info(f"Submission {hash} already exists")
            return InsertResult(hash=hash, created=False)
        except SQLAlchemyError as e:
            db.rollback()
            raise UpstreamFailure(f"failed to insert submission {hash}: {e}") from e
        finally:
            db.close()

    @staticmethod
    def _exists(db: Session, hash: str) -> bool:
        return db.execute(
            select(Upload.id).where(Upload.hash == hash).limit(1)
        ).first() is not None

    def find_by_prefix(self, prefix: str) -> SubmissionRecord:
        """
        Return the first record whose hash starts with prefix.

        Raises InvalidInput for a malformed prefix and NotFound when nothing
        matches. If several hashes share the prefix the lowest id wins.
        """
        prefix = SubmissionValidator.validate_prefix(prefix)

        db = self.session_factory()
        try:
            row = db.execute(
                select(Upload)
                .where(Upload.hash.startswith(prefix))
                .order_by(Upload.id)
                .limit(1)
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise UpstreamFailure(f"failed to fetch submission {prefix}: {e}") from e
        finally:
            db.close()

        if row is None:
            raise NotFound(f"no submission matches {prefix}")

        return SubmissionRecord.from_row(row)
