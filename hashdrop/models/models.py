from sqlalchemy import BigInteger, CHAR, Integer, JSON, Text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column
from hashdrop.database import Base
from typing import List as TypingList, Optional

# BIGSERIAL on PostgreSQL; SQLite only autoincrements INTEGER primary keys
_SerialId = BigInteger().with_variant(Integer, "sqlite")
# TEXT[] on PostgreSQL, JSON list elsewhere (SQLite in tests)
_FileList = ARRAY(Text).with_variant(JSON, "sqlite")


class Upload(Base):
    """
    One stored submission: a text body plus ordered attachment references.

    Rows are immutable once inserted. The hash column is the submission's
    identity and its unique constraint is the only duplicate detection:
    two identical submissions racing each other resolve to one row.

    Each entry in files is "filename/attachment-key", in the order the
    files were submitted.
    """
    __tablename__ = "uploads"

    id: Mapped[int] = mapped_column(_SerialId, primary_key=True, autoincrement=True)
    hash: Mapped[str] = mapped_column(CHAR(40), unique=True, nullable=False)  # Lowercase hex SHA-1
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    files: Mapped[TypingList[str]] = mapped_column(_FileList, nullable=False, default=list)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # Unix seconds, UTC
