"""
Shared test fixtures.

The environment is pointed at throwaway SQLite/local storage before any
hashdrop module is imported, since settings and the engine are built at
import time.
"""
import os
import tempfile
from datetime import datetime, timezone

_TMP = tempfile.mkdtemp(prefix="hashdrop-tests-")
os.environ["DATABASE_DSN"] = f"sqlite:///{_TMP}/hashdrop.sqlite3"
os.environ["STORAGE_LOCAL_PATH"] = os.path.join(_TMP, "objects")
os.environ["BASE_URL"] = "http://testserver"

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from hashdrop.database import Base
from hashdrop.models.models import Upload
from hashdrop.services.store import SubmissionStore
from hashdrop.services.submissions import SubmissionService
from hashdrop.storage.backend import LocalStorageBackend

BUCKET = "test-bucket"
FIXED_TIME = datetime(2026, 3, 14, 15, 9, 26, 535897, tzinfo=timezone.utc)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.sqlite3'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def upload_count(session_factory):
    """Callable returning the number of stored submission rows."""
    def count() -> int:
        db = session_factory()
        try:
            return db.execute(select(func.count()).select_from(Upload)).scalar_one()
        finally:
            db.close()
    return count


@pytest.fixture
def store(session_factory):
    return SubmissionStore(session_factory)


@pytest.fixture
def storage(tmp_path):
    return LocalStorageBackend(str(tmp_path / "objects"), buckets=(BUCKET,))


@pytest.fixture
def bucket_dir(tmp_path):
    return tmp_path / "objects" / BUCKET


@pytest.fixture
def service(store, storage):
    return SubmissionService(store, storage, BUCKET, clock=lambda: FIXED_TIME)
