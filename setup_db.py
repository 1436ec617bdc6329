#!/usr/bin/env python3
"""
Prepare a hashdrop deployment: migrate the uploads table and make sure
the attachment bucket is reachable.

Run from the project root (alembic.ini is resolved relative to it).
"""
from alembic import command
from alembic.config import Config
from botocore.exceptions import BotoCoreError, ClientError
import sys

from hashdrop.config import get_settings
from hashdrop.storage.backend import LocalStorageBackend, S3StorageBackend, get_storage_backend


def run_migrations(config_path: str = "alembic.ini") -> bool:
    """Upgrade the uploads schema to the latest revision."""
    print("Migrating the uploads table...")

    try:
        command.upgrade(Config(config_path), "head")
    except Exception as e:
        print(f"✗ Migration failed: {e}")
        return False

    print("✓ uploads table is at the latest revision")
    return True


def check_bucket(backend=None, bucket: str | None = None) -> bool:
    """
    Confirm the attachment bucket exists.

    The local backend creates its bucket directory on startup. S3 buckets
    are never created here: a missing bucket fails every upload, so it is
    reported instead.
    """
    settings = get_settings()
    bucket = bucket or settings.storage_bucket
    backend = backend or get_storage_backend()

    if isinstance(backend, LocalStorageBackend):
        path = backend.base_path / bucket
        if not path.is_dir():
            print(f"✗ Local bucket missing at {path.resolve()}")
            return False
        print(f"✓ Local bucket ready at {path.resolve()}")
        return True

    if isinstance(backend, S3StorageBackend):
        try:
            backend.client.head_bucket(Bucket=bucket)
        except (BotoCoreError, ClientError) as e:
            print(f"✗ S3 bucket {bucket!r} is not reachable: {e}")
            return False
        print(f"✓ S3 bucket {bucket!r} reachable")
        return True

    print(f"✗ Unknown storage backend: {settings.storage_backend}")
    return False


if __name__ == "__main__":
    if not run_migrations() or not check_bucket():
        print("\n⚠ Setup incomplete")
        sys.exit(1)

    print("\nStart the server:")
    print("  python -m uvicorn hashdrop.main:app --reload")
    print("Then share something:")
    print("  hashdrop submit 'hello world' -f notes.txt")
