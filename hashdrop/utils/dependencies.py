"""
Dependency injection functions for FastAPI routes.

These functions can be used with Depends() to inject the long-lived
service handles into route handlers. Tests replace them through
app.dependency_overrides.
"""
from functools import lru_cache

from hashdrop.config import get_settings
from hashdrop.database import SessionLocal
from hashdrop.services.store import SubmissionStore
from hashdrop.services.submissions import SubmissionService
from hashdrop.storage.backend import get_storage_backend


@lru_cache()
def get_submission_service() -> SubmissionService:
    """
    Get the process-wide submission service.

    Built on first use from the configured storage backend and the
    database session factory, then shared by every request.

    Example:
        @router.get("/{hash}")
        async def show(hash: str, service: SubmissionService = Depends(get_submission_service)):
            return await service.resolve(hash)
    """
    settings = get_settings()
    return SubmissionService(
        store=SubmissionStore(SessionLocal),
        storage=get_storage_backend(),
        bucket=settings.storage_bucket,
        max_upload_size=settings.max_upload_size,
        upload_concurrency=settings.upload_concurrency,
    )
