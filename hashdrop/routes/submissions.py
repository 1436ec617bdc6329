"""
Submission routes.

- POST /submit         : text body plus zero or more files, returns a short id
- GET  /download?hash= : one decoded attachment, served as a download
- GET  /{hash}         : a stored submission by full hash or prefix

The catch-all /{hash} route must stay last, after every fixed path.
"""
from email.utils import format_datetime
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from starlette.datastructures import UploadFile
from typing import List, Optional
from urllib.parse import quote
import logging
import os

from hashdrop.config import get_settings
from hashdrop.errors import InvalidInput, NotFound
from hashdrop.models.schemas import ErrorResponse, SubmissionResponse, SubmitResponse
from hashdrop.services.submissions import RawUpload, SubmissionService
from hashdrop.storage.validation import SubmissionValidator
from hashdrop.utils.dependencies import get_submission_service

router = APIRouter()
logger = logging.getLogger(__name__)

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def _header_map(upload: UploadFile) -> dict[str, list[str]]:
    """Collect the part headers, keeping repeated headers in order."""
    headers: dict[str, list[str]] = {}
    for name, value in upload.headers.items():
        headers.setdefault(name, []).append(value)
    return headers


def _content_disposition(filename: str) -> str:
    """Attachment disposition with an ASCII fallback and an RFC 5987 UTF-8 name."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def _spooled_size(upload: UploadFile) -> int:
    """Size of a parsed file part, measured on its spool file without reading it."""
    if upload.size is not None:
        return upload.size
    position = upload.file.tell()
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(position)
    return size


async def _read_uploads(parts: List[object], limit: int) -> List[RawUpload]:
    """
    Load the named file parts into memory, in form order.

    The combined size of the spooled parts is checked against limit first,
    so an oversized request (chunked ones included) is never read in.
    """
    # Browsers send an empty, unnamed part when no file was picked
    files = [part for part in parts if isinstance(part, UploadFile) and part.filename]
    SubmissionValidator.validate_upload_size(sum(_spooled_size(f) for f in files), limit)

    uploads = []
    for part in files:
        content = await part.read()
        uploads.append(RawUpload(
            filename=part.filename,
            content=content,
            metadata=_header_map(part),
            size=part.size if part.size is not None else len(content),
        ))
    return uploads


# ─── Submit ───────────────────────────────────────────────────────────

@router.post("/submit", response_model=SubmitResponse, responses=_ERROR_RESPONSES)
async def submit(
    request: Request,
    service: SubmissionService = Depends(get_submission_service),
):
    """
    Store a text body and attachments, returning the short id.

    Expects multipart/form-data with a "body" field and any number of
    "files" parts. A declared Content-Length is checked before the form is
    parsed; without one, the spooled parts are measured before any is read.
    Only the first "body" field counts.
    """
    settings = get_settings()
    limit = service.max_upload_size

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit():
        SubmissionValidator.validate_upload_size(int(content_length), limit)

    async with request.form() as form:
        body = (form.getlist("body") or [""])[0]
        if not isinstance(body, str):
            raise InvalidInput('"body" must be a text field')
        uploads = await _read_uploads(form.getlist("files"), limit)

    short_hash = await service.submit(body, uploads)

    logger.info(f"Submission {short_hash} stored ({len(uploads)} file(s))")

    return SubmitResponse(
        id=short_hash,
        redirect=f"{settings.base_url}/{short_hash}",
        message="Successfully uploaded",
    )


# ─── Download ─────────────────────────────────────────────────────────

@router.get("/download", responses=_ERROR_RESPONSES)
async def download_attachment(
    hash: Optional[str] = None,
    service: SubmissionService = Depends(get_submission_service),
):
    """Download an attachment by the full content key stored with its submission."""
    if not hash:
        raise InvalidInput('"hash" argument required')

    attachment = await service.fetch_attachment(hash)

    return Response(
        content=attachment.content,
        media_type=attachment.content_type,
        headers={
            "Content-Disposition": _content_disposition(attachment.filename),
            "Last-Modified": format_datetime(attachment.modified_at, usegmt=True),
            "X-Content-Type-Options": "nosniff",
        },
    )


# ─── Lookup ───────────────────────────────────────────────────────────

@router.get("/{hash}", response_model=SubmissionResponse, responses=_ERROR_RESPONSES)
async def get_submission(
    hash: str,
    service: SubmissionService = Depends(get_submission_service),
):
    """Fetch a submission by its SHA-1 hash or a prefix of at least 10 characters."""
    # Anything that is not hex is an unknown page rather than a bad hash
    if not SubmissionValidator.is_hex(hash):
        raise NotFound()

    record = await service.resolve(hash.lower())
    return SubmissionResponse.from_record(record, get_settings().base_url)
