"""
Error taxonomy for the submission protocol.

Every error carries an HTTP status and a client-safe message. Internal
detail (driver errors, object keys that failed) goes into the exception
chain and the server log, never into the response body.
"""
from fastapi import status


class HashdropError(Exception):
    """Base class for all errors the service maps to an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(HashdropError):
    """Malformed hash or prefix (wrong length or non-hex characters)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "hash is not valid hex or has a length less than 10 or greater than 40"


class ValidationFailure(HashdropError):
    """Submission rejected before any network I/O (e.g. nothing to store)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "a submission needs a body or at least one file"


class NotFound(HashdropError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(HashdropError):
    """Integrity violation on insert that is not a content-identical duplicate.

    Content-identical duplicates are absorbed by the submission store.
    """

    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicting submission"


class PayloadTooLarge(HashdropError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "upload exceeds the maximum allowed size"


class UpstreamFailure(HashdropError):
    """Object store or database unavailable or erroring."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


class BucketNotFound(UpstreamFailure):
    """The configured object store bucket does not exist."""


class ObjectUnavailable(HashdropError):
    """An object could not be fetched: missing, or a transient transport error."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class DecodeError(HashdropError):
    """Bytes are not a valid encoded attachment (truncated, corrupted, or foreign)."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"
