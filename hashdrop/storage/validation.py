"""
Input validation for submissions and lookups.

Validates:
1. Hash prefixes: hex only, 10 to 40 characters
2. Upload sizes: total bytes per request
3. Filenames: trimmed of surrounding whitespace, otherwise kept verbatim
"""
import string
import logging

from hashdrop.errors import InvalidInput, PayloadTooLarge

logger = logging.getLogger(__name__)

MIN_PREFIX_LENGTH = 10
# Full SHA-1 hex digest
MAX_PREFIX_LENGTH = 40
SHORT_HASH_LENGTH = 10

_HEX_DIGITS = frozenset(string.hexdigits)


class SubmissionValidator:
    """Validates hashes, filenames and upload sizes."""

    @staticmethod
    def is_hex(value: str) -> bool:
        """Check that every character is a hex digit (either case)."""
        return all(c in _HEX_DIGITS for c in value)

    @staticmethod
    def validate_prefix(prefix: str) -> str:
        """
        Validate a hash or hash prefix and return it in lowercase.

        Hashes are stored in lowercase, so the normalized prefix can be used
        directly for a starts-with match.
        """
        if not MIN_PREFIX_LENGTH <= len(prefix) <= MAX_PREFIX_LENGTH or not SubmissionValidator.is_hex(prefix):
            raise InvalidInput()
        return prefix.lower()

    @staticmethod
    def validate_upload_size(size: int, limit: int) -> None:
        """Reject a request whose total upload size exceeds the limit."""
        if size > limit:
            limit_mb = limit / (1024 * 1024)
            size_mb = size / (1024 * 1024)
            logger.info(f"Rejected upload of {size} bytes (limit {limit})")
            raise PayloadTooLarge(f"upload size {size_mb:.1f}MB exceeds limit of {limit_mb:.0f}MB")

    @staticmethod
    def clean_filename(filename: str | None) -> str:
        """Trim surrounding whitespace. Names are untrusted and stored as given."""
        return (filename or "").strip()
