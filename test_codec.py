"""
Tests for the attachment codec and input validation.
Run with: pytest test_codec.py
"""
from datetime import datetime, timedelta, timezone

import pytest

from hashdrop.errors import DecodeError, InvalidInput, PayloadTooLarge
from hashdrop.storage.codec import FORMAT_VERSION, MAGIC, Attachment, AttachmentCodec
from hashdrop.storage.validation import SubmissionValidator

WHEN = datetime(2026, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)


def make_attachment(**overrides) -> Attachment:
    fields = dict(
        filename="report.pdf",
        content=b"%PDF-1.7 fake",
        metadata={"content-type": ["application/pdf"], "content-disposition": ['form-data; name="files"']},
        size=13,
        modified_at=WHEN,
    )
    fields.update(overrides)
    return Attachment(**fields)


# ─── Codec ────────────────────────────────────────────────────────────

def test_round_trip():
    """decode(encode(a)) == a, including unicode names and empty content."""
    for attachment in [
        make_attachment(),
        make_attachment(filename="résumé 📄.txt", content=b""),
        make_attachment(metadata={}, size=0),
        make_attachment(content=bytes(range(256)) * 64, size=16384),
    ]:
        assert AttachmentCodec.decode(AttachmentCodec.encode(attachment)) == attachment


def test_encoding_is_deterministic():
    """Same attachment, same bytes, same key."""
    first = AttachmentCodec.encode(make_attachment())
    second = AttachmentCodec.encode(make_attachment())

    assert first == second
    assert AttachmentCodec.key(first) == AttachmentCodec.key(second)


def test_metadata_order_does_not_change_encoding():
    a = make_attachment(metadata={"a": ["1"], "b": ["2"]})
    b = make_attachment(metadata={"b": ["2"], "a": ["1"]})

    assert AttachmentCodec.encode(a) == AttachmentCodec.encode(b)


def test_all_fields_feed_the_key():
    """Identical bytes under a different name or time get a different key."""
    base = AttachmentCodec.key(AttachmentCodec.encode(make_attachment()))

    renamed = AttachmentCodec.key(AttachmentCodec.encode(make_attachment(filename="other.pdf")))
    later = AttachmentCodec.key(AttachmentCodec.encode(make_attachment(modified_at=WHEN + timedelta(seconds=1))))

    assert len({base, renamed, later}) == 3


def test_key_is_lowercase_sha1_hex():
    key = AttachmentCodec.key(AttachmentCodec.encode(make_attachment()))

    assert len(key) == 40
    assert key == key.lower()
    assert SubmissionValidator.is_hex(key)


def test_naive_and_offset_timestamps_normalize_to_utc():
    naive = make_attachment(modified_at=datetime(2026, 1, 2, 3, 4, 5))
    offset = make_attachment(modified_at=datetime(2026, 1, 2, 5, 4, 5, tzinfo=timezone(timedelta(hours=2))))

    assert naive.modified_at.tzinfo is timezone.utc
    assert AttachmentCodec.encode(naive) == AttachmentCodec.encode(offset)


def test_blob_starts_with_magic_and_version():
    blob = AttachmentCodec.encode(make_attachment())

    assert blob.startswith(MAGIC)
    assert blob[len(MAGIC)] == FORMAT_VERSION


@pytest.mark.parametrize("mangle", [
    lambda blob: blob[:-1],                          # truncated content
    lambda blob: blob[:7],                           # truncated header
    lambda blob: b"",                                # empty
    lambda blob: b"GOB!" + blob[4:],                 # foreign magic
    lambda blob: MAGIC + bytes([99]) + blob[5:],     # unknown version
    lambda blob: blob + b"\x00",                     # trailing bytes
    lambda blob: b"\x0e\xff\x81\x03\x01\x01\nFileObject",  # some other format entirely
])
def test_decode_rejects_malformed_blobs(mangle):
    blob = AttachmentCodec.encode(make_attachment())

    with pytest.raises(DecodeError):
        AttachmentCodec.decode(mangle(blob))


def test_decode_rejects_corrupted_metadata():
    blob = bytearray(AttachmentCodec.encode(make_attachment(filename="a", metadata={"k": ["v"]})))
    # metadata JSON starts after magic, version, filename length and the 1-byte name
    start = len(MAGIC) + 1 + 4 + 1 + 4
    blob[start] = ord("[")

    with pytest.raises(DecodeError):
        AttachmentCodec.decode(bytes(blob))


def test_content_type_comes_from_metadata():
    assert make_attachment().content_type == "application/pdf"
    assert make_attachment(metadata={"Content-Type": ["text/plain"]}).content_type == "text/plain"
    assert make_attachment(metadata={}).content_type == "application/octet-stream"


# ─── Validation ───────────────────────────────────────────────────────

@pytest.mark.parametrize("prefix", ["", "9chars!!!", "012345678", "g0000000000", "0" * 41, "01234 6789"])
def test_invalid_prefixes(prefix):
    with pytest.raises(InvalidInput):
        SubmissionValidator.validate_prefix(prefix)


def test_valid_prefixes_are_lowercased():
    assert SubmissionValidator.validate_prefix("0123456789") == "0123456789"
    assert SubmissionValidator.validate_prefix("ABCDEF0123") == "abcdef0123"
    assert SubmissionValidator.validate_prefix("a" * 40) == "a" * 40


def test_upload_size_limit():
    SubmissionValidator.validate_upload_size(32 * 1024 * 1024, 32 * 1024 * 1024)

    with pytest.raises(PayloadTooLarge):
        SubmissionValidator.validate_upload_size(32 * 1024 * 1024 + 1, 32 * 1024 * 1024)


def test_clean_filename_only_trims():
    assert SubmissionValidator.clean_filename("  ../odd name.txt \n") == "../odd name.txt"
    assert SubmissionValidator.clean_filename(None) == ""
