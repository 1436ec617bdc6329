"""
HTTP-level tests for the submission routes.
Run with: pytest test_api.py
"""
import asyncio
import io

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import Headers, UploadFile

from hashdrop.errors import PayloadTooLarge, UpstreamFailure
from hashdrop.main import app
from hashdrop.routes.submissions import _read_uploads
from hashdrop.utils.dependencies import get_submission_service


@pytest.fixture
def client(service):
    app.dependency_overrides[get_submission_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def file_reads(monkeypatch):
    """Records the size of every UploadFile.read() the routes perform."""
    reads = []
    original = UploadFile.read

    async def recording_read(self, size=-1):
        data = await original(self, size)
        reads.append(len(data))
        return data

    monkeypatch.setattr(UploadFile, "read", recording_read)
    return reads


def submit(client, body="hello world", files=None):
    return client.post("/submit", data={"body": body}, files=files)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_submit_show_download(client):
    response = submit(client, files=[("files", ("a.txt", b"abc", "text/plain"))])

    assert response.status_code == 200
    data = response.json()
    assert len(data["id"]) == 10
    assert data["redirect"] == f"http://testserver/{data['id']}"
    assert data["message"] == "Successfully uploaded"

    shown = client.get(f"/{data['id']}")
    assert shown.status_code == 200
    record = shown.json()
    assert record["hash"].startswith(data["id"])
    assert record["body"] == "hello world"
    assert [a["filename"] for a in record["attachments"]] == ["a.txt"]

    key = record["attachments"][0]["key"]
    assert record["attachments"][0]["download_url"] == f"http://testserver/download?hash={key}"

    download = client.get("/download", params={"hash": key})
    assert download.status_code == 200
    assert download.content == b"abc"
    assert download.headers["content-type"].startswith("text/plain")
    assert 'filename="a.txt"' in download.headers["content-disposition"]
    assert download.headers["content-disposition"].startswith("attachment;")
    assert "last-modified" in download.headers


def test_multiple_files_keep_form_order(client):
    response = submit(client, body="", files=[
        ("files", ("z.txt", b"1", "text/plain")),
        ("files", ("a.txt", b"2", "text/plain")),
    ])

    record = client.get(f"/{response.json()['id']}").json()

    assert [a["filename"] for a in record["attachments"]] == ["z.txt", "a.txt"]


def test_unicode_filename_download(client):
    response = submit(client, files=[("files", ("résumé.txt", b"cv", "text/plain"))])
    key = client.get(f"/{response.json()['id']}").json()["attachments"][0]["key"]

    download = client.get("/download", params={"hash": key})

    assert download.status_code == 200
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9.txt" in download.headers["content-disposition"]


def test_resubmission_returns_same_id(client):
    first = submit(client, body="twice").json()["id"]
    second = submit(client, body="twice").json()["id"]

    assert first == second


def test_empty_submission_is_bad_request(client):
    response = submit(client, body="   ")

    assert response.status_code == 400
    assert "message" in response.json()


def test_oversized_request_is_rejected(client, service, file_reads, upload_count):
    service.max_upload_size = 16
    response = submit(client, files=[("files", ("big.bin", b"x" * 64, "application/octet-stream"))])

    assert response.status_code == 413
    assert "message" in response.json()
    assert file_reads == []
    assert upload_count() == 0


def multipart_chunks(boundary, filename, content, chunk_size=64 * 1024):
    """A multipart body yielded piecewise, so the client sends it chunked."""
    yield (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="body"\r\n\r\n'
        "chunked\r\n"
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="files"; filename="{filename}"\r\n'
        "Content-Type: application/octet-stream\r\n\r\n"
    ).encode()
    for start in range(0, len(content), chunk_size):
        yield content[start:start + chunk_size]
    yield f"\r\n--{boundary}--\r\n".encode()


def test_chunked_oversized_request_is_rejected_before_reading(client, service, file_reads, upload_count):
    """Without a Content-Length the spooled parts are measured, not read."""
    service.max_upload_size = 16
    boundary = "hashdrop-test-boundary"

    response = client.post(
        "/submit",
        content=multipart_chunks(boundary, "big.bin", b"x" * (1024 * 1024)),
        headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
    )

    assert response.status_code == 413
    assert "message" in response.json()
    assert file_reads == []
    assert upload_count() == 0


def test_chunked_request_within_limit_is_stored(client):
    boundary = "hashdrop-test-boundary"

    response = client.post(
        "/submit",
        content=multipart_chunks(boundary, "small.bin", b"y" * 100),
        headers={"Content-Type": f"multipart/form-data; boundary={boundary}"},
    )

    assert response.status_code == 200
    record = client.get(f"/{response.json()['id']}").json()
    assert record["body"] == "chunked"
    assert [a["filename"] for a in record["attachments"]] == ["small.bin"]


def test_first_body_field_wins(client):
    response = client.post("/submit", data={"body": ["first", "second"]})

    assert response.status_code == 200
    assert client.get(f"/{response.json()['id']}").json()["body"] == "first"


def test_short_hash_is_bad_request(client):
    response = client.get("/abcdef012")

    assert response.status_code == 400
    assert "message" in response.json()


def test_non_hex_path_is_not_found(client):
    assert client.get("/g0000000000").status_code == 404
    assert client.get("/about-us").status_code == 404


def test_unknown_hash_is_not_found(client):
    response = client.get("/0123456789")

    assert response.status_code == 404
    assert response.json() == {"message": "Not found"}


def test_uppercase_hash_resolves(client):
    short = submit(client, body="case").json()["id"]

    assert client.get(f"/{short.upper()}").status_code == 200


def test_download_requires_hash(client):
    response = client.get("/download")

    assert response.status_code == 400
    assert response.json() == {"message": '"hash" argument required'}


def test_download_unknown_key_is_not_found(client):
    assert client.get("/download", params={"hash": "0" * 40}).status_code == 404


def test_upstream_failure_hides_detail(client, service):
    class BrokenStorage:
        async def put(self, bucket, key, data):
            raise UpstreamFailure(f"connection reset talking to s3 for {key}")

        async def get(self, bucket, key):
            raise AssertionError("not called")

    service.storage = BrokenStorage()
    response = submit(client, files=[("files", ("a.txt", b"abc", "text/plain"))])

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}


def test_unnamed_file_parts_are_skipped():
    """Browsers send an empty, unnamed part when no file is picked."""
    parts = [
        UploadFile(io.BytesIO(b""), filename=""),
        "not a file",
        UploadFile(io.BytesIO(b"abc"), filename="a.txt", headers=Headers({"content-type": "text/plain"})),
    ]

    uploads = asyncio.run(_read_uploads(parts, limit=1024))

    assert len(uploads) == 1
    assert uploads[0].filename == "a.txt"
    assert uploads[0].content == b"abc"
    assert uploads[0].metadata == {"content-type": ["text/plain"]}
    assert uploads[0].size == 3


def test_oversized_parts_are_not_read():
    big = UploadFile(io.BytesIO(b"x" * 64), filename="big.bin")
    parts = [UploadFile(io.BytesIO(b"abc"), filename="a.txt"), big]

    with pytest.raises(PayloadTooLarge):
        asyncio.run(_read_uploads(parts, limit=16))

    assert big.file.tell() == 0
