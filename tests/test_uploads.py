import asyncio
import io
import os
import re

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from core import errors
from uploads import service

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
STORED_NAME = re.compile(r"^cat-\d{13}(-\d+)?\.png$")


def _upload_file(filename, content_type=None, data=PNG_BYTES):
    headers = Headers({"content-type": content_type}) if content_type else Headers({})
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=headers)


# --- service helpers ---


def test_validate_upload_accepts_allowed_images():
    assert service.validate_upload(_upload_file("cat.PNG", "image/png")) == ".png"
    assert service.validate_upload(_upload_file("cat.jpeg", "image/jpeg")) == ".jpeg"
    assert service.validate_upload(_upload_file("cat.gif")) == ".gif"


def test_validate_upload_rejects_other_extensions():
    with pytest.raises(errors.FileTypeRejected):
        service.validate_upload(_upload_file("setup.exe", "application/octet-stream"))


def test_validate_upload_rejects_mismatched_content_type():
    with pytest.raises(errors.FileTypeRejected):
        service.validate_upload(_upload_file("cat.png", "text/html"))


def test_sanitize_stem_strips_path_and_unsafe_characters():
    assert service.sanitize_stem("../../evil name!.png") == "evil_name"
    assert service.sanitize_stem("!!!.png") == "file"


def test_stored_filename_format():
    assert service.stored_filename("My Cat.png", ".png", "1700000000000") == "My_Cat-1700000000000.png"
    assert service.stored_filename("cat.png", ".png", "1700000000000", attempt=2) == "cat-1700000000000-2.png"


def test_write_unique_never_overwrites(tmp_path):
    first = service.write_unique(str(tmp_path), "cat.png", ".png", b"one", "1700000000000")
    second = service.write_unique(str(tmp_path), "cat.png", ".png", b"two", "1700000000000")

    assert first == "cat-1700000000000.png"
    assert second == "cat-1700000000000-1.png"
    assert (tmp_path / first).read_bytes() == b"one"
    assert (tmp_path / second).read_bytes() == b"two"


# --- API endpoints ---


def test_single_upload_is_stored_and_served(client, upload_dir):
    resp = client.post("/api/v1/uploads", files={"image": ("cat.png", PNG_BYTES, "image/png")})
    assert resp.status_code == 201, resp.text
    stored = resp.json()["file"]

    assert stored["original_name"] == "cat.png"
    assert STORED_NAME.match(stored["filename"])
    assert stored["size_bytes"] == len(PNG_BYTES)
    assert stored["url"] == f"/uploads/{stored['filename']}"
    assert (upload_dir / stored["filename"]).read_bytes() == PNG_BYTES

    served = client.get(stored["url"])
    assert served.status_code == 200
    assert served.content == PNG_BYTES


def test_disallowed_extension_writes_nothing(client, upload_dir):
    resp = client.post(
        "/api/v1/uploads",
        files={"image": ("setup.exe", b"MZ" + b"\x00" * 32, "application/octet-stream")},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "file_type_rejected"
    assert os.listdir(upload_dir) == []


def test_missing_file_is_rejected(client):
    resp = client.post("/api/v1/uploads", data={"caption": "nothing attached"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "missing_file"


def test_file_larger_than_limit_is_rejected(client, upload_dir):
    ten_mb = b"\x00" * (10 * 1024 * 1024)
    resp = client.post("/api/v1/uploads", files={"image": ("big.png", ten_mb, "image/png")})
    assert resp.status_code == 413
    body = resp.json()
    assert body["error"] == "file_too_large"
    assert "File too large" in body["detail"]
    assert os.listdir(upload_dir) == []


def test_same_name_uploads_get_distinct_names(client, upload_dir):
    files = [
        ("images", ("cat.png", PNG_BYTES, "image/png")),
        ("images", ("cat.png", PNG_BYTES, "image/png")),
    ]
    resp = client.post("/api/v1/uploads/multiple", files=files)
    assert resp.status_code == 201, resp.text
    names = [item["filename"] for item in resp.json()["files"]]

    assert len(set(names)) == 2
    assert all(STORED_NAME.match(name) for name in names)
    assert sorted(os.listdir(upload_dir)) == sorted(names)


def test_multiple_upload_rejects_whole_batch_on_bad_type(client, upload_dir):
    files = [
        ("images", ("cat.png", PNG_BYTES, "image/png")),
        ("images", ("notes.txt", b"hello", "text/plain")),
    ]
    resp = client.post("/api/v1/uploads/multiple", files=files)
    assert resp.status_code == 400
    assert resp.json()["error"] == "file_type_rejected"
    assert os.listdir(upload_dir) == []


def test_too_many_files_is_rejected(client, settings, upload_dir):
    files = [
        ("images", (f"cat{i}.png", PNG_BYTES, "image/png"))
        for i in range(settings.max_upload_files + 1)
    ]
    resp = client.post("/api/v1/uploads/multiple", files=files)
    assert resp.status_code == 400
    assert resp.json()["error"] == "too_many_files"
    assert os.listdir(upload_dir) == []


def test_multiple_upload_accepts_zero_files(client):
    resp = client.post("/api/v1/uploads/multiple", data={"caption": "nothing"})
    assert resp.status_code == 201
    assert resp.json() == {"files": [], "count": 0}


def test_failed_write_removes_files_from_the_same_batch(monkeypatch, tmp_path):
    real_write = service.write_unique
    calls = []

    def flaky_write(directory, original_name, ext, data, token):
        calls.append(original_name)
        if len(calls) == 2:
            raise OSError("disk full")
        return real_write(directory, original_name, ext, data, token)

    monkeypatch.setattr(service, "write_unique", flaky_write)
    files = [_upload_file("a.png", "image/png"), _upload_file("b.png", "image/png")]

    with pytest.raises(OSError):
        asyncio.run(service.store_files(files, upload_dir=str(tmp_path), max_bytes=1024))

    assert calls == ["a.png", "b.png"]
    assert os.listdir(tmp_path) == []
