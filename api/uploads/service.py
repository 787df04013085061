"""
Upload "service layer".

This file contains logic that is independent of FastAPI's routing layer:
- Count and filter incoming file parts against the image allow-list
- Read file bytes with a size limit
- Pick a non-colliding stored name and write the file to the upload directory

Every step raises an `errors.UploadRejected` subclass on failure; the next
step never runs after a rejection. All parts are filtered before any byte is
written.
"""

from __future__ import annotations

import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from core import errors

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif"}

# Public URL prefix the upload directory is mounted at (see `main.py`).
UPLOADS_URL_PREFIX = "/uploads"

READ_CHUNK_SIZE = 1024 * 1024  # 1 MiB

_UNSAFE_STEM_CHARS = re.compile(r"[^A-Za-z0-9_-]+")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    original_name: str
    filename: str
    path: str
    url: str
    content_type: str | None
    size_bytes: int


def _file_ext(filename: str) -> str:
    return Path(filename).suffix.lower()


def _has_file(file: UploadFile | None) -> bool:
    # Browsers submit an empty part with no filename when nothing was picked.
    return file is not None and bool(file.filename)


def validate_upload(file: UploadFile) -> str:
    """
    Return the normalized file extension if this upload is an allowed image.

    The extension is authoritative; the content type is only checked when the
    client sent one, because it is often missing in practice.
    """
    filename = file.filename or ""
    ext = _file_ext(filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise errors.FileTypeRejected(
            f"Unsupported file type '{ext or filename}'. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    if content_type and content_type not in ALLOWED_CONTENT_TYPES:
        raise errors.FileTypeRejected(f"Unsupported content type '{content_type}'. Only images are allowed.")

    return ext


def check_file_count(files: list[UploadFile], max_files: int) -> None:
    if len(files) > max_files:
        raise errors.TooManyFiles(f"Too many files. Max is {max_files} per upload.")


async def read_upload_bytes(file: UploadFile, max_bytes: int) -> bytes:
    """
    Read the upload into memory, enforcing a maximum size.
    """
    buf = bytearray()

    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > max_bytes:
            raise errors.FileTooLarge(f"File too large. Max is {max_bytes} bytes.")

    return bytes(buf)


def sanitize_stem(filename: str) -> str:
    stem = Path(filename).stem
    stem = _UNSAFE_STEM_CHARS.sub("_", stem).strip("_")
    return stem[:100] or "file"


def uniqueness_token() -> str:
    """
    Millisecond timestamp. Two uploads of the same name in the same
    millisecond get the same token; `write_unique` resolves that on disk.
    """
    return str(int(time.time() * 1000))


def stored_filename(original_name: str, ext: str, token: str, attempt: int = 0) -> str:
    suffix = f"-{attempt}" if attempt else ""
    return f"{sanitize_stem(original_name)}-{token}{suffix}{ext}"


def write_unique(directory: str, original_name: str, ext: str, data: bytes, token: str) -> str:
    """
    Write `data` under a name that does not exist yet and return that name.

    Uses exclusive create, so an existing file is never overwritten even when
    two requests race for the same name.
    """
    os.makedirs(directory, exist_ok=True)
    attempt = 0
    while True:
        name = stored_filename(original_name, ext, token, attempt)
        try:
            with open(os.path.join(directory, name), "xb") as fh:
                fh.write(data)
        except FileExistsError:
            attempt += 1
            continue
        return name


def remove_stored(paths: list[str]) -> None:
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue


async def store_files(
    files: list[UploadFile],
    *,
    upload_dir: str,
    max_bytes: int,
) -> list[StoredFile]:
    """
    Run the filter -> read -> name -> write pipeline for already-counted parts.
    """
    extensions = [validate_upload(file) for file in files]

    payloads: list[bytes] = []
    for file in files:
        payloads.append(await read_upload_bytes(file, max_bytes=max_bytes))

    stored: list[StoredFile] = []
    for file, ext, data in zip(files, extensions, payloads):
        original_name = file.filename or ""
        try:
            filename = await run_in_threadpool(
                write_unique, upload_dir, original_name, ext, data, uniqueness_token()
            )
        except OSError:
            # All or nothing: drop what this request already wrote.
            logger.exception("upload_write_failed original_name=%s", original_name)
            await run_in_threadpool(remove_stored, [item.path for item in stored])
            raise
        logger.info("upload_stored filename=%s size_bytes=%s", filename, len(data))
        stored.append(
            StoredFile(
                original_name=original_name,
                filename=filename,
                path=os.path.join(upload_dir, filename),
                url=f"{UPLOADS_URL_PREFIX}/{filename}",
                content_type=file.content_type,
                size_bytes=len(data),
            )
        )
    return stored


async def store_single(file: UploadFile | None, *, upload_dir: str, max_bytes: int) -> StoredFile:
    if not _has_file(file):
        raise errors.MissingFile("No file uploaded. Choose an image to upload.")
    stored = await store_files([file], upload_dir=upload_dir, max_bytes=max_bytes)
    return stored[0]


async def store_multiple(
    files: list[UploadFile] | None,
    *,
    upload_dir: str,
    max_bytes: int,
    max_files: int,
) -> list[StoredFile]:
    present = [file for file in (files or []) if _has_file(file)]
    check_file_count(present, max_files)
    return await store_files(present, upload_dir=upload_dir, max_bytes=max_bytes)
