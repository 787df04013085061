"""
Upload API schemas.
"""

from __future__ import annotations

from pydantic import BaseModel

from .service import StoredFile


class StoredFileResponse(BaseModel):
    original_name: str
    filename: str
    url: str
    content_type: str | None
    size_bytes: int

    @classmethod
    def from_stored(cls, stored: StoredFile) -> StoredFileResponse:
        return cls(
            original_name=stored.original_name,
            filename=stored.filename,
            url=stored.url,
            content_type=stored.content_type,
            size_bytes=stored.size_bytes,
        )


class SingleUploadResponse(BaseModel):
    file: StoredFileResponse


class MultipleUploadResponse(BaseModel):
    files: list[StoredFileResponse]
    count: int
