"""
Upload interception for FastAPI routes.

Controllers declare `Depends(single_image)` or `Depends(multiple_images)` and
receive already-stored file metadata. A rejected upload raises before the
controller body runs.
"""

from __future__ import annotations

from fastapi import File, Request, UploadFile

from core.config import Settings

from . import service


def _settings(request: Request) -> Settings:
    return request.app.state.settings


async def single_image(
    request: Request,
    image: UploadFile | None = File(default=None),
) -> service.StoredFile:
    settings = _settings(request)
    return await service.store_single(
        image,
        upload_dir=settings.upload_dir,
        max_bytes=settings.max_upload_bytes,
    )


async def multiple_images(
    request: Request,
    images: list[UploadFile] | None = File(default=None),
) -> list[service.StoredFile]:
    settings = _settings(request)
    return await service.store_multiple(
        images,
        upload_dir=settings.upload_dir,
        max_bytes=settings.max_upload_bytes,
        max_files=settings.max_upload_files,
    )
