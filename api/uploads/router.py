"""
FastAPI router for image upload endpoints (mounted under /api/v1).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from . import dependencies, schemas, service

router = APIRouter()


@router.post("/uploads", status_code=status.HTTP_201_CREATED)
async def upload_image(
    stored: service.StoredFile = Depends(dependencies.single_image),
) -> schemas.SingleUploadResponse:
    """
    Upload one image (form field `image`).
    """
    return schemas.SingleUploadResponse(file=schemas.StoredFileResponse.from_stored(stored))


@router.post("/uploads/multiple", status_code=status.HTTP_201_CREATED)
async def upload_images(
    stored: list[service.StoredFile] = Depends(dependencies.multiple_images),
) -> schemas.MultipleUploadResponse:
    """
    Upload zero or more images (repeated form field `images`), up to MAX_UPLOAD_FILES.
    """
    files = [schemas.StoredFileResponse.from_stored(item) for item in stored]
    return schemas.MultipleUploadResponse(files=files, count=len(files))
