"""Row image upload endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.backend.src.core.errors import StorageError, ValidationError
from app.backend.src.schemas.upload import ActionResult, ObjectURLRead
from app.backend.src.services.s3 import (
    DEFAULT_PRESIGN_EXPIRES,
    MinioStorage,
    get_storage,
)
from app.backend.src.services.uploads import UploadTarget, image_url, upload_from_form

LOGGER = structlog.get_logger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.post("", response_model=ActionResult)
async def create_upload(
    request: Request,
    storage: MinioStorage = Depends(get_storage),
) -> ActionResult:
    """Accept a multipart form with ``target``, ``filename`` and ``file`` fields."""

    async with request.form() as form:
        return await upload_from_form(storage, form)


@router.get("/url", response_model=ObjectURLRead)
async def get_upload_url(
    target: UploadTarget,
    filename: str,
    public: bool = False,
    expires: int = Query(default=DEFAULT_PRESIGN_EXPIRES, gt=0),
    storage: MinioStorage = Depends(get_storage),
) -> ObjectURLRead:
    """Return a public or presigned URL for a stored row image."""

    try:
        url = await image_url(
            storage,
            target,
            filename,
            is_public=public,
            expires=expires,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.message,
        ) from exc
    except StorageError as exc:
        LOGGER.error("upload_url_failed", target=target.value, filename=filename, error=exc.message)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Unable to generate image link",
        ) from exc

    return ObjectURLRead(url=url, public=public, expires=None if public else expires)
