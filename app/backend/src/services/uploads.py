"""Upload actions for table row images."""

from __future__ import annotations

import enum
from typing import Any

import structlog

from app.backend.src.core.errors import StorageError, ValidationError
from app.backend.src.schemas.upload import ActionResult
from app.backend.src.services.metrics import storage_validation_failures_total
from app.backend.src.services.s3 import DEFAULT_PRESIGN_EXPIRES, MinioStorage
from app.backend.src.services.validation import (
    extract_field,
    validate_filename,
    validate_upload_input,
)

LOGGER = structlog.get_logger(__name__)

JPEG_CONTENT_TYPE = "image/jpeg"
JPEG_SUFFIXES = (".jpg", ".jpeg")


class UploadTarget(str, enum.Enum):
    TABLE = "table"


UPLOAD_DIRS: dict[UploadTarget, str] = {
    UploadTarget.TABLE: "table/",
}


def resolve_target(raw: Any) -> str:
    """Map a logical upload target to its storage directory."""

    try:
        target = UploadTarget(raw)
    except ValueError:
        storage_validation_failures_total.labels(check="target").inc()
        raise ValidationError(
            "Invalid upload target",
            check="target",
            context={"target": raw},
        ) from None
    return UPLOAD_DIRS[target]


def with_jpeg_suffix(filename: str) -> str:
    return filename if filename.endswith(JPEG_SUFFIXES) else f"{filename}.jpg"


async def upload_image(
    storage: MinioStorage,
    target: Any,
    filename: Any,
    file: Any,
) -> ActionResult:
    """Validate and store a row image, reporting the outcome as an ``ActionResult``."""

    try:
        path = resolve_target(target)
        parsed = await validate_upload_input(
            {"path": path, "filename": filename, "file": file}
        )
        key = await storage.upload_object(
            with_jpeg_suffix(parsed.filename),
            parsed.file.data,
            parsed.path,
            JPEG_CONTENT_TYPE,
        )
    except ValidationError as exc:
        LOGGER.warning("upload_rejected", target=target, check=exc.check, error=exc.message)
        return ActionResult(ok=False, error=exc.message)
    except StorageError as exc:
        LOGGER.error("upload_error", target=target, error=exc.message, **exc.context)
        return ActionResult(ok=False, error="Upload error")

    return ActionResult(ok=True, key=key)


async def upload_from_form(storage: MinioStorage, form: Any) -> ActionResult:
    """Run :func:`upload_image` on a form with ``target``, ``filename`` and ``file`` fields."""

    return await upload_image(
        storage,
        extract_field(form, "target"),
        extract_field(form, "filename"),
        extract_field(form, "file"),
    )


async def image_url(
    storage: MinioStorage,
    target: Any,
    filename: str,
    *,
    is_public: bool = False,
    expires: int = DEFAULT_PRESIGN_EXPIRES,
) -> str:
    """Return the URL of a stored row image."""

    path = resolve_target(target)
    return await storage.get_object_url(
        with_jpeg_suffix(validate_filename(filename)),
        path,
        is_public=is_public,
        expires=expires,
    )


__all__ = [
    "UPLOAD_DIRS",
    "UploadTarget",
    "image_url",
    "resolve_target",
    "upload_from_form",
    "upload_image",
]
