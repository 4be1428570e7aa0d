"""Validation gate for untrusted upload identifiers and image payloads.

Every filename, directory path and file payload passes through this module
before it is used to name or fill a storage object. Each entry point accepts
either the raw value or a form-encoded request object (starlette ``FormData``
or any mapping) and extracts its named field.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, BinaryIO, Protocol, runtime_checkable

import structlog
from fastapi.concurrency import run_in_threadpool

from app.backend.src.core.errors import ValidationError
from app.backend.src.services.metrics import storage_validation_failures_total

LOGGER = structlog.get_logger(__name__)

MAX_IMAGE_SIZE = 1 * 1024 * 1024  # 1 MiB
ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg"})
MAX_FILENAME_LENGTH = 100

JPEG_START = b"\xff\xd8"
JPEG_END = b"\xff\xd9"
MIN_SIGNATURE_LENGTH = 4

_WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9_\-.]")
_LEADING_DOTS_RE = re.compile(r"^\.+")


@runtime_checkable
class UploadSource(Protocol):
    """A payload that can report its declared size and MIME type and yield its bytes.

    ``read(size)`` returns at most ``size`` bytes; a negative size reads everything.

    starlette's ``UploadFile`` satisfies this protocol as is.
    """

    size: int | None
    content_type: str | None

    async def read(self, size: int = -1) -> bytes: ...


@dataclass
class BytesFile:
    """In-memory upload source."""

    data: bytes
    content_type: str | None = None
    size: int | None = None

    def __post_init__(self) -> None:
        if self.size is None:
            self.size = len(self.data)

    async def read(self, size: int = -1) -> bytes:
        return self.data if size < 0 else self.data[:size]


@dataclass
class StreamFile:
    """Upload source backed by a blocking binary stream."""

    stream: BinaryIO
    content_type: str | None = None
    size: int | None = None

    async def read(self, size: int = -1) -> bytes:
        return await run_in_threadpool(self.stream.read, size)


@dataclass(frozen=True)
class ValidatedFile:
    data: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ValidatedUpload:
    filename: str
    path: str | None
    file: ValidatedFile


def _fail(message: str, check: str, **context: Any) -> ValidationError:
    storage_validation_failures_total.labels(check=check).inc()
    LOGGER.info("validation_failed", check=check, reason=message, **context)
    return ValidationError(message, check=check, context=context)


def extract_field(source: Any, key: str) -> Any:
    """Return ``source[key]`` for form-encoded input, else ``source`` itself."""

    if isinstance(source, Mapping):
        return source.get(key)
    return source


def sanitize_filename(raw: Any) -> str:
    """Return a lower-case, filesystem- and key-safe filename (may be empty)."""

    if not isinstance(raw, str):
        return ""

    value = _WHITESPACE_RE.sub("_", raw.strip())
    value = _UNSAFE_CHARS_RE.sub("_", value)
    value = _LEADING_DOTS_RE.sub("", value)
    return value[:MAX_FILENAME_LENGTH].lower()


def is_jpeg(data: bytes) -> bool:
    """Check the JPEG start-of-image and end-of-image markers."""

    if len(data) < MIN_SIGNATURE_LENGTH:
        return False
    return data.startswith(JPEG_START) and data.endswith(JPEG_END)


def validate_filename(source: Any) -> str:
    """Sanitize a filename; an empty result is rejected."""

    sanitized = sanitize_filename(extract_field(source, "filename"))
    if not sanitized:
        raise _fail("File name became incorrect", "filename")
    return sanitized


def validate_path(source: Any) -> str:
    """Validate a relative directory path and normalize it to end with ``/``."""

    value = extract_field(source, "path")
    if not isinstance(value, str) or not value:
        raise _fail("Path must be a non-empty string", "path")
    if value.startswith("/"):
        raise _fail("Must not start with '/'", "path", path=value)
    if "\\" in value:
        raise _fail("Backslashes not allowed", "path", path=value)
    if ".." in value:
        raise _fail("Parent traversal not allowed", "path", path=value)
    return value if value.endswith("/") else f"{value}/"


async def validate_file(source: Any, key: str = "file") -> ValidatedFile:
    """Check declared size and type, then sniff the payload's magic bytes."""

    value = extract_field(source, key)
    if not isinstance(value, UploadSource):
        raise _fail("File is not loaded", "file_missing")

    if value.size is not None and value.size > MAX_IMAGE_SIZE:
        raise _fail("File is too large", "file_size", size=value.size)

    content_type = value.content_type
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise _fail("File type is not allowed", "file_type", content_type=content_type)

    try:
        # One byte past the limit is enough to detect an oversized payload.
        data = await value.read(MAX_IMAGE_SIZE + 1)
    except (OSError, ValueError, RuntimeError) as exc:
        raise _fail("Unable to read file content", "file_unreadable", error=str(exc)) from exc
    if not isinstance(data, (bytes, bytearray)):
        raise _fail("Unable to read file content", "file_unreadable")

    if len(data) > MAX_IMAGE_SIZE:
        raise _fail("File is too large", "file_size", size=len(data))
    if not is_jpeg(data):
        raise _fail("Wrong file format", "file_signature", size=len(data))

    return ValidatedFile(data=bytes(data), content_type=content_type)


async def validate_upload_input(source: Any) -> ValidatedUpload:
    """Run filename, optional path and file validation together.

    An invalid path is treated as no path; filename and file are mandatory.
    """

    filename = validate_filename(source)
    path: str | None = None
    if extract_field(source, "path") is not None:
        try:
            path = validate_path(source)
        except ValidationError:
            path = None
    file = await validate_file(source)
    return ValidatedUpload(filename=filename, path=path, file=file)


__all__ = [
    "ALLOWED_IMAGE_TYPES",
    "BytesFile",
    "MAX_IMAGE_SIZE",
    "StreamFile",
    "UploadSource",
    "ValidatedFile",
    "ValidatedUpload",
    "extract_field",
    "is_jpeg",
    "sanitize_filename",
    "validate_file",
    "validate_filename",
    "validate_path",
    "validate_upload_input",
]
