"""Error taxonomy for the object storage integration."""

from __future__ import annotations

from typing import Any


class StorageError(Exception):
    """Base class for storage-layer failures carrying log context."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigError(StorageError):
    """Missing or invalid environment value. Fatal at startup."""


class ConnectivityError(StorageError):
    """The bucket existence check failed after exhausting retries."""


class PolicyError(StorageError):
    """Writing the bucket policy failed. Never retried."""


class ValidationError(StorageError):
    """A filename, path or file payload failed a validation rule."""

    def __init__(
        self,
        message: str,
        *,
        check: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.check = check


class UploadError(StorageError):
    """Storing an object failed after validation passed."""


class RetrievalError(StorageError):
    """Producing an object URL failed."""


__all__ = [
    "ConfigError",
    "ConnectivityError",
    "PolicyError",
    "RetrievalError",
    "StorageError",
    "UploadError",
    "ValidationError",
]
