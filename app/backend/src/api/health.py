"""Health check endpoints."""

from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.backend.src.core.errors import StorageError
from app.backend.src.services.s3 import MinioStorage, get_storage

router = APIRouter(tags=["health"])


def storage_resolver() -> Callable[[], MinioStorage]:
    """Return the storage factory; resolving it may raise ``ConfigError``."""

    return get_storage


@router.get("/health/live")
def liveness() -> dict[str, str]:
    """Return a liveness indicator."""

    return {"status": "live"}


@router.get("/health/ready")
async def readiness(
    resolve_storage: Callable[[], MinioStorage] = Depends(storage_resolver),
) -> dict[str, str]:
    """Return readiness information, ensuring the bucket is bootstrapped."""

    try:
        storage = resolve_storage()
        await storage.await_ready()
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=exc.message,
        ) from exc
    return {"status": "ready", "bucket": storage.bucket}


@router.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
