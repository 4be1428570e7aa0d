"""Shared fixtures: an in-memory S3 double and storage wiring."""

from __future__ import annotations

import sys
import threading
from collections import Counter
from pathlib import Path
from typing import Any

sys.path.append(str(Path(__file__).resolve().parents[4]))

import pytest
from botocore.exceptions import ClientError

from app.backend.src.core.config import StorageConfig
from app.backend.src.services.retry import RetryPolicy
from app.backend.src.services.s3 import MinioStorage

BUCKET = "images-bucket"


def client_error(code: str, operation: str, message: str = "error") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeS3Client:
    """Minimal boto3 S3 client double that records every call."""

    def __init__(self) -> None:
        self.buckets: set[str] = set()
        self.policies: dict[str, str] = {}
        self.objects: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: Counter[str] = Counter()
        self.head_bucket_errors: list[Exception] = []
        self.head_bucket_error: Exception | None = None
        self.get_policy_error: Exception | None = None
        self.put_policy_error: Exception | None = None
        self.put_object_error: Exception | None = None
        self._lock = threading.Lock()

    def _record(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1

    def head_bucket(self, Bucket: str) -> dict[str, Any]:
        self._record("head_bucket")
        if self.head_bucket_errors:
            raise self.head_bucket_errors.pop(0)
        if self.head_bucket_error is not None:
            raise self.head_bucket_error
        if Bucket not in self.buckets:
            raise client_error("404", "HeadBucket", "Not Found")
        return {}

    def create_bucket(self, Bucket: str) -> dict[str, Any]:
        self._record("create_bucket")
        self.buckets.add(Bucket)
        return {"Location": f"/{Bucket}"}

    def get_bucket_policy(self, Bucket: str) -> dict[str, Any]:
        self._record("get_bucket_policy")
        if self.get_policy_error is not None:
            raise self.get_policy_error
        if Bucket not in self.policies:
            raise client_error("NoSuchBucketPolicy", "GetBucketPolicy")
        return {"Policy": self.policies[Bucket]}

    def put_bucket_policy(self, Bucket: str, Policy: str) -> dict[str, Any]:
        self._record("put_bucket_policy")
        if self.put_policy_error is not None:
            raise self.put_policy_error
        self.policies[Bucket] = Policy
        return {}

    def put_object(self, Bucket: str, Key: str, Body: bytes, **kwargs: Any) -> dict[str, Any]:
        self._record("put_object")
        if self.put_object_error is not None:
            raise self.put_object_error
        self.objects[(Bucket, Key)] = {"Body": Body, **kwargs}
        return {"ETag": '"fake"'}

    def generate_presigned_url(
        self,
        ClientMethod: str,
        Params: dict[str, str],
        ExpiresIn: int,
    ) -> str:
        self._record("generate_presigned_url")
        return (
            f"http://minio.test:9000/{Params['Bucket']}/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=fake"
        )


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture()
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture()
def storage_config() -> StorageConfig:
    return StorageConfig(
        endpoint="minio.test",
        port=9000,
        access_key="minio",
        secret_key="minio123",
        use_ssl=False,
        bucket=BUCKET,
    )


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def storage(
    fake_s3: FakeS3Client,
    storage_config: StorageConfig,
    recording_sleep: RecordingSleep,
) -> MinioStorage:
    return MinioStorage(
        fake_s3,  # type: ignore[arg-type]
        storage_config,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5, sleep=recording_sleep),
    )


def jpeg_bytes(size: int = 10 * 1024) -> bytes:
    """Return a buffer of ``size`` bytes with JPEG start and end markers."""

    return b"\xff\xd8" + b"\x00" * (size - 4) + b"\xff\xd9"


@pytest.fixture()
def make_jpeg():
    return jpeg_bytes


@pytest.fixture()
def make_client_error():
    return client_error
