"""MinIO/S3 client bootstrap, policy reconciliation and object operations."""

from __future__ import annotations

import asyncio
from functools import lru_cache

import boto3
import structlog
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from app.backend.src.core.config import (
    StorageConfig,
    get_settings,
    load_storage_config,
)
from app.backend.src.core.errors import (
    ConnectivityError,
    PolicyError,
    RetrievalError,
    StorageError,
    UploadError,
)
from app.backend.src.services.metrics import (
    storage_bootstrap_seconds,
    storage_uploads_total,
)
from app.backend.src.services.object_keys import build_key
from app.backend.src.services.policy import (
    PolicyRead,
    PolicyStatus,
    desired_policy,
    policy_equals,
)
from app.backend.src.services.retry import RetryPolicy
from app.backend.src.services.validation import validate_filename, validate_path

LOGGER = structlog.get_logger(__name__)

DEFAULT_PRESIGN_EXPIRES = 60
MAX_PRESIGN_EXPIRES = 7 * 24 * 60 * 60  # 7 days, the S3 SigV4 ceiling

_MISSING_BUCKET_CODES = frozenset({"404", "NoSuchBucket", "NotFound"})
_MISSING_POLICY_CODES = frozenset({"404", "NoSuchBucketPolicy"})
_BUCKET_OWNED_CODES = frozenset({"BucketAlreadyOwnedByYou"})

_STORE_ERRORS = (ClientError, BotoCoreError)


def _error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", ""))
    return ""


def _client(config: StorageConfig) -> BaseClient:
    settings = get_settings()
    return boto3.client(
        "s3",
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        region_name=settings.minio_region,
        use_ssl=config.use_ssl,
        config=Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        ),
    )


@lru_cache()
def get_s3_client() -> BaseClient:
    """Return the process-wide S3 client for the configured MinIO endpoint."""

    return _client(load_storage_config())


class StorageBootstrap:
    """Ensure the bucket exists and carries the desired policy, once per process.

    ``initialize`` memoizes a single task: concurrent and repeated callers all
    await the same execution and observe the same outcome.
    """

    def __init__(
        self,
        client: BaseClient,
        bucket: str,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._retry = retry_policy or RetryPolicy()
        self._task: asyncio.Future[None] | None = None

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def started(self) -> bool:
        return self._task is not None

    async def bucket_exists(self) -> bool:
        try:
            await run_in_threadpool(self._client.head_bucket, Bucket=self._bucket)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_BUCKET_CODES:
                return False
            raise
        return True

    async def ensure_bucket(self) -> None:
        if await self.bucket_exists():
            return
        try:
            await run_in_threadpool(self._client.create_bucket, Bucket=self._bucket)
        except ClientError as exc:
            if _error_code(exc) not in _BUCKET_OWNED_CODES:
                raise
        LOGGER.info("s3_bucket_created", bucket=self._bucket)

    async def read_policy(self) -> PolicyRead:
        try:
            response = await run_in_threadpool(
                self._client.get_bucket_policy, Bucket=self._bucket
            )
        except _STORE_ERRORS as exc:
            if _error_code(exc) in _MISSING_POLICY_CODES:
                return PolicyRead.absent()
            return PolicyRead.unreadable(str(exc))

        document = response.get("Policy")
        if not document:
            return PolicyRead.absent()
        return PolicyRead.present(document)

    async def reconcile_policy(self) -> bool:
        """Write the desired policy when the live one differs. Returns ``True`` on write."""

        desired = desired_policy(self._bucket)
        current = await self.read_policy()

        if current.status is PolicyStatus.PRESENT and policy_equals(
            current.document or "", desired
        ):
            LOGGER.info("s3_bucket_policy_up_to_date", bucket=self._bucket)
            return False

        if current.status is PolicyStatus.UNREADABLE:
            LOGGER.warning(
                "s3_bucket_policy_read_failed",
                bucket=self._bucket,
                error=current.error,
            )

        try:
            await run_in_threadpool(
                self._client.put_bucket_policy,
                Bucket=self._bucket,
                Policy=desired,
            )
        except _STORE_ERRORS as exc:
            LOGGER.error(
                "s3_bucket_policy_write_failed",
                bucket=self._bucket,
                error=str(exc),
            )
            raise PolicyError(
                f"Failed to apply bucket policy to {self._bucket}",
                context={"bucket": self._bucket},
            ) from exc

        LOGGER.info(
            "s3_bucket_policy_applied",
            bucket=self._bucket,
            previous=current.status.value,
        )
        return True

    async def run(self) -> None:
        """Run the full bootstrap procedure without memoization."""

        with storage_bootstrap_seconds.time():
            try:
                await self._retry.run(
                    self.ensure_bucket,
                    retry_on=_STORE_ERRORS,
                    name="ensure_bucket",
                )
            except _STORE_ERRORS as exc:
                raise ConnectivityError(
                    f"Bucket check failed for {self._bucket}",
                    context={
                        "bucket": self._bucket,
                        "attempts": self._retry.max_attempts,
                    },
                ) from exc
            await self.reconcile_policy()

        LOGGER.info("s3_storage_ready", bucket=self._bucket)

    async def initialize(self) -> None:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run_logged())
        await asyncio.shield(self._task)

    async def _run_logged(self) -> None:
        try:
            await self.run()
        except StorageError as exc:
            LOGGER.error(
                "s3_storage_init_failed",
                bucket=self._bucket,
                error=exc.message,
                error_type=type(exc).__name__,
            )
            raise


class MinioStorage:
    """Upload and URL operations against a single bucket."""

    def __init__(
        self,
        client: BaseClient,
        config: StorageConfig,
        *,
        retry_policy: RetryPolicy | None = None,
        public_url: str | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._bootstrap = StorageBootstrap(client, config.bucket, retry_policy)
        self._public_url = (public_url or config.endpoint_url).rstrip("/")

    @property
    def bucket(self) -> str:
        return self._config.bucket

    @property
    def bootstrap(self) -> StorageBootstrap:
        return self._bootstrap

    async def await_ready(self) -> None:
        await self._bootstrap.initialize()

    def public_url(self, key: str) -> str:
        return f"{self._public_url}/{self.bucket}/{key}"

    async def upload_object(
        self,
        filename: str,
        data: bytes,
        path: str | None = None,
        content_type: str = "application/octet-stream",
    ) -> str:
        """Store ``data`` under ``path/filename`` and return the object key."""

        safe_name = validate_filename(filename)
        safe_path = validate_path(path) if path else None
        key = build_key(safe_name, safe_path)

        try:
            await self.await_ready()
            if not await self._bootstrap.bucket_exists():
                raise UploadError(
                    f"Bucket {self.bucket} does not exist",
                    context={"bucket": self.bucket, "key": key},
                )
            await run_in_threadpool(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentLength=len(data),
                ContentType=content_type,
            )
        except (StorageError, *_STORE_ERRORS) as exc:
            storage_uploads_total.labels(status="failed").inc()
            LOGGER.error(
                "s3_upload_failed",
                bucket=self.bucket,
                key=key,
                error=str(exc),
            )
            if isinstance(exc, UploadError):
                raise
            raise UploadError(
                f"Failed to upload {key}",
                context={"bucket": self.bucket, "key": key},
            ) from exc

        storage_uploads_total.labels(status="succeeded").inc()
        LOGGER.info("uploaded_s3", bucket=self.bucket, key=key, size=len(data))
        return key

    async def get_object_url(
        self,
        filename: str,
        path: str | None = None,
        is_public: bool = False,
        expires: int = DEFAULT_PRESIGN_EXPIRES,
    ) -> str:
        """Return a public URL or a presigned GET URL valid for ``expires`` seconds."""

        safe_name = validate_filename(filename)
        safe_path = validate_path(path) if path else None

        if expires <= 0:
            LOGGER.error("presign_expiry_invalid", bucket=self.bucket, expires=expires)
            raise RetrievalError(
                "Expiry must be a positive number of seconds",
                context={"expires": expires},
            )
        if expires > MAX_PRESIGN_EXPIRES:
            LOGGER.warning(
                "presign_expiry_clamped",
                requested=expires,
                maximum=MAX_PRESIGN_EXPIRES,
            )
            expires = MAX_PRESIGN_EXPIRES

        storage_key = build_key(safe_name, safe_path)
        try:
            await self.await_ready()
            if not await self._bootstrap.bucket_exists():
                raise RetrievalError(
                    f"Bucket {self.bucket} does not exist",
                    context={"bucket": self.bucket, "key": storage_key},
                )
            if is_public:
                return self.public_url(
                    build_key(safe_name, safe_path, encode_filename_for_url=True)
                )
            return await run_in_threadpool(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": storage_key},
                ExpiresIn=expires,
            )
        except (StorageError, *_STORE_ERRORS) as exc:
            LOGGER.error(
                "s3_url_failed",
                bucket=self.bucket,
                key=storage_key,
                public=is_public,
                error=str(exc),
            )
            if isinstance(exc, RetrievalError):
                raise
            raise RetrievalError(
                f"Failed to produce URL for {storage_key}",
                context={"bucket": self.bucket, "key": storage_key},
            ) from exc


@lru_cache()
def get_storage() -> MinioStorage:
    """Return the process-wide storage service built from the environment."""

    config = load_storage_config()
    settings = get_settings()
    return MinioStorage(
        get_s3_client(),
        config,
        retry_policy=RetryPolicy(
            max_attempts=settings.minio_init_retries,
            base_delay=settings.minio_init_base_delay,
        ),
        public_url=settings.minio_public_url,
    )


async def await_ready() -> None:
    """Wait until the bucket exists and its policy is reconciled."""

    await get_storage().await_ready()


async def upload_object(
    filename: str,
    data: bytes,
    path: str | None = None,
    content_type: str = "application/octet-stream",
) -> str:
    return await get_storage().upload_object(filename, data, path, content_type)


async def get_object_url(
    filename: str,
    path: str | None = None,
    is_public: bool = False,
    expires: int = DEFAULT_PRESIGN_EXPIRES,
) -> str:
    return await get_storage().get_object_url(filename, path, is_public, expires)


__all__ = [
    "MinioStorage",
    "StorageBootstrap",
    "await_ready",
    "get_object_url",
    "get_s3_client",
    "get_storage",
    "upload_object",
]
