"""Application configuration utilities."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.backend.src.core.errors import ConfigError

LOGGER = structlog.get_logger(__name__)

TRUTHY_TOKENS = frozenset({"true", "1", "yes"})
MAX_PORT = 65535


def get_required_env(name: str) -> str:
    """Return the value of ``name`` from the environment or raise ``ConfigError``."""

    value = os.environ.get(name)
    if not value:
        LOGGER.error("missing_environment_variable", name=name)
        raise ConfigError(
            f"Missing environment variable: {name}",
            context={"name": name},
        )
    return value


def parse_bool(raw: str | None) -> bool:
    """Return ``True`` only for the exact tokens ``true``, ``1`` and ``yes``."""

    return raw in TRUTHY_TOKENS


def parse_port(raw: str | None) -> int:
    """Parse a TCP port, rejecting anything that is not a positive integer."""

    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port: {raw!r}", context={"value": raw}) from None

    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"Invalid port: {raw!r}", context={"value": raw})
    if not value.is_integer() or value > MAX_PORT:
        raise ConfigError(f"Port out of range: {raw!r}", context={"value": raw})
    return int(value)


@dataclass(frozen=True)
class StorageConfig:
    """Connection parameters for the S3-compatible object store."""

    endpoint: str
    port: int
    access_key: str
    secret_key: str
    use_ssl: bool
    bucket: str

    @property
    def endpoint_url(self) -> str:
        scheme = "https" if self.use_ssl else "http"
        return f"{scheme}://{self.endpoint}:{self.port}"


@lru_cache()
def load_storage_config() -> StorageConfig:
    """Read the MinIO connection parameters; every variable is required."""

    return StorageConfig(
        endpoint=get_required_env("MINIO_ENDPOINT"),
        port=parse_port(get_required_env("MINIO_PORT")),
        access_key=get_required_env("MINIO_ACCESS_KEY"),
        secret_key=get_required_env("MINIO_SECRET_KEY"),
        use_ssl=parse_bool(get_required_env("MINIO_USE_SSL")),
        bucket=get_required_env("MINIO_BUCKET"),
    )


class Settings(BaseSettings):
    """Optional settings derived from environment variables."""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")
    minio_region: str = Field(default="us-east-1", alias="MINIO_REGION")
    minio_public_url: str | None = Field(default=None, alias="MINIO_PUBLIC_URL")
    minio_init_retries: int = Field(default=3, ge=1, alias="MINIO_INIT_RETRIES")
    minio_init_base_delay_ms: int = Field(
        default=500, ge=0, alias="MINIO_INIT_BASE_DELAY_MS"
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def minio_init_base_delay(self) -> float:
        """Return the bootstrap backoff base in seconds."""

        return self.minio_init_base_delay_ms / 1000


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = [
    "Settings",
    "StorageConfig",
    "get_required_env",
    "get_settings",
    "load_storage_config",
    "parse_bool",
    "parse_port",
]
