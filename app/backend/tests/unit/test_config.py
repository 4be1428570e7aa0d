"""Unit tests for environment-driven storage configuration."""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[4]))

import pytest

from app.backend.src.core.config import (
    Settings,
    StorageConfig,
    get_required_env,
    load_storage_config,
    parse_bool,
    parse_port,
)
from app.backend.src.core.errors import ConfigError

MINIO_ENV = {
    "MINIO_ENDPOINT": "minio.local",
    "MINIO_PORT": "9000",
    "MINIO_ACCESS_KEY": "minio",
    "MINIO_SECRET_KEY": "minio123",
    "MINIO_USE_SSL": "false",
    "MINIO_BUCKET": "images",
}


@pytest.fixture(autouse=True)
def clear_config_cache() -> None:  # type: ignore[no-untyped-def]
    load_storage_config.cache_clear()
    yield
    load_storage_config.cache_clear()


@pytest.fixture()
def minio_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    for name, value in MINIO_ENV.items():
        monkeypatch.setenv(name, value)
    return dict(MINIO_ENV)


def test_get_required_env_returns_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MINIO_BUCKET", "images")

    assert get_required_env("MINIO_BUCKET") == "images"


@pytest.mark.parametrize("value", [None, ""])
def test_get_required_env_rejects_missing_or_empty(
    monkeypatch: pytest.MonkeyPatch, value: str | None
) -> None:
    if value is None:
        monkeypatch.delenv("MINIO_BUCKET", raising=False)
    else:
        monkeypatch.setenv("MINIO_BUCKET", value)

    with pytest.raises(ConfigError) as excinfo:
        get_required_env("MINIO_BUCKET")

    assert "MINIO_BUCKET" in excinfo.value.message
    assert excinfo.value.context == {"name": "MINIO_BUCKET"}


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("true", True),
        ("1", True),
        ("yes", True),
        ("TRUE", False),
        ("false", False),
        ("on", False),
        ("", False),
        (None, False),
    ],
)
def test_parse_bool_accepts_only_exact_tokens(raw: str | None, expected: bool) -> None:
    assert parse_bool(raw) is expected


@pytest.mark.parametrize(("raw", "expected"), [("9000", 9000), ("443", 443), ("80.0", 80)])
def test_parse_port_accepts_integers(raw: str, expected: int) -> None:
    assert parse_port(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "0", "-1", "nan", "inf", "90.5", "70000", None])
def test_parse_port_rejects_invalid_values(raw: str | None) -> None:
    with pytest.raises(ConfigError):
        parse_port(raw)


def test_load_storage_config_reads_environment(minio_env: dict[str, str]) -> None:
    config = load_storage_config()

    assert config == StorageConfig(
        endpoint="minio.local",
        port=9000,
        access_key="minio",
        secret_key="minio123",
        use_ssl=False,
        bucket="images",
    )
    assert config.endpoint_url == "http://minio.local:9000"


def test_load_storage_config_uses_https_when_ssl_enabled(
    minio_env: dict[str, str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MINIO_USE_SSL", "yes")

    assert load_storage_config().endpoint_url == "https://minio.local:9000"


@pytest.mark.parametrize("name", sorted(MINIO_ENV))
def test_load_storage_config_requires_every_variable(
    minio_env: dict[str, str], monkeypatch: pytest.MonkeyPatch, name: str
) -> None:
    monkeypatch.delenv(name)

    with pytest.raises(ConfigError) as excinfo:
        load_storage_config()

    assert name in excinfo.value.message


def test_load_storage_config_rejects_bad_port(
    minio_env: dict[str, str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("MINIO_PORT", "not-a-port")

    with pytest.raises(ConfigError):
        load_storage_config()


def test_settings_read_optional_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MINIO_INIT_RETRIES", "5")
    monkeypatch.setenv("MINIO_INIT_BASE_DELAY_MS", "250")
    monkeypatch.setenv("MINIO_PUBLIC_URL", "https://cdn.example.com")

    settings = Settings(_env_file=None)

    assert settings.minio_init_retries == 5
    assert settings.minio_init_base_delay == 0.25
    assert settings.minio_public_url == "https://cdn.example.com"


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MINIO_INIT_RETRIES", "MINIO_INIT_BASE_DELAY_MS", "MINIO_REGION"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.minio_init_retries == 3
    assert settings.minio_init_base_delay == 0.5
    assert settings.minio_region == "us-east-1"
