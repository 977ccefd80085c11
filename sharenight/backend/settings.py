"""Service configuration loaded from SHARENIGHT_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ShareNightSettings(BaseSettings):
    """ShareNight backend settings.

    All fields are read from environment variables with the ``SHARENIGHT_``
    prefix.  For example, ``SHARENIGHT_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHARENIGHT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    """Emit one JSON object per line instead of colored text."""

    log_file: str | None = None
    """Optional path of a rotating log file (20 MB, 5 kept)."""

    # -- Infrastructure --------------------------------------------------------
    database_url: str | None = None
    """PostgreSQL connection string (psycopg).  Required for full operation."""

    redis_url: str | None = None
    """Redis connection string.  When unset, live updates stay in-process."""

    # -- Blob storage ----------------------------------------------------------
    data_root: str = "./data"
    """Root directory for locally stored screenshot objects."""

    data_prefix: str | None = None
    """Optional namespace prefix inserted into all object keys."""

    blob_store: Literal["local", "s3"] = "local"

    public_base_url: str = "http://localhost:8000"
    """Base URL used to build object URLs served by the local store."""

    # S3 (only when blob_store = "s3")
    s3_endpoint: str | None = None
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_access_key: str | None = None
    s3_secret_key: SecretStr | None = None
    s3_path_style: bool = False
    """Use path-style addressing (required by MinIO and some S3-compatible services)."""

    # -- Uploads ---------------------------------------------------------------
    max_upload_bytes: int = 10 * 1024 * 1024
    """Ceiling for the encoded JPEG payload (10 MiB)."""

    jpeg_quality: int = 80
    upload_chunk_size: int = 256 * 1024

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000


@lru_cache(maxsize=1)
def _get_settings_cached() -> ShareNightSettings:
    return ShareNightSettings()


def get_settings() -> ShareNightSettings:
    """Settings read once from the environment (and ``.env``), then reused.

    Tests that change ``SHARENIGHT_*`` variables call
    ``_get_settings_cached.cache_clear()`` afterwards.
    """
    return _get_settings_cached()
