"""
Centralized settings for the Findspot backend and maintenance scripts.

Provides a lightweight wrapper around environment variables (with `.env`
support for local development) so the rest of the codebase can import a single
`get_settings()` helper when configuration is needed.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
import os

from dotenv import dotenv_values


@dataclass(frozen=True)
class Settings:
    """Immutable view of application configuration."""

    # General
    environment: str
    allowed_hosts: tuple[str, ...]

    # Database
    database_url: str

    # Object storage for original images
    storage_provider: str
    storage_bucket: str
    local_storage_path: Path
    s3_region: str
    s3_endpoint: Optional[str]
    s3_use_ssl: bool
    s3_access_key_id: Optional[str]
    s3_secret_access_key: Optional[str]
    s3_presign_expiry_get: int

    # Auth
    jwt_secret: Optional[str]
    jwt_algorithm: str
    access_token_minutes: int

    # Image pipeline
    max_upload_mb: float
    compress_max_width: int
    compress_max_height: int
    compress_quality: int
    thumbnail_max_width: int
    thumbnail_max_height: int
    thumbnail_quality: int

    # Pagination
    page_size: int
    page_delay_seconds: float

    # Observability
    metrics_namespace: str
    sentry_dsn: Optional[str]


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_lookup(key: str, env: dict[str, str], default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key) or env.get(key) or default


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""

    env_path = Path(__file__).resolve().parents[2] / ".env"
    env_file = dotenv_values(str(env_path)) if env_path.exists() else {}

    local_storage = _env_lookup("LOCAL_STORAGE_PATH", env_file) or str(
        Path(__file__).resolve().parents[1] / "storage"
    )

    return Settings(
        environment=_env_lookup("APP_ENV", env_file, "development"),
        allowed_hosts=tuple(
            h.strip() for h in _env_lookup("ALLOWED_HOSTS", env_file, "*").split(",") if h.strip()
        ),
        database_url=_env_lookup("DATABASE_URL", env_file, "sqlite+aiosqlite:///./findspot.db"),
        storage_provider=_env_lookup("STORAGE_PROVIDER", env_file, "local").lower(),
        storage_bucket=_env_lookup("STORAGE_BUCKET", env_file) or _env_lookup("S3_BUCKET", env_file, "original-images"),
        local_storage_path=Path(local_storage),
        s3_region=_env_lookup("S3_REGION", env_file, "us-east-1"),
        s3_endpoint=_env_lookup("S3_ENDPOINT", env_file) or _env_lookup("S3_ENDPOINT_URL", env_file),
        s3_use_ssl=_as_bool(_env_lookup("S3_USE_SSL", env_file, "true"), True),
        s3_access_key_id=_env_lookup("S3_ACCESS_KEY_ID", env_file) or _env_lookup("S3_ACCESS_KEY", env_file),
        s3_secret_access_key=_env_lookup("S3_SECRET_ACCESS_KEY", env_file) or _env_lookup("S3_SECRET_KEY", env_file),
        s3_presign_expiry_get=int(_env_lookup("S3_PRESIGN_EXPIRY_SECONDS_GET", env_file, "3600")),
        jwt_secret=_env_lookup("JWT_SECRET", env_file),
        jwt_algorithm=_env_lookup("JWT_ALGORITHM", env_file, "HS256"),
        access_token_minutes=int(_env_lookup("JWT_ACCESS_MINUTES", env_file, "60")),
        max_upload_mb=float(_env_lookup("MAX_UPLOAD_MB", env_file, "2")),
        compress_max_width=int(_env_lookup("COMPRESS_MAX_WIDTH", env_file, "800")),
        compress_max_height=int(_env_lookup("COMPRESS_MAX_HEIGHT", env_file, "600")),
        compress_quality=int(_env_lookup("COMPRESS_QUALITY", env_file, "80")),
        thumbnail_max_width=int(_env_lookup("THUMBNAIL_MAX_WIDTH", env_file, "800")),
        thumbnail_max_height=int(_env_lookup("THUMBNAIL_MAX_HEIGHT", env_file, "800")),
        thumbnail_quality=int(_env_lookup("THUMBNAIL_QUALITY", env_file, "85")),
        page_size=int(_env_lookup("PAGE_SIZE", env_file, "50")),
        page_delay_seconds=int(_env_lookup("PAGE_DELAY_MS", env_file, "100")) / 1000.0,
        metrics_namespace=_env_lookup("METRICS_NAMESPACE", env_file, "findspot"),
        sentry_dsn=_env_lookup("SENTRY_DSN", env_file),
    )


__all__ = ["Settings", "get_settings"]
