"""
Storage backends for original images.

`S3Storage` (see `storage_s3.py`) is used in deployments; `LocalStorage` keeps
the same surface on the filesystem for development and tests. Callers obtain
the configured backend through `get_storage()`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union
import logging

from .config import get_settings
from .storage_s3 import S3Storage, StorageError

logger = logging.getLogger("findspot.storage")


class LocalStorage:
    """Filesystem bucket rooted at ``<root>/<bucket>``."""

    def __init__(self, root: Path, bucket: str) -> None:
        self._bucket = bucket
        self._root = Path(root) / bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root.resolve() not in path.parents:
            raise StorageError(f"Invalid storage key {key!r}")
        return path

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        path = self._path_for(key)
        if path.exists() and not upsert:
            raise StorageError(f"Object {key} already exists")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"put_object failed for {key}: {exc}") from exc
        logger.info("Stored original locally: %s", path)
        return key

    def get_object_bytes(self, key: str) -> bytes:
        try:
            return self._path_for(key).read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to download {key}: {exc}") from exc

    def delete_objects(self, keys: Iterable[str]) -> None:
        for key in keys:
            path = self._path_for(key)
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"Failed to delete {key}: {exc}") from exc

    def generate_presigned_get(self, key: str) -> str:
        return f"/storage/{self._bucket}/{key}"

    def ensure_bucket(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)


PhotoStorage = Union[S3Storage, LocalStorage]

_storage: Optional[PhotoStorage] = None


def get_storage() -> PhotoStorage:
    """Return the process-wide storage backend, creating it on first use."""
    global _storage
    if _storage is None:
        settings = get_settings()
        if settings.storage_provider == "s3":
            _storage = S3Storage()
        else:
            _storage = LocalStorage(settings.local_storage_path, settings.storage_bucket)
        logger.info(
            "Storage initialized (provider=%s, bucket=%s)",
            settings.storage_provider,
            _storage.bucket,
        )
    return _storage


def set_storage(storage: Optional[PhotoStorage]) -> None:
    """Swap the backend (tests, scripts pointing at another bucket)."""
    global _storage
    _storage = storage


def build_original_path(
    user_id: Optional[str], filename: Optional[str], when: Optional[datetime] = None
) -> str:
    """Key for an original: ``<user>/<iso-timestamp>_<filename>``."""
    when = when or datetime.now(timezone.utc)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    stamp = when.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")
    safe_name = Path(filename or "photo.jpg").name or "photo.jpg"
    return f"{user_id or 'unknown'}/{stamp}_{safe_name}"


__all__ = [
    "LocalStorage",
    "PhotoStorage",
    "StorageError",
    "build_original_path",
    "get_storage",
    "set_storage",
]
