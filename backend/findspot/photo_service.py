"""
Photo operations used by the API and the maintenance scripts.

Each operation catches failures at its own call site and reports them as an
`OperationResult` (success flag plus error payload) instead of raising, so the
caller can turn any outcome into a short user-facing notice.

Partial failures are handled in two places only:

* a row insert failing after the original was uploaded triggers a best-effort
  delete of that upload; a failing cleanup is logged and otherwise ignored;
* a row delete succeeding while the original cannot be removed from storage is
  still reported as success.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete as sa_delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from .config import get_settings
from .imaging import (
    ImageProcessingError,
    ThumbnailConfig,
    compress_image,
    create_thumbnail,
    decode_data_url,
    encode_data_url,
    validate_image_size,
)
from .models import METADATA_COLUMNS, Photo
from .schemas import PhotoCreate
from .storage import PhotoStorage, StorageError, build_original_path
from .upload_metrics import (
    AUTH_FAILURES,
    ORPHAN_CLEANUP_FAILURES,
    STORAGE_DELETE_FAILURES,
    UPLOAD_ATTEMPTS,
    UPLOAD_FAILURES,
    UPLOAD_SUCCESSES,
)

logger = logging.getLogger("findspot.photo_service")

ADMIN_REQUIRED_MESSAGE = "Admin permission required for this operation"

# Failure reasons, mapped to HTTP statuses by the routes
FORBIDDEN = "forbidden"
INVALID = "invalid"
NOT_FOUND = "not_found"
FAILED = "failed"


class PermissionDeniedError(PermissionError):
    """Raised when a write is attempted without the admin claim."""


@dataclass
class OperationResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, reason: str = FAILED) -> "OperationResult":
        return cls(success=False, error=error, reason=reason)


def check_admin_permission(user: Any) -> bool:
    if user is None:
        return False
    return getattr(user, "admin", False) is True


def require_admin(user: Any) -> bool:
    if not check_admin_permission(user):
        AUTH_FAILURES.inc()
        raise PermissionDeniedError(ADMIN_REQUIRED_MESSAGE)
    return True


def _coordinates_as_float(data: Dict[str, Any]) -> Dict[str, Any]:
    # Numeric columns come back as Decimal; payloads carry plain floats
    for key in ("lat", "lng"):
        if data.get(key) is not None:
            data[key] = float(data[key])
    return data


def _metadata_dict(row: Any) -> Dict[str, Any]:
    return _coordinates_as_float({column: getattr(row, column) for column in METADATA_COLUMNS})


def photo_to_dict(photo: Photo) -> Dict[str, Any]:
    return _coordinates_as_float(photo.model_dump())


# ---------- storage helpers ----------

async def upload_original_image(
    storage: PhotoStorage, image_data: str, filename: Optional[str], user_id: Optional[str]
) -> str:
    key = build_original_path(user_id, filename or "photo.jpg")
    data = decode_data_url(image_data)
    return await run_in_threadpool(storage.put_object, key, data, "image/jpeg", False)


async def download_original_image(storage: PhotoStorage, storage_path: str) -> str:
    data = await run_in_threadpool(storage.get_object_bytes, storage_path)
    return encode_data_url(data)


async def delete_original_image(storage: PhotoStorage, storage_path: str) -> bool:
    await run_in_threadpool(storage.delete_objects, [storage_path])
    return True


# ---------- create ----------

async def save_photo(session, storage: PhotoStorage, payload: PhotoCreate, user: Any) -> OperationResult:
    """Compress, thumbnail, upload the original and insert the row."""
    settings = get_settings()
    UPLOAD_ATTEMPTS.inc()
    try:
        require_admin(user)
        validate_image_size(payload.image_data, settings.max_upload_mb)

        raw = decode_data_url(payload.image_data)
        compressed = await run_in_threadpool(
            compress_image,
            raw,
            settings.compress_max_width,
            settings.compress_max_height,
            settings.compress_quality,
        )
        # Thumbnail comes from the compressed copy, not the original
        thumbnail = await run_in_threadpool(
            create_thumbnail,
            compressed,
            ThumbnailConfig(
                max_width=settings.thumbnail_max_width,
                max_height=settings.thumbnail_max_height,
                quality=settings.thumbnail_quality,
            ),
        )
    except PermissionDeniedError as exc:
        UPLOAD_FAILURES.labels(stage="permission").inc()
        return OperationResult.fail(str(exc), FORBIDDEN)
    except ImageProcessingError as exc:
        UPLOAD_FAILURES.labels(stage="image").inc()
        logger.warning("Rejected capture from %s: %s", getattr(user, "id", None), exc)
        return OperationResult.fail(str(exc), INVALID)

    try:
        storage_path = await upload_original_image(
            storage, payload.image_data, payload.filename, user.id
        )
    except (StorageError, ImageProcessingError) as exc:
        UPLOAD_FAILURES.labels(stage="storage").inc()
        logger.error("Error uploading original to storage: %s", exc)
        return OperationResult.fail(f"Storage upload failed: {exc}")

    now = datetime.now(timezone.utc)
    photo = Photo(
        lat=payload.lat,
        lng=payload.lng,
        image_data=encode_data_url(compressed),
        thumbnail_data=encode_data_url(thumbnail),
        storage_path=storage_path,
        timestamp=payload.timestamp or now,
        filename=payload.filename,
        type=payload.type or None,
        name=payload.name or None,
        description=payload.description or None,
        user_id=user.id,
        created_at=now,
        updated_at=now,
    )
    try:
        session.add(photo)
        await session.commit()
        await session.refresh(photo)
    except SQLAlchemyError as exc:
        await session.rollback()
        UPLOAD_FAILURES.labels(stage="database").inc()
        logger.error("Error saving photo to database: %s", exc)
        try:
            await delete_original_image(storage, storage_path)
        except StorageError as cleanup_exc:
            ORPHAN_CLEANUP_FAILURES.inc()
            logger.error("Error cleaning up uploaded file %s: %s", storage_path, cleanup_exc)
        return OperationResult.fail(f"Database insert failed: {exc}")

    UPLOAD_SUCCESSES.inc()
    logger.info("Photo %s saved (original at %s)", photo.id, storage_path)
    return OperationResult.ok(photo)


# ---------- read ----------

async def load_photos(session, limit: int = 50, offset: int = 0) -> OperationResult:
    try:
        stmt = (
            select(Photo)
            .order_by(Photo.created_at.desc(), Photo.id.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.exec(stmt)
        photos = [photo_to_dict(p) for p in result.all()]
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Error loading photos from database: %s", exc)
        return OperationResult.fail(str(exc))

    logger.debug("Photos loaded from database (%d photos)", len(photos))
    return OperationResult.ok(photos)


async def load_all_photos(session, page_size: Optional[int] = None) -> OperationResult:
    """Walk every page until a short one comes back."""
    settings = get_settings()
    page_size = page_size or settings.page_size
    all_photos: List[Dict[str, Any]] = []
    offset = 0
    has_more = True

    while has_more:
        result = await load_photos(session, page_size, offset)
        if not result.success:
            return result

        all_photos.extend(result.data)
        has_more = len(result.data) == page_size
        offset += page_size

        if has_more:
            await asyncio.sleep(settings.page_delay_seconds)

    logger.info("All photos loaded from database (%d total)", len(all_photos))
    return OperationResult.ok(all_photos)


def _metadata_select(*extra):
    columns = [getattr(Photo, c) for c in METADATA_COLUMNS] + list(extra)
    return select(*columns).order_by(Photo.created_at.desc(), Photo.id.desc())


async def load_photos_metadata_only(session, limit: int = 50, offset: int = 0) -> OperationResult:
    try:
        result = await session.exec(_metadata_select().offset(offset).limit(limit))
        rows = [_metadata_dict(row) for row in result.all()]
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Error loading photos metadata: %s", exc)
        return OperationResult.fail(str(exc))
    return OperationResult.ok(rows)


async def load_photos_with_thumbnails(session, limit: int = 50, offset: int = 0) -> OperationResult:
    try:
        stmt = _metadata_select(Photo.thumbnail_data).offset(offset).limit(limit)
        result = await session.exec(stmt)
        rows = []
        for row in result.all():
            item = _metadata_dict(row)
            item["thumbnail_data"] = row.thumbnail_data
            item["has_full_image"] = bool(row.thumbnail_data)
            rows.append(item)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Error loading photos with thumbnails: %s", exc)
        return OperationResult.fail(str(exc))
    return OperationResult.ok(rows)


async def _load_column(session, photo_id: int, column) -> OperationResult:
    try:
        result = await session.exec(select(Photo.id, column).where(Photo.id == photo_id))
        row = result.first()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Error loading photo %s: %s", photo_id, exc)
        return OperationResult.fail(str(exc))
    if row is None:
        return OperationResult.fail(f"Photo {photo_id} not found", NOT_FOUND)
    return OperationResult.ok(row[1])


async def load_photo_thumbnail(session, photo_id: int) -> OperationResult:
    return await _load_column(session, photo_id, Photo.thumbnail_data)


async def get_full_image_data(session, photo_id: int) -> OperationResult:
    return await _load_column(session, photo_id, Photo.image_data)


async def get_original_image_data(session, storage: PhotoStorage, photo_id: int) -> OperationResult:
    result = await _load_column(session, photo_id, Photo.storage_path)
    if not result.success:
        return result
    storage_path = result.data
    if not storage_path:
        return OperationResult.fail("No original image found in storage", NOT_FOUND)

    try:
        return OperationResult.ok(await download_original_image(storage, storage_path))
    except StorageError as exc:
        logger.error("Error downloading original %s: %s", storage_path, exc)
        return OperationResult.fail(str(exc))


# ---------- update ----------

async def _update_fields(session, photo_id: int, user: Any, **fields) -> OperationResult:
    try:
        require_admin(user)
    except PermissionDeniedError as exc:
        return OperationResult.fail(str(exc), FORBIDDEN)

    try:
        photo = await session.get(Photo, photo_id)
        if photo is None:
            return OperationResult.fail(f"Photo {photo_id} not found", NOT_FOUND)
        for key, value in fields.items():
            setattr(photo, key, value)
        photo.updated_at = datetime.now(timezone.utc)
        session.add(photo)
        await session.commit()
        await session.refresh(photo)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Error updating photo %s: %s", photo_id, exc)
        return OperationResult.fail(str(exc))

    logger.info("Photo %s updated (%s)", photo_id, ", ".join(sorted(fields)))
    return OperationResult.ok(photo)


async def update_photo_type(session, photo_id: int, new_type: str, user: Any) -> OperationResult:
    return await _update_fields(session, photo_id, user, type=new_type)


async def update_photo_details(
    session, photo_id: int, name: Optional[str], description: Optional[str], user: Any
) -> OperationResult:
    return await _update_fields(
        session, photo_id, user, name=name or None, description=description or None
    )


async def regenerate_thumbnail(
    session, photo_id: int, user: Any, config: ThumbnailConfig = ThumbnailConfig()
) -> OperationResult:
    result = await get_full_image_data(session, photo_id)
    if not result.success:
        return result
    if not result.data:
        return OperationResult.fail(f"Photo {photo_id} has no image data", INVALID)

    try:
        thumbnail = await run_in_threadpool(create_thumbnail, decode_data_url(result.data), config)
    except ImageProcessingError as exc:
        logger.error("Error creating thumbnail for photo %s: %s", photo_id, exc)
        return OperationResult.fail(str(exc), INVALID)
    return await _update_fields(session, photo_id, user, thumbnail_data=encode_data_url(thumbnail))


# ---------- delete ----------

async def delete_photo(session, storage: PhotoStorage, photo_id: int, user: Any) -> OperationResult:
    try:
        require_admin(user)
    except PermissionDeniedError as exc:
        return OperationResult.fail(str(exc), FORBIDDEN)

    storage_path = None
    lookup = await _load_column(session, photo_id, Photo.storage_path)
    if lookup.success:
        storage_path = lookup.data
    elif lookup.reason == NOT_FOUND:
        return lookup
    else:
        # Row deletion still goes ahead; only the original may be left behind
        logger.error("Error fetching photo storage path: %s", lookup.error)

    try:
        await session.execute(sa_delete(Photo).where(Photo.id == photo_id))
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Error deleting photo %s from database: %s", photo_id, exc)
        return OperationResult.fail(str(exc))

    if storage_path:
        try:
            await delete_original_image(storage, storage_path)
            logger.info("Original image %s deleted from storage", storage_path)
        except StorageError as exc:
            STORAGE_DELETE_FAILURES.inc()
            logger.error("Error deleting from storage (non-critical): %s", exc)

    logger.info("Photo %s deleted", photo_id)
    return OperationResult.ok()


__all__ = [
    "OperationResult",
    "PermissionDeniedError",
    "check_admin_permission",
    "delete_photo",
    "get_full_image_data",
    "get_original_image_data",
    "load_all_photos",
    "load_photo_thumbnail",
    "load_photos",
    "load_photos_metadata_only",
    "load_photos_with_thumbnails",
    "regenerate_thumbnail",
    "require_admin",
    "save_photo",
    "update_photo_details",
    "update_photo_type",
]
