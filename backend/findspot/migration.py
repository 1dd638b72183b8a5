"""
Move inline image payloads into object storage.

Older rows carry their only copy of the image in ``image_data``. This job
uploads that payload to the originals bucket, records the key in
``storage_path`` and, with ``--cleanup``, clears the inline columns. Progress
is written to a JSON file after every photo so an interrupted run can pick up
where it stopped with ``--resume``.

Usage:
    python scripts/migrate_images_to_storage.py --dry-run
    python scripts/migrate_images_to_storage.py --batch-size 5 --resume
    python scripts/migrate_images_to_storage.py --cleanup
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from .imaging import ImageProcessingError, decode_data_url
from .models import Photo
from .storage import PhotoStorage, StorageError, build_original_path, get_storage

logger = logging.getLogger("findspot.migration")

DEFAULT_BATCH_SIZE = 10
PHOTO_DELAY_SECONDS = 0.1
BATCH_DELAY_SECONDS = 1.0
DEFAULT_PROGRESS_FILE = Path("migration-progress.json")
DEFAULT_LOG_FILE = Path("migration.log")

_MIGRATION_COLUMNS = (
    Photo.id,
    Photo.image_data,
    Photo.thumbnail_data,
    Photo.timestamp,
    Photo.filename,
    Photo.user_id,
    Photo.created_at,
    Photo.storage_path,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MigrationOptions:
    batch_size: int = DEFAULT_BATCH_SIZE
    dry_run: bool = False
    resume: bool = False
    cleanup: bool = False
    progress_file: Path = DEFAULT_PROGRESS_FILE
    photo_delay: float = PHOTO_DELAY_SECONDS
    batch_delay: float = BATCH_DELAY_SECONDS


@dataclass
class MigrationProgress:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    last_processed_id: int = 0
    start_time: str = field(default_factory=_now_iso)

    @classmethod
    def from_dict(cls, data: dict) -> "MigrationProgress":
        return cls(
            processed=int(data.get("processed", 0)),
            successful=int(data.get("successful", 0)),
            failed=int(data.get("failed", 0)),
            last_processed_id=int(data.get("last_processed_id", 0)),
            start_time=data.get("start_time") or _now_iso(),
        )


@dataclass
class PhotoOutcome:
    success: bool
    skipped: bool = False
    reason: Optional[str] = None
    storage_path: Optional[str] = None
    error: Optional[str] = None


def load_progress(path: Path) -> MigrationProgress:
    if path.exists():
        try:
            return MigrationProgress.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as exc:
            logger.warning("Could not load progress file %s: %s", path, exc)
    return MigrationProgress()


def save_progress(path: Path, progress: MigrationProgress) -> None:
    path.write_text(json.dumps(asdict(progress), indent=2), encoding="utf-8")


async def count_photos_to_migrate(session) -> int:
    stmt = (
        select(func.count())
        .select_from(Photo)
        .where(Photo.storage_path.is_(None), Photo.image_data.is_not(None))
    )
    result = await session.exec(stmt)
    return int(result.one())


async def fetch_photos_to_migrate(session, batch_size: int, last_processed_id: int = 0) -> List[Any]:
    stmt = (
        select(*_MIGRATION_COLUMNS)
        .where(
            Photo.storage_path.is_(None),
            Photo.image_data.is_not(None),
            Photo.id > last_processed_id,
        )
        .order_by(Photo.id.asc())
        .limit(batch_size)
    )
    result = await session.exec(stmt)
    return list(result.all())


async def process_photo(session, storage: PhotoStorage, photo: Any, options: MigrationOptions) -> PhotoOutcome:
    if photo.storage_path:
        return PhotoOutcome(success=True, skipped=True, reason="Already migrated")
    if not photo.image_data:
        return PhotoOutcome(success=True, skipped=True, reason="No image data")
    if options.dry_run:
        return PhotoOutcome(success=True, skipped=True, reason="Dry run mode")

    key = build_original_path(
        photo.user_id, photo.filename or "photo.jpg", photo.timestamp or photo.created_at
    )
    try:
        data = decode_data_url(photo.image_data)
        storage_path = await run_in_threadpool(storage.put_object, key, data, "image/jpeg", False)
    except (StorageError, ImageProcessingError) as exc:
        return PhotoOutcome(success=False, error=f"Storage upload failed: {exc}")

    values = {"storage_path": storage_path, "updated_at": datetime.now(timezone.utc)}
    if options.cleanup:
        values.update(image_data=None, thumbnail_data=None)
    try:
        await session.execute(sa_update(Photo).where(Photo.id == photo.id).values(**values))
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        # The uploaded object stays; a rerun picks the row up again under a new key
        return PhotoOutcome(success=False, error=f"Database update failed: {exc}")

    return PhotoOutcome(success=True, storage_path=storage_path)


async def run_migration(
    session,
    options: MigrationOptions,
    storage: Optional[PhotoStorage] = None,
) -> MigrationProgress:
    storage = storage or get_storage()
    logger.info("Starting image migration to storage bucket %s", storage.bucket)
    logger.info(
        "Configuration: batch_size=%s, dry_run=%s, resume=%s, cleanup=%s",
        options.batch_size,
        options.dry_run,
        options.resume,
        options.cleanup,
    )

    progress = load_progress(options.progress_file) if options.resume else MigrationProgress()
    if options.resume and progress.last_processed_id > 0:
        logger.info("Resuming from photo ID %s", progress.last_processed_id)

    total = await count_photos_to_migrate(session)
    logger.info("Total photos to migrate: %s", total)
    if total == 0:
        logger.info("No photos need migration")
        return progress

    if not options.dry_run:
        await run_in_threadpool(storage.ensure_bucket)

    while True:
        photos = await fetch_photos_to_migrate(session, options.batch_size, progress.last_processed_id)
        if not photos:
            logger.info("No more photos to process")
            break

        logger.info("Processing batch of %d photos", len(photos))
        for photo in photos:
            outcome = await process_photo(session, storage, photo, options)
            progress.processed += 1

            if not outcome.success:
                progress.failed += 1
                logger.error("Failed to migrate photo %s: %s", photo.id, outcome.error)
            elif outcome.skipped:
                logger.info("Skipped photo %s: %s", photo.id, outcome.reason)
            else:
                progress.successful += 1
                logger.info("Migrated photo %s to %s", photo.id, outcome.storage_path)

            progress.last_processed_id = photo.id
            save_progress(options.progress_file, progress)
            await asyncio.sleep(options.photo_delay)

        await asyncio.sleep(options.batch_delay)

    started = datetime.fromisoformat(progress.start_time)
    minutes = round((datetime.now(timezone.utc) - started).total_seconds() / 60)
    logger.info("Migration completed")
    logger.info("Total processed: %s", progress.processed)
    logger.info("Successful: %s", progress.successful)
    logger.info("Failed: %s", progress.failed)
    logger.info("Duration: %s minutes", minutes)

    if progress.failed:
        logger.warning("%s photos failed to migrate. Check the log for details.", progress.failed)
    elif options.progress_file.exists():
        options.progress_file.unlink()
        logger.info("Progress file cleaned up")

    return progress


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Move inline image payloads into object storage")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Number of images to process per batch (default: {DEFAULT_BATCH_SIZE})",
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Show what would be migrated without making changes"
    )
    parser.add_argument("--resume", action="store_true", help="Resume from the saved progress file")
    parser.add_argument(
        "--cleanup", action="store_true", help="Clear inline image data after a successful upload"
    )
    parser.add_argument("--progress-file", type=Path, default=DEFAULT_PROGRESS_FILE)
    parser.add_argument("--log-file", type=Path, default=DEFAULT_LOG_FILE)
    args = parser.parse_args(argv)
    if args.batch_size < 1:
        parser.error("--batch-size must be a positive integer")
    return args


def _configure_logging(log_file: Optional[Path]) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )


async def _main(args: argparse.Namespace) -> None:
    from .database import async_session_factory, init_db

    await init_db()
    options = MigrationOptions(
        batch_size=args.batch_size,
        dry_run=args.dry_run,
        resume=args.resume,
        cleanup=args.cleanup,
        progress_file=args.progress_file,
    )
    async with async_session_factory() as session:
        await run_migration(session, options)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.log_file)
    try:
        asyncio.run(_main(args))
    except Exception as exc:
        logger.exception("Migration failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
