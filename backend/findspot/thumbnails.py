"""
Batch thumbnail jobs.

``generate`` fills in thumbnails for rows that have none (or, with
``--regenerate``, rebuilds existing ones). ``regenerate`` rebuilds thumbnails
for every row or for an explicit list of ids. Thumbnails are always derived
from the inline compressed payload, never from the original in storage.

Rows are fetched a few at a time and processed in small batches with pauses
in between so long-running statements do not trip database timeouts; a query
that does time out is retried with a linear backoff before the run gives up.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from .imaging import ImageProcessingError, ThumbnailConfig, create_thumbnail_data_url
from .models import Photo
from .retry import retry_operation

logger = logging.getLogger("findspot.thumbnails")

FETCH_BATCH_SIZE = 3
PROCESS_BATCH_SIZE = 5
BATCH_DELAY_SECONDS = 2.0

GENERATE_QUALITY = 80
REGENERATE_QUALITY = 85

_ROW_COLUMNS = (Photo.id, Photo.image_data, Photo.thumbnail_data, Photo.filename, Photo.created_at)

Fetcher = Callable[[Any, int, int], Awaitable[Tuple[List[Any], bool]]]


@dataclass
class ThumbnailJob:
    config: ThumbnailConfig = ThumbnailConfig(quality=GENERATE_QUALITY)
    limit: Optional[int] = None
    dry_run: bool = False
    batch_delay: float = BATCH_DELAY_SECONDS


@dataclass
class BatchResults:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: "BatchResults") -> None:
        self.processed += other.processed
        self.successful += other.successful
        self.failed += other.failed
        self.errors.extend(other.errors)

    @property
    def success_rate(self) -> float:
        if not self.processed:
            return 0.0
        return self.successful / self.processed * 100


# ---------- queries ----------

def _ordered_rows():
    return select(*_ROW_COLUMNS).order_by(Photo.created_at.asc(), Photo.id.asc())


async def count_photos(session, has_thumbnail: Optional[bool] = None) -> int:
    stmt = select(func.count()).select_from(Photo)
    if has_thumbnail is True:
        stmt = stmt.where(Photo.thumbnail_data.is_not(None))
    elif has_thumbnail is False:
        stmt = stmt.where(Photo.thumbnail_data.is_(None))
    result = await session.exec(stmt)
    return int(result.one())


async def fetch_without_thumbnails(session, limit: int, offset: int) -> Tuple[List[Any], bool]:
    logger.info("Fetching photos without thumbnails (limit: %s, offset: %s)", limit, offset)
    stmt = _ordered_rows().where(Photo.thumbnail_data.is_(None)).offset(offset).limit(limit)
    rows = list((await session.exec(stmt)).all())
    return rows, len(rows) == limit


async def fetch_with_thumbnails(session, limit: int, offset: int) -> Tuple[List[Any], bool]:
    """Ids first, then full rows for just those ids."""
    logger.info("Fetching photos with existing thumbnails (limit: %s, offset: %s)", limit, offset)
    id_stmt = (
        select(Photo.id)
        .where(Photo.thumbnail_data.is_not(None))
        .order_by(Photo.created_at.asc(), Photo.id.asc())
        .offset(offset)
        .limit(limit)
    )
    ids = list((await session.exec(id_stmt)).all())
    if not ids:
        return [], False
    rows = list((await session.exec(_ordered_rows().where(Photo.id.in_(ids)))).all())
    return rows, len(ids) == limit


async def fetch_all(session, limit: int, offset: int) -> Tuple[List[Any], bool]:
    logger.info("Fetching all photos (limit: %s, offset: %s)", limit, offset)
    rows = list((await session.exec(_ordered_rows().offset(offset).limit(limit))).all())
    return rows, len(rows) == limit


async def fetch_by_ids(session, ids: Sequence[int]) -> List[Any]:
    logger.info("Fetching photos with IDs: %s", ", ".join(str(i) for i in ids))
    rows = list((await session.exec(_ordered_rows().where(Photo.id.in_(list(ids))))).all())
    if not rows:
        logger.info("No photos found with the specified IDs")
    return rows


async def _rolling_back(session, query: Callable[[], Awaitable[Any]]) -> Any:
    """Run a read, rolling the session back if it fails so a retry starts clean."""
    try:
        return await query()
    except SQLAlchemyError:
        await session.rollback()
        raise


async def update_thumbnail(session, photo_id: int, thumbnail_data: str) -> None:
    try:
        await session.execute(
            sa_update(Photo)
            .where(Photo.id == photo_id)
            .values(thumbnail_data=thumbnail_data, updated_at=datetime.now(timezone.utc))
        )
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise


# ---------- processing ----------

async def process_batch(
    session, photos: Sequence[Any], batch_index: int, job: ThumbnailJob, start: int = 0
) -> BatchResults:
    """Process one sub-batch; ``start`` is the count of photos handled before it."""
    results = BatchResults()
    logger.info("Processing batch %s (%s photos)", batch_index + 1, len(photos))

    for i, photo in enumerate(photos):
        number = start + i + 1
        logger.info(
            "Processing photo %s (ID: %s)%s",
            number,
            photo.id,
            f" - {photo.filename}" if photo.filename else "",
        )
        results.processed += 1

        if job.dry_run:
            logger.info("[DRY RUN] Would regenerate thumbnail for photo %s", photo.id)
            results.successful += 1
            continue

        try:
            if not photo.image_data:
                raise ImageProcessingError("No image data")
            thumbnail = await run_in_threadpool(create_thumbnail_data_url, photo.image_data, job.config)
            await retry_operation(
                partial(update_thumbnail, session, photo.id, thumbnail),
                f"Updating photo {photo.id}",
            )
        except (ImageProcessingError, SQLAlchemyError) as exc:
            results.failed += 1
            results.errors.append(f"Photo {photo.id}: {exc}")
            logger.error("Error processing photo %s: %s", photo.id, exc)
            continue

        results.successful += 1
        logger.info("Thumbnail written for photo %s", photo.id)

    return results


async def process_photos(session, photos: Sequence[Any], job: ThumbnailJob, start: int = 0) -> BatchResults:
    """Split ``photos`` into processing batches with a pause between them."""
    overall = BatchResults()
    batches = [photos[i : i + PROCESS_BATCH_SIZE] for i in range(0, len(photos), PROCESS_BATCH_SIZE)]
    for index, batch in enumerate(batches):
        overall.merge(await process_batch(session, batch, index, job, start + overall.processed))
        if index < len(batches) - 1:
            logger.info("Waiting %.1fs before next processing batch", job.batch_delay)
            await asyncio.sleep(job.batch_delay)
    return overall


async def run_paged(session, fetcher: Fetcher, job: ThumbnailJob, rows_leave_query: bool = False) -> BatchResults:
    """Fetch and process pages until the query runs dry or the limit is hit.

    With ``rows_leave_query`` a successfully processed row no longer matches
    the fetch query, so the offset only advances past rows that failed.
    """
    overall = BatchResults()
    offset = 0
    has_more = True

    logger.info("Processing photos in batches of %s", FETCH_BATCH_SIZE)
    if job.limit:
        logger.info("Limited to processing %s photos maximum", job.limit)

    while has_more:
        if job.limit and overall.processed >= job.limit:
            logger.info("Reached limit of %s photos. Stopping.", job.limit)
            break
        fetch_size = min(FETCH_BATCH_SIZE, job.limit - overall.processed) if job.limit else FETCH_BATCH_SIZE

        photos, has_more = await retry_operation(
            partial(_rolling_back, session, partial(fetcher, session, fetch_size, offset)),
            f"Fetching photos batch (offset: {offset})",
        )
        if not photos:
            logger.info("No more photos found")
            break

        logger.info("Processing batch starting at offset %s (%s photos)", offset, len(photos))
        page = await process_photos(session, photos, job, start=overall.processed)
        overall.merge(page)

        offset += page.failed if rows_leave_query and not job.dry_run else len(photos)

        if has_more:
            logger.info("Waiting %.1fs before fetching next batch", job.batch_delay)
            await asyncio.sleep(job.batch_delay)

    return overall


async def generate_thumbnails(session, job: ThumbnailJob, regenerate: bool = False) -> BatchResults:
    mode = "regeneration" if regenerate else "generation"
    logger.info("Starting thumbnail %s", mode)
    total = await count_photos(session, has_thumbnail=regenerate)
    logger.info("Total photos %s thumbnails: %s", "with" if regenerate else "without", total)

    if regenerate:
        results = await run_paged(session, fetch_with_thumbnails, job)
    else:
        results = await run_paged(session, fetch_without_thumbnails, job, rows_leave_query=True)
    log_summary(results, f"Thumbnail {mode.capitalize()} Complete")
    return results


async def regenerate_thumbnails(
    session, job: ThumbnailJob, photo_ids: Optional[Sequence[int]] = None, all_photos: bool = False
) -> BatchResults:
    if job.dry_run:
        logger.info("DRY RUN MODE - no changes will be made")

    if photo_ids:
        logger.info("Processing specific photos: %s", ", ".join(str(i) for i in photo_ids))
        photos = await retry_operation(
            partial(_rolling_back, session, partial(fetch_by_ids, session, photo_ids)),
            "Fetching photos by id",
        )
        if job.limit:
            photos = photos[: job.limit]
        results = await process_photos(session, photos, job)
    elif all_photos:
        total = await count_photos(session)
        logger.info("Processing all photos (%s total)", total)
        results = await run_paged(session, fetch_all, job)
    else:
        raise ValueError("Specify either all_photos or photo_ids")

    log_summary(results, "Thumbnail Regeneration Complete")
    return results


def log_summary(results: BatchResults, title: str) -> None:
    logger.info(title)
    logger.info("Total photos processed: %s", results.processed)
    logger.info("Successfully processed: %s", results.successful)
    logger.info("Failed: %s", results.failed)
    if results.processed:
        logger.info("Success rate: %.1f%%", results.success_rate)
    for error in results.errors:
        logger.error("  - %s", error)
    if not results.processed:
        logger.info("No photos found to process")


# ---------- CLI ----------

def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _quality(value: str) -> int:
    number = int(value)
    if not 1 <= number <= 100:
        raise argparse.ArgumentTypeError("quality must be between 1 and 100")
    return number


def parse_ids(value: str) -> List[int]:
    """``"1, 2,x,3"`` -> ``[1, 2, 3]``; non-numeric entries are dropped."""
    ids = []
    for part in value.split(","):
        part = part.strip()
        if part.lstrip("-").isdigit():
            ids.append(int(part))
    return ids


def _add_config_args(parser: argparse.ArgumentParser, default_quality: int) -> None:
    parser.add_argument("--limit", type=_positive_int, default=None, help="Process at most N photos")
    parser.add_argument("--quality", type=_quality, default=default_quality)
    parser.add_argument("--max-width", type=_positive_int, default=800)
    parser.add_argument("--max-height", type=_positive_int, default=800)


def _config_from(args: argparse.Namespace) -> ThumbnailConfig:
    return ThumbnailConfig(max_width=args.max_width, max_height=args.max_height, quality=args.quality)


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


async def _with_session(run: Callable[[Any], Awaitable[BatchResults]]) -> BatchResults:
    from .database import async_session_factory, init_db

    await init_db()
    async with async_session_factory() as session:
        return await run(session)


def main_generate(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Generate thumbnails for photos that have none")
    _add_config_args(parser, GENERATE_QUALITY)
    parser.add_argument(
        "--regenerate", action="store_true", help="Rebuild existing thumbnails instead"
    )
    args = parser.parse_args(argv)
    _configure_logging()

    job = ThumbnailJob(config=_config_from(args), limit=args.limit)
    try:
        asyncio.run(_with_session(lambda s: generate_thumbnails(s, job, regenerate=args.regenerate)))
    except Exception as exc:
        logger.exception("Fatal error during thumbnail generation: %s", exc)
        return 1
    return 0


def main_regenerate(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Regenerate thumbnails for all or selected photos")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--all", action="store_true", dest="all_photos", help="Regenerate every photo")
    target.add_argument("--id", dest="ids", type=parse_ids, help="Comma separated photo ids, e.g. 1,2,3")
    parser.add_argument("--dry-run", action="store_true", help="Show what would change without writing")
    _add_config_args(parser, REGENERATE_QUALITY)
    args = parser.parse_args(argv)
    if args.ids is not None and not args.ids:
        parser.error("--id needs at least one numeric photo id")
    _configure_logging()

    job = ThumbnailJob(config=_config_from(args), limit=args.limit, dry_run=args.dry_run)
    try:
        asyncio.run(
            _with_session(
                lambda s: regenerate_thumbnails(s, job, photo_ids=args.ids, all_photos=args.all_photos)
            )
        )
    except Exception as exc:
        logger.exception("Fatal error during thumbnail regeneration: %s", exc)
        return 1
    return 0
