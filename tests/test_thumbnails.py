import pytest
from sqlalchemy.exc import OperationalError

from findspot import retry, thumbnails
from findspot.database import async_session_factory
from findspot.imaging import ThumbnailConfig, decode_data_url, get_image_dimensions
from findspot.thumbnails import (
    BatchResults,
    ThumbnailJob,
    generate_thumbnails,
    parse_ids,
    regenerate_thumbnails,
    run_paged,
)

from .helpers import bomb_png, encode_image, to_data_url

OLD_THUMB = "data:image/jpeg;base64,BB=="


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    async def fake_sleep(seconds):
        return None

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)


@pytest.fixture
def job():
    return ThumbnailJob(config=ThumbnailConfig(max_width=200, max_height=200, quality=80), batch_delay=0)


@pytest.fixture
def image_photo(insert_photo):
    def _insert(**fields):
        fields.setdefault("image_data", to_data_url(encode_image(800, 400)))
        return insert_photo(**fields)

    return _insert


async def test_generate_fills_missing_thumbnails(job, image_photo, insert_photo, fetch_photo):
    broken = insert_photo(image_data=None)
    ids = [image_photo() for _ in range(4)]
    done = image_photo(thumbnail_data=OLD_THUMB)

    async with async_session_factory() as session:
        results = await generate_thumbnails(session, job)

    assert (results.processed, results.successful, results.failed) == (5, 4, 1)
    assert results.errors == [f"Photo {broken}: No image data"]
    for photo_id in ids:
        thumb = fetch_photo(photo_id).thumbnail_data
        assert get_image_dimensions(decode_data_url(thumb)) == (200, 100)
    assert fetch_photo(done).thumbnail_data == OLD_THUMB


async def test_generate_respects_limit(job, image_photo):
    for _ in range(5):
        image_photo()
    job.limit = 2
    async with async_session_factory() as session:
        results = await generate_thumbnails(session, job)
        remaining = await thumbnails.count_photos(session, has_thumbnail=False)

    assert results.processed == 2
    assert remaining == 3


async def test_generate_with_regenerate_rebuilds_existing(job, image_photo, fetch_photo):
    photo_id = image_photo(thumbnail_data=OLD_THUMB)
    untouched = image_photo()
    async with async_session_factory() as session:
        results = await generate_thumbnails(session, job, regenerate=True)

    assert results.processed == 1
    assert fetch_photo(photo_id).thumbnail_data != OLD_THUMB
    assert fetch_photo(untouched).thumbnail_data is None


async def test_regenerate_selected_ids(job, image_photo, fetch_photo):
    chosen = image_photo(thumbnail_data=OLD_THUMB)
    other = image_photo(thumbnail_data=OLD_THUMB)
    async with async_session_factory() as session:
        results = await regenerate_thumbnails(session, job, photo_ids=[chosen, 9999])

    assert results.processed == 1
    assert fetch_photo(chosen).thumbnail_data != OLD_THUMB
    assert fetch_photo(other).thumbnail_data == OLD_THUMB


async def test_regenerate_all_dry_run_writes_nothing(job, image_photo, fetch_photo):
    ids = [image_photo(thumbnail_data=OLD_THUMB) for _ in range(4)]
    job.dry_run = True
    async with async_session_factory() as session:
        results = await regenerate_thumbnails(session, job, all_photos=True)

    assert (results.processed, results.successful) == (4, 4)
    assert all(fetch_photo(i).thumbnail_data == OLD_THUMB for i in ids)


async def test_regenerate_needs_a_target(job):
    async with async_session_factory() as session:
        with pytest.raises(ValueError):
            await regenerate_thumbnails(session, job)


async def test_fetch_timeouts_are_retried_then_abort(job):
    calls = []

    async def timing_out(session, limit, offset):
        calls.append(offset)
        raise RuntimeError("canceling statement due to statement timeout")

    async with async_session_factory() as session:
        with pytest.raises(RuntimeError):
            await run_paged(session, timing_out, job)
    assert calls == [0, 0, 0]


async def test_fetch_recovers_after_one_timeout(job, image_photo):
    image_photo()
    attempts = {"count": 0}

    async def flaky(session, limit, offset):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise RuntimeError("Query timeout")
        return await thumbnails.fetch_without_thumbnails(session, limit, offset)

    async with async_session_factory() as session:
        results = await run_paged(session, flaky, job, rows_leave_query=True)
    assert results.successful == 1


def test_batch_results_success_rate():
    results = BatchResults(processed=4, successful=3, failed=1)
    assert results.success_rate == 75.0
    assert BatchResults().success_rate == 0.0


def test_parse_ids_drops_non_numeric():
    assert parse_ids("1, 2,x,3") == [1, 2, 3]
    assert parse_ids("a,b") == []


def test_main_regenerate_requires_a_target():
    with pytest.raises(SystemExit):
        thumbnails.main_regenerate([])
    with pytest.raises(SystemExit):
        thumbnails.main_regenerate(["--id", "x,y"])
    with pytest.raises(SystemExit):
        thumbnails.main_regenerate(["--all", "--id", "1"])


def test_main_regenerate_dry_run(image_photo, monkeypatch):
    monkeypatch.setattr(thumbnails, "_configure_logging", lambda: None)
    photo_id = image_photo()
    assert thumbnails.main_regenerate(["--id", str(photo_id), "--dry-run"]) == 0


def test_main_generate_reports_fatal_errors(monkeypatch):
    monkeypatch.setattr(thumbnails, "_configure_logging", lambda: None)

    async def explode(session, job, regenerate=False):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(thumbnails, "generate_thumbnails", explode)
    assert thumbnails.main_generate(["--limit", "1"]) == 1


def test_main_generate_rejects_bad_quality():
    with pytest.raises(SystemExit):
        thumbnails.main_generate(["--quality", "0"])


async def test_undecodable_row_does_not_abort_the_run(job, image_photo, insert_photo, fetch_photo):
    bomb = insert_photo(image_data=to_data_url(bomb_png(), "image/png"))
    good = image_photo()

    async with async_session_factory() as session:
        results = await generate_thumbnails(session, job)

    assert (results.processed, results.failed, results.successful) == (2, 1, 1)
    assert results.errors[0].startswith(f"Photo {bomb}: Invalid image file")
    assert fetch_photo(bomb).thumbnail_data is None
    assert fetch_photo(good).thumbnail_data is not None


async def test_failed_page_fetch_rolls_back_before_retrying(job, image_photo, monkeypatch):
    image_photo()
    attempts = {"count": 0}

    async def times_out_once(session, limit, offset):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise OperationalError(
                "SELECT photos.id", {}, Exception("canceling statement due to statement timeout")
            )
        return await thumbnails.fetch_without_thumbnails(session, limit, offset)

    async with async_session_factory() as session:
        rollbacks = []
        real_rollback = session.rollback

        async def counting_rollback():
            rollbacks.append(attempts["count"])
            await real_rollback()

        monkeypatch.setattr(session, "rollback", counting_rollback)
        results = await run_paged(session, times_out_once, job, rows_leave_query=True)

    assert rollbacks == [1]
    assert results.successful == 1


async def test_photo_numbers_keep_counting_across_pages(job, image_photo, caplog):
    for _ in range(4):
        image_photo()

    with caplog.at_level("INFO", logger="findspot.thumbnails"):
        async with async_session_factory() as session:
            await generate_thumbnails(session, job)

    numbers = [
        record.args[0]
        for record in caplog.records
        if record.msg.startswith("Processing photo %s")
    ]
    assert numbers == [1, 2, 3, 4]
