import json

import pytest

from findspot import migration
from findspot.database import async_session_factory
from findspot.imaging import decode_data_url
from findspot.migration import (
    MigrationOptions,
    MigrationProgress,
    load_progress,
    run_migration,
    save_progress,
)

from .helpers import encode_image, to_data_url

BROKEN_PAYLOAD = "data:image/jpeg;base64,@@@@"


@pytest.fixture
def options(tmp_path):
    def _make(**overrides):
        values = dict(
            batch_size=2,
            progress_file=tmp_path / "progress.json",
            photo_delay=0,
            batch_delay=0,
        )
        values.update(overrides)
        return MigrationOptions(**values)

    return _make


@pytest.fixture
def inline_photo(insert_photo):
    def _insert(**fields):
        fields.setdefault("image_data", to_data_url(encode_image(40, 30)))
        fields.setdefault("thumbnail_data", "data:image/jpeg;base64,BB==")
        return insert_photo(**fields)

    return _insert


async def test_uploads_inline_payloads_and_records_keys(storage, options, inline_photo, fetch_photo):
    ids = [inline_photo(user_id=None, filename=f"{n}.jpg") for n in range(3)]
    already = inline_photo(storage_path="old/key.jpg")

    async with async_session_factory() as session:
        progress = await run_migration(session, options(), storage)

    assert (progress.processed, progress.successful, progress.failed) == (3, 3, 0)
    assert progress.last_processed_id == ids[-1]
    for photo_id in ids:
        photo = fetch_photo(photo_id)
        assert photo.storage_path.startswith("unknown/2024-05-01T12-00-00-000Z_")
        assert storage.get_object_bytes(photo.storage_path) == decode_data_url(photo.image_data)
        # Without --cleanup the inline copies stay
        assert photo.thumbnail_data is not None
    assert fetch_photo(already).storage_path == "old/key.jpg"
    assert not options().progress_file.exists()


async def test_cleanup_clears_inline_columns(storage, options, inline_photo, fetch_photo):
    photo_id = inline_photo()
    async with async_session_factory() as session:
        await run_migration(session, options(cleanup=True), storage)

    photo = fetch_photo(photo_id)
    assert photo.storage_path
    assert photo.image_data is None and photo.thumbnail_data is None


async def test_dry_run_changes_nothing(storage, options, inline_photo, fetch_photo, tmp_path):
    photo_id = inline_photo()
    async with async_session_factory() as session:
        progress = await run_migration(session, options(dry_run=True), storage)

    assert progress.processed == 1
    assert progress.successful == 0
    assert fetch_photo(photo_id).storage_path is None
    assert not (tmp_path / "storage").exists()


async def test_failures_keep_progress_file(storage, options, inline_photo, fetch_photo):
    good = inline_photo()
    bad = inline_photo(image_data=BROKEN_PAYLOAD)
    opts = options()

    async with async_session_factory() as session:
        progress = await run_migration(session, opts, storage)

    assert (progress.successful, progress.failed) == (1, 1)
    assert fetch_photo(good).storage_path
    assert fetch_photo(bad).storage_path is None
    saved = json.loads(opts.progress_file.read_text())
    assert saved["failed"] == 1
    assert saved["last_processed_id"] == bad


async def test_resume_skips_rows_already_seen(storage, options, inline_photo, fetch_photo):
    first = inline_photo(image_data=BROKEN_PAYLOAD)
    second = inline_photo()
    opts = options(resume=True)
    save_progress(
        opts.progress_file,
        MigrationProgress(processed=1, failed=1, last_processed_id=first),
    )

    async with async_session_factory() as session:
        progress = await run_migration(session, opts, storage)

    assert progress.processed == 2
    assert progress.successful == 1
    assert progress.failed == 1
    assert fetch_photo(second).storage_path
    # Earlier failures are carried over, so the file is kept for inspection
    assert opts.progress_file.exists()


async def test_nothing_to_migrate(storage, options, insert_photo):
    insert_photo(image_data=None)
    async with async_session_factory() as session:
        progress = await run_migration(session, options(), storage)
    assert progress.processed == 0


def test_load_progress_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "progress.json"
    path.write_text("{not json")
    progress = load_progress(path)
    assert progress.processed == 0
    assert progress.last_processed_id == 0


def test_parse_args_defaults_and_validation():
    args = migration.parse_args([])
    assert args.batch_size == migration.DEFAULT_BATCH_SIZE
    assert not (args.dry_run or args.resume or args.cleanup)
    with pytest.raises(SystemExit):
        migration.parse_args(["--batch-size", "0"])


def test_main_dry_run_exits_cleanly(tmp_path, inline_photo, monkeypatch):
    monkeypatch.setattr(migration, "_configure_logging", lambda log_file: None)
    inline_photo()
    code = migration.main(
        ["--dry-run", "--progress-file", str(tmp_path / "p.json"), "--log-file", str(tmp_path / "m.log")]
    )
    assert code == 0
