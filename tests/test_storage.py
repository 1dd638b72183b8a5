from datetime import datetime, timezone

import boto3
import pytest
from moto import mock_aws

from findspot.storage import LocalStorage, StorageError, build_original_path
from findspot.storage_s3 import S3Storage


def test_build_original_path_format():
    when = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    assert build_original_path("user-1", "find.jpg", when) == "user-1/2024-01-02T03-04-05-678Z_find.jpg"


def test_build_original_path_defaults():
    naive = datetime(2024, 1, 2, 3, 4, 5)
    assert build_original_path(None, None, naive) == "unknown/2024-01-02T03-04-05-000Z_photo.jpg"
    # Directory parts of the filename never leak into the key
    assert build_original_path("u", "../../etc/passwd", naive).endswith("_passwd")


def test_local_storage_round_trip(tmp_path):
    storage = LocalStorage(tmp_path, "original-images")
    key = storage.put_object("u/a.jpg", b"abc", "image/jpeg")

    assert key == "u/a.jpg"
    assert storage.exists(key)
    assert storage.get_object_bytes(key) == b"abc"
    assert (tmp_path / "original-images" / "u" / "a.jpg").is_file()

    storage.delete_objects([key])
    assert not storage.exists(key)


def test_local_storage_refuses_overwrite_without_upsert(tmp_path):
    storage = LocalStorage(tmp_path, "original-images")
    storage.put_object("u/a.jpg", b"one")
    with pytest.raises(StorageError):
        storage.put_object("u/a.jpg", b"two")
    storage.put_object("u/a.jpg", b"two", upsert=True)
    assert storage.get_object_bytes("u/a.jpg") == b"two"


def test_local_storage_rejects_keys_outside_bucket(tmp_path):
    storage = LocalStorage(tmp_path, "original-images")
    with pytest.raises(StorageError):
        storage.put_object("../escape.jpg", b"x")


def test_local_storage_missing_object(tmp_path):
    storage = LocalStorage(tmp_path, "original-images")
    with pytest.raises(StorageError):
        storage.get_object_bytes("nope.jpg")


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@mock_aws
def test_s3_storage_object_lifecycle(aws_credentials):
    storage = S3Storage(bucket="original-images")
    storage.ensure_bucket()

    key = storage.put_object("u/2024_find.jpg", b"\xff\xd8\xff", "image/jpeg")
    assert storage.exists(key)
    assert storage.head_object(key)["ContentType"] == "image/jpeg"
    assert storage.get_object_bytes(key) == b"\xff\xd8\xff"

    with pytest.raises(StorageError):
        storage.put_object(key, b"again", "image/jpeg")

    url = storage.generate_presigned_get(key)
    assert "original-images" in url and "2024_find.jpg" in url

    storage.delete_objects([key])
    assert not storage.exists(key)

    client = boto3.client("s3", region_name="us-east-1")
    assert client.list_objects_v2(Bucket="original-images").get("KeyCount") == 0


@mock_aws
def test_s3_storage_missing_object_raises(aws_credentials):
    storage = S3Storage(bucket="original-images")
    storage.ensure_bucket()
    with pytest.raises(StorageError):
        storage.get_object_bytes("missing.jpg")
