"""
Helpers for keeping original images in AWS S3 (or compatible services like
MinIO or a hosted storage gateway).

This module encapsulates object management for the originals bucket and the
presigned download URLs handed to clients.
"""

from __future__ import annotations

from typing import Optional, Dict, Any, Iterable, List
import logging

import boto3
from botocore.client import Config
from botocore.exceptions import ClientError

from .config import get_settings

logger = logging.getLogger("findspot.storage_s3")


class StorageError(RuntimeError):
    """Raised when storage operations fail."""


class S3Storage:
    """Wrapper over boto3 with the defaults the originals bucket needs."""

    def __init__(self, bucket: Optional[str] = None) -> None:
        settings = get_settings()
        session_kwargs = {}

        if settings.s3_access_key_id and settings.s3_secret_access_key:
            session_kwargs.update(
                aws_access_key_id=settings.s3_access_key_id,
                aws_secret_access_key=settings.s3_secret_access_key,
            )

        session = (
            boto3.session.Session(**session_kwargs)
            if session_kwargs
            else boto3.session.Session()
        )

        client_kwargs = {
            "service_name": "s3",
            "region_name": settings.s3_region,
            "config": Config(signature_version="s3v4"),
        }
        if settings.s3_endpoint:
            client_kwargs["endpoint_url"] = settings.s3_endpoint
        if settings.s3_use_ssl is False:
            client_kwargs["use_ssl"] = False

        self._client = session.client(**client_kwargs)
        self._bucket = bucket or settings.storage_bucket
        self._region = settings.s3_region
        self._download_expiry = settings.s3_presign_expiry_get

    @property
    def bucket(self) -> str:
        return self._bucket

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
            return True
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in {"404", "NoSuchKey", "NotFound"}:
                return False
            raise StorageError(f"head_object failed for {key}: {exc}") from exc

    def head_object(self, key: str) -> Dict[str, Any]:
        try:
            return self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            raise StorageError(f"head_object failed for {key}: {exc}") from exc

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        if not upsert and self.exists(key):
            raise StorageError(f"Object {key} already exists")
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=data, **extra)
        except ClientError as exc:
            raise StorageError(f"put_object failed for {key}: {exc}") from exc
        return key

    def get_object_bytes(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()
        except ClientError as exc:
            raise StorageError(f"Failed to download {key}: {exc}") from exc

    def delete_objects(self, keys: Iterable[str]) -> None:
        objects: List[Dict[str, str]] = [{"Key": key} for key in keys]
        if not objects:
            return
        try:
            response = self._client.delete_objects(
                Bucket=self._bucket, Delete={"Objects": objects, "Quiet": True}
            )
        except ClientError as exc:
            raise StorageError(f"Failed to delete objects {[o['Key'] for o in objects]}: {exc}") from exc
        errors = response.get("Errors") or []
        if errors:
            raise StorageError(f"Failed to delete objects: {errors}")

    def generate_presigned_get(self, key: str) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=self._download_expiry,
            )
        except ClientError as exc:
            raise StorageError(f"Failed to generate presigned GET URL: {exc}") from exc

    def ensure_bucket(self) -> None:
        """Best-effort check that bucket exists (useful for local MinIO)."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code")
            if error_code in {"404", "NoSuchBucket"}:
                logger.info(
                    "Bucket %s missing; attempting to create for dev/local use",
                    self._bucket,
                )
                params = {"Bucket": self._bucket}
                if self._region and self._region != "us-east-1":
                    params["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
                self._client.create_bucket(**params)
            else:
                raise StorageError(f"Bucket {self._bucket} unavailable: {exc}") from exc


__all__ = ["S3Storage", "StorageError"]
