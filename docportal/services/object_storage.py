"""S3-compatible object storage service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Protocol

from docportal.config import settings

logger = logging.getLogger(__name__)

# delete_objects accepts at most 1000 keys per call
_DELETE_BATCH_SIZE = 1000


class ObjectStorageError(Exception):
    """Generic object storage failure."""


class ObjectNotFoundError(ObjectStorageError):
    """Raised when object is missing."""


@dataclass(frozen=True)
class StoredObject:
    key: str
    last_modified: datetime | None
    size: int | None


class StorageService(Protocol):
    """Storage provider interface."""

    bucket_name: str

    def upload(self, key: str, data: bytes, content_type: str | None) -> None: ...
    def download(self, key: str) -> bytes: ...
    def exists(self, key: str) -> bool: ...
    def delete(self, keys: list[str]) -> None: ...
    def list_objects(self, prefix: str) -> list[StoredObject]: ...
    def public_url(self, key: str) -> str: ...


class S3StorageService:
    """S3/MinIO/R2-backed storage provider."""

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: str,
        access_key: str | None,
        secret_key: str | None,
        region: str,
        client: Any | None = None,
        public_base_url: str | None = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url
        if client is not None:
            self.client = client
            return
        try:
            import boto3
        except ImportError as exc:
            raise ObjectStorageError("boto3 is required for S3 storage") from exc
        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    @staticmethod
    def _error_code(exc: Exception) -> str:
        response = getattr(exc, "response", None)
        if isinstance(response, dict):
            err = response.get("Error", {})
            if isinstance(err, dict):
                return str(err.get("Code", ""))
        return ""

    def ensure_bucket(self) -> None:
        """Create bucket if missing (safe to call repeatedly)."""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            return
        except Exception as exc:
            code = self._error_code(exc)
            if code not in {"404", "NoSuchBucket"}:
                raise ObjectStorageError("Unable to check storage bucket") from exc

        kwargs: dict = {"Bucket": self.bucket_name}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        self.client.create_bucket(**kwargs)
        logger.info("Created storage bucket: %s", self.bucket_name)

    def upload(self, key: str, data: bytes, content_type: str | None) -> None:
        """Write ``data`` at ``key``, replacing any existing object."""
        kwargs: dict = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": data,
        }
        if content_type:
            kwargs["ContentType"] = content_type
        try:
            self.client.put_object(**kwargs)
        except Exception as exc:
            raise ObjectStorageError(f"Failed to upload object {key}") from exc

    def download(self, key: str) -> bytes:
        try:
            obj = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except Exception as exc:
            code = self._error_code(exc)
            if code in {"404", "NoSuchKey"}:
                raise ObjectNotFoundError(key) from exc
            raise ObjectStorageError(f"Failed to download object {key}") from exc
        try:
            return obj["Body"].read()
        except Exception as exc:
            raise ObjectStorageError(f"Failed to read object body {key}") from exc

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except Exception as exc:
            code = self._error_code(exc)
            if code in {"404", "NoSuchKey"}:
                return False
            raise ObjectStorageError("Failed to check object") from exc

    def delete(self, keys: list[str]) -> None:
        """Delete ``keys`` in batches; any per-key error fails the call."""
        for start in range(0, len(keys), _DELETE_BATCH_SIZE):
            batch = keys[start : start + _DELETE_BATCH_SIZE]
            try:
                response = self.client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except Exception as exc:
                raise ObjectStorageError("Failed to delete objects") from exc
            errors = (response or {}).get("Errors") or []
            if errors:
                failed = ", ".join(str(err.get("Key")) for err in errors)
                raise ObjectStorageError(f"Failed to delete objects: {failed}")

    def list_objects(self, prefix: str) -> list[StoredObject]:
        objects: list[StoredObject] = []
        kwargs: dict = {"Bucket": self.bucket_name, "Prefix": prefix}
        try:
            while True:
                page = self.client.list_objects_v2(**kwargs)
                for item in page.get("Contents", []) or []:
                    objects.append(
                        StoredObject(
                            key=item["Key"],
                            last_modified=item.get("LastModified"),
                            size=item.get("Size"),
                        )
                    )
                if not page.get("IsTruncated"):
                    break
                kwargs["ContinuationToken"] = page["NextContinuationToken"]
        except Exception as exc:
            raise ObjectStorageError(f"Failed to list objects under {prefix}") from exc
        return objects

    def public_url(self, key: str) -> str:
        base = (self.public_base_url or self.endpoint_url or "").rstrip("/")
        return f"{base}/{self.bucket_name}/{key.lstrip('/')}"


@lru_cache(maxsize=16)
def get_s3_storage(bucket_name: str | None = None) -> S3StorageService:
    return S3StorageService(
        bucket_name=bucket_name or settings.s3_bucket_name,
        endpoint_url=settings.s3_endpoint_url,
        access_key=settings.s3_access_key,
        secret_key=settings.s3_secret_key,
        region=settings.s3_region,
        public_base_url=settings.s3_public_base_url,
    )


def ensure_storage_bucket() -> None:
    """Startup hook helper to guarantee bucket availability."""
    settings.validate_s3_config()
    get_s3_storage().ensure_bucket()
