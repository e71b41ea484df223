"""Reclaim staging objects left behind by interrupted replacements."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from docportal.config import settings
from docportal.metrics import STAGING_OBJECTS_SWEPT
from docportal.models.document_file import DocumentFile
from docportal.services.file_replace import is_staging_key
from docportal.services.object_storage import StorageService, get_s3_storage

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    bucket: str
    scanned: int = 0
    deleted: list[str] = field(default_factory=list)
    skipped: int = 0


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def sweep_orphaned_staging_objects(
    storage: StorageService,
    *,
    ttl_seconds: int | None = None,
    prefix: str | None = None,
    now: datetime | None = None,
) -> SweepResult:
    """Delete staging objects older than the TTL in ``storage``'s bucket.

    Objects without a modification time are left alone. A delete failure
    propagates so the task run is marked as an error.
    """
    ttl = timedelta(seconds=ttl_seconds if ttl_seconds is not None else settings.staging_ttl_seconds)
    cutoff = (now or datetime.now(timezone.utc)) - ttl
    result = SweepResult(bucket=storage.bucket_name)

    prefix = prefix or settings.staging_prefix
    stale: list[str] = []
    for obj in storage.list_objects(prefix):
        result.scanned += 1
        if not is_staging_key(obj.key, prefix):
            result.skipped += 1
            continue
        modified = _as_utc(obj.last_modified)
        if modified is None or modified > cutoff:
            result.skipped += 1
            continue
        stale.append(obj.key)

    if stale:
        storage.delete(stale)
        result.deleted = stale
        STAGING_OBJECTS_SWEPT.labels(bucket=storage.bucket_name).inc(len(stale))
        logger.info(
            "staging_sweep_deleted count=%s scanned=%s",
            len(stale),
            result.scanned,
            extra={"bucket": storage.bucket_name},
        )
    return result


def known_buckets(db: Session) -> list[str]:
    buckets = set(db.scalars(select(DocumentFile.storage_bucket).distinct()).all())
    buckets.add(settings.s3_bucket_name)
    return sorted(b for b in buckets if b)


def sweep_all_buckets(db: Session) -> list[SweepResult]:
    return [sweep_orphaned_staging_objects(get_s3_storage(bucket)) for bucket in known_buckets(db)]
