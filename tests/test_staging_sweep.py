from datetime import datetime, timedelta, timezone

import pytest

from docportal.models.document_file import DocumentFile
from docportal.services import staging_sweep as staging_sweep_service
from tests.mocks import FakeStorage, StorageFailure

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_sweep_deletes_only_expired_staging_objects():
    storage = FakeStorage()
    storage.put("_staging/f1/old.pdf", b"x", NOW - timedelta(hours=2))
    storage.put("_staging/f2/fresh.pdf", b"x", NOW - timedelta(minutes=5))
    storage.put("documents/old.pdf", b"x", NOW - timedelta(days=30))

    result = staging_sweep_service.sweep_orphaned_staging_objects(
        storage, ttl_seconds=3600, now=NOW
    )

    assert result.bucket == "documents"
    assert result.scanned == 2
    assert result.deleted == ["_staging/f1/old.pdf"]
    assert result.skipped == 1
    assert sorted(storage.objects) == ["_staging/f2/fresh.pdf", "documents/old.pdf"]


def test_sweep_skips_objects_without_timestamp():
    storage = FakeStorage()
    storage.put("_staging/f1/unknown.pdf", b"x", None)

    result = staging_sweep_service.sweep_orphaned_staging_objects(storage, now=NOW)

    assert result.deleted == []
    assert result.skipped == 1
    assert "delete" not in storage.op_names()


def test_sweep_treats_naive_timestamps_as_utc():
    storage = FakeStorage()
    storage.put("_staging/f1/naive.pdf", b"x", datetime(2026, 3, 1, 10, 0))

    result = staging_sweep_service.sweep_orphaned_staging_objects(
        storage, ttl_seconds=3600, now=NOW
    )

    assert result.deleted == ["_staging/f1/naive.pdf"]


def test_sweep_propagates_delete_failures():
    storage = FakeStorage()
    storage.put("_staging/f1/old.pdf", b"x", NOW - timedelta(days=1))
    storage.fail_delete = True

    with pytest.raises(StorageFailure):
        staging_sweep_service.sweep_orphaned_staging_objects(storage, now=NOW)


def test_known_buckets_include_default(db_session):
    db_session.add(
        DocumentFile(
            id="file_a",
            file_name="a.pdf",
            file_type="application/pdf",
            file_size=1,
            file_path="applications/a.pdf",
            storage_bucket="applications",
        )
    )
    db_session.commit()

    assert staging_sweep_service.known_buckets(db_session) == ["applications", "documents"]


def test_sweep_all_buckets_uses_one_storage_per_bucket(db_session, monkeypatch):
    storages = {"documents": FakeStorage("documents")}
    storages["documents"].put("_staging/x/old.pdf", b"x", datetime(2000, 1, 1, tzinfo=timezone.utc))
    monkeypatch.setattr(staging_sweep_service, "get_s3_storage", lambda bucket: storages[bucket])

    results = staging_sweep_service.sweep_all_buckets(db_session)

    assert [r.bucket for r in results] == ["documents"]
    assert results[0].deleted == ["_staging/x/old.pdf"]


class _UnfilteredListingStorage(FakeStorage):
    def list_objects(self, prefix: str):
        return super().list_objects("")


def test_sweep_never_deletes_keys_outside_staging_prefix():
    storage = _UnfilteredListingStorage()
    storage.put("_staging/f1/old.pdf", b"x", NOW - timedelta(hours=2))
    storage.put("documents/old.pdf", b"x", NOW - timedelta(days=30))

    result = staging_sweep_service.sweep_orphaned_staging_objects(
        storage, ttl_seconds=3600, now=NOW
    )

    assert result.scanned == 2
    assert result.deleted == ["_staging/f1/old.pdf"]
    assert result.skipped == 1
    assert sorted(storage.objects) == ["documents/old.pdf"]
