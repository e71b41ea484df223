"""Replace the stored content of an existing file.

The object store and the database cannot share a transaction, so a replace
is run as a fixed sequence of stages:

    validate -> staging write -> staging read -> commit -> metadata update -> cleanup

New bytes are first written under the staging namespace, read back in full,
and only then copied over the permanent ``file_path``. The metadata row is
updated last, guarded by the record's ``version`` column. The first failing
stage stops the run; every failure after a successful staging write removes
the staging object on a best-effort basis.

A failed metadata update after a successful commit leaves the blob newer than
its metadata. The ``file_replace_intents`` row for that run stays at
``blob_committed`` so :mod:`docportal.services.replace_reconciler` can
re-apply or flag it.
"""

from __future__ import annotations

import enum
import hashlib
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docportal.config import settings
from docportal.metrics import FILE_REPLACE_CLEANUP_FAILURES, observe_file_replace
from docportal.models.document_file import DocumentFile
from docportal.models.file_replace_intent import FileReplaceIntent, ReplaceIntentStatus
from docportal.services.file_access import AccessPolicy, Actor, file_access_policy
from docportal.services.file_validation import (
    FileValidationError,
    ValidatedUpload,
    validate_storage_key,
    validate_upload,
)
from docportal.services.object_storage import StorageService, get_s3_storage

logger = logging.getLogger(__name__)


class ReplaceState(enum.Enum):
    validating = "validating"
    staging_write = "staging_write"
    staging_read = "staging_read"
    commit = "commit"
    metadata_update = "metadata_update"
    cleanup = "cleanup"
    done = "done"
    validation_failed = "validation_failed"
    intent_failed = "intent_failed"
    staging_write_failed = "staging_write_failed"
    staging_read_failed = "staging_read_failed"
    commit_failed = "commit_failed"
    metadata_update_failed = "metadata_update_failed"
    failed = "failed"


class AuthErrorKind(enum.Enum):
    unauthenticated = "unauthenticated"
    forbidden = "forbidden"


class ReplaceAuthError(Exception):
    def __init__(self, kind: AuthErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class FileRecordNotFoundError(LookupError):
    """No metadata row exists for the requested file id."""


class FileReplaceError(Exception):
    """A stage failed after validation. Detail is for logs, not callers."""

    stage = "replace"
    failed_state = ReplaceState.failed

    def __init__(self, file_id: str, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.file_id = file_id
        self.message = message
        self.reason = reason
        self.correlation_id: str | None = None


class IntentLogError(FileReplaceError):
    stage = "intent"
    failed_state = ReplaceState.intent_failed


class StagingWriteError(FileReplaceError):
    stage = "staging_write"
    failed_state = ReplaceState.staging_write_failed


class StagingReadError(FileReplaceError):
    stage = "staging_read"
    failed_state = ReplaceState.staging_read_failed


class CommitError(FileReplaceError):
    stage = "commit"
    failed_state = ReplaceState.commit_failed


class MetadataUpdateError(FileReplaceError):
    stage = "metadata_update"
    failed_state = ReplaceState.metadata_update_failed


def is_staging_key(key: str, prefix: str | None = None) -> bool:
    return key.startswith(prefix or settings.staging_prefix)


def build_staging_key(file_id: str, extension: str, prefix: str | None = None) -> str:
    token = uuid.uuid4().hex
    key = f"{prefix or settings.staging_prefix}{file_id}/{token}{extension.lower()}"
    return validate_storage_key(key)


class DocumentFileStore:
    """Relational side of a replace: one select and one conditional update."""

    def select_one(self, db: Session, file_id: str) -> DocumentFile | None:
        return db.get(DocumentFile, file_id)

    def update_one(
        self,
        db: Session,
        file_id: str,
        expected_version: int,
        values: dict,
    ) -> int:
        stmt = (
            update(DocumentFile)
            .where(DocumentFile.id == file_id)
            .where(DocumentFile.version == expected_version)
            .values(**values, version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        return result.rowcount or 0


@dataclass
class ReplaceRun:
    """Mutable state of one replace call."""

    file_id: str
    file_path: str
    bucket: str
    expected_version: int
    correlation_id: str
    state: ReplaceState = ReplaceState.validating
    history: list[ReplaceState] = field(default_factory=list)
    staging_key: str | None = None
    intent: FileReplaceIntent | None = None
    intent_id: str | None = None
    blob_committed: bool = False
    started_at: float = field(default_factory=time.monotonic)

    def log_extra(self, **extra) -> dict:
        payload = {"file_id": self.file_id, "correlation_id": self.correlation_id}
        payload.update(extra)
        return payload


@dataclass
class ReplaceResult:
    record: DocumentFile
    url: str
    state: ReplaceState
    history: list[ReplaceState]
    correlation_id: str
    staging_removed: bool


class FileReplaceService:
    """Stage-by-stage file content replacement."""

    def __init__(self) -> None:
        self.storage: StorageService | None = None
        self.records = DocumentFileStore()
        self.access_policy: AccessPolicy = file_access_policy

    def _storage_client(self, bucket: str) -> StorageService:
        if self.storage is not None:
            return self.storage
        return get_s3_storage(bucket)

    # -- state machine -------------------------------------------------------

    def _transition(self, run: ReplaceRun, state: ReplaceState) -> None:
        run.state = state
        run.history.append(state)
        logger.info(
            "file_replace_transition state=%s",
            state.value,
            extra=run.log_extra(stage=state.value),
        )

    def _finish(self, run: ReplaceRun, outcome: ReplaceState) -> None:
        observe_file_replace(outcome.value, time.monotonic() - run.started_at)

    # -- intent log ----------------------------------------------------------

    def _open_intent(self, db: Session, run: ReplaceRun, upload: ValidatedUpload) -> None:
        run.intent_id = str(uuid.uuid4())
        intent = FileReplaceIntent(
            id=run.intent_id,
            file_id=run.file_id,
            staging_key=run.staging_key,
            file_path=run.file_path,
            storage_bucket=run.bucket,
            new_file_name=upload.file_name,
            new_file_type=upload.content_type,
            new_file_size=upload.size,
            expected_version=run.expected_version,
            status=ReplaceIntentStatus.pending,
            correlation_id=run.correlation_id,
        )
        try:
            db.add(intent)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise IntentLogError(run.file_id, f"Could not record replace intent: {exc}") from exc
        run.intent = intent

    def _mark_intent(
        self,
        db: Session,
        run: ReplaceRun,
        status: ReplaceIntentStatus,
        *,
        failed_stage: str | None = None,
        error: str | None = None,
    ) -> None:
        """Best-effort intent bookkeeping; the replace outcome never depends on it."""
        if run.intent is None:
            return
        try:
            run.intent.status = status
            if failed_stage is not None:
                run.intent.failed_stage = failed_stage
            if error is not None:
                run.intent.last_error = error[:2000]
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.warning(
                "file_replace_intent_update_failed status=%s",
                status.value,
                exc_info=True,
                extra=run.log_extra(intent_id=run.intent_id),
            )

    # -- stages --------------------------------------------------------------

    def write_staging(
        self, storage: StorageService, run: ReplaceRun, data: bytes, content_type: str
    ) -> str:
        if run.staging_key is None:
            raise StagingWriteError(run.file_id, "No staging key allocated")
        try:
            storage.upload(run.staging_key, data, content_type)
        except Exception as exc:
            raise StagingWriteError(run.file_id, f"Staging upload failed: {exc}") from exc
        return run.staging_key

    def read_staging(
        self, storage: StorageService, run: ReplaceRun, expected_digest: str, expected_size: int
    ) -> bytes:
        try:
            staged = storage.download(run.staging_key)
        except Exception as exc:
            raise StagingReadError(run.file_id, f"Staging read-back failed: {exc}") from exc
        if len(staged) != expected_size:
            raise StagingReadError(
                run.file_id,
                f"Staged object is {len(staged)} bytes, expected {expected_size}",
                reason="size_mismatch",
            )
        if hashlib.sha256(staged).hexdigest() != expected_digest:
            raise StagingReadError(
                run.file_id, "Staged object checksum mismatch", reason="checksum_mismatch"
            )
        return staged

    def commit(
        self, storage: StorageService, run: ReplaceRun, content: bytes, content_type: str
    ) -> None:
        try:
            storage.upload(run.file_path, content, content_type)
        except Exception as exc:
            raise CommitError(run.file_id, f"Overwrite of {run.file_path} failed: {exc}") from exc
        run.blob_committed = True

    def update_metadata(
        self, db: Session, run: ReplaceRun, upload: ValidatedUpload, updated_at: datetime
    ) -> None:
        values = {
            "file_name": upload.file_name,
            "file_type": upload.content_type,
            "file_size": upload.size,
            "updated_at": updated_at,
        }
        try:
            affected = self.records.update_one(db, run.file_id, run.expected_version, values)
            if affected != 1:
                db.rollback()
                reason = (
                    "not_found"
                    if self.records.select_one(db, run.file_id) is None
                    else "version_conflict"
                )
                raise MetadataUpdateError(
                    run.file_id,
                    f"Metadata update affected {affected} rows ({reason})",
                    reason=reason,
                )
            if run.intent is not None:
                run.intent.status = ReplaceIntentStatus.done
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise MetadataUpdateError(
                run.file_id, f"Metadata update failed: {exc}", reason="database_error"
            ) from exc

    def cleanup(self, storage: StorageService, run: ReplaceRun) -> bool:
        """Remove the staging object. Never raises."""
        if not run.staging_key:
            return True
        try:
            storage.delete([run.staging_key])
        except Exception:
            FILE_REPLACE_CLEANUP_FAILURES.inc()
            logger.warning(
                "file_replace_cleanup_failed",
                exc_info=True,
                extra=run.log_extra(stage="cleanup", key=run.staging_key),
            )
            return False
        return True

    # -- orchestration -------------------------------------------------------

    def _fail(
        self,
        db: Session,
        storage: StorageService | None,
        run: ReplaceRun,
        exc: FileReplaceError,
    ) -> None:
        exc.correlation_id = run.correlation_id
        self._transition(run, exc.failed_state)
        logger.error(
            "file_replace_stage_failed reason=%s cause=%s",
            exc.reason,
            exc.message,
            extra=run.log_extra(stage=exc.stage),
        )
        if storage is not None and run.staging_key and exc.stage != StagingWriteError.stage:
            self._transition(run, ReplaceState.cleanup)
            self.cleanup(storage, run)
        if run.blob_committed:
            # Blob and metadata now disagree; leave the intent open for reconciliation.
            logger.error(
                "file_replace_inconsistent blob_committed=true metadata_updated=false",
                extra=run.log_extra(stage=exc.stage, key=run.file_path),
            )
            self._mark_intent(
                db,
                run,
                ReplaceIntentStatus.blob_committed,
                failed_stage=exc.stage,
                error=exc.message,
            )
        else:
            self._mark_intent(
                db, run, ReplaceIntentStatus.failed, failed_stage=exc.stage, error=exc.message
            )
        self._transition(run, ReplaceState.failed)
        self._finish(run, exc.failed_state)

    def replace(
        self,
        *,
        db: Session,
        file_id: str,
        data: bytes,
        file_name: str | None,
        content_type: str | None,
        actor: Actor | None,
        correlation_id: str | None = None,
    ) -> ReplaceResult:
        correlation_id = correlation_id or uuid.uuid4().hex
        if actor is None:
            raise ReplaceAuthError(AuthErrorKind.unauthenticated, "Unauthorized")

        record = self.records.select_one(db, file_id)
        if record is None:
            raise FileRecordNotFoundError(file_id)
        if not self.access_policy.is_authorized(actor, record):
            logger.warning(
                "file_replace_forbidden actor=%s",
                actor.actor_id,
                extra={"file_id": file_id, "correlation_id": correlation_id},
            )
            raise ReplaceAuthError(
                AuthErrorKind.forbidden,
                "Forbidden: You do not have permission to modify this file",
            )

        run = ReplaceRun(
            file_id=record.id,
            file_path=record.file_path,
            bucket=record.storage_bucket,
            expected_version=record.version,
            correlation_id=correlation_id,
        )
        self._transition(run, ReplaceState.validating)
        try:
            upload = validate_upload(filename=file_name, content_type=content_type, size=len(data))
        except FileValidationError as exc:
            logger.info(
                "file_replace_rejected kind=%s",
                exc.kind.value,
                extra=run.log_extra(stage=ReplaceState.validating.value),
            )
            self._transition(run, ReplaceState.validation_failed)
            self._transition(run, ReplaceState.failed)
            self._finish(run, ReplaceState.validation_failed)
            raise

        storage = self._storage_client(run.bucket)
        digest = hashlib.sha256(data).hexdigest()
        try:
            run.staging_key = build_staging_key(run.file_id, upload.extension)
            self._open_intent(db, run, upload)
        except FileReplaceError as exc:
            run.staging_key = None
            self._fail(db, None, run, exc)
            raise
        except FileValidationError as exc:
            run.staging_key = None
            wrapped = IntentLogError(run.file_id, f"Unusable staging key: {exc.message}")
            self._fail(db, None, run, wrapped)
            raise wrapped from exc

        try:
            self._transition(run, ReplaceState.staging_write)
            self.write_staging(storage, run, data, upload.content_type)
            self._transition(run, ReplaceState.staging_read)
            staged = self.read_staging(storage, run, digest, upload.size)
            self._transition(run, ReplaceState.commit)
            self.commit(storage, run, staged, upload.content_type)
            self._mark_intent(db, run, ReplaceIntentStatus.blob_committed)
            self._transition(run, ReplaceState.metadata_update)
            self.update_metadata(db, run, upload, datetime.now(timezone.utc))
        except FileReplaceError as exc:
            self._fail(db, storage, run, exc)
            raise

        self._transition(run, ReplaceState.cleanup)
        removed = self.cleanup(storage, run)
        self._transition(run, ReplaceState.done)
        self._finish(run, ReplaceState.done)

        updated = self.records.select_one(db, run.file_id)
        db.refresh(updated)
        logger.info(
            "file_replace_success size=%s version=%s",
            updated.file_size,
            updated.version,
            extra=run.log_extra(stage=ReplaceState.done.value, key=run.file_path),
        )
        return ReplaceResult(
            record=updated,
            url=storage.public_url(run.file_path),
            state=run.state,
            history=list(run.history),
            correlation_id=run.correlation_id,
            staging_removed=removed,
        )


file_replacements = FileReplaceService()
