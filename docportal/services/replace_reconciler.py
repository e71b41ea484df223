"""Close out replace intents that never reached ``done``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docportal.config import settings
from docportal.models.file_replace_intent import (
    OPEN_INTENT_STATUSES,
    FileReplaceIntent,
    ReplaceIntentStatus,
)
from docportal.services.file_replace import DocumentFileStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    reconciled: list[str] = field(default_factory=list)
    superseded: list[str] = field(default_factory=list)
    abandoned: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class ReplaceIntentReconciler:
    def __init__(self) -> None:
        self.records = DocumentFileStore()

    def stale_intents(self, db: Session, cutoff: datetime) -> list[FileReplaceIntent]:
        return (
            db.query(FileReplaceIntent)
            .filter(FileReplaceIntent.status.in_(OPEN_INTENT_STATUSES))
            .filter(FileReplaceIntent.updated_at < cutoff)
            .order_by(FileReplaceIntent.created_at.asc())
            .all()
        )

    def _has_later_attempt(self, db: Session, intent: FileReplaceIntent) -> bool:
        """A later attempt on the same file may have overwritten the blob again."""
        later = (
            db.query(FileReplaceIntent.id)
            .filter(FileReplaceIntent.file_id == intent.file_id)
            .filter(FileReplaceIntent.id != intent.id)
            .filter(FileReplaceIntent.created_at > intent.created_at)
            .filter(FileReplaceIntent.status != ReplaceIntentStatus.failed)
            .first()
        )
        return later is not None

    def _reapply(self, db: Session, intent: FileReplaceIntent, now: datetime) -> bool:
        affected = self.records.update_one(
            db,
            intent.file_id,
            intent.expected_version,
            {
                "file_name": intent.new_file_name,
                "file_type": intent.new_file_type,
                "file_size": intent.new_file_size,
                "updated_at": now,
            },
        )
        return affected == 1

    def reconcile(
        self,
        db: Session,
        *,
        grace_seconds: int | None = None,
        now: datetime | None = None,
    ) -> ReconcileResult:
        now = now or datetime.now(timezone.utc)
        grace = grace_seconds if grace_seconds is not None else settings.replace_intent_grace_seconds
        cutoff = now - timedelta(seconds=grace)
        result = ReconcileResult()

        for intent in self.stale_intents(db, cutoff):
            intent_id = intent.id
            extra = {"intent_id": intent_id, "file_id": intent.file_id, "key": intent.file_path}
            try:
                if intent.status == ReplaceIntentStatus.pending:
                    # Unknown whether the blob was overwritten; the staging
                    # sweep reclaims any staging object.
                    intent.status = ReplaceIntentStatus.abandoned
                    db.commit()
                    result.abandoned.append(intent_id)
                    logger.warning("replace_intent_abandoned", extra=extra)
                    continue

                # Only the newest blob write on a file describes its current bytes.
                if not self._has_later_attempt(db, intent) and self._reapply(db, intent, now):
                    intent.status = ReplaceIntentStatus.reconciled
                    db.commit()
                    result.reconciled.append(intent_id)
                    logger.info("replace_intent_reconciled", extra=extra)
                else:
                    intent.status = ReplaceIntentStatus.superseded
                    db.commit()
                    result.superseded.append(intent_id)
                    logger.warning(
                        "replace_intent_superseded expected_version=%s",
                        intent.expected_version,
                        extra=extra,
                    )
            except SQLAlchemyError:
                db.rollback()
                result.errors.append(intent_id)
                logger.exception("replace_intent_reconcile_failed", extra=extra)
        return result


replace_reconciler = ReplaceIntentReconciler()
