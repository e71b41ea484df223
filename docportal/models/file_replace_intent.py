"""Durable log of in-flight file replacements."""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from docportal.db import Base


class ReplaceIntentStatus(enum.Enum):
    pending = "pending"
    blob_committed = "blob_committed"
    done = "done"
    failed = "failed"
    reconciled = "reconciled"
    superseded = "superseded"
    abandoned = "abandoned"


OPEN_INTENT_STATUSES = (ReplaceIntentStatus.pending, ReplaceIntentStatus.blob_committed)


class FileReplaceIntent(Base):
    """One row per replace attempt.

    Written as ``pending`` before any storage call, moved to ``blob_committed``
    once the permanent object has been overwritten and to ``done`` in the same
    transaction as the metadata update.
    """

    __tablename__ = "file_replace_intents"
    __table_args__ = (
        Index("ix_file_replace_intents_status_updated", "status", "updated_at"),
        Index("ix_file_replace_intents_file", "file_id"),
    )

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    file_id: Mapped[str] = mapped_column(String(64), nullable=False)
    staging_key: Mapped[str | None] = mapped_column(String(1024))
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    storage_bucket: Mapped[str] = mapped_column(String(100), nullable=False)
    new_file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    new_file_type: Mapped[str] = mapped_column(String(255), nullable=False)
    new_file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    expected_version: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ReplaceIntentStatus] = mapped_column(
        Enum(ReplaceIntentStatus), nullable=False, default=ReplaceIntentStatus.pending
    )
    failed_stage: Mapped[str | None] = mapped_column(String(40))
    last_error: Mapped[str | None] = mapped_column(Text)
    correlation_id: Mapped[str | None] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
