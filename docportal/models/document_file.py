"""File metadata model for objects kept in S3-compatible storage."""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from docportal.db import Base


class FileVisibility(enum.Enum):
    team = "team"
    public = "public"


class DocumentFile(Base):
    """Metadata record for a file attached to a document or an application.

    ``file_path`` always points at a committed object in ``storage_bucket``;
    staging objects are never referenced from here.
    """

    __tablename__ = "document_files"
    __table_args__ = (
        Index("ix_document_files_document", "document_id"),
        Index("ix_document_files_application", "application_id"),
    )

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    storage_bucket: Mapped[str] = mapped_column(String(100), nullable=False)
    document_id: Mapped[str | None] = mapped_column(String(64))
    application_id: Mapped[str | None] = mapped_column(String(64))
    uploaded_by: Mapped[str | None] = mapped_column(String(64))
    visibility: Mapped[FileVisibility] = mapped_column(
        Enum(FileVisibility), nullable=False, default=FileVisibility.team
    )
    team_id: Mapped[str | None] = mapped_column(String(64))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<DocumentFile {self.id}: {self.file_path} v{self.version}>"
