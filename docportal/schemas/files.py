"""Pydantic schemas for file replacement responses."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from docportal.models.document_file import FileVisibility


class DocumentFileRead(BaseModel):
    """Schema for reading file metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    file_name: str
    file_type: str
    file_size: int
    file_path: str
    storage_bucket: str
    document_id: str | None = None
    application_id: str | None = None
    uploaded_by: str | None = None
    visibility: FileVisibility
    team_id: str | None = None
    version: int
    updated_at: datetime


class FileReplaceResponse(BaseModel):
    success: bool = True
    file: DocumentFileRead
    url: str
    message: str = "File replaced successfully"
