"""File content replacement endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

from docportal.api.deps import get_current_user, get_db
from docportal.schemas.files import DocumentFileRead, FileReplaceResponse
from docportal.services.file_access import Actor
from docportal.services.file_replace import (
    AuthErrorKind,
    FileRecordNotFoundError,
    FileReplaceError,
    ReplaceAuthError,
    file_replacements,
)
from docportal.services.file_validation import FileValidationError

router = APIRouter(prefix="/files", tags=["files"])


def _request_id(request: Request | None) -> str | None:
    if request is None:
        return None
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else None


@router.put("/{file_id}", response_model=FileReplaceResponse)
def replace_file(
    file_id: str,
    request: Request = None,
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    current_user: Actor = Depends(get_current_user),
):
    if file is None:
        raise HTTPException(
            status_code=400, detail={"code": "missing_file", "message": "No file provided"}
        )
    data = file.file.read()

    try:
        result = file_replacements.replace(
            db=db,
            file_id=file_id,
            data=data,
            file_name=file.filename,
            content_type=file.content_type,
            actor=current_user,
            correlation_id=_request_id(request),
        )
    except ReplaceAuthError as exc:
        status_code = 401 if exc.kind == AuthErrorKind.unauthenticated else 403
        raise HTTPException(
            status_code=status_code, detail={"code": exc.kind.value, "message": exc.message}
        ) from exc
    except FileRecordNotFoundError as exc:
        raise HTTPException(
            status_code=404, detail={"code": "not_found", "message": "File not found"}
        ) from exc
    except FileValidationError as exc:
        raise HTTPException(
            status_code=400, detail={"code": exc.kind.value, "message": exc.message}
        ) from exc
    except FileReplaceError as exc:
        raise HTTPException(
            status_code=500,
            detail={
                "code": "file_replace_failed",
                "message": "Failed to replace file",
                "details": {"correlation_id": exc.correlation_id},
            },
        ) from exc

    return FileReplaceResponse(
        file=DocumentFileRead.model_validate(result.record),
        url=result.url,
    )
