"""Validation rules for replacement uploads and storage keys."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from docportal.config import settings

CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
DRIVE_LETTER_RE = re.compile(r"^[A-Za-z]:")
DOTS_AND_SPACES_RE = re.compile(r"^[\s.]+$")

RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)

ALLOWED_FILE_TYPES: dict[str, frozenset[str]] = {
    "application/pdf": frozenset({".pdf"}),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": frozenset(
        {".docx"}
    ),
    "application/msword": frozenset({".doc"}),
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": frozenset({".xlsx"}),
    "application/vnd.ms-excel": frozenset({".xls"}),
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": frozenset(
        {".pptx"}
    ),
    "application/vnd.ms-powerpoint": frozenset({".ppt"}),
    "text/plain": frozenset({".txt"}),
    "text/markdown": frozenset({".md", ".markdown"}),
    "image/jpeg": frozenset({".jpg", ".jpeg"}),
    "image/png": frozenset({".png"}),
    "image/gif": frozenset({".gif"}),
    "image/webp": frozenset({".webp"}),
    "image/svg+xml": frozenset({".svg"}),
}

ALLOWED_EXTENSIONS = frozenset(ext for exts in ALLOWED_FILE_TYPES.values() for ext in exts)


class ValidationKind(enum.Enum):
    path_traversal = "path_traversal"
    invalid_type = "invalid_type"
    invalid_size = "invalid_size"
    invalid_name = "invalid_name"


class FileValidationError(ValueError):
    """File validation failure, classified by ``kind``."""

    def __init__(self, kind: ValidationKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class ValidatedUpload:
    file_name: str
    content_type: str
    extension: str
    size: int


def file_extension(filename: str) -> str:
    """Return the lower-cased extension with its dot, or an empty string."""
    last_dot = filename.rfind(".")
    if last_dot == -1 or last_dot == len(filename) - 1:
        return ""
    return filename[last_dot:].lower()


def _check_name(filename: str, max_length: int) -> None:
    if not filename or not filename.strip():
        raise FileValidationError(ValidationKind.invalid_name, "Filename cannot be empty")
    if (
        ".." in filename
        or "/" in filename
        or "\\" in filename
        or DRIVE_LETTER_RE.match(filename)
    ):
        raise FileValidationError(
            ValidationKind.path_traversal,
            "Filename contains invalid characters (path traversal attempt detected)",
        )
    if CONTROL_CHARS_RE.search(filename):
        raise FileValidationError(
            ValidationKind.invalid_name, "Filename contains invalid control characters"
        )
    if len(filename) > max_length:
        raise FileValidationError(
            ValidationKind.invalid_name,
            f"Filename exceeds maximum length of {max_length} characters",
        )
    base_name = filename.split(".")[0].strip().upper()
    if base_name in RESERVED_NAMES:
        raise FileValidationError(
            ValidationKind.invalid_name, f"Filename uses a reserved system name: {base_name}"
        )
    if DOTS_AND_SPACES_RE.match(filename):
        raise FileValidationError(
            ValidationKind.invalid_name, "Filename cannot consist only of dots or spaces"
        )


def _check_type(filename: str, content_type: str | None) -> str:
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if mime not in ALLOWED_FILE_TYPES:
        raise FileValidationError(
            ValidationKind.invalid_type, f'MIME type "{content_type}" is not allowed'
        )
    ext = file_extension(filename)
    if not ext:
        raise FileValidationError(
            ValidationKind.invalid_type, "File must have a valid extension"
        )
    if ext not in ALLOWED_EXTENSIONS:
        raise FileValidationError(
            ValidationKind.invalid_type, f'File extension "{ext}" is not allowed'
        )
    valid_extensions = ALLOWED_FILE_TYPES[mime]
    if ext not in valid_extensions:
        raise FileValidationError(
            ValidationKind.invalid_type,
            f'File extension "{ext}" does not match MIME type "{mime}". '
            f"Expected one of: {', '.join(sorted(valid_extensions))}",
        )
    return mime


def _check_size(size: int, max_size: int) -> None:
    if size <= 0:
        raise FileValidationError(ValidationKind.invalid_size, "File is empty")
    if size > max_size:
        raise FileValidationError(
            ValidationKind.invalid_size,
            f"File size ({size / 1024 / 1024:.2f}MB) exceeds maximum allowed size "
            f"({max_size / 1024 / 1024:g}MB)",
        )


def validate_upload(
    *,
    filename: str | None,
    content_type: str | None,
    size: int,
    max_size: int | None = None,
    max_name_length: int | None = None,
) -> ValidatedUpload:
    """Validate name, then type, then size. Performs no I/O."""
    name = filename or ""
    _check_name(name, max_name_length or settings.file_max_name_length)
    mime = _check_type(name, content_type)
    _check_size(size, max_size or settings.file_max_size_bytes)
    return ValidatedUpload(
        file_name=name.strip(),
        content_type=mime,
        extension=file_extension(name),
        size=size,
    )


def validate_storage_key(key: str) -> str:
    if not key or not key.strip():
        raise FileValidationError(ValidationKind.invalid_name, "Storage path cannot be empty")
    if ".." in key:
        raise FileValidationError(
            ValidationKind.path_traversal, "Storage path contains path traversal attempt (..)"
        )
    if key.startswith(("/", "\\")) or DRIVE_LETTER_RE.match(key):
        raise FileValidationError(
            ValidationKind.path_traversal, "Storage path must be relative, not absolute"
        )
    if CONTROL_CHARS_RE.search(key):
        raise FileValidationError(
            ValidationKind.invalid_name, "Storage path contains invalid control characters"
        )
    return key
