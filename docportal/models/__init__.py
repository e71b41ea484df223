from docportal.models.document_file import DocumentFile, FileVisibility  # noqa: F401
from docportal.models.file_replace_intent import (  # noqa: F401
    FileReplaceIntent,
    ReplaceIntentStatus,
)
