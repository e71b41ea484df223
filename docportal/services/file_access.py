"""Authorization gate for file modifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from docportal.config import settings
from docportal.models.document_file import DocumentFile, FileVisibility

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as resolved from the access token."""

    actor_id: str
    roles: frozenset[str] = field(default_factory=frozenset)
    groups: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return settings.admin_role in self.roles


class AccessPolicy(Protocol):
    def is_authorized(self, actor: Actor, record: DocumentFile) -> bool: ...


class FileAccessPolicy:
    """Default yes/no decision for replacing a file's content.

    Document-level access groups belong to the document service; files bound
    to a document are only modifiable here by admins or their uploader.
    """

    def is_authorized(self, actor: Actor, record: DocumentFile) -> bool:
        if actor.is_admin:
            return True
        if record.uploaded_by and record.uploaded_by == actor.actor_id:
            return True
        if record.document_id:
            return False
        if record.visibility == FileVisibility.team and record.team_id:
            team = record.team_id.lower()
            return any(group.lower() == team for group in actor.groups)
        return False


file_access_policy = FileAccessPolicy()
