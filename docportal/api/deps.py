from fastapi import Depends

from docportal.db import get_db
from docportal.services.auth_dependencies import require_user_auth


def get_current_user(auth=Depends(require_user_auth)):
    """Get the authenticated actor (id, roles, groups)."""
    return auth


__all__ = [
    "get_db",
    "get_current_user",
    "require_user_auth",
]
