"""
Collab component - Collaboration management for containers.

Manages permission grants and ``authorized_users`` membership, lists
collaborators (with pending invitees kept apart) and resolves display names.
"""

from .component import (
    UNKNOWN_USER,
    display_name,
    display_names,
    get_permission,
    grant_access,
    list_collaborators,
    list_permissions,
    remove_user,
    set_permission,
)
from .models import GrantAccessInput, GrantAccessOutput

__all__ = [
    # Entry points
    "grant_access",
    "set_permission",
    "get_permission",
    "list_permissions",
    "remove_user",
    "list_collaborators",
    "display_name",
    "display_names",
    # Models
    "GrantAccessInput",
    "GrantAccessOutput",
    # Constants
    "UNKNOWN_USER",
]
