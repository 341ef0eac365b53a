from dataclasses import dataclass

from linkvault.domain.entities import PermissionGrant, PermissionLevel


@dataclass
class GrantAccessInput:
    container_id: str
    owner_id: str
    user_id: str
    permission: PermissionLevel
    granted_by: str
    # Keep an existing higher grant instead of lowering it
    keep_higher: bool = False


@dataclass
class GrantAccessOutput:
    grant: PermissionGrant
    created: bool
