"""
Sharing gateway ports: invitations, permission grants and share links.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from linkvault.domain.entities import PermissionGrant, ShareInvitation, ShareLink


class SharingGatewayPort(Protocol):
    # --- Invitations ---

    async def create_invitation(self, invitation: ShareInvitation) -> str: ...

    async def get_invitation(self, invitation_id: str) -> ShareInvitation | None: ...

    async def list_pending_for_container(
        self, container_id: str, now: datetime
    ) -> list[ShareInvitation]:
        """Pending, unexpired invitations for a container."""
        ...

    async def list_pending_for_email(self, email: str, now: datetime) -> list[ShareInvitation]:
        """Pending, unexpired invitations addressed to ``email`` (already normalized)."""
        ...

    async def update_invitation(self, invitation_id: str, changes: dict[str, Any]) -> None: ...

    async def delete_invitation(self, invitation_id: str) -> None: ...

    # --- Permission grants ---

    async def set_permission(self, grant: PermissionGrant) -> bool:
        """Upsert the grant for (container, user). Returns True if it was created."""
        ...

    async def get_permission(self, container_id: str, user_id: str) -> PermissionGrant | None: ...

    async def list_permissions(self, container_id: str) -> list[PermissionGrant]: ...

    async def list_permissions_for_user(self, user_id: str) -> list[PermissionGrant]: ...

    async def delete_permission(self, container_id: str, user_id: str) -> None: ...


class ShareLinkGatewayPort(Protocol):
    async def create(self, share_link: ShareLink) -> str: ...

    async def find_by_token(self, token: str) -> ShareLink | None:
        """Raw lookup; usability is decided by the caller."""
        ...

    async def increment_uses(self, share_link_id: str) -> None: ...

    async def list_active(self, container_id: str) -> list[ShareLink]: ...

    async def deactivate(self, share_link_id: str) -> None: ...
