from dataclasses import dataclass

from linkvault.domain.entities import PermissionGrant, PermissionLevel, ShareLink


@dataclass
class CreateShareLinkInput:
    container_id: str
    created_by: str
    permission: PermissionLevel = "view"
    expires_in_days: int | None = None
    max_uses: int | None = None


@dataclass
class RedeemShareLinkOutput:
    share_link: ShareLink
    container_id: str
    # None when the redeemer owns the container
    grant: PermissionGrant | None = None
