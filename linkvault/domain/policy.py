"""
Permission model.

Pure functions over (owner, authorized users, stored grants). No I/O.
The results are advisory: they drive what the client offers, the storage
layer does not enforce them.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from linkvault.domain.entities import (
    Container,
    PermissionGrant,
    PermissionLevel,
    ShareInvitation,
)

PERMISSION_RANK: dict[PermissionLevel, int] = {"view": 1, "comment": 2, "edit": 3}


def permission_rank(permission: PermissionLevel | None) -> int:
    if permission is None:
        return 0
    return PERMISSION_RANK[permission]


def find_grant(
    container_id: str, user_id: str, grants: Iterable[PermissionGrant]
) -> PermissionGrant | None:
    return next(
        (g for g in grants if g.container_id == container_id and g.user_id == user_id),
        None,
    )


def effective_permission(
    container: Container,
    viewer_id: str,
    grants: Iterable[PermissionGrant] = (),
) -> PermissionLevel | None:
    """
    Resolve the viewer's access level for a container.

    The owner always gets ``edit``; a stored grant can neither add to nor
    reduce that. Anyone else gets the level of their grant, or ``None``.
    """
    if viewer_id == container.owner_id:
        return "edit"

    grant = find_grant(container.id, viewer_id, grants)
    if grant is None:
        return None
    return grant.permission


def can_edit(container: Container, viewer_id: str, grants: Iterable[PermissionGrant] = ()) -> bool:
    return effective_permission(container, viewer_id, grants) == "edit"


def can_comment(
    container: Container, viewer_id: str, grants: Iterable[PermissionGrant] = ()
) -> bool:
    return permission_rank(effective_permission(container, viewer_id, grants)) >= PERMISSION_RANK[
        "comment"
    ]


def can_view(container: Container, viewer_id: str, grants: Iterable[PermissionGrant] = ()) -> bool:
    return effective_permission(container, viewer_id, grants) is not None


def can_manage_sharing(container: Container, viewer_id: str) -> bool:
    # Only the owner invites, removes collaborators or issues share links
    return viewer_id == container.owner_id


# --- Collaborator listing ---


@dataclass(frozen=True)
class Collaborator:
    user_id: str
    permission: PermissionLevel
    is_owner: bool = False


@dataclass(frozen=True)
class PendingInvitee:
    invitation_id: str
    email: str
    permission: PermissionLevel
    expires_at: datetime


@dataclass(frozen=True)
class CollaboratorListing:
    collaborators: list[Collaborator] = field(default_factory=list)
    pending: list[PendingInvitee] = field(default_factory=list)


def collaborator_view(
    container: Container,
    grants: Iterable[PermissionGrant],
    invitations: Iterable[ShareInvitation],
    now: datetime,
) -> CollaboratorListing:
    """
    Split a container's people into those with access and those merely invited.

    A collaborator needs both membership in ``authorized_users`` and a grant;
    an invitation never confers access, and expired invitations are dropped.
    """
    grants = list(grants)
    collaborators = [Collaborator(user_id=container.owner_id, permission="edit", is_owner=True)]
    for user_id in container.authorized_users:
        if user_id == container.owner_id:
            continue
        grant = find_grant(container.id, user_id, grants)
        if grant is not None:
            collaborators.append(Collaborator(user_id=user_id, permission=grant.permission))

    pending = [
        PendingInvitee(
            invitation_id=inv.id,
            email=inv.email,
            permission=inv.permission,
            expires_at=inv.expires_at,
        )
        for inv in invitations
        if inv.container_id == container.id and inv.is_pending(now)
    ]
    return CollaboratorListing(collaborators=collaborators, pending=pending)
