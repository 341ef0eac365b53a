"""
Collab component - Permission grants and collaborator membership.

Granting access touches two documents: the grant record and the container's
``authorized_users``. There is no transaction spanning them, so the steps run
in a fixed order (grant first, membership second) and a grant created by
this call is removed again if the membership write fails.
"""

from __future__ import annotations

import logging

from linkvault.domain.entities import Container, PermissionGrant, PermissionLevel
from linkvault.domain.errors import FieldError, GatewayError, NotFoundError, ValidationError
from linkvault.domain.policy import CollaboratorListing, collaborator_view, permission_rank
from linkvault.ports.clock import TimePort
from linkvault.ports.gateway import CollectionGatewayPort
from linkvault.ports.sharing import SharingGatewayPort
from linkvault.ports.users import UserDirectoryPort

from .models import GrantAccessInput, GrantAccessOutput

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown User"


async def grant_access(
    inp: GrantAccessInput,
    gateway: CollectionGatewayPort,
    sharing: SharingGatewayPort,
    time: TimePort,
) -> GrantAccessOutput:
    if inp.user_id == inp.owner_id:
        raise ValidationError(
            [
                FieldError(
                    code="owner_has_implicit_edit",
                    message="The owner already has full access",
                    field="user_id",
                )
            ]
        )

    existing = await sharing.get_permission(inp.container_id, inp.user_id)
    permission = inp.permission
    if (
        existing is not None
        and inp.keep_higher
        and permission_rank(existing.permission) > permission_rank(permission)
    ):
        permission = existing.permission

    grant = PermissionGrant(
        container_id=inp.container_id,
        user_id=inp.user_id,
        permission=permission,
        granted_by=existing.granted_by if existing else inp.granted_by,
        granted_at=existing.granted_at if existing else time.now_utc(),
        updated_at=time.now_utc() if existing else None,
    )

    # 1. Grant record
    created = await sharing.set_permission(grant)

    # 2. Membership (union, safe under concurrent acceptances)
    try:
        await gateway.add_authorized_user(inp.container_id, inp.user_id)
    except (GatewayError, NotFoundError):
        if created:
            try:
                await sharing.delete_permission(inp.container_id, inp.user_id)
            except GatewayError as undo_error:
                logger.error(
                    "Grant for %s on %s left without membership: %s",
                    inp.user_id,
                    inp.container_id,
                    undo_error,
                )
        raise

    return GrantAccessOutput(grant=grant, created=created)


async def set_permission(
    container: Container,
    user_id: str,
    permission: PermissionLevel,
    granted_by: str,
    sharing: SharingGatewayPort,
    time: TimePort,
) -> PermissionGrant:
    """Change the level of an existing collaborator (no membership change)."""
    if user_id == container.owner_id:
        raise ValidationError(
            [
                FieldError(
                    code="owner_has_implicit_edit",
                    message="The owner already has full access",
                    field="user_id",
                )
            ]
        )

    existing = await sharing.get_permission(container.id, user_id)
    grant = PermissionGrant(
        container_id=container.id,
        user_id=user_id,
        permission=permission,
        granted_by=existing.granted_by if existing else granted_by,
        granted_at=existing.granted_at if existing else time.now_utc(),
        updated_at=time.now_utc() if existing else None,
    )
    await sharing.set_permission(grant)
    return grant


async def get_permission(
    container_id: str, user_id: str, sharing: SharingGatewayPort
) -> PermissionGrant | None:
    return await sharing.get_permission(container_id, user_id)


async def list_permissions(container_id: str, sharing: SharingGatewayPort) -> list[PermissionGrant]:
    return await sharing.list_permissions(container_id)


async def remove_user(
    container_id: str,
    user_id: str,
    gateway: CollectionGatewayPort,
    sharing: SharingGatewayPort,
) -> None:
    """Revoke a collaborator (or let a collaborator leave)."""
    await gateway.remove_authorized_user(container_id, user_id)
    await sharing.delete_permission(container_id, user_id)


async def list_collaborators(
    container: Container,
    sharing: SharingGatewayPort,
    time: TimePort,
) -> CollaboratorListing:
    now = time.now_utc()
    grants = await sharing.list_permissions(container.id)
    invitations = await sharing.list_pending_for_container(container.id, now)
    return collaborator_view(container, grants, invitations, now)


async def display_name(user_id: str, users: UserDirectoryPort, fallback: str = UNKNOWN_USER) -> str:
    """Never raises: directory failures degrade to ``fallback``."""
    try:
        name = await users.get_display_name(user_id)
    except Exception as e:
        logger.warning("Display name lookup failed for %s: %s", user_id, e)
        return fallback
    return name or fallback


async def display_names(
    user_ids: list[str], users: UserDirectoryPort, fallback: str = UNKNOWN_USER
) -> dict[str, str]:
    return {uid: await display_name(uid, users, fallback) for uid in dict.fromkeys(user_ids)}
