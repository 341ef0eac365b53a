"""
Invitations component - Email invitation lifecycle.

State machine:
    pending -> accepted   (terminal)
    pending -> declined   (terminal)
    pending -> cancelled  (sender side; hard delete, no stored state)

Expiry is derived from ``expires_at`` on every read and never stored.

Accept runs three writes in a fixed order: grant, membership, status. The
invitation only becomes ``accepted`` after access has been granted, so a
failure part-way leaves it ``pending`` and the user can retry.
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta

from linkvault.components.collab import GrantAccessInput, display_name, grant_access
from linkvault.domain.entities import PermissionGrant, ShareInvitation
from linkvault.domain.errors import (
    ConflictError,
    ExpiredError,
    FieldError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from linkvault.ports.clock import TimePort
from linkvault.ports.gateway import CollectionGatewayPort
from linkvault.ports.sharing import SharingGatewayPort
from linkvault.ports.users import UserDirectoryPort
from linkvault.rules.models import InvitationRules

from .models import AcceptInvitationInput, SendInvitationInput

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

UNKNOWN_INVITER = "Someone"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def send_invitation(
    inp: SendInvitationInput,
    sharing: SharingGatewayPort,
    time: TimePort,
    rules: InvitationRules,
) -> ShareInvitation:
    email = normalize_email(inp.email)
    if not EMAIL_PATTERN.match(email):
        raise ValidationError(
            [FieldError(code="email_invalid", message="A valid email is required", field="email")]
        )

    if inp.inviter_email and normalize_email(inp.inviter_email) == email:
        raise ValidationError(
            [
                FieldError(
                    code="owner_has_implicit_edit",
                    message="You cannot invite yourself",
                    field="email",
                )
            ]
        )

    now = time.now_utc()
    pending = await sharing.list_pending_for_container(inp.container.id, now)
    if any(inv.email == email for inv in pending):
        raise ConflictError("An invitation has already been sent to this email")

    invitation = ShareInvitation(
        container_id=inp.container.id,
        container_name=inp.container.name,
        email=email,
        permission=inp.permission,
        invited_by=inp.invited_by,
        inviter_name=inp.inviter_name,
        status="pending",
        created_at=now,
        expires_at=now + timedelta(days=rules.valid_days),
    )
    invitation_id = await sharing.create_invitation(invitation)
    logger.info("Invited %s to container %s as %s", email, inp.container.id, inp.permission)
    return invitation.model_copy(update={"id": invitation_id})


async def list_container_invitations(
    container_id: str, sharing: SharingGatewayPort, time: TimePort
) -> list[ShareInvitation]:
    return await sharing.list_pending_for_container(container_id, time.now_utc())


async def list_user_invitations(
    email: str,
    sharing: SharingGatewayPort,
    users: UserDirectoryPort,
    time: TimePort,
) -> list[ShareInvitation]:
    """Pending invitations for an address, with missing inviter names filled in."""
    invitations = await sharing.list_pending_for_email(normalize_email(email), time.now_utc())
    results: list[ShareInvitation] = []
    for inv in invitations:
        if not inv.inviter_name:
            name = await display_name(inv.invited_by, users, fallback=UNKNOWN_INVITER)
            inv = inv.model_copy(update={"inviter_name": name})
        results.append(inv)
    return results


async def _load_open_invitation(
    invitation_id: str, sharing: SharingGatewayPort, time: TimePort
) -> ShareInvitation:
    invitation = await sharing.get_invitation(invitation_id)
    if invitation is None:
        raise NotFoundError("invitation", invitation_id)
    if invitation.is_expired(time.now_utc()):
        raise ExpiredError("invitation", invitation_id)
    return invitation


async def accept_invitation(
    inp: AcceptInvitationInput,
    gateway: CollectionGatewayPort,
    sharing: SharingGatewayPort,
    time: TimePort,
) -> PermissionGrant:
    invitation = await _load_open_invitation(inp.invitation_id, sharing, time)

    if inp.user_email is not None and normalize_email(inp.user_email) != invitation.email:
        raise PermissionDenied("accept this invitation", invitation.container_id)
    if invitation.status == "declined":
        raise ConflictError("Invitation was already declined")
    if invitation.status == "accepted":
        # Already applied; later permission changes and removals stand.
        current = await sharing.get_permission(invitation.container_id, inp.user_id)
        if current is None:
            raise ConflictError("Invitation was already accepted and access has since been removed")
        return current

    container = await gateway.get(invitation.container_id)
    if container is None:
        raise NotFoundError("container", invitation.container_id)

    # Steps 1 and 2: grant, then membership
    result = await grant_access(
        GrantAccessInput(
            container_id=container.id,
            owner_id=container.owner_id,
            user_id=inp.user_id,
            permission=invitation.permission,
            granted_by=invitation.invited_by,
        ),
        gateway,
        sharing,
        time,
    )

    # Step 3: status, only once access exists
    await sharing.update_invitation(
        invitation.id, {"status": "accepted", "responded_at": time.now_utc()}
    )
    logger.info("Invitation %s accepted by %s", invitation.id, inp.user_id)

    return result.grant


async def decline_invitation(invitation_id: str, sharing: SharingGatewayPort, time: TimePort) -> None:
    invitation = await _load_open_invitation(invitation_id, sharing, time)
    if invitation.status != "pending":
        raise ConflictError(f"Invitation is already {invitation.status}")
    await sharing.update_invitation(
        invitation_id, {"status": "declined", "responded_at": time.now_utc()}
    )


async def cancel_invitation(invitation_id: str, sharing: SharingGatewayPort) -> None:
    invitation = await sharing.get_invitation(invitation_id)
    if invitation is None:
        raise NotFoundError("invitation", invitation_id)
    await sharing.delete_invitation(invitation_id)
