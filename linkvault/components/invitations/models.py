from dataclasses import dataclass

from linkvault.domain.entities import Container, PermissionLevel


@dataclass
class SendInvitationInput:
    container: Container
    email: str
    permission: PermissionLevel
    invited_by: str
    inviter_name: str | None = None
    # The owner's own address, when known, cannot be invited
    inviter_email: str | None = None


@dataclass
class AcceptInvitationInput:
    invitation_id: str
    user_id: str
    # When given, must match the invitation's address
    user_email: str | None = None
