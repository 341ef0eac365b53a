"""
Invitations component - Email invitations to collaborate on a container.
"""

from .component import (
    EMAIL_PATTERN,
    UNKNOWN_INVITER,
    accept_invitation,
    cancel_invitation,
    decline_invitation,
    list_container_invitations,
    list_user_invitations,
    normalize_email,
    send_invitation,
)
from .models import AcceptInvitationInput, SendInvitationInput

__all__ = [
    # Entry points
    "send_invitation",
    "accept_invitation",
    "decline_invitation",
    "cancel_invitation",
    "list_container_invitations",
    "list_user_invitations",
    # Helpers
    "normalize_email",
    "EMAIL_PATTERN",
    "UNKNOWN_INVITER",
    # Input models
    "SendInvitationInput",
    "AcceptInvitationInput",
]
