"""
Invitations component unit tests.

Covers the pending -> accepted / declined / cancelled lifecycle, derived
expiry and the accept ordering (grant, membership, status).
"""

from __future__ import annotations

import pytest

from linkvault.adapters.clock import FrozenClock
from linkvault.adapters.memory import (
    InMemoryCollectionGateway,
    InMemorySharingGateway,
    InMemoryUserDirectory,
)
from linkvault.components.collab import remove_user, set_permission
from linkvault.components.invitations import (
    UNKNOWN_INVITER,
    AcceptInvitationInput,
    SendInvitationInput,
    accept_invitation,
    cancel_invitation,
    decline_invitation,
    list_container_invitations,
    list_user_invitations,
    send_invitation,
)
from linkvault.domain.entities import Container, UserProfile
from linkvault.domain.errors import (
    ConflictError,
    ExpiredError,
    GatewayError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from linkvault.domain.policy import effective_permission
from linkvault.rules.models import InvitationRules

# --- Fixtures ---


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def gateway(clock: FrozenClock) -> InMemoryCollectionGateway:
    return InMemoryCollectionGateway(clock)


@pytest.fixture
def sharing() -> InMemorySharingGateway:
    return InMemorySharingGateway()


@pytest.fixture
def container(gateway: InMemoryCollectionGateway) -> Container:
    c = Container(id="c1", name="Reading List", color="#6366f1", owner_id="alice")
    gateway.seed(c)
    return c


@pytest.fixture
def rules() -> InvitationRules:
    return InvitationRules()


async def _invite(container, sharing, clock, rules, email="bob@x.com", permission="view", **kw):
    return await send_invitation(
        SendInvitationInput(
            container=container,
            email=email,
            permission=permission,
            invited_by="alice",
            **kw,
        ),
        sharing,
        clock,
        rules,
    )


# --- Send ---


class TestSendInvitation:
    @pytest.mark.asyncio
    async def test_normalizes_email_and_sets_expiry(self, container, sharing, clock, rules) -> None:
        inv = await _invite(container, sharing, clock, rules, email="  Bob@X.com ")

        assert inv.email == "bob@x.com"
        assert inv.status == "pending"
        assert inv.container_name == "Reading List"
        assert (inv.expires_at - inv.created_at).days == 7

    @pytest.mark.asyncio
    async def test_duplicate_pending_is_a_conflict(self, container, sharing, clock, rules) -> None:
        await _invite(container, sharing, clock, rules)

        with pytest.raises(ConflictError):
            await _invite(container, sharing, clock, rules, email="BOB@x.com")

    @pytest.mark.asyncio
    async def test_expired_invitation_does_not_block_a_new_one(
        self, container, sharing, clock, rules
    ) -> None:
        await _invite(container, sharing, clock, rules)
        clock.advance(days=8)

        again = await _invite(container, sharing, clock, rules)
        assert again.status == "pending"

    @pytest.mark.asyncio
    async def test_invalid_email(self, container, sharing, clock, rules) -> None:
        with pytest.raises(ValidationError) as exc:
            await _invite(container, sharing, clock, rules, email="not-an-email")
        assert exc.value.codes == ["email_invalid"]

    @pytest.mark.asyncio
    async def test_cannot_invite_self(self, container, sharing, clock, rules) -> None:
        with pytest.raises(ValidationError):
            await _invite(
                container, sharing, clock, rules, email="alice@x.com", inviter_email="Alice@x.com"
            )


# --- Listing ---


class TestListInvitations:
    @pytest.mark.asyncio
    async def test_container_listing_hides_expired(self, container, sharing, clock, rules) -> None:
        await _invite(container, sharing, clock, rules, email="bob@x.com")
        clock.advance(days=3)
        await _invite(container, sharing, clock, rules, email="carol@x.com")
        clock.advance(days=5)

        pending = await list_container_invitations("c1", sharing, clock)
        assert [inv.email for inv in pending] == ["carol@x.com"]

    @pytest.mark.asyncio
    async def test_user_listing_fills_inviter_name(self, container, sharing, clock, rules) -> None:
        await _invite(container, sharing, clock, rules)
        users = InMemoryUserDirectory([UserProfile(id="alice", email="a@x.com", display_name="Alice")])

        invitations = await list_user_invitations("BOB@x.com", sharing, users, clock)

        assert [inv.inviter_name for inv in invitations] == ["Alice"]

    @pytest.mark.asyncio
    async def test_unknown_inviter_degrades(self, container, sharing, clock, rules) -> None:
        await _invite(container, sharing, clock, rules)
        users = InMemoryUserDirectory(fail_on={"get_display_name"})

        invitations = await list_user_invitations("bob@x.com", sharing, users, clock)

        assert invitations[0].inviter_name == UNKNOWN_INVITER


# --- Accept ---


class TestAcceptInvitation:
    @pytest.mark.asyncio
    async def test_accept_grants_access(self, gateway, container, sharing, clock, rules) -> None:
        inv = await _invite(container, sharing, clock, rules)

        grant = await accept_invitation(
            AcceptInvitationInput(invitation_id=inv.id, user_id="bob", user_email="bob@x.com"),
            gateway,
            sharing,
            clock,
        )

        stored = await sharing.get_invitation(inv.id)
        snapshot = gateway.snapshot("c1")
        assert grant.permission == "view"
        assert stored.status == "accepted"
        assert stored.responded_at == clock.now_utc()
        assert snapshot.authorized_users == ["bob"]
        assert effective_permission(snapshot, "bob", [grant]) == "view"

    @pytest.mark.asyncio
    async def test_accept_twice_is_idempotent(self, gateway, container, sharing, clock, rules) -> None:
        inv = await _invite(container, sharing, clock, rules)
        inp = AcceptInvitationInput(invitation_id=inv.id, user_id="bob")

        await accept_invitation(inp, gateway, sharing, clock)
        await accept_invitation(inp, gateway, sharing, clock)

        assert gateway.snapshot("c1").authorized_users == ["bob"]
        assert len(await sharing.list_permissions("c1")) == 1

    @pytest.mark.asyncio
    async def test_reaccept_keeps_later_upgrade(self, gateway, container, sharing, clock, rules) -> None:
        inv = await _invite(container, sharing, clock, rules)
        inp = AcceptInvitationInput(invitation_id=inv.id, user_id="bob")
        await accept_invitation(inp, gateway, sharing, clock)
        await set_permission(container, "bob", "edit", "alice", sharing, clock)

        grant = await accept_invitation(inp, gateway, sharing, clock)

        assert grant.permission == "edit"
        assert (await sharing.get_permission("c1", "bob")).permission == "edit"

    @pytest.mark.asyncio
    async def test_reaccept_after_removal_does_not_restore_access(
        self, gateway, container, sharing, clock, rules
    ) -> None:
        inv = await _invite(container, sharing, clock, rules)
        inp = AcceptInvitationInput(invitation_id=inv.id, user_id="bob")
        await accept_invitation(inp, gateway, sharing, clock)
        await remove_user("c1", "bob", gateway, sharing)

        with pytest.raises(ConflictError):
            await accept_invitation(inp, gateway, sharing, clock)

        assert gateway.snapshot("c1").authorized_users == []
        assert await sharing.get_permission("c1", "bob") is None

    @pytest.mark.asyncio
    async def test_membership_failure_leaves_pending(self, container, sharing, clock, rules) -> None:
        gateway = InMemoryCollectionGateway(clock, fail_on={"add_authorized_user"})
        gateway.seed(container)
        inv = await _invite(container, sharing, clock, rules)

        with pytest.raises(GatewayError):
            await accept_invitation(
                AcceptInvitationInput(invitation_id=inv.id, user_id="bob"), gateway, sharing, clock
            )

        assert (await sharing.get_invitation(inv.id)).status == "pending"
        assert await sharing.get_permission("c1", "bob") is None

        # Retry once the backend recovers
        gateway.fail_on.clear()
        await accept_invitation(
            AcceptInvitationInput(invitation_id=inv.id, user_id="bob"), gateway, sharing, clock
        )
        assert (await sharing.get_invitation(inv.id)).status == "accepted"

    @pytest.mark.asyncio
    async def test_expired_cannot_be_accepted(self, gateway, container, sharing, clock, rules) -> None:
        inv = await _invite(container, sharing, clock, rules)
        clock.advance(days=7)

        with pytest.raises(ExpiredError):
            await accept_invitation(
                AcceptInvitationInput(invitation_id=inv.id, user_id="bob"), gateway, sharing, clock
            )
        assert gateway.snapshot("c1").authorized_users == []

    @pytest.mark.asyncio
    async def test_wrong_address(self, gateway, container, sharing, clock, rules) -> None:
        inv = await _invite(container, sharing, clock, rules)

        with pytest.raises(PermissionDenied):
            await accept_invitation(
                AcceptInvitationInput(invitation_id=inv.id, user_id="eve", user_email="eve@x.com"),
                gateway,
                sharing,
                clock,
            )

    @pytest.mark.asyncio
    async def test_declined_cannot_be_accepted(
        self, gateway, container, sharing, clock, rules
    ) -> None:
        inv = await _invite(container, sharing, clock, rules)
        await decline_invitation(inv.id, sharing, clock)

        with pytest.raises(ConflictError):
            await accept_invitation(
                AcceptInvitationInput(invitation_id=inv.id, user_id="bob"), gateway, sharing, clock
            )

    @pytest.mark.asyncio
    async def test_missing_invitation(self, gateway, sharing, clock) -> None:
        with pytest.raises(NotFoundError):
            await accept_invitation(
                AcceptInvitationInput(invitation_id="nope", user_id="bob"), gateway, sharing, clock
            )


# --- Decline / cancel ---


class TestDeclineAndCancel:
    @pytest.mark.asyncio
    async def test_decline_is_terminal(self, container, sharing, clock, rules) -> None:
        inv = await _invite(container, sharing, clock, rules)
        await decline_invitation(inv.id, sharing, clock)

        assert (await sharing.get_invitation(inv.id)).status == "declined"
        with pytest.raises(ConflictError):
            await decline_invitation(inv.id, sharing, clock)

    @pytest.mark.asyncio
    async def test_cancel_is_a_hard_delete(self, container, sharing, clock, rules) -> None:
        inv = await _invite(container, sharing, clock, rules)
        await cancel_invitation(inv.id, sharing)

        assert await sharing.get_invitation(inv.id) is None
        with pytest.raises(NotFoundError):
            await cancel_invitation(inv.id, sharing)
