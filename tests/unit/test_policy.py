"""
Permission model tests.

Owner always resolves to edit; everyone else gets exactly their grant.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from linkvault.adapters.clock import FrozenClock
from linkvault.domain.entities import Container, PermissionGrant, ShareInvitation
from linkvault.domain.policy import (
    can_comment,
    can_edit,
    can_manage_sharing,
    can_view,
    collaborator_view,
    effective_permission,
    find_grant,
    permission_rank,
)


@pytest.fixture
def container() -> Container:
    return Container(
        id="c1",
        name="Reading List",
        color="#6366f1",
        owner_id="alice",
        authorized_users=["bob", "carol", "dave"],
    )


def grant(user_id: str, permission: str, container_id: str = "c1") -> PermissionGrant:
    return PermissionGrant(
        container_id=container_id,
        user_id=user_id,
        permission=permission,  # type: ignore[arg-type]
        granted_by="alice",
    )


GRANTS = [grant("bob", "view"), grant("carol", "comment"), grant("dave", "edit")]


class TestEffectivePermission:
    def test_owner_always_edits(self, container) -> None:
        assert effective_permission(container, "alice") == "edit"
        # A stray grant for the owner changes nothing
        assert effective_permission(container, "alice", [grant("alice", "view")]) == "edit"

    @pytest.mark.parametrize(
        "user_id,expected",
        [("bob", "view"), ("carol", "comment"), ("dave", "edit"), ("eve", None)],
    )
    def test_grant_level(self, container, user_id, expected) -> None:
        assert effective_permission(container, user_id, GRANTS) == expected

    def test_grant_for_other_container_is_ignored(self, container) -> None:
        assert effective_permission(container, "bob", [grant("bob", "edit", "c2")]) is None

    def test_derived_checks(self, container) -> None:
        assert can_edit(container, "dave", GRANTS)
        assert not can_edit(container, "carol", GRANTS)
        assert can_comment(container, "carol", GRANTS)
        assert not can_comment(container, "bob", GRANTS)
        assert can_view(container, "bob", GRANTS)
        assert not can_view(container, "eve", GRANTS)

    def test_only_owner_manages_sharing(self, container) -> None:
        assert can_manage_sharing(container, "alice")
        assert not can_manage_sharing(container, "dave")

    def test_rank(self) -> None:
        assert permission_rank(None) < permission_rank("view") < permission_rank("comment")
        assert permission_rank("comment") < permission_rank("edit")

    def test_find_grant(self) -> None:
        assert find_grant("c1", "carol", GRANTS) == GRANTS[1]
        assert find_grant("c1", "zed", GRANTS) is None


class TestCollaboratorView:
    def test_invitations_are_not_access(self, container) -> None:
        now = FrozenClock().now_utc()
        invitations = [
            ShareInvitation(
                id="inv1",
                container_id="c1",
                email="erin@x.com",
                permission="edit",
                invited_by="alice",
                expires_at=now + timedelta(days=3),
            ),
            ShareInvitation(
                id="inv2",
                container_id="c1",
                email="old@x.com",
                permission="view",
                invited_by="alice",
                expires_at=now,
            ),
        ]

        # dave is a member without a grant and is left out
        listing = collaborator_view(container, GRANTS[:2], invitations, now)

        assert [c.user_id for c in listing.collaborators] == ["alice", "bob", "carol"]
        assert listing.collaborators[0].is_owner
        assert [p.invitation_id for p in listing.pending] == ["inv1"]
        assert effective_permission(container, "erin", GRANTS) is None
