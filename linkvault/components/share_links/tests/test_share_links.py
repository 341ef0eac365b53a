"""
Share links component unit tests.
"""

from __future__ import annotations

import pytest

from linkvault.adapters.clock import FrozenClock
from linkvault.adapters.memory import (
    InMemoryCollectionGateway,
    InMemoryShareLinkGateway,
    InMemorySharingGateway,
)
from linkvault.components.share_links import (
    CreateShareLinkInput,
    create_share_link,
    deactivate_share_link,
    generate_token,
    get_by_token,
    list_share_links,
    redeem_share_link,
    share_url,
    use_share_link,
)
from linkvault.domain.entities import Container, PermissionGrant
from linkvault.domain.errors import ExpiredError, ValidationError
from linkvault.rules.models import ShareLinkRules


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def links() -> InMemoryShareLinkGateway:
    return InMemoryShareLinkGateway()


@pytest.fixture
def gateway(clock: FrozenClock) -> InMemoryCollectionGateway:
    gw = InMemoryCollectionGateway(clock)
    gw.seed(Container(id="c1", name="Reading List", color="#6366f1", owner_id="alice"))
    return gw


@pytest.fixture
def sharing() -> InMemorySharingGateway:
    return InMemorySharingGateway()


async def _create(links, clock, **kw):
    return await create_share_link(
        CreateShareLinkInput(container_id="c1", created_by="alice", **kw),
        links,
        clock,
        ShareLinkRules(),
    )


class TestTokens:
    def test_tokens_are_url_safe_and_unique(self) -> None:
        tokens = {generate_token() for _ in range(100)}
        assert len(tokens) == 100
        assert all("/" not in t and "+" not in t for t in tokens)

    def test_share_url(self) -> None:
        assert share_url("https://app.test/", "abc") == "https://app.test/share/abc"
        assert share_url("https://app.test", "abc", "/s/") == "https://app.test/s/abc"


class TestCreateAndResolve:
    @pytest.mark.asyncio
    async def test_create_defaults(self, links, clock) -> None:
        share_link = await _create(links, clock)

        assert share_link.permission == "view"
        assert share_link.is_active
        assert share_link.expires_at is None
        assert share_link.max_uses is None
        assert await get_by_token(share_link.token, links, clock) == share_link

    @pytest.mark.asyncio
    async def test_invalid_limits(self, links, clock) -> None:
        with pytest.raises(ValidationError) as exc:
            await _create(links, clock, expires_in_days=0, max_uses=-1)
        assert exc.value.codes == ["expiry_invalid", "max_uses_invalid"]

    @pytest.mark.asyncio
    async def test_expired_link_is_unusable(self, links, clock) -> None:
        share_link = await _create(links, clock, expires_in_days=2)

        clock.advance(days=1)
        assert await get_by_token(share_link.token, links, clock) is not None
        clock.advance(days=1)
        assert await get_by_token(share_link.token, links, clock) is None

    @pytest.mark.asyncio
    async def test_exhaustion(self, links, clock) -> None:
        share_link = await _create(links, clock, max_uses=2)

        for _ in range(2):
            found = await get_by_token(share_link.token, links, clock)
            assert found is not None
            await use_share_link(found.id, links)

        assert await get_by_token(share_link.token, links, clock) is None

    @pytest.mark.asyncio
    async def test_deactivate(self, links, clock) -> None:
        share_link = await _create(links, clock)
        other = await _create(links, clock, permission="edit")

        await deactivate_share_link(share_link.id, links)

        assert await get_by_token(share_link.token, links, clock) is None
        assert [sl.id for sl in await list_share_links("c1", links)] == [other.id]

    @pytest.mark.asyncio
    async def test_unknown_token(self, links, clock) -> None:
        assert await get_by_token("missing", links, clock) is None


class TestRedeem:
    @pytest.mark.asyncio
    async def test_redeem_grants_and_counts(self, gateway, sharing, links, clock) -> None:
        share_link = await _create(links, clock, permission="comment", max_uses=1)

        result = await redeem_share_link(share_link.token, "bob", gateway, sharing, links, clock)

        assert result.grant is not None
        assert result.grant.permission == "comment"
        assert result.share_link.current_uses == 1
        assert gateway.snapshot("c1").authorized_users == ["bob"]

        with pytest.raises(ExpiredError):
            await redeem_share_link(share_link.token, "carol", gateway, sharing, links, clock)

    @pytest.mark.asyncio
    async def test_owner_does_not_use_up_the_link(self, gateway, sharing, links, clock) -> None:
        share_link = await _create(links, clock, max_uses=1)

        result = await redeem_share_link(share_link.token, "alice", gateway, sharing, links, clock)

        assert result.grant is None
        assert await get_by_token(share_link.token, links, clock) is not None

    @pytest.mark.asyncio
    async def test_existing_higher_grant_is_kept(self, gateway, sharing, links, clock) -> None:
        await sharing.set_permission(
            PermissionGrant(container_id="c1", user_id="bob", permission="edit", granted_by="alice")
        )
        share_link = await _create(links, clock)

        result = await redeem_share_link(share_link.token, "bob", gateway, sharing, links, clock)

        assert result.grant.permission == "edit"
