from __future__ import annotations

import pytest
import pytest_asyncio

from linkvault.adapters.clock import FrozenClock
from linkvault.adapters.memory import InMemoryCollectionGateway, InMemorySharingGateway
from linkvault.components.sync import CommandBus, ContainerStore
from linkvault.domain.entities import Container, Link
from linkvault.rules.models import Rules, SoftDeleteRules


def make_link(link_id: str, title: str | None = None, pinned: bool = False) -> Link:
    return Link(
        id=link_id,
        title=title or link_id.upper(),
        url=f"https://{link_id}.example.com",
        created_by="alice",
        is_pinned=pinned,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def rules() -> Rules:
    return Rules(soft_delete=SoftDeleteRules(grace_seconds=0.01))


@pytest.fixture
def gateway(clock: FrozenClock) -> InMemoryCollectionGateway:
    gw = InMemoryCollectionGateway(clock)
    gw.seed(
        Container(
            id="c1",
            name="Reading List",
            color="#6366f1",
            owner_id="alice",
            links=[make_link("l1"), make_link("l2"), make_link("l3")],
            order=1,
        )
    )
    gw.seed(Container(id="c2", name="Work", color="#10b981", owner_id="alice", order=0))
    gw.seed(
        Container(
            id="c3",
            name="Bob's Picks",
            color="#f43f5e",
            owner_id="bob",
            authorized_users=["alice"],
            links=[make_link("b1")],
        )
    )
    return gw


@pytest.fixture
def sharing() -> InMemorySharingGateway:
    return InMemorySharingGateway()


@pytest.fixture
def bus() -> CommandBus:
    return CommandBus()


@pytest_asyncio.fixture
async def store(gateway, sharing, clock, rules, bus) -> ContainerStore:
    s = ContainerStore(gateway, sharing, clock, rules=rules, bus=bus)
    await s.set_user("alice")
    yield s
    await s.drain()
