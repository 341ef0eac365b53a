"""CommandBus tests."""

import pytest

from linkvault.components.sync import (
    CONTAINER_CREATED,
    CONTAINER_DELETED,
    OPEN_CREATE_CONTAINER,
    CommandBus,
)


def test_dispatch_runs_handlers_in_order() -> None:
    bus = CommandBus()
    seen: list[str] = []
    bus.subscribe(OPEN_CREATE_CONTAINER, lambda: seen.append("first"))
    bus.subscribe(OPEN_CREATE_CONTAINER, lambda: seen.append("second"))

    assert bus.dispatch(OPEN_CREATE_CONTAINER) == 2
    assert seen == ["first", "second"]


def test_dispatch_without_handlers() -> None:
    bus = CommandBus()
    assert bus.dispatch(OPEN_CREATE_CONTAINER) == 0
    assert not bus.has_handlers(OPEN_CREATE_CONTAINER)


def test_unsubscribe() -> None:
    bus = CommandBus()
    seen: list[str] = []
    unsubscribe = bus.subscribe("ping", lambda value: seen.append(value))

    bus.dispatch("ping", value="a")
    unsubscribe()
    unsubscribe()
    bus.dispatch("ping", value="b")

    assert seen == ["a"]


def test_handler_errors_reach_the_dispatcher() -> None:
    bus = CommandBus()

    def boom() -> None:
        raise RuntimeError("handler failed")

    bus.subscribe("ping", boom)
    with pytest.raises(RuntimeError, match="handler failed"):
        bus.dispatch("ping")


@pytest.mark.asyncio
async def test_store_publishes_container_lifecycle(store, bus) -> None:
    seen: list[tuple[str, str]] = []
    bus.subscribe(CONTAINER_CREATED, lambda container_id: seen.append(("created", container_id)))
    bus.subscribe(CONTAINER_DELETED, lambda container_id: seen.append(("deleted", container_id)))

    created = await store.create_container("Temp")
    await store.delete_container(created.id)

    assert seen == [("created", created.id), ("deleted", created.id)]
    assert bus.has_handlers(CONTAINER_DELETED)
