"""
Remote collection gateway port.

The durable copy of every container lives behind this interface (a remote
document store in production). Links are embedded in their container's
document, so every link mutation is a write of that one document.

Every method is a suspension point. A call either applies completely or
raises; failures surface as ``GatewayError`` (backend message kept verbatim)
or ``NotFoundError``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from linkvault.domain.entities import Container, Link


class CollectionGatewayPort(Protocol):
    async def create(self, container: Container) -> str:
        """Persist a new container document and return its id."""
        ...

    async def get(self, container_id: str) -> Container | None: ...

    async def update(self, container_id: str, changes: dict[str, Any]) -> None:
        """Shallow-merge ``changes`` into the document and refresh ``updated_at``."""
        ...

    async def delete(self, container_id: str) -> None: ...

    async def list_for_user(self, user_id: str) -> list[Container]:
        """
        Owned containers plus those shared with the user, de-duplicated with
        the owned copy taking precedence; ``is_shared`` derived for the user.
        """
        ...

    async def add_link(self, container_id: str, link: Link) -> str:
        """Append a link and return the id it was stored under."""
        ...

    async def update_link(self, container_id: str, link_id: str, changes: dict[str, Any]) -> None: ...

    async def delete_link(self, container_id: str, link_id: str) -> None: ...

    async def delete_links(self, container_id: str, link_ids: Sequence[str]) -> None: ...

    async def reorder_links(self, container_id: str, links: Sequence[Link]) -> None:
        """Replace the whole ``links`` sequence."""
        ...

    async def move_link(self, source_id: str, target_id: str, link_id: str) -> None: ...

    async def move_links(self, source_id: str, target_id: str, link_ids: Sequence[str]) -> None:
        """
        Remove the links from the source and append them to the target in
        their original relative order. Two document writes; implementations
        without a transactional primitive may fail between them.
        """
        ...

    async def record_click(self, container_id: str, link_id: str, day: str) -> None:
        """Increment ``clicks`` and ``click_stats[day]`` by one."""
        ...

    async def set_orders(self, orders: Sequence[tuple[str, int]]) -> None: ...

    async def add_authorized_user(self, container_id: str, user_id: str) -> None:
        """Union-style add; never a read-modify-write of the whole array."""
        ...

    async def remove_authorized_user(self, container_id: str, user_id: str) -> None: ...
