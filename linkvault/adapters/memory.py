"""
In-memory gateways.

Documents are deep-copied on the way in and out so callers never share
state with the store, the same way a remote backend would behave.

``fail_on`` names operations that raise ``GatewayError`` instead of
running. ``move_links`` is split into ``move_source_write`` and
``move_target_write`` so a failure between the two writes can be injected.
``calls`` records every operation that reached the gateway.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from linkvault.adapters.clock import SystemClock
from linkvault.domain.entities import (
    Container,
    Link,
    PermissionGrant,
    ShareInvitation,
    ShareLink,
    UserProfile,
    new_document_id,
)
from linkvault.domain.errors import ConflictError, GatewayError, NotFoundError
from linkvault.ports.clock import TimePort


class FaultInjection:
    def __init__(self, fail_on: Iterable[str] = ()) -> None:
        self.fail_on: set[str] = set(fail_on)
        self.calls: list[str] = []

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        self._check(operation)

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise GatewayError(f"Injected failure: {operation}", operation=operation)


class InMemoryCollectionGateway(FaultInjection):
    def __init__(self, time: TimePort | None = None, fail_on: Iterable[str] = ()) -> None:
        super().__init__(fail_on)
        self._time = time or SystemClock()
        self._docs: dict[str, Container] = {}

    # --- Helpers ---

    def _require(self, container_id: str) -> Container:
        doc = self._docs.get(container_id)
        if doc is None:
            raise NotFoundError("container", container_id)
        return doc

    def _write(self, container_id: str, **changes: Any) -> None:
        doc = self._require(container_id)
        changes.setdefault("updated_at", self._time.now_utc())
        self._docs[container_id] = doc.model_copy(update=copy.deepcopy(changes))

    def _links_without(self, doc: Container, link_ids: Sequence[str]) -> list[Link]:
        drop = set(link_ids)
        return [link for link in doc.links if link.id not in drop]

    def seed(self, container: Container) -> None:
        """Put a document in place without going through the gateway surface."""
        self._docs[container.id] = container.model_copy(deep=True)

    def snapshot(self, container_id: str) -> Container | None:
        doc = self._docs.get(container_id)
        return doc.model_copy(deep=True) if doc else None

    # --- Containers ---

    async def create(self, container: Container) -> str:
        self._enter("create")
        container_id = new_document_id()
        self._docs[container_id] = container.model_copy(
            update={"id": container_id, "is_shared": False}, deep=True
        )
        return container_id

    async def get(self, container_id: str) -> Container | None:
        self._enter("get")
        return self.snapshot(container_id)

    async def update(self, container_id: str, changes: dict[str, Any]) -> None:
        self._enter("update")
        self._write(container_id, **changes)

    async def delete(self, container_id: str) -> None:
        self._enter("delete")
        self._require(container_id)
        del self._docs[container_id]

    async def list_for_user(self, user_id: str) -> list[Container]:
        self._enter("list_for_user")
        owned = [doc for doc in self._docs.values() if doc.owner_id == user_id]
        owned_ids = {doc.id for doc in owned}
        shared = [
            doc
            for doc in self._docs.values()
            if user_id in doc.authorized_users and doc.id not in owned_ids
        ]
        return [doc.model_copy(deep=True).viewed_by(user_id) for doc in owned + shared]

    # --- Links ---

    async def add_link(self, container_id: str, link: Link) -> str:
        self._enter("add_link")
        doc = self._require(container_id)
        if doc.find_link(link.id) is not None:
            raise ConflictError(f"Link {link.id} already exists in container {container_id}")
        self._write(container_id, links=[*doc.links, link])
        return link.id

    async def update_link(self, container_id: str, link_id: str, changes: dict[str, Any]) -> None:
        self._enter("update_link")
        doc = self._require(container_id)
        if doc.find_link(link_id) is None:
            raise NotFoundError("link", link_id)
        now = self._time.now_utc()
        links = [
            Link.model_validate({**link.model_dump(), **changes, "updated_at": now})
            if link.id == link_id
            else link
            for link in doc.links
        ]
        self._write(container_id, links=links)

    async def delete_link(self, container_id: str, link_id: str) -> None:
        self._enter("delete_link")
        doc = self._require(container_id)
        self._write(container_id, links=self._links_without(doc, [link_id]))

    async def delete_links(self, container_id: str, link_ids: Sequence[str]) -> None:
        self._enter("delete_links")
        doc = self._require(container_id)
        self._write(container_id, links=self._links_without(doc, link_ids))

    async def reorder_links(self, container_id: str, links: Sequence[Link]) -> None:
        self._enter("reorder_links")
        self._require(container_id)
        self._write(container_id, links=list(links))

    async def move_link(self, source_id: str, target_id: str, link_id: str) -> None:
        await self.move_links(source_id, target_id, [link_id])

    async def move_links(self, source_id: str, target_id: str, link_ids: Sequence[str]) -> None:
        self._enter("move_links")
        source = self._require(source_id)
        target = self._require(target_id)
        wanted = set(link_ids)
        moving = [link for link in source.links if link.id in wanted]
        if len(moving) != len(wanted):
            missing = sorted(wanted - {link.id for link in moving})
            raise NotFoundError("link", ", ".join(missing))

        now = self._time.now_utc()
        moved = [link.model_copy(update={"updated_at": now}) for link in moving]

        # Two independent writes, like the remote backend
        self._check("move_source_write")
        self._write(source_id, links=self._links_without(source, link_ids))
        self._check("move_target_write")
        self._write(target_id, links=[*target.links, *moved])

    async def record_click(self, container_id: str, link_id: str, day: str) -> None:
        self._enter("record_click")
        doc = self._require(container_id)
        link = doc.find_link(link_id)
        if link is None:
            raise NotFoundError("link", link_id)
        stats = dict(link.click_stats)
        stats[day] = stats.get(day, 0) + 1
        bumped = link.model_copy(update={"clicks": link.clicks + 1, "click_stats": stats})
        # Counters do not touch updated_at
        self._docs[container_id] = doc.model_copy(
            update={"links": [bumped if lk.id == link_id else lk for lk in doc.links]}
        )

    async def set_orders(self, orders: Sequence[tuple[str, int]]) -> None:
        self._enter("set_orders")
        for container_id, _ in orders:
            self._require(container_id)
        for container_id, order in orders:
            self._docs[container_id] = self._docs[container_id].model_copy(update={"order": order})

    # --- Membership ---

    async def add_authorized_user(self, container_id: str, user_id: str) -> None:
        self._enter("add_authorized_user")
        doc = self._require(container_id)
        if user_id not in doc.authorized_users:
            self._write(container_id, authorized_users=[*doc.authorized_users, user_id])

    async def remove_authorized_user(self, container_id: str, user_id: str) -> None:
        self._enter("remove_authorized_user")
        doc = self._require(container_id)
        self._write(
            container_id, authorized_users=[u for u in doc.authorized_users if u != user_id]
        )


class InMemorySharingGateway(FaultInjection):
    def __init__(self, fail_on: Iterable[str] = ()) -> None:
        super().__init__(fail_on)
        self._invitations: dict[str, ShareInvitation] = {}
        self._grants: dict[tuple[str, str], PermissionGrant] = {}

    # --- Invitations ---

    async def create_invitation(self, invitation: ShareInvitation) -> str:
        self._enter("create_invitation")
        invitation_id = new_document_id()
        self._invitations[invitation_id] = invitation.model_copy(update={"id": invitation_id})
        return invitation_id

    async def get_invitation(self, invitation_id: str) -> ShareInvitation | None:
        self._enter("get_invitation")
        inv = self._invitations.get(invitation_id)
        return inv.model_copy() if inv else None

    async def list_pending_for_container(
        self, container_id: str, now: datetime
    ) -> list[ShareInvitation]:
        self._enter("list_pending_for_container")
        return [
            inv.model_copy()
            for inv in self._invitations.values()
            if inv.container_id == container_id and inv.is_pending(now)
        ]

    async def list_pending_for_email(self, email: str, now: datetime) -> list[ShareInvitation]:
        self._enter("list_pending_for_email")
        return [
            inv.model_copy()
            for inv in self._invitations.values()
            if inv.email == email and inv.is_pending(now)
        ]

    async def update_invitation(self, invitation_id: str, changes: dict[str, Any]) -> None:
        self._enter("update_invitation")
        inv = self._invitations.get(invitation_id)
        if inv is None:
            raise NotFoundError("invitation", invitation_id)
        self._invitations[invitation_id] = inv.model_copy(update=changes)

    async def delete_invitation(self, invitation_id: str) -> None:
        self._enter("delete_invitation")
        self._invitations.pop(invitation_id, None)

    # --- Grants ---

    async def set_permission(self, grant: PermissionGrant) -> bool:
        self._enter("set_permission")
        key = (grant.container_id, grant.user_id)
        created = key not in self._grants
        self._grants[key] = grant.model_copy()
        return created

    async def get_permission(self, container_id: str, user_id: str) -> PermissionGrant | None:
        self._enter("get_permission")
        grant = self._grants.get((container_id, user_id))
        return grant.model_copy() if grant else None

    async def list_permissions(self, container_id: str) -> list[PermissionGrant]:
        self._enter("list_permissions")
        return [g.model_copy() for g in self._grants.values() if g.container_id == container_id]

    async def list_permissions_for_user(self, user_id: str) -> list[PermissionGrant]:
        self._enter("list_permissions_for_user")
        return [g.model_copy() for g in self._grants.values() if g.user_id == user_id]

    async def delete_permission(self, container_id: str, user_id: str) -> None:
        self._enter("delete_permission")
        self._grants.pop((container_id, user_id), None)


class InMemoryShareLinkGateway(FaultInjection):
    def __init__(self, fail_on: Iterable[str] = ()) -> None:
        super().__init__(fail_on)
        self._links: dict[str, ShareLink] = {}

    async def create(self, share_link: ShareLink) -> str:
        self._enter("create")
        share_link_id = new_document_id()
        self._links[share_link_id] = share_link.model_copy(update={"id": share_link_id})
        return share_link_id

    async def find_by_token(self, token: str) -> ShareLink | None:
        self._enter("find_by_token")
        found = next((sl for sl in self._links.values() if sl.token == token), None)
        return found.model_copy() if found else None

    async def increment_uses(self, share_link_id: str) -> None:
        self._enter("increment_uses")
        sl = self._links.get(share_link_id)
        if sl is None:
            raise NotFoundError("share link", share_link_id)
        self._links[share_link_id] = sl.model_copy(update={"current_uses": sl.current_uses + 1})

    async def list_active(self, container_id: str) -> list[ShareLink]:
        self._enter("list_active")
        return [
            sl.model_copy()
            for sl in self._links.values()
            if sl.container_id == container_id and sl.is_active
        ]

    async def deactivate(self, share_link_id: str) -> None:
        self._enter("deactivate")
        sl = self._links.get(share_link_id)
        if sl is None:
            raise NotFoundError("share link", share_link_id)
        self._links[share_link_id] = sl.model_copy(update={"is_active": False})


class InMemoryUserDirectory(FaultInjection):
    def __init__(self, users: Iterable[UserProfile] = (), fail_on: Iterable[str] = ()) -> None:
        super().__init__(fail_on)
        self._users = {u.id: u for u in users}

    def add(self, user: UserProfile) -> None:
        self._users[user.id] = user

    async def get_display_name(self, user_id: str) -> str:
        self._enter("get_display_name")
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user.display_name or user.email.split("@")[0]

    async def get_by_id(self, user_id: str) -> UserProfile | None:
        self._enter("get_by_id")
        return self._users.get(user_id)
