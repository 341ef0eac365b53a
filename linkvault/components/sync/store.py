"""
ContainerStore - the client-side mirror of the signed-in user's containers.

Every change to containers and links goes through this class. Two shapes:

- Gateway-first (create, update, delete, add link, bulk delete, move,
  share): the gateway call runs first and the mirror is only updated from
  its result. On failure the mirror is left as it was, the message lands in
  ``error`` and the exception reaches the caller.
- Optimistic-first (reorder links, reorder containers, track click): the
  mirror changes immediately. A failed reorder is resynchronized with a
  full refresh; a failed click is logged and otherwise ignored.

All methods are meant to be driven from one event loop. Nothing here locks:
two mutations on the same container that overlap race at the gateway.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from typing import Any, TypeVar

from linkvault.components.collab import GrantAccessInput, grant_access
from linkvault.components.containers import (
    ContainerDraft,
    build_container,
    clean_container_changes,
)
from linkvault.components.links import (
    LinkDraft,
    apply_link_changes,
    build_link,
    clean_link_changes,
    click_day,
    record_click,
)
from linkvault.components.preview import PreviewResolver
from linkvault.domain.entities import Container, Link, PermissionGrant, PermissionLevel
from linkvault.domain.errors import (
    FieldError,
    LinkVaultError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from linkvault.domain.ordering import pinned_first, sort_by_order
from linkvault.ports.clock import TimePort
from linkvault.ports.gateway import CollectionGatewayPort
from linkvault.ports.sharing import SharingGatewayPort
from linkvault.rules.loader import default_rules
from linkvault.rules.models import Rules

from .events import CONTAINER_CREATED, CONTAINER_DELETED, CommandBus
from .soft_delete import DeleteKey, SoftDeleteScheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_move_conserved(
    before: Sequence[Container], after: Sequence[Container], link_ids: Sequence[str]
) -> bool:
    """
    True when every moved id sits in exactly one of the two containers and
    no link was lost or duplicated overall.
    """
    before_total = sum(len(c.links) for c in before)
    after_ids = [link.id for c in after for link in c.links]
    if len(after_ids) != before_total:
        return False
    return all(after_ids.count(link_id) == 1 for link_id in link_ids)


class ContainerStore:
    def __init__(
        self,
        gateway: CollectionGatewayPort,
        sharing: SharingGatewayPort,
        time: TimePort,
        rules: Rules | None = None,
        preview: PreviewResolver | None = None,
        bus: CommandBus | None = None,
    ) -> None:
        self._gateway = gateway
        self._sharing = sharing
        self._time = time
        self._rules = rules or default_rules()
        self._preview = preview
        self._bus = bus

        self._user_id: str | None = None
        self._containers: list[Container] = []
        self._loading = False
        self._error: str | None = None

        # Links hidden by a soft delete, until committed or undone
        self._hidden: set[DeleteKey] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._soft_deletes = SoftDeleteScheduler(
            self._rules.soft_delete.grace_seconds, self._commit_soft_delete, self._spawn
        )

    # --- Read-only state ---

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def containers(self) -> list[Container]:
        return list(self._containers)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> str | None:
        return self._error

    def get_container(self, container_id: str) -> Container | None:
        return next((c for c in self._containers if c.id == container_id), None)

    def visible_links(self, container_id: str) -> list[Link]:
        """Links as displayed: pending deletes hidden, pinned links first."""
        container = self._require_container(container_id)
        return pinned_first(
            [link for link in container.links if (container_id, link.id) not in self._hidden]
        )

    def pending_deletes(self) -> list[DeleteKey]:
        return sorted(self._hidden)

    # --- Internals ---

    def _require_user(self, action: str) -> str:
        if self._user_id is None:
            raise PermissionDenied(action)
        return self._user_id

    def _require_container(self, container_id: str) -> Container:
        container = self.get_container(container_id)
        if container is None:
            raise NotFoundError("container", container_id)
        return container

    def _require_link(self, container_id: str, link_id: str) -> tuple[Container, Link]:
        container = self._require_container(container_id)
        link = container.find_link(link_id)
        if link is None:
            raise NotFoundError("link", link_id)
        return container, link

    def _patch(self, container_id: str, change: Callable[[Container], Container]) -> None:
        # Applied to whatever the mirror holds now, which may differ from
        # what it held before the awaited gateway call
        self._containers = [change(c) if c.id == container_id else c for c in self._containers]

    def _patch_link(self, container_id: str, link_id: str, change: Callable[[Link], Link]) -> None:
        def apply(container: Container) -> Container:
            links = [change(link) if link.id == link_id else link for link in container.links]
            return container.model_copy(update={"links": links})

        self._patch(container_id, apply)

    def _drop_links(self, container_id: str, link_ids: Sequence[str]) -> None:
        drop = set(link_ids)
        now = self._time.now_utc()
        self._patch(
            container_id,
            lambda c: c.model_copy(
                update={
                    "links": [link for link in c.links if link.id not in drop],
                    "updated_at": now,
                }
            ),
        )
        for link_id in drop:
            self._soft_deletes.cancel((container_id, link_id))
            self._hidden.discard((container_id, link_id))

    def _record_failure(self, action: str, error: Exception) -> None:
        self._error = str(error) or f"{action} failed"
        logger.error("%s failed: %s", action, error)

    async def _call(self, action: str, operation: Awaitable[T]) -> T:
        try:
            return await operation
        except ValidationError:
            raise
        except LinkVaultError as e:
            self._record_failure(action, e)
            raise

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # --- Loading ---

    async def set_user(self, user_id: str | None) -> None:
        """Switch the active identity; the mirror is reloaded for the new one."""
        if user_id == self._user_id:
            return
        if self._soft_deletes.scheduled:
            await self.flush_pending_deletes()

        self._user_id = user_id
        self._hidden.clear()
        if user_id is None:
            self._containers = []
            self._error = None
            return
        await self.refresh()

    async def refresh(self) -> None:
        self._error = None
        user_id = self._user_id
        if user_id is None:
            self._containers = []
            return

        self._loading = True
        try:
            containers = await self._gateway.list_for_user(user_id)
        except LinkVaultError as e:
            self._record_failure("Loading containers", e)
            return
        finally:
            self._loading = False

        if user_id != self._user_id:
            # Identity changed while the listing was in flight
            return
        self._containers = sort_by_order(containers)
        logger.info("Loaded %d containers for %s", len(containers), user_id)

    # --- Containers (gateway-first) ---

    async def create_container(
        self, name: str, description: str = "", color: str | None = None
    ) -> Container:
        self._error = None
        owner_id = self._require_user("create a container")
        container = build_container(
            ContainerDraft(name=name, description=description or "", color=color),
            owner_id,
            self._time.now_utc(),
            self._rules.limits,
            self._rules.containers,
        )

        container_id = await self._call("Creating container", self._gateway.create(container))
        await self.refresh()

        if self._bus is not None:
            self._bus.dispatch(CONTAINER_CREATED, container_id=container_id)
        return self.get_container(container_id) or container.model_copy(update={"id": container_id})

    async def update_container(self, container_id: str, changes: dict[str, Any]) -> Container:
        self._error = None
        self._require_container(container_id)
        cleaned = clean_container_changes(changes, self._rules.limits)

        await self._call("Updating container", self._gateway.update(container_id, cleaned))

        now = self._time.now_utc()
        self._patch(container_id, lambda c: c.model_copy(update={**cleaned, "updated_at": now}))
        return self._require_container(container_id)

    async def delete_container(self, container_id: str) -> None:
        self._error = None
        self._require_container(container_id)

        await self._call("Deleting container", self._gateway.delete(container_id))

        self._containers = [c for c in self._containers if c.id != container_id]
        self._soft_deletes.cancel_container(container_id)
        self._hidden = {key for key in self._hidden if key[0] != container_id}
        if self._bus is not None:
            self._bus.dispatch(CONTAINER_DELETED, container_id=container_id)

    # --- Links (gateway-first) ---

    async def add_link(self, container_id: str, draft: LinkDraft) -> Link:
        """
        Persist a new link and append it to the container.

        Preview enrichment runs afterwards as a background task and never
        holds up the add.
        """
        self._error = None
        self._require_container(container_id)
        created_by = self._require_user("add a link")
        link = build_link(draft, created_by, self._time.now_utc(), self._rules.limits)
        if link.favicon is None and self._preview is not None:
            link = link.model_copy(update={"favicon": self._preview.favicon_for(link.url)})

        link_id = await self._call("Adding link", self._gateway.add_link(container_id, link))
        link = link.model_copy(update={"id": link_id})

        now = self._time.now_utc()
        self._patch(
            container_id,
            lambda c: c.model_copy(update={"links": [*c.links, link], "updated_at": now}),
        )

        if self._preview is not None:
            self._spawn(self._refine_preview(self._preview, container_id, link))
        return link

    async def _refine_preview(self, resolver: PreviewResolver, container_id: str, link: Link) -> None:
        preview = await resolver.resolve(link.url)

        changes: dict[str, Any] = {}
        if preview.favicon and preview.favicon != link.favicon:
            changes["favicon"] = preview.favicon
        if preview.repo_metadata is not None:
            changes["repo_metadata"] = preview.repo_metadata.model_dump()
        if not changes:
            return

        container = self.get_container(container_id)
        if container is None or container.find_link(link.id) is None:
            return

        try:
            await self._gateway.update_link(container_id, link.id, changes)
        except LinkVaultError as e:
            logger.debug("Preview update for %s skipped: %s", link.id, e)
            return

        now = self._time.now_utc()
        self._patch_link(container_id, link.id, lambda lk: apply_link_changes(lk, changes, now))

    async def update_link(self, container_id: str, link_id: str, changes: dict[str, Any]) -> Link:
        self._error = None
        self._require_link(container_id, link_id)
        cleaned = clean_link_changes(changes, self._rules.limits)

        await self._call(
            "Updating link", self._gateway.update_link(container_id, link_id, cleaned)
        )

        now = self._time.now_utc()
        self._patch_link(container_id, link_id, lambda lk: apply_link_changes(lk, cleaned, now))
        self._patch(container_id, lambda c: c.model_copy(update={"updated_at": now}))
        _, link = self._require_link(container_id, link_id)
        return link

    async def delete_link(self, container_id: str, link_id: str) -> None:
        self._error = None
        await self._delete_link(container_id, link_id)

    async def _delete_link(self, container_id: str, link_id: str) -> None:
        self._require_link(container_id, link_id)

        await self._call("Deleting link", self._gateway.delete_link(container_id, link_id))
        self._drop_links(container_id, [link_id])

    async def delete_links(self, container_id: str, link_ids: Sequence[str]) -> None:
        """Bulk delete; the whole batch succeeds or fails together."""
        self._error = None
        link_ids = list(dict.fromkeys(link_ids))
        for link_id in link_ids:
            self._require_link(container_id, link_id)
        if not link_ids:
            return

        await self._call("Deleting links", self._gateway.delete_links(container_id, link_ids))
        self._drop_links(container_id, link_ids)

    # --- Moves ---

    async def move_link(self, source_id: str, target_id: str, link_id: str) -> None:
        await self._move(source_id, target_id, [link_id])

    async def move_links(self, source_id: str, target_id: str, link_ids: Sequence[str]) -> None:
        await self._move(source_id, target_id, list(dict.fromkeys(link_ids)))

    async def _move(self, source_id: str, target_id: str, link_ids: list[str]) -> None:
        self._error = None
        if source_id == target_id:
            raise ValidationError(
                [
                    FieldError(
                        code="same_container",
                        message="Source and target container must differ",
                        field="target_id",
                    )
                ]
            )
        source = self._require_container(source_id)
        target = self._require_container(target_id)
        for link_id in link_ids:
            self._require_link(source_id, link_id)
        if not link_ids:
            return

        try:
            if len(link_ids) == 1:
                await self._gateway.move_link(source_id, target_id, link_ids[0])
            else:
                await self._gateway.move_links(source_id, target_id, link_ids)
        except ValidationError:
            raise
        except LinkVaultError as e:
            await self._reconcile_move(source, target, link_ids)
            self._record_failure("Moving links", e)
            raise

        for link_id in link_ids:
            self._soft_deletes.cancel((source_id, link_id))
            self._hidden.discard((source_id, link_id))
        await self.refresh()

    async def _reconcile_move(
        self, source: Container, target: Container, link_ids: Sequence[str]
    ) -> None:
        """
        After a failed move, check what the gateway holds. If the two writes
        landed only partly, put both containers back to their pre-move links.
        """
        try:
            source_now = await self._gateway.get(source.id)
            target_now = await self._gateway.get(target.id)
        except LinkVaultError as e:
            logger.error(
                "Move %s -> %s failed and could not be verified: %s", source.id, target.id, e
            )
            return

        if source_now is None or target_now is None:
            logger.error("Move %s -> %s failed and a container is gone", source.id, target.id)
            return
        if is_move_conserved([source, target], [source_now, target_now], link_ids):
            return

        logger.warning("Move %s -> %s partly applied, restoring both containers", source.id, target.id)
        try:
            await self._gateway.reorder_links(source.id, source.links)
            await self._gateway.reorder_links(target.id, target.links)
        except LinkVaultError as e:
            logger.error(
                "Move %s -> %s diverged, links %s need reconciliation: %s",
                source.id,
                target.id,
                ", ".join(link_ids),
                e,
            )

    # --- Reordering (optimistic-first) ---

    async def reorder_links(self, container_id: str, links: Sequence[Link]) -> bool:
        """
        Persist a full new link order computed by the caller.

        Links hidden by a pending soft delete may be left out; they keep
        their place at the end. Returns False when the gateway rejected the
        order and the mirror was resynchronized instead.
        """
        self._error = None
        container = self._require_container(container_id)
        by_id = {link.id: link for link in container.links}

        order = [link.id for link in links]
        given = set(order)
        hidden_rest = [
            link.id
            for link in container.links
            if link.id not in given and (container_id, link.id) in self._hidden
        ]
        full = order + hidden_rest
        if len(given) != len(order) or sorted(full) != sorted(by_id):
            raise ValidationError(
                [
                    FieldError(
                        code="links_mismatch",
                        message="The new order must contain every link exactly once",
                        field="links",
                    )
                ]
            )

        reordered = [by_id[link_id] for link_id in full]
        now = self._time.now_utc()
        self._patch(
            container_id, lambda c: c.model_copy(update={"links": reordered, "updated_at": now})
        )

        try:
            await self._gateway.reorder_links(container_id, reordered)
        except LinkVaultError as e:
            logger.warning("Reordering links in %s failed, resyncing: %s", container_id, e)
            await self.refresh()
            return False
        return True

    async def reorder_containers(self, containers: Sequence[Container]) -> bool:
        """Persist a full new container order (both sections already merged)."""
        self._error = None
        ids = [c.id for c in containers]
        current = {c.id: c for c in self._containers}
        if len(set(ids)) != len(ids) or set(ids) != set(current):
            raise ValidationError(
                [
                    FieldError(
                        code="containers_mismatch",
                        message="The new order must contain every container exactly once",
                        field="containers",
                    )
                ]
            )

        orders = [(container_id, index) for index, container_id in enumerate(ids)]
        self._containers = [
            current[container_id].model_copy(update={"order": index})
            for container_id, index in orders
        ]

        try:
            await self._gateway.set_orders(orders)
        except LinkVaultError as e:
            logger.warning("Reordering containers failed, resyncing: %s", e)
            await self.refresh()
            return False
        return True

    # --- Clicks (optimistic-first, best effort) ---

    async def track_click(self, container_id: str, link_id: str, background: bool = False) -> None:
        self._require_link(container_id, link_id)
        day = click_day(self._time.now_utc())
        self._patch_link(container_id, link_id, lambda lk: record_click(lk, day))

        if background:
            self._spawn(self._send_click(container_id, link_id, day))
        else:
            await self._send_click(container_id, link_id, day)

    async def _send_click(self, container_id: str, link_id: str, day: str) -> None:
        try:
            await self._gateway.record_click(container_id, link_id, day)
        except LinkVaultError as e:
            logger.warning("Click on %s/%s not recorded: %s", container_id, link_id, e)

    # --- Sharing (gateway-first) ---

    async def share_container(
        self, container_id: str, user_id: str, permission: PermissionLevel = "view"
    ) -> PermissionGrant:
        """Give ``user_id`` direct access, then reload to pick up the membership."""
        self._error = None
        container = self._require_container(container_id)

        result = await self._call(
            "Sharing container",
            grant_access(
                GrantAccessInput(
                    container_id=container_id,
                    owner_id=container.owner_id,
                    user_id=user_id,
                    permission=permission,
                    granted_by=self._user_id or container.owner_id,
                ),
                self._gateway,
                self._sharing,
                self._time,
            ),
        )
        await self.refresh()
        return result.grant

    # --- Soft delete ---

    async def soft_delete_link(self, container_id: str, link_id: str) -> None:
        """Hide the link now; the gateway delete fires when the grace window ends."""
        self._require_link(container_id, link_id)
        key = (container_id, link_id)
        if key in self._hidden:
            return
        self._hidden.add(key)
        self._soft_deletes.schedule(key)

    async def undo_delete(self, container_id: str, link_id: str) -> bool:
        """Returns False when there was nothing left to undo."""
        key = (container_id, link_id)
        if not self._soft_deletes.cancel(key):
            return False
        self._hidden.discard(key)
        return True

    async def flush_pending_deletes(self) -> None:
        await self._soft_deletes.flush()

    async def _commit_soft_delete(self, container_id: str, link_id: str) -> None:
        key = (container_id, link_id)
        try:
            container = self.get_container(container_id)
            if container is None or container.find_link(link_id) is None:
                return
            # Does not reset `error`.
            await self._delete_link(container_id, link_id)
        except LinkVaultError as e:
            logger.warning("Deferred delete of %s/%s failed: %s", container_id, link_id, e)
        finally:
            self._hidden.discard(key)

    # --- Lifecycle ---

    async def drain(self) -> None:
        """Wait for background work (preview refinement, clicks, fired deletes)."""
        while self._tasks:
            results = await asyncio.gather(*list(self._tasks), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error("Background task failed: %r", result)

    async def aclose(self) -> None:
        await self.flush_pending_deletes()
        await self.drain()
