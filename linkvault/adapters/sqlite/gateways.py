"""
SQLite-backed gateways.

Containers are stored as JSON documents (links embedded, like the remote
document store); membership, grants, invitations and share links are rows.
Calls run in a worker thread via ``asyncio.to_thread`` and every
``sqlite3.Error`` surfaces as ``GatewayError`` carrying the driver message.

Unlike the remote backend, multi-document writes (moves) share one
transaction here.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import sqlite3
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any, ParamSpec, TypeVar

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

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

# Document fields that live in their own columns/tables
_DOC_EXCLUDE = {"id", "authorized_users", "is_shared"}


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _in_thread(fn: Callable[P, R]) -> Callable[P, Any]:
    """Run a blocking method in a worker thread, translating driver errors."""

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except sqlite3.IntegrityError as e:
            raise ConflictError(str(e)) from e
        except sqlite3.Error as e:
            logger.error("SQLite %s failed: %s", fn.__name__, e)
            raise GatewayError(str(e), operation=fn.__name__) from e

    return wrapper


class _SQLiteBase:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        # Autocommit mode; writes open their own IMMEDIATE transaction
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()


class SQLiteCollectionGateway(_SQLiteBase):
    def __init__(self, db_path: str, time: TimePort | None = None):
        super().__init__(db_path)
        self._time = time or SystemClock()

    # --- Row mapping ---

    def _members(self, conn: sqlite3.Connection, container_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT user_id FROM container_members WHERE container_id = ? ORDER BY position ASC",
            (container_id,),
        ).fetchall()
        return [r["user_id"] for r in rows]

    def _row_to_container(self, conn: sqlite3.Connection, row: dict[str, Any]) -> Container:
        doc = json.loads(row["doc_json"])
        doc["id"] = row["id"]
        doc["order"] = row["sort_order"]
        doc["authorized_users"] = self._members(conn, row["id"])
        return Container.model_validate(doc)

    def _load(self, conn: sqlite3.Connection, container_id: str) -> Container:
        row = conn.execute("SELECT * FROM containers WHERE id = ?", (container_id,)).fetchone()
        if row is None:
            raise NotFoundError("container", container_id)
        return self._row_to_container(conn, row)

    def _store(self, conn: sqlite3.Connection, container: Container, touch: bool = True) -> None:
        if touch:
            container = container.model_copy(update={"updated_at": self._time.now_utc()})
        doc = container.model_dump(mode="json", exclude=_DOC_EXCLUDE)
        conn.execute(
            "UPDATE containers SET doc_json = ?, sort_order = ?, updated_at = ? WHERE id = ?",
            (json.dumps(doc), container.order, _iso(container.updated_at), container.id),
        )

    def _mutate(
        self, container_id: str, change: Callable[[Container], Container], touch: bool = True
    ) -> None:
        with self._transaction() as conn:
            self._store(conn, change(self._load(conn, container_id)), touch=touch)

    # --- Containers ---

    @_in_thread
    def create(self, container: Container) -> str:
        container_id = new_document_id()
        container = container.model_copy(update={"id": container_id})
        doc = container.model_dump(mode="json", exclude=_DOC_EXCLUDE)
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO containers (id, owner_id, doc_json, sort_order, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    container_id,
                    container.owner_id,
                    json.dumps(doc),
                    container.order,
                    _iso(container.created_at),
                    _iso(container.updated_at),
                ),
            )
            for position, user_id in enumerate(container.authorized_users):
                conn.execute(
                    "INSERT OR IGNORE INTO container_members (container_id, user_id, position) "
                    "VALUES (?, ?, ?)",
                    (container_id, user_id, position),
                )
        return container_id

    @_in_thread
    def get(self, container_id: str) -> Container | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM containers WHERE id = ?", (container_id,)
            ).fetchone()
            if row is None:
                return None
            return self._row_to_container(conn, row)

    @_in_thread
    def update(self, container_id: str, changes: dict[str, Any]) -> None:
        self._mutate(
            container_id, lambda c: Container.model_validate({**c.model_dump(), **changes})
        )

    @_in_thread
    def delete(self, container_id: str) -> None:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM containers WHERE id = ?", (container_id,))
            if cursor.rowcount == 0:
                raise NotFoundError("container", container_id)

    @_in_thread
    def list_for_user(self, user_id: str) -> list[Container]:
        with self._read() as conn:
            owned = conn.execute(
                "SELECT * FROM containers WHERE owner_id = ? ORDER BY created_at ASC", (user_id,)
            ).fetchall()
            shared = conn.execute(
                """
                SELECT c.* FROM containers c
                JOIN container_members m ON m.container_id = c.id
                WHERE m.user_id = ? AND c.owner_id != ?
                ORDER BY c.created_at ASC
            """,
                (user_id, user_id),
            ).fetchall()
            return [self._row_to_container(conn, row).viewed_by(user_id) for row in owned + shared]

    # --- Links ---

    @_in_thread
    def add_link(self, container_id: str, link: Link) -> str:
        def append(container: Container) -> Container:
            if container.find_link(link.id) is not None:
                raise ConflictError(f"Link {link.id} already exists in container {container_id}")
            return container.model_copy(update={"links": [*container.links, link]})

        self._mutate(container_id, append)
        return link.id

    @_in_thread
    def update_link(self, container_id: str, link_id: str, changes: dict[str, Any]) -> None:
        now = self._time.now_utc()

        def patch(container: Container) -> Container:
            if container.find_link(link_id) is None:
                raise NotFoundError("link", link_id)
            links = [
                Link.model_validate({**link.model_dump(), **changes, "updated_at": now})
                if link.id == link_id
                else link
                for link in container.links
            ]
            return container.model_copy(update={"links": links})

        self._mutate(container_id, patch)

    @_in_thread
    def delete_link(self, container_id: str, link_id: str) -> None:
        self._mutate(
            container_id,
            lambda c: c.model_copy(update={"links": [lk for lk in c.links if lk.id != link_id]}),
        )

    @_in_thread
    def delete_links(self, container_id: str, link_ids: Sequence[str]) -> None:
        drop = set(link_ids)
        self._mutate(
            container_id,
            lambda c: c.model_copy(update={"links": [lk for lk in c.links if lk.id not in drop]}),
        )

    @_in_thread
    def reorder_links(self, container_id: str, links: Sequence[Link]) -> None:
        self._mutate(container_id, lambda c: c.model_copy(update={"links": list(links)}))

    async def move_link(self, source_id: str, target_id: str, link_id: str) -> None:
        await self.move_links(source_id, target_id, [link_id])

    @_in_thread
    def move_links(self, source_id: str, target_id: str, link_ids: Sequence[str]) -> None:
        now = self._time.now_utc()
        wanted = set(link_ids)
        with self._transaction() as conn:
            source = self._load(conn, source_id)
            target = self._load(conn, target_id)
            moving = [link for link in source.links if link.id in wanted]
            if len(moving) != len(wanted):
                missing = sorted(wanted - {link.id for link in moving})
                raise NotFoundError("link", ", ".join(missing))

            moved = [link.model_copy(update={"updated_at": now}) for link in moving]
            remaining = [link for link in source.links if link.id not in wanted]
            self._store(conn, source.model_copy(update={"links": remaining}))
            self._store(conn, target.model_copy(update={"links": [*target.links, *moved]}))

    @_in_thread
    def record_click(self, container_id: str, link_id: str, day: str) -> None:
        def bump(container: Container) -> Container:
            link = container.find_link(link_id)
            if link is None:
                raise NotFoundError("link", link_id)
            stats = dict(link.click_stats)
            stats[day] = stats.get(day, 0) + 1
            bumped = link.model_copy(update={"clicks": link.clicks + 1, "click_stats": stats})
            return container.model_copy(
                update={"links": [bumped if lk.id == link_id else lk for lk in container.links]}
            )

        # Counters do not touch updated_at
        self._mutate(container_id, bump, touch=False)

    @_in_thread
    def set_orders(self, orders: Sequence[tuple[str, int]]) -> None:
        with self._transaction() as conn:
            for container_id, order in orders:
                cursor = conn.execute(
                    "UPDATE containers SET sort_order = ? WHERE id = ?", (order, container_id)
                )
                if cursor.rowcount == 0:
                    raise NotFoundError("container", container_id)

    # --- Membership ---

    @_in_thread
    def add_authorized_user(self, container_id: str, user_id: str) -> None:
        with self._transaction() as conn:
            self._load(conn, container_id)
            conn.execute(
                """
                INSERT OR IGNORE INTO container_members (container_id, user_id, position)
                VALUES (?, ?, (SELECT COALESCE(MAX(position), -1) + 1
                               FROM container_members WHERE container_id = ?))
            """,
                (container_id, user_id, container_id),
            )

    @_in_thread
    def remove_authorized_user(self, container_id: str, user_id: str) -> None:
        with self._transaction() as conn:
            self._load(conn, container_id)
            conn.execute(
                "DELETE FROM container_members WHERE container_id = ? AND user_id = ?",
                (container_id, user_id),
            )


class SQLiteSharingGateway(_SQLiteBase):
    # --- Invitations ---

    def _row_to_invitation(self, row: dict[str, Any]) -> ShareInvitation:
        return ShareInvitation.model_validate(row)

    @_in_thread
    def create_invitation(self, invitation: ShareInvitation) -> str:
        invitation_id = new_document_id()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO invitations (
                    id, container_id, container_name, email, permission, invited_by,
                    inviter_name, status, created_at, expires_at, responded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    invitation_id,
                    invitation.container_id,
                    invitation.container_name,
                    invitation.email,
                    invitation.permission,
                    invitation.invited_by,
                    invitation.inviter_name,
                    invitation.status,
                    _iso(invitation.created_at),
                    _iso(invitation.expires_at),
                    _iso(invitation.responded_at),
                ),
            )
        return invitation_id

    @_in_thread
    def get_invitation(self, invitation_id: str) -> ShareInvitation | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM invitations WHERE id = ?", (invitation_id,)
            ).fetchone()
        return self._row_to_invitation(row) if row else None

    def _pending_where(self, column: str, value: str, now: datetime) -> list[ShareInvitation]:
        with self._read() as conn:
            rows = conn.execute(
                f"SELECT * FROM invitations WHERE {column} = ? AND status = 'pending' "
                "ORDER BY created_at ASC",
                (value,),
            ).fetchall()
        # Expiry is compared on parsed datetimes, not on stored strings
        invitations = [self._row_to_invitation(r) for r in rows]
        return [inv for inv in invitations if inv.is_pending(now)]

    @_in_thread
    def list_pending_for_container(self, container_id: str, now: datetime) -> list[ShareInvitation]:
        return self._pending_where("container_id", container_id, now)

    @_in_thread
    def list_pending_for_email(self, email: str, now: datetime) -> list[ShareInvitation]:
        return self._pending_where("email", email, now)

    @_in_thread
    def update_invitation(self, invitation_id: str, changes: dict[str, Any]) -> None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM invitations WHERE id = ?", (invitation_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("invitation", invitation_id)
            updated = self._row_to_invitation(row).model_copy(update=changes)
            conn.execute(
                """
                UPDATE invitations SET
                    permission = ?, inviter_name = ?, status = ?, expires_at = ?, responded_at = ?
                WHERE id = ?
            """,
                (
                    updated.permission,
                    updated.inviter_name,
                    updated.status,
                    _iso(updated.expires_at),
                    _iso(updated.responded_at),
                    invitation_id,
                ),
            )

    @_in_thread
    def delete_invitation(self, invitation_id: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM invitations WHERE id = ?", (invitation_id,))

    # --- Grants ---

    @_in_thread
    def set_permission(self, grant: PermissionGrant) -> bool:
        with self._transaction() as conn:
            existing = conn.execute(
                "SELECT 1 FROM permissions WHERE container_id = ? AND user_id = ?",
                (grant.container_id, grant.user_id),
            ).fetchone()
            conn.execute(
                """
                INSERT INTO permissions
                    (container_id, user_id, permission, granted_by, granted_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(container_id, user_id) DO UPDATE SET
                    permission=excluded.permission,
                    updated_at=excluded.updated_at
            """,
                (
                    grant.container_id,
                    grant.user_id,
                    grant.permission,
                    grant.granted_by,
                    _iso(grant.granted_at),
                    _iso(grant.updated_at),
                ),
            )
        return existing is None

    @_in_thread
    def get_permission(self, container_id: str, user_id: str) -> PermissionGrant | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM permissions WHERE container_id = ? AND user_id = ?",
                (container_id, user_id),
            ).fetchone()
        return PermissionGrant.model_validate(row) if row else None

    @_in_thread
    def list_permissions(self, container_id: str) -> list[PermissionGrant]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM permissions WHERE container_id = ? ORDER BY granted_at ASC",
                (container_id,),
            ).fetchall()
        return [PermissionGrant.model_validate(r) for r in rows]

    @_in_thread
    def list_permissions_for_user(self, user_id: str) -> list[PermissionGrant]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM permissions WHERE user_id = ? ORDER BY granted_at ASC", (user_id,)
            ).fetchall()
        return [PermissionGrant.model_validate(r) for r in rows]

    @_in_thread
    def delete_permission(self, container_id: str, user_id: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM permissions WHERE container_id = ? AND user_id = ?",
                (container_id, user_id),
            )


class SQLiteShareLinkGateway(_SQLiteBase):
    def _row_to_share_link(self, row: dict[str, Any]) -> ShareLink:
        return ShareLink.model_validate({**row, "is_active": bool(row["is_active"])})

    @_in_thread
    def create(self, share_link: ShareLink) -> str:
        share_link_id = new_document_id()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO share_links (
                    id, container_id, token, permission, created_by, created_at,
                    expires_at, max_uses, current_uses, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    share_link_id,
                    share_link.container_id,
                    share_link.token,
                    share_link.permission,
                    share_link.created_by,
                    _iso(share_link.created_at),
                    _iso(share_link.expires_at),
                    share_link.max_uses,
                    share_link.current_uses,
                    1 if share_link.is_active else 0,
                ),
            )
        return share_link_id

    @_in_thread
    def find_by_token(self, token: str) -> ShareLink | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM share_links WHERE token = ?", (token,)).fetchone()
        return self._row_to_share_link(row) if row else None

    @_in_thread
    def increment_uses(self, share_link_id: str) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE share_links SET current_uses = current_uses + 1 WHERE id = ?",
                (share_link_id,),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("share link", share_link_id)

    @_in_thread
    def list_active(self, container_id: str) -> list[ShareLink]:
        with self._read() as conn:
            rows = conn.execute(
                "SELECT * FROM share_links WHERE container_id = ? AND is_active = 1 "
                "ORDER BY created_at ASC",
                (container_id,),
            ).fetchall()
        return [self._row_to_share_link(r) for r in rows]

    @_in_thread
    def deactivate(self, share_link_id: str) -> None:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE share_links SET is_active = 0 WHERE id = ?", (share_link_id,)
            )
            if cursor.rowcount == 0:
                raise NotFoundError("share link", share_link_id)


class SQLiteUserDirectory(_SQLiteBase):
    def _row_to_user(self, row: dict[str, Any]) -> UserProfile:
        return UserProfile(
            id=row["id"],
            email=row["email"],
            display_name=row["display_name"],
            meta=json.loads(row["meta_json"] or "{}"),
        )

    @_in_thread
    def add(self, user: UserProfile) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO users (id, email, display_name, meta_json) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email=excluded.email,
                    display_name=excluded.display_name,
                    meta_json=excluded.meta_json
            """,
                (user.id, user.email.strip().lower(), user.display_name, json.dumps(user.meta)),
            )

    @_in_thread
    def get_by_id(self, user_id: str) -> UserProfile | None:
        with self._read() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(row) if row else None

    @_in_thread
    def get_by_email(self, email: str) -> UserProfile | None:
        with self._read() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
            ).fetchone()
        return self._row_to_user(row) if row else None

    async def get_display_name(self, user_id: str) -> str:
        user = await self.get_by_id(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user.display_name or user.email.split("@")[0]
