"""
Bookmarks component - Netscape bookmark file import and export.

The Netscape format is what every browser exports: nested ``<DL>`` lists
where ``<DT><H3>`` opens a folder and ``<DT><A HREF>`` is a bookmark.
Containers are flat, so only the top-level folder of each bookmark decides
where it lands.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, cast

from bs4 import BeautifulSoup, Tag

from linkvault.components.links import LinkDraft
from linkvault.domain.entities import Container
from linkvault.domain.errors import ValidationError

from .models import ImportedBookmark, ImportResult

if TYPE_CHECKING:
    from linkvault.components.sync import ContainerStore

logger = logging.getLogger(__name__)

LOOSE_LINKS_CONTAINER = "Imported"


# --- Parsing ---


def _iter_dt_entries(dl: Tag) -> list[Tag]:
    entries: list[Tag] = []
    for dt in dl.find_all("dt"):
        if not isinstance(dt, Tag):
            continue
        if dt.find_parent("dl") is dl:
            entries.append(cast(Tag, dt))
    return entries


def _find_nested_dl(dt: Tag) -> Tag | None:
    nested = dt.find("dl")
    if isinstance(nested, Tag):
        return nested

    # lxml does not always nest the <DL> inside its <DT>
    sibling = dt.next_sibling
    while sibling is not None:
        if isinstance(sibling, Tag):
            name = (sibling.name or "").lower()
            if name == "dl":
                return sibling
            if name == "dt":
                return None
        sibling = sibling.next_sibling
    return None


def _own_child(dt: Tag, names: str | list[str]) -> Tag | None:
    for found in dt.find_all(names):
        if isinstance(found, Tag) and found.find_parent("dt") is dt:
            return found
    return None


def _parse_add_date(anchor: Tag) -> int | None:
    raw = anchor.get("add_date")
    if not isinstance(raw, str):
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _parse_dl(dl: Tag, folder_path: list[str], out: list[ImportedBookmark]) -> None:
    for dt in _iter_dt_entries(dl):
        anchor = _own_child(dt, "a")
        href = ""
        if anchor is not None:
            href_value = anchor.get("href")
            href = href_value.strip() if isinstance(href_value, str) else ""

        if anchor is not None and href:
            out.append(
                ImportedBookmark(
                    title=anchor.get_text(strip=True),
                    url=href,
                    folder_path=folder_path.copy(),
                    add_date=_parse_add_date(anchor),
                )
            )

        folder = _own_child(dt, ["h3", "h2", "h1"])
        nested_dl = _find_nested_dl(dt)
        if folder is not None and nested_dl is not None:
            _parse_dl(nested_dl, folder_path + [folder.get_text(strip=True)], out)


def parse_netscape_bookmarks(markup: str) -> list[ImportedBookmark]:
    soup = BeautifulSoup(markup, "lxml")
    root = soup.find("dl")
    if not isinstance(root, Tag):
        return []

    bookmarks: list[ImportedBookmark] = []
    _parse_dl(root, [], bookmarks)
    return bookmarks


# --- Export ---


def generate_netscape_bookmarks(containers: Sequence[Container]) -> str:
    """One folder per container, links in stored order."""
    lines = [
        "<!DOCTYPE NETSCAPE-Bookmark-file-1>",
        "<!-- This file is automatically generated by LinkVault. -->",
        '<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">',
        "<TITLE>Bookmarks</TITLE>",
        "<H1>Bookmarks</H1>",
        "<DL><p>",
    ]
    for container in containers:
        name = container.name.strip() or "Untitled"
        added = int(container.created_at.timestamp())
        lines.append(f'    <DT><H3 ADD_DATE="{added}">{html.escape(name)}</H3>')
        lines.append("    <DL><p>")
        for link in container.links:
            title = link.title.strip() or link.url
            lines.append(
                f'        <DT><A HREF="{html.escape(link.url, quote=True)}" '
                f'ADD_DATE="{int(link.created_at.timestamp())}">{html.escape(title)}</A>'
            )
        lines.append("    </DL><p>")
    lines.append("</DL><p>")
    return "\n".join(lines) + "\n"


# --- Import ---


def group_by_top_folder(
    bookmarks: Iterable[ImportedBookmark], fallback: str = LOOSE_LINKS_CONTAINER
) -> dict[str, list[ImportedBookmark]]:
    groups: dict[str, list[ImportedBookmark]] = {}
    for bm in bookmarks:
        name = bm.folder_path[0].strip() if bm.folder_path else ""
        groups.setdefault(name or fallback, []).append(bm)
    return groups


async def import_bookmarks(
    store: ContainerStore,
    bookmarks: Iterable[ImportedBookmark],
    fallback: str = LOOSE_LINKS_CONTAINER,
    name_max: int = 50,
) -> ImportResult:
    """
    Add bookmarks through the store, one container per top-level folder.

    Containers the user already owns under the same name are reused.
    Entries that fail validation are skipped; gateway errors propagate.
    """
    result = ImportResult()
    owned = {c.name: c.id for c in store.containers if not c.is_shared}

    for folder, entries in group_by_top_folder(bookmarks, fallback).items():
        name = folder[:name_max]
        container_id = owned.get(name)
        if container_id is None:
            container = await store.create_container(name)
            container_id = owned[name] = container.id
            result.containers_created.append(container_id)

        for bm in entries:
            draft = LinkDraft(title=bm.title or bm.url, url=bm.url)
            try:
                await store.add_link(container_id, draft)
            except ValidationError as e:
                logger.info("Skipping bookmark %s: %s", bm.url, e)
                result.skipped.append((bm.url, ", ".join(e.codes)))
                continue
            result.links_added += 1

    return result
