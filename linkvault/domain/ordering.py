"""
Ordering helpers for the presentation layer and the store.

The store never diffs orderings: callers compute the full new sequence with
``array_move`` (and ``merge_section_order`` for sectioned container lists)
and hand it over whole.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

from linkvault.domain.entities import Container, Link

T = TypeVar("T")


def array_move(items: Sequence[T], old_index: int, new_index: int) -> list[T]:
    """Remove the item at ``old_index`` and insert it at ``new_index``."""
    result = list(items)
    if not result:
        return result
    size = len(result)
    if not -size <= old_index < size:
        raise IndexError(f"old_index {old_index} out of range for {size} items")
    item = result.pop(old_index)
    if new_index < 0:
        new_index += size
    new_index = max(0, min(new_index, len(result)))
    result.insert(new_index, item)
    return result


def pinned_first(links: Sequence[Link]) -> list[Link]:
    """Pinned links before unpinned ones; each group keeps its stored order."""
    return [link for link in links if link.is_pinned] + [
        link for link in links if not link.is_pinned
    ]


def sort_by_order(containers: Sequence[Container]) -> list[Container]:
    """
    Containers with an explicit ``order`` first (ascending), then the rest in
    the order the gateway returned them.
    """
    ordered = sorted(
        (c for c in containers if c.order is not None),
        key=lambda c: c.order if c.order is not None else 0,
    )
    return ordered + [c for c in containers if c.order is None]


def split_sections(containers: Sequence[Container]) -> tuple[list[Container], list[Container]]:
    """Return (personal, shared) keeping relative order."""
    personal = [c for c in containers if not c.is_shared]
    shared = [c for c in containers if c.is_shared]
    return personal, shared


def merge_section_order(
    full: Sequence[Container],
    reordered_section: Sequence[Container],
    in_section: Callable[[Container], bool] | None = None,
) -> list[Container]:
    """
    Merge one reordered section back into the full list.

    The section's members fill exactly the slots they occupied before, so
    containers of the other section keep their positions.
    """
    if in_section is None:
        section_ids = {c.id for c in reordered_section}

        def in_section(c: Container) -> bool:
            return c.id in section_ids

    slots = sum(1 for c in full if in_section(c))
    if slots != len(reordered_section):
        raise ValueError(
            f"reordered section has {len(reordered_section)} containers, expected {slots}"
        )

    replacements = iter(reordered_section)
    return [next(replacements) if in_section(c) else c for c in full]
