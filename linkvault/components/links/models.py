"""
Links component - Data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Fields a caller may change through update_link
EDITABLE_LINK_FIELDS = frozenset(
    {
        "title",
        "url",
        "description",
        "favicon",
        "tags",
        "note",
        "emoji",
        "is_pinned",
        "repo_metadata",
    }
)


@dataclass(frozen=True)
class LinkDraft:
    """Input for adding a link; id and timestamps are allocated on creation."""

    title: str
    url: str
    description: str = ""
    favicon: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    note: str | None = None
    emoji: str | None = None
    is_pinned: bool = False
