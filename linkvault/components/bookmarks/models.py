from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ImportedBookmark:
    title: str
    url: str
    folder_path: list[str]
    add_date: int | None = None


@dataclass
class ImportResult:
    containers_created: list[str] = field(default_factory=list)
    links_added: int = 0
    # (url, reason) for entries that failed validation
    skipped: list[tuple[str, str]] = field(default_factory=list)
