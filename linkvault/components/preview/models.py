"""
Preview component - Data models.
"""

from __future__ import annotations

from dataclasses import dataclass

from linkvault.domain.entities import RepoMetadata


@dataclass(frozen=True)
class GitHubRepoRef:
    owner: str
    repo: str


@dataclass(frozen=True)
class LinkPreview:
    """
    Best-effort enrichment for a link.

    Every field may be missing; an empty preview is a normal outcome.
    """

    url: str
    favicon: str | None = None
    repo_metadata: RepoMetadata | None = None

    @property
    def is_empty(self) -> bool:
        return self.favicon is None and self.repo_metadata is None
