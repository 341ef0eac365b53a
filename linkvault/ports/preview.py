from typing import Protocol

from linkvault.domain.entities import RepoMetadata


class RepoMetadataPort(Protocol):
    async def fetch(self, owner: str, repo: str) -> RepoMetadata | None:
        """Repository facts, or None when unavailable."""
        ...
