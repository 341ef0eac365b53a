"""
GitHub repository metadata over the public REST API.

Any transport or HTTP failure yields None: enrichment is optional.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from linkvault.domain.entities import RepoMetadata

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

DEFAULT_HEADERS = {
    "Accept": "application/vnd.github+json",
    "User-Agent": "LinkVault/1.0",
}


def _normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


def repo_metadata_from_payload(data: dict[str, Any]) -> RepoMetadata:
    owner = data.get("owner") or {}
    return RepoMetadata(
        stars=data.get("stargazers_count"),
        language=data.get("language"),
        forks=data.get("forks_count"),
        open_issues=data.get("open_issues_count"),
        owner_avatar=owner.get("avatar_url"),
        repo_name=data.get("name"),
        owner_name=owner.get("login"),
    )


class GitHubRepoMetadata:
    def __init__(
        self,
        timeout: float = 5.0,
        base_url: str = GITHUB_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    async def fetch(self, owner: str, repo: str) -> RepoMetadata | None:
        url = f"{self._base_url}/repos/{owner}/{repo}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=DEFAULT_HEADERS,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("GitHub lookup for %s/%s failed: %s", owner, repo, _normalize_error(exc))
            return None

        if not isinstance(data, dict):
            return None
        return repo_metadata_from_payload(data)
