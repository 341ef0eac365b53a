"""
Preview component - URL normalization and favicon/metadata resolution.

Resolution is best effort and never raises: the favicon comes from a
deterministic lookup keyed by domain, and GitHub repository URLs are
optionally enriched through ``RepoMetadataPort``. Nothing is scraped from
the page itself.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import quote, urlparse

from linkvault.domain.errors import FieldError
from linkvault.ports.preview import RepoMetadataPort
from linkvault.rules.models import PreviewRules

from .models import GitHubRepoRef, LinkPreview

logger = logging.getLogger(__name__)

DEFAULT_FAVICON_TEMPLATE = "https://www.google.com/s2/favicons?domain={domain}&sz=32"

ALLOWED_SCHEMES = ("http", "https")

SCHEME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


# --- Pure Functions (Functional Core) ---


def normalize_url(url: str) -> str:
    """Trim and prepend ``https://`` when the URL carries no scheme."""
    trimmed = (url or "").strip()
    if not trimmed:
        return ""
    if SCHEME_PATTERN.match(trimmed):
        return trimmed
    return f"https://{trimmed}"


def validate_url(url: str) -> list[FieldError]:
    """Validate an already-normalized URL."""
    if not url:
        return [FieldError(code="url_required", message="URL is required", field="url")]

    parsed = urlparse(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        return [
            FieldError(
                code="url_invalid_scheme",
                message="URL must start with http:// or https://",
                field="url",
            )
        ]
    host = parsed.hostname or ""
    if not host or " " in parsed.netloc:
        return [FieldError(code="url_invalid", message="URL must include a valid host", field="url")]
    return []


def extract_domain(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def favicon_url(url: str, template: str = DEFAULT_FAVICON_TEMPLATE) -> str | None:
    domain = extract_domain(url)
    if not domain:
        return None
    return template.format(domain=quote(domain, safe=""))


def parse_github_repo(url: str) -> GitHubRepoRef | None:
    """``https://github.com/<owner>/<repo>[/...]`` -> (owner, repo)."""
    if extract_domain(url) != "github.com":
        return None
    parts = [p for p in urlparse(url).path.split("/") if p]
    if len(parts) < 2:
        return None
    repo = parts[1][:-4] if parts[1].endswith(".git") else parts[1]
    return GitHubRepoRef(owner=parts[0], repo=repo)


# --- Resolver (Shell) ---


class PreviewResolver:
    def __init__(
        self,
        rules: PreviewRules | None = None,
        repo_metadata: RepoMetadataPort | None = None,
    ) -> None:
        self._rules = rules or PreviewRules()
        self._repo_metadata = repo_metadata

    def favicon_for(self, url: str) -> str | None:
        return favicon_url(normalize_url(url), self._rules.favicon_template)

    async def resolve(self, url: str) -> LinkPreview:
        normalized = normalize_url(url)
        if validate_url(normalized):
            return LinkPreview(url=normalized)

        favicon = favicon_url(normalized, self._rules.favicon_template)

        repo_metadata = None
        ref = parse_github_repo(normalized)
        if ref and self._repo_metadata is not None and self._rules.github_enabled:
            try:
                repo_metadata = await self._repo_metadata.fetch(ref.owner, ref.repo)
            except Exception as e:
                logger.debug("Repository metadata lookup failed for %s: %s", normalized, e)

        return LinkPreview(url=normalized, favicon=favicon, repo_metadata=repo_metadata)
