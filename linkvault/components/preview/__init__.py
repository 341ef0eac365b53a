"""
Preview component - Link preview resolution (favicon and repository facts).
"""

from .component import (
    DEFAULT_FAVICON_TEMPLATE,
    PreviewResolver,
    extract_domain,
    favicon_url,
    normalize_url,
    parse_github_repo,
    validate_url,
)
from .models import GitHubRepoRef, LinkPreview

__all__ = [
    # Resolver
    "PreviewResolver",
    # Pure functions
    "normalize_url",
    "validate_url",
    "extract_domain",
    "favicon_url",
    "parse_github_repo",
    # Constants
    "DEFAULT_FAVICON_TEMPLATE",
    # Models
    "GitHubRepoRef",
    "LinkPreview",
]
