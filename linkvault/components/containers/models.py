"""
Containers component - Data models.
"""

from __future__ import annotations

from dataclasses import dataclass

EDITABLE_CONTAINER_FIELDS = frozenset({"name", "description", "color"})


@dataclass(frozen=True)
class ContainerDraft:
    """Input for creating a container."""

    name: str
    description: str = ""
    color: str | None = None
