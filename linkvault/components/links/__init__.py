"""
Links component - Validation and construction of links embedded in containers.
"""

from .component import (
    apply_link_changes,
    build_link,
    clean_link_changes,
    click_day,
    normalize_tags,
    record_click,
    validate_link_data,
)
from .models import EDITABLE_LINK_FIELDS, LinkDraft

__all__ = [
    # Pure functions
    "build_link",
    "validate_link_data",
    "clean_link_changes",
    "apply_link_changes",
    "normalize_tags",
    "click_day",
    "record_click",
    # Models
    "LinkDraft",
    "EDITABLE_LINK_FIELDS",
]
