"""
Containers component - Validation and construction of containers.
"""

from .component import (
    HEX_COLOR,
    build_container,
    clean_container_changes,
    pick_color,
    validate_container_data,
)
from .models import EDITABLE_CONTAINER_FIELDS, ContainerDraft

__all__ = [
    "build_container",
    "clean_container_changes",
    "pick_color",
    "validate_container_data",
    "HEX_COLOR",
    "ContainerDraft",
    "EDITABLE_CONTAINER_FIELDS",
]
