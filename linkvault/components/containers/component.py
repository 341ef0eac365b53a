"""
Containers component - Validation and construction of containers.

Functional Core - pure business logic, no I/O.
"""

from __future__ import annotations

import random
import re
from datetime import datetime
from typing import Any

from linkvault.domain.entities import Container
from linkvault.domain.errors import FieldError, ValidationError
from linkvault.rules.models import ContainerRules, LimitsRules

from .models import EDITABLE_CONTAINER_FIELDS, ContainerDraft

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def validate_container_data(
    limits: LimitsRules,
    name: str | None = None,
    description: str | None = None,
    color: str | None = None,
) -> list[FieldError]:
    errors: list[FieldError] = []

    if name is not None:
        if not name.strip():
            errors.append(FieldError(code="name_required", message="Name is required", field="name"))
        elif len(name) > limits.container_name_max:
            errors.append(
                FieldError(
                    code="name_too_long",
                    message=f"Name must be {limits.container_name_max} characters or less",
                    field="name",
                )
            )

    if description is not None and len(description) > limits.container_description_max:
        errors.append(
            FieldError(
                code="description_too_long",
                message=(
                    f"Description must be {limits.container_description_max} characters or less"
                ),
                field="description",
            )
        )

    if color is not None and not HEX_COLOR.match(color):
        errors.append(
            FieldError(code="color_invalid", message="Color must be a hex string", field="color")
        )

    return errors


def pick_color(rules: ContainerRules, rng: random.Random | None = None) -> str:
    return (rng or random).choice(rules.palette)


def build_container(
    draft: ContainerDraft,
    owner_id: str,
    now: datetime,
    limits: LimitsRules,
    rules: ContainerRules,
) -> Container:
    """Validate a draft and turn it into a new, empty container."""
    errors = validate_container_data(
        limits, name=draft.name, description=draft.description, color=draft.color
    )
    if errors:
        raise ValidationError(errors)

    return Container(
        name=draft.name.strip(),
        description=draft.description.strip(),
        color=draft.color or pick_color(rules),
        owner_id=owner_id,
        authorized_users=[],
        links=[],
        is_shared=False,
        created_at=now,
        updated_at=now,
    )


def clean_container_changes(changes: dict[str, Any], limits: LimitsRules) -> dict[str, Any]:
    unknown = sorted(set(changes) - EDITABLE_CONTAINER_FIELDS)
    if unknown:
        raise ValidationError(
            [
                FieldError(code="field_not_editable", message=f"Field '{k}' cannot be updated", field=k)
                for k in unknown
            ]
        )

    # A present key is a write; None is not a valid name or colour.
    errors: list[FieldError] = []
    if "name" in changes and not isinstance(changes["name"], str):
        errors.append(FieldError(code="name_required", message="Name is required", field="name"))
    if "color" in changes and not isinstance(changes["color"], str):
        errors.append(
            FieldError(code="color_invalid", message="Color must be a hex string", field="color")
        )
    errors += validate_container_data(
        limits,
        name=changes.get("name") if isinstance(changes.get("name"), str) else None,
        description=changes.get("description"),
        color=changes.get("color") if isinstance(changes.get("color"), str) else None,
    )
    if errors:
        raise ValidationError(errors)

    cleaned = dict(changes)
    if "name" in cleaned:
        cleaned["name"] = cleaned["name"].strip()
    if "description" in cleaned:
        cleaned["description"] = (cleaned["description"] or "").strip()
    return cleaned
