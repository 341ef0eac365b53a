"""
Links component - Validation and construction of embedded links.

Functional Core - pure business logic, no I/O.

Invariants:
- Stored URLs always carry a scheme (``https://`` is prepended otherwise)
- Tags are a lowercase set
- ``note`` never exceeds the configured limit
- ``clicks``/``click_stats`` only ever grow
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from linkvault.components.preview import normalize_url, validate_url
from linkvault.domain.entities import Link, new_link_id
from linkvault.domain.errors import FieldError, ValidationError
from linkvault.rules.models import LimitsRules

from .models import EDITABLE_LINK_FIELDS, LinkDraft


def normalize_tags(tags: Iterable[str]) -> list[str]:
    return sorted({t.strip().lower() for t in tags if t and t.strip()})


def validate_link_data(
    limits: LimitsRules,
    title: str | None = None,
    url: str | None = None,
    note: str | None = None,
) -> list[FieldError]:
    """Validate link fields; ``None`` means "not being set"."""
    errors: list[FieldError] = []

    if title is not None:
        if not title.strip():
            errors.append(
                FieldError(code="title_required", message="Title is required", field="title")
            )
        elif len(title) > limits.link_title_max:
            errors.append(
                FieldError(
                    code="title_too_long",
                    message=f"Title must be {limits.link_title_max} characters or less",
                    field="title",
                )
            )

    if url is not None:
        errors.extend(validate_url(normalize_url(url)))

    if note is not None and len(note) > limits.link_note_max:
        errors.append(
            FieldError(
                code="note_too_long",
                message=f"Note must be {limits.link_note_max} characters or less",
                field="note",
            )
        )

    return errors


def build_link(draft: LinkDraft, created_by: str, now: datetime, limits: LimitsRules) -> Link:
    """Validate a draft and turn it into a new link. Raises ValidationError."""
    errors = validate_link_data(limits, title=draft.title, url=draft.url, note=draft.note)
    if errors:
        raise ValidationError(errors)

    return Link(
        id=new_link_id(),
        title=draft.title.strip(),
        url=normalize_url(draft.url),
        description=draft.description.strip(),
        favicon=draft.favicon,
        tags=normalize_tags(draft.tags),
        note=draft.note.strip() if draft.note else None,
        emoji=draft.emoji,
        is_pinned=draft.is_pinned,
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )


def clean_link_changes(changes: dict[str, Any], limits: LimitsRules) -> dict[str, Any]:
    """
    Validate and normalize a partial link update.

    Unknown or read-only keys are rejected rather than silently dropped.
    """
    unknown = sorted(set(changes) - EDITABLE_LINK_FIELDS)
    if unknown:
        raise ValidationError(
            [
                FieldError(code="field_not_editable", message=f"Field '{k}' cannot be updated", field=k)
                for k in unknown
            ]
        )

    errors = validate_link_data(
        limits,
        title=changes.get("title"),
        url=changes.get("url"),
        note=changes.get("note"),
    )
    if errors:
        raise ValidationError(errors)

    cleaned = dict(changes)
    if "title" in cleaned:
        cleaned["title"] = str(cleaned["title"]).strip()
    if "url" in cleaned:
        cleaned["url"] = normalize_url(cleaned["url"])
    if "tags" in cleaned:
        cleaned["tags"] = normalize_tags(cleaned["tags"] or [])
    if "note" in cleaned and cleaned["note"] is not None:
        cleaned["note"] = str(cleaned["note"]).strip() or None
    return cleaned


def apply_link_changes(link: Link, changes: dict[str, Any], now: datetime) -> Link:
    return Link.model_validate({**link.model_dump(), **changes, "updated_at": now})


def click_day(now: datetime) -> str:
    return now.date().isoformat()


def record_click(link: Link, day: str) -> Link:
    stats = dict(link.click_stats)
    stats[day] = stats.get(day, 0) + 1
    return link.model_copy(update={"clicks": link.clicks + 1, "click_stats": stats})
