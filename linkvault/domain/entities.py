from datetime import UTC, datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

# --- Enums / Literals ---
PermissionLevel = Literal["view", "comment", "edit"]
InvitationStatus = Literal["pending", "accepted", "declined"]


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_link_id() -> str:
    return f"link_{uuid4().hex}"


def new_document_id() -> str:
    return uuid4().hex


# --- Links ---

class RepoMetadata(BaseModel):
    stars: int | None = None
    language: str | None = None
    forks: int | None = None
    open_issues: int | None = None
    owner_avatar: str | None = None
    repo_name: str | None = None
    owner_name: str | None = None


class Link(BaseModel):
    id: str = Field(default_factory=new_link_id)
    title: str
    url: str
    description: str = ""
    favicon: str | None = None
    tags: list[str] = Field(default_factory=list)
    note: str | None = None
    emoji: str | None = None
    is_pinned: bool = False
    clicks: int = 0
    click_stats: dict[str, int] = Field(default_factory=dict)  # "YYYY-MM-DD" -> count
    repo_metadata: RepoMetadata | None = None
    created_by: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("tags")
    @classmethod
    def _tags_are_a_lowercase_set(cls, value: list[str]) -> list[str]:
        return sorted({t.strip().lower() for t in value if t and t.strip()})


# --- Containers ---

class Container(BaseModel):
    id: str = Field(default_factory=new_document_id)
    name: str
    description: str = ""
    color: str
    owner_id: str
    authorized_users: list[str] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)
    is_shared: bool = False
    order: int | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def find_link(self, link_id: str) -> Link | None:
        return next((link for link in self.links if link.id == link_id), None)

    def viewed_by(self, viewer_id: str) -> "Container":
        """Copy with ``is_shared`` derived for the given viewer."""
        return self.model_copy(update={"is_shared": viewer_id != self.owner_id})


# --- Sharing ---

class PermissionGrant(BaseModel):
    container_id: str
    user_id: str
    permission: PermissionLevel
    granted_by: str
    granted_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None


class ShareInvitation(BaseModel):
    id: str = Field(default_factory=new_document_id)
    container_id: str
    container_name: str | None = None
    email: str
    permission: PermissionLevel
    invited_by: str
    inviter_name: str | None = None
    status: InvitationStatus = "pending"
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    responded_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def is_pending(self, now: datetime) -> bool:
        return self.status == "pending" and not self.is_expired(now)


class ShareLink(BaseModel):
    id: str = Field(default_factory=new_document_id)
    container_id: str
    token: str
    permission: PermissionLevel
    created_by: str
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None
    max_uses: int | None = None
    current_uses: int = 0
    is_active: bool = True

    def is_usable(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        if self.expires_at is not None and self.expires_at <= now:
            return False
        if self.max_uses is not None and self.current_uses >= self.max_uses:
            return False
        return True


# --- Users ---

class UserProfile(BaseModel):
    id: str
    email: str
    display_name: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
