from pydantic import BaseModel, Field

DEFAULT_PALETTE = [
    "#6366f1",
    "#10b981",
    "#f43f5e",
    "#d97706",
    "#8b5cf6",
    "#3b82f6",
    "#0891b2",
    "#ea580c",
    "#6d28d9",
    "#be185d",
]


class LimitsRules(BaseModel):
    container_name_max: int = 50
    container_description_max: int = 200
    link_title_max: int = 500
    link_note_max: int = 100


class ContainerRules(BaseModel):
    palette: list[str] = Field(default_factory=lambda: list(DEFAULT_PALETTE))


class SoftDeleteRules(BaseModel):
    grace_seconds: float = 5.0


class InvitationRules(BaseModel):
    valid_days: int = 7


class ShareLinkRules(BaseModel):
    token_bytes: int = 16
    base_url: str = "http://localhost:5173"
    path_prefix: str = "/share"


class PreviewRules(BaseModel):
    favicon_template: str = "https://www.google.com/s2/favicons?domain={domain}&sz=32"
    github_enabled: bool = True
    timeout_seconds: float = 5.0


class Rules(BaseModel):
    limits: LimitsRules = Field(default_factory=LimitsRules)
    containers: ContainerRules = Field(default_factory=ContainerRules)
    soft_delete: SoftDeleteRules = Field(default_factory=SoftDeleteRules)
    invitations: InvitationRules = Field(default_factory=InvitationRules)
    share_links: ShareLinkRules = Field(default_factory=ShareLinkRules)
    preview: PreviewRules = Field(default_factory=PreviewRules)
