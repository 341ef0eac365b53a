"""
Share links component - Create, resolve and redeem container share links.
"""

from .component import (
    create_share_link,
    deactivate_share_link,
    generate_token,
    get_by_token,
    list_share_links,
    redeem_share_link,
    share_url,
    use_share_link,
)
from .models import CreateShareLinkInput, RedeemShareLinkOutput

__all__ = [
    "create_share_link",
    "get_by_token",
    "use_share_link",
    "list_share_links",
    "deactivate_share_link",
    "redeem_share_link",
    "generate_token",
    "share_url",
    "CreateShareLinkInput",
    "RedeemShareLinkOutput",
]
