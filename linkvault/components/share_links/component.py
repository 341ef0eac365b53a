"""
Share links component - Token links that grant access to whoever opens them.

A link is usable only while active, unexpired and under ``max_uses``. Each
successful redemption counts as one use; the owner opening their own link
does not.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta
from urllib.parse import quote

from linkvault.components.collab import GrantAccessInput, grant_access
from linkvault.domain.entities import ShareLink
from linkvault.domain.errors import ExpiredError, FieldError, NotFoundError, ValidationError
from linkvault.ports.clock import TimePort
from linkvault.ports.gateway import CollectionGatewayPort
from linkvault.ports.sharing import SharingGatewayPort, ShareLinkGatewayPort
from linkvault.rules.models import ShareLinkRules

from .models import CreateShareLinkInput, RedeemShareLinkOutput

logger = logging.getLogger(__name__)


def generate_token(nbytes: int = 16) -> str:
    return secrets.token_urlsafe(nbytes)


def share_url(base_url: str, token: str, path_prefix: str = "/share") -> str:
    return f"{base_url.rstrip('/')}/{path_prefix.strip('/')}/{quote(token, safe='')}"


def _validate(inp: CreateShareLinkInput) -> list[FieldError]:
    errors: list[FieldError] = []
    if inp.expires_in_days is not None and inp.expires_in_days <= 0:
        errors.append(
            FieldError(
                code="expiry_invalid",
                message="Expiry must be at least one day",
                field="expires_in_days",
            )
        )
    if inp.max_uses is not None and inp.max_uses <= 0:
        errors.append(
            FieldError(code="max_uses_invalid", message="Max uses must be positive", field="max_uses")
        )
    return errors


async def create_share_link(
    inp: CreateShareLinkInput,
    links: ShareLinkGatewayPort,
    time: TimePort,
    rules: ShareLinkRules,
) -> ShareLink:
    errors = _validate(inp)
    if errors:
        raise ValidationError(errors)

    now = time.now_utc()
    share_link = ShareLink(
        container_id=inp.container_id,
        token=generate_token(rules.token_bytes),
        permission=inp.permission,
        created_by=inp.created_by,
        created_at=now,
        expires_at=now + timedelta(days=inp.expires_in_days) if inp.expires_in_days else None,
        max_uses=inp.max_uses,
    )
    share_link_id = await links.create(share_link)
    logger.info("Share link created for container %s (%s)", inp.container_id, inp.permission)
    return share_link.model_copy(update={"id": share_link_id})


async def get_by_token(token: str, links: ShareLinkGatewayPort, time: TimePort) -> ShareLink | None:
    """The link for ``token`` if it can still be used, otherwise None."""
    share_link = await links.find_by_token(token)
    if share_link is None or not share_link.is_usable(time.now_utc()):
        return None
    return share_link


async def use_share_link(share_link_id: str, links: ShareLinkGatewayPort) -> None:
    await links.increment_uses(share_link_id)


async def list_share_links(container_id: str, links: ShareLinkGatewayPort) -> list[ShareLink]:
    return await links.list_active(container_id)


async def deactivate_share_link(share_link_id: str, links: ShareLinkGatewayPort) -> None:
    await links.deactivate(share_link_id)


async def redeem_share_link(
    token: str,
    user_id: str,
    gateway: CollectionGatewayPort,
    sharing: SharingGatewayPort,
    links: ShareLinkGatewayPort,
    time: TimePort,
) -> RedeemShareLinkOutput:
    share_link = await get_by_token(token, links, time)
    if share_link is None:
        raise ExpiredError("share link", token)

    container = await gateway.get(share_link.container_id)
    if container is None:
        raise NotFoundError("container", share_link.container_id)

    if user_id == container.owner_id:
        return RedeemShareLinkOutput(share_link=share_link, container_id=container.id)

    # A share link never downgrades an existing, higher grant
    result = await grant_access(
        GrantAccessInput(
            container_id=container.id,
            owner_id=container.owner_id,
            user_id=user_id,
            permission=share_link.permission,
            granted_by=share_link.created_by,
            keep_higher=True,
        ),
        gateway,
        sharing,
        time,
    )
    await use_share_link(share_link.id, links)

    used = share_link.model_copy(update={"current_uses": share_link.current_uses + 1})
    return RedeemShareLinkOutput(share_link=used, container_id=container.id, grant=result.grant)
