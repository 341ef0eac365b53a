import argparse
import asyncio
import logging
import sys
from pathlib import Path

from linkvault.adapters.sqlite import SQLiteMigrator, SQLiteUserDirectory
from linkvault.app_shell.context import ServiceContext
from linkvault.components.bookmarks import (
    generate_netscape_bookmarks,
    import_bookmarks,
    parse_netscape_bookmarks,
)
from linkvault.components.collab import display_name
from linkvault.components.invitations import (
    AcceptInvitationInput,
    SendInvitationInput,
    accept_invitation,
    send_invitation,
)
from linkvault.components.share_links import CreateShareLinkInput, create_share_link, share_url
from linkvault.domain.entities import UserProfile
from linkvault.domain.errors import LinkVaultError, NotFoundError, PermissionDenied
from linkvault.domain.policy import can_manage_sharing
from linkvault.rules.loader import default_rules, load_rules
from linkvault.rules.models import Rules

logger = logging.getLogger("cli")

DB_PATH = "linkvault.db"
RULES_PATH = "rules.yaml"


def get_rules(rules_path: str) -> Rules:
    path = Path(rules_path)
    if not path.exists():
        logger.warning("Rules file %s not found, using defaults.", rules_path)
        return default_rules()
    return load_rules(path)


def get_context(args: argparse.Namespace) -> ServiceContext:
    return ServiceContext.create(args.db, get_rules(args.rules))


def handle_init_db(args: argparse.Namespace) -> None:
    applied = SQLiteMigrator(args.db).run_migrations()
    print(f"Applied {len(applied)} migration(s) to {args.db}.")


async def handle_add_user(ctx: ServiceContext, args: argparse.Namespace) -> None:
    users = SQLiteUserDirectory(args.db)
    await users.add(UserProfile(id=args.user_id, email=args.email, display_name=args.name))
    print(f"User {args.user_id} saved.")


async def handle_export(ctx: ServiceContext, args: argparse.Namespace) -> None:
    store = ctx.store()
    await store.set_user(args.user)
    if store.error:
        raise LinkVaultError(store.error)

    markup = generate_netscape_bookmarks(store.containers)
    if args.output:
        Path(args.output).write_text(markup, encoding="utf-8")
        print(f"Exported {len(store.containers)} containers to {args.output}.")
    else:
        sys.stdout.write(markup)


async def handle_import(ctx: ServiceContext, args: argparse.Namespace) -> None:
    bookmarks = parse_netscape_bookmarks(Path(args.file).read_text(encoding="utf-8"))
    store = ctx.store()
    await store.set_user(args.user)
    try:
        result = await import_bookmarks(store, bookmarks, name_max=ctx.rules.limits.container_name_max)
    finally:
        await store.aclose()

    print(
        f"Imported {result.links_added} links into "
        f"{len(result.containers_created)} new container(s)."
    )
    for url, reason in result.skipped:
        print(f"Skipped {url}: {reason}")


async def handle_invite(ctx: ServiceContext, args: argparse.Namespace) -> None:
    container = await ctx.gateway.get(args.container)
    if container is None:
        raise NotFoundError("container", args.container)
    if not can_manage_sharing(container, args.user):
        raise PermissionDenied("invite collaborators", container.id)

    inviter = await ctx.users.get_by_id(args.user)
    invitation = await send_invitation(
        SendInvitationInput(
            container=container,
            email=args.email,
            permission=args.permission,
            invited_by=args.user,
            inviter_name=await display_name(args.user, ctx.users),
            inviter_email=inviter.email if inviter else None,
        ),
        ctx.sharing,
        ctx.clock,
        ctx.rules.invitations,
    )
    print(f"Invitation {invitation.id} sent to {invitation.email} ({invitation.permission}).")
    print(f"Expires: {invitation.expires_at.isoformat()}")


async def handle_accept(ctx: ServiceContext, args: argparse.Namespace) -> None:
    user = await ctx.users.get_by_id(args.user)
    grant = await accept_invitation(
        AcceptInvitationInput(
            invitation_id=args.invitation,
            user_id=args.user,
            user_email=user.email if user else None,
        ),
        ctx.gateway,
        ctx.sharing,
        ctx.clock,
    )
    print(f"Access granted to container {grant.container_id} ({grant.permission}).")


async def handle_share_link(ctx: ServiceContext, args: argparse.Namespace) -> None:
    container = await ctx.gateway.get(args.container)
    if container is None:
        raise NotFoundError("container", args.container)
    if not can_manage_sharing(container, args.user):
        raise PermissionDenied("create share links", container.id)

    rules = ctx.rules.share_links
    share_link = await create_share_link(
        CreateShareLinkInput(
            container_id=container.id,
            created_by=args.user,
            permission=args.permission,
            expires_in_days=args.expires_days,
            max_uses=args.max_uses,
        ),
        ctx.share_links,
        ctx.clock,
        rules,
    )
    print(f"Share link created ({share_link.permission}).")
    print(f"Link: {share_url(rules.base_url, share_link.token, rules.path_prefix)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="LinkVault CLI")
    parser.add_argument("--db", default=DB_PATH, help="SQLite database path")
    parser.add_argument("--rules", default=RULES_PATH, help="Rules file path")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # init-db
    subparsers.add_parser("init-db", help="Apply database migrations")

    # add-user
    user_parser = subparsers.add_parser("add-user", help="Register a user profile")
    user_parser.add_argument("user_id")
    user_parser.add_argument("email")
    user_parser.add_argument("--name", help="Display name")

    # export
    export_parser = subparsers.add_parser("export", help="Export containers as bookmark HTML")
    export_parser.add_argument("--user", required=True, help="User whose containers to export")
    export_parser.add_argument("--output", help="File to write (default: stdout)")

    # import
    import_parser = subparsers.add_parser("import", help="Import a browser bookmark file")
    import_parser.add_argument("file", help="Netscape bookmark HTML file")
    import_parser.add_argument("--user", required=True, help="Owner of the new containers")

    # invite
    invite_parser = subparsers.add_parser("invite", help="Invite someone to a container")
    invite_parser.add_argument("container", help="Container id")
    invite_parser.add_argument("email", help="Invitee email")
    invite_parser.add_argument("--user", required=True, help="Owner sending the invitation")
    invite_parser.add_argument(
        "--permission", choices=["view", "comment", "edit"], default="view"
    )

    # accept
    accept_parser = subparsers.add_parser("accept", help="Accept an invitation")
    accept_parser.add_argument("invitation", help="Invitation id")
    accept_parser.add_argument("--user", required=True, help="User accepting")

    # share-link
    link_parser = subparsers.add_parser("share-link", help="Create a share link")
    link_parser.add_argument("container", help="Container id")
    link_parser.add_argument("--user", required=True, help="Owner creating the link")
    link_parser.add_argument(
        "--permission", choices=["view", "comment", "edit"], default="view"
    )
    link_parser.add_argument("--expires-days", type=int, help="Days until the link expires")
    link_parser.add_argument("--max-uses", type=int, help="Maximum number of uses")

    return parser


HANDLERS = {
    "add-user": handle_add_user,
    "export": handle_export,
    "import": handle_import,
    "invite": handle_invite,
    "accept": handle_accept,
    "share-link": handle_share_link,
}


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)

    if args.command == "init-db":
        handle_init_db(args)
        return

    ctx = get_context(args)
    try:
        asyncio.run(HANDLERS[args.command](ctx, args))
    except LinkVaultError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
