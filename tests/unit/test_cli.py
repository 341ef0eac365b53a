"""
CLI tests: the argparse surface and end-to-end commands over a temporary
SQLite database.
"""

from __future__ import annotations

import asyncio
import re

import pytest

from linkvault.adapters.sqlite import SQLiteCollectionGateway, SQLiteSharingGateway
from linkvault.app_shell import cli

BOOKMARKS = """
<!DOCTYPE NETSCAPE-Bookmark-file-1>
<DL><p>
  <DT><H3>Reading List</H3>
  <DL><p>
    <DT><A HREF="https://example.com/a">A</A>
    <DT><A HREF="example.com/b">B</A>
  </DL><p>
</DL><p>
"""


@pytest.fixture
def workspace(tmp_path):
    rules_path = tmp_path / "rules.yaml"
    rules_path.write_text("preview:\n  github_enabled: false\n")
    db = str(tmp_path / "cli.db")
    return {"db": db, "rules": str(rules_path), "dir": tmp_path}


def run(workspace, *args: str) -> None:
    cli.main(["--db", workspace["db"], "--rules", workspace["rules"], *args])


class TestParser:
    def test_subcommand_required(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_share_link_options(self) -> None:
        args = cli.build_parser().parse_args(
            ["share-link", "c1", "--user", "alice", "--expires-days", "3", "--max-uses", "5"]
        )
        assert args.expires_days == 3
        assert args.max_uses == 5
        assert args.permission == "view"
        assert args.db == cli.DB_PATH

    def test_permission_choices(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["invite", "c1", "a@x.com", "--user", "u", "--permission", "owner"])

    def test_missing_rules_file_uses_defaults(self, tmp_path) -> None:
        rules = cli.get_rules(str(tmp_path / "absent.yaml"))
        assert rules.limits.container_name_max == 50


class TestCommands:
    def test_init_db_is_idempotent(self, workspace, capsys) -> None:
        run(workspace, "init-db")
        run(workspace, "init-db")

        out = capsys.readouterr().out
        assert "Applied 1 migration(s)" in out
        assert "Applied 0 migration(s)" in out

    def test_import_invite_accept_export(self, workspace, capsys) -> None:
        bookmarks = workspace["dir"] / "bookmarks.html"
        bookmarks.write_text(BOOKMARKS)

        run(workspace, "init-db")
        run(workspace, "add-user", "alice", "alice@x.com", "--name", "Alice")
        run(workspace, "add-user", "bob", "Bob@X.com")
        run(workspace, "import", str(bookmarks), "--user", "alice")
        assert "Imported 2 links into 1 new container(s)." in capsys.readouterr().out

        containers = asyncio.run(SQLiteCollectionGateway(workspace["db"]).list_for_user("alice"))
        assert [c.name for c in containers] == ["Reading List"]
        container_id = containers[0].id
        assert [lk.url for lk in containers[0].links] == [
            "https://example.com/a",
            "https://example.com/b",
        ]

        run(workspace, "invite", container_id, "bob@x.com", "--user", "alice", "--permission", "edit")
        out = capsys.readouterr().out
        invitation_id = re.search(r"Invitation (\w+) sent to bob@x.com \(edit\)", out).group(1)

        invitation = asyncio.run(SQLiteSharingGateway(workspace["db"]).get_invitation(invitation_id))
        assert invitation.inviter_name == "Alice"
        assert invitation.container_name == "Reading List"

        run(workspace, "accept", invitation_id, "--user", "bob")
        assert f"Access granted to container {container_id} (edit)." in capsys.readouterr().out

        run(workspace, "export", "--user", "bob")
        out = capsys.readouterr().out
        assert "<H3" in out and "Reading List</H3>" in out
        assert 'HREF="https://example.com/b"' in out

    def test_share_link(self, workspace, capsys) -> None:
        run(workspace, "init-db")
        bookmarks = workspace["dir"] / "bookmarks.html"
        bookmarks.write_text(BOOKMARKS)
        run(workspace, "import", str(bookmarks), "--user", "alice")
        container_id = asyncio.run(
            SQLiteCollectionGateway(workspace["db"]).list_for_user("alice")
        )[0].id
        capsys.readouterr()

        run(workspace, "share-link", container_id, "--user", "alice", "--max-uses", "2")

        out = capsys.readouterr().out
        assert "Share link created (view)." in out
        assert re.search(r"Link: http://localhost:5173/share/[\w-]+", out)

    def test_export_to_file(self, workspace) -> None:
        run(workspace, "init-db")
        bookmarks = workspace["dir"] / "bookmarks.html"
        bookmarks.write_text(BOOKMARKS)
        run(workspace, "import", str(bookmarks), "--user", "alice")

        target = workspace["dir"] / "export.html"
        run(workspace, "export", "--user", "alice", "--output", str(target))

        assert "Reading List</H3>" in target.read_text(encoding="utf-8")

    def test_non_owner_cannot_invite(self, workspace) -> None:
        run(workspace, "init-db")
        bookmarks = workspace["dir"] / "bookmarks.html"
        bookmarks.write_text(BOOKMARKS)
        run(workspace, "import", str(bookmarks), "--user", "alice")
        container_id = asyncio.run(
            SQLiteCollectionGateway(workspace["db"]).list_for_user("alice")
        )[0].id

        with pytest.raises(SystemExit) as exc:
            run(workspace, "invite", container_id, "eve@x.com", "--user", "mallory")
        assert exc.value.code == 1

    def test_unknown_container(self, workspace) -> None:
        run(workspace, "init-db")
        with pytest.raises(SystemExit) as exc:
            run(workspace, "share-link", "missing", "--user", "alice")
        assert exc.value.code == 1
