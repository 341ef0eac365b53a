import sqlite3

import pytest

from linkvault.adapters.sqlite import MIGRATIONS_DIR, SQLiteMigrator


@pytest.fixture
def temp_db_path(tmp_path):
    return str(tmp_path / "test_db.sqlite")


def table_names(db_path: str) -> set[str]:
    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    finally:
        conn.close()
    return {row[0] for row in rows}


def test_migrator_creates_migration_table(temp_db_path):
    SQLiteMigrator(temp_db_path).run_migrations()

    assert "_migrations" in table_names(temp_db_path)


def test_migrator_applies_initial(temp_db_path):
    applied = SQLiteMigrator(temp_db_path).run_migrations()

    assert applied == ["001_initial.sql"]
    assert {
        "containers",
        "container_members",
        "permissions",
        "invitations",
        "share_links",
        "users",
    } <= table_names(temp_db_path)


def test_down_section_is_not_applied(temp_db_path):
    SQLiteMigrator(temp_db_path).run_migrations()

    # DROP statements after the "-- Down" marker must not have run
    assert "containers" in table_names(temp_db_path)


def test_migrator_is_idempotent(temp_db_path):
    migrator = SQLiteMigrator(temp_db_path)

    migrator.run_migrations()
    assert migrator.run_migrations() == []
    assert migrator.pending() == []

    conn = sqlite3.connect(temp_db_path)
    cursor = conn.execute("SELECT count(*) FROM _migrations WHERE filename='001_initial.sql'")
    assert cursor.fetchone()[0] == 1
    conn.close()


def test_pending_before_run(temp_db_path):
    assert SQLiteMigrator(temp_db_path).pending() == sorted(
        p.name for p in MIGRATIONS_DIR.glob("*.sql")
    )


def test_broken_migration_is_not_recorded(temp_db_path, tmp_path):
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_broken.sql").write_text("CREATE TABLE ok (id TEXT);\nNOT VALID SQL;\n")

    with pytest.raises(RuntimeError, match="001_broken.sql"):
        SQLiteMigrator(temp_db_path, migrations).run_migrations()

    assert SQLiteMigrator(temp_db_path, migrations).pending() == ["001_broken.sql"]
