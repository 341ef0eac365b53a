from pathlib import Path

import pytest

from linkvault.adapters.clock import FrozenClock
from linkvault.adapters.sqlite import SQLiteMigrator
from linkvault.app_shell.context import ServiceContext
from linkvault.rules.loader import load_rules
from linkvault.rules.models import PreviewRules, Rules

PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def rules() -> Rules:
    """The shipped rules file, with network enrichment turned off."""
    rules = load_rules(PROJECT_ROOT / "rules.yaml")
    return rules.model_copy(update={"preview": PreviewRules(github_enabled=False)})


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / "linkvault.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def sqlite_ctx(db_path, rules, clock) -> ServiceContext:
    """
    Creates a full ServiceContext backed by a migrated temporary SQLite DB.
    """
    return ServiceContext.create(db_path=db_path, rules=rules, clock=clock)


@pytest.fixture
def memory_ctx(rules, clock) -> ServiceContext:
    return ServiceContext.create_in_memory(rules, clock)
