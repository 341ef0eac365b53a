from .gateways import (
    SQLiteCollectionGateway,
    SQLiteShareLinkGateway,
    SQLiteSharingGateway,
    SQLiteUserDirectory,
)
from .migrator import MIGRATIONS_DIR, SQLiteMigrator

__all__ = [
    "SQLiteCollectionGateway",
    "SQLiteSharingGateway",
    "SQLiteShareLinkGateway",
    "SQLiteUserDirectory",
    "SQLiteMigrator",
    "MIGRATIONS_DIR",
]
