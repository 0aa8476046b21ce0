"""
Database providers and schema management.
"""

from .base import DatabaseProvider
from .sqlite import SQLiteProvider
from .migrations import MigrationManager


def create_database_provider(database_url: str) -> DatabaseProvider:
    """Create the provider matching a database URL."""
    if database_url.startswith("sqlite") or database_url.endswith(".db") or database_url == ":memory:":
        return SQLiteProvider(database_url)
    raise ValueError(f"Unsupported database URL: {database_url}")


__all__ = [
    "DatabaseProvider",
    "SQLiteProvider",
    "MigrationManager",
    "create_database_provider",
]
