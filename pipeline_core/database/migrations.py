"""
Migration management for the pipeline core database.
"""

import logging
from typing import List

from .base import DatabaseProvider
from .sql_loader import list_available_scripts, load_sql_script

logger = logging.getLogger(__name__)


class MigrationManager:
    """Applies the packaged SQL scripts once each, in name order."""

    def __init__(self, db_provider: DatabaseProvider):
        self.db_provider = db_provider

    async def create_migrations_table(self) -> None:
        """Create the migrations tracking table."""
        create_table_sql = """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
        """
        await self.db_provider.execute(create_table_sql)

    async def get_applied_migrations(self) -> List[str]:
        """Get list of applied migration versions."""
        rows = await self.db_provider.fetch_all(
            "SELECT version FROM schema_migrations ORDER BY version"
        )
        return [row["version"] for row in rows]

    async def mark_migration_applied(self, version: str) -> None:
        """Mark a migration as applied."""
        await self.db_provider.execute(
            "INSERT OR IGNORE INTO schema_migrations (version) VALUES (?)",
            version
        )

    async def apply_migrations(self) -> List[str]:
        """
        Apply every packaged script that has not been applied yet.

        Returns:
            The versions applied by this call.
        """
        await self.create_migrations_table()
        applied = set(await self.get_applied_migrations())
        newly_applied = []

        for script_name in list_available_scripts():
            version = script_name[:-len(".sql")]
            if version in applied:
                continue
            logger.info(f"Applying migration {version} for {self.db_provider.provider}")
            await self.db_provider.execute_script(load_sql_script(script_name))
            await self.mark_migration_applied(version)
            newly_applied.append(version)

        if not newly_applied:
            logger.debug("Database schema is up to date")
        return newly_applied
