"""
NexaDB Migrations
=================

Database schema migrations system.

Features:
- Explicit migration registration
- Batch tracking in a ledger table
- Up/down migrations with rollback, reset and refresh
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple, Type

from nexadb.schema.builder import SchemaBuilder
from nexadb.schema.grammars import MySQLGrammar, PostgreSQLGrammar

if TYPE_CHECKING:
    from nexadb.manager import DatabaseManager
    from nexadb.query.builder import QueryBuilder

logger = logging.getLogger(__name__)


class Migration(ABC):
    """
    Abstract migration class.

    Subclass and implement up() and down() methods.

    Example:
        class CreateUsersTable(Migration):
            async def up(self, schema: SchemaBuilder) -> None:
                def users(table):
                    table.id()
                    table.string("email").unique()
                    table.string("password_hash")
                    table.timestamps()

                await schema.create("users", users)

            async def down(self, schema: SchemaBuilder) -> None:
                await schema.drop_if_exists("users")
    """

    @abstractmethod
    async def up(self, schema: SchemaBuilder) -> None:
        """Run the migration."""
        ...

    @abstractmethod
    async def down(self, schema: SchemaBuilder) -> None:
        """Reverse the migration."""
        ...


class MigrationManager:
    """
    Migration runner.

    Manages migration execution, tracking, and rollback. Pending
    migrations run in name order, so timestamp prefixes keep them
    ordered.

    Example:
        manager = MigrationManager(db)
        manager.register("2024_01_01_000000_create_users_table", CreateUsersTable)

        # Run pending migrations
        await manager.migrate()

        # Rollback last batch
        await manager.rollback()

        # Reset all migrations
        await manager.reset()
    """

    table_name = "migrations"

    def __init__(self, database: DatabaseManager, connection: Optional[str] = None) -> None:
        self.database = database
        self.connection_name = connection
        self._migrations: Dict[str, Type[Migration]] = {}

    def register(self, name: str, migration_class: Type[Migration]) -> None:
        """Register a migration."""
        self._migrations[name] = migration_class

    def _ledger(self) -> QueryBuilder:
        return self.database.table(self.table_name, self.connection_name)

    def _schema(self) -> SchemaBuilder:
        return self.database.schema(self.connection_name)

    async def setup(self) -> None:
        """Create migrations table if not exists."""
        connection = self.database.connection(self.connection_name)
        grammar = connection.get_schema_grammar()

        if isinstance(grammar, MySQLGrammar):
            sql = (
                f"CREATE TABLE IF NOT EXISTS {self.table_name} "
                "(id INT AUTO_INCREMENT PRIMARY KEY, migration VARCHAR(255), batch INT) ENGINE=InnoDB"
            )
        elif isinstance(grammar, PostgreSQLGrammar):
            sql = (
                f"CREATE TABLE IF NOT EXISTS {self.table_name} "
                "(id SERIAL PRIMARY KEY, migration VARCHAR(255), batch INT)"
            )
        else:
            sql = (
                f"CREATE TABLE IF NOT EXISTS {self.table_name} "
                "(id INTEGER PRIMARY KEY AUTOINCREMENT, migration TEXT, batch INTEGER)"
            )

        await connection.query(sql)

    async def get_ran_migrations(self) -> List[str]:
        """Get list of executed migrations."""
        rows = await self._ledger().select("migration").order_by("batch").order_by("id").get()
        return [row["migration"] for row in rows]

    async def get_last_batch(self) -> int:
        """Get last batch number."""
        row = await self._ledger().select("batch").order_by("batch", "desc").first()
        return int(row["batch"]) if row else 0

    async def get_pending_migrations(self) -> List[str]:
        """Get list of pending migrations."""
        ran = set(await self.get_ran_migrations())
        return [name for name in sorted(self._migrations) if name not in ran]

    async def migrate(self) -> List[str]:
        """
        Run all pending migrations.

        Returns list of executed migration names.
        """
        await self.setup()

        pending = await self.get_pending_migrations()
        if not pending:
            logger.info("Nothing to migrate.")
            return []

        batch = await self.get_last_batch() + 1
        executed = []

        for name in pending:
            logger.info(f"Migrating: {name}")
            try:
                migration = self._migrations[name]()
                await migration.up(self._schema())
                await self._ledger().insert({"migration": name, "batch": batch})
            except Exception as e:
                logger.error(f"Migration failed: {name}: {e}")
                raise

            logger.info(f"Migrated: {name}")
            executed.append(name)

        return executed

    async def rollback(self, steps: int = 1) -> List[str]:
        """
        Rollback last N batches.

        Returns list of rolled back migration names.
        """
        await self.setup()

        rolled_back = []
        last_batch = await self.get_last_batch()

        for _ in range(steps):
            if last_batch < 1:
                break

            rows = await self._ledger().where("batch", last_batch).order_by("id", "desc").get()

            for row in rows:
                name = row["migration"]
                if name not in self._migrations:
                    logger.warning(f"Migration not registered, skipping: {name}")
                    continue

                logger.info(f"Rolling back: {name}")
                try:
                    migration = self._migrations[name]()
                    await migration.down(self._schema())
                    await self._ledger().where("migration", name).delete()
                except Exception as e:
                    logger.error(f"Rollback failed: {name}: {e}")
                    raise

                logger.info(f"Rolled back: {name}")
                rolled_back.append(name)

            last_batch -= 1

        if not rolled_back:
            logger.info("Nothing to rollback.")

        return rolled_back

    async def reset(self) -> List[str]:
        """
        Rollback all migrations.

        Returns list of rolled back migration names.
        """
        await self.setup()
        total_batches = await self.get_last_batch()
        return await self.rollback(total_batches)

    async def refresh(self) -> Tuple[List[str], List[str]]:
        """
        Reset and re-run all migrations.

        Returns (rolled_back, executed) tuple.
        """
        rolled_back = await self.reset()
        executed = await self.migrate()
        return rolled_back, executed

    async def status(self) -> List[Dict[str, Any]]:
        """
        Get migration status.

        Returns list of migration info with ran status and batch.
        """
        await self.setup()
        rows = await self._ledger().select("migration", "batch").get()
        batches = {row["migration"]: row["batch"] for row in rows}

        return [
            {"migration": name, "ran": name in batches, "batch": batches.get(name)}
            for name in sorted(self._migrations)
        ]
