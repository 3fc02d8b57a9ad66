"""
NexaDB Seeders
==============

Populate a database with fixture data.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Optional, Type, Union

from nexadb.errors import ConfigurationError

if TYPE_CHECKING:
    from nexadb.manager import DatabaseManager

logger = logging.getLogger(__name__)


class Seeder(ABC):
    """
    Base seeder.

    Example:
        class UserSeeder(Seeder):
            async def run(self, db):
                await db.table("users").insert([{"name": "Ada"}, {"name": "Grace"}])

        class DatabaseSeeder(Seeder):
            async def run(self, db):
                await self.call(UserSeeder)
    """

    def __init__(self, database: Optional[DatabaseManager] = None) -> None:
        self.database = database

    @abstractmethod
    async def run(self, db: DatabaseManager) -> None:
        """Run the database seeds."""
        ...

    async def call(self, *seeders: Union[Type[Seeder], Seeder]) -> None:
        """Run other seeders against the same database."""
        if self.database is None:
            raise ConfigurationError(f"Seeder {type(self).__name__} has no database to seed")

        for seeder in seeders:
            instance = seeder(self.database) if isinstance(seeder, type) else seeder
            instance.database = self.database

            name = type(instance).__name__
            logger.info(f"Seeding: {name}")
            await instance.run(self.database)
            logger.info(f"Seeded: {name}")


class SeedRunner:
    """
    Runs registered seeders.

    Example:
        runner = SeedRunner(db)
        runner.register(DatabaseSeeder)
        await runner.run()              # runs DatabaseSeeder
        await runner.run("UserSeeder")
    """

    default_seeder = "DatabaseSeeder"

    def __init__(self, database: DatabaseManager) -> None:
        self.database = database
        self._seeders: Dict[str, Type[Seeder]] = {}

    def register(self, seeder: Type[Seeder], name: Optional[str] = None) -> None:
        self._seeders[name or seeder.__name__] = seeder

    async def run(self, name: Optional[str] = None) -> None:
        """Run the named seeder, or DatabaseSeeder when no name is given."""
        name = name or self.default_seeder
        if name not in self._seeders:
            raise ConfigurationError(f'Seeder "{name}" is not registered')

        seeder = self._seeders[name](self.database)

        logger.info(f"Seeding: {name}")
        try:
            await seeder.run(self.database)
        except Exception as e:
            logger.error(f"Seeding failed: {name}: {e}")
            raise
        logger.info(f"Seeded: {name}")
