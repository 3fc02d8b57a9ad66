"""
NexaDB Database Manager
=======================

Connection registry and entry point.

Features:
- Named connections created lazily per driver
- Query builders wired with the cache store and query log
- Schema builders and savepoint-aware transactions per connection
- Model registries (observers, global scopes, morph map)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence, Union

from nexadb.config import Config, ConnectionConfig, DatabaseConfig
from nexadb.connections import DRIVERS
from nexadb.connections.base import Connection, QueryResult
from nexadb.errors import ConfigurationError
from nexadb.orm.registry import ModelRegistry
from nexadb.query.builder import QueryBuilder
from nexadb.query.cache import QueryCache
from nexadb.query.log import QueryLogger
from nexadb.schema.builder import SchemaBuilder
from nexadb.transactions import TransactionManager
from nexadb.utils.env import Env

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Main database interface.

    Example:
        db = DatabaseManager.from_url("sqlite:///app.db")

        # Query builder
        users = await db.table("users").where("active", True).get()

        # With models
        Model.use(db)
        users = await User.all()

        # Transactions
        async with db.atomic() as conn:
            await db.table("logs").insert({"message": "hi"})

        await db.close_all()
    """

    def __init__(
        self,
        config: Union[DatabaseConfig, Dict[str, Any], str],
        cache: Optional[QueryCache] = None,
    ) -> None:
        """
        Initialize database manager.

        Args:
            config: A DatabaseConfig, a ``{"default": .., "connections": {..}}``
                dict or a database URL
            cache: Optional cache store used by ``QueryBuilder.cache()``
        """
        if isinstance(config, str):
            config = DatabaseConfig.from_url(config)
        elif isinstance(config, dict):
            config = DatabaseConfig.from_dict(config)

        self.config = config
        self._cache = cache
        self._connections: Dict[str, Connection] = {}
        self._transactions: Dict[str, TransactionManager] = {}

        self.query_log = QueryLogger()
        self.models = ModelRegistry()

    # Construction

    @classmethod
    def from_url(cls, url: str, cache: Optional[QueryCache] = None) -> DatabaseManager:
        return cls(DatabaseConfig.from_url(url), cache)

    @classmethod
    def from_config(cls, config: Config, cache: Optional[QueryCache] = None) -> DatabaseManager:
        """Build from the ``database`` section of a Config container."""
        section = config.section("database")
        if not section:
            raise ConfigurationError("No database configuration found")
        return cls(DatabaseConfig.from_dict(section), cache)

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Union[str, Path]] = None,
        cache: Optional[QueryCache] = None,
    ) -> DatabaseManager:
        """
        Build a single "default" connection from environment variables.

        DATABASE_URL wins when set; otherwise DB_CONNECTION (or DB_DRIVER),
        DB_HOST, DB_PORT, DB_DATABASE, DB_USERNAME and DB_PASSWORD are read.
        """
        env = Env(env_file).load()

        url = env.str("DATABASE_URL")
        if url:
            return cls.from_url(url, cache)

        driver = env.str("DB_CONNECTION") or env.str("DB_DRIVER")
        if not driver:
            raise ConfigurationError("DATABASE_URL or DB_CONNECTION must be set")

        connection = ConnectionConfig(
            driver=driver,
            host=env.str("DB_HOST", "127.0.0.1"),
            port=env.int("DB_PORT", 0),
            database=env.str("DB_DATABASE", ""),
            username=env.str("DB_USERNAME", ""),
            password=env.str("DB_PASSWORD", ""),
        )
        return cls(DatabaseConfig(default="default", connections={"default": connection}), cache)

    # Connections

    def connection(self, name: Optional[str] = None) -> Connection:
        """
        Get a connection by name, creating it on first use.

        Pools open lazily on the first query, so this never blocks.
        """
        name = name or self.config.default

        if name not in self._connections:
            config = self.config.get(name)
            connection_class = DRIVERS.get(config.driver)
            if connection_class is None:
                raise ConfigurationError(f"Unsupported driver: {config.driver}")

            logger.debug(f"Creating {config.driver} connection [{name}]")
            self._connections[name] = connection_class(config, name)

        return self._connections[name]

    @property
    def connections(self) -> Dict[str, Connection]:
        return dict(self._connections)

    def table(self, name: str, connection: Optional[str] = None) -> QueryBuilder:
        """Start a query builder on a table."""
        conn = self.connection(connection)
        return QueryBuilder(
            conn,
            table=name,
            cache=self._cache,
            query_log=self.query_log,
            connection_name=conn.name,
        )

    def schema(self, connection: Optional[str] = None) -> SchemaBuilder:
        return SchemaBuilder(self.connection(connection))

    # Raw statements

    async def statement(
        self,
        sql: str,
        bindings: Optional[Sequence[Any]] = None,
        connection: Optional[str] = None,
    ) -> QueryResult:
        """Run a raw statement, recording it in the query log."""
        conn = self.connection(connection)
        query = QueryBuilder(conn, query_log=self.query_log, connection_name=conn.name)
        return await query._execute(sql, list(bindings or []))

    async def select(
        self,
        sql: str,
        bindings: Optional[Sequence[Any]] = None,
        connection: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        result = await self.statement(sql, bindings, connection)
        return list(result.rows)

    # Transactions

    def transaction_manager(self, connection: Optional[str] = None) -> TransactionManager:
        """One manager per connection name, so nested calls use savepoints."""
        name = connection or self.config.default
        if name not in self._transactions:
            self._transactions[name] = TransactionManager(self.connection(name))
        return self._transactions[name]

    async def transaction(
        self,
        callback: Callable[[Connection], Any],
        connection: Optional[str] = None,
    ) -> Any:
        """
        Run callback in a transaction.

        Example:
            async def transfer(conn):
                await db.table("accounts").where("id", 1).decrement("balance", 10)
                await db.table("accounts").where("id", 2).increment("balance", 10)

            await db.transaction(transfer)
        """
        return await self.transaction_manager(connection).transaction(callback)

    @asynccontextmanager
    async def atomic(self, connection: Optional[str] = None) -> AsyncIterator[Connection]:
        async with self.transaction_manager(connection).atomic() as conn:
            yield conn

    # Cache

    @property
    def cache(self) -> Optional[QueryCache]:
        return self._cache

    def set_cache(self, cache: Optional[QueryCache]) -> None:
        self._cache = cache

    # Lifecycle

    async def close_all(self) -> None:
        """Close every open connection."""
        for name, connection in list(self._connections.items()):
            logger.debug(f"Closing connection [{name}]")
            await connection.close()

        self._connections.clear()
        self._transactions.clear()

    async def __aenter__(self) -> DatabaseManager:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close_all()

    def __repr__(self) -> str:
        return f"<DatabaseManager default={self.config.default} connections={list(self.config.connections)}>"
