"""
NexaDB MongoDB Connection
=========================

Document store connection built on pymongo's asyncio client.

Features:
- Primary client for writes, secondary-preferred client for reads
- Read replicas joined into one replica-set URI
- Session based transactions (replica set required)
- Native database and collection handles; raw SQL is rejected
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote_plus

from nexadb.config import ConnectionConfig
from nexadb.connections.base import Connection, QueryResult
from nexadb.errors import TransactionError, UnsupportedOperationError

logger = logging.getLogger(__name__)


class MongoDBConnection(Connection):
    """
    MongoDB connection.

    Reads go to a secondary-preferred client, writes to the primary.
    While a transaction is active every handle routes to the primary.

    Example:
        conn = db.connection("mongo")
        users = await conn.get_collection("users")
        await users.find_one({"email": "ada@example.com"})

        orders = await conn.get_collection("orders", for_write=True)
        await orders.insert_one({"total": 42})
    """

    def __init__(self, config: ConnectionConfig, name: str = "default") -> None:
        super().__init__(config, name)
        self._write_client: Any = None
        self._read_client: Any = None
        self._session: Any = None
        self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    # URI helpers

    def _credentials(self, config: ConnectionConfig) -> str:
        if config.username and config.password:
            return f"{quote_plus(config.username)}:{quote_plus(config.password)}@"
        return ""

    def build_uri(self, config: Optional[ConnectionConfig] = None) -> str:
        config = config or self.config
        host = config.host or "127.0.0.1"
        port = config.port or 27017
        return f"mongodb://{self._credentials(config)}{host}:{port}/{config.database}"

    def build_replica_set_uri(self, hosts: List[Dict[str, Any]]) -> str:
        host_list = ",".join(
            f"{h.get('host') or '127.0.0.1'}:{h.get('port') or 27017}" for h in hosts
        )
        return f"mongodb://{self._credentials(self.config)}{host_list}/{self.config.database}"

    def _read_uri(self) -> str:
        if not self.config.read:
            return self.build_uri()

        hosts = self.config.read if isinstance(self.config.read, list) else [self.config.read]
        return self.build_replica_set_uri(hosts)

    # Client management

    def _ensure_clients(self) -> None:
        if self._write_client is not None and self._read_client is not None:
            return

        try:
            from pymongo import AsyncMongoClient
        except ImportError:
            raise ImportError("pymongo>=4.13 is required for MongoDB support")

        if self._write_client is None:
            write_config = self.config.write_config()
            self._write_client = AsyncMongoClient(
                self.build_uri(write_config),
                maxPoolSize=write_config.pool_max,
                minPoolSize=write_config.pool_min,
                readPreference="primary",
            )
            logger.debug(f"MongoDB primary client created for [{self.name}]")

        if self._read_client is None:
            self._read_client = AsyncMongoClient(
                self._read_uri(),
                maxPoolSize=self.config.pool_max,
                readPreference="secondaryPreferred",
            )
            logger.debug(f"MongoDB read client created for [{self.name}]")

    async def get_database(self, for_write: bool = False) -> Any:
        """Get the database handle routed to the right client."""
        self._ensure_clients()
        if self._in_transaction or for_write:
            return self._write_client[self.config.database]
        return self._read_client[self.config.database]

    async def get_collection(self, name: str, for_write: bool = False) -> Any:
        database = await self.get_database(for_write)
        return database[name]

    async def get_client(self) -> Any:
        """Get the primary client."""
        self._ensure_clients()
        return self._write_client

    def get_session(self) -> Any:
        """The active session; pass it to collection calls inside a transaction."""
        return self._session

    async def query(
        self,
        sql: str,
        bindings: Optional[Sequence[Any]] = None,
    ) -> QueryResult:
        raise UnsupportedOperationError(
            "Raw SQL queries are not supported in MongoDB. "
            "Use get_database() or get_collection() for native operations."
        )

    # Transaction methods

    async def begin_transaction(self) -> None:
        if self._in_transaction:
            raise TransactionError("Transaction already started")

        self._ensure_clients()
        self._session = self._write_client.start_session()
        await self._session.start_transaction()
        self._in_transaction = True

    async def commit(self) -> None:
        if self._session is None or not self._in_transaction:
            raise TransactionError("No transaction to commit")

        try:
            await self._session.commit_transaction()
        finally:
            await self._end_session()

    async def rollback(self) -> None:
        if self._session is None or not self._in_transaction:
            raise TransactionError("No transaction to rollback")

        try:
            await self._session.abort_transaction()
        finally:
            await self._end_session()

    async def _end_session(self) -> None:
        session, self._session = self._session, None
        self._in_transaction = False
        if session is not None:
            await session.end_session()

    async def close(self) -> None:
        await self._end_session()

        if self._write_client is not None:
            await self._write_client.close()
            self._write_client = None

        if self._read_client is not None:
            await self._read_client.close()
            self._read_client = None

    def get_schema_grammar(self):
        raise UnsupportedOperationError(
            "Schema builder is not supported for MongoDB. "
            "Use collection validators or native indexes instead."
        )
