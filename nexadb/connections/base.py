"""
NexaDB Connection Base
======================

Uniform async interface over the database drivers.

Features:
- QueryResult with rows, row count and last insert id
- Read/write routing by statement prefix
- Transaction pinning to one physical connection
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from nexadb.config import ConnectionConfig
from nexadb.errors import TransactionError

if TYPE_CHECKING:
    from nexadb.schema.grammars import Grammar


logger = logging.getLogger(__name__)


WRITE_STATEMENT = re.compile(
    r"^\s*(?:insert|update|delete|create|alter|drop|truncate|replace)",
    re.IGNORECASE,
)


def is_write_statement(sql: str) -> bool:
    """
    Classify a statement for pool routing.

    This is a prefix sniff, not a parse. A CTE-prefixed write such as
    ``WITH doomed AS (...) DELETE ...`` is classified as a read.
    """
    return WRITE_STATEMENT.match(sql) is not None


@dataclass
class QueryResult:
    """Result of a query execution."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0
    lastrowid: Optional[int] = None

    @property
    def affected_rows(self) -> int:
        return self.rowcount or 0

    def __iter__(self):
        return iter(self.rows)

    def __len__(self):
        return len(self.rows)


class Connection(ABC):
    """
    Abstract database connection.

    Implement for specific database drivers.
    """

    supports_returning: bool = False

    def __init__(self, config: ConnectionConfig, name: str = "default") -> None:
        self.config = config
        self.name = name

    @property
    def driver(self) -> str:
        return self.config.driver

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        ...

    @abstractmethod
    async def query(
        self,
        sql: str,
        bindings: Optional[Sequence[Any]] = None,
    ) -> QueryResult:
        """Execute a statement and return its result."""
        ...

    @abstractmethod
    async def begin_transaction(self) -> None:
        ...

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    def get_schema_grammar(self) -> Grammar:
        ...


class PooledConnection(Connection):
    """
    Connection backed by a read pool and an optional write pool.

    Statements are routed with :func:`is_write_statement`. Without
    ``read``/``write`` settings both directions share one pool.

    While a transaction is open every statement runs on the single
    physical connection checked out by :meth:`begin_transaction`,
    bypassing routing, until :meth:`commit` or :meth:`rollback`
    returns it to the write pool.
    """

    def __init__(self, config: ConnectionConfig, name: str = "default") -> None:
        super().__init__(config, name)
        self._read_pool: Any = None
        self._write_pool: Any = None
        self._pinned: Any = None
        self._starting = False
        self._pool_lock = asyncio.Lock()

    @property
    def in_transaction(self) -> bool:
        return self._pinned is not None

    async def _ensure_pools(self) -> None:
        if self._write_pool is not None:
            return

        async with self._pool_lock:
            if self._write_pool is None:
                self._read_pool, self._write_pool = await self._create_pools()

    async def _create_pools(self) -> Tuple[Any, Any]:
        if not self.config.has_split:
            pool = await self._create_pool(self.config)
            return pool, pool

        write_pool = await self._create_pool(self.config.write_config())
        read_pool = await self._create_pool(self.config.read_config())
        return read_pool, write_pool

    async def query(
        self,
        sql: str,
        bindings: Optional[Sequence[Any]] = None,
    ) -> QueryResult:
        bindings = list(bindings or [])

        if self._pinned is not None:
            return await self._execute(self._pinned, sql, bindings)

        await self._ensure_pools()
        pool = self._write_pool if is_write_statement(sql) else self._read_pool

        conn = await self._acquire(pool)
        try:
            return await self._execute(conn, sql, bindings)
        finally:
            await self._release(pool, conn)

    # Transaction methods

    async def begin_transaction(self) -> None:
        if self._pinned is not None or self._starting:
            raise TransactionError("Transaction already started")

        self._starting = True
        try:
            await self._ensure_pools()
            conn = await self._acquire(self._write_pool)
            try:
                await self._begin(conn)
            except Exception:
                await self._release(self._write_pool, conn)
                raise
            self._pinned = conn
        finally:
            self._starting = False

    async def commit(self) -> None:
        if self._pinned is None:
            raise TransactionError("No transaction to commit")

        conn = self._pinned
        try:
            await self._commit(conn)
        finally:
            self._pinned = None
            await self._release(self._write_pool, conn)

    async def rollback(self) -> None:
        if self._pinned is None:
            raise TransactionError("No transaction to rollback")

        conn = self._pinned
        try:
            await self._rollback(conn)
        finally:
            self._pinned = None
            await self._release(self._write_pool, conn)

    async def close(self) -> None:
        if self._pinned is not None:
            logger.warning(f"Closing connection [{self.name}] with an open transaction")
            await self.rollback()

        pools = [self._write_pool]
        if self._read_pool is not self._write_pool:
            pools.append(self._read_pool)

        for pool in pools:
            if pool is not None:
                await self._close_pool(pool)

        self._read_pool = None
        self._write_pool = None

    # Driver hooks

    @abstractmethod
    async def _create_pool(self, config: ConnectionConfig) -> Any:
        ...

    @abstractmethod
    async def _acquire(self, pool: Any) -> Any:
        ...

    @abstractmethod
    async def _release(self, pool: Any, conn: Any) -> None:
        ...

    @abstractmethod
    async def _close_pool(self, pool: Any) -> None:
        ...

    @abstractmethod
    async def _execute(self, conn: Any, sql: str, bindings: List[Any]) -> QueryResult:
        ...

    @abstractmethod
    async def _begin(self, conn: Any) -> None:
        ...

    @abstractmethod
    async def _commit(self, conn: Any) -> None:
        ...

    @abstractmethod
    async def _rollback(self, conn: Any) -> None:
        ...
