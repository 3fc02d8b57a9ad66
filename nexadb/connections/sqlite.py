"""
NexaDB SQLite Connection
========================

SQLite driver built on aiosqlite.

Features:
- Read pool plus an optional write pool for split configurations
- Single shared connection for :memory: databases
- Autocommit mode so BEGIN and SAVEPOINT statements control transactions
- Driver failures wrapped in QueryError
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Any, List, Tuple

from nexadb.config import ConnectionConfig
from nexadb.connections.base import PooledConnection, QueryResult
from nexadb.connections.pool import ConnectionPool
from nexadb.errors import QueryError

logger = logging.getLogger(__name__)


MEMORY = ":memory:"


class SQLiteConnection(PooledConnection):
    """
    SQLite database connection.

    Uses aiosqlite for async support.
    """

    @property
    def is_memory(self) -> bool:
        return (self.config.database or MEMORY) == MEMORY

    async def _create_pools(self) -> Tuple[Any, Any]:
        if self.is_memory or not self.config.has_split:
            pool = await self._create_pool(self.config)
            return pool, pool

        write_pool = await self._create_pool(self.config.write_config())
        # Explicit read and write blocks open the read side read-only
        readonly = bool(self.config.read and self.config.write)
        read_pool = await self._create_pool(self.config.read_config(), readonly=readonly)
        return read_pool, write_pool

    async def _create_pool(self, config: ConnectionConfig, readonly: bool = False) -> ConnectionPool:
        try:
            import aiosqlite
        except ImportError:
            raise ImportError("aiosqlite is required for SQLite support")

        path = config.database or MEMORY
        target = f"file:{path}?mode=ro" if readonly else path

        async def connect() -> Any:
            conn = await aiosqlite.connect(
                target,
                timeout=config.connect_timeout,
                isolation_level=None,
                uri=readonly,
            )
            conn.row_factory = aiosqlite.Row
            return conn

        async def close(conn: Any) -> None:
            await conn.close()

        if path == MEMORY:
            pool = ConnectionPool(connect, close, min_size=1, max_size=1)
        else:
            pool = ConnectionPool(connect, close, min_size=1, max_size=config.pool_max)

        await pool.open()
        return pool

    async def _acquire(self, pool: ConnectionPool) -> Any:
        return await pool.get()

    async def _release(self, pool: ConnectionPool, conn: Any) -> None:
        await pool.release(conn)

    async def _close_pool(self, pool: ConnectionPool) -> None:
        await pool.close()

    def _prepare_bindings(self, bindings: List[Any]) -> List[Any]:
        prepared = []
        for value in bindings:
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, bool):
                value = int(value)
            prepared.append(value)
        return prepared

    async def _execute(self, conn: Any, sql: str, bindings: List[Any]) -> QueryResult:
        params = self._prepare_bindings(bindings)
        logger.debug(f"SQL: {sql} | Params: {params}")

        try:
            cursor = await conn.execute(sql, params)
            try:
                if cursor.description:
                    rows = [dict(row) for row in await cursor.fetchall()]
                    rowcount = len(rows)
                else:
                    rows = []
                    rowcount = max(cursor.rowcount, 0)
                lastrowid = cursor.lastrowid
            finally:
                await cursor.close()
        except sqlite3.Error as exc:
            raise QueryError(f"SQLite query failed: {exc}") from exc

        return QueryResult(rows=rows, rowcount=rowcount, lastrowid=lastrowid)

    async def _begin(self, conn: Any) -> None:
        await self._execute(conn, "BEGIN", [])

    async def _commit(self, conn: Any) -> None:
        await self._execute(conn, "COMMIT", [])

    async def _rollback(self, conn: Any) -> None:
        await self._execute(conn, "ROLLBACK", [])

    def get_schema_grammar(self):
        from nexadb.schema.grammars import SQLiteGrammar

        return SQLiteGrammar()
