"""
NexaDB MySQL Connection
=======================

MySQL and MariaDB driver built on aiomysql pools.
"""

from __future__ import annotations

import logging
from typing import Any, List

from nexadb.config import ConnectionConfig
from nexadb.connections.base import PooledConnection, QueryResult

logger = logging.getLogger(__name__)


class MySQLConnection(PooledConnection):
    """
    MySQL database connection.

    Uses aiomysql for async support. Pools run in autocommit mode and
    transactions are opened explicitly on the pinned connection.
    """

    async def _create_pool(self, config: ConnectionConfig) -> Any:
        try:
            import aiomysql
        except ImportError:
            raise ImportError("aiomysql is required for MySQL support")

        init_command = None
        if config.timezone:
            init_command = f"SET time_zone = '{config.timezone}'"

        return await aiomysql.create_pool(
            host=config.host,
            port=config.port,
            db=config.database,
            user=config.username,
            password=config.password,
            charset=config.charset,
            minsize=config.pool_min,
            maxsize=config.pool_max,
            connect_timeout=config.connect_timeout,
            autocommit=True,
            init_command=init_command,
        )

    async def _acquire(self, pool: Any) -> Any:
        return await pool.acquire()

    async def _release(self, pool: Any, conn: Any) -> None:
        pool.release(conn)

    async def _close_pool(self, pool: Any) -> None:
        pool.close()
        await pool.wait_closed()

    def _convert_placeholders(self, query: str) -> str:
        """Convert ? placeholders to %s, escaping literal percent signs."""
        return query.replace("%", "%%").replace("?", "%s")

    async def _execute(self, conn: Any, sql: str, bindings: List[Any]) -> QueryResult:
        import aiomysql

        query = self._convert_placeholders(sql)
        logger.debug(f"SQL: {query} | Params: {bindings}")

        async with conn.cursor(aiomysql.DictCursor) as cursor:
            await cursor.execute(query, tuple(bindings))
            rows = []
            if cursor.description:
                rows = [dict(row) for row in await cursor.fetchall()]

            return QueryResult(
                rows=rows,
                rowcount=len(rows) if cursor.description else max(cursor.rowcount, 0),
                lastrowid=cursor.lastrowid or None,
            )

    async def _begin(self, conn: Any) -> None:
        await conn.begin()

    async def _commit(self, conn: Any) -> None:
        await conn.commit()

    async def _rollback(self, conn: Any) -> None:
        await conn.rollback()

    def get_schema_grammar(self):
        from nexadb.schema.grammars import MySQLGrammar

        return MySQLGrammar()
