"""
NexaDB PostgreSQL Connection
============================

PostgreSQL driver built on asyncpg pools.

Features:
- Read pool plus an optional write pool
- ? placeholders rewritten to $1..$n
- Serialized date strings bound as date/datetime objects
- INSERT ... RETURNING for generated keys
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, List

from nexadb.config import ConnectionConfig
from nexadb.connections.base import PooledConnection, QueryResult
from nexadb.orm.casts import parse_datetime

logger = logging.getLogger(__name__)


RETURNING = re.compile(r"\breturning\b", re.IGNORECASE)

DATE_STRING = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATETIME_STRING = re.compile(
    r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}:?\d{2})?$"
)


class PostgreSQLConnection(PooledConnection):
    """
    PostgreSQL database connection.

    Uses asyncpg for async support.
    """

    supports_returning = True

    async def _create_pool(self, config: ConnectionConfig) -> Any:
        try:
            import asyncpg
        except ImportError:
            raise ImportError("asyncpg is required for PostgreSQL support")

        server_settings = {}
        if config.timezone:
            server_settings["timezone"] = config.timezone

        return await asyncpg.create_pool(
            host=config.host,
            port=config.port,
            database=config.database,
            user=config.username or None,
            password=config.password or None,
            min_size=config.pool_min,
            max_size=config.pool_max,
            timeout=config.connect_timeout,
            server_settings=server_settings or None,
        )

    async def _acquire(self, pool: Any) -> Any:
        return await pool.acquire()

    async def _release(self, pool: Any, conn: Any) -> None:
        await pool.release(conn)

    async def _close_pool(self, pool: Any) -> None:
        await pool.close()

    def _convert_placeholders(self, query: str) -> str:
        """Convert ? placeholders to $1, $2, etc."""
        result = []
        idx = 1

        for char in query:
            if char == "?":
                result.append(f"${idx}")
                idx += 1
            else:
                result.append(char)

        return "".join(result)

    def _prepare_bindings(self, bindings: List[Any]) -> List[Any]:
        """asyncpg encodes DATE and TIMESTAMP parameters from date objects only."""
        prepared = []
        for value in bindings:
            if isinstance(value, str):
                try:
                    if DATE_STRING.match(value):
                        value = date.fromisoformat(value)
                    elif DATETIME_STRING.match(value):
                        value = parse_datetime(value)
                except ValueError:
                    pass
            prepared.append(value)
        return prepared

    async def _execute(self, conn: Any, sql: str, bindings: List[Any]) -> QueryResult:
        query = self._convert_placeholders(sql)
        bindings = self._prepare_bindings(bindings)
        logger.debug(f"SQL: {query} | Params: {bindings}")

        if not self._returns_rows(sql):
            status = await conn.execute(query, *bindings)
            # Parse status tags like "INSERT 0 1" or "UPDATE 3"
            parts = (status or "").split()
            rowcount = int(parts[-1]) if parts and parts[-1].isdigit() else 0
            return QueryResult(rowcount=rowcount)

        records = await conn.fetch(query, *bindings)
        rows = [dict(record) for record in records]
        return QueryResult(rows=rows, rowcount=len(rows))

    def _returns_rows(self, sql: str) -> bool:
        head = sql.lstrip()[:6].lower()
        if head in ("select", "with", "values", "show", "explai"):
            return True
        return RETURNING.search(sql) is not None

    async def _begin(self, conn: Any) -> None:
        await conn.execute("BEGIN")

    async def _commit(self, conn: Any) -> None:
        await conn.execute("COMMIT")

    async def _rollback(self, conn: Any) -> None:
        await conn.execute("ROLLBACK")

    def get_schema_grammar(self):
        from nexadb.schema.grammars import PostgreSQLGrammar

        return PostgreSQLGrammar()
