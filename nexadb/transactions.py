"""
NexaDB Transactions
===================

Nested transactions over one connection using savepoints.

Features:
- BEGIN at depth 0, SAVEPOINT sp_level{depth} below it
- Symmetric COMMIT / RELEASE and ROLLBACK / ROLLBACK TO on unwind
- Callback and async context manager forms
"""

from __future__ import annotations

import inspect
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable

if TYPE_CHECKING:
    from nexadb.connections.base import Connection

logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Tracks transaction depth for one connection.

    Example:
        tm = TransactionManager(db.connection())

        async def transfer(conn):
            await conn.query("UPDATE accounts SET balance = balance - 10 WHERE id = 1")
            await tm.transaction(audit)  # runs inside SAVEPOINT sp_level1

        await tm.transaction(transfer)
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection
        self.depth = 0

    async def _enter(self) -> None:
        if self.depth == 0:
            await self.connection.begin_transaction()
        else:
            await self.connection.query(f"SAVEPOINT sp_level{self.depth}")
        self.depth += 1

    async def _commit(self) -> None:
        self.depth -= 1
        if self.depth == 0:
            await self.connection.commit()
        else:
            await self.connection.query(f"RELEASE SAVEPOINT sp_level{self.depth}")

    async def _rollback(self) -> None:
        self.depth -= 1
        if self.depth == 0:
            await self.connection.rollback()
        else:
            await self.connection.query(f"ROLLBACK TO SAVEPOINT sp_level{self.depth}")

    async def transaction(self, callback: Callable[[Connection], Any]) -> Any:
        """
        Run callback inside a transaction or savepoint.

        The callback receives the connection and may be sync or async.
        Any exception rolls back this level and is re-raised.

        Returns:
            The callback's return value
        """
        await self._enter()

        try:
            result = callback(self.connection)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.debug(f"Rolling back transaction level {self.depth}")
            await self._rollback()
            raise

        await self._commit()
        return result

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[Connection]:
        """
        Transaction context manager with the same nesting rules.

        Example:
            async with tm.atomic() as conn:
                await conn.query("INSERT INTO logs (message) VALUES (?)", ["hi"])
        """
        await self._enter()

        try:
            yield self.connection
        except Exception:
            await self._rollback()
            raise

        await self._commit()

    # Manual control, no depth bookkeeping

    async def begin(self) -> None:
        await self.connection.begin_transaction()

    async def commit(self) -> None:
        await self.connection.commit()

    async def rollback(self) -> None:
        await self.connection.rollback()
