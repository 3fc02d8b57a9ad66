"""
NexaDB Connection Pool
======================

Generic asyncio pool for drivers without a native one.

Features:
- Lazy growth from min_size up to max_size
- Waiters queue when every connection is checked out
- acquire() async context manager
- close() wakes waiters and closes late releases
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, List

logger = logging.getLogger(__name__)

_CLOSED = object()


class ConnectionPool:
    """
    Async pool of raw driver connections.

    Example:
        pool = ConnectionPool(factory=open_conn, closer=close_conn, max_size=5)
        await pool.open()

        async with pool.acquire() as conn:
            ...

        await pool.close()
    """

    def __init__(
        self,
        factory: Callable[[], Awaitable[Any]],
        closer: Callable[[Any], Awaitable[None]],
        min_size: int = 1,
        max_size: int = 10,
    ) -> None:
        self._factory = factory
        self._closer = closer
        self.min_size = max(0, min_size)
        self.max_size = max(1, max_size, self.min_size)
        self._pool: List[Any] = []
        self._available: asyncio.Queue = asyncio.Queue()
        self._lock = asyncio.Lock()
        self._waiters = 0
        self._closed = False

    @property
    def size(self) -> int:
        return len(self._pool)

    async def open(self) -> None:
        """Create the initial min_size connections."""
        for _ in range(self.min_size):
            conn = await self._factory()
            self._pool.append(conn)
            await self._available.put(conn)

    async def get(self) -> Any:
        """Check out a connection, waiting if the pool is exhausted."""
        if self._closed:
            raise RuntimeError("Pool is closed")

        try:
            return self._available.get_nowait()
        except asyncio.QueueEmpty:
            pass

        async with self._lock:
            if len(self._pool) < self.max_size:
                conn = await self._factory()
                self._pool.append(conn)
                logger.debug(f"Pool grew to {len(self._pool)} connections")
                return conn

        self._waiters += 1
        try:
            conn = await self._available.get()
        finally:
            self._waiters -= 1

        if conn is _CLOSED:
            raise RuntimeError("Pool is closed")
        return conn

    async def release(self, conn: Any) -> None:
        """Return a checked-out connection, closing it if the pool has closed."""
        if not self._closed:
            await self._available.put(conn)
            return

        if conn in self._pool:
            self._pool.remove(conn)
            await self._closer(conn)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Any]:
        conn = await self.get()
        try:
            yield conn
        finally:
            await self.release(conn)

    async def close(self) -> None:
        """
        Close the pool.

        Idle connections close now. Checked-out connections close when
        they are released. Pending get() calls raise RuntimeError.
        """
        self._closed = True

        idle = []
        while not self._available.empty():
            idle.append(self._available.get_nowait())

        for _ in range(self._waiters):
            self._available.put_nowait(_CLOSED)

        for conn in idle:
            if conn in self._pool:
                self._pool.remove(conn)
            await self._closer(conn)
