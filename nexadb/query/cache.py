"""
NexaDB Query Cache
==================

Cache stores used by ``QueryBuilder.cache(ttl)``.

Features:
- Compute-once-per-key contract via remember()
- In-process store with monotonic expiry
- Redis store with JSON values
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


def cache_key(sql: str, bindings: List[Any]) -> str:
    """Default key: digest of SQL text plus serialized bindings."""
    payload = sql + json.dumps(bindings, default=str)
    return "db:" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


class QueryCache(ABC):
    """Cache store contract."""

    @abstractmethod
    async def remember(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached value for key, computing and storing it once per ttl."""
        ...

    @abstractmethod
    async def forget(self, key: str) -> bool:
        ...

    @abstractmethod
    async def flush(self) -> None:
        ...


class MemoryCache(QueryCache):
    """
    In-process cache.

    Concurrent callers for the same key wait on one computation.

    Example:
        db.set_cache(MemoryCache())
        users = await db.table("users").cache(60).get()
    """

    def __init__(self) -> None:
        self._store: Dict[str, Tuple[float, Any]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get(self, key: str) -> Tuple[bool, Any]:
        item = self._store.get(key)
        if item is None:
            return False, None

        expires_at, value = item
        if expires_at <= time.monotonic():
            del self._store[key]
            return False, None

        return True, value

    async def remember(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[Any]],
    ) -> Any:
        found, value = self._get(key)
        if found:
            return value

        lock = self._locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                found, value = self._get(key)
                if found:
                    return value

                value = await compute()
                self._store[key] = (time.monotonic() + ttl, value)
                return value
        finally:
            if self._locks.get(key) is lock and not lock.locked():
                del self._locks[key]

    async def forget(self, key: str) -> bool:
        self._locks.pop(key, None)
        return self._store.pop(key, None) is not None

    async def flush(self) -> None:
        self._store.clear()
        self._locks.clear()

    def __contains__(self, key: str) -> bool:
        return self._get(key)[0]


class RedisCache(QueryCache):
    """
    Redis backed cache.

    Values are stored as JSON, so cached rows come back as plain dicts.

    Example:
        db.set_cache(RedisCache("redis://localhost:6379/0"))
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        prefix: str = "",
        client: Any = None,
    ) -> None:
        self.url = url
        self.prefix = prefix
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                import redis.asyncio as aioredis
            except ImportError:
                raise ImportError("redis is required for RedisCache")

            self._client = aioredis.from_url(self.url, decode_responses=True)
        return self._client

    async def remember(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[Any]],
    ) -> Any:
        full_key = self.prefix + key

        cached = await self.client.get(full_key)
        if cached is not None:
            return json.loads(cached)

        value = await compute()
        await self.client.set(full_key, json.dumps(value, default=str), ex=ttl)
        return value

    async def forget(self, key: str) -> bool:
        return bool(await self.client.delete(self.prefix + key))

    async def flush(self) -> None:
        if not self.prefix:
            await self.client.flushdb()
            return

        async for key in self.client.scan_iter(match=f"{self.prefix}*"):
            await self.client.delete(key)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
