"""
NexaDB Query Log
================

In-memory record of executed statements.

Features:
- Enabled flag gating every entry
- Listeners fired synchronously per entry
- Last query and full log snapshots
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class QueryLogEntry:
    """One executed statement."""

    sql: str
    bindings: List[Any]
    time: float
    connection: str = "default"
    timestamp: float = field(default_factory=time.time)


QueryListener = Callable[[QueryLogEntry], Any]


class QueryLogger:
    """
    Append-only statement log.

    Example:
        db.query_log.enable()
        db.query_log.listen(lambda entry: print(entry.sql, entry.time))

        await db.table("users").get()
        db.query_log.last_query().sql  # "SELECT * FROM users"
    """

    def __init__(self, enabled: bool = False) -> None:
        self._enabled = enabled
        self._entries: List[QueryLogEntry] = []
        self._listeners: List[QueryListener] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def log(
        self,
        sql: str,
        bindings: List[Any],
        time_ms: float,
        connection: str = "default",
    ) -> Optional[QueryLogEntry]:
        """Record a statement; nothing is recorded while disabled."""
        if not self._enabled:
            return None

        entry = QueryLogEntry(
            sql=sql,
            bindings=list(bindings),
            time=time_ms,
            connection=connection,
        )
        self._entries.append(entry)

        for listener in self._listeners:
            listener(entry)

        return entry

    def listen(self, callback: QueryListener) -> None:
        self._listeners.append(callback)

    def get_log(self) -> List[QueryLogEntry]:
        return list(self._entries)

    def last_query(self) -> Optional[QueryLogEntry]:
        return self._entries[-1] if self._entries else None

    def flush(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
