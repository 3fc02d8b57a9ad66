"""
NexaDB Raw Expressions
======================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List


@dataclass
class Expression:
    """
    Raw SQL expression.

    Rendered verbatim wherever a column name is accepted.

    Example:
        db.table("users").select("id", Expression("UPPER(name) AS shout"))
        db.table("posts").update({"views": Expression("views + ?", [1])})
    """

    sql: str
    bindings: List[Any] = field(default_factory=list)

    def __str__(self) -> str:
        return self.sql


def raw(sql: str, bindings: List[Any] = None) -> Expression:
    """Shortcut for building an Expression."""
    return Expression(sql, list(bindings or []))
