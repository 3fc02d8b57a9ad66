"""
NexaDB Query
============

Query builder and its collaborators.
"""

from nexadb.query.builder import (
    JoinClause,
    JoinType,
    OrderClause,
    QueryBuilder,
    WhereClause,
    WhereType,
)
from nexadb.query.cache import MemoryCache, QueryCache, RedisCache, cache_key
from nexadb.query.expression import Expression, raw
from nexadb.query.log import QueryLogEntry, QueryLogger
from nexadb.query.pagination import Paginated

__all__ = [
    "Expression",
    "JoinClause",
    "JoinType",
    "MemoryCache",
    "OrderClause",
    "Paginated",
    "QueryBuilder",
    "QueryCache",
    "QueryLogEntry",
    "QueryLogger",
    "RedisCache",
    "WhereClause",
    "WhereType",
    "cache_key",
    "raw",
]
