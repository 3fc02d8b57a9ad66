"""
NexaDB - Async ORM and Query Builder
====================================

An asyncio database layer for SQLite, MySQL, PostgreSQL and MongoDB.

Features:
---------
- Fluent query builder with pagination and chunking
- Active Record models with casts, accessors and mutators
- Relations, including polymorphic and many-to-many
- Read/write routed connection pools
- Nested transactions with savepoints
- Schema builder, migrations and seeders
- Query cache (memory or Redis) and query log

Quick Start:
    db = DatabaseManager.from_url("sqlite:///app.db")
    Model.use(db)

    users = await db.table("users").where("active", True).get()
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

from typing import TYPE_CHECKING

# Core imports (always available)
from nexadb.config import Config, ConnectionConfig, DatabaseConfig
from nexadb.errors import (
    ConfigurationError,
    DatabaseError,
    MissingPrimaryKeyError,
    ModelNotFoundError,
    MorphMapError,
    QueryError,
    RelationNotFoundError,
    TransactionError,
    UnsupportedOperationError,
)
from nexadb.manager import DatabaseManager

# Lazy imports for performance
if TYPE_CHECKING:
    from nexadb.orm import Model, SoftDeletes, relation
    from nexadb.query import Expression, QueryBuilder, raw
    from nexadb.schema import Blueprint, SchemaBuilder


def __getattr__(name: str):
    """Lazy loading of optional components for faster startup."""
    _imports = {
        # ORM
        "Model": "nexadb.orm.model",
        "ModelQueryBuilder": "nexadb.orm.builder",
        "SoftDeletes": "nexadb.orm.soft_deletes",
        "Observer": "nexadb.orm.observers",
        "GlobalScope": "nexadb.orm.scopes",
        "relation": "nexadb.orm.relations",
        # Query
        "QueryBuilder": "nexadb.query.builder",
        "Expression": "nexadb.query.expression",
        "raw": "nexadb.query.expression",
        "MemoryCache": "nexadb.query.cache",
        "RedisCache": "nexadb.query.cache",
        "QueryLogger": "nexadb.query.log",
        # Schema
        "Blueprint": "nexadb.schema.blueprint",
        "SchemaBuilder": "nexadb.schema.builder",
        "Migration": "nexadb.migrations",
        "MigrationManager": "nexadb.migrations",
        "Seeder": "nexadb.seeders",
        "SeedRunner": "nexadb.seeders",
        # Transactions
        "TransactionManager": "nexadb.transactions",
        # Utils
        "Env": "nexadb.utils.env",
    }

    if name in _imports:
        import importlib
        module = importlib.import_module(_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'nexadb' has no attribute '{name}'")


__all__ = [
    # Metadata
    "__version__",
    "__license__",
    # Core (always loaded)
    "Config",
    "ConnectionConfig",
    "DatabaseConfig",
    "DatabaseManager",
    "DatabaseError",
    "ConfigurationError",
    "MissingPrimaryKeyError",
    "TransactionError",
    "QueryError",
    "UnsupportedOperationError",
    "ModelNotFoundError",
    "RelationNotFoundError",
    "MorphMapError",
    # ORM (lazy)
    "Model",
    "ModelQueryBuilder",
    "SoftDeletes",
    "Observer",
    "GlobalScope",
    "relation",
    # Query (lazy)
    "QueryBuilder",
    "Expression",
    "raw",
    "MemoryCache",
    "RedisCache",
    "QueryLogger",
    # Schema (lazy)
    "Blueprint",
    "SchemaBuilder",
    "Migration",
    "MigrationManager",
    "Seeder",
    "SeedRunner",
    # Transactions (lazy)
    "TransactionManager",
    # Utils (lazy)
    "Env",
]
