"""
NexaDB Schema
=============

Blueprint DSL, dialect grammars and the schema builder.
"""

from nexadb.schema.blueprint import (
    Blueprint,
    ColumnDefinition,
    ColumnType,
    ForeignKeyDefinition,
    IndexDefinition,
)
from nexadb.schema.builder import SchemaBuilder
from nexadb.schema.grammars import Grammar, MySQLGrammar, PostgreSQLGrammar, SQLiteGrammar

__all__ = [
    "Blueprint",
    "ColumnDefinition",
    "ColumnType",
    "ForeignKeyDefinition",
    "IndexDefinition",
    "Grammar",
    "MySQLGrammar",
    "PostgreSQLGrammar",
    "SQLiteGrammar",
    "SchemaBuilder",
]
