"""
NexaDB Connections
==================

Driver connections behind one async interface.
"""

from nexadb.connections.base import (
    Connection,
    PooledConnection,
    QueryResult,
    is_write_statement,
)
from nexadb.connections.mongodb import MongoDBConnection
from nexadb.connections.mysql import MySQLConnection
from nexadb.connections.pool import ConnectionPool
from nexadb.connections.postgres import PostgreSQLConnection
from nexadb.connections.sqlite import SQLiteConnection

DRIVERS = {
    "sqlite": SQLiteConnection,
    "mysql": MySQLConnection,
    "pgsql": PostgreSQLConnection,
    "mongodb": MongoDBConnection,
}

__all__ = [
    "Connection",
    "ConnectionPool",
    "DRIVERS",
    "MongoDBConnection",
    "MySQLConnection",
    "PooledConnection",
    "PostgreSQLConnection",
    "QueryResult",
    "SQLiteConnection",
    "is_write_statement",
]
