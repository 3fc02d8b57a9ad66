import asyncio

import pytest

from nexadb import DatabaseManager
from nexadb.config import ConnectionConfig
from nexadb.connections import ConnectionPool, is_write_statement
from nexadb.errors import ConfigurationError, QueryError

from support import LabelledPoolConnection


def split_config() -> ConnectionConfig:
    return ConnectionConfig(
        driver="mysql",
        host="default",
        read=[{"host": "replica"}],
        write={"host": "primary"},
    )


@pytest.mark.parametrize(
    "sql, expected",
    [
        ("SELECT * FROM users", False),
        ("  insert into users (name) values (?)", True),
        ("UPDATE users SET name = ?", True),
        ("DELETE FROM users", True),
        ("CREATE TABLE t (id INTEGER)", True),
        ("DROP TABLE t", True),
        ("PRAGMA table_info(users)", False),
        ("WITH doomed AS (SELECT id FROM users) DELETE FROM users", False),
    ],
)
def test_write_classification(sql, expected):
    assert is_write_statement(sql) is expected


@pytest.mark.asyncio
async def test_reads_and_writes_use_separate_pools():
    connection = LabelledPoolConnection(split_config())

    await connection.query("SELECT * FROM users")
    await connection.query("INSERT INTO users (name) VALUES (?)", ["Ada"])
    await connection.query("WITH doomed AS (SELECT 1) DELETE FROM users")

    assert connection.routed == [
        ("replica", "SELECT * FROM users"),
        ("primary", "INSERT INTO users (name) VALUES (?)"),
        ("replica", "WITH doomed AS (SELECT 1) DELETE FROM users"),
    ]


@pytest.mark.asyncio
async def test_transaction_pins_statements_to_the_write_pool():
    connection = LabelledPoolConnection(split_config())

    await connection.begin_transaction()
    assert connection.in_transaction
    await connection.query("SELECT * FROM users")
    await connection.commit()
    await connection.query("SELECT * FROM users")

    assert connection.routed == [
        ("primary", "BEGIN"),
        ("primary", "SELECT * FROM users"),
        ("primary", "COMMIT"),
        ("replica", "SELECT * FROM users"),
    ]
    assert not connection.in_transaction


@pytest.mark.asyncio
async def test_single_pool_without_split():
    connection = LabelledPoolConnection(ConnectionConfig(driver="mysql", host="only"))

    await connection.query("SELECT 1")
    await connection.query("DELETE FROM t")
    await connection.close()

    assert [pool for pool, _ in connection.routed] == ["only", "only"]
    assert connection.closed == ["only"]


@pytest.mark.asyncio
async def test_close_rolls_back_open_transaction():
    connection = LabelledPoolConnection(split_config())
    await connection.query("SELECT 1")
    await connection.begin_transaction()

    await connection.close()

    assert ("primary", "ROLLBACK") in connection.routed
    assert sorted(connection.closed) == ["primary", "replica"]


@pytest.mark.asyncio
async def test_pool_grows_to_max_and_queues_waiters():
    created = []

    async def factory():
        created.append(object())
        return created[-1]

    async def closer(conn):
        pass

    pool = ConnectionPool(factory, closer, min_size=1, max_size=2)
    await pool.open()

    first = await pool.get()
    second = await pool.get()
    assert pool.size == 2

    waiter = asyncio.ensure_future(pool.get())
    await asyncio.sleep(0)
    assert not waiter.done()

    await pool.release(first)
    assert await waiter is first

    await pool.release(second)
    await pool.close()
    with pytest.raises(RuntimeError):
        await pool.get()


@pytest.mark.asyncio
async def test_pool_close_wakes_waiters_and_closes_late_releases():
    closed = []

    async def factory():
        return object()

    async def closer(conn):
        closed.append(conn)

    pool = ConnectionPool(factory, closer, min_size=1, max_size=1)
    await pool.open()

    busy = await pool.get()
    waiter = asyncio.ensure_future(pool.get())
    await asyncio.sleep(0)

    await pool.close()
    with pytest.raises(RuntimeError):
        await waiter
    assert closed == []

    await pool.release(busy)
    assert closed == [busy]
    assert pool.size == 0


@pytest.mark.asyncio
async def test_sqlite_errors_are_wrapped(db):
    with pytest.raises(QueryError):
        await db.statement("SELECT * FROM missing_table")


@pytest.mark.asyncio
async def test_raw_statements_are_logged(db):
    db.query_log.enable()

    await db.statement("INSERT INTO roles (name) VALUES (?)", ["admin"])
    rows = await db.select("SELECT name FROM roles WHERE name = ?", ["admin"])

    assert rows == [{"name": "admin"}]
    assert [entry.sql for entry in db.query_log.get_log()] == [
        "INSERT INTO roles (name) VALUES (?)",
        "SELECT name FROM roles WHERE name = ?",
    ]


def test_unknown_connection_name():
    manager = DatabaseManager.from_url("sqlite:///:memory:")
    with pytest.raises(ConfigurationError):
        manager.connection("analytics")


def test_connections_are_created_once():
    manager = DatabaseManager({
        "default": "main",
        "connections": {
            "main": {"driver": "sqlite", "database": ":memory:"},
            "reports": {"url": "sqlite:///:memory:"},
        },
    })

    assert manager.connection() is manager.connection("main")
    assert manager.connection("reports").name == "reports"
    assert set(manager.connections) == {"main", "reports"}
