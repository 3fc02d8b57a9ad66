import pytest

from nexadb.errors import TransactionError
from nexadb.transactions import TransactionManager


@pytest.mark.asyncio
async def test_nested_levels_use_savepoints(fake):
    tm = TransactionManager(fake)

    async def innermost(conn):
        await conn.query("SELECT 3")

    async def inner(conn):
        await tm.transaction(innermost)

    async def outer(conn):
        await tm.transaction(inner)

    result = await tm.transaction(lambda conn: outer(conn))

    assert result is None
    assert fake.sql == [
        "BEGIN",
        "SAVEPOINT sp_level1",
        "SAVEPOINT sp_level2",
        "SELECT 3",
        "RELEASE SAVEPOINT sp_level2",
        "RELEASE SAVEPOINT sp_level1",
        "COMMIT",
    ]
    assert tm.depth == 0


@pytest.mark.asyncio
async def test_failure_rolls_back_only_its_level(fake):
    tm = TransactionManager(fake)

    async def failing(conn):
        raise RuntimeError("boom")

    async def outer(conn):
        with pytest.raises(RuntimeError):
            await tm.transaction(failing)
        return "kept"

    assert await tm.transaction(outer) == "kept"
    assert fake.sql == [
        "BEGIN",
        "SAVEPOINT sp_level1",
        "ROLLBACK TO SAVEPOINT sp_level1",
        "COMMIT",
    ]


@pytest.mark.asyncio
async def test_atomic_context_manager(fake):
    tm = TransactionManager(fake)

    with pytest.raises(ValueError):
        async with tm.atomic() as conn:
            async with tm.atomic():
                await conn.query("DELETE FROM t")
            raise ValueError("undo")

    assert fake.sql == [
        "BEGIN",
        "SAVEPOINT sp_level1",
        "DELETE FROM t",
        "RELEASE SAVEPOINT sp_level1",
        "ROLLBACK",
    ]
    assert tm.depth == 0


@pytest.mark.asyncio
async def test_sync_callbacks_are_supported(fake):
    tm = TransactionManager(fake)
    assert await tm.transaction(lambda conn: 42) == 42


@pytest.mark.asyncio
async def test_nested_rollback_leaves_no_rows(db):
    async def inner(conn):
        await db.table("roles").insert({"name": "editor"})
        raise RuntimeError("boom")

    async def outer(conn):
        await db.table("roles").insert({"name": "admin"})
        await db.transaction(inner)

    with pytest.raises(RuntimeError):
        await db.transaction(outer)

    assert await db.table("roles").count() == 0


@pytest.mark.asyncio
async def test_caught_inner_failure_keeps_outer_work(db):
    async def inner(conn):
        await db.table("roles").insert({"name": "editor"})
        raise RuntimeError("boom")

    async def outer(conn):
        await db.table("roles").insert({"name": "admin"})
        try:
            await db.transaction(inner)
        except RuntimeError:
            pass

    await db.transaction(outer)

    assert await db.table("roles").pluck("name") == ["admin"]


@pytest.mark.asyncio
async def test_atomic_on_manager_commits(db):
    async with db.atomic():
        await db.table("roles").insert({"name": "admin"})

    assert await db.table("roles").count() == 1


@pytest.mark.asyncio
async def test_commit_without_transaction_raises(db):
    connection = db.connection()
    with pytest.raises(TransactionError):
        await connection.commit()
    with pytest.raises(TransactionError):
        await connection.rollback()


@pytest.mark.asyncio
async def test_begin_twice_raises(db):
    connection = db.connection()
    await connection.begin_transaction()
    try:
        with pytest.raises(TransactionError):
            await connection.begin_transaction()
    finally:
        await connection.rollback()
