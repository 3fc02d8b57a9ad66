import pytest

from nexadb.errors import ConfigurationError
from nexadb.query import Expression, QueryBuilder, QueryLogger


def test_compiles_clauses_in_order(fake):
    sql, bindings = (
        QueryBuilder(fake, "users")
        .where("name", "Ada")
        .where("age", ">", 18)
        .where_in("role", ["admin", "editor"])
        .where_null("deleted_at")
        .order_by("id", "desc")
        .limit(10)
        .offset(5)
        .to_sql()
    )

    assert sql == (
        "SELECT * FROM users WHERE name = ? AND age > ? AND role IN (?, ?) "
        "AND deleted_at IS NULL ORDER BY id DESC LIMIT 10 OFFSET 5"
    )
    assert bindings == ["Ada", 18, "admin", "editor"]


def test_two_argument_where_binds_none_as_value(fake):
    sql, bindings = QueryBuilder(fake, "users").where("deleted_at", None).to_sql()

    assert sql == "SELECT * FROM users WHERE deleted_at = ?"
    assert bindings == [None]


def test_where_requires_a_value(fake):
    with pytest.raises(TypeError):
        QueryBuilder(fake, "users").where("name")


def test_placeholders_match_bindings(fake):
    sql, bindings = (
        QueryBuilder(fake, "users")
        .select("id", Expression("LOWER(?) AS tag", ["X"]))
        .select_raw("? AS flag", [1])
        .where("a", 2)
        .or_where_raw("b BETWEEN ? AND ?", [3, 4])
        .where_between("c", 5, 6)
        .to_sql()
    )

    assert sql.count("?") == len(bindings)
    assert bindings == ["X", 1, 2, 3, 4, 5, 6]
    assert sql.startswith("SELECT id, LOWER(?) AS tag, ? AS flag FROM users")


def test_empty_in_lists(fake):
    sql, bindings = QueryBuilder(fake, "users").where_in("id", []).to_sql()
    assert sql == "SELECT * FROM users WHERE 0 = 1"
    assert bindings == []

    sql, _ = QueryBuilder(fake, "users").where_not_in("id", []).to_sql()
    assert sql == "SELECT * FROM users WHERE 1 = 1"


def test_or_where_and_joins(fake):
    sql, bindings = (
        QueryBuilder(fake, "users")
        .select("users.*")
        .join("posts", "users.id", "posts.user_id")
        .left_join("countries", "countries.id", "users.country_id")
        .where("posts.published", True)
        .or_where("users.name", "Ada")
        .to_sql()
    )

    assert sql == (
        "SELECT users.* FROM users INNER JOIN posts ON users.id = posts.user_id "
        "LEFT JOIN countries ON countries.id = users.country_id "
        "WHERE posts.published = ? OR users.name = ?"
    )
    assert bindings == [True, "Ada"]


def test_where_exists_with_callback(fake):
    sql, bindings = (
        QueryBuilder(fake, "users")
        .where("active", True)
        .where_exists(
            lambda q: q.table("posts")
            .select(Expression("1"))
            .where_column("posts.user_id", "users.id")
            .where("posts.title", "Hi")
        )
        .to_sql()
    )

    assert sql == (
        "SELECT * FROM users WHERE active = ? AND EXISTS "
        "(SELECT 1 FROM posts WHERE posts.user_id = users.id AND posts.title = ?)"
    )
    assert bindings == [True, "Hi"]


def test_group_wheres_parenthesizes(fake):
    query = QueryBuilder(fake, "users").where("a", 1).or_where("b", 2).group_wheres()
    query.where("c", 3)

    sql, bindings = query.to_sql()
    assert sql == "SELECT * FROM users WHERE (a = ? OR b = ?) AND c = ?"
    assert bindings == [1, 2, 3]


def test_clone_is_independent(fake):
    base = QueryBuilder(fake, "users").where("a", 1)
    copy = base.clone().where("b", 2)

    assert base.to_sql() == ("SELECT * FROM users WHERE a = ?", [1])
    assert copy.to_sql() == ("SELECT * FROM users WHERE a = ? AND b = ?", [1, 2])


def test_invalid_arguments(fake):
    with pytest.raises(ValueError):
        QueryBuilder(fake, "users").order_by("id", "sideways")
    with pytest.raises(ValueError):
        QueryBuilder(fake, "users").limit(-1)
    with pytest.raises(ConfigurationError):
        QueryBuilder(fake).to_sql()


@pytest.mark.asyncio
async def test_insert_fills_missing_columns_with_none(fake):
    await QueryBuilder(fake, "t").insert([{"a": 1, "b": 2}, {"a": 3}])

    assert fake.statements[-1] == ("INSERT INTO t (a, b) VALUES (?, ?), (?, ?)", [1, 2, 3, None])


@pytest.mark.asyncio
async def test_empty_insert_uses_default_values(fake):
    await QueryBuilder(fake, "t").insert({})
    assert fake.sql[-1] == "INSERT INTO t DEFAULT VALUES"

    assert await QueryBuilder(fake, "t").insert([]) is None


@pytest.mark.asyncio
async def test_insert_get_id_uses_returning_when_supported(fake):
    fake.supports_returning = True
    fake.rows = [{"id": 9}]

    new_id = await QueryBuilder(fake, "users").insert_get_id({"name": "Ada"})

    assert new_id == 9
    assert fake.statements[-1] == ("INSERT INTO users (name) VALUES (?) RETURNING id", ["Ada"])


@pytest.mark.asyncio
async def test_update_with_expressions(fake):
    await (
        QueryBuilder(fake, "users")
        .where("id", 1)
        .update({"name": "x", "visits": Expression("visits + ?", [1])})
    )

    assert fake.statements[-1] == (
        "UPDATE users SET name = ?, visits = visits + ? WHERE id = ?",
        ["x", 1, 1],
    )


@pytest.mark.asyncio
async def test_increment_and_delete(fake):
    await QueryBuilder(fake, "accounts").where("id", 2).increment("balance", 10, {"note": "top up"})
    assert fake.statements[-1] == (
        "UPDATE accounts SET balance = balance + ?, note = ? WHERE id = ?",
        [10, "top up", 2],
    )

    await QueryBuilder(fake, "accounts").where("id", 2).delete()
    assert fake.statements[-1] == ("DELETE FROM accounts WHERE id = ?", [2])


@pytest.mark.asyncio
async def test_count_leaves_builder_untouched(fake):
    fake.rows = [{"aggregate": 7}]
    query = QueryBuilder(fake, "users").where("a", 1).order_by("id").limit(3)

    assert await query.count() == 7
    assert fake.statements[-1] == ("SELECT COUNT(*) AS aggregate FROM users WHERE a = ?", [1])
    assert query.to_sql()[0] == "SELECT * FROM users WHERE a = ? ORDER BY id ASC LIMIT 3"


@pytest.mark.asyncio
async def test_execution_is_logged(fake):
    log = QueryLogger(enabled=True)
    await QueryBuilder(fake, "users", query_log=log).where("id", 1).get()

    entry = log.last_query()
    assert entry.sql == "SELECT * FROM users WHERE id = ?"
    assert entry.bindings == [1]
    assert entry.connection == "fake"
    assert entry.time >= 0


@pytest.mark.asyncio
async def test_pagination(db):
    await db.table("roles").insert([{"name": f"role-{i}"} for i in range(5)])

    page = await db.table("roles").order_by("id").paginate(page=2, per_page=2, path="/roles")

    assert [row["name"] for row in page] == ["role-2", "role-3"]
    assert page.meta["total"] == 5
    assert page.meta["last_page"] == 3
    assert page.meta["from"] == 3
    assert page.meta["to"] == 4
    assert page.links == {"prev_page_url": "/roles?page=1", "next_page_url": "/roles?page=3"}


@pytest.mark.asyncio
async def test_pagination_of_empty_table(db):
    page = await db.table("roles").paginate()

    assert page.data == []
    assert page.meta["total"] == 0
    assert page.meta["from"] is None
    assert page.links["next_page_url"] is None


@pytest.mark.asyncio
async def test_simple_paginate_detects_more(db):
    await db.table("roles").insert([{"name": f"role-{i}"} for i in range(3)])

    first = await db.table("roles").order_by("id").simple_paginate(page=1, per_page=2)
    last = await db.table("roles").order_by("id").simple_paginate(page=2, per_page=2)

    assert len(first) == 2
    assert first.links["next_page_url"] == "/?page=2"
    assert len(last) == 1
    assert last.links["next_page_url"] is None


@pytest.mark.asyncio
async def test_cursor_paginate_walks_keys(db):
    await db.table("roles").insert([{"name": f"role-{i}"} for i in range(10)])

    first = await db.table("roles").cursor_paginate(per_page=5)
    assert [row["id"] for row in first] == [1, 2, 3, 4, 5]
    assert first.meta["has_more"] is True
    assert first.meta["next_cursor"] == 5

    second = await db.table("roles").cursor_paginate(first.meta["next_cursor"], per_page=5)
    assert [row["id"] for row in second] == [6, 7, 8, 9, 10]
    assert second.meta["has_more"] is False
    assert second.meta["next_cursor"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("per_page", [0, -1])
async def test_paginators_reject_non_positive_page_size(fake, per_page):
    with pytest.raises(ValueError):
        await QueryBuilder(fake, "roles").paginate(per_page=per_page)
    with pytest.raises(ValueError):
        await QueryBuilder(fake, "roles").simple_paginate(per_page=per_page)
    with pytest.raises(ValueError):
        await QueryBuilder(fake, "roles").cursor_paginate(per_page=per_page)

    assert fake.statements == []


@pytest.mark.asyncio
async def test_chunk_visits_every_row(db):
    size = 3
    await db.table("roles").insert([{"name": f"role-{i}"} for i in range(3 * size + 2)])

    seen = []

    async def collect(rows, page):
        seen.append((page, len(rows)))

    assert await db.table("roles").order_by("id").chunk(size, collect) is True
    assert seen == [(1, 3), (2, 3), (3, 3), (4, 2)]


@pytest.mark.asyncio
async def test_chunk_stops_when_callback_returns_false(db):
    await db.table("roles").insert([{"name": f"role-{i}"} for i in range(10)])
    pages = []

    def stop_after_two(rows, page):
        pages.append(page)
        return page < 2

    assert await db.table("roles").chunk(3, stop_after_two) is False
    assert pages == [1, 2]


@pytest.mark.asyncio
async def test_pluck_and_exists(db):
    await db.table("roles").insert([{"name": "admin"}, {"name": "editor"}])

    assert await db.table("roles").order_by("id").pluck("name") == ["admin", "editor"]
    assert await db.table("roles").where("name", "admin").exists() is True
    assert await db.table("roles").where("name", "ghost").doesnt_exist() is True
