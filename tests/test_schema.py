import pytest

from nexadb.query import Expression
from nexadb.schema import Blueprint, MySQLGrammar, PostgreSQLGrammar, SQLiteGrammar


def users_blueprint() -> Blueprint:
    table = Blueprint("users")
    table.id()
    table.string("email").unique()
    table.string("name", 100).nullable().comment("Display name")
    table.boolean("active").default(True)
    table.json("settings").nullable()
    table.timestamps()
    return table


def posts_blueprint() -> Blueprint:
    table = Blueprint("posts")
    table.id()
    table.foreign_id("user_id").constrained().on_delete("cascade")
    table.string("title").default("it's new")
    table.decimal("price", 10, 2)
    table.morphs("imageable")
    return table


def test_sqlite_create():
    statements = SQLiteGrammar().compile_create(users_blueprint())

    assert statements == [
        "CREATE TABLE users (\n"
        "  id INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL,\n"
        "  email VARCHAR(255) NOT NULL UNIQUE,\n"
        "  name VARCHAR(100),\n"
        "  active INTEGER NOT NULL DEFAULT 1,\n"
        "  settings TEXT,\n"
        "  created_at DATETIME,\n"
        "  updated_at DATETIME\n"
        ")"
    ]


def test_sqlite_foreign_keys_and_indexes():
    statements = SQLiteGrammar().compile_create(posts_blueprint())

    assert (
        "CONSTRAINT fk_posts_user_id FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE"
        in statements[0]
    )
    assert "title VARCHAR(255) NOT NULL DEFAULT 'it''s new'" in statements[0]
    assert statements[1] == (
        "CREATE INDEX idx_posts_imageable_type_imageable_id_index "
        "ON posts (imageable_type, imageable_id)"
    )


def test_sqlite_composite_primary_key():
    table = Blueprint("role_user")
    table.integer("user_id").primary()
    table.integer("role_id").primary()

    statements = SQLiteGrammar().compile_create(table)
    assert "PRIMARY KEY (user_id, role_id)" in statements[0]
    assert "user_id INTEGER NOT NULL" in statements[0]


def test_sqlite_alter_order():
    table = Blueprint("users")
    table.drop_column("legacy")
    table.string("nickname").nullable()
    table.drop_index("idx_old")
    table.add_unique("nickname")

    assert SQLiteGrammar().compile_alter(table) == [
        "ALTER TABLE users DROP COLUMN legacy",
        "ALTER TABLE users ADD COLUMN nickname VARCHAR(255)",
        "DROP INDEX IF EXISTS idx_old",
        "CREATE UNIQUE INDEX idx_users_nickname_unique ON users (nickname)",
    ]


def test_mysql_create():
    statement = MySQLGrammar().compile_create(users_blueprint())[0]

    assert "id BIGINT UNSIGNED NOT NULL AUTO_INCREMENT" in statement
    assert "name VARCHAR(100) COMMENT 'Display name'" in statement
    assert "active TINYINT(1) NOT NULL DEFAULT 1" in statement
    assert "settings JSON" in statement
    assert "PRIMARY KEY (id)" in statement
    assert statement.endswith(") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci")


def test_mysql_alter_groups_clauses():
    table = Blueprint("posts")
    table.drop_foreign("fk_posts_user_id")
    table.drop_column("user_id")
    table.string("slug")
    table.add_index("slug")

    assert MySQLGrammar().compile_alter(table) == [
        "ALTER TABLE posts DROP FOREIGN KEY fk_posts_user_id, DROP COLUMN user_id",
        "ALTER TABLE posts ADD COLUMN slug VARCHAR(255) NOT NULL",
        "ALTER TABLE posts ADD INDEX idx_posts_slug_index (slug)",
    ]


def test_postgres_create():
    statements = PostgreSQLGrammar().compile_create(users_blueprint())

    assert "id BIGSERIAL PRIMARY KEY" in statements[0]
    assert "active BOOLEAN NOT NULL DEFAULT TRUE" in statements[0]
    assert "settings JSONB" in statements[0]
    assert "PRIMARY KEY (id)" not in statements[0]
    assert statements[-1] == "COMMENT ON COLUMN users.name IS 'Display name'"


def test_postgres_decimal_and_expression_default():
    table = Blueprint("orders")
    table.decimal("total", 12, 4)
    table.timestamp("placed_at").default(Expression("CURRENT_TIMESTAMP"))

    statement = PostgreSQLGrammar().compile_create(table)[0]
    assert "total DECIMAL(12, 4) NOT NULL" in statement
    assert "placed_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP" in statement


def test_drop_and_rename():
    assert SQLiteGrammar().compile_drop_if_exists("users") == "DROP TABLE IF EXISTS users"
    assert SQLiteGrammar().compile_rename("a", "b") == "ALTER TABLE a RENAME TO b"
    assert MySQLGrammar().compile_rename("a", "b") == "RENAME TABLE a TO b"


@pytest.mark.asyncio
async def test_schema_builder_on_sqlite(db):
    schema = db.schema()

    def flights(table):
        table.id()
        table.string("code").unique()

    await schema.create("flights", flights)
    assert await schema.has_table("flights")

    await schema.table("flights", lambda table: table.integer("seats").nullable())
    await db.table("flights").insert({"code": "NX1", "seats": 120})
    assert (await db.table("flights").first())["seats"] == 120

    await schema.rename("flights", "trips")
    assert not await schema.has_table("flights")
    assert await schema.has_table("trips")

    await schema.drop("trips")
    assert not await schema.has_table("trips")
    await schema.drop_if_exists("trips")
