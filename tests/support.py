"""
Shared test models and fake connections.
"""

from typing import Any, List, Optional, Sequence

from nexadb.config import ConnectionConfig
from nexadb.connections.base import Connection, PooledConnection, QueryResult
from nexadb.orm import (
    BooleanField,
    DateTimeField,
    Field,
    IntegerField,
    Model,
    SoftDeletes,
    StringField,
    TextField,
    relation,
)
from nexadb.schema.grammars import SQLiteGrammar


class RecordingConnection(Connection):
    """Records every statement and answers with canned rows."""

    def __init__(self, rows: Optional[List[dict]] = None, driver: str = "sqlite") -> None:
        super().__init__(ConnectionConfig(driver=driver), "fake")
        self.rows = rows or []
        self.statements: List[tuple] = []
        self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def sql(self) -> List[str]:
        return [sql for sql, _ in self.statements]

    async def query(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> QueryResult:
        self.statements.append((sql, list(bindings or [])))
        return QueryResult(rows=[dict(row) for row in self.rows], rowcount=len(self.rows), lastrowid=1)

    async def begin_transaction(self) -> None:
        self._in_transaction = True
        self.statements.append(("BEGIN", []))

    async def commit(self) -> None:
        self._in_transaction = False
        self.statements.append(("COMMIT", []))

    async def rollback(self) -> None:
        self._in_transaction = False
        self.statements.append(("ROLLBACK", []))

    async def close(self) -> None:
        pass

    def get_schema_grammar(self):
        return SQLiteGrammar()


class LabelledPoolConnection(PooledConnection):
    """Pools are plain host labels, so tests can see where a statement went."""

    def __init__(self, config: ConnectionConfig, name: str = "default") -> None:
        super().__init__(config, name)
        self.routed: List[tuple] = []
        self.closed: List[str] = []

    async def _create_pool(self, config: ConnectionConfig) -> str:
        return config.host

    async def _acquire(self, pool: str) -> str:
        return pool

    async def _release(self, pool: str, conn: str) -> None:
        pass

    async def _close_pool(self, pool: str) -> None:
        self.closed.append(pool)

    async def _execute(self, conn: str, sql: str, bindings: List[Any]) -> QueryResult:
        self.routed.append((conn, sql))
        return QueryResult()

    async def _begin(self, conn: str) -> None:
        self.routed.append((conn, "BEGIN"))

    async def _commit(self, conn: str) -> None:
        self.routed.append((conn, "COMMIT"))

    async def _rollback(self, conn: str) -> None:
        self.routed.append((conn, "ROLLBACK"))

    def get_schema_grammar(self):
        return SQLiteGrammar()


# Models

class Country(Model):
    id = IntegerField()
    name = StringField()

    @relation
    def posts(self):
        return self.has_many_through(Post, User)


class User(Model):
    __hidden__ = ["password"]
    __casts__ = {"settings": "json", "active": "bool"}
    __morph_type__ = "user"

    id = IntegerField()
    name = StringField(max_length=100)
    email = StringField()
    password = StringField()
    active = BooleanField()
    settings = Field()
    country_id = IntegerField()
    created_at = DateTimeField()

    def set_email_attribute(self, value):
        return value.lower() if value else value

    def get_initials_attribute(self, value):
        return "".join(part[0] for part in (self.name or "").split())

    @relation
    def posts(self):
        return self.has_many(Post)

    @relation
    def roles(self):
        return self.belongs_to_many(Role).with_pivot("expires_at")

    @relation
    def country(self):
        return self.belongs_to(Country)

    @relation
    def comments(self):
        return self.morph_many(Comment, "commentable")


class Post(Model):
    __soft_deletes__ = SoftDeletes()
    __casts__ = {"published": "bool"}
    __morph_type__ = "post"

    id = IntegerField()
    user_id = IntegerField()
    title = StringField()
    published = BooleanField()

    @relation
    def author(self):
        return self.belongs_to(User, "user_id")

    @relation
    def comments(self):
        return self.morph_many(Comment, "commentable")


class Role(Model):
    id = IntegerField()
    name = StringField()

    @relation
    def users(self):
        return self.belongs_to_many(User)


class Comment(Model):
    id = IntegerField()
    body = TextField()
    commentable_type = StringField()
    commentable_id = IntegerField()

    @relation
    def commentable(self):
        return self.morph_to("commentable")


async def create_tables(db) -> None:
    schema = db.schema()

    def countries(table):
        table.id()
        table.string("name")
        table.timestamps()

    def users(table):
        table.id()
        table.string("name", 100)
        table.string("email").nullable()
        table.string("password").nullable()
        table.boolean("active").default(True)
        table.json("settings").nullable()
        table.foreign_id("country_id").nullable()
        table.timestamps()

    def posts(table):
        table.id()
        table.foreign_id("user_id")
        table.string("title")
        table.boolean("published").default(False)
        table.timestamps()
        table.soft_deletes()

    def roles(table):
        table.id()
        table.string("name")
        table.timestamps()

    def role_user(table):
        table.foreign_id("user_id")
        table.foreign_id("role_id")
        table.timestamp("expires_at").nullable()

    def comments(table):
        table.id()
        table.text("body")
        table.morphs("commentable")
        table.timestamps()

    await schema.create("countries", countries)
    await schema.create("users", users)
    await schema.create("posts", posts)
    await schema.create("roles", roles)
    await schema.create("role_user", role_user)
    await schema.create("comments", comments)
