"""
NexaDB Schema Builder
=====================

Runs blueprints against a connection through its grammar.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, List

from nexadb.schema.blueprint import Blueprint

if TYPE_CHECKING:
    from nexadb.connections.base import Connection
    from nexadb.schema.grammars import Grammar

logger = logging.getLogger(__name__)


BlueprintCallback = Callable[[Blueprint], Any]


class SchemaBuilder:
    """
    Schema builder for migrations.

    Provides methods for creating, altering, and dropping tables.

    Example:
        schema = db.schema()

        def posts(table):
            table.id()
            table.string("title")
            table.text("content").nullable()
            table.foreign_id("user_id").constrained().on_delete("cascade")
            table.timestamps()

        await schema.create("posts", posts)
        await schema.table("posts", lambda table: table.drop_column("content"))
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    @property
    def grammar(self) -> Grammar:
        return self.connection.get_schema_grammar()

    async def _run(self, statements: List[str]) -> None:
        for sql in statements:
            await self.connection.query(sql)

    def blueprint(self, table: str, callback: BlueprintCallback) -> Blueprint:
        blueprint = Blueprint(table)
        callback(blueprint)
        return blueprint

    async def create(self, table: str, callback: BlueprintCallback) -> None:
        """Create new table."""
        logger.debug(f"Creating table {table}")
        await self._run(self.grammar.compile_create(self.blueprint(table, callback)))

    async def table(self, table: str, callback: BlueprintCallback) -> None:
        """Alter an existing table."""
        await self._run(self.grammar.compile_alter(self.blueprint(table, callback)))

    async def drop(self, table: str) -> None:
        await self.connection.query(self.grammar.compile_drop(table))

    async def drop_if_exists(self, table: str) -> None:
        await self.connection.query(self.grammar.compile_drop_if_exists(table))

    async def rename(self, old_name: str, new_name: str) -> None:
        await self.connection.query(self.grammar.compile_rename(old_name, new_name))

    async def has_table(self, table: str) -> bool:
        sql, bindings = self.grammar.compile_has_table(table)
        result = await self.connection.query(sql, bindings)
        return len(result.rows) > 0
