"""
NexaDB Schema Blueprint
=======================

Table definitions for the schema builder.

Features:
- Column types from integers to JSON and UUID
- Column modifiers (nullable, default, unique, unsigned, primary, comment, index)
- Composite indexes and foreign keys
- Alter operations (drop column, drop index, drop foreign key)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Union

from nexadb.utils.helpers import pluralize


class ColumnType(Enum):
    """Abstract column types, mapped to SQL by each grammar."""

    INTEGER = "integer"
    BIG_INTEGER = "big_integer"
    SMALL_INTEGER = "small_integer"
    STRING = "string"
    TEXT = "text"
    BOOLEAN = "boolean"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    JSON = "json"
    UUID = "uuid"


@dataclass
class IndexDefinition:
    columns: List[str]
    name: str
    unique: bool = False


@dataclass
class ForeignKeyDefinition:
    """
    Foreign key constraint.

    Example:
        table.foreign("user_id").references("id").on("users").on_delete("cascade")
    """

    column: str
    name: str
    referenced_column: str = "id"
    referenced_table: Optional[str] = None
    on_delete_action: Optional[str] = None
    on_update_action: Optional[str] = None

    def references(self, column: str) -> ForeignKeyDefinition:
        self.referenced_column = column
        return self

    def on(self, table: str) -> ForeignKeyDefinition:
        self.referenced_table = table
        return self

    def on_delete(self, action: str) -> ForeignKeyDefinition:
        self.on_delete_action = action
        return self

    def on_update(self, action: str) -> ForeignKeyDefinition:
        self.on_update_action = action
        return self

    def cascade_on_delete(self) -> ForeignKeyDefinition:
        return self.on_delete("cascade")


@dataclass
class ColumnDefinition:
    """Column definition. Modifiers return the column for chaining."""

    name: str
    type: ColumnType
    blueprint: Optional[Blueprint] = field(default=None, repr=False)
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    is_nullable: bool = False
    default_value: Any = None
    has_default: bool = False
    is_unique: bool = False
    is_primary: bool = False
    auto_increment: bool = False
    is_unsigned: bool = False
    comment_text: Optional[str] = None

    # Modifiers

    def nullable(self, value: bool = True) -> ColumnDefinition:
        self.is_nullable = value
        return self

    def default(self, value: Any) -> ColumnDefinition:
        self.default_value = value
        self.has_default = True
        return self

    def unique(self) -> ColumnDefinition:
        self.is_unique = True
        return self

    def unsigned(self) -> ColumnDefinition:
        self.is_unsigned = True
        return self

    def primary(self) -> ColumnDefinition:
        self.is_primary = True
        return self

    def comment(self, text: str) -> ColumnDefinition:
        self.comment_text = text
        return self

    def index(self, name: Optional[str] = None) -> ColumnDefinition:
        """Add a single-column index on this column."""
        if self.blueprint is not None:
            self.blueprint.add_index([self.name], name)
        return self

    def constrained(self, table: Optional[str] = None, column: str = "id") -> ForeignKeyDefinition:
        """
        Add a foreign key for this column. The table defaults to the
        pluralized column name without its "_id" suffix.

        Example:
            table.foreign_id("user_id").constrained().on_delete("cascade")
        """
        if table is None:
            base = self.name[:-3] if self.name.endswith("_id") else self.name
            table = pluralize(base)
        return self.blueprint.foreign(self.name).references(column).on(table)


class Blueprint:
    """
    Table schema builder.

    Provides fluent interface for defining table schema.

    Example:
        await db.schema().create("users", lambda table: (
            table.id(),
            table.string("name", 100),
            table.string("email").unique(),
            table.boolean("is_active").default(True),
            table.timestamps(),
        ))
    """

    def __init__(self, table: str) -> None:
        self.table = table
        self.columns: List[ColumnDefinition] = []
        self.indexes: List[IndexDefinition] = []
        self.foreign_keys: List[ForeignKeyDefinition] = []
        self.drop_columns: List[str] = []
        self.drop_indexes: List[str] = []
        self.drop_foreign_keys: List[str] = []

    def _add_column(self, name: str, type: ColumnType, **options: Any) -> ColumnDefinition:
        column = ColumnDefinition(name=name, type=type, blueprint=self, **options)
        self.columns.append(column)
        return column

    # Column types

    def id(self, name: str = "id") -> ColumnDefinition:
        """Add auto-incrementing big integer primary key."""
        return self.big_increments(name)

    def increments(self, name: str) -> ColumnDefinition:
        return self._add_column(
            name, ColumnType.INTEGER, is_primary=True, auto_increment=True, is_unsigned=True
        )

    def big_increments(self, name: str) -> ColumnDefinition:
        return self._add_column(
            name, ColumnType.BIG_INTEGER, is_primary=True, auto_increment=True, is_unsigned=True
        )

    def integer(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.INTEGER)

    def big_integer(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.BIG_INTEGER)

    def small_integer(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.SMALL_INTEGER)

    def string(self, name: str, length: int = 255) -> ColumnDefinition:
        return self._add_column(name, ColumnType.STRING, length=length)

    def text(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.TEXT)

    def boolean(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.BOOLEAN)

    def float(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.FLOAT)

    def double(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.DOUBLE)

    def decimal(self, name: str, precision: int = 8, scale: int = 2) -> ColumnDefinition:
        return self._add_column(name, ColumnType.DECIMAL, precision=precision, scale=scale)

    def date(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.DATE)

    def datetime(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.DATETIME)

    def timestamp(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.TIMESTAMP)

    def timestamps(self) -> None:
        """Add nullable created_at and updated_at columns."""
        self.timestamp("created_at").nullable()
        self.timestamp("updated_at").nullable()

    def soft_deletes(self, name: str = "deleted_at") -> ColumnDefinition:
        return self.timestamp(name).nullable()

    def json(self, name: str) -> ColumnDefinition:
        return self._add_column(name, ColumnType.JSON)

    def uuid(self, name: str = "uuid") -> ColumnDefinition:
        return self._add_column(name, ColumnType.UUID, length=36)

    def foreign_id(self, name: str) -> ColumnDefinition:
        """Add an unsigned big integer column meant to hold a foreign key."""
        return self.big_integer(name).unsigned()

    def morphs(self, name: str) -> None:
        """
        Add ``<name>_type`` and ``<name>_id`` columns with a composite index.

        Example:
            table.morphs("commentable")
        """
        self.string(f"{name}_type")
        self.big_integer(f"{name}_id").unsigned()
        self.add_index([f"{name}_type", f"{name}_id"])

    def nullable_morphs(self, name: str) -> None:
        self.string(f"{name}_type").nullable()
        self.big_integer(f"{name}_id").unsigned().nullable()
        self.add_index([f"{name}_type", f"{name}_id"])

    # Indexes and keys

    def _index_name(self, columns: List[str], suffix: str) -> str:
        return f"idx_{self.table}_{'_'.join(columns)}_{suffix}"

    def add_index(
        self,
        columns: Union[str, List[str]],
        name: Optional[str] = None,
        unique: bool = False,
    ) -> Blueprint:
        """Add a (possibly composite) index."""
        columns = [columns] if isinstance(columns, str) else list(columns)
        self.indexes.append(IndexDefinition(
            columns=columns,
            name=name or self._index_name(columns, "unique" if unique else "index"),
            unique=unique,
        ))
        return self

    def add_unique(self, columns: Union[str, List[str]], name: Optional[str] = None) -> Blueprint:
        return self.add_index(columns, name, unique=True)

    def foreign(self, column: str, name: Optional[str] = None) -> ForeignKeyDefinition:
        """Define foreign key constraint."""
        foreign_key = ForeignKeyDefinition(column=column, name=name or f"fk_{self.table}_{column}")
        self.foreign_keys.append(foreign_key)
        return foreign_key

    # Alter operations

    def drop_column(self, *names: str) -> Blueprint:
        self.drop_columns.extend(names)
        return self

    def drop_index(self, name: str) -> Blueprint:
        self.drop_indexes.append(name)
        return self

    def drop_foreign(self, name: str) -> Blueprint:
        self.drop_foreign_keys.append(name)
        return self

    def primary_columns(self) -> List[str]:
        return [column.name for column in self.columns if column.is_primary]

    def __repr__(self) -> str:
        return f"<Blueprint {self.table} columns={len(self.columns)}>"
