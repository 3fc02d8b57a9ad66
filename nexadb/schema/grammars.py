"""
NexaDB Schema Grammars
======================

Compile blueprints into dialect specific DDL.

Features:
- SQLite, MySQL and PostgreSQL grammars
- CREATE TABLE with inline keys and follow-up index statements
- ALTER TABLE in a fixed order: drop columns, add columns,
  drop indexes, add indexes, add foreign keys
- Drop, rename and table existence checks
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Tuple

from nexadb.query.expression import Expression
from nexadb.schema.blueprint import (
    Blueprint,
    ColumnDefinition,
    ColumnType,
    ForeignKeyDefinition,
    IndexDefinition,
)


class Grammar(ABC):
    """Base schema grammar."""

    @abstractmethod
    def type_for(self, column: ColumnDefinition) -> str:
        """Map a column definition to its SQL type."""

    @abstractmethod
    def compile_column(self, column: ColumnDefinition) -> str:
        ...

    @abstractmethod
    def compile_create(self, blueprint: Blueprint) -> List[str]:
        ...

    @abstractmethod
    def compile_alter(self, blueprint: Blueprint) -> List[str]:
        ...

    @abstractmethod
    def compile_has_table(self, table: str) -> Tuple[str, List[Any]]:
        ...

    def compile_drop(self, table: str) -> str:
        return f"DROP TABLE {table}"

    def compile_drop_if_exists(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {table}"

    def compile_rename(self, old_name: str, new_name: str) -> str:
        return f"ALTER TABLE {old_name} RENAME TO {new_name}"

    # Shared helpers

    def format_default(self, value: Any) -> str:
        """Format default value."""
        if isinstance(value, Expression):
            return value.sql
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        escaped = str(value).replace("'", "''")
        return f"'{escaped}'"

    def modifiers(self, column: ColumnDefinition) -> str:
        sql = ""
        if not column.is_nullable:
            sql += " NOT NULL"
        if column.has_default:
            sql += f" DEFAULT {self.format_default(column.default_value)}"
        if column.is_unique and not column.is_primary:
            sql += " UNIQUE"
        return sql

    def compile_foreign_key(self, foreign_key: ForeignKeyDefinition) -> str:
        sql = (
            f"CONSTRAINT {foreign_key.name} FOREIGN KEY ({foreign_key.column}) "
            f"REFERENCES {foreign_key.referenced_table}({foreign_key.referenced_column})"
        )
        if foreign_key.on_delete_action:
            sql += f" ON DELETE {foreign_key.on_delete_action.upper()}"
        if foreign_key.on_update_action:
            sql += f" ON UPDATE {foreign_key.on_update_action.upper()}"
        return sql

    def compile_index(self, table: str, index: IndexDefinition) -> str:
        unique = "UNIQUE " if index.unique else ""
        return f"CREATE {unique}INDEX {index.name} ON {table} ({', '.join(index.columns)})"

    def compile_table(self, table: str, definitions: List[str], suffix: str = "") -> str:
        body = ",\n  ".join(definitions)
        return f"CREATE TABLE {table} (\n  {body}\n){suffix}"


class SQLiteGrammar(Grammar):
    """SQLite grammar. Foreign keys can only be declared at creation time."""

    TYPES = {
        ColumnType.INTEGER: "INTEGER",
        ColumnType.BIG_INTEGER: "INTEGER",
        ColumnType.SMALL_INTEGER: "INTEGER",
        ColumnType.STRING: "VARCHAR",
        ColumnType.TEXT: "TEXT",
        ColumnType.BOOLEAN: "INTEGER",
        ColumnType.FLOAT: "REAL",
        ColumnType.DOUBLE: "REAL",
        ColumnType.DECIMAL: "NUMERIC",
        ColumnType.DATE: "DATE",
        ColumnType.DATETIME: "DATETIME",
        ColumnType.TIMESTAMP: "DATETIME",
        ColumnType.JSON: "TEXT",
        ColumnType.UUID: "VARCHAR",
    }

    def type_for(self, column: ColumnDefinition) -> str:
        if column.type in (ColumnType.STRING, ColumnType.UUID):
            return f"VARCHAR({column.length or 255})"
        return self.TYPES[column.type]

    def compile_column(self, column: ColumnDefinition, inline_primary: bool = True) -> str:
        sql = f"{column.name} {self.type_for(column)}"
        if column.is_primary and inline_primary:
            sql += " PRIMARY KEY"
            if column.auto_increment:
                sql += " AUTOINCREMENT"
        return sql + self.modifiers(column)

    def compile_create(self, blueprint: Blueprint) -> List[str]:
        primary = blueprint.primary_columns()
        composite = len(primary) > 1

        definitions = [self.compile_column(c, inline_primary=not composite) for c in blueprint.columns]
        if composite:
            definitions.append(f"PRIMARY KEY ({', '.join(primary)})")
        definitions.extend(self.compile_foreign_key(fk) for fk in blueprint.foreign_keys)

        statements = [self.compile_table(blueprint.table, definitions)]
        statements.extend(self.compile_index(blueprint.table, index) for index in blueprint.indexes)
        return statements

    def compile_alter(self, blueprint: Blueprint) -> List[str]:
        table = blueprint.table
        statements = [f"ALTER TABLE {table} DROP COLUMN {name}" for name in blueprint.drop_columns]
        statements.extend(
            f"ALTER TABLE {table} ADD COLUMN {self.compile_column(column)}"
            for column in blueprint.columns
        )
        statements.extend(f"DROP INDEX IF EXISTS {name}" for name in blueprint.drop_indexes)
        statements.extend(self.compile_index(table, index) for index in blueprint.indexes)
        return statements

    def compile_has_table(self, table: str) -> Tuple[str, List[Any]]:
        return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", [table]


class MySQLGrammar(Grammar):
    """MySQL / MariaDB grammar."""

    TYPES = {
        ColumnType.INTEGER: "INT",
        ColumnType.BIG_INTEGER: "BIGINT",
        ColumnType.SMALL_INTEGER: "SMALLINT",
        ColumnType.TEXT: "TEXT",
        ColumnType.BOOLEAN: "TINYINT(1)",
        ColumnType.FLOAT: "FLOAT",
        ColumnType.DOUBLE: "DOUBLE",
        ColumnType.DATE: "DATE",
        ColumnType.DATETIME: "DATETIME",
        ColumnType.TIMESTAMP: "TIMESTAMP",
        ColumnType.JSON: "JSON",
    }

    def __init__(self, charset: str = "utf8mb4", collation: str = "utf8mb4_unicode_ci") -> None:
        self.charset = charset
        self.collation = collation

    def type_for(self, column: ColumnDefinition) -> str:
        if column.type == ColumnType.STRING:
            return f"VARCHAR({column.length or 255})"
        if column.type == ColumnType.UUID:
            return "CHAR(36)"
        if column.type == ColumnType.DECIMAL:
            return f"DECIMAL({column.precision or 8}, {column.scale or 2})"
        return self.TYPES[column.type]

    def compile_column(self, column: ColumnDefinition) -> str:
        sql = f"{column.name} {self.type_for(column)}"
        if column.is_unsigned:
            sql += " UNSIGNED"
        sql += self.modifiers(column)
        if column.auto_increment:
            sql += " AUTO_INCREMENT"
        if column.comment_text:
            comment = column.comment_text.replace("'", "''")
            sql += f" COMMENT '{comment}'"
        return sql

    def _index_clause(self, index: IndexDefinition) -> str:
        kind = "UNIQUE INDEX" if index.unique else "INDEX"
        return f"{kind} {index.name} ({', '.join(index.columns)})"

    def compile_create(self, blueprint: Blueprint) -> List[str]:
        definitions = [self.compile_column(column) for column in blueprint.columns]

        primary = blueprint.primary_columns()
        if primary:
            definitions.append(f"PRIMARY KEY ({', '.join(primary)})")
        definitions.extend(self._index_clause(index) for index in blueprint.indexes)
        definitions.extend(self.compile_foreign_key(fk) for fk in blueprint.foreign_keys)

        suffix = f" ENGINE=InnoDB DEFAULT CHARSET={self.charset} COLLATE={self.collation}"
        return [self.compile_table(blueprint.table, definitions, suffix)]

    def compile_alter(self, blueprint: Blueprint) -> List[str]:
        base = f"ALTER TABLE {blueprint.table}"
        statements = []

        drops = [f"DROP FOREIGN KEY {name}" for name in blueprint.drop_foreign_keys]
        drops.extend(f"DROP COLUMN {name}" for name in blueprint.drop_columns)
        if drops:
            statements.append(f"{base} {', '.join(drops)}")

        adds = [f"ADD COLUMN {self.compile_column(column)}" for column in blueprint.columns]
        if adds:
            statements.append(f"{base} {', '.join(adds)}")

        if blueprint.drop_indexes:
            statements.append(f"{base} {', '.join(f'DROP INDEX {name}' for name in blueprint.drop_indexes)}")

        if blueprint.indexes:
            statements.append(f"{base} {', '.join(f'ADD {self._index_clause(i)}' for i in blueprint.indexes)}")

        if blueprint.foreign_keys:
            keys = ", ".join(f"ADD {self.compile_foreign_key(fk)}" for fk in blueprint.foreign_keys)
            statements.append(f"{base} {keys}")

        return statements

    def compile_rename(self, old_name: str, new_name: str) -> str:
        return f"RENAME TABLE {old_name} TO {new_name}"

    def compile_has_table(self, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = DATABASE() AND table_name = ?",
            [table],
        )


class PostgreSQLGrammar(Grammar):
    """PostgreSQL grammar."""

    TYPES = {
        ColumnType.INTEGER: "INTEGER",
        ColumnType.BIG_INTEGER: "BIGINT",
        ColumnType.SMALL_INTEGER: "SMALLINT",
        ColumnType.TEXT: "TEXT",
        ColumnType.BOOLEAN: "BOOLEAN",
        ColumnType.FLOAT: "REAL",
        ColumnType.DOUBLE: "DOUBLE PRECISION",
        ColumnType.DATE: "DATE",
        ColumnType.DATETIME: "TIMESTAMP",
        ColumnType.TIMESTAMP: "TIMESTAMP",
        ColumnType.JSON: "JSONB",
        ColumnType.UUID: "UUID",
    }

    def type_for(self, column: ColumnDefinition) -> str:
        if column.type == ColumnType.STRING:
            return f"VARCHAR({column.length or 255})"
        if column.type == ColumnType.DECIMAL:
            return f"DECIMAL({column.precision or 8}, {column.scale or 2})"
        return self.TYPES[column.type]

    def format_default(self, value: Any) -> str:
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        return super().format_default(value)

    def compile_column(self, column: ColumnDefinition) -> str:
        if column.auto_increment:
            serial = "BIGSERIAL" if column.type == ColumnType.BIG_INTEGER else "SERIAL"
            return f"{column.name} {serial} PRIMARY KEY"
        return f"{column.name} {self.type_for(column)}{self.modifiers(column)}"

    def _comments(self, blueprint: Blueprint) -> List[str]:
        statements = []
        for column in blueprint.columns:
            if column.comment_text:
                comment = column.comment_text.replace("'", "''")
                statements.append(f"COMMENT ON COLUMN {blueprint.table}.{column.name} IS '{comment}'")
        return statements

    def compile_create(self, blueprint: Blueprint) -> List[str]:
        definitions = [self.compile_column(column) for column in blueprint.columns]

        # Serial columns already carry PRIMARY KEY
        primary = [c.name for c in blueprint.columns if c.is_primary and not c.auto_increment]
        if primary and not any(c.auto_increment for c in blueprint.columns):
            definitions.append(f"PRIMARY KEY ({', '.join(primary)})")
        definitions.extend(self.compile_foreign_key(fk) for fk in blueprint.foreign_keys)

        statements = [self.compile_table(blueprint.table, definitions)]
        statements.extend(self.compile_index(blueprint.table, index) for index in blueprint.indexes)
        statements.extend(self._comments(blueprint))
        return statements

    def compile_alter(self, blueprint: Blueprint) -> List[str]:
        table = blueprint.table
        base = f"ALTER TABLE {table}"
        statements = []

        drops = [f"DROP CONSTRAINT IF EXISTS {name} CASCADE" for name in blueprint.drop_foreign_keys]
        drops.extend(f"DROP COLUMN IF EXISTS {name} CASCADE" for name in blueprint.drop_columns)
        if drops:
            statements.append(f"{base} {', '.join(drops)}")

        adds = [f"ADD COLUMN {self.compile_column(column)}" for column in blueprint.columns]
        if adds:
            statements.append(f"{base} {', '.join(adds)}")

        statements.extend(f"DROP INDEX IF EXISTS {name} CASCADE" for name in blueprint.drop_indexes)
        statements.extend(self.compile_index(table, index) for index in blueprint.indexes)

        if blueprint.foreign_keys:
            keys = ", ".join(f"ADD {self.compile_foreign_key(fk)}" for fk in blueprint.foreign_keys)
            statements.append(f"{base} {keys}")

        statements.extend(self._comments(blueprint))
        return statements

    def compile_has_table(self, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT tablename FROM pg_tables WHERE schemaname = current_schema() AND tablename = ?",
            [table],
        )
