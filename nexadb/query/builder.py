"""
NexaDB Query Builder
====================

Fluent builder that compiles parameterized SQL.

Features:
- Chainable select, where, join and order methods
- Positional bindings in clause order
- Optional result caching and query logging
- Length-aware, simple and cursor pagination
- Chunked iteration over large result sets
"""

from __future__ import annotations

import copy
import inspect
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from nexadb.errors import ConfigurationError
from nexadb.query.cache import cache_key
from nexadb.query.expression import Expression
from nexadb.query.pagination import Paginated, page_url

if TYPE_CHECKING:
    from nexadb.connections.base import Connection, QueryResult
    from nexadb.query.cache import QueryCache
    from nexadb.query.log import QueryLogger


# Marks an omitted argument so that None stays a legal value
_MISSING = object()


class WhereType(Enum):
    """WHERE clause variants."""

    BASIC = "basic"
    IN = "in"
    NOT_IN = "not_in"
    NULL = "null"
    NOT_NULL = "not_null"
    RAW = "raw"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"


class JoinType(Enum):
    """SQL join types."""

    INNER = "INNER JOIN"
    LEFT = "LEFT JOIN"
    RIGHT = "RIGHT JOIN"


@dataclass
class WhereClause:
    """WHERE clause component."""

    type: WhereType
    boolean: str = "and"
    column: Optional[str] = None
    operator: str = "="
    value: Any = None
    values: List[Any] = field(default_factory=list)
    sql: Optional[str] = None
    query: Optional[QueryBuilder] = None


@dataclass
class JoinClause:
    """JOIN clause component."""

    table: str
    type: JoinType
    on_left: str
    on_right: str


@dataclass
class OrderClause:
    """ORDER BY clause component."""

    column: str
    direction: str = "ASC"


class QueryBuilder:
    """
    Fluent SQL query builder.

    Every clause method mutates this builder and returns it. Use
    :meth:`clone` when an independent copy is needed.

    Example:
        users = await db.table("users") \\
            .select("id", "name", "email") \\
            .where("active", True) \\
            .where_in("role", ["admin", "manager"]) \\
            .order_by("created_at", "desc") \\
            .limit(10) \\
            .get()
    """

    def __init__(
        self,
        connection: Connection,
        table: Optional[str] = None,
        cache: Optional[QueryCache] = None,
        query_log: Optional[QueryLogger] = None,
        connection_name: Optional[str] = None,
    ) -> None:
        self.connection = connection
        self.connection_name = connection_name or getattr(connection, "name", "default")
        self._cache_store = cache
        self._query_log = query_log

        # Query components
        self._table = table
        self._columns: List[Union[str, Expression]] = ["*"]
        self._raw_selects: List[Tuple[str, List[Any]]] = []
        self._distinct = False
        self._wheres: List[WhereClause] = []
        self._joins: List[JoinClause] = []
        self._orders: List[OrderClause] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._cache_ttl: Optional[int] = None
        self._cache_key: Optional[str] = None

    @property
    def table_name(self) -> Optional[str]:
        return self._table

    @property
    def wheres(self) -> List[WhereClause]:
        return self._wheres

    @property
    def columns(self) -> List[Union[str, Expression]]:
        return self._columns

    def table(self, name: str) -> QueryBuilder:
        """Set the table to query."""
        self._table = name
        return self

    def new_query(self) -> QueryBuilder:
        """A blank builder on the same connection."""
        return QueryBuilder(
            self.connection,
            cache=self._cache_store,
            query_log=self._query_log,
            connection_name=self.connection_name,
        )

    def clone(self) -> QueryBuilder:
        """Copy this builder so that further clauses do not leak back."""
        query = copy.copy(self)
        query._columns = list(self._columns)
        query._raw_selects = list(self._raw_selects)
        query._wheres = list(self._wheres)
        query._joins = list(self._joins)
        query._orders = list(self._orders)
        return query

    # Projection

    def select(self, *columns: Union[str, Expression]) -> QueryBuilder:
        """
        Replace the selected columns.

        Args:
            *columns: Column names or Expression instances

        Example:
            query.select("id", "name")
            query.select("users.*", Expression("LOWER(email) AS email_key"))
        """
        self._columns = list(columns) or ["*"]
        return self

    def add_select(self, *columns: Union[str, Expression]) -> QueryBuilder:
        if self._columns == ["*"]:
            self._columns = []
        self._columns.extend(columns)
        return self

    def select_raw(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> QueryBuilder:
        """Append a raw select expression, rendered after the named columns."""
        self._raw_selects.append((sql, list(bindings or [])))
        return self

    def distinct(self) -> QueryBuilder:
        self._distinct = True
        return self

    # Where clauses

    def where(
        self,
        column: str,
        operator: Any = _MISSING,
        value: Any = _MISSING,
        boolean: str = "and",
    ) -> QueryBuilder:
        """
        Add a basic WHERE clause.

        With two arguments the second is the value and the operator is "=".

        Examples:
            query.where("name", "Ada")
            query.where("age", ">", 18)
            query.where("deleted_at", "=", None)
        """
        if value is _MISSING:
            if operator is _MISSING:
                raise TypeError("where() requires a value")
            value = operator
            operator = "="

        self._wheres.append(WhereClause(
            type=WhereType.BASIC,
            boolean=boolean,
            column=column,
            operator=str(operator),
            value=value,
        ))
        return self

    def or_where(
        self,
        column: str,
        operator: Any = _MISSING,
        value: Any = _MISSING,
    ) -> QueryBuilder:
        return self.where(column, operator, value, boolean="or")

    def where_column(
        self,
        first: str,
        operator: str,
        second: Optional[str] = None,
        boolean: str = "and",
    ) -> QueryBuilder:
        """Compare two columns, e.g. ``where_column("posts.user_id", "users.id")``."""
        if second is None:
            operator, second = "=", operator
        return self.where_raw(f"{first} {operator} {second}", boolean=boolean)

    def where_in(
        self,
        column: str,
        values: Sequence[Any],
        boolean: str = "and",
        negate: bool = False,
    ) -> QueryBuilder:
        self._wheres.append(WhereClause(
            type=WhereType.NOT_IN if negate else WhereType.IN,
            boolean=boolean,
            column=column,
            values=list(values),
        ))
        return self

    def where_not_in(self, column: str, values: Sequence[Any], boolean: str = "and") -> QueryBuilder:
        return self.where_in(column, values, boolean, negate=True)

    def or_where_in(self, column: str, values: Sequence[Any]) -> QueryBuilder:
        return self.where_in(column, values, boolean="or")

    def where_null(self, column: str, boolean: str = "and", negate: bool = False) -> QueryBuilder:
        self._wheres.append(WhereClause(
            type=WhereType.NOT_NULL if negate else WhereType.NULL,
            boolean=boolean,
            column=column,
        ))
        return self

    def where_not_null(self, column: str, boolean: str = "and") -> QueryBuilder:
        return self.where_null(column, boolean, negate=True)

    def or_where_null(self, column: str) -> QueryBuilder:
        return self.where_null(column, boolean="or")

    def where_between(self, column: str, low: Any, high: Any, boolean: str = "and") -> QueryBuilder:
        """Add WHERE column BETWEEN low AND high."""
        return self.where_raw(f"{column} BETWEEN ? AND ?", [low, high], boolean=boolean)

    def where_raw(
        self,
        sql: str,
        bindings: Optional[Sequence[Any]] = None,
        boolean: str = "and",
    ) -> QueryBuilder:
        """Add a raw WHERE fragment, emitted verbatim."""
        self._wheres.append(WhereClause(
            type=WhereType.RAW,
            boolean=boolean,
            sql=sql,
            values=list(bindings or []),
        ))
        return self

    def or_where_raw(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> QueryBuilder:
        return self.where_raw(sql, bindings, boolean="or")

    def where_exists(
        self,
        callback: Union[QueryBuilder, Callable[[QueryBuilder], Any]],
        boolean: str = "and",
        negate: bool = False,
    ) -> QueryBuilder:
        """
        Add an EXISTS clause.

        Args:
            callback: A builder, or a callable that receives a fresh builder
                and constrains it (returning it is optional)
            boolean: "and" or "or"
            negate: Emit NOT EXISTS

        Example:
            query.where_exists(
                lambda q: q.table("orders").select(Expression("1"))
                    .where_raw("orders.user_id = users.id")
            )
        """
        if isinstance(callback, QueryBuilder):
            sub = callback
        else:
            sub = self.new_query()
            result = callback(sub)
            if isinstance(result, QueryBuilder):
                sub = result

        self._wheres.append(WhereClause(
            type=WhereType.NOT_EXISTS if negate else WhereType.EXISTS,
            boolean=boolean,
            query=sub,
        ))
        return self

    def where_not_exists(
        self,
        callback: Union[QueryBuilder, Callable[[QueryBuilder], Any]],
        boolean: str = "and",
    ) -> QueryBuilder:
        return self.where_exists(callback, boolean, negate=True)

    def or_where_exists(self, callback: Union[QueryBuilder, Callable[[QueryBuilder], Any]]) -> QueryBuilder:
        return self.where_exists(callback, boolean="or")

    def group_wheres(self) -> QueryBuilder:
        """Collapse the current WHERE clauses into one parenthesized clause."""
        if len(self._wheres) < 2:
            return self

        sql, bindings = self.compile_wheres()
        self._wheres = [WhereClause(type=WhereType.RAW, sql=f"({sql})", values=bindings)]
        return self

    # Joins

    def join(
        self,
        table: str,
        left: str,
        right: str,
        join_type: str = "INNER",
    ) -> QueryBuilder:
        """
        Add JOIN clause.

        Args:
            table: Table to join
            left: Left column
            right: Right column
            join_type: INNER, LEFT or RIGHT

        Example:
            query.join("posts", "users.id", "posts.user_id")
        """
        self._joins.append(JoinClause(
            table=table,
            type=JoinType[join_type.upper()],
            on_left=left,
            on_right=right,
        ))
        return self

    def left_join(self, table: str, left: str, right: str) -> QueryBuilder:
        return self.join(table, left, right, "LEFT")

    def right_join(self, table: str, left: str, right: str) -> QueryBuilder:
        return self.join(table, left, right, "RIGHT")

    # Ordering and limits

    def order_by(self, column: str, direction: str = "asc") -> QueryBuilder:
        """
        Add ORDER BY clause.

        Example:
            query.order_by("created_at", "desc")
        """
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Order direction must be 'asc' or 'desc', got '{direction}'")

        self._orders.append(OrderClause(column=column, direction=direction))
        return self

    def latest(self, column: str = "created_at") -> QueryBuilder:
        return self.order_by(column, "desc")

    def oldest(self, column: str = "created_at") -> QueryBuilder:
        return self.order_by(column, "asc")

    def reorder(self) -> QueryBuilder:
        self._orders = []
        return self

    def limit(self, count: int) -> QueryBuilder:
        if count < 0:
            raise ValueError("Limit must be non-negative")
        self._limit = count
        return self

    def offset(self, count: int) -> QueryBuilder:
        if count < 0:
            raise ValueError("Offset must be non-negative")
        self._offset = count
        return self

    def take(self, count: int) -> QueryBuilder:
        """Alias for limit()."""
        return self.limit(count)

    def skip(self, count: int) -> QueryBuilder:
        """Alias for offset()."""
        return self.offset(count)

    def cache(self, ttl: int, key: Optional[str] = None) -> QueryBuilder:
        """
        Cache the results of get() for ttl seconds.

        Has no effect unless a cache store is attached to the builder.
        """
        self._cache_ttl = ttl
        self._cache_key = key
        return self

    # Compilation

    def _require_table(self) -> str:
        if not self._table:
            raise ConfigurationError("Table name is required")
        return self._table

    def _compile_columns(self) -> Tuple[str, List[Any]]:
        parts: List[str] = []
        bindings: List[Any] = []

        for column in self._columns:
            if isinstance(column, Expression):
                parts.append(column.sql)
                bindings.extend(column.bindings)
            else:
                parts.append(column)

        for sql, raw_bindings in self._raw_selects:
            parts.append(sql)
            bindings.extend(raw_bindings)

        return ", ".join(parts) or "*", bindings

    def _compile_where(self, clause: WhereClause) -> Tuple[str, List[Any]]:
        if clause.type is WhereType.BASIC:
            if isinstance(clause.value, Expression):
                return f"{clause.column} {clause.operator} {clause.value.sql}", list(clause.value.bindings)
            return f"{clause.column} {clause.operator} ?", [clause.value]

        if clause.type in (WhereType.IN, WhereType.NOT_IN):
            negate = clause.type is WhereType.NOT_IN
            if not clause.values:
                # An empty list matches nothing, or everything when negated
                return ("1 = 1" if negate else "0 = 1"), []
            placeholders = ", ".join("?" for _ in clause.values)
            keyword = "NOT IN" if negate else "IN"
            return f"{clause.column} {keyword} ({placeholders})", list(clause.values)

        if clause.type is WhereType.NULL:
            return f"{clause.column} IS NULL", []

        if clause.type is WhereType.NOT_NULL:
            return f"{clause.column} IS NOT NULL", []

        if clause.type is WhereType.RAW:
            return clause.sql, list(clause.values)

        sub_sql, sub_bindings = clause.query.to_sql()
        keyword = "NOT EXISTS" if clause.type is WhereType.NOT_EXISTS else "EXISTS"
        return f"{keyword} ({sub_sql})", sub_bindings

    def compile_wheres(self) -> Tuple[str, List[Any]]:
        """Compile the WHERE body (without the keyword)."""
        parts: List[str] = []
        bindings: List[Any] = []

        for i, clause in enumerate(self._wheres):
            sql, clause_bindings = self._compile_where(clause)
            if i > 0:
                parts.append(f" {clause.boolean.upper()} ")
            parts.append(sql)
            bindings.extend(clause_bindings)

        return "".join(parts), bindings

    def _compile_joins(self) -> str:
        return "".join(
            f" {join.type.value} {join.table} ON {join.on_left} = {join.on_right}"
            for join in self._joins
        )

    def to_sql(self) -> Tuple[str, List[Any]]:
        """
        Build the SELECT statement.

        Returns:
            Tuple of (sql_string, bindings)
        """
        table = self._require_table()
        columns, bindings = self._compile_columns()

        distinct = "DISTINCT " if self._distinct else ""
        sql = f"SELECT {distinct}{columns} FROM {table}{self._compile_joins()}"

        where_sql, where_bindings = self.compile_wheres()
        if where_sql:
            sql += f" WHERE {where_sql}"
            bindings.extend(where_bindings)

        if self._orders:
            sql += " ORDER BY " + ", ".join(f"{o.column} {o.direction}" for o in self._orders)

        if self._limit is not None:
            sql += f" LIMIT {self._limit}"

        if self._offset is not None:
            sql += f" OFFSET {self._offset}"

        return sql, bindings

    def _compile_insert(self, rows: List[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        table = self._require_table()
        columns = list(rows[0].keys())
        bindings: List[Any] = []
        groups = []

        for row in rows:
            placeholders = []
            for column in columns:
                value = row.get(column)
                if isinstance(value, Expression):
                    placeholders.append(value.sql)
                    bindings.extend(value.bindings)
                else:
                    placeholders.append("?")
                    bindings.append(value)
            groups.append(f"({', '.join(placeholders)})")

        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES {', '.join(groups)}"
        return sql, bindings

    def _compile_empty_insert(self) -> str:
        table = self._require_table()
        if getattr(self.connection, "driver", None) == "mysql":
            return f"INSERT INTO {table} () VALUES ()"
        return f"INSERT INTO {table} DEFAULT VALUES"

    # Execution methods

    async def _execute(self, sql: str, bindings: List[Any]) -> QueryResult:
        start = time.perf_counter()
        result = await self.connection.query(sql, bindings)
        elapsed = (time.perf_counter() - start) * 1000

        if self._query_log is not None:
            self._query_log.log(sql, bindings, elapsed, self.connection_name)

        return result

    async def _fetch(self, sql: str, bindings: List[Any]) -> List[Dict[str, Any]]:
        result = await self._execute(sql, bindings)
        return list(result.rows)

    async def get(self) -> List[Dict[str, Any]]:
        """Execute the SELECT and return row dicts."""
        sql, bindings = self.to_sql()

        if self._cache_store is not None and self._cache_ttl is not None:
            key = self._cache_key or cache_key(sql, bindings)
            rows = await self._cache_store.remember(
                key,
                self._cache_ttl,
                lambda: self._fetch(sql, bindings),
            )
            return [dict(row) for row in rows]

        return await self._fetch(sql, bindings)

    async def first(self) -> Optional[Dict[str, Any]]:
        """Get the first row, or None."""
        rows = await self.limit(1).get()
        return rows[0] if rows else None

    async def pluck(self, column: str) -> List[Any]:
        """Get one column's values from every row."""
        key = column.split(".")[-1]
        rows = await self.clone().select(column).get()
        return [row[key] for row in rows]

    async def insert(
        self,
        values: Union[Dict[str, Any], Sequence[Dict[str, Any]]],
    ) -> Optional[QueryResult]:
        """
        Insert one or many rows.

        The column list comes from the first row; rows missing a column
        bind None in its place.
        """
        rows = [values] if isinstance(values, dict) else list(values)
        if not rows:
            return None

        if not rows[0]:
            result = None
            for _ in rows:
                result = await self._execute(self._compile_empty_insert(), [])
            return result

        sql, bindings = self._compile_insert(rows)
        return await self._execute(sql, bindings)

    async def insert_get_id(self, values: Dict[str, Any], key: str = "id") -> Any:
        """Insert one row and return its generated key."""
        if getattr(self.connection, "supports_returning", False):
            if values:
                sql, bindings = self._compile_insert([values])
            else:
                sql, bindings = self._compile_empty_insert(), []
            result = await self._execute(f"{sql} RETURNING {key}", bindings)
            return result.rows[0][key] if result.rows else None

        result = await self.insert(values)
        return result.lastrowid if result is not None else None

    async def update(self, values: Dict[str, Any]) -> int:
        """Update matching rows and return the affected count."""
        if not values:
            return 0

        table = self._require_table()
        sets = []
        bindings: List[Any] = []

        for column, value in values.items():
            if isinstance(value, Expression):
                sets.append(f"{column} = {value.sql}")
                bindings.extend(value.bindings)
            else:
                sets.append(f"{column} = ?")
                bindings.append(value)

        sql = f"UPDATE {table} SET {', '.join(sets)}"

        where_sql, where_bindings = self.compile_wheres()
        if where_sql:
            sql += f" WHERE {where_sql}"
            bindings.extend(where_bindings)

        result = await self._execute(sql, bindings)
        return result.affected_rows

    async def increment(
        self,
        column: str,
        amount: Union[int, float] = 1,
        extra: Optional[Dict[str, Any]] = None,
    ) -> int:
        values: Dict[str, Any] = {column: Expression(f"{column} + ?", [amount])}
        values.update(extra or {})
        return await self.update(values)

    async def decrement(
        self,
        column: str,
        amount: Union[int, float] = 1,
        extra: Optional[Dict[str, Any]] = None,
    ) -> int:
        values: Dict[str, Any] = {column: Expression(f"{column} - ?", [amount])}
        values.update(extra or {})
        return await self.update(values)

    async def delete(self) -> int:
        """Delete matching rows and return the affected count."""
        sql = f"DELETE FROM {self._require_table()}"

        where_sql, bindings = self.compile_wheres()
        if where_sql:
            sql += f" WHERE {where_sql}"

        result = await self._execute(sql, bindings)
        return result.affected_rows

    # Aggregates

    async def count(self, column: str = "*") -> int:
        """Count matching rows. Leaves this builder untouched."""
        query = self.clone()
        query._columns = [Expression(f"COUNT({column}) AS aggregate")]
        query._raw_selects = []
        query._orders = []
        query._limit = None
        query._offset = None

        rows = await query.get()
        if not rows:
            return 0
        return int(rows[0]["aggregate"] or 0)

    async def exists(self) -> bool:
        query = self.clone()
        query._columns = [Expression("1 AS present")]
        query._raw_selects = []
        query._orders = []
        rows = await query.limit(1).get()
        return len(rows) > 0

    async def doesnt_exist(self) -> bool:
        return not await self.exists()

    # Pagination

    async def paginate(self, page: int = 1, per_page: int = 15, path: str = "/") -> Paginated:
        """Paginate with a total count."""
        if per_page < 1:
            raise ValueError("Per page must be positive")

        page = max(1, int(page))
        total = await self.count()
        offset = (page - 1) * per_page

        data = await self.limit(per_page).offset(offset).get()
        last_page = math.ceil(total / per_page)

        return Paginated(
            data=data,
            meta={
                "total": total,
                "per_page": per_page,
                "current_page": page,
                "last_page": last_page,
                "first_page": 1,
                "from": offset + 1 if total > 0 else None,
                "to": min(offset + per_page, total) if total > 0 else None,
            },
            links={
                "prev_page_url": page_url(path, page=page - 1) if page > 1 else None,
                "next_page_url": page_url(path, page=page + 1) if page < last_page else None,
            },
        )

    async def simple_paginate(self, page: int = 1, per_page: int = 15, path: str = "/") -> Paginated:
        """Paginate without a count query by fetching one extra row."""
        if per_page < 1:
            raise ValueError("Per page must be positive")

        page = max(1, int(page))
        offset = (page - 1) * per_page

        data = await self.limit(per_page + 1).offset(offset).get()
        has_more = len(data) > per_page
        if has_more:
            data.pop()

        return Paginated(
            data=data,
            meta={
                "per_page": per_page,
                "current_page": page,
                "first_page": 1,
                "from": offset + 1 if data else None,
                "to": offset + len(data) if data else None,
            },
            links={
                "prev_page_url": page_url(path, page=page - 1) if page > 1 else None,
                "next_page_url": page_url(path, page=page + 1) if has_more else None,
            },
        )

    async def cursor_paginate(
        self,
        cursor: Any = None,
        per_page: int = 15,
        cursor_column: str = "id",
        path: str = "/",
    ) -> Paginated:
        """
        Keyset pagination over a monotonic column.

        Example:
            page = await db.table("events").cursor_paginate(per_page=50)
            more = await db.table("events").cursor_paginate(page.meta["next_cursor"], 50)
        """
        if per_page < 1:
            raise ValueError("Per page must be positive")

        if cursor is not None and cursor != "":
            self.where(cursor_column, ">", cursor)

        data = await self.order_by(cursor_column, "asc").limit(per_page + 1).get()
        has_more = len(data) > per_page
        if has_more:
            data.pop()

        key = cursor_column.split(".")[-1]
        next_cursor = data[-1][key] if has_more and data else None

        return Paginated(
            data=data,
            meta={
                "per_page": per_page,
                "has_more": has_more,
                "next_cursor": next_cursor,
            },
            links={
                "next_page_url": page_url(path, cursor=next_cursor) if next_cursor is not None else None,
            },
        )

    async def chunk(
        self,
        size: int,
        callback: Callable[[List[Any], int], Any],
    ) -> bool:
        """
        Process results page by page.

        The callback receives ``(rows, page)`` and may be sync or async.
        Returning False stops iteration.

        Returns:
            False if the callback stopped early, else True
        """
        if size <= 0:
            raise ValueError("Chunk size must be positive")

        page = 1
        while True:
            results = await self.clone().limit(size).offset((page - 1) * size).get()
            if not results:
                break

            outcome = callback(results, page)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            if outcome is False:
                return False

            if len(results) < size:
                break
            page += 1

        return True

    def __repr__(self) -> str:
        try:
            sql, bindings = self.to_sql()
        except ConfigurationError:
            return "<QueryBuilder (no table)>"
        return f"<QueryBuilder {sql!r} {bindings!r}>"
