"""
NexaDB Model Query Builder
==========================

Query builder bound to a model class.

Features:
- Hydrates rows into model instances
- Global scopes and soft delete filtering applied at execution
- Eager loading, relation counts and relation existence filters
- Soft delete aware bulk delete, restore and force delete
"""

from __future__ import annotations

import inspect
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Generic,
    List,
    Optional,
    Sequence,
    Type,
    TypeVar,
    Union,
)

from nexadb.errors import ConfigurationError, ModelNotFoundError, RelationNotFoundError
from nexadb.query.builder import QueryBuilder
from nexadb.query.expression import Expression
from nexadb.query.pagination import Paginated

if TYPE_CHECKING:
    from nexadb.orm.model import Model

T = TypeVar("T", bound="Model")

RelationCallback = Callable[[Any], Any]


class ModelQueryBuilder(Generic[T]):
    """
    Fluent query over one model.

    Clause methods mutate the underlying QueryBuilder and return self.

    Example:
        posts = await Post.query() \\
            .where("published", True) \\
            .with_relations("author", comments=lambda q: q.latest()) \\
            .with_count("comments") \\
            .order_by("created_at", "desc") \\
            .get()
    """

    def __init__(self, model: Type[T], query: QueryBuilder) -> None:
        self.model = model
        self.query = query
        self._eager: Dict[str, Optional[RelationCallback]] = {}
        self._trashed = "without"
        self._removed_scopes: Optional[List[str]] = []

    @property
    def table(self) -> str:
        return self.model.__table_name__

    def qualify(self, column: str) -> str:
        return column if "." in column else f"{self.table}.{column}"

    # Projection

    def select(self, *columns: Union[str, Expression]) -> ModelQueryBuilder[T]:
        self.query.select(*columns)
        return self

    def add_select(self, *columns: Union[str, Expression]) -> ModelQueryBuilder[T]:
        self.query.add_select(*columns)
        return self

    def select_raw(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> ModelQueryBuilder[T]:
        self.query.select_raw(sql, bindings)
        return self

    def distinct(self) -> ModelQueryBuilder[T]:
        self.query.distinct()
        return self

    # Where clauses

    def where(self, column: str, *args: Any) -> ModelQueryBuilder[T]:
        self.query.where(column, *args)
        return self

    def or_where(self, column: str, *args: Any) -> ModelQueryBuilder[T]:
        self.query.or_where(column, *args)
        return self

    def where_column(self, first: str, operator: str, second: Optional[str] = None) -> ModelQueryBuilder[T]:
        self.query.where_column(first, operator, second)
        return self

    def where_in(self, column: str, values: Sequence[Any]) -> ModelQueryBuilder[T]:
        self.query.where_in(column, values)
        return self

    def where_not_in(self, column: str, values: Sequence[Any]) -> ModelQueryBuilder[T]:
        self.query.where_not_in(column, values)
        return self

    def or_where_in(self, column: str, values: Sequence[Any]) -> ModelQueryBuilder[T]:
        self.query.or_where_in(column, values)
        return self

    def where_null(self, column: str) -> ModelQueryBuilder[T]:
        self.query.where_null(column)
        return self

    def where_not_null(self, column: str) -> ModelQueryBuilder[T]:
        self.query.where_not_null(column)
        return self

    def or_where_null(self, column: str) -> ModelQueryBuilder[T]:
        self.query.or_where_null(column)
        return self

    def where_between(self, column: str, low: Any, high: Any) -> ModelQueryBuilder[T]:
        self.query.where_between(column, low, high)
        return self

    def where_raw(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> ModelQueryBuilder[T]:
        self.query.where_raw(sql, bindings)
        return self

    def or_where_raw(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> ModelQueryBuilder[T]:
        self.query.or_where_raw(sql, bindings)
        return self

    def where_exists(self, callback: Any, boolean: str = "and", negate: bool = False) -> ModelQueryBuilder[T]:
        self.query.where_exists(callback, boolean, negate)
        return self

    def where_not_exists(self, callback: Any, boolean: str = "and") -> ModelQueryBuilder[T]:
        self.query.where_not_exists(callback, boolean)
        return self

    # Joins, ordering, limits

    def join(self, table: str, left: str, right: str, join_type: str = "INNER") -> ModelQueryBuilder[T]:
        self.query.join(table, left, right, join_type)
        return self

    def left_join(self, table: str, left: str, right: str) -> ModelQueryBuilder[T]:
        self.query.left_join(table, left, right)
        return self

    def right_join(self, table: str, left: str, right: str) -> ModelQueryBuilder[T]:
        self.query.right_join(table, left, right)
        return self

    def order_by(self, column: str, direction: str = "asc") -> ModelQueryBuilder[T]:
        self.query.order_by(column, direction)
        return self

    def latest(self, column: str = "created_at") -> ModelQueryBuilder[T]:
        self.query.latest(column)
        return self

    def oldest(self, column: str = "created_at") -> ModelQueryBuilder[T]:
        self.query.oldest(column)
        return self

    def limit(self, count: int) -> ModelQueryBuilder[T]:
        self.query.limit(count)
        return self

    def offset(self, count: int) -> ModelQueryBuilder[T]:
        self.query.offset(count)
        return self

    def take(self, count: int) -> ModelQueryBuilder[T]:
        return self.limit(count)

    def skip(self, count: int) -> ModelQueryBuilder[T]:
        return self.offset(count)

    def cache(self, ttl: int, key: Optional[str] = None) -> ModelQueryBuilder[T]:
        self.query.cache(ttl, key)
        return self

    # Scopes and soft deletes

    def with_trashed(self) -> ModelQueryBuilder[T]:
        self._trashed = "with"
        return self

    def only_trashed(self) -> ModelQueryBuilder[T]:
        self._trashed = "only"
        return self

    def without_trashed(self) -> ModelQueryBuilder[T]:
        self._trashed = "without"
        return self

    def without_global_scopes(self, *names: str) -> ModelQueryBuilder[T]:
        """Skip the named global scopes, or all of them when none are named."""
        if not names:
            self._removed_scopes = None
        elif self._removed_scopes is not None:
            self._removed_scopes.extend(names)
        return self

    def without_global_scope(self, name: str) -> ModelQueryBuilder[T]:
        return self.without_global_scopes(name)

    def _active_scopes(self) -> List[Any]:
        if self._removed_scopes is None:
            return []

        scopes = self.model.get_database().models.scopes.get(self.model)
        return [scope for name, scope in scopes.items() if name not in self._removed_scopes]

    def to_base(self) -> QueryBuilder:
        """
        A copy of the underlying builder with soft delete filtering and
        global scopes applied.
        """
        query = self.query.clone()
        scopes = self._active_scopes()
        column = self.model.soft_delete_column()
        filter_trashed = column is not None and self._trashed != "with"

        if not scopes and not filter_trashed:
            return query

        if any(clause.boolean == "or" for clause in query.wheres):
            query.group_wheres()

        if filter_trashed:
            if self._trashed == "only":
                query.where_not_null(self.qualify(column))
            else:
                query.where_null(self.qualify(column))

        for scope in scopes:
            scope.apply(query, self.model)

        return query

    def to_sql(self):
        return self.to_base().to_sql()

    # Relations

    def _check_relation(self, name: str) -> None:
        if name.partition(".")[0] not in self.model._relations:
            raise RelationNotFoundError(self.model.__name__, name)

    def with_relations(self, *names: str, **constrained: RelationCallback) -> ModelQueryBuilder[T]:
        """
        Eager load relations after the rows are hydrated.

        Keyword arguments map a relation name to a callback that
        constrains that relation's query. Dotted names load nested
        relations.

        Example:
            User.with_relations("posts.comments", roles=lambda q: q.order_by("name"))
        """
        for name in names:
            self._check_relation(name)
            self._eager.setdefault(name, None)

        for name, callback in constrained.items():
            self._check_relation(name)
            self._eager[name] = callback

        return self

    def _relation_for_query(self, name: str) -> Any:
        if name not in self.model._relations:
            raise RelationNotFoundError(self.model.__name__, name)
        return self.model().resolve_relation(name)

    def with_count(self, *names: str, **constrained: RelationCallback) -> ModelQueryBuilder[T]:
        """
        Add ``<relation>_count`` columns from correlated count subqueries.

        Example:
            users = await User.query().with_count("posts").get()
            users[0].get_attribute("posts_count")
        """
        requested: Dict[str, Optional[RelationCallback]] = {name: None for name in names}
        requested.update(constrained)

        if requested and self.query.columns == ["*"]:
            self.query.select(f"{self.table}.*")

        for name, callback in requested.items():
            relation = self._relation_for_query(name)
            sql, bindings = relation.get_relation_count_query(self.table, callback)
            self.query.select_raw(f"{sql} AS {name}_count", bindings)

        return self

    def where_has(
        self,
        name: str,
        callback: Optional[RelationCallback] = None,
        boolean: str = "and",
        negate: bool = False,
    ) -> ModelQueryBuilder[T]:
        """
        Keep rows that have at least one related record.

        Example:
            await User.query().where_has("posts", lambda q: q.where("published", True)).get()
        """
        relation = self._relation_for_query(name)
        exists_query = relation.relation_exists_query(self.table, callback)
        self.query.where_exists(exists_query, boolean, negate)
        return self

    def or_where_has(self, name: str, callback: Optional[RelationCallback] = None) -> ModelQueryBuilder[T]:
        return self.where_has(name, callback, boolean="or")

    def where_doesnt_have(
        self,
        name: str,
        callback: Optional[RelationCallback] = None,
        boolean: str = "and",
    ) -> ModelQueryBuilder[T]:
        return self.where_has(name, callback, boolean, negate=True)

    async def eager_load(self, models: List[T]) -> List[T]:
        """Load the requested relations onto each model, one query per model."""
        if self._eager:
            for model in models:
                await model.load(**self._eager)
        return models

    # Execution methods

    def hydrate(self, rows: List[Dict[str, Any]]) -> List[T]:
        return [self.model.new_from_row(row) for row in rows]

    async def get(self) -> List[T]:
        rows = await self.to_base().get()
        return await self.eager_load(self.hydrate(rows))

    async def first(self) -> Optional[T]:
        rows = await self.to_base().limit(1).get()
        models = await self.eager_load(self.hydrate(rows))
        return models[0] if models else None

    async def first_or_fail(self) -> T:
        model = await self.first()
        if model is None:
            raise ModelNotFoundError(self.model.__name__)
        return model

    async def find(self, id: Any) -> Union[Optional[T], List[T]]:
        """Find by primary key; a list of keys returns a list of models."""
        key = self.qualify(self.model.__primary_key__)
        if isinstance(id, (list, tuple, set)):
            return await self.where_in(key, list(id)).get()
        return await self.where(key, id).first()

    async def find_or_fail(self, id: Any) -> T:
        model = await self.find(id)
        if model is None or (isinstance(id, (list, tuple, set)) and len(model) != len(set(id))):
            raise ModelNotFoundError(self.model.__name__, id)
        return model

    async def count(self, column: str = "*") -> int:
        return await self.to_base().count(column)

    async def exists(self) -> bool:
        return await self.to_base().exists()

    async def pluck(self, column: str) -> List[Any]:
        return await self.to_base().pluck(column)

    async def paginate(self, page: int = 1, per_page: int = 15, path: str = "/") -> Paginated:
        result = await self.to_base().paginate(page, per_page, path)
        result.data = await self.eager_load(self.hydrate(result.data))
        return result

    async def simple_paginate(self, page: int = 1, per_page: int = 15, path: str = "/") -> Paginated:
        result = await self.to_base().simple_paginate(page, per_page, path)
        result.data = await self.eager_load(self.hydrate(result.data))
        return result

    async def cursor_paginate(
        self,
        cursor: Any = None,
        per_page: int = 15,
        cursor_column: Optional[str] = None,
        path: str = "/",
    ) -> Paginated:
        column = self.qualify(cursor_column or self.model.__primary_key__)
        result = await self.to_base().cursor_paginate(cursor, per_page, column, path)
        result.data = await self.eager_load(self.hydrate(result.data))
        return result

    async def chunk(self, size: int, callback: Callable[[List[T], int], Any]) -> bool:
        """Like QueryBuilder.chunk, with hydrated models."""

        async def hydrated(rows: List[Dict[str, Any]], page: int) -> Any:
            models = await self.eager_load(self.hydrate(rows))
            outcome = callback(models, page)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome

        return await self.to_base().chunk(size, hydrated)

    # Writes

    async def create(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> T:
        model = self.model(attributes, **kwargs)
        await model.save()
        return model

    async def insert(self, values: Union[Dict[str, Any], Sequence[Dict[str, Any]]]) -> Any:
        """Bulk insert without model events."""
        return await self.query.insert(values)

    async def update(self, values: Dict[str, Any]) -> int:
        """Bulk update, serializing values through the model's casts and mutators."""
        prepared = self.model.prepare_attributes(values)
        if self.model.__timestamps__ and self.model.UPDATED_AT not in prepared:
            prepared.update(self.model.prepare_attributes({
                self.model.UPDATED_AT: self.model.fresh_timestamp(),
            }))
        return await self.to_base().update(prepared)

    async def increment(self, column: str, amount: Union[int, float] = 1) -> int:
        return await self.to_base().increment(column, amount)

    async def decrement(self, column: str, amount: Union[int, float] = 1) -> int:
        return await self.to_base().decrement(column, amount)

    async def delete(self, id: Any = None) -> int:
        """
        Delete matching rows, or the row with the given key.

        Soft-deletable models are stamped instead of removed.
        """
        if id is not None:
            self.where(self.qualify(self.model.__primary_key__), id)

        column = self.model.soft_delete_column()
        if column is None:
            return await self.to_base().delete()

        return await self.to_base().update(
            self.model.prepare_attributes({column: self.model.fresh_timestamp()})
        )

    async def force_delete(self) -> int:
        return await self.to_base().delete()

    async def restore(self) -> int:
        """Clear the soft delete stamp on matching trashed rows."""
        column = self.model.soft_delete_column()
        if column is None:
            raise ConfigurationError(f"Model {self.model.__name__} does not use soft deletes")

        self.only_trashed()
        return await self.to_base().update({column: None})

    def __repr__(self) -> str:
        return f"<ModelQueryBuilder {self.model.__name__}>"
