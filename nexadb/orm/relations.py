"""
NexaDB Relations
================

Relationship objects returned by model relation methods.

Features:
- HasOne, HasMany, BelongsTo
- BelongsToMany with pivot columns, filters and pivot maintenance
- HasOneThrough, HasManyThrough
- MorphOne, MorphMany, MorphTo
- Correlated count and existence subqueries for with_count / where_has
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    Type,
    Union,
)

from nexadb.errors import MissingPrimaryKeyError, MorphMapError, UnsupportedOperationError
from nexadb.query.builder import _MISSING, QueryBuilder
from nexadb.query.expression import Expression

if TYPE_CHECKING:
    from nexadb.orm.builder import ModelQueryBuilder
    from nexadb.orm.model import Model


PIVOT_PREFIX = "__pivot_"


def _key_of(value: Any) -> Any:
    return value.get_key() if hasattr(value, "get_key") else value


def relation(method: Callable) -> Callable:
    """
    Mark a model method as a relation factory.

    The model metaclass registers marked methods by name so that eager
    loading, with_count and where_has can find them.

    Example:
        class User(Model):
            @relation
            def posts(self):
                return self.has_many(Post)
    """
    method.__relation__ = True
    return method


class Relation(ABC):
    """
    Base relation between a parent model instance and a related model class.

    Fluent where/order helpers constrain the related query and return the
    relation, so ``await user.posts().where("published", True).get()``
    reads naturally.
    """

    many = False

    def __init__(self, parent: Model, related: Optional[Type[Model]]) -> None:
        self.parent = parent
        self.related = related
        self.relation_name: Optional[str] = None
        self._query: Optional[ModelQueryBuilder] = None

    # Query construction

    @abstractmethod
    def add_constraints(self, query: ModelQueryBuilder) -> None:
        """Constrain the related query to this parent."""

    @abstractmethod
    def add_correlation(self, query: ModelQueryBuilder, outer_table: str) -> None:
        """Constrain the related query to rows of an outer query."""

    def has_parent_key(self) -> bool:
        return True

    def build_query(self) -> ModelQueryBuilder:
        query = self.related.query()
        self.add_constraints(query)
        return query

    def query(self) -> ModelQueryBuilder:
        """The related query, built once per relation object."""
        if self._query is None:
            self._query = self.build_query()
        return self._query

    def correlated_query(
        self,
        outer_table: str,
        callback: Optional[Callable[[Any], Any]] = None,
    ) -> QueryBuilder:
        query = self.related.query()
        self.add_correlation(query, outer_table)
        if callback is not None:
            callback(query)
        return query.to_base()

    def get_relation_count_query(
        self,
        outer_table: str,
        callback: Optional[Callable[[Any], Any]] = None,
    ) -> Tuple[str, List[Any]]:
        """
        Correlated ``(SELECT COUNT(*) ...)`` subquery against outer_table.

        Returns:
            Tuple of (sql, bindings)
        """
        query = self.correlated_query(outer_table, callback)
        query.select(Expression("COUNT(*)"))
        sql, bindings = query.to_sql()
        return f"({sql})", bindings

    def relation_exists_query(
        self,
        outer_table: str,
        callback: Optional[Callable[[Any], Any]] = None,
    ) -> QueryBuilder:
        """Correlated subquery suitable for where_exists."""
        return self.correlated_query(outer_table, callback).select(Expression("1"))

    # Fluent helpers

    def where(self, column: str, *args: Any) -> Relation:
        self.query().where(column, *args)
        return self

    def or_where(self, column: str, *args: Any) -> Relation:
        self.query().or_where(column, *args)
        return self

    def where_in(self, column: str, values: Iterable[Any]) -> Relation:
        self.query().where_in(column, list(values))
        return self

    def where_null(self, column: str) -> Relation:
        self.query().where_null(column)
        return self

    def where_not_null(self, column: str) -> Relation:
        self.query().where_not_null(column)
        return self

    def order_by(self, column: str, direction: str = "asc") -> Relation:
        self.query().order_by(column, direction)
        return self

    def latest(self, column: str = "created_at") -> Relation:
        self.query().latest(column)
        return self

    def limit(self, count: int) -> Relation:
        self.query().limit(count)
        return self

    # Execution methods

    async def get(self) -> Union[Optional[Model], List[Model]]:
        """Fetch the related model(s): a list for many-relations, else one or None."""
        if not self.has_parent_key():
            return [] if self.many else None
        if self.many:
            return await self.query().get()
        return await self.query().first()

    async def first(self) -> Optional[Model]:
        if not self.has_parent_key():
            return None
        return await self.query().first()

    async def count(self) -> int:
        if not self.has_parent_key():
            return 0
        return await self.query().count()

    async def exists(self) -> bool:
        if not self.has_parent_key():
            return False
        return await self.query().exists()

    def __repr__(self) -> str:
        related = self.related.__name__ if self.related else "?"
        return f"<{self.__class__.__name__} {type(self.parent).__name__} -> {related}>"


class HasOneOrMany(Relation):
    """Related rows hold a foreign key to the parent."""

    def __init__(
        self,
        parent: Model,
        related: Type[Model],
        foreign_key: str,
        local_key: str,
    ) -> None:
        super().__init__(parent, related)
        self.foreign_key = foreign_key
        self.local_key = local_key

    def parent_key_value(self) -> Any:
        return self.parent.get_raw(self.local_key)

    def has_parent_key(self) -> bool:
        return self.parent_key_value() is not None

    def add_constraints(self, query: ModelQueryBuilder) -> None:
        query.where(f"{self.related.__table_name__}.{self.foreign_key}", self.parent_key_value())

    def add_correlation(self, query: ModelQueryBuilder, outer_table: str) -> None:
        query.where_column(
            f"{self.related.__table_name__}.{self.foreign_key}",
            f"{outer_table}.{self.local_key}",
        )

    async def save(self, model: Model) -> Model:
        """Point model at the parent and save it."""
        model.set_attribute(self.foreign_key, self.parent_key_value())
        await model.save()
        return model

    async def create(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Model:
        """
        Create a related model pointing at the parent.

        Example:
            post = await user.posts().create(title="Hello")
        """
        model = self.related(attributes, **kwargs)
        return await self.save(model)


class HasOne(HasOneOrMany):
    many = False


class HasMany(HasOneOrMany):
    many = True

    async def create_many(self, records: Iterable[Dict[str, Any]]) -> List[Model]:
        return [await self.create(record) for record in records]


class BelongsTo(Relation):
    """The parent holds a foreign key to the related row."""

    def __init__(
        self,
        parent: Model,
        related: Type[Model],
        foreign_key: str,
        owner_key: str,
    ) -> None:
        super().__init__(parent, related)
        self.foreign_key = foreign_key
        self.owner_key = owner_key

    def has_parent_key(self) -> bool:
        return self.parent.get_raw(self.foreign_key) is not None

    def add_constraints(self, query: ModelQueryBuilder) -> None:
        query.where(
            f"{self.related.__table_name__}.{self.owner_key}",
            self.parent.get_raw(self.foreign_key),
        )

    def add_correlation(self, query: ModelQueryBuilder, outer_table: str) -> None:
        query.where_column(
            f"{self.related.__table_name__}.{self.owner_key}",
            f"{outer_table}.{self.foreign_key}",
        )

    def associate(self, model: Model) -> Model:
        """Point the parent at model. The parent still needs saving."""
        self.parent.set_attribute(self.foreign_key, model.get_raw(self.owner_key))
        if self.relation_name:
            self.parent.set_relation(self.relation_name, model)
        return self.parent

    def dissociate(self) -> Model:
        self.parent.set_attribute(self.foreign_key, None)
        if self.relation_name:
            self.parent.set_relation(self.relation_name, None)
        return self.parent


class BelongsToMany(Relation):
    """
    Many-to-many relation through a pivot table.

    Example:
        class User(Model):
            @relation
            def roles(self):
                return self.belongs_to_many(Role).with_pivot("expires_at")

        roles = await user.roles().get()
        roles[0].get_relation("pivot")["expires_at"]

        await user.roles().sync([1, 2, 3])
    """

    many = True

    def __init__(
        self,
        parent: Model,
        related: Type[Model],
        table: str,
        foreign_pivot_key: str,
        related_pivot_key: str,
        parent_key: str,
        related_key: str,
    ) -> None:
        super().__init__(parent, related)
        self.table = table
        self.foreign_pivot_key = foreign_pivot_key
        self.related_pivot_key = related_pivot_key
        self.parent_key = parent_key
        self.related_key = related_key
        self.pivot_columns: List[str] = []
        self.pivot_wheres: List[Tuple[str, str, Any]] = []
        self.pivot_timestamps = False

    # Pivot configuration

    def with_pivot(self, *columns: str) -> BelongsToMany:
        for column in columns:
            if column not in self.pivot_columns:
                self.pivot_columns.append(column)
                if self._query is not None:
                    self._select_pivot_column(self._query, column)
        return self

    def with_timestamps(self) -> BelongsToMany:
        self.pivot_timestamps = True
        return self.with_pivot("created_at", "updated_at")

    def where_pivot(self, column: str, operator: Any, value: Any = _MISSING) -> BelongsToMany:
        if value is _MISSING:
            operator, value = "=", operator
        self.pivot_wheres.append((column, operator, value))
        if self._query is not None:
            self._query.where(f"{self.table}.{column}", operator, value)
        return self

    # Query construction

    def parent_key_value(self) -> Any:
        return self.parent.get_raw(self.parent_key)

    def has_parent_key(self) -> bool:
        return self.parent_key_value() is not None

    def _select_pivot_column(self, query: ModelQueryBuilder, column: str) -> None:
        query.add_select(f"{self.table}.{column} AS {PIVOT_PREFIX}{column}")

    def _join_pivot(self, query: ModelQueryBuilder) -> None:
        rt = self.related.__table_name__
        query.join(self.table, f"{self.table}.{self.related_pivot_key}", f"{rt}.{self.related_key}")
        for column, operator, value in self.pivot_wheres:
            query.where(f"{self.table}.{column}", operator, value)

    def add_constraints(self, query: ModelQueryBuilder) -> None:
        query.select(f"{self.related.__table_name__}.*")
        for column in [self.foreign_pivot_key, self.related_pivot_key, *self.pivot_columns]:
            self._select_pivot_column(query, column)

        self._join_pivot(query)
        query.where(f"{self.table}.{self.foreign_pivot_key}", self.parent_key_value())

    def add_correlation(self, query: ModelQueryBuilder, outer_table: str) -> None:
        self._join_pivot(query)
        query.where_column(
            f"{self.table}.{self.foreign_pivot_key}",
            f"{outer_table}.{self.parent_key}",
        )

    async def get(self) -> List[Model]:
        if not self.has_parent_key():
            return []

        models = await self.query().get()
        for model in models:
            pivot = {}
            for key in [k for k in model.attributes if k.startswith(PIVOT_PREFIX)]:
                pivot[key[len(PIVOT_PREFIX):]] = model.attributes.pop(key)
                model.original.pop(key, None)
            model.set_relation("pivot", pivot)
        return models

    async def first(self) -> Optional[Model]:
        self.query().limit(1)
        models = await self.get()
        return models[0] if models else None

    # Pivot maintenance

    def pivot_query(self) -> QueryBuilder:
        """A builder over the pivot rows of this parent."""
        database = self.parent.get_database()
        return database.table(self.table, self.parent.__connection__).where(
            self.foreign_pivot_key, self.parent_key_value()
        )

    def _require_parent_key(self) -> Any:
        value = self.parent_key_value()
        if value is None:
            raise MissingPrimaryKeyError(
                f"Cannot modify pivot table {self.table} for an unsaved {type(self.parent).__name__}"
            )
        return value

    @staticmethod
    def _parse_ids(ids: Any) -> Dict[Any, Dict[str, Any]]:
        if isinstance(ids, dict):
            return {key: dict(value or {}) for key, value in ids.items()}
        if ids is None:
            return {}
        if not isinstance(ids, (list, tuple, set)):
            ids = [ids]
        return {_key_of(i): {} for i in ids}

    async def get_pivot_ids(self) -> List[Any]:
        """Related keys currently attached to the parent."""
        if not self.has_parent_key():
            return []
        return await self.pivot_query().pluck(self.related_pivot_key)

    async def attach(self, ids: Any, attributes: Optional[Dict[str, Any]] = None) -> None:
        """
        Insert pivot rows.

        Args:
            ids: A key, a model, a list of either, or a dict of key -> pivot attributes
            attributes: Extra pivot columns for every row
        """
        parent_value = self._require_parent_key()
        rows = []
        now = self.parent.fresh_timestamp() if self.pivot_timestamps else None

        for related_id, extra in self._parse_ids(ids).items():
            row = {
                self.foreign_pivot_key: parent_value,
                self.related_pivot_key: related_id,
            }
            row.update(attributes or {})
            row.update(extra)
            if now is not None:
                row.setdefault("created_at", now)
                row.setdefault("updated_at", now)
            rows.append({key: self.parent.serialize_for_storage(value) for key, value in row.items()})

        if rows:
            await self.parent.get_database().table(self.table, self.parent.__connection__).insert(rows)

    async def detach(self, ids: Any = None) -> int:
        """Delete pivot rows for ids, or every pivot row of the parent when None."""
        self._require_parent_key()
        query = self.pivot_query()
        if ids is not None:
            keys = list(self._parse_ids(ids))
            if not keys:
                return 0
            query.where_in(self.related_pivot_key, keys)
        return await query.delete()

    async def sync(self, ids: Any) -> Dict[str, List[Any]]:
        """
        Make the attached set exactly ids.

        Example:
            await user.roles().sync([2, 3])
            # {"attached": [3], "detached": [1]}
        """
        wanted = self._parse_ids(ids)
        current = await self.get_pivot_ids()

        detached = [key for key in current if key not in wanted]
        attached = [key for key in wanted if key not in current]

        if detached:
            await self.detach(detached)
        if attached:
            await self.attach({key: wanted[key] for key in attached})

        return {"attached": attached, "detached": detached}

    async def toggle(self, ids: Any) -> Dict[str, List[Any]]:
        """Attach the ids that are absent and detach the ones present."""
        wanted = self._parse_ids(ids)
        current = await self.get_pivot_ids()

        detached = [key for key in wanted if key in current]
        attached = [key for key in wanted if key not in current]

        if detached:
            await self.detach(detached)
        if attached:
            await self.attach({key: wanted[key] for key in attached})

        return {"attached": attached, "detached": detached}


class HasOneOrManyThrough(Relation):
    """
    Related rows reached through an intermediate table.

    For Country -> User -> Post:
        first_key: users.country_id
        second_key: posts.user_id
        local_key: countries.id
        second_local_key: users.id
    """

    def __init__(
        self,
        parent: Model,
        related: Type[Model],
        through: Type[Model],
        first_key: str,
        second_key: str,
        local_key: str,
        second_local_key: str,
    ) -> None:
        super().__init__(parent, related)
        self.through = through
        self.first_key = first_key
        self.second_key = second_key
        self.local_key = local_key
        self.second_local_key = second_local_key

    def has_parent_key(self) -> bool:
        return self.parent.get_raw(self.local_key) is not None

    def _join_through(self, query: ModelQueryBuilder) -> None:
        tt = self.through.__table_name__
        query.join(tt, f"{tt}.{self.second_local_key}", f"{self.related.__table_name__}.{self.second_key}")

    def add_constraints(self, query: ModelQueryBuilder) -> None:
        query.select(f"{self.related.__table_name__}.*")
        self._join_through(query)
        query.where(
            f"{self.through.__table_name__}.{self.first_key}",
            self.parent.get_raw(self.local_key),
        )

    def add_correlation(self, query: ModelQueryBuilder, outer_table: str) -> None:
        self._join_through(query)
        query.where_column(
            f"{self.through.__table_name__}.{self.first_key}",
            f"{outer_table}.{self.local_key}",
        )


class HasOneThrough(HasOneOrManyThrough):
    many = False


class HasManyThrough(HasOneOrManyThrough):
    many = True


class MorphOneOrMany(Relation):
    """Related rows point at the parent with a (type, id) pair."""

    def __init__(
        self,
        parent: Model,
        related: Type[Model],
        type_column: str,
        id_column: str,
        local_key: str,
    ) -> None:
        super().__init__(parent, related)
        self.type_column = type_column
        self.id_column = id_column
        self.local_key = local_key

    def parent_key_value(self) -> Any:
        return self.parent.get_raw(self.local_key)

    def has_parent_key(self) -> bool:
        return self.parent_key_value() is not None

    def add_constraints(self, query: ModelQueryBuilder) -> None:
        rt = self.related.__table_name__
        query.where(f"{rt}.{self.type_column}", type(self.parent).get_morph_type())
        query.where(f"{rt}.{self.id_column}", self.parent_key_value())

    def add_correlation(self, query: ModelQueryBuilder, outer_table: str) -> None:
        rt = self.related.__table_name__
        query.where(f"{rt}.{self.type_column}", type(self.parent).get_morph_type())
        query.where_column(f"{rt}.{self.id_column}", f"{outer_table}.{self.local_key}")

    async def create(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Model:
        """
        Create a related model tagged with the parent's type and key.

        Example:
            await post.comments().create(body="Nice")
        """
        model = self.related(attributes, **kwargs)
        model.set_attribute(self.type_column, type(self.parent).get_morph_type())
        model.set_attribute(self.id_column, self.parent_key_value())
        await model.save()
        return model


class MorphOne(MorphOneOrMany):
    many = False


class MorphMany(MorphOneOrMany):
    many = True


class MorphTo(Relation):
    """
    Inverse of a polymorphic relation.

    The owner class is resolved from the type column, first through the
    explicit morph_map given to the relation, then through the morph map
    of the database registry.

    Example:
        class Comment(Model):
            @relation
            def commentable(self):
                return self.morph_to("commentable")
    """

    many = False

    def __init__(
        self,
        parent: Model,
        type_column: str,
        id_column: str,
        morph_map: Optional[Dict[str, Type[Model]]] = None,
    ) -> None:
        super().__init__(parent, None)
        self.type_column = type_column
        self.id_column = id_column
        self.morph_map = dict(morph_map or {})

    def morph_type(self) -> Any:
        return self.parent.get_raw(self.type_column)

    def morph_id(self) -> Any:
        return self.parent.get_raw(self.id_column)

    def has_parent_key(self) -> bool:
        return bool(self.morph_type()) and self.morph_id() is not None

    def resolve_model(self) -> Type[Model]:
        tag = self.morph_type()
        model_cls = self.morph_map.get(tag)
        if model_cls is None:
            model_cls = self.parent.get_database().models.resolve_morph(tag)
        if model_cls is None:
            raise MorphMapError(tag)
        return model_cls

    def build_query(self) -> ModelQueryBuilder:
        self.related = self.resolve_model()
        return super().build_query()

    def add_constraints(self, query: ModelQueryBuilder) -> None:
        query.where(query.qualify(self.related.__primary_key__), self.morph_id())

    def add_correlation(self, query: ModelQueryBuilder, outer_table: str) -> None:
        raise UnsupportedOperationError("MorphTo relations cannot be correlated with an outer query")

    def correlated_query(self, outer_table: str, callback: Optional[Callable[[Any], Any]] = None) -> QueryBuilder:
        raise UnsupportedOperationError("MorphTo relations do not support count or existence subqueries")

    def associate(self, model: Model) -> Model:
        """Point the parent at model."""
        self.parent.set_attribute(self.type_column, type(model).get_morph_type())
        self.parent.set_attribute(self.id_column, model.get_key())
        if self.relation_name:
            self.parent.set_relation(self.relation_name, model)
        return self.parent

    def dissociate(self) -> Model:
        self.parent.set_attribute(self.type_column, None)
        self.parent.set_attribute(self.id_column, None)
        if self.relation_name:
            self.parent.set_relation(self.relation_name, None)
        return self.parent
