"""
NexaDB ORM Model
================

Active Record style model base class.

Features:
- Declarative fields and cast maps
- Automatic table inference
- Accessors and mutators by naming convention
- CRUD with dirty tracking and timestamps
- Observers, global scopes and soft deletes
- Relationships with eager loading
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
    Union,
)

from nexadb.errors import (
    ConfigurationError,
    MissingPrimaryKeyError,
    ModelNotFoundError,
    RelationNotFoundError,
)
from nexadb.orm.builder import ModelQueryBuilder
from nexadb.orm.casts import cast_value, format_date, serialize_value
from nexadb.orm.fields import Field
from nexadb.orm.relations import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasManyThrough,
    HasOne,
    HasOneThrough,
    MorphMany,
    MorphOne,
    MorphTo,
    Relation,
)
from nexadb.orm.soft_deletes import SoftDeletes
from nexadb.query.expression import Expression
from nexadb.query.pagination import Paginated
from nexadb.utils.helpers import pluralize, snake_case

if TYPE_CHECKING:
    from nexadb.manager import DatabaseManager

T = TypeVar("T", bound="Model")


class ModelMeta(type):
    """
    Metaclass for Model.

    Collects field definitions, relation factories and casts, and sets up
    table metadata.
    """

    def __new__(
        mcs,
        name: str,
        bases: Tuple[type, ...],
        namespace: Dict[str, Any],
    ) -> ModelMeta:
        fields: Dict[str, Field] = {}
        relations: Dict[str, Callable] = {}
        casts: Dict[str, str] = {}

        # Inherited definitions
        for base in reversed(bases):
            fields.update(getattr(base, "_fields", {}))
            relations.update(getattr(base, "_relations", {}))
            casts.update(getattr(base, "_casts", {}))

        for key, value in namespace.items():
            if isinstance(value, Field):
                fields[key] = value
                if value.cast:
                    casts[key] = value.cast
            elif callable(value) and getattr(value, "__relation__", False):
                relations[key] = value

        casts.update(namespace.get("__casts__", {}))

        namespace["_fields"] = fields
        namespace["_relations"] = relations
        namespace["_casts"] = casts

        if "__table_name__" not in namespace:
            namespace["__table_name__"] = pluralize(snake_case(name))

        cls = super().__new__(mcs, name, bases, namespace)

        database = getattr(cls, "_database", None)
        if database is not None and namespace.get("__morph_type__"):
            database.models.register_morph(namespace["__morph_type__"], cls)

        return cls


class Model(metaclass=ModelMeta):
    """
    Base model class with Active Record pattern.

    Example:
        class User(Model):
            __hidden__ = ["password"]
            __casts__ = {"settings": "json"}

            name = StringField(max_length=100)
            is_active = BooleanField(default=True)

            def set_email_attribute(self, value):
                return value.lower()

            @relation
            def posts(self):
                return self.has_many(Post)

        Model.use(db)

        # Create
        user = await User.create(name="John", email="John@Example.com")

        # Read
        user = await User.find(1)
        users = await User.where("is_active", True).with_relations("posts").get()

        # Update
        user.name = "Jane"
        await user.save()

        # Delete
        await user.delete()
    """

    __table_name__: ClassVar[str]
    __primary_key__: ClassVar[str] = "id"
    __connection__: ClassVar[Optional[str]] = None
    __timestamps__: ClassVar[bool] = True
    __serialize_dates_as_utc__: ClassVar[bool] = False
    __casts__: ClassVar[Dict[str, str]] = {}
    __hidden__: ClassVar[List[str]] = []
    __visible__: ClassVar[List[str]] = []
    __morph_type__: ClassVar[Optional[str]] = None
    __soft_deletes__: ClassVar[Optional[SoftDeletes]] = None

    CREATED_AT: ClassVar[str] = "created_at"
    UPDATED_AT: ClassVar[str] = "updated_at"

    _fields: ClassVar[Dict[str, Field]]
    _relations: ClassVar[Dict[str, Callable]]
    _casts: ClassVar[Dict[str, str]]
    _database: ClassVar[Optional[DatabaseManager]] = None

    def __init__(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> None:
        self._init_state()

        for name, field in self._fields.items():
            if field.has_default():
                self.set_attribute(name, field.get_default())

        self.fill(attributes, **kwargs)

    def _init_state(self) -> None:
        self.attributes: Dict[str, Any] = {}
        self.original: Dict[str, Any] = {}
        self.relations: Dict[str, Any] = {}
        self.exists = False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.get_key()}>"

    def __eq__(self, other: Any) -> bool:
        """Check equality by primary key."""
        if not isinstance(other, self.__class__):
            return False
        return self.get_key() is not None and self.get_key() == other.get_key()

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.get_key()))

    # Class setup

    @classmethod
    def use(cls: Type[T], database: DatabaseManager) -> Type[T]:
        """
        Bind a database manager to this model and its subclasses.

        Morph type tags of every subclass are registered with the
        manager's morph map. Returns the class for chaining.
        """
        cls._database = database

        pending = [cls]
        while pending:
            klass = pending.pop()
            tag = klass.__dict__.get("__morph_type__")
            if tag:
                database.models.register_morph(tag, klass)
            pending.extend(klass.__subclasses__())

        return cls

    @classmethod
    def get_database(cls) -> DatabaseManager:
        if cls._database is None:
            raise ConfigurationError(
                f"Model {cls.__name__} is not bound to a database. Call Model.use(db) first."
            )
        return cls._database

    @classmethod
    def get_morph_type(cls) -> str:
        if not cls.__morph_type__:
            raise ConfigurationError(f"Model {cls.__name__} has no __morph_type__ defined")
        return cls.__morph_type__

    @classmethod
    def soft_delete_column(cls) -> Optional[str]:
        return cls.__soft_deletes__.column if cls.__soft_deletes__ else None

    @classmethod
    def fresh_timestamp(cls) -> datetime:
        if cls.__serialize_dates_as_utc__:
            return datetime.now(timezone.utc)
        return datetime.now()

    # Attributes

    @classmethod
    def new_from_row(cls: Type[T], row: Dict[str, Any]) -> T:
        """Create an existing model instance from a database row."""
        instance = cls.__new__(cls)
        instance._init_state()
        instance.attributes = dict(row)
        instance.original = dict(row)
        instance.exists = True
        return instance

    @classmethod
    def hydrate(cls: Type[T], rows: Sequence[Dict[str, Any]]) -> List[T]:
        return [cls.new_from_row(row) for row in rows]

    def get_key(self) -> Any:
        return self.attributes.get(self.__primary_key__)

    def get_raw(self, key: str) -> Any:
        """The stored value, without accessors or casts."""
        return self.attributes.get(key)

    def get_cast(self, key: str) -> Optional[str]:
        cast = self._casts.get(key)
        if cast is None and key in self._date_columns():
            return "datetime"
        return cast

    @classmethod
    def _date_columns(cls) -> Tuple[str, ...]:
        columns: Tuple[str, ...] = ()
        if cls.__timestamps__:
            columns += (cls.CREATED_AT, cls.UPDATED_AT)
        if cls.__soft_deletes__:
            columns += (cls.__soft_deletes__.column,)
        return columns

    def cast_attribute(self, key: str, value: Any) -> Any:
        return cast_value(self.get_cast(key), value)

    def cast_attribute_for_save(self, key: str, value: Any) -> Any:
        if isinstance(value, Expression):
            return value
        return serialize_value(self.get_cast(key), value, self.__serialize_dates_as_utc__)

    def get_attribute(self, key: str) -> Any:
        """
        Read an attribute.

        A ``get_<key>_attribute`` accessor receives the cast value and
        its result is returned. Keys that are not attributes fall back to
        loaded relations.
        """
        accessor = getattr(self, f"get_{key}_attribute", None)

        if key in self.attributes:
            value = self.cast_attribute(key, self.attributes[key])
            return accessor(value) if accessor else value

        if accessor:
            return accessor(None)

        return self.relations.get(key)

    def set_attribute(self, key: str, value: Any) -> Model:
        """
        Write an attribute.

        A ``set_<key>_attribute`` mutator receives the value and its
        return value is stored, serialized through the cast map.
        """
        mutator = getattr(self, f"set_{key}_attribute", None)
        if mutator:
            value = mutator(value)

        self.attributes[key] = self.cast_attribute_for_save(key, value)
        return self

    def fill(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Model:
        """Fill model with values. Declared fields validate their input."""
        values = dict(attributes or {})
        values.update(kwargs)

        for key, value in values.items():
            if key in self._fields:
                setattr(self, key, value)
            else:
                self.set_attribute(key, value)
        return self

    def get_dirty(self) -> Dict[str, Any]:
        return {
            key: value
            for key, value in self.attributes.items()
            if key not in self.original or self.original[key] != value
        }

    def is_dirty(self, *keys: str) -> bool:
        dirty = self.get_dirty()
        if not keys:
            return bool(dirty)
        return any(key in dirty for key in keys)

    def sync_original(self) -> Model:
        self.original = dict(self.attributes)
        return self

    @classmethod
    def prepare_attributes(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        """Run values through mutators and casts without building a model."""
        instance = cls.__new__(cls)
        instance._init_state()
        for key, value in values.items():
            instance.set_attribute(key, value)
        return instance.attributes

    @classmethod
    def serialize_for_storage(cls, value: Any) -> Any:
        return serialize_value(None, value, cls.__serialize_dates_as_utc__)

    # Serialization

    def _is_visible(self, key: str) -> bool:
        if self.__visible__:
            return key in self.__visible__
        return key not in self.__hidden__

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary.

        Values go through accessors and casts, dates are formatted by the
        model's date policy and loaded relations are serialized
        recursively. A non-empty __visible__ list overrides __hidden__.
        """
        data: Dict[str, Any] = {}

        for key in self.attributes:
            if not self._is_visible(key):
                continue
            value = self.get_attribute(key)
            if isinstance(value, date):
                value = format_date(value, self.__serialize_dates_as_utc__)
            data[key] = value

        for name, related in self.relations.items():
            if not self._is_visible(name):
                continue
            if isinstance(related, list):
                data[name] = [m.to_dict() if isinstance(m, Model) else m for m in related]
            elif isinstance(related, Model):
                data[name] = related.to_dict()
            else:
                data[name] = related

        return data

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), default=str, **kwargs)

    # Persistence

    @classmethod
    def new_base_query(cls):
        """A plain QueryBuilder on this model's table and connection."""
        return cls.get_database().table(cls.__table_name__, cls.__connection__)

    async def _fire(self, event: str) -> bool:
        return await self.get_database().models.observers.fire(type(self), event, self)

    def _require_key(self, action: str) -> Any:
        key = self.get_key()
        if key is None:
            raise MissingPrimaryKeyError(
                f"Cannot {action} {self.__class__.__name__} without a primary key value"
            )
        return key

    def _touch_timestamps(self, creating: bool) -> None:
        if not self.__timestamps__:
            return

        now = self.fresh_timestamp()
        if creating and self.attributes.get(self.CREATED_AT) is None:
            self.set_attribute(self.CREATED_AT, now)
        if creating and self.attributes.get(self.UPDATED_AT) is not None:
            return
        self.set_attribute(self.UPDATED_AT, now)

    async def save(self) -> bool:
        """
        Save model to database.

        Inserts if new, otherwise updates the dirty attributes. Returns
        False when an observer cancels the operation.
        """
        if not await self._fire("saving"):
            return False

        if self.exists:
            saved = await self._perform_update()
        else:
            saved = await self._perform_insert()

        if saved:
            await self._fire("saved")
        return saved

    async def _perform_insert(self) -> bool:
        if not await self._fire("creating"):
            return False

        self._touch_timestamps(creating=True)

        values = dict(self.attributes)
        if values.get(self.__primary_key__) is None:
            values.pop(self.__primary_key__, None)

        generated = await self.new_base_query().insert_get_id(values, self.__primary_key__)
        if self.get_key() is None and generated is not None:
            self.attributes[self.__primary_key__] = generated

        self.exists = True
        self.sync_original()

        await self._fire("created")
        return True

    async def _perform_update(self) -> bool:
        key = self._require_key("update")

        if not self.is_dirty():
            return True

        if not await self._fire("updating"):
            return False

        if not self.is_dirty(self.UPDATED_AT):
            self._touch_timestamps(creating=False)

        await self.new_base_query().where(self.__primary_key__, key).update(self.get_dirty())
        self.sync_original()

        await self._fire("updated")
        return True

    async def update(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> bool:
        """Fill and save."""
        return await self.fill(attributes, **kwargs).save()

    async def delete(self) -> bool:
        """
        Delete the record.

        Soft-deletable models are stamped and keep existing.
        """
        if not self.exists:
            return False

        key = self._require_key("delete")
        if not await self._fire("deleting"):
            return False

        column = self.soft_delete_column()
        if column:
            await self._write_stamp(key, column, self.fresh_timestamp())
        else:
            await self.new_base_query().where(self.__primary_key__, key).delete()
            self.exists = False

        await self._fire("deleted")
        return True

    async def force_delete(self) -> bool:
        """Remove the row even for soft-deletable models."""
        if not self.exists:
            return False

        key = self._require_key("delete")
        if not await self._fire("deleting"):
            return False

        await self.new_base_query().where(self.__primary_key__, key).delete()
        self.exists = False

        await self._fire("deleted")
        return True

    async def restore(self) -> bool:
        column = self.soft_delete_column()
        if column is None:
            raise ConfigurationError(f"Model {self.__class__.__name__} does not use soft deletes")

        key = self._require_key("restore")
        if not await self._fire("restoring"):
            return False

        await self._write_stamp(key, column, None)

        await self._fire("restored")
        return True

    async def _write_stamp(self, key: Any, column: str, value: Any) -> None:
        """Write only the soft delete column and updated_at, leaving other edits pending."""
        self.set_attribute(column, value)
        columns = [column]
        if self.__timestamps__:
            self.set_attribute(self.UPDATED_AT, self.fresh_timestamp())
            columns.append(self.UPDATED_AT)

        values = {name: self.attributes[name] for name in columns}
        await self.new_base_query().where(self.__primary_key__, key).update(values)
        self.original.update(values)

    def trashed(self) -> bool:
        column = self.soft_delete_column()
        return column is not None and self.attributes.get(column) is not None

    async def refresh(self) -> Model:
        """Reload attributes from the database and drop loaded relations."""
        key = self._require_key("refresh")

        row = await self.new_base_query().where(self.__primary_key__, key).first()
        if row is None:
            raise ModelNotFoundError(self.__class__.__name__, key)

        self.attributes = dict(row)
        self.original = dict(row)
        self.relations = {}
        self.exists = True
        return self

    # Relation loading

    def resolve_relation(self, name: str) -> Relation:
        if name not in self._relations:
            raise RelationNotFoundError(self.__class__.__name__, name)

        relation = self._relations[name](self)
        relation.relation_name = name
        return relation

    async def load_relation(self, name: str, callback: Optional[Callable[[Any], Any]] = None) -> Any:
        relation = self.resolve_relation(name)
        if callback is not None and relation.has_parent_key():
            callback(relation.query())

        self.relations[name] = await relation.get()
        return self.relations[name]

    async def load(self, *names: str, **constrained: Optional[Callable[[Any], Any]]) -> Model:
        """
        Load relations onto this model.

        Dotted names load nested relations; keyword arguments constrain the
        named relation's query.

        Example:
            await user.load("posts.comments", roles=lambda q: q.order_by("name"))
        """
        requested: Dict[str, Optional[Callable[[Any], Any]]] = {name: None for name in names}
        requested.update(constrained)

        # Parents before their nested paths
        for name, callback in sorted(requested.items(), key=lambda item: item[0].count(".")):
            head, _, nested = name.partition(".")
            if not nested:
                await self.load_relation(head, callback)
                continue

            if head not in self.relations:
                await self.load_relation(head)

            related = self.relations[head]
            children = related if isinstance(related, list) else [related]
            for child in children:
                if child is not None:
                    await child.load(**{nested: callback})

        return self

    async def load_missing(self, *names: str) -> Model:
        missing = [name for name in names if name.partition(".")[0] not in self.relations]
        if missing:
            await self.load(*missing)
        return self

    def get_relation(self, name: str) -> Any:
        return self.relations.get(name)

    def set_relation(self, name: str, value: Any) -> Model:
        self.relations[name] = value
        return self

    # Relation definitions

    def _default_foreign_key(self) -> str:
        return f"{snake_case(self.__class__.__name__)}_{self.__primary_key__}"

    def has_one(
        self,
        related: Type[Model],
        foreign_key: Optional[str] = None,
        local_key: Optional[str] = None,
    ) -> HasOne:
        return HasOne(
            self,
            related,
            foreign_key or self._default_foreign_key(),
            local_key or self.__primary_key__,
        )

    def has_many(
        self,
        related: Type[Model],
        foreign_key: Optional[str] = None,
        local_key: Optional[str] = None,
    ) -> HasMany:
        return HasMany(
            self,
            related,
            foreign_key or self._default_foreign_key(),
            local_key or self.__primary_key__,
        )

    def belongs_to(
        self,
        related: Type[Model],
        foreign_key: Optional[str] = None,
        owner_key: Optional[str] = None,
    ) -> BelongsTo:
        return BelongsTo(
            self,
            related,
            foreign_key or f"{snake_case(related.__name__)}_{related.__primary_key__}",
            owner_key or related.__primary_key__,
        )

    def belongs_to_many(
        self,
        related: Type[Model],
        table: Optional[str] = None,
        foreign_pivot_key: Optional[str] = None,
        related_pivot_key: Optional[str] = None,
        parent_key: Optional[str] = None,
        related_key: Optional[str] = None,
    ) -> BelongsToMany:
        """
        Many-to-many relation.

        The pivot table defaults to both singular snake case names in
        alphabetical order joined by "_" (User and Role give "role_user").
        """
        parent_name = snake_case(self.__class__.__name__)
        related_name = snake_case(related.__name__)

        return BelongsToMany(
            self,
            related,
            table or "_".join(sorted([parent_name, related_name])),
            foreign_pivot_key or f"{parent_name}_{self.__primary_key__}",
            related_pivot_key or f"{related_name}_{related.__primary_key__}",
            parent_key or self.__primary_key__,
            related_key or related.__primary_key__,
        )

    def _through_keys(
        self,
        through: Type[Model],
        first_key: Optional[str],
        second_key: Optional[str],
        local_key: Optional[str],
        second_local_key: Optional[str],
    ) -> Tuple[str, str, str, str]:
        return (
            first_key or self._default_foreign_key(),
            second_key or f"{snake_case(through.__name__)}_{through.__primary_key__}",
            local_key or self.__primary_key__,
            second_local_key or through.__primary_key__,
        )

    def has_one_through(
        self,
        related: Type[Model],
        through: Type[Model],
        first_key: Optional[str] = None,
        second_key: Optional[str] = None,
        local_key: Optional[str] = None,
        second_local_key: Optional[str] = None,
    ) -> HasOneThrough:
        keys = self._through_keys(through, first_key, second_key, local_key, second_local_key)
        return HasOneThrough(self, related, through, *keys)

    def has_many_through(
        self,
        related: Type[Model],
        through: Type[Model],
        first_key: Optional[str] = None,
        second_key: Optional[str] = None,
        local_key: Optional[str] = None,
        second_local_key: Optional[str] = None,
    ) -> HasManyThrough:
        """
        Example:
            class Country(Model):
                @relation
                def posts(self):
                    return self.has_many_through(Post, User)
        """
        keys = self._through_keys(through, first_key, second_key, local_key, second_local_key)
        return HasManyThrough(self, related, through, *keys)

    def morph_one(
        self,
        related: Type[Model],
        name: str,
        type_column: Optional[str] = None,
        id_column: Optional[str] = None,
        local_key: Optional[str] = None,
    ) -> MorphOne:
        return MorphOne(
            self,
            related,
            type_column or f"{name}_type",
            id_column or f"{name}_id",
            local_key or self.__primary_key__,
        )

    def morph_many(
        self,
        related: Type[Model],
        name: str,
        type_column: Optional[str] = None,
        id_column: Optional[str] = None,
        local_key: Optional[str] = None,
    ) -> MorphMany:
        return MorphMany(
            self,
            related,
            type_column or f"{name}_type",
            id_column or f"{name}_id",
            local_key or self.__primary_key__,
        )

    def morph_to(
        self,
        name: str,
        type_column: Optional[str] = None,
        id_column: Optional[str] = None,
        morph_map: Optional[Dict[str, Type[Model]]] = None,
    ) -> MorphTo:
        return MorphTo(
            self,
            type_column or f"{name}_type",
            id_column or f"{name}_id",
            morph_map,
        )

    # Query methods

    @classmethod
    def query(cls: Type[T]) -> ModelQueryBuilder[T]:
        """Start a query builder."""
        return ModelQueryBuilder(cls, cls.new_base_query())

    @classmethod
    def with_trashed(cls: Type[T]) -> ModelQueryBuilder[T]:
        return cls.query().with_trashed()

    @classmethod
    def only_trashed(cls: Type[T]) -> ModelQueryBuilder[T]:
        return cls.query().only_trashed()

    @classmethod
    def without_global_scopes(cls: Type[T], *names: str) -> ModelQueryBuilder[T]:
        return cls.query().without_global_scopes(*names)

    @classmethod
    def where(cls: Type[T], column: str, *args: Any) -> ModelQueryBuilder[T]:
        """Start query with WHERE clause."""
        return cls.query().where(column, *args)

    @classmethod
    def or_where(cls: Type[T], column: str, *args: Any) -> ModelQueryBuilder[T]:
        return cls.query().or_where(column, *args)

    @classmethod
    def where_in(cls: Type[T], column: str, values: Sequence[Any]) -> ModelQueryBuilder[T]:
        return cls.query().where_in(column, values)

    @classmethod
    def where_not_in(cls: Type[T], column: str, values: Sequence[Any]) -> ModelQueryBuilder[T]:
        return cls.query().where_not_in(column, values)

    @classmethod
    def where_null(cls: Type[T], column: str) -> ModelQueryBuilder[T]:
        return cls.query().where_null(column)

    @classmethod
    def where_not_null(cls: Type[T], column: str) -> ModelQueryBuilder[T]:
        return cls.query().where_not_null(column)

    @classmethod
    def order_by(cls: Type[T], column: str, direction: str = "asc") -> ModelQueryBuilder[T]:
        """Start query with ORDER BY."""
        return cls.query().order_by(column, direction)

    @classmethod
    def latest(cls: Type[T], column: str = "created_at") -> ModelQueryBuilder[T]:
        return cls.query().latest(column)

    @classmethod
    def limit(cls: Type[T], count: int) -> ModelQueryBuilder[T]:
        return cls.query().limit(count)

    @classmethod
    def offset(cls: Type[T], count: int) -> ModelQueryBuilder[T]:
        return cls.query().offset(count)

    @classmethod
    def cache(cls: Type[T], ttl: int, key: Optional[str] = None) -> ModelQueryBuilder[T]:
        return cls.query().cache(ttl, key)

    @classmethod
    def with_relations(cls: Type[T], *names: str, **constrained: Callable[[Any], Any]) -> ModelQueryBuilder[T]:
        return cls.query().with_relations(*names, **constrained)

    @classmethod
    def with_count(cls: Type[T], *names: str, **constrained: Callable[[Any], Any]) -> ModelQueryBuilder[T]:
        return cls.query().with_count(*names, **constrained)

    @classmethod
    def where_has(cls: Type[T], name: str, callback: Optional[Callable[[Any], Any]] = None) -> ModelQueryBuilder[T]:
        return cls.query().where_has(name, callback)

    @classmethod
    def where_doesnt_have(
        cls: Type[T],
        name: str,
        callback: Optional[Callable[[Any], Any]] = None,
    ) -> ModelQueryBuilder[T]:
        return cls.query().where_doesnt_have(name, callback)

    @classmethod
    async def find(cls: Type[T], pk: Any) -> Union[Optional[T], List[T]]:
        """Find model by primary key."""
        return await cls.query().find(pk)

    @classmethod
    async def find_or_fail(cls: Type[T], pk: Any) -> T:
        """Find model by primary key or raise ModelNotFoundError."""
        return await cls.query().find_or_fail(pk)

    @classmethod
    async def all(cls: Type[T]) -> List[T]:
        """Get all records."""
        return await cls.query().get()

    @classmethod
    async def first(cls: Type[T]) -> Optional[T]:
        """Get first record."""
        return await cls.query().first()

    @classmethod
    async def count(cls) -> int:
        """Count all records."""
        return await cls.query().count()

    @classmethod
    async def paginate(cls, page: int = 1, per_page: int = 15, path: str = "/") -> Paginated:
        return await cls.query().paginate(page, per_page, path)

    @classmethod
    async def chunk(cls, size: int, callback: Callable[[List[Any], int], Any]) -> bool:
        return await cls.query().chunk(size, callback)

    @classmethod
    async def create(cls: Type[T], attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> T:
        """Create and save new record."""
        return await cls.query().create(attributes, **kwargs)

    @classmethod
    async def insert(cls, values: Union[Dict[str, Any], Sequence[Dict[str, Any]]]) -> Any:
        """Bulk insert, serialized through casts and mutators but without events."""
        rows = [values] if isinstance(values, dict) else list(values)
        return await cls.query().insert([cls.prepare_attributes(row) for row in rows])

    @classmethod
    async def destroy(cls, *ids: Any) -> int:
        """Delete models by key, firing their events. Returns how many were deleted."""
        keys: List[Any] = []
        for item in ids:
            keys.extend(item if isinstance(item, (list, tuple, set)) else [item])

        deleted = 0
        for model in await cls.query().find(keys):
            if await model.delete():
                deleted += 1
        return deleted

    # Registries

    @classmethod
    def observe(cls, observer: Any) -> None:
        cls.get_database().models.observers.register(cls, observer)

    @classmethod
    def add_global_scope(cls, name: str, scope: Any) -> None:
        cls.get_database().models.scopes.add(cls, name, scope)

    @classmethod
    def remove_global_scope(cls, name: str) -> None:
        cls.get_database().models.scopes.remove(cls, name)
