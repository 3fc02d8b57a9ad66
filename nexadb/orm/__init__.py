"""
NexaDB ORM (Object-Relational Mapping)
======================================

Async Active Record layer with:
- Declarative fields and casts
- Model query builder with eager loading
- Relations, including polymorphic and many-to-many
- Observers, global scopes and soft deletes
"""

from nexadb.orm.builder import ModelQueryBuilder
from nexadb.orm.fields import (
    BooleanField,
    DateField,
    DateTimeField,
    DecimalField,
    Field,
    FloatField,
    IntegerField,
    JSONField,
    StringField,
    TextField,
)
from nexadb.orm.model import Model
from nexadb.orm.observers import Observer, ObserverRegistry
from nexadb.orm.registry import ModelRegistry
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
    relation,
)
from nexadb.orm.scopes import CallbackScope, GlobalScope, GlobalScopeRegistry
from nexadb.orm.soft_deletes import SoftDeletes

__all__ = [
    # Model
    "Model",
    "ModelQueryBuilder",
    "SoftDeletes",
    # Fields
    "Field",
    "IntegerField",
    "FloatField",
    "DecimalField",
    "StringField",
    "TextField",
    "BooleanField",
    "DateTimeField",
    "DateField",
    "JSONField",
    # Relations
    "relation",
    "Relation",
    "HasOne",
    "HasMany",
    "BelongsTo",
    "BelongsToMany",
    "HasOneThrough",
    "HasManyThrough",
    "MorphOne",
    "MorphMany",
    "MorphTo",
    # Registries
    "ModelRegistry",
    "Observer",
    "ObserverRegistry",
    "GlobalScope",
    "CallbackScope",
    "GlobalScopeRegistry",
]
