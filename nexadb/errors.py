"""
NexaDB Errors
=============

Exception hierarchy shared by connections, the query builder,
the model layer and the schema tooling.
"""

from __future__ import annotations


class DatabaseError(Exception):
    """Base exception for all nexadb errors."""

    pass


class ConfigurationError(DatabaseError):
    """A precondition was violated before any I/O was attempted."""

    pass


class MissingPrimaryKeyError(ConfigurationError):
    """Raised when a model is updated, deleted or refreshed without a key."""

    pass


class TransactionError(DatabaseError):
    """Raised for invalid transaction state changes."""

    pass


class QueryError(DatabaseError):
    """Raised by drivers that wrap their own failures."""

    pass


class UnsupportedOperationError(DatabaseError):
    """Raised when a backend or relation cannot perform an operation."""

    pass


class ModelNotFoundError(DatabaseError):
    """Raised by the ``*_or_fail`` lookups when nothing matched."""

    def __init__(self, model: str, key: object = None) -> None:
        self.model = model
        self.key = key
        message = f"No query results for model [{model}]"
        if key is not None:
            message = f"{message} {key}"
        super().__init__(message)


class RelationNotFoundError(DatabaseError):
    """Raised when a relation name is not registered on a model."""

    def __init__(self, model: str, relation: str) -> None:
        self.model = model
        self.relation = relation
        super().__init__(f"Relation '{relation}' does not exist on model {model}")


class MorphMapError(DatabaseError):
    """Raised when a polymorphic type tag has no morph map entry."""

    def __init__(self, morph_type: object) -> None:
        self.morph_type = morph_type
        super().__init__(f"No morph map entry for type '{morph_type}'")
