"""
NexaDB Global Scopes
====================

Constraints applied to every query of a model type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, Type, Union

from nexadb.orm.observers import type_key

if TYPE_CHECKING:
    from nexadb.query.builder import QueryBuilder


class GlobalScope(ABC):
    """
    A named constraint.

    Example:
        class ActiveScope(GlobalScope):
            def apply(self, builder, model_cls):
                builder.where(f"{model_cls.__table_name__}.active", True)

        User.add_global_scope("active", ActiveScope())
    """

    @abstractmethod
    def apply(self, builder: QueryBuilder, model_cls: Type) -> None:
        ...


class CallbackScope(GlobalScope):
    """Wraps a plain callable taking the builder."""

    def __init__(self, callback: Callable[[QueryBuilder], Any]) -> None:
        self.callback = callback

    def apply(self, builder: QueryBuilder, model_cls: Type) -> None:
        self.callback(builder)


class GlobalScopeRegistry:
    """
    Scopes registered per model type.

    Scopes registered on a base model also apply to its subclasses.
    """

    def __init__(self) -> None:
        self._scopes: Dict[str, Dict[str, GlobalScope]] = {}

    def add(
        self,
        model_cls: Type,
        name: str,
        scope: Union[GlobalScope, Callable[[QueryBuilder], Any]],
    ) -> None:
        if not isinstance(scope, GlobalScope):
            scope = CallbackScope(scope)
        self._scopes.setdefault(type_key(model_cls), {})[name] = scope

    def remove(self, model_cls: Type, name: str) -> None:
        self._scopes.get(type_key(model_cls), {}).pop(name, None)

    def get(self, model_cls: Type) -> Dict[str, GlobalScope]:
        scopes: Dict[str, GlobalScope] = {}
        for klass in reversed(model_cls.__mro__):
            scopes.update(self._scopes.get(type_key(klass), {}))
        return scopes

    def clear(self) -> None:
        self._scopes.clear()
