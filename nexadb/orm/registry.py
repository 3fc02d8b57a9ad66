"""
NexaDB Model Registry
=====================

Per-manager home for observers, global scopes and the morph map.
"""

from __future__ import annotations

from typing import Dict, Optional, Type

from nexadb.orm.observers import ObserverRegistry
from nexadb.orm.scopes import GlobalScopeRegistry


class ModelRegistry:
    """
    Registries shared by the models bound to one DatabaseManager.

    Example:
        db.models.register_morph("post", Post)
        db.models.resolve_morph("post")  # Post
        db.models.clear()
    """

    def __init__(self) -> None:
        self.observers = ObserverRegistry()
        self.scopes = GlobalScopeRegistry()
        self._morph_map: Dict[str, Type] = {}

    def register_morph(self, tag: str, model_cls: Type) -> None:
        self._morph_map[tag] = model_cls

    @property
    def morph_map(self) -> Dict[str, Type]:
        return dict(self._morph_map)

    def resolve_morph(self, tag: str) -> Optional[Type]:
        return self._morph_map.get(tag)

    def clear(self) -> None:
        self.observers.clear()
        self.scopes.clear()
        self._morph_map.clear()
