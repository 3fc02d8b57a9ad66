"""
NexaDB Model Observers
======================

Lifecycle hooks keyed by model type.

Events:
- saving, saved
- creating, created
- updating, updated
- deleting, deleted
- restoring, restored

Returning False from a ``*ing`` handler cancels the operation.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Dict, List, Type

logger = logging.getLogger(__name__)


EVENTS = (
    "saving",
    "saved",
    "creating",
    "created",
    "updating",
    "updated",
    "deleting",
    "deleted",
    "restoring",
    "restored",
)


def type_key(model_cls: type) -> str:
    """Stable identifier for a model type."""
    return f"{model_cls.__module__}.{model_cls.__qualname__}"


class Observer:
    """
    Base observer. Override the events you need; handlers may be async.

    Example:
        class UserObserver(Observer):
            async def creating(self, user):
                user.set_attribute("slug", user.get_attribute("name").lower())

            def deleting(self, user):
                return not user.get_attribute("is_admin")

        User.observe(UserObserver())
    """


class ObserverRegistry:
    """Observers registered per model type."""

    def __init__(self) -> None:
        self._observers: Dict[str, List[Any]] = {}

    def register(self, model_cls: Type, observer: Any) -> None:
        if isinstance(observer, type):
            observer = observer()
        self._observers.setdefault(type_key(model_cls), []).append(observer)

    def forget(self, model_cls: Type) -> None:
        self._observers.pop(type_key(model_cls), None)

    def observers_for(self, model_cls: Type) -> List[Any]:
        return list(self._observers.get(type_key(model_cls), []))

    async def fire(self, model_cls: Type, event: str, model: Any) -> bool:
        """
        Call every observer's handler for event.

        Returns:
            False as soon as a handler returns False, else True
        """
        for observer in self._observers.get(type_key(model_cls), []):
            handler = getattr(observer, event, None)
            if handler is None:
                continue

            result = handler(model)
            if inspect.isawaitable(result):
                result = await result

            if result is False:
                logger.debug(f"{event} on {model_cls.__name__} cancelled by {type(observer).__name__}")
                return False

        return True

    def clear(self) -> None:
        self._observers.clear()
