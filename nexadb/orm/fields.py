"""
NexaDB Model Fields
===================

Declared model attributes.

Fields are descriptors: reading or assigning one goes through the
model's get_attribute / set_attribute, so accessors, mutators and
casts apply. Each field contributes its cast to the model's cast map.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional, Type

if TYPE_CHECKING:
    from nexadb.orm.model import Model


@dataclass(eq=False)
class Field:
    """
    Base field definition.

    Example:
        class User(Model):
            name = StringField(max_length=100)
            active = BooleanField(default=True)
    """

    cast: Optional[str] = None
    default: Any = None
    default_factory: Optional[Callable[[], Any]] = None
    nullable: bool = True

    # Set by __set_name__
    name: str = ""
    model: Optional[Type[Model]] = None

    def __set_name__(self, owner: Type[Model], name: str) -> None:
        self.name = name
        self.model = owner

    def __get__(self, obj: Optional[Model], objtype: Type[Model] = None) -> Any:
        if obj is None:
            return self
        return obj.get_attribute(self.name)

    def __set__(self, obj: Model, value: Any) -> None:
        obj.set_attribute(self.name, self.validate(value))

    def get_default(self) -> Any:
        if self.default_factory is not None:
            return self.default_factory()
        return self.default

    def has_default(self) -> bool:
        return self.default_factory is not None or self.default is not None

    def validate(self, value: Any) -> Any:
        if value is None and not self.nullable:
            raise ValueError(f"Field '{self.name}' cannot be null")
        return value


@dataclass(eq=False)
class IntegerField(Field):
    cast: Optional[str] = "int"


@dataclass(eq=False)
class FloatField(Field):
    cast: Optional[str] = "float"


@dataclass(eq=False)
class DecimalField(Field):
    cast: Optional[str] = "decimal"


@dataclass(eq=False)
class StringField(Field):
    """String/VARCHAR field."""

    cast: Optional[str] = "string"
    max_length: Optional[int] = 255

    def validate(self, value: Any) -> Any:
        value = super().validate(value)
        if value is not None and self.max_length and len(str(value)) > self.max_length:
            raise ValueError(
                f"Value for '{self.name}' exceeds max_length of {self.max_length}"
            )
        return value


@dataclass(eq=False)
class TextField(Field):
    """Text field (unlimited length)."""

    cast: Optional[str] = "string"


@dataclass(eq=False)
class BooleanField(Field):
    cast: Optional[str] = "bool"


@dataclass(eq=False)
class DateTimeField(Field):
    cast: Optional[str] = "datetime"


@dataclass(eq=False)
class DateField(Field):
    cast: Optional[str] = "date"


@dataclass(eq=False)
class JSONField(Field):
    cast: Optional[str] = "json"
