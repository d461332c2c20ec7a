"""Attribute kinds and coercion between stored and typed representations.

Every attribute has a ``Type``: one of a closed set of kinds, each of which
knows how to recognise its narrow Python type (``accepts``), and how to
convert values to the stored form handed to a connection (``serialize``)
and back from a row (``deserialize``).  Conversions that do not fit the
kind raise ``AttributeTypeError`` naming the kind and the offending value.

Kinds are looked up through ``type_registry``; a new kind must be
registered explicitly, call sites never inspect values ad hoc.

==============  ===================  ===============================
Kind            Python type          Stored form
==============  ===================  ===============================
``integer``     ``int``              ``int``
``string``      ``str``              ``str``
``float``       ``float``            ``float``
``boolean``     ``bool``             ``bool`` (0/1 accepted on read)
``datetime``    ``datetime`` (UTC)   ISO-8601 string
``date``        ``date``             ``YYYY-MM-DD``
``time``        ``time``             ``HH:MM:SS[.ffffff]``
==============  ===================  ===============================

``Nullable`` wraps any kind: ``None`` passes through both directions, every
other value is delegated to the wrapped kind.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, time
from enum import Enum
from typing import Any

from spine_orm.errors import AttributeTypeError, ConfigError


class AttributeKind(str, Enum):
    """Supported attribute kinds."""

    INTEGER = "integer"
    STRING = "string"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    DATE = "date"
    TIME = "time"


class Type(ABC):
    """Base class for attribute kinds."""

    kind: AttributeKind | str

    @property
    def name(self) -> str:
        return getattr(self.kind, "value", self.kind)

    @property
    def nullable(self) -> bool:
        return False

    @abstractmethod
    def accepts(self, value: Any) -> bool:
        """Whether ``value`` already has this kind's narrow Python type."""
        ...

    @abstractmethod
    def serialize(self, value: Any) -> Any:
        """Convert a typed value to the form stored by the connection."""
        ...

    @abstractmethod
    def deserialize(self, value: Any) -> Any:
        """Convert a stored value back to the typed form."""
        ...

    def _mismatch(self, value: Any) -> AttributeTypeError:
        return AttributeTypeError(self.name, value)

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class Integer(Type):
    kind = AttributeKind.INTEGER

    def accepts(self, value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)

    def serialize(self, value: Any) -> Any:
        if not self.accepts(value):
            raise self._mismatch(value)
        return value

    def deserialize(self, value: Any) -> Any:
        if self.accepts(value):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise self._mismatch(value)


class String(Type):
    kind = AttributeKind.STRING

    def accepts(self, value: Any) -> bool:
        return isinstance(value, str)

    def serialize(self, value: Any) -> Any:
        if not self.accepts(value):
            raise self._mismatch(value)
        return value

    def deserialize(self, value: Any) -> Any:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        if not self.accepts(value):
            raise self._mismatch(value)
        return value


class Float(Type):
    """Floats; ints are accepted and stored as float."""

    kind = AttributeKind.FLOAT

    def accepts(self, value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    def serialize(self, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        if not self.accepts(value):
            raise self._mismatch(value)
        return value

    def deserialize(self, value: Any) -> Any:
        # REAL columns may hand back integral values as int
        if isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        if not self.accepts(value):
            raise self._mismatch(value)
        return value


class Boolean(Type):
    kind = AttributeKind.BOOLEAN

    def accepts(self, value: Any) -> bool:
        return isinstance(value, bool)

    def serialize(self, value: Any) -> Any:
        if not self.accepts(value):
            raise self._mismatch(value)
        return value

    def deserialize(self, value: Any) -> Any:
        if self.accepts(value):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise self._mismatch(value)


class DateTime(Type):
    """Timezone-aware datetimes, normalized to UTC. Naive values are taken as UTC."""

    kind = AttributeKind.DATETIME

    def accepts(self, value: Any) -> bool:
        return isinstance(value, datetime)

    @staticmethod
    def _utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def serialize(self, value: Any) -> Any:
        if not self.accepts(value):
            raise self._mismatch(value)
        return self._utc(value).isoformat()

    def deserialize(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return self._utc(value)
        if isinstance(value, str):
            try:
                return self._utc(datetime.fromisoformat(value))
            except ValueError as e:
                raise AttributeTypeError(self.name, value).with_context(reason=str(e)) from e
        raise self._mismatch(value)


class Date(Type):
    kind = AttributeKind.DATE

    def accepts(self, value: Any) -> bool:
        return isinstance(value, date) and not isinstance(value, datetime)

    def serialize(self, value: Any) -> Any:
        if not self.accepts(value):
            raise self._mismatch(value)
        return value.isoformat()

    def deserialize(self, value: Any) -> Any:
        if self.accepts(value):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError as e:
                raise AttributeTypeError(self.name, value).with_context(reason=str(e)) from e
        raise self._mismatch(value)


class Time(Type):
    kind = AttributeKind.TIME

    def accepts(self, value: Any) -> bool:
        return isinstance(value, time)

    def serialize(self, value: Any) -> Any:
        if not self.accepts(value):
            raise self._mismatch(value)
        return value.isoformat()

    def deserialize(self, value: Any) -> Any:
        if self.accepts(value):
            return value
        if isinstance(value, str):
            try:
                return time.fromisoformat(value)
            except ValueError as e:
                raise AttributeTypeError(self.name, value).with_context(reason=str(e)) from e
        raise self._mismatch(value)


class Nullable(Type):
    """Wraps a kind so that ``None`` is a legal value in both directions."""

    def __init__(self, wrapped: Type):
        if isinstance(wrapped, Nullable):
            wrapped = wrapped.wrapped
        self.wrapped = wrapped

    @property
    def kind(self) -> AttributeKind | str:  # type: ignore[override]
        return self.wrapped.kind

    @property
    def name(self) -> str:
        return f"{self.wrapped.name}?"

    @property
    def nullable(self) -> bool:
        return True

    def accepts(self, value: Any) -> bool:
        return value is None or self.wrapped.accepts(value)

    def serialize(self, value: Any) -> Any:
        if value is None:
            return None
        return self.wrapped.serialize(value)

    def deserialize(self, value: Any) -> Any:
        if value is None:
            return None
        return self.wrapped.deserialize(value)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Nullable) and self.wrapped == other.wrapped

    def __hash__(self) -> int:
        return hash((Nullable, self.wrapped))

    def __repr__(self) -> str:
        return f"Nullable({self.wrapped!r})"


class TypeRegistry:
    """
    Registry mapping ``AttributeKind`` values to ``Type`` classes.

    Pre-registered: every member of ``AttributeKind``.
    """

    def __init__(self):
        self._types: dict[str, type[Type]] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        for cls in (Integer, String, Float, Boolean, DateTime, Date, Time):
            self._types[cls.kind.value] = cls

    def register(self, kind: str, type_class: type[Type]) -> None:
        """Register a kind. Replacing a built-in kind is not allowed."""
        kind = kind.lower()
        if kind in self._types:
            raise ConfigError(f"Attribute kind already registered: {kind}")
        self._types[kind] = type_class

    def create(self, kind: AttributeKind | str, *, nullable: bool = False) -> Type:
        """Instantiate the type for ``kind``, wrapped in ``Nullable`` when asked."""
        name = kind.value if isinstance(kind, AttributeKind) else kind.lower()
        if name not in self._types:
            raise ConfigError(f"Unknown attribute kind: {name}")
        instance = self._types[name]()
        return Nullable(instance) if nullable else instance

    def list_kinds(self) -> list[str]:
        return sorted(self._types.keys())


type_registry = TypeRegistry()


def get_type(kind: AttributeKind | str, *, nullable: bool = False) -> Type:
    """
    Get a type instance by kind.

    Usage:
        get_type(AttributeKind.INTEGER)
        get_type("string", nullable=True)
    """
    return type_registry.create(kind, nullable=nullable)


__all__ = [
    "AttributeKind",
    "Type",
    "Integer",
    "String",
    "Float",
    "Boolean",
    "DateTime",
    "Date",
    "Time",
    "Nullable",
    "TypeRegistry",
    "type_registry",
    "get_type",
]
