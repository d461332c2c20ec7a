"""Attribute definitions and validator chains.

An ``Attribute`` is an immutable column definition: name, kind (``Type``),
primary-key flag and a chain of validators.  ``Attribute.validate(value)``
runs the chain fail-fast: first the kind check, then each declared
validator, raising ``ValidationError`` for the first violation.

Validators skip ``None`` unless they say otherwise (``Presence`` does not),
so an optional attribute only has to declare ``Presence`` to become
mandatory.

Examples:
    >>> title = define_attribute("title", "string", Length(maximum=5))
    >>> title.validate("Omoo")
    >>> title.validate("Moby Dick")
    Traceback (most recent call last):
    ...
    ValidationError: 'title' is too long (maximum is 5 characters)

    >>> year = define_attribute("year", "integer", check("integer", lambda y: y > 1800))
    >>> year.validate(1851)
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection, Sized
from dataclasses import dataclass, field, replace
from typing import Any

from spine_orm.errors import SchemaError, ValidationError
from spine_orm.types import AttributeKind, Nullable, Type, get_type


def is_blank(value: Any) -> bool:
    """None, whitespace-only strings and empty collections are blank."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Sized):
        return len(value) == 0
    return False


class Validator(ABC):
    """A single rule in an attribute's validator chain."""

    allow_nil: bool = True
    allow_blank: bool = False
    constraint: str = "invalid"

    def skips(self, value: Any) -> bool:
        if value is None and self.allow_nil:
            return True
        return self.allow_blank and is_blank(value)

    @abstractmethod
    def validate(self, name: str, value: Any) -> None:
        """Raise ``ValidationError`` when ``value`` violates the rule."""
        ...

    def _invalid(self, name: str, value: Any, message: str) -> ValidationError:
        return ValidationError(
            f"{name!r} {message}",
            field=name,
            value=value,
            constraint=self.constraint,
        )


@dataclass(frozen=True)
class Presence(Validator):
    """Value must be present and not blank."""

    allow_nil: bool = False
    allow_blank: bool = False
    constraint: str = "presence"

    def validate(self, name: str, value: Any) -> None:
        if is_blank(value):
            raise self._invalid(name, value, "can't be blank")


@dataclass(frozen=True)
class Length(Validator):
    """String length must lie within ``[minimum, maximum]``."""

    minimum: int = 0
    maximum: int | None = None
    allow_nil: bool = True
    allow_blank: bool = False
    constraint: str = "length"

    def __post_init__(self) -> None:
        if self.minimum < 0:
            raise SchemaError("length: minimum can't be less than 0")
        if self.maximum is not None and self.maximum < self.minimum:
            raise SchemaError("length: maximum can't be less than minimum")

    def validate(self, name: str, value: Any) -> None:
        if not isinstance(value, (str, bytes)):
            raise self._invalid(name, value, f"has invalid value {value!r} for string type")
        if len(value) < self.minimum:
            raise self._invalid(
                name, value, f"is too short (minimum is {self.minimum} characters)"
            )
        if self.maximum is not None and len(value) > self.maximum:
            raise self._invalid(
                name, value, f"is too long (maximum is {self.maximum} characters)"
            )


@dataclass(frozen=True)
class Format(Validator):
    """String must match ``with_`` or must not match ``without`` (exactly one is given)."""

    with_: str | None = None
    without: str | None = None
    allow_nil: bool = True
    allow_blank: bool = False
    constraint: str = "format"

    def __post_init__(self) -> None:
        if (self.with_ is None) == (self.without is None):
            raise SchemaError("format: either 'with_' or 'without' must be supplied (but not both)")
        try:
            re.compile(self.pattern)
        except re.error as e:
            raise SchemaError(f"format: invalid pattern {self.pattern!r}", cause=e) from e

    @property
    def pattern(self) -> str:
        return self.with_ if self.with_ is not None else self.without  # type: ignore[return-value]

    def validate(self, name: str, value: Any) -> None:
        if not isinstance(value, str):
            raise self._invalid(name, value, f"has invalid value {value!r} for string type")
        matched = re.search(self.pattern, value) is not None
        if matched == (self.without is not None):
            raise self._invalid(name, value, "has invalid format")


@dataclass(frozen=True)
class Inclusion(Validator):
    """Value must be one of ``in_``."""

    in_: Collection[Any] = ()
    allow_nil: bool = True
    allow_blank: bool = False
    constraint: str = "inclusion"

    def validate(self, name: str, value: Any) -> None:
        if value not in self.in_:
            raise self._invalid(name, value, "is not included in the list")


@dataclass(frozen=True)
class Exclusion(Validator):
    """Value must not be one of ``from_``."""

    from_: Collection[Any] = ()
    allow_nil: bool = True
    allow_blank: bool = False
    constraint: str = "exclusion"

    def validate(self, name: str, value: Any) -> None:
        if value in self.from_:
            raise self._invalid(name, value, "is reserved")


@dataclass(frozen=True)
class Check(Validator):
    """
    Kind-specific predicate.

    ``fn`` receives the value already narrowed to the kind's Python type
    (``int`` for integer, ``str`` for string ...) and returns a truthy value
    when it is acceptable.
    """

    type: Type = field(default_factory=lambda: get_type(AttributeKind.STRING))
    fn: Callable[[Any], Any] = bool
    message: str = "is invalid"
    allow_nil: bool = True
    allow_blank: bool = False
    constraint: str = "check"

    def validate(self, name: str, value: Any) -> None:
        if not self.type.accepts(value):
            raise self._invalid(name, value, f"has invalid value {value!r} for {self.type} type")
        if not self.fn(value):
            raise self._invalid(name, value, self.message)


def check(kind: AttributeKind | str, fn: Callable[[Any], Any], message: str = "is invalid") -> Check:
    """Build a ``Check`` validator for ``kind``."""
    return Check(type=get_type(kind), fn=fn, message=message)


@dataclass(frozen=True)
class Attribute:
    """
    Immutable column definition.

    Attributes:
        name: Column / attribute name
        type: Kind of the attribute (possibly ``Nullable``)
        primary_key: Whether this attribute is the schema's primary key
        validators: Declared validators, run after the kind check
    """

    name: str
    type: Type
    primary_key: bool = False
    validators: tuple[Validator, ...] = ()

    @property
    def kind(self) -> AttributeKind | str:
        return self.type.kind

    @property
    def nullable(self) -> bool:
        return self.type.nullable

    def validate(self, value: Any) -> None:
        """
        Run the null check, the kind check and the validator chain.

        Raises on the first violation.  A missing primary key passes, the
        connection generates it on insert.
        """
        if value is None and not self.nullable and not self.primary_key:
            raise ValidationError(
                f"'{self.name}' can't be null",
                field=self.name,
                value=value,
                constraint="null",
            )
        if value is not None and not self.type.accepts(value):
            raise ValidationError(
                f"Invalid value {value!r} for {self.type} type of attribute {self.name!r}",
                field=self.name,
                value=value,
                constraint="type",
            )
        for validator in self.validators:
            if validator.skips(value):
                continue
            validator.validate(self.name, value)

    def serialize(self, value: Any) -> Any:
        if value is None:
            return None
        return self.type.serialize(value)

    def deserialize(self, value: Any) -> Any:
        return self.type.deserialize(value)

    def with_validators(self, *validators: Validator) -> Attribute:
        return replace(self, validators=self.validators + validators)

    def as_primary_key(self) -> Attribute:
        return replace(self, primary_key=True)

    def __str__(self) -> str:
        return f"{self.name}: {self.type}"


def define_attribute(
    name: str,
    kind: AttributeKind | str | Type,
    *validators: Validator,
    nullable: bool = True,
    primary_key: bool = False,
) -> Attribute:
    """
    Define an attribute.

    Attributes are nullable unless declared otherwise, like SQL columns;
    declare ``Presence()`` to reject missing values at validation time.

    Usage:
        define_attribute("name", "string", Presence(), Length(maximum=80))
        define_attribute("year", AttributeKind.INTEGER, nullable=False)
    """
    if isinstance(kind, Type):
        attr_type = Nullable(kind) if nullable and not kind.nullable else kind
    else:
        attr_type = get_type(kind, nullable=nullable)
    return Attribute(name=name, type=attr_type, primary_key=primary_key, validators=validators)


__all__ = [
    "Attribute",
    "define_attribute",
    "Validator",
    "Presence",
    "Length",
    "Format",
    "Inclusion",
    "Exclusion",
    "Check",
    "check",
    "is_blank",
]
