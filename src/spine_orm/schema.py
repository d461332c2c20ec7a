"""
Schema definition.

A ``Schema`` is the immutable description of an entity: its name, table,
attributes, primary key and associations.  Schemas are built with a
``SchemaBuilder`` inside a configure callback and published to the
reflection registry by ``define_schema``:

    >>> def configure(s):
    ...     s.string("title", Presence(), Length(maximum=120))
    ...     s.integer("year")
    ...     s.belongs_to("author")
    >>> book = define_schema("book", configure)
    >>> book.table_name
    'books'
    >>> book.attribute_names
    ['author_id', 'id', 'title', 'year']

Primary key rules:
    - an explicit ``primary_key(name)`` must name a declared attribute
    - at most one attribute may be marked primary
    - without a declared key an integer ``id`` is synthesized, and an
      ordinary attribute already named ``id`` is rejected

All of these are ``SchemaError`` subclasses raised from ``define_schema``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from spine_orm.associations import Association, AssociationKind
from spine_orm.attributes import Attribute, Presence, Validator, define_attribute
from spine_orm.errors import (
    AssociationNotFoundError,
    DuplicatePrimaryKeyError,
    ReservedAttributeError,
    SchemaError,
    UnknownAttributeError,
    UnknownPrimaryKeyError,
)
from spine_orm.inflector import foreign_key, pluralize, singularize
from spine_orm.logging import get_logger
from spine_orm.types import AttributeKind, Type

if TYPE_CHECKING:
    from spine_orm.reflection import ReflectionRegistry

logger = get_logger(__name__)

DEFAULT_PRIMARY_KEY = "id"


@dataclass(frozen=True, eq=False)
class Schema:
    """
    Immutable entity description.

    Attributes:
        name: Entity name (``"book"``)
        table_name: Table the entity is stored in (``"books"``)
        attributes: Attribute definitions by name (read-only)
        primary_key: Name of the primary-key attribute
        associations: Association descriptors by name (read-only)
    """

    name: str
    table_name: str
    attributes: Mapping[str, Attribute]
    primary_key: str
    associations: Mapping[str, Association]

    @property
    def attribute_names(self) -> list[str]:
        return sorted(self.attributes)

    @property
    def column_names(self) -> list[str]:
        """Table-qualified column names, in ``attribute_names`` order."""
        return [self.qualify(name) for name in self.attribute_names]

    @property
    def primary_key_attribute(self) -> Attribute:
        return self.attributes[self.primary_key]

    def qualify(self, name: str) -> str:
        return f"{self.table_name}.{name}"

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def has_attributes(self, *names: str) -> bool:
        return all(name in self.attributes for name in names)

    def attribute(self, name: str) -> Attribute:
        try:
            return self.attributes[name]
        except KeyError:
            raise UnknownAttributeError(self.name, name) from None

    def has_association(self, name: str) -> bool:
        return name in self.associations

    def association(self, name: str) -> Association:
        try:
            return self.associations[name]
        except KeyError:
            raise AssociationNotFoundError(self.name, name) from None

    def __repr__(self) -> str:
        attrs = ", ".join(str(self.attributes[name]) for name in self.attribute_names)
        return f"{self.name.capitalize()}({attrs})"


class SchemaBuilder:
    """
    Mutable collector handed to the configure callback of ``define_schema``.

    Every declaration method returns the builder, so calls may be chained.
    """

    def __init__(self, name: str):
        self.name = name
        self._table_name: str | None = None
        self._primary_key: str | None = None
        self._attributes: dict[str, Attribute] = {}
        self._validators: dict[str, list[Validator]] = {}
        self._associations: dict[str, Association] = {}

    # ── Table and key ────────────────────────────────────────────

    def table_name(self, name: str) -> SchemaBuilder:
        self._table_name = name
        return self

    def primary_key(self, name: str) -> SchemaBuilder:
        self._primary_key = name
        return self

    # ── Attributes ───────────────────────────────────────────────

    def attribute(
        self,
        name: str,
        kind: AttributeKind | str | Type,
        *validators: Validator,
        nullable: bool = True,
        primary_key: bool = False,
    ) -> SchemaBuilder:
        """Declare an attribute; redeclaring a name replaces the earlier definition."""
        self._attributes[name] = define_attribute(
            name, kind, *validators, nullable=nullable, primary_key=primary_key
        )
        return self

    def integer(self, name: str, *validators: Validator, **kwargs: Any) -> SchemaBuilder:
        return self.attribute(name, AttributeKind.INTEGER, *validators, **kwargs)

    def string(self, name: str, *validators: Validator, **kwargs: Any) -> SchemaBuilder:
        return self.attribute(name, AttributeKind.STRING, *validators, **kwargs)

    def float(self, name: str, *validators: Validator, **kwargs: Any) -> SchemaBuilder:
        return self.attribute(name, AttributeKind.FLOAT, *validators, **kwargs)

    def boolean(self, name: str, *validators: Validator, **kwargs: Any) -> SchemaBuilder:
        return self.attribute(name, AttributeKind.BOOLEAN, *validators, **kwargs)

    def datetime(self, name: str, *validators: Validator, **kwargs: Any) -> SchemaBuilder:
        return self.attribute(name, AttributeKind.DATETIME, *validators, **kwargs)

    def date(self, name: str, *validators: Validator, **kwargs: Any) -> SchemaBuilder:
        return self.attribute(name, AttributeKind.DATE, *validators, **kwargs)

    def time(self, name: str, *validators: Validator, **kwargs: Any) -> SchemaBuilder:
        return self.attribute(name, AttributeKind.TIME, *validators, **kwargs)

    def validates(self, name: str, *validators: Validator) -> SchemaBuilder:
        """Append validators to an attribute declared anywhere in the callback."""
        self._validators.setdefault(name, []).extend(validators)
        return self

    def validates_presence(self, *names: str) -> SchemaBuilder:
        for name in names:
            self.validates(name, Presence())
        return self

    # ── Associations ─────────────────────────────────────────────

    def belongs_to(self, target: str, foreign_key: str | None = None) -> SchemaBuilder:
        """
        Declare that each record references one ``target`` record.

        Adds a nullable integer foreign-key attribute unless one with that
        name was declared explicitly.
        """
        fk = foreign_key or _foreign_key(target)
        self._associations[target] = Association(
            kind=AssociationKind.BELONGS_TO,
            name=target,
            owner=self.name,
            target=singularize(target),
            foreign_key=fk,
        )
        if fk not in self._attributes:
            self.integer(fk)
        return self

    def has_many(self, name: str, foreign_key: str | None = None) -> SchemaBuilder:
        """Declare zero or more ``name`` records referencing this one."""
        return self._inverse(AssociationKind.HAS_MANY, name, foreign_key)

    def has_one(self, name: str, foreign_key: str | None = None) -> SchemaBuilder:
        """Declare at most one ``name`` record referencing this one."""
        return self._inverse(AssociationKind.HAS_ONE, name, foreign_key)

    def _inverse(
        self, kind: AssociationKind, name: str, fk: str | None
    ) -> SchemaBuilder:
        self._associations[name] = Association(
            kind=kind,
            name=name,
            owner=self.name,
            target=singularize(name),
            foreign_key=fk or _foreign_key(self.name),
        )
        return self

    # ── Build ────────────────────────────────────────────────────

    def build(self) -> Schema:
        """Check the primary-key rules and freeze the declarations."""
        attributes = dict(self._attributes)

        for name, validators in self._validators.items():
            if name not in attributes:
                raise UnknownAttributeError(self.name, name)
            attributes[name] = attributes[name].with_validators(*validators)

        marked = [name for name, attr in attributes.items() if attr.primary_key]

        if self._primary_key is not None:
            pk = self._primary_key
            if pk not in attributes:
                raise UnknownPrimaryKeyError(self.name, pk)
            others = [name for name in marked if name != pk]
            if others:
                raise DuplicatePrimaryKeyError(self.name, [pk, *others])
            attributes[pk] = attributes[pk].as_primary_key()
        elif len(marked) > 1:
            raise DuplicatePrimaryKeyError(self.name, marked)
        elif marked:
            pk = marked[0]
        else:
            pk = DEFAULT_PRIMARY_KEY
            if pk in attributes:
                raise ReservedAttributeError(self.name, pk)
            attributes[pk] = define_attribute(
                pk, AttributeKind.INTEGER, nullable=False, primary_key=True
            )

        return Schema(
            name=self.name,
            table_name=self._table_name or pluralize(self.name),
            attributes=MappingProxyType(attributes),
            primary_key=pk,
            associations=MappingProxyType(dict(self._associations)),
        )


def _foreign_key(name: str) -> str:
    return foreign_key(name, DEFAULT_PRIMARY_KEY)


def define_schema(
    name: str,
    configure: Callable[[SchemaBuilder], Any] | None = None,
    *,
    reflection: ReflectionRegistry | None = None,
    replace: bool = False,
) -> Schema:
    """
    Build a schema and register it under ``name``.

    Args:
        name: Entity name, also the registry key
        configure: Callback receiving a ``SchemaBuilder``
        reflection: Registry to publish into (default: process-wide registry)
        replace: Allow replacing an already registered schema

    Raises:
        SchemaError: On primary-key violations or invalid declarations
        DuplicateSchemaError: If ``name`` is registered and ``replace`` is False
    """
    if not name:
        raise SchemaError("Schema name must not be empty")

    builder = SchemaBuilder(name)
    if configure is not None:
        configure(builder)
    schema = builder.build()

    if reflection is None:
        from spine_orm.reflection import reflection_registry

        reflection = reflection_registry
    reflection.register(schema, replace=replace)

    logger.debug(
        "schema_defined",
        entity=schema.name,
        table=schema.table_name,
        primary_key=schema.primary_key,
        attributes=len(schema.attributes),
        associations=len(schema.associations),
    )
    return schema


__all__ = [
    "Schema",
    "SchemaBuilder",
    "define_schema",
    "DEFAULT_PRIMARY_KEY",
]
