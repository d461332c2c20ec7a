"""
Entity: a record bound to a schema.

Lifecycle::

    Relation.new / Relation.create         row from Relation.each
              │                                     │
              ▼                                     ▼
            NEW ──── insert() ────────────────► PERSISTED ◄── update()
                                                    │
                                                delete()
                                                    ▼
                                                 DELETED

``insert`` validates, serializes the assigned values and merges the
primary key generated by the connection back into the entity.  ``update``
and ``delete`` need a primary key value.  Validation is fail-fast: the
first violation is raised as ``ValidationError``.

Associations are resolved lazily through the reflection registry the first
time ``association(name)`` is called and cached on the entity afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from spine_orm.associations import Association, AssociationKind
from spine_orm.attributes import is_blank
from spine_orm.errors import (
    AssociationTypeError,
    MissingPrimaryKeyError,
    RecordAlreadyPersistedError,
    UnknownAttributeError,
    ValidationError,
)
from spine_orm.logging import get_logger
from spine_orm.operations import ColumnValue, DeleteOperation, InsertOperation, UpdateOperation

if TYPE_CHECKING:
    from spine_orm.execution import ExecutionContext
    from spine_orm.relation import Relation
    from spine_orm.schema import Schema

logger = get_logger(__name__)


class EntityState(str, Enum):
    NEW = "new"
    PERSISTED = "persisted"
    DELETED = "deleted"


class Entity:
    """
    Attribute values of one record plus the relation it came from.

    The relation supplies the connection, the execution context and the
    reflection registry used for associations.
    """

    def __init__(
        self,
        relation: Relation,
        values: Mapping[str, Any] | None = None,
        *,
        state: EntityState = EntityState.NEW,
    ):
        self._relation = relation
        self._schema: Schema = relation.schema
        self._values: dict[str, Any] = dict(values or {})
        self._state = state
        self._associations: dict[str, Any] = {}

    @classmethod
    def load(cls, relation: Relation, values: Mapping[str, Any]) -> Entity:
        """Entity for a row read from the connection."""
        return cls(relation, values, state=EntityState.PERSISTED)

    # -- Identity ----------------------------------------------------------

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def schema_name(self) -> str:
        return self._schema.name

    @property
    def table_name(self) -> str:
        return self._schema.table_name

    @property
    def primary_key(self) -> str:
        return self._schema.primary_key

    @property
    def id(self) -> Any:
        return self._values.get(self._schema.primary_key)

    @property
    def state(self) -> EntityState:
        return self._state

    @property
    def persisted(self) -> bool:
        return self._state is EntityState.PERSISTED

    @property
    def new_record(self) -> bool:
        return self._state is EntityState.NEW

    @property
    def deleted(self) -> bool:
        return self._state is EntityState.DELETED

    @property
    def context(self) -> ExecutionContext | None:
        return self._relation.context

    def with_context(self, ctx: ExecutionContext | None) -> Entity:
        """Copy of this entity whose calls run under ``ctx``."""
        copy = Entity(self._relation.with_context(ctx), self._values, state=self._state)
        copy._associations = dict(self._associations)
        return copy

    # -- Attributes --------------------------------------------------------

    @property
    def attribute_names(self) -> list[str]:
        return self._schema.attribute_names

    def attribute(self, name: str) -> Any:
        """Current value of ``name``; None when unset or not loaded."""
        if not self._schema.has_attribute(name):
            raise UnknownAttributeError(self.schema_name, name)
        return self._values.get(name)

    def attribute_present(self, name: str) -> bool:
        return not is_blank(self.attribute(name))

    def assign_attribute(self, name: str, value: Any) -> None:
        if not self._schema.has_attribute(name):
            raise UnknownAttributeError(self.schema_name, name)
        self._values[name] = value
        self._forget_belongs_to(name)

    def assign_attributes(self, params: Mapping[str, Any]) -> None:
        """Assign every pair or none: unknown names are rejected up front."""
        for name in params:
            if not self._schema.has_attribute(name):
                raise UnknownAttributeError(self.schema_name, name)
        for name, value in params.items():
            self.assign_attribute(name, value)

    def _forget_belongs_to(self, foreign_key: str) -> None:
        for association in self._schema.associations.values():
            if association.kind is AssociationKind.BELONGS_TO and association.foreign_key == foreign_key:
                self._associations.pop(association.name, None)

    def to_dict(self) -> dict[str, Any]:
        """Loaded attribute values, in attribute-name order."""
        return {name: self._values[name] for name in self.attribute_names if name in self._values}

    def __getitem__(self, name: str) -> Any:
        return self.attribute(name)

    # -- Validation --------------------------------------------------------

    def validate(self) -> None:
        """Raise ``ValidationError`` for the first attribute that rejects its value."""
        for name in self.attribute_names:
            try:
                self._schema.attribute(name).validate(self._values.get(name))
            except ValidationError as e:
                raise e.with_context(entity=self.schema_name)

    def is_valid(self) -> bool:
        try:
            self.validate()
        except ValidationError:
            return False
        return True

    # -- Persistence -------------------------------------------------------

    def _resolve_context(self, ctx: ExecutionContext | None) -> ExecutionContext:
        return ctx or self._relation.resolve_context()

    def _column_values(self, *, include_primary_key: bool) -> tuple[ColumnValue, ...]:
        values = []
        for name in sorted(self._values):
            value = self._values[name]
            if name == self.primary_key and (value is None or not include_primary_key):
                continue
            attribute = self._schema.attribute(name)
            kind = getattr(attribute.kind, "value", attribute.kind)
            values.append(ColumnValue(name, kind, attribute.serialize(value)))
        return tuple(values)

    def _require_primary_key(self, operation: str) -> Any:
        if self.id is None:
            raise MissingPrimaryKeyError(
                f"Cannot {operation} {self.schema_name} without a primary key value"
            ).with_context(entity=self.schema_name, table=self.table_name)
        return self._schema.primary_key_attribute.serialize(self.id)

    def insert(self, ctx: ExecutionContext | None = None) -> Entity:
        """
        Validate and insert this entity.

        Raises:
            RecordAlreadyPersistedError: If the entity is already persisted
            ValidationError: On the first invalid attribute
        """
        if self._state is EntityState.PERSISTED:
            raise RecordAlreadyPersistedError(
                f"{self.schema_name} {self.id!r} is already persisted"
            ).with_context(entity=self.schema_name, table=self.table_name)

        self.validate()
        ctx = self._resolve_context(ctx)
        ctx.check()

        op = InsertOperation(
            table_name=self.table_name,
            primary_key=self.primary_key,
            values=self._column_values(include_primary_key=True),
        )
        generated = self._relation.resolve_connection().exec_insert(ctx, op)
        if self.id is None and generated is not None:
            self._values[self.primary_key] = self._schema.primary_key_attribute.deserialize(generated)

        self._state = EntityState.PERSISTED
        logger.debug(
            "entity_inserted",
            entity=self.schema_name,
            id=self.id,
            execution_id=ctx.execution_id,
        )
        return self

    def update(self, ctx: ExecutionContext | None = None) -> Entity:
        """Validate and write the current values over the stored row."""
        id = self._require_primary_key("update")
        self.validate()
        ctx = self._resolve_context(ctx)
        ctx.check()

        op = UpdateOperation(
            table_name=self.table_name,
            primary_key=self.primary_key,
            id=id,
            values=self._column_values(include_primary_key=False),
        )
        self._relation.resolve_connection().exec_update(ctx, op)

        self._state = EntityState.PERSISTED
        logger.debug("entity_updated", entity=self.schema_name, id=self.id, execution_id=ctx.execution_id)
        return self

    def delete(self, ctx: ExecutionContext | None = None) -> None:
        id = self._require_primary_key("delete")
        ctx = self._resolve_context(ctx)
        ctx.check()

        op = DeleteOperation(table_name=self.table_name, primary_key=self.primary_key, id=id)
        self._relation.resolve_connection().exec_delete(ctx, op)

        self._state = EntityState.DELETED
        logger.debug("entity_deleted", entity=self.schema_name, id=self.id, execution_id=ctx.execution_id)

    # -- Associations ------------------------------------------------------

    def _check_target(self, association: Association, record: Any) -> None:
        if not isinstance(record, Entity) or record.schema_name != association.target:
            got = record.schema_name if isinstance(record, Entity) else type(record).__name__
            raise AssociationTypeError(
                f"Association {association.name!r} of {self.schema_name} expects {association.target}, got {got}"
            ).with_context(entity=self.schema_name)

    def assign_association(self, name: str, record: Entity | Iterable[Entity] | None) -> None:
        """
        Bind ``record`` (a list for has-many) under association ``name``.

        Only the in-memory binding changes; foreign keys are not assigned.
        """
        association = self._schema.association(name)
        if association.collection:
            if record is None:
                records: list[Entity] = []
            elif isinstance(record, Entity):
                records = [record]
            else:
                records = list(record)
            for item in records:
                self._check_target(association, item)
            self._associations[name] = records
        else:
            if record is not None:
                self._check_target(association, record)
            self._associations[name] = record

    def association(self, name: str) -> Any:
        """
        Resolve association ``name``, loading and caching it on first use.

        Returns an entity or None for belongs-to/has-one and a list for has-many.

        Raises:
            AssociationNotFoundError: If the schema declares no such association
            SchemaNotFoundError: If the target entity was never defined
        """
        association = self._schema.association(name)
        if name in self._associations:
            return self._associations[name]

        target = self._relation.reflection.lookup(association.target)
        value = association.load(self, self._relation.retarget(target))
        self._associations[name] = value
        return value

    def collection(self, name: str) -> Relation:
        """Relation over the records of association ``name``, for further chaining."""
        association = self._schema.association(name)
        target = self._relation.reflection.lookup(association.target)
        return association.scope(self, self._relation.retarget(target))

    def __repr__(self) -> str:
        attrs = ", ".join(f"{name}: {value!r}" for name, value in self.to_dict().items())
        return f"#<{self.schema_name.capitalize()} {attrs}>"


__all__ = [
    "Entity",
    "EntityState",
]
