"""
Relation: the chainable, lazily executed query builder.

A ``Relation`` is an immutable value.  Every chaining method returns a new
relation and leaves the receiver untouched, so relations can be shared
between threads and reused as base queries::

    Book = define("book", lambda s: s.string("title").integer("year").belongs_to("author"))

    recent = Book.where("year > ?", 1850)          # free-form predicate
    omoo = recent.where("title", "Omoo")            # scope: equality filter
    omoo.create({"year": 1847})                     # scope doubles as defaults

    for book in Book.joins("author").to_list():
        print(book["title"], book.association("author")["name"])

Chaining never raises for an unknown name.  ``select``/``group``/``joins``
with a name the relation cannot resolve turn the relation into an *empty
relation*: every terminal operation on it returns no rows without
reaching the connection.

Terminal operations (``find``, ``each``, ``to_list``, ``first``,
``find_by``, ``insert_all``, ``create``) lower the relation to a single
``QueryOperation`` (see ``to_query``) and run it on the connection under an
``ExecutionContext``.  The context is checked before the call and before
each row is hydrated.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from spine_orm.adapters.types import DEFAULT_CONNECTION_NAME
from spine_orm.associations import Association
from spine_orm.connection import ConnectionHandler, connection_handler
from spine_orm.errors import AttributeTypeError, RecordNotFoundError
from spine_orm.execution import ExecutionContext
from spine_orm.logging import get_logger
from spine_orm.operations import Condition, JoinClause, Predicate, QueryOperation, Row
from spine_orm.protocols import Connection
from spine_orm.record import Entity
from spine_orm.reflection import ReflectionRegistry, reflection_registry
from spine_orm.schema import Schema, SchemaBuilder, define_schema

logger = get_logger(__name__)

@dataclass(frozen=True)
class Join:
    """A resolved association to hydrate alongside each row."""

    name: str
    association: Association
    schema: Schema
    owner_column: str
    target_column: str

    def clause(self) -> JoinClause:
        return JoinClause(self.schema.table_name, self.owner_column, self.target_column)


@dataclass(frozen=True, eq=False)
class Relation:
    """
    Immutable query over one schema.

    Attributes:
        schema: Schema the relation reads and builds
        scope: Attribute equality filters, also defaults for ``new``/``create``
        predicates: Free-form conditions applied at execution time
        group_values: Grouping attribute names
        join_values: Resolved joins
        select_values: Visible attribute names, None for all
        limit_value: Row limit, None for all
        empty: True once the relation degraded to the empty relation
        context: Execution context for terminal operations
        connection: Explicit connection, else looked up by ``connection_name``
        connection_name: Name in the connection registry
        connections: Connection registry
        reflection: Schema registry used to resolve joins and associations
    """

    schema: Schema
    scope: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    predicates: tuple[Predicate, ...] = ()
    group_values: tuple[str, ...] = ()
    join_values: tuple[Join, ...] = ()
    select_values: tuple[str, ...] | None = None
    limit_value: int | None = None
    empty: bool = False
    context: ExecutionContext | None = field(default=None, repr=False)
    connection: Connection | None = field(default=None, repr=False)
    connection_name: str = DEFAULT_CONNECTION_NAME
    connections: ConnectionHandler = field(default=connection_handler, repr=False)
    reflection: ReflectionRegistry = field(default=reflection_registry, repr=False)

    # -- Introspection -----------------------------------------------------

    @property
    def name(self) -> str:
        return self.schema.name

    @property
    def table_name(self) -> str:
        return self.schema.table_name

    @property
    def primary_key(self) -> str:
        return self.schema.primary_key

    @property
    def is_empty(self) -> bool:
        return self.empty

    @property
    def attribute_names(self) -> list[str]:
        """Attributes visible in the current scope."""
        if self.select_values is not None:
            return list(self.select_values)
        return self.schema.attribute_names

    @property
    def column_names(self) -> list[str]:
        return [self.schema.qualify(name) for name in self.attribute_names]

    def has_attribute(self, name: str) -> bool:
        if self.select_values is not None:
            return name in self.select_values
        return self.schema.has_attribute(name)

    def has_attributes(self, *names: str) -> bool:
        return all(self.has_attribute(name) for name in names)

    # -- Chaining ----------------------------------------------------------

    def _copy(self, **changes: Any) -> Relation:
        return dataclasses.replace(self, **changes)

    def none(self) -> Relation:
        """The empty relation: always zero rows."""
        return self._copy(empty=True)

    def all(self) -> Relation:
        return self

    def where(self, token: str, *args: Any) -> Relation:
        """
        Narrow the relation.

        ``where("title", "Omoo")`` on a known attribute adds an equality filter
        to the scope.  Anything else is kept as predicate text with ``?``
        arguments: ``where("year > ?", 1850)``.
        """
        if self.has_attribute(token):
            if len(args) != 1:
                raise TypeError(f"where({token!r}) takes exactly one value, got {len(args)}")
            return self._copy(scope=MappingProxyType({**self.scope, token: args[0]}))
        return self._copy(predicates=self.predicates + (Predicate(token, args),))

    def select(self, *names: str) -> Relation:
        if not self.has_attributes(*names):
            return self.none()
        if not names:
            return self
        return self._copy(select_values=tuple(dict.fromkeys(names)))

    def group(self, *names: str) -> Relation:
        if not self.has_attributes(*names):
            return self.none()
        return self._copy(group_values=self.group_values + names)

    def joins(self, *names: str) -> Relation:
        joins = list(self.join_values)
        for name in names:
            if any(join.name == name for join in joins):
                continue
            join = self._resolve_join(name)
            if join is None:
                return self.none()
            joins.append(join)
        return self._copy(join_values=tuple(joins))

    def _resolve_join(self, name: str) -> Join | None:
        association = self.schema.associations.get(name)
        if association is None:
            return None
        target = self.reflection.get(association.target)
        if target is None:
            return None
        columns = association.join_columns(self.schema, target)
        if columns is None:
            return None
        return Join(name, association, target, *columns)

    def limit(self, n: int) -> Relation:
        return self._copy(limit_value=n)

    def with_context(self, ctx: ExecutionContext | None) -> Relation:
        return self._copy(context=ctx)

    def connect(self, connection: Connection) -> Relation:
        """Bind an explicit connection instead of looking one up by name."""
        return self._copy(connection=connection)

    def using(self, connection_name: str) -> Relation:
        """Look the connection up under another registry name."""
        return self._copy(connection_name=connection_name)

    def retarget(self, schema: Schema) -> Relation:
        """A fresh relation over ``schema`` sharing this one's services and context."""
        return Relation(
            schema=schema,
            context=self.context,
            connection=self.connection,
            connection_name=self.connection_name,
            connections=self.connections,
            reflection=self.reflection,
        )

    # -- Lowering ----------------------------------------------------------

    def to_query(self) -> QueryOperation:
        """Lower the relation to a dialect-neutral ``QueryOperation``."""
        columns = list(self.column_names)
        for join in self.join_values:
            columns.extend(join.schema.column_names)

        conditions = tuple(
            Condition(self.schema.qualify(name), self.schema.attribute(name).serialize(value))
            for name, value in sorted(self.scope.items())
        )
        predicates = self.predicates
        if self.join_values:
            # Bare base-table columns would be ambiguous once other tables join in.
            predicates = tuple(
                p.qualify(self.table_name, self.schema.attribute_names) for p in predicates
            )
        return QueryOperation(
            table_name=self.table_name,
            columns=tuple(columns),
            conditions=conditions,
            predicates=predicates,
            group_by=tuple(self.schema.qualify(name) for name in self.group_values),
            joins=tuple(join.clause() for join in self.join_values),
            limit=self.limit_value,
        )

    def resolve_connection(self) -> Connection:
        if self.connection is not None:
            return self.connection
        return self.connections.retrieve_connection(self.connection_name)

    def resolve_context(self) -> ExecutionContext:
        if self.context is not None:
            return self.context
        return self.connections.default_context(self.connection_name)

    # -- Terminal operations -----------------------------------------------

    def each(self, visit: Callable[[Entity], Any]) -> None:
        """
        Stream matching records to ``visit``.

        Each row hydrates one entity plus one entity per join, attached as
        an association.  Streaming stops when ``visit`` returns False.
        """
        if self.empty:
            return

        ctx = self.resolve_context()
        ctx.check()
        op = self.to_query()
        conn = self.resolve_connection()
        names = self.attribute_names
        count = 0

        def on_row(row: Row) -> bool:
            nonlocal count
            ctx.check()
            entity = self._hydrate(self.schema, names, row)
            for join in self.join_values:
                target = self._hydrate(join.schema, join.schema.attribute_names, row)
                entity.assign_association(
                    join.name, [target] if join.association.collection else target
                )
            count += 1
            return visit(entity) is not False

        conn.exec_query(ctx, op, on_row)
        logger.debug(
            "query_executed",
            entity=self.name,
            table=self.table_name,
            joins=len(op.joins),
            rows=count,
            execution_id=ctx.execution_id,
        )

    def _hydrate(self, schema: Schema, names: Iterable[str], row: Row) -> Entity:
        values = {}
        for name in names:
            attribute = schema.attribute(name)
            try:
                values[name] = attribute.deserialize(row.get(schema.qualify(name)))
            except AttributeTypeError as e:
                raise e.with_context(entity=schema.name, attribute=name)
        relation = self if schema is self.schema else self.retarget(schema)
        return Entity.load(relation, values)

    def to_list(self) -> list[Entity]:
        records: list[Entity] = []
        self.each(records.append)
        return records

    def first(self) -> Entity | None:
        records = self.limit(1).to_list()
        return records[0] if records else None

    def find(self, id: Any) -> Entity:
        """
        Return the single record whose primary key is ``id``.

        Raises:
            RecordNotFoundError: Unless exactly one row matches
        """
        if not self.empty:
            scoped = self._copy(scope=MappingProxyType({**self.scope, self.primary_key: id}))
            records: list[Entity] = []
            scoped.limit(2).each(records.append)
            if len(records) == 1:
                return records[0]
        raise RecordNotFoundError(self.primary_key, id).with_context(
            entity=self.name, table=self.table_name
        )

    def find_by(self, token: str, *args: Any) -> Entity | None:
        return self.where(token, *args).first()

    def new(self, params: Mapping[str, Any] | None = None) -> Entity:
        """Build an unsaved entity from the scope merged with ``params``."""
        entity = Entity(self)
        entity.assign_attributes({**self.scope, **(params or {})})
        return entity

    def create(self, params: Mapping[str, Any] | None = None) -> Entity:
        """Build, validate and insert one entity."""
        return self.new(params).insert(self.context)

    def insert_all(self, *param_sets: Mapping[str, Any]) -> list[Entity]:
        """
        Build every entity first, then insert them one by one.

        Not atomic: a failure leaves earlier inserts in place.  Wrap the call
        in ``transaction()`` for all-or-nothing behaviour.
        """
        entities = [self.new(params) for params in param_sets]
        for entity in entities:
            entity.insert(self.context)
        return entities

    def __iter__(self):
        return iter(self.to_list())

    def __repr__(self) -> str:
        attrs = ", ".join(
            str(self.schema.attribute(name)) for name in self.attribute_names
        )
        return f"{self.name.capitalize()}({attrs})"


def define(
    name: str,
    configure: Callable[[SchemaBuilder], Any] | None = None,
    *,
    reflection: ReflectionRegistry | None = None,
    connections: ConnectionHandler | None = None,
    replace: bool = False,
) -> Relation:
    """
    Define and register a schema, returning a relation over it.

    Usage:
        Author = define("author", lambda s: s.string("name").has_many("books"))
    """
    reflection = reflection or reflection_registry
    schema = define_schema(name, configure, reflection=reflection, replace=replace)
    return Relation(
        schema=schema,
        connections=connections or connection_handler,
        reflection=reflection,
    )


def relation_for(
    schema: Schema | str,
    *,
    reflection: ReflectionRegistry | None = None,
    connections: ConnectionHandler | None = None,
) -> Relation:
    """Relation over an already registered schema (by object or entity name)."""
    reflection = reflection or reflection_registry
    if isinstance(schema, str):
        schema = reflection.lookup(schema)
    return Relation(
        schema=schema,
        connections=connections or connection_handler,
        reflection=reflection,
    )


__all__ = [
    "Join",
    "Relation",
    "define",
    "relation_for",
]
