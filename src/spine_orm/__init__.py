"""Spine ORM -- schema-driven records over a pluggable connection.

Manifesto:
    Application code declares entities once (attributes, validators,
    associations) and then works with immutable, chainable relations and
    plain entity objects.  The library never writes dialect text itself:
    every read and write is lowered to a structured operation and handed to
    a connection, which may be SQLite, an in-memory store or anything that
    implements the ``Connection`` protocol.

    - **Immutable relations:** chaining never mutates the receiver
    - **Lenient builders, strict persistence:** unknown names in
      ``select``/``group``/``joins`` give an empty relation; invalid
      records raise
    - **Protocol-first:** connections are protocols, not base classes

Architecture::

    Layer 1 -- Types & Errors
        errors.py          Typed error hierarchy (OrmError + categories)
        types.py           Attribute kinds, serialize/deserialize, Nullable
        attributes.py      Attribute definitions + validators
        execution.py       ExecutionContext (cancellation, deadlines)

    Layer 2 -- Schemas
        inflector.py       Table-name / foreign-key inflection
        associations.py    belongs_to / has_many / has_one descriptors
        schema.py          SchemaBuilder + immutable Schema
        reflection.py      Entity name → Schema registry

    Layer 3 -- Execution boundary
        operations.py      Insert/Update/Delete/Query operation descriptors
        protocols.py       Connection + TransactionalConnection protocols
        dialect.py         SQL statement generation (SQLite)
        adapters/          MemoryConnection, SQLiteConnection
        connection.py      Named connection registry + transactions

    Layer 4 -- Records
        relation.py        Chainable query builder + terminal operations
        record.py          Entity lifecycle + association access

    Cross-cutting
        logging.py         structlog configuration
        settings.py        pydantic-settings (SPINE_ORM_*)

Examples:
    >>> from spine_orm import define, establish_connection, Presence
    >>> establish_connection()
    >>> Author = define("author", lambda s: s.string("name", Presence()).has_many("books"))
    >>> Book = define("book", lambda s: s.string("title").belongs_to("author"))
    >>> melville = Author.create({"name": "Melville"})
    >>> Book.create({"title": "Omoo", "author_id": melville.id})
    >>> [b["title"] for b in melville.association("books")]
    ['Omoo']

Tags:
    orm, active-record, query-builder, schema, spine-orm
"""

__version__ = "0.1.0"

from spine_orm.adapters import DatabaseConfig, MemoryConnection, SQLiteConnection
from spine_orm.associations import Association, AssociationKind
from spine_orm.attributes import (
    Attribute,
    Check,
    Exclusion,
    Format,
    Inclusion,
    Length,
    Presence,
    Validator,
    check,
    define_attribute,
)
from spine_orm.connection import (
    ConnectionHandler,
    connection_handler,
    establish_connection,
    register_adapter,
    remove_connection,
    retrieve_connection,
    transaction,
)
from spine_orm.errors import (
    AdapterNotFoundError,
    AssociationNotFoundError,
    AssociationTypeError,
    AttributeTypeError,
    ConfigError,
    ConnectionNotEstablishedError,
    DeadlineExceededError,
    DuplicateConnectionError,
    DuplicatePrimaryKeyError,
    DuplicateSchemaError,
    ErrorCategory,
    ErrorContext,
    ExecutionError,
    MissingPrimaryKeyError,
    NotFoundError,
    OperationCancelledError,
    OrmError,
    QueryError,
    RecordAlreadyPersistedError,
    RecordNotFoundError,
    RecordNotUniqueError,
    ReservedAttributeError,
    RowCountMismatchError,
    SchemaError,
    SchemaNotFoundError,
    UnknownAttributeError,
    UnknownPrimaryKeyError,
    ValidationError,
)
from spine_orm.execution import ExecutionContext, background, new_context
from spine_orm.record import Entity, EntityState
from spine_orm.reflection import ReflectionRegistry, lookup, reflection_registry
from spine_orm.relation import Relation, define, relation_for
from spine_orm.schema import Schema, SchemaBuilder, define_schema
from spine_orm.settings import OrmSettings, get_settings
from spine_orm.types import AttributeKind, Nullable, Type, get_type

__all__ = [
    "__version__",
    # Schemas
    "define",
    "define_schema",
    "relation_for",
    "lookup",
    "Schema",
    "SchemaBuilder",
    "ReflectionRegistry",
    "reflection_registry",
    "Association",
    "AssociationKind",
    # Attributes
    "Attribute",
    "define_attribute",
    "AttributeKind",
    "Type",
    "Nullable",
    "get_type",
    "Validator",
    "Presence",
    "Length",
    "Format",
    "Inclusion",
    "Exclusion",
    "Check",
    "check",
    # Records
    "Relation",
    "Entity",
    "EntityState",
    # Connections
    "DatabaseConfig",
    "ConnectionHandler",
    "connection_handler",
    "register_adapter",
    "establish_connection",
    "retrieve_connection",
    "remove_connection",
    "transaction",
    "MemoryConnection",
    "SQLiteConnection",
    # Execution
    "ExecutionContext",
    "new_context",
    "background",
    # Settings
    "OrmSettings",
    "get_settings",
    # Errors
    "ErrorCategory",
    "ErrorContext",
    "OrmError",
    "SchemaError",
    "UnknownPrimaryKeyError",
    "DuplicatePrimaryKeyError",
    "ReservedAttributeError",
    "UnknownAttributeError",
    "DuplicateSchemaError",
    "AssociationTypeError",
    "ValidationError",
    "AttributeTypeError",
    "NotFoundError",
    "RecordNotFoundError",
    "AssociationNotFoundError",
    "SchemaNotFoundError",
    "ConnectionNotEstablishedError",
    "DuplicateConnectionError",
    "AdapterNotFoundError",
    "ExecutionError",
    "QueryError",
    "RowCountMismatchError",
    "RecordNotUniqueError",
    "RecordAlreadyPersistedError",
    "MissingPrimaryKeyError",
    "OperationCancelledError",
    "DeadlineExceededError",
    "ConfigError",
]
