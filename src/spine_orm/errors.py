"""
Structured error types for spine-orm.

Every failure surfaced by the data-access layer is an ``OrmError`` subclass
carrying a category, a retry hint, structured context and an optional
chained cause. Callers can branch on the subclass and still log the whole
thing with ``to_dict()``.

Manifesto:
    - **Typed Error Hierarchy:** One subclass per failure domain
    - **Fail loudly, once:** Schema errors surface at definition time
    - **Rich Context:** Errors carry entity/table/attribute metadata
    - **Error Chaining:** Driver exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                          OrmError                                │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  SchemaError           ValidationError     AttributeTypeError    │
        │  (SCHEMA)              (VALIDATION)        (TYPE)                │
        │     │                                                            │
        │  UnknownPrimaryKey     NotFoundError       ExecutionError        │
        │  DuplicatePrimaryKey   (NOT_FOUND)         (EXECUTION)           │
        │  ReservedAttribute        │                   │                  │
        │  UnknownAttribute      RecordNotFound      QueryError            │
        │  DuplicateSchema       AssociationNotFound RowCountMismatch      │
        │  AssociationType       SchemaNotFound      RecordNotUnique       │
        │                        ConnectionNotEst.   RecordAlreadyPersisted│
        │  ConfigError           DuplicateConnection MissingPrimaryKey     │
        │  (CONFIG)              AdapterNotFound     OperationCancelled    │
        │                                            DeadlineExceeded      │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = RecordNotFoundError("id", 42).with_context(entity="author")
    >>> error.context.entity
    'author'
    >>> error.to_dict()["category"]
    'NOT_FOUND'

Guardrails:
    ❌ DON'T: Raise bare ``Exception`` or ``ValueError`` from library code
    ✅ DO: Use the narrowest ``OrmError`` subclass

    ❌ DON'T: Swallow driver exceptions
    ✅ DO: Pass them as ``cause=`` when wrapping

Tags:
    error-handling, exception-hierarchy, error-context, spine-orm

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    SCHEMA = "SCHEMA"             # Schema definition invariants
    VALIDATION = "VALIDATION"     # Attribute rejected a value
    TYPE = "TYPE"                 # Coercion between stored and typed forms
    NOT_FOUND = "NOT_FOUND"       # Missing record, association, schema, connection
    EXECUTION = "EXECUTION"       # Connection-surfaced failures
    CONFIG = "CONFIG"             # Adapter registration, settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields relevant to the failure are set; ``to_dict()`` drops the
    rest so log lines stay short.

    Attributes:
        entity: Schema name of the entity involved
        table: Table name of the entity involved
        attribute: Attribute name, for per-attribute failures
        connection: Name of the connection the operation ran on
        execution_id: Identifier of the ExecutionContext
        metadata: Additional key-value pairs
    """

    entity: str | None = None
    table: str | None = None
    attribute: str | None = None
    connection: str | None = None
    execution_id: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["entity", "table", "attribute", "connection", "execution_id"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OrmError(Exception):
    """
    Base exception for all spine-orm errors.

    Subclasses set ``default_category`` and ``default_retryable`` so call
    sites only pass the message and whatever context they have.

    Examples:
        >>> error = OrmError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OrmError:
        """
        Add context to this error (fluent API).

        Usage:
            raise RecordNotFoundError("id", 1).with_context(entity="book")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# SCHEMA ERRORS (definition-time, never retryable)
# =============================================================================


class SchemaError(OrmError):
    """Schema definition or attribute-set error."""

    default_category = ErrorCategory.SCHEMA


class UnknownPrimaryKeyError(SchemaError):
    """The declared primary key is not among the declared attributes."""

    def __init__(self, entity: str, primary_key: str):
        self.primary_key = primary_key
        super().__init__(f"Primary key {primary_key!r} is unknown, not in attributes of {entity}")
        self.with_context(entity=entity, attribute=primary_key)


class DuplicatePrimaryKeyError(SchemaError):
    """More than one attribute is marked as primary key."""

    def __init__(self, entity: str, names: list[str]):
        self.names = names
        super().__init__(f"Multiple primary keys are not supported: {', '.join(names)} in {entity}")
        self.with_context(entity=entity)


class ReservedAttributeError(SchemaError):
    """An attribute collides with the synthesized primary key."""

    def __init__(self, entity: str, name: str):
        super().__init__(f"{name!r} is an attribute of {entity}, but not a primary key")
        self.with_context(entity=entity, attribute=name)


class UnknownAttributeError(SchemaError):
    """Assignment or lookup of an attribute the schema does not declare."""

    def __init__(self, entity: str, name: str):
        self.attribute = name
        super().__init__(f"Unknown attribute {name!r} for {entity}")
        self.with_context(entity=entity, attribute=name)


class DuplicateSchemaError(SchemaError):
    """A schema is already registered under this name."""

    def __init__(self, name: str):
        super().__init__(f"Schema {name!r} is already registered")
        self.with_context(entity=name)


class AssociationTypeError(SchemaError):
    """A record of the wrong entity was bound to an association."""

    pass


# =============================================================================
# VALIDATION / TYPE ERRORS (per-record, returned to the caller)
# =============================================================================


class ValidationError(OrmError):
    """
    An attribute rejected a value.

    Validation is fail-fast: this carries the first violation only.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


class AttributeTypeError(OrmError):
    """A value does not match the attribute kind during serialize/deserialize."""

    default_category = ErrorCategory.TYPE

    def __init__(self, kind: str, value: Any, message: str | None = None):
        self.kind = kind
        self.value = value
        super().__init__(message or f"Invalid value {value!r} for {kind} type")


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(OrmError):
    """Missing record, association, schema or connection."""

    default_category = ErrorCategory.NOT_FOUND


class RecordNotFoundError(NotFoundError):
    """No single row matched a primary key lookup."""

    def __init__(self, primary_key: str, id: Any):
        self.primary_key = primary_key
        self.id = id
        super().__init__(f"Record not found by {primary_key} = {id!r}")


class AssociationNotFoundError(NotFoundError):
    """The entity declares no association with this name."""

    def __init__(self, entity: str, name: str):
        self.association = name
        super().__init__(f"Unknown association {name!r} for {entity}")
        self.with_context(entity=entity)


class SchemaNotFoundError(NotFoundError):
    """No schema is registered under this name."""

    def __init__(self, name: str):
        super().__init__(f"Unknown schema {name!r}")
        self.with_context(entity=name)


class ConnectionNotEstablishedError(NotFoundError):
    """No connection is established under this name."""

    def __init__(self, name: str):
        super().__init__(f"Connection {name!r} has not been established")
        self.with_context(connection=name)


class DuplicateConnectionError(NotFoundError):
    """A connection is already established under this name."""

    def __init__(self, name: str):
        super().__init__(f"Connection {name!r} already established")
        self.with_context(connection=name)


class AdapterNotFoundError(NotFoundError):
    """No connection adapter is registered under this name."""

    def __init__(self, adapter: str):
        self.adapter = adapter
        super().__init__(f"Adapter {adapter!r} not found")


# =============================================================================
# EXECUTION ERRORS (connection-surfaced)
# =============================================================================


class ExecutionError(OrmError):
    """Failure surfaced while executing an operation on a connection."""

    default_category = ErrorCategory.EXECUTION


class QueryError(ExecutionError):
    """The connection could not execute a query operation."""

    pass


class RowCountMismatchError(ExecutionError):
    """A single-row operation affected a different number of rows."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected} row affected, got {actual} rows affected")


class RecordNotUniqueError(ExecutionError):
    """A uniqueness constraint rejected the write."""

    pass


class RecordAlreadyPersistedError(ExecutionError):
    """Insert was called on an entity that is already persisted."""

    pass


class MissingPrimaryKeyError(ExecutionError):
    """Update or delete was called on an entity without a primary key value."""

    pass


class OperationCancelledError(ExecutionError):
    """The caller cancelled the execution context."""

    pass


class DeadlineExceededError(OperationCancelledError):
    """The execution context deadline passed."""

    default_retryable = True


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(OrmError):
    """Invalid adapter registration or settings."""

    default_category = ErrorCategory.CONFIG


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "OrmError",
    # Schema
    "SchemaError",
    "UnknownPrimaryKeyError",
    "DuplicatePrimaryKeyError",
    "ReservedAttributeError",
    "UnknownAttributeError",
    "DuplicateSchemaError",
    "AssociationTypeError",
    # Per-record
    "ValidationError",
    "AttributeTypeError",
    # Not found
    "NotFoundError",
    "RecordNotFoundError",
    "AssociationNotFoundError",
    "SchemaNotFoundError",
    "ConnectionNotEstablishedError",
    "DuplicateConnectionError",
    "AdapterNotFoundError",
    # Execution
    "ExecutionError",
    "QueryError",
    "RowCountMismatchError",
    "RecordNotUniqueError",
    "RecordAlreadyPersistedError",
    "MissingPrimaryKeyError",
    "OperationCancelledError",
    "DeadlineExceededError",
    # Config
    "ConfigError",
]
