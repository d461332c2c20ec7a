"""
Connection protocols.

A connection is anything that executes the four structured operations
from ``spine_orm.operations``.  The two shipped adapters
(``MemoryConnection``, ``SQLiteConnection``) satisfy both protocols, but
any object with the right shape can be registered through
``ConnectionHandler.register_adapter``.

::

    Connection:
    ┌──────────────────────────────────────────────────────────────────┐
    │ exec_insert(ctx, InsertOperation)          → generated id        │
    │ exec_update(ctx, UpdateOperation)          → None (1 row or err) │
    │ exec_delete(ctx, DeleteOperation)          → None                │
    │ exec_query(ctx, QueryOperation, visitor)   → None                │
    │ close()                                                          │
    └──────────────────────────────────────────────────────────────────┘

    TransactionalConnection (optional):
    ┌──────────────────────────────────────────────────────────────────┐
    │ begin_transaction(ctx)     → Connection bound to the transaction │
    │ commit_transaction(ctx)                                          │
    │ rollback_transaction(ctx)                                        │
    └──────────────────────────────────────────────────────────────────┘

``exec_query`` calls ``visitor(row)`` once per row and stops as soon as the
visitor returns False.  Every call receives the caller's
``ExecutionContext`` and must stop with ``OperationCancelledError`` once the
context is cancelled.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from spine_orm.execution import ExecutionContext
    from spine_orm.operations import (
        DeleteOperation,
        InsertOperation,
        QueryOperation,
        RowVisitor,
        UpdateOperation,
    )


@runtime_checkable
class Connection(Protocol):
    """Executes structured operations against one database."""

    def exec_insert(self, ctx: ExecutionContext, op: InsertOperation) -> Any:
        """Insert one row and return its primary key value."""
        ...

    def exec_update(self, ctx: ExecutionContext, op: UpdateOperation) -> None:
        """Update exactly one row; raise ``RowCountMismatchError`` otherwise."""
        ...

    def exec_delete(self, ctx: ExecutionContext, op: DeleteOperation) -> None:
        ...

    def exec_query(
        self, ctx: ExecutionContext, op: QueryOperation, visitor: RowVisitor
    ) -> None:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class TransactionalConnection(Connection, Protocol):
    """A connection that can scope operations in a transaction."""

    def begin_transaction(self, ctx: ExecutionContext) -> TransactionalConnection:
        ...

    def commit_transaction(self, ctx: ExecutionContext) -> None:
        ...

    def rollback_transaction(self, ctx: ExecutionContext) -> None:
        ...


__all__ = [
    "Connection",
    "TransactionalConnection",
]
