"""
Execution context for terminal operations and persistence calls.

Every call that reaches a connection (``Relation.find``, ``Relation.each``,
``Entity.insert`` ...) runs under an ``ExecutionContext``. The context gives
the call an identity for log correlation and carries cooperative
cancellation: a caller on another thread may ``cancel()`` it, or a
deadline may pass, and the pending connection call stops with
``OperationCancelledError`` / ``DeadlineExceededError`` instead of
returning a normal result.

Architecture:
    ::

        ┌────────────────────────────────────────────────────────────┐
        │                    ExecutionContext                         │
        ├────────────────────────────────────────────────────────────┤
        │  execution_id: str          ← UUID, auto-generated          │
        │  parent_execution_id: str   ← set by child()                │
        │  started_at: datetime       ← UTC                           │
        │  deadline: float | None     ← time.monotonic() based        │
        │  _cancelled: Event          ← shared with children          │
        ├────────────────────────────────────────────────────────────┤
        │  cancel()          → cancel this context and its children   │
        │  check()           → raise if cancelled or past deadline    │
        │  with_timeout(s)   → child with a tighter deadline          │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> ctx = new_context(timeout=5.0)
    >>> books = Book.with_context(ctx).to_list()

    Cancelling from another thread:

    >>> ctx = new_context()
    >>> threading.Timer(0.1, ctx.cancel).start()
    >>> Book.with_context(ctx).each(slow_visitor)  # raises OperationCancelledError

Guardrails:
    ❌ DON'T: Reuse a cancelled context for new work
    ✅ DO: Create a fresh context per logical request

Tags:
    execution-context, cancellation, deadline, spine-orm
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from spine_orm.errors import DeadlineExceededError, OperationCancelledError


@dataclass(frozen=True)
class ExecutionContext:
    """
    Cancellable context passed into every connection call.

    Children share the parent's cancellation event, so cancelling a parent
    cancels all work derived from it. A child's deadline is never later
    than its parent's.

    Attributes:
        execution_id: Unique ID for this execution (UUID string)
        parent_execution_id: ID of the context this one was derived from
        started_at: When this context was created (UTC)
        deadline: ``time.monotonic()`` value after which the context expires
    """

    execution_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    parent_execution_id: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    deadline: float | None = None
    _cancelled: threading.Event = field(
        default_factory=threading.Event, repr=False, compare=False
    )

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        """True once the context is cancelled or past its deadline."""
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the context is cancelled or past its deadline."""
        if self.cancelled:
            raise OperationCancelledError("Execution cancelled").with_context(
                execution_id=self.execution_id
            )
        if self.expired:
            raise DeadlineExceededError("Execution deadline exceeded").with_context(
                execution_id=self.execution_id
            )

    def child(self) -> ExecutionContext:
        """Derive a context sharing cancellation and deadline."""
        return ExecutionContext(
            parent_execution_id=self.execution_id,
            deadline=self.deadline,
            _cancelled=self._cancelled,
        )

    def with_timeout(self, seconds: float) -> ExecutionContext:
        """Derive a child that expires after ``seconds`` (or the parent's deadline)."""
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return ExecutionContext(
            parent_execution_id=self.execution_id,
            deadline=deadline,
            _cancelled=self._cancelled,
        )


def new_context(timeout: float | None = None) -> ExecutionContext:
    """Create a new root execution context, optionally with a timeout in seconds."""
    ctx = ExecutionContext()
    if timeout is not None:
        return ctx.with_timeout(timeout)
    return ctx


def background() -> ExecutionContext:
    """A fresh context that is never cancelled and has no deadline."""
    return ExecutionContext()


__all__ = [
    "ExecutionContext",
    "new_context",
    "background",
]
