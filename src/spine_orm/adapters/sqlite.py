"""SQLite connection."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from spine_orm.adapters.types import DatabaseConfig
from spine_orm.dialect import Dialect, get_dialect
from spine_orm.errors import (
    ConfigError,
    ExecutionError,
    OperationCancelledError,
    QueryError,
    RecordNotUniqueError,
    RowCountMismatchError,
)
from spine_orm.execution import ExecutionContext
from spine_orm.logging import get_logger
from spine_orm.operations import (
    DeleteOperation,
    InsertOperation,
    QueryOperation,
    RowVisitor,
    UpdateOperation,
)

logger = get_logger(__name__)

# SQLite VM instructions between cancellation checks
_PROGRESS_STEPS = 1000

_UNIQUE_ERRORS = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


class SQLiteConnection:
    """
    Connection executing operations through the built-in sqlite3 module.

    Suitable for:
    - Development and testing
    - Single-process applications

    Tables are created out of band (``execute_script``); this class only
    runs DML.  Statements are generated by a ``Dialect`` and rows come back
    keyed by ``table.column``.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        readonly: bool = False,
        timeout: float = 5.0,
        dialect: Dialect | None = None,
    ):
        self.path = path
        self._readonly = readonly
        self._timeout = timeout
        self._dialect = dialect or get_dialect("sqlite")
        self._lock = threading.RLock()
        self._conn: sqlite3.Connection | None = None
        self._contexts: list[ExecutionContext] = []
        self._transaction = False
        self.connect()

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> SQLiteConnection:
        return cls(config.database, readonly=config.readonly, timeout=config.timeout)

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def in_transaction(self) -> bool:
        return self._transaction

    def connect(self) -> None:
        """Connect to the SQLite database."""
        uri = self.path.startswith("file:") or "?" in self.path

        try:
            # Autocommit; transactions are opened explicitly with BEGIN
            self._conn = sqlite3.connect(
                self.path,
                timeout=self._timeout,
                check_same_thread=False,
                isolation_level=None,
                uri=uri,
            )
            self._conn.row_factory = sqlite3.Row

            # Enable foreign keys
            self._conn.execute("PRAGMA foreign_keys = ON")

            if self._readonly:
                self._conn.execute("PRAGMA query_only = ON")

        except sqlite3.Error as e:
            raise ConfigError(f"Failed to connect to SQLite: {e}", cause=e) from e

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def execute_script(self, sql: str) -> None:
        """Run DDL or other multi-statement SQL outside the operation API."""
        with self._lock:
            self._connection().executescript(sql)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise ExecutionError(f"SQLite connection {self.path!r} is closed")
        return self._conn

    # -- Cancellation ------------------------------------------------------

    @contextmanager
    def _interruptible(self, ctx: ExecutionContext) -> Iterator[sqlite3.Connection]:
        """Hold the connection lock; abort the running statement once ``ctx`` is done."""
        with self._lock:
            ctx.check()
            conn = self._connection()
            if not self._contexts:
                conn.set_progress_handler(self._interrupted, _PROGRESS_STEPS)
            self._contexts.append(ctx)
            try:
                yield conn
            except sqlite3.OperationalError as e:
                if any(c.done for c in self._contexts):
                    logger.warning("sqlite_statement_interrupted", execution_id=ctx.execution_id)
                    ctx.check()
                    raise OperationCancelledError("Statement interrupted", cause=e) from e
                raise QueryError(f"SQLite error: {e}", cause=e) from e
            except sqlite3.IntegrityError as e:
                if getattr(e, "sqlite_errorname", "") in _UNIQUE_ERRORS or "UNIQUE" in str(e):
                    raise RecordNotUniqueError(str(e), cause=e) from e
                raise ExecutionError(f"SQLite constraint failed: {e}", cause=e) from e
            except sqlite3.Error as e:
                raise QueryError(f"SQLite error: {e}", cause=e) from e
            finally:
                self._contexts.pop()
                if not self._contexts and self._conn is not None:
                    self._conn.set_progress_handler(None, 0)

    def _interrupted(self) -> int:
        return 1 if any(c.done for c in self._contexts) else 0

    # -- Operations --------------------------------------------------------

    def exec_insert(self, ctx: ExecutionContext, op: InsertOperation) -> Any:
        sql, params = self._dialect.insert(op)
        with self._interruptible(ctx) as conn:
            cursor = conn.execute(sql, params)
            logger.debug("sql_executed", sql=sql)
            explicit = next((cv.value for cv in op.values if cv.name == op.primary_key), None)
            if explicit is not None:
                return explicit
            return cursor.lastrowid

    def exec_update(self, ctx: ExecutionContext, op: UpdateOperation) -> None:
        sql, params = self._dialect.update(op)
        with self._interruptible(ctx) as conn:
            cursor = conn.execute(sql, params)
            logger.debug("sql_executed", sql=sql, rows=cursor.rowcount)
            if cursor.rowcount != 1:
                raise RowCountMismatchError(1, cursor.rowcount).with_context(table=op.table_name)

    def exec_delete(self, ctx: ExecutionContext, op: DeleteOperation) -> None:
        sql, params = self._dialect.delete(op)
        with self._interruptible(ctx) as conn:
            cursor = conn.execute(sql, params)
            logger.debug("sql_executed", sql=sql, rows=cursor.rowcount)

    def exec_query(self, ctx: ExecutionContext, op: QueryOperation, visitor: RowVisitor) -> None:
        sql, params = self._dialect.select(op)
        with self._interruptible(ctx) as conn:
            cursor = conn.execute(sql, params)
            logger.debug("sql_executed", sql=sql)
            try:
                for row in cursor:
                    ctx.check()
                    if not visitor(dict(row)):
                        break
            finally:
                cursor.close()

    # -- Transactions ------------------------------------------------------

    def begin_transaction(self, ctx: ExecutionContext) -> SQLiteConnection:
        # The lock stays held until commit/rollback so other threads cannot
        # interleave statements into this transaction.
        self._lock.acquire()
        try:
            with self._interruptible(ctx) as conn:
                conn.execute("BEGIN")
        except BaseException:
            self._lock.release()
            raise
        self._transaction = True
        return self

    def commit_transaction(self, ctx: ExecutionContext) -> None:  # noqa: ARG002
        try:
            self._connection().execute("COMMIT")
        finally:
            self._transaction = False
            self._lock.release()

    def rollback_transaction(self, ctx: ExecutionContext) -> None:  # noqa: ARG002
        try:
            if self._conn is not None and self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
        finally:
            self._transaction = False
            self._lock.release()

    def __repr__(self) -> str:
        return f"SQLiteConnection({self.path!r})"


def connect(config: DatabaseConfig) -> SQLiteConnection:
    """Adapter factory registered as ``sqlite``."""
    return SQLiteConnection.from_config(config)


__all__ = [
    "SQLiteConnection",
    "connect",
]
