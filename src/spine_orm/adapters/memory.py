"""In-process connection backed by dictionaries.

``MemoryConnection`` evaluates structured operations directly, with no SQL
involved.  It is the default adapter and what the test-suite runs against.

Supported query features:
    - scope equality conditions (``None`` matches missing/NULL values)
    - free-form predicates of the form ``<column> <op> ?`` where op is one
      of ``= == != <> < <= > >=``; an unqualified column refers to the base
      table
    - inner joins, in declaration order
    - group-by, keeping the first row of each group
    - limit

Anything else in a predicate raises ``QueryError``.  Tables come into
existence on first insert; querying an unknown table yields no rows.
"""

from __future__ import annotations

import operator
import re
import threading
from collections.abc import Callable
from typing import Any

from spine_orm.adapters.types import DatabaseConfig
from spine_orm.errors import QueryError, RecordNotUniqueError, RowCountMismatchError
from spine_orm.execution import ExecutionContext
from spine_orm.operations import (
    Condition,
    DeleteOperation,
    InsertOperation,
    Predicate,
    QueryOperation,
    Row,
    RowVisitor,
    UpdateOperation,
)

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
    "<>": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_PREDICATE = re.compile(r"^\s*([A-Za-z_][\w.]*)\s*(==|!=|<>|<=|>=|=|<|>)\s*\?\s*$")


class MemoryDatabase:
    """Tables and id sequences; guarded by a re-entrant lock."""

    def __init__(self):
        self.lock = threading.RLock()
        self.tables: dict[str, dict[Any, dict[str, Any]]] = {}
        self.sequences: dict[str, int] = {}

    def table(self, name: str) -> dict[Any, dict[str, Any]]:
        return self.tables.setdefault(name, {})

    def next_id(self, table_name: str) -> int:
        self.sequences[table_name] = self.sequences.get(table_name, 0) + 1
        return self.sequences[table_name]

    def observe_id(self, table_name: str, value: Any) -> None:
        if isinstance(value, int) and value > self.sequences.get(table_name, 0):
            self.sequences[table_name] = value

    def snapshot(self) -> tuple[dict, dict]:
        tables = {name: {pk: dict(row) for pk, row in rows.items()} for name, rows in self.tables.items()}
        return tables, dict(self.sequences)

    def restore(self, snapshot: tuple[dict, dict]) -> None:
        self.tables, self.sequences = snapshot


class MemoryConnection:
    """
    Connection evaluating operations against a ``MemoryDatabase``.

    A transaction holds the database lock from begin to commit/rollback, so
    other threads wait instead of seeing uncommitted rows.
    """

    def __init__(self, database: MemoryDatabase | None = None, *, name: str = ":memory:"):
        self.name = name
        self._db = database or MemoryDatabase()
        self._snapshot: tuple[dict, dict] | None = None

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> MemoryConnection:
        return cls(name=config.database)

    @property
    def in_transaction(self) -> bool:
        return self._snapshot is not None

    # -- Writes ------------------------------------------------------------

    def exec_insert(self, ctx: ExecutionContext, op: InsertOperation) -> Any:
        ctx.check()
        with self._db.lock:
            table = self._db.table(op.table_name)
            row = {cv.name: cv.value for cv in op.values}
            pk = row.get(op.primary_key)
            if pk is None:
                pk = self._db.next_id(op.table_name)
                row[op.primary_key] = pk
            elif pk in table:
                raise RecordNotUniqueError(
                    f"UNIQUE constraint failed: {op.table_name}.{op.primary_key}"
                ).with_context(table=op.table_name)
            else:
                self._db.observe_id(op.table_name, pk)
            table[pk] = row
        return pk

    def exec_update(self, ctx: ExecutionContext, op: UpdateOperation) -> None:
        ctx.check()
        with self._db.lock:
            row = self._db.table(op.table_name).get(op.id)
            if row is None:
                raise RowCountMismatchError(1, 0).with_context(table=op.table_name)
            row.update({cv.name: cv.value for cv in op.values if cv.name != op.primary_key})

    def exec_delete(self, ctx: ExecutionContext, op: DeleteOperation) -> None:
        ctx.check()
        with self._db.lock:
            self._db.table(op.table_name).pop(op.id, None)

    # -- Reads -------------------------------------------------------------

    def exec_query(self, ctx: ExecutionContext, op: QueryOperation, visitor: RowVisitor) -> None:
        ctx.check()
        with self._db.lock:
            rows = self._select(op)
        for row in rows:
            ctx.check()
            if not visitor(row):
                break

    def _select(self, op: QueryOperation) -> list[Row]:
        filters = [self._condition(c) for c in op.conditions]
        filters.extend(self._predicate(op.table_name, p) for p in op.predicates)

        rows = [_qualify(op.table_name, row) for row in self._db.table(op.table_name).values()]
        for join in op.joins:
            targets = [_qualify(join.table_name, row) for row in self._db.table(join.table_name).values()]
            joined = []
            for row in rows:
                key = row.get(join.owner_column)
                if key is None:
                    continue
                joined.extend({**row, **t} for t in targets if t.get(join.target_column) == key)
            rows = joined

        rows = [row for row in rows if all(f(row) for f in filters)]

        if op.group_by:
            seen: set[tuple] = set()
            grouped = []
            for row in rows:
                key = tuple(row.get(c) for c in op.group_by)
                if key not in seen:
                    seen.add(key)
                    grouped.append(row)
            rows = grouped

        if op.limit is not None:
            rows = rows[: op.limit]
        return [{c: row.get(c) for c in op.columns} for row in rows]

    @staticmethod
    def _condition(condition: Condition) -> Callable[[Row], bool]:
        if condition.value is None:
            return lambda row: row.get(condition.column) is None
        return lambda row: row.get(condition.column) == condition.value

    @staticmethod
    def _predicate(table_name: str, predicate: Predicate) -> Callable[[Row], bool]:
        match = _PREDICATE.match(predicate.text)
        if match is None:
            raise QueryError(f"Unsupported predicate for memory adapter: {predicate.text!r}")
        if len(predicate.args) != 1:
            raise QueryError(
                f"Predicate {predicate.text!r} expects 1 argument, got {len(predicate.args)}"
            )
        column, symbol = match.groups()
        if "." not in column:
            column = f"{table_name}.{column}"
        compare = _OPERATORS[symbol]
        arg = predicate.args[0]

        def evaluate(row: Row) -> bool:
            value = row.get(column)
            if value is None or arg is None:
                return False
            try:
                return bool(compare(value, arg))
            except TypeError as e:
                raise QueryError(f"Cannot compare {column} with {arg!r}", cause=e) from e

        return evaluate

    # -- Transactions ------------------------------------------------------

    def begin_transaction(self, ctx: ExecutionContext) -> MemoryConnection:
        ctx.check()
        self._db.lock.acquire()
        self._snapshot = self._db.snapshot()
        return self

    def commit_transaction(self, ctx: ExecutionContext) -> None:  # noqa: ARG002
        self._snapshot = None
        self._db.lock.release()

    def rollback_transaction(self, ctx: ExecutionContext) -> None:  # noqa: ARG002
        if self._snapshot is not None:
            self._db.restore(self._snapshot)
        self._snapshot = None
        self._db.lock.release()

    def close(self) -> None:
        with self._db.lock:
            self._db.tables.clear()
            self._db.sequences.clear()

    def __repr__(self) -> str:
        return f"MemoryConnection({self.name!r})"


def _qualify(table_name: str, row: dict[str, Any]) -> dict[str, Any]:
    return {f"{table_name}.{column}": value for column, value in row.items()}


def connect(config: DatabaseConfig) -> MemoryConnection:
    """Adapter factory registered as ``memory``."""
    return MemoryConnection.from_config(config)


__all__ = [
    "MemoryDatabase",
    "MemoryConnection",
    "connect",
]
