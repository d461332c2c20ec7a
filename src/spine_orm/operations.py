"""
Structured operations handed to a connection.

Relations and entities never produce SQL text.  Every call that reaches a
connection is lowered to one of the frozen descriptors below; turning a
descriptor into dialect text (or evaluating it in memory) is the
connection's job.

Column references inside a ``QueryOperation`` are table-qualified
(``"books.author_id"``) so that joined tables never collide.  Rows handed
back to the visitor are keyed by the same qualified names.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

Row = Mapping[str, Any]
RowVisitor = Callable[[Row], bool]

# Quoted literals or (possibly dotted) identifiers not glued to a preceding word.
_TOKEN = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|(?<![\w.])[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*")


@dataclass(frozen=True)
class ColumnValue:
    """A column name, its attribute kind and the serialized value."""

    name: str
    kind: str
    value: Any


@dataclass(frozen=True)
class InsertOperation:
    table_name: str
    primary_key: str
    values: tuple[ColumnValue, ...] = ()

    @property
    def columns(self) -> list[str]:
        return [cv.name for cv in self.values]


@dataclass(frozen=True)
class UpdateOperation:
    table_name: str
    primary_key: str
    id: Any
    values: tuple[ColumnValue, ...] = ()

    @property
    def columns(self) -> list[str]:
        return [cv.name for cv in self.values]


@dataclass(frozen=True)
class DeleteOperation:
    table_name: str
    primary_key: str
    id: Any


@dataclass(frozen=True)
class Condition:
    """Equality filter on a qualified column; a ``None`` value means IS NULL."""

    column: str
    value: Any


@dataclass(frozen=True)
class Predicate:
    """Free-form condition text with positional ``?`` arguments."""

    text: str
    args: tuple[Any, ...] = ()

    def qualify(self, table_name: str, columns: Iterable[str]) -> Predicate:
        """Prefix bare references to ``columns`` with ``table_name``, skipping literals."""
        names = set(columns)

        def replace(match: re.Match[str]) -> str:
            token = match.group(0)
            return f"{table_name}.{token}" if token in names else token

        return Predicate(_TOKEN.sub(replace, self.text), self.args)


@dataclass(frozen=True)
class JoinClause:
    """Inner join of ``table_name`` on ``owner_column = target_column``."""

    table_name: str
    owner_column: str
    target_column: str


@dataclass(frozen=True)
class QueryOperation:
    """
    Dialect-neutral read request.

    Attributes:
        table_name: Base table
        columns: Qualified columns to return, base table first then joins
        conditions: Scope equality filters
        predicates: Free-form predicates, ANDed after the conditions
        group_by: Qualified grouping columns
        joins: Inner joins, applied in order
        limit: Maximum number of rows, None for all
    """

    table_name: str
    columns: tuple[str, ...]
    conditions: tuple[Condition, ...] = ()
    predicates: tuple[Predicate, ...] = ()
    group_by: tuple[str, ...] = ()
    joins: tuple[JoinClause, ...] = ()
    limit: int | None = None

    @property
    def args(self) -> list[Any]:
        """Positional arguments in condition-then-predicate order; IS NULL takes none."""
        args = [c.value for c in self.conditions if c.value is not None]
        for predicate in self.predicates:
            args.extend(predicate.args)
        return args


__all__ = [
    "Row",
    "RowVisitor",
    "ColumnValue",
    "InsertOperation",
    "UpdateOperation",
    "DeleteOperation",
    "Condition",
    "Predicate",
    "JoinClause",
    "QueryOperation",
]
