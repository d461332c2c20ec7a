"""SQL dialects: lowering structured operations to statement text.

The relation builder produces dialect-neutral operations
(``spine_orm.operations``).  SQL-backed connections turn them into
statement text plus positional parameters through a ``Dialect``, so the
only place that knows about placeholder styles and identifier quoting is
this module.

Architecture::

    QueryOperation / InsertOperation / UpdateOperation / DeleteOperation
                              │
                              ▼
                 dialect.select(op) → (sql, params)
                              │
                              ▼
                    ┌──────────────────┐
                    │ SQLiteDialect    │
                    │ ?, ?, ?          │
                    │ lastrowid        │
                    └──────────────────┘

Free-form predicate text is written with ``?`` placeholders.  A dialect
registered with another placeholder style (``register_dialect``) gets them
rewritten outside of quoted literals.

Examples:
    >>> d = get_dialect("sqlite")
    >>> d.quote_identifier("books.author_id")
    '"books"."author_id"'
    >>> d.placeholders(3)
    '?, ?, ?'
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from spine_orm.errors import ConfigError
from spine_orm.operations import (
    ColumnValue,
    DeleteOperation,
    InsertOperation,
    QueryOperation,
    UpdateOperation,
)

Statement = tuple[str, list[Any]]


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract."""

    @property
    def name(self) -> str:
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        ...

    def quote_identifier(self, identifier: str) -> str:
        """Quote a (possibly ``table.column`` qualified) identifier."""
        ...

    def select(self, op: QueryOperation) -> Statement:
        ...

    def insert(self, op: InsertOperation) -> Statement:
        ...

    def update(self, op: UpdateOperation) -> Statement:
        ...

    def delete(self, op: DeleteOperation) -> Statement:
        ...


class AnsiDialect:
    """Statement generation shared by the concrete dialects.

    Subclasses override the placeholder methods and, where the backend
    needs it, ``insert``.
    """

    @property
    def name(self) -> str:
        return "ansi"

    # -- Placeholders ------------------------------------------------------

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join(self.placeholder(i) for i in range(count))

    def rewrite_predicate(self, text: str) -> str:
        """Replace ``?`` placeholders in free-form text, skipping quoted literals."""
        if self.placeholder(0) == "?":
            return text
        out: list[str] = []
        quote: str | None = None
        index = 0
        for ch in text:
            if quote:
                if ch == quote:
                    quote = None
                out.append(ch)
            elif ch in ("'", '"'):
                quote = ch
                out.append(ch)
            elif ch == "?":
                out.append(self.placeholder(index))
                index += 1
            else:
                out.append(ch)
        return "".join(out)

    # -- Identifiers -------------------------------------------------------

    def quote_identifier(self, identifier: str) -> str:
        return ".".join('"' + part.replace('"', '""') + '"' for part in identifier.split(".", 1))

    def _alias(self, column: str) -> str:
        return '"' + column.replace('"', '""') + '"'

    # -- DML ---------------------------------------------------------------

    def select(self, op: QueryOperation) -> Statement:
        q = self.quote_identifier
        columns = ", ".join(f"{q(c)} AS {self._alias(c)}" for c in op.columns)
        sql = f"SELECT {columns} FROM {q(op.table_name)}"

        for join in op.joins:
            sql += (
                f" INNER JOIN {q(join.table_name)}"
                f" ON {q(join.owner_column)} = {q(join.target_column)}"
            )

        where: list[str] = []
        params: list[Any] = []
        for condition in op.conditions:
            if condition.value is None:
                where.append(f"{q(condition.column)} IS NULL")
            else:
                where.append(f"{q(condition.column)} = {self.placeholder(len(params))}")
                params.append(condition.value)
        for predicate in op.predicates:
            where.append(f"({self.rewrite_predicate(predicate.text)})")
            params.extend(predicate.args)
        if where:
            sql += " WHERE " + " AND ".join(where)

        if op.group_by:
            sql += " GROUP BY " + ", ".join(q(c) for c in op.group_by)
        if op.limit is not None:
            sql += f" LIMIT {int(op.limit)}"
        return sql, params

    def insert(self, op: InsertOperation) -> Statement:
        table = self.quote_identifier(op.table_name)
        if not op.values:
            return f"INSERT INTO {table} DEFAULT VALUES", []
        cols = ", ".join(self.quote_identifier(cv.name) for cv in op.values)
        ph = self.placeholders(len(op.values))
        return f"INSERT INTO {table} ({cols}) VALUES ({ph})", [cv.value for cv in op.values]

    def update(self, op: UpdateOperation) -> Statement:
        values = [cv for cv in op.values if cv.name != op.primary_key]
        if not values:
            # Nothing to change, but the row must still exist.
            values = [ColumnValue(op.primary_key, "integer", op.id)]
        assignments = ", ".join(
            f"{self.quote_identifier(cv.name)} = {self.placeholder(i)}"
            for i, cv in enumerate(values)
        )
        sql = (
            f"UPDATE {self.quote_identifier(op.table_name)} SET {assignments}"
            f" WHERE {self.quote_identifier(op.primary_key)} = {self.placeholder(len(values))}"
        )
        return sql, [cv.value for cv in values] + [op.id]

    def delete(self, op: DeleteOperation) -> Statement:
        sql = (
            f"DELETE FROM {self.quote_identifier(op.table_name)}"
            f" WHERE {self.quote_identifier(op.primary_key)} = {self.placeholder(0)}"
        )
        return sql, [op.id]


class SQLiteDialect(AnsiDialect):
    """SQLite dialect: ``?`` placeholders, generated ids via ``lastrowid``."""

    @property
    def name(self) -> str:
        return "sqlite"


# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
}


def get_dialect(name: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ConfigError: If ``name`` is not recognised.
    """
    key = name.lower()
    if key not in _DIALECTS:
        raise ConfigError(
            f"Unknown dialect '{name}'. Supported: {sorted(_DIALECTS)}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "Statement",
    "AnsiDialect",
    "SQLiteDialect",
    "get_dialect",
    "register_dialect",
]
