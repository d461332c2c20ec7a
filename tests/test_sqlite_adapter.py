"""Tests for ``spine_orm.adapters.sqlite``: the SQLite connection."""

from __future__ import annotations

import threading

import pytest

from spine_orm.adapters import DatabaseConfig, SQLiteConnection
from spine_orm.adapters.sqlite import connect
from spine_orm.errors import (
    ConfigError,
    DeadlineExceededError,
    ExecutionError,
    OperationCancelledError,
    QueryError,
    RecordNotUniqueError,
    RowCountMismatchError,
)
from spine_orm.execution import background, new_context
from spine_orm.operations import (
    ColumnValue,
    Condition,
    DeleteOperation,
    InsertOperation,
    JoinClause,
    Predicate,
    QueryOperation,
    UpdateOperation,
)

BOOK_COLUMNS = ("books.id", "books.title", "books.year", "books.author_id")

# Counts to fifty million; only an interrupt ends it early
SLOW_PREDICATE = (
    "books.id IN (WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c WHERE x < 50000000)"
    " SELECT max(x) - 49999999 FROM c)"
)


def _insert(conn, table, **values):
    op = InsertOperation(table, "id", tuple(ColumnValue(k, "string", v) for k, v in values.items()))
    return conn.exec_insert(background(), op)


def _query(conn, op, ctx=None):
    rows = []
    conn.exec_query(ctx or background(), op, lambda row: rows.append(row) or True)
    return rows


@pytest.fixture
def conn(library_ddl):
    conn = SQLiteConnection()
    conn.execute_script(library_ddl)
    _insert(conn, "authors", name="Melville")
    _insert(conn, "books", title="Typee", year=1846, author_id=1)
    _insert(conn, "books", title="Omoo", year=1847, author_id=1)
    _insert(conn, "books", title="Orphan", year=1900, author_id=99)
    yield conn
    conn.close()


class TestSQLiteConnect:
    def test_factory(self):
        conn = connect(DatabaseConfig(adapter="sqlite"))
        try:
            assert isinstance(conn, SQLiteConnection)
            assert conn.dialect.name == "sqlite"
        finally:
            conn.close()

    def test_file_database(self, tmp_path, library_ddl):
        path = str(tmp_path / "library.db")
        conn = SQLiteConnection(path)
        conn.execute_script(library_ddl)
        _insert(conn, "books", title="Typee")
        conn.close()

        reopened = SQLiteConnection(path)
        try:
            assert len(_query(reopened, QueryOperation("books", BOOK_COLUMNS))) == 1
        finally:
            reopened.close()

    def test_bad_path(self, tmp_path):
        with pytest.raises(ConfigError, match="Failed to connect to SQLite"):
            SQLiteConnection(str(tmp_path / "missing" / "dir" / "library.db"))

    def test_readonly(self, tmp_path, library_ddl):
        path = str(tmp_path / "library.db")
        writer = SQLiteConnection(path)
        writer.execute_script(library_ddl)
        writer.close()
        conn = SQLiteConnection(path, readonly=True)
        try:
            with pytest.raises(QueryError):
                _insert(conn, "books", title="Typee")
        finally:
            conn.close()

    def test_closed(self, conn):
        conn.close()
        with pytest.raises(ExecutionError, match="is closed"):
            _query(conn, QueryOperation("books", BOOK_COLUMNS))


class TestSQLiteWrites:
    def test_lastrowid(self, conn):
        assert _insert(conn, "books", title="Mardi") == 4

    def test_explicit_id_returned(self, conn):
        assert _insert(conn, "books", id=10, title="Mardi") == 10

    def test_duplicate(self, conn):
        with pytest.raises(RecordNotUniqueError):
            _insert(conn, "books", id=1, title="Typee again")

    def test_unknown_column(self, conn):
        with pytest.raises(QueryError, match="SQLite error"):
            _insert(conn, "books", isbn="x")

    def test_update(self, conn):
        conn.exec_update(
            background(), UpdateOperation("books", "id", 1, (ColumnValue("year", "integer", 1845),))
        )
        rows = _query(conn, QueryOperation("books", ("books.year",), (Condition("books.id", 1),)))
        assert rows == [{"books.year": 1845}]

    def test_update_missing_row(self, conn):
        op = UpdateOperation("books", "id", 42, (ColumnValue("year", "integer", 1),))
        with pytest.raises(RowCountMismatchError):
            conn.exec_update(background(), op)

    def test_update_without_values_checks_row(self, conn):
        conn.exec_update(background(), UpdateOperation("books", "id", 1, ()))
        with pytest.raises(RowCountMismatchError):
            conn.exec_update(background(), UpdateOperation("books", "id", 42, ()))

    def test_delete(self, conn):
        conn.exec_delete(background(), DeleteOperation("books", "id", 1))
        conn.exec_delete(background(), DeleteOperation("books", "id", 1))
        assert len(_query(conn, QueryOperation("books", BOOK_COLUMNS))) == 2


class TestSQLiteQuery:
    def test_rows_are_qualified(self, conn):
        rows = _query(conn, QueryOperation("books", BOOK_COLUMNS, (Condition("books.id", 1),)))
        assert rows == [
            {"books.id": 1, "books.title": "Typee", "books.year": 1846, "books.author_id": 1}
        ]

    def test_inner_join(self, conn):
        op = QueryOperation(
            "books",
            BOOK_COLUMNS + ("authors.name",),
            joins=(JoinClause("authors", "books.author_id", "authors.id"),),
        )
        assert sorted(r["books.title"] for r in _query(conn, op)) == ["Omoo", "Typee"]

    def test_predicate(self, conn):
        op = QueryOperation("books", BOOK_COLUMNS, predicates=(Predicate("year BETWEEN ? AND ?", (1846, 1847)),))
        assert len(_query(conn, op)) == 2

    def test_bad_predicate(self, conn):
        op = QueryOperation("books", BOOK_COLUMNS, predicates=(Predicate("year >>> ?", (1,)),))
        with pytest.raises(QueryError):
            _query(conn, op)

    def test_visitor_stops(self, conn):
        rows = []
        conn.exec_query(background(), QueryOperation("books", BOOK_COLUMNS), lambda row: rows.append(row))
        assert len(rows) == 1


class TestSQLiteCancellation:
    def test_cancelled_before_call(self, conn):
        ctx = background()
        ctx.cancel()
        with pytest.raises(OperationCancelledError):
            _query(conn, QueryOperation("books", BOOK_COLUMNS), ctx)

    def test_deadline_interrupts_statement(self, conn):
        op = QueryOperation("books", BOOK_COLUMNS, predicates=(Predicate(SLOW_PREDICATE),))
        with pytest.raises(DeadlineExceededError):
            _query(conn, op, new_context(timeout=0.05))

    def test_cancel_from_other_thread(self, conn):
        ctx = new_context()
        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()
        op = QueryOperation("books", BOOK_COLUMNS, predicates=(Predicate(SLOW_PREDICATE),))
        try:
            with pytest.raises(OperationCancelledError):
                _query(conn, op, ctx)
        finally:
            timer.cancel()

    def test_usable_after_interrupt(self, conn):
        op = QueryOperation("books", BOOK_COLUMNS, predicates=(Predicate(SLOW_PREDICATE),))
        with pytest.raises(DeadlineExceededError):
            _query(conn, op, new_context(timeout=0.05))
        assert len(_query(conn, QueryOperation("books", BOOK_COLUMNS))) == 3


class TestSQLiteTransactions:
    def test_commit(self, conn):
        tx = conn.begin_transaction(background())
        assert tx.in_transaction
        _insert(tx, "books", title="Mardi")
        tx.commit_transaction(background())
        assert not conn.in_transaction
        assert len(_query(conn, QueryOperation("books", BOOK_COLUMNS))) == 4

    def test_rollback(self, conn):
        tx = conn.begin_transaction(background())
        _insert(tx, "books", title="Mardi")
        tx.rollback_transaction(background())
        assert len(_query(conn, QueryOperation("books", BOOK_COLUMNS))) == 3
