"""
Shared pytest fixtures and configuration for spine-orm tests.

This module provides:
- Registry cleanup fixtures for test isolation
- Connection fixtures for both shipped adapters
- The "library" schemas (author, book, profile) used across test modules

Usage:
    Fixtures are auto-discovered by pytest.  Tests that take ``connection``
    run once per adapter:

    def test_something(library, connection):
        library.Author.create({"name": "Melville"})
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Generator

import pytest

# Ensure spine_orm package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from spine_orm import (
    DatabaseConfig,
    Length,
    Presence,
    connection_handler,
    define,
    establish_connection,
    reflection_registry,
)

LIBRARY_DDL = """
CREATE TABLE authors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    born TEXT
);
CREATE TABLE books (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT,
    year INTEGER,
    author_id INTEGER
);
CREATE TABLE profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    bio TEXT,
    author_id INTEGER
);
"""


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Registry Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_reflection_registry_fixture() -> Generator[None, None, None]:
    """
    Clear the schema registry before and after each test.

    Every test defines its own schemas; none may leak into the next one.
    """
    reflection_registry.reset()
    yield
    reflection_registry.reset()


@pytest.fixture(autouse=True)
def clean_connection_registry_fixture() -> Generator[None, None, None]:
    """Close and unpublish every connection before and after each test."""
    connection_handler.reset()
    yield
    connection_handler.reset()


# =============================================================================
# Connection Fixtures
# =============================================================================


@pytest.fixture
def library_ddl() -> str:
    """DDL for the authors, books and profiles tables."""
    return LIBRARY_DDL


@pytest.fixture
def memory_connection():
    """In-memory connection published as "primary"."""
    return establish_connection(DatabaseConfig(adapter="memory"))


@pytest.fixture
def sqlite_connection():
    """SQLite ``:memory:`` connection published as "primary", library tables created."""
    conn = establish_connection(DatabaseConfig(adapter="sqlite"))
    conn.execute_script(LIBRARY_DDL)
    return conn


@pytest.fixture(params=["memory", "sqlite"])
def connection(request: pytest.FixtureRequest):
    """Parametric fixture: run each test against every shipped adapter."""
    return request.getfixturevalue(f"{request.param}_connection")


# =============================================================================
# Schema Fixtures
# =============================================================================


@pytest.fixture
def library() -> SimpleNamespace:
    """
    Author / Book / Profile relations.

        author  has_many books, has_one profile
        book    belongs_to author
        profile belongs_to author
    """
    Author = define(
        "author",
        lambda s: (
            s.string("name", Presence(), Length(maximum=80))
            .date("born")
            .has_many("books")
            .has_one("profile")
        ),
    )
    Book = define(
        "book",
        lambda s: s.string("title", Presence()).integer("year").belongs_to("author"),
    )
    Profile = define("profile", lambda s: s.string("bio").belongs_to("author"))
    return SimpleNamespace(Author=Author, Book=Book, Profile=Profile)


@pytest.fixture
def melville(library, connection):
    """Melville with three books, inserted through the parametrized connection."""
    author = library.Author.create({"name": "Melville"})
    library.Book.insert_all(
        {"title": "Typee", "year": 1846, "author_id": author.id},
        {"title": "Omoo", "year": 1847, "author_id": author.id},
        {"title": "Moby-Dick", "year": 1851, "author_id": author.id},
    )
    return author
