"""
Connection adapters.

Each adapter module exposes a ``connect(config)`` factory; the
``ConnectionHandler`` maps adapter names to these factories.

Pre-registered adapters:
- ``memory``: :class:`MemoryConnection`, dictionaries in process (default)
- ``sqlite``: :class:`SQLiteConnection`, built-in sqlite3 module

Usage:
    from spine_orm import DatabaseConfig, establish_connection

    conn = establish_connection(DatabaseConfig(adapter="sqlite", database="library.db"))
"""

from .memory import MemoryConnection, MemoryDatabase
from .sqlite import SQLiteConnection
from .types import DEFAULT_CONNECTION_NAME, DatabaseConfig

__all__ = [
    "DEFAULT_CONNECTION_NAME",
    "DatabaseConfig",
    "MemoryConnection",
    "MemoryDatabase",
    "SQLiteConnection",
]
