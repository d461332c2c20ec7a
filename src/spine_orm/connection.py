"""
Connection registry.

``ConnectionHandler`` owns the process-wide table of named connections and
the adapter factories used to create them.

::

    establish_connection(DatabaseConfig(name="primary", adapter="sqlite", ...))
        │
        ├── adapter factory lookup  ("memory" / "sqlite" / registered)
        ├── factory(config) → Connection
        └── publish under config.name

    retrieve_connection("primary")
        ├── transaction open on this thread? → transactional connection
        └── otherwise the published connection

Writers (establish/remove/register_adapter) serialize on a lock and publish
a fresh read-only mapping; ``retrieve_connection`` never takes the lock.

Examples:
    >>> establish_connection()  # SPINE_ORM_* settings, "memory" by default
    >>> with transaction():
    ...     Book.insert_all({"title": "Omoo"}, {"title": "Typee"})
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from types import MappingProxyType

from spine_orm.adapters import memory, sqlite
from spine_orm.adapters.types import DEFAULT_CONNECTION_NAME, DatabaseConfig
from spine_orm.errors import (
    AdapterNotFoundError,
    ConfigError,
    ConnectionNotEstablishedError,
    DuplicateConnectionError,
)
from spine_orm.execution import ExecutionContext, background, new_context
from spine_orm.logging import LogContext, get_logger
from spine_orm.protocols import Connection

logger = get_logger(__name__)

AdapterFactory = Callable[[DatabaseConfig], Connection]


class ConnectionHandler:
    """
    Named connections and adapter factories.

    Pre-registered adapters: ``memory``, ``sqlite``.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._adapters: dict[str, AdapterFactory] = {}
        self._connections: Mapping[str, Connection] = MappingProxyType({})
        self._configs: Mapping[str, DatabaseConfig] = MappingProxyType({})
        self._local = threading.local()
        self._register_defaults()

    def _register_defaults(self) -> None:
        self._adapters["memory"] = memory.connect
        self._adapters["sqlite"] = sqlite.connect

    # -- Adapters ----------------------------------------------------------

    def register_adapter(self, name: str, factory: AdapterFactory) -> None:
        """Register an adapter factory under ``name``.

        Raises:
            ConfigError: If an adapter with that name is already registered
        """
        name = name.lower()
        with self._lock:
            if name in self._adapters:
                raise ConfigError(f"Adapter already registered: {name}")
            self._adapters[name] = factory

    def list_adapters(self) -> list[str]:
        return sorted(self._adapters)

    # -- Connections -------------------------------------------------------

    def establish_connection(self, config: DatabaseConfig | None = None) -> Connection:
        """
        Create a connection from ``config`` and publish it under ``config.name``.

        Without a config the ``SPINE_ORM_*`` settings are used.

        Raises:
            AdapterNotFoundError: If ``config.adapter`` is not registered
            DuplicateConnectionError: If ``config.name`` is already established
        """
        if config is None:
            config = DatabaseConfig.from_settings()

        with self._lock:
            factory = self._adapters.get(config.adapter.lower())
            if factory is None:
                raise AdapterNotFoundError(config.adapter)
            if config.name in self._connections:
                raise DuplicateConnectionError(config.name)

            conn = factory(config)

            connections = dict(self._connections)
            connections[config.name] = conn
            configs = dict(self._configs)
            configs[config.name] = config
            self._connections = MappingProxyType(connections)
            self._configs = MappingProxyType(configs)

        logger.info(
            "connection_established",
            connection=config.name,
            adapter=config.adapter,
            database=config.database,
        )
        return conn

    def retrieve_connection(self, name: str = DEFAULT_CONNECTION_NAME) -> Connection:
        """
        Return the connection published under ``name``.

        Inside ``transaction()`` on the current thread, the transactional
        connection is returned instead.

        Raises:
            ConnectionNotEstablishedError: If nothing is published under ``name``
        """
        tx = self._transactions().get(name)
        if tx is not None:
            return tx
        conn = self._connections.get(name)
        if conn is None:
            raise ConnectionNotEstablishedError(name)
        return conn

    def remove_connection(self, name: str = DEFAULT_CONNECTION_NAME) -> None:
        """Close and unpublish the connection under ``name``."""
        with self._lock:
            conn = self._connections.get(name)
            if conn is None:
                raise ConnectionNotEstablishedError(name)
            connections = dict(self._connections)
            del connections[name]
            configs = dict(self._configs)
            configs.pop(name, None)
            self._connections = MappingProxyType(connections)
            self._configs = MappingProxyType(configs)

        conn.close()
        logger.info("connection_removed", connection=name)

    def has_connection(self, name: str = DEFAULT_CONNECTION_NAME) -> bool:
        return name in self._connections

    def connection_names(self) -> list[str]:
        return sorted(self._connections)

    def default_context(self, name: str = DEFAULT_CONNECTION_NAME) -> ExecutionContext:
        """Context for calls made without one: the connection's query timeout, if any."""
        config = self._configs.get(name)
        if config is not None and config.query_timeout is not None:
            return new_context(timeout=config.query_timeout)
        return background()

    def reset(self) -> None:
        """Close every connection. Used for test isolation."""
        with self._lock:
            connections = self._connections
            self._connections = MappingProxyType({})
            self._configs = MappingProxyType({})
        for conn in connections.values():
            conn.close()

    # -- Transactions ------------------------------------------------------

    def _transactions(self) -> dict[str, Connection]:
        transactions = getattr(self._local, "transactions", None)
        if transactions is None:
            transactions = self._local.transactions = {}
        return transactions

    @contextmanager
    def transaction(
        self,
        ctx: ExecutionContext | None = None,
        name: str = DEFAULT_CONNECTION_NAME,
    ) -> Iterator[Connection]:
        """
        Run the enclosed block in a transaction on connection ``name``.

        Commits on success; rolls back and re-raises on error.  A nested
        ``transaction()`` for the same connection on the same thread joins
        the outer one.

        Usage:
            with connection_handler.transaction() as conn:
                Book.create({"title": "Omoo"})
        """
        transactions = self._transactions()
        if name in transactions:
            yield transactions[name]
            return

        conn = self.retrieve_connection(name)
        if not hasattr(conn, "begin_transaction"):
            raise ConfigError(f"Connection {name!r} does not support transactions")

        ctx = ctx or self.default_context(name)
        tx = conn.begin_transaction(ctx)
        transactions[name] = tx
        # Events logged inside the block carry the transaction id.
        with LogContext(transaction_id=ctx.execution_id):
            logger.debug("transaction_begin", connection=name, execution_id=ctx.execution_id)
            try:
                yield tx
            except BaseException:
                del transactions[name]
                tx.rollback_transaction(ctx)
                logger.debug(
                    "transaction_rollback", connection=name, execution_id=ctx.execution_id
                )
                raise
            del transactions[name]
            tx.commit_transaction(ctx)
            logger.debug("transaction_commit", connection=name, execution_id=ctx.execution_id)


# Process-wide handler
connection_handler = ConnectionHandler()


def register_adapter(name: str, factory: AdapterFactory) -> None:
    connection_handler.register_adapter(name, factory)


def establish_connection(config: DatabaseConfig | None = None) -> Connection:
    return connection_handler.establish_connection(config)


def retrieve_connection(name: str = DEFAULT_CONNECTION_NAME) -> Connection:
    return connection_handler.retrieve_connection(name)


def remove_connection(name: str = DEFAULT_CONNECTION_NAME) -> None:
    connection_handler.remove_connection(name)


def transaction(
    ctx: ExecutionContext | None = None,
    name: str = DEFAULT_CONNECTION_NAME,
):
    """Transaction on the process-wide handler; see ``ConnectionHandler.transaction``."""
    return connection_handler.transaction(ctx, name)


__all__ = [
    "AdapterFactory",
    "ConnectionHandler",
    "connection_handler",
    "register_adapter",
    "establish_connection",
    "retrieve_connection",
    "remove_connection",
    "transaction",
]
