"""
Reflection registry: entity name → ``Schema``.

Associations and joins name their target entity as a string and resolve it
here on first use, so a schema may reference entities defined after it.

Writers (``register``/``unregister``/``reset``) serialize on a lock and
publish a fresh read-only mapping; readers only dereference the current
mapping and never take the lock.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from types import MappingProxyType

from spine_orm.errors import DuplicateSchemaError, SchemaNotFoundError
from spine_orm.logging import get_logger
from spine_orm.schema import Schema

logger = get_logger(__name__)


class ReflectionRegistry:
    """
    Process-wide schema lookup.

    Example:
        registry = ReflectionRegistry()
        registry.register(schema)
        registry.lookup("book")
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._schemas: Mapping[str, Schema] = MappingProxyType({})

    def register(self, schema: Schema, *, replace: bool = False) -> None:
        with self._lock:
            if schema.name in self._schemas and not replace:
                raise DuplicateSchemaError(schema.name)
            schemas = dict(self._schemas)
            schemas[schema.name] = schema
            self._schemas = MappingProxyType(schemas)
        logger.debug("schema_registered", entity=schema.name, replaced=replace)

    def unregister(self, name: str) -> None:
        with self._lock:
            if name not in self._schemas:
                raise SchemaNotFoundError(name)
            schemas = dict(self._schemas)
            del schemas[name]
            self._schemas = MappingProxyType(schemas)

    def lookup(self, name: str) -> Schema:
        """Return the schema registered under ``name``.

        Raises:
            SchemaNotFoundError: If nothing is registered under ``name``
        """
        schema = self._schemas.get(name)
        if schema is None:
            raise SchemaNotFoundError(name)
        return schema

    def get(self, name: str) -> Schema | None:
        return self._schemas.get(name)

    def lookup_table(self, table_name: str) -> Schema:
        for schema in self._schemas.values():
            if schema.table_name == table_name:
                return schema
        raise SchemaNotFoundError(table_name).with_context(table=table_name)

    def names(self) -> list[str]:
        return sorted(self._schemas)

    def reset(self) -> None:
        """Drop every registered schema. Used for test isolation."""
        with self._lock:
            self._schemas = MappingProxyType({})

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


reflection_registry = ReflectionRegistry()


def lookup(name: str) -> Schema:
    """Look up a schema in the process-wide registry."""
    return reflection_registry.lookup(name)


__all__ = [
    "ReflectionRegistry",
    "reflection_registry",
    "lookup",
]
