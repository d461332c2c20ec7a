"""Connection configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from spine_orm.settings import OrmSettings

DEFAULT_CONNECTION_NAME = "primary"


@dataclass
class DatabaseConfig:
    """
    Configuration for a named connection.

    Different fields are used by different adapters; the shipped
    ``memory`` and ``sqlite`` adapters only read ``database``, ``timeout``
    and ``readonly``.
    """

    # Registry
    name: str = DEFAULT_CONNECTION_NAME
    adapter: str = "memory"

    # SQLite path / database name
    database: str = ":memory:"

    # Networked databases
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None

    # Options
    timeout: float = 5.0
    query_timeout: float | None = None
    readonly: bool = False

    # Extra options (driver-specific)
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: OrmSettings | None = None) -> DatabaseConfig:
        """Build the default connection config from ``SPINE_ORM_*`` settings."""
        if settings is None:
            from spine_orm.settings import get_settings

            settings = get_settings()
        return cls(
            name=settings.connection_name,
            adapter=settings.adapter,
            database=settings.database,
            query_timeout=settings.query_timeout,
        )


__all__ = [
    "DEFAULT_CONNECTION_NAME",
    "DatabaseConfig",
]
