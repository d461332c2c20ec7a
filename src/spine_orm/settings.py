"""Environment-driven settings for spine-orm.

``OrmSettings`` describes the default connection the process establishes
when ``establish_connection()`` is called without an explicit config, plus
logging preferences.  Values come from ``SPINE_ORM_*`` environment
variables or a ``.env`` file.

Examples:
    >>> import os
    >>> os.environ["SPINE_ORM_ADAPTER"] = "sqlite"
    >>> os.environ["SPINE_ORM_DATABASE"] = "/tmp/library.db"
    >>> OrmSettings().adapter
    'sqlite'

Tags:
    settings, configuration, pydantic, environment, spine-orm
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OrmSettings(BaseSettings):
    """Settings for the default connection and logging.

    Fields
    ──────
    adapter          : Registered adapter name ("memory", "sqlite", ...)
    database         : Database path or name passed to the adapter
    connection_name  : Name the default connection is registered under
    query_timeout    : Seconds before a terminal operation is cancelled
    log_level        : Structlog log level
    json_logs        : Render logs as JSON instead of console output
    """

    model_config = SettingsConfigDict(
        env_prefix="SPINE_ORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Connection ───────────────────────────────────────────────
    adapter: str = "memory"
    database: str = ":memory:"
    connection_name: str = "primary"
    query_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Default deadline in seconds for terminal operations",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool = False

    @field_validator("adapter")
    @classmethod
    def _normalize_adapter(cls, value: str) -> str:
        return value.strip().lower()


def get_settings() -> OrmSettings:
    """Load settings from the environment."""
    return OrmSettings()


__all__ = [
    "OrmSettings",
    "get_settings",
]
