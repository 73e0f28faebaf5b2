"""Public port exports for concrete adapter implementations."""

from .db_api import (
    AsyncDatabase,
    AsyncpgDatabase,
    Database,
    Dialect,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
)

__all__ = [
    "Database",
    "AsyncDatabase",
    "AsyncpgDatabase",
    "Dialect",
    "SQLiteDialect",
    "PostgresDialect",
    "MySQLDialect",
]
