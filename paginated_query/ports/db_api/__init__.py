"""DB-API adapter and dialect exports."""

from .async_database import AsyncDatabase
from .asyncpg_database import AsyncpgDatabase
from .database import Database
from .dialects import Dialect, MySQLDialect, PostgresDialect, SQLiteDialect

__all__ = [
    "AsyncDatabase",
    "AsyncpgDatabase",
    "Database",
    "Dialect",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
]
