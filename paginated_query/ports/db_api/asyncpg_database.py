"""asyncpg adapter for the core async database port.

asyncpg is not a DB-API driver: it binds `$n` arguments passed as varargs,
returns `Record` rows and hands out connections from a pool. Install the
`postgres` extra to use it.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from ...core.types import MaybeRow, RowMapping, Rows
from .dialects import PostgresDialect

logger = logging.getLogger(__name__)


class AsyncpgDatabase:
    """Run paginated queries on an asyncpg connection or pool.

    With a pool, every call acquires its own connection and releases it when
    the call finishes.
    """

    def __init__(self, conn: Any, dialect: Optional[PostgresDialect] = None):
        """Create asyncpg adapter.

        Args:
            conn: `asyncpg.Connection` or `asyncpg.Pool`.
            dialect: Postgres dialect; a default instance when omitted.
        """

        self.conn: Optional[Any] = conn
        self.dialect = dialect or PostgresDialect()
        self._is_pool = callable(getattr(conn, "acquire", None))

    @classmethod
    async def create_pool(cls, dsn: str, **pool_kwargs: Any) -> AsyncpgDatabase:
        """Open an asyncpg pool for `dsn` and wrap it."""

        import asyncpg

        pool = await asyncpg.create_pool(dsn, **pool_kwargs)
        return cls(pool)

    def _require_open_connection(self) -> Any:
        if self.conn is None:
            raise RuntimeError("connection is closed")
        return self.conn

    async def _fetch(self, sql: str, params: Optional[Sequence[Any]]) -> List[Any]:
        conn = self._require_open_connection()
        arguments = list(params or ())
        if self._is_pool:
            async with conn.acquire() as pooled:
                return await pooled.fetch(sql, *arguments)
        return await conn.fetch(sql, *arguments)

    async def fetchone(self, sql: str, params: Optional[Sequence[Any]] = None) -> MaybeRow:
        """Execute query and return the first row as a mapping."""

        rows = await self._fetch(sql, params)
        if not rows:
            return None
        return _record_to_mapping(rows[0])

    async def fetchall(self, sql: str, params: Optional[Sequence[Any]] = None) -> Rows:
        """Execute query and return all rows as mappings."""

        rows = await self._fetch(sql, params)
        return [_record_to_mapping(row) for row in rows]

    async def aclose(self) -> None:
        """Close the wrapped connection or pool."""

        conn, self.conn = self.conn, None
        if conn is None:
            return
        logger.debug("Closing asyncpg %s", "pool" if self._is_pool else "connection")
        await conn.close()

    async def __aenter__(self) -> AsyncpgDatabase:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.aclose()


def _record_to_mapping(record: Any) -> RowMapping:
    # asyncpg.Record supports items() but is not a Mapping subclass.
    return dict(record.items())
