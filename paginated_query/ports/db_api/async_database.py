"""Async DB adapter implementation for the core async database port."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from ...core._async_utils import _maybe_await, _maybe_close
from ...core.types import MaybeRow, Rows
from .database import row_to_mapping
from .dialects import Dialect


class AsyncDatabase:
    """Async wrapper over DB-API style connections.

    Works with native async drivers (`aiosqlite`, `aiomysql`) and with plain
    sync connections, whose results are used without awaiting.
    """

    def __init__(self, conn: Any, dialect: Dialect):
        """Create async database adapter.

        Args:
            conn: Async (or sync) DB connection object.
            dialect: Dialect matching the driver's paramstyle.
        """

        self.conn: Optional[Any] = conn
        self.dialect = dialect

    def _require_open_connection(self) -> Any:
        if self.conn is None:
            raise RuntimeError("connection is closed")
        return self.conn

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute SQL with optional positional parameters and return cursor."""

        conn = self._require_open_connection()
        cur = await _maybe_await(conn.cursor())
        try:
            if params is None:
                await _maybe_await(cur.execute(sql))
            else:
                await _maybe_await(cur.execute(sql, list(params)))
        except BaseException:
            await _maybe_close(cur)
            raise
        return cur

    async def fetchone(self, sql: str, params: Optional[Sequence[Any]] = None) -> MaybeRow:
        """Execute query and return one normalized row mapping."""

        cur = await self.execute(sql, params)
        try:
            row = await _maybe_await(cur.fetchone())
            if row is None:
                return None
            return row_to_mapping(cur, row)
        finally:
            await _maybe_close(cur)

    async def fetchall(self, sql: str, params: Optional[Sequence[Any]] = None) -> Rows:
        """Execute query and return all rows as normalized mappings."""

        cur = await self.execute(sql, params)
        try:
            rows = await _maybe_await(cur.fetchall())
            return [row_to_mapping(cur, r) for r in rows]
        finally:
            await _maybe_close(cur)

    async def aclose(self) -> None:
        """Close the underlying connection."""

        conn, self.conn = self.conn, None
        if conn is not None:
            await _maybe_close(conn)

    async def __aenter__(self) -> AsyncDatabase:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.aclose()
