"""DB-API adapter implementation for the core database port."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Sequence

from ...core.types import MaybeRow, RowMapping, Rows
from .dialects import Dialect


def row_to_mapping(cursor: Any, row: Any) -> RowMapping:
    """Normalize a driver row to a mapping.

    Supports mapping rows directly and tuple/list rows via
    `cursor.description`.
    """

    if isinstance(row, Mapping):
        return row

    if isinstance(row, (tuple, list)):
        desc = getattr(cursor, "description", None)
        if not desc:
            raise TypeError("Cursor has no description; cannot map tuple rows to dict.")
        cols = [d[0] for d in desc]
        return dict(zip(cols, row))

    try:
        return dict(row)
    except (TypeError, ValueError):
        pass

    raise TypeError(f"Unsupported row type: {type(row)}")


class Database:
    """Thin DB-API wrapper that runs paginated SQL and returns mapping rows."""

    def __init__(self, conn: Any, dialect: Dialect):
        """Create database adapter.

        Args:
            conn: DB-API connection object (`sqlite3`, `psycopg`, `pymysql`).
            dialect: Dialect matching the driver's paramstyle.
        """

        self.conn: Optional[Any] = conn
        self.dialect = dialect

    def _require_open_connection(self) -> Any:
        if self.conn is None:
            raise RuntimeError("connection is closed")
        return self.conn

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute SQL with optional positional parameters and return cursor."""

        conn = self._require_open_connection()
        cur = conn.cursor()
        if params is None:
            cur.execute(sql)
        else:
            cur.execute(sql, list(params))
        return cur

    def fetchone(self, sql: str, params: Optional[Sequence[Any]] = None) -> MaybeRow:
        """Execute query and return one normalized row mapping."""

        cur = self.execute(sql, params)
        row = cur.fetchone()
        if row is None:
            return None
        return row_to_mapping(cur, row)

    def fetchall(self, sql: str, params: Optional[Sequence[Any]] = None) -> Rows:
        """Execute query and return all rows as normalized mappings."""

        cur = self.execute(sql, params)
        return [row_to_mapping(cur, r) for r in cur.fetchall()]

    def close(self) -> None:
        """Close the underlying connection; later calls raise `RuntimeError`."""

        conn, self.conn = self.conn, None
        if conn is None:
            return
        close = getattr(conn, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()
