"""Core port contracts used by adapters, builders, and executors."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Protocol, Sequence

from .types import MaybeRow, RowMapping


class DialectPort(Protocol):
    """Dialect behavior required by query compilation."""

    name: str
    paramstyle: str
    typed_arguments: bool

    def q(self, ident: str) -> str: ...

    def placeholder(self, index: int) -> str: ...

    def count_placeholders(self, sql: str) -> int: ...

    def adapt_timestamp(self, value: datetime) -> object: ...

    def cast_text(self, expression: str) -> str: ...


class DatabasePort(Protocol):
    """Database adapter behavior required by the paginated executor."""

    dialect: DialectPort

    def fetchone(self, sql: str, params: Optional[Sequence[Any]] = None) -> MaybeRow: ...

    def fetchall(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> List[RowMapping]: ...


class AsyncDatabasePort(Protocol):
    """Async database adapter behavior required by the async executor."""

    dialect: DialectPort

    async def fetchone(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> MaybeRow: ...

    async def fetchall(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> List[RowMapping]: ...
