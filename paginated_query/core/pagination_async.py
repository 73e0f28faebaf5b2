"""Async paginated execution with behavior parity to `pagination`."""

from __future__ import annotations

import logging
from typing import Any, Optional, Type, TypeVar

from .contracts import AsyncDatabasePort
from .identifiers import Allowlist
from .pagination import (
    PaginatedResponse,
    _PaginatedQueryBase,
    build_count_sql,
    build_data_sql,
    count_from_row,
    map_records,
    total_pages_for,
)
from .query_builder import CompiledQuery

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def afetch_paginated(
    db: AsyncDatabasePort,
    base_sql: str,
    compiled: CompiledQuery,
    *,
    page: int,
    page_size: int,
    totals_count_enabled: bool = True,
    model: Optional[Type[T]] = None,
) -> PaginatedResponse[Any]:
    """Async twin of `fetch_paginated`; the two queries run one after the other."""

    total: Optional[int] = None
    total_pages: Optional[int] = None

    if totals_count_enabled:
        count_sql = build_count_sql(base_sql, compiled, db.dialect)
        logger.debug("Count query: %s", count_sql)
        row = await db.fetchone(count_sql, list(compiled.where_arguments))
        total = count_from_row(row)
        total_pages = total_pages_for(total, page_size)

    data_sql = build_data_sql(base_sql, compiled)
    logger.debug("Page query: %s", data_sql)
    rows = await db.fetchall(data_sql, compiled.arguments)

    return PaginatedResponse(
        records=map_records(rows, model),
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
    )


class AsyncPaginatedQuery(_PaginatedQueryBase[T]):
    """Fluent paginated query over an async database port."""

    async def fetch_paginated(self, db: AsyncDatabasePort) -> PaginatedResponse[Any]:
        compiled = self.compile(db.dialect)
        return await afetch_paginated(
            db,
            self.base_sql,
            compiled,
            page=self.params.page,
            page_size=self.params.page_size,
            totals_count_enabled=self.totals_count_enabled,
            model=self.model,
        )


def async_paginated_query(
    base_sql: str,
    model: Optional[Type[T]] = None,
    *,
    allowlist: Optional[Allowlist] = None,
) -> AsyncPaginatedQuery[T]:
    """Start an async paginated query over `base_sql`."""

    return AsyncPaginatedQuery(base_sql, model, allowlist=allowlist)
