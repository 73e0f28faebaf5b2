"""Paginated execution: one data query plus an optional count query.

Both queries wrap the caller's base SQL in a `base_query` CTE and reuse the
same compiled WHERE text and arguments, so the total always describes the
row set the page was cut from.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar, Union

from .contracts import DatabasePort, DialectPort
from .defaults import BASE_QUERY_ALIAS, COUNT_COLUMN
from .identifiers import Allowlist
from .models import require_dataclass_model, row_to_model
from .params import QueryParams
from .query_builder import CompiledQuery, QueryBuilder, build_default_query
from .types import FlatParams, MaybeRow

logger = logging.getLogger(__name__)

T = TypeVar("T")

QueryBuilderFn = Callable[[QueryBuilder], Union[QueryBuilder, CompiledQuery]]


@dataclass
class PaginatedResponse(Generic[T]):
    """One page of records plus optional totals.

    `total` and `total_pages` are `None` when the count query was skipped.
    """

    records: List[T] = field(default_factory=list)
    page: int = 1
    page_size: int = 10
    total: Optional[int] = None
    total_pages: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serializable envelope; totals are omitted when unknown."""

        data: Dict[str, Any] = {
            "records": [_record_to_dict(record) for record in self.records],
            "page": self.page,
            "page_size": self.page_size,
        }
        if self.total_pages is not None:
            data["total_pages"] = self.total_pages
        if self.total is not None:
            data["total"] = self.total
        return data


def _record_to_dict(record: Any) -> Any:
    if is_dataclass(record) and not isinstance(record, type):
        return asdict(record)
    if isinstance(record, Mapping):
        return dict(record)
    return record


def total_pages_for(total: int, page_size: int) -> int:
    """Number of pages needed for `total` rows; 0 when there are none."""

    if total <= 0:
        return 0
    return math.ceil(total / page_size)


def _base_cte(base_sql: str) -> str:
    body = base_sql.strip().rstrip(";").rstrip()
    return f"WITH {BASE_QUERY_ALIAS} AS ({body})"


def build_data_sql(base_sql: str, compiled: CompiledQuery) -> str:
    """SQL for one page of rows from the wrapped base query.

    With joins only the base query's columns are selected, so joined tables
    never shadow or add row fields.
    """

    selected = f"{BASE_QUERY_ALIAS}.*" if compiled.joins else "*"
    return f"{_base_cte(base_sql)} SELECT {selected} FROM {BASE_QUERY_ALIAS}{compiled.sql}"


def build_count_sql(base_sql: str, compiled: CompiledQuery, dialect: DialectPort) -> str:
    """SQL counting every row the compiled WHERE clause matches."""

    return (
        f"{_base_cte(base_sql)} SELECT COUNT(*) AS {dialect.q(COUNT_COLUMN)} "
        f"FROM {BASE_QUERY_ALIAS}{compiled.join_sql}{compiled.where_sql}"
    )


def count_from_row(row: MaybeRow) -> int:
    """Extract the count from the single row of a count query."""

    if not row:
        return 0
    value = row[COUNT_COLUMN] if COUNT_COLUMN in row else next(iter(row.values()))
    return int(value or 0)


def map_records(rows: List[Any], model: Optional[Type[T]]) -> List[Any]:
    if model is None:
        return list(rows)
    return [row_to_model(model, row) for row in rows]


def fetch_paginated(
    db: DatabasePort,
    base_sql: str,
    compiled: CompiledQuery,
    *,
    page: int,
    page_size: int,
    totals_count_enabled: bool = True,
    model: Optional[Type[T]] = None,
) -> PaginatedResponse[Any]:
    """Run the count (optional) and data queries for one page.

    Args:
        db: Database port whose dialect compiled `compiled`.
        base_sql: Row source, wrapped as a CTE. It must not bind arguments.
        compiled: Output of the query builder.
        page: 1-based page number, echoed in the response.
        page_size: Rows per page, used for `total_pages`.
        totals_count_enabled: Run the count query.
        model: Optional dataclass each row is mapped to.

    Returns:
        The page envelope. Driver errors propagate unchanged.
    """

    total: Optional[int] = None
    total_pages: Optional[int] = None

    if totals_count_enabled:
        count_sql = build_count_sql(base_sql, compiled, db.dialect)
        logger.debug("Count query: %s", count_sql)
        total = count_from_row(db.fetchone(count_sql, list(compiled.where_arguments)))
        total_pages = total_pages_for(total, page_size)

    data_sql = build_data_sql(base_sql, compiled)
    logger.debug("Page query: %s", data_sql)
    rows = db.fetchall(data_sql, compiled.arguments)

    return PaginatedResponse(
        records=map_records(rows, model),
        page=page,
        page_size=page_size,
        total=total,
        total_pages=total_pages,
    )


class _PaginatedQueryBase(Generic[T]):
    """Configuration shared by the sync and async paginated queries."""

    def __init__(
        self,
        base_sql: str,
        model: Optional[Type[T]] = None,
        *,
        allowlist: Optional[Allowlist] = None,
    ):
        if model is not None:
            require_dataclass_model(model)
        if allowlist is None and model is not None:
            allowlist = Allowlist.from_model(model)
        self.base_sql = base_sql
        self.model = model
        self.allowlist = allowlist
        self.params = QueryParams()
        self._build_query: Optional[QueryBuilderFn] = None
        self._totals_count_enabled = True

    def with_params(self, params: QueryParams):
        self.params = params
        return self

    def with_flat_params(self, flat: FlatParams, *, protection_enabled: bool = True):
        """Parse and validate transport parameters against the allowlist."""

        self.params = QueryParams.from_flat(
            flat, self.allowlist, protection_enabled=protection_enabled
        )
        return self

    def with_query_builder(self, build_query: QueryBuilderFn):
        """Customize compilation.

        `build_query` receives a fresh `QueryBuilder` for the current params
        and returns it configured (or an already built `CompiledQuery`).
        Without it search, filters and date range are all enabled.
        """

        self._build_query = build_query
        return self

    def disable_totals_count(self):
        self._totals_count_enabled = False
        return self

    @property
    def totals_count_enabled(self) -> bool:
        return self._totals_count_enabled and self.params.totals_count_enabled

    def compile(self, dialect: DialectPort) -> CompiledQuery:
        if self._build_query is None:
            return build_default_query(self.params, self.allowlist, dialect)
        result = self._build_query(QueryBuilder(self.params, self.allowlist, dialect))
        if isinstance(result, CompiledQuery):
            return result
        return result.build()


class PaginatedQuery(_PaginatedQueryBase[T]):
    """Fluent paginated query over a synchronous database port.

    Example:
        >>> page = (
        ...     paginated_query("SELECT * FROM users", User)
        ...     .with_flat_params({"page": "2", "status": "active"})
        ...     .fetch_paginated(db)
        ... )
    """

    def fetch_paginated(self, db: DatabasePort) -> PaginatedResponse[Any]:
        compiled = self.compile(db.dialect)
        return fetch_paginated(
            db,
            self.base_sql,
            compiled,
            page=self.params.page,
            page_size=self.params.page_size,
            totals_count_enabled=self.totals_count_enabled,
            model=self.model,
        )


def paginated_query(
    base_sql: str,
    model: Optional[Type[T]] = None,
    *,
    allowlist: Optional[Allowlist] = None,
) -> PaginatedQuery[T]:
    """Start a paginated query over `base_sql`.

    The allowlist defaults to the fields of `model` when one is given.
    """

    return PaginatedQuery(base_sql, model, allowlist=allowlist)
