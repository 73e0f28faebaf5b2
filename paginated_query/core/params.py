"""Validated query parameters and the two ways to produce them.

`QueryParams.from_flat` parses untrusted transport parameters and
`QueryParamsBuilder` accumulates the same intent from code. Both repair bad
input instead of rejecting it: out-of-range numbers are clamped, unknown
columns are dropped or replaced by defaults, and unparsable timestamps are
ignored.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl

from .coercion import parse_timestamp
from .defaults import (
    DEFAULT_DATE_COLUMN,
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_SEARCH_COLUMNS,
    DEFAULT_SORT_COLUMN,
    MAX_PAGE,
    MAX_PAGE_SIZE,
    MAX_SEARCH_LENGTH,
    MIN_PAGE_SIZE,
    RESERVED_PARAM_NAMES,
)
from .filters import FilterCondition, FilterOperator, split_filter_key, split_list_value
from .identifiers import Allowlist, is_safe_identifier
from .types import FlatParams

logger = logging.getLogger(__name__)

_SEARCH_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9 \-]")
_FALSE_TOKENS = frozenset({"false", "0", "no", "off"})

FilterEntries = Tuple[Tuple[str, FilterCondition], ...]


class SortDirection(str, Enum):
    """Sort direction for the `ORDER BY` clause."""

    ASCENDING = "ascending"
    DESCENDING = "descending"

    @property
    def sql(self) -> str:
        return "ASC" if self is SortDirection.ASCENDING else "DESC"

    @classmethod
    def parse(cls, raw: Any, default: Optional[SortDirection] = None) -> SortDirection:
        """Resolve `asc`/`ascending`/`desc`/`descending`, else `default`."""

        fallback = default or cls.DESCENDING
        if isinstance(raw, SortDirection):
            return raw
        if not isinstance(raw, str):
            return fallback
        token = raw.strip().lower()
        if token in ("asc", "ascending"):
            return cls.ASCENDING
        if token in ("desc", "descending"):
            return cls.DESCENDING
        return fallback


@dataclass(frozen=True)
class QueryParams:
    """Validated pagination, sort, search, date range and filter intent.

    Instances are immutable. Build them with `from_flat` or
    `QueryParamsBuilder`; constructing one directly skips input repair, and
    the query builder still validates every column it emits.
    """

    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    sort_column: str = DEFAULT_SORT_COLUMN
    sort_direction: SortDirection = SortDirection.DESCENDING
    search: Optional[str] = None
    search_columns: Tuple[str, ...] = DEFAULT_SEARCH_COLUMNS
    date_column: str = DEFAULT_DATE_COLUMN
    date_after: Optional[datetime] = None
    date_before: Optional[datetime] = None
    filters: FilterEntries = ()
    totals_count_enabled: bool = True
    protection_enabled: bool = True

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def filter_map(self) -> Dict[str, Tuple[FilterCondition, ...]]:
        """Filters grouped by column, in insertion order."""

        grouped: Dict[str, Tuple[FilterCondition, ...]] = {}
        for column, condition in self.filters:
            grouped[column] = grouped.get(column, ()) + (condition,)
        return grouped

    def with_totals_count(self, enabled: bool) -> QueryParams:
        return replace(self, totals_count_enabled=enabled)

    @classmethod
    def from_flat(
        cls,
        flat: FlatParams,
        allowlist: Optional[Allowlist] = None,
        *,
        protection_enabled: bool = True,
    ) -> QueryParams:
        """Parse transport parameters into validated params. Never raises.

        Args:
            flat: Mapping, sequence of pairs, or raw query string.
            allowlist: Columns the target row set exposes. `None` only
                applies character and reserved-name checks.
            protection_enabled: Whether identifier checks apply.
        """

        values = normalize_flat_params(flat)
        builder = QueryParamsBuilder(allowlist, protection_enabled=protection_enabled)

        builder.with_pagination(values.get("page"), values.get("page_size"))

        if "sort_column" in values or "sort_direction" in values:
            builder.with_sort(
                values.get("sort_column", DEFAULT_SORT_COLUMN),
                values.get("sort_direction"),
            )

        if "search" in values or "search_columns" in values:
            raw_columns = values.get("search_columns")
            builder.with_search(
                values.get("search"),
                split_list_value(raw_columns) if raw_columns is not None else None,
            )

        if "date_column" in values:
            builder.with_date_column(values["date_column"])
        builder.with_date_range(values.get("date_after"), values.get("date_before"))

        if "totals_count" in values:
            builder.with_totals_count(values["totals_count"].strip().lower() not in _FALSE_TOKENS)

        for key, raw_value in values.items():
            if key in RESERVED_PARAM_NAMES:
                continue
            column, token = split_filter_key(key)
            if token is None:
                condition: Optional[FilterCondition] = FilterCondition.equal(raw_value)
            else:
                condition = FilterCondition.parse(token, raw_value)
            if condition is None:
                logger.debug("Dropping filter %r: unknown operator %r", column, token)
                continue
            builder.with_filter_conditions({column: condition})

        return builder.build()


class QueryParamsBuilder:
    """Fluent accumulator for `QueryParams`.

    Setters clamp values immediately; columns are checked against the
    allowlist in `build()` so the result does not depend on call order. A
    later call for the same field overwrites the earlier one; filters are keyed
    by column and operator.
    """

    def __init__(
        self,
        allowlist: Optional[Allowlist] = None,
        *,
        protection_enabled: bool = True,
    ):
        self._allowlist = allowlist
        self._protection_enabled = protection_enabled
        self._page = DEFAULT_PAGE
        self._page_size = DEFAULT_PAGE_SIZE
        self._sort_column = DEFAULT_SORT_COLUMN
        self._sort_direction = SortDirection.DESCENDING
        self._search: Optional[str] = None
        self._search_columns: Tuple[str, ...] = DEFAULT_SEARCH_COLUMNS
        self._date_column = DEFAULT_DATE_COLUMN
        self._date_after: Optional[datetime] = None
        self._date_before: Optional[datetime] = None
        self._filters: Dict[Tuple[str, FilterOperator], FilterCondition] = {}
        self._totals_count_enabled = True

    def with_pagination(self, page: Any = None, page_size: Any = None) -> QueryParamsBuilder:
        self._page = clamp_page(page)
        self._page_size = clamp_page_size(page_size)
        return self

    def with_sort(
        self,
        column: str,
        direction: Union[SortDirection, str, None] = None,
    ) -> QueryParamsBuilder:
        self._sort_column = column
        self._sort_direction = SortDirection.parse(direction)
        return self

    def with_search(
        self,
        term: Optional[str],
        columns: Optional[Iterable[str]] = None,
    ) -> QueryParamsBuilder:
        self._search = sanitize_search(term)
        self._search_columns = (
            DEFAULT_SEARCH_COLUMNS if columns is None else tuple(columns)
        )
        return self

    def with_date_range(
        self,
        after: Any = None,
        before: Any = None,
        column: Optional[str] = None,
    ) -> QueryParamsBuilder:
        self._date_after = parse_timestamp(after)
        self._date_before = parse_timestamp(before)
        if column is not None:
            self._date_column = column
        return self

    def with_date_column(self, column: str) -> QueryParamsBuilder:
        self._date_column = column
        return self

    def with_filter(self, column: str, value: Any) -> QueryParamsBuilder:
        return self.with_filter_conditions({column: FilterCondition.equal(value)})

    def with_filter_operator(
        self,
        column: str,
        operator: Union[FilterOperator, str],
        value: Any = None,
    ) -> QueryParamsBuilder:
        resolved = operator if isinstance(operator, FilterOperator) else FilterOperator.parse(operator)
        if resolved is None:
            logger.debug("Ignoring filter %r: unknown operator %r", column, operator)
            return self
        return self.with_filter_conditions({column: FilterCondition.of(resolved, value)})

    def with_filter_in(self, column: str, values: Iterable[Any]) -> QueryParamsBuilder:
        return self.with_filter_conditions({column: FilterCondition.in_list(values)})

    def with_filter_not_in(self, column: str, values: Iterable[Any]) -> QueryParamsBuilder:
        return self.with_filter_conditions({column: FilterCondition.not_in_list(values)})

    def with_filter_null(self, column: str) -> QueryParamsBuilder:
        return self.with_filter_conditions({column: FilterCondition.is_null()})

    def with_filter_not_null(self, column: str) -> QueryParamsBuilder:
        return self.with_filter_conditions({column: FilterCondition.is_not_null()})

    def with_filter_like(self, column: str, pattern: str) -> QueryParamsBuilder:
        return self.with_filter_conditions({column: FilterCondition.like(pattern)})

    def with_filter_not_like(self, column: str, pattern: str) -> QueryParamsBuilder:
        return self.with_filter_conditions({column: FilterCondition.not_like(pattern)})

    def with_filter_conditions(
        self,
        conditions: Union[Mapping[str, FilterCondition], Sequence[Tuple[str, FilterCondition]]],
    ) -> QueryParamsBuilder:
        items = conditions.items() if isinstance(conditions, Mapping) else conditions
        for column, condition in items:
            self._filters[(column, condition.operator)] = condition
        return self

    def with_totals_count(self, enabled: bool = True) -> QueryParamsBuilder:
        self._totals_count_enabled = bool(enabled)
        return self

    def disable_totals_count(self) -> QueryParamsBuilder:
        return self.with_totals_count(False)

    def disable_protection(self) -> QueryParamsBuilder:
        self._protection_enabled = False
        return self

    def build(self) -> QueryParams:
        """Validate columns and return the immutable params."""

        sort_column, sort_direction = self._sort_column, self._sort_direction
        if not self._is_safe(sort_column):
            logger.warning(
                "Invalid sort column %r, falling back to %r", sort_column, DEFAULT_SORT_COLUMN
            )
            sort_column, sort_direction = DEFAULT_SORT_COLUMN, SortDirection.DESCENDING

        date_column = self._date_column
        if not self._is_safe(date_column):
            logger.debug(
                "Invalid date column %r, falling back to %r", date_column, DEFAULT_DATE_COLUMN
            )
            date_column = DEFAULT_DATE_COLUMN

        search_columns: List[str] = []
        for column in self._search_columns:
            if column in search_columns:
                continue
            if not self._is_safe(column):
                logger.debug("Dropping search column %r", column)
                continue
            search_columns.append(column)

        filters: List[Tuple[str, FilterCondition]] = []
        for (column, _), condition in self._filters.items():
            if not self._is_safe(column):
                logger.debug("Dropping filter on unknown column %r", column)
                continue
            filters.append((column, condition))

        return QueryParams(
            page=self._page,
            page_size=self._page_size,
            sort_column=sort_column,
            sort_direction=sort_direction,
            search=self._search,
            search_columns=tuple(search_columns),
            date_column=date_column,
            date_after=self._date_after,
            date_before=self._date_before,
            filters=tuple(filters),
            totals_count_enabled=self._totals_count_enabled,
            protection_enabled=self._protection_enabled,
        )

    def _is_safe(self, column: Any) -> bool:
        return is_safe_identifier(column, self._allowlist, self._protection_enabled)


def normalize_flat_params(flat: FlatParams) -> Dict[str, str]:
    """Turn a mapping, pair sequence, or query string into `name -> text`.

    Repeated names keep the last value at the position of the first one.
    """

    if isinstance(flat, str):
        pairs: Iterable[Tuple[Any, Any]] = parse_qsl(flat.lstrip("?"), keep_blank_values=True)
    elif isinstance(flat, Mapping):
        pairs = flat.items()
    else:
        pairs = flat

    values: Dict[str, str] = {}
    for key, value in pairs:
        if value is None:
            continue
        values[str(key)] = value if isinstance(value, str) else str(value)
    return values


def clamp_page(raw: Any) -> int:
    """Parse a page number; anything below 1, unparsable or beyond `MAX_PAGE` becomes 1."""

    page = _parse_int(raw, DEFAULT_PAGE)
    if page > MAX_PAGE:
        return DEFAULT_PAGE
    return max(page, DEFAULT_PAGE)


def clamp_page_size(raw: Any) -> int:
    """Parse a page size and clamp it into the allowed range."""

    size = _parse_int(raw, DEFAULT_PAGE_SIZE)
    return min(max(size, MIN_PAGE_SIZE), MAX_PAGE_SIZE)


def sanitize_search(raw: Any) -> Optional[str]:
    """Truncate, strip disallowed characters, and drop empty search terms."""

    if raw is None:
        return None
    text = str(raw)[:MAX_SEARCH_LENGTH]
    cleaned = _SEARCH_DISALLOWED_RE.sub("", text).strip()
    return cleaned or None


def _parse_int(raw: Any, default: int) -> int:
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except ValueError:
        return default
