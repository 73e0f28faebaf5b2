"""Compilation of validated query params into parameterized SQL fragments.

The builder only records which clause groups are enabled. `build()` compiles
them from scratch in a fixed order (search, filters, date range, then custom
conditions in call order), so building twice yields identical output and
argument order always follows placeholder order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..ports.db_api.dialects import SQLiteDialect
from .contracts import DialectPort
from .defaults import DEFAULT_SORT_COLUMN
from .errors import InvalidIdentifierError, QueryCompilationError
from .filters import FilterCondition, FilterOperator, compile_filter
from .identifiers import Allowlist, is_safe_identifier, validate_identifier
from .params import QueryParams, SortDirection

logger = logging.getLogger(__name__)

# (column name, search placeholder) -> (column SQL, placeholder SQL or None).
ColumnMapper = Callable[[str, str], Tuple[str, Optional[str]]]


@dataclass(frozen=True)
class ComputedProperty:
    """Virtual column backed by an SQL expression.

    Attributes:
        expression: SQL used wherever the property name is referenced.
        joins: JOIN clauses the expression depends on. They are emitted only
            when the property is actually referenced.
        python_type: Value type, used for search casting and argument
            coercion. `None` means unknown.
    """

    expression: str
    joins: Tuple[str, ...] = ()
    python_type: Optional[type] = str


@dataclass(frozen=True)
class CompiledQuery:
    """SQL fragments and the ordered arguments that fill their placeholders.

    Fragments carry a leading space so they can be appended to a
    `SELECT ... FROM <source>` prefix. `joins` must be placed between the
    source and `where_sql`.
    """

    where_sql: str
    order_by_sql: str
    limit_offset_sql: str
    where_arguments: Tuple[Any, ...] = ()
    pagination_arguments: Tuple[Any, ...] = ()
    conditions: Tuple[str, ...] = ()
    joins: Tuple[str, ...] = ()

    @property
    def join_sql(self) -> str:
        return "".join(f" {join}" for join in self.joins)

    @property
    def sql(self) -> str:
        return f"{self.join_sql}{self.where_sql}{self.order_by_sql}{self.limit_offset_sql}"

    @property
    def arguments(self) -> List[Any]:
        return [*self.where_arguments, *self.pagination_arguments]


class ConditionState:
    """Mutable predicate and argument lists handed to custom conditions.

    Attributes:
        conditions: Predicates accumulated so far; all are AND-joined.
        arguments: Bound arguments in placeholder order.
        joins: JOIN clauses required so far, without duplicates.
    """

    def __init__(
        self,
        dialect: DialectPort,
        allowlist: Optional[Allowlist],
        protection_enabled: bool,
        table_prefix: Optional[str] = None,
        *,
        computed_properties: Optional[Mapping[str, ComputedProperty]] = None,
        column_validation_enabled: bool = True,
    ):
        self.dialect = dialect
        self.conditions: List[str] = []
        self.arguments: List[Any] = []
        self.joins: List[str] = []
        self._allowlist = allowlist
        self._protection_enabled = protection_enabled
        self._table_prefix = table_prefix
        self._computed = dict(computed_properties or {})
        self._column_validation_enabled = column_validation_enabled

    def has_column(self, name: str) -> bool:
        """Return whether `name` is a computed property or would pass validation."""

        if name in self._computed:
            return True
        return is_safe_identifier(name, self._membership_allowlist(), self._protection_enabled)

    def python_type(self, name: str) -> Optional[type]:
        """Known value type of a column or computed property."""

        prop = self._computed.get(name)
        if prop is not None:
            return prop.python_type
        return self._allowlist.type_of(name) if self._allowlist is not None else None

    def placeholder(self) -> str:
        """Placeholder for the next argument to be added."""

        return self.dialect.placeholder(len(self.arguments) + 1)

    def add_argument(self, value: Any) -> str:
        """Bind `value` and return the placeholder that refers to it."""

        placeholder = self.placeholder()
        self.arguments.append(value)
        return placeholder

    def add_condition(self, sql: str) -> None:
        self.conditions.append(sql)

    def add_join(self, clause: str) -> None:
        if clause not in self.joins:
            self.joins.append(clause)

    def column(self, name: str, *, field_name: Optional[str] = None) -> str:
        """Return the SQL for a column reference.

        Computed properties resolve to their expression and activate their
        joins. Other names are validated, then quoted with the table prefix
        if one is set.

        Raises:
            InvalidIdentifierError: If protection is enabled and `name` fails
                validation.
        """

        prop = self._computed.get(name)
        if prop is not None:
            for clause in prop.joins:
                self.add_join(clause)
            return prop.expression

        identifier = validate_identifier(
            name, self._membership_allowlist(), self._protection_enabled, field_name=field_name
        )
        return self.quote(identifier.name)

    def quote(self, name: str) -> str:
        if self._table_prefix:
            return f"{self.dialect.q(self._table_prefix)}.{self.dialect.q(name)}"
        return self.dialect.q(name)

    def _membership_allowlist(self) -> Optional[Allowlist]:
        return self._allowlist if self._column_validation_enabled else None


ConditionCallback = Callable[[ConditionState], None]


class QueryBuilder:
    """Fluent compiler from `QueryParams` to a `CompiledQuery`.

    Example:
        >>> compiled = (
        ...     QueryBuilder(params, allowlist, PostgresDialect())
        ...     .with_computed_property(
        ...         "customer_name",
        ...         '"customers"."name"',
        ...         joins=['LEFT JOIN "customers" ON "customers"."id" = "base_query"."customer_id"'],
        ...     )
        ...     .with_table_prefix("base_query")
        ...     .with_defaults()
        ...     .build()
        ... )
    """

    def __init__(
        self,
        params: QueryParams,
        allowlist: Optional[Allowlist] = None,
        dialect: Optional[DialectPort] = None,
    ):
        self.params = params
        self.allowlist = allowlist
        self.dialect: DialectPort = dialect or SQLiteDialect()
        self._protection_enabled = params.protection_enabled
        self._column_validation_enabled = True
        self._table_prefix: Optional[str] = None
        self._search_enabled = False
        self._filters_enabled = False
        self._date_range_enabled = False
        self._custom: List[ConditionCallback] = []
        self._computed: Dict[str, ComputedProperty] = {}
        self._mappers: Dict[str, ColumnMapper] = {}

    def with_search(self) -> QueryBuilder:
        self._search_enabled = True
        return self

    def with_filters(self) -> QueryBuilder:
        self._filters_enabled = True
        return self

    def with_date_range(self) -> QueryBuilder:
        self._date_range_enabled = True
        return self

    def with_defaults(self) -> QueryBuilder:
        """Enable search, filters and date range."""

        return self.with_search().with_filters().with_date_range()

    def with_computed_property(
        self,
        name: str,
        expression: str,
        *,
        joins: Sequence[str] = (),
        python_type: Optional[type] = str,
    ) -> QueryBuilder:
        """Register a virtual column usable wherever a column name is.

        The expression is trusted and never validated. Its joins are added to
        the compiled query only when search, a filter, the date range or the
        sort actually references `name`. Inside a paginated query the joins
        run against the `base_query` CTE, so they should reference
        `base_query` rather than the original table.

        Args:
            name: Name used in search columns, filter keys and sort.
            expression: SQL producing the value.
            joins: JOIN clauses the expression needs, in order.
            python_type: Value type; non-text types are cast to text when
                searched and drive argument coercion in filters.
        """

        self._computed[name] = ComputedProperty(expression, tuple(joins), python_type)
        return self

    def map_column(self, column: str, mapper: ColumnMapper) -> QueryBuilder:
        """Override how `column` is rendered in the search clause.

        `mapper(column, placeholder)` returns the SQL to match against and
        optionally a replacement for the placeholder expression, which must
        still reference `placeholder` exactly once. A mapped column skips
        identifier validation.
        """

        self._mappers[column] = mapper
        return self

    def with_condition(
        self,
        column: str,
        operator: Union[FilterOperator, str],
        value: Any = None,
    ) -> QueryBuilder:
        """Add one filter that is not part of the params.

        The column is validated like any filter column; the value is bound.
        """

        resolved = operator if isinstance(operator, FilterOperator) else FilterOperator.parse(operator)
        if resolved is None:
            raise ValueError(f"Unknown filter operator: {operator!r}")
        condition = FilterCondition.of(resolved, value)

        def apply(state: ConditionState) -> None:
            self._add_filter(state, column, condition)

        self._custom.append(apply)
        return self

    def with_raw_condition(self, sql: str, arguments: Sequence[Any] = ()) -> QueryBuilder:
        """Append `sql` verbatim as one predicate, binding `arguments` after it.

        Nothing in `sql` is validated. Placeholders in it must match the
        dialect and the current argument position; `build()` rejects a count
        mismatch.
        """

        def apply(state: ConditionState) -> None:
            state.add_condition(sql)
            state.arguments.extend(arguments)

        self._custom.append(apply)
        return self

    def with_combined_conditions(self, callback: ConditionCallback) -> QueryBuilder:
        """Let `callback` append predicates and arguments to the state directly."""

        self._custom.append(callback)
        return self

    def with_table_prefix(self, prefix: str) -> QueryBuilder:
        """Qualify generated column references as `"prefix"."column"`."""

        self._table_prefix = prefix
        return self

    def disable_protection(self) -> QueryBuilder:
        self._protection_enabled = False
        return self

    def enable_protection(self) -> QueryBuilder:
        self._protection_enabled = True
        return self

    def disable_column_validation(self) -> QueryBuilder:
        """Stop checking allowlist membership; name and system-name checks remain."""

        self._column_validation_enabled = False
        return self

    def enable_column_validation(self) -> QueryBuilder:
        self._column_validation_enabled = True
        return self

    def build(self) -> CompiledQuery:
        """Compile the enabled clause groups.

        Raises:
            InvalidIdentifierError: If protection is enabled and a search,
                filter or date column fails validation.
            QueryCompilationError: If placeholders and arguments disagree.
        """

        state = ConditionState(
            self.dialect,
            self.allowlist,
            self._protection_enabled,
            self._table_prefix,
            computed_properties=self._computed,
            column_validation_enabled=self._column_validation_enabled,
        )

        if self._search_enabled:
            self._add_search(state)
        if self._filters_enabled:
            for column, condition in self.params.filters:
                self._add_filter(state, column, condition)
        if self._date_range_enabled:
            self._add_date_range(state)
        for callback in self._custom:
            callback(state)

        where_sql = f" WHERE {' AND '.join(state.conditions)}" if state.conditions else ""
        where_arguments = tuple(state.arguments)

        order_by_sql = self._order_by(state)

        next_index = len(where_arguments) + 1
        limit_offset_sql = (
            f" LIMIT {self.dialect.placeholder(next_index)}"
            f" OFFSET {self.dialect.placeholder(next_index + 1)}"
        )
        pagination_arguments = (self.params.page_size, self.params.offset)

        compiled = CompiledQuery(
            where_sql=where_sql,
            order_by_sql=order_by_sql,
            limit_offset_sql=limit_offset_sql,
            where_arguments=where_arguments,
            pagination_arguments=pagination_arguments,
            conditions=tuple(state.conditions),
            joins=tuple(state.joins),
        )
        self._check_arguments(compiled)
        return compiled

    def _add_search(self, state: ConditionState) -> None:
        term = self.params.search
        if not term or not term.strip() or not self.params.search_columns:
            return

        pattern = f"%{term}%"
        predicates = []
        for column in self.params.search_columns:
            placeholder = state.add_argument(pattern)
            mapper = self._mappers.get(column)
            if mapper is not None:
                column_sql, mapped_placeholder = mapper(column, placeholder)
                placeholder = mapped_placeholder or placeholder
            else:
                column_sql = state.column(column, field_name="search_columns")
            python_type = state.python_type(column)
            if python_type is not None and not issubclass(python_type, str):
                column_sql = self.dialect.cast_text(column_sql)
            predicates.append(f"LOWER({column_sql}) LIKE LOWER({placeholder})")
        state.add_condition(f"({' OR '.join(predicates)})")

    def _add_filter(self, state: ConditionState, column: str, condition: FilterCondition) -> None:
        column_sql = state.column(column, field_name="filters")
        compiled = compile_filter(
            column_sql,
            condition,
            self.dialect,
            len(state.arguments) + 1,
            python_type=state.python_type(column),
        )
        state.add_condition(compiled.sql)
        state.arguments.extend(compiled.arguments)

    def _add_date_range(self, state: ConditionState) -> None:
        after, before = self.params.date_after, self.params.date_before
        if after is None and before is None:
            return

        column_sql = state.column(self.params.date_column, field_name="date_column")
        bounds = []
        if after is not None:
            bounds.append(f"{column_sql} >= {state.add_argument(self.dialect.adapt_timestamp(after))}")
        if before is not None:
            bounds.append(f"{column_sql} <= {state.add_argument(self.dialect.adapt_timestamp(before))}")
        state.add_condition(" AND ".join(bounds))

    def _order_by(self, state: ConditionState) -> str:
        try:
            column_sql = state.column(self.params.sort_column, field_name="sort_column")
            direction = self.params.sort_direction
        except InvalidIdentifierError as exc:
            logger.warning("%s Sorting by %r instead.", exc, DEFAULT_SORT_COLUMN)
            column_sql, direction = state.quote(DEFAULT_SORT_COLUMN), SortDirection.DESCENDING
        return f" ORDER BY {column_sql} {direction.sql}"

    def _check_arguments(self, compiled: CompiledQuery) -> None:
        expected = self.dialect.count_placeholders(compiled.sql)
        actual = len(compiled.arguments)
        if expected != actual:
            raise QueryCompilationError(
                f"Compiled SQL references {expected} placeholder(s) "
                f"but {actual} argument(s) were bound: {compiled.sql!r}"
            )


def build_default_query(
    params: QueryParams,
    allowlist: Optional[Allowlist] = None,
    dialect: Optional[DialectPort] = None,
) -> CompiledQuery:
    """Compile params with search, filters and date range enabled."""

    return QueryBuilder(params, allowlist, dialect).with_defaults().build()
