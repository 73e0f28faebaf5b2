"""Filter operators, filter conditions, and their SQL compilation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Tuple

from .coercion import coerce_text
from .contracts import DialectPort

_FILTER_KEY_RE = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<op>[^\[\]]*)\]$")


class FilterOperator(str, Enum):
    """Supported filter operators, valued by their query-string token."""

    EQUAL = "eq"
    NOT_EQUAL = "ne"
    GREATER_THAN = "gt"
    GREATER_OR_EQUAL = "gte"
    LESS_THAN = "lt"
    LESS_OR_EQUAL = "lte"
    IN = "in"
    NOT_IN = "nin"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    LIKE = "like"
    NOT_LIKE = "nlike"

    @property
    def sql(self) -> str:
        return _OPERATOR_SQL[self]

    @property
    def takes_value(self) -> bool:
        return self not in (FilterOperator.IS_NULL, FilterOperator.IS_NOT_NULL)

    @property
    def takes_many(self) -> bool:
        return self in (FilterOperator.IN, FilterOperator.NOT_IN)

    @classmethod
    def parse(cls, token: str) -> Optional[FilterOperator]:
        """Resolve a query-string operator token, or `None` if unknown."""

        return _OPERATOR_ALIASES.get(token.strip().lower())


_OPERATOR_SQL = {
    FilterOperator.EQUAL: "=",
    FilterOperator.NOT_EQUAL: "!=",
    FilterOperator.GREATER_THAN: ">",
    FilterOperator.GREATER_OR_EQUAL: ">=",
    FilterOperator.LESS_THAN: "<",
    FilterOperator.LESS_OR_EQUAL: "<=",
    FilterOperator.IN: "IN",
    FilterOperator.NOT_IN: "NOT IN",
    FilterOperator.IS_NULL: "IS NULL",
    FilterOperator.IS_NOT_NULL: "IS NOT NULL",
    FilterOperator.LIKE: "LIKE",
    FilterOperator.NOT_LIKE: "NOT LIKE",
}

_OPERATOR_ALIASES = {op.value: op for op in FilterOperator}
_OPERATOR_ALIASES.update(
    {
        "equal": FilterOperator.EQUAL,
        "neq": FilterOperator.NOT_EQUAL,
        "not_equal": FilterOperator.NOT_EQUAL,
        "not_in": FilterOperator.NOT_IN,
        "null": FilterOperator.IS_NULL,
        "not_null": FilterOperator.IS_NOT_NULL,
        "not_like": FilterOperator.NOT_LIKE,
    }
)


@dataclass(frozen=True)
class FilterCondition:
    """One operator and the text value(s) it compares against.

    Attributes:
        operator: Comparison operator.
        values: Zero values for `IS [NOT] NULL`, any number for `[NOT] IN`,
            exactly one otherwise.
    """

    operator: FilterOperator
    values: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.operator.takes_value:
            object.__setattr__(self, "values", ())
            return
        if any(value is None for value in self.values):
            raise ValueError(
                f"Operator {self.operator.value!r} cannot compare against None; "
                "use an is_null / is_not_null condition instead."
            )
        values = tuple(str(value) for value in self.values)
        if not self.operator.takes_many and len(values) != 1:
            raise ValueError(
                f"Operator {self.operator.value!r} expects exactly one value, "
                f"got {len(values)}."
            )
        object.__setattr__(self, "values", values)

    @property
    def value(self) -> Optional[str]:
        """Single value for scalar operators."""

        return self.values[0] if self.values else None

    @classmethod
    def of(cls, operator: FilterOperator, value: Any = None) -> FilterCondition:
        """Build a condition from an operator and a scalar or list value."""

        if not operator.takes_value:
            return cls(operator)
        if operator.takes_many:
            if isinstance(value, str):
                return cls(operator, split_list_value(value))
            return cls(operator, tuple(value or ()))
        return cls(operator, (value,))

    @classmethod
    def parse(cls, token: str, raw_value: str) -> Optional[FilterCondition]:
        """Build a condition from the `field[op]=value` wire format."""

        operator = FilterOperator.parse(token)
        if operator is None:
            return None
        return cls.of(operator, raw_value)

    @classmethod
    def equal(cls, value: Any) -> FilterCondition:
        return cls(FilterOperator.EQUAL, (value,))

    @classmethod
    def not_equal(cls, value: Any) -> FilterCondition:
        return cls(FilterOperator.NOT_EQUAL, (value,))

    @classmethod
    def greater_than(cls, value: Any) -> FilterCondition:
        return cls(FilterOperator.GREATER_THAN, (value,))

    @classmethod
    def greater_or_equal(cls, value: Any) -> FilterCondition:
        return cls(FilterOperator.GREATER_OR_EQUAL, (value,))

    @classmethod
    def less_than(cls, value: Any) -> FilterCondition:
        return cls(FilterOperator.LESS_THAN, (value,))

    @classmethod
    def less_or_equal(cls, value: Any) -> FilterCondition:
        return cls(FilterOperator.LESS_OR_EQUAL, (value,))

    @classmethod
    def in_list(cls, values: Iterable[Any]) -> FilterCondition:
        return cls(FilterOperator.IN, tuple(values))

    @classmethod
    def not_in_list(cls, values: Iterable[Any]) -> FilterCondition:
        return cls(FilterOperator.NOT_IN, tuple(values))

    @classmethod
    def is_null(cls) -> FilterCondition:
        return cls(FilterOperator.IS_NULL)

    @classmethod
    def is_not_null(cls) -> FilterCondition:
        return cls(FilterOperator.IS_NOT_NULL)

    @classmethod
    def like(cls, pattern: str) -> FilterCondition:
        return cls(FilterOperator.LIKE, (pattern,))

    @classmethod
    def not_like(cls, pattern: str) -> FilterCondition:
        return cls(FilterOperator.NOT_LIKE, (pattern,))


@dataclass(frozen=True)
class CompiledFilter:
    """SQL predicate for one filter plus the arguments it consumed."""

    sql: str
    arguments: Tuple[Any, ...]
    next_index: int


def split_list_value(raw: str) -> Tuple[str, ...]:
    """Split a comma-separated list, trimming items and dropping empty ones."""

    return tuple(item.strip() for item in raw.split(",") if item.strip())


def split_filter_key(key: str) -> Tuple[str, Optional[str]]:
    """Split `field[op]` into `(field, op)`; plain keys return `(key, None)`."""

    match = _FILTER_KEY_RE.match(key)
    if match is None:
        return key, None
    return match.group("field"), match.group("op")


def compile_filter(
    column_sql: str,
    condition: FilterCondition,
    dialect: DialectPort,
    next_index: int,
    *,
    python_type: Optional[type] = None,
) -> CompiledFilter:
    """Compile one filter into a predicate with positional arguments.

    Args:
        column_sql: Already validated and quoted column expression.
        condition: Operator and values.
        dialect: Placeholder style provider.
        next_index: 1-based position of the next placeholder.
        python_type: Column type used to coerce text values for dialects
            that bind typed arguments.

    Returns:
        The predicate, its arguments, and the next free placeholder index.
    """

    op = condition.operator

    if not op.takes_value:
        return CompiledFilter(f"{column_sql} {op.sql}", (), next_index)

    def bind(value: str) -> Any:
        if dialect.typed_arguments and op not in (FilterOperator.LIKE, FilterOperator.NOT_LIKE):
            return coerce_text(value, python_type)
        return value

    if op.takes_many:
        values = list(condition.values)
        if not values:
            return CompiledFilter("1=0" if op is FilterOperator.IN else "1=1", (), next_index)

        placeholders = [dialect.placeholder(next_index + offset) for offset in range(len(values))]
        return CompiledFilter(
            f"{column_sql} {op.sql} ({', '.join(placeholders)})",
            tuple(bind(value) for value in values),
            next_index + len(values),
        )

    return CompiledFilter(
        f"{column_sql} {op.sql} {dialect.placeholder(next_index)}",
        (bind(condition.values[0]),),
        next_index + 1,
    )
