"""Safe, parameterized pagination, search and filtering over SQL row sets."""

from .core import (
    Allowlist,
    AsyncPaginatedQuery,
    CompiledQuery,
    ComputedProperty,
    ConditionState,
    FilterCondition,
    FilterOperator,
    InvalidIdentifierError,
    PaginatedQuery,
    PaginatedQueryError,
    PaginatedResponse,
    QueryBuilder,
    QueryCompilationError,
    QueryParams,
    QueryParamsBuilder,
    SortDirection,
    afetch_paginated,
    async_paginated_query,
    build_default_query,
    fetch_paginated,
    paginated_query,
    validate_identifier,
)
from .ports.db_api import (
    AsyncDatabase,
    AsyncpgDatabase,
    Database,
    Dialect,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
)

__version__ = "0.1.0"

__all__ = [
    "Allowlist",
    "AsyncDatabase",
    "AsyncPaginatedQuery",
    "AsyncpgDatabase",
    "CompiledQuery",
    "ComputedProperty",
    "ConditionState",
    "Database",
    "Dialect",
    "FilterCondition",
    "FilterOperator",
    "InvalidIdentifierError",
    "MySQLDialect",
    "PaginatedQuery",
    "PaginatedQueryError",
    "PaginatedResponse",
    "PostgresDialect",
    "QueryBuilder",
    "QueryCompilationError",
    "QueryParams",
    "QueryParamsBuilder",
    "SQLiteDialect",
    "SortDirection",
    "afetch_paginated",
    "async_paginated_query",
    "build_default_query",
    "fetch_paginated",
    "paginated_query",
    "validate_identifier",
]
