"""Public core API for parameter validation, query compilation, and pagination."""

from .errors import InvalidIdentifierError, PaginatedQueryError, QueryCompilationError
from .filters import CompiledFilter, FilterCondition, FilterOperator, compile_filter
from .identifiers import (
    Allowlist,
    SafeIdentifier,
    is_blocked_identifier,
    is_safe_identifier,
    validate_identifier,
)
from .models import row_to_model
from .params import QueryParams, QueryParamsBuilder, SortDirection
from .query_builder import (
    CompiledQuery,
    ComputedProperty,
    ConditionState,
    QueryBuilder,
    build_default_query,
)
from .pagination import PaginatedQuery, PaginatedResponse, fetch_paginated, paginated_query
from .pagination_async import AsyncPaginatedQuery, afetch_paginated, async_paginated_query

__all__ = [
    "Allowlist",
    "AsyncPaginatedQuery",
    "CompiledFilter",
    "CompiledQuery",
    "ComputedProperty",
    "ConditionState",
    "FilterCondition",
    "FilterOperator",
    "InvalidIdentifierError",
    "PaginatedQuery",
    "PaginatedQueryError",
    "PaginatedResponse",
    "QueryBuilder",
    "QueryCompilationError",
    "QueryParams",
    "QueryParamsBuilder",
    "SafeIdentifier",
    "SortDirection",
    "afetch_paginated",
    "async_paginated_query",
    "build_default_query",
    "compile_filter",
    "fetch_paginated",
    "is_blocked_identifier",
    "is_safe_identifier",
    "paginated_query",
    "row_to_model",
    "validate_identifier",
]
