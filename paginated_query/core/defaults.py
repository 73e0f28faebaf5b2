"""Default values and fixed limits applied to incoming query parameters."""

from __future__ import annotations

DEFAULT_PAGE = 1
MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = MIN_PAGE_SIZE

# Largest page whose OFFSET still fits a signed 64-bit integer.
MAX_PAGE = (2**63 - 1) // MAX_PAGE_SIZE + 1

DEFAULT_SORT_COLUMN = "created_at"
DEFAULT_DATE_COLUMN = "created_at"
DEFAULT_SEARCH_COLUMNS = ("name", "description")

MAX_SEARCH_LENGTH = 100

RESERVED_PARAM_NAMES = frozenset(
    {
        "page",
        "page_size",
        "sort_column",
        "sort_direction",
        "search",
        "search_columns",
        "date_column",
        "date_after",
        "date_before",
        "totals_count",
    }
)

# Matched case-insensitively against the start of an identifier.
BLOCKED_IDENTIFIER_PREFIXES = (
    "pg_",
    "information_schema",
    "sqlite_",
)

# System columns of PostgreSQL and SQLite.
BLOCKED_IDENTIFIER_NAMES = frozenset(
    {
        "oid",
        "tableoid",
        "xmin",
        "xmax",
        "cmin",
        "cmax",
        "ctid",
        "rowid",
        "_rowid_",
    }
)

BASE_QUERY_ALIAS = "base_query"
COUNT_COLUMN = "__count"
