"""Exception types raised by query compilation."""

from __future__ import annotations

from typing import Optional


class PaginatedQueryError(Exception):
    """Base class for errors raised by this package."""


class InvalidIdentifierError(PaginatedQueryError, ValueError):
    """A column or table name failed validation while protection is enabled."""

    def __init__(
        self,
        identifier: str,
        reason: str,
        *,
        field: Optional[str] = None,
    ) -> None:
        self.identifier = identifier
        self.reason = reason
        self.field = field
        where = f" in {field}" if field else ""
        super().__init__(f"Invalid identifier {identifier!r}{where}: {reason}.")


class QueryCompilationError(PaginatedQueryError, RuntimeError):
    """Compiled SQL and bound arguments are inconsistent."""
