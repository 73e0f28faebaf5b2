"""Concrete SQL dialect implementations for query compilation."""

from __future__ import annotations

import re
from datetime import datetime, timezone

_LITERAL_RE = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|`(?:[^`]|``)*`")
_DOLLAR_RE = re.compile(r"\$(\d+)")


class Dialect:
    """Base dialect that defines SQL quoting and placeholder behavior."""

    name: str = "generic"
    paramstyle: str = "qmark"
    quote_char: str = '"'
    typed_arguments: bool = False

    def q(self, ident: str) -> str:
        """Quote SQL identifier, one dotted part at a time."""

        quote = self.quote_char
        return ".".join(
            f"{quote}{part.replace(quote, quote * 2)}{quote}" for part in ident.split(".")
        )

    def placeholder(self, index: int) -> str:
        """Return the placeholder for the 1-based argument position."""

        if self.paramstyle == "qmark":
            return "?"
        if self.paramstyle == "dollar":
            return f"${index}"
        if self.paramstyle == "format":
            return "%s"
        raise ValueError(f"Unsupported paramstyle: {self.paramstyle}")

    def count_placeholders(self, sql: str) -> int:
        """Count argument slots referenced by SQL text.

        Quoted literals and identifiers are ignored. For numbered styles the
        highest index is returned.
        """

        bare = _LITERAL_RE.sub("", sql)
        if self.paramstyle == "qmark":
            return bare.count("?")
        if self.paramstyle == "dollar":
            indexes = [int(match) for match in _DOLLAR_RE.findall(bare)]
            return max(indexes, default=0)
        if self.paramstyle == "format":
            return bare.replace("%%", "").count("%s")
        raise ValueError(f"Unsupported paramstyle: {self.paramstyle}")

    def adapt_timestamp(self, value: datetime) -> object:
        """Return the bound form of a UTC timestamp."""

        return value

    def cast_text(self, expression: str) -> str:
        """Render `expression` as text so it can be pattern-matched."""

        return f"CAST({expression} AS TEXT)"


class SQLiteDialect(Dialect):
    """SQLite dialect (`?` parameters, timestamps bound as UTC text)."""

    name = "sqlite"
    paramstyle = "qmark"
    quote_char = '"'

    def adapt_timestamp(self, value: datetime) -> object:
        # Same layout as CURRENT_TIMESTAMP so text comparison orders correctly.
        return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class PostgresDialect(Dialect):
    """PostgreSQL dialect (`$n` numbered parameters, typed arguments)."""

    name = "postgres"
    paramstyle = "dollar"
    quote_char = '"'
    typed_arguments = True


class MySQLDialect(Dialect):
    """MySQL dialect (`%s` positional parameters, backtick quoting)."""

    name = "mysql"
    paramstyle = "format"
    quote_char = "`"

    def adapt_timestamp(self, value: datetime) -> object:
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def cast_text(self, expression: str) -> str:
        return f"CAST({expression} AS CHAR)"
