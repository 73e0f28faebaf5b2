"""Identifier validation against allowlists and reserved system names.

Every column that reaches generated SQL passes through `validate_identifier`
unless the caller explicitly disabled protection. Quoting is left to the
dialect; this module only decides whether a name may be used at all.
"""

from __future__ import annotations

import re
import types
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from functools import lru_cache
from typing import Any, Dict, Optional, Type, Union, get_args, get_origin, get_type_hints

from .defaults import BLOCKED_IDENTIFIER_NAMES, BLOCKED_IDENTIFIER_PREFIXES
from .errors import InvalidIdentifierError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_]+$")

ColumnsInput = Union[Iterable[str], Mapping[str, Any]]


@dataclass(frozen=True)
class SafeIdentifier:
    """A column name that passed validation (or was explicitly trusted)."""

    name: str
    checked: bool = True

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Allowlist:
    """Closed set of column names a query may reference.

    Attributes:
        columns: Permitted column names.
        column_types: Optional Python types per column, used for argument
            coercion on dialects that need typed arguments.
    """

    columns: frozenset[str] = frozenset()
    column_types: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, columns: ColumnsInput) -> Allowlist:
        """Build an allowlist from names, or from a `name -> type` mapping."""

        if isinstance(columns, Mapping):
            return cls(
                columns=frozenset(columns),
                column_types={
                    name: _unwrap_optional(tp)
                    for name, tp in columns.items()
                    if tp is not None
                },
            )
        return cls(columns=frozenset(columns))

    @classmethod
    def from_model(
        cls,
        model: Type[Any],
        extra_columns: ColumnsInput = (),
    ) -> Allowlist:
        """Derive an allowlist from a dataclass row type.

        Args:
            model: Dataclass describing the row shape.
            extra_columns: Additional known table columns, as names or as a
                `name -> type` mapping.
        """

        if not is_dataclass(model) or not isinstance(model, type):
            raise TypeError(f"{model!r} must be a dataclass type.")

        hints = _model_type_hints(model)
        column_types: Dict[str, Any] = {}
        names = []
        for model_field in fields(model):
            names.append(model_field.name)
            column_types[model_field.name] = _unwrap_optional(
                hints.get(model_field.name, model_field.type)
            )

        extra = cls.of(extra_columns)
        merged_types = dict(column_types)
        merged_types.update(extra.column_types)
        return cls(
            columns=frozenset(names) | extra.columns,
            column_types=merged_types,
        )

    def __contains__(self, name: object) -> bool:
        return name in self.columns

    def __len__(self) -> int:
        return len(self.columns)

    def type_of(self, name: str) -> Optional[Any]:
        """Return the known Python type of a column, if any."""

        tp = self.column_types.get(name)
        return tp if isinstance(tp, type) else None


def is_blocked_identifier(name: str) -> bool:
    """Return whether a name refers to a reserved system schema or column."""

    lowered = name.lower()
    if lowered in BLOCKED_IDENTIFIER_NAMES:
        return True
    return any(lowered.startswith(prefix) for prefix in BLOCKED_IDENTIFIER_PREFIXES)


def validate_identifier(
    name: Any,
    allowlist: Optional[Allowlist] = None,
    protection_enabled: bool = True,
    *,
    field_name: Optional[str] = None,
) -> SafeIdentifier:
    """Validate one identifier.

    Args:
        name: Candidate column name.
        allowlist: Permitted columns. `None` skips the membership check.
        protection_enabled: When false, the name is trusted verbatim.
        field_name: Logical parameter the name came from, used in errors.

    Returns:
        The validated identifier.

    Raises:
        InvalidIdentifierError: If any check fails.
    """

    if not protection_enabled:
        return SafeIdentifier(str(name), checked=False)

    if not isinstance(name, str) or not name:
        raise InvalidIdentifierError(str(name), "must be a non-empty string", field=field_name)
    if not _IDENTIFIER_RE.match(name):
        raise InvalidIdentifierError(
            name, "only letters, digits and underscores are allowed", field=field_name
        )
    if is_blocked_identifier(name):
        raise InvalidIdentifierError(name, "reserved system identifier", field=field_name)
    if allowlist is not None and name not in allowlist:
        raise InvalidIdentifierError(name, "unknown column", field=field_name)
    return SafeIdentifier(name)


def is_safe_identifier(
    name: Any,
    allowlist: Optional[Allowlist] = None,
    protection_enabled: bool = True,
) -> bool:
    """Non-raising form of `validate_identifier`."""

    try:
        validate_identifier(name, allowlist, protection_enabled)
    except InvalidIdentifierError:
        return False
    return True


@lru_cache(maxsize=None)
def _model_type_hints(cls: Type[Any]) -> dict[str, Any]:
    try:
        return dict(get_type_hints(cls))
    except Exception:
        return {}


def _unwrap_optional(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is Union or (hasattr(types, "UnionType") and origin is types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation
