"""Mapping of result rows onto dataclass record types."""

from __future__ import annotations

from dataclasses import fields, is_dataclass
from functools import lru_cache
from typing import Any, FrozenSet, Type, TypeVar

from .types import RowMapping

T = TypeVar("T")


def require_dataclass_model(cls: Type[Any]) -> None:
    """Validate that a class is a dataclass model."""

    if not isinstance(cls, type) or not is_dataclass(cls):
        raise TypeError(f"{getattr(cls, '__name__', cls)!r} must be a dataclass type.")


@lru_cache(maxsize=None)
def _init_field_names(cls: Type[Any]) -> FrozenSet[str]:
    return frozenset(f.name for f in fields(cls) if f.init)


def row_to_model(cls: Type[T], row: RowMapping) -> T:
    """Map one row mapping to a model instance.

    Keys without a matching dataclass field are ignored, so base queries may
    select more columns than the model declares.
    """

    names = _init_field_names(cls)
    return cls(**{key: value for key, value in row.items() if key in names})
