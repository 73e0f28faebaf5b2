"""Shared core type aliases used across contracts, builders, and ports."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

Arguments = List[Any]
FlatParams = Union[Mapping[str, Any], Sequence[Tuple[str, Any]], str]

RowMapping = Mapping[str, Any]
Rows = List[RowMapping]
MaybeRow = Optional[RowMapping]
