"""Numeric-aware ordering of well ids and labels."""

from __future__ import annotations

import re
from typing import Any, List, Mapping, Sequence, Tuple, TypeVar

__all__ = ["well_sort_key", "sort_wells", "field_value"]

_RUNS = re.compile(r"\d+|\D+")

T = TypeVar("T")


def well_sort_key(value: Any) -> Tuple[Tuple[int, Any], ...]:
    """Sort key for a well id or label.

    Values that parse fully as integers sort numerically; anything else is
    split into digit and non-digit runs so that ``A2`` sorts before ``A10``.
    Digit runs sort ahead of text runs at the same position.
    """

    text = str(value).strip()
    if text.lstrip("+-").isdigit():
        return ((0, int(text)),)
    return tuple((0, int(run)) if run.isdigit() else (1, run) for run in _RUNS.findall(text))


def field_value(well: Any, path: str) -> Any:
    if isinstance(well, Mapping):
        return well.get(path)
    return getattr(well, path)


def sort_wells(wells: Sequence[T], path: str = "id") -> List[T]:
    """Return ``wells`` sorted by ``path`` (``"id"`` or ``"label"``); stable."""

    if path not in ("id", "label"):
        raise ValueError(f"Wells can only be sorted by 'id' or 'label', got {path!r}")
    return sorted(wells, key=lambda well: well_sort_key(field_value(well, path)))
