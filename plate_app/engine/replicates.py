"""Replicate grouping and aggregation helpers."""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Dict, Iterable, List, Sequence

import numpy as np

from plate_app.engine.well_model import Curve, Well, split_well_id

__all__ = [
    "replicate_key",
    "group_replicates",
    "average_curves",
    "raw_analysis",
    "average_analysis",
]


def replicate_key(well: Well | str) -> str:
    """Positional label shared by replicate wells, ignoring the plate index."""

    if isinstance(well, Well):
        return well.label
    return split_well_id(well)[1]


def group_replicates(
    wells: Iterable[Well],
    *,
    key_func: Callable[[Well], str] | None = None,
) -> "OrderedDict[str, List[Well]]":
    """Partition ``wells`` into replicate groups.

    Groups appear in first-occurrence order of their label and keep the
    relative order of their members.
    """

    groups: "OrderedDict[str, List[Well]]" = OrderedDict()
    for well in wells:
        key = key_func(well) if key_func is not None else replicate_key(well)
        groups.setdefault(key, []).append(well)
    return groups


def average_curves(curves: Sequence[Curve]) -> Curve:
    """Average equal-length curves point by point.

    Empty curves are skipped and ``x`` is taken from the first contributing
    curve. The x grids are assumed to be aligned already; only their lengths
    are checked.
    """

    members = [curve for curve in curves if curve is not None and not curve.is_empty]
    if not members:
        return Curve.empty()

    ref_x = np.asarray(members[0].x, dtype=float)
    for other in members[1:]:
        if np.asarray(other.y).size != ref_x.size:
            raise ValueError("Curves must share identical lengths for averaging")

    stack = np.vstack([np.asarray(curve.y, dtype=float) for curve in members])
    return Curve(x=ref_x.copy(), y=np.mean(stack, axis=0))


def raw_analysis(wells: Sequence[Well]) -> List[Dict[str, Any]]:
    return [{**well.analysis, "id": well.id} for well in wells]


def average_analysis(wells: Sequence[Well]) -> Dict[str, float]:
    collected: "OrderedDict[str, List[float]]" = OrderedDict()
    for well in wells:
        for key, value in well.analysis.items():
            collected.setdefault(key, []).append(value)
    return {key: float(np.mean(values)) for key, values in collected.items()}
