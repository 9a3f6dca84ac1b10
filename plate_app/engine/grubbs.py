"""Grubbs outlier screening for replicate wells.

Each scalar analysis metric of a replicate group is screened on its own. The
wells flagged ``in_average`` form the evaluation set; each of them receives
the statistic ``|value - mean| / sd`` and fails when it exceeds the critical
value for the size of that set. Wells left out of the average still get an
entry carrying their raw value so the exclusion remains traceable.
"""

from __future__ import annotations

from collections import OrderedDict
import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import stats

from plate_app.engine.plate_config import resolve_outlier_config
from plate_app.engine.well_model import GrubbsResult, PlateSample, Well

__all__ = [
    "GRUBBS_CRITICAL_VALUES_95",
    "PASS",
    "FAIL",
    "NOT_EVALUATED",
    "critical_value",
    "grubbs_statistics",
    "evaluate_metric",
    "evaluate_sample",
]

logger = logging.getLogger(__name__)

PASS = "pass"
FAIL = "fail"
NOT_EVALUATED = "not_evaluated"

PASS_COLOR = "#3EFA44"
FAIL_COLOR = "#FA5D3E"
NOT_EVALUATED_COLOR = "#A9A9A9"

# One-sided 95% critical values keyed by sample size.
GRUBBS_CRITICAL_VALUES_95: Dict[int, float] = {
    3: 1.15,
    4: 1.463,
    5: 1.672,
    6: 1.822,
    7: 1.938,
    8: 2.032,
    9: 2.110,
    10: 2.176,
    11: 2.234,
    12: 2.285,
    13: 2.33,
    14: 2.37,
    15: 2.409,
    16: 2.44,
    17: 2.47,
    18: 2.504,
    19: 2.532,
    20: 2.557,
}


def _exact_critical_value(n: int, alpha: float) -> Optional[float]:
    if n < 3:
        return None
    t_value = stats.t.ppf(1.0 - alpha / n, n - 2)
    t_sq = t_value * t_value
    return float((n - 1) / math.sqrt(n) * math.sqrt(t_sq / (n - 2 + t_sq)))


def critical_value(n: int, *, method: str = "table", alpha: float = 0.05) -> Optional[float]:
    """Critical value for an evaluation set of ``n`` wells.

    ``method="table"`` looks the value up in :data:`GRUBBS_CRITICAL_VALUES_95`
    and returns ``None`` outside 3..20. ``method="exact"`` derives it from
    Student's t distribution for any ``n >= 3``.
    """

    if method == "table":
        return GRUBBS_CRITICAL_VALUES_95.get(int(n))
    if method == "exact":
        return _exact_critical_value(int(n), alpha)
    raise ValueError(f"Unsupported critical value method: {method}")


def grubbs_statistics(values: Sequence[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.size < 2:
        return np.zeros(arr.size, dtype=float)
    std = float(np.std(arr, ddof=1))
    if not np.isfinite(std) or std == 0.0:
        return np.zeros(arr.size, dtype=float)
    return np.abs(arr - float(np.mean(arr))) / std


def evaluate_metric(
    label: str,
    entries: Sequence[Tuple[str, Optional[float], bool]],
    *,
    method: str = "table",
    alpha: float = 0.05,
) -> Dict[str, GrubbsResult]:
    """Screen one metric across ``(well_id, value, in_average)`` entries."""

    evaluated = [(well_id, value) for well_id, value, included in entries if included and value is not None]
    crit = critical_value(len(evaluated), method=method, alpha=alpha)
    scores = grubbs_statistics([value for _, value in evaluated]) if crit is not None else None
    score_by_id = (
        {well_id: float(score) for (well_id, _), score in zip(evaluated, scores)}
        if scores is not None
        else {}
    )

    results: Dict[str, GrubbsResult] = OrderedDict()
    for well_id, value, included in entries:
        if not included:
            results[well_id] = GrubbsResult(
                label=label,
                verdict=NOT_EVALUATED,
                value=None,
                analysis_value=value,
                color=NOT_EVALUATED_COLOR,
                critical_value=crit,
            )
        elif well_id in score_by_id:
            score = score_by_id[well_id]
            failed = score > crit
            results[well_id] = GrubbsResult(
                label=label,
                verdict=FAIL if failed else PASS,
                value=score,
                analysis_value=value,
                color=FAIL_COLOR if failed else PASS_COLOR,
                critical_value=crit,
            )
        else:
            results[well_id] = GrubbsResult(
                label=label,
                verdict=None,
                value=None,
                analysis_value=value,
                color=None,
                critical_value=crit,
            )
    return results


def evaluate_sample(
    sample: PlateSample,
    wells_by_id: Mapping[str, Well],
    outlier: Mapping[str, Any] | bool | None = None,
) -> Optional[float]:
    """Replace the Grubbs results of every well entry of ``sample``.

    Returns the critical value for the number of wells currently in the
    average, which is also stored on the sample. A metric missing from some
    of those wells is screened over fewer values; the critical value behind
    each verdict is the one kept on its :class:`GrubbsResult`.
    """

    cfg = resolve_outlier_config(outlier)
    for entry in sample.wells:
        entry.tests = []

    included = [entry for entry in sample.wells if entry.in_average]
    sample.grubbs_critical_value = (
        critical_value(len(included), method=cfg["method"], alpha=cfg["alpha"])
        if cfg["enabled"]
        else None
    )
    if not cfg["enabled"]:
        return None

    metrics: List[str] = []
    for entry in sample.wells:
        well = wells_by_id.get(entry.id)
        if well is None:
            continue
        for key in well.analysis:
            if key not in metrics:
                metrics.append(key)

    for metric in metrics:
        entries = []
        for entry in sample.wells:
            well = wells_by_id.get(entry.id)
            value = well.analysis.get(metric) if well is not None else None
            entries.append((entry.id, value, entry.in_average))
        results = evaluate_metric(metric, entries, method=cfg["method"], alpha=cfg["alpha"])
        for entry in sample.wells:
            entry.tests.append(results[entry.id])
        failed = [well_id for well_id, result in results.items() if result.verdict == FAIL]
        if failed:
            logger.debug("Sample %s metric %s flags outliers: %s", sample.label, metric, failed)

    return sample.grubbs_critical_value
