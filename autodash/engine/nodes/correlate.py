from __future__ import annotations
from typing import Any, Dict, List, MutableMapping, Optional, Sequence, Tuple
import logging
import math

from ..core.types import NUMERIC, ColumnProfile, CorrelationPair, Table
from ..core.settings import AnalysisSettings, STANDARD
from ..core.state import _with_phase, _emit_callback
from ..core.constants import _CORRELATION_THRESHOLD, _MIN_CORRELATION_OBSERVATIONS

logger = logging.getLogger(__name__)


def pearson(xs: Sequence[float], ys: Sequence[float]) -> float:
    """Sum-based Pearson coefficient over the first ``min(len)`` elements.

    Returns 0 when either side has no variance. Each side is scaled into
    [-1, 1] first; the coefficient does not change and the sums stay finite.
    """
    count = min(len(xs), len(ys))
    if count < 2:
        return 0.0
    xs, ys = _unit_scaled(xs[:count]), _unit_scaled(ys[:count])
    sum_x = sum_y = sum_x2 = sum_y2 = sum_xy = 0.0
    for x, y in zip(xs, ys):
        sum_x += x
        sum_y += y
        sum_x2 += x * x
        sum_y2 += y * y
        sum_xy += x * y

    numerator = count * sum_xy - sum_x * sum_y
    denom_left = count * sum_x2 - sum_x * sum_x
    denom_right = count * sum_y2 - sum_y * sum_y
    if denom_left <= 0 or denom_right <= 0:
        return 0.0
    denominator = math.sqrt(denom_left * denom_right)
    if denominator == 0 or not math.isfinite(numerator / denominator):
        return 0.0
    return max(-1.0, min(1.0, numerator / denominator))


def _unit_scaled(values: Sequence[float]) -> List[float]:
    scale = max((abs(value) for value in values), default=0.0) or 1.0
    return [value / scale for value in values]


def _paired_vectors(table: Table, left: str, right: str) -> Tuple[List[float], List[float]]:
    xs: List[float] = []
    ys: List[float] = []
    for x, y in zip(table.column(left).numbers, table.column(right).numbers):
        if x is None or y is None:
            continue
        xs.append(x)
        ys.append(y)
    return xs, ys


def _positional_vectors(table: Table, left: str, right: str) -> Tuple[List[float], List[float]]:
    # Each column is filtered on its own; pearson() then truncates to the
    # shorter vector, so rows can pair up across different records.
    return table.column(left).finite_numbers(), table.column(right).finite_numbers()


def correlate_columns(
    table: Table,
    left: str,
    right: str,
    *,
    alignment: str = "paired",
) -> Optional[CorrelationPair]:
    """Correlate two numeric columns, or ``None`` when there is too little data."""
    if alignment == "positional":
        xs, ys = _positional_vectors(table, left, right)
    else:
        xs, ys = _paired_vectors(table, left, right)
    if len(xs) <= _MIN_CORRELATION_OBSERVATIONS or len(ys) <= _MIN_CORRELATION_OBSERVATIONS:
        return None
    coefficient = pearson(xs, ys)
    return CorrelationPair(
        column_a=left,
        column_b=right,
        coefficient=coefficient,
        sample_size=min(len(xs), len(ys)),
    )


def compute_correlations(
    table: Table,
    profiles: Sequence[ColumnProfile],
    settings: AnalysisSettings = STANDARD,
) -> List[CorrelationPair]:
    numeric = [profile.name for profile in profiles if profile.inferred_type == NUMERIC]
    pairs: List[CorrelationPair] = []
    for i, left in enumerate(numeric):
        for right in numeric[i + 1:]:
            pair = correlate_columns(table, left, right, alignment=settings.correlation_alignment)
            if pair is None:
                continue
            if abs(pair.coefficient) > _CORRELATION_THRESHOLD:
                pairs.append(pair)

    pairs.sort(key=lambda item: abs(item.coefficient), reverse=True)
    return pairs


def correlate_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    table: Table = state["table"]
    profiles: List[ColumnProfile] = state.get("profiles", [])
    settings: AnalysisSettings = state.get("settings") or STANDARD

    correlations = compute_correlations(table, profiles, settings)
    logger.info(
        "correlations computed",
        extra={"significant_pairs": len(correlations), "alignment": settings.correlation_alignment},
    )

    payload = {
        "alignment": settings.correlation_alignment,
        "threshold": _CORRELATION_THRESHOLD,
        "correlations": [pair.to_dict() for pair in correlations],
    }
    update = _with_phase(state, "correlate", payload, correlations=correlations)
    _emit_callback(state, "correlate", payload)
    return update
