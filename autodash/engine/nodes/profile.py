from __future__ import annotations
from collections import Counter
from typing import Any, Dict, List, Mapping, MutableMapping, Optional
import logging
import math
import statistics

from ..core.types import (
    CATEGORICAL, COLUMN_TYPES, DATETIME, NUMERIC, TEXT, ColumnProfile, ColumnValues, Table,
)
from ..core.settings import AnalysisSettings, STANDARD
from ..core.state import _with_phase, _emit_callback
from ..core.constants import (
    _CATEGORICAL_MAX_UNIQUE, _CATEGORICAL_UNIQUE_RATIO, _DATETIME_TYPE_RATIO,
    _MAX_SAMPLE_VALUES, _NUMERIC_TYPE_RATIO,
)
from ..core.utils import to_datetime

logger = logging.getLogger(__name__)


def infer_column_type(table: Table, name: str, *, date_mode: str = "strict") -> str:
    """Classify a column from its non-null values.

    Numeric wins over datetime, so a column of plain years never becomes a
    date column even though the date parser would accept it.
    """
    column = table.column(name)
    values = column.non_null
    if not values:
        return TEXT
    total = len(values)

    numeric_hits = sum(1 for number in column.numbers if number is not None)
    if numeric_hits / total > _NUMERIC_TYPE_RATIO:
        return NUMERIC

    strict = date_mode == "strict"
    date_hits = sum(1 for value in values if to_datetime(value, strict=strict) is not None)
    if date_hits / total > _DATETIME_TYPE_RATIO:
        return DATETIME

    unique = len(set(values))
    if unique <= _CATEGORICAL_MAX_UNIQUE or unique / total < _CATEGORICAL_UNIQUE_RATIO:
        return CATEGORICAL
    return TEXT


def _numeric_stats(column: ColumnValues) -> Dict[str, Any]:
    values = sorted(column.finite_numbers())
    if not values:
        return {}
    count = len(values)
    # statistics.mean sums exactly, so the mean of finite values stays finite
    mean = statistics.mean(values)
    # deviations are taken on values scaled into [-1, 1] so squaring cannot overflow
    scale = max(abs(values[0]), abs(values[-1])) or 1.0
    std = statistics.pstdev([value / scale for value in values]) * scale
    if not (math.isfinite(mean) and math.isfinite(std)):
        logger.warning("numeric stats out of range", extra={"column": column.name})
        return {}
    return {
        "mean": mean,
        # upper median for even counts
        "median": values[count // 2],
        "min": values[0],
        "max": values[-1],
        "std": std,
    }


def _mode_stats(column: ColumnValues) -> Dict[str, Any]:
    counts = Counter(column.non_null)
    if not counts:
        return {}
    # most_common is a stable sort, so ties keep first-seen order
    mode, frequency = counts.most_common(1)[0]
    return {"mode": mode, "modeCount": frequency}


def _datetime_stats(column: ColumnValues, *, strict: bool) -> Dict[str, Any]:
    earliest = latest = None
    for raw in column.non_null:
        parsed = to_datetime(raw, strict=strict)
        if parsed is None:
            continue
        if earliest is None or parsed < earliest[0]:
            earliest = (parsed, raw)
        if latest is None or parsed > latest[0]:
            latest = (parsed, raw)
    if earliest is None or latest is None:
        return {}
    return {"min": earliest[1], "max": latest[1]}


def compute_column_stats(table: Table, name: str, inferred_type: str, *, date_mode: str = "strict") -> Dict[str, Any]:
    column = table.column(name)
    if inferred_type == NUMERIC:
        return _numeric_stats(column)
    if inferred_type in (CATEGORICAL, TEXT):
        return _mode_stats(column)
    if inferred_type == DATETIME:
        return _datetime_stats(column, strict=date_mode == "strict")
    return {}


def _sample_values(values: List[str]) -> List[str]:
    samples: List[str] = []
    seen = set()
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        samples.append(value)
        if len(samples) >= _MAX_SAMPLE_VALUES:
            break
    return samples


def profile_column(table: Table, name: str, settings: AnalysisSettings = STANDARD) -> ColumnProfile:
    column = table.column(name)
    values = column.non_null
    inferred = infer_column_type(table, name, date_mode=settings.date_mode)
    return ColumnProfile(
        name=name,
        inferred_type=inferred,
        unique_value_count=len(set(values)),
        null_count=column.null_count,
        non_null_count=len(values),
        sample_values=tuple(_sample_values(values)),
        stats=compute_column_stats(table, name, inferred, date_mode=settings.date_mode),
    )


def profile_table(table: Table, settings: AnalysisSettings = STANDARD) -> List[ColumnProfile]:
    return [profile_column(table, name, settings) for name in table.columns]


def profiles_by_type(profiles: List[ColumnProfile]) -> Mapping[str, List[ColumnProfile]]:
    grouped: Dict[str, List[ColumnProfile]] = {kind: [] for kind in COLUMN_TYPES}
    for profile in profiles:
        grouped[profile.inferred_type].append(profile)
    return grouped


def profile_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    table: Optional[Table] = state.get("table")
    if table is None:
        raise ValueError("profile requires 'table' in state. Upstream parse must set state['table'].")
    settings: AnalysisSettings = state.get("settings") or STANDARD

    profiles = profile_table(table, settings)
    grouped = profiles_by_type(profiles)
    logger.info(
        "profiled columns",
        extra={kind: len(items) for kind, items in grouped.items()},
    )

    payload = {
        "columnProfiles": [profile.to_dict() for profile in profiles],
        "typeCounts": {kind: len(items) for kind, items in grouped.items()},
        "numericParseFailures": {
            profile.name: table.column(profile.name).numeric_failures
            for profile in grouped[NUMERIC]
            if table.column(profile.name).numeric_failures
        },
    }
    update = _with_phase(state, "profile", payload, profiles=profiles)
    _emit_callback(state, "profile", payload)
    return update
