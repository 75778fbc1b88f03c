from __future__ import annotations
from typing import Any, Dict, List, MutableMapping, Sequence

from ..core.types import CATEGORICAL, DATETIME, NUMERIC, TEXT, ColumnProfile, CorrelationPair, Table
from ..core.settings import AnalysisSettings, STANDARD
from ..core.state import _with_phase, _emit_callback
from ..core.constants import (
    _HIGH_CARDINALITY_ABSOLUTE, _HIGH_CARDINALITY_RATIO, _MAX_INSIGHTS, _STRONG_CORRELATION_THRESHOLD,
)


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def is_high_cardinality(profile: ColumnProfile, row_count: int, rule: str = "absolute") -> bool:
    if rule == "ratio":
        return profile.unique_value_count > row_count * _HIGH_CARDINALITY_RATIO
    return profile.unique_value_count > _HIGH_CARDINALITY_ABSOLUTE


def summary_counts(
    table: Table,
    profiles: Sequence[ColumnProfile],
    correlations: Sequence[CorrelationPair],
    settings: AnalysisSettings = STANDARD,
) -> Dict[str, Any]:
    def _count(kind: str) -> int:
        return sum(1 for profile in profiles if profile.inferred_type == kind)

    return {
        "totalRows": table.row_count,
        "totalColumns": len(profiles),
        "numericColumns": _count(NUMERIC),
        "categoricalColumns": _count(CATEGORICAL),
        "dateColumns": _count(DATETIME),
        "textColumns": _count(TEXT),
        "correlationsFound": len(correlations),
        "strongCorrelations": sum(
            1 for pair in correlations if abs(pair.coefficient) > _STRONG_CORRELATION_THRESHOLD
        ),
        "missingDataColumns": sum(1 for profile in profiles if profile.null_count > 0),
        "highCardinalityColumns": sum(
            1 for profile in profiles
            if is_high_cardinality(profile, table.row_count, settings.high_cardinality)
        ),
        "droppedRows": table.dropped_rows,
    }


def summarize_insights(summary: Dict[str, Any]) -> List[str]:
    """Plain-language observations derived from the summary counts."""
    insights = [
        f"Your dataset contains {summary['totalRows']:,} rows and {summary['totalColumns']} columns."
    ]

    numeric = summary.get("numericColumns", 0)
    if numeric:
        insights.append(
            f"Found {numeric} numeric {_plural(numeric, 'column', 'columns')} for quantitative analysis."
        )
    categorical = summary.get("categoricalColumns", 0)
    if categorical:
        insights.append(
            f"Found {categorical} categorical {_plural(categorical, 'column', 'columns')} "
            "for grouping and segmentation."
        )
    dates = summary.get("dateColumns", 0)
    if dates:
        insights.append(f"Found {dates} date {_plural(dates, 'column', 'columns')} for time-based analysis.")
    missing = summary.get("missingDataColumns", 0)
    if missing:
        insights.append(
            f"{missing} {_plural(missing, 'column has', 'columns have')} missing values "
            "that may affect analysis."
        )
    high = summary.get("highCardinalityColumns", 0)
    if high:
        insights.append(
            f"{high} {_plural(high, 'column appears', 'columns appear')} to contain unique identifiers."
        )
    return insights[:_MAX_INSIGHTS]


def summarize_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    table: Table = state["table"]
    profiles: List[ColumnProfile] = state.get("profiles", [])
    correlations: List[CorrelationPair] = state.get("correlations", [])
    settings: AnalysisSettings = state.get("settings") or STANDARD

    summary = summary_counts(table, profiles, correlations, settings)
    insights = summarize_insights(summary)

    payload = {"summary": summary, "insights": insights}
    update = _with_phase(state, "summarize", payload, summary=summary, insights=insights)
    _emit_callback(state, "summarize", payload)
    return update
