from __future__ import annotations
from collections import Counter
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Sequence, Set
import base64
import io
import logging

from ..core.types import (
    CATEGORICAL, DATETIME, NUMERIC, ColumnProfile, CorrelationPair, Table, VisualizationSpec,
)
from ..core.settings import AnalysisSettings, STANDARD
from ..core.state import _with_phase, _emit_callback
from ..core.utils import _allocate_id, _get_pyplot, to_datetime
from ..core.constants import (
    _CATEGORY_BAR_MAX_GROUPS, _CATEGORY_BAR_MIN_GROUPS, _PIE_MAX_SLICES, _PIE_MAX_UNIQUE,
    _PIE_MIN_SLICES, _SCATTER_ROW_LIMIT, _TOP_N_LIMIT, _TOP_N_MAX_UNIQUE, _TOP_N_MIN_UNIQUE,
    _UNKNOWN_CATEGORY,
)

logger = logging.getLogger(__name__)

_BUCKET_FORMATS = {"month": "%Y-%m", "day": "%Y-%m-%d"}


def _column_sum(table: Table, name: str) -> float:
    return sum(table.column(name).finite_numbers())


def aggregate_by_category(table: Table, category: str, value: str) -> List[Dict[str, Any]]:
    """Sum ``value`` per ``category``; missing categories land in ``Unknown``."""
    totals: Dict[str, float] = {}
    for cat, number in zip(table.column(category).cells, table.column(value).numbers):
        key = cat if cat is not None else _UNKNOWN_CATEGORY
        totals[key] = totals.get(key, 0.0) + (number if number is not None else 0.0)
    records = [{"name": name, "value": total} for name, total in totals.items()]
    records.sort(key=lambda item: item["value"], reverse=True)
    return records


def aggregate_by_period(
    table: Table,
    date_column: str,
    value: str,
    *,
    bucket: str = "month",
    strict: bool = True,
) -> List[Dict[str, Any]]:
    fmt = _BUCKET_FORMATS[bucket]
    totals: Dict[str, float] = {}
    dates = table.column(date_column).dates(strict=strict)
    for moment, number in zip(dates, table.column(value).numbers):
        if moment is None:
            continue
        key = moment.strftime(fmt)
        totals[key] = totals.get(key, 0.0) + (number if number is not None else 0.0)
    return [{"period": key, "value": totals[key]} for key in sorted(totals)]


def count_by_category(table: Table, column: str, *, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    counts = Counter(cell for cell in table.column(column).cells if cell is not None)
    return [{"name": name, "value": count} for name, count in counts.most_common(limit)]


def _kpi_specs(table: Table, numeric: Sequence[ColumnProfile], used: Set[str]) -> List[VisualizationSpec]:
    specs: List[VisualizationSpec] = []
    for profile in numeric:
        if profile.stats.get("mean") is None:
            continue
        label = f"Total {profile.name}"
        specs.append(
            VisualizationSpec(
                id=_allocate_id(f"kpi-{profile.name}", used),
                kind="kpi",
                title=label,
                data=({"value": _column_sum(table, profile.name), "label": label},),
                config={"format": "number"},
                description=f"Sum of all {profile.name} values",
            )
        )
    return specs


def _category_bar_specs(
    table: Table,
    categorical: Sequence[ColumnProfile],
    numeric: Sequence[ColumnProfile],
    used: Set[str],
) -> List[VisualizationSpec]:
    specs: List[VisualizationSpec] = []
    for cat in categorical:
        for num in numeric:
            records = aggregate_by_category(table, cat.name, num.name)
            if not _CATEGORY_BAR_MIN_GROUPS <= len(records) <= _CATEGORY_BAR_MAX_GROUPS:
                continue
            specs.append(
                VisualizationSpec(
                    id=_allocate_id(f"bar-{cat.name}-{num.name}", used),
                    kind="bar",
                    title=f"{num.name} by {cat.name}",
                    data=tuple(records),
                    config={"xKey": "name", "yKey": "value"},
                    description=f"Distribution of {num.name} across different {cat.name} categories",
                )
            )
    return specs


def _time_series_specs(
    table: Table,
    dates: Sequence[ColumnProfile],
    numeric: Sequence[ColumnProfile],
    settings: AnalysisSettings,
    used: Set[str],
) -> List[VisualizationSpec]:
    if not dates or not numeric:
        return []
    date_col = dates[0]
    series = list(numeric)
    if settings.time_series_series_limit is not None:
        series = series[: settings.time_series_series_limit]

    specs: List[VisualizationSpec] = []
    for num in series:
        points = aggregate_by_period(
            table,
            date_col.name,
            num.name,
            bucket=settings.time_bucket,
            strict=settings.date_mode == "strict",
        )
        if len(points) < settings.min_time_series_points:
            continue
        specs.append(
            VisualizationSpec(
                id=_allocate_id(f"line-{date_col.name}-{num.name}", used),
                kind="line",
                title=f"{num.name} Over Time",
                data=tuple(points),
                config={"xKey": "period", "yKey": "value", "granularity": settings.time_bucket},
                description=f"Trend of {num.name} over time",
            )
        )
    return specs


def _pie_specs(table: Table, categorical: Sequence[ColumnProfile], used: Set[str]) -> List[VisualizationSpec]:
    specs: List[VisualizationSpec] = []
    for cat in categorical:
        if cat.unique_value_count > _PIE_MAX_UNIQUE:
            continue
        slices = count_by_category(table, cat.name, limit=_PIE_MAX_SLICES)
        if len(slices) < _PIE_MIN_SLICES:
            continue
        specs.append(
            VisualizationSpec(
                id=_allocate_id(f"pie-{cat.name}", used),
                kind="pie",
                title=f"{cat.name} Distribution",
                data=tuple(slices),
                config={"nameKey": "name", "valueKey": "value"},
                description=f"Proportion breakdown of {cat.name}",
            )
        )
    return specs


def _top_n_specs(table: Table, categorical: Sequence[ColumnProfile], used: Set[str]) -> List[VisualizationSpec]:
    specs: List[VisualizationSpec] = []
    for cat in categorical:
        if not _TOP_N_MIN_UNIQUE < cat.unique_value_count < _TOP_N_MAX_UNIQUE:
            continue
        specs.append(
            VisualizationSpec(
                id=_allocate_id(f"top-{cat.name}", used),
                kind="bar",
                title=f"Top {_TOP_N_LIMIT} {cat.name}",
                data=tuple(count_by_category(table, cat.name, limit=_TOP_N_LIMIT)),
                config={"xKey": "name", "yKey": "value"},
                description=f"Most frequent values in {cat.name}",
            )
        )
    return specs


def _scatter_points(table: Table, left: str, right: str) -> List[Dict[str, float]]:
    xs = table.column(left).numbers[:_SCATTER_ROW_LIMIT]
    ys = table.column(right).numbers[:_SCATTER_ROW_LIMIT]
    return [{"x": x, "y": y} for x, y in zip(xs, ys) if x is not None and y is not None]


def _scatter_specs(table: Table, correlations: Sequence[CorrelationPair], used: Set[str]) -> List[VisualizationSpec]:
    specs: List[VisualizationSpec] = []
    for pair in correlations:
        formatted = f"{pair.coefficient:.3f}"
        direction = "positive" if pair.coefficient > 0 else "negative"
        specs.append(
            VisualizationSpec(
                id=_allocate_id(f"scatter-{pair.column_a}-{pair.column_b}", used),
                kind="scatter",
                title=f"{pair.column_a} vs {pair.column_b}",
                data=tuple(_scatter_points(table, pair.column_a, pair.column_b)),
                config={
                    "xKey": "x",
                    "yKey": "y",
                    "xLabel": pair.column_a,
                    "yLabel": pair.column_b,
                    "correlation": formatted,
                },
                description=f"Strong {direction} correlation ({formatted})",
            )
        )
    return specs


def synthesize_visualizations(
    table: Table,
    profiles: Sequence[ColumnProfile],
    correlations: Sequence[CorrelationPair],
    settings: AnalysisSettings = STANDARD,
) -> List[VisualizationSpec]:
    """Derive chart specs in fixed order: KPIs, category bars, time series,
    pies, top-N bars, scatters. The list is sliced to ``settings.max_charts``."""
    numeric = [p for p in profiles if p.inferred_type == NUMERIC]
    categorical = [p for p in profiles if p.inferred_type == CATEGORICAL]
    dates = [p for p in profiles if p.inferred_type == DATETIME]
    used: Set[str] = set()

    specs: List[VisualizationSpec] = []
    specs.extend(_kpi_specs(table, numeric, used))
    specs.extend(_category_bar_specs(table, categorical, numeric, used))
    specs.extend(_time_series_specs(table, dates, numeric, settings, used))
    specs.extend(_pie_specs(table, categorical, used))
    specs.extend(_top_n_specs(table, categorical, used))
    specs.extend(_scatter_specs(table, correlations, used))

    if settings.max_charts is not None:
        specs = specs[: settings.max_charts]
    return specs


def _render_bar(ax, spec: VisualizationSpec) -> None:
    names = [str(item["name"]) for item in spec.data]
    values = [item["value"] for item in spec.data]
    ax.bar(names, values, color="#2563eb", alpha=0.85)
    ax.set_xticks(range(len(names)))
    ax.set_xticklabels(names, rotation=45, ha="right")
    ax.grid(True, axis="y", linestyle="--", linewidth=0.5, alpha=0.5)


def _render_line(ax, spec: VisualizationSpec) -> None:
    periods = [item["period"] for item in spec.data]
    values = [item["value"] for item in spec.data]
    ax.plot(periods, values, marker="o", color="#22c55e")
    ax.set_xticks(range(len(periods)))
    ax.set_xticklabels(periods, rotation=45, ha="right")
    ax.grid(True, linestyle="--", linewidth=0.5, alpha=0.4)


def _render_pie(ax, spec: VisualizationSpec) -> None:
    ax.pie(
        [item["value"] for item in spec.data],
        labels=[str(item["name"]) for item in spec.data],
        autopct="%1.0f%%",
    )
    ax.axis("equal")


def _render_scatter(ax, spec: VisualizationSpec) -> None:
    ax.scatter(
        [point["x"] for point in spec.data],
        [point["y"] for point in spec.data],
        s=24,
        alpha=0.75,
        c="#7c3aed",
        edgecolors="none",
    )
    ax.set_xlabel(spec.config.get("xLabel", "x"))
    ax.set_ylabel(spec.config.get("yLabel", "y"))
    ax.grid(True, linestyle="--", linewidth=0.5, alpha=0.4)


_RENDERERS = {
    "bar": _render_bar,
    "line": _render_line,
    "pie": _render_pie,
    "scatter": _render_scatter,
}


def render_preview(spec: VisualizationSpec) -> Optional[bytes]:
    """Render a PNG preview of a chart spec; KPIs and empty specs have none."""
    renderer = _RENDERERS.get(spec.kind)
    if renderer is None or not spec.data:
        return None

    plt = _get_pyplot()
    fig, ax = plt.subplots(figsize=(6, 4))
    try:
        renderer(ax, spec)
        ax.set_title(spec.title)
        fig.tight_layout()
        buffer = io.BytesIO()
        fig.savefig(buffer, format="png", dpi=100)
    finally:
        plt.close(fig)
    return buffer.getvalue()


def render_previews(specs: Sequence[VisualizationSpec]) -> Dict[str, str]:
    previews: Dict[str, str] = {}
    for spec in specs:
        rendered = render_preview(spec)
        if rendered:
            previews[spec.id] = base64.b64encode(rendered).decode("ascii")
    return previews


def _kind_counts(specs: Sequence[VisualizationSpec]) -> Mapping[str, int]:
    return dict(Counter(spec.kind for spec in specs))


def visualize_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    table: Table = state["table"]
    profiles: List[ColumnProfile] = state.get("profiles", [])
    correlations: List[CorrelationPair] = state.get("correlations", [])
    settings: AnalysisSettings = state.get("settings") or STANDARD

    specs = synthesize_visualizations(table, profiles, correlations, settings)
    previews: Dict[str, str] = {}
    if settings.render_previews:
        previews = render_previews(specs)
    logger.info("visualizations synthesized", extra={"charts": len(specs), "previews": len(previews)})

    payload = {
        "charts": len(specs),
        "maxCharts": settings.max_charts,
        "kinds": _kind_counts(specs),
        "ids": [spec.id for spec in specs],
    }
    update = _with_phase(state, "visualize", payload, visualizations=specs, previews=previews)
    _emit_callback(state, "visualize", payload)
    return update
