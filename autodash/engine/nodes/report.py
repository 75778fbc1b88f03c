from __future__ import annotations
from typing import Any, Dict, List, Mapping, MutableMapping, Sequence
import logging

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.types import ColumnProfile, CorrelationPair, Table, VisualizationSpec
from ..core.settings import AnalysisSettings, STANDARD
from ..core.state import _with_phase, _emit_callback
from ..core.constants import _REPORT_TEMPLATE_NAME, _TEMPLATE_DIR
from ..core.utils import _format_preview

logger = logging.getLogger(__name__)

_JINJA_ENV = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)

_MAX_REPORT_CORRELATIONS = 10


def _narrative(
    table: Table,
    summary: Mapping[str, Any],
    correlations: Sequence[CorrelationPair],
    visualizations: Sequence[VisualizationSpec],
) -> List[str]:
    lines = [
        f"The dataset contains {table.row_count:,} rows across {len(table.columns)} columns.",
    ]
    dropped = summary.get("droppedRows", 0)
    if dropped:
        lines.append(f"{dropped} malformed rows were skipped while parsing.")
    if correlations:
        top = correlations[0]
        lines.append(
            f"Strongest correlation observed between {top.column_a} and {top.column_b} "
            f"(r={top.coefficient:.2f})."
        )
    if visualizations:
        lines.append(f"{len(visualizations)} charts were suggested for this data.")
    return lines


def build_report(
    table: Table,
    profiles: Sequence[ColumnProfile],
    correlations: Sequence[CorrelationPair],
    visualizations: Sequence[VisualizationSpec],
    summary: Mapping[str, Any],
    insights: Sequence[str],
    ai_insights: Sequence[Mapping[str, Any]] = (),
) -> Dict[str, str]:
    """Render the plain-text narrative and the HTML report."""
    highlights = _narrative(table, summary, correlations, visualizations)
    summary_text = " ".join(highlights + list(insights))

    columns = [
        {
            "name": profile.name,
            "type": profile.inferred_type,
            "unique": profile.unique_value_count,
            "nulls": profile.null_count,
            "samples": ", ".join(str(_format_preview(value)) for value in profile.sample_values),
            "stats": {key: _format_preview(value) for key, value in profile.stats.items()},
        }
        for profile in profiles
    ]
    correlation_rows = [
        {"left": pair.column_a, "right": pair.column_b, "coefficient": pair.coefficient}
        for pair in correlations[:_MAX_REPORT_CORRELATIONS]
    ]
    charts = [{"title": spec.title, "kind": spec.kind, "description": spec.description} for spec in visualizations]

    template = _JINJA_ENV.get_template(_REPORT_TEMPLATE_NAME)
    html_report = template.render(
        summary_text=summary_text,
        highlights=highlights,
        insights=list(insights),
        ai_insights=[dict(item) for item in ai_insights],
        columns=columns,
        correlations=correlation_rows,
        charts=charts,
        summary=dict(summary),
    )
    return {"text": summary_text, "html": html_report}


def report_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    settings: AnalysisSettings = state.get("settings") or STANDARD
    if not settings.build_report:
        payload: Dict[str, Any] = {"status": "skipped"}
        update = _with_phase(state, "report", payload, report_artifacts=None)
        _emit_callback(state, "report", payload)
        return update

    report = build_report(
        state["table"],
        state.get("profiles", []),
        state.get("correlations", []),
        state.get("visualizations", []),
        state.get("summary", {}),
        state.get("insights", []),
        state.get("ai_findings", []),
    )
    logger.info("report rendered", extra={"html_bytes": len(report["html"])})

    payload = {"status": "completed", "summary": report["text"]}
    update = _with_phase(state, "report", payload, report_artifacts=report)
    _emit_callback(state, "report", payload)
    return update
