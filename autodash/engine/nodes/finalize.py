from __future__ import annotations
from typing import Any, Dict, List, MutableMapping
import logging

from ..core.types import Table, VisualizationSpec
from ..core.state import _with_phase, _emit_callback
from ..core.constants import PHASE_ORDER

logger = logging.getLogger(__name__)


def finalize_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    table: Table = state["table"]
    phases: Dict[str, Dict[str, Any]] = state.get("phase_outputs", {})
    visualizations: List[VisualizationSpec] = state.get("visualizations", [])
    summary: Dict[str, Any] = state.get("summary", {})

    completed = [phase for phase in PHASE_ORDER if phase in phases]
    metrics = {
        "rows": table.row_count,
        "columns": len(table.columns),
        "droppedRows": table.dropped_rows,
        "charts": len(visualizations),
        "correlations": summary.get("correlationsFound", 0),
        "aiInsights": len(state.get("ai_findings", [])),
        "reportBuilt": bool(state.get("report_artifacts")),
        "previewsRendered": len(state.get("previews", {})),
    }
    payload = {
        "source": state.get("source_name"),
        "metrics": metrics,
        "phasesCompleted": completed + ["finalize"],
    }
    logger.info("pipeline finalized", extra={"source": state.get("source_name"), **metrics})

    update = _with_phase(state, "finalize", payload, final_summary=payload)
    _emit_callback(state, "finalize", payload)
    return update
