"""LangGraph analysis pipeline for AutoDash."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from langgraph.graph import END, StateGraph

from .core.constants import PHASE_ORDER
from .core.settings import AnalysisSettings, STANDARD
from .core.state import AnalysisState, PhaseCallback
from .core.types import PipelineResult
from .nodes import (
    ai_insights_node,
    correlate_node,
    finalize_node,
    parse_node,
    profile_node,
    report_node,
    summarize_node,
    visualize_node,
)

logger = logging.getLogger(__name__)

_NODES = {
    "parse": parse_node,
    "profile": profile_node,
    "correlate": correlate_node,
    "visualize": visualize_node,
    "summarize": summarize_node,
    "ai_insights": ai_insights_node,
    "report": report_node,
    "finalize": finalize_node,
}


def build_graph():
    g = StateGraph(AnalysisState)
    for phase in PHASE_ORDER:
        g.add_node(phase, _NODES[phase])

    g.set_entry_point(PHASE_ORDER[0])
    for current, following in zip(PHASE_ORDER, PHASE_ORDER[1:]):
        g.add_edge(current, following)
    g.add_edge(PHASE_ORDER[-1], END)
    return g.compile()


PIPELINE = build_graph()


def run_pipeline(
    text: str,
    *,
    source_name: str = "upload.csv",
    settings: AnalysisSettings = STANDARD,
    ai_client: Any = None,
    on_phase: Optional[PhaseCallback] = None,
) -> PipelineResult:
    """Run every phase over decoded CSV text and collect the results."""
    initial_state: Dict[str, Any] = {
        "source_name": source_name,
        "raw_text": text,
        "settings": settings,
        "ai_client": ai_client,
        "callback": on_phase,
        "phase_outputs": {},
    }
    logger.info("pipeline started", extra={"source": source_name, "profile": settings.name})

    final_state = PIPELINE.invoke(initial_state)

    return PipelineResult(
        table=final_state["table"],
        profiles=final_state.get("profiles", []),
        correlations=final_state.get("correlations", []),
        visualizations=final_state.get("visualizations", []),
        insights=final_state.get("insights", []),
        ai_insights=final_state.get("ai_findings", []),
        summary=final_state.get("summary", {}),
        phases=final_state.get("phase_outputs", {}),
        report=final_state.get("report_artifacts"),
        previews=final_state.get("previews", {}),
    )
