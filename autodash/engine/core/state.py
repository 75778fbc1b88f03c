from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Optional, TypedDict
from .constants import PHASE_ORDER
from .settings import AnalysisSettings
from .types import ColumnProfile, CorrelationPair, Table, VisualizationSpec

PhaseCallback = Callable[[str, Mapping[str, Any], int, int], None]


class AnalysisState(TypedDict, total=False):
    source_name: str
    raw_text: Optional[str]
    settings: AnalysisSettings
    ai_client: Any
    callback: Optional[PhaseCallback]
    table: Table
    profiles: List[ColumnProfile]
    correlations: List[CorrelationPair]
    visualizations: List[VisualizationSpec]
    previews: Dict[str, str]
    insights: List[str]
    summary: Dict[str, Any]
    ai_findings: List[Dict[str, Any]]
    report_artifacts: Optional[Dict[str, str]]
    final_summary: Dict[str, Any]
    phase_outputs: Dict[str, Dict[str, Any]]


def _with_phase(state: MutableMapping[str, Any], phase: str, payload: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    phases = dict(state.get("phase_outputs", {}))
    phases[phase] = payload
    update: Dict[str, Any] = {"phase_outputs": phases}
    update.update(extra)
    return update

def _emit_callback(state: Mapping[str, Any], phase: str, payload: Mapping[str, Any]) -> None:
    callback = state.get("callback")
    if not callable(callback):
        return
    index = PHASE_ORDER.index(phase)
    callback(phase, payload, index, len(PHASE_ORDER))
