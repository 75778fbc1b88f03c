from __future__ import annotations
from typing import Any, Dict, List, MutableMapping
import logging

from ..core.types import ColumnProfile, CorrelationPair, Table
from ..core.state import _with_phase, _emit_callback

logger = logging.getLogger(__name__)

_AI_SAMPLE_ROWS = 3


def ai_insights_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    table: Table = state["table"]
    profiles: List[ColumnProfile] = state.get("profiles", [])
    correlations: List[CorrelationPair] = state.get("correlations", [])
    summary: Dict[str, Any] = state.get("summary", {})
    client = state.get("ai_client")

    if client is None:
        ai_insights: List[Dict[str, Any]] = []
        status = "skipped"
    else:
        ai_insights = list(
            client.generate_insights(
                table.head(_AI_SAMPLE_ROWS),
                [profile.to_dict() for profile in profiles],
                [pair.to_dict() for pair in correlations],
                summary,
            )
        )
        status = "completed"
    logger.info("ai insights phase finished", extra={"status": status, "insight_count": len(ai_insights)})

    payload = {"status": status, "aiInsights": ai_insights}
    update = _with_phase(state, "ai_insights", payload, ai_findings=ai_insights)
    _emit_callback(state, "ai_insights", payload)
    return update
