"""Helpers for shaping AutoDash pipeline results into API payloads."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from autodash.engine.core.constants import _MAX_PREVIEW_ROWS
from autodash.engine.core.utils import _json_safe

if TYPE_CHECKING:  # pragma: no cover - import only for static typing
    from autodash.engine.core.types import PipelineResult
else:  # pragma: no cover - at runtime we treat PipelineResult as ``Any``
    PipelineResult = Any  # type: ignore[misc,assignment]


def build_results_payload(
    result: "PipelineResult",
    *,
    include_report: bool = False,
    include_previews: bool = False,
    preview_rows: int = _MAX_PREVIEW_ROWS,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "success": True,
        "data": result.table.head(preview_rows),
        "totalRows": result.table.row_count,
        "analyses": [profile.to_dict() for profile in result.profiles],
        "visualizations": [spec.to_dict() for spec in result.visualizations],
        "correlations": [pair.to_dict() for pair in result.correlations],
        "aiInsights": _json_safe(list(result.ai_insights)),
        "insights": list(result.insights),
        "summary": dict(result.summary),
    }
    if include_report:
        report: Optional[Mapping[str, str]] = result.report
        payload["report"] = dict(report) if report else None
    if include_previews:
        payload["previews"] = dict(result.previews)
    return payload


def error_payload(error: str, details: str) -> Dict[str, Any]:
    return {"success": False, "error": error, "details": details}


__all__ = [
    "build_results_payload",
    "error_payload",
]
