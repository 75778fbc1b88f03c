# tests/test_pipeline_smoke.py
import pytest

from autodash.engine import COMPACT, STANDARD, ParseError, run_pipeline
from autodash.engine.core.constants import PHASE_ORDER


CSV_SMALL = "a,b\n1,x\n2,y\n3,x\n"


def sales_csv(rows=30):
    regions = ["North", "South", "East", "West"]
    lines = ["order_date,region,revenue,cost,customer"]
    for index in range(rows):
        lines.append(
            f"2024-{index % 12 + 1:02d}-{index % 28 + 1:02d},{regions[index % 4]},"
            f"{200 + index * 15},{80 + index * 6},customer-{index}"
        )
    lines.append("2024-01-01,North,1")
    return "\n".join(lines) + "\n"


class RecordingAIClient:
    def __init__(self):
        self.calls = []

    def generate_insights(self, rows, profiles, correlations, summary):
        self.calls.append({"rows": rows, "profiles": profiles, "correlations": correlations, "summary": summary})
        return [{"type": "trend", "title": "Revenue grows", "description": "d", "severity": "low", "confidence": 0.8}]


def test_small_csv_end_to_end():
    result = run_pipeline(CSV_SMALL)

    assert list(result.phases.keys()) == PHASE_ORDER
    profiles = {profile.name: profile for profile in result.profiles}
    assert profiles["a"].inferred_type == "numeric"
    assert profiles["a"].stats == pytest.approx({"mean": 2, "median": 2, "min": 1, "max": 3, "std": (2 / 3) ** 0.5})
    assert profiles["b"].inferred_type == "categorical"
    assert profiles["b"].stats == {"mode": "x", "modeCount": 2}
    assert result.correlations == []
    assert result.ai_insights == []
    assert result.report is None
    assert result.previews == {}
    assert result.summary["totalRows"] == 3


def test_phase_callback_sees_every_phase_in_order():
    seen = []

    def on_phase(phase, payload, index, total):
        seen.append((phase, index, total))

    run_pipeline(CSV_SMALL, on_phase=on_phase)
    assert [item[0] for item in seen] == PHASE_ORDER
    assert [item[1] for item in seen] == list(range(len(PHASE_ORDER)))
    assert {item[2] for item in seen} == {len(PHASE_ORDER)}


def test_full_pipeline_with_ai_and_report():
    ai = RecordingAIClient()
    settings = STANDARD.with_options(build_report=True, render_previews=True)
    result = run_pipeline(sales_csv(), source_name="sales.csv", settings=settings, ai_client=ai)

    assert result.table.row_count == 30
    assert result.summary["droppedRows"] == 1
    types = {profile.name: profile.inferred_type for profile in result.profiles}
    assert types == {
        "order_date": "datetime",
        "region": "categorical",
        "revenue": "numeric",
        "cost": "numeric",
        "customer": "text",
    }
    assert result.correlations[0].coefficient == pytest.approx(1.0)

    assert len(ai.calls) == 1
    assert len(ai.calls[0]["rows"]) == 3
    assert ai.calls[0]["summary"]["totalRows"] == 30
    assert result.ai_insights[0]["title"] == "Revenue grows"

    assert "30 rows" in result.report["text"]
    assert "Revenue grows" in result.report["html"]
    assert "customer" in result.report["html"]
    assert result.previews
    assert all(chart_id in {spec.id for spec in result.visualizations} for chart_id in result.previews)

    finalize = result.phases["finalize"]
    assert finalize["source"] == "sales.csv"
    assert finalize["metrics"]["reportBuilt"] is True
    assert finalize["phasesCompleted"] == PHASE_ORDER


def test_compact_profile_limits_charts():
    result = run_pipeline(sales_csv(), settings=COMPACT)
    assert len(result.visualizations) <= 6
    # every column except region has a distinct value per row
    assert result.summary["highCardinalityColumns"] == 4
    assert run_pipeline(sales_csv()).summary["highCardinalityColumns"] == 0


def test_short_input_raises_parse_error():
    with pytest.raises(ParseError):
        run_pipeline("only,a,header\n")
