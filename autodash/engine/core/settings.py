from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional

DATE_MODES = ("strict", "loose")
TIME_BUCKETS = ("month", "day")
HIGH_CARDINALITY_RULES = ("absolute", "ratio")
CORRELATION_ALIGNMENTS = ("paired", "positional")


@dataclass(frozen=True)
class AnalysisSettings:
    """Knobs that distinguish the standard (server) and compact (client) analyses."""

    name: str = "standard"
    max_charts: Optional[int] = None
    date_mode: str = "strict"
    time_bucket: str = "month"
    min_time_series_points: int = 2
    time_series_series_limit: Optional[int] = 1
    high_cardinality: str = "absolute"
    correlation_alignment: str = "paired"
    render_previews: bool = False
    build_report: bool = False

    def __post_init__(self) -> None:
        if self.date_mode not in DATE_MODES:
            raise ValueError(f"Unsupported date_mode: {self.date_mode}")
        if self.time_bucket not in TIME_BUCKETS:
            raise ValueError(f"Unsupported time_bucket: {self.time_bucket}")
        if self.high_cardinality not in HIGH_CARDINALITY_RULES:
            raise ValueError(f"Unsupported high_cardinality rule: {self.high_cardinality}")
        if self.correlation_alignment not in CORRELATION_ALIGNMENTS:
            raise ValueError(f"Unsupported correlation_alignment: {self.correlation_alignment}")
        if self.max_charts is not None and self.max_charts < 0:
            raise ValueError("max_charts must be non-negative")

    def with_options(self, **changes) -> "AnalysisSettings":
        return replace(self, **changes)


STANDARD = AnalysisSettings()

COMPACT = AnalysisSettings(
    name="compact",
    max_charts=6,
    time_bucket="day",
    min_time_series_points=3,
    time_series_series_limit=2,
    high_cardinality="ratio",
)

PROFILES: Dict[str, AnalysisSettings] = {
    STANDARD.name: STANDARD,
    COMPACT.name: COMPACT,
}


def settings_for(profile: Optional[str]) -> AnalysisSettings:
    if not profile:
        return STANDARD
    try:
        return PROFILES[profile.lower()]
    except KeyError:
        raise ValueError(f"Unknown analysis profile: {profile}") from None
