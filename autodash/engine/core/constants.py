import re
from pathlib import Path

PHASE_ORDER = [
    "parse",
    "profile",
    "correlate",
    "visualize",
    "summarize",
    "ai_insights",
    "report",
    "finalize",
]

_DELIMITER = ","
_QUOTE_CHAR = '"'

_MAX_SAMPLE_VALUES = 5
_MAX_PREVIEW_ROWS = 100

_NUMERIC_TYPE_RATIO = 0.8
_DATETIME_TYPE_RATIO = 0.8
_CATEGORICAL_MAX_UNIQUE = 20
_CATEGORICAL_UNIQUE_RATIO = 0.1
_DATE_LIKE_PATTERN = re.compile(r"\d{1,4}[-/]\d{1,2}[-/]\d{1,4}")

_MIN_CORRELATION_OBSERVATIONS = 10
_CORRELATION_THRESHOLD = 0.5
_STRONG_CORRELATION_THRESHOLD = 0.7

_CATEGORY_BAR_MIN_GROUPS = 2
_CATEGORY_BAR_MAX_GROUPS = 15
_PIE_MAX_UNIQUE = 8
_PIE_MAX_SLICES = 8
_PIE_MIN_SLICES = 2
_TOP_N_MIN_UNIQUE = 8
_TOP_N_MAX_UNIQUE = 100
_TOP_N_LIMIT = 10
_SCATTER_ROW_LIMIT = 100
_UNKNOWN_CATEGORY = "Unknown"

_MAX_INSIGHTS = 6
_HIGH_CARDINALITY_ABSOLUTE = 100
_HIGH_CARDINALITY_RATIO = 0.8

_TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
_REPORT_TEMPLATE_NAME = "report.html.j2"
