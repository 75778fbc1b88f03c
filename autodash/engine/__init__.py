from .core.errors import (
    AnalysisError,
    InvalidRequestError,
    MissingFileError,
    ParseError,
    UnknownActionError,
    UnsupportedFileTypeError,
)
from .core.settings import COMPACT, PROFILES, STANDARD, AnalysisSettings, settings_for
from .core.types import (
    ColumnProfile,
    CorrelationPair,
    PipelineResult,
    Table,
    VisualizationSpec,
)
from .io.parse import decode_upload, ensure_csv_filename, parse_csv_text
from .nodes.profile import infer_column_type, profile_table
from .nodes.correlate import compute_correlations, pearson
from .nodes.visualize import synthesize_visualizations
from .nodes.summarize import summarize_insights, summary_counts
from .graph import PIPELINE, build_graph, run_pipeline

__all__ = [
    "AnalysisError",
    "InvalidRequestError",
    "MissingFileError",
    "ParseError",
    "UnknownActionError",
    "UnsupportedFileTypeError",
    "COMPACT",
    "PROFILES",
    "STANDARD",
    "AnalysisSettings",
    "settings_for",
    "ColumnProfile",
    "CorrelationPair",
    "PipelineResult",
    "Table",
    "VisualizationSpec",
    "decode_upload",
    "ensure_csv_filename",
    "parse_csv_text",
    "infer_column_type",
    "profile_table",
    "compute_correlations",
    "pearson",
    "synthesize_visualizations",
    "summarize_insights",
    "summary_counts",
    "PIPELINE",
    "build_graph",
    "run_pipeline",
]
