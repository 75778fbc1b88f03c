from .parse import parse_node
from .profile import profile_node
from .correlate import correlate_node
from .visualize import visualize_node
from .summarize import summarize_node
from .ai_insights import ai_insights_node
from .report import report_node
from .finalize import finalize_node

__all__ = [
    "parse_node",
    "profile_node",
    "correlate_node",
    "visualize_node",
    "summarize_node",
    "ai_insights_node",
    "report_node",
    "finalize_node",
]
