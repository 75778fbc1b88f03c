from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Set

from dateutil import parser as date_parser

from .constants import _DATE_LIKE_PATTERN

_MATPLOTLIB_SETUP = False
_PYLAB: Any = None


def _get_pyplot():
    global _MATPLOTLIB_SETUP, _PYLAB
    if _PYLAB is not None:
        return _PYLAB
    import matplotlib

    if not _MATPLOTLIB_SETUP:
        matplotlib.use("Agg")
        _MATPLOTLIB_SETUP = True
    import matplotlib.pyplot as plt

    _PYLAB = plt
    return plt


def to_number(raw: Optional[str]) -> Optional[float]:
    """Return the finite float a raw cell holds, or ``None``."""
    if raw is None:
        return None
    text = raw.strip()
    # float() accepts digit separators that a plain numeric literal never has
    if not text or "_" in text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def to_datetime(raw: Optional[str], *, strict: bool = True) -> Optional[datetime]:
    """Parse a raw cell as a date.

    Strict parsing only accepts values that look like ``2024-01-31`` or
    ``1/31/2024`` before handing them to the parser; loose parsing accepts
    anything python-dateutil understands.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    if strict and not _DATE_LIKE_PATTERN.search(text):
        return None
    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _format_preview(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) > 80:
        return text[:77] + "..."
    return text


def _allocate_id(base: str, used: Set[str]) -> str:
    candidate = base
    suffix = 2
    while candidate in used:
        candidate = f"{base}-{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


def _json_safe(value: Any) -> Any:
    """Replace NaN and infinities with ``None`` so payloads stay JSON compliant."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Mapping):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return value
