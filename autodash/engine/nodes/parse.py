from __future__ import annotations
from typing import Any, Dict, MutableMapping
from ..core.state import _with_phase, _emit_callback
from ..io.parse import parse_csv_text


def parse_node(state: MutableMapping[str, Any]) -> Dict[str, Any]:
    text = state.get("raw_text")
    if text is None:
        text = ""

    table = parse_csv_text(text)

    payload = {
        "source": state.get("source_name", "upload.csv"),
        "rows": table.row_count,
        "columns": list(table.columns),
        "droppedRows": table.dropped_rows,
        "charactersRead": len(text),
    }

    update = _with_phase(state, "parse", payload, table=table, raw_text=None)
    _emit_callback(state, "parse", payload)
    return update
