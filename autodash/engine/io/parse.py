"""Naive header-first CSV parsing into an immutable :class:`Table`.

Fields are split on every comma; quoted commas and embedded newlines are not
supported and misalign the affected row, which is then dropped.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from ..core.constants import _DELIMITER, _QUOTE_CHAR
from ..core.errors import ParseError, UnsupportedFileTypeError
from ..core.types import Cell, Table

logger = logging.getLogger(__name__)


class _HeaderNormalizer:
    """Names blank headers and deduplicates repeated ones."""

    def __init__(self) -> None:
        self._base_counts: Dict[str, int] = {}
        self._used: Set[str] = set()

    def _clean(self, raw: Any, index: int) -> str:
        text = "" if raw is None else str(raw)
        text = text.lstrip("\ufeff").strip()
        if not text:
            return f"column_{index + 1}"
        return text

    def _allocate(self, base: str) -> str:
        count = self._base_counts.get(base, 0)
        candidate = base if count == 0 else f"{base}_{count + 1}"
        while candidate in self._used:
            count += 1
            candidate = f"{base}_{count + 1}"
        self._base_counts[base] = count + 1
        self._used.add(candidate)
        return candidate

    def normalize(self, fieldnames: Sequence[Any]) -> List[str]:
        return [self._allocate(self._clean(name, index)) for index, name in enumerate(fieldnames)]


def _clean_field(raw: str) -> str:
    text = raw.strip()
    if len(text) >= 2 and text[0] == _QUOTE_CHAR and text[-1] == _QUOTE_CHAR:
        text = text[1:-1]
    return text


def split_record(line: str) -> List[str]:
    return [_clean_field(part) for part in line.split(_DELIMITER)]


def _to_cell(value: str) -> Cell:
    return value if value else None


def decode_upload(body: Union[bytes, bytearray, str]) -> str:
    if isinstance(body, str):
        return body
    return bytes(body).decode("utf-8-sig", errors="replace")


def ensure_csv_filename(filename: Optional[str]) -> None:
    if not filename or not filename.lower().endswith(".csv"):
        raise UnsupportedFileTypeError("Only CSV files are supported")


def parse_csv_text(text: str) -> Table:
    # only \n ends a record; other Unicode line breaks stay inside fields
    lines = [line[:-1] if line.endswith("\r") else line for line in text.strip().split("\n")]
    if len(lines) < 2:
        raise ParseError("CSV must have at least a header and one data row")

    raw_header = split_record(lines[0])
    if not any(raw_header):
        raise ParseError("CSV header row is empty")
    columns = _HeaderNormalizer().normalize(raw_header)
    width = len(columns)

    records: List[Dict[str, Cell]] = []
    dropped = 0
    for line in lines[1:]:
        if not line.strip():
            continue
        values = split_record(line)
        if len(values) != width:
            dropped += 1
            continue
        records.append({name: _to_cell(value) for name, value in zip(columns, values)})

    if dropped:
        logger.warning(
            "dropped malformed rows",
            extra={"dropped_rows": dropped, "expected_fields": width},
        )
    return Table.from_records(columns, records, dropped_rows=dropped)
